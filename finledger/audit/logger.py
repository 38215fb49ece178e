"""
Audit Logger

DESIGN DECISION: Every state-producing action in the system is logged.
This provides:
1. Complete traceability of generated and mutated rows
2. Debugging capability
3. A history the user can inspect

The audit logger:
- Is async so it composes with the storage collaborator
- Gracefully handles failures (never breaks the calling flow)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finledger.config import AppSettings, get_settings
from finledger.models.audit import AuditEvent, AuditEventBuilder
from finledger.services.storage import AuditStorageInterface, StorageError


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(settings: Optional[AppSettings] = None) -> None:
    """Route structlog output through stdlib logging at the configured level."""
    settings = settings or get_settings().app
    level = logging.DEBUG if settings.debug_mode else getattr(logging, settings.log_level)
    logging.basicConfig(format="%(message)s", level=level)
    logging.getLogger("finledger").setLevel(level)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit storage backend (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("finledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except StorageError as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_created(
        self,
        transaction_id: str,
        transaction_type: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.transaction_created(
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_deleted(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.validation_failed(
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_series_generated(
        self,
        series_id: str,
        count: int,
        total: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.series_generated(
            series_id=series_id,
            count=count,
            total=total,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_series_resized(
        self,
        old_series_id: str,
        new_series_id: str,
        old_count: int,
        new_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.series_resized(
            old_series_id=old_series_id,
            new_series_id=new_series_id,
            old_count=old_count,
            new_count=new_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_series_resize_refused(
        self,
        series_id: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.series_resize_refused(
            series_id=series_id,
            reason=reason,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_series_deleted(
        self,
        series_id: str,
        row_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.series_deleted(
            series_id=series_id,
            row_count=row_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_installments_anticipated(
        self,
        series_id: str,
        transaction_ids: list[str],
        payment_date: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.installments_anticipated(
            series_id=series_id,
            transaction_ids=transaction_ids,
            payment_date=payment_date,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_recurrence_catchup(
        self,
        generated: int,
        templates_updated: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.recurrence_catchup_completed(
            generated=generated,
            templates_updated=templates_updated,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_consistency_issues(
        self,
        issues: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.consistency_issues_found(
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_failure(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.storage_write_failed(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a resize request).
    Pass it through all subsequent operations.
    """
    return uuid4()

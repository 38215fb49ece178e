"""
Audit Models for FinLedger

Every operation that produces state to persist (a created transaction, a
generated series, a resize, an anticipation, a recurrence catch-up) is
recorded as an audit event. This provides:
1. Traceability of generated rows back to the action that produced them
2. Debugging information when a series looks wrong
3. A record of refused operations and the reason

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_DELETED = "transaction_deleted"
    VALIDATION_FAILED = "validation_failed"

    # Installment series
    SERIES_GENERATED = "series_generated"
    SERIES_RESIZED = "series_resized"
    SERIES_RESIZE_REFUSED = "series_resize_refused"
    SERIES_DELETED = "series_deleted"
    INSTALLMENTS_ANTICIPATED = "installments_anticipated"

    # Recurrence
    RECURRENCE_CATCHUP_COMPLETED = "recurrence_catchup_completed"

    # Derived views
    CONSISTENCY_ISSUES_FOUND = "consistency_issues_found"

    # System events
    STORAGE_WRITE_FAILED = "storage_write_failed"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'series', 'template')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one session start)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.series_generated(series_id, 10, "1200.00", cid)
        event = AuditEventBuilder.series_resize_refused(series_id, reason, cid)
    """

    @staticmethod
    def transaction_created(
        transaction_id: str,
        transaction_type: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"{transaction_type.capitalize()} of {amount} recorded",
            details={"type": transaction_type, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction soft-deleted",
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Transaction rejected with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def series_generated(
        series_id: str,
        count: int,
        total: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SERIES_GENERATED,
            entity_type="series",
            entity_id=series_id,
            correlation_id=correlation_id,
            description=f"Installment series of {count} generated for {total}",
            details={"count": count, "total": total},
            is_user_action=True,
        )

    @staticmethod
    def series_resized(
        old_series_id: str,
        new_series_id: str,
        old_count: int,
        new_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SERIES_RESIZED,
            entity_type="series",
            entity_id=new_series_id,
            correlation_id=correlation_id,
            description=f"Series resized from {old_count} to {new_count} installments",
            details={
                "old_series_id": old_series_id,
                "old_count": old_count,
                "new_count": new_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def series_resize_refused(
        series_id: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SERIES_RESIZE_REFUSED,
            severity=AuditSeverity.WARNING,
            entity_type="series",
            entity_id=series_id,
            correlation_id=correlation_id,
            description="Series resize refused",
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def series_deleted(
        series_id: str,
        row_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SERIES_DELETED,
            entity_type="series",
            entity_id=series_id,
            correlation_id=correlation_id,
            description=f"Series deleted ({row_count} rows)",
            details={"row_count": row_count},
            is_user_action=True,
        )

    @staticmethod
    def installments_anticipated(
        series_id: str,
        transaction_ids: list[str],
        payment_date: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSTALLMENTS_ANTICIPATED,
            entity_type="series",
            entity_id=series_id,
            correlation_id=correlation_id,
            description=f"{len(transaction_ids)} installments anticipated to {payment_date}",
            details={"transaction_ids": transaction_ids, "payment_date": payment_date},
            is_user_action=True,
        )

    @staticmethod
    def recurrence_catchup_completed(
        generated: int,
        templates_updated: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRENCE_CATCHUP_COMPLETED,
            entity_type="recurrence",
            correlation_id=correlation_id,
            description=f"Recurrence catch-up generated {generated} occurrences",
            details={"generated": generated, "templates_updated": templates_updated},
        )

    @staticmethod
    def consistency_issues_found(
        issues: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONSISTENCY_ISSUES_FOUND,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"{len(issues)} consistency issues found",
            details={"issues": issues},
        )

    @staticmethod
    def storage_write_failed(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"Storage write failed: {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

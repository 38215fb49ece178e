"""
Ledger Session Orchestrator

Ties the pure engine to a storage backend and the audit trail.

DESIGN DECISION: The orchestrator enforces the boundaries the engine cannot:
- Nothing is persisted before validation passes
- Generators run at most once per trigger (recurrence catch-up is one-shot
  per session)
- Series mutations are written inside one atomic block, so a failure never
  leaves a half-resized or half-anticipated series behind
- Transient storage failures are retried with exponential backoff; business
  refusals (settled or shared series) are never retried
- Every state-producing step is audited
"""

import datetime as dt
from typing import Any, Optional

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finledger.audit import AuditLogger, create_correlation_id
from finledger.config import (
    Clock,
    EngineSettings,
    StorageSettings,
    SystemClock,
    get_settings,
)
from finledger.engine import (
    BalanceEngine,
    ConsistencyChecker,
    InstallmentSeriesGenerator,
    LedgerGenerator,
    RecurrenceEngine,
    SeriesResizeRefusedError,
    SharedExpenseCalculator,
    TrialBalanceAggregator,
    delete_transaction,
)
from finledger.models.account import Account
from finledger.models.reports import RecurrenceCatchUp, SeriesReplacement, SessionSnapshot
from finledger.models.transaction import Expense, Transaction, TransactionType
from finledger.services.storage import (
    StorageConnectionError,
    StorageError,
    TransactionStorageInterface,
)
from finledger.validation import TransactionValidationError, TransactionValidator

logger = structlog.get_logger(__name__)


class LedgerSession:
    """
    One user session over a storage backend.

    Flow:
    1. start() - consistency check and the one-shot recurrence catch-up
    2. record() / resize() / anticipate() / delete...() - user actions
    3. snapshot() - derived views for display
    """

    def __init__(
        self,
        storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[EngineSettings] = None,
        storage_settings: Optional[StorageSettings] = None,
        clock: Optional[Clock] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().engine
        self._storage_settings = storage_settings or get_settings().storage
        self._clock = clock or SystemClock()
        self._correlation_id = create_correlation_id()
        self._recurrence_done = False

        self._validator = TransactionValidator(self._settings, self._clock)
        self._installments = InstallmentSeriesGenerator(self._settings, self._clock)
        self._recurrence = RecurrenceEngine(self._settings, self._clock)
        self._balances = BalanceEngine(self._settings)
        self._shared = SharedExpenseCalculator()

    @property
    def correlation_id(self):
        return self._correlation_id

    # -------------------------------------------------------------------------
    # Persistence helpers
    # -------------------------------------------------------------------------

    def _retrying(self) -> AsyncRetrying:
        policy = self._storage_settings
        return AsyncRetrying(
            stop=stop_after_attempt(policy.write_attempts),
            wait=wait_exponential(
                multiplier=policy.retry_multiplier,
                min=policy.retry_wait_min,
                max=policy.retry_wait_max,
            ),
            retry=retry_if_exception_type(StorageConnectionError),
            reraise=True,
        )

    async def _write(
        self,
        operation: str,
        added: list[Transaction] = (),
        updated: list[Transaction] = (),
    ) -> None:
        """Write all records in one atomic block, retrying transient failures."""
        try:
            async for attempt in self._retrying():
                with attempt:
                    async with self._storage.atomic():
                        if updated:
                            await self._storage.update_transactions(list(updated))
                        if added:
                            await self._storage.add_transactions(list(added))
        except StorageError as e:
            logger.error("storage_write_failed", operation=operation, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_storage_failure(
                    operation=operation,
                    error_message=str(e),
                    correlation_id=self._correlation_id,
                )
            raise

    async def _load(self) -> tuple[list[Account], list[Transaction]]:
        accounts = await self._storage.list_accounts()
        transactions = await self._storage.list_transactions()
        return accounts, transactions

    # -------------------------------------------------------------------------
    # Session start
    # -------------------------------------------------------------------------

    async def start(self) -> RecurrenceCatchUp:
        """
        Run the startup checks and the recurrence catch-up.

        The catch-up runs at most once per session; later calls return an
        empty result without touching storage.
        """
        if self._recurrence_done:
            logger.info("recurrence_catchup_already_ran")
            return RecurrenceCatchUp()
        self._recurrence_done = True

        accounts, transactions = await self._load()

        issues = ConsistencyChecker().check(accounts, transactions)
        if issues and self._audit_logger:
            await self._audit_logger.log_consistency_issues(
                issues=issues,
                correlation_id=self._correlation_id,
            )

        result = self._recurrence.catch_up(transactions, self._clock.today(), accounts)
        if result.is_empty:
            return result

        await self._write(
            "recurrence_catchup",
            added=result.new_transactions,
            updated=result.template_updates,
        )
        if self._audit_logger:
            await self._audit_logger.log_recurrence_catchup(
                generated=len(result.new_transactions),
                templates_updated=len(result.template_updates),
                correlation_id=self._correlation_id,
            )
        return result

    # -------------------------------------------------------------------------
    # User actions
    # -------------------------------------------------------------------------

    async def record(
        self,
        data: Any,
        installments: Optional[int] = None,
    ) -> tuple[list[Transaction], list[str]]:
        """
        Validate and persist a new transaction.

        With `installments`, the transaction is expanded into a series whose
        rows split its amount (and its shared splits).

        Returns:
            (persisted_rows, warnings)

        Raises:
            TransactionValidationError: Nothing is written
        """
        accounts, transactions = await self._load()
        try:
            tx, warnings = self._validator.validate_or_raise(
                data, accounts, transactions, installments
            )
        except TransactionValidationError as e:
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    issues=[issue.model_dump() for issue in e.issues],
                    correlation_id=self._correlation_id,
                )
            raise

        if installments is None:
            rows = [tx]
            await self._write("record_transaction", added=rows)
            if self._audit_logger:
                await self._audit_logger.log_transaction_created(
                    transaction_id=tx.id,
                    transaction_type=tx.type,
                    amount=str(tx.amount),
                    correlation_id=self._correlation_id,
                )
            return rows, warnings

        rows = self._installments.generate(
            tx.amount,
            installments,
            tx.date,
            tx.shared_with if isinstance(tx, Expense) else None,
            description=tx.description,
            category=tx.category,
            account_id=tx.account_id,
            transaction_type=TransactionType(tx.type),
            payer_id=tx.payer_id if isinstance(tx, Expense) else None,
            currency=tx.currency,
        )
        await self._write("record_installments", added=rows)
        if self._audit_logger:
            await self._audit_logger.log_series_generated(
                series_id=rows[0].series_id,
                count=len(rows),
                total=str(tx.amount),
                correlation_id=self._correlation_id,
            )
        return rows, warnings

    async def resize(self, series_id: str, new_count: int) -> SeriesReplacement:
        """
        Replace a series with one of `new_count` installments.

        Raises:
            SeriesResizeRefusedError: Settled or shared series; nothing is written
        """
        _, transactions = await self._load()
        try:
            replacement = self._installments.resize(transactions, series_id, new_count)
        except SeriesResizeRefusedError as e:
            if self._audit_logger:
                await self._audit_logger.log_series_resize_refused(
                    series_id=series_id,
                    reason=str(e),
                    correlation_id=self._correlation_id,
                )
            raise

        await self._write(
            "resize_series",
            added=replacement.created,
            updated=replacement.retired,
        )
        if self._audit_logger:
            await self._audit_logger.log_series_resized(
                old_series_id=series_id,
                new_series_id=replacement.new_series_id,
                old_count=len(replacement.retired),
                new_count=new_count,
                correlation_id=self._correlation_id,
            )
        return replacement

    async def anticipate(
        self,
        installment_ids: list[str],
        payment_date: dt.date,
        target_account_id: Optional[str] = None,
    ) -> list[Transaction]:
        accounts, transactions = await self._load()
        updated = self._installments.anticipate(
            transactions, installment_ids, payment_date, target_account_id, accounts
        )
        await self._write("anticipate_installments", updated=updated)
        if self._audit_logger:
            await self._audit_logger.log_installments_anticipated(
                series_id=updated[0].series_id,
                transaction_ids=[tx.id for tx in updated],
                payment_date=payment_date.isoformat(),
                correlation_id=self._correlation_id,
            )
        return updated

    async def delete_series(self, series_id: str) -> list[Transaction]:
        _, transactions = await self._load()
        deleted = self._installments.delete_series(transactions, series_id)
        await self._write("delete_series", updated=deleted)
        if self._audit_logger:
            await self._audit_logger.log_series_deleted(
                series_id=series_id,
                row_count=len(deleted),
                correlation_id=self._correlation_id,
            )
        return deleted

    async def delete(self, transaction_id: str) -> Transaction:
        _, transactions = await self._load()
        deleted = delete_transaction(transactions, transaction_id)
        await self._write("delete_transaction", updated=[deleted])
        if self._audit_logger:
            await self._audit_logger.log_transaction_deleted(
                transaction_id=transaction_id,
                correlation_id=self._correlation_id,
            )
        return deleted

    # -------------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------------

    async def snapshot(self, as_of: Optional[dt.date] = None) -> SessionSnapshot:
        """All derived views as of a date (default: today)."""
        as_of = as_of or self._clock.today()
        accounts, transactions = await self._load()

        balanced = self._balances.calculate(accounts, transactions, cutoff=as_of)
        ledger = LedgerGenerator().build(transactions, accounts)

        return SessionSnapshot(
            as_of=as_of,
            accounts=balanced,
            liquid_funds=self._balances.liquid_funds(balanced),
            projection=self._balances.projected_balance(accounts, transactions, as_of),
            ledger=ledger.entries,
            ledger_warnings=ledger.warnings,
            trial_balance=TrialBalanceAggregator().aggregate(ledger.entries),
            consistency_issues=ConsistencyChecker().check(accounts, transactions),
            receivables=self._shared.total_receivables(transactions),
            payables=self._shared.total_payables(transactions),
        )

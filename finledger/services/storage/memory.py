"""
In-memory storage.

Backs tests and single-process use. atomic() snapshots both tables and
restores them if the block raises, which is the staging/rollback strategy
any backend without multi-row transactions has to provide.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from uuid import UUID

import structlog

from finledger.models.account import Account
from finledger.models.audit import AuditEvent
from finledger.models.transaction import Transaction
from finledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)

logger = structlog.get_logger(__name__)


class InMemoryTransactionStorage(TransactionStorageInterface):
    """Dict-backed storage keyed by id, preserving insertion order."""

    def __init__(
        self,
        accounts: Optional[list[Account]] = None,
        transactions: Optional[list[Transaction]] = None,
    ):
        self._accounts: dict[str, Account] = {a.id: a for a in accounts or []}
        self._transactions: dict[str, Transaction] = {
            t.id: t for t in transactions or []
        }
        self._in_atomic = False

    async def list_accounts(self, include_deleted: bool = True) -> list[Account]:
        return [
            a for a in self._accounts.values()
            if include_deleted or not a.deleted
        ]

    async def save_account(self, account: Account) -> bool:
        self._accounts[account.id] = account
        return True

    async def list_transactions(self, include_deleted: bool = True) -> list[Transaction]:
        return [
            t for t in self._transactions.values()
            if include_deleted or not t.deleted
        ]

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return self._transactions.get(transaction_id)

    async def add_transactions(self, transactions: list[Transaction]) -> int:
        for tx in transactions:
            if tx.id in self._transactions:
                raise DuplicateError(f"Transaction already exists: {tx.id}")
        for tx in transactions:
            self._transactions[tx.id] = tx
        return len(transactions)

    async def update_transactions(self, transactions: list[Transaction]) -> int:
        for tx in transactions:
            if tx.id not in self._transactions:
                raise NotFoundError(f"Transaction not found: {tx.id}")
        for tx in transactions:
            self._transactions[tx.id] = tx
        return len(transactions)

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        if self._in_atomic:
            raise StorageError("Nested atomic blocks are not supported")
        accounts = dict(self._accounts)
        transactions = dict(self._transactions)
        self._in_atomic = True
        try:
            yield
        except BaseException:
            self._accounts = accounts
            self._transactions = transactions
            logger.warning("atomic_block_rolled_back")
            raise
        finally:
            self._in_atomic = False


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]

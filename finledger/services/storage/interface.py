"""
Abstract Storage Interface

DESIGN DECISION: The engine never performs I/O. Whatever stores accounts and
transactions sits behind this interface, so that:
1. The backing store can be swapped without touching the engine
2. In-memory storage can be used for testing
3. Series mutations can be staged and rolled back as one unit

Rows are never physically removed. Deleting means saving the row again with
deleted=True.
"""

from abc import ABC, abstractmethod
from typing import AsyncContextManager, Optional
from uuid import UUID

from finledger.models.account import Account
from finledger.models.audit import AuditEvent
from finledger.models.transaction import Transaction


class TransactionStorageInterface(ABC):
    """
    Abstract interface for account and transaction storage.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def list_accounts(self, include_deleted: bool = True) -> list[Account]:
        pass

    @abstractmethod
    async def save_account(self, account: Account) -> bool:
        """
        Insert or replace an account.

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def list_transactions(self, include_deleted: bool = True) -> list[Transaction]:
        """
        List transactions in insertion order.

        Args:
            include_deleted: Also return soft-deleted rows
        """
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        """
        Retrieve a transaction by its ID.

        Returns:
            The transaction if found, None otherwise
        """
        pass

    @abstractmethod
    async def add_transactions(self, transactions: list[Transaction]) -> int:
        """
        Insert new transactions.

        Returns:
            Number of rows inserted

        Raises:
            DuplicateError: If any id already exists
            StorageError: If insert fails
        """
        pass

    @abstractmethod
    async def update_transactions(self, transactions: list[Transaction]) -> int:
        """
        Replace existing transactions by id.

        Raises:
            NotFoundError: If any id does not exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    def atomic(self) -> AsyncContextManager[None]:
        """
        Stage every write made inside the block.

        If the block raises, all of its writes are rolled back and the
        exception propagates. Series mutations always run inside one.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not reach the storage backend. Safe to retry."""
    pass

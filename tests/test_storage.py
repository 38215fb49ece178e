"""
Tests for the in-memory storage backend.

Async methods are driven with asyncio.run so no event-loop plugin is needed.
"""

import asyncio
import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from finledger.models import AuditEvent, AuditEventType, Income
from finledger.services.storage import (
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    StorageError,
)


def _tx(tx_id="t1", amount="10.00"):
    return Income(id=tx_id, date=date(2024, 3, 1), amount=Decimal(amount), description="x", account_id="checking")


class TestTransactionStorage:
    """Tests for transaction persistence."""

    def test_add_and_get(self, accounts):
        """Test round-trip of accounts and transactions."""
        async def scenario():
            storage = InMemoryTransactionStorage(accounts)
            await storage.add_transactions([_tx()])
            return await storage.get_transaction("t1"), await storage.list_accounts()

        tx, stored_accounts = asyncio.run(scenario())
        assert tx == _tx()
        assert stored_accounts == accounts

    def test_save_account_inserts_and_replaces(self, accounts, checking):
        """Test that saving an account upserts by id."""
        async def scenario():
            storage = InMemoryTransactionStorage()
            await storage.save_account(checking)
            renamed = checking.model_copy(update={"name": "Main"})
            saved = await storage.save_account(renamed)
            return saved, await storage.list_accounts()

        saved, stored = asyncio.run(scenario())
        assert saved is True
        assert [(a.id, a.name) for a in stored] == [("checking", "Main")]

    def test_duplicate_rejected_without_partial_write(self):
        """Test that a batch with a known id writes nothing."""
        async def scenario():
            storage = InMemoryTransactionStorage(transactions=[_tx()])
            with pytest.raises(DuplicateError):
                await storage.add_transactions([_tx("t2"), _tx("t1")])
            return await storage.list_transactions()

        assert [tx.id for tx in asyncio.run(scenario())] == ["t1"]

    def test_update_unknown_rejected(self):
        """Test that updates need an existing row."""
        async def scenario():
            storage = InMemoryTransactionStorage()
            await storage.update_transactions([_tx()])

        with pytest.raises(NotFoundError):
            asyncio.run(scenario())

    def test_list_without_deleted(self):
        """Test the include_deleted filter."""
        async def scenario():
            storage = InMemoryTransactionStorage(transactions=[_tx(), _tx("t2").model_copy(update={"deleted": True})])
            return await storage.list_transactions(include_deleted=False)

        assert [tx.id for tx in asyncio.run(scenario())] == ["t1"]

    def test_atomic_rolls_back(self):
        """Test that a failing block leaves no trace."""
        async def scenario():
            storage = InMemoryTransactionStorage(transactions=[_tx()])
            with pytest.raises(DuplicateError):
                async with storage.atomic():
                    await storage.update_transactions([_tx(amount="99.00")])
                    await storage.add_transactions([_tx()])
            return await storage.get_transaction("t1")

        assert asyncio.run(scenario()).amount == Decimal("10.00")

    def test_atomic_commits(self):
        """Test that a successful block keeps its writes."""
        async def scenario():
            storage = InMemoryTransactionStorage()
            async with storage.atomic():
                await storage.add_transactions([_tx()])
            return await storage.list_transactions()

        assert len(asyncio.run(scenario())) == 1

    def test_nested_atomic_rejected(self):
        """Test that atomic blocks do not nest."""
        async def scenario():
            storage = InMemoryTransactionStorage()
            async with storage.atomic():
                async with storage.atomic():
                    pass

        with pytest.raises(StorageError, match="Nested"):
            asyncio.run(scenario())


class TestAuditStorage:
    """Tests for the append-only audit store."""

    def test_append_and_query(self):
        """Test correlation lookup and recent-first ordering."""
        correlation_id = uuid4()

        async def scenario():
            storage = InMemoryAuditStorage()
            await storage.append_event(AuditEvent(event_type=AuditEventType.SERIES_GENERATED, description="a"))
            await storage.append_event(AuditEvent(
                event_type=AuditEventType.SERIES_DELETED,
                description="b",
                correlation_id=correlation_id,
            ))
            return (
                await storage.get_events_by_correlation_id(correlation_id),
                await storage.get_recent_events(limit=1),
            )

        correlated, recent = asyncio.run(scenario())
        assert [e.description for e in correlated] == ["b"]
        assert [e.description for e in recent] == ["b"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

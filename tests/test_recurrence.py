"""
Tests for the recurrence engine.
"""

import pytest
from datetime import date
from decimal import Decimal

from finledger.config import EngineSettings
from finledger.engine import RecurrenceEngine, advance, run_recurrence_catchup
from finledger.models import Expense, Frequency, Income, RecurrenceInfo, SharedSplit


def _template(start, frequency=Frequency.MONTHLY, account_id="checking", **fields):
    return Income(
        date=start,
        amount=Decimal("5000.00"),
        description="Salary",
        account_id=account_id,
        recurrence=RecurrenceInfo(frequency=frequency),
        **fields,
    )


def _apply(transactions, result):
    """Persist a catch-up result the way a store would."""
    updated = {tx.id: tx for tx in result.template_updates}
    return [updated.get(tx.id, tx) for tx in transactions] + result.new_transactions


class TestAdvance:
    """Tests for single-step advancement."""

    def test_daily_and_weekly(self):
        assert advance(date(2024, 2, 28), Frequency.DAILY) == date(2024, 2, 29)
        assert advance(date(2024, 2, 28), Frequency.WEEKLY) == date(2024, 3, 6)

    def test_yearly_leap_day(self):
        """Test Feb 29 falling back on common years."""
        assert advance(date(2024, 2, 29), Frequency.YEARLY) == date(2025, 2, 28)

    def test_monthly_reapplies_anchor_day(self):
        """Test that a day-31 rule returns to the 31st after February."""
        feb = advance(date(2024, 1, 31), Frequency.MONTHLY, 31)
        assert feb == date(2024, 2, 29)
        assert advance(feb, Frequency.MONTHLY, 31) == date(2024, 3, 31)


class TestCatchUp:
    """Tests for materializing missed occurrences."""

    def test_monthly_catch_up(self, settings, clock):
        """Test occurrences up to and including today."""
        template = _template(date(2024, 1, 5))
        result = RecurrenceEngine(settings, clock).catch_up([template])
        assert [tx.date for tx in result.new_transactions] == [date(2024, 2, 5), date(2024, 3, 5)]
        assert all(tx.description == "Salary (Recorrente)" for tx in result.new_transactions)
        assert all(tx.recurrence is None for tx in result.new_transactions)
        assert len({tx.id for tx in result.new_transactions} | {template.id}) == 3
        assert result.template_updates[0].recurrence.last_generated == date(2024, 3, 5)

    def test_second_run_is_empty(self, settings, clock):
        """Test idempotence once the result is persisted."""
        engine = RecurrenceEngine(settings, clock)
        transactions = [_template(date(2024, 1, 5))]
        transactions = _apply(transactions, engine.catch_up(transactions))
        assert engine.catch_up(transactions).is_empty

    def test_existing_rows_not_duplicated(self, settings, clock):
        """Test the duplicate guard when last_generated was never saved."""
        engine = RecurrenceEngine(settings, clock)
        template = _template(date(2024, 1, 5))
        first = engine.catch_up([template])
        second = engine.catch_up([template] + first.new_transactions)
        assert second.new_transactions == []
        assert second.template_updates[0].recurrence.last_generated == date(2024, 3, 5)

    def test_manual_entry_counts_as_existing(self, settings, clock):
        """Test that a hand-entered row without the suffix is recognized."""
        template = _template(date(2024, 2, 5))
        manual = template.model_copy(update={"id": "manual", "date": date(2024, 3, 5), "recurrence": None})
        result = RecurrenceEngine(settings, clock).catch_up([template, manual])
        assert result.new_transactions == []

    def test_iteration_cap(self, clock):
        """Test that one run is bounded by the configured cap."""
        settings = EngineSettings(recurrence_max_iterations=3)
        template = _template(date(2024, 3, 1), Frequency.DAILY)
        result = RecurrenceEngine(settings, clock).catch_up([template])
        assert [tx.date for tx in result.new_transactions] == [
            date(2024, 3, 2),
            date(2024, 3, 3),
            date(2024, 3, 4),
        ]
        assert result.template_updates[0].recurrence.last_generated == date(2024, 3, 4)

    def test_month_end_template(self, settings):
        """Test a day-31 template across short months."""
        template = _template(date(2024, 1, 31))
        result = run_recurrence_catchup([template], date(2024, 4, 30), settings)
        assert [tx.date for tx in result.new_transactions] == [
            date(2024, 2, 29),
            date(2024, 3, 31),
            date(2024, 4, 30),
        ]

    def test_template_without_valid_account_skipped(self, settings, clock, accounts):
        """Test that templates on unknown accounts are skipped."""
        template = _template(date(2024, 1, 5), account_id="ghost")
        result = RecurrenceEngine(settings, clock).catch_up([template], accounts=accounts)
        assert result.is_empty

    def test_deleted_template_ignored(self, settings, clock):
        """Test that soft-deleted templates stop recurring."""
        template = _template(date(2024, 1, 5), deleted=True)
        assert RecurrenceEngine(settings, clock).catch_up([template]).is_empty

    def test_occurrences_start_unsettled(self, settings, clock):
        """Test that settlement flags are not copied to new occurrences."""
        template = Expense(
            date=date(2024, 2, 10),
            amount=Decimal("120.00"),
            description="Internet",
            account_id="checking",
            is_settled=True,
            shared_with=[SharedSplit(member_id="alice", assigned_amount=Decimal("60.00"), is_settled=True)],
            recurrence=RecurrenceInfo(frequency=Frequency.MONTHLY),
        )
        occurrence = RecurrenceEngine(settings, clock).catch_up([template]).new_transactions[0]
        assert occurrence.date == date(2024, 3, 10)
        assert not occurrence.is_settled
        assert not occurrence.shared_with[0].is_settled


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

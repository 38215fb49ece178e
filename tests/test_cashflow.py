"""
Tests for the cash-flow report and monthly health check.
"""

import pytest
from datetime import date
from decimal import Decimal

from finledger.engine import CashFlowReporter, cash_flow_report
from finledger.models import Expense, HealthStatus, Income, SharedSplit


def _expense(amount, day, account_id="checking", **fields):
    return Expense(date=day, amount=Decimal(amount), description="Expense", account_id=account_id, **fields)


def _income(amount, day):
    return Income(date=day, amount=Decimal(amount), description="Salary", account_id="checking")


class TestCashFlowReport:
    """Tests for accrual versus cash."""

    def test_card_expense_moves_to_due_month(self, settings, clock, accounts):
        """Test that a card purchase is paid on its invoice due date."""
        txs = [
            _expense("100.00", date(2024, 3, 10)),
            _expense("200.00", date(2024, 3, 10), account_id="card"),
            _income("1000.00", date(2024, 3, 1)),
        ]
        rows = CashFlowReporter(settings, clock).report(accounts, txs)
        assert [r.month for r in rows] == ["2024-03", "2024-04"]
        march, april = rows
        assert march.accrual == Decimal("-700.00")
        assert march.cash == Decimal("100.00")
        assert april.accrual == Decimal("0.00")
        assert april.cash == Decimal("200.00")
        assert april.difference == Decimal("-200.00")

    def test_personal_cost_only(self, settings, accounts):
        """Test that other people's shares are not the user's spending."""
        tx = _expense(
            "100.00",
            date(2024, 3, 10),
            shared_with=[SharedSplit(member_id="alice", assigned_amount=Decimal("40.00"))],
        )
        row = cash_flow_report(accounts, [tx], settings)[0]
        assert (row.accrual, row.cash) == (Decimal("60.00"), Decimal("60.00"))

    def test_deleted_rows_ignored(self, settings, accounts):
        """Test that soft-deleted rows are left out."""
        assert cash_flow_report(accounts, [_expense("10.00", date(2024, 3, 1), deleted=True)], settings) == []


class TestFinancialHealth:
    """Tests for the savings-rate verdict."""

    @pytest.mark.parametrize(
        "spent, status",
        [
            ("500.00", HealthStatus.POSITIVE),
            ("950.00", HealthStatus.WARNING),
            ("1200.00", HealthStatus.CRITICAL),
        ],
    )
    def test_status_from_savings_rate(self, settings, clock, spent, status):
        """Test thresholds against a 1000.00 income."""
        txs = [_income("1000.00", date(2024, 3, 1)), _expense(spent, date(2024, 3, 2))]
        assert CashFlowReporter(settings, clock).health(txs, 2024, 3).status == status

    def test_savings_rate_value(self, settings, clock):
        """Test the rate itself."""
        txs = [_income("1000.00", date(2024, 3, 1)), _expense("950.00", date(2024, 3, 2))]
        health = CashFlowReporter(settings, clock).health(txs, 2024, 3)
        assert health.savings_rate == Decimal("0.0500")
        assert health.income == Decimal("1000.00")
        assert health.expenses == Decimal("950.00")

    def test_spending_without_income(self, settings, clock):
        """Test that spending with no income is critical."""
        health = CashFlowReporter(settings, clock).health([_expense("10.00", date(2024, 3, 2))], 2024, 3)
        assert health.status == HealthStatus.CRITICAL

    def test_empty_month(self, settings, clock):
        """Test that a month with no activity is fine."""
        txs = [_expense("10.00", date(2024, 4, 2))]
        assert CashFlowReporter(settings, clock).health(txs, 2024, 3).status == HealthStatus.POSITIVE


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

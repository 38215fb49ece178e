"""
Tests for the balance engine.
"""

import pytest
from datetime import date
from decimal import Decimal

from finledger.config import EngineSettings
from finledger.engine import BalanceEngine, CurrencyConversionError, calculate_balances
from finledger.models import Account, AccountType, Expense, Income, SharedSplit, Transfer


def _expense(amount, day=date(2024, 3, 1), account_id="checking", **fields):
    return Expense(date=day, amount=Decimal(amount), description="Expense", account_id=account_id, **fields)


def _income(amount, day=date(2024, 3, 1), account_id="checking", **fields):
    return Income(date=day, amount=Decimal(amount), description="Income", account_id=account_id, **fields)


def _transfer(amount, source="checking", destination="savings", day=date(2024, 3, 1), **fields):
    return Transfer(
        date=day,
        amount=Decimal(amount),
        description="Transfer",
        account_id=source,
        destination_account_id=destination,
        **fields,
    )


def _by_id(accounts):
    return {a.id: a.balance for a in accounts}


class TestCalculateBalances:
    """Tests for the balance rebuild."""

    def test_sign_rules(self, settings, accounts):
        """Test expenses subtract, incomes add and refunds reverse both."""
        txs = [
            _expense("150.00"),
            _expense("50.00", is_refund=True),
            _income("300.00"),
            _income("20.00", is_refund=True),
        ]
        balances = _by_id(BalanceEngine(settings).calculate(accounts, txs))
        assert balances["checking"] == Decimal("1180.00")

    def test_transfer_moves_money(self, settings, accounts):
        """Test that a transfer debits the source and credits the destination."""
        balances = _by_id(BalanceEngine(settings).calculate(accounts, [_transfer("200.00")]))
        assert balances["checking"] == Decimal("800.00")
        assert balances["savings"] == Decimal("700.00")

    def test_transfer_destination_amount(self, settings, accounts):
        """Test that the destination receives destination_amount when set."""
        tx = _transfer("100.00", destination_amount=Decimal("19.50"))
        balances = _by_id(BalanceEngine(settings).calculate(accounts, [tx]))
        assert balances["checking"] == Decimal("900.00")
        assert balances["savings"] == Decimal("519.50")

    def test_transfer_to_deleted_account_not_applied(self, settings, checking, savings):
        """Test that money never disappears into a deleted account."""
        closed = savings.model_copy(update={"deleted": True})
        balances = _by_id(BalanceEngine(settings).calculate([checking, closed], [_transfer("200.00")]))
        assert balances["checking"] == Decimal("1000.00")
        assert balances["savings"] == Decimal("500.00")

    def test_cutoff_is_inclusive(self, settings, accounts):
        """Test that rows after the cutoff are ignored."""
        txs = [_expense("10.00", day=date(2024, 3, 15)), _expense("20.00", day=date(2024, 3, 16))]
        balances = _by_id(BalanceEngine(settings).calculate(accounts, txs, cutoff=date(2024, 3, 15)))
        assert balances["checking"] == Decimal("990.00")

    def test_deleted_rows_ignored(self, settings, accounts):
        """Test that soft-deleted rows have no effect."""
        tx = _expense("10.00", deleted=True)
        assert _by_id(calculate_balances(accounts, [tx], settings=settings))["checking"] == Decimal("1000.00")

    def test_third_party_expense_ignored(self, settings, accounts):
        """Test that an expense someone else paid leaves balances alone."""
        tx = _expense(
            "90.00",
            payer_id="alice",
            shared_with=[SharedSplit(member_id="alice", assigned_amount=Decimal("30.00"))],
        )
        assert _by_id(BalanceEngine(settings).calculate(accounts, [tx]))["checking"] == Decimal("1000.00")

    def test_card_expense_makes_balance_negative(self, settings, accounts):
        """Test that card purchases are debt."""
        balances = _by_id(BalanceEngine(settings).calculate(accounts, [_expense("300.00", account_id="card")]))
        assert balances["card"] == Decimal("-300.00")


class TestLiquidFunds:
    """Tests for the liquid-funds aggregate and currency conversion."""

    def test_only_liquid_accounts(self, settings, accounts):
        """Test that cards and investments are excluded."""
        engine = BalanceEngine(settings)
        balanced = engine.calculate(accounts, [_expense("300.00", account_id="card")])
        assert engine.liquid_funds(balanced) == Decimal("1500.00")

    def test_foreign_currency_converted(self):
        """Test conversion with the configured rate."""
        settings = EngineSettings(base_currency="BRL", exchange_rates={"USD": Decimal("5.00")})
        wallet = Account(name="Dollars", type=AccountType.CASH, currency="USD", balance=Decimal("100.00"))
        assert BalanceEngine(settings).liquid_funds([wallet]) == Decimal("500.00")

    def test_missing_rate_raises(self, settings):
        """Test that an unknown currency is an error, not a silent 1:1."""
        with pytest.raises(CurrencyConversionError, match="No exchange rate configured for EUR"):
            BalanceEngine(settings).convert(Decimal("10"), "EUR")


class TestProjectedBalance:
    """Tests for the end-of-month projection."""

    def test_projection(self, settings, accounts, today):
        """Test pending income and expenses for the rest of the month."""
        txs = [
            _expense("100.00", day=date(2024, 3, 10)),
            _expense("40.00", day=today),
            _income("1000.00", day=date(2024, 3, 20)),
            _expense("200.00", day=date(2024, 3, 25)),
            _expense("999.00", day=date(2024, 4, 1)),
            _transfer("300.00", day=date(2024, 3, 28)),
        ]
        projection = BalanceEngine(settings).projected_balance(accounts, txs, today)
        assert projection.current == Decimal("1360.00")
        assert projection.pending_income == Decimal("1000.00")
        assert projection.pending_expenses == Decimal("200.00")
        assert projection.projected == Decimal("2160.00")
        assert projection.currency == "BRL"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

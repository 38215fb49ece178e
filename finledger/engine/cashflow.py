"""
Cash-flow and monthly health reports.

Accrual view: a purchase counts in the month it was made.
Cash view: a purchase counts when money actually leaves the user, which for
credit cards is the due date of the invoice it was billed on.

Both views use the personal cost of an expense, so shares owed by other
people are not counted as the user's spending.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Optional

from finledger.config import Clock, EngineSettings, get_settings
from finledger.engine.invoices import InvoiceCycleCalculator
from finledger.engine.shared import calculate_effective_personal_cost
from finledger.models.account import Account
from finledger.models.reports import CashFlowRow, FinancialHealth, HealthStatus
from finledger.models.transaction import Expense, Income, Transaction
from finledger.utils.dates import month_bounds, month_key
from finledger.utils.money import ZERO

RATE_PLACES = Decimal("0.0001")


class CashFlowReporter:
    """Builds the accrual-versus-cash report and the monthly health check."""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        clock: Optional[Clock] = None,
    ):
        self._settings = settings or get_settings().engine
        self._invoices = InvoiceCycleCalculator(self._settings, clock)

    def report(
        self,
        accounts: Iterable[Account],
        transactions: Iterable[Transaction],
    ) -> list[CashFlowRow]:
        """One row per month that has any activity, oldest first."""
        cards = {a.id: a for a in accounts if a.is_credit_card}
        accrual: dict[str, Decimal] = defaultdict(lambda: ZERO)
        cash: dict[str, Decimal] = defaultdict(lambda: ZERO)

        for tx in transactions:
            if tx.deleted:
                continue
            month = month_key(tx.date)
            if isinstance(tx, Income):
                accrual[month] -= -tx.amount if tx.is_refund else tx.amount
                continue
            if not isinstance(tx, Expense):
                continue

            cost = calculate_effective_personal_cost(tx)
            if tx.is_refund:
                cost = -cost
            accrual[month] += cost

            card = cards.get(tx.account_id)
            if card is not None:
                paid_on = self._invoices.cash_date_for_expense(card, tx.date)
                cash[month_key(paid_on)] += cost
            else:
                cash[month] += cost

        return [
            CashFlowRow(month=month, accrual=accrual[month], cash=cash[month])
            for month in sorted(set(accrual) | set(cash))
        ]

    def health(
        self,
        transactions: Iterable[Transaction],
        year: int,
        month: int,
    ) -> FinancialHealth:
        """
        Savings-rate verdict for one month.

        No income with spending is CRITICAL; no income and no spending is
        POSITIVE. Otherwise a negative rate is CRITICAL and a rate below the
        configured healthy rate is a WARNING.
        """
        start, end = month_bounds(year, month)
        income = ZERO
        expenses = ZERO
        for tx in transactions:
            if tx.deleted or not start <= tx.date <= end:
                continue
            if isinstance(tx, Income):
                income += -tx.amount if tx.is_refund else tx.amount
            elif isinstance(tx, Expense):
                cost = calculate_effective_personal_cost(tx)
                expenses += -cost if tx.is_refund else cost

        if income <= 0:
            status = HealthStatus.CRITICAL if expenses > 0 else HealthStatus.POSITIVE
            rate = ZERO
        else:
            rate = ((income - expenses) / income).quantize(RATE_PLACES)
            if rate < 0:
                status = HealthStatus.CRITICAL
            elif rate < self._settings.healthy_savings_rate:
                status = HealthStatus.WARNING
            else:
                status = HealthStatus.POSITIVE

        messages = {
            HealthStatus.POSITIVE: "Spending is within a healthy margin of income",
            HealthStatus.WARNING: "Saving less than the recommended share of income",
            HealthStatus.CRITICAL: "Spending exceeds income",
        }
        return FinancialHealth(
            status=status,
            income=income,
            expenses=expenses,
            savings_rate=rate,
            message=messages[status],
        )


def cash_flow_report(
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
    settings: Optional[EngineSettings] = None,
) -> list[CashFlowRow]:
    return CashFlowReporter(settings).report(accounts, transactions)

"""
Invoice Cycle Calculator

A credit card's invoice for reference month M covers purchases dated from the
day after the previous month's closing day through M's closing day, both
inclusive. Closing and due days are clamped to the length of their month, so
a card closing on the 31st closes on Feb 28/29.

The invoice closing in month M is due on the card's due day of M, or of M+1
when that day would fall before the closing date. For the usual setup
(due day after closing day) this is exactly the accrual-to-cash rule:

    purchase on day D of month M
        D >  closing_day  ->  due_day of M+1
        D <= closing_day  ->  due_day of M
"""

import datetime as dt
from decimal import Decimal
from typing import Iterable, Optional

from finledger.config import Clock, EngineSettings, SystemClock, get_settings
from finledger.models.account import Account
from finledger.models.reports import Invoice, InvoiceStatus
from finledger.models.transaction import Expense, Transaction
from finledger.utils.dates import clamp_day, shift_month
from finledger.utils.money import ZERO


class InvoiceError(ValueError):
    """Invoice requested for an account that is not a credit card."""
    pass


class InvoiceCycleCalculator:
    """Billing windows, due dates and totals for credit-card accounts."""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        clock: Optional[Clock] = None,
    ):
        self._settings = settings or get_settings().engine
        self._clock = clock or SystemClock()

    def _days(self, account: Account) -> tuple[int, int]:
        if not account.is_credit_card:
            raise InvoiceError(f"Account {account.name} is not a credit card")
        return (
            account.closing_day or self._settings.default_closing_day,
            account.due_day or self._settings.default_due_day,
        )

    def closing_date(self, account: Account, year: int, month: int) -> dt.date:
        closing_day, _ = self._days(account)
        return clamp_day(year, month, closing_day)

    def window(self, account: Account, year: int, month: int) -> tuple[dt.date, dt.date]:
        """(first day, closing day) of the cycle closing in year/month."""
        prev_year, prev_month = shift_month(year, month, -1)
        start = self.closing_date(account, prev_year, prev_month) + dt.timedelta(days=1)
        return start, self.closing_date(account, year, month)

    def due_date(self, account: Account, year: int, month: int) -> dt.date:
        _, due_day = self._days(account)
        closing = self.closing_date(account, year, month)
        due = clamp_day(year, month, due_day)
        if due < closing:
            next_year, next_month = shift_month(year, month, 1)
            due = clamp_day(next_year, next_month, due_day)
        return due

    def cycle_for_date(self, account: Account, day: dt.date) -> tuple[int, int]:
        """(year, month) of the invoice a purchase on `day` is billed on."""
        if day <= self.closing_date(account, day.year, day.month):
            return day.year, day.month
        return shift_month(day.year, day.month, 1)

    def cash_date_for_expense(self, account: Account, day: dt.date) -> dt.date:
        """When a card purchase actually leaves the user's pocket."""
        year, month = self.cycle_for_date(account, day)
        return self.due_date(account, year, month)

    def compute(
        self,
        account: Account,
        transactions: Iterable[Transaction],
        reference_month: dt.date,
    ) -> Invoice:
        """
        Invoice for the cycle closing in reference_month's month.

        Only the card's own, non-deleted expenses paid by the user count.
        Refunds subtract. Window rows are returned newest first.
        """
        year, month = reference_month.year, reference_month.month
        start, closing = self.window(account, year, month)

        window_transactions = sorted(
            (
                tx for tx in transactions
                if isinstance(tx, Expense)
                and not tx.deleted
                and tx.paid_by_user
                and tx.account_id == account.id
                and start <= tx.date <= closing
            ),
            key=lambda tx: tx.date,
            reverse=True,
        )
        total: Decimal = ZERO
        for tx in window_transactions:
            total += -tx.amount if tx.is_refund else tx.amount

        today = self._clock.today()
        return Invoice(
            account_id=account.id,
            year=year,
            month=month,
            window_start=start,
            closing_date=closing,
            due_date=self.due_date(account, year, month),
            total=total,
            window_transactions=window_transactions,
            status=InvoiceStatus.CLOSED if closing < today else InvoiceStatus.OPEN,
            days_to_close=max((closing - today).days, 0),
        )

    def current(self, account: Account, transactions: Iterable[Transaction]) -> Invoice:
        """The invoice that today's purchases are billed on."""
        year, month = self.cycle_for_date(account, self._clock.today())
        return self.compute(account, transactions, dt.date(year, month, 1))


def compute_invoice(
    account: Account,
    transactions: Iterable[Transaction],
    reference_month: dt.date,
    settings: Optional[EngineSettings] = None,
    clock: Optional[Clock] = None,
) -> Invoice:
    return InvoiceCycleCalculator(settings, clock).compute(account, transactions, reference_month)

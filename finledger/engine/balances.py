"""
Balance Engine

Rebuilds every account's balance from its initial balance and the
transaction history, optionally as of a cutoff date.

Sign rules:
    EXPENSE   subtracts from the source (adds back when it is a refund)
    INCOME    adds to the source (subtracts when it is a refund)
    TRANSFER  subtracts from the source, adds to the destination

DESIGN DECISION: An expense paid by a third party never touches the user's
accounts; the debt lives in the shared-expense views instead. A transfer
whose destination is unknown or deleted is not applied at all, so money
cannot vanish from the source into nowhere.
"""

import datetime as dt
from decimal import Decimal
from typing import Iterable, Optional

import structlog

from finledger.config import EngineSettings, get_settings
from finledger.models.account import Account
from finledger.models.reports import ProjectedBalance
from finledger.models.transaction import Expense, Income, Transaction, Transfer
from finledger.utils.money import ZERO, money_sum, quantize

logger = structlog.get_logger(__name__)


class CurrencyConversionError(ValueError):
    """No exchange rate is configured for a currency."""
    pass


def signed_amount(tx: Transaction) -> Decimal:
    """Effect of an income or expense on its source account."""
    if isinstance(tx, Income):
        return -tx.amount if tx.is_refund else tx.amount
    if isinstance(tx, Expense):
        return tx.amount if tx.is_refund else -tx.amount
    raise TypeError("Transfers affect two accounts; use the transfer legs instead")


class BalanceEngine:
    """Derives balances and liquid-funds aggregates."""

    def __init__(self, settings: Optional[EngineSettings] = None):
        self._settings = settings or get_settings().engine

    def calculate(
        self,
        accounts: Iterable[Account],
        transactions: Iterable[Transaction],
        cutoff: Optional[dt.date] = None,
    ) -> list[Account]:
        """
        Accounts with `balance` recomputed.

        Args:
            accounts: All accounts, deleted ones included
            transactions: Full history; deleted rows are ignored
            cutoff: Ignore transactions dated after this day (inclusive bound)
        """
        accounts = list(accounts)
        balances: dict[str, Decimal] = {a.id: a.initial_balance for a in accounts}
        active_ids = {a.id for a in accounts if not a.deleted}

        for tx in transactions:
            if tx.deleted:
                continue
            if cutoff is not None and tx.date > cutoff:
                continue

            if isinstance(tx, Transfer):
                if tx.destination_account_id not in active_ids:
                    logger.warning(
                        "transfer_not_applied",
                        transaction_id=tx.id,
                        destination=tx.destination_account_id,
                    )
                    continue
                if tx.account_id in balances:
                    balances[tx.account_id] -= tx.amount
                balances[tx.destination_account_id] += tx.credited_amount
                continue

            if isinstance(tx, Expense) and not tx.paid_by_user:
                continue
            if tx.account_id not in balances:
                logger.warning(
                    "balance_skipped_unknown_account",
                    transaction_id=tx.id,
                    account_id=tx.account_id,
                )
                continue
            balances[tx.account_id] += signed_amount(tx)

        return [
            a.model_copy(update={"balance": quantize(balances[a.id])})
            for a in accounts
        ]

    def convert(self, amount: Decimal, currency: str) -> Decimal:
        """Express an amount in the base currency using the configured rates."""
        currency = currency.upper()
        if currency == self._settings.base_currency:
            return amount
        rate = self._settings.exchange_rates.get(currency)
        if rate is None:
            raise CurrencyConversionError(
                f"No exchange rate configured for {currency} -> {self._settings.base_currency}"
            )
        return quantize(amount * rate)

    def liquid_funds(self, accounts: Iterable[Account]) -> Decimal:
        """
        Spendable money: CHECKING, SAVINGS and CASH only.

        Credit-card balances are committed debt and investments are not
        spendable, so both are left out.
        """
        return money_sum(
            self.convert(a.balance, a.currency)
            for a in accounts
            if a.is_liquid and not a.deleted
        )

    def projected_balance(
        self,
        accounts: Iterable[Account],
        transactions: Iterable[Transaction],
        today: dt.date,
    ) -> ProjectedBalance:
        """
        Liquid funds today plus what is still scheduled for this month.

        Only strictly future rows count as pending (today's rows are already
        in the balance). Transfers move money between the user's own accounts
        and are ignored.
        """
        transactions = list(transactions)
        current = self.liquid_funds(self.calculate(accounts, transactions, cutoff=today))

        pending_income = ZERO
        pending_expenses = ZERO
        for tx in transactions:
            if tx.deleted or isinstance(tx, Transfer):
                continue
            if tx.date <= today or (tx.date.year, tx.date.month) != (today.year, today.month):
                continue
            if isinstance(tx, Expense) and not tx.paid_by_user:
                continue
            value = self.convert(signed_amount(tx), tx.currency)
            if value >= 0:
                pending_income += value
            else:
                pending_expenses -= value

        return ProjectedBalance(
            current=current,
            pending_income=pending_income,
            pending_expenses=pending_expenses,
            projected=current + pending_income - pending_expenses,
            currency=self._settings.base_currency,
        )


def calculate_balances(
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
    cutoff: Optional[dt.date] = None,
    settings: Optional[EngineSettings] = None,
) -> list[Account]:
    return BalanceEngine(settings).calculate(accounts, transactions, cutoff)

"""
Ledger Generator and Trial Balance Aggregator

Synthesizes a double-entry view from single-entry transactions. Accounts are
labelled by name, categories act as pseudo-accounts. Labels are plain strings:
two accounts with the same name, or a category named like an account, share
one trial-balance row.

Expenses paid by a third party are left out, as they are from the balances;
they surface as payables in the shared-expense views.

    EXPENSE   debit category, credit account   (swapped when refund)
    INCOME    debit account, credit category   (swapped when refund)
    TRANSFER  debit destination, credit source

DESIGN DECISION: Rows that cannot be posted (deleted, unknown or deleted
account, unknown or deleted destination) are excluded and reported, never
merged into a catch-all label. Every posted entry moves the same amount on
both sides, so the trial balance of any ledger sums to zero.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Optional

import structlog

from finledger.models.account import Account
from finledger.models.reports import LedgerEntry, LedgerReport, TrialBalanceItem
from finledger.models.transaction import Expense, Transaction, Transfer
from finledger.utils.money import ZERO

logger = structlog.get_logger(__name__)


class LedgerGenerator:
    """Turns transactions into debit/credit entries."""

    def build(
        self,
        transactions: Iterable[Transaction],
        accounts: Iterable[Account],
    ) -> LedgerReport:
        names = {a.id: a.name for a in accounts if not a.deleted}
        report = LedgerReport()

        for tx in transactions:
            if tx.deleted:
                continue
            # Paid by someone else: a debt, not a movement on the user's accounts.
            if isinstance(tx, Expense) and not tx.paid_by_user:
                continue
            entry, problem = self._post(tx, names)
            if problem:
                report.warnings.append(problem)
                logger.warning(
                    "ledger_row_excluded",
                    transaction_id=tx.id,
                    reason=problem,
                )
                continue
            report.entries.append(entry)

        # Newest first; ties keep input order.
        report.entries.sort(key=lambda e: e.date, reverse=True)
        return report

    def _post(
        self,
        tx: Transaction,
        names: dict[str, str],
    ) -> tuple[Optional[LedgerEntry], Optional[str]]:
        account = names.get(tx.account_id) if tx.account_id else None
        if account is None:
            return None, f"Transaction {tx.id} skipped: account {tx.account_id} not found"

        if isinstance(tx, Transfer):
            destination = names.get(tx.destination_account_id)
            if destination is None:
                return None, (
                    f"Transaction {tx.id} skipped: destination account "
                    f"{tx.destination_account_id} not found"
                )
            debit, credit = destination, account
        elif tx.type == "EXPENSE":
            debit, credit = tx.category, account
        else:
            debit, credit = account, tx.category

        if tx.is_refund:
            debit, credit = credit, debit

        return LedgerEntry(
            transaction_id=tx.id,
            date=tx.date,
            description=tx.description,
            debit=debit,
            credit=credit,
            amount=tx.amount,
        ), None


class TrialBalanceAggregator:
    """Totals debits and credits per ledger label."""

    def aggregate(self, ledger: Iterable[LedgerEntry]) -> list[TrialBalanceItem]:
        debits: dict[str, Decimal] = defaultdict(lambda: ZERO)
        credits: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for entry in ledger:
            debits[entry.debit] += entry.amount
            credits[entry.credit] += entry.amount

        return [
            TrialBalanceItem(
                label=label,
                debit=debits[label],
                credit=credits[label],
                balance=debits[label] - credits[label],
            )
            for label in sorted(set(debits) | set(credits))
        ]


def generate_ledger(
    transactions: Iterable[Transaction],
    accounts: Iterable[Account],
) -> list[LedgerEntry]:
    """Ledger entries; excluded rows are logged as warnings."""
    return LedgerGenerator().build(transactions, accounts).entries


def get_trial_balance(ledger: Iterable[LedgerEntry]) -> list[TrialBalanceItem]:
    return TrialBalanceAggregator().aggregate(ledger)

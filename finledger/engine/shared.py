"""
Shared Expense Calculator

An expense can be split with other people (shared_with) and can be paid by
the user or by one of them (payer_id).

    personal cost   amount minus everyone else's assigned share
    receivable      unsettled shares of expenses the user paid
    payable         the user's share of unsettled expenses someone else paid

DESIGN DECISION: The personal cost formula is the same whoever paid. When a
third party pays, shared_with lists every participant except the user (the
payer's own share included), so amount - sum(assigned) is exactly the user's
share and exactly what the user owes the payer. The other members' shares are
debts to the payer, never to the user, so nothing is counted twice.
"""

import datetime as dt
from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Optional

from finledger.models.reports import SettlementInstruction
from finledger.models.transaction import SELF_PAYER_ID, Expense, Transaction
from finledger.utils.money import ZERO, from_cents, to_cents


def calculate_effective_personal_cost(transaction: Transaction) -> Decimal:
    """What ultimately left (or is owed from) the user's pocket."""
    if isinstance(transaction, Expense) and transaction.is_shared:
        return max(ZERO, transaction.amount - transaction.assigned_total)
    return transaction.amount


def _in_period(tx: Transaction, start: Optional[dt.date], end: Optional[dt.date]) -> bool:
    if start is not None and tx.date < start:
        return False
    if end is not None and tx.date > end:
        return False
    return True


def _shared_expenses(
    transactions: Iterable[Transaction],
    start: Optional[dt.date] = None,
    end: Optional[dt.date] = None,
) -> list[Expense]:
    return [
        tx for tx in transactions
        if isinstance(tx, Expense) and not tx.deleted and _in_period(tx, start, end)
    ]


class SharedExpenseCalculator:
    """Debts between the user and the people they split expenses with."""

    def owed_to(
        self,
        transactions: Iterable[Transaction],
        counterparty_id: str,
        start: Optional[dt.date] = None,
        end: Optional[dt.date] = None,
    ) -> Decimal:
        """What the user still owes the counterparty for expenses they paid."""
        return sum(
            (
                calculate_effective_personal_cost(tx)
                for tx in _shared_expenses(transactions, start, end)
                if tx.payer_id == counterparty_id and not tx.is_settled
            ),
            ZERO,
        )

    def owed_by(
        self,
        transactions: Iterable[Transaction],
        counterparty_id: str,
        start: Optional[dt.date] = None,
        end: Optional[dt.date] = None,
    ) -> Decimal:
        """What the counterparty still owes the user for expenses the user paid."""
        total = ZERO
        for tx in _shared_expenses(transactions, start, end):
            if not tx.paid_by_user:
                continue
            for split in tx.shared_with:
                if split.member_id == counterparty_id and not split.is_settled:
                    total += split.assigned_amount
        return total

    def net_settlement(
        self,
        transactions: Iterable[Transaction],
        counterparty_id: str,
        start: Optional[dt.date] = None,
        end: Optional[dt.date] = None,
    ) -> Decimal:
        """
        Positive: the user must pay the counterparty.
        Negative: the counterparty must pay the user.
        """
        transactions = list(transactions)
        return (
            self.owed_to(transactions, counterparty_id, start, end)
            - self.owed_by(transactions, counterparty_id, start, end)
        )

    def total_receivables(self, transactions: Iterable[Transaction]) -> Decimal:
        return sum(
            (
                split.assigned_amount
                for tx in _shared_expenses(transactions)
                if tx.paid_by_user
                for split in tx.shared_with
                if not split.is_settled
            ),
            ZERO,
        )

    def total_payables(self, transactions: Iterable[Transaction]) -> Decimal:
        return sum(
            (
                calculate_effective_personal_cost(tx)
                for tx in _shared_expenses(transactions)
                if not tx.paid_by_user and not tx.is_settled
            ),
            ZERO,
        )

    def party_balances(self, transactions: Iterable[Transaction]) -> dict[str, int]:
        """
        Net position per party in cents (positive receives, negative owes).

        The user appears under SELF_PAYER_ID.
        """
        balances: dict[str, int] = defaultdict(int)
        for tx in _shared_expenses(transactions):
            if not tx.is_shared:
                continue
            if tx.paid_by_user:
                for split in tx.shared_with:
                    if split.is_settled:
                        continue
                    cents = to_cents(split.assigned_amount)
                    balances[split.member_id] -= cents
                    balances[SELF_PAYER_ID] += cents
            else:
                if tx.is_settled:
                    continue
                balances[tx.payer_id] += to_cents(tx.amount)
                for split in tx.shared_with:
                    balances[split.member_id] -= to_cents(split.assigned_amount)
                balances[SELF_PAYER_ID] -= to_cents(calculate_effective_personal_cost(tx))
        return dict(balances)

    def settlement_plan(self, transactions: Iterable[Transaction]) -> list[SettlementInstruction]:
        """
        Payments that clear every balance, largest debts first.

        Greedy matching of the biggest debtor with the biggest creditor needs
        at most (parties - 1) payments.
        """
        balances = self.party_balances(transactions)
        debtors = sorted(
            ([pid, -cents] for pid, cents in balances.items() if cents < 0),
            key=lambda item: (-item[1], item[0]),
        )
        creditors = sorted(
            ([pid, cents] for pid, cents in balances.items() if cents > 0),
            key=lambda item: (-item[1], item[0]),
        )

        plan: list[SettlementInstruction] = []
        i = j = 0
        while i < len(debtors) and j < len(creditors):
            debtor, creditor = debtors[i], creditors[j]
            cents = min(debtor[1], creditor[1])
            plan.append(SettlementInstruction(
                debtor=debtor[0],
                creditor=creditor[0],
                amount=from_cents(cents),
            ))
            debtor[1] -= cents
            creditor[1] -= cents
            if debtor[1] == 0:
                i += 1
            if creditor[1] == 0:
                j += 1
        return plan


def compute_net_settlement(
    transactions: Iterable[Transaction],
    counterparty_id: str,
    start: Optional[dt.date] = None,
    end: Optional[dt.date] = None,
) -> Decimal:
    return SharedExpenseCalculator().net_settlement(transactions, counterparty_id, start, end)

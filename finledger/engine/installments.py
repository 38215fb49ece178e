"""
Installment Series Generator

Splits one purchase of amount A into N monthly installments:

    base = floor(A / N) to the cent
    installments 1..N-1 = base, installment N = A - (N-1) * base

Installment i is dated i-1 months after the anchor date, keeping the anchor's
day-of-month clamped to the month (anchor Jan 31 -> Feb 28/29 -> Mar 31).

Shared splits are prorated per installment in integer cents. Each member's
last installment absorbs their remainder so per-member totals stay exact.
A final pass moves cents from the last installment into earlier ones when the
remainders would push the last row's splits above its amount.

DESIGN DECISION: Mutations never edit in place. Anticipation, resizing and
deletion return the records to persist; resizing returns a full replacement
(every old row retired, a new series created) that the caller writes in one
atomic unit.
"""

import datetime as dt
import re
from decimal import Decimal
from typing import Iterable, Optional, Union

import structlog

from finledger.config import Clock, EngineSettings, SystemClock, get_settings
from finledger.models.account import Account
from finledger.models.reports import SeriesReplacement
from finledger.models.transaction import (
    Expense,
    Income,
    InstallmentInfo,
    SharedSplit,
    Transaction,
    TransactionType,
    new_id,
)
from finledger.utils.dates import add_months
from finledger.utils.money import from_cents, quantize, to_cents

logger = structlog.get_logger(__name__)

_POSITION_SUFFIX = re.compile(r"\s*\(\d+/\d+\)")


class InstallmentError(ValueError):
    """Invalid installment request."""
    pass


class SeriesResizeRefusedError(InstallmentError):
    """
    Resizing would rewrite settled payments or other people's debts.

    A business rule, not a transient failure: never retry.
    """
    pass


class AnticipationError(InstallmentError):
    """Invalid anticipation request."""
    pass


class TransactionNotFoundError(LookupError):
    pass


def split_cents(total_cents: int, count: int) -> list[int]:
    """count parts of total_cents: floor base, last part takes the remainder."""
    base = total_cents // count
    return [base] * (count - 1) + [total_cents - base * (count - 1)]


def prorate_splits(
    installment_cents: list[int],
    targets: list[int],
) -> list[list[int]]:
    """
    Per-installment, per-member shares in cents.

    Returns rows[i][m]. Column sums equal targets exactly and every row sums
    to at most installment_cents[i], given sum(targets) <= sum(installments).
    """
    total = sum(installment_cents)
    last = len(installment_cents) - 1
    rows = [
        [target * cents // total for target in targets]
        for cents in installment_cents[:last]
    ]
    rows.append([
        target - sum(row[m] for row in rows)
        for m, target in enumerate(targets)
    ])

    overshoot = sum(rows[last]) - installment_cents[last]
    for i in range(last):
        if overshoot <= 0:
            break
        slack = installment_cents[i] - sum(rows[i])
        for m in range(len(targets)):
            if overshoot <= 0 or slack <= 0:
                break
            moved = min(slack, overshoot, rows[last][m])
            rows[i][m] += moved
            rows[last][m] -= moved
            slack -= moved
            overshoot -= moved
    return rows


class InstallmentSeriesGenerator:
    """Creates, anticipates, resizes and deletes installment series."""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        clock: Optional[Clock] = None,
    ):
        self._settings = settings or get_settings().engine
        self._clock = clock or SystemClock()

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    def _check_count(self, count: int) -> None:
        low, high = self._settings.min_installments, self._settings.max_installments
        if not low <= count <= high:
            raise InstallmentError(
                f"Installment count must be between {low} and {high}, got {count}"
            )

    def generate(
        self,
        amount: Decimal,
        count: int,
        anchor_date: dt.date,
        splits: Optional[list[SharedSplit]] = None,
        *,
        description: str = "Installment purchase",
        category: str = "Other",
        account_id: Optional[str] = None,
        transaction_type: TransactionType = TransactionType.EXPENSE,
        payer_id: Optional[str] = None,
        currency: str = "BRL",
        series_id: Optional[str] = None,
    ) -> list[Transaction]:
        """
        Expand a purchase into `count` installment rows.

        Raises:
            InstallmentError: Non-positive amount, sub-cent amount, count out
                of range, fewer cents than installments, splits exceeding the amount, or splits on income.
        """
        amount = Decimal(amount)
        if amount <= 0:
            raise InstallmentError("Installment amount must be greater than zero")
        if quantize(amount) != amount:
            raise InstallmentError(f"Amount {amount} has more than two decimal places")
        self._check_count(count)
        if to_cents(amount) < count:
            raise InstallmentError(
                f"Amount {amount} is too small to split into {count} installments of at least one cent"
            )

        splits = list(splits or [])
        if splits and transaction_type != TransactionType.EXPENSE:
            raise InstallmentError("Only expenses can be shared")

        total_cents = to_cents(amount)
        targets = [to_cents(s.assigned_amount) for s in splits]
        if sum(targets) > total_cents:
            raise InstallmentError("Shared amounts exceed the purchase amount")

        installment_cents = split_cents(total_cents, count)
        shares = prorate_splits(installment_cents, targets) if splits else []
        series_id = series_id or new_id()
        base_description = _POSITION_SUFFIX.sub("", description).strip()

        rows: list[Transaction] = []
        for index, cents in enumerate(installment_cents):
            info = InstallmentInfo(
                series_id=series_id,
                current=index + 1,
                total=count,
                original_amount=amount,
                anchor_date=anchor_date,
            )
            fields = dict(
                date=add_months(anchor_date, index),
                amount=from_cents(cents),
                description=f"{base_description} ({index + 1}/{count})",
                category=category,
                account_id=account_id,
                currency=currency,
                installment=info,
            )
            if transaction_type == TransactionType.EXPENSE:
                rows.append(Expense(
                    **fields,
                    payer_id=payer_id,
                    shared_with=[
                        SharedSplit(
                            member_id=split.member_id,
                            percentage=split.percentage,
                            assigned_amount=from_cents(shares[index][m]),
                        )
                        for m, split in enumerate(splits)
                    ],
                ))
            elif transaction_type == TransactionType.INCOME:
                rows.append(Income(**fields))
            else:
                raise InstallmentError("Transfers cannot be split into installments")

        logger.info(
            "installment_series_generated",
            series_id=series_id,
            count=count,
            amount=str(amount),
        )
        return rows

    # -------------------------------------------------------------------------
    # Series lookup
    # -------------------------------------------------------------------------

    @staticmethod
    def series_rows(transactions: Iterable[Transaction], series_id: str) -> list[Transaction]:
        """Non-deleted rows of a series, ordered by installment number."""
        rows = [
            tx for tx in transactions
            if not tx.deleted and tx.series_id == series_id
        ]
        return sorted(rows, key=lambda tx: tx.installment.current)

    # -------------------------------------------------------------------------
    # Anticipation
    # -------------------------------------------------------------------------

    def selectable_for_anticipation(
        self,
        transactions: Iterable[Transaction],
        series_id: str,
    ) -> list[Transaction]:
        """Future, unsettled installments of a series."""
        today = self._clock.today()
        return [
            tx for tx in self.series_rows(transactions, series_id)
            if tx.date > today and not tx.is_settled
        ]

    def anticipate(
        self,
        transactions: Iterable[Transaction],
        installment_ids: list[str],
        payment_date: dt.date,
        target_account_id: Optional[str] = None,
        accounts: Optional[Iterable[Account]] = None,
    ) -> list[Transaction]:
        """
        Move selected installments to an earlier payment date (and account).

        The anticipation marker is appended once; anticipating an already
        anticipated row again leaves its description unchanged.

        Raises:
            AnticipationError: Unknown ids, rows from different series, past
                or settled installments, a payment date after an installment,
                or an unknown target account.
        """
        if not installment_ids:
            raise AnticipationError("Select at least one installment to anticipate")
        if payment_date is None:
            raise AnticipationError("A payment date is required")

        by_id = {tx.id: tx for tx in transactions}
        selected: list[Transaction] = []
        for tx_id in dict.fromkeys(installment_ids):
            tx = by_id.get(tx_id)
            if tx is None or tx.deleted:
                raise AnticipationError(f"Installment {tx_id} not found")
            if not tx.is_installment:
                raise AnticipationError(f"Transaction {tx_id} is not an installment")
            selected.append(tx)

        series_ids = {tx.series_id for tx in selected}
        if len(series_ids) > 1:
            raise AnticipationError("All installments must belong to the same series")

        today = self._clock.today()
        for tx in selected:
            if tx.is_settled:
                raise AnticipationError(f"Installment {tx.description} is already settled")
            if tx.date <= today:
                raise AnticipationError(f"Installment {tx.description} is not in the future")
            if payment_date > tx.date:
                raise AnticipationError(
                    f"Payment date {payment_date} is after installment {tx.description}"
                )

        if target_account_id is not None and accounts is not None:
            known = {a.id for a in accounts if not a.deleted}
            if target_account_id not in known:
                raise AnticipationError(f"Target account {target_account_id} not found")

        marker = self._settings.anticipation_marker
        updated = []
        for tx in selected:
            description = tx.description
            if marker not in description:
                description = f"{description} {marker}"
            update = {"date": payment_date, "description": description}
            if target_account_id is not None:
                update["account_id"] = target_account_id
            updated.append(tx.model_copy(update=update))

        logger.info(
            "installments_anticipated",
            series_id=next(iter(series_ids)),
            count=len(updated),
            payment_date=payment_date.isoformat(),
        )
        return updated

    # -------------------------------------------------------------------------
    # Resizing
    # -------------------------------------------------------------------------

    def check_resizable(self, rows: list[Transaction]) -> None:
        """Raise SeriesResizeRefusedError when the series history must not be rewritten."""
        for tx in rows:
            if tx.is_settled:
                raise SeriesResizeRefusedError(
                    f"Installment {tx.description} has been paid; the series cannot be resized"
                )
            shared_with = getattr(tx, "shared_with", [])
            if any(split.is_settled for split in shared_with):
                raise SeriesResizeRefusedError(
                    f"A share of {tx.description} has been paid; the series cannot be resized"
                )
            if shared_with:
                raise SeriesResizeRefusedError(
                    "Shared series cannot be resized; delete and recreate it instead"
                )

    def resize(
        self,
        transactions: Iterable[Transaction],
        series_id: str,
        new_count: int,
    ) -> SeriesReplacement:
        """
        Regenerate a series with a new installment count.

        The new series starts on the original anchor date, splits the
        original amount, and gets a new series id.

        Raises:
            InstallmentError: Unknown series or count out of range
            SeriesResizeRefusedError: Settled or shared series
        """
        rows = self.series_rows(transactions, series_id)
        if not rows:
            raise InstallmentError(f"Installment series {series_id} not found")
        self.check_resizable(rows)
        self._check_count(new_count)

        first = rows[0]
        info = first.installment
        base_description = _POSITION_SUFFIX.sub("", first.description)
        base_description = base_description.replace(self._settings.anticipation_marker, "").strip()

        created = self.generate(
            info.original_amount,
            new_count,
            info.anchor_date,
            description=base_description,
            category=first.category,
            account_id=first.account_id,
            transaction_type=TransactionType(first.type),
            payer_id=getattr(first, "payer_id", None),
            currency=first.currency,
        )
        retired = [tx.model_copy(update={"deleted": True}) for tx in rows]
        return SeriesReplacement(
            old_series_id=series_id,
            new_series_id=created[0].series_id,
            retired=retired,
            created=created,
        )

    # -------------------------------------------------------------------------
    # Deletion
    # -------------------------------------------------------------------------

    def delete_series(self, transactions: Iterable[Transaction], series_id: str) -> list[Transaction]:
        """Every live row of the series, marked deleted."""
        rows = self.series_rows(transactions, series_id)
        if not rows:
            raise InstallmentError(f"Installment series {series_id} not found")
        return [tx.model_copy(update={"deleted": True}) for tx in rows]


def delete_transaction(transactions: Iterable[Transaction], transaction_id: str) -> Transaction:
    """A single row marked deleted."""
    for tx in transactions:
        if tx.id == transaction_id and not tx.deleted:
            return tx.model_copy(update={"deleted": True})
    raise TransactionNotFoundError(f"Transaction {transaction_id} not found")


def generate_installments(
    amount: Union[Decimal, str, int],
    count: int,
    anchor_date: dt.date,
    splits: Optional[list[SharedSplit]] = None,
    settings: Optional[EngineSettings] = None,
    **fields,
) -> list[Transaction]:
    return InstallmentSeriesGenerator(settings).generate(
        Decimal(amount), count, anchor_date, splits, **fields
    )


def anticipate_installments(
    transactions: Iterable[Transaction],
    installment_ids: list[str],
    payment_date: dt.date,
    target_account_id: Optional[str] = None,
    accounts: Optional[Iterable[Account]] = None,
    settings: Optional[EngineSettings] = None,
    clock: Optional[Clock] = None,
) -> list[Transaction]:
    return InstallmentSeriesGenerator(settings, clock).anticipate(
        transactions, installment_ids, payment_date, target_account_id, accounts
    )


def resize_series(
    transactions: Iterable[Transaction],
    series_id: str,
    new_count: int,
    settings: Optional[EngineSettings] = None,
) -> SeriesReplacement:
    return InstallmentSeriesGenerator(settings).resize(transactions, series_id, new_count)


def delete_series(transactions: Iterable[Transaction], series_id: str) -> list[Transaction]:
    return InstallmentSeriesGenerator().delete_series(transactions, series_id)

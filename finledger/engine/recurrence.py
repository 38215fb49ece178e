"""
Recurrence Engine

Expands recurring templates into concrete occurrences, catching up on every
period missed since the template was last materialized.

Advancement per frequency:
    DAILY    +1 day
    WEEKLY   +7 days
    YEARLY   +1 year (Feb 29 becomes Feb 28 on common years)
    MONTHLY  next month on min(recurrence_day, days in that month)

MONTHLY always re-applies the anchor day, so a day-31 template lands on
Jan 31, Feb 28, Mar 31 instead of drifting to the 28th forever.

DESIGN DECISION: Catch-up is idempotent twice over. The template's
last_generated moves to the last covered date, and before materializing an
occurrence the engine looks for an existing live row with the same date,
account, amount, type and description. A bounded number of occurrences is
produced per template per run; the bound is EngineSettings.recurrence_max_iterations.
"""

import datetime as dt
from typing import Iterable, Optional

import structlog

from finledger.config import Clock, EngineSettings, SystemClock, get_settings
from finledger.models.account import Account
from finledger.models.reports import RecurrenceCatchUp
from finledger.models.transaction import (
    Expense,
    Frequency,
    Transaction,
    new_id,
)
from finledger.utils.dates import add_months, add_years

logger = structlog.get_logger(__name__)


def advance(current: dt.date, frequency: Frequency, recurrence_day: Optional[int] = None) -> dt.date:
    """The occurrence after `current`."""
    if frequency == Frequency.DAILY:
        return current + dt.timedelta(days=1)
    if frequency == Frequency.WEEKLY:
        return current + dt.timedelta(days=7)
    if frequency == Frequency.YEARLY:
        return add_years(current, 1)
    if frequency == Frequency.MONTHLY:
        return add_months(current, 1, day=recurrence_day or current.day)
    raise ValueError(f"Unsupported frequency: {frequency}")


class RecurrenceEngine:
    """Materializes missed occurrences of recurring templates."""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        clock: Optional[Clock] = None,
    ):
        self._settings = settings or get_settings().engine
        self._clock = clock or SystemClock()

    def _key(self, tx: Transaction, description: str) -> tuple:
        return (tx.date, tx.account_id, tx.amount, tx.type, description)

    def catch_up(
        self,
        transactions: Iterable[Transaction],
        now: Optional[dt.date] = None,
        accounts: Optional[Iterable[Account]] = None,
    ) -> RecurrenceCatchUp:
        """
        Occurrences due up to `now` (inclusive) and the updated templates.

        Args:
            transactions: Full history, templates included
            now: Last date to materialize; defaults to the clock's today
            accounts: When given, templates whose account is unknown or
                deleted are skipped
        """
        now = now or self._clock.today()
        transactions = list(transactions)
        suffix = self._settings.recurrence_suffix
        active_accounts = (
            {a.id for a in accounts if not a.deleted} if accounts is not None else None
        )

        existing = {
            self._key(tx, tx.description)
            for tx in transactions
            if not tx.deleted
        }

        result = RecurrenceCatchUp()
        for template in transactions:
            if template.deleted or template.recurrence is None:
                continue
            if not template.account_id or (
                active_accounts is not None and template.account_id not in active_accounts
            ):
                logger.error(
                    "recurring_template_skipped",
                    transaction_id=template.id,
                    account_id=template.account_id,
                    reason="template has no valid account",
                )
                continue

            rule = template.recurrence
            anchor_day = rule.recurrence_day or template.date.day
            base = rule.last_generated or template.date
            last_covered = rule.last_generated
            plain = template.description
            suffixed = f"{plain} {suffix}"

            occurrence_date = advance(base, rule.frequency, anchor_day)
            iterations = 0
            while occurrence_date <= now and iterations < self._settings.recurrence_max_iterations:
                occurrence = self._materialize(template, occurrence_date, suffixed)
                duplicate = any(
                    self._key(occurrence, variant) in existing
                    for variant in (plain, suffixed)
                )
                if duplicate:
                    logger.debug(
                        "recurring_occurrence_exists",
                        transaction_id=template.id,
                        date=occurrence_date.isoformat(),
                    )
                else:
                    result.new_transactions.append(occurrence)
                    existing.add(self._key(occurrence, suffixed))
                last_covered = occurrence_date
                occurrence_date = advance(occurrence_date, rule.frequency, anchor_day)
                iterations += 1

            if occurrence_date <= now:
                logger.warning(
                    "recurrence_cap_reached",
                    transaction_id=template.id,
                    max_iterations=self._settings.recurrence_max_iterations,
                    next_pending=occurrence_date.isoformat(),
                )

            if last_covered != rule.last_generated:
                result.template_updates.append(template.model_copy(update={
                    "recurrence": rule.model_copy(update={"last_generated": last_covered}),
                }))

        if not result.is_empty:
            logger.info(
                "recurrence_catchup_completed",
                generated=len(result.new_transactions),
                templates_updated=len(result.template_updates),
            )
        return result

    @staticmethod
    def _materialize(template: Transaction, on: dt.date, description: str) -> Transaction:
        update = {
            "id": new_id(),
            "date": on,
            "description": description,
            "recurrence": None,
            "is_settled": False,
        }
        if isinstance(template, Expense):
            update["shared_with"] = [
                split.model_copy(update={"is_settled": False})
                for split in template.shared_with
            ]
        return template.model_copy(update=update)


def run_recurrence_catchup(
    transactions: Iterable[Transaction],
    now: dt.date,
    settings: Optional[EngineSettings] = None,
) -> RecurrenceCatchUp:
    return RecurrenceEngine(settings).catch_up(transactions, now)

"""
Referential integrity checks over a raw account/transaction set.

The checker is advisory. It runs on whatever the store returned, parsed
models or plain mappings, and reports problems as readable strings. It
never raises, so a corrupt row can never block the rest of the engine.
"""

from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from finledger.models.transaction import SELF_PAYER_ID, TransactionType

logger = structlog.get_logger(__name__)


def _get(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _label(record: Any) -> str:
    description = _get(record, "description") or "(no description)"
    return f"'{description}' [{_get(record, 'id') or '?'}]"


class ConsistencyChecker:
    """Collects orphan references and malformed transfers."""

    def check(self, accounts: Iterable[Any], transactions: Iterable[Any]) -> list[str]:
        known: dict[Any, bool] = {}
        for account in accounts:
            account_id = _get(account, "id")
            if account_id is not None:
                known[account_id] = bool(_get(account, "deleted"))

        issues: list[str] = []
        for tx in transactions:
            if _get(tx, "deleted"):
                continue
            issues.extend(self._check_one(tx, known))

        if issues:
            logger.warning("consistency_issues_found", count=len(issues))
        return issues

    def _check_one(self, tx: Any, known: dict[Any, bool]) -> list[str]:
        issues = []
        label = _label(tx)
        account_id = _get(tx, "account_id")
        payer_id = _get(tx, "payer_id")
        is_transfer = _get(tx, "type") == TransactionType.TRANSFER

        if not account_id:
            # Expenses paid by someone else may wait for an account.
            if is_transfer or payer_id in (None, "", SELF_PAYER_ID):
                issues.append(f"Orphan transaction {label}: no source account")
        elif account_id not in known:
            issues.append(f"Orphan transaction {label}: unknown account {account_id}")
        elif known[account_id]:
            issues.append(f"Transaction {label} references deleted account {account_id}")

        if is_transfer:
            destination = _get(tx, "destination_account_id")
            if not destination:
                issues.append(f"Inconsistent transfer {label}: missing destination account")
            elif destination not in known:
                issues.append(
                    f"Inconsistent transfer {label}: unknown destination account {destination}"
                )
            elif known[destination]:
                issues.append(
                    f"Inconsistent transfer {label}: destination account {destination} is deleted"
                )
            if account_id and account_id == destination:
                issues.append(f"Circular transfer {label}: source equals destination")

        return issues


def check_consistency(accounts: Iterable[Any], transactions: Iterable[Any]) -> list[str]:
    """Human-readable integrity issues; empty when the data is consistent."""
    try:
        return ConsistencyChecker().check(accounts, transactions)
    except (TypeError, AttributeError) as e:
        # Garbage input (not iterable, not records) is itself an issue.
        logger.error("consistency_check_failed", error=str(e))
        return [f"Consistency check could not read the data: {e}"]

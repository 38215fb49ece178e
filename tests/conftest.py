"""
Pytest fixtures for testing
"""

from datetime import date
from decimal import Decimal

import pytest

from finledger.config import EngineSettings, FixedClock
from finledger.models import Account, AccountType


@pytest.fixture
def today():
    """Pinned "today" shared by every clock-dependent test."""
    return date(2024, 3, 15)


@pytest.fixture
def clock(today):
    return FixedClock(today)


@pytest.fixture
def settings():
    """Engine settings with defaults, independent of the environment."""
    return EngineSettings(
        base_currency="BRL",
        recurrence_max_iterations=12,
        exchange_rates={},
    )


@pytest.fixture
def checking():
    return Account(
        id="checking",
        name="Checking",
        type=AccountType.CHECKING,
        initial_balance=Decimal("1000.00"),
    )


@pytest.fixture
def savings():
    return Account(
        id="savings",
        name="Savings",
        type=AccountType.SAVINGS,
        initial_balance=Decimal("500.00"),
    )


@pytest.fixture
def card():
    """Card closing on the 5th, due on the 15th."""
    return Account(
        id="card",
        name="Card",
        type=AccountType.CREDIT_CARD,
        credit_limit=Decimal("5000.00"),
        closing_day=5,
        due_day=15,
    )


@pytest.fixture
def investment():
    return Account(
        id="invest",
        name="Broker",
        type=AccountType.INVESTMENT,
        initial_balance=Decimal("2000.00"),
    )


@pytest.fixture
def accounts(checking, savings, card, investment):
    return [checking, savings, card, investment]

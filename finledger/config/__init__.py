"""Configuration package."""

from finledger.config.clock import Clock, FixedClock, SystemClock
from finledger.config.settings import (
    AppSettings,
    EngineSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "Clock",
    "EngineSettings",
    "FixedClock",
    "Settings",
    "StorageSettings",
    "SystemClock",
    "get_settings",
    "validate_all_settings",
]

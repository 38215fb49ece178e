"""
Configuration Management for FinLedger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here and passed into the
engine explicitly. Engine code never reads the environment on its own; it
receives an EngineSettings instance (or falls back to get_settings().engine
at construction time), which keeps every derivation deterministic under test.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Business rules and policies used by the derivation and generation engine."""

    model_config = SettingsConfigDict(
        env_prefix="FINLEDGER_",
        extra="ignore"
    )

    base_currency: str = Field(
        default="BRL",
        min_length=3,
        max_length=3,
        description="Currency used when aggregating liquid funds"
    )
    # Recurrence policy
    recurrence_max_iterations: int = Field(
        default=12,
        ge=1,
        le=1000,
        description="Maximum occurrences materialized per template in one catch-up run"
    )
    recurrence_suffix: str = Field(
        default="(Recorrente)",
        description="Suffix appended to descriptions of materialized occurrences"
    )

    # Installment policy
    anticipation_marker: str = Field(
        default="(Antecipado)",
        description="Marker appended to anticipated installments"
    )
    min_installments: int = Field(
        default=2,
        ge=2,
        description="Smallest allowed installment count"
    )
    max_installments: int = Field(
        default=72,
        ge=2,
        description="Largest allowed installment count"
    )
    installment_warning_threshold: int = Field(
        default=48,
        ge=2,
        description="Installment counts above this produce a validation warning"
    )

    # Validation thresholds
    large_amount_warning: Decimal = Field(
        default=Decimal("1000000"),
        gt=0,
        description="Amounts above this produce a validation warning"
    )
    date_distance_warning_days: int = Field(
        default=365,
        ge=1,
        description="Dates further than this from today produce a validation warning"
    )

    # Credit card defaults for cards recorded without cycle days
    default_closing_day: int = Field(default=1, ge=1, le=31)
    default_due_day: int = Field(default=10, ge=1, le=31)

    # Financial health
    healthy_savings_rate: Decimal = Field(
        default=Decimal("0.10"),
        ge=0,
        le=1,
        description="Savings rate at or above which the month is considered healthy"
    )

    exchange_rates: dict[str, Decimal] = Field(
        default_factory=dict,
        description="Units of base currency per unit of the keyed currency"
    )

    @field_validator('base_currency')
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    @field_validator('exchange_rates')
    @classmethod
    def validate_rates(cls, v: dict[str, Decimal]) -> dict[str, Decimal]:
        """Rates must be positive; keys are normalized to upper case."""
        normalized = {}
        for code, rate in v.items():
            if rate <= 0:
                raise ValueError(f"Exchange rate for {code} must be positive")
            normalized[code.upper()] = rate
        return normalized

    @model_validator(mode='after')
    def validate_installment_bounds(self) -> 'EngineSettings':
        if self.max_installments < self.min_installments:
            raise ValueError("max_installments cannot be lower than min_installments")
        return self


class StorageSettings(BaseSettings):
    """Retry policy for the persistence collaborator."""

    model_config = SettingsConfigDict(
        env_prefix="FINLEDGER_STORAGE_",
        extra="ignore"
    )

    write_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for a write that fails with a transient connection error"
    )
    retry_multiplier: float = Field(default=1.0, ge=0)
    retry_wait_min: float = Field(
        default=2.0,
        ge=0,
        description="Minimum seconds between write attempts"
    )
    retry_wait_max: float = Field(
        default=10.0,
        ge=0,
        description="Maximum seconds between write attempts"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for structured logs"
    )

    @field_validator('log_level', mode='before')
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def engine(self) -> EngineSettings:
        return EngineSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool | str]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid} plus "<name>_error" entries.
    Useful for startup checks.
    """
    results: dict[str, bool | str] = {}
    settings = get_settings()

    for name in ("engine", "storage", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results

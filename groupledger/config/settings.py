"""
Configuration Management for GroupLedger

Uses pydantic-settings for type-safe configuration from environment variables.
All tunables of the settlement engine and the storage adapters live here.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Settlement engine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    balance_epsilon: Decimal = Field(
        default=Decimal("0.000001"),
        gt=0,
        description="Balances within this distance of zero count as settled"
    )
    display_decimal_places: int = Field(
        default=2,
        ge=0,
        le=8,
        description="Decimal places used when rounding for display"
    )

    # Custom split checks
    custom_split_tolerance: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        description="Allowed gap between custom shares and the expense amount"
    )
    strict_custom_split_total: bool = Field(
        default=False,
        description="Reject custom splits whose shares don't total the amount"
    )

    # Storage
    store_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Which storage adapter to use"
    )
    subscription_poll_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Polling interval for stores without push updates"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets document store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    expenses_sheet_name: str = Field(
        default="Expenses",
        description="Name of the sheet for group expenses"
    )
    groups_sheet_name: str = Field(
        default="Groups",
        description="Name of the sheet for groups"
    )
    records_sheet_name: str = Field(
        default="ShoppingRecords",
        description="Name of the sheet for personal records"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before connecting."
            )
        return v


class Settings(BaseSettings):
    """
    Root settings container.

    Sub-settings are loaded lazily so the engine can run with only the
    ledger configured.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with a "<name>_error"
    entry holding the message for each failure.
    """
    results = {}

    settings = get_settings()

    try:
        ledger = settings.ledger
        results["ledger"] = True
    except Exception as e:
        ledger = None
        results["ledger"] = False
        results["ledger_error"] = str(e)

    # Sheets only matter when they are the selected backend
    if ledger is not None and ledger.store_backend == "google_sheets":
        try:
            _ = settings.google_sheets
            results["google_sheets"] = True
        except Exception as e:
            results["google_sheets"] = False
            results["google_sheets_error"] = str(e)

    return results

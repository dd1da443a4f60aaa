"""Ledger configuration."""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from utils.timezone import get_zone

_ENV_PREFIX = "LEDGER_"


class LedgerConfig(BaseModel):
    """
    Ledger configuration.

    Values are plain settings for a single shop. Environment variables with the
    LEDGER_ prefix override defaults (LEDGER_TIMEZONE, LEDGER_QUOTATION_VALIDITY_DAYS, ...).
    """

    timezone: str = Field(
        default="UTC",
        description="IANA timezone used for numbering years, expiry dates and reports",
    )
    quotation_validity_days: int = Field(
        default=30,
        description="Default validity window for new quotations",
        ge=1,
        le=365,
    )
    currency_symbol: str = Field(
        default="RM",
        description="Symbol used when formatting amounts in audit summaries",
        min_length=1,
        max_length=8,
    )
    recent_limit: int = Field(
        default=100,
        description="Default page size for recent-activity queries",
        ge=1,
        le=1000,
    )

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        get_zone(value)
        return value

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> "LedgerConfig":
        """Build config from LEDGER_* environment variables (and an optional .env file)."""
        load_dotenv(dotenv_path)
        values = {}
        for name in cls.model_fields:
            raw = os.getenv(f"{_ENV_PREFIX}{name.upper()}")
            if raw is not None:
                values[name] = raw
        return cls.model_validate(values)

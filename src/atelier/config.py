"""Configuration management for Atelier."""

import logging
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

ATELIER_HOME = Path(os.environ.get("ATELIER_HOME", Path.home() / "atelier"))
CONFIG_FILE = ATELIER_HOME / "config" / "atelier.conf"

DEFAULT_TAX_RATE = Decimal("11")
DEFAULT_CURRENCY = "IDR"


@dataclass
class BusinessSettings:
    """Business profile and invoicing defaults."""

    business_name: str = ""
    business_email: str = ""
    business_address: str = ""
    business_phone: str = ""
    default_tax_rate: Decimal = DEFAULT_TAX_RATE
    currency: str = DEFAULT_CURRENCY

    @classmethod
    def from_row(cls, data: dict | None) -> "BusinessSettings":
        """Create from the stored settings row. Missing values use the defaults."""
        if not data:
            return cls()
        return cls(
            business_name=data.get("business_name") or "",
            business_email=data.get("business_email") or "",
            business_address=data.get("business_address") or "",
            business_phone=data.get("business_phone") or "",
            default_tax_rate=_parse_rate(data.get("default_tax_rate")),
            currency=data.get("currency") or DEFAULT_CURRENCY,
        )


@dataclass
class Config:
    """Atelier configuration."""

    api_url: str = ""
    api_key: str = ""
    timezone: str = "Asia/Jakarta"
    default_sort: str = "due_date"
    invoice_due_days: int = 7
    business_name: str = ""
    business_email: str = ""
    business_address: str = ""
    business_phone: str = ""
    default_tax_rate: Decimal = DEFAULT_TAX_RATE
    currency: str = DEFAULT_CURRENCY

    @property
    def settings(self) -> BusinessSettings:
        """Business settings from the local config file."""
        return BusinessSettings(
            business_name=self.business_name,
            business_email=self.business_email,
            business_address=self.business_address,
            business_phone=self.business_phone,
            default_tax_rate=self.default_tax_rate,
            currency=self.currency,
        )

    @property
    def tzinfo(self) -> ZoneInfo | None:
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown timezone {self.timezone!r}, using system local time")
            return None


def _parse_rate(value) -> Decimal:
    """Tax rate from config or storage. Non-numeric or zero falls back to the default."""
    try:
        rate = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return DEFAULT_TAX_RATE
    if not rate.is_finite() or rate == 0:
        return DEFAULT_TAX_RATE
    return rate


def _unquote(value: str) -> str:
    """Strip quotes, or an inline comment from unquoted values."""
    for quote in ('"', "'"):
        if value.startswith(quote):
            end_quote = value.find(quote, 1)
            return value[1:end_quote] if end_quote != -1 else value[1:]
    if "#" in value:
        value = value.split("#")[0].strip()
    return value


def load_config(path: Path | None = None) -> Config:
    """Load configuration from atelier.conf, then apply environment overrides."""
    config = Config()
    path = path or CONFIG_FILE

    if path.exists():
        for line in path.read_text().splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            if "=" not in line:
                continue

            key, _, value = line.partition("=")
            key = key.strip().lower()
            value = _unquote(value.strip())

            match key:
                case "api_url":
                    config.api_url = value
                case "api_key":
                    config.api_key = value
                case "timezone":
                    config.timezone = value
                case "default_sort":
                    config.default_sort = value
                case "invoice_due_days":
                    try:
                        config.invoice_due_days = int(value)
                    except ValueError:
                        logger.warning(f"Invalid INVOICE_DUE_DAYS: {value!r}")
                case "default_tax_rate":
                    config.default_tax_rate = _parse_rate(value)
                case "currency":
                    config.currency = value or DEFAULT_CURRENCY
                case "business_name":
                    config.business_name = value
                case "business_email":
                    config.business_email = value
                case "business_address":
                    config.business_address = value
                case "business_phone":
                    config.business_phone = value
                case _:
                    logger.debug(f"Ignoring unknown config key: {key}")

    config.api_url = os.environ.get("ATELIER_API_URL", config.api_url)
    config.api_key = os.environ.get("ATELIER_API_KEY", config.api_key)
    return config

"""Environment-driven settings.

Values are read once per process by :func:`get_settings` and cached. The CLI
loads ``.env`` with python-dotenv before the first call; library code never
touches dotenv itself. Tests call ``get_settings.cache_clear()`` after
changing the environment.

Variables
---------
- ``DATABASE_URL``: SQLAlchemy URL of the document store.
- ``RECEIPT_LEDGER_TIMEZONE``: IANA zone for day and month boundaries (``UTC``).
- ``RECEIPT_LEDGER_LOG_LEVEL``: package log level (``INFO``).
- ``RECEIPT_LEDGER_OCR_WEBHOOK_URL``: OCR workflow webhook.
- ``RECEIPT_LEDGER_OCR_TIMEOUT``: webhook timeout in seconds (``30``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import UTC, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_OCR_TIMEOUT = 30.0
LOG_LEVEL_ENV = "RECEIPT_LEDGER_LOG_LEVEL"


@dataclass(frozen=True, slots=True)
class Settings:
    database_url: str | None
    timezone: tzinfo
    log_level: str
    ocr_webhook_url: str | None
    ocr_timeout: float


def _env(name: str) -> str | None:
    v = os.getenv(name)
    if v is None:
        return None
    v = v.strip()
    return v or None


def _parse_timezone(raw: str | None) -> tzinfo:
    if raw is None or raw.upper() == "UTC":
        return UTC
    try:
        return ZoneInfo(raw)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"RECEIPT_LEDGER_TIMEZONE: unknown time zone {raw!r}") from exc


def _parse_timeout(raw: str | None) -> float:
    if raw is None:
        return DEFAULT_OCR_TIMEOUT
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"RECEIPT_LEDGER_OCR_TIMEOUT: not a number: {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"RECEIPT_LEDGER_OCR_TIMEOUT must be positive, got {raw!r}")
    return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        database_url=_env("DATABASE_URL"),
        timezone=_parse_timezone(_env("RECEIPT_LEDGER_TIMEZONE")),
        log_level=_env(LOG_LEVEL_ENV) or "INFO",
        ocr_webhook_url=_env("RECEIPT_LEDGER_OCR_WEBHOOK_URL"),
        ocr_timeout=_parse_timeout(_env("RECEIPT_LEDGER_OCR_TIMEOUT")),
    )


__all__ = ["Settings", "get_settings", "DEFAULT_OCR_TIMEOUT", "LOG_LEVEL_ENV"]

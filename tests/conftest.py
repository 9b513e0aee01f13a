"""Pytest configuration for test isolation.

Settings are cached per process (``get_settings`` is an ``lru_cache``) and the
database client keeps one engine per URL. Both would leak state from one test
into the next when a test changes the environment or points at its own
temporary SQLite file, so an autouse fixture resets them around every test.
The package logger is also returned to its library default so ``caplog`` sees
records even after a CLI test configured logging.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

# Make the workspace `packages/` and `libs/db/src` dirs importable without an install.
_ROOT = Path(__file__).resolve().parents[1]
_PATHS = [str(_ROOT / "packages"), str(_ROOT / "libs" / "db" / "src"), str(_ROOT)]
sys.path[:0] = [p for p in _PATHS if p not in sys.path]

from db.client import dispose_engines  # noqa: E402
from receipt_ledger.config import get_settings  # noqa: E402
from receipt_ledger.logging_setup import reset_logging  # noqa: E402

_ENV_VARS = (
    "DATABASE_URL",
    "RECEIPT_LEDGER_TIMEZONE",
    "RECEIPT_LEDGER_LOG_LEVEL",
    "RECEIPT_LEDGER_OCR_WEBHOOK_URL",
    "RECEIPT_LEDGER_OCR_TIMEOUT",
)


@pytest.fixture(autouse=True)
def _isolate_process_state(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Start every test from a clean environment, settings cache and engine cache."""

    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    dispose_engines()
    reset_logging()

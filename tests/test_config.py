from __future__ import annotations

import logging
from datetime import UTC
from zoneinfo import ZoneInfo, available_timezones

import pytest
from receipt_ledger.config import DEFAULT_OCR_TIMEOUT, get_settings
from receipt_ledger.logging_setup import (
    configure_logging,
    get_logger,
    reset_logging,
    resolve_level,
)


def test_defaults() -> None:
    s = get_settings()
    assert s.database_url is None
    assert s.timezone is UTC
    assert s.log_level == "INFO"
    assert s.ocr_webhook_url is None
    assert s.ocr_timeout == DEFAULT_OCR_TIMEOUT


@pytest.mark.skipif(
    "Asia/Ho_Chi_Minh" not in available_timezones(), reason="no IANA time zone data"
)
def test_values_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///x.db")
    monkeypatch.setenv("RECEIPT_LEDGER_TIMEZONE", "Asia/Ho_Chi_Minh")
    monkeypatch.setenv("RECEIPT_LEDGER_OCR_WEBHOOK_URL", "  https://hooks.example/ocr ")
    monkeypatch.setenv("RECEIPT_LEDGER_OCR_TIMEOUT", "2.5")

    s = get_settings()
    assert s.database_url == "sqlite+pysqlite:///x.db"
    assert s.timezone == ZoneInfo("Asia/Ho_Chi_Minh")
    assert s.ocr_webhook_url == "https://hooks.example/ocr"
    assert s.ocr_timeout == 2.5


def test_settings_are_cached_until_cleared(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_settings()
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///y.db")
    assert get_settings() is first
    get_settings.cache_clear()
    assert get_settings().database_url == "sqlite+pysqlite:///y.db"


def test_blank_values_count_as_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "   ")
    monkeypatch.setenv("RECEIPT_LEDGER_TIMEZONE", "")
    s = get_settings()
    assert s.database_url is None
    assert s.timezone is UTC


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("RECEIPT_LEDGER_TIMEZONE", "Mars/Olympus"),
        ("RECEIPT_LEDGER_OCR_TIMEOUT", "soon"),
        ("RECEIPT_LEDGER_OCR_TIMEOUT", "0"),
    ],
)
def test_invalid_values_name_the_variable(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str
) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError, match=name):
        get_settings()


def test_configure_logging_is_idempotent(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RECEIPT_LEDGER_LOG_LEVEL", "debug")
    get_logger("receipt_ledger.anything")
    configure_logging()
    configure_logging("ERROR")

    root = logging.getLogger("receipt_ledger")
    stream_handlers = [h for h in root.handlers if not isinstance(h, logging.NullHandler)]
    assert len(stream_handlers) == 1
    assert stream_handlers[0].level == logging.DEBUG


@pytest.mark.parametrize(
    ("level", "expected"),
    [
        ("warning", logging.WARNING),
        (" 15 ", 15),
        (logging.ERROR, logging.ERROR),
        ("loud", logging.INFO),
    ],
)
def test_resolve_level(level: int | str, expected: int) -> None:
    assert resolve_level(level) == expected


def test_reset_logging_restores_library_defaults() -> None:
    configure_logging("INFO")
    reset_logging()

    root = logging.getLogger("receipt_ledger")
    assert root.handlers == []
    assert root.propagate
    get_logger("receipt_ledger.live_query")
    assert [type(h) for h in root.handlers] == [logging.NullHandler]

"""Tests for client configuration loading."""

from __future__ import annotations

from dataclasses import fields
from pathlib import Path

import pytest

from hotkey_refiner.services.config import (
    DEFAULT_CONFIG_DIR,
    ClientConfig,
    load_config,
    parse_assignments,
    parse_setting,
)


def test_defaults() -> None:
    config = load_config()
    assert config.config_dir == DEFAULT_CONFIG_DIR.expanduser()
    assert config.debounce_ms == 500
    assert config.debounce_seconds == 0.5
    assert config.history_limit == 100


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOTKEY_REFINER_CONFIG_DIR", str(tmp_path))
    monkeypatch.setenv("HOTKEY_REFINER_DEBUG", "yes")
    monkeypatch.setenv("HOTKEY_REFINER_DEBOUNCE_MS", "250")
    monkeypatch.setenv("HOTKEY_REFINER_REQUEST_TIMEOUT", "2.5")

    config = load_config()

    assert config.config_dir == tmp_path
    assert config.debug is True
    assert config.debounce_seconds == 0.25
    assert config.request_timeout == 2.5


def test_invalid_numeric_environment_is_ignored(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    monkeypatch.setenv("HOTKEY_REFINER_DEBOUNCE_MS", "soon")
    config = load_config()
    assert config.debounce_ms == 500
    assert "not a valid integer" in caplog.text


def test_explicit_overrides_win(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOTKEY_REFINER_DEBOUNCE_MS", "250")
    config = load_config({"debounce_ms": 100, "config_dir": str(tmp_path), "unknown": 1})
    assert config.debounce_ms == 100
    assert config.config_dir == tmp_path


def test_negative_debounce_is_clamped() -> None:
    assert ClientConfig(debounce_ms=-10).debounce_seconds == 0


def test_parse_assignments_converts_per_field() -> None:
    parsed = parse_assignments(
        ["debounce_ms=250", "debug=on", "request_timeout=2.5", "config_dir=~/refiner", "test_model= m "]
    )

    assert parsed == {
        "debounce_ms": 250,
        "debug": True,
        "request_timeout": 2.5,
        "config_dir": Path("~/refiner").expanduser(),
        "test_model": "m",
    }


@pytest.mark.parametrize(
    ("entry", "message"),
    [
        ("debounce_ms", "KEY=VALUE"),
        ("=5", "missing a field name"),
        ("unknown_field=1", "Unknown setting"),
        ("debug=maybe", "yes/no"),
        ("history_limit=ten", "not a valid integer"),
    ],
)
def test_parse_assignments_rejects_bad_entries(entry: str, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        parse_assignments([entry])


def test_unparseable_debug_flag_is_ignored(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    monkeypatch.setenv("HOTKEY_REFINER_DEBUG", "sometimes")
    assert load_config().debug is False
    assert "HOTKEY_REFINER_DEBUG ignored" in caplog.text


def test_parse_setting_accepts_every_field() -> None:
    for field in fields(ClientConfig):
        value = getattr(ClientConfig(), field.name)
        raw = ("yes" if value else "no") if isinstance(value, bool) else str(value)
        assert parse_setting(field.name, raw) == value

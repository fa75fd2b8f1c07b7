"""Client configuration defaults and environment overrides."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Sequence

from ..core.models import HISTORY_LIMIT, SONNET_MODEL

__all__ = ["ClientConfig", "load_config", "parse_setting", "parse_assignments", "DEFAULT_CONFIG_DIR"]

LOGGER = logging.getLogger(__name__)
DEFAULT_CONFIG_DIR = Path.home() / ".hotkey-refiner"
_ENV_OVERRIDES: Mapping[str, str] = {
    "HOTKEY_REFINER_CONFIG_DIR": "config_dir",
    "HOTKEY_REFINER_API_BASE_URL": "api_base_url",
    "HOTKEY_REFINER_TEST_MODEL": "test_model",
    "HOTKEY_REFINER_DEBUG": "debug",
    "HOTKEY_REFINER_REQUEST_TIMEOUT": "request_timeout",
    "HOTKEY_REFINER_DEBOUNCE_MS": "debounce_ms",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"", "0", "false", "no", "off"}


@dataclass(slots=True)
class ClientConfig:
    """Runtime knobs for the client session and the reference host."""

    config_dir: Path = DEFAULT_CONFIG_DIR
    debounce_ms: int = 500
    history_limit: int = HISTORY_LIMIT
    api_base_url: str = "https://api.anthropic.com"
    api_version: str = "2023-06-01"
    test_model: str = SONNET_MODEL
    request_timeout: float = 30.0
    debug: bool = False

    @property
    def debounce_seconds(self) -> float:
        return max(0, self.debounce_ms) / 1000.0


def _parse_flag(raw: str) -> bool:
    lowered = raw.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{raw!r} is not a yes/no value")


def _parse_int(raw: str) -> int:
    try:
        return int(raw, 10)
    except ValueError:
        raise ValueError(f"{raw!r} is not a valid integer") from None


def _parse_seconds(raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{raw!r} is not a valid number of seconds") from None


_FIELD_PARSERS: Mapping[str, Callable[[str], Any]] = {
    "config_dir": lambda raw: Path(raw).expanduser(),
    "debounce_ms": _parse_int,
    "history_limit": _parse_int,
    "api_base_url": str,
    "api_version": str,
    "test_model": str,
    "request_timeout": _parse_seconds,
    "debug": _parse_flag,
}


def parse_setting(name: str, raw: str) -> Any:
    """Convert the textual form of ``ClientConfig.<name>``.

    Raises:
        ValueError: ``name`` is not a setting or ``raw`` does not parse.
    """

    parser = _FIELD_PARSERS.get(name)
    if parser is None:
        raise ValueError(f"Unknown setting '{name}'.")
    return parser(raw.strip())


def parse_assignments(items: Sequence[str]) -> Dict[str, Any]:
    """Parse ``KEY=VALUE`` entries as given to ``--set``."""

    parsed: Dict[str, Any] = {}
    for entry in items:
        key, sep, raw = entry.partition("=")
        key = key.strip()
        if not sep:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        if not key:
            raise ValueError("Override is missing a field name.")
        parsed[key] = parse_setting(key, raw)
    return parsed


def load_config(overrides: Mapping[str, Any] | None = None) -> ClientConfig:
    """Build a :class:`ClientConfig` from defaults, environment, then ``overrides``."""

    config = _apply_env_overrides(ClientConfig())
    if overrides:
        config = _apply_overrides(config, overrides, source="CLI")
    return replace(config, config_dir=Path(config.config_dir).expanduser())


def _apply_overrides(
    config: ClientConfig,
    overrides: Mapping[str, Any],
    *,
    source: str = "runtime",
) -> ClientConfig:
    allowed = {field.name for field in fields(ClientConfig)}
    filtered: Dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in allowed or value is None:
            continue
        filtered[key] = value
    if "config_dir" in filtered:
        filtered["config_dir"] = Path(filtered["config_dir"])
    if filtered:
        LOGGER.debug("Applying %s config overrides: %s", source, sorted(filtered))
        config = replace(config, **filtered)
    return config


def _apply_env_overrides(config: ClientConfig) -> ClientConfig:
    overrides: Dict[str, Any] = {}
    for env_name, field_name in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value is None:
            continue
        try:
            overrides[field_name] = parse_setting(field_name, value)
        except ValueError as exc:
            LOGGER.warning("Environment override %s ignored: %s", env_name, exc)
    if overrides:
        config = _apply_overrides(config, overrides, source="environment")
    return config

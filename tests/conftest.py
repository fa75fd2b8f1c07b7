"""Shared pytest fixtures."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

# Run Qt headless when no display is available.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from hotkey_refiner.services.config import ClientConfig
from hotkey_refiner.ui.events import EventBus

from helpers import ManualScheduler, RecordingBridge


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def bridge(scheduler: ManualScheduler) -> RecordingBridge:
    return RecordingBridge(clock=scheduler)


@pytest.fixture
def client_config(tmp_path: Path) -> ClientConfig:
    return ClientConfig(config_dir=tmp_path / "config")


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in (
        "HOTKEY_REFINER_CONFIG_DIR",
        "HOTKEY_REFINER_DEBUG",
        "HOTKEY_REFINER_DEBOUNCE_MS",
        "HOTKEY_REFINER_API_BASE_URL",
        "HOTKEY_REFINER_REQUEST_TIMEOUT",
        "HOTKEY_REFINER_TEST_MODEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOTKEY_REFINER_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def restore_logging():
    """Undo root logger changes made by ``setup_logging``."""

    from hotkey_refiner.utils import logging as logging_utils

    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    logging_utils.shutdown_logging()
    root.handlers[:] = handlers
    root.setLevel(level)

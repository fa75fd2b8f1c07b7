"""Log handlers for the refiner client.

Records go to a rotating file beside the client configuration and,
optionally, to stderr. Both handlers format through
:class:`CredentialRedactingFormatter`, so an API key that leaks into a host
error string or a traceback is masked before it reaches disk.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import re
from pathlib import Path

__all__ = [
    "CredentialRedactingFormatter",
    "LOG_FILE_NAME",
    "get_log_path",
    "redact_credentials",
    "setup_logging",
    "shutdown_logging",
]

LOG_FILE_NAME = "hotkey-refiner.log"
LOG_DIR_ENV = "HOTKEY_REFINER_LOG_DIR"
_DEFAULT_CONFIG_DIR = Path.home() / ".hotkey-refiner"
_RECORD_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_LIBRARY_LOGGERS = ("asyncio", "qasync", "httpx", "httpcore")
_API_KEY_RE = re.compile(r"sk-ant-[A-Za-z0-9_\-]+")
_MASK = "sk-ant-***"

_installed: list[logging.Handler] = []
_log_path: Path | None = None


def redact_credentials(text: str) -> str:
    """Mask every Anthropic-style API key in ``text``."""
    return _API_KEY_RE.sub(_MASK, text)


class CredentialRedactingFormatter(logging.Formatter):
    """Formatter whose output, tracebacks included, never carries an API key."""

    def format(self, record: logging.LogRecord) -> str:
        return redact_credentials(super().format(record))


def setup_logging(
    config_dir: Path | str | None = None,
    *,
    debug: bool = False,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
) -> Path:
    """Install the client's handlers on the root logger and return the log file.

    The file lives in ``<config_dir>/logs`` unless ``HOTKEY_REFINER_LOG_DIR``
    points elsewhere. Calling again swaps out the handlers installed by the
    previous call, leaving handlers owned by anyone else in place.
    """

    global _log_path
    level = logging.DEBUG if debug else logging.INFO
    log_dir = _log_dir_for(config_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILE_NAME

    formatter = CredentialRedactingFormatter(_RECORD_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())

    shutdown_logging()
    root = logging.getLogger()
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)
        _installed.append(handler)
    root.setLevel(level)
    logging.captureWarnings(True)

    # Library chatter stays at WARNING even in debug sessions.
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    _log_path = log_path
    return log_path


def shutdown_logging() -> None:
    """Detach and close the handlers installed by :func:`setup_logging`."""

    global _log_path
    root = logging.getLogger()
    while _installed:
        handler = _installed.pop()
        root.removeHandler(handler)
        handler.close()
    _log_path = None


def get_log_path() -> Path | None:
    return _log_path


def _log_dir_for(config_dir: Path | str | None) -> Path:
    override = os.environ.get(LOG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path(config_dir or _DEFAULT_CONFIG_DIR).expanduser() / "logs"

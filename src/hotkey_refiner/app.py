"""Application bootstrap helpers for the Hotkey Prompt Refiner client."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Sequence, TextIO, cast

from .services.bridge import HostBridge
from .services.config import ClientConfig, load_config, parse_assignments
from .services.local_host import LocalHost
from .ui.application.session import AppSession
from .ui.presentation.projection import project_session
from .utils import logging as logging_utils

_APP_NAME = "Hotkey Prompt Refiner"
_ENV_PREFIX = "HOTKEY_REFINER_"
_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class QtRuntime:
    """Container returned by :func:`create_qapp`."""

    app: Any
    loop: asyncio.AbstractEventLoop


def configure_logging(config: ClientConfig) -> Path:
    """Send client logs to ``<config_dir>/logs`` and route Qt messages there too."""

    log_path = logging_utils.setup_logging(config.config_dir, debug=config.debug)
    _LOGGER.debug("Logging to %s (debug=%s)", log_path, config.debug)
    _route_qt_messages()
    return log_path


def create_qapp() -> QtRuntime:
    """Create a qasync-powered QApplication instance."""

    try:  # Local import to avoid mandatory PySide6 dependency at import time.
        from PySide6.QtWidgets import QApplication
        from qasync import QEventLoop
    except ImportError as exc:  # pragma: no cover - depends on desktop stack
        raise RuntimeError("PySide6 and qasync must be installed to launch the refiner UI.") from exc

    app = cast(Any, QApplication.instance() or QApplication(sys.argv))
    app.setApplicationName(_APP_NAME)
    app.setApplicationDisplayName(_APP_NAME)

    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)
    app.aboutToQuit.connect(loop.stop)
    return QtRuntime(app=app, loop=loop)


def build_session(config: ClientConfig) -> tuple[LocalHost, AppSession]:
    """Wire the reference host, its bridge and a fresh session."""

    host = LocalHost(config)
    bridge = HostBridge(host)
    return host, AppSession(bridge, config=config)


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point invoked by the `hotkey-refiner` console script."""

    args, passthrough = _parse_cli_args(argv)
    _rewrite_sys_argv(passthrough)

    try:
        cli_overrides = parse_assignments(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc
    if args.config_dir:
        cli_overrides["config_dir"] = Path(args.config_dir).expanduser()
    if args.debug:
        cli_overrides["debug"] = True

    config = load_config(cli_overrides or None)
    configure_logging(config)
    try:
        host, session = build_session(config)
        if args.dump_state:
            asyncio.run(_dump_state(session, host, overrides=cli_overrides))
        else:
            _run_window(session)
    finally:
        logging_utils.shutdown_logging()


def _run_window(session: AppSession) -> None:  # pragma: no cover - needs a display
    from .ui.presentation.main_window import MainWindow

    runtime = create_qapp()
    window = MainWindow(session)
    window.show()

    loop = runtime.loop
    loop.create_task(session.activate())
    try:
        loop.run_forever()
    except KeyboardInterrupt:
        _LOGGER.info("Shutdown requested by user.")
    finally:
        _shutdown(loop, session)
        loop.close()


def _shutdown(loop: asyncio.AbstractEventLoop, session: AppSession) -> None:
    """Persist the pending model selection, then cancel unfinished store calls."""

    if loop.is_closed():
        return

    async def _finish() -> None:
        await session.dispose()
        current = asyncio.current_task()
        unfinished = [task for task in asyncio.all_tasks() if task is not current and not task.done()]
        if unfinished:
            _LOGGER.info("Cancelling %d unfinished task(s) at exit", len(unfinished))
            for task in unfinished:
                task.cancel()
            await asyncio.gather(*unfinished, return_exceptions=True)
        await loop.shutdown_asyncgens()

    try:
        loop.run_until_complete(_finish())
    except RuntimeError as exc:  # pragma: no cover - loop stopped mid-shutdown
        _LOGGER.debug("Shutdown did not complete: %s", exc)


def _route_qt_messages() -> None:
    """Forward Qt's own diagnostics to the ``hotkey_refiner.qt`` logger."""

    try:
        from PySide6.QtCore import QtMsgType, qInstallMessageHandler
    except ImportError:  # pragma: no cover - PySide6 optional during tests
        return

    qt_logger = logging.getLogger("hotkey_refiner.qt")
    levels = {
        QtMsgType.QtDebugMsg: logging.DEBUG,
        QtMsgType.QtWarningMsg: logging.WARNING,
        QtMsgType.QtCriticalMsg: logging.ERROR,
        QtMsgType.QtFatalMsg: logging.CRITICAL,
    }

    def _forward(kind, context, message):  # type: ignore[no-untyped-def]
        category = getattr(context, "category", None) or "default"
        qt_logger.log(levels.get(kind, logging.INFO), "[%s] %s", category, message)

    qInstallMessageHandler(_forward)


def _parse_cli_args(argv: Sequence[str] | None) -> tuple[argparse.Namespace, list[str]]:
    parser = argparse.ArgumentParser(
        prog="hotkey-refiner",
        description="Launch the Hotkey Prompt Refiner client or inspect its state.",
    )
    parser.add_argument(
        "--dump-state",
        action="store_true",
        help="Load every store, print the projected state as JSON (credential redacted) and exit.",
    )
    parser.add_argument(
        "--config-dir",
        metavar="PATH",
        help="Override the default ~/.hotkey-refiner configuration directory.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override a client setting such as debounce_ms or test_model (repeatable).",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    # Unknown arguments (e.g. -platform offscreen) are left for Qt.
    return parser.parse_known_args(argv)


def _rewrite_sys_argv(passthrough: Sequence[str]) -> None:
    program = sys.argv[0] if sys.argv else "hotkey-refiner"
    sys.argv = [program, *passthrough]


async def _dump_state(
    session: AppSession,
    host: LocalHost,
    *,
    overrides: Dict[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    try:
        loaded = await session.activate()
        state = project_session(session)
    finally:
        await session.dispose()
    metadata = {
        "config_dir": str(session.config.config_dir),
        "config_path": str(host.config_path),
        "log_path": str(logging_utils.get_log_path() or ""),
        "secret_backend": host.credentials.vault.strategy,
        "loaded": loaded,
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    json.dump({"state": state, "meta": metadata}, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith(_ENV_PREFIX))

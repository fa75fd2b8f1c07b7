"""Asynchronous command bridge between the client stores and the host process."""

from __future__ import annotations

import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Mapping, Protocol

from .secrets import redact_secret

__all__ = [
    "BridgeError",
    "CommandBridge",
    "CommandHandler",
    "HostBridge",
    "redact_args",
    "SECRET_ARGUMENTS",
    "SECRET_RESULTS",
]

LOGGER = logging.getLogger(__name__)

CommandHandler = Callable[..., Any]

SECRET_ARGUMENTS: frozenset[str] = frozenset({"api_key"})
SECRET_RESULTS: frozenset[str] = frozenset({"get_api_key"})


class BridgeError(RuntimeError):
    """Opaque failure reported by the bridge for a single command invocation.

    Callers must treat a ``BridgeError`` as "the operation did not happen";
    the bridge performs no retries and gives no partial-effect guarantees.
    """

    def __init__(self, command: str, message: str) -> None:
        super().__init__(f"{command}: {message}")
        self.command = command
        self.message = message


class CommandBridge(Protocol):
    """Typed request/response channel to the host process."""

    def invoke(self, command: str, args: Mapping[str, Any] | None = None) -> Awaitable[Any]:
        ...


class HostBridge:
    """Adapts a host object's command table to the :class:`CommandBridge` contract.

    ``host`` must expose ``commands()`` returning a mapping of command name to
    callable. Handlers may be synchronous or return awaitables. Every failure,
    including unknown commands, surfaces as :class:`BridgeError`.
    """

    def __init__(self, host: Any) -> None:
        self._host = host
        self._handlers: dict[str, CommandHandler] = dict(host.commands())

    @property
    def commands(self) -> tuple[str, ...]:
        return tuple(sorted(self._handlers))

    async def invoke(self, command: str, args: Mapping[str, Any] | None = None) -> Any:
        handler = self._handlers.get(command)
        if handler is None:
            LOGGER.warning("Bridge rejected unknown command %s", command)
            raise BridgeError(command, "unknown command")

        kwargs = dict(args or {})
        started = time.perf_counter()
        LOGGER.debug("Bridge invoke %s args=%s", command, redact_args(kwargs))
        try:
            result = handler(**kwargs)
            if inspect.isawaitable(result):
                result = await result
        except BridgeError:
            raise
        except Exception as exc:
            LOGGER.debug("Bridge command %s failed: %s", command, exc)
            raise BridgeError(command, str(exc) or type(exc).__name__) from exc

        elapsed_ms = (time.perf_counter() - started) * 1000.0
        LOGGER.debug(
            "Bridge result %s (%.1f ms): %s",
            command,
            elapsed_ms,
            _describe_result(command, result),
        )
        return result


def redact_args(args: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``args`` safe to write to the log."""

    redacted: dict[str, Any] = {}
    for key, value in args.items():
        if key in SECRET_ARGUMENTS and isinstance(value, str):
            redacted[key] = redact_secret(value)
        else:
            redacted[key] = value
    return redacted


def _describe_result(command: str, result: Any) -> str:
    if command in SECRET_RESULTS:
        return "<present>" if result else "<absent>"
    if isinstance(result, list):
        return f"<{len(result)} item(s)>"
    return repr(result)

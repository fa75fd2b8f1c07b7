"""Single-slot debounce gate for persisting rapidly changing values.

The gate holds at most one pending value and one timer handle. Every
``submit`` replaces both, so only the value present when the timer finally
fires is ever handed to the persistence action.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Generic, Protocol, TypeVar

__all__ = ["AsyncioScheduler", "DebounceGate", "Scheduler", "TimerHandle"]

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Clock abstraction used by :class:`DebounceGate`."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class AsyncioScheduler:
    """Schedules callbacks on an asyncio event loop.

    The loop is resolved lazily so the scheduler can be built before the
    qasync loop is installed.
    """

    __slots__ = ("_loop_resolver",)

    def __init__(
        self,
        loop_resolver: Callable[[], asyncio.AbstractEventLoop] | None = None,
    ) -> None:
        self._loop_resolver = loop_resolver or asyncio.get_running_loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop_resolver()
        return loop.call_later(max(0.0, delay), callback)


class DebounceGate(Generic[T]):
    """Collapse a burst of values into one delayed call of ``action``.

    Args:
        delay: Seconds of quiet required before ``action`` runs.
        action: Coroutine function receiving the settled value.
        scheduler: Timer source; defaults to :class:`AsyncioScheduler`.
        name: Label used in log messages.
    """

    __slots__ = (
        "_delay",
        "_action",
        "_scheduler",
        "_name",
        "_handle",
        "_pending",
        "_has_pending",
        "_in_flight",
    )

    def __init__(
        self,
        delay: float,
        action: Callable[[T], Awaitable[Any]],
        *,
        scheduler: Scheduler | None = None,
        name: str = "debounce",
    ) -> None:
        self._delay = max(0.0, delay)
        self._action = action
        self._scheduler = scheduler or AsyncioScheduler()
        self._name = name
        self._handle: TimerHandle | None = None
        self._pending: T | None = None
        self._has_pending = False
        self._in_flight: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------
    @property
    def delay(self) -> float:
        return self._delay

    @property
    def has_pending(self) -> bool:
        """True while a value is waiting for its timer."""
        return self._has_pending

    @property
    def pending_value(self) -> T | None:
        return self._pending if self._has_pending else None

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    # ------------------------------------------------------------------
    # Public methods
    # ------------------------------------------------------------------
    def submit(self, value: T) -> None:
        """Replace any pending value with ``value`` and restart the timer."""
        self._cancel_handle()
        self._pending = value
        self._has_pending = True
        self._handle = self._scheduler.call_later(self._delay, self._fire)
        LOGGER.debug("%s: value submitted, firing in %.3fs", self._name, self._delay)

    def cancel(self) -> None:
        """Drop the pending value without persisting it."""
        if self._has_pending:
            LOGGER.debug("%s: pending value cancelled", self._name)
        self._cancel_handle()
        self._pending = None
        self._has_pending = False

    def flush(self) -> asyncio.Task[Any] | None:
        """Fire the pending value immediately.

        Returns:
            The task running ``action``, or ``None`` when nothing was pending.
        """
        if not self._has_pending:
            return None
        self._cancel_handle()
        return self._dispatch()

    async def drain(self) -> None:
        """Wait until every dispatched action has finished."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _fire(self) -> None:
        self._handle = None
        if self._has_pending:
            self._dispatch()

    def _dispatch(self) -> asyncio.Task[Any]:
        value = self._pending
        self._pending = None
        self._has_pending = False
        LOGGER.debug("%s: dispatching settled value", self._name)
        task = asyncio.ensure_future(self._run(value))  # type: ignore[arg-type]
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def _run(self, value: T) -> None:
        try:
            await self._action(value)
        except Exception:
            LOGGER.exception("%s: persistence action failed", self._name)

    def _cancel_handle(self) -> None:
        handle = self._handle
        self._handle = None
        if handle is not None:
            handle.cancel()

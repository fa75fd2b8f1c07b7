"""Shared test helpers and stub classes.

This module contains reusable test stubs that are used across multiple test files.
Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import asyncio
from copy import deepcopy
from typing import Any, Callable, Mapping

from hotkey_refiner.services.bridge import BridgeError


class ManualHandle:
    def __init__(self, when_ms: int, callback: Callable[[], None]) -> None:
        self.when_ms = when_ms
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Fake clock for :class:`DebounceGate`; time only moves on ``advance_ms``.

    Time is tracked in whole milliseconds so due-time comparisons are exact.
    """

    def __init__(self) -> None:
        self.now_ms = 0
        self.handles: list[ManualHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle(self.now_ms + round(delay * 1000), callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for handle in self.handles if not handle.cancelled and not handle.fired)

    def advance_ms(self, milliseconds: int) -> None:
        target = self.now_ms + milliseconds
        while True:
            due = [
                handle
                for handle in self.handles
                if not handle.cancelled and not handle.fired and handle.when_ms <= target
            ]
            if not due:
                break
            handle = min(due, key=lambda item: item.when_ms)
            self.now_ms = handle.when_ms
            handle.fired = True
            handle.callback()
        self.now_ms = target


class RecordingBridge:
    """In-memory :class:`CommandBridge` that records every invocation.

    ``responses`` maps command names to a value or a callable receiving the
    call's keyword arguments. ``failures`` maps command names to the error
    message the call rejects with. ``holds`` maps command names to an
    :class:`asyncio.Event` the call waits on, to observe in-flight state.

    Example:
        bridge = RecordingBridge({"get_templates": []}, failures={"clear_history": "boom"})
    """

    def __init__(
        self,
        responses: Mapping[str, Any] | None = None,
        *,
        failures: Mapping[str, str] | None = None,
        clock: ManualScheduler | None = None,
    ) -> None:
        self.responses: dict[str, Any] = dict(responses or {})
        self.failures: dict[str, str] = dict(failures or {})
        self.holds: dict[str, asyncio.Event] = {}
        self.clock = clock
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.call_times: list[int] = []

    async def invoke(self, command: str, args: Mapping[str, Any] | None = None) -> Any:
        kwargs = dict(args or {})
        self.calls.append((command, kwargs))
        if self.clock is not None:
            self.call_times.append(self.clock.now_ms)
        hold = self.holds.get(command)
        if hold is not None:
            await hold.wait()
        if command in self.failures:
            raise BridgeError(command, self.failures[command])
        response = self.responses.get(command)
        if callable(response):
            return response(**kwargs)
        return deepcopy(response)

    def hold(self, command: str) -> asyncio.Event:
        event = asyncio.Event()
        self.holds[command] = event
        return event

    def commands(self) -> list[str]:
        return [command for command, _ in self.calls]

    def calls_for(self, command: str) -> list[dict[str, Any]]:
        return [args for name, args in self.calls if name == command]


class EventRecorder:
    """Collects every event of the given types published on a bus."""

    def __init__(self, bus: Any, *event_types: type) -> None:
        self.events: list[Any] = []
        for event_type in event_types:
            bus.subscribe(event_type, self.events.append)

    def of_type(self, event_type: type) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]


def template_payload(
    template_id: str,
    name: str,
    *,
    hotkey: str | None = None,
    description: str = "",
    prompt: str = "Refine this text.",
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": template_id,
        "name": name,
        "description": description,
        "prompt": prompt,
    }
    if hotkey is not None:
        payload["hotkey"] = hotkey
    return payload


def history_payload(
    timestamp: str,
    template_name: str,
    *,
    source: str = "source text",
    result: str = "result text",
) -> dict[str, Any]:
    return {
        "timestamp": timestamp,
        "template_name": template_name,
        "source_preview": source[:100],
        "result_preview": result[:100],
        "full_source": source,
        "full_result": result,
    }

"""Event bus and store notifications for the presentation layer.

Stores publish events after every state transition so views can re-project
without polling the stores or touching the bridge.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, TypeVar
from weakref import WeakMethod

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all events published on the bus."""

    pass


# Events published on every keystroke; not logged on publish.
_QUIET_EVENT_TYPES: set[type] = set()


# =============================================================================
# Store lifecycle events
# =============================================================================


@dataclass(slots=True)
class StoreBusyChanged(Event):
    """Emitted when a store starts or finishes an outstanding bridge call.

    Attributes:
        store: Store name (``"templates"``, ``"history"``, ``"settings"``,
            ``"credential"``).
        busy: Whether a call is currently in flight.
    """

    store: str
    busy: bool


@dataclass(slots=True)
class StoreLoadFailed(Event):
    """Emitted when a ``load()`` call was rejected by the bridge.

    The store keeps its previous snapshot.
    """

    store: str
    error: str


@dataclass(slots=True)
class MutationFailed(Event):
    """Emitted when a mutation was rejected and local state was rolled back."""

    store: str
    operation: str
    error: str


# =============================================================================
# Entity events
# =============================================================================


@dataclass(slots=True)
class TemplatesLoaded(Event):
    """Emitted after the template list was replaced from the host.

    Attributes:
        count: Number of templates.
        active_hotkeys: Number of templates carrying a hotkey binding.
    """

    count: int
    active_hotkeys: int


@dataclass(slots=True)
class HistoryLoaded(Event):
    count: int


@dataclass(slots=True)
class HistoryCleared(Event):
    pass


@dataclass(slots=True)
class HistoryViewChanged(Event):
    """Emitted when the local search query or expanded entry changes."""

    query: str
    expanded_id: str | None
    visible_count: int


_QUIET_EVENT_TYPES.add(HistoryViewChanged)


@dataclass(slots=True)
class SettingsLoaded(Event):
    default_model: str
    autostart_enabled: bool


@dataclass(slots=True)
class ModelChanged(Event):
    """Emitted when the displayed model changes.

    Attributes:
        model: The model now displayed.
        persisted: True once the host confirmed the value.
    """

    model: str
    persisted: bool


@dataclass(slots=True)
class AutostartChanged(Event):
    enabled: bool
    pending: bool


@dataclass(slots=True)
class CredentialStateChanged(Event):
    """Emitted when the credential panel's phase, presence or message changes."""

    phase: str
    present: bool
    message: str = ""


_QUIET_EVENT_TYPES.add(CredentialStateChanged)


# =============================================================================
# Bus
# =============================================================================


@dataclass(slots=True, eq=False)
class Subscription:
    """Registration handle returned by :meth:`EventBus.subscribe`.

    Bound methods are referenced weakly, so a closed window that forgot to
    cancel its subscriptions is dropped the next time its event fires.
    """

    event_type: type[Event]
    label: str
    _target: Callable[[], Any | None] = field(repr=False)
    _bus: EventBus[Any] | None = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return self._bus is not None and self._target() is not None

    def handler(self) -> Handler[Any] | None:
        return self._target()

    def cancel(self) -> None:
        """Detach from the bus; cancelling twice is harmless."""
        bus, self._bus = self._bus, None
        if bus is not None:
            bus._detach(self)


class EventBus(Generic[E]):
    """Synchronous fan-out of store events to view handlers.

    Delivery follows the event's class hierarchy: a handler registered for
    :class:`Event` receives every notification, one registered for
    :class:`MutationFailed` only rollbacks. Handlers run in registration
    order; a handler that raises is logged and the rest still run.

    Not thread-safe. Publish only from the UI event loop.
    """

    __slots__ = ("_subscriptions",)

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> Subscription:
        """Register ``handler``; subscribing the same callable twice delivers twice."""
        if inspect.ismethod(handler):
            target: Callable[[], Any | None] = WeakMethod(handler)
        else:
            target = lambda: handler  # noqa: E731
        subscription = Subscription(event_type, _describe(handler), target, self)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Cancel the oldest matching registration; unknown handlers are ignored."""
        for subscription in self._subscriptions:
            if subscription.event_type is event_type and subscription.handler() == handler:
                subscription.cancel()
                return

    def publish(self, event: E) -> None:
        recipients = [s for s in self._subscriptions if isinstance(event, s.event_type)]
        name = type(event).__name__
        if type(event) not in _QUIET_EVENT_TYPES:
            logger.debug("Publishing %s to %d handler(s)", name, len(recipients))

        for subscription in recipients:
            handler = subscription.handler()
            if handler is None:
                logger.debug("Dropping collected handler %s", subscription.label)
                subscription.cancel()
                continue
            try:
                handler(event)
            except Exception:
                logger.exception("Handler %s raised exception for event %s", subscription.label, name)

    def clear(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.cancel()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        """Registrations for exactly ``event_type``, or all of them."""
        if event_type is None:
            return len(self._subscriptions)
        return sum(1 for s in self._subscriptions if s.event_type is event_type)

    def _detach(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)


def _describe(handler: Callable[..., Any]) -> str:
    owner = getattr(handler, "__self__", None)
    name = getattr(handler, "__qualname__", None) or repr(handler)
    if owner is not None and not inspect.ismodule(owner):
        return f"{type(owner).__name__}.{getattr(handler, '__name__', name)}"
    return name


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "Subscription",
    "StoreBusyChanged",
    "StoreLoadFailed",
    "MutationFailed",
    "TemplatesLoaded",
    "HistoryLoaded",
    "HistoryCleared",
    "HistoryViewChanged",
    "SettingsLoaded",
    "ModelChanged",
    "AutostartChanged",
    "CredentialStateChanged",
]

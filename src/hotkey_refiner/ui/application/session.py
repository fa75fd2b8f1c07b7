"""Application session: explicit lifecycle for the client stores.

The session replaces process-wide state with store objects that are built on
activation, handed to the presentation layer by reference, and discarded on
teardown.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable

from ...services.config import ClientConfig
from ..domain.credential_store import CredentialStore
from ..domain.history_store import HistoryStore
from ..domain.settings_store import SettingsStore
from ..domain.template_store import TemplateStore
from ..events import Event, EventBus, Subscription

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ...services.bridge import CommandBridge
    from ..domain.debounce import Scheduler

LOGGER = logging.getLogger(__name__)


class AppSession:
    """Owns the four client stores for the lifetime of one window.

    Example:
        session = AppSession(bridge, config=config)
        await session.activate()
        ...
        await session.dispose()
    """

    def __init__(
        self,
        bridge: CommandBridge,
        *,
        event_bus: EventBus | None = None,
        config: ClientConfig | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._config = config or ClientConfig()
        self._bus = event_bus or EventBus()
        self._bridge = bridge
        self._templates = TemplateStore(bridge, self._bus)
        self._history = HistoryStore(bridge, self._bus, limit=self._config.history_limit)
        self._settings = SettingsStore(
            bridge,
            self._bus,
            debounce_seconds=self._config.debounce_seconds,
            scheduler=scheduler,
        )
        self._credential = CredentialStore(bridge, self._bus)
        self._subscriptions: list[Subscription] = []
        self._active = False
        self._disposed = False

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------
    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def templates(self) -> TemplateStore:
        return self._templates

    @property
    def history(self) -> HistoryStore:
        return self._history

    @property
    def settings(self) -> SettingsStore:
        return self._settings

    @property
    def credential(self) -> CredentialStore:
        return self._credential

    @property
    def active(self) -> bool:
        return self._active

    @property
    def disposed(self) -> bool:
        return self._disposed

    # ------------------------------------------------------------------
    # Event wiring
    # ------------------------------------------------------------------
    def subscribe(self, event_type: type[Event], handler: Callable[[Any], None]) -> Subscription:
        """Subscribe ``handler`` for the lifetime of this session."""
        subscription = self._bus.subscribe(event_type, handler)
        self._subscriptions.append(subscription)
        return subscription

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def activate(self) -> dict[str, bool]:
        """Load every store concurrently.

        Stores load independently; a failure in one is reported through its
        own ``load_error`` and never prevents the others from loading.

        Returns:
            Mapping of store name to whether its load succeeded.
        """
        if self._disposed:
            raise RuntimeError("Cannot activate a disposed session")
        LOGGER.info("Activating session")
        names = ("templates", "history", "settings", "credential")
        results = await asyncio.gather(
            self._templates.load(),
            self._history.load(),
            self._settings.load(),
            self._credential.load(),
        )
        self._active = True
        outcome = dict(zip(names, results))
        failed = [name for name, ok in outcome.items() if not ok]
        if failed:
            LOGGER.warning("Session activated with failed stores: %s", ", ".join(failed))
        else:
            LOGGER.info("Session activated")
        return outcome

    async def dispose(self) -> None:
        """Persist any pending model selection and release the stores."""
        if self._disposed:
            return
        self._disposed = True
        self._active = False
        LOGGER.info("Disposing session")
        self._settings.flush_pending()
        await self._settings.drain()
        self._credential.clear_buffer()
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()


__all__ = ["AppSession"]

"""Host-backed repository base for the client stores.

Every store follows the same discipline: the host is authoritative, local
lists are replaced wholesale on load, and a successful mutation is followed
by a full reload rather than a local patch.
"""

from __future__ import annotations

import logging
from typing import Any, Generic, Iterable, Mapping, TypeVar, TYPE_CHECKING

from ...services.bridge import BridgeError
from ..events import MutationFailed, StoreBusyChanged, StoreLoadFailed

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ...services.bridge import CommandBridge
    from ..events import EventBus

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class BridgeRepository(Generic[T]):
    """Load/mutate/reload cycle shared by list-shaped stores.

    Subclasses set :attr:`store_name` and :attr:`load_command` and implement
    :meth:`_parse_item`. :meth:`_on_loaded` runs after every successful load.
    """

    store_name = "repository"
    load_command = ""

    def __init__(self, bridge: CommandBridge, event_bus: EventBus) -> None:
        self._bridge = bridge
        self._bus = event_bus
        self._items: list[T] = []
        self._loaded = False
        self._load_error: str | None = None
        self._busy = 0

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------
    @property
    def items(self) -> tuple[T, ...]:
        return tuple(self._items)

    @property
    def loaded(self) -> bool:
        """True once at least one load succeeded."""
        return self._loaded

    @property
    def load_error(self) -> str | None:
        """Message of the most recent failed load, cleared by a successful one."""
        return self._load_error

    @property
    def busy(self) -> bool:
        return self._busy > 0

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------
    async def load(self) -> bool:
        """Replace the local list from the host.

        Returns:
            True on success. On failure the previous snapshot is kept, the
            error is logged and a :class:`StoreLoadFailed` event is published.
        """
        self._enter_busy()
        try:
            payload = await self._bridge.invoke(self.load_command)
            items = self._parse_items(payload)
        except BridgeError as exc:
            return self._fail_load(exc.message)
        except (TypeError, ValueError) as exc:
            return self._fail_load(f"malformed response: {exc}")
        finally:
            self._exit_busy()

        self._items = items
        self._loaded = True
        self._load_error = None
        LOGGER.debug("%s store loaded %d item(s)", self.store_name, len(items))
        self._on_loaded()
        return True

    # ------------------------------------------------------------------
    # Mutation helpers
    # ------------------------------------------------------------------
    async def _mutate(
        self,
        operation: str,
        command: str,
        args: Mapping[str, Any] | None = None,
        *,
        reload: bool = True,
    ) -> bool:
        """Issue ``command`` and, on success, reload from the host.

        A rejected command leaves local state untouched and publishes
        :class:`MutationFailed`. The reload result does not change the
        outcome: the mutation itself already happened on the host.
        """
        self._enter_busy()
        try:
            await self._bridge.invoke(command, args)
        except BridgeError as exc:
            self._report_mutation_failure(operation, exc.message)
            return False
        finally:
            self._exit_busy()

        await self._after_mutation(operation)
        if reload:
            await self.load()
        return True

    async def _after_mutation(self, operation: str) -> None:
        """Hook for follow-up host calls after a successful mutation."""

    def _report_mutation_failure(self, operation: str, message: str) -> None:
        LOGGER.warning("%s %s failed: %s", self.store_name, operation, message)
        self._bus.publish(MutationFailed(store=self.store_name, operation=operation, error=message))

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------
    def _parse_item(self, payload: Any) -> T:
        raise NotImplementedError

    def _on_loaded(self) -> None:
        pass

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _parse_items(self, payload: Any) -> list[T]:
        if payload is None:
            return []
        if not isinstance(payload, Iterable) or isinstance(payload, (str, bytes, Mapping)):
            raise TypeError(f"expected a list, got {type(payload).__name__}")
        return [self._parse_item(item) for item in payload]

    def _fail_load(self, message: str) -> bool:
        LOGGER.warning("%s store load failed: %s", self.store_name, message)
        self._load_error = message
        self._bus.publish(StoreLoadFailed(store=self.store_name, error=message))
        return False

    def _enter_busy(self) -> None:
        self._busy += 1
        if self._busy == 1:
            self._bus.publish(StoreBusyChanged(store=self.store_name, busy=True))

    def _exit_busy(self) -> None:
        self._busy = max(0, self._busy - 1)
        if self._busy == 0:
            self._bus.publish(StoreBusyChanged(store=self.store_name, busy=False))


__all__ = ["BridgeRepository"]

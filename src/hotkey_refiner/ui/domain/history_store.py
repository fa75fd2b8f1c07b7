"""History store: bounded list of past processing records plus local view state."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Mapping, TYPE_CHECKING

from ...core.models import HISTORY_LIMIT, HistoryEntry
from ..events import HistoryCleared, HistoryLoaded, HistoryViewChanged
from .repository import BridgeRepository

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ...services.bridge import CommandBridge
    from ..events import EventBus

LOGGER = logging.getLogger(__name__)

# fromisoformat before 3.11 accepts at most six fractional digits.
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


class HistoryStore(BridgeRepository[HistoryEntry]):
    """Domain manager for processing history.

    Search and expansion are purely local view state. They never reach the
    host and are reset whenever the underlying list is replaced, so a
    reloaded list never carries a stale selection.

    Entries are keyed by ``timestamp`` for expansion purposes.
    """

    store_name = "history"
    load_command = "get_history"

    def __init__(
        self,
        bridge: CommandBridge,
        event_bus: EventBus,
        *,
        limit: int = HISTORY_LIMIT,
    ) -> None:
        super().__init__(bridge, event_bus)
        self._limit = max(0, limit)
        self._query = ""
        self._expanded_id: str | None = None
        self._clearing = False

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------
    @property
    def entries(self) -> tuple[HistoryEntry, ...]:
        return self.items

    @property
    def search_query(self) -> str:
        return self._query

    @property
    def expanded_id(self) -> str | None:
        return self._expanded_id

    @property
    def clearing(self) -> bool:
        return self._clearing

    @property
    def visible_entries(self) -> tuple[HistoryEntry, ...]:
        """Loaded entries filtered by the current search query."""
        return self._filter(self._query)

    def is_expanded(self, entry_id: str) -> bool:
        return self._expanded_id is not None and self._expanded_id == entry_id

    def get(self, entry_id: str) -> HistoryEntry | None:
        for entry in self._items:
            if entry.timestamp == entry_id:
                return entry
        return None

    # ------------------------------------------------------------------
    # View state
    # ------------------------------------------------------------------
    def search(self, query: str) -> tuple[HistoryEntry, ...]:
        """Filter by case-insensitive substring of ``template_name``.

        The loaded list is never modified; an empty query shows everything.
        """
        self._query = query or ""
        visible = self._filter(self._query)
        self._publish_view(len(visible))
        return visible

    def toggle_expand(self, entry_id: str) -> str | None:
        """Expand ``entry_id``, or collapse it if it is already expanded.

        At most one entry is expanded at a time.

        Returns:
            The id expanded after the toggle, or ``None``.
        """
        if self._expanded_id == entry_id:
            self._expanded_id = None
        else:
            self._expanded_id = entry_id
        self._publish_view()
        return self._expanded_id

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    async def clear_all(self) -> bool:
        """Ask the host to drop every entry.

        On success the local list is emptied without a reload, since the
        host's post-condition is a known empty state. On failure the list is
        left unchanged.
        """
        if self._clearing:
            LOGGER.debug("HistoryStore.clear_all ignored: clear already in flight")
            return False
        self._clearing = True
        try:
            cleared = await self._mutate("clear", "clear_history", reload=False)
        finally:
            self._clearing = False
        if not cleared:
            return False
        self._items = []
        self._reset_view_state()
        self._bus.publish(HistoryCleared())
        self._publish_view(0)
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _parse_item(self, payload: Any) -> HistoryEntry:
        if not isinstance(payload, Mapping):
            raise TypeError(f"history payload must be a mapping, got {type(payload).__name__}")
        return HistoryEntry.from_payload(payload)

    def _on_loaded(self) -> None:
        if len(self._items) > self._limit:
            LOGGER.warning(
                "Host returned %d history entries; keeping the newest %d",
                len(self._items),
                self._limit,
            )
            self._items = self._items[: self._limit]
        self._reset_view_state()
        self._bus.publish(HistoryLoaded(count=len(self._items)))
        self._publish_view(len(self._items))

    def _filter(self, query: str) -> tuple[HistoryEntry, ...]:
        needle = query.lower()
        if not needle:
            return tuple(self._items)
        return tuple(entry for entry in self._items if needle in entry.template_name.lower())

    def _reset_view_state(self) -> None:
        self._query = ""
        self._expanded_id = None

    def _publish_view(self, visible_count: int | None = None) -> None:
        if visible_count is None:
            visible_count = len(self._filter(self._query))
        self._bus.publish(
            HistoryViewChanged(
                query=self._query,
                expanded_id=self._expanded_id,
                visible_count=visible_count,
            )
        )


def format_time(timestamp: str | datetime, now: datetime | None = None) -> str:
    """Render elapsed time since ``timestamp`` as ``"<n><unit> ago"``.

    Elapsed time is bucketed into whole days, hours, minutes and seconds;
    the largest non-zero bucket wins (90 minutes is ``"1h ago"``). Future
    timestamps render as ``"0s ago"``. Unparseable strings are returned
    unchanged.
    """

    moment = _parse_timestamp(timestamp)
    if moment is None:
        return str(timestamp)
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    seconds = max(0, int((now - moment).total_seconds()))
    days, remainder = divmod(seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, seconds = divmod(remainder, 60)
    if days:
        return f"{days}d ago"
    if hours:
        return f"{hours}h ago"
    if minutes:
        return f"{minutes}m ago"
    return f"{seconds}s ago"


def _parse_timestamp(value: str | datetime) -> datetime | None:
    if isinstance(value, datetime):
        moment = value
    else:
        text = str(value or "").strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = f"{text[:-1]}+00:00"
        text = _FRACTION_RE.sub(r"\1", text, count=1)
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            LOGGER.debug("Unparseable history timestamp: %r", value)
            return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


__all__ = ["HistoryStore", "format_time"]

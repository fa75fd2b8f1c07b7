"""Template store: in-memory reflection of host-held templates."""

from __future__ import annotations

import logging
from typing import Any, Mapping, TYPE_CHECKING

from ...core.models import Template
from ...services.bridge import BridgeError
from ..events import TemplatesLoaded
from .repository import BridgeRepository

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ...services.bridge import CommandBridge
    from ..events import EventBus

LOGGER = logging.getLogger(__name__)


class TemplateStore(BridgeRepository[Template]):
    """Domain manager for prompt templates.

    Create, update and delete are each one bridge call followed by a full
    reload; the store never patches its list locally, so host-side id
    assignment and validation are always reflected.

    A template with an outstanding mutation is pending and refuses a second
    mutation until the first settles. Only one create may be in flight.
    """

    store_name = "templates"
    load_command = "get_templates"

    def __init__(self, bridge: CommandBridge, event_bus: EventBus) -> None:
        super().__init__(bridge, event_bus)
        self._active_hotkeys = 0
        self._pending_ids: set[str] = set()
        self._creating = False

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------
    @property
    def templates(self) -> tuple[Template, ...]:
        return self.items

    @property
    def active_hotkey_count(self) -> int:
        """Number of loaded templates carrying a hotkey binding."""
        return self._active_hotkeys

    @property
    def creating(self) -> bool:
        return self._creating

    def is_pending(self, template_id: str) -> bool:
        return template_id in self._pending_ids

    def get(self, template_id: str) -> Template | None:
        for template in self._items:
            if template.id == template_id:
                return template
        return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    async def create(self, draft: Template) -> bool:
        """Send ``draft`` to the host as a new template.

        Any ``id`` on the draft is ignored; the host assigns one.
        """
        if self._creating:
            LOGGER.debug("TemplateStore.create ignored: a create is already in flight")
            return False
        payload = draft.to_payload()
        payload.pop("id", None)
        payload.pop("created_at", None)
        self._creating = True
        try:
            return await self._mutate("create", "save_template", {"template": payload})
        finally:
            self._creating = False

    async def update(self, template: Template) -> bool:
        if not template.id:
            raise ValueError("Cannot update a template without an id")
        return await self._mutate_template(
            template.id, "update", "save_template", {"template": template.to_payload()}
        )

    async def delete(self, template_id: str) -> bool:
        return await self._mutate_template(
            template_id, "delete", "delete_template", {"id": template_id}
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    async def _mutate_template(
        self,
        template_id: str,
        operation: str,
        command: str,
        args: Mapping[str, Any],
    ) -> bool:
        if template_id in self._pending_ids:
            LOGGER.debug(
                "TemplateStore.%s ignored: template %s already pending", operation, template_id
            )
            return False
        self._pending_ids.add(template_id)
        try:
            return await self._mutate(operation, command, args)
        finally:
            self._pending_ids.discard(template_id)

    async def _after_mutation(self, operation: str) -> None:
        # The host re-registers global shortcuts from its template list.
        try:
            count = await self._bridge.invoke("reload_hotkeys")
        except BridgeError as exc:
            LOGGER.warning("Hotkey reload after template %s failed: %s", operation, exc.message)
            return
        LOGGER.debug("Host re-registered %s hotkey(s) after %s", count, operation)

    def _parse_item(self, payload: Any) -> Template:
        if not isinstance(payload, Mapping):
            raise TypeError(f"template payload must be a mapping, got {type(payload).__name__}")
        return Template.from_payload(payload)

    def _on_loaded(self) -> None:
        self._active_hotkeys = sum(1 for template in self._items if template.has_hotkey)
        self._bus.publish(
            TemplatesLoaded(count=len(self._items), active_hotkeys=self._active_hotkeys)
        )


__all__ = ["TemplateStore"]

"""Credential store: edit buffer and save/test/delete state machine.

The raw credential only ever lives in the edit buffer. Values read back from
the host are reduced to a presence flag and a redacted hint immediately.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, TYPE_CHECKING

from ...services.bridge import BridgeError
from ...services.secrets import redact_secret
from ..events import (
    CredentialStateChanged,
    MutationFailed,
    StoreBusyChanged,
    StoreLoadFailed,
)

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ...services.bridge import CommandBridge
    from ..events import EventBus

LOGGER = logging.getLogger(__name__)

STORE_NAME = "credential"
MASK_CHARACTER = "•"


class CredentialPhase(str, Enum):
    IDLE = "idle"
    EDITING = "editing"
    SAVING = "saving"
    TESTING = "testing"
    DELETING = "deleting"

    @property
    def in_flight(self) -> bool:
        return self in _IN_FLIGHT_PHASES


_IN_FLIGHT_PHASES = frozenset(
    {CredentialPhase.SAVING, CredentialPhase.TESTING, CredentialPhase.DELETING}
)


class MessageKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class CredentialStore:
    """Domain manager for the API credential slot.

    Phases move ``idle -> editing -> {saving, testing, deleting} -> idle``.
    While a call is in flight the input and every action are disabled so two
    mutations never overlap on the same slot.
    """

    def __init__(self, bridge: CommandBridge, event_bus: EventBus) -> None:
        self._bridge = bridge
        self._bus = event_bus
        self._phase = CredentialPhase.IDLE
        self._buffer = ""
        self._visible = False
        self._present = False
        self._hint = ""
        self._message = ""
        self._message_kind: MessageKind | None = None
        self._loaded = False
        self._load_error: str | None = None

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------
    @property
    def phase(self) -> CredentialPhase:
        return self._phase

    @property
    def buffer(self) -> str:
        return self._buffer

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def display_buffer(self) -> str:
        """Buffer as shown in the input: masked unless visibility is on."""
        if self._visible:
            return self._buffer
        return MASK_CHARACTER * len(self._buffer)

    @property
    def present(self) -> bool:
        """True when the host holds a credential."""
        return self._present

    @property
    def hint(self) -> str:
        return self._hint

    @property
    def message(self) -> str:
        return self._message

    @property
    def message_kind(self) -> MessageKind | None:
        return self._message_kind

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def load_error(self) -> str | None:
        return self._load_error

    @property
    def busy(self) -> bool:
        return self._phase.in_flight

    @property
    def input_enabled(self) -> bool:
        return not self.busy

    @property
    def can_save(self) -> bool:
        return not self.busy and bool(self._buffer.strip())

    @property
    def can_test(self) -> bool:
        return not self.busy and (bool(self._buffer.strip()) or self._present)

    @property
    def can_delete(self) -> bool:
        return not self.busy and self._present

    # ------------------------------------------------------------------
    # Edit buffer
    # ------------------------------------------------------------------
    def set_buffer(self, text: str) -> bool:
        """Replace the edit buffer; ignored while a call is in flight."""
        if self.busy:
            return False
        self._buffer = text or ""
        self._phase = CredentialPhase.EDITING if self._buffer else CredentialPhase.IDLE
        self._publish()
        return True

    def toggle_visibility(self) -> bool:
        """Flip local masking of the buffer. Nothing is sent to the host."""
        self._visible = not self._visible
        return self._visible

    def clear_buffer(self) -> None:
        self._buffer = ""
        self._visible = False
        if not self.busy:
            self._phase = CredentialPhase.IDLE
        self._publish()

    # ------------------------------------------------------------------
    # Host calls
    # ------------------------------------------------------------------
    async def load(self) -> bool:
        """Refresh presence from the host, discarding the returned value."""
        self._bus.publish(StoreBusyChanged(store=STORE_NAME, busy=True))
        try:
            value = await self._bridge.invoke("get_api_key")
        except BridgeError as exc:
            LOGGER.warning("credential store load failed: %s", exc.message)
            self._load_error = exc.message
            self._bus.publish(StoreLoadFailed(store=STORE_NAME, error=exc.message))
            return False
        finally:
            self._bus.publish(StoreBusyChanged(store=STORE_NAME, busy=False))

        self._apply_saved_value(value)
        self._loaded = True
        self._load_error = None
        self._publish()
        return True

    async def save(self) -> bool:
        if not self.can_save:
            return False
        candidate = self._buffer.strip()
        self._enter(CredentialPhase.SAVING)
        try:
            await self._bridge.invoke("save_api_key", {"api_key": candidate})
        except BridgeError as exc:
            self._fail("save_api_key", "Failed to save API key", exc)
            return False
        LOGGER.info("API key saved")
        self._buffer = ""
        self._visible = False
        self._set_message("API key saved", MessageKind.SUCCESS)
        self._leave()
        await self.load()
        return True

    async def test(self) -> bool | None:
        """Test the buffer if non-empty, else the saved credential.

        Returns:
            Whether the host judged the credential valid, or ``None`` when the
            test could not be performed.
        """
        if not self.can_test:
            return None
        candidate = self._buffer.strip()
        args: dict[str, Any] = {"api_key": candidate} if candidate else {}
        self._enter(CredentialPhase.TESTING)
        try:
            valid = bool(await self._bridge.invoke("test_api_key", args))
        except BridgeError as exc:
            self._fail("test_api_key", "API key test failed", exc)
            return None
        LOGGER.info("API key test finished: %s", "valid" if valid else "invalid")
        if valid:
            self._set_message("API key is valid", MessageKind.SUCCESS)
        else:
            self._set_message("API key is invalid", MessageKind.ERROR)
        self._leave()
        return valid

    async def delete(self) -> bool:
        if not self.can_delete:
            return False
        self._enter(CredentialPhase.DELETING)
        try:
            await self._bridge.invoke("delete_api_key")
        except BridgeError as exc:
            self._fail("delete_api_key", "Failed to delete API key", exc)
            return False

        LOGGER.info("API key deleted")
        self._present = False
        self._hint = ""
        self._set_message("API key deleted", MessageKind.SUCCESS)
        self._leave()
        await self.load()
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _apply_saved_value(self, value: Any) -> None:
        secret = value if isinstance(value, str) else ""
        self._present = bool(secret.strip())
        self._hint = redact_secret(secret) if self._present else ""

    def _enter(self, phase: CredentialPhase) -> None:
        self._phase = phase
        self._message = ""
        self._message_kind = None
        self._bus.publish(StoreBusyChanged(store=STORE_NAME, busy=True))
        self._publish()

    def _leave(self) -> None:
        self._phase = CredentialPhase.EDITING if self._buffer else CredentialPhase.IDLE
        self._bus.publish(StoreBusyChanged(store=STORE_NAME, busy=False))
        self._publish()

    def _fail(self, operation: str, summary: str, exc: BridgeError) -> None:
        LOGGER.warning("credential %s failed: %s", operation, exc.message)
        self._set_message(f"{summary}: {exc.message}", MessageKind.ERROR)
        self._bus.publish(MutationFailed(store=STORE_NAME, operation=operation, error=exc.message))
        self._leave()

    def _set_message(self, message: str, kind: MessageKind) -> None:
        self._message = message
        self._message_kind = kind

    def _publish(self) -> None:
        self._bus.publish(
            CredentialStateChanged(
                phase=self._phase.value,
                present=self._present,
                message=self._message,
            )
        )


__all__ = ["CredentialPhase", "CredentialStore", "MessageKind", "MASK_CHARACTER"]

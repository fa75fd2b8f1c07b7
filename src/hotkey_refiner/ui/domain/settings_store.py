"""Settings store: default model (debounced) and autostart (immediate)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, TYPE_CHECKING

from ...core.models import DEFAULT_CLIENT_MODEL, MODEL_CHOICES, SettingsSnapshot
from ...services.bridge import BridgeError
from ..events import (
    AutostartChanged,
    ModelChanged,
    MutationFailed,
    SettingsLoaded,
    StoreBusyChanged,
    StoreLoadFailed,
)
from .debounce import DebounceGate

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ...services.bridge import CommandBridge
    from ..events import EventBus
    from .debounce import Scheduler

LOGGER = logging.getLogger(__name__)

STORE_NAME = "settings"
DEFAULT_DEBOUNCE_SECONDS = 0.5


class SettingsStore:
    """Domain manager for the model selection and autostart toggle.

    The displayed model updates synchronously on every selection; only the
    value present when the debounce timer fires is persisted. Autostart is
    persisted immediately, with the control reported as pending until the
    host answers, and reverts to the last confirmed value on failure.
    """

    def __init__(
        self,
        bridge: CommandBridge,
        event_bus: EventBus,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._bridge = bridge
        self._bus = event_bus
        self._model = DEFAULT_CLIENT_MODEL
        self._confirmed_model = DEFAULT_CLIENT_MODEL
        self._autostart = False
        self._confirmed_autostart = False
        self._autostart_pending = False
        self._writes_in_flight = 0
        self._loaded = False
        self._load_error: str | None = None
        self._model_gate: DebounceGate[str] = DebounceGate(
            debounce_seconds,
            self._persist_model,
            scheduler=scheduler,
            name="default_model",
        )

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------
    @property
    def default_model(self) -> str:
        """Model currently displayed, including a not-yet-persisted selection."""
        return self._model

    @property
    def confirmed_model(self) -> str:
        return self._confirmed_model

    @property
    def model_pending(self) -> bool:
        return self._model_gate.has_pending or self._writes_in_flight > 0

    @property
    def autostart_enabled(self) -> bool:
        return self._autostart

    @property
    def autostart_pending(self) -> bool:
        """True while a toggle is in flight; the control must stay disabled."""
        return self._autostart_pending

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def load_error(self) -> str | None:
        return self._load_error

    @property
    def model_gate(self) -> DebounceGate[str]:
        return self._model_gate

    def snapshot(self, *, credential_present: bool = False) -> SettingsSnapshot:
        return SettingsSnapshot(
            default_model=self._model,
            autostart_enabled=self._autostart,
            credential_present=credential_present,
        )

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------
    async def load(self) -> bool:
        """Fetch the model and autostart flag from the host.

        The two reads are independent: whichever succeeds is applied. A
        successful model read replaces any unsent local selection.
        """
        self._bus.publish(StoreBusyChanged(store=STORE_NAME, busy=True))
        try:
            model_result, autostart_result = await asyncio.gather(
                self._bridge.invoke("get_default_model"),
                self._bridge.invoke("is_autostart_enabled"),
                return_exceptions=True,
            )
        finally:
            self._bus.publish(StoreBusyChanged(store=STORE_NAME, busy=False))

        for result in (model_result, autostart_result):
            if isinstance(result, BaseException) and not isinstance(result, BridgeError):
                raise result

        errors: list[str] = []
        if isinstance(model_result, BridgeError):
            errors.append(model_result.message)
        else:
            self._model_gate.cancel()
            model = str(model_result or "") or DEFAULT_CLIENT_MODEL
            if model not in {choice.model_id for choice in MODEL_CHOICES}:
                LOGGER.info("Host reported an unlisted model %s; keeping it", model)
            self._model = model
            self._confirmed_model = model

        if isinstance(autostart_result, BridgeError):
            errors.append(autostart_result.message)
        elif not self._autostart_pending:
            self._autostart = bool(autostart_result)
            self._confirmed_autostart = self._autostart

        if errors:
            message = "; ".join(errors)
            LOGGER.warning("settings store load failed: %s", message)
            self._load_error = message
            self._bus.publish(StoreLoadFailed(store=STORE_NAME, error=message))
            return False

        self._loaded = True
        self._load_error = None
        self._bus.publish(
            SettingsLoaded(default_model=self._model, autostart_enabled=self._autostart)
        )
        return True

    # ------------------------------------------------------------------
    # Model selection
    # ------------------------------------------------------------------
    def select_model(self, model: str) -> None:
        """Display ``model`` now and persist it once selections settle."""
        self._model = model
        self._model_gate.submit(model)
        self._bus.publish(ModelChanged(model=model, persisted=False))

    def flush_pending(self) -> asyncio.Task[Any] | None:
        return self._model_gate.flush()

    async def drain(self) -> None:
        await self._model_gate.drain()

    async def _persist_model(self, model: str) -> None:
        self._writes_in_flight += 1
        try:
            await self._bridge.invoke("set_default_model", {"model": model})
        except BridgeError as exc:
            error: str | None = exc.message
        else:
            error = None
        finally:
            self._writes_in_flight -= 1

        if error is not None:
            LOGGER.warning("settings set_default_model failed: %s", error)
            self._bus.publish(
                MutationFailed(store=STORE_NAME, operation="set_default_model", error=error)
            )
            # A newer selection supersedes the failed one.
            if self._model == model and not self._model_gate.has_pending:
                self._model = self._confirmed_model
                self._bus.publish(ModelChanged(model=self._model, persisted=True))
            return

        self._confirmed_model = model
        LOGGER.debug("Default model persisted: %s", model)
        if self._model == model:
            self._bus.publish(ModelChanged(model=model, persisted=True))

    # ------------------------------------------------------------------
    # Autostart
    # ------------------------------------------------------------------
    async def set_autostart(self, enabled: bool) -> bool:
        """Persist the autostart toggle immediately.

        Returns:
            True when the host confirmed the new value. A toggle issued while
            another is in flight is refused.
        """
        if self._autostart_pending:
            LOGGER.debug("SettingsStore.set_autostart ignored: toggle in flight")
            return False
        if enabled == self._confirmed_autostart and enabled == self._autostart:
            return True

        self._autostart = enabled
        self._autostart_pending = True
        self._bus.publish(AutostartChanged(enabled=enabled, pending=True))
        command = "enable_autostart" if enabled else "disable_autostart"
        try:
            await self._bridge.invoke(command)
        except BridgeError as exc:
            LOGGER.warning("settings %s failed: %s", command, exc.message)
            self._autostart = self._confirmed_autostart
            self._bus.publish(
                MutationFailed(store=STORE_NAME, operation=command, error=exc.message)
            )
            return False
        else:
            self._confirmed_autostart = enabled
            return True
        finally:
            self._autostart_pending = False
            self._bus.publish(AutostartChanged(enabled=self._autostart, pending=False))


__all__ = ["SettingsStore", "DEFAULT_DEBOUNCE_SECONDS"]

"""Domain layer for the client stores.

Each store reflects host-owned state, talks to the host only through the
command bridge, and notifies the presentation layer via the event bus.

Domain Managers:
    - TemplateStore: Prompt templates and the active hotkey count
    - HistoryStore: Processing history with local search and expansion
    - SettingsStore: Default model (debounced) and autostart
    - CredentialStore: API credential edit buffer and save/test/delete

All domain managers:
    - Receive dependencies via constructor injection
    - Emit events to notify other layers of state changes
    - Have no direct dependencies on Qt or UI widgets
"""

from __future__ import annotations

from .credential_store import CredentialPhase, CredentialStore
from .debounce import AsyncioScheduler, DebounceGate, Scheduler
from .history_store import HistoryStore, format_time
from .repository import BridgeRepository
from .settings_store import SettingsStore
from .template_store import TemplateStore

__all__: list[str] = [
    "AsyncioScheduler",
    "BridgeRepository",
    "CredentialPhase",
    "CredentialStore",
    "DebounceGate",
    "HistoryStore",
    "Scheduler",
    "SettingsStore",
    "TemplateStore",
    "format_time",
]

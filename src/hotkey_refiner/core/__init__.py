"""Core entities shared by the client stores and the reference host."""

from .models import (
    DEFAULT_CLIENT_MODEL,
    DEFAULT_HOST_MODEL,
    HISTORY_LIMIT,
    MODEL_CHOICES,
    HistoryEntry,
    ModelChoice,
    SettingsSnapshot,
    Template,
)

__all__ = [
    "DEFAULT_CLIENT_MODEL",
    "DEFAULT_HOST_MODEL",
    "HISTORY_LIMIT",
    "MODEL_CHOICES",
    "HistoryEntry",
    "ModelChoice",
    "SettingsSnapshot",
    "Template",
]

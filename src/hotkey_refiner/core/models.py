"""Entities mirrored from the host process.

The host owns every entity declared here; the client only ever holds
disposable projections that are rebuilt from bridge payloads.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

__all__ = [
    "Template",
    "HistoryEntry",
    "SettingsSnapshot",
    "ModelChoice",
    "MODEL_CHOICES",
    "HAIKU_MODEL",
    "SONNET_MODEL",
    "OPUS_MODEL",
    "DEFAULT_CLIENT_MODEL",
    "DEFAULT_HOST_MODEL",
    "HISTORY_LIMIT",
    "PREVIEW_LENGTH",
    "make_preview",
]

HAIKU_MODEL = "claude-3-5-haiku-20241022"
SONNET_MODEL = "claude-3-5-sonnet-20241022"
OPUS_MODEL = "claude-3-opus-20240229"
DEFAULT_CLIENT_MODEL = HAIKU_MODEL
DEFAULT_HOST_MODEL = SONNET_MODEL
HISTORY_LIMIT = 100
PREVIEW_LENGTH = 100


@dataclass(frozen=True, slots=True)
class ModelChoice:
    """A selectable model and its human-readable label."""

    model_id: str
    label: str


MODEL_CHOICES: tuple[ModelChoice, ...] = (
    ModelChoice(HAIKU_MODEL, "Claude 3.5 Haiku (Fast & Cost-Effective)"),
    ModelChoice(SONNET_MODEL, "Claude 3.5 Sonnet (Balanced)"),
    ModelChoice(OPUS_MODEL, "Claude 3 Opus (Most Capable)"),
)


@dataclass(frozen=True, slots=True)
class Template:
    """Named prompt definition, optionally bound to a global hotkey.

    ``id`` is ``None`` only for drafts that have not yet been sent to the
    host; the host assigns identifiers on first save.
    """

    name: str
    prompt: str
    id: str | None = None
    description: str = ""
    hotkey: str | None = None
    created_at: str | None = None

    @property
    def has_hotkey(self) -> bool:
        return bool(self.hotkey and self.hotkey.strip())

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Template":
        hotkey = payload.get("hotkey")
        return cls(
            id=_optional_str(payload.get("id")),
            name=str(payload.get("name") or ""),
            description=str(payload.get("description") or ""),
            prompt=str(payload.get("prompt") or ""),
            hotkey=str(hotkey) if hotkey else None,
            created_at=_optional_str(payload.get("created_at")),
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "prompt": self.prompt,
        }
        if self.id is not None:
            payload["id"] = self.id
        if self.hotkey:
            payload["hotkey"] = self.hotkey
        if self.created_at is not None:
            payload["created_at"] = self.created_at
        return payload


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """Read-only record of one past text-processing invocation."""

    timestamp: str
    template_name: str
    source_preview: str = ""
    result_preview: str = ""
    full_source: str = ""
    full_result: str = ""

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "HistoryEntry":
        return cls(
            timestamp=str(payload.get("timestamp") or ""),
            template_name=str(payload.get("template_name") or ""),
            source_preview=str(payload.get("source_preview") or ""),
            result_preview=str(payload.get("result_preview") or ""),
            full_source=str(payload.get("full_source") or ""),
            full_result=str(payload.get("full_result") or ""),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "template_name": self.template_name,
            "source_preview": self.source_preview,
            "result_preview": self.result_preview,
            "full_source": self.full_source,
            "full_result": self.full_result,
        }


@dataclass(slots=True)
class SettingsSnapshot:
    """Client-side view of the host's settings."""

    default_model: str = DEFAULT_CLIENT_MODEL
    autostart_enabled: bool = False
    credential_present: bool = False


def make_preview(text: str, limit: int = PREVIEW_LENGTH) -> str:
    """Return ``text`` truncated to ``limit`` characters with an ellipsis."""

    if len(text) > limit:
        return f"{text[:limit]}..."
    return text


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)

"""Pure projection of store state into view models.

Nothing here owns state or talks to the bridge: every function reads the
stores and returns immutable view models. Entity text (template names,
previews, prompts, model output) is HTML-escaped because the Qt labels that
display it interpret rich text.
"""

from __future__ import annotations

import html
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from ...core.models import MODEL_CHOICES, PREVIEW_LENGTH, make_preview
from ..domain.history_store import format_time

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ...core.models import HistoryEntry, Template
    from ..application.session import AppSession
    from ..domain.credential_store import CredentialStore
    from ..domain.history_store import HistoryStore
    from ..domain.settings_store import SettingsStore
    from ..domain.template_store import TemplateStore

NO_HOTKEYS_HINT = "No hotkeys configured. Go to Settings to create templates."
HOTKEYS_ACTIVE_HINT = "Hotkeys are active! Copy text and press your configured hotkey."
NO_DESCRIPTION = "No description"
NO_TEMPLATES_MESSAGE = "No templates yet. Create your first template to get started!"
HISTORY_EMPTY_MESSAGE = "No history entries yet."
HISTORY_EMPTY_HINT = "History will appear here after you process text using hotkeys."
HISTORY_NO_MATCHES = "No entries match your search."
HISTORY_LOADING_MESSAGE = "Loading history..."
EXPAND_SYMBOL = "+"
COLLAPSE_SYMBOL = "−"


def escape(text: str | None) -> str:
    return html.escape(text or "", quote=True)


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class StatusView:
    template_count: int
    active_hotkeys: int
    hotkeys_active: bool
    hint: str
    hint_kind: str
    load_error: str | None = None


def project_status(templates: TemplateStore) -> StatusView:
    """Summarize template and hotkey counts for the home page."""

    active = templates.active_hotkey_count
    hotkeys_active = active > 0
    return StatusView(
        template_count=len(templates.templates),
        active_hotkeys=active,
        hotkeys_active=hotkeys_active,
        hint=HOTKEYS_ACTIVE_HINT if hotkeys_active else NO_HOTKEYS_HINT,
        hint_kind="success" if hotkeys_active else "warning",
        load_error=escape(templates.load_error) if templates.load_error else None,
    )


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class HistoryRowView:
    entry_id: str
    template_name: str
    time_label: str
    source_preview: str
    result_preview: str
    expanded: bool
    toggle_symbol: str
    toggle_label: str
    full_source: str | None = None
    full_result: str | None = None


@dataclass(frozen=True, slots=True)
class HistoryView:
    rows: tuple[HistoryRowView, ...]
    query: str
    total_count: int
    visible_count: int
    can_clear: bool
    empty_message: str | None
    empty_hint: str | None


def project_history_row(
    entry: HistoryEntry,
    *,
    expanded: bool,
    now: datetime | None = None,
) -> HistoryRowView:
    return HistoryRowView(
        entry_id=entry.timestamp,
        template_name=escape(entry.template_name),
        time_label=escape(format_time(entry.timestamp, now)),
        source_preview=escape(entry.source_preview),
        result_preview=escape(entry.result_preview),
        expanded=expanded,
        toggle_symbol=COLLAPSE_SYMBOL if expanded else EXPAND_SYMBOL,
        toggle_label="Collapse" if expanded else "Expand",
        full_source=escape(entry.full_source) if expanded else None,
        full_result=escape(entry.full_result) if expanded else None,
    )


def project_history(history: HistoryStore, *, now: datetime | None = None) -> HistoryView:
    """Project the visible history rows.

    Only the expanded row carries its full text.
    """

    visible = history.visible_entries
    rows = tuple(
        project_history_row(entry, expanded=history.is_expanded(entry.timestamp), now=now)
        for entry in visible
    )
    total = len(history.entries)

    empty_message: str | None = None
    empty_hint: str | None = None
    if not history.loaded and history.busy:
        empty_message = HISTORY_LOADING_MESSAGE
    elif total == 0:
        empty_message = HISTORY_EMPTY_MESSAGE
        empty_hint = HISTORY_EMPTY_HINT
    elif not rows:
        empty_message = HISTORY_NO_MATCHES

    return HistoryView(
        rows=rows,
        query=escape(history.search_query),
        total_count=total,
        visible_count=len(rows),
        can_clear=total > 0 and not history.clearing,
        empty_message=empty_message,
        empty_hint=empty_hint,
    )


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ModelOptionView:
    model_id: str
    label: str
    selected: bool


@dataclass(frozen=True, slots=True)
class TemplateRowView:
    template_id: str | None
    name: str
    description: str
    prompt_preview: str
    hotkey: str | None
    pending: bool


@dataclass(frozen=True, slots=True)
class CredentialView:
    input_text: str
    input_enabled: bool
    visible: bool
    visibility_label: str
    present: bool
    hint: str
    can_save: bool
    can_test: bool
    can_delete: bool
    save_label: str
    test_label: str
    delete_label: str
    message: str
    message_kind: str | None


@dataclass(frozen=True, slots=True)
class SettingsView:
    model_options: tuple[ModelOptionView, ...]
    model_pending: bool
    autostart_enabled: bool
    autostart_control_enabled: bool
    credential: CredentialView
    templates: tuple[TemplateRowView, ...]
    templates_empty_message: str | None
    can_create_template: bool


def project_model_options(settings: SettingsStore) -> tuple[ModelOptionView, ...]:
    """Known models in display order; an unlisted host value is appended."""

    current = settings.default_model
    options = [
        ModelOptionView(choice.model_id, choice.label, choice.model_id == current)
        for choice in MODEL_CHOICES
    ]
    if all(option.model_id != current for option in options):
        options.append(ModelOptionView(current, current, True))
    return tuple(options)


def project_template_row(template: Template, *, pending: bool = False) -> TemplateRowView:
    return TemplateRowView(
        template_id=template.id,
        name=escape(template.name),
        description=escape(template.description) if template.description else NO_DESCRIPTION,
        prompt_preview=escape(make_preview(template.prompt, PREVIEW_LENGTH)),
        hotkey=escape(template.hotkey) if template.has_hotkey else None,
        pending=pending,
    )


def project_credential(credential: CredentialStore) -> CredentialView:
    phase = credential.phase.value
    return CredentialView(
        input_text=escape(credential.display_buffer),
        input_enabled=credential.input_enabled,
        visible=credential.visible,
        visibility_label="Hide key" if credential.visible else "Show key",
        present=credential.present,
        hint=escape(credential.hint),
        can_save=credential.can_save,
        can_test=credential.can_test,
        can_delete=credential.can_delete,
        save_label="Saving..." if phase == "saving" else "Save",
        test_label="Testing..." if phase == "testing" else "Test",
        delete_label="Deleting..." if phase == "deleting" else "Delete",
        message=escape(credential.message),
        message_kind=credential.message_kind.value if credential.message_kind else None,
    )


def project_settings(
    settings: SettingsStore,
    credential: CredentialStore,
    templates: TemplateStore,
) -> SettingsView:
    rows = tuple(
        project_template_row(
            template,
            pending=template.id is not None and templates.is_pending(template.id),
        )
        for template in templates.templates
    )
    return SettingsView(
        model_options=project_model_options(settings),
        model_pending=settings.model_pending,
        autostart_enabled=settings.autostart_enabled,
        autostart_control_enabled=not settings.autostart_pending,
        credential=project_credential(credential),
        templates=rows,
        templates_empty_message=None if rows else NO_TEMPLATES_MESSAGE,
        can_create_template=not templates.creating,
    )


# ---------------------------------------------------------------------------
# Whole session
# ---------------------------------------------------------------------------


def project_session(session: AppSession, *, now: datetime | None = None) -> dict[str, Any]:
    """Return every view model as plain data, suitable for JSON output.

    The credential edit buffer is never included, masked or otherwise.
    """

    settings_view = project_settings(session.settings, session.credential, session.templates)
    settings_payload = asdict(settings_view)
    settings_payload["credential"].pop("input_text", None)
    return {
        "status": asdict(project_status(session.templates)),
        "history": asdict(project_history(session.history, now=now)),
        "settings": settings_payload,
    }


__all__ = [
    "COLLAPSE_SYMBOL",
    "CredentialView",
    "EXPAND_SYMBOL",
    "HISTORY_EMPTY_MESSAGE",
    "HISTORY_NO_MATCHES",
    "HOTKEYS_ACTIVE_HINT",
    "HistoryRowView",
    "HistoryView",
    "ModelOptionView",
    "NO_DESCRIPTION",
    "NO_HOTKEYS_HINT",
    "SettingsView",
    "StatusView",
    "TemplateRowView",
    "escape",
    "project_credential",
    "project_history",
    "project_history_row",
    "project_model_options",
    "project_session",
    "project_settings",
    "project_status",
    "project_template_row",
]

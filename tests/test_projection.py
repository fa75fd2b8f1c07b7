"""Tests for the view-model projection functions."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from hotkey_refiner.core.models import MODEL_CHOICES, SONNET_MODEL
from hotkey_refiner.ui.application.session import AppSession
from hotkey_refiner.ui.domain.credential_store import CredentialStore
from hotkey_refiner.ui.domain.history_store import HistoryStore
from hotkey_refiner.ui.domain.settings_store import SettingsStore
from hotkey_refiner.ui.domain.template_store import TemplateStore
from hotkey_refiner.ui.events import EventBus
from hotkey_refiner.ui.presentation.projection import (
    COLLAPSE_SYMBOL,
    EXPAND_SYMBOL,
    HISTORY_EMPTY_MESSAGE,
    HISTORY_NO_MATCHES,
    HOTKEYS_ACTIVE_HINT,
    NO_DESCRIPTION,
    NO_HOTKEYS_HINT,
    project_credential,
    project_history,
    project_model_options,
    project_session,
    project_settings,
    project_status,
)

from helpers import RecordingBridge, history_payload, template_payload

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


class TestStatus:
    @pytest.mark.asyncio
    async def test_no_hotkeys_shows_warning_hint(self, bridge: RecordingBridge, event_bus: EventBus) -> None:
        bridge.responses["get_templates"] = [template_payload("a", "Alpha")]
        templates = TemplateStore(bridge, event_bus)
        await templates.load()

        view = project_status(templates)

        assert view.template_count == 1
        assert view.active_hotkeys == 0
        assert view.hint == NO_HOTKEYS_HINT
        assert view.hint_kind == "warning"

    @pytest.mark.asyncio
    async def test_bound_hotkey_shows_success_hint(self, bridge: RecordingBridge, event_bus: EventBus) -> None:
        bridge.responses["get_templates"] = [template_payload("a", "Alpha", hotkey="Cmd+Shift+]")]
        templates = TemplateStore(bridge, event_bus)
        await templates.load()

        view = project_status(templates)

        assert view.hotkeys_active is True
        assert view.hint == HOTKEYS_ACTIVE_HINT
        assert view.hint_kind == "success"


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


class TestHistory:
    @pytest.mark.asyncio
    async def test_entity_text_is_escaped(self, bridge: RecordingBridge, event_bus: EventBus) -> None:
        bridge.responses["get_history"] = [
            history_payload(
                "2024-05-01T11:00:00+00:00",
                "<b>Bold</b>",
                source="<script>alert(1)</script>",
                result='say "hi" & bye',
            )
        ]
        history = HistoryStore(bridge, event_bus)
        await history.load()

        row = project_history(history, now=NOW).rows[0]

        assert row.template_name == "&lt;b&gt;Bold&lt;/b&gt;"
        assert "<script>" not in row.source_preview
        assert row.result_preview == "say &quot;hi&quot; &amp; bye"
        assert row.time_label == "1h ago"

    @pytest.mark.asyncio
    async def test_only_expanded_row_carries_full_text(
        self, bridge: RecordingBridge, event_bus: EventBus
    ) -> None:
        bridge.responses["get_history"] = [
            history_payload("t1", "One", source="full one"),
            history_payload("t2", "Two", source="full two"),
        ]
        history = HistoryStore(bridge, event_bus)
        await history.load()
        history.toggle_expand("t2")

        rows = project_history(history, now=NOW).rows

        assert rows[0].expanded is False
        assert rows[0].full_source is None
        assert rows[0].toggle_symbol == EXPAND_SYMBOL
        assert rows[1].expanded is True
        assert rows[1].full_source == "full two"
        assert rows[1].toggle_symbol == COLLAPSE_SYMBOL
        assert rows[1].toggle_label == "Collapse"

    @pytest.mark.asyncio
    async def test_empty_states(self, bridge: RecordingBridge, event_bus: EventBus) -> None:
        bridge.responses["get_history"] = []
        history = HistoryStore(bridge, event_bus)
        await history.load()

        view = project_history(history, now=NOW)
        assert view.empty_message == HISTORY_EMPTY_MESSAGE
        assert view.can_clear is False

        bridge.responses["get_history"] = [history_payload("t1", "One")]
        await history.load()
        history.search("zzz")
        view = project_history(history, now=NOW)
        assert view.empty_message == HISTORY_NO_MATCHES
        assert view.total_count == 1
        assert view.visible_count == 0
        assert view.can_clear is True


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class TestSettings:
    def test_model_options_mark_selection(self, bridge: RecordingBridge, event_bus: EventBus) -> None:
        settings = SettingsStore(bridge, event_bus)
        options = project_model_options(settings)
        assert [option.model_id for option in options] == [choice.model_id for choice in MODEL_CHOICES]
        assert sum(option.selected for option in options) == 1

    @pytest.mark.asyncio
    async def test_unlisted_model_is_appended(self, bridge: RecordingBridge, event_bus: EventBus) -> None:
        bridge.responses.update({"get_default_model": "custom<model>", "is_autostart_enabled": False})
        settings = SettingsStore(bridge, event_bus)
        await settings.load()

        options = project_model_options(settings)

        assert len(options) == len(MODEL_CHOICES) + 1
        assert options[-1].selected is True
        # Combo box items are plain text, so labels are never escaped.
        assert options[-1].label == "custom<model>"
        assert options[0].label == "Claude 3.5 Haiku (Fast & Cost-Effective)"

    @pytest.mark.asyncio
    async def test_template_rows(self, bridge: RecordingBridge, event_bus: EventBus) -> None:
        bridge.responses["get_templates"] = [
            template_payload("a", "A & B", prompt="x" * 150),
            template_payload("b", "Beta", description="Tidy up", hotkey="Cmd+B"),
        ]
        templates = TemplateStore(bridge, event_bus)
        await templates.load()

        view = project_settings(SettingsStore(bridge, event_bus), CredentialStore(bridge, event_bus), templates)

        first, second = view.templates
        assert first.name == "A &amp; B"
        assert first.description == NO_DESCRIPTION
        assert first.prompt_preview == "x" * 100 + "..."
        assert first.hotkey is None
        assert second.hotkey == "Cmd+B"
        assert view.templates_empty_message is None

    def test_credential_buffer_is_masked(self, bridge: RecordingBridge, event_bus: EventBus) -> None:
        credential = CredentialStore(bridge, event_bus)
        credential.set_buffer("sk-abc")

        view = project_credential(credential)

        assert "sk-abc" not in view.input_text
        assert view.visibility_label == "Show key"
        assert view.can_save is True

        credential.toggle_visibility()
        assert project_credential(credential).input_text == "sk-abc"


# ---------------------------------------------------------------------------
# Whole session
# ---------------------------------------------------------------------------


class TestProjectSession:
    @pytest.mark.asyncio
    async def test_session_payload_is_json_and_omits_buffer(self, bridge: RecordingBridge) -> None:
        bridge.responses.update(
            {
                "get_templates": [],
                "get_history": [],
                "get_default_model": SONNET_MODEL,
                "is_autostart_enabled": False,
                "get_api_key": "sk-ant-stored-key",
            }
        )
        session = AppSession(bridge)
        await session.activate()
        session.credential.set_buffer("sk-typed-but-unsaved")
        session.credential.toggle_visibility()

        payload = json.dumps(project_session(session, now=NOW))

        assert "sk-typed-but-unsaved" not in payload
        assert "sk-ant-stored-key" not in payload
        assert '"present": true' in payload

"""Tests for MainWindow wiring between stores and views."""

from __future__ import annotations

import pytest


def _ensure_qapp() -> None:
    """Create a minimal QApplication when PySide6 is available."""
    try:
        from PySide6.QtWidgets import QApplication
    except Exception:  # pragma: no cover - PySide6 optional in tests
        return
    if QApplication.instance() is None:  # pragma: no cover
        QApplication([])


# Ensure QApp exists before importing MainWindow
_ensure_qapp()

from hotkey_refiner.core.models import SONNET_MODEL
from hotkey_refiner.ui.application.session import AppSession
from hotkey_refiner.ui.presentation.main_window import WINDOW_APP_NAME, MainWindow
from hotkey_refiner.ui.presentation.projection import HOTKEYS_ACTIVE_HINT, NO_HOTKEYS_HINT

from helpers import ManualScheduler, RecordingBridge, history_payload, template_payload


@pytest.fixture
def session(bridge: RecordingBridge, scheduler: ManualScheduler) -> AppSession:
    bridge.responses.update(
        {
            "get_templates": [template_payload("a", "Alpha", hotkey="Cmd+Shift+A")],
            "get_history": [
                history_payload("t1", "Alpha", source="first"),
                history_payload("t2", "Beta", source="second"),
            ],
            "get_default_model": SONNET_MODEL,
            "is_autostart_enabled": False,
            "get_api_key": None,
            "test_api_key": True,
        }
    )
    return AppSession(bridge, scheduler=scheduler)


@pytest.fixture
def window(session: AppSession) -> MainWindow:
    return MainWindow(session, skip_widgets=True)


class TestInitialState:
    def test_views_before_activation(self, window: MainWindow) -> None:
        assert window.status_view.template_count == 0
        assert window.status_view.hint == NO_HOTKEYS_HINT
        assert window.history_view.rows == ()
        assert window.last_error == ""

    def test_app_name(self) -> None:
        assert WINDOW_APP_NAME == "Hotkey Prompt Refiner"


class TestEventDrivenRefresh:
    @pytest.mark.asyncio
    async def test_activation_refreshes_views(self, window: MainWindow, session: AppSession) -> None:
        await session.activate()

        assert window.status_view.active_hotkeys == 1
        assert window.status_view.hint == HOTKEYS_ACTIVE_HINT
        assert window.history_view.total_count == 2
        assert [row.name for row in window.settings_view.templates] == ["Alpha"]

    @pytest.mark.asyncio
    async def test_search_and_expand_update_history_view(self, window: MainWindow, session: AppSession) -> None:
        await session.activate()

        window.search_history("bet")
        assert [row.template_name for row in window.history_view.rows] == ["Beta"]

        window.toggle_history_entry("t2")
        assert window.history_view.rows[0].expanded is True
        assert window.history_view.rows[0].full_source == "second"

    @pytest.mark.asyncio
    async def test_load_failure_sets_last_error(
        self, window: MainWindow, session: AppSession, bridge: RecordingBridge
    ) -> None:
        bridge.failures["get_templates"] = "host unavailable"
        await session.activate()
        assert window.last_error == "templates: could not load (host unavailable)"

    @pytest.mark.asyncio
    async def test_mutation_failure_sets_last_error(
        self, window: MainWindow, session: AppSession, bridge: RecordingBridge
    ) -> None:
        await session.activate()
        bridge.failures["clear_history"] = "disk full"

        assert await window.clear_history() is False
        assert window.last_error == "history: clear failed (disk full)"
        assert window.history_view.total_count == 2


class TestActions:
    @pytest.mark.asyncio
    async def test_credential_actions(self, window: MainWindow, bridge: RecordingBridge) -> None:
        window.edit_credential("sk-ant-typed")
        assert window.settings_view.credential.can_save is True
        assert "sk-ant-typed" not in window.settings_view.credential.input_text

        window.toggle_credential_visibility()
        assert window.settings_view.credential.input_text == "sk-ant-typed"

        assert await window.test_credential() is True
        assert window.settings_view.credential.message == "API key is valid"
        assert bridge.calls_for("test_api_key") == [{"api_key": "sk-ant-typed"}]

    @pytest.mark.asyncio
    async def test_create_template_strips_fields(self, window: MainWindow, bridge: RecordingBridge) -> None:
        assert await window.create_template("  Fix  ", "Fix grammar.", hotkey="  ") is True
        sent = bridge.calls_for("save_template")[0]["template"]
        assert sent["name"] == "Fix"
        assert "hotkey" not in sent

    @pytest.mark.asyncio
    async def test_edit_template_saves_over_stored_one(
        self, window: MainWindow, session: AppSession, bridge: RecordingBridge
    ) -> None:
        await session.activate()

        template = window.begin_template_edit("a")
        assert template is not None
        assert template.hotkey == "Cmd+Shift+A"
        assert window.editing_template_id == "a"

        saved = await window.update_template(
            "a", "  Alpha 2 ", "Tighten the prose.", description=" terse ", hotkey="Cmd+Shift+B"
        )

        assert saved is True
        sent = bridge.calls_for("save_template")[0]["template"]
        assert sent["id"] == "a"
        assert sent["name"] == "Alpha 2"
        assert sent["description"] == "terse"
        assert sent["hotkey"] == "Cmd+Shift+B"
        assert window.editing_template_id is None

    @pytest.mark.asyncio
    async def test_edit_unknown_template_is_ignored(self, window: MainWindow, session: AppSession) -> None:
        await session.activate()
        assert window.begin_template_edit("missing") is None
        assert window.editing_template_id is None

    @pytest.mark.asyncio
    async def test_failed_edit_keeps_editor_open(
        self, window: MainWindow, session: AppSession, bridge: RecordingBridge
    ) -> None:
        await session.activate()
        window.begin_template_edit("a")
        bridge.failures["save_template"] = "Hotkey 'Cmd+Shift+B' is already bound"

        assert await window.update_template("a", "Alpha", "p", hotkey="Cmd+Shift+B") is False
        assert window.editing_template_id == "a"
        assert window.last_error.startswith("templates: update failed")

    @pytest.mark.asyncio
    async def test_deleting_edited_template_closes_editor(
        self, window: MainWindow, session: AppSession
    ) -> None:
        await session.activate()
        window.begin_template_edit("a")
        await window.delete_template("a")
        assert window.editing_template_id is None

    @pytest.mark.asyncio
    async def test_copy_history_text_is_raw(
        self, window: MainWindow, session: AppSession, bridge: RecordingBridge
    ) -> None:
        raw = "<b>line one</b>\n    indented & kept"
        bridge.responses["get_history"] = [history_payload("t1", "Alpha", source=raw, result="out")]
        await session.activate()

        assert window.copy_history_text("t1", "source") == raw
        assert window.copy_history_text("t1", "result") == "out"
        assert window.copy_history_text("gone", "source") == ""
        with pytest.raises(ValueError):
            window.copy_history_text("t1", "preview")

    @pytest.mark.asyncio
    async def test_select_model_is_debounced(
        self, window: MainWindow, session: AppSession, scheduler: ManualScheduler, bridge: RecordingBridge
    ) -> None:
        window.select_model("claude-3-opus-20240229")
        assert window.settings_view.model_pending is True
        scheduler.advance_ms(500)
        await session.settings.drain()
        assert bridge.calls_for("set_default_model") == [{"model": "claude-3-opus-20240229"}]
        assert window.settings_view.model_pending is False

    @pytest.mark.asyncio
    async def test_close_disposes_session(self, window: MainWindow, session: AppSession) -> None:
        window.closeEvent(None)
        await window.wait_idle()
        assert session.disposed is True

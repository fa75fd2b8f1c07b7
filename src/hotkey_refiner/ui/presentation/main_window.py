"""Main window: status, history and settings pages over the client stores.

The window is a thin shell. It subscribes to store events, re-projects the
stores into view models, pushes those into widgets, and forwards user
actions to the stores. It never touches the bridge.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Awaitable

from ...core.models import Template
from ..events import Event, MutationFailed, StoreLoadFailed
from .projection import (
    HistoryView,
    SettingsView,
    StatusView,
    escape,
    project_history,
    project_settings,
    project_status,
)

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ..application.session import AppSession

LOGGER = logging.getLogger(__name__)

WINDOW_APP_NAME = "Hotkey Prompt Refiner"

# Qt imports with headless fallback
try:  # pragma: no cover - PySide6 optional in CI
    from PySide6.QtCore import Qt
    from PySide6.QtGui import QGuiApplication
    from PySide6.QtWidgets import (
        QCheckBox,
        QComboBox,
        QFormLayout,
        QFrame,
        QHBoxLayout,
        QLabel,
        QLineEdit,
        QMainWindow,
        QPlainTextEdit,
        QPushButton,
        QScrollArea,
        QTabWidget,
        QVBoxLayout,
        QWidget,
    )

    _QT_AVAILABLE = True
except Exception:  # pragma: no cover - runtime stubs keep tests headless
    _QT_AVAILABLE = False
    Qt = None  # type: ignore[assignment,misc]
    QGuiApplication = None  # type: ignore[assignment,misc]

    class QMainWindow:  # type: ignore[no-redef]
        """Stub for headless testing."""

        def __init__(self, *args: object, **kwargs: object) -> None:
            pass

        def setWindowTitle(self, title: str) -> None:
            pass

        def setCentralWidget(self, widget: Any) -> None:
            pass

        def show(self) -> None:
            pass

        def close(self) -> None:
            pass


class MainWindow(QMainWindow):
    """Thin presentation shell for the refiner's three pages.

    Example:
        session = AppSession(bridge, config=config)
        window = MainWindow(session)
        window.show()
        await session.activate()
    """

    def __init__(self, session: AppSession, *, skip_widgets: bool = False) -> None:
        """Initialize the main window.

        Args:
            session: The active session owning the stores.
            skip_widgets: If True, skip widget creation (for testing).
        """
        super().__init__()
        self._session = session
        self._async_loop: asyncio.AbstractEventLoop | None = None
        self._tasks: set[asyncio.Future[Any]] = set()
        self._widgets_ready = False
        self._w: dict[str, Any] = {}

        self._status_view: StatusView = project_status(session.templates)
        self._history_view: HistoryView = project_history(session.history)
        self._settings_view: SettingsView = self._project_settings()
        self._last_error = ""
        self._editing_id: str | None = None

        self.setWindowTitle(WINDOW_APP_NAME)
        if not skip_widgets and _QT_AVAILABLE:
            self._create_widgets()

        self._subscribe_to_events()
        self.refresh()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def session(self) -> AppSession:
        return self._session

    @property
    def status_view(self) -> StatusView:
        return self._status_view

    @property
    def history_view(self) -> HistoryView:
        return self._history_view

    @property
    def settings_view(self) -> SettingsView:
        return self._settings_view

    @property
    def last_error(self) -> str:
        """The most recent load or mutation failure shown to the user."""
        return self._last_error

    @property
    def editing_template_id(self) -> str | None:
        """Id of the template loaded into the editor form, if any."""
        return self._editing_id

    # ------------------------------------------------------------------
    # Event Subscriptions
    # ------------------------------------------------------------------

    def _subscribe_to_events(self) -> None:
        self._session.subscribe(Event, self._on_store_event)
        LOGGER.debug("MainWindow: subscribed to store events")

    def _on_store_event(self, event: Event) -> None:
        if isinstance(event, MutationFailed):
            self._last_error = f"{event.store}: {event.operation} failed ({event.error})"
        elif isinstance(event, StoreLoadFailed):
            self._last_error = f"{event.store}: could not load ({event.error})"
        self.refresh()

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    def refresh(self) -> None:
        """Re-project every store and push the views into the widgets."""
        self._status_view = project_status(self._session.templates)
        self._history_view = project_history(self._session.history)
        self._settings_view = self._project_settings()
        if self._widgets_ready:
            self._render_status()
            self._render_history()
            self._render_settings()

    def _project_settings(self) -> SettingsView:
        session = self._session
        return project_settings(session.settings, session.credential, session.templates)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def search_history(self, query: str) -> None:
        self._session.history.search(query)

    def toggle_history_entry(self, entry_id: str) -> None:
        self._session.history.toggle_expand(entry_id)

    def clear_history(self) -> asyncio.Future[Any]:
        return self.schedule_coroutine(self._session.history.clear_all())

    def select_model(self, model_id: str) -> None:
        self._session.settings.select_model(model_id)

    def set_autostart(self, enabled: bool) -> asyncio.Future[Any]:
        return self.schedule_coroutine(self._session.settings.set_autostart(enabled))

    def edit_credential(self, text: str) -> None:
        self._session.credential.set_buffer(text)

    def toggle_credential_visibility(self) -> None:
        self._session.credential.toggle_visibility()
        self.refresh()

    def save_credential(self) -> asyncio.Future[Any]:
        return self.schedule_coroutine(self._session.credential.save())

    def test_credential(self) -> asyncio.Future[Any]:
        return self.schedule_coroutine(self._session.credential.test())

    def delete_credential(self) -> asyncio.Future[Any]:
        return self.schedule_coroutine(self._session.credential.delete())

    def create_template(
        self,
        name: str,
        prompt: str,
        *,
        description: str = "",
        hotkey: str | None = None,
    ) -> asyncio.Future[Any]:
        draft = Template(**_form_fields(name, prompt, description, hotkey))
        return self.schedule_coroutine(self._session.templates.create(draft))

    def begin_template_edit(self, template_id: str) -> Template | None:
        """Load a stored template into the editor form."""
        template = self._session.templates.get(template_id)
        if template is None:
            LOGGER.debug("MainWindow: no template %s to edit", template_id)
            return None
        self._editing_id = template_id
        if self._widgets_ready:
            self._w["tpl_name"].setText(template.name)
            self._w["tpl_description"].setText(template.description)
            self._w["tpl_prompt"].setPlainText(template.prompt)
            self._w["tpl_hotkey"].setText(template.hotkey or "")
        self.refresh()
        return template

    def cancel_template_edit(self) -> None:
        self._editing_id = None
        self._reset_template_form()
        self.refresh()

    def update_template(
        self,
        template_id: str,
        name: str,
        prompt: str,
        *,
        description: str = "",
        hotkey: str | None = None,
    ) -> asyncio.Future[Any]:
        """Save edited fields over the stored template, keeping its id and creation time."""
        base = self._session.templates.get(template_id) or Template(name="", prompt="", id=template_id)
        edited = replace(base, **_form_fields(name, prompt, description, hotkey))
        return self.schedule_coroutine(self._save_edit(edited))

    async def _save_edit(self, template: Template) -> bool:
        saved = await self._session.templates.update(template)
        if saved and self._editing_id == template.id:
            self._editing_id = None
            self._reset_template_form()
            self.refresh()
        return saved

    def delete_template(self, template_id: str) -> asyncio.Future[Any]:
        if template_id == self._editing_id:
            self.cancel_template_edit()
        return self.schedule_coroutine(self._session.templates.delete(template_id))

    def copy_history_text(self, entry_id: str, part: str) -> str:
        """Put the unabridged input (``"source"``) or output (``"result"``) on the clipboard."""
        if part not in ("source", "result"):
            raise ValueError(f"unknown history part {part!r}")
        entry = self._session.history.get(entry_id)
        if entry is None:
            return ""
        text = entry.full_source if part == "source" else entry.full_result
        if QGuiApplication is not None and QGuiApplication.instance() is not None:
            QGuiApplication.clipboard().setText(text)
        return text

    # ------------------------------------------------------------------
    # Async helpers
    # ------------------------------------------------------------------

    def _get_event_loop(self) -> asyncio.AbstractEventLoop:
        if self._async_loop is None:
            try:
                self._async_loop = asyncio.get_running_loop()
            except RuntimeError:
                self._async_loop = asyncio.get_event_loop()
        return self._async_loop

    def schedule_coroutine(self, coro: Awaitable[Any]) -> asyncio.Future[Any]:
        """Schedule a store operation on the UI event loop."""
        future = asyncio.ensure_future(coro, loop=self._get_event_loop())
        self._tasks.add(future)
        future.add_done_callback(self._tasks.discard)
        return future

    async def wait_idle(self) -> None:
        """Wait until every scheduled store operation has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Widget Creation
    # ------------------------------------------------------------------

    def _create_widgets(self) -> None:
        tabs = QTabWidget()
        tabs.addTab(self._build_status_page(), "Home")
        tabs.addTab(self._build_history_page(), "History")
        tabs.addTab(self._build_settings_page(), "Settings")
        self.setCentralWidget(tabs)
        self._w["tabs"] = tabs
        self._widgets_ready = True
        LOGGER.debug("MainWindow: created widgets")

    def _build_status_page(self) -> Any:
        page = QWidget()
        layout = QVBoxLayout(page)
        layout.addWidget(QLabel("AI-powered text processing via global hotkeys"))
        form = QFormLayout()
        self._w["template_count"] = QLabel()
        self._w["hotkey_count"] = QLabel()
        form.addRow("Templates:", self._w["template_count"])
        form.addRow("Active Hotkeys:", self._w["hotkey_count"])
        layout.addLayout(form)
        self._w["status_hint"] = _rich_label()
        layout.addWidget(self._w["status_hint"])
        self._w["error_label"] = _rich_label()
        layout.addWidget(self._w["error_label"])
        layout.addStretch(1)
        return page

    def _build_history_page(self) -> Any:
        page = QWidget()
        layout = QVBoxLayout(page)
        controls = QHBoxLayout()
        search = QLineEdit()
        search.setPlaceholderText("Search by template name...")
        search.textChanged.connect(self.search_history)
        clear = QPushButton("Clear All")
        clear.clicked.connect(lambda: self.clear_history())
        controls.addWidget(search, 1)
        controls.addWidget(clear)
        layout.addLayout(controls)
        self._w["history_search"] = search
        self._w["history_clear"] = clear

        self._w["history_empty"] = _rich_label()
        layout.addWidget(self._w["history_empty"])

        container = QWidget()
        self._w["history_rows"] = QVBoxLayout(container)
        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setWidget(container)
        layout.addWidget(scroll, 1)
        return page

    def _build_settings_page(self) -> Any:
        page = QWidget()
        layout = QVBoxLayout(page)

        # Model and autostart
        form = QFormLayout()
        model = QComboBox()
        model.currentIndexChanged.connect(self._on_model_index_changed)
        autostart = QCheckBox("Launch at login")
        autostart.toggled.connect(lambda checked: self.set_autostart(bool(checked)))
        form.addRow("Default model:", model)
        form.addRow("", autostart)
        layout.addLayout(form)
        self._w["model"] = model
        self._w["autostart"] = autostart

        # Credential
        layout.addWidget(QLabel("Anthropic API Key"))
        key_row = QHBoxLayout()
        key_input = QLineEdit()
        key_input.setPlaceholderText("sk-ant-...")
        key_input.setEchoMode(QLineEdit.EchoMode.Password)
        key_input.textEdited.connect(self.edit_credential)
        show = QPushButton("Show key")
        show.clicked.connect(lambda: self.toggle_credential_visibility())
        key_row.addWidget(key_input, 1)
        key_row.addWidget(show)
        layout.addLayout(key_row)
        buttons = QHBoxLayout()
        save = QPushButton("Save")
        save.clicked.connect(lambda: self.save_credential())
        test = QPushButton("Test")
        test.clicked.connect(lambda: self.test_credential())
        delete = QPushButton("Delete")
        delete.clicked.connect(lambda: self.delete_credential())
        for button in (save, test, delete):
            buttons.addWidget(button)
        layout.addLayout(buttons)
        self._w["key_hint"] = _rich_label()
        self._w["key_message"] = _rich_label()
        layout.addWidget(self._w["key_hint"])
        layout.addWidget(self._w["key_message"])
        self._w.update(
            key_input=key_input, key_show=show, key_save=save, key_test=test, key_delete=delete
        )

        # Templates
        layout.addWidget(QLabel("Prompt Templates"))
        self._w["templates_empty"] = _rich_label()
        layout.addWidget(self._w["templates_empty"])
        container = QWidget()
        self._w["template_rows"] = QVBoxLayout(container)
        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setWidget(container)
        layout.addWidget(scroll, 1)

        editor = QFormLayout()
        name = QLineEdit()
        description = QLineEdit()
        prompt = QPlainTextEdit()
        hotkey = QLineEdit()
        hotkey.setPlaceholderText("Cmd+Shift+]")
        editor.addRow("Name:", name)
        editor.addRow("Description:", description)
        editor.addRow("Prompt:", prompt)
        editor.addRow("Hotkey:", hotkey)
        add = QPushButton("Add Template")
        add.clicked.connect(self._on_add_template_clicked)
        cancel = QPushButton("Cancel")
        cancel.clicked.connect(lambda: self.cancel_template_edit())
        actions = QHBoxLayout()
        actions.addWidget(add)
        actions.addWidget(cancel)
        editor.addRow("", actions)
        layout.addLayout(editor)
        self._w.update(
            tpl_name=name,
            tpl_description=description,
            tpl_prompt=prompt,
            tpl_hotkey=hotkey,
            tpl_add=add,
            tpl_cancel=cancel,
        )
        return page

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _render_status(self) -> None:
        view = self._status_view
        self._w["template_count"].setText(str(view.template_count))
        self._w["hotkey_count"].setText(str(view.active_hotkeys))
        prefix = "✓ " if view.hotkeys_active else ""
        self._w["status_hint"].setText(f"{prefix}{view.hint}")
        self._w["error_label"].setText(self._last_error_html())

    def _render_history(self) -> None:
        view = self._history_view
        search = self._w["history_search"]
        if search.text() != self._session.history.search_query:
            search.blockSignals(True)
            search.setText(self._session.history.search_query)
            search.blockSignals(False)
        self._w["history_clear"].setEnabled(view.can_clear)
        empty = view.empty_message or ""
        if view.empty_hint:
            empty = f"{empty}<br/>{view.empty_hint}"
        self._w["history_empty"].setText(empty)

        layout = self._w["history_rows"]
        _clear_layout(layout)
        for row in view.rows:
            frame = QFrame()
            frame.setFrameShape(QFrame.Shape.StyledPanel)
            row_layout = QVBoxLayout(frame)
            header = QHBoxLayout()
            header.addWidget(_rich_label(f"<b>{row.template_name}</b>"), 1)
            header.addWidget(_rich_label(row.time_label))
            toggle = QPushButton(row.toggle_symbol)
            toggle.setToolTip(row.toggle_label)
            toggle.clicked.connect(lambda _=False, entry_id=row.entry_id: self.toggle_history_entry(entry_id))
            header.addWidget(toggle)
            row_layout.addLayout(header)
            row_layout.addWidget(_rich_label(f"Input: {row.source_preview}"))
            row_layout.addWidget(_rich_label(f"Output: {row.result_preview}"))
            entry = self._session.history.get(row.entry_id) if row.expanded else None
            if entry is not None:
                # Raw text in a plain-text widget keeps newlines and indentation.
                for title, part, text in (
                    ("Full Input:", "source", entry.full_source),
                    ("Full Output:", "result", entry.full_result),
                ):
                    row_layout.addLayout(self._copy_header(title, row.entry_id, part))
                    row_layout.addWidget(_read_only_text(text))
            layout.addWidget(frame)
        layout.addStretch(1)

    def _render_settings(self) -> None:
        view = self._settings_view

        model = self._w["model"]
        model.blockSignals(True)
        model.clear()
        for option in view.model_options:
            model.addItem(option.label, option.model_id)
            if option.selected:
                model.setCurrentIndex(model.count() - 1)
        model.blockSignals(False)

        autostart = self._w["autostart"]
        autostart.blockSignals(True)
        autostart.setChecked(view.autostart_enabled)
        autostart.setEnabled(view.autostart_control_enabled)
        autostart.blockSignals(False)

        credential = view.credential
        key_input = self._w["key_input"]
        if key_input.text() != self._session.credential.buffer:
            key_input.setText(self._session.credential.buffer)
        key_input.setEnabled(credential.input_enabled)
        key_input.setEchoMode(
            QLineEdit.EchoMode.Normal if credential.visible else QLineEdit.EchoMode.Password
        )
        self._w["key_show"].setText(credential.visibility_label)
        self._w["key_show"].setEnabled(credential.input_enabled)
        self._w["key_save"].setText(credential.save_label)
        self._w["key_save"].setEnabled(credential.can_save)
        self._w["key_test"].setText(credential.test_label)
        self._w["key_test"].setEnabled(credential.can_test)
        self._w["key_delete"].setText(credential.delete_label)
        self._w["key_delete"].setEnabled(credential.can_delete)
        self._w["key_hint"].setText(
            f"Saved key: {credential.hint}" if credential.present else "No API key saved"
        )
        self._w["key_message"].setText(credential.message)

        self._w["templates_empty"].setText(view.templates_empty_message or "")
        editing = self._editing_id
        add = self._w["tpl_add"]
        if editing is None:
            add.setText("Add Template")
            add.setEnabled(view.can_create_template)
        else:
            add.setText("Save Changes")
            add.setEnabled(not self._session.templates.is_pending(editing))
        self._w["tpl_cancel"].setVisible(editing is not None)
        layout = self._w["template_rows"]
        _clear_layout(layout)
        for row in view.templates:
            frame = QFrame()
            frame.setFrameShape(QFrame.Shape.StyledPanel)
            row_layout = QVBoxLayout(frame)
            header = QHBoxLayout()
            header.addWidget(_rich_label(f"<b>{row.name}</b>"), 1)
            if row.hotkey:
                header.addWidget(_rich_label(f"<code>{row.hotkey}</code>"))
            editable = not row.pending and row.template_id is not None
            edit = QPushButton("Edit")
            edit.setEnabled(editable)
            edit.clicked.connect(
                lambda _=False, template_id=row.template_id: self.begin_template_edit(template_id)
            )
            header.addWidget(edit)
            delete = QPushButton("Delete")
            delete.setEnabled(editable)
            delete.clicked.connect(
                lambda _=False, template_id=row.template_id: self.delete_template(template_id)
            )
            header.addWidget(delete)
            row_layout.addLayout(header)
            row_layout.addWidget(_rich_label(row.description))
            row_layout.addWidget(_rich_label(f"<i>{row.prompt_preview}</i>"))
            layout.addWidget(frame)
        layout.addStretch(1)

    def _last_error_html(self) -> str:
        return escape(self._last_error)

    def _copy_header(self, title: str, entry_id: str, part: str) -> Any:
        header = QHBoxLayout()
        header.addWidget(_rich_label(f"<b>{title}</b>"), 1)
        copy = QPushButton("Copy")
        copy.clicked.connect(
            lambda _=False, entry_id=entry_id, part=part: self.copy_history_text(entry_id, part)
        )
        header.addWidget(copy)
        return header

    # ------------------------------------------------------------------
    # Widget callbacks
    # ------------------------------------------------------------------

    def _on_model_index_changed(self, index: int) -> None:
        if index < 0:
            return
        model_id = self._w["model"].itemData(index)
        if model_id:
            self.select_model(str(model_id))

    def _on_add_template_clicked(self) -> None:
        name = self._w["tpl_name"].text()
        prompt = self._w["tpl_prompt"].toPlainText()
        description = self._w["tpl_description"].text()
        hotkey = self._w["tpl_hotkey"].text()
        if self._editing_id is not None:
            self.update_template(
                self._editing_id, name, prompt, description=description, hotkey=hotkey
            )
            return
        future = self.create_template(name, prompt, description=description, hotkey=hotkey)
        future.add_done_callback(self._on_template_created)

    def _on_template_created(self, future: asyncio.Future[Any]) -> None:
        if future.cancelled() or future.exception() is not None or not future.result():
            return
        self._reset_template_form()

    def _reset_template_form(self) -> None:
        if not self._widgets_ready:
            return
        for key in ("tpl_name", "tpl_description", "tpl_hotkey"):
            self._w[key].clear()
        self._w["tpl_prompt"].clear()

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def closeEvent(self, event: Any) -> None:
        """Flush pending settings and dispose the session on close."""
        LOGGER.debug("MainWindow: close event")
        self.schedule_coroutine(self._session.dispose())
        accept = getattr(event, "accept", None)
        if callable(accept):
            accept()


def _rich_label(text: str = "") -> Any:
    label = QLabel(text)
    label.setTextFormat(Qt.TextFormat.RichText)
    label.setWordWrap(True)
    return label


def _read_only_text(text: str) -> Any:
    view = QPlainTextEdit()
    view.setPlainText(text)
    view.setReadOnly(True)
    return view


def _form_fields(name: str, prompt: str, description: str, hotkey: str | None) -> dict[str, Any]:
    return {
        "name": name.strip(),
        "prompt": prompt,
        "description": description.strip(),
        "hotkey": (hotkey or "").strip() or None,
    }


def _clear_layout(layout: Any) -> None:
    while layout.count():
        item = layout.takeAt(0)
        widget = item.widget()
        if widget is not None:
            widget.deleteLater()


__all__ = ["MainWindow", "WINDOW_APP_NAME"]

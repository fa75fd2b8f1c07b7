"""Presentation layer: view projection and the Qt main window.

The projection module is pure and Qt-free; the main window consumes it and
forwards user actions to the stores.
"""

from __future__ import annotations

from .main_window import MainWindow
from .projection import (
    CredentialView,
    HistoryRowView,
    HistoryView,
    SettingsView,
    StatusView,
    TemplateRowView,
    project_session,
)

__all__: list[str] = [
    "CredentialView",
    "HistoryRowView",
    "HistoryView",
    "MainWindow",
    "SettingsView",
    "StatusView",
    "TemplateRowView",
    "project_session",
]

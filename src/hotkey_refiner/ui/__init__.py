"""UI package: event bus, client stores, session lifecycle and presentation."""

from .application.session import AppSession
from .events import EventBus

__all__ = [
    "AppSession",
    "EventBus",
]

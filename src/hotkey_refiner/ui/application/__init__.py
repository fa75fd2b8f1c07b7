"""Application layer: session lifecycle around the domain stores."""

from __future__ import annotations

from .session import AppSession

__all__: list[str] = ["AppSession"]

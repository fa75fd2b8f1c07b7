"""Hotkey descriptor parsing (e.g. ``"Cmd+Shift+]"``)."""

from __future__ import annotations

import string
from dataclasses import dataclass

__all__ = ["HotkeyBinding", "HotkeyParseError", "parse_hotkey"]

_MODIFIERS: dict[str, str] = {
    "cmd": "super",
    "super": "super",
    "command": "super",
    "ctrl": "control",
    "control": "control",
    "alt": "alt",
    "option": "alt",
    "shift": "shift",
}
_MODIFIER_ORDER = ("control", "alt", "shift", "super")

_NAMED_KEYS: dict[str, str] = {
    "]": "BracketRight",
    "bracketright": "BracketRight",
    "[": "BracketLeft",
    "bracketleft": "BracketLeft",
    ";": "Semicolon",
    "semicolon": "Semicolon",
    "'": "Quote",
    "quote": "Quote",
    ",": "Comma",
    "comma": "Comma",
    ".": "Period",
    "period": "Period",
    "/": "Slash",
    "slash": "Slash",
    "\\": "Backslash",
    "backslash": "Backslash",
    "-": "Minus",
    "minus": "Minus",
    "=": "Equal",
    "equal": "Equal",
    "space": "Space",
    "enter": "Enter",
    "return": "Enter",
    "tab": "Tab",
    "backspace": "Backspace",
    "delete": "Delete",
    "escape": "Escape",
    "esc": "Escape",
}
_NAMED_KEYS.update({letter: f"Key{letter.upper()}" for letter in string.ascii_lowercase})
_NAMED_KEYS.update({digit: f"Digit{digit}" for digit in string.digits})
_NAMED_KEYS.update({f"f{index}": f"F{index}" for index in range(1, 13)})


class HotkeyParseError(ValueError):
    """Raised when a hotkey descriptor cannot be parsed."""


@dataclass(frozen=True, slots=True)
class HotkeyBinding:
    """Normalized hotkey: a set of modifiers plus one key code."""

    modifiers: frozenset[str]
    code: str

    @property
    def canonical(self) -> str:
        ordered = [name for name in _MODIFIER_ORDER if name in self.modifiers]
        return "+".join([*ordered, self.code])


def parse_hotkey(descriptor: str) -> HotkeyBinding:
    """Parse ``descriptor`` into a :class:`HotkeyBinding`.

    The last ``+``-separated part is the key; every earlier part must be a
    modifier. Matching is case-insensitive.
    """

    raw = (descriptor or "").strip()
    if not raw:
        raise HotkeyParseError("Hotkey string is empty")

    # A trailing "+" is the plus key being used literally; not supported.
    parts = [part.strip() for part in raw.split("+")]
    key = parts[-1]
    if not key:
        raise HotkeyParseError(f"Hotkey '{raw}' has no key")

    modifiers: set[str] = set()
    for part in parts[:-1]:
        normalized = _MODIFIERS.get(part.lower())
        if normalized is None:
            raise HotkeyParseError(f"Unknown modifier: {part}")
        modifiers.add(normalized)

    code = _NAMED_KEYS.get(key.lower())
    if code is None:
        raise HotkeyParseError(f"Unknown key: {key}")
    return HotkeyBinding(modifiers=frozenset(modifiers), code=code)

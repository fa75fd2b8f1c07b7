"""Tests for hotkey descriptor parsing."""

from __future__ import annotations

import pytest

from hotkey_refiner.services.hotkeys import HotkeyParseError, parse_hotkey


@pytest.mark.parametrize(
    ("descriptor", "canonical"),
    [
        ("Cmd+Shift+]", "shift+super+BracketRight"),
        ("ctrl+alt+g", "control+alt+KeyG"),
        ("Option+Command+1", "alt+super+Digit1"),
        ("F5", "F5"),
        ("Control + Space", "control+Space"),
    ],
)
def test_parse_hotkey_canonical(descriptor: str, canonical: str) -> None:
    assert parse_hotkey(descriptor).canonical == canonical


def test_modifier_order_does_not_matter() -> None:
    assert parse_hotkey("Shift+Cmd+K") == parse_hotkey("cmd+shift+k")


def test_modifier_aliases_are_equal() -> None:
    assert parse_hotkey("Command+A") == parse_hotkey("Super+A")


@pytest.mark.parametrize("descriptor", ["", "   ", "Cmd+", "Hyper+K", "Cmd+Shift+Banana"])
def test_invalid_descriptors(descriptor: str) -> None:
    with pytest.raises(HotkeyParseError):
        parse_hotkey(descriptor)

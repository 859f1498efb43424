"""Tests for keys — shortcut parsing and matching against Textual key names."""

import pytest

from realtime_devtools.keys import DEFAULT_SHORTCUT, parse_shortcut


def test_default_shortcut():
    shortcut = parse_shortcut(DEFAULT_SHORTCUT)
    assert shortcut.modifiers == frozenset({"ctrl", "shift"})
    assert shortcut.key == "s"
    assert shortcut.textual_key == "ctrl+shift+s"
    assert shortcut.label == "Ctrl+Shift+S"


@pytest.mark.parametrize("text,expected", [
    ("Control+Alt+D", "ctrl+alt+d"),
    ("cmd+k", "meta+k"),
    ("F12", "f12"),
    ("shift+Alt+X", "alt+shift+x"),
])
def test_aliases_and_ordering(text, expected):
    assert parse_shortcut(text).textual_key == expected


@pytest.mark.parametrize("text", ["", "ctrl+", "hyper+s", "+"])
def test_invalid(text):
    with pytest.raises(ValueError):
        parse_shortcut(text)


@pytest.mark.parametrize("key_name,expected", [
    ("ctrl+shift+s", True),
    ("ctrl+S", True),
    ("ctrl+s", False),
    ("s", False),
    ("ctrl+shift+d", False),
    ("", False),
])
def test_matches(key_name, expected):
    assert parse_shortcut("Ctrl+Shift+S").matches(key_name) is expected


def test_upper_case_letter_implies_shift():
    assert parse_shortcut("shift+s").matches("S")
    assert not parse_shortcut("s").matches("S")

"""Tests for the key → action table."""

import pytest

import realtime_devtools.tui.app
import realtime_devtools.tui.input_modes


def _action_name(action: str) -> str:
    return action.split("(", 1)[0]


@pytest.mark.parametrize("key,action", sorted(realtime_devtools.tui.input_modes.KEYMAP.items()))
def test_every_action_exists(key, action):
    name = _action_name(action)
    if name == "quit":
        return
    assert hasattr(realtime_devtools.tui.app.DevToolsApp, "action_" + name), key


def test_keys_do_not_shadow_reserved_letters():
    # "e" opens the channel editor and is handled before the keymap.
    assert "e" not in realtime_devtools.tui.input_modes.KEYMAP


def test_hint_line_mentions_core_commands():
    line = realtime_devtools.tui.input_modes.hint_line()
    for word in ("start", "stop", "clear", "quit"):
        assert word in line

"""Key → action mapping for the devtools app.

All keyboard input routes through DevToolsApp.on_key. Textual BINDINGS are
not used. The configurable visibility shortcut is matched separately since
it is not known until start-up.
"""

# [LAW:one-source-of-truth] Key→action mapping.
KEYMAP: dict[str, str] = {
    # Monitoring commands
    "s": "start_monitoring",
    "x": "stop_monitoring",
    "m": "toggle_mode",
    "b": "send_self_test",
    "c": "clear_logs",
    "r": "check_auth",

    # Log navigation
    "j": "cursor_down",
    "down": "cursor_down",
    "k": "cursor_up",
    "up": "cursor_up",
    "enter": "toggle_details",
    "space": "toggle_details",

    # Settings (channel/listener flags only change while idle)
    "1": "toggle_setting('enable_broadcast')",
    "2": "toggle_setting('enable_database_changes')",
    "3": "toggle_setting('enable_presence')",
    "4": "toggle_setting('enable_self_test')",
    "h": "toggle_setting('show_system_logs')",
    "a": "toggle_setting('auto_scroll')",
    "+": "adjust_max_logs(50)",
    "plus": "adjust_max_logs(50)",
    "=": "adjust_max_logs(50)",
    "equals_sign": "adjust_max_logs(50)",
    "-": "adjust_max_logs(-50)",
    "minus": "adjust_max_logs(-50)",

    # Side panel
    "tab": "cycle_panel",
    "q": "quit",
}

# Shown in the footer hint line.
HINTS = (
    ("s", "start"),
    ("x", "stop"),
    ("m", "mode"),
    ("b", "self-test"),
    ("c", "clear"),
    ("j/k", "move"),
    ("enter", "details"),
    ("tab", "stats/settings"),
    ("q", "quit"),
)


def hint_line() -> str:
    return "  ".join("{} {}".format(key, label) for key, label in HINTS)

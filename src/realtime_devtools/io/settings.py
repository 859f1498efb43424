"""Settings file I/O for realtime-devtools.

Manages a general-purpose JSON settings file at
XDG_CONFIG_HOME/realtime-devtools/settings.json. The engine configuration is
one consumer, stored under a single well-known key; other keys are preserved.

This module is a STABLE BOUNDARY.
Import as: import realtime_devtools.io.settings
"""

import json
import os
import tempfile
from pathlib import Path


def get_config_path() -> Path:
    """Return path to settings file.

    REALTIME_DEVTOOLS_CONFIG wins; otherwise XDG_CONFIG_HOME (default ~/.config)
    / realtime-devtools / settings.json.
    """
    explicit = os.environ.get("REALTIME_DEVTOOLS_CONFIG")
    if explicit:
        return Path(explicit)
    config_home = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return Path(config_home) / "realtime-devtools" / "settings.json"


def load_settings() -> dict:
    """Load settings from JSON file. Returns empty dict on missing/corrupt file."""
    path = get_config_path()
    # [LAW:dataflow-not-control-flow] Always attempt read; empty dict is the "no data" value.
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (FileNotFoundError, json.JSONDecodeError, UnicodeDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def save_settings(data: dict) -> None:
    """Atomic write of settings dict to JSON file.

    Creates parent directories if needed. Writes to temp file then renames
    to avoid partial writes on crash.
    """
    path = get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def load_setting(key: str, default=None):
    """Load a single setting by key. Returns default if absent."""
    return load_settings().get(key, default)


def save_setting(key: str, value) -> None:
    """Save a single setting by key (merge into existing settings)."""
    data = load_settings()
    data[key] = value
    save_settings(data)

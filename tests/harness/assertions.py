"""State query helpers for engine and Textual tests.

Pure functions that return values — tests compose with assert.
No internal assertions.
"""

from rich.console import Console

from realtime_devtools.event_types import Severity, Source


def entries_from(log, source: Source | None = None, severity: Severity | None = None) -> list:
    """Entries (newest first) from a LogStore or Snapshot, optionally filtered."""
    entries = log.logs if hasattr(log, "logs") else log.entries
    return [
        e for e in entries
        if (source is None or e.source is source)
        and (severity is None or e.severity is severity)
    ]


def messages(log, source: Source | None = None) -> list[str]:
    return [e.message for e in entries_from(log, source)]


def severities_from(log, source: Source | None = None) -> list[Severity]:
    return [e.severity for e in entries_from(log, source)]


def plain(renderable, width: int = 200) -> str:
    """Render any Rich renderable to plain text."""
    console = Console(width=width, color_system=None, force_terminal=False)
    with console.capture() as capture:
        console.print(renderable)
    return capture.get()

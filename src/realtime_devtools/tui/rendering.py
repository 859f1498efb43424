"""Rendering logic — pure functions from Snapshot to Rich renderables.

Nothing here touches widgets; the app calls these and pushes the result into
Static widgets. Keeps display formatting testable without a running app.
"""

import json
from datetime import datetime

from rich.console import Group
from rich.table import Table
from rich.text import Text

from realtime_devtools.event_types import LogEntry, Severity, Source, SubscriptionState

# [LAW:one-source-of-truth] Colors per severity / source / status.
SEVERITY_STYLES = {
    Severity.INFO: "blue",
    Severity.SUCCESS: "green",
    Severity.WARNING: "yellow",
    Severity.ERROR: "bold red",
}

SEVERITY_ICONS = {
    Severity.INFO: "i",
    Severity.SUCCESS: "✓",
    Severity.WARNING: "!",
    Severity.ERROR: "✗",
}

SOURCE_LABELS = {
    Source.BROADCAST: ("Broadcast", "magenta"),
    Source.DATABASE_CHANGE: ("Database", "cyan"),
    Source.PRESENCE: ("Presence", "blue"),
    Source.SELF_TEST: ("Self", "bright_green"),
    Source.SYSTEM: ("System", "dim"),
}

STATUS_STYLES = {
    "auth error": "bold red",
    "monitoring": "bold green",
    "connecting": "yellow",
    "connected": "green",
    "offline": "dim",
}


def format_details(details) -> str:
    """Pretty JSON for an expanded entry; falls back to repr for odd payloads."""
    try:
        return json.dumps(details, indent=2, default=str, sort_keys=True)
    except (TypeError, ValueError):
        return repr(details)


def render_status_line(snap, shortcut_label: str = "") -> Text:
    status = snap.status
    text = Text()
    text.append("● ", style=STATUS_STYLES.get(status, ""))
    text.append("Realtime DevTools", style="bold")
    text.append(" | ")
    text.append(status, style=STATUS_STYLES.get(status, ""))
    channel = snap.channel or snap.config.channel_name
    text.append(" | channel: ")
    text.append(channel, style="bold")
    if snap.subscription is SubscriptionState.ACTIVE:
        text.append(" | mode: ")
        text.append("self-test" if snap.self_test_mode else "listener")
    if snap.auth.has_error:
        text.append(" | ")
        text.append(snap.auth.error, style="red")
    if snap.stats.total_messages:
        text.append(" | {} msgs".format(snap.stats.total_messages))
    if shortcut_label:
        text.append(" | {}".format(shortcut_label), style="dim")
    return text


def render_indicator(snap, shortcut_label: str) -> Text:
    """Collapsed one-line badge shown while the devtools surface is hidden."""
    status = snap.status
    text = Text()
    text.append("● ", style=STATUS_STYLES.get(status, ""))
    text.append("Auth Error" if snap.auth.has_error else "Realtime", style="bold")
    if snap.stats.total_messages:
        text.append(" ({})".format(snap.stats.total_messages))
    text.append("  {} to open".format(shortcut_label), style="dim")
    return text


def render_log_entry(entry: LogEntry, expanded: bool = False, selected: bool = False) -> Text:
    text = Text()
    text.append("▶ " if selected else "  ", style="bold")
    text.append(SEVERITY_ICONS[entry.severity] + " ", style=SEVERITY_STYLES[entry.severity])
    text.append(entry.time_label, style="dim")
    text.append(" ")
    label, style = SOURCE_LABELS[entry.source]
    text.append("[{}]".format(label), style=style)
    if entry.event_name:
        text.append(" {}".format(entry.event_name), style="italic")
    text.append(" ")
    text.append(entry.message)
    if entry.expandable:
        text.append(" [-]" if expanded else " [+]", style="dim")
    if expanded and entry.details is not None:
        for line in format_details(entry.details).splitlines():
            text.append("\n      ")
            text.append(line, style="dim")
    return text


def render_logs(snap, cursor_id: int | None = None):
    entries = snap.visible_logs
    if not entries:
        hint = (
            "Fix authentication to see logs"
            if snap.auth.has_error
            else "Start monitoring to see realtime activity"
        )
        return Text.assemble(("No logs yet\n", "bold"), (hint, "dim"))
    return Group(*[
        render_log_entry(entry, snap.is_expanded(entry.id), entry.id == cursor_id)
        for entry in entries
    ])


def _fmt_duration(seconds: float) -> str:
    seconds = int(seconds)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return "{}h {:02d}m".format(hours, minutes)
    if minutes:
        return "{}m {:02d}s".format(minutes, secs)
    return "{}s".format(secs)


def render_stats(snap, now: datetime | None = None) -> Table:
    now = now or datetime.now()
    stats = snap.stats
    table = Table(title="Stats", show_header=False, box=None, pad_edge=False)
    table.add_column("name", style="dim")
    table.add_column("value", justify="right")
    table.add_row(
        "Connection",
        Text("connected", style="green") if stats.connected else Text("disconnected", style="red"),
    )
    table.add_row("Uptime", _fmt_duration(stats.uptime(now)) if stats.connected else "--")
    table.add_row("Total", str(stats.total_messages))
    for source in Source:
        label, style = SOURCE_LABELS[source]
        table.add_row(
            Text(label, style=style),
            "{} ({:.0f}%)".format(stats.count(source), stats.share(source)),
        )
    last = stats.last_activity.strftime("%H:%M:%S") if stats.last_activity else "--"
    table.add_row("Last activity", last)
    table.add_row("Retained", "{} / {}".format(len(snap.logs), snap.config.max_logs))
    return table


def _flag(value: bool) -> Text:
    return Text("on", style="green") if value else Text("off", style="dim")


def render_settings(snap, shortcut_label: str = "") -> Table:
    config = snap.config
    locked = snap.subscription is not SubscriptionState.IDLE
    table = Table(title="Settings", show_header=False, box=None, pad_edge=False)
    table.add_column("key", style="bold")
    table.add_column("name", style="dim")
    table.add_column("value", justify="right")
    lock = " (locked)" if locked else ""
    table.add_row("", "Channel" + lock, config.channel_name)
    table.add_row("1", "Broadcast" + lock, _flag(config.enable_broadcast))
    table.add_row("2", "Database changes" + lock, _flag(config.enable_database_changes))
    table.add_row("3", "Presence" + lock, _flag(config.enable_presence))
    table.add_row("4", "Self-test" + lock, _flag(config.enable_self_test))
    table.add_row("h", "System logs", _flag(config.show_system_logs))
    table.add_row("a", "Auto-scroll", _flag(config.auto_scroll))
    table.add_row("+/-", "Max logs", str(config.max_logs))
    if shortcut_label:
        table.add_row("", "Toggle panel", shortcut_label)
    return table

"""Log store — bounded activity log and cumulative stats.

// [LAW:one-source-of-truth] LogState is the only place entries, expansion and stats live.
// [LAW:single-enforcer] reduce() is the only function that produces a new LogState.

All mutations are actions dispatched through LogStore.dispatch(). reduce() is
pure: ids and timestamps are stamped onto the action by the dispatch point,
so the same (state, action) pair always yields the same next state.
"""

import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime

from realtime_devtools.event_types import LogEntry, PendingEntry, Severity, Source, Stats

logger = logging.getLogger(__name__)

# Process-wide id sequence. Never reset, not even by clear().
_ID_SEQUENCE = itertools.count(1)


# ─── Actions ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AppendLog:
    entry: PendingEntry
    id: int
    timestamp: datetime


@dataclass(frozen=True)
class ClearLogs:
    pass


@dataclass(frozen=True)
class ToggleExpanded:
    id: int


@dataclass(frozen=True)
class SetCapacity:
    max_logs: int


@dataclass(frozen=True)
class SetConnected:
    connected: bool
    at: datetime


Action = AppendLog | ClearLogs | ToggleExpanded | SetCapacity | SetConnected


# ─── State ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class LogState:
    entries: tuple[LogEntry, ...] = ()  # newest first
    expanded: frozenset[int] = frozenset()
    stats: Stats = field(default_factory=Stats)
    max_logs: int = 200

    def get(self, entry_id: int) -> LogEntry | None:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None

    def is_expanded(self, entry_id: int) -> bool:
        return entry_id in self.expanded


def _counted(stats: Stats, source: Source, at: datetime) -> Stats:
    by_source = dict(stats.by_source)
    by_source[source] = by_source.get(source, 0) + 1
    return replace(
        stats,
        total_messages=stats.total_messages + 1,
        by_source=by_source,
        last_activity=at,
    )


def _retain(entries: tuple[LogEntry, ...], expanded: frozenset[int], cap: int):
    kept = entries[:cap]
    if len(kept) == len(entries):
        return kept, expanded
    live = {e.id for e in kept}
    return kept, frozenset(i for i in expanded if i in live)


def reduce(state: LogState, action: Action) -> LogState:
    """Pure transition function over LogState."""
    if isinstance(action, AppendLog):
        pending = action.entry
        entry = LogEntry(
            id=action.id,
            timestamp=action.timestamp,
            severity=pending.severity,
            source=pending.source,
            message=pending.message,
            event_name=pending.event_name,
            details=pending.details,
        )
        # Stats count full history; eviction below does not touch them.
        entries, expanded = _retain((entry,) + state.entries, state.expanded, state.max_logs)
        return replace(
            state,
            entries=entries,
            expanded=expanded,
            stats=_counted(state.stats, pending.source, action.timestamp),
        )

    if isinstance(action, ClearLogs):
        return replace(
            state,
            entries=(),
            expanded=frozenset(),
            stats=Stats(
                connected=state.stats.connected,
                connected_since=state.stats.connected_since,
            ),
        )

    if isinstance(action, ToggleExpanded):
        entry = state.get(action.id)
        if entry is None or not entry.expandable:
            return state
        if action.id in state.expanded:
            return replace(state, expanded=state.expanded - {action.id})
        return replace(state, expanded=state.expanded | {action.id})

    if isinstance(action, SetCapacity):
        entries, expanded = _retain(state.entries, state.expanded, action.max_logs)
        return replace(state, entries=entries, expanded=expanded, max_logs=action.max_logs)

    if isinstance(action, SetConnected):
        if action.connected == state.stats.connected:
            return state
        return replace(
            state,
            stats=replace(
                state.stats,
                connected=action.connected,
                connected_since=action.at if action.connected else None,
            ),
        )

    raise TypeError(f"unknown log action: {action!r}")


# ─── Dispatch point ───────────────────────────────────────────────────────────

_PY_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.SUCCESS: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class LogStore:
    """Holds the current LogState and notifies one listener after each change.

    clock is injectable so tests can pin timestamps.
    """

    def __init__(self, max_logs: int = 200, clock: Callable[[], datetime] | None = None):
        self._clock = clock or datetime.now
        self._state = LogState(max_logs=max_logs)
        self.on_change: Callable[[LogState], None] | None = None

    @property
    def state(self) -> LogState:
        return self._state

    @property
    def entries(self) -> tuple[LogEntry, ...]:
        return self._state.entries

    @property
    def stats(self) -> Stats:
        return self._state.stats

    def now(self) -> datetime:
        return self._clock()

    def dispatch(self, action: Action) -> LogState:
        previous = self._state
        self._state = reduce(previous, action)
        if self._state is not previous and self.on_change is not None:
            self.on_change(self._state)
        return self._state

    def append(
        self,
        severity: Severity,
        source: Source,
        message: str,
        event_name: str | None = None,
        details: dict | None = None,
    ) -> LogEntry:
        """Stamp, append and return the new entry."""
        pending = PendingEntry(severity, source, message, event_name, details)
        action = AppendLog(entry=pending, id=next(_ID_SEQUENCE), timestamp=self._clock())
        state = self.dispatch(action)
        if source is Source.SYSTEM:
            logger.log(_PY_LEVELS[severity], "%s", message)
        return state.entries[0]

    def system(self, severity: Severity, message: str, details: dict | None = None) -> LogEntry:
        return self.append(severity, Source.SYSTEM, message, details=details)

    def clear(self) -> None:
        self.dispatch(ClearLogs())

    def toggle_expanded(self, entry_id: int) -> None:
        self.dispatch(ToggleExpanded(entry_id))

    def set_capacity(self, max_logs: int) -> None:
        self.dispatch(SetCapacity(max_logs))

    def set_connected(self, connected: bool) -> None:
        self.dispatch(SetConnected(connected, self._clock()))

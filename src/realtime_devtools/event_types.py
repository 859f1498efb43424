"""Value types for the realtime devtools engine.

// [LAW:one-source-of-truth] Severity, source and state vocabularies live here.
// [LAW:one-way-deps] No imports from app/ or tui/.

This module is STABLE. Safe for `from` imports everywhere.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


# ─── Type alias for JSON-shaped payloads ──────────────────────────────────────

JsonDict = dict[str, object]


# ─── Enums ────────────────────────────────────────────────────────────────────


class Severity(Enum):
    """Log entry severity."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Source(Enum):
    """Where a log entry came from."""

    BROADCAST = "broadcast"
    DATABASE_CHANGE = "database-change"
    PRESENCE = "presence"
    SELF_TEST = "self-test"
    SYSTEM = "system"


class SubscriptionState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    ACTIVE = "active"
    ERROR = "error"


class ChannelStatus(Enum):
    """Status strings reported by the transport's subscribe callback."""

    SUBSCRIBED = "SUBSCRIBED"
    TIMED_OUT = "TIMED_OUT"
    CLOSED = "CLOSED"
    CHANNEL_ERROR = "CHANNEL_ERROR"

    @classmethod
    def parse(cls, raw) -> "ChannelStatus | None":
        """Map a transport status to a member. Unknown strings map to None."""
        text = str(getattr(raw, "value", raw) or "").strip().upper()
        try:
            return cls(text)
        except ValueError:
            return None


class EventKind(Enum):
    """Listener kinds registered on a channel handle."""

    BROADCAST = "broadcast"
    DATABASE_CHANGE = "postgres_changes"
    PRESENCE = "presence"


# [LAW:one-source-of-truth] Filters passed to handle.on() per event kind.
LISTENER_FILTERS: dict[EventKind, JsonDict] = {
    EventKind.BROADCAST: {"event": "*"},
    EventKind.DATABASE_CHANGE: {"event": "*", "schema": "*", "table": "*"},
    EventKind.PRESENCE: {"event": "*"},
}


# ─── Log entries ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class LogEntry:
    """One classified activity entry. Immutable once created.

    Expand/collapse state is not a field; it is tracked by id in the log state.
    """

    id: int
    timestamp: datetime
    severity: Severity
    source: Source
    message: str
    event_name: str | None = None
    details: JsonDict | None = None

    @property
    def expandable(self) -> bool:
        return self.details is not None

    @property
    def time_label(self) -> str:
        """Capture time as HH:MM:SS.mmm."""
        return self.timestamp.strftime("%H:%M:%S.") + "{:03d}".format(
            self.timestamp.microsecond // 1000
        )


@dataclass(frozen=True)
class PendingEntry:
    """A log entry before the store assigns its id and timestamp."""

    severity: Severity
    source: Source
    message: str
    event_name: str | None = None
    details: JsonDict | None = None


# ─── Auth ─────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AuthState:
    is_authenticated: bool = False
    error: str | None = None
    last_checked_at: datetime | None = None

    @property
    def has_error(self) -> bool:
        return not self.is_authenticated and bool(self.error)


# ─── Stats ────────────────────────────────────────────────────────────────────


def _zero_counts() -> dict[Source, int]:
    return {source: 0 for source in Source}


@dataclass(frozen=True)
class Stats:
    """Cumulative counters over the full log history (not the retained window)."""

    total_messages: int = 0
    by_source: dict[Source, int] = field(default_factory=_zero_counts)
    last_activity: datetime | None = None
    connected: bool = False
    connected_since: datetime | None = None

    def count(self, source: Source) -> int:
        return self.by_source.get(source, 0)

    def share(self, source: Source) -> float:
        """Percentage of all entries that came from source."""
        if self.total_messages <= 0:
            return 0.0
        return 100.0 * self.count(source) / self.total_messages

    def uptime(self, now: datetime) -> float:
        """Seconds connected, 0.0 when not connected."""
        if not self.connected or self.connected_since is None:
            return 0.0
        return max(0.0, (now - self.connected_since).total_seconds())

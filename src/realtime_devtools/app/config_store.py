"""Config store: load/validate/persist the engine configuration.

// [LAW:one-source-of-truth] Defaults and bounds live in DEFAULTS / MIN_MAX_LOGS / MAX_MAX_LOGS.
// [LAW:single-enforcer] _safe_persist is the single writer to disk.
"""

import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass

import realtime_devtools.io.settings

logger = logging.getLogger(__name__)

STORAGE_KEY = "realtime-devtools-config"
DEFAULT_CHANNEL = "devtools-monitor"
MIN_MAX_LOGS = 10
MAX_MAX_LOGS = 1000

# Fields that select which channel/listeners a run uses. Locked while a run is live.
SUBSCRIPTION_FIELDS = frozenset({
    "channel_name",
    "enable_broadcast",
    "enable_database_changes",
    "enable_presence",
    "enable_self_test",
})


class ConfigError(ValueError):
    """Rejected configuration value."""


@dataclass(frozen=True)
class Configuration:
    channel_name: str = DEFAULT_CHANNEL
    enable_broadcast: bool = True
    enable_database_changes: bool = True
    enable_presence: bool = True
    enable_self_test: bool = False
    show_system_logs: bool = True
    auto_scroll: bool = True
    max_logs: int = 200

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)


DEFAULTS = Configuration()

_FIELD_TYPES: dict[str, type] = {
    f.name: type(getattr(DEFAULTS, f.name)) for f in dataclasses.fields(Configuration)
}


def _check_field(name: str, value) -> None:
    expected = _FIELD_TYPES.get(name)
    if expected is None:
        raise ConfigError(f"unknown setting: {name}")
    # bool is a subclass of int; keep them apart in both directions.
    if expected is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"{name} must be an integer")
    elif not isinstance(value, expected):
        raise ConfigError(f"{name} must be {expected.__name__}")
    if name == "max_logs" and not MIN_MAX_LOGS <= value <= MAX_MAX_LOGS:
        raise ConfigError(
            f"max_logs must be between {MIN_MAX_LOGS} and {MAX_MAX_LOGS}"
        )
    if name == "channel_name" and not value.strip():
        raise ConfigError("channel name must not be blank")


def validate(config: Configuration) -> Configuration:
    """Raise ConfigError if any field is out of type or bounds."""
    for f in dataclasses.fields(Configuration):
        _check_field(f.name, getattr(config, f.name))
    return config


def merge(base: Configuration, partial: dict) -> Configuration:
    """Shallow-merge partial over base, validating only the touched keys."""
    for name, value in partial.items():
        _check_field(name, value)
    return dataclasses.replace(base, **partial)


def decode(raw, default_channel: str) -> Configuration | None:
    """Build a Configuration from a persisted record. None if malformed.

    Unknown keys are ignored. A blank or missing channel falls back to
    default_channel.
    """
    if not isinstance(raw, dict):
        return None
    known = {k: v for k, v in raw.items() if k in _FIELD_TYPES}
    channel = known.get("channel_name")
    if not isinstance(channel, str) or not channel.strip():
        known["channel_name"] = default_channel
    try:
        return merge(dataclasses.replace(DEFAULTS, channel_name=default_channel), known)
    except ConfigError:
        return None


class ConfigStore:
    """Single owner of the live Configuration.

    on_problem is called as on_problem(message, details) for non-fatal
    persistence problems so the caller can surface them as system entries.
    """

    def __init__(
        self,
        default_channel: str = DEFAULT_CHANNEL,
        storage_key: str = STORAGE_KEY,
        on_problem: Callable[[str, dict], None] | None = None,
    ):
        self._default_channel = default_channel.strip() or DEFAULT_CHANNEL
        self._storage_key = storage_key
        self.on_problem = on_problem
        self._config = dataclasses.replace(DEFAULTS, channel_name=self._default_channel)

    @property
    def config(self) -> Configuration:
        return self._config

    def load(self, default_channel: str | None = None) -> Configuration:
        """Merge persisted values over defaults. Never raises."""
        if default_channel is not None and default_channel.strip():
            self._default_channel = default_channel.strip()
        fallback = dataclasses.replace(DEFAULTS, channel_name=self._default_channel)
        try:
            raw = realtime_devtools.io.settings.load_setting(self._storage_key)
        except Exception as exc:
            logger.warning("Failed to read persisted configuration: %s", exc)
            self._report("Configuration reset: settings unreadable", {"error": str(exc)})
            self._config = fallback
            return self._config

        if raw is None:
            self._config = fallback
            return self._config

        decoded = decode(raw, self._default_channel)
        if decoded is None:
            logger.warning("Persisted configuration is malformed; using defaults")
            self._report("Configuration reset: persisted data was malformed", {"stored": raw})
            decoded = fallback
        self._config = decoded
        return self._config

    def save(self, config: Configuration | None = None) -> None:
        """Fire-and-forget persist. Failures are reported, never raised."""
        self._safe_persist(config if config is not None else self._config)

    def update(self, partial: dict) -> Configuration:
        """Apply a shallow merge and persist. Raises ConfigError on bad input."""
        self._config = merge(self._config, partial)
        self.save(self._config)
        return self._config

    def override(self, partial: dict) -> Configuration:
        """Apply a merge without persisting (start-up overrides)."""
        self._config = merge(self._config, partial)
        return self._config

    def _safe_persist(self, config: Configuration) -> None:
        try:
            realtime_devtools.io.settings.save_setting(self._storage_key, config.to_dict())
        except Exception as exc:
            logger.exception("Failed to persist configuration to disk")
            self._report(f"Failed to save configuration: {exc}", {"error": str(exc)})

    def _report(self, message: str, details: dict) -> None:
        if self.on_problem is not None:
            self.on_problem(message, details)

"""Session facade — composes config, auth, log and subscription into one engine.

// [LAW:locality-or-seam] The rendering surface only sees Snapshot and the command methods.
// [LAW:single-enforcer] _publish is the only place snapshots are emitted.

Commands are synchronous. Anything that settles later (subscribe status,
self-test send, auth polls) reports back through log entries and state
transitions, which in turn publish a fresh Snapshot to every listener.
"""

import logging
from collections.abc import Callable
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

import realtime_devtools.app.auth_monitor
import realtime_devtools.app.config_store
import realtime_devtools.app.log_store
import realtime_devtools.app.subscription
import realtime_devtools.transport
from realtime_devtools.app.config_store import ConfigError, Configuration
from realtime_devtools.event_types import (
    AuthState,
    LogEntry,
    Severity,
    Source,
    Stats,
    SubscriptionState,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """Everything the rendering surface needs, captured at one instant."""

    auth: AuthState
    subscription: SubscriptionState
    channel: str | None
    self_test_mode: bool
    config: Configuration
    logs: tuple[LogEntry, ...]
    expanded: frozenset[int]
    stats: Stats
    visible: bool

    @property
    def visible_logs(self) -> tuple[LogEntry, ...]:
        if self.config.show_system_logs:
            return self.logs
        return tuple(entry for entry in self.logs if entry.source is not Source.SYSTEM)

    @property
    def monitoring(self) -> bool:
        return self.subscription is SubscriptionState.ACTIVE

    @property
    def status(self) -> str:
        if self.auth.has_error:
            return "auth error"
        if self.subscription is SubscriptionState.ACTIVE:
            return "monitoring"
        if self.subscription is SubscriptionState.CONNECTING:
            return "connecting"
        if self.auth.is_authenticated:
            return "connected"
        return "offline"

    def is_expanded(self, entry_id: int) -> bool:
        return entry_id in self.expanded


class SessionFacade:
    """The monitoring session engine.

    client: a RealtimeClient; when None, `locate` is called once to find an
    ambient one. Without either, every start is rejected and auth reports
    "realtime client not found".
    """

    def __init__(
        self,
        client=None,
        *,
        locate: Callable | None = None,
        default_channel: str = realtime_devtools.app.config_store.DEFAULT_CHANNEL,
        overrides: dict | None = None,
        auth_interval: float = realtime_devtools.app.auth_monitor.DEFAULT_INTERVAL,
        clock: Callable[[], datetime] | None = None,
        config_store=None,
    ):
        self._listeners: list[Callable[[Snapshot], None]] = []
        self._batch_depth = 0
        self._dirty = False
        self._visible = False

        self.log = realtime_devtools.app.log_store.LogStore(clock=clock)
        self.config_store = config_store or realtime_devtools.app.config_store.ConfigStore(
            default_channel
        )
        self.config_store.on_problem = self._on_config_problem
        config = self.config_store.load(default_channel)
        if overrides:
            try:
                config = self.config_store.override(overrides)
            except ConfigError as exc:
                self.log.system(Severity.ERROR, f"Ignoring start-up override: {exc}")
        self.log.set_capacity(config.max_logs)

        self._client = realtime_devtools.transport.locate_client(client, locate)
        lookup = getattr(self._client, "get_session", None)
        self.auth = realtime_devtools.app.auth_monitor.AuthMonitor(
            lookup, self.log, interval=auth_interval, clock=clock
        )
        self.controller = realtime_devtools.app.subscription.SubscriptionController(
            self._client, self.log
        )
        if self._client is None:
            self.log.system(Severity.ERROR, "Realtime client not available")

        # Every component reports through the facade; nothing else emits snapshots.
        self.log.on_change = lambda _state: self._publish()
        self.controller.on_state_change = lambda _state: self._publish()
        self.auth.on_change = self._on_auth_change

    # ─── Snapshot ─────────────────────────────────────────────────────

    def snapshot(self) -> Snapshot:
        state = self.log.state
        return Snapshot(
            auth=self.auth.state,
            subscription=self.controller.state,
            channel=self.controller.channel_name,
            self_test_mode=self.controller.self_test_mode,
            config=self.config_store.config,
            logs=state.entries,
            expanded=state.expanded,
            stats=state.stats,
            visible=self._visible,
        )

    def subscribe(self, listener: Callable[[Snapshot], None]) -> Callable[[], None]:
        """Register a snapshot listener. Returns a disposer."""
        self._listeners.append(listener)

        def _dispose():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _dispose

    @contextmanager
    def _batch(self):
        """Coalesce every change inside the block into one published snapshot."""
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self._dirty = False
                self._emit()

    def _publish(self) -> None:
        if self._batch_depth:
            self._dirty = True
            return
        self._emit()

    def _emit(self) -> None:
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                logger.exception("Snapshot listener failed")

    # ─── Lifecycle ────────────────────────────────────────────────────

    async def open(self) -> AuthState:
        """Check auth eagerly, then keep polling in the background."""
        state = await self.auth.check()
        self.auth.start(eager=False)
        return state

    async def close(self) -> None:
        """Teardown: stop polling, stop monitoring, drop in-flight work."""
        await self.auth.close()
        await self.controller.close()

    async def wait_pending(self) -> None:
        await self.controller.wait_pending()

    async def check_auth(self) -> AuthState:
        return await self.auth.check()

    # ─── Commands ─────────────────────────────────────────────────────

    def start_monitoring(self) -> None:
        with self._batch():
            self.controller.start(self.config_store.config, self.auth.state.is_authenticated)

    def stop_monitoring(self) -> None:
        with self._batch():
            self.controller.stop()

    def toggle_mode(self, self_test_on: bool) -> None:
        with self._batch():
            self.controller.toggle_mode(self_test_on)

    def send_self_test(self) -> None:
        with self._batch():
            self.controller.send_self_test(self.auth.state.is_authenticated)

    def clear_logs(self) -> None:
        with self._batch():
            self.log.clear()

    def toggle_expanded(self, entry_id: int) -> None:
        with self._batch():
            self.log.toggle_expanded(entry_id)

    def update_config(self, partial: dict | None = None, **changes) -> Configuration:
        """Shallow-merge settings. Rejected changes leave config untouched."""
        partial = {**(partial or {}), **changes}
        with self._batch():
            if not partial:
                return self.config_store.config
            locked = sorted(
                realtime_devtools.app.config_store.SUBSCRIPTION_FIELDS & partial.keys()
            )
            current = self.config_store.config
            locked = [k for k in locked if partial[k] != getattr(current, k)]
            if locked and self.controller.state is not SubscriptionState.IDLE:
                self.log.system(
                    Severity.WARNING,
                    f"Stop monitoring before changing {', '.join(locked)}",
                    {"rejected": locked},
                )
                return current
            try:
                config = self.config_store.update(partial)
            except ConfigError as exc:
                self.log.system(Severity.ERROR, f"Invalid configuration: {exc}", {"rejected": partial})
                return current
            if config.max_logs != self.log.state.max_logs:
                self.log.set_capacity(config.max_logs)
            self._dirty = True
            return config

    def toggle_visibility(self) -> bool:
        """Show/hide the devtools surface. Opening is refused on auth error."""
        with self._batch():
            if not self._visible and self.auth.state.has_error:
                self.log.system(
                    Severity.WARNING,
                    f"Cannot open devtools: {self.auth.state.error}",
                )
                return False
            self._visible = not self._visible
            self._dirty = True
            return self._visible

    # ─── Reactions ────────────────────────────────────────────────────

    def _on_auth_change(self, previous: AuthState, current: AuthState) -> None:
        with self._batch():
            lost = not current.is_authenticated
            if lost and self.controller.state is not SubscriptionState.IDLE:
                self.controller.stop(reason="authentication lost")
            self._dirty = True

    def _on_config_problem(self, message: str, details: dict) -> None:
        self.log.system(Severity.WARNING, message, details)


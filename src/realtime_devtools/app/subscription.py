"""Subscription controller — owns the single live channel handle.

// [LAW:single-enforcer] Only this module transitions SubscriptionState or touches the handle.
// [LAW:one-source-of-truth] One RunToken per monitoring run; callbacks check it first.

State machine:

    Idle --start--> Connecting --SUBSCRIBED--> Active
    any  --stop / callback error / CHANNEL_ERROR / CLOSED--> Idle

Everything the transport settles later (subscribe status, send results,
inbound events) arrives through callbacks bound to the RunToken of the run
that registered them. Revoking the token on stop makes all of them no-ops.
"""

import asyncio
import inspect
import logging
import uuid
from collections import deque
from collections.abc import Callable, Mapping
from datetime import datetime, timezone

from realtime_devtools.event_types import (
    LISTENER_FILTERS,
    ChannelStatus,
    EventKind,
    PendingEntry,
    Severity,
    Source,
    SubscriptionState,
)

logger = logging.getLogger(__name__)

SELF_TEST_EVENT = "devtools-self-test"
_SEND_FAILURES = frozenset({"error", "timed out", "timed_out", "timeout", "rate limited"})
# Most recent self-test ids awaiting a possible echo; older ones are forgotten.
ECHO_WINDOW = 64


class RunToken:
    """Cancellation token for one monitoring run."""

    __slots__ = ("channel", "revoked")

    def __init__(self, channel: str):
        self.channel = channel
        self.revoked = False

    def revoke(self) -> None:
        self.revoked = True


# ─── Classification ───────────────────────────────────────────────────────────
# Pure: payload in, PendingEntry out.


def _as_dict(payload) -> dict:
    if isinstance(payload, Mapping):
        return dict(payload)
    return {"value": payload}


def classify_broadcast(payload) -> PendingEntry:
    data = _as_dict(payload)
    event = data.get("event")
    return PendingEntry(
        severity=Severity.SUCCESS,
        source=Source.BROADCAST,
        message=f"Broadcast: {event or 'unknown'}",
        event_name=str(event) if event else None,
        details=data,
    )


def classify_database_change(payload) -> PendingEntry:
    data = _as_dict(payload)
    change = data.get("eventType") or data.get("type") or "CHANGE"
    schema = data.get("schema") or "?"
    table = data.get("table") or "?"
    details = {"change": change, "schema": schema, "table": table}
    for key in ("new", "old", "commit_timestamp", "errors"):
        if data.get(key) is not None:
            details[key] = data[key]
    return PendingEntry(
        severity=Severity.SUCCESS,
        source=Source.DATABASE_CHANGE,
        message=f"DB {change}: {schema}.{table}",
        event_name=str(change),
        details=details,
    )


def classify_presence(payload) -> PendingEntry:
    data = _as_dict(payload)
    event = data.get("event") or "sync"
    return PendingEntry(
        severity=Severity.INFO,
        source=Source.PRESENCE,
        message=f"Presence: {event}",
        event_name=str(event),
        details=data,
    )


def _self_test_id(payload) -> str | None:
    """test_id of a self-test broadcast, None for anything else."""
    if not isinstance(payload, Mapping) or payload.get("event") != SELF_TEST_EVENT:
        return None
    inner = payload.get("payload")
    if not isinstance(inner, Mapping):
        return None
    test_id = inner.get("test_id")
    return str(test_id) if test_id else None


def _describe(exc: BaseException) -> str:
    return str(exc).strip() or type(exc).__name__


# ─── Controller ───────────────────────────────────────────────────────────────


class SubscriptionController:
    """Opens, tracks and tears down the one active channel subscription."""

    def __init__(self, client, log_store, id_factory: Callable[[], str] | None = None):
        self._client = client
        self._log = log_store
        self._new_id = id_factory or (lambda: uuid.uuid4().hex[:12])
        self._state = SubscriptionState.IDLE
        self._handle = None
        self._token: RunToken | None = None
        self._run_config = None
        self._pending: set[asyncio.Future] = set()
        self._releasing: set[asyncio.Future] = set()
        self._sent_test_ids: deque[str] = deque(maxlen=ECHO_WINDOW)
        self.self_test_mode = False
        self.on_state_change: Callable[[SubscriptionState], None] | None = None

    # ─── Read side ────────────────────────────────────────────────────

    @property
    def state(self) -> SubscriptionState:
        return self._state

    @property
    def channel_name(self) -> str | None:
        return self._token.channel if self._token is not None else None

    @property
    def has_handle(self) -> bool:
        return self._handle is not None

    @property
    def pending_count(self) -> int:
        return len(self._pending) + len(self._releasing)

    def _set_state(self, state: SubscriptionState) -> None:
        if state is self._state:
            return
        self._state = state
        self._log.set_connected(state is SubscriptionState.ACTIVE)
        if self.on_state_change is not None:
            self.on_state_change(state)

    # ─── Commands ─────────────────────────────────────────────────────

    def start(self, config, is_authenticated: bool) -> bool:
        """Open the configured channel. Returns False if rejected up front."""
        if not is_authenticated:
            self._log.system(Severity.ERROR, "Cannot start monitoring: not authenticated")
            return False
        name = (config.channel_name or "").strip()
        if not name:
            self._log.system(Severity.ERROR, "Cannot start monitoring: channel name is blank")
            return False
        if self._client is None:
            self._log.system(Severity.ERROR, "Cannot start monitoring: realtime client not found")
            return False

        if self._handle is not None:
            self._release(reason="restarting")

        token = RunToken(name)
        # [LAW:dataflow-not-control-flow] Disabled kinds are simply absent from this table.
        wanted = [
            (EventKind.BROADCAST, config.enable_broadcast, self._on_broadcast),
            (EventKind.DATABASE_CHANGE, config.enable_database_changes, self._on_database_change),
            (EventKind.PRESENCE, config.enable_presence, self._on_presence),
        ]
        listeners = [(kind, handler) for kind, enabled, handler in wanted if enabled]
        handle = None
        try:
            handle = self._client.open_channel(name)
            for kind, handler in listeners:
                handle.on(kind.value, dict(LISTENER_FILTERS[kind]), self._bind(token, handler))
        except Exception as exc:
            self._log.system(
                Severity.ERROR,
                f"Failed to open channel {name}: {_describe(exc)}",
                {"channel": name, "error": _describe(exc)},
            )
            if handle is not None:
                self._unsubscribe(handle, name)
            self._set_state(SubscriptionState.IDLE)
            return False

        self._handle = handle
        self._token = token
        self._run_config = config
        self._sent_test_ids.clear()
        self._set_state(SubscriptionState.CONNECTING)
        self._log.system(
            Severity.INFO,
            f"Connecting to {name}",
            {"channel": name, "listeners": [kind.value for kind, _ in listeners]},
        )
        try:
            handle.subscribe(self._bind_status(token))
        except Exception as exc:
            self._fail(token, f"Subscription error: {_describe(exc)}", unsubscribe=True)
        return True

    def stop(self, reason: str | None = None) -> bool:
        """Release the live handle. No-op (returns False) when already idle."""
        if self._handle is None and self._state is SubscriptionState.IDLE:
            return False
        self._release(reason=reason)
        self._set_state(SubscriptionState.IDLE)
        return True

    def toggle_mode(self, self_test_on: bool) -> bool:
        if self._state is not SubscriptionState.ACTIVE:
            self._log.system(Severity.WARNING, "Start monitoring before changing mode")
            return False
        if bool(self_test_on) == self.self_test_mode:
            return True
        self.self_test_mode = bool(self_test_on)
        label = "self-test" if self.self_test_mode else "listener"
        self._log.system(Severity.INFO, f"Switched to {label} mode")
        return True

    def send_self_test(self, is_authenticated: bool) -> bool:
        """Send one self-test broadcast. Outcome arrives later as a log entry."""
        if self._state is not SubscriptionState.ACTIVE or not is_authenticated:
            self._log.system(
                Severity.WARNING, "Cannot send self-test: not authenticated or not monitoring"
            )
            return False
        if self._run_config is None or not self._run_config.enable_self_test:
            self._log.system(Severity.WARNING, "Cannot send self-test: self-test is disabled")
            return False

        token = self._token
        name = token.channel
        test_id = self._new_id()
        payload = {
            "message": "DevTools self-test",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "test_id": test_id,
            "source": "devtools",
        }
        message = {"type": "broadcast", "event": SELF_TEST_EVENT, "payload": payload}
        # Registered before sending: the echo may arrive before send() settles.
        self._sent_test_ids.append(test_id)

        def _ok(result):
            if isinstance(result, str) and result.strip().lower() in _SEND_FAILURES:
                _err(RuntimeError(result))
                return
            self._log.append(
                Severity.SUCCESS,
                Source.SELF_TEST,
                "Self-test sent",
                event_name=SELF_TEST_EVENT,
                details={"channel": name, "payload": payload},
            )

        def _err(exc):
            self._forget_test_id(test_id)
            self._log.system(
                Severity.ERROR,
                f"Self-test failed: {_describe(exc)}",
                {"channel": name, "error": _describe(exc), "test_id": test_id},
            )

        try:
            result = self._handle.send(message)
        except Exception as exc:
            _err(exc)
            return True
        self._settle(token, result, _ok, _err, self._pending)
        return True

    async def wait_pending(self) -> None:
        """Wait until every in-flight send/unsubscribe has settled."""
        while self._pending or self._releasing:
            await asyncio.gather(*self._pending, *self._releasing, return_exceptions=True)
        await asyncio.sleep(0)

    async def close(self) -> None:
        """Teardown: stop the run, cancel in-flight sends, finish unsubscribing.

        Unsubscribes are awaited rather than cancelled so the channel is
        actually released on the transport side.
        """
        self.stop()
        pending, self._pending = list(self._pending), set()
        for future in pending:
            future.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        while self._releasing:
            await asyncio.gather(*self._releasing, return_exceptions=True)

    # ─── Internals ────────────────────────────────────────────────────

    def _release(self, reason: str | None = None, announce: bool = True) -> None:
        """Revoke the run token and unsubscribe the handle, best effort."""
        handle, token = self._handle, self._token
        self._handle = None
        self._token = None
        self._run_config = None
        self._sent_test_ids.clear()
        self.self_test_mode = False
        if token is not None:
            token.revoke()
        if handle is None:
            return
        name = token.channel if token is not None else "channel"
        suffix = f" ({reason})" if reason else ""
        if not self._unsubscribe(handle, name) or not announce:
            return
        severity = Severity.WARNING if reason and reason != "restarting" else Severity.INFO
        self._log.system(severity, f"Stopped monitoring {name}{suffix}", {"channel": name})

    def _unsubscribe(self, handle, name: str) -> bool:
        """Best-effort unsubscribe. False if it raised synchronously."""
        try:
            result = handle.unsubscribe()
        except Exception as exc:
            self._unsubscribe_failed(name, exc)
            return False
        self._settle(
            None, result, lambda _r: None, lambda exc: self._unsubscribe_failed(name, exc), self._releasing
        )
        return True

    def _unsubscribe_failed(self, name: str, exc: BaseException) -> None:
        self._log.system(
            Severity.WARNING,
            f"Error stopping monitoring {name}: {_describe(exc)}",
            {"channel": name, "error": _describe(exc)},
        )

    def _fail(self, token: RunToken, message: str, details: dict | None = None, unsubscribe: bool = True) -> None:
        if token is not self._token:
            return
        self._log.system(Severity.ERROR, message, {"channel": token.channel, **(details or {})})
        if not unsubscribe:
            # Transport already closed the channel; just drop our reference.
            self._handle = None
        self._release(announce=False)
        self._set_state(SubscriptionState.IDLE)

    def _settle(self, token: RunToken | None, result, on_ok, on_err, bucket: set) -> None:
        if not inspect.isawaitable(result):
            on_ok(result)
            return
        future = asyncio.ensure_future(result)
        bucket.add(future)

        def _done(f: asyncio.Future) -> None:
            bucket.discard(f)
            if f.cancelled() or (token is not None and token.revoked):
                return
            exc = f.exception()
            if exc is not None:
                on_err(exc)
            else:
                on_ok(f.result())

        future.add_done_callback(_done)

    def _bind(self, token: RunToken, handler):
        def _callback(payload=None, *_args):
            if token.revoked:
                return
            try:
                handler(payload)
            except Exception:
                logger.exception("Failed to classify event on %s", token.channel)

        return _callback

    def _bind_status(self, token: RunToken):
        def _callback(status=None, err=None, *_args):
            if token.revoked:
                return
            self._on_status(token, status, err)

        return _callback

    def _on_status(self, token: RunToken, status, err) -> None:
        name = token.channel
        if err is not None:
            self._fail(
                token,
                f"Subscription error: {_describe(err) if isinstance(err, BaseException) else err}",
                {"status": str(status)},
            )
            return
        parsed = ChannelStatus.parse(status)
        if parsed is ChannelStatus.SUBSCRIBED:
            if self._state is SubscriptionState.ACTIVE:
                return
            self._set_state(SubscriptionState.ACTIVE)
            self._log.system(Severity.SUCCESS, f"Monitoring {name}", {"channel": name})
        elif parsed in (ChannelStatus.CHANNEL_ERROR, ChannelStatus.CLOSED):
            self._fail(
                token,
                f"Channel {name} reported {parsed.value}",
                {"status": parsed.value},
                unsubscribe=parsed is ChannelStatus.CHANNEL_ERROR,
            )
        else:
            self._log.system(Severity.INFO, f"Subscription status: {status}", {"channel": name, "status": str(status)})

    def _on_broadcast(self, payload) -> None:
        test_id = _self_test_id(payload)
        if test_id is not None and test_id in self._sent_test_ids:
            # Our own self-test echoed back; already logged as a self-test entry.
            self._forget_test_id(test_id)
            logger.debug("Suppressed self-test echo %s", test_id)
            return
        self._append(classify_broadcast(payload))

    def _forget_test_id(self, test_id: str) -> None:
        if test_id in self._sent_test_ids:
            self._sent_test_ids.remove(test_id)

    def _on_database_change(self, payload) -> None:
        self._append(classify_database_change(payload))

    def _on_presence(self, payload) -> None:
        self._append(classify_presence(payload))

    def _append(self, entry: PendingEntry) -> None:
        self._log.append(entry.severity, entry.source, entry.message, entry.event_name, entry.details)

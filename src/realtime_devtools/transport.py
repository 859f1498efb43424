"""Realtime transport capability and the in-memory loopback client.

// [LAW:locality-or-seam] The engine only talks to RealtimeClient / ChannelHandle.
// [LAW:one-way-deps] No imports from app/ or tui/.

A real backend client is adapted to these protocols by the host. The
LoopbackClient below satisfies them without any network so the TUI and demo
mode can run standalone.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
import os
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

logger = logging.getLogger(__name__)

StatusCallback = Callable[..., None]
EventCallback = Callable[[dict], None]


class ChannelHandle(Protocol):
    def on(self, kind: str, filter: dict, callback: EventCallback) -> Any: ...

    def subscribe(self, callback: StatusCallback) -> Any: ...

    def send(self, message: dict) -> Awaitable[Any] | Any: ...

    def unsubscribe(self) -> Any: ...


class RealtimeClient(Protocol):
    def open_channel(self, name: str) -> ChannelHandle: ...

    def get_session(self) -> Awaitable[Any] | Any: ...


def locate_client(
    explicit: RealtimeClient | None,
    lookup: Callable[[], RealtimeClient | None] | None = None,
) -> RealtimeClient | None:
    """Return the explicit client, else whatever the ambient lookup finds.

    The lookup runs at most once; a failing lookup counts as "not found".
    """
    if explicit is not None:
        return explicit
    if lookup is None:
        return None
    try:
        return lookup()
    except Exception:
        logger.exception("Client lookup failed")
        return None


def load_client(spec: str) -> RealtimeClient | None:
    """Resolve "package.module:attr" to a client.

    attr may be the client itself or a zero-argument factory returning one.
    """
    module_path, _, attr = str(spec or "").partition(":")
    if not module_path or not attr:
        raise ValueError(f"client spec must look like 'module:attr', got {spec!r}")
    target = getattr(importlib.import_module(module_path), attr)
    if isinstance(target, type) or (callable(target) and not hasattr(target, "open_channel")):
        target = target()
    return target


def client_from_env() -> RealtimeClient | None:
    """Ambient lookup: REALTIME_DEVTOOLS_CLIENT="package.module:attr"."""
    spec = os.environ.get("REALTIME_DEVTOOLS_CLIENT", "").strip()
    if not spec:
        return None
    return load_client(spec)


# ─── Loopback ─────────────────────────────────────────────────────────────────


class LoopbackChannel:
    """One subscriber's view of a named loopback channel."""

    def __init__(self, client: LoopbackClient, name: str):
        self._client = client
        self.name = name
        self._listeners: list[tuple[str, dict, EventCallback]] = []
        self._status_callback: StatusCallback | None = None
        self.subscribed = False

    def on(self, kind: str, filter: dict, callback: EventCallback) -> LoopbackChannel:
        self._listeners.append((kind, dict(filter), callback))
        return self

    def subscribe(self, callback: StatusCallback) -> LoopbackChannel:
        self._status_callback = callback
        self._client._attach(self)
        self._client._schedule(self._confirm)
        return self

    def _confirm(self) -> None:
        if self._status_callback is None or self not in self._client._members(self.name):
            return
        self.subscribed = True
        self._status_callback("SUBSCRIBED", None)

    async def send(self, message: dict) -> str:
        if not self.subscribed:
            raise RuntimeError(f"channel {self.name} is not subscribed")
        await asyncio.sleep(0)
        kind = str(message.get("type") or "broadcast")
        self._client.publish(self.name, kind, dict(message))
        return "ok"

    def unsubscribe(self) -> str:
        was_subscribed = self.subscribed
        self.subscribed = False
        self._client._detach(self)
        callback, self._status_callback = self._status_callback, None
        if was_subscribed and callback is not None:
            callback("CLOSED", None)
        return "ok"

    def deliver(self, kind: str, payload: dict) -> None:
        if not self.subscribed:
            return
        for listener_kind, flt, callback in list(self._listeners):
            if listener_kind != kind:
                continue
            wanted = flt.get("event", "*")
            if wanted not in ("*", payload.get("event"), payload.get("eventType")):
                continue
            callback(dict(payload))


class LoopbackClient:
    """In-process publish/subscribe with a settable session.

    Broadcasts fan out to every subscribed handle on the channel, the sender
    included.
    """

    def __init__(self, session: Any = None):
        self.session = session
        self.session_error: str | None = None
        self._channels: dict[str, list[LoopbackChannel]] = {}

    def open_channel(self, name: str) -> LoopbackChannel:
        return LoopbackChannel(self, name)

    async def get_session(self) -> Any:
        await asyncio.sleep(0)
        if self.session_error:
            raise RuntimeError(self.session_error)
        return self.session

    def publish(self, channel: str, kind: str, payload: dict) -> int:
        """Deliver payload to every subscriber. Returns the delivery count."""
        members = [m for m in self._members(channel) if m.subscribed]
        for member in members:
            member.deliver(kind, payload)
        return len(members)

    def broadcast(self, channel: str, event: str, payload: dict) -> int:
        return self.publish(
            channel, "broadcast", {"type": "broadcast", "event": event, "payload": payload}
        )

    def database_change(
        self,
        channel: str,
        change: str,
        table: str,
        schema: str = "public",
        new: dict | None = None,
        old: dict | None = None,
    ) -> int:
        return self.publish(channel, "postgres_changes", {
            "eventType": change,
            "schema": schema,
            "table": table,
            "new": new or {},
            "old": old or {},
        })

    def presence(self, channel: str, event: str, **fields) -> int:
        return self.publish(channel, "presence", {"event": event, **fields})

    def _members(self, name: str) -> list[LoopbackChannel]:
        return self._channels.get(name, [])

    def _attach(self, handle: LoopbackChannel) -> None:
        members = self._channels.setdefault(handle.name, [])
        if handle not in members:
            members.append(handle)

    def _detach(self, handle: LoopbackChannel) -> None:
        members = self._channels.get(handle.name, [])
        if handle in members:
            members.remove(handle)

    @staticmethod
    def _schedule(fn: Callable[[], None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            fn()
            return
        loop.call_soon(fn)

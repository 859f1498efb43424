"""Fake realtime client for engine tests.

Records every capability call and lets tests drive status callbacks and
inbound events by hand. No network, no scheduling of its own.
"""

import asyncio


class FakeChannel:
    def __init__(self, client, name):
        self.client = client
        self.name = name
        self.listeners = []  # (kind, filter, callback)
        self.status_callback = None
        self.sent = []
        self.unsubscribe_calls = 0
        self.subscribe_raises = None
        self.unsubscribe_raises = None
        self.on_raises_at = None  # index of the listener whose on() raises
        self.async_unsubscribe = False
        self.released = False
        # send_result: value returned by send(); an Exception instance is raised;
        # "future" returns a Future the test resolves via resolve_send/fail_send.
        self.send_result = "ok"
        self.send_futures = []

    # ─── Capability ───────────────────────────────────────────────────

    def on(self, kind, filter, callback):
        if self.on_raises_at is not None and len(self.listeners) == self.on_raises_at:
            raise RuntimeError(f"cannot listen for {kind}")
        self.listeners.append((kind, dict(filter), callback))
        return self

    def subscribe(self, callback):
        if self.subscribe_raises is not None:
            raise self.subscribe_raises
        self.status_callback = callback
        return self

    def send(self, message):
        self.sent.append(message)
        if isinstance(self.send_result, Exception):
            raise self.send_result
        if self.send_result == "future":
            future = asyncio.get_running_loop().create_future()
            self.send_futures.append(future)
            return future
        if self.send_result == "async":
            return self._async_ok(message)
        return self.send_result

    async def _async_ok(self, message):
        await asyncio.sleep(0)
        if self.client.echo:
            self.emit("broadcast", dict(message))
        return "ok"

    def unsubscribe(self):
        self.unsubscribe_calls += 1
        if self.unsubscribe_raises is not None:
            raise self.unsubscribe_raises
        if self.async_unsubscribe:
            return self._async_unsubscribe()
        self.released = True
        return "ok"

    async def _async_unsubscribe(self):
        await asyncio.sleep(0)
        self.released = True
        return "ok"

    # ─── Test drivers ─────────────────────────────────────────────────

    @property
    def kinds(self):
        return [kind for kind, _flt, _cb in self.listeners]

    def status(self, status, err=None):
        self.status_callback(status, err)

    def emit(self, kind, payload):
        for listener_kind, _flt, callback in list(self.listeners):
            if listener_kind == kind:
                callback(payload)

    def broadcast(self, event, payload=None):
        self.emit("broadcast", {"type": "broadcast", "event": event, "payload": payload or {}})

    def resolve_send(self, index=0, value="ok"):
        self.send_futures[index].set_result(value)

    def fail_send(self, index=0, exc=None):
        self.send_futures[index].set_exception(exc or RuntimeError("send failed"))


class FakeClient:
    """RealtimeClient double. session may be a value or an Exception to raise."""

    def __init__(self, session="session-token", echo=False):
        self.session = session
        self.echo = echo
        self.channels = []
        self.lookups = 0
        self.open_raises = None
        # Attributes applied to every channel this client opens.
        self.channel_options = {}

    def open_channel(self, name):
        if self.open_raises is not None:
            raise self.open_raises
        channel = FakeChannel(self, name)
        for attr, value in self.channel_options.items():
            setattr(channel, attr, value)
        self.channels.append(channel)
        return channel

    async def get_session(self):
        self.lookups += 1
        await asyncio.sleep(0)
        if isinstance(self.session, Exception):
            raise self.session
        return self.session

    @property
    def last(self):
        return self.channels[-1]


# Import targets for "module:attr" client loading.
SHARED_CLIENT = FakeClient(session="shared")


def make_client():
    return FakeClient(session="factory")

"""Auth monitor: polls the session-lookup capability and derives AuthState.

// [LAW:single-enforcer] Only this module produces AuthState transitions.
// [LAW:dataflow-not-control-flow] Every check resolves to exactly one AuthState value.

The monitor logs a system entry when the outcome becomes unauthenticated or
the failure reason changes, not on every poll. Listeners registered via
on_change see (previous, current) after every applied check; the session
facade uses that to force-stop monitoring on authentication loss.
"""

import asyncio
import inspect
import logging
from collections.abc import Callable
from collections.abc import Mapping
from datetime import datetime

from realtime_devtools.event_types import AuthState, Severity

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 30.0
NO_SESSION = "no active session"
NO_CAPABILITY = "realtime client not found"


class SessionLookupError(RuntimeError):
    """The lookup reported an error in its response instead of raising."""


def _unwrap(result):
    """Accept a bare session, or a {"data": {"session": ...}, "error": ...} response."""
    if isinstance(result, Mapping) and ("data" in result or "error" in result):
        error = result.get("error")
        if error:
            raise SessionLookupError(str(getattr(error, "message", error)))
        data = result.get("data")
        if data is None:
            return None
        if not isinstance(data, Mapping):
            raise SessionLookupError("malformed session response")
        return data.get("session")
    return result


def _reason(exc: BaseException) -> str:
    text = str(exc).strip()
    return text or type(exc).__name__ or "authentication check failed"


class AuthMonitor:
    def __init__(
        self,
        lookup: Callable | None,
        log_store,
        interval: float = DEFAULT_INTERVAL,
        clock: Callable[[], datetime] | None = None,
    ):
        self._lookup = lookup
        self._log = log_store
        self.interval = interval
        self._clock = clock or datetime.now
        self._state = AuthState()
        self._issued = 0
        self._applied = 0
        self._task: asyncio.Task | None = None
        self._closed = False
        self.on_change: Callable[[AuthState, AuthState], None] | None = None

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def check(self) -> AuthState:
        """Run one lookup and apply its outcome. Never raises."""
        self._issued += 1
        ticket = self._issued
        try:
            if self._lookup is None:
                raise LookupError(NO_CAPABILITY)
            result = self._lookup()
            if inspect.isawaitable(result):
                result = await result
            session = _unwrap(result)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            outcome = AuthState(False, _reason(exc), self._clock())
        else:
            if session is not None:
                outcome = AuthState(True, None, self._clock())
            else:
                outcome = AuthState(False, NO_SESSION, self._clock())

        # [LAW:single-enforcer] Late or post-teardown completions are discarded here.
        if self._closed or ticket < self._applied:
            return self._state
        self._applied = ticket
        self._apply(outcome)
        return self._state

    def _apply(self, outcome: AuthState) -> None:
        previous = self._state
        self._state = outcome
        changed = (
            previous.is_authenticated != outcome.is_authenticated
            or previous.error != outcome.error
        )
        first = previous.last_checked_at is None
        if not outcome.is_authenticated and (changed or first):
            self._log.system(
                Severity.WARNING,
                f"Not authenticated: {outcome.error}",
                {"error": outcome.error},
            )
        elif outcome.is_authenticated and not previous.is_authenticated and not first:
            self._log.system(Severity.SUCCESS, "Session restored")
        if self.on_change is not None:
            self.on_change(previous, outcome)

    def start(self, eager: bool = True) -> asyncio.Task:
        """Poll every `interval` seconds; eager=True checks once right away."""
        if self.running:
            return self._task
        self._closed = False
        self._task = asyncio.get_running_loop().create_task(self._poll(eager))
        return self._task

    async def _poll(self, eager: bool) -> None:
        if not eager:
            await asyncio.sleep(self.interval)
        while not self._closed:
            await self.check()
            await asyncio.sleep(self.interval)

    async def close(self) -> None:
        self._closed = True
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

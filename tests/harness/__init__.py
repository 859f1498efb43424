"""Test harness for realtime-devtools.

Re-exports the public API for convenient imports:
    from tests.harness import run_app, press_and_settle, FakeClient, ...
"""

from tests.harness.app_runner import run_app
from tests.harness.assertions import (
    entries_from,
    messages,
    severities_from,
    plain,
)
from tests.harness.fake_transport import FakeChannel, FakeClient
from tests.harness.interactions import press_and_settle, press_sequence

__all__ = [
    "run_app",
    "press_and_settle",
    "press_sequence",
    "FakeChannel",
    "FakeClient",
    "entries_from",
    "messages",
    "severities_from",
    "plain",
]

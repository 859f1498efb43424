"""Pytest configuration and shared fixtures for realtime-devtools tests."""

from datetime import datetime, timedelta

import pytest

from tests.harness.fake_transport import FakeClient


# ---------------------------------------------------------------------------
# Settings isolation
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def tmp_settings(tmp_path, monkeypatch):
    """Redirect the settings file to a temp directory for every test."""
    settings_file = tmp_path / "settings.json"
    monkeypatch.setattr(
        "realtime_devtools.io.settings.get_config_path",
        lambda: settings_file,
    )
    return settings_file


# ---------------------------------------------------------------------------
# Clock + transport doubles
# ---------------------------------------------------------------------------

class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 5, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client():
    return FakeClient()

"""In-process Textual tests for DevToolsApp — keys drive the session engine."""

import pytest

from realtime_devtools.event_types import Source, SubscriptionState
from tests.harness import FakeClient, press_and_settle, run_app

pytestmark = pytest.mark.textual


async def test_mount_checks_auth_and_shows_panel():
    async with run_app() as (pilot, app, session):
        snap = session.snapshot()
        assert snap.auth.is_authenticated
        assert snap.visible
        assert app.query_one("#devtools").display is True
        assert app.query_one("#indicator").display is False


async def test_hidden_start_shows_indicator():
    async with run_app(auto_show=False) as (pilot, app, session):
        assert session.snapshot().visible is False
        assert app.query_one("#indicator").display is True


async def test_shortcut_toggles_visibility():
    async with run_app(shortcut="f2") as (pilot, app, session):
        await press_and_settle(pilot, "f2")
        assert session.snapshot().visible is False
        await press_and_settle(pilot, "f2")
        assert session.snapshot().visible is True


async def test_commands_ignored_while_hidden():
    client = FakeClient()
    async with run_app(client=client, auto_show=False) as (pilot, app, session):
        await press_and_settle(pilot, "s")
        assert client.channels == []


async def test_start_and_stop_keys():
    client = FakeClient()
    async with run_app(client=client) as (pilot, app, session):
        await press_and_settle(pilot, "s")
        assert session.snapshot().subscription is SubscriptionState.CONNECTING
        client.last.status("SUBSCRIBED")
        await pilot.pause()
        assert session.snapshot().subscription is SubscriptionState.ACTIVE

        client.last.broadcast("ping", {"n": 1})
        await pilot.pause()
        assert session.snapshot().stats.count(Source.BROADCAST) == 1

        await press_and_settle(pilot, "x")
        assert session.snapshot().subscription is SubscriptionState.IDLE
        assert client.last.unsubscribe_calls == 1


async def test_clear_key():
    client = FakeClient()
    async with run_app(client=client) as (pilot, app, session):
        await press_and_settle(pilot, "s")
        await press_and_settle(pilot, "c")
        assert session.snapshot().logs == ()


async def test_cursor_and_details():
    client = FakeClient()
    async with run_app(client=client) as (pilot, app, session):
        await press_and_settle(pilot, "s")
        client.last.status("SUBSCRIBED")
        client.last.broadcast("first")
        client.last.broadcast("second")
        await pilot.pause()
        newest = session.snapshot().logs[0]
        assert app.cursor_id == newest.id

        await press_and_settle(pilot, "j")
        assert app.cursor_id == session.snapshot().logs[1].id

        await press_and_settle(pilot, "enter")
        assert session.snapshot().is_expanded(app.cursor_id)
        await press_and_settle(pilot, "enter")
        assert not session.snapshot().is_expanded(app.cursor_id)


async def test_setting_toggle_keys(tmp_settings):
    async with run_app() as (pilot, app, session):
        await press_and_settle(pilot, "3")
        assert session.snapshot().config.enable_presence is False
        await press_and_settle(pilot, "h")
        assert session.snapshot().config.show_system_logs is False
        await press_and_settle(pilot, "minus")
        assert session.snapshot().config.max_logs == 150
    assert tmp_settings.exists()


async def test_listener_toggle_locked_while_monitoring():
    async with run_app() as (pilot, app, session):
        await press_and_settle(pilot, "s")
        await press_and_settle(pilot, "1")
        assert session.snapshot().config.enable_broadcast is True
        assert session.snapshot().logs[0].message.startswith("Stop monitoring before changing")


async def test_channel_editor():
    client = FakeClient()
    async with run_app(client=client) as (pilot, app, session):
        await press_and_settle(pilot, "e")
        channel_input = app.query_one("#channel-input")
        assert channel_input.has_focus
        channel_input.value = ""
        await pilot.press(*"room-42")
        await press_and_settle(pilot, "enter")
        assert session.snapshot().config.channel_name == "room-42"
        assert not channel_input.has_focus

        await press_and_settle(pilot, "s")
        assert client.last.name == "room-42"


async def test_cycle_side_panel():
    async with run_app() as (pilot, app, session):
        assert app.side_panel == "stats"
        await press_and_settle(pilot, "tab")
        assert app.side_panel == "settings"
        await press_and_settle(pilot, "tab")
        assert app.side_panel == "stats"


async def test_unmount_closes_session():
    client = FakeClient()
    async with run_app(client=client) as (pilot, app, session):
        await press_and_settle(pilot, "s")
        client.last.status("SUBSCRIBED")
        await pilot.pause()
    assert session.snapshot().subscription is SubscriptionState.IDLE
    assert client.last.unsubscribe_calls == 1
    assert not session.auth.running

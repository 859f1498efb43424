"""Textual rendering surface for the monitoring session engine.

// [LAW:locality-or-seam] Reads Snapshot, calls SessionFacade commands. Owns only display state.
// [LAW:single-enforcer] on_key is the sole key dispatcher.
"""

import logging

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.widgets import Input, Static

import realtime_devtools.app.demo_traffic
import realtime_devtools.tui.input_modes
import realtime_devtools.tui.rendering
from realtime_devtools.app.config_store import MAX_MAX_LOGS, MIN_MAX_LOGS
from realtime_devtools.keys import DEFAULT_SHORTCUT, Shortcut, parse_shortcut

logger = logging.getLogger(__name__)

SIDE_PANELS = ("stats", "settings")


class DevToolsApp(App):
    """TUI for watching one realtime channel."""

    TITLE = "Realtime DevTools"

    DEFAULT_CSS = """
    #indicator {
        dock: bottom;
        height: 1;
        padding: 0 1;
        background: $panel;
    }
    #devtools {
        height: 1fr;
    }
    #status {
        height: 1;
        padding: 0 1;
        background: $panel;
    }
    #body {
        height: 1fr;
    }
    #log-scroll {
        width: 2fr;
        border: solid $primary;
    }
    #side {
        width: 1fr;
        min-width: 34;
        padding: 0 1;
        border: solid $primary;
    }
    #channel-input {
        dock: bottom;
        display: none;
    }
    #hints {
        height: 1;
        padding: 0 1;
        color: $text-muted;
    }
    """

    def __init__(
        self,
        session,
        shortcut: Shortcut | None = None,
        enable_shortcut: bool = True,
        auto_show: bool = True,
        demo_client=None,
        demo_interval: float = 1.5,
    ):
        super().__init__()
        self._session = session
        self._shortcut = shortcut or parse_shortcut(DEFAULT_SHORTCUT)
        self._enable_shortcut = enable_shortcut
        self._auto_show = auto_show
        self._demo_client = demo_client
        self._demo_interval = demo_interval
        self._cursor_id: int | None = None
        self._side_panel = SIDE_PANELS[0]
        self._dispose = None
        self._snap = session.snapshot()

    # ─── Layout ───────────────────────────────────────────────────────

    def compose(self) -> ComposeResult:
        with Vertical(id="devtools"):
            yield Static("", id="status")
            with Horizontal(id="body"):
                with VerticalScroll(id="log-scroll"):
                    yield Static("", id="logs")
                yield Static("", id="side")
            yield Input(placeholder="channel name", id="channel-input")
            yield Static(realtime_devtools.tui.input_modes.hint_line(), id="hints")
        yield Static("", id="indicator")

    async def on_mount(self) -> None:
        self._dispose = self._session.subscribe(self._on_snapshot)
        await self._session.open()
        if self._auto_show and not self._session.snapshot().visible:
            self._session.toggle_visibility()
        if self._demo_client is not None:
            self.run_worker(
                realtime_devtools.app.demo_traffic.run(
                    self._demo_client,
                    lambda: self._session.snapshot().channel,
                    interval=self._demo_interval,
                ),
                exclusive=False,
            )
        self.set_interval(1.0, self._refresh_side)
        self._render(self._session.snapshot())

    async def on_unmount(self) -> None:
        if self._dispose is not None:
            self._dispose()
            self._dispose = None
        await self._session.close()

    # ─── Snapshot → widgets ───────────────────────────────────────────

    def _on_snapshot(self, snap) -> None:
        if self._dispose is None:
            return
        self._render(snap)

    def _render(self, snap) -> None:
        previous, self._snap = self._snap, snap
        rendering = realtime_devtools.tui.rendering
        visible_ids = [entry.id for entry in snap.visible_logs]
        grew = bool(visible_ids) and (not previous.logs or previous.logs[0].id != snap.logs[0].id)
        if self._cursor_id not in visible_ids or (grew and snap.config.auto_scroll):
            self._cursor_id = visible_ids[0] if visible_ids else None

        self.query_one("#devtools").display = snap.visible
        indicator = self.query_one("#indicator", Static)
        indicator.display = not snap.visible
        indicator.update(rendering.render_indicator(snap, self._shortcut.label))

        self.query_one("#status", Static).update(
            rendering.render_status_line(snap, self._shortcut.label if self._enable_shortcut else "")
        )
        self.query_one("#logs", Static).update(rendering.render_logs(snap, self._cursor_id))
        if grew and snap.config.auto_scroll:
            self.query_one("#log-scroll", VerticalScroll).scroll_home(animate=False)
        self._refresh_side()

    def _refresh_side(self) -> None:
        rendering = realtime_devtools.tui.rendering
        side = self.query_one("#side", Static)
        if self._side_panel == "stats":
            side.update(rendering.render_stats(self._snap))
        else:
            side.update(rendering.render_settings(self._snap, self._shortcut.label))

    # ─── Input ────────────────────────────────────────────────────────

    async def on_key(self, event) -> None:
        channel_input = self.query_one("#channel-input", Input)
        if channel_input.has_focus:
            if event.key == "escape":
                event.prevent_default()
                self._close_channel_input()
            return

        if self._enable_shortcut and self._shortcut.matches(event.key):
            event.prevent_default()
            self._session.toggle_visibility()
            return

        if not self._snap.visible and event.key != "q":
            return

        if event.key == "e":
            event.prevent_default()
            self._open_channel_input()
            return

        action_name = realtime_devtools.tui.input_modes.KEYMAP.get(event.key)
        if action_name:
            event.prevent_default()
            await self.run_action(action_name)

    def _open_channel_input(self) -> None:
        channel_input = self.query_one("#channel-input", Input)
        channel_input.value = self._snap.config.channel_name
        channel_input.display = True
        channel_input.focus()

    def _close_channel_input(self) -> None:
        channel_input = self.query_one("#channel-input", Input)
        channel_input.display = False
        self.set_focus(None)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._close_channel_input()
        self._session.update_config(channel_name=event.value.strip())

    # ─── Actions ──────────────────────────────────────────────────────

    def action_start_monitoring(self) -> None:
        self._session.start_monitoring()

    def action_stop_monitoring(self) -> None:
        self._session.stop_monitoring()

    def action_toggle_mode(self) -> None:
        self._session.toggle_mode(not self._snap.self_test_mode)

    def action_send_self_test(self) -> None:
        self._session.send_self_test()

    def action_clear_logs(self) -> None:
        self._session.clear_logs()

    async def action_check_auth(self) -> None:
        await self._session.check_auth()

    def action_cursor_down(self) -> None:
        self._move_cursor(1)

    def action_cursor_up(self) -> None:
        self._move_cursor(-1)

    def _move_cursor(self, delta: int) -> None:
        ids = [entry.id for entry in self._snap.visible_logs]
        if not ids:
            return
        index = ids.index(self._cursor_id) if self._cursor_id in ids else 0
        self._cursor_id = ids[max(0, min(len(ids) - 1, index + delta))]
        self.query_one("#logs", Static).update(
            realtime_devtools.tui.rendering.render_logs(self._snap, self._cursor_id)
        )

    def action_toggle_details(self) -> None:
        if self._cursor_id is not None:
            self._session.toggle_expanded(self._cursor_id)

    def action_toggle_setting(self, name: str) -> None:
        current = getattr(self._snap.config, name)
        self._session.update_config({name: not current})

    def action_adjust_max_logs(self, delta: int) -> None:
        value = max(MIN_MAX_LOGS, min(MAX_MAX_LOGS, self._snap.config.max_logs + delta))
        if value != self._snap.config.max_logs:
            self._session.update_config(max_logs=value)

    def action_cycle_panel(self) -> None:
        index = SIDE_PANELS.index(self._side_panel)
        self._side_panel = SIDE_PANELS[(index + 1) % len(SIDE_PANELS)]
        self._refresh_side()

    @property
    def side_panel(self) -> str:
        return self._side_panel

    @property
    def cursor_id(self) -> int | None:
        return self._cursor_id

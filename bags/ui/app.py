"""Textual host for the bags screen."""

import logging
from typing import Awaitable, Optional

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widget import Widget

from ..core.controller import Controller
from ..core.input import KeyEvent
from .render import page_height_for, render_screen, tab_at, table_row_at

logger = logging.getLogger(__name__)

TICK_SECS = 0.25
SCROLL_ROWS = 3

NAMED_KEYS = {
    "escape", "enter", "backspace", "tab",
    "up", "down", "left", "right", "pageup", "pagedown",
}


def translate_key(event: events.Key) -> Optional[KeyEvent]:
    """Convert a textual key event to the application's key type.

    Returns:
        The key, or None for keys the application does not use
    """
    if event.key.startswith("ctrl+"):
        name = event.key[len("ctrl+"):]
        if len(name) == 1:
            return KeyEvent(name, ctrl=True)
        return None
    if event.key in NAMED_KEYS:
        return KeyEvent(event.key)
    if event.is_printable and event.character:
        return KeyEvent(event.character)
    return None


class BagsView(Widget, can_focus=True):
    """Full-screen widget that draws the application state."""

    def __init__(self, controller: Controller, **kwargs):
        super().__init__(**kwargs)
        self.controller = controller

    def render(self):
        return render_screen(
            self.controller.state,
            self.controller.chart_cache,
            self.size.width,
            self.size.height,
        )

    def on_resize(self, event: events.Resize) -> None:
        state = self.controller.state
        state.page_height = page_height_for(event.size.height)
        state.adjust_scroll()

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        key = translate_key(event)
        if key is not None:
            self.app.run_worker(self.app.process_key(key), group="keys")

    def on_click(self, event: events.Click) -> None:
        if event.button != 1:
            return
        controller = self.controller
        if event.y == 0:
            tab = tab_at(event.x)
            if tab is not None:
                self.app.run_worker(self.app.apply_update(controller.select_tab(tab)), group="keys")
            return

        row = table_row_at(event.y, self.size.height)
        if row is not None:
            self.app.run_worker(self.app.apply_update(controller.select_row(row)), group="keys")

    def on_mouse_scroll_down(self, event: events.MouseScrollDown) -> None:
        event.stop()
        self.app.run_worker(self.app.apply_update(self.controller.scroll(SCROLL_ROWS)), group="keys")

    def on_mouse_scroll_up(self, event: events.MouseScrollUp) -> None:
        event.stop()
        self.app.run_worker(self.app.apply_update(self.controller.scroll(-SCROLL_ROWS)), group="keys")


class BagsApp(App):
    """Application shell: one view, a periodic tick and a clean shutdown."""

    CSS = """
    Screen {
        layout: vertical;
    }

    BagsView {
        width: 1fr;
        height: 1fr;
    }
    """

    BINDINGS = [Binding("ctrl+c", "quit", "Quit", priority=True)]

    def __init__(self, controller: Controller):
        super().__init__()
        self.controller = controller
        self.controller.alert_engine.bell = self.bell
        self._stopping = False

    def compose(self) -> ComposeResult:
        yield BagsView(self.controller, id="bags")

    def on_mount(self) -> None:
        self.bags_view.focus()
        self.set_interval(TICK_SECS, self._tick)
        logger.info("TUI started")

    @property
    def bags_view(self) -> BagsView:
        return self.query_one(BagsView)

    async def process_key(self, key: KeyEvent) -> None:
        await self.controller.feed(key)
        self._after_update()

    async def apply_update(self, update: Awaitable[None]) -> None:
        await update
        self._after_update()

    def _tick(self) -> None:
        if not self.controller.busy:
            self.run_worker(self._run_tick(), group="tick")
        self.bags_view.refresh()

    async def _run_tick(self) -> None:
        await self.controller.tick()
        self._after_update()

    def _after_update(self) -> None:
        if self.controller.state.quit:
            self.run_worker(self._shutdown())
        else:
            self.bags_view.refresh()

    def action_quit(self) -> None:
        self.run_worker(self._shutdown())

    async def _shutdown(self) -> None:
        if self._stopping:
            return
        self._stopping = True
        logger.info("Shutting down")
        try:
            await self.controller.shutdown()
        finally:
            self.exit()

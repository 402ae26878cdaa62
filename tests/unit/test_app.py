"""Tests for the textual application shell."""

from unittest.mock import AsyncMock, Mock

import pytest
from textual import events

from bags.core.controller import Controller
from bags.core.input import KeyEvent
from bags.data.models import Tab
from bags.ui.app import BagsApp, BagsView, translate_key
from bags.ui.render import TABLE_HEADER_HEIGHT, TOP_BAR_HEIGHT, tab_at


class TestTranslateKey:
    """Test mapping textual key events to application keys."""

    @pytest.mark.parametrize("key,character,expected", [
        ("j", "j", KeyEvent("j")),
        ("G", "G", KeyEvent("G")),
        ("slash", "/", KeyEvent("/")),
        ("enter", "\r", KeyEvent("enter")),
        ("escape", "\x1b", KeyEvent("escape")),
        ("pagedown", None, KeyEvent("pagedown")),
        ("ctrl+d", None, KeyEvent("d", ctrl=True)),
        ("f1", None, None),
        ("ctrl+pageup", None, None),
    ])
    def test_translate(self, key, character, expected):
        assert translate_key(events.Key(key, character)) == expected


@pytest.fixture
def controller(config_manager, mock_source):
    notifier = Mock()
    notifier.send = AsyncMock()
    notifier.close = AsyncMock()
    return Controller(config_manager, source_factory=lambda key: mock_source,
                      notifier=notifier, store_iterations=1000)


class TestBagsApp:
    """Test the running application."""

    @pytest.mark.asyncio
    async def test_escape_on_lock_screen_quits(self, controller, mock_source):
        app = BagsApp(controller)
        async with app.run_test() as pilot:
            await pilot.press("escape")
            await pilot.pause()

        assert controller.state.quit
        mock_source.stop.assert_awaited()
        controller.notifier.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unlock_through_keys(self, controller):
        app = BagsApp(controller)
        async with app.run_test() as pilot:
            await pilot.press("p", "w", "enter", "p", "w", "enter")
            await app.workers.wait_for_complete()
            assert [c.id for c in controller.state.coins] == ["bitcoin", "ethereum", "solana"]

    @pytest.mark.asyncio
    async def test_bell_is_wired(self, controller):
        app = BagsApp(controller)
        assert controller.alert_engine.bell == app.bell

    @pytest.mark.asyncio
    async def test_click_row_selects_coin(self, controller):
        app = BagsApp(controller)
        async with app.run_test() as pilot:
            await pilot.press("p", "w", "enter", "p", "w", "enter")
            await app.workers.wait_for_complete()

            await pilot.click(BagsView, offset=(20, TOP_BAR_HEIGHT + TABLE_HEADER_HEIGHT + 2))
            await app.workers.wait_for_complete()
            assert controller.state.selected_coin().id == "solana"

    @pytest.mark.asyncio
    async def test_click_tab_switches(self, controller):
        app = BagsApp(controller)
        async with app.run_test() as pilot:
            await pilot.press("p", "w", "enter", "p", "w", "enter")
            await app.workers.wait_for_complete()

            column = next(x for x in range(80) if tab_at(x) is Tab.FAVOURITES)
            await pilot.click(BagsView, offset=(column + 2, 0))
            await app.workers.wait_for_complete()
            assert controller.state.tab is Tab.FAVOURITES

    @pytest.mark.asyncio
    async def test_scroll_wheel_moves_selection(self, controller):
        app = BagsApp(controller)
        async with app.run_test() as pilot:
            await pilot.press("p", "w", "enter", "p", "w", "enter")
            await app.workers.wait_for_complete()
            view = app.bags_view

            view.on_mouse_scroll_down(Mock())
            await app.workers.wait_for_complete()
            assert controller.state.selected == 2

            view.on_mouse_scroll_up(Mock())
            await app.workers.wait_for_complete()
            assert controller.state.selected == 0

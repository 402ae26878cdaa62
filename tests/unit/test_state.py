"""Tests for application state helpers and the refresh scheduler."""

import pytest

from bags.core.scheduler import RefreshScheduler
from bags.core.state import AppState, format_age, truncate_error
from bags.data.models import Tab


class TestFormatting:
    """Test status bar text helpers."""

    def test_short_error_unchanged(self):
        assert truncate_error("API: timeout") == "API: timeout"

    def test_long_error_truncated(self):
        message = "x" * 100
        result = truncate_error(message)
        assert len(result) == 80
        assert result.endswith("...")

    @pytest.mark.parametrize("seconds,expected", [
        (0, "0s ago"),
        (59.9, "59s ago"),
        (60, "1m ago"),
        (185, "3m ago"),
    ])
    def test_format_age(self, seconds, expected):
        assert format_age(seconds) == expected


class TestExpiry:
    """Test timed status clearing."""

    def test_error_expires_after_ten_seconds(self, state):
        state.set_error("API: boom", now=100.0)
        state.expire(109.9)
        assert state.error == "API: boom"
        state.expire(110.0)
        assert state.error is None
        assert state.error_time is None

    def test_flash_expires_after_two_seconds(self, state):
        state.flash("bitcoin", 5.0)
        assert state.flashing("bitcoin")
        assert not state.flashing("ethereum")
        state.expire(6.9)
        assert state.flashing("bitcoin")
        state.expire(7.0)
        assert state.alert_flash is None

    def test_refresh_age(self, state):
        assert state.refresh_age(10.0) == ""
        state.last_refresh = 10.0
        assert state.refresh_age(25.0) == "15s ago"


class TestSelection:
    """Test cursor movement and scrolling."""

    def test_move_selection_clamps(self, state):
        state.move_selection(10)
        assert state.selected == 2
        state.move_selection(-10)
        assert state.selected == 0

    def test_empty_list(self):
        state = AppState()
        state.move_selection(3)
        assert state.selected == 0
        assert state.selected_coin() is None

    def test_scroll_follows_cursor(self, state):
        state.page_height = 2
        state.move_selection(2)
        assert state.scroll_offset == 1
        state.move_selection(-2)
        assert state.scroll_offset == 0

    def test_clamp_after_shrink(self, state, sample_coins):
        state.selected = 2
        state.coins = sample_coins[:1]
        state.clamp_selection()
        assert state.selected == 0

    def test_switch_tab_resets_cursor(self, state):
        state.selected = 1
        state.switch_tab(Tab.FAVOURITES)
        assert state.selected == 0
        assert state.tab is Tab.FAVOURITES

    def test_select_page_row_adds_scroll(self, state):
        state.page_height = 2
        state.scroll_offset = 1
        state.select_page_row(1)
        assert state.selected == 2
        assert state.scroll_offset == 1

    def test_select_page_row_past_end(self, state):
        state.selected = 1
        state.select_page_row(5)
        assert state.selected == 1

    def test_selected_coin_follows_view(self, state):
        state.filter_text = "sol"
        assert state.selected_coin().id == "solana"


class TestRefreshScheduler:
    """Test the refresh interval trigger."""

    def test_not_due_before_first_attempt(self):
        scheduler = RefreshScheduler(60)
        assert not scheduler.due(now=1000.0)

    def test_due_after_interval(self):
        scheduler = RefreshScheduler(60)
        scheduler.mark_attempt(now=0.0)
        assert not scheduler.due(now=59.0)
        assert scheduler.due(now=60.0)

    def test_attempt_restarts_timer(self):
        """A failed attempt still pushes the next refresh a full interval out."""
        scheduler = RefreshScheduler(60)
        scheduler.mark_attempt(now=0.0)
        scheduler.mark_attempt(now=60.0)
        assert not scheduler.due(now=100.0)
        assert scheduler.last_success is None

    def test_interval_floor(self):
        scheduler = RefreshScheduler(5)
        assert scheduler.interval == 30
        scheduler.mark_attempt(now=0.0)
        assert not scheduler.due(now=10.0)
        assert scheduler.due(now=30.0)

    def test_uses_clock(self):
        now = [0.0]
        scheduler = RefreshScheduler(30, clock=lambda: now[0])
        scheduler.mark_attempt()
        now[0] = 31.0
        assert scheduler.due()
        scheduler.mark_success()
        assert scheduler.last_success == 31.0

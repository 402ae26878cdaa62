"""Root application state."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..data.models import (
    ChartRange, Coin, GlobalMarketStats, Holding, NotificationMethod, PriceAlert, SortSpec, Tab
)
from . import view
from .logging import log_user_error
from .modes import Browsing, Mode

ERROR_DISPLAY_LIMIT = 80
ERROR_TTL_SECS = 10.0
FLASH_TTL_SECS = 2.0
DEFAULT_PAGE_HEIGHT = 20


def truncate_error(message: str, limit: int = ERROR_DISPLAY_LIMIT) -> str:
    """Shorten a message for the status bar, marking the cut with an ellipsis."""
    if len(message) > limit:
        return message[:limit - 3] + "..."
    return message


def format_age(seconds: float) -> str:
    """Render an elapsed time as ``Ns ago`` or, past a minute, ``Nm ago``."""
    secs = int(seconds)
    if secs < 60:
        return f"{secs}s ago"
    return f"{secs // 60}m ago"


@dataclass
class AppState:
    """
    Everything the renderer draws and the input handlers mutate.

    There is one instance per run, owned by the controller. Timestamps are
    ``time.monotonic()`` readings supplied by the caller.
    """

    currency: str = "usd"
    theme: str = "dark"
    refresh_interval_secs: int = 60

    coins: List[Coin] = field(default_factory=list)
    holdings: List[Holding] = field(default_factory=list)
    favourites: List[str] = field(default_factory=list)
    alerts: List[PriceAlert] = field(default_factory=list)
    global_stats: Optional[GlobalMarketStats] = None

    tab: Tab = Tab.MARKETS
    selected: int = 0
    scroll_offset: int = 0
    page_height: int = DEFAULT_PAGE_HEIGHT
    mode: Mode = field(default_factory=Browsing)
    filter_text: str = ""
    sort: SortSpec = field(default_factory=SortSpec)

    chart_loading: bool = False
    loading: bool = True
    last_refresh: Optional[float] = None
    error: Optional[str] = None
    error_time: Optional[float] = None
    alert_flash: Optional[Tuple[str, float]] = None

    coingecko_api_key: str = ""
    cmc_api_key: str = ""
    notification_method: NotificationMethod = NotificationMethod.NONE
    ntfy_topic: str = ""

    quit: bool = False

    def visible(self) -> List[view.VisibleRow]:
        return view.visible_coins(
            self.coins, self.tab, self.favourites, self.holdings, self.filter_text, self.sort)

    def selected_coin(self) -> Optional[Coin]:
        rows = self.visible()
        if 0 <= self.selected < len(rows):
            return rows[self.selected][1]
        return None

    def find_coin(self, coin_id: str) -> Optional[Coin]:
        return view.find_coin(self.coins, coin_id)

    def holding_for(self, coin_id: str) -> float:
        return view.holding_amount(self.holdings, coin_id)

    def buy_price_for(self, coin_id: str) -> Optional[float]:
        holding = view.find_holding(self.holdings, coin_id)
        return holding.buy_price if holding else None

    def total_portfolio_value(self) -> float:
        return view.total_portfolio_value(self.coins, self.holdings)

    def clamp_selection(self) -> None:
        """Pull the cursor back inside the visible list and scroll to it."""
        self.selected = view.clamp_index(self.selected, len(self.visible()))
        self.adjust_scroll()

    def adjust_scroll(self) -> None:
        if self.page_height <= 0:
            return
        if self.selected < self.scroll_offset:
            self.scroll_offset = self.selected
        elif self.selected >= self.scroll_offset + self.page_height:
            self.scroll_offset = self.selected - self.page_height + 1

    def move_selection(self, delta: int) -> None:
        """Move the cursor by ``delta`` rows, stopping at either end."""
        length = len(self.visible())
        if length == 0:
            self.selected = 0
        else:
            self.selected = max(0, min(self.selected + delta, length - 1))
        self.adjust_scroll()

    def select_page_row(self, row: int) -> None:
        """Select the coin drawn ``row`` lines below the top of the table page.

        Rows past the end of the visible list leave the selection alone.
        """
        target = self.scroll_offset + row
        if 0 <= target < len(self.visible()):
            self.selected = target
            self.adjust_scroll()

    def select_first(self) -> None:
        self.selected = 0
        self.clamp_selection()

    def select_last(self) -> None:
        self.selected = max(0, len(self.visible()) - 1)
        self.adjust_scroll()

    def switch_tab(self, tab: Tab) -> None:
        self.tab = tab
        self.select_first()

    def set_error(self, message: str, now: float) -> None:
        """Show an error in the status bar and append it to the error log."""
        log_user_error(message)
        self.error = truncate_error(message)
        self.error_time = now

    def clear_error(self) -> None:
        self.error = None
        self.error_time = None

    def flash(self, coin_id: str, now: float) -> None:
        self.alert_flash = (coin_id, now)

    def flashing(self, coin_id: str) -> bool:
        return self.alert_flash is not None and self.alert_flash[0] == coin_id

    def expire(self, now: float) -> None:
        """Drop the error after 10 seconds and the alert flash after 2."""
        if self.error_time is not None and now - self.error_time >= ERROR_TTL_SECS:
            self.clear_error()
        if self.alert_flash is not None and now - self.alert_flash[1] >= FLASH_TTL_SECS:
            self.alert_flash = None

    def refresh_age(self, now: float) -> str:
        if self.last_refresh is None:
            return ""
        return format_age(now - self.last_refresh)

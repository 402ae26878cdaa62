"""
Keyboard handling as a state machine over the modes in ``bags.core.modes``.

Each mode has one handler that takes the state, the mode and a key, and
returns the next mode together with the effects the controller must carry out
(store writes, network calls). Handlers only touch in-memory state; anything
that awaits is expressed as an effect.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Type, Union
import logging

from ..data.models import (
    AlertDirection, CURRENCIES, NotificationMethod, SearchResult, SettingsField,
    SettingsForm, SortColumn, SortSpec, Tab
)
from ..ui.theme import THEME_NAMES
from . import view
from .modes import (
    Browsing, ChartPopup, ConfirmingPassword, EditingAlert, EditingAmount, EditingBuyPrice,
    Filtering, Locked, Mode, SearchQuery, SearchResults, Settings, SortPicking
)
from .state import AppState

logger = logging.getLogger(__name__)

NOTIFICATION_METHODS = list(NotificationMethod)

SORT_KEYS: Dict[str, SortColumn] = {
    "r": SortColumn.RANK,
    "#": SortColumn.RANK,
    "n": SortColumn.NAME,
    "p": SortColumn.PRICE,
    "1": SortColumn.CHANGE_1H,
    "2": SortColumn.CHANGE_24H,
    "7": SortColumn.CHANGE_7D,
    "v": SortColumn.VOLUME,
    "m": SortColumn.MARKET_CAP,
}


@dataclass(frozen=True)
class KeyEvent:
    """A key press.

    ``key`` is either a single printable character or one of the names
    escape, enter, backspace, tab, up, down, left, right, pageup, pagedown.
    """
    key: str
    ctrl: bool = False

    @property
    def char(self) -> Optional[str]:
        if len(self.key) == 1 and not self.ctrl:
            return self.key
        return None


# Effects requested by handlers and executed by the controller

@dataclass(frozen=True)
class OpenStore:
    password: str
    create: bool = False


@dataclass(frozen=True)
class Refresh:
    pass


@dataclass(frozen=True)
class FetchChart:
    coin_id: str
    range_days: int


@dataclass(frozen=True)
class ToggleFavourite:
    coin_id: str


@dataclass(frozen=True)
class SetHolding:
    coin_id: str
    amount: float
    buy_price: Optional[float] = None


@dataclass(frozen=True)
class SetBuyPrice:
    coin_id: str
    price: float


@dataclass(frozen=True)
class AddAlert:
    coin_id: str
    target_price: float
    direction: AlertDirection


@dataclass(frozen=True)
class ClearTriggeredAlerts:
    coin_id: str


@dataclass(frozen=True)
class Search:
    query: str


@dataclass(frozen=True)
class AddFromSearch:
    result: SearchResult


@dataclass(frozen=True)
class SaveSettings:
    form: SettingsForm


Effect = Union[
    OpenStore, Refresh, FetchChart, ToggleFavourite, SetHolding, SetBuyPrice,
    AddAlert, ClearTriggeredAlerts, Search, AddFromSearch, SaveSettings,
]
Transition = Tuple[Mode, List[Effect]]


def _stay(mode: Mode) -> Transition:
    return mode, []


def parse_number(buffer: str) -> Optional[float]:
    """Parse an edit buffer; None when it is not a number."""
    try:
        return float(buffer.strip())
    except ValueError:
        return None


def format_number(value: float) -> str:
    """Shortest text that parses back to ``value``, without a trailing ``.0``."""
    text = repr(float(value))
    if text.endswith(".0"):
        text = text[:-2]
    return text


def _edit_numeric(buffer: str, key: KeyEvent) -> str:
    """Apply a key to a numeric buffer; only digits and '.' are accepted."""
    if key.key == "backspace":
        return buffer[:-1]
    char = key.char
    if char is not None and (char.isdigit() or char == "."):
        return buffer + char
    return buffer


def _edit_text(buffer: str, key: KeyEvent) -> str:
    if key.key == "backspace":
        return buffer[:-1]
    if key.char is not None:
        return buffer + key.char
    return buffer


# Lock screen

def handle_locked(state: AppState, mode: Locked, key: KeyEvent) -> Transition:
    if mode.busy:
        return _stay(mode)

    if key.key == "escape":
        state.quit = True
        return _stay(mode)

    if key.key == "enter":
        if not mode.buffer:
            mode.error = "Password cannot be empty"
            return _stay(mode)
        if mode.is_new:
            return ConfirmingPassword(first=mode.buffer), []
        mode.busy = True
        mode.error = None
        return mode, [OpenStore(mode.buffer)]

    mode.buffer = _edit_text(mode.buffer, key)
    return _stay(mode)


def handle_confirming(state: AppState, mode: ConfirmingPassword, key: KeyEvent) -> Transition:
    if mode.busy:
        return _stay(mode)

    if key.key == "escape":
        return Locked(is_new=True), []

    if key.key == "enter":
        if mode.buffer != mode.first:
            return Locked(is_new=True, error="Passwords do not match"), []
        mode.busy = True
        return mode, [OpenStore(mode.buffer, create=True)]

    mode.buffer = _edit_text(mode.buffer, key)
    return _stay(mode)


# Main table

def _open_settings(state: AppState) -> Settings:
    form = SettingsForm(
        currency_idx=CURRENCIES.index(state.currency) if state.currency in CURRENCIES else 0,
        theme_idx=THEME_NAMES.index(state.theme) if state.theme in THEME_NAMES else 0,
        notification_idx=NOTIFICATION_METHODS.index(state.notification_method),
        coingecko_api_key=state.coingecko_api_key,
        coinmarketcap_api_key=state.cmc_api_key,
        ntfy_topic=state.ntfy_topic,
    )
    return Settings(form=form, saved_theme=state.theme)


def handle_browsing(state: AppState, mode: Browsing, key: KeyEvent) -> Transition:
    name = key.key

    if key.ctrl:
        if name == "d":
            state.move_selection(state.page_height)
        elif name == "u":
            state.move_selection(-state.page_height)
        return _stay(mode)

    if name == "q":
        state.quit = True
    elif name == "escape":
        if state.filter_text:
            state.filter_text = ""
            state.select_first()
        else:
            state.quit = True
    elif name == "/":
        state.filter_text = ""
        return Filtering(), []
    elif name == "s":
        return SortPicking(), []
    elif name == "tab":
        state.switch_tab(state.tab.next())
    elif name == "1":
        state.switch_tab(Tab.MARKETS)
    elif name == "2":
        state.switch_tab(Tab.FAVOURITES)
    elif name == "3":
        state.switch_tab(Tab.PORTFOLIO)
    elif name in ("j", "down"):
        state.move_selection(1)
    elif name in ("k", "up"):
        state.move_selection(-1)
    elif name == "pagedown":
        state.move_selection(state.page_height)
    elif name == "pageup":
        state.move_selection(-state.page_height)
    elif name == "g":
        state.selected = 0
        state.adjust_scroll()
    elif name == "G":
        state.select_last()
    elif name == "r":
        state.loading = True
        return mode, [Refresh()]
    elif name == "S":
        return _open_settings(state), []
    elif name == "c":
        return SearchQuery(), []
    else:
        return _handle_coin_action(state, mode, key)

    return _stay(mode)


def _handle_coin_action(state: AppState, mode: Browsing, key: KeyEvent) -> Transition:
    """Keys that act on the selected coin; ignored when nothing is selected."""
    coin = state.selected_coin()
    if coin is None:
        return _stay(mode)

    name = key.key
    if name == "enter":
        chart = ChartPopup(coin_id=coin.id)
        return chart, [FetchChart(coin.id, chart.range.days)]
    if name == "f":
        return mode, [ToggleFavourite(coin.id)]
    if name == "a":
        amount = state.holding_for(coin.id)
        return EditingAmount(coin.id, format_number(amount) if amount > 0 else ""), []
    if name == "d":
        return mode, [SetHolding(coin.id, 0.0)]
    if name == "b":
        if state.holding_for(coin.id) > 0:
            price = state.buy_price_for(coin.id)
            return EditingBuyPrice(coin.id, format_number(price) if price is not None else ""), []
    elif name == "A":
        return EditingAlert(coin.id), []
    elif name == "x":
        return mode, [ClearTriggeredAlerts(coin.id)]

    return _stay(mode)


def handle_filtering(state: AppState, mode: Filtering, key: KeyEvent) -> Transition:
    if key.key == "escape":
        state.filter_text = ""
        state.clamp_selection()
        return Browsing(), []
    if key.key == "enter":
        state.select_first()
        return Browsing(), []

    edited = _edit_text(state.filter_text, key)
    if edited != state.filter_text:
        state.filter_text = edited
        state.select_first()
    return _stay(mode)


def handle_sort_picking(state: AppState, mode: SortPicking, key: KeyEvent) -> Transition:
    """Pick a sort column; any key ends the picker."""
    if key.key == "escape":
        state.sort = SortSpec(None, state.sort.direction)
    elif not key.ctrl and key.key in SORT_KEYS:
        state.sort = view.toggle_sort(state.sort, SORT_KEYS[key.key])

    state.select_first()
    return Browsing(), []


# Numeric editors

def handle_editing_amount(state: AppState, mode: EditingAmount, key: KeyEvent) -> Transition:
    if key.key == "escape":
        return Browsing(), []
    if key.key == "enter":
        amount = parse_number(mode.buffer)
        if amount is None:
            return Browsing(), []
        buy_price = None
        coin = state.find_coin(mode.coin_id)
        if state.holding_for(mode.coin_id) <= 0 and amount > 0 and coin is not None:
            buy_price = coin.current_price
        return Browsing(), [SetHolding(mode.coin_id, amount, buy_price)]

    mode.buffer = _edit_numeric(mode.buffer, key)
    return _stay(mode)


def handle_editing_alert(state: AppState, mode: EditingAlert, key: KeyEvent) -> Transition:
    if key.key == "escape":
        return Browsing(), []
    if key.key == "tab":
        mode.direction = mode.direction.toggle()
        return _stay(mode)
    if key.key == "enter":
        target = parse_number(mode.buffer)
        if target is None:
            return Browsing(), []
        return Browsing(), [AddAlert(mode.coin_id, target, mode.direction)]

    mode.buffer = _edit_numeric(mode.buffer, key)
    return _stay(mode)


def handle_editing_buy_price(state: AppState, mode: EditingBuyPrice, key: KeyEvent) -> Transition:
    if key.key == "escape":
        return Browsing(), []
    if key.key == "enter":
        price = parse_number(mode.buffer)
        if price is None:
            return Browsing(), []
        return Browsing(), [SetBuyPrice(mode.coin_id, price)]

    mode.buffer = _edit_numeric(mode.buffer, key)
    return _stay(mode)


# Settings

def _cycle(index: int, length: int, forward: bool) -> int:
    return (index + (1 if forward else -1)) % length


def _text_attr(field_: SettingsField) -> str:
    return {
        SettingsField.COINGECKO_API_KEY: "coingecko_api_key",
        SettingsField.COINMARKETCAP_API_KEY: "coinmarketcap_api_key",
        SettingsField.NTFY_TOPIC: "ntfy_topic",
    }[field_]


def handle_settings(state: AppState, mode: Settings, key: KeyEvent) -> Transition:
    form = mode.form
    name = key.key

    if mode.editing:
        if name in ("escape", "enter"):
            mode.editing = False
        elif mode.field.is_text_field:
            attr = _text_attr(mode.field)
            setattr(form, attr, _edit_text(getattr(form, attr), key))
        return _stay(mode)

    if name in ("escape", "q"):
        state.theme = mode.saved_theme
        return Browsing(), []
    if name in ("j", "down", "tab"):
        mode.field = mode.field.next()
    elif name in ("k", "up"):
        mode.field = mode.field.prev()
    elif name in ("enter", "e"):
        if mode.field.is_text_field:
            mode.editing = True
    elif name in ("h", "left", "l", "right"):
        forward = name in ("l", "right")
        if mode.field is SettingsField.CURRENCY:
            form.currency_idx = _cycle(form.currency_idx, len(CURRENCIES), forward)
        elif mode.field is SettingsField.THEME:
            form.theme_idx = _cycle(form.theme_idx, len(THEME_NAMES), forward)
            state.theme = THEME_NAMES[form.theme_idx]
        elif mode.field is SettingsField.NOTIFICATIONS:
            form.notification_idx = _cycle(form.notification_idx, len(NOTIFICATION_METHODS), forward)
    elif name == "s":
        return Browsing(), [SaveSettings(form)]

    return _stay(mode)


# Coin search

def handle_search_query(state: AppState, mode: SearchQuery, key: KeyEvent) -> Transition:
    if key.key == "escape":
        return Browsing(), []
    if mode.loading:
        return _stay(mode)
    if key.key == "enter":
        if mode.query:
            mode.loading = True
            mode.error = None
            return mode, [Search(mode.query)]
        return _stay(mode)

    mode.query = _edit_text(mode.query, key)
    return _stay(mode)


def handle_search_results(state: AppState, mode: SearchResults, key: KeyEvent) -> Transition:
    name = key.key
    if name == "escape":
        return SearchQuery(query=mode.query), []
    if name in ("j", "down"):
        mode.selected = view.clamp_index(mode.selected + 1, len(mode.results))
    elif name in ("k", "up"):
        mode.selected = max(0, mode.selected - 1)
    elif name == "enter" and 0 <= mode.selected < len(mode.results):
        result = mode.results[mode.selected]
        state.switch_tab(Tab.FAVOURITES)
        return Browsing(), [AddFromSearch(result)]
    return _stay(mode)


# Chart

def handle_chart_popup(state: AppState, mode: ChartPopup, key: KeyEvent) -> Transition:
    name = key.key
    if name in ("escape", "q"):
        return Browsing(), []
    if name in ("l", "right"):
        mode.range = mode.range.next()
        return mode, [FetchChart(mode.coin_id, mode.range.days)]
    if name in ("h", "left"):
        mode.range = mode.range.prev()
        return mode, [FetchChart(mode.coin_id, mode.range.days)]
    return _stay(mode)


HANDLERS: Dict[Type, Callable[[AppState, Mode, KeyEvent], Transition]] = {
    Locked: handle_locked,
    ConfirmingPassword: handle_confirming,
    Browsing: handle_browsing,
    Filtering: handle_filtering,
    SortPicking: handle_sort_picking,
    EditingAmount: handle_editing_amount,
    EditingAlert: handle_editing_alert,
    EditingBuyPrice: handle_editing_buy_price,
    Settings: handle_settings,
    SearchQuery: handle_search_query,
    SearchResults: handle_search_results,
    ChartPopup: handle_chart_popup,
}


def handle_key(state: AppState, key: KeyEvent) -> List[Effect]:
    """Feed one key to the active mode's handler.

    Ctrl+C quits from any mode.

    Returns:
        Effects for the controller to run, in order
    """
    if key.ctrl and key.key == "c":
        state.quit = True
        return []

    handler = HANDLERS[type(state.mode)]
    next_mode, effects = handler(state, state.mode, key)
    if next_mode is not state.mode:
        logger.debug(f"Mode {type(state.mode).__name__} -> {type(next_mode).__name__}")
    state.mode = next_mode
    return effects

"""
Screen rendering with rich.

Every function here reads the application state and returns rich
renderables; nothing is mutated. Popups replace the table area and are
centred in it.
"""

import time
from typing import List, Optional, Sequence

from rich.align import Align
from rich.console import Group, RenderableType
from rich.layout import Layout
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..core.chart_cache import ChartCache
from ..core.downsample import downsample, scale_to_rows
from ..core.input import NOTIFICATION_METHODS
from ..core.modes import (
    ChartPopup, ConfirmingPassword, EditingAlert, EditingAmount, EditingBuyPrice,
    Filtering, Locked, SearchQuery, SearchResults, Settings, SortPicking
)
from ..core.state import AppState
from ..core.view import profit_loss, find_holding
from ..data.models import (
    AlertDirection, CURRENCIES, Coin, SettingsField, SortColumn, SortDirection, Tab,
    currency_symbol
)
from .formatting import format_amount, format_large, format_pct, format_price, mask_key
from .theme import THEME_NAMES, Theme, by_name

TOP_BAR_HEIGHT = 2
BOTTOM_BAR_HEIGHT = 1
TABLE_HEADER_HEIGHT = 1

TITLE = " bags "
TITLE_ICON = "⚉ "
TAB_SEPARATOR = " · "

BAR_CHARS = " ▁▂▃▄▅▆▇█"

SORT_HINT = " Sort: r)ank  n)ame  p)rice  1)h  2)4h  7)d  v)ol  m)cap  Esc)clear "

TAB_HINTS = {
    Tab.MARKETS: " j/k ↕ | Tab ⇆ | Enter detail | f fav | a hold | / filter | s sort | A alert | c add | S set | q quit ",
    Tab.FAVOURITES: " j/k ↕ | Tab ⇆ | Enter detail | f unfav | a hold | / filter | s sort | A alert | c add | S set | q quit ",
    Tab.PORTFOLIO: " j/k ↕ | Tab ⇆ | Enter detail | a edit | d rm | b buy$ | / filter | s sort | A alert | c add | S set | q quit ",
}

EMPTY_MESSAGES = {
    Tab.FAVOURITES: "  No favourites yet. Press 'f' to favourite a coin.",
    Tab.PORTFOLIO: "  No holdings. Press 'a' to add a holding.",
}


def page_height_for(screen_height: int) -> int:
    """Rows available to the coin table on a screen of the given height."""
    return max(1, screen_height - TOP_BAR_HEIGHT - BOTTOM_BAR_HEIGHT - TABLE_HEADER_HEIGHT)


def tab_at(column: int) -> Optional[Tab]:
    """Tab label drawn at ``column`` of the top bar, if any.

    Separators between labels belong to the label that follows them.
    """
    x = Text(TITLE + TITLE_ICON).cell_len
    for i, tab in enumerate(Tab):
        end = x + (Text(TAB_SEPARATOR).cell_len if i else 0) + Text(tab.label).cell_len
        if x <= column < end:
            return tab
        x = end
    return None


def table_row_at(y: int, screen_height: int) -> Optional[int]:
    """Position on the current page of the table row drawn at screen row ``y``."""
    row = y - TOP_BAR_HEIGHT - TABLE_HEADER_HEIGHT
    if 0 <= row < page_height_for(screen_height) and y < screen_height - BOTTOM_BAR_HEIGHT:
        return row
    return None


def sparkline_rows(heights: Sequence[int], rows: int) -> List[str]:
    """Draw bar heights as text rows using eighth-block characters.

    Args:
        heights: Bar heights in ``[0, rows * 8]``
        rows: Number of text rows

    Returns:
        ``rows`` strings, top row first
    """
    lines = []
    for row in range(rows - 1, -1, -1):
        base = row * 8
        lines.append("".join(BAR_CHARS[max(0, min(8, h - base))] for h in heights))
    return lines


def render_screen(state: AppState, charts: Optional[ChartCache], width: int, height: int,
                  now: Optional[float] = None) -> RenderableType:
    """Build the whole screen for the current state.

    Args:
        state: Application state
        charts: Chart cache for the chart popup
        width: Screen width in cells
        height: Screen height in rows
        now: Monotonic timestamp for the refresh age; defaults to the current time
    """
    now = time.monotonic() if now is None else now
    theme = by_name(state.theme)

    if isinstance(state.mode, (Locked, ConfirmingPassword)):
        return _lock_screen(state, theme)

    layout = Layout()
    layout.split_column(
        Layout(_top_bar(state, theme, width, now), name="top", size=TOP_BAR_HEIGHT),
        Layout(name="main"),
        Layout(_bottom_bar(state, theme), name="bottom", size=BOTTOM_BAR_HEIGHT),
    )

    main_height = max(1, height - TOP_BAR_HEIGHT - BOTTOM_BAR_HEIGHT)
    popup = _popup(state, theme, charts, width, main_height)
    if popup is not None:
        layout["main"].update(Align.center(popup, vertical="middle"))
    else:
        layout["main"].update(_coin_table(state, theme))

    return layout


# Lock screen

def _lock_screen(state: AppState, theme: Theme) -> RenderableType:
    mode = state.mode
    if isinstance(mode, ConfirmingPassword):
        prompt = "  Confirm password:"
        error = None
    elif mode.is_new:
        prompt = "  Set a password:"
        error = mode.error
    else:
        prompt = "  Enter password:"
        error = mode.error

    lines = [
        Text(prompt, style=theme.style("dim")),
        Text(f"  {'•' * len(mode.buffer)}_", style=theme.style("fg")),
    ]
    if mode.busy:
        lines.append(Text("  Unlocking...", style=theme.style("dim")))
    elif error:
        lines.append(Text(f"  {error}", style=theme.style("error")))

    panel = Panel(Group(*lines), title=" bags ", width=44, border_style=theme.style("border"),
                  style=theme.base)
    return Align.center(panel, vertical="middle", style=theme.base)


# Bars

def _top_bar(state: AppState, theme: Theme, width: int, now: float) -> RenderableType:
    bar = Text(style=theme.base)
    bar.append(TITLE, style=theme.style("title", bold=True))
    bar.append(TITLE_ICON, style=theme.style("dim"))

    for i, tab in enumerate(Tab):
        if i:
            bar.append(TAB_SEPARATOR, style=theme.style("dim"))
        if tab is state.tab:
            bar.append(tab.label, style=theme.style("title", bold=True))
        else:
            bar.append(tab.label, style=theme.style("dim"))

    stats = state.global_stats
    if stats is not None:
        bar.append(" │ ", style=theme.style("dim"))
        bar.append(f"MCap({state.currency.upper()}):{format_large(stats.total_market_cap)} ",
                   style=theme.style("dim"))
        bar.append(f"BTC Dom:{stats.btc_dominance:.1f}% ", style=theme.style("accent"))
        if stats.fear_greed_index is not None and stats.fear_greed_label:
            index = stats.fear_greed_index
            role = "positive" if index >= 60 else "negative" if index <= 40 else "dim"
            bar.append(f"F&G:{index} {stats.fear_greed_label} ", style=theme.style(role))

    refresh_info = "loading..." if state.loading else state.refresh_age(now)
    if refresh_info:
        pad = width - bar.cell_len - len(refresh_info) - 1
        if pad > 0:
            bar.append(" " * pad)
        bar.append(refresh_info, style=theme.style("dim"))

    rule = Text("─" * max(0, width), style=theme.style("border"))
    return Group(bar, rule)


def _bottom_bar(state: AppState, theme: Theme) -> RenderableType:
    mode = state.mode

    if isinstance(mode, Filtering):
        count = len(state.visible())
        return Text(f" / {state.filter_text}_  ({count} results)", style=theme.style("input_accent"))

    if isinstance(mode, SortPicking):
        return Text(SORT_HINT, style=theme.style("input_accent"))

    if isinstance(mode, ChartPopup):
        hints = " Esc close | h/l cycle view "
    elif isinstance(mode, Settings):
        hints = " j/k navigate | Enter edit | s save | Esc cancel "
    else:
        hints = TAB_HINTS[state.tab]

    bar = Text(hints, style=theme.style("dim"), no_wrap=True, overflow="ellipsis")
    if state.filter_text:
        bar.append(f" [/{state.filter_text}]", style=theme.style("accent"))
    if state.error:
        bar.append(f" │ {state.error}", style=theme.style("error"))
    return bar


# Coin table

def _sort_indicator(state: AppState, column: SortColumn) -> str:
    if state.sort.column is not column:
        return ""
    return " ▴" if state.sort.direction is SortDirection.ASC else " ▾"


def _pct_style(theme: Theme, value: Optional[float]):
    if value is not None and value > 0:
        return theme.style("positive")
    if value is not None and value < 0:
        return theme.style("negative")
    return theme.style("dim")


def _coin_table(state: AppState, theme: Theme) -> RenderableType:
    if state.loading and not state.coins:
        return Text("  Fetching market data...", style=theme.style("dim"))

    if state.error and not state.coins:
        return Text(f"  Error: {state.error}", style=theme.style("error"))

    rows = state.visible()
    if not rows:
        message = EMPTY_MESSAGES.get(state.tab)
        if message is None:
            message = "  No matches for filter." if state.filter_text else "  No data."
        return Text(message, style=theme.style("dim"))

    portfolio = state.tab is Tab.PORTFOLIO

    table = Table(
        box=None,
        expand=True,
        show_edge=False,
        pad_edge=False,
        header_style=theme.style("dim"),
        style=theme.base,
    )
    table.add_column(f"#{_sort_indicator(state, SortColumn.RANK)}", width=4, no_wrap=True)
    table.add_column(f"Name{_sort_indicator(state, SortColumn.NAME)}", min_width=10, ratio=1, no_wrap=True)
    table.add_column("Ticker", width=6, no_wrap=True)
    table.add_column(f"Price{_sort_indicator(state, SortColumn.PRICE)}", width=11, no_wrap=True)
    table.add_column(f"1h%{_sort_indicator(state, SortColumn.CHANGE_1H)}", width=8, no_wrap=True)
    table.add_column(f"24h%{_sort_indicator(state, SortColumn.CHANGE_24H)}", width=8, no_wrap=True)
    table.add_column(f"7d%{_sort_indicator(state, SortColumn.CHANGE_7D)}", width=8, no_wrap=True)
    table.add_column("24h Hi", width=10, no_wrap=True)
    table.add_column("24h Lo", width=10, no_wrap=True)
    table.add_column(f"Volume{_sort_indicator(state, SortColumn.VOLUME)}", width=9, no_wrap=True)
    table.add_column(f"MCap{_sort_indicator(state, SortColumn.MARKET_CAP)}", width=9, no_wrap=True)
    if portfolio:
        for header, width in (("Qty", 10), ("Value", 10), ("P&L", 10), ("P&L%", 8)):
            table.add_column(header, width=width, no_wrap=True)

    start = state.scroll_offset
    for position, (_, coin) in enumerate(rows[start:start + state.page_height], start=start):
        cells = _coin_cells(state, theme, coin, portfolio)
        if position == state.selected:
            style = theme.highlight
        elif state.flashing(coin.id):
            style = theme.style("bg", on="accent")
        else:
            style = None
        table.add_row(*cells, style=style)

    if portfolio:
        total = Text(justify="right")
        total.append(" Total: ", style=theme.style("dim"))
        total.append(f"{currency_symbol(state.currency)}{format_price(state.total_portfolio_value())} ",
                     style=theme.style("title", bold=True))
        return Group(total, table)

    return table


def _coin_cells(state: AppState, theme: Theme, coin: Coin, portfolio: bool) -> List[Text]:
    dim = theme.style("dim")
    cells = [
        Text(str(coin.market_cap_rank) if coin.market_cap_rank is not None else "", style=dim),
        Text(f"★ {coin.name}" if coin.id in state.favourites else coin.name, style=theme.style("fg")),
        Text(coin.symbol.upper(), style=theme.style("accent")),
        Text(format_price(coin.current_price), style=theme.style("fg")),
        Text(format_pct(coin.price_change_percentage_1h_in_currency),
             style=_pct_style(theme, coin.price_change_percentage_1h_in_currency)),
        Text(format_pct(coin.price_change_percentage_24h_in_currency),
             style=_pct_style(theme, coin.price_change_percentage_24h_in_currency)),
        Text(format_pct(coin.price_change_percentage_7d_in_currency),
             style=_pct_style(theme, coin.price_change_percentage_7d_in_currency)),
        Text(format_price(coin.high_24h) if coin.high_24h is not None else "--", style=dim),
        Text(format_price(coin.low_24h) if coin.low_24h is not None else "--", style=dim),
        Text(format_large(coin.total_volume), style=dim),
        Text(format_large(coin.market_cap), style=dim),
    ]

    if portfolio:
        amount = state.holding_for(coin.id)
        cells.append(Text(format_amount(amount), style=theme.style("fg")))
        cells.append(Text(format_price(amount * coin.current_price), style=theme.style("accent")))

        holding = find_holding(state.holdings, coin.id)
        pnl = profit_loss(coin, holding) if holding is not None else None
        if pnl is None:
            cells.extend([Text("--", style=dim), Text("--", style=dim)])
        else:
            absolute, percent = pnl
            role = "positive" if absolute >= 0 else "negative"
            sign = "+" if absolute >= 0 else ""
            cells.append(Text(f"{sign}{format_price(abs(absolute))}", style=theme.style(role)))
            cells.append(Text(f"{sign}{percent:.1f}%", style=theme.style(role)))

    return cells


# Popups

def _popup(state: AppState, theme: Theme, charts: Optional[ChartCache],
           width: int, height: int) -> Optional[RenderableType]:
    mode = state.mode
    if isinstance(mode, ChartPopup):
        return _chart_popup(state, theme, mode, charts, width, height)
    if isinstance(mode, EditingAmount):
        return _input_popup(state, theme, mode.coin_id, "amount", mode.buffer,
                            "Enter amount (0 to remove): ")
    if isinstance(mode, EditingBuyPrice):
        return _input_popup(state, theme, mode.coin_id, "buy price", mode.buffer,
                            "Enter buy-in price: ")
    if isinstance(mode, EditingAlert):
        return _alert_popup(state, theme, mode)
    if isinstance(mode, Settings):
        return _settings_popup(theme, mode)
    if isinstance(mode, (SearchQuery, SearchResults)):
        return _search_popup(theme, mode)
    return None


def _symbol(state: AppState, coin_id: str) -> str:
    coin = state.find_coin(coin_id)
    return coin.symbol.upper() if coin else coin_id


def _input_popup(state: AppState, theme: Theme, coin_id: str, label: str,
                 buffer: str, placeholder: str) -> RenderableType:
    text = Text(f" {buffer or placeholder}_", style=theme.style("fg"))
    return Panel(text, title=f" {_symbol(state, coin_id)} {label} ", width=40,
                 border_style=theme.style("input_accent"), style=theme.base)


def _alert_popup(state: AppState, theme: Theme, mode: EditingAlert) -> RenderableType:
    coin = state.find_coin(mode.coin_id)
    current = format_price(coin.current_price) if coin else "--"
    direction = "▲ Above" if mode.direction is AlertDirection.ABOVE else "▼ Below"

    body = Group(
        Text(f" Current: {current}", style=theme.style("dim")),
        Text(f" Direction: {direction} (Tab to toggle)", style=theme.style("accent")),
        Text(f" Target: {mode.buffer}_", style=theme.style("fg")),
        Text(" Enter save | Esc cancel", style=theme.style("dim")),
    )
    return Panel(body, title=f" {_symbol(state, mode.coin_id)} alert ", width=45,
                 border_style=theme.style("input_accent"), style=theme.base)


def _chart_popup(state: AppState, theme: Theme, mode: ChartPopup, charts: Optional[ChartCache],
                 width: int, height: int) -> RenderableType:
    coin = state.find_coin(mode.coin_id)
    name = coin.name if coin else mode.coin_id
    symbol = coin.symbol.upper() if coin else ""
    title = f" {name} ({symbol}) - {mode.range.label} "

    panel_width = max(20, width * 75 // 100)
    panel_height = max(8, height * 65 // 100)
    inner_width = panel_width - 2

    info = _chart_info(state, theme, coin, mode.coin_id)
    series = charts.get(mode.coin_id, mode.range.days) if charts is not None else None

    if series is None:
        loading = charts is not None and charts.is_loading(mode.coin_id, mode.range.days)
        message = "  Loading chart data..." if loading else "  No data. Press h/l to reload."
        body: RenderableType = Text(message, style=theme.style("dim"))
    elif not series:
        body = Text("  No price data available.", style=theme.style("dim"))
    else:
        first, last = series[0], series[-1]
        low, high = min(series), max(series)
        change = (last - first) / first * 100.0 if first > 0 else 0.0
        role = "positive" if change >= 0 else "negative"
        sign = "+" if change >= 0 else ""

        stats = Text()
        stats.append(f" Price: {format_price(last)} ", style=theme.style("fg"))
        stats.append(f" {sign}{change:.2f}% ", style=theme.style(role))
        stats.append(f" Lo: {format_price(low)}  Hi: {format_price(high)} ", style=theme.style("dim"))

        chart_rows = max(3, panel_height - 2 - 2 - len(info))
        sampled = downsample(series, inner_width)
        bars = scale_to_rows(sampled, chart_rows * 8)
        chart = Text("\n".join(sparkline_rows(bars, chart_rows)), style=theme.style(role))

        body = Group(stats, Text(""), chart, *info)

    return Panel(body, title=title, width=panel_width, height=panel_height,
                 border_style=theme.style("accent"), style=theme.base)


def _chart_info(state: AppState, theme: Theme, coin: Optional[Coin], coin_id: str) -> List[Text]:
    lines = []
    if coin is not None:
        circulating = format_large(coin.circulating_supply) if coin.circulating_supply is not None else "--"
        maximum = format_large(coin.max_supply) if coin.max_supply is not None else "∞"
        lines.append(Text(f" Supply: {circulating} / {maximum} ", style=theme.style("dim")))

    armed = [a for a in state.alerts if a.coin_id == coin_id and not a.triggered]
    if armed:
        line = Text(" Alerts: ", style=theme.style("dim"))
        for i, alert in enumerate(armed):
            if i:
                line.append(", ", style=theme.style("dim"))
            line.append(f"{alert.direction.arrow}{format_price(alert.target_price)}",
                        style=theme.style("accent"))
        lines.append(line)
    return lines


def _settings_popup(theme: Theme, mode: Settings) -> RenderableType:
    form = mode.form
    currency = CURRENCIES[form.currency_idx]
    values = {
        SettingsField.CURRENCY: f"{currency.upper()} ({currency_symbol(currency)})",
        SettingsField.THEME: THEME_NAMES[form.theme_idx],
        SettingsField.COINGECKO_API_KEY: form.coingecko_api_key,
        SettingsField.COINMARKETCAP_API_KEY: form.coinmarketcap_api_key,
        SettingsField.NOTIFICATIONS: NOTIFICATION_METHODS[form.notification_idx].value,
        SettingsField.NTFY_TOPIC: form.ntfy_topic,
    }

    lines: List[Text] = []
    for field in SettingsField:
        selected = field is mode.field
        lines.append(Text(""))
        lines.append(Text(
            f"{'▸ ' if selected else '  '}{field.label}",
            style=theme.style("fg", bold=True) if selected else theme.style("dim"),
        ))
        if field.is_cycle_field:
            lines.append(_cycle_value(theme, values[field], selected))
        else:
            editing = selected and mode.editing
            masked = field is not SettingsField.NTFY_TOPIC
            lines.append(_text_value(theme, values[field], editing, masked))

    if mode.editing:
        hint = "  Enter/Esc finish editing"
    elif mode.field.is_cycle_field:
        hint = "  h/l change | s save & close | Esc cancel"
    else:
        hint = "  Enter edit | s save & close | Esc cancel"
    lines.extend([Text(""), Text(hint, style=theme.style("dim"))])

    return Panel(Group(*lines), title=" Settings ", width=60,
                 border_style=theme.style("accent"), style=theme.base)


def _cycle_value(theme: Theme, value: str, selected: bool) -> Text:
    if not selected:
        return Text(f"    {value}", style=theme.style("accent"))
    line = Text("    ◂ ", style=theme.style("dim"))
    line.append(value, style=theme.style("fg", bold=True))
    line.append(" ▸", style=theme.style("dim"))
    return line


def _text_value(theme: Theme, value: str, editing: bool, masked: bool) -> Text:
    if editing:
        return Text(f"    {value}_", style=theme.style("input_accent"))
    if not value:
        return Text("    (not set)", style=theme.style("dim"))
    return Text(f"    {mask_key(value) if masked else value}", style=theme.style("accent"))


def _search_popup(theme: Theme, mode) -> RenderableType:
    if isinstance(mode, SearchQuery):
        if mode.loading:
            status = Text("  Searching...", style=theme.style("dim"))
        elif mode.error:
            status = Text(f"  {mode.error}", style=theme.style("error"))
        else:
            status = Text("  Enter search | Esc cancel", style=theme.style("dim"))
        body = Group(
            Text(""),
            Text("  Search by name or ticker:", style=theme.style("dim")),
            Text(f"  {mode.query}_", style=theme.style("fg")),
            Text(""),
            status,
        )
    else:
        lines = [Text("")]
        for i, result in enumerate(mode.results):
            selected = i == mode.selected
            line = Text(style=theme.style("fg", on="highlight_bg") if selected else theme.style("fg"))
            line.append("▸ " if selected else "  ", style=theme.style("fg" if selected else "dim"))
            line.append(result.name, style=theme.style("fg", bold=selected))
            line.append(f" ({result.symbol.upper()}) ", style=theme.style("dim"))
            if result.market_cap_rank is not None:
                line.append(f"#{result.market_cap_rank}", style=theme.style("dim"))
            lines.append(line)
        lines.extend([Text(""), Text("  j/k select | Enter add | Esc back", style=theme.style("dim"))])
        body = Group(*lines)

    return Panel(body, title=" Add coin ", width=50,
                 border_style=theme.style("accent"), style=theme.base)

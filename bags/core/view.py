"""Derivation of the visible coin list and portfolio figures.

Everything here is a pure function over borrowed state: nothing is cached and
nothing is mutated, so the renderer can call these on every frame.
"""

import functools
import math
from typing import Any, Callable, Iterable, List, Optional, Sequence, Set, Tuple

from ..data.models import Coin, Holding, SortColumn, SortDirection, SortSpec, Tab

VisibleRow = Tuple[int, Coin]


def _rank_key(coin: Coin) -> Tuple[bool, int]:
    """Unranked coins sort before ranked ones."""
    rank = coin.market_cap_rank
    return rank is not None, rank if rank is not None else 0


_COLUMN_KEYS: dict = {
    SortColumn.RANK: _rank_key,
    SortColumn.NAME: lambda c: c.name.lower(),
    SortColumn.PRICE: lambda c: c.current_price,
    SortColumn.CHANGE_1H: lambda c: c.price_change_percentage_1h_in_currency,
    SortColumn.CHANGE_24H: lambda c: c.price_change_percentage_24h_in_currency,
    SortColumn.CHANGE_7D: lambda c: c.price_change_percentage_7d_in_currency,
    SortColumn.VOLUME: lambda c: c.total_volume,
    SortColumn.MARKET_CAP: lambda c: c.market_cap,
}


def held_ids(holdings: Iterable[Holding]) -> Set[str]:
    """Ids of coins with a positive holding."""
    return {h.coin_id for h in holdings if h.amount > 0}


def _compare(a: Any, b: Any) -> int:
    """Three-way compare where missing or NaN values compare equal to anything."""
    if a is None or b is None:
        return 0
    if isinstance(a, float) and math.isnan(a):
        return 0
    if isinstance(b, float) and math.isnan(b):
        return 0
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


def sort_key_for(column: SortColumn) -> Callable[[Coin], Any]:
    """Get the value a column sorts on."""
    return _COLUMN_KEYS[column]


def visible_coins(coins: Sequence[Coin],
                  tab: Tab,
                  favourites: Iterable[str],
                  holdings: Iterable[Holding],
                  filter_text: str = "",
                  sort: Optional[SortSpec] = None) -> List[VisibleRow]:
    """Compute the rows shown for the current tab, filter and sort.

    Args:
        coins: Current snapshot in provider order
        tab: Active tab
        favourites: Favourite coin ids
        holdings: Holdings; only positive amounts count
        filter_text: Case-insensitive substring matched on name or symbol
        sort: Sort spec; None or an unset column keeps provider order

    Returns:
        List of ``(index into coins, coin)`` pairs
    """
    owned = held_ids(holdings)

    if tab is Tab.FAVOURITES:
        wanted = set(favourites) | owned
        rows = [(i, c) for i, c in enumerate(coins) if c.id in wanted]
    elif tab is Tab.PORTFOLIO:
        rows = [(i, c) for i, c in enumerate(coins) if c.id in owned]
    else:
        rows = list(enumerate(coins))

    if filter_text:
        needle = filter_text.lower()
        rows = [
            (i, c) for i, c in rows
            if needle in c.name.lower() or needle in c.symbol.lower()
        ]

    if sort is not None and sort.column is not None:
        key = sort_key_for(sort.column)
        descending = sort.direction is SortDirection.DESC

        def compare(left: VisibleRow, right: VisibleRow) -> int:
            result = _compare(key(left[1]), key(right[1]))
            return -result if descending else result

        # Negating the comparison keeps equal keys in their original order,
        # unlike sorting ascending and reversing.
        rows.sort(key=functools.cmp_to_key(compare))

    return rows


def toggle_sort(spec: SortSpec, column: SortColumn) -> SortSpec:
    """Advance the sort spec when a column is picked.

    Picking the active column cycles ascending -> descending -> unset; picking
    any other column starts at ascending.
    """
    if spec.column is column:
        if spec.direction is SortDirection.ASC:
            return SortSpec(column, SortDirection.DESC)
        return SortSpec()
    return SortSpec(column, SortDirection.ASC)


def clamp_index(index: int, length: int) -> int:
    """Clamp a cursor into ``[0, length)``, or 0 for an empty list."""
    if length <= 0:
        return 0
    return max(0, min(index, length - 1))


def find_coin(coins: Sequence[Coin], coin_id: str) -> Optional[Coin]:
    for coin in coins:
        if coin.id == coin_id:
            return coin
    return None


def find_holding(holdings: Sequence[Holding], coin_id: str) -> Optional[Holding]:
    for holding in holdings:
        if holding.coin_id == coin_id:
            return holding
    return None


def holding_amount(holdings: Sequence[Holding], coin_id: str) -> float:
    holding = find_holding(holdings, coin_id)
    return holding.amount if holding else 0.0


def total_portfolio_value(coins: Sequence[Coin], holdings: Sequence[Holding]) -> float:
    """Sum of amount times current price over holdings present in the snapshot."""
    total = 0.0
    for holding in holdings:
        coin = find_coin(coins, holding.coin_id)
        if coin is not None:
            total += coin.current_price * holding.amount
    return total


def profit_loss(coin: Coin, holding: Holding) -> Optional[Tuple[float, float]]:
    """Absolute and percentage profit against the recorded buy price.

    Returns:
        ``(absolute, percent)`` or None when no usable buy price is recorded
    """
    if holding.buy_price is None or holding.buy_price <= 0:
        return None
    absolute = (coin.current_price - holding.buy_price) * holding.amount
    percent = (coin.current_price - holding.buy_price) / holding.buy_price * 100.0
    return absolute, percent

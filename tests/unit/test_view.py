"""Tests for visible list derivation, sorting and portfolio figures."""

import math

import pytest

from bags.core.view import (
    clamp_index, profit_loss, toggle_sort, total_portfolio_value, visible_coins
)
from bags.data.models import Coin, Holding, SortColumn, SortDirection, SortSpec, Tab


def ids(rows):
    return [coin.id for _, coin in rows]


class TestTabScoping:
    """Test which coins each tab shows."""

    def test_markets_keeps_provider_order(self, sample_coins):
        """Markets shows every coin in snapshot order."""
        rows = visible_coins(sample_coins, Tab.MARKETS, [], [])
        assert ids(rows) == ["bitcoin", "ethereum", "solana"]
        assert [i for i, _ in rows] == [0, 1, 2]

    def test_favourites_include_holdings(self, sample_coins):
        """Favourites shows favourited coins and coins with a positive holding."""
        rows = visible_coins(
            sample_coins, Tab.FAVOURITES, ["solana"], [Holding("bitcoin", 0.5)])
        assert ids(rows) == ["bitcoin", "solana"]

    def test_portfolio_only_positive_holdings(self, sample_coins):
        """Portfolio ignores zero amounts and favourites."""
        holdings = [Holding("ethereum", 2.0), Holding("solana", 0.0)]
        rows = visible_coins(sample_coins, Tab.PORTFOLIO, ["bitcoin"], holdings)
        assert ids(rows) == ["ethereum"]

    def test_favourite_not_in_snapshot_is_skipped(self, sample_coins):
        """Ids missing from the snapshot never produce rows."""
        rows = visible_coins(sample_coins, Tab.FAVOURITES, ["dogecoin"], [])
        assert rows == []


class TestFilter:
    """Test the case-insensitive filter."""

    def test_matches_symbol(self, sample_coins):
        rows = visible_coins(sample_coins, Tab.MARKETS, [], [], filter_text="ETH")
        assert ids(rows) == ["ethereum"]

    def test_matches_name_substring(self, sample_coins):
        rows = visible_coins(sample_coins, Tab.MARKETS, [], [], filter_text="coin")
        assert ids(rows) == ["bitcoin"]

    def test_no_match(self, sample_coins):
        assert visible_coins(sample_coins, Tab.MARKETS, [], [], filter_text="zzz") == []

    def test_filter_applies_within_tab(self, sample_coins):
        """Filtering never adds coins the tab excludes."""
        rows = visible_coins(sample_coins, Tab.PORTFOLIO, [], [Holding("bitcoin", 1.0)],
                             filter_text="e")
        assert ids(rows) == []


class TestSort:
    """Test column sorting."""

    def test_price_descending(self, sample_coins):
        spec = SortSpec(SortColumn.PRICE, SortDirection.DESC)
        rows = visible_coins(sample_coins, Tab.MARKETS, [], [], sort=spec)
        assert ids(rows) == ["bitcoin", "ethereum", "solana"]

    def test_price_ascending(self, sample_coins):
        spec = SortSpec(SortColumn.PRICE, SortDirection.ASC)
        rows = visible_coins(sample_coins, Tab.MARKETS, [], [], sort=spec)
        assert ids(rows) == ["solana", "ethereum", "bitcoin"]

    def test_name_sort_ignores_case(self, coin_factory):
        coins = [coin_factory("b", "bravo", "b", 1.0), coin_factory("a", "Alpha", "a", 1.0)]
        rows = visible_coins(coins, Tab.MARKETS, [], [], sort=SortSpec(SortColumn.NAME))
        assert ids(rows) == ["a", "b"]

    def test_sort_is_stable_both_directions(self, coin_factory):
        """Equal keys keep provider order, also when descending."""
        coins = [
            coin_factory("a", "A", "a", 10.0),
            coin_factory("b", "B", "b", 5.0),
            coin_factory("c", "C", "c", 10.0),
        ]
        asc = visible_coins(coins, Tab.MARKETS, [], [], sort=SortSpec(SortColumn.PRICE))
        desc = visible_coins(coins, Tab.MARKETS, [], [],
                             sort=SortSpec(SortColumn.PRICE, SortDirection.DESC))
        assert ids(asc) == ["b", "a", "c"]
        assert ids(desc) == ["a", "c", "b"]

    def test_missing_values_do_not_raise(self, sample_coins):
        """Coins without a 1h change sort without errors."""
        spec = SortSpec(SortColumn.CHANGE_1H, SortDirection.DESC)
        rows = visible_coins(sample_coins, Tab.MARKETS, [], [], sort=spec)
        assert sorted(ids(rows)) == ["bitcoin", "ethereum", "solana"]

    def test_unranked_coins_sort_first(self, coin_factory):
        coins = [
            coin_factory("a", "A", "a", 1.0, market_cap_rank=2),
            coin_factory("b", "B", "b", 1.0),
            coin_factory("c", "C", "c", 1.0, market_cap_rank=1),
        ]
        asc = visible_coins(coins, Tab.MARKETS, [], [], sort=SortSpec(SortColumn.RANK))
        desc = visible_coins(coins, Tab.MARKETS, [], [],
                             sort=SortSpec(SortColumn.RANK, SortDirection.DESC))
        assert ids(asc) == ["b", "c", "a"]
        assert ids(desc) == ["a", "c", "b"]

    def test_nan_values_do_not_raise(self, coin_factory):
        coins = [coin_factory("a", "A", "a", math.nan), coin_factory("b", "B", "b", 1.0)]
        rows = visible_coins(coins, Tab.MARKETS, [], [], sort=SortSpec(SortColumn.PRICE))
        assert len(rows) == 2

    def test_unset_column_keeps_provider_order(self, sample_coins):
        rows = visible_coins(sample_coins, Tab.MARKETS, [], [], sort=SortSpec())
        assert ids(rows) == ["bitcoin", "ethereum", "solana"]


class TestToggleSort:
    """Test the sort cycle."""

    def test_cycle_returns_to_natural_order(self):
        spec = toggle_sort(SortSpec(), SortColumn.PRICE)
        assert spec == SortSpec(SortColumn.PRICE, SortDirection.ASC)

        spec = toggle_sort(spec, SortColumn.PRICE)
        assert spec == SortSpec(SortColumn.PRICE, SortDirection.DESC)

        spec = toggle_sort(spec, SortColumn.PRICE)
        assert spec.column is None

        spec = toggle_sort(spec, SortColumn.PRICE)
        assert spec == SortSpec(SortColumn.PRICE, SortDirection.ASC)

    def test_other_column_starts_ascending(self):
        spec = SortSpec(SortColumn.PRICE, SortDirection.DESC)
        assert toggle_sort(spec, SortColumn.VOLUME) == SortSpec(SortColumn.VOLUME, SortDirection.ASC)


class TestHelpers:
    """Test cursor and portfolio helpers."""

    @pytest.mark.parametrize("index,length,expected", [
        (0, 0, 0),
        (5, 0, 0),
        (5, 3, 2),
        (-1, 3, 0),
        (1, 3, 1),
    ])
    def test_clamp_index(self, index, length, expected):
        assert clamp_index(index, length) == expected

    def test_total_portfolio_value(self, sample_coins):
        holdings = [Holding("bitcoin", 0.1), Holding("ethereum", 2.0), Holding("unknown", 5.0)]
        assert total_portfolio_value(sample_coins, holdings) == pytest.approx(5000.0 + 6000.0)

    def test_profit_loss(self):
        coin = Coin(id="bitcoin", current_price=60000.0)
        absolute, percent = profit_loss(coin, Holding("bitcoin", 0.5, buy_price=50000.0))
        assert absolute == pytest.approx(5000.0)
        assert percent == pytest.approx(20.0)

    def test_profit_loss_without_buy_price(self):
        coin = Coin(id="bitcoin", current_price=60000.0)
        assert profit_loss(coin, Holding("bitcoin", 0.5)) is None
        assert profit_loss(coin, Holding("bitcoin", 0.5, buy_price=0.0)) is None

"""
Pytest configuration and shared fixtures for the test suite.

This module provides market data fixtures, a mocked data source and
temporary config and store locations so no test touches the network or the
user's home directory.
"""

import tempfile
from pathlib import Path
from typing import List
from unittest.mock import AsyncMock

import pytest
from click.testing import CliRunner

from bags.core.config import ConfigManager
from bags.core.state import AppState
from bags.data.models import Coin, GlobalMarketStats
from bags.data.source import MarketDataSource
from bags.data.store import SecureStore

# Key derivation is deliberately slow; tests use a tiny iteration count
TEST_ITERATIONS = 1000


def make_coin(coin_id: str, name: str, symbol: str, price: float, **kwargs) -> Coin:
    """Build a coin with sensible defaults for the fields a test does not care about."""
    return Coin(id=coin_id, name=name, symbol=symbol, current_price=price, **kwargs)


@pytest.fixture
def cli_runner():
    """Create a Click CLI runner for testing commands."""
    return CliRunner()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_coins() -> List[Coin]:
    """Snapshot in provider (market cap) order."""
    return [
        make_coin("bitcoin", "Bitcoin", "btc", 50000.0,
                  market_cap=1.0e12, total_volume=3.0e10, market_cap_rank=1,
                  price_change_percentage_1h_in_currency=0.5,
                  price_change_percentage_24h_in_currency=2.0,
                  price_change_percentage_7d_in_currency=-1.0,
                  high_24h=51000.0, low_24h=49000.0,
                  circulating_supply=19.5e6, max_supply=21e6),
        make_coin("ethereum", "Ethereum", "eth", 3000.0,
                  market_cap=3.6e11, total_volume=1.5e10, market_cap_rank=2,
                  price_change_percentage_24h_in_currency=-1.5),
        make_coin("solana", "Solana", "sol", 150.0,
                  market_cap=6.5e10, total_volume=2.0e9, market_cap_rank=5,
                  price_change_percentage_24h_in_currency=4.2),
    ]


@pytest.fixture
def mock_source(sample_coins):
    """Market data source with canned responses."""
    source = AsyncMock(spec=MarketDataSource)
    source.fetch_snapshot.return_value = list(sample_coins)
    source.fetch_series.return_value = [1.0, 2.0, 3.0, 2.5]
    source.search.return_value = []
    source.fetch_single.return_value = None
    source.fetch_global_stats.return_value = GlobalMarketStats(
        total_market_cap=2.5e12, btc_dominance=52.3)
    source.fetch_sentiment.return_value = (72, "Greed")
    return source


@pytest.fixture
def state(sample_coins) -> AppState:
    """Unlocked state holding the sample snapshot."""
    return AppState(coins=list(sample_coins), loading=False)


@pytest.fixture
def config_manager(temp_dir, monkeypatch) -> ConfigManager:
    """Config manager rooted in a temporary directory, loaded with defaults."""
    for key in ("BAGS_CURRENCY", "BAGS_THEME", "BAGS_REFRESH_INTERVAL_SECS"):
        monkeypatch.delenv(key, raising=False)
    manager = ConfigManager(config_dir=temp_dir / "config", data_dir=temp_dir / "data")
    manager.load()
    return manager


@pytest.fixture
def store(temp_dir) -> SecureStore:
    """Freshly created encrypted store."""
    return SecureStore.open(temp_dir / "bags.db", "hunter2", iterations=TEST_ITERATIONS)


@pytest.fixture
def coin_factory():
    """Factory for ad-hoc coins."""
    return make_coin

"""Market data source contract."""

from abc import ABC, abstractmethod
from typing import List, Optional

from .models import Coin, GlobalMarketStats, SearchResult


class MarketDataSource(ABC):
    """Asynchronous provider of market snapshots, series and search.

    Implementations raise ``MarketDataError`` on transport failures, non-2xx
    responses and malformed payloads.
    """

    @abstractmethod
    async def fetch_snapshot(self, currency: str, limit: int) -> List[Coin]:
        """Get the top ``limit`` coins ranked by market cap, descending."""
        pass

    @abstractmethod
    async def fetch_series(self, coin_id: str, currency: str, range_days: int) -> List[float]:
        """Get ascending-time prices; an empty list is a valid answer."""
        pass

    @abstractmethod
    async def search(self, query: str) -> List[SearchResult]:
        """Search coins by name or symbol; at most 10 results."""
        pass

    @abstractmethod
    async def fetch_single(self, coin_id: str, currency: str) -> Optional[Coin]:
        """Get market data for one coin that may be outside the snapshot."""
        pass

    @abstractmethod
    async def fetch_global_stats(self, currency: str) -> GlobalMarketStats:
        """Get total market cap and BTC dominance."""
        pass

    @abstractmethod
    async def fetch_sentiment(self) -> tuple:
        """Get the Fear & Greed index as ``(index, label)``."""
        pass

    async def start(self):
        """Open any underlying sessions."""
        pass

    async def stop(self):
        """Release any underlying sessions."""
        pass

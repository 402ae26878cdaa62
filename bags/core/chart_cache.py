"""Per-coin, per-range cache of chart price series."""

import logging
from typing import Dict, Optional, Set, Tuple

from ..data.source import MarketDataSource

logger = logging.getLogger(__name__)

ChartKey = Tuple[str, int]
ChartSeries = Tuple[float, ...]


class ChartCache:
    """
    Fetch-or-reuse store for chart series keyed by ``(coin_id, range_days)``.

    Entries live until ``clear()``; there is no expiry. A key that is being
    fetched is marked as loading, and a second request for it does nothing
    until the first one completes.
    """

    def __init__(self, source: MarketDataSource):
        self.source = source
        self._entries: Dict[ChartKey, ChartSeries] = {}
        self._loading: Set[ChartKey] = set()
        self._generation = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: ChartKey) -> bool:
        return key in self._entries

    def get(self, coin_id: str, range_days: int) -> Optional[ChartSeries]:
        return self._entries.get((coin_id, range_days))

    def is_loading(self, coin_id: str, range_days: int) -> bool:
        return (coin_id, range_days) in self._loading

    @property
    def loading(self) -> bool:
        return bool(self._loading)

    async def get_or_fetch(self, coin_id: str, range_days: int, currency: str) -> Optional[ChartSeries]:
        """Return the cached series, fetching it on a miss.

        Args:
            coin_id: Coin id
            range_days: Days of history
            currency: Quote currency for a fetch

        Returns:
            The series, or None when the key is already being fetched

        Raises:
            MarketDataError: If the fetch fails; nothing is cached
        """
        key = (coin_id, range_days)
        cached = self._entries.get(key)
        if cached is not None:
            return cached
        if key in self._loading:
            logger.debug(f"Chart {key} already loading")
            return None

        generation = self._generation
        self._loading.add(key)
        try:
            series = tuple(await self.source.fetch_series(coin_id, currency, range_days))
        finally:
            self._loading.discard(key)

        # A clear() while fetching means the series is in the old currency
        if generation == self._generation:
            self._entries[key] = series
        return series

    def clear(self) -> None:
        self._entries.clear()
        self._generation += 1
        logger.debug("Chart cache cleared")

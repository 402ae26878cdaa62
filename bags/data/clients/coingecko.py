"""CoinGecko API client implementation."""

from typing import Dict, List, Optional, Any
import logging

from ..api_client import BaseAPIClient, APIClientConfig, RateLimitConfig, excerpt
from ..models import Coin, GlobalMarketStats, SearchResult
from ..source import MarketDataSource
from ...core.errors import MarketDataError
from .fear_greed import FearGreedClient

logger = logging.getLogger(__name__)

BASE_URL = "https://api.coingecko.com/api/v3"
PRO_BASE_URL = "https://pro-api.coingecko.com/api/v3"
SEARCH_LIMIT = 10


class CoinGeckoClient(BaseAPIClient, MarketDataSource):
    """CoinGecko market data source.

    Without an API key the public endpoint is used; with one, requests go to
    the pro endpoint and carry the key as a query parameter.
    """

    def __init__(self, api_key: Optional[str] = None,
                 sentiment: Optional[FearGreedClient] = None):
        """Initialize CoinGecko client.

        Args:
            api_key: Optional CoinGecko pro API key
            sentiment: Client for the Fear & Greed index
        """
        # Free tier allows far fewer calls per minute than pro
        rate_limit = RateLimitConfig(requests_per_minute=500 if api_key else 30)

        config = APIClientConfig(
            base_url=PRO_BASE_URL if api_key else BASE_URL,
            api_key=api_key or None,
            timeout=15,
            rate_limit=rate_limit,
            headers={
                "Accept": "application/json",
                "User-Agent": "bags/0.1 (terminal crypto tracker)"
            }
        )

        super().__init__(config, "CoinGecko")
        self.sentiment = sentiment or FearGreedClient()

    def _get_auth_params(self) -> Dict[str, str]:
        """Get the pro API key parameter."""
        if self.config.api_key:
            return {"x_cg_pro_api_key": self.config.api_key}
        return {}

    async def start(self):
        await super().start()
        await self.sentiment.start()

    async def stop(self):
        await super().stop()
        await self.sentiment.stop()

    @staticmethod
    def _parse_coins(payload: Any) -> List[Coin]:
        if not isinstance(payload, list):
            raise MarketDataError(
                f"Failed to parse market data: expected a list | response: {excerpt(str(payload))}")
        try:
            return [Coin.from_dict(row) for row in payload]
        except (KeyError, TypeError, ValueError) as e:
            raise MarketDataError(
                f"Failed to parse market data: {e} | response: {excerpt(str(payload))}") from e

    async def fetch_snapshot(self, currency: str, limit: int) -> List[Coin]:
        """Get the top coins by market cap.

        Args:
            currency: Quote currency code
            limit: Number of coins to return

        Returns:
            Coins in provider order
        """
        params = {
            "vs_currency": currency.lower(),
            "order": "market_cap_desc",
            "per_page": str(limit),
            "page": "1",
            "sparkline": "false",
            "price_change_percentage": "1h,24h,7d",
        }
        payload = await self._get_json("coins/markets", params=params)
        coins = self._parse_coins(payload)
        logger.debug(f"Fetched {len(coins)} coins in {currency}")
        return coins

    async def fetch_series(self, coin_id: str, currency: str, range_days: int) -> List[float]:
        """Get historical prices for a coin.

        Args:
            coin_id: CoinGecko coin id
            currency: Quote currency code
            range_days: Days of history

        Returns:
            Prices in ascending time order
        """
        params = {"vs_currency": currency.lower(), "days": str(range_days)}
        payload = await self._get_json(f"coins/{coin_id}/market_chart", params=params)

        points = payload.get("prices") if isinstance(payload, dict) else None
        if not isinstance(points, list):
            raise MarketDataError(f"Missing prices array | response: {excerpt(str(payload))}")

        prices: List[float] = []
        for point in points:
            if not isinstance(point, list):
                raise MarketDataError("Invalid price point")
            if len(point) >= 2:
                value = point[1]
                prices.append(float(value) if isinstance(value, (int, float)) else 0.0)
        return prices

    async def search(self, query: str) -> List[SearchResult]:
        """Search coins by name or symbol.

        Args:
            query: Free text query

        Returns:
            At most ten results in provider relevance order
        """
        payload = await self._get_json("search", params={"query": query})

        coins = payload.get("coins") if isinstance(payload, dict) else None
        if not isinstance(coins, list):
            raise MarketDataError(f"Missing coins array | response: {excerpt(str(payload))}")

        results: List[SearchResult] = []
        for entry in coins[:SEARCH_LIMIT]:
            if not isinstance(entry, dict):
                continue
            coin_id = entry.get("id")
            name = entry.get("name")
            symbol = entry.get("symbol")
            if not (isinstance(coin_id, str) and isinstance(name, str) and isinstance(symbol, str)):
                continue
            rank = entry.get("market_cap_rank")
            results.append(SearchResult(
                id=coin_id,
                name=name,
                symbol=symbol,
                market_cap_rank=rank if isinstance(rank, int) else None
            ))
        return results

    async def fetch_single(self, coin_id: str, currency: str) -> Optional[Coin]:
        """Get market data for one coin by id."""
        params = {
            "vs_currency": currency.lower(),
            "ids": coin_id,
            "sparkline": "false",
            "price_change_percentage": "1h,24h,7d",
        }
        payload = await self._get_json("coins/markets", params=params)
        coins = self._parse_coins(payload)
        return coins[0] if coins else None

    async def fetch_global_stats(self, currency: str) -> GlobalMarketStats:
        """Get total market cap and BTC dominance.

        The total is quoted in ``currency`` when the provider reports it and in
        USD otherwise.
        """
        payload = await self._get_json("global")
        data = payload.get("data") if isinstance(payload, dict) else None
        caps = shares = None
        if isinstance(data, dict):
            caps = data.get("total_market_cap") or {}
            shares = data.get("market_cap_percentage") or {}
        if not (isinstance(caps, dict) and isinstance(shares, dict)):
            raise MarketDataError(
                f"Failed to parse global stats: unexpected shape | response: {excerpt(str(payload))}")

        total = caps.get(currency.lower(), caps.get("usd"))
        try:
            return GlobalMarketStats(
                total_market_cap=float(total or 0.0),
                btc_dominance=float(shares.get("btc") or 0.0)
            )
        except (TypeError, ValueError) as e:
            raise MarketDataError(
                f"Failed to parse global stats: {e} | response: {excerpt(str(payload))}") from e

    async def fetch_sentiment(self) -> tuple:
        return await self.sentiment.fetch_index()

"""alternative.me Fear & Greed index client."""

from typing import Tuple
import logging

from ..api_client import BaseAPIClient, APIClientConfig, excerpt
from ...core.errors import MarketDataError

logger = logging.getLogger(__name__)

FEAR_GREED_URL = "https://api.alternative.me"


class FearGreedClient(BaseAPIClient):
    """Client for the crypto Fear & Greed sentiment index."""

    def __init__(self):
        config = APIClientConfig(
            base_url=FEAR_GREED_URL,
            timeout=15,
            headers={"Accept": "application/json"}
        )
        super().__init__(config, "Fear & Greed")

    async def fetch_index(self) -> Tuple[int, str]:
        """Get the latest index value and its classification.

        Returns:
            ``(value, label)``; an unparseable value reads as 0 and a missing
            label as "Unknown"

        Raises:
            MarketDataError: If the latest entry is not an object
        """
        response = await self._make_request("GET", "fng/")
        payload = response.json()

        entries = payload.get("data") if isinstance(payload, dict) else None
        entry = entries[0] if isinstance(entries, list) and entries else {}
        if not isinstance(entry, dict):
            raise MarketDataError(
                f"Failed to parse Fear & Greed index | response: {excerpt(str(payload))}")

        try:
            value = int(entry.get("value", ""))
        except (TypeError, ValueError):
            value = 0

        label = entry.get("value_classification")
        if not isinstance(label, str):
            label = "Unknown"

        return value, label

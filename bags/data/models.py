"""Data models for market data, holdings and alerts."""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Dict, Any, Tuple


class Tab(Enum):
    """Top-level views of the coin table."""
    MARKETS = "markets"
    FAVOURITES = "favourites"
    PORTFOLIO = "portfolio"

    @property
    def label(self) -> str:
        return self.value.title()

    def next(self) -> 'Tab':
        members = list(Tab)
        return members[(members.index(self) + 1) % len(members)]


class ChartRange(Enum):
    """History windows offered by the chart popup."""
    DAY_1 = 1
    DAY_7 = 7
    DAY_30 = 30

    @property
    def days(self) -> int:
        return self.value

    @property
    def label(self) -> str:
        return f"{self.value}D"

    def next(self) -> 'ChartRange':
        members = list(ChartRange)
        return members[(members.index(self) + 1) % len(members)]

    def prev(self) -> 'ChartRange':
        members = list(ChartRange)
        return members[(members.index(self) - 1) % len(members)]


class SortColumn(Enum):
    """Sortable columns of the coin table."""
    RANK = "rank"
    NAME = "name"
    PRICE = "price"
    CHANGE_1H = "change_1h"
    CHANGE_24H = "change_24h"
    CHANGE_7D = "change_7d"
    VOLUME = "volume"
    MARKET_CAP = "market_cap"


class SortDirection(Enum):
    """Sort direction."""
    ASC = "asc"
    DESC = "desc"


class AlertDirection(Enum):
    """Which side of the target price fires an alert."""
    ABOVE = "above"
    BELOW = "below"

    def toggle(self) -> 'AlertDirection':
        return AlertDirection.BELOW if self is AlertDirection.ABOVE else AlertDirection.ABOVE

    @property
    def arrow(self) -> str:
        return "▲" if self is AlertDirection.ABOVE else "▼"


class NotificationMethod(Enum):
    """Delivery methods for triggered alerts."""
    NONE = "none"
    DESKTOP = "desktop"
    NTFY = "ntfy"
    BOTH = "both"

    @classmethod
    def parse(cls, value: Optional[str]) -> 'NotificationMethod':
        """Parse a stored value, falling back to NONE for anything unknown."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.NONE

    @property
    def uses_desktop(self) -> bool:
        return self in (NotificationMethod.DESKTOP, NotificationMethod.BOTH)

    @property
    def uses_ntfy(self) -> bool:
        return self in (NotificationMethod.NTFY, NotificationMethod.BOTH)


class SettingsField(Enum):
    """Rows of the settings form, in display order."""
    CURRENCY = "Currency"
    THEME = "Theme"
    COINGECKO_API_KEY = "CoinGecko API Key"
    COINMARKETCAP_API_KEY = "CoinMarketCap API Key"
    NOTIFICATIONS = "Notifications"
    NTFY_TOPIC = "Ntfy Topic"

    @property
    def label(self) -> str:
        return self.value

    def next(self) -> 'SettingsField':
        members = list(SettingsField)
        return members[(members.index(self) + 1) % len(members)]

    def prev(self) -> 'SettingsField':
        members = list(SettingsField)
        return members[(members.index(self) - 1) % len(members)]

    @property
    def is_text_field(self) -> bool:
        return self in (
            SettingsField.COINGECKO_API_KEY,
            SettingsField.COINMARKETCAP_API_KEY,
            SettingsField.NTFY_TOPIC,
        )

    @property
    def is_cycle_field(self) -> bool:
        return not self.is_text_field


CURRENCIES: Tuple[str, ...] = (
    "usd", "eur", "gbp", "jpy", "aud", "cad", "chf", "cny", "krw", "inr", "brl", "btc", "eth",
)

_CURRENCY_SYMBOLS: Dict[str, str] = {
    "usd": "$",
    "eur": "€",
    "gbp": "£",
    "jpy": "¥",
    "cny": "¥",
    "krw": "₩",
    "aud": "$",
    "cad": "$",
    "chf": "Fr",
    "inr": "₹",
    "brl": "R$",
    "btc": "₿",
    "eth": "Ξ",
}


def currency_symbol(code: str) -> str:
    """Get the display symbol for a currency code."""
    return _CURRENCY_SYMBOLS.get(code.lower(), "$")


def _float_or_zero(value: Any) -> float:
    if value is None:
        return 0.0
    return float(value)


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    return int(value)


@dataclass(frozen=True)
class Coin:
    """One tracked cryptocurrency and its market metrics.

    Instances are immutable; a refresh replaces the whole snapshot list.
    """

    id: str
    name: str = ""
    symbol: str = ""
    current_price: float = 0.0
    market_cap: float = 0.0
    total_volume: float = 0.0
    price_change_percentage_1h_in_currency: Optional[float] = None
    price_change_percentage_24h_in_currency: Optional[float] = None
    price_change_percentage_7d_in_currency: Optional[float] = None
    market_cap_rank: Optional[int] = None
    high_24h: Optional[float] = None
    low_24h: Optional[float] = None
    circulating_supply: Optional[float] = None
    max_supply: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Coin':
        """Create instance from a provider market row.

        Args:
            data: Dictionary as returned by the markets endpoint

        Returns:
            Coin instance

        Raises:
            KeyError: If the row has no ``id``
            TypeError, ValueError: If a numeric field is not numeric
        """
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            symbol=data.get("symbol") or "",
            current_price=_float_or_zero(data.get("current_price")),
            market_cap=_float_or_zero(data.get("market_cap")),
            total_volume=_float_or_zero(data.get("total_volume")),
            price_change_percentage_1h_in_currency=_optional_float(
                data.get("price_change_percentage_1h_in_currency")),
            price_change_percentage_24h_in_currency=_optional_float(
                data.get("price_change_percentage_24h_in_currency")),
            price_change_percentage_7d_in_currency=_optional_float(
                data.get("price_change_percentage_7d_in_currency")),
            market_cap_rank=_optional_int(data.get("market_cap_rank")),
            high_24h=_optional_float(data.get("high_24h")),
            low_24h=_optional_float(data.get("low_24h")),
            circulating_supply=_optional_float(data.get("circulating_supply")),
            max_supply=_optional_float(data.get("max_supply")),
        )


@dataclass
class Holding:
    """Quantity of a coin the user owns."""

    coin_id: str
    amount: float
    buy_price: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"coin_id": self.coin_id, "amount": self.amount, "buy_price": self.buy_price}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Holding':
        return cls(
            coin_id=data["coin_id"],
            amount=float(data["amount"]),
            buy_price=_optional_float(data.get("buy_price")),
        )


@dataclass
class PriceAlert:
    """Price alert; ``triggered`` only ever flips from False to True."""

    coin_id: str
    target_price: float
    direction: AlertDirection = AlertDirection.ABOVE
    triggered: bool = False

    def is_hit(self, price: float) -> bool:
        """Check whether a price satisfies the alert condition."""
        if self.direction is AlertDirection.ABOVE:
            return price >= self.target_price
        return price <= self.target_price

    @property
    def key(self) -> Tuple[str, float]:
        return (self.coin_id, self.target_price)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "coin_id": self.coin_id,
            "target_price": self.target_price,
            "direction": self.direction.value,
            "triggered": self.triggered,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PriceAlert':
        return cls(
            coin_id=data["coin_id"],
            target_price=float(data["target_price"]),
            direction=AlertDirection(data.get("direction", "above")),
            triggered=bool(data.get("triggered", False)),
        )


@dataclass(frozen=True)
class SearchResult:
    """Coin search hit."""

    id: str
    name: str
    symbol: str
    market_cap_rank: Optional[int] = None


@dataclass
class GlobalMarketStats:
    """Whole-market figures shown in the top bar."""

    total_market_cap: float = 0.0
    btc_dominance: float = 0.0
    fear_greed_index: Optional[int] = None
    fear_greed_label: Optional[str] = None

    def with_sentiment(self, index: int, label: str) -> 'GlobalMarketStats':
        return replace(self, fear_greed_index=index, fear_greed_label=label)


@dataclass(frozen=True)
class SortSpec:
    """Active sort column and direction; ``column`` None means provider order."""

    column: Optional[SortColumn] = None
    direction: SortDirection = SortDirection.ASC


@dataclass
class SettingsForm:
    """Working copy of the settings while the settings popup is open."""

    currency_idx: int = 0
    theme_idx: int = 0
    notification_idx: int = 0
    coingecko_api_key: str = ""
    coinmarketcap_api_key: str = ""
    ntfy_topic: str = ""

"""Tests for data models, formatting and themes."""

import pytest

from bags.data.models import (
    AlertDirection, ChartRange, Coin, Holding, NotificationMethod, PriceAlert, SettingsField,
    Tab, currency_symbol
)
from bags.ui.formatting import format_amount, format_large, format_pct, format_price, mask_key
from bags.ui.theme import THEME_NAMES, by_name


class TestEnums:
    """Test cycling enums."""

    def test_tab_cycle(self):
        assert Tab.MARKETS.next() is Tab.FAVOURITES
        assert Tab.PORTFOLIO.next() is Tab.MARKETS
        assert Tab.FAVOURITES.label == "Favourites"

    def test_chart_range_cycle(self):
        assert ChartRange.DAY_30.next() is ChartRange.DAY_1
        assert ChartRange.DAY_1.prev() is ChartRange.DAY_30
        assert ChartRange.DAY_7.label == "7D"
        assert ChartRange.DAY_7.days == 7

    def test_settings_field_cycle(self):
        assert SettingsField.NTFY_TOPIC.next() is SettingsField.CURRENCY
        assert SettingsField.COINGECKO_API_KEY.is_text_field
        assert SettingsField.NOTIFICATIONS.is_cycle_field

    @pytest.mark.parametrize("value,expected", [
        ("desktop", NotificationMethod.DESKTOP),
        (" Both ", NotificationMethod.BOTH),
        (None, NotificationMethod.NONE),
        ("pager", NotificationMethod.NONE),
    ])
    def test_notification_parse(self, value, expected):
        assert NotificationMethod.parse(value) is expected

    def test_notification_channels(self):
        assert NotificationMethod.BOTH.uses_desktop and NotificationMethod.BOTH.uses_ntfy
        assert not NotificationMethod.NTFY.uses_desktop
        assert not NotificationMethod.DESKTOP.uses_ntfy


class TestCoin:
    """Test provider row parsing."""

    def test_from_dict_optional_fields(self):
        coin = Coin.from_dict({"id": "x", "current_price": "1.5", "market_cap_rank": None})
        assert coin.current_price == 1.5
        assert coin.market_cap_rank is None
        assert coin.name == ""

    def test_from_dict_requires_id(self):
        with pytest.raises(KeyError):
            Coin.from_dict({"name": "Nameless"})

    def test_from_dict_rejects_non_numeric(self):
        with pytest.raises(ValueError):
            Coin.from_dict({"id": "x", "current_price": "lots"})


class TestAlertsAndHoldings:
    """Test store row conversions."""

    def test_alert_round_trip(self):
        alert = PriceAlert("bitcoin", 1.5, AlertDirection.BELOW, triggered=True)
        assert PriceAlert.from_dict(alert.to_dict()) == alert

    def test_alert_is_hit(self):
        assert PriceAlert("x", 10.0, AlertDirection.ABOVE).is_hit(10.0)
        assert not PriceAlert("x", 10.0, AlertDirection.ABOVE).is_hit(9.99)
        assert PriceAlert("x", 10.0, AlertDirection.BELOW).is_hit(5.0)

    def test_holding_without_buy_price(self):
        holding = Holding.from_dict({"coin_id": "x", "amount": 2})
        assert holding.buy_price is None


class TestFormatting:
    """Test table cell formatting."""

    @pytest.mark.parametrize("value,expected", [
        (50123.456, "50,123.46"),
        (1.0, "1.00"),
        (0.0123456, "0.0123"),
        (0.00001234, "0.000012"),
        (0.0, "0.00"),
    ])
    def test_format_price(self, value, expected):
        assert format_price(value) == expected

    @pytest.mark.parametrize("value,expected", [
        (2.5e12, "2.5T"),
        (3.2e9, "3.2B"),
        (4.5e6, "4.5M"),
        (1500, "1.5K"),
        (999, "999"),
    ])
    def test_format_large(self, value, expected):
        assert format_large(value) == expected

    def test_format_pct(self):
        assert format_pct(None) == "--"
        assert format_pct(0.0) == "+0.0%"
        assert format_pct(-3.14) == "-3.1%"

    def test_format_amount(self):
        assert format_amount(0) == "0"
        assert format_amount(1.5) == "1.5"
        assert format_amount(1234.0) == "1,234"
        assert format_amount(0.5) == "0.500000"

    def test_mask_key(self):
        assert mask_key("abc") == "•••"
        assert mask_key("CG-1234567") == "CG-•••••••"

    def test_currency_symbol(self):
        assert currency_symbol("EUR") == "€"
        assert currency_symbol("krw") == "₩"
        assert currency_symbol("xyz") == "$"


class TestThemes:
    """Test palette lookup."""

    def test_every_theme_builds(self):
        for name in THEME_NAMES:
            assert by_name(name).name == name

    def test_unknown_theme_falls_back(self):
        assert by_name("neon").name == "dark"

    def test_no_color_uses_terminal_default(self):
        theme = by_name("no-color")
        assert theme.fg == "default"
        assert theme.style("accent", bold=True).bold

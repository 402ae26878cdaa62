"""Number and text formatting for table cells."""

from typing import Optional

BULLET = "•"


def format_price(value: float) -> str:
    """Format a price with precision that grows as the price shrinks.

    >>> format_price(50123.456)
    '50,123.46'
    >>> format_price(0.0123456)
    '0.0123'
    """
    if value >= 1.0:
        return f"{value:,.2f}"
    if value >= 0.01:
        return f"{value:.4f}"
    if value > 0.0:
        return f"{value:.6f}"
    return "0.00"


def format_large(value: float) -> str:
    """Abbreviate large magnitudes with T/B/M/K suffixes."""
    for threshold, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K")):
        if value >= threshold:
            return f"{value / threshold:.1f}{suffix}"
    return f"{value:.0f}"


def format_pct(value: Optional[float]) -> str:
    if value is None:
        return "--"
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.1f}%"


def format_amount(value: float) -> str:
    """Format a holding quantity without trailing zeros."""
    if value == 0:
        return "0"
    if value >= 1.0:
        return f"{value:,.4f}".rstrip("0").rstrip(".")
    return f"{value:.6f}"


def mask_key(key: str) -> str:
    """Hide an API key, keeping the first three characters of longer keys."""
    if len(key) <= 6:
        return BULLET * len(key)
    return key[:3] + BULLET * (len(key) - 3)

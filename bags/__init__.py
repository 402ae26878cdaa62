"""
bags - a terminal cryptocurrency tracker.

This package provides a keyboard-driven terminal UI that follows live market
data against locally stored holdings, favourites and price alerts kept in an
encrypted store.
"""

__version__ = "0.1.0"
__author__ = "bags contributors"
__license__ = "MIT"

__all__ = [
    "__version__",
    "__author__",
    "__license__",
]

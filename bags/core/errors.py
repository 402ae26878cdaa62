"""Exception hierarchy shared across the application."""


class BagsError(Exception):
    """Base class for all application errors."""
    pass


class MarketDataError(BagsError):
    """Market data provider failed or returned an unusable payload."""
    pass


class StoreError(BagsError):
    """Encrypted store could not be read or written."""
    pass


class StoreAuthenticationError(StoreError):
    """Wrong password or corrupted store file."""
    pass


class ConfigError(BagsError):
    """Configuration-related errors."""
    pass

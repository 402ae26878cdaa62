"""Market data clients, models and the encrypted store."""

"""Market data provider clients."""

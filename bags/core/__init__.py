"""Application core: state, input handling, alerts and scheduling."""

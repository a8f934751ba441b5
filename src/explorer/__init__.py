"""Places and events explorer: cache-first aggregation over place and event providers."""

__version__ = "0.1.0"

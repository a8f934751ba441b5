"""Error taxonomy shared by adapters, stores and aggregators."""

from __future__ import annotations

from typing import Optional


class ExplorerError(Exception):
    """Base class for all explorer errors."""


class TransportError(ExplorerError):
    """Network or timeout failure talking to a provider or the cache store."""


class ProviderError(ExplorerError):
    """Provider answered but signaled a non-success status."""

    def __init__(self, provider: str, status: str, message: Optional[str] = None) -> None:
        self.provider = provider
        self.status = status
        detail = f"{provider} error: {status}"
        if message:
            detail = f"{detail} ({message})"
        super().__init__(detail)


class PersistenceError(ExplorerError):
    """Cache store read or write failed."""


class ValidationError(ExplorerError):
    """Malformed input parameters."""


class RowConversionError(ExplorerError):
    """A single cache row could not be converted to a canonical entity."""


class AggregationError(ExplorerError):
    """Every attempted source failed for a search."""

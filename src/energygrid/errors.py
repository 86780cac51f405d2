"""Exception types shared across the aggregator."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Raised when required settings are missing or invalid at startup."""


class FetchError(RuntimeError):
    """Raised when a telemetry batch cannot be fetched."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RetryableFetchError(FetchError):
    """Transient failure (rate limited, connection refused, timeout)."""

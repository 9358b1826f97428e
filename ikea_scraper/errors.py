"""
Custom domain exceptions for the entire system.
Every error has a name, not chaos.
"""
from typing import Optional


class ConfigError(Exception):
    """Raised when required configuration or run input is missing or invalid."""
    pass


class NetworkError(Exception):
    """Base class for network-related failures."""
    pass


class TransportError(NetworkError):
    """Raised when a page fetch ultimately fails (after transport-side retries)."""

    def __init__(self, message: str, url: str = "", status: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status = status


class ExternalServiceError(Exception):
    """Raised when an external service (site API, storage backend) fails."""
    pass


class RetryExhaustedError(ExternalServiceError):
    """Raised when all retry attempts for an external service are exhausted."""
    pass


class DataContractError(Exception):
    """Raised when data doesn't conform to internal model."""
    pass


class NormalizationError(Exception):
    """Raised when a raw candidate cannot be normalized."""
    pass


class IdentityError(NormalizationError):
    """Raised when no product id can be parsed from a candidate's URL."""
    pass


class ExtractionError(Exception):
    """Raised inside a strategy when a page cannot be parsed."""
    pass


class QueueError(Exception):
    """Raised when queue operations fail."""
    pass


class StorageError(Exception):
    """Raised when the output dataset cannot be written."""
    pass

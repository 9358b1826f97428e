"""
IKEA Scraper - multi-strategy catalog scraper with dedup and budgeted pagination.
"""

__version__ = "1.0.0"
__author__ = "Engineering Team"

# Export main components for easy import
from ikea_scraper.config import config
from ikea_scraper.logger import logger
from ikea_scraper.errors import (
    ConfigError,
    NetworkError,
    TransportError,
    ExternalServiceError,
    DataContractError,
    NormalizationError,
    IdentityError,
    ExtractionError,
    QueueError,
    RetryExhaustedError,
    StorageError
)

__all__ = [
    'config',
    'logger',
    'ConfigError',
    'NetworkError',
    'TransportError',
    'ExternalServiceError',
    'DataContractError',
    'NormalizationError',
    'IdentityError',
    'ExtractionError',
    'QueueError',
    'RetryExhaustedError',
    'StorageError'
]

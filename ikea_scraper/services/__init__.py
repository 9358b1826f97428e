"""
Services package initialization.
Centralizes service imports.
"""

from ikea_scraper.services.http_service import HttpService, FetchResponse
from ikea_scraper.services.dataset_service import DatasetService, MemoryDatasetService

__all__ = [
    'HttpService',
    'FetchResponse',
    'DatasetService',
    'MemoryDatasetService'
]

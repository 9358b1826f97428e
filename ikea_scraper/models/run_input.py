"""
Run configuration surface and the end-of-run report.
"""
import sys
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any

from ikea_scraper.config import config
from ikea_scraper.errors import ConfigError
from ikea_scraper.utils.urls import listing_url, currency_for

UNBOUNDED = sys.maxsize
FALLBACK_MAX_PAGES = 999


def _product_ceiling(value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return UNBOUNDED
    return number if number > 0 else UNBOUNDED


def _page_ceiling(value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return FALLBACK_MAX_PAGES
    return max(1, number)


@dataclass(frozen=True)
class RunInput:
    start_urls: List[str] = field(default_factory=list)
    country: str = "gb"
    language: str = "en"
    category: Optional[str] = "new-products"
    max_products: int = 100
    max_pages: int = 10
    collect_details: bool = True

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RunInput":
        """Build from actor-style input (camelCase keys), filling config defaults."""
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigError("Run input must be a JSON object")

        raw_urls = data.get("startUrls") or []
        if not isinstance(raw_urls, list):
            raise ConfigError("startUrls must be a list")
        start_urls = []
        for entry in raw_urls:
            url = entry.get("url") if isinstance(entry, dict) else entry
            if not isinstance(url, str) or not url.strip():
                raise ConfigError(f"Invalid start URL entry: {entry!r}")
            start_urls.append(url.strip())

        country = data.get("country", config.DEFAULT_COUNTRY)
        language = data.get("language", config.DEFAULT_LANGUAGE)
        category = data.get("category", config.DEFAULT_CATEGORY)
        for key, value in (("country", country), ("language", language)):
            if not isinstance(value, str) or not value.strip():
                raise ConfigError(f"{key} must be a non-empty string")
        if category is not None and not isinstance(category, str):
            raise ConfigError("category must be a string")

        collect_details = data.get("collectDetails", config.DEFAULT_COLLECT_DETAILS)
        if not isinstance(collect_details, bool):
            raise ConfigError("collectDetails must be a boolean")

        return cls(
            start_urls=start_urls,
            country=country.strip().lower(),
            language=language.strip().lower(),
            category=category or None,
            max_products=_product_ceiling(data.get("maxProducts", config.DEFAULT_MAX_PRODUCTS)),
            max_pages=_page_ceiling(data.get("maxPages", config.DEFAULT_MAX_PAGES)),
            collect_details=collect_details,
        )

    @property
    def default_currency(self) -> Optional[str]:
        return currency_for(self.country)

    def initial_urls(self) -> List[str]:
        if self.start_urls:
            return list(self.start_urls)
        return [listing_url(self.country, self.language, self.category or config.DEFAULT_CATEGORY)]


class RunStatus(str, Enum):
    COMPLETED = "completed"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass
class RunReport:
    """Counters accumulated over one run."""
    persisted: int = 0
    pages: int = 0
    duplicates: int = 0
    rejected: int = 0
    over_budget: int = 0
    detail_fetches: int = 0
    detail_fallbacks: int = 0
    dropped: int = 0
    failed_units: int = 0
    quality_flags: int = 0
    strategy_hits: Counter = field(default_factory=Counter)
    stop_reasons: Counter = field(default_factory=Counter)
    status: Optional[RunStatus] = None
    error: Optional[str] = None

    def close(self, error: Optional[str] = None) -> "RunReport":
        self.error = error
        if error:
            self.status = RunStatus.FAILED
        elif self.persisted == 0:
            self.status = RunStatus.EMPTY
        else:
            self.status = RunStatus.COMPLETED
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value if self.status else None,
            "persisted": self.persisted,
            "pages": self.pages,
            "duplicates": self.duplicates,
            "rejected": self.rejected,
            "over_budget": self.over_budget,
            "detail_fetches": self.detail_fetches,
            "detail_fallbacks": self.detail_fallbacks,
            "dropped": self.dropped,
            "failed_units": self.failed_units,
            "quality_flags": self.quality_flags,
            "strategy_hits": dict(self.strategy_hits),
            "stop_reasons": dict(self.stop_reasons),
            "error": self.error,
        }

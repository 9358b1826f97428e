"""
URL and locale helpers shared by the strategies, the pipeline and the transport.
"""
import random
import re
from typing import Optional
from urllib.parse import urljoin, urlparse

SITE_ROOT = "https://www.ikea.com"

# Product pages look like /gb/en/p/billy-bookcase-white-00263850/
PRODUCT_PATH_MARKER = "/p/"
PRODUCT_ID_PATTERN = re.compile(r"/p/[^/]+-(\d+)/?")

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_6_1) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
]

COUNTRY_CURRENCIES = {
    "gb": "GBP", "us": "USD", "ca": "CAD", "au": "AUD", "nz": "NZD", "ie": "EUR",
    "de": "EUR", "fr": "EUR", "es": "EUR", "it": "EUR", "nl": "EUR", "be": "EUR",
    "at": "EUR", "pt": "EUR", "fi": "EUR", "se": "SEK", "no": "NOK", "dk": "DKK",
    "ch": "CHF", "pl": "PLN", "cz": "CZK", "hu": "HUF", "ro": "RON", "jp": "JPY",
    "kr": "KRW", "cn": "CNY", "in": "INR", "mx": "MXN", "sa": "SAR", "ae": "AED",
}


def site_base(country: str, language: str) -> str:
    return f"{SITE_ROOT}/{country.lower()}/{language.lower()}/"


def to_abs(href: Optional[str], base: str) -> Optional[str]:
    """Resolve href against base; None when href is empty or unusable."""
    if not href:
        return None
    try:
        resolved = urljoin(base, href.strip())
    except ValueError:
        return None
    if urlparse(resolved).scheme not in ("http", "https"):
        return None
    return resolved


def is_product_url(url: Optional[str]) -> bool:
    return bool(url) and PRODUCT_PATH_MARKER in url


def extract_product_id(url: Optional[str]) -> Optional[str]:
    """Numeric suffix of the product slug, e.g. '00263850'."""
    if not url:
        return None
    match = PRODUCT_ID_PATTERN.search(url)
    return match.group(1) if match else None


def listing_url(country: str, language: str, category: str) -> str:
    """Synthetic listing URL used when the run has no start URLs."""
    return f"{site_base(country, language)}new/{category}/"


def currency_for(country: Optional[str]) -> Optional[str]:
    return COUNTRY_CURRENCIES.get((country or "").lower())


def pick_user_agent() -> str:
    return random.choice(USER_AGENTS)


def build_accept_language(language: Optional[str], country: Optional[str]) -> str:
    lang = (language or "en").lower()
    region = (country or "gb").upper()
    return f"{lang}-{region},{lang};q=0.9,en;q=0.8"

"""
Shared fakes and HTML fixtures.
"""
import pytest

from ikea_scraper.errors import TransportError
from ikea_scraper.services.http_service import FetchResponse

BASE = "https://www.ikea.com/gb/en/"
LISTING_URL = "https://www.ikea.com/gb/en/new/new-products/"


def product_url(slug: str, product_id: str) -> str:
    return f"https://www.ikea.com/gb/en/p/{slug}-{product_id}/"


def card_html(href: str, name: str = None, price: str = "£45", image: str = None,
              rating: str = None, reviews: str = None) -> str:
    parts = [f'<div data-testid="plp-product-card"><a href="{href}" aria-label="{name or ""}">']
    if image:
        parts.append(f'<img src="{image}" alt="">')
    parts.append("</a>")
    if name:
        parts.append(f'<span data-testid="plp-product-title">{name}</span>')
    if price:
        parts.append(f'<span class="pip-price">{price}</span>')
    if rating:
        parts.append(f'<span class="rating" aria-label="Review: {rating} out of 5 stars"></span>')
    if reviews:
        parts.append(f'<span class="rating__count">({reviews} reviews)</span>')
    parts.append("</div>")
    return "".join(parts)


def listing_html(*cards: str, extra: str = "") -> str:
    return f"<html><body><main>{''.join(cards)}</main>{extra}</body></html>"


class FakeFetcher:
    """
    Serves canned pages by URL. JSON requests fail unless a json_pages entry
    matches the URL prefix, so the search API strategy falls through.
    """

    def __init__(self, pages=None, json_pages=None, failures=None):
        self.pages = dict(pages or {})
        self.json_pages = dict(json_pages or {})
        self.failures = set(failures or ())
        self.calls = []

    async def fetch_page(self, url, as_json=False, headers=None, method="GET", json_body=None):
        self.calls.append((method, url, json_body))
        if url in self.failures:
            raise TransportError(f"Giving up on {url}", url=url, status=503)
        if as_json:
            for prefix, body in self.json_pages.items():
                if url.startswith(prefix):
                    return FetchResponse(url=url, status=200, body=body)
            raise TransportError(f"HTTP 404 for {url}", url=url, status=404)
        if url not in self.pages:
            raise TransportError(f"HTTP 404 for {url}", url=url, status=404)
        return FetchResponse(url=url, status=200, body=self.pages[url])

    def fetched(self, url: str) -> bool:
        return any(call[1] == url for call in self.calls)


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()

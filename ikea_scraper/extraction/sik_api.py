"""
Structured-source strategy: the site's product search API.
Listing pages only. Issues its own requests, one query shape at a time.
"""
from dataclasses import dataclass
from typing import Optional, List, Dict, Any
from urllib.parse import urlparse

from ikea_scraper.errors import TransportError, ExtractionError
from ikea_scraper.extraction.base import BaseStrategy
from ikea_scraper.logger import logger
from ikea_scraper.models.candidates import Page, PageKind, ApiShape, ExtractionResult

SIK_ROOT = "https://sik.search.blue.cdtapps.com"
SIK_VERSION = "20250507"
PAGE_SIZE = 48
MAX_API_WINDOW = 480

SPECIAL_CATEGORY_MAP = {
    "new-products": "new_product",
    "family-offers": "family_price",
    "lower-price": "new_lower_price",
    "last-chance": "last_chance",
    "lowest-price": "breath_taking",
    "limited-time-offers": "time_restricted",
    "best-sellers": "top_seller",
    "limited-edition": "limited_edition",
}


@dataclass(frozen=True)
class SearchQuery:
    input: str
    type: str  # SPECIAL or CATEGORY


def resolve_search(url: Optional[str], category: Optional[str], category_fallback: bool = True) -> Optional[SearchQuery]:
    """
    Work out what to ask the search API for.

    /new/<slug> listing URLs map through the special-listing table,
    /cat/<slug> URLs become a CATEGORY query. Anything else falls back to the
    run category, but only when the run had no explicit start URLs.
    """
    if url:
        parts = [p for p in urlparse(url).path.split("/") if p]
        last = parts[-1] if parts else None
        if "new" in parts:
            special = SPECIAL_CATEGORY_MAP.get(last) or SPECIAL_CATEGORY_MAP.get(category or "")
            if special:
                return SearchQuery(special, "SPECIAL")
        if "cat" in parts and last and last != "cat":
            return SearchQuery(last, "CATEGORY")

    if not category_fallback or not category:
        return None
    special = SPECIAL_CATEGORY_MAP.get(category)
    if special:
        return SearchQuery(special, "SPECIAL")
    return SearchQuery(category, "CATEGORY")


def search_window(page_no: int, remaining_products: int) -> Dict[str, int]:
    """Offset/size for one listing page, capped by the remaining product budget."""
    offset = max(0, page_no - 1) * PAGE_SIZE
    size = min(PAGE_SIZE, remaining_products, MAX_API_WINDOW)
    return {"offset": offset, "size": max(0, size)}


def _products_from_primary_area(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    for result in payload.get("results") or []:
        if not isinstance(result, dict) or result.get("component") != "PRIMARY_AREA":
            continue
        items = result.get("items") or []
        return [
            item["product"] for item in items
            if isinstance(item, dict) and item.get("type") == "PRODUCT" and isinstance(item.get("product"), dict)
        ]
    return []


def _products_from_list_page(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    window = (payload.get("productListPage") or {}).get("productWindow") or []
    return [p for p in window if isinstance(p, dict)]


def _products_from_search_page(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    main = ((payload.get("searchResultPage") or {}).get("products") or {}).get("main") or {}
    return [i["product"] for i in main.get("items") or [] if isinstance(i, dict) and isinstance(i.get("product"), dict)]


# Known places a product array lives, newest response shape first
PRODUCT_ARRAY_READERS = (
    _products_from_primary_area,
    _products_from_list_page,
    _products_from_search_page,
)


def read_products(payload: Any) -> List[Dict[str, Any]]:
    if not isinstance(payload, dict):
        return []
    for reader in PRODUCT_ARRAY_READERS:
        products = reader(payload)
        if products:
            return products
    return []


def read_total(payload: Any) -> Optional[int]:
    """Total hit count if the response reports one."""
    if not isinstance(payload, dict):
        return None
    for result in payload.get("results") or []:
        if isinstance(result, dict) and result.get("component") == "PRIMARY_AREA":
            metadata = result.get("metadata") or {}
            total = (metadata.get("itemsPerType") or {}).get("PRODUCT") or metadata.get("max")
            if isinstance(total, (int, float)):
                return int(total)
    count = (payload.get("productListPage") or {}).get("productCount")
    if isinstance(count, (int, float)):
        return int(count)
    return None


class SikApiStrategy(BaseStrategy):
    """
    Queries the search API with the category resolved from the page URL.

    Query shapes are tried sequentially; the first one that returns a
    non-empty product array wins and the rest are never requested.
    """

    name = "api"
    page_kinds = frozenset({PageKind.LISTING})

    def __init__(self, fetcher, country: str, language: str, category: Optional[str] = None,
                 category_fallback: bool = True):
        self.fetcher = fetcher
        self.country = country.lower()
        self.language = language.lower()
        self.category = category
        self.category_fallback = category_fallback

    @property
    def endpoint(self) -> str:
        return f"{SIK_ROOT}/{self.country}/{self.language}"

    def build_requests(self, query: SearchQuery, window: Dict[str, int]) -> List[Dict[str, Any]]:
        """Request descriptions in the order they are tried."""
        requests = [{
            "method": "POST",
            "url": f"{self.endpoint}/search?c=listaf&v={SIK_VERSION}",
            "json_body": {
                "searchParameters": {"input": query.input, "type": query.type},
                "components": [{
                    "component": "PRIMARY_AREA",
                    "types": {"main": "PRODUCT", "breakouts": []},
                    "filterConfig": {},
                    "window": window,
                    "columns": 4,
                }],
            },
        }]
        if query.type == "CATEGORY":
            start = window["offset"]
            requests.append({
                "method": "GET",
                "url": (f"{self.endpoint}/product-list-page?category={query.input}"
                        f"&start={start}&end={start + window['size']}&c=plp&v={SIK_VERSION}"),
                "json_body": None,
            })
        return requests

    async def extract(self, page: Page) -> ExtractionResult:
        query = resolve_search(page.url, self.category, self.category_fallback)
        if query is None:
            logger.debug(f"No search API query for {page.url}")
            return ExtractionResult.empty(self.name)

        window = search_window(page.page_no, page.remaining_products)
        if window["size"] == 0 or window["offset"] >= MAX_API_WINDOW:
            return ExtractionResult.empty(self.name)

        failures = 0
        requests = self.build_requests(query, window)
        for request in requests:
            try:
                response = await self.fetcher.fetch_page(
                    request["url"],
                    as_json=True,
                    method=request["method"],
                    json_body=request["json_body"],
                )
            except TransportError as e:
                logger.warning(f"Search API request failed ({request['method']} {request['url']}): {e}")
                failures += 1
                continue

            products = read_products(response.body)
            if not products:
                logger.debug(f"Search API returned no products for {query.input} ({query.type})")
                continue

            total = read_total(response.body)
            reached = window["offset"] + len(products)
            has_more = None
            if total is not None:
                has_more = reached < min(total, MAX_API_WINDOW)
            logger.info(f"Search API: {len(products)} products for {query.input}, total={total}")
            return self._result([ApiShape(p) for p in products], has_more=has_more)

        if failures == len(requests):
            raise ExtractionError(f"Search API unreachable for {query.input} ({query.type})")
        return ExtractionResult.empty(self.name)

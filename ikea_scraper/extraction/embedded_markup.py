"""
Embedded-markup strategy: preloaded state blobs and JSON-LD blocks.
"""
import json
import re
from typing import Optional, List, Dict, Any, Iterator

from ikea_scraper.extraction.base import BaseStrategy
from ikea_scraper.extraction.dom_heuristic import DomHeuristicStrategy
from ikea_scraper.logger import logger
from ikea_scraper.models.candidates import Page, PageKind, MarkupShape, ExtractionResult
from ikea_scraper.utils.urls import is_product_url, extract_product_id

PRELOADED_STATE_PATTERNS = (
    re.compile(r"window\.__PRELOADED_STATE__\s*=\s*"),
    re.compile(r"window\.__INITIAL_STATE__\s*=\s*"),
    re.compile(r"window\.__NUXT__\s*=\s*"),
)
NEXT_DATA_ID = "__NEXT_DATA__"
MAX_SEARCH_DEPTH = 12

# Reads the rendered detail fields that embedded JSON leaves out
RENDERED_PAGE = DomHeuristicStrategy()

_decoder = json.JSONDecoder()


def _types(node: Dict[str, Any]) -> List[str]:
    value = node.get("@type")
    if isinstance(value, list):
        return [str(v) for v in value]
    return [str(value)] if value else []


def is_product_shaped(node: Any) -> bool:
    """A dict that looks like one product, whatever source it came from."""
    if not isinstance(node, dict):
        return False
    if "Product" in _types(node):
        return True
    if isinstance(node.get("pipUrl"), str):
        return True
    url = node.get("url") or node.get("href")
    return isinstance(url, str) and is_product_url(url) and bool(node.get("name") or node.get("productName"))


def find_product_array(data: Any, depth: int = 0) -> List[Dict[str, Any]]:
    """First list (depth-first, document order) holding product-shaped dicts."""
    if depth > MAX_SEARCH_DEPTH:
        return []
    if isinstance(data, list):
        products = [item for item in data if is_product_shaped(item)]
        if products:
            return products
        children = data
    elif isinstance(data, dict):
        children = data.values()
    else:
        return []
    for child in children:
        found = find_product_array(child, depth + 1)
        if found:
            return found
    return []


def find_single_product(data: Any, depth: int = 0) -> Optional[Dict[str, Any]]:
    if depth > MAX_SEARCH_DEPTH:
        return None
    if is_product_shaped(data):
        return data
    if isinstance(data, dict):
        children = data.values()
    elif isinstance(data, list):
        children = data
    else:
        return None
    for child in children:
        found = find_single_product(child, depth + 1)
        if found is not None:
            return found
    return None


class EmbeddedMarkupStrategy(BaseStrategy):
    """
    Reads structured data the page ships inline.

    Listing pages: a product array inside a preloaded-state assignment, or a
    JSON-LD ItemList. Detail pages: one JSON-LD Product block, or a single
    product object in the preloaded state.
    """

    name = "markup"

    async def extract(self, page: Page) -> ExtractionResult:
        if page.kind == PageKind.DETAIL:
            return self._extract_detail(page)
        return self._extract_listing(page)

    def _extract_listing(self, page: Page) -> ExtractionResult:
        for state in self.preloaded_states(page):
            products = find_product_array(state)
            if products:
                logger.debug(f"Found {len(products)} products in preloaded state on {page.url}")
                return self._result([MarkupShape(p) for p in products])

        for block in self.json_ld_blocks(page):
            if "ItemList" in _types(block) and isinstance(block.get("itemListElement"), list):
                items = [i for i in block["itemListElement"] if isinstance(i, dict)]
                if items:
                    logger.debug(f"Found {len(items)} products in JSON-LD ItemList on {page.url}")
                    return self._result([MarkupShape(i) for i in items])

        return ExtractionResult.empty(self.name)

    def _extract_detail(self, page: Page) -> ExtractionResult:
        page_id = extract_product_id(page.url)

        for block in self.json_ld_blocks(page):
            if "Product" in _types(block) and self._same_product(block, page_id):
                return self._result([self._detail_shape(block, page)])

        for state in self.preloaded_states(page):
            product = find_single_product(state)
            if product is not None and self._same_product(product, page_id):
                return self._result([self._detail_shape(product, page)])

        return ExtractionResult.empty(self.name)

    @staticmethod
    def _detail_shape(product: Dict[str, Any], page: Page) -> MarkupShape:
        return MarkupShape(product, single=True, page_fields=RENDERED_PAGE.detail_fields(page.soup))

    @staticmethod
    def _same_product(node: Dict[str, Any], page_id: Optional[str]) -> bool:
        """False only when the block names a different product than the page."""
        url = node.get("pipUrl") or node.get("url")
        block_id = extract_product_id(url) if isinstance(url, str) else None
        return block_id is None or page_id is None or block_id == page_id

    @staticmethod
    def preloaded_states(page: Page) -> Iterator[Any]:
        """Decoded preloaded-state objects, in pattern order."""
        text = page.text or ""
        for pattern in PRELOADED_STATE_PATTERNS:
            match = pattern.search(text)
            if not match:
                continue
            try:
                state, _ = _decoder.raw_decode(text, match.end())
            except ValueError as e:
                logger.debug(f"Unparsable preloaded state ({pattern.pattern}) on {page.url}: {e}")
                continue
            yield state

        script = page.soup.find("script", id=NEXT_DATA_ID)
        if script is not None:
            try:
                yield json.loads(script.string or script.get_text())
            except ValueError as e:
                logger.debug(f"Unparsable {NEXT_DATA_ID} on {page.url}: {e}")

    @staticmethod
    def json_ld_blocks(page: Page) -> Iterator[Dict[str, Any]]:
        """Top-level JSON-LD objects, with arrays and @graph flattened."""
        for script in page.soup.find_all("script", attrs={"type": "application/ld+json"}):
            raw = script.string or script.get_text()
            if not raw or not raw.strip():
                continue
            try:
                data = json.loads(raw)
            except ValueError as e:
                logger.debug(f"Failed to parse JSON-LD on {page.url}: {e}")
                continue
            nodes = data if isinstance(data, list) else [data]
            for node in nodes:
                if not isinstance(node, dict):
                    continue
                graph = node.get("@graph")
                if isinstance(graph, list):
                    for child in graph:
                        if isinstance(child, dict):
                            yield child
                else:
                    yield node

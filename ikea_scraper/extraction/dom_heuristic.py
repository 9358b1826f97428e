"""
DOM-heuristic strategy: ordered selector lists tried against the parsed page.
"""
import re
from typing import Optional, List, Dict, Any

from bs4 import BeautifulSoup, Tag

from ikea_scraper.extraction.base import (
    BaseStrategy, RATING_PATTERN, REVIEW_PATTERN, MEASUREMENT_PATTERN, TYPE_PATTERN, AVAILABILITY_PATTERN,
)
from ikea_scraper.logger import logger
from ikea_scraper.models.candidates import Page, PageKind, DomShape, ExtractionResult
from ikea_scraper.models.product import MAX_FEATURES
from ikea_scraper.utils.urls import is_product_url, to_abs

# Listing pages: the first container selector with any match is used for the whole page
CARD_SELECTORS = (
    '[data-testid="plp-product-card"]',
    ".plp-fragment-wrapper",
    ".product-compact",
    ".serp-grid__item",
    ".range-revamp-product-compact",
    '[class*="product-card"]',
    ".plp-product-list__products > div",
)
CARD_LINK_SELECTORS = ('a[href*="/p/"]', 'a[data-testid*="product"]', 'a[class*="product"]', "a")
CARD_NAME_SELECTORS = (
    '[data-testid="plp-product-title"]',
    ".pip-product-summary__product-title",
    ".product-compact__name",
    "h3",
    '[class*="product-title"]',
    '[class*="product-name"]',
)
CARD_PRICE_SELECTORS = ('[data-testid="plp-price"]', ".pip-price", ".plp-price", '[class*="price"]')
CARD_IMAGE_SELECTORS = ('img[data-testid="product-image"]', 'img[class*="product-image"]', "img")
RATING_SELECTORS = ('[class*="rating"][aria-label]', '[class*="rating"]')
REVIEW_SELECTORS = ('[class*="rating__count"]', '[class*="review"]', '[class*="rating"]')
IMAGE_ATTRIBUTES = ("src", "data-src", "data-lazy-src")

# Detail pages
DETAIL_NAME_SELECTORS = ('h1[class*="pip-header-section"]', ".pip-header-section__title", "h1.product-name", "h1")
DETAIL_PRICE_SELECTORS = ('[class*="pip-temp-price"]', ".pip-price", '[class*="pip-price"]', '[data-testid*="price"]')
DETAIL_DESCRIPTION_SELECTORS = (
    '[class*="pip-product-summary__description"]',
    ".product-description",
    '[class*="description"]',
)
DETAIL_IMAGE_SELECTORS = (
    'img[class*="pip-media"]',
    '[class*="product-image"] img',
    ".pip-aspect-ratio-image__image",
    'img[src*="product"]',
    'img[src*="images"]',
)
DETAIL_TYPE_SELECTORS = (".pip-header-section__description-text", '[class*="product-type"]')
DETAIL_MEASUREMENT_SELECTORS = ('[class*="pip-header-section__description-measurement"]', '[class*="dimensions"]')
DETAIL_AVAILABILITY_SELECTORS = ('[class*="stockcheck"]', '[class*="availability"]', '[data-testid*="availability"]')
FEATURE_CONTAINER_SELECTORS = ('[class*="pip-product-details"] li', '[class*="key-features"] li', '[class*="product-features"] li')
FEATURE_FALLBACK_SELECTOR = "li, span, p"

CARD_IMAGE_REJECT_MARKERS = ("spacer", "placeholder")
IMAGE_REJECT_MARKERS = CARD_IMAGE_REJECT_MARKERS + ("favicon",)
FEATURE_NOISE = re.compile(r"Add to|Select|Choose", re.IGNORECASE)
FEATURE_MIN_LENGTH = 10
FEATURE_MAX_LENGTH = 200
NEW_BADGE = re.compile(r"^New\s+", re.IGNORECASE)


def image_source(img: Optional[Tag]) -> Optional[str]:
    if img is None:
        return None
    for attribute in IMAGE_ATTRIBUTES:
        value = img.get(attribute)
        if value:
            return value
    return None


def is_feature_text(text: str) -> bool:
    return (
        FEATURE_MIN_LENGTH < len(text) < FEATURE_MAX_LENGTH
        and not text[0].isdigit()
        and not FEATURE_NOISE.search(text)
    )


class DomHeuristicStrategy(BaseStrategy):
    """Selector-list probing for listing cards and detail pages."""

    name = "dom"

    async def extract(self, page: Page) -> ExtractionResult:
        if page.kind == PageKind.DETAIL:
            return self._extract_detail(page)
        return self._extract_listing(page)

    # -- listing ----------------------------------------------------------------

    def _extract_listing(self, page: Page) -> ExtractionResult:
        cards: List[Tag] = []
        for selector in CARD_SELECTORS:
            cards = page.soup.select(selector)
            if cards:
                logger.debug(f"Card selector {selector} matched {len(cards)} elements on {page.url}")
                break
        if not cards:
            return ExtractionResult.empty(self.name)

        candidates = []
        for card in cards:
            fields = self.parse_card(card, page.url)
            if fields is not None:
                candidates.append(DomShape(fields))
        return self._result(candidates)

    def parse_card(self, card: Tag, base_url: str) -> Optional[Dict[str, Any]]:
        """Fields of one product card, or None if it lacks a product link, name or price."""
        link = None
        url = None
        for selector in CARD_LINK_SELECTORS:
            link = card.select_one(selector)
            href = link.get("href") if link is not None else None
            if href and is_product_url(href):
                url = to_abs(href, base_url)
                break
        if not url:
            return None

        name = self._first_text(card, CARD_NAME_SELECTORS)
        if not name and link is not None and link.get("aria-label"):
            name = NEW_BADGE.sub("", link["aria-label"]).strip() or None

        card_text = card.get_text(" ", strip=True)
        price = self._price(card, CARD_PRICE_SELECTORS) or self._parse_first_number(card_text)
        if not name or not price:
            return None

        return {
            "url": url,
            "name": name,
            "price": price,
            "image": self._card_image(card),
            "rating": self._rating(card, card_text),
            "review_count": self._review_count(card, card_text),
        }

    @staticmethod
    def _card_image(card: Tag) -> Optional[str]:
        for selector in CARD_IMAGE_SELECTORS:
            src = image_source(card.select_one(selector))
            if src and not any(marker in src for marker in CARD_IMAGE_REJECT_MARKERS):
                return src
        return None

    # -- detail -----------------------------------------------------------------

    def _extract_detail(self, page: Page) -> ExtractionResult:
        fields = self.detail_fields(page.soup)
        if not fields["name"]:
            return ExtractionResult.empty(self.name)
        fields["url"] = page.url
        return self._result([DomShape(fields)])

    def detail_fields(self, soup: BeautifulSoup) -> Dict[str, Any]:
        """
        Every field a rendered product page gives up, name included.

        Type, measurements and availability fall back to labelled body text
        ("Type: ...", "Width: 80 cm", "Availability: ...") when no selector hits.
        """
        page_text = self.visible_text(soup)
        images = self._detail_images(soup)
        return {
            "name": self._first_text(soup, DETAIL_NAME_SELECTORS, min_length=4),
            "price": self._price(soup, DETAIL_PRICE_SELECTORS),
            "description": self._first_text(soup, DETAIL_DESCRIPTION_SELECTORS, min_length=21),
            "images": images,
            "image": images[0] if images else None,
            "rating": self._rating(soup, page_text),
            "review_count": self._review_count(soup, page_text),
            "type": self._first_text(soup, DETAIL_TYPE_SELECTORS) or self._labelled(TYPE_PATTERN, page_text),
            "measurements": (self._first_text(soup, DETAIL_MEASUREMENT_SELECTORS)
                             or self._labelled(MEASUREMENT_PATTERN, page_text)),
            "availability": (self._first_text(soup, DETAIL_AVAILABILITY_SELECTORS)
                             or self._labelled(AVAILABILITY_PATTERN, page_text)),
            "features": self._features(soup) or None,
        }

    @staticmethod
    def _detail_images(root: Tag) -> List[str]:
        """Product photos from the first selector that yields any."""
        images: List[str] = []
        for selector in DETAIL_IMAGE_SELECTORS:
            for img in root.select(selector):
                src = img.get("src") or img.get("data-src")
                if not src or "products" not in src or src in images:
                    continue
                if any(marker in src for marker in IMAGE_REJECT_MARKERS):
                    continue
                images.append(src)
            if images:
                break
        return images

    @staticmethod
    def _features(root: Tag) -> List[str]:
        features: List[str] = []
        for selector in FEATURE_CONTAINER_SELECTORS + (FEATURE_FALLBACK_SELECTOR,):
            for node in root.select(selector):
                text = node.get_text(" ", strip=True)
                if text and is_feature_text(text) and text not in features:
                    features.append(text)
                    if len(features) >= MAX_FEATURES:
                        return features
            if features:
                break
        return features

    # -- shared lookups ---------------------------------------------------------

    def _price(self, root: Tag, selectors) -> Optional[str]:
        for selector in selectors:
            node = root.select_one(selector)
            if node is None:
                continue
            number = self._parse_first_number(node.get_text("", strip=True))
            if number:
                return number
        return None

    @staticmethod
    def _rating(root: Tag, fallback_text: str) -> Optional[str]:
        for selector in RATING_SELECTORS:
            node = root.select_one(selector)
            if node is None:
                continue
            match = RATING_PATTERN.search(node.get("aria-label") or node.get_text(" ", strip=True))
            if match:
                return match.group(1)
        match = RATING_PATTERN.search(fallback_text)
        return match.group(1) if match else None

    @staticmethod
    def _review_count(root: Tag, fallback_text: str) -> Optional[str]:
        for selector in REVIEW_SELECTORS:
            node = root.select_one(selector)
            if node is None:
                continue
            match = REVIEW_PATTERN.search(node.get("aria-label") or node.get_text(" ", strip=True))
            if match:
                return match.group(1)
        match = REVIEW_PATTERN.search(fallback_text)
        return match.group(1) if match else None

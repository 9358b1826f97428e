"""
Text-heuristic strategy: regex scan of a detail page's visible text.
Last resort, so the first plausible match per field is taken as is.
"""
import re

from ikea_scraper.extraction.base import (
    BaseStrategy, RATING_PATTERN, REVIEW_PATTERN, MEASUREMENT_PATTERN, TYPE_PATTERN, AVAILABILITY_PATTERN,
)
from ikea_scraper.models.candidates import Page, PageKind, TextShape, ExtractionResult

CURRENCY_SYMBOLS = {"£": "GBP", "€": "EUR", "¥": "JPY", "₹": "INR", "zł": "PLN"}

PRICE_LABEL_PATTERN = re.compile(
    r"Price\s*(£|€|¥|₹|zł|\$)?\s*(\d(?:[\d.,'\u00a0\u202f]*\d)?)\s*(€|zł)?", re.IGNORECASE
)


class TextHeuristicStrategy(BaseStrategy):
    name = "text"
    page_kinds = frozenset({PageKind.DETAIL})

    async def extract(self, page: Page) -> ExtractionResult:
        text = self.visible_text(page.soup)
        if not text:
            return ExtractionResult.empty(self.name)

        fields = {}

        price = PRICE_LABEL_PATTERN.search(text)
        if price:
            fields["price"] = price.group(2)
            symbol = price.group(1) or price.group(3)
            if symbol in CURRENCY_SYMBOLS:
                fields["currency"] = CURRENCY_SYMBOLS[symbol]

        rating = RATING_PATTERN.search(text)
        if rating:
            fields["rating"] = rating.group(1)

        reviews = REVIEW_PATTERN.search(text)
        if reviews:
            fields["review_count"] = reviews.group(1)

        for key, pattern in (("measurements", MEASUREMENT_PATTERN), ("type", TYPE_PATTERN),
                             ("availability", AVAILABILITY_PATTERN)):
            value = self._labelled(pattern, text)
            if value:
                fields[key] = value

        if not fields:
            return ExtractionResult.empty(self.name)

        fields["url"] = page.url
        return self._result([TextShape(fields)])

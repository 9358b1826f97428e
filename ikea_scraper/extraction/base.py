"""
Base class for extraction strategies.
"""
import re
from abc import ABC, abstractmethod
from typing import Optional, Iterable, FrozenSet, List

from bs4 import BeautifulSoup, Tag

from ikea_scraper.models.candidates import Page, PageKind, ExtractionResult

RATING_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(?:out of 5|/\s*5)", re.IGNORECASE)
REVIEW_PATTERN = re.compile(r"(\d[\d,]*)\s*reviews?\b", re.IGNORECASE)
# Digits with their grouping and decimal marks; the normalizer decides which is which
PRICE_PATTERN = re.compile(r"\d(?:[\d.,'\u00a0\u202f]*\d)?")
MEASUREMENT_PATTERN = re.compile(
    r"\b(?:Width|Height|Depth|Length|W|H|D)\b[^\n]{0,80}?\d+(?:[.,]\d+)?\s*(?:cm|mm|in)\b",
    re.IGNORECASE,
)
TYPE_PATTERN = re.compile(r"(?:Category|Type):\s*([^\n]+)", re.IGNORECASE)
AVAILABILITY_PATTERN = re.compile(r"(?:Stock|Available|Availability):\s*([^\n]+)", re.IGNORECASE)


class BaseStrategy(ABC):
    """One way of finding product candidates on a page."""

    name: str = "base"
    page_kinds: FrozenSet[PageKind] = frozenset({PageKind.LISTING, PageKind.DETAIL})

    def can_handle(self, page: Page) -> bool:
        """Quick check without parsing or making requests."""
        return page.kind in self.page_kinds

    @abstractmethod
    async def extract(self, page: Page) -> ExtractionResult:
        """
        Extract raw candidates from a page.

        Args:
            page: fetched page (raw text plus a lazily parsed document)

        Returns:
            ExtractionResult, empty when this strategy finds nothing
        """
        pass

    def _result(self, candidates: list, has_more: Optional[bool] = None) -> ExtractionResult:
        return ExtractionResult(strategy=self.name, candidates=candidates, has_more=has_more)

    @staticmethod
    def _first_text(root: Tag, selectors: Iterable[str], min_length: int = 1) -> Optional[str]:
        """Text of the first selector match with enough content."""
        for selector in selectors:
            node = root.select_one(selector)
            if node is None:
                continue
            text = node.get_text(" ", strip=True)
            if text and len(text) >= min_length:
                return text
        return None

    @staticmethod
    def _parse_first_number(text: Optional[str]) -> Optional[str]:
        if not text:
            return None
        match = PRICE_PATTERN.search(text)
        return match.group(0) if match else None

    @staticmethod
    def visible_text(soup: BeautifulSoup) -> str:
        """Page text without script/style content, one block per line."""
        chunks: List[str] = []
        for string in soup.find_all(string=True):
            if string.parent is not None and string.parent.name in ("script", "style", "noscript", "template"):
                continue
            text = string.strip()
            if text:
                chunks.append(text)
        return "\n".join(chunks)

    @staticmethod
    def _labelled(pattern, text: str) -> Optional[str]:
        """First match of a measurement or "Label: value" pattern in page text."""
        match = pattern.search(text or "")
        if not match:
            return None
        value = match.group(1) if match.groups() else match.group(0)
        return value.strip() or None

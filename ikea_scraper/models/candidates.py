"""
Page and raw-candidate types exchanged between the strategies and the normalizer.

Each strategy emits its own candidate shape; the normalizer has one function
per shape, so field-precedence rules stay in one place.
"""
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any, Union

from bs4 import BeautifulSoup


class PageKind(str, Enum):
    LISTING = "listing"
    DETAIL = "detail"


@dataclass
class Page:
    """One fetched page handed to the strategy chain."""
    url: str
    kind: PageKind
    text: str = ""
    status: int = 200
    page_no: int = 1
    remaining_products: int = sys.maxsize
    _soup: Optional[BeautifulSoup] = field(default=None, repr=False, compare=False)

    @property
    def soup(self) -> BeautifulSoup:
        """Parsed document view, built on first use."""
        if self._soup is None:
            self._soup = BeautifulSoup(self.text or "", "lxml")
        return self._soup


@dataclass(frozen=True)
class ApiShape:
    """Product object returned by the structured search API."""
    payload: Dict[str, Any]


@dataclass(frozen=True)
class MarkupShape:
    """
    Product object found in embedded JSON (JSON-LD or preloaded state).

    On detail pages page_fields holds what the rendered page adds (images,
    features, measurements, type), since embedded JSON rarely carries those.
    """
    payload: Dict[str, Any]
    single: bool = False
    page_fields: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class DomShape:
    """Field strings read out of the document with selectors."""
    fields: Dict[str, Any]


@dataclass(frozen=True)
class TextShape:
    """Regex captures from the visible text of a page."""
    fields: Dict[str, Any]


Candidate = Union[ApiShape, MarkupShape, DomShape, TextShape]


@dataclass
class ExtractionResult:
    """What one strategy (or the whole chain) produced for a page."""
    strategy: Optional[str] = None
    candidates: List[Candidate] = field(default_factory=list)
    # False when the source reports no results beyond this page; None if unknown
    has_more: Optional[bool] = None

    @property
    def found(self) -> bool:
        return bool(self.candidates)

    @classmethod
    def empty(cls, strategy: Optional[str] = None) -> "ExtractionResult":
        return cls(strategy=strategy)

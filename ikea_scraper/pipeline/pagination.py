"""
Listing traversal: whether to fetch another listing page, and which one.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple
from urllib.parse import urlparse, parse_qs, urlencode, urlunparse

from bs4 import BeautifulSoup

from ikea_scraper.logger import logger
from ikea_scraper.state.run_state import RunState
from ikea_scraper.utils.urls import to_abs

# Numbered page links; only one past the current page counts as "next"
NUMBERED_PAGE_SELECTOR = '[class*="pagination"] a[href*="page"]'
NEXT_PAGE_SELECTORS = (
    'a[aria-label*="next" i]',
    'a[rel="next"]',
    'button[aria-label*="next" i]:not([disabled])',
    NUMBERED_PAGE_SELECTOR,
    '[data-testid*="next"]:not([disabled])',
    "a.pagination__option--next",
)
OFFSET_STEP = 24


class StopReason(str, Enum):
    BUDGET_EXHAUSTED = "budget_exhausted"
    PAGE_LIMIT = "page_limit"
    NO_MORE_RESULTS = "no_more_results"
    EXTRACTION_FAILED = "extraction_failed"
    NO_NEW_RECORDS = "no_new_records"
    LOOP_GUARD = "loop_guard"
    FETCH_FAILED = "fetch_failed"


@dataclass
class PageYield:
    """What the listing stage got out of one page."""
    normalized: int = 0
    admitted: int = 0
    duplicates: int = 0
    has_more: Optional[bool] = None
    has_product_links: bool = False


@dataclass
class Continuation:
    next_url: Optional[str] = None
    reason: Optional[StopReason] = None

    @property
    def should_continue(self) -> bool:
        return self.next_url is not None


def synthetic_next_url(current_url: str, page_no: int) -> Optional[str]:
    """Advance ?page= or ?offset= on the current URL; first pages get ?page=2."""
    parsed = urlparse(current_url)
    params = parse_qs(parsed.query, keep_blank_values=True)

    if "page" in params:
        try:
            current = max(page_no, int(params["page"][0]))
        except (TypeError, ValueError):
            current = page_no
        params["page"] = [str(current + 1)]
    elif "offset" in params:
        try:
            offset = int(params["offset"][0])
        except (TypeError, ValueError):
            return None
        params["offset"] = [str(offset + OFFSET_STEP)]
    elif page_no == 1:
        params["page"] = [str(page_no + 1)]
    else:
        return None

    return urlunparse(parsed._replace(query=urlencode(params, doseq=True)))


def page_number(url: Optional[str]) -> Optional[int]:
    """Value of the ?page= parameter, if it is a number."""
    if not url:
        return None
    values = parse_qs(urlparse(url).query).get("page")
    try:
        return int(values[0]) if values else None
    except ValueError:
        return None


def next_numbered_link(soup: BeautifulSoup, current_url: str, page_no: int = 1) -> Optional[str]:
    """Lowest-numbered pagination link past the current page."""
    current = max(page_no, page_number(current_url) or 0)
    best = None
    for node in soup.select(NUMBERED_PAGE_SELECTOR):
        if node.has_attr("disabled") or node.get("aria-disabled") == "true":
            continue
        href = to_abs(node.get("href"), current_url)
        number = page_number(href)
        if number is not None and number > current and (best is None or number < best[0]):
            best = (number, href)
    return best[1] if best else None


def find_next_link(soup: BeautifulSoup, current_url: str, page_no: int = 1) -> Optional[str]:
    """href of the first enabled next-page control."""
    for selector in NEXT_PAGE_SELECTORS:
        if selector == NUMBERED_PAGE_SELECTOR:
            href = next_numbered_link(soup, current_url, page_no)
            if href:
                return href
            continue
        node = soup.select_one(selector)
        if node is None:
            continue
        if node.has_attr("disabled") or node.get("aria-disabled") == "true":
            continue
        href = to_abs(node.get("href"), current_url)
        if href:
            return href
    return None


class PaginationEngine:
    """
    Traversal continues only while the budget has room, the page ceiling has
    room and the page just processed produced something new.
    """

    def __init__(self, state: RunState):
        self.state = state

    def next_page_url(self, soup: BeautifulSoup, current_url: str, page_no: int) -> Tuple[Optional[str], Optional[StopReason]]:
        link = find_next_link(soup, current_url, page_no)
        if link == current_url:
            return None, StopReason.LOOP_GUARD
        if link:
            return link, None

        candidate = synthetic_next_url(current_url, page_no)
        if candidate is None:
            return None, StopReason.NO_MORE_RESULTS
        if candidate == current_url:
            return None, StopReason.LOOP_GUARD
        return candidate, None

    def decide(self, soup: BeautifulSoup, current_url: str, page_no: int, outcome: PageYield) -> Continuation:
        if not self.state.can_continue():
            return self._stop(current_url, StopReason.BUDGET_EXHAUSTED)
        if self.state.remaining_pages(page_no) == 0:
            return self._stop(current_url, StopReason.PAGE_LIMIT)
        if outcome.normalized == 0:
            reason = StopReason.EXTRACTION_FAILED if outcome.has_product_links else StopReason.NO_MORE_RESULTS
            return self._stop(current_url, reason)
        if outcome.admitted == 0 and outcome.duplicates > 0:
            return self._stop(current_url, StopReason.NO_NEW_RECORDS)
        if outcome.has_more is False:
            return self._stop(current_url, StopReason.NO_MORE_RESULTS)

        next_url, reason = self.next_page_url(soup, current_url, page_no)
        if next_url is None:
            return self._stop(current_url, reason)
        logger.info(f"Next listing page {page_no + 1}: {next_url}")
        return Continuation(next_url=next_url)

    @staticmethod
    def _stop(current_url: str, reason: StopReason) -> Continuation:
        logger.info(f"Pagination stopped at {current_url}: {reason.value}")
        return Continuation(reason=reason)

"""
Extraction package initialization.
Builds the listing and detail strategy chains in priority order.
"""
from typing import Optional

from ikea_scraper.extraction.base import BaseStrategy
from ikea_scraper.extraction.chain import StrategyChain
from ikea_scraper.extraction.sik_api import SikApiStrategy
from ikea_scraper.extraction.embedded_markup import EmbeddedMarkupStrategy
from ikea_scraper.extraction.dom_heuristic import DomHeuristicStrategy
from ikea_scraper.extraction.text_heuristic import TextHeuristicStrategy


def build_listing_chain(fetcher, country: str, language: str, category: Optional[str] = None,
                        category_fallback: bool = True) -> StrategyChain:
    return StrategyChain([
        SikApiStrategy(fetcher, country, language, category, category_fallback),
        EmbeddedMarkupStrategy(),
        DomHeuristicStrategy(),
    ])


def build_detail_chain() -> StrategyChain:
    return StrategyChain([
        EmbeddedMarkupStrategy(),
        DomHeuristicStrategy(),
        TextHeuristicStrategy(),
    ])


__all__ = [
    'BaseStrategy',
    'StrategyChain',
    'SikApiStrategy',
    'EmbeddedMarkupStrategy',
    'DomHeuristicStrategy',
    'TextHeuristicStrategy',
    'build_listing_chain',
    'build_detail_chain',
]

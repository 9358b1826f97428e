"""
First-success driver over an ordered list of strategies.
"""
from typing import List, Sequence

from ikea_scraper.errors import ExtractionError
from ikea_scraper.extraction.base import BaseStrategy
from ikea_scraper.logger import logger
from ikea_scraper.models.candidates import Page, ExtractionResult


class StrategyChain:
    """
    Tries strategies in priority order and stops at the first one that yields
    at least one candidate. A strategy that raises counts as having found
    nothing; it never aborts the chain.
    """

    def __init__(self, strategies: Sequence[BaseStrategy]):
        self.strategies: List[BaseStrategy] = list(strategies)

    async def run(self, page: Page) -> ExtractionResult:
        for strategy in self.strategies:
            if not strategy.can_handle(page):
                continue
            try:
                result = await strategy.extract(page)
            except ExtractionError as e:
                logger.warning(f"Strategy {strategy.name} failed on {page.url}: {e}")
                continue
            except Exception as e:
                logger.error(f"Strategy {strategy.name} crashed on {page.url}: {type(e).__name__}: {e}", exc_info=True)
                continue

            if result.found:
                logger.info(f"Strategy {strategy.name} found {len(result.candidates)} candidate(s) on {page.url}")
                return result

            logger.debug(f"Strategy {strategy.name} found nothing on {page.url}")

        return ExtractionResult.empty()

"""
Detail-fetch orchestrator.
Fetches a product page for an admitted listing record and merges the result.
"""
from typing import Optional

from ikea_scraper.errors import TransportError, NormalizationError
from ikea_scraper.extraction.chain import StrategyChain
from ikea_scraper.logger import logger
from ikea_scraper.models.candidates import Page, PageKind
from ikea_scraper.models.product import CanonicalProduct, PendingDetailWork
from ikea_scraper.models.run_input import RunReport
from ikea_scraper.normalizers.ikea import IkeaNormalizer, merge
from ikea_scraper.pipeline.writer import RecordWriter
from ikea_scraper.queue.work_queue import WorkUnit


class DetailOrchestrator:
    """
    Owns a PendingDetailWork from dequeue until it is persisted or dropped.

    A failed fetch or an empty extraction falls back to the listing record
    when it has a name; otherwise the product is dropped and counted. Fetch
    retries belong to the transport, never to this class.
    """

    def __init__(self, fetcher, chain: StrategyChain, normalizer: IkeaNormalizer,
                 writer: RecordWriter, report: RunReport):
        self.fetcher = fetcher
        self.chain = chain
        self.normalizer = normalizer
        self.writer = writer
        self.report = report

    async def process(self, unit: WorkUnit) -> Optional[CanonicalProduct]:
        pending: PendingDetailWork = unit.context["pending"]
        listing = pending.record
        self.report.detail_fetches += 1

        try:
            response = await self.fetcher.fetch_page(pending.detail_url)
        except TransportError as e:
            return await self._fallback(pending, f"detail fetch failed: {e}")

        page = Page(
            url=pending.detail_url,
            kind=PageKind.DETAIL,
            text=response.body or "",
            status=response.status,
        )
        detail = await self.extract(page)
        if detail is None:
            return await self._fallback(pending, "no detail data extracted")

        merged = merge(listing, detail)
        logger.debug(f"Merged detail page into {listing.id} via {detail.extracted_by}")
        return await self.writer.write(merged)

    async def extract(self, page: Page) -> Optional[CanonicalProduct]:
        """First candidate of the detail chain that normalizes, or None."""
        result = await self.chain.run(page)
        if not result.found:
            return None
        self.report.strategy_hits[f"detail_{result.strategy}"] += 1

        for candidate in result.candidates:
            try:
                return self.normalizer.normalize(candidate, page.url)
            except NormalizationError as e:
                logger.debug(f"Detail candidate on {page.url} not usable: {e}")
        return None

    async def _fallback(self, pending: PendingDetailWork, reason: str) -> Optional[CanonicalProduct]:
        listing = pending.record
        if listing.name:
            logger.warning(f"Saving listing data only for {listing.id}: {reason}")
            self.report.detail_fallbacks += 1
            return await self.writer.write(listing)

        logger.error(f"Dropping product {listing.id} ({pending.detail_url}): {reason}, no listing name")
        self.report.dropped += 1
        return None

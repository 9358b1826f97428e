"""
Run driver: wires the fetcher, work queue and sink around the pipeline stages.
"""
from typing import Optional

from ikea_scraper.errors import StorageError
from ikea_scraper.extraction import build_listing_chain, build_detail_chain
from ikea_scraper.logger import logger
from ikea_scraper.models.run_input import RunInput, RunReport, RunStatus
from ikea_scraper.normalizers.ikea import IkeaNormalizer, NormalizationContext
from ikea_scraper.pipeline.detail import DetailOrchestrator
from ikea_scraper.pipeline.listing import ListingStage
from ikea_scraper.pipeline.writer import RecordWriter
from ikea_scraper.queue.work_queue import WorkQueue, WorkUnit, WorkKind
from ikea_scraper.services.dataset_service import DatasetService
from ikea_scraper.services.http_service import HttpService
from ikea_scraper.state.run_state import RunState
from ikea_scraper.utils.urls import site_base


class IkeaScraper:
    """
    One scraping run.

    fetcher and sink default to the aiohttp transport and the JSON Lines
    dataset; tests pass in fakes with the same methods.
    """

    def __init__(self, run_input: RunInput, fetcher=None, sink=None, concurrency: Optional[int] = None):
        self.run_input = run_input
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or HttpService(run_input.country, run_input.language)
        self.sink = sink or DatasetService()

        self.state = RunState(run_input.max_products, run_input.max_pages)
        self.report = RunReport()
        self.queue = WorkQueue(self._dispatch, concurrency=concurrency)

        normalizer = IkeaNormalizer(NormalizationContext(
            base_url=site_base(run_input.country, run_input.language),
            category=run_input.category,
            default_currency=run_input.default_currency,
        ))
        writer = RecordWriter(self.sink, self.state, self.report)

        self.listing = ListingStage(
            self.fetcher,
            build_listing_chain(
                self.fetcher,
                run_input.country,
                run_input.language,
                run_input.category,
                category_fallback=not run_input.start_urls,
            ),
            normalizer,
            self.state,
            writer,
            self.queue,
            self.report,
            collect_details=run_input.collect_details,
        )
        self.detail = DetailOrchestrator(self.fetcher, build_detail_chain(), normalizer, writer, self.report)

    async def _dispatch(self, unit: WorkUnit):
        if unit.kind == WorkKind.LISTING:
            await self.listing.process(unit)
        else:
            await self.detail.process(unit)

    async def run(self) -> RunReport:
        """
        Scrape until the queue drains or the budget runs out.

        Raises:
            StorageError: the sink failed; the summary still records the failure
        """
        run_input = self.run_input
        logger.info(
            f"Starting run: country={run_input.country}, language={run_input.language}, "
            f"category={run_input.category}, maxProducts={run_input.max_products}, "
            f"maxPages={run_input.max_pages}, collectDetails={run_input.collect_details}"
        )

        error: Optional[StorageError] = None
        try:
            await self.sink.begin()
            for url in run_input.initial_urls():
                self.queue.schedule(WorkUnit(url=url, kind=WorkKind.LISTING, context={"page_no": 1}))
            await self.queue.run_until_complete()
        except StorageError as e:
            error = e
        finally:
            self.queue.close()
            if self._owns_fetcher:
                await self.fetcher.close()

        report = self._close_report(error)
        try:
            await self.sink.finalize(report.to_dict())
        except StorageError as e:
            logger.error(f"Could not write run summary: {e}")
            if error is None:
                error = e

        if error is not None:
            raise error
        return report

    def _close_report(self, error: Optional[Exception]) -> RunReport:
        report = self.report
        report.persisted = self.state.persisted
        report.failed_units = len(self.queue.failed)
        report.close(str(error) if error else None)

        if report.status == RunStatus.EMPTY:
            logger.warning(
                f"Run finished with no products saved: {report.pages} pages, "
                f"stop reasons {dict(report.stop_reasons)}"
            )
        elif report.status == RunStatus.FAILED:
            logger.error(f"Run failed after {report.persisted} products: {report.error}")
        else:
            logger.info(f"Run finished: {report.persisted} products saved from {report.pages} pages")
        return report

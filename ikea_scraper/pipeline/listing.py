"""
Listing stage: one listing page in, persisted records or detail work out.
"""
from ikea_scraper.errors import TransportError, IdentityError, NormalizationError
from ikea_scraper.extraction.chain import StrategyChain
from ikea_scraper.logger import logger
from ikea_scraper.models.candidates import Page, PageKind
from ikea_scraper.models.product import PendingDetailWork
from ikea_scraper.models.run_input import RunReport
from ikea_scraper.normalizers.ikea import IkeaNormalizer
from ikea_scraper.pipeline.pagination import PaginationEngine, PageYield, Continuation, StopReason
from ikea_scraper.pipeline.writer import RecordWriter
from ikea_scraper.queue.work_queue import WorkUnit, WorkKind
from ikea_scraper.state.run_state import RunState, Admission

PRODUCT_LINK_SELECTOR = 'a[href*="/p/"]'


class ListingStage:
    """
    Fetch, extract, normalize and admit the candidates of one listing page.

    Admitted records are persisted right away in basic mode, or handed on as
    PendingDetailWork when details are collected. Then pagination decides
    whether the next listing page gets scheduled.
    """

    def __init__(self, fetcher, chain: StrategyChain, normalizer: IkeaNormalizer, state: RunState,
                 writer: RecordWriter, scheduler, report: RunReport, collect_details: bool = True):
        self.fetcher = fetcher
        self.chain = chain
        self.normalizer = normalizer
        self.state = state
        self.writer = writer
        self.scheduler = scheduler
        self.report = report
        self.collect_details = collect_details
        self.pagination = PaginationEngine(state)

    async def process(self, unit: WorkUnit) -> Continuation:
        page_no = unit.context.get("page_no", 1)

        if not self.state.can_continue():
            return self._stopped(StopReason.BUDGET_EXHAUSTED)
        if self.state.start_page(page_no) is None:
            return self._stopped(StopReason.PAGE_LIMIT)
        self.report.pages += 1

        logger.info(f"Processing listing page {page_no}: {unit.url}")
        try:
            response = await self.fetcher.fetch_page(unit.url)
        except TransportError as e:
            logger.error(f"Listing page failed {unit.url}: {e}")
            return self._stopped(StopReason.FETCH_FAILED)

        page = Page(
            url=unit.url,
            kind=PageKind.LISTING,
            text=response.body or "",
            status=response.status,
            page_no=page_no,
            remaining_products=self.state.remaining_products(),
        )
        result = await self.chain.run(page)
        if result.strategy:
            self.report.strategy_hits[result.strategy] += 1

        outcome = PageYield(
            has_more=result.has_more,
            has_product_links=page.soup.select_one(PRODUCT_LINK_SELECTOR) is not None,
        )
        for candidate in result.candidates:
            await self._admit(candidate, page, outcome)

        logger.info(
            f"Listing page {page_no}: {len(result.candidates)} candidates, {outcome.normalized} usable, "
            f"{outcome.admitted} new, {outcome.duplicates} duplicates"
        )

        continuation = self.pagination.decide(page.soup, unit.url, page_no, outcome)
        if continuation.should_continue:
            self.scheduler.schedule(WorkUnit(
                url=continuation.next_url,
                kind=WorkKind.LISTING,
                context={"page_no": page_no + 1},
            ))
        else:
            self.report.stop_reasons[continuation.reason.value] += 1
        return continuation

    async def _admit(self, candidate, page: Page, outcome: PageYield):
        try:
            record = self.normalizer.normalize(candidate, page.url)
        except IdentityError as e:
            self.report.rejected += 1
            logger.debug(f"Rejected candidate on {page.url}: {e}")
            return
        except NormalizationError as e:
            self.report.rejected += 1
            logger.warning(f"Could not normalize candidate on {page.url}: {e}")
            return

        outcome.normalized += 1
        admission, slot = self.state.admit(record.id)
        if admission == Admission.DUPLICATE:
            self.report.duplicates += 1
            outcome.duplicates += 1
            logger.debug(f"Duplicate product {record.id} skipped")
            return
        if admission == Admission.EXHAUSTED:
            self.report.over_budget += 1
            return

        outcome.admitted += 1
        if self.collect_details:
            pending = PendingDetailWork(record=record, detail_url=record.source_url, slot=slot)
            self.scheduler.schedule(WorkUnit(
                url=pending.detail_url,
                kind=WorkKind.DETAIL,
                context=pending.to_context(),
            ))
        else:
            await self.writer.write(record)

    def _stopped(self, reason: StopReason) -> Continuation:
        self.report.stop_reasons[reason.value] += 1
        return Continuation(reason=reason)

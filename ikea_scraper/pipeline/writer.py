"""
Last step before the sink: quality flags, timestamp, running count.
"""
from typing import List

from ikea_scraper.logger import logger
from ikea_scraper.models.product import CanonicalProduct
from ikea_scraper.models.run_input import RunReport
from ikea_scraper.sentry import capture_data_quality
from ikea_scraper.state.run_state import RunState


class RecordWriter:
    def __init__(self, sink, state: RunState, report: RunReport):
        self.sink = sink
        self.state = state
        self.report = report

    def check_quality(self, record: CanonicalProduct) -> List[str]:
        """Flag, never fix, values that look wrong."""
        issues = record.quality_issues()
        if issues:
            self.report.quality_flags += 1
            logger.warning(
                f"Data quality issues for {record.id}: {', '.join(issues)} "
                f"(rating={record.rating}, reviewCount={record.review_count})"
            )
            capture_data_quality(record.id, issues, record.source_url)
        return issues

    async def write(self, record: CanonicalProduct) -> CanonicalProduct:
        """
        Stamp and persist one record.

        Raises:
            StorageError: propagated from the sink, fatal for the run
        """
        self.check_quality(record)
        final = record.finalized()
        await self.sink.persist(final)
        count = self.state.record_persisted()
        self.report.persisted = count
        logger.info(f"Saved product {final.id}: {final.name} ({count} total)")
        return final

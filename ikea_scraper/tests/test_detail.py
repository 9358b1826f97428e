"""
Test the detail-fetch orchestrator: merge on success, degrade on failure.
"""
import json
from decimal import Decimal

import pytest

from ikea_scraper.errors import StorageError
from ikea_scraper.extraction import build_detail_chain
from ikea_scraper.models.product import CanonicalProduct, PendingDetailWork, AVAILABILITY_UNKNOWN
from ikea_scraper.models.run_input import RunReport
from ikea_scraper.normalizers.ikea import IkeaNormalizer, NormalizationContext
from ikea_scraper.pipeline.detail import DetailOrchestrator
from ikea_scraper.pipeline.writer import RecordWriter
from ikea_scraper.queue.work_queue import WorkUnit, WorkKind
from ikea_scraper.services.dataset_service import MemoryDatasetService
from ikea_scraper.state.run_state import RunState

from conftest import FakeFetcher, product_url

DETAIL_URL = product_url("billy-bookcase-white", "00263850")

DETAIL_HTML = (
    "<html><head>"
    '<script type="application/ld+json">'
    + json.dumps({
        "@type": "Product",
        "name": "BILLY Bookcase, white",
        "description": "Adjustable shelves, so you can customise your storage as needed.",
        "image": ["https://www.ikea.com/gb/en/images/products/billy__1.jpg"],
        "offers": {"price": "49.00", "priceCurrency": "GBP", "availability": "https://schema.org/InStock"},
    })
    + "</script></head><body><h1>BILLY</h1></body></html>"
)


def listing_record(**overrides):
    values = dict(id="00263850", source_url=DETAIL_URL, category="new-products", name="BILLY")
    values.update(overrides)
    return CanonicalProduct(**values)


def make_orchestrator(fetcher, sink=None):
    sink = sink or MemoryDatasetService()
    state = RunState()
    report = RunReport()
    normalizer = IkeaNormalizer(NormalizationContext(
        base_url="https://www.ikea.com/gb/en/", category="new-products", default_currency="GBP",
    ))
    orchestrator = DetailOrchestrator(fetcher, build_detail_chain(), normalizer,
                                      RecordWriter(sink, state, report), report)
    return orchestrator, sink, report


def detail_unit(record):
    pending = PendingDetailWork(record=record, detail_url=record.source_url, slot=1)
    return WorkUnit(url=pending.detail_url, kind=WorkKind.DETAIL, context=pending.to_context())


@pytest.mark.asyncio
async def test_detail_merged_onto_listing_record():
    fetcher = FakeFetcher(pages={DETAIL_URL: DETAIL_HTML})
    orchestrator, sink, report = make_orchestrator(fetcher)

    saved = await orchestrator.process(detail_unit(listing_record()))

    assert sink.records == [saved]
    assert saved.name == "BILLY Bookcase, white"
    assert saved.price == Decimal("49.00")
    assert saved.currency == "GBP"
    assert saved.availability == "InStock"
    assert saved.images == ["https://www.ikea.com/gb/en/images/products/billy__1.jpg"]
    assert saved.category == "new-products"
    assert saved.retrieved_at is not None
    assert report.persisted == 1
    assert report.strategy_hits["detail_markup"] == 1


@pytest.mark.asyncio
async def test_markup_detail_keeps_rendered_features_and_measurements():
    block = {
        "@type": "Product",
        "name": "BILLY Bookcase, white",
        "image": "https://www.ikea.com/gb/en/images/products/billy__1.jpg",
        "offers": {"price": "49.00", "priceCurrency": "GBP"},
    }
    html = (
        f'<html><head><script type="application/ld+json">{json.dumps(block)}</script></head><body>'
        "<h1>BILLY Bookcase</h1>"
        '<span class="pip-header-section__description-measurement">80x28x202 cm</span>'
        "<ul class='pip-product-details'><li>Adjustable shelves for any height</li></ul>"
        "</body></html>"
    )
    fetcher = FakeFetcher(pages={DETAIL_URL: html})
    orchestrator, sink, report = make_orchestrator(fetcher)

    saved = await orchestrator.process(detail_unit(listing_record()))

    assert saved.name == "BILLY Bookcase, white"
    assert saved.features == ["Adjustable shelves for any height"]
    assert saved.measurements == "80x28x202 cm"
    assert saved.images == ["https://www.ikea.com/gb/en/images/products/billy__1.jpg"]
    assert report.strategy_hits["detail_markup"] == 1


@pytest.mark.asyncio
async def test_fetch_failure_persists_listing_only_record():
    fetcher = FakeFetcher(failures=[DETAIL_URL])
    orchestrator, sink, report = make_orchestrator(fetcher)

    saved = await orchestrator.process(detail_unit(listing_record()))

    assert len(sink.records) == 1
    assert saved.name == "BILLY"
    assert saved.availability == AVAILABILITY_UNKNOWN
    assert saved.images == []
    assert saved.description is None
    assert report.detail_fallbacks == 1


@pytest.mark.asyncio
async def test_empty_detail_page_degrades_to_listing():
    fetcher = FakeFetcher(pages={DETAIL_URL: "<html><body><p>Nothing here</p></body></html>"})
    orchestrator, sink, report = make_orchestrator(fetcher)

    saved = await orchestrator.process(detail_unit(listing_record()))

    assert saved.name == "BILLY"
    assert report.detail_fallbacks == 1


@pytest.mark.asyncio
async def test_nameless_listing_dropped_on_failure():
    fetcher = FakeFetcher(failures=[DETAIL_URL])
    orchestrator, sink, report = make_orchestrator(fetcher)

    saved = await orchestrator.process(detail_unit(listing_record(name=None)))

    assert saved is None
    assert sink.records == []
    assert report.dropped == 1


@pytest.mark.asyncio
async def test_text_heuristic_used_when_nothing_else_matches():
    html = "<html><body><div>Price £52.50</div><div>Depth: 28 cm</div></body></html>"
    fetcher = FakeFetcher(pages={DETAIL_URL: html})
    orchestrator, sink, report = make_orchestrator(fetcher)

    saved = await orchestrator.process(detail_unit(listing_record(price=Decimal("45.00"), currency="GBP")))

    assert saved.price == Decimal("52.50")
    assert saved.measurements == "Depth: 28 cm"
    assert saved.name == "BILLY"
    assert report.strategy_hits["detail_text"] == 1


@pytest.mark.asyncio
async def test_storage_error_propagates():
    class BrokenSink(MemoryDatasetService):
        async def persist(self, record):
            raise StorageError("disk full")

    fetcher = FakeFetcher(pages={DETAIL_URL: DETAIL_HTML})
    orchestrator, _, _ = make_orchestrator(fetcher, sink=BrokenSink())

    with pytest.raises(StorageError):
        await orchestrator.process(detail_unit(listing_record()))

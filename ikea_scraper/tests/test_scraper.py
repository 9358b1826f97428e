"""
End-to-end runs against canned pages.
"""
import json

import pytest

from ikea_scraper.errors import StorageError
from ikea_scraper.models.run_input import RunInput, RunStatus
from ikea_scraper.models.product import AVAILABILITY_UNKNOWN
from ikea_scraper.scraper import IkeaScraper
from ikea_scraper.services.dataset_service import MemoryDatasetService, DatasetService

from conftest import FakeFetcher, LISTING_URL, card_html, listing_html, product_url

SIK_PREFIX = "https://sik.search.blue.cdtapps.com/gb/en/"


def run_input(**overrides) -> RunInput:
    values = dict(country="gb", language="en", category="new-products",
                  max_products=100, max_pages=1, collect_details=False)
    values.update(overrides)
    return RunInput(**values)


def cards(count: int, start: int = 0):
    return [
        card_html(product_url(f"item-{i}", str(10000000 + i)), name=f"ITEM {i}", price=f"£{10 + i}")
        for i in range(start, start + count)
    ]


@pytest.mark.asyncio
async def test_basic_mode_listing_with_unparsable_id():
    html = listing_html(
        card_html(product_url("billy-bookcase-white", "00263850"), name="BILLY Bookcase", price="£45"),
        card_html("https://www.ikea.com/gb/en/p/gift-card/", name="Gift card", price="£10"),
        card_html(product_url("hemnes-bed", "10000001"), name="HEMNES Bed", price="£199"),
    )
    fetcher = FakeFetcher(pages={LISTING_URL: html})
    sink = MemoryDatasetService()

    report = await IkeaScraper(run_input(), fetcher=fetcher, sink=sink).run()

    assert [r.id for r in sink.records] == ["00263850", "10000001"]
    for record in sink.records:
        data = record.to_dict()
        assert data["images"] == []
        assert data["features"] is None
        assert data["description"] is None
        assert data["currency"] == "GBP"
        assert data["category"] == "new-products"
        assert data["retrievedAt"] is not None
    assert report.persisted == 2
    assert report.rejected == 1
    assert report.status == RunStatus.COMPLETED
    assert sink.summary["status"] == "completed"


@pytest.mark.asyncio
async def test_product_ceiling_stops_detail_fetches():
    html = listing_html(*cards(5))
    fetcher = FakeFetcher(pages={LISTING_URL: html})
    sink = MemoryDatasetService()

    report = await IkeaScraper(
        run_input(max_products=1, max_pages=5, collect_details=True), fetcher=fetcher, sink=sink
    ).run()

    assert len(sink.records) == 1
    assert report.over_budget == 4
    detail_urls = [product_url(f"item-{i}", str(10000000 + i)) for i in range(5)]
    assert [u for u in detail_urls if fetcher.fetched(u)] == detail_urls[:1]
    assert not fetcher.fetched(LISTING_URL + "?page=2")
    assert report.stop_reasons["budget_exhausted"] == 1


@pytest.mark.asyncio
async def test_failed_detail_fetch_keeps_listing_record():
    detail_url = product_url("billy-bookcase-white", "00263850")
    html = listing_html(card_html(detail_url, name="BILLY Bookcase", price="£45"))
    fetcher = FakeFetcher(pages={LISTING_URL: html}, failures=[detail_url])
    sink = MemoryDatasetService()

    report = await IkeaScraper(run_input(collect_details=True), fetcher=fetcher, sink=sink).run()

    assert len(sink.records) == 1
    record = sink.records[0]
    assert record.name == "BILLY Bookcase"
    assert record.availability == AVAILABILITY_UNKNOWN
    assert record.description is None
    assert report.detail_fallbacks == 1


@pytest.mark.asyncio
async def test_detail_mode_merges_detail_page():
    detail_url = product_url("billy-bookcase-white", "00263850")
    detail_html = (
        "<html><body>"
        '<h1 class="pip-header-section__title">BILLY Bookcase</h1>'
        '<p class="pip-product-summary__description">Adjustable shelves, so you can customise your storage.</p>'
        '<img class="pip-media" src="https://www.ikea.com/gb/en/images/products/billy__1.jpg">'
        '<ul class="pip-product-details"><li>Adjustable shelves for any height</li></ul>'
        "</body></html>"
    )
    fetcher = FakeFetcher(pages={
        LISTING_URL: listing_html(card_html(detail_url, name="BILLY", price="£45")),
        detail_url: detail_html,
    })
    sink = MemoryDatasetService()

    await IkeaScraper(run_input(collect_details=True), fetcher=fetcher, sink=sink).run()

    record = sink.records[0]
    assert record.name == "BILLY Bookcase"
    assert record.description.startswith("Adjustable shelves")
    assert record.images == ["https://www.ikea.com/gb/en/images/products/billy__1.jpg"]
    assert record.features == ["Adjustable shelves for any height"]
    assert str(record.price) == "45.00"


@pytest.mark.asyncio
async def test_pagination_follows_pages_and_dedups():
    page_two = LISTING_URL + "?page=2"
    page_three = LISTING_URL + "?page=3"
    fetcher = FakeFetcher(pages={
        LISTING_URL: listing_html(*cards(3)),
        page_two: listing_html(*cards(3, start=2)),
        page_three: listing_html(*cards(2, start=0)),
    })
    sink = MemoryDatasetService()

    report = await IkeaScraper(run_input(max_pages=10), fetcher=fetcher, sink=sink).run()

    ids = [r.id for r in sink.records]
    assert len(ids) == len(set(ids)) == 5
    assert report.duplicates == 3
    assert report.pages == 3
    assert report.stop_reasons["no_new_records"] == 1


@pytest.mark.asyncio
async def test_page_ceiling_respected():
    fetcher = FakeFetcher(pages={
        LISTING_URL: listing_html(*cards(2)),
        LISTING_URL + "?page=2": listing_html(*cards(2, start=2)),
        LISTING_URL + "?page=3": listing_html(*cards(2, start=4)),
    })
    sink = MemoryDatasetService()

    report = await IkeaScraper(run_input(max_pages=2), fetcher=fetcher, sink=sink).run()

    assert report.pages == 2
    assert len(sink.records) == 4
    assert not fetcher.fetched(LISTING_URL + "?page=3")
    assert report.stop_reasons["page_limit"] == 1


@pytest.mark.asyncio
async def test_api_strategy_feeds_pipeline():
    products = [
        {
            "pipUrl": product_url(f"item-{i}", str(20000000 + i)),
            "name": f"ITEM {i}",
            "typeName": "Chair",
            "salesPrice": {"numeral": 25 + i, "currencyCode": "GBP"},
        }
        for i in range(3)
    ]
    api_response = {"results": [{
        "component": "PRIMARY_AREA",
        "metadata": {"itemsPerType": {"PRODUCT": 3}},
        "items": [{"type": "PRODUCT", "product": p} for p in products],
    }]}
    fetcher = FakeFetcher(
        pages={LISTING_URL: listing_html(*cards(2))},
        json_pages={SIK_PREFIX: api_response},
    )
    sink = MemoryDatasetService()

    report = await IkeaScraper(run_input(max_pages=5), fetcher=fetcher, sink=sink).run()

    assert [r.name for r in sink.records] == ["ITEM 0 Chair", "ITEM 1 Chair", "ITEM 2 Chair"]
    assert report.strategy_hits["api"] == 1
    assert report.stop_reasons["no_more_results"] == 1


@pytest.mark.asyncio
async def test_unrecognised_layout_reports_empty_run():
    html = '<html><body><div class="new-grid"><a href="/gb/en/p/billy-00263850/">BILLY</a></div></body></html>'
    fetcher = FakeFetcher(pages={LISTING_URL: html})
    sink = MemoryDatasetService()

    report = await IkeaScraper(run_input(max_pages=5), fetcher=fetcher, sink=sink).run()

    assert report.status == RunStatus.EMPTY
    assert report.stop_reasons["extraction_failed"] == 1
    assert sink.summary["status"] == "empty"


@pytest.mark.asyncio
async def test_listing_fetch_failure_is_isolated():
    good = "https://www.ikea.com/gb/en/cat/chairs-fu002/"
    bad = "https://www.ikea.com/gb/en/cat/beds-bm003/"
    fetcher = FakeFetcher(pages={good: listing_html(*cards(2))}, failures=[bad])
    sink = MemoryDatasetService()

    report = await IkeaScraper(
        run_input(start_urls=[bad, good], max_pages=2), fetcher=fetcher, sink=sink
    ).run()

    assert len(sink.records) == 2
    assert report.stop_reasons["fetch_failed"] == 1
    assert report.status == RunStatus.COMPLETED


@pytest.mark.asyncio
async def test_jsonl_dataset_and_summary(tmp_path):
    fetcher = FakeFetcher(pages={LISTING_URL: listing_html(*cards(2))})
    sink = DatasetService(str(tmp_path / "out" / "dataset.jsonl"))

    await IkeaScraper(run_input(), fetcher=fetcher, sink=sink).run()

    records = sink.read_records()
    assert [r["id"] for r in records] == ["10000000", "10000001"]
    summary = json.loads((tmp_path / "out" / "dataset.summary.json").read_text())
    assert summary["status"] == "completed"
    assert summary["persisted"] == 2
    assert summary["records"] == 2


@pytest.mark.asyncio
async def test_second_run_replaces_previous_dataset(tmp_path):
    path = str(tmp_path / "dataset.jsonl")
    first = FakeFetcher(pages={LISTING_URL: listing_html(*cards(3))})
    await IkeaScraper(run_input(), fetcher=first, sink=DatasetService(path)).run()

    second = FakeFetcher(pages={LISTING_URL: listing_html(*cards(2, start=5))})
    sink = DatasetService(path)
    await IkeaScraper(run_input(), fetcher=second, sink=sink).run()

    records = sink.read_records()
    assert [r["id"] for r in records] == ["10000005", "10000006"]
    summary = json.loads((tmp_path / "dataset.summary.json").read_text())
    assert summary["records"] == len(records) == 2


@pytest.mark.asyncio
async def test_storage_failure_fails_run_with_summary():
    class BrokenSink(MemoryDatasetService):
        async def persist(self, record):
            raise StorageError("disk full")

    fetcher = FakeFetcher(pages={LISTING_URL: listing_html(*cards(2))})
    sink = BrokenSink()

    with pytest.raises(StorageError):
        await IkeaScraper(run_input(), fetcher=fetcher, sink=sink).run()

    assert sink.summary["status"] == "failed"
    assert "disk full" in sink.summary["error"]


def test_run_input_from_actor_dict():
    parsed = RunInput.from_dict({
        "startUrls": [{"url": "https://www.ikea.com/gb/en/cat/chairs-fu002/"}, "https://www.ikea.com/gb/en/new/"],
        "country": "DE",
        "language": "de",
        "maxProducts": 0,
        "maxPages": "abc",
        "collectDetails": False,
    })

    assert parsed.start_urls[0].endswith("chairs-fu002/")
    assert parsed.country == "de"
    assert parsed.max_products > 10 ** 9
    assert parsed.max_pages == 999
    assert parsed.default_currency == "EUR"
    assert parsed.initial_urls() == parsed.start_urls


def test_empty_start_urls_give_synthetic_listing():
    assert run_input().initial_urls() == [LISTING_URL]

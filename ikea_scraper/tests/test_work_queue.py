"""
Work queue: failure isolation, follow-up scheduling, fatal errors.
"""
import asyncio

import pytest

from ikea_scraper.errors import QueueError, StorageError
from ikea_scraper.queue.work_queue import WorkQueue, WorkUnit, WorkKind


def listing(url: str, **context) -> WorkUnit:
    return WorkUnit(url=url, kind=WorkKind.LISTING, context=context)


@pytest.mark.asyncio
async def test_failed_unit_does_not_stop_others():
    seen = []

    async def handler(unit):
        if unit.url == "bad":
            raise ValueError("parse failure")
        seen.append(unit.url)

    queue = WorkQueue(handler, concurrency=2)
    for url in ("a", "bad", "b"):
        queue.schedule(listing(url))

    await queue.run_until_complete()

    assert sorted(seen) == ["a", "b"]
    assert [u.url for u in queue.failed] == ["bad"]
    assert queue.failed[0].status == "failed"
    assert "parse failure" in queue.failed[0].error
    assert len(queue.completed) == 2


@pytest.mark.asyncio
async def test_units_scheduled_by_handlers_are_drained():
    queue = None
    handled = []

    async def handler(unit):
        handled.append((unit.kind, unit.url))
        if unit.kind == WorkKind.LISTING:
            page_no = unit.context["page_no"]
            queue.schedule(WorkUnit(url=f"detail-{page_no}", kind=WorkKind.DETAIL))
            if page_no < 3:
                queue.schedule(listing(f"page-{page_no + 1}", page_no=page_no + 1))

    queue = WorkQueue(handler, concurrency=3)
    queue.schedule(listing("page-1", page_no=1))

    await queue.run_until_complete()

    assert len(handled) == 6
    assert {url for kind, url in handled if kind == WorkKind.DETAIL} == {"detail-1", "detail-2", "detail-3"}
    assert queue.pending == 0


@pytest.mark.asyncio
async def test_detail_units_bounded_separately():
    active = 0
    peak = 0

    async def handler(unit):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1

    queue = WorkQueue(handler, concurrency=6, detail_concurrency=2)
    for i in range(8):
        queue.schedule(WorkUnit(url=f"detail-{i}", kind=WorkKind.DETAIL))

    await queue.run_until_complete()

    assert peak == 2
    assert len(queue.completed) == 8


@pytest.mark.asyncio
async def test_storage_error_is_fatal():
    async def handler(unit):
        if unit.url == "write":
            raise StorageError("disk full")

    queue = WorkQueue(handler, concurrency=1)
    queue.schedule(listing("write"))
    queue.schedule(listing("later"))

    with pytest.raises(StorageError):
        await queue.run_until_complete()

    assert queue.closed
    assert [u.url for u in queue.failed] == ["write"]
    assert queue.completed == []


@pytest.mark.asyncio
async def test_closed_queue_rejects_units():
    async def handler(unit):
        pass

    queue = WorkQueue(handler)
    queue.close()

    with pytest.raises(QueueError):
        queue.schedule(listing("late"))

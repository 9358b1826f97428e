"""
In-process work queue for listing and detail fetches.
Bounded concurrency, per-unit failure isolation.
"""
import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional, Callable, Awaitable, List

from ikea_scraper.config import config
from ikea_scraper.errors import QueueError, StorageError
from ikea_scraper.logger import logger


class WorkKind(str, Enum):
    LISTING = "listing"
    DETAIL = "detail"


@dataclass
class WorkUnit:
    url: str
    kind: WorkKind
    context: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: str = "pending"
    created_at: datetime = field(default_factory=datetime.utcnow)
    error: Optional[str] = None


Handler = Callable[[WorkUnit], Awaitable[None]]


class WorkQueue:
    """
    Drains scheduled units with a fixed pool of worker tasks.

    A handler exception marks that unit failed and nothing else. Exceptions
    listed in fatal_exceptions stop the queue: pending units are discarded and
    run_until_complete re-raises the first one.
    """

    def __init__(self, handler: Handler, concurrency: Optional[int] = None,
                 detail_concurrency: Optional[int] = None, fatal_exceptions: tuple = (StorageError,)):
        self.handler = handler
        self.concurrency = max(1, concurrency or config.MAX_CONCURRENCY)
        self.fatal_exceptions = fatal_exceptions
        self._detail_slots = asyncio.Semaphore(max(1, detail_concurrency or config.DETAIL_CONCURRENCY))
        self._queue: "asyncio.Queue[WorkUnit]" = asyncio.Queue()
        self.closed = False
        self.fatal_error: Optional[BaseException] = None
        self.completed: List[WorkUnit] = []
        self.failed: List[WorkUnit] = []

    def schedule(self, unit: WorkUnit) -> str:
        """Enqueue a unit; returns its id."""
        if self.closed:
            raise QueueError(f"Queue is closed, cannot schedule {unit.kind.value} {unit.url}")
        self._queue.put_nowait(unit)
        logger.debug(f"Scheduled {unit.kind.value} unit {unit.id} for {unit.url}")
        return unit.id

    def close(self):
        """Refuse new units; in-flight ones finish."""
        self.closed = True

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def run_until_complete(self):
        """Run workers until every scheduled unit (including ones scheduled meanwhile) is done."""
        workers = [asyncio.create_task(self._worker(i)) for i in range(self.concurrency)]
        try:
            await self._queue.join()
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        logger.info(f"Work queue drained: {len(self.completed)} completed, {len(self.failed)} failed")
        if self.fatal_error is not None:
            raise self.fatal_error

    async def _worker(self, index: int):
        while True:
            unit = await self._queue.get()
            try:
                if self.fatal_error is not None:
                    unit.status = "discarded"
                    continue
                await self._run(unit)
            finally:
                self._queue.task_done()

    async def _run(self, unit: WorkUnit):
        unit.status = "processing"
        try:
            if unit.kind == WorkKind.DETAIL:
                async with self._detail_slots:
                    await self.handler(unit)
            else:
                await self.handler(unit)
        except self.fatal_exceptions as e:
            unit.status = "failed"
            unit.error = str(e)
            self.failed.append(unit)
            logger.error(f"Fatal error in {unit.kind.value} unit {unit.url}: {e}", exc_info=True)
            if self.fatal_error is None:
                self.fatal_error = e
            self.close()
        except Exception as e:
            unit.status = "failed"
            unit.error = str(e)
            self.failed.append(unit)
            logger.error(f"{unit.kind.value} unit failed for {unit.url}: {e}", exc_info=True)
        else:
            unit.status = "completed"
            self.completed.append(unit)

"""
Append-only output sink.
One JSON object per line, plus a summary file written when the run ends.
Each run starts from an empty dataset.
"""
import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import List, Dict, Any, Optional

from ikea_scraper.config import config
from ikea_scraper.errors import StorageError
from ikea_scraper.logger import logger
from ikea_scraper.models.product import CanonicalProduct


class DatasetService:
    """JSON Lines dataset on local disk."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or config.DATASET_PATH)
        self.summary_path = self.path.with_suffix(".summary.json")
        self._lock = asyncio.Lock()
        self.written = 0

    async def begin(self) -> None:
        """
        Start a fresh dataset for this run.

        Raises:
            StorageError: the dataset file cannot be created
        """
        async with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_text("", encoding="utf-8")
                self.summary_path.unlink(missing_ok=True)
            except OSError as e:
                raise StorageError(f"Failed to reset dataset {self.path}: {e}") from e
            self.written = 0
        logger.info(f"Dataset reset: {self.path}")

    async def persist(self, record: CanonicalProduct) -> None:
        """
        Append one record.

        Raises:
            StorageError: the dataset file cannot be written
        """
        line = json.dumps(record.to_dict(), ensure_ascii=False, default=str)
        async with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
            except OSError as e:
                logger.error(f"Failed to write record {record.id} to {self.path}: {e}")
                raise StorageError(f"Failed to write dataset {self.path}: {e}") from e
            self.written += 1

    async def finalize(self, report: Dict[str, Any]) -> None:
        """Write the completion marker next to the dataset."""
        summary = {
            "dataset": str(self.path),
            "records": self.written,
            "finished_at": datetime.utcnow().isoformat(),
            **report,
        }
        async with self._lock:
            try:
                self.summary_path.parent.mkdir(parents=True, exist_ok=True)
                self.summary_path.write_text(json.dumps(summary, indent=2, default=str), encoding="utf-8")
            except OSError as e:
                raise StorageError(f"Failed to write summary {self.summary_path}: {e}") from e
        logger.info(f"Dataset finalized: {self.written} records, status={summary.get('status')}")

    def read_records(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        with open(self.path, encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]


class MemoryDatasetService:
    """Same interface, records kept in a list. Used by tests and dry runs."""

    def __init__(self):
        self.records: List[CanonicalProduct] = []
        self.summary: Optional[Dict[str, Any]] = None
        self._lock = asyncio.Lock()

    @property
    def written(self) -> int:
        return len(self.records)

    async def begin(self) -> None:
        self.records = []
        self.summary = None

    async def persist(self, record: CanonicalProduct) -> None:
        async with self._lock:
            self.records.append(record)

    async def finalize(self, report: Dict[str, Any]) -> None:
        self.summary = {"records": self.written, **report}

    def read_records(self) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in self.records]

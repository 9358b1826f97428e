"""
Main application entry point.
"""
import os
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path

from fastapi import FastAPI, Request, HTTPException

from ikea_scraper import __version__
from ikea_scraper.config import config
from ikea_scraper.logger import logger
from ikea_scraper.errors import ConfigError, StorageError
from ikea_scraper.models.run_input import RunInput
from ikea_scraper.scraper import IkeaScraper
from ikea_scraper.sentry import initialize_sentry
from ikea_scraper.services.dataset_service import DatasetService


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    logger.info("Starting IKEA Scraper service")
    initialize_sentry()

    yield

    logger.info("Shutting down IKEA Scraper service")


app = FastAPI(
    title="IKEA Scraper API",
    description="Multi-strategy IKEA catalog scraper with dedup and budgeted pagination",
    version=__version__,
    lifespan=lifespan
)


def _dataset_writable() -> bool:
    directory = Path(config.DATASET_PATH).resolve().parent
    while not directory.exists() and directory != directory.parent:
        directory = directory.parent
    return os.access(directory, os.W_OK)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "IKEA Scraper",
        "version": __version__,
        "status": "operational",
        "timestamp": datetime.utcnow().isoformat()
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    services = {
        "dataset": _dataset_writable(),
        "sentry": config.has_sentry,
    }
    status = "healthy" if services["dataset"] else "degraded"

    return {
        "status": status,
        "services": services,
        "timestamp": datetime.utcnow().isoformat()
    }


@app.post("/api/v1/runs")
async def start_run(request: Request):
    """Run one scrape synchronously and return its report."""
    try:
        data = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Body must be JSON")

    try:
        run_input = RunInput.from_dict(data)
    except ConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))

    sink = DatasetService()
    try:
        report = await IkeaScraper(run_input, sink=sink).run()
    except StorageError as e:
        logger.error(f"Dataset write failed: {e}")
        raise HTTPException(status_code=500, detail="Dataset write failed")
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")

    return {
        "success": report.persisted > 0,
        "dataset": str(sink.path),
        "report": report.to_dict(),
        "timestamp": datetime.utcnow().isoformat()
    }


if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)

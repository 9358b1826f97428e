"""
Sentry initialization for centralized error tracking.
Observes reality, never controls logic.
"""
import logging
from typing import Dict, Any, List

import sentry_sdk
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from ikea_scraper.config import config
from ikea_scraper.logger import logger


def initialize_sentry():
    """Initialize Sentry SDK if DSN is configured."""
    if not config.has_sentry:
        logger.info("Sentry not configured, skipping initialization")
        return

    try:
        sentry_sdk.init(
            dsn=config.SENTRY_DSN,
            environment=config.ENVIRONMENT,
            integrations=[
                AsyncioIntegration(),
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)
            ],
            traces_sample_rate=0.1,
            send_default_pii=False,
            before_send=_enrich_sentry_event,
        )

        logger.info("Sentry initialized for error tracking")

    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")


def _enrich_sentry_event(event: Dict[str, Any], hint: Dict[str, Any]) -> Dict[str, Any]:
    """Tag events with the system name and group them by exception type."""
    event.setdefault("tags", {})
    event["tags"]["system"] = "ikea-scraper"
    event["tags"]["environment"] = config.ENVIRONMENT

    exceptions = (event.get("exception") or {}).get("values") or []
    if exceptions:
        exc = exceptions[0]
        event["fingerprint"] = [
            "{{ default }}",
            exc.get("type", "Unknown"),
            exc.get("module", "unknown")
        ]
    return event


def capture_retry_exhaustion(operation: str, attempts: int, error: str, context: Dict[str, Any]):
    """Capture retry exhaustion in Sentry."""
    if not config.has_sentry:
        return

    with sentry_sdk.new_scope() as scope:
        scope.set_tag("operation", operation)
        scope.set_tag("retry_exhausted", "true")
        scope.set_extra("attempts", attempts)
        scope.set_extra("error", error)
        scope.set_extra("context", context)
        scope.set_level("error")

        sentry_sdk.capture_message(
            f"Retry exhausted for {operation} after {attempts} attempts",
            "error"
        )


def capture_data_quality(product_id: str, issues: List[str], source_url: str):
    """Record values passed through despite looking wrong (rating > 5 and similar)."""
    if not config.has_sentry:
        return

    with sentry_sdk.new_scope() as scope:
        scope.set_tag("error_type", "data_quality")
        scope.set_extra("product_id", product_id)
        scope.set_extra("issues", issues)
        scope.set_extra("source_url", source_url)
        scope.set_level("warning")

        sentry_sdk.capture_message(
            f"Data quality issues for product {product_id}: {', '.join(issues)}",
            "warning"
        )

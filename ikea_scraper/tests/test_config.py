import pytest
from unittest.mock import patch

from ikea_scraper.config import Config
from ikea_scraper.errors import ConfigError
from ikea_scraper.models.run_input import RunInput
from ikea_scraper.sentry import _enrich_sentry_event, capture_data_quality


def test_config_defaults(monkeypatch):
    """Defaults apply when the environment sets nothing."""
    for name in ("MAX_RETRIES", "RETRY_BACKOFF", "LOG_LEVEL", "DEFAULT_COUNTRY", "DEFAULT_MAX_PAGES", "PROXY_URL"):
        monkeypatch.delenv(name, raising=False)

    config = Config()

    assert config.MAX_RETRIES == 3
    assert config.RETRY_BACKOFF == 1.5
    assert config.LOG_LEVEL == "INFO"
    assert config.DEFAULT_COUNTRY == "gb"
    assert config.DEFAULT_MAX_PAGES == 10
    assert config.PROXY_URL is None


def test_config_environment(monkeypatch):
    monkeypatch.setenv("MAX_CONCURRENCY", "8")
    monkeypatch.setenv("DEFAULT_COLLECT_DETAILS", "false")
    monkeypatch.setenv("SENTRY_DSN", "https://key@sentry.example.com/1")

    config = Config()

    assert config.MAX_CONCURRENCY == 8
    assert config.DEFAULT_COLLECT_DETAILS is False
    assert config.has_sentry


def test_run_input_defaults_from_config():
    with patch("ikea_scraper.models.run_input.config.DEFAULT_MAX_PRODUCTS", 25):
        run_input = RunInput.from_dict({})

    assert run_input.max_products == 25
    assert run_input.start_urls == []
    assert run_input.category == "new-products"


@pytest.mark.parametrize("data", [
    {"startUrls": "https://www.ikea.com/gb/en/"},
    {"startUrls": [{"url": ""}]},
    {"country": ""},
    {"collectDetails": "yes"},
    {"category": 12},
])
def test_invalid_run_input(data):
    with pytest.raises(ConfigError):
        RunInput.from_dict(data)


def test_sentry_event_tagged():
    event = {"exception": {"values": [{"type": "TransportError", "module": "ikea_scraper.errors"}]}}

    enriched = _enrich_sentry_event(event, {})

    assert enriched["tags"]["system"] == "ikea-scraper"
    assert enriched["fingerprint"][1] == "TransportError"


def test_data_quality_capture_skipped_without_dsn():
    with patch("ikea_scraper.sentry.config.SENTRY_DSN", ""), \
         patch("ikea_scraper.sentry.sentry_sdk.capture_message") as capture:
        capture_data_quality("00263850", ["rating above 5"], "https://www.ikea.com/gb/en/p/billy-00263850/")

    capture.assert_not_called()

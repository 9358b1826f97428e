"""
Page-fetch transport for the scraper.
Includes timeout, retry, politeness delay, error translation.
All network logic is isolated here.
"""
import aiohttp
import asyncio
import json
import random
from dataclasses import dataclass
from typing import Dict, Any, Optional, Tuple

from ikea_scraper.errors import TransportError, RetryExhaustedError
from ikea_scraper.utils.retry import async_retry
from ikea_scraper.utils.urls import pick_user_agent, build_accept_language
from ikea_scraper.config import config
from ikea_scraper.logger import logger
from ikea_scraper.sentry import capture_retry_exhaustion

# Rate limiting and gateway failures worth another attempt
RETRIABLE_STATUSES = frozenset({429, 502, 504, 590})


class RetriableStatusError(TransportError):
    """Non-2xx status the transport retries before giving up."""


@dataclass
class FetchResponse:
    url: str
    status: int
    body: Any


class HttpService:
    """
    Wrapper for outbound page and API requests.
    The scraping core never calls aiohttp directly.
    """

    def __init__(self, country: Optional[str] = None, language: Optional[str] = None,
                 proxy_url: Optional[str] = None, delay_range: Optional[Tuple[float, float]] = None):
        self.country = country or config.DEFAULT_COUNTRY
        self.language = language or config.DEFAULT_LANGUAGE
        self.proxy_url = proxy_url if proxy_url is not None else config.PROXY_URL
        self.delay_range = delay_range or (config.REQUEST_DELAY_MIN, config.REQUEST_DELAY_MAX)
        self.session: Optional[aiohttp.ClientSession] = None
        self.user_agent = pick_user_agent()

    @property
    def is_available(self) -> bool:
        return self.session is not None and not self.session.closed

    def default_headers(self) -> Dict[str, str]:
        """Browser-like headers for the run's locale."""
        return {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
            "Accept-Language": build_accept_language(self.language, self.country),
            "Accept-Encoding": "gzip, deflate, br",
            "sec-ch-ua": '"Chromium";v="131", "Not_A Brand";v="24"',
            "sec-ch-ua-mobile": "?0",
            "sec-ch-ua-platform": '"Windows"',
            "Upgrade-Insecure-Requests": "1",
        }

    async def initialize(self):
        """Initialize HTTP session."""
        if self.is_available:
            return
        self.session = aiohttp.ClientSession(
            headers=self.default_headers(),
            timeout=aiohttp.ClientTimeout(total=config.REQUEST_TIMEOUT)
        )
        logger.info(f"HTTP service initialized for {self.country}/{self.language}")

    async def close(self):
        """Close HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None

    async def fetch_page(self, url: str, as_json: bool = False, headers: Optional[Dict[str, str]] = None,
                         method: str = "GET", json_body: Optional[Dict[str, Any]] = None) -> FetchResponse:
        """
        Fetch one page or API response.

        Args:
            url: Absolute URL
            as_json: Decode the body as JSON instead of returning text
            headers: Extra headers merged over the session defaults
            method: HTTP method
            json_body: JSON request body (POST requests)

        Returns:
            FetchResponse with status and decoded body

        Raises:
            TransportError: non-2xx status, network failure, or retries exhausted
        """
        if not self.is_available:
            await self.initialize()

        await self._polite_delay()
        try:
            return await self._request(url, as_json, headers, method, json_body)
        except RetryExhaustedError as e:
            cause = e.__cause__
            status = getattr(cause, "status", None)
            capture_retry_exhaustion(
                operation="fetch_page",
                attempts=getattr(e, "attempts", config.MAX_RETRIES + 1),
                error=str(cause),
                context={"url": url, "method": method, "status": status},
            )
            raise TransportError(f"Giving up on {url}: {cause}", url=url, status=status) from e

    @async_retry(exceptions=(RetriableStatusError, aiohttp.ClientError, asyncio.TimeoutError))
    async def _request(self, url: str, as_json: bool, headers: Optional[Dict[str, str]],
                       method: str, json_body: Optional[Dict[str, Any]]) -> FetchResponse:
        request_headers = dict(headers or {})
        if as_json:
            request_headers.setdefault("Accept", "application/json")
            if json_body is not None:
                request_headers.setdefault("Content-Type", "application/json")

        logger.debug(f"{method} {url}")
        response = await self.session.request(
            method,
            url,
            headers=request_headers,
            json=json_body,
            proxy=self.proxy_url,
        )

        if response.status in RETRIABLE_STATUSES:
            await response.text()
            raise RetriableStatusError(f"Retriable status {response.status}", url=url, status=response.status)

        if not 200 <= response.status < 300:
            error_text = await response.text()
            logger.error(f"HTTP {response.status} for {url}: {error_text[:200]}")
            raise TransportError(f"HTTP {response.status} for {url}", url=url, status=response.status)

        if not as_json:
            return FetchResponse(url=url, status=response.status, body=await response.text())

        try:
            body = await response.json(content_type=None)
        except (json.JSONDecodeError, aiohttp.ContentTypeError) as e:
            raise TransportError(f"Invalid JSON from {url}: {e}", url=url, status=response.status) from e
        return FetchResponse(url=url, status=response.status, body=body)

    async def _polite_delay(self):
        low, high = self.delay_range
        if high > 0:
            await asyncio.sleep(random.uniform(low, high))

"""HTTP fetching with retries and politeness (User-Agent, timeouts, redirect cap)."""

import logging
import random
import threading
import time
from typing import Callable

import httpx

from sitesift.config import DEFAULT_USER_AGENT, FetchSettings, RelevancePolicy
from sitesift.extractors import extract_main_text, find_links, parse_html, strip_noise
from sitesift.models import PageResult
from sitesift.retry import LINEAR, RetryPolicy, RetryState, retry_call
from sitesift.urls import DEFAULT_POLICY

logger = logging.getLogger(__name__)

# Statuses worth retrying on the same URL; 404 and other 4xx are final
RETRYABLE_STATUS = (403, 408, 425, 429, 500, 502, 503, 504)

NAVIGATION_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Upgrade-Insecure-Requests": "1",
}


def status_code(e: BaseException) -> int | None:
    """HTTP status carried by an httpx error, if any."""
    if isinstance(e, httpx.HTTPStatusError):
        return e.response.status_code
    return None


def is_not_found(e: BaseException) -> bool:
    return status_code(e) == 404


def is_transient(e: BaseException) -> bool:
    """Timeouts, connection failures and throttling/5xx responses."""
    if isinstance(e, httpx.HTTPStatusError):
        return e.response.status_code in RETRYABLE_STATUS
    if isinstance(e, httpx.TooManyRedirects):
        return False
    return isinstance(e, httpx.TransportError)


def _polite_sleep(delay: float) -> None:
    """Sleep with +-15% jitter to avoid fixed-interval bot patterns."""
    if delay <= 0:
        return
    time.sleep(delay * random.uniform(0.85, 1.15))


class Fetcher:
    """HTTP fetcher with connection pooling. Thread-safe; share one per crawl."""

    def __init__(
        self,
        settings: FetchSettings | None = None,
        *,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.settings = settings or FetchSettings()
        self._headers = {
            "User-Agent": self.settings.user_agent or DEFAULT_USER_AGENT,
            **NAVIGATION_HEADERS,
            **(headers or {}),
        }
        self._transport = transport
        self._sleep = sleep
        self._client: httpx.Client | None = None
        self._client_lock = threading.Lock()

    def _get_client(self) -> httpx.Client:
        with self._client_lock:
            if self._client is None or self._client.is_closed:
                self._client = httpx.Client(
                    follow_redirects=True,
                    max_redirects=self.settings.max_redirects,
                    timeout=self.settings.timeout,
                    headers=self._headers,
                    transport=self._transport,
                )
            return self._client

    def close(self) -> None:
        with self._client_lock:
            if self._client is not None and not self._client.is_closed:
                self._client.close()
            self._client = None

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def pause(self, delay: float) -> None:
        """Polite delay between requests (jittered)."""
        if delay > 0:
            (self._sleep or _polite_sleep)(delay)

    def get(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """One GET attempt. Final status in [200, 400) is success; anything else raises."""
        client = self._get_client()
        resp = client.get(url, headers=headers, timeout=timeout or self.settings.timeout)
        # A final 3xx (300, 304, redirect without Location) counts as success
        if not 200 <= resp.status_code < 400:
            raise httpx.HTTPStatusError(
                f"HTTP {resp.status_code} for url '{resp.url}'", request=resp.request, response=resp
            )
        return resp

    def retrying_get(
        self,
        url: str,
        policy: RetryPolicy,
        *,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """GET with retry_call on transient errors; the last error propagates."""

        def _log_retry(state: RetryState) -> None:
            logger.info(
                "Retry %d/%d for %s in %.1fs (%s)",
                state.attempt, policy.max_attempts, url, state.delay, state.last_error,
            )

        return retry_call(
            lambda: self.get(url, headers=headers),
            policy,
            is_transient,
            on_retry=_log_retry,
            sleep=self._sleep or time.sleep,
        )

    def page_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.settings.page_attempts,
            base_delay=self.settings.page_retry_delay,
            backoff=LINEAR,
        )

    def fetch_html(self, url: str) -> tuple[str, str]:
        """(HTML text, final URL after redirects) with page retries. Raises the last httpx error."""
        resp = self.retrying_get(url, self.page_policy())
        return resp.text, str(resp.url)

    def fetch_page(
        self,
        url: str,
        *,
        root_url: str | None = None,
        policy: RelevancePolicy = DEFAULT_POLICY,
        delay: float | None = None,
    ) -> PageResult:
        """
        Fetch one page and return its main text and relevant links.
        Never raises: 404, exhausted retries and parse failures all give an empty result.
        """
        self.pause(self.settings.request_delay if delay is None else delay)
        try:
            html, final_url = self.fetch_html(url)
        except httpx.HTTPError as e:
            if is_not_found(e):
                logger.info("Not found: %s", url)
            else:
                logger.warning("Failed to fetch %s: %s", url, e)
            return PageResult()

        try:
            soup = parse_html(html)
            # Links first: footers and navs often hold the terms/fees documents.
            # Relative hrefs resolve against where the redirects ended, not the requested URL.
            links = find_links(soup, final_url, root_url, policy)
            strip_noise(soup)
            text = extract_main_text(soup, min_chars=self.settings.min_content_chars)
        except Exception as e:
            logger.warning("Failed to parse %s: %s", url, e)
            return PageResult()
        logger.debug("Fetched %s: %d chars, %d links", url, len(text), len(links))
        return PageResult(text=text, links=links)

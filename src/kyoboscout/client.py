"""HTTP client for kyobobook.co.kr with rate limiting and retries."""

import asyncio
import base64
import itertools
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Protocol

from playwright.async_api import APIRequestContext, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from kyoboscout.errors import KyoboError, NetworkError, NetworkTimeoutError, network_error_for_status
from kyoboscout.log import get_logger
from kyoboscout.urls import BASE_URL, guess_image_mime

USER_AGENTS = [
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "ko-KR,ko;q=0.9,en;q=0.8",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Cache-Control": "max-age=0",
}

IMAGE_ACCEPT = "image/avif,image/webp,image/apng,image/*,*/*;q=0.8"

MAX_BACKOFF = 4.0
HEALTH_CHECK_TIMEOUT = 5.0

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass
class HttpResponse:
    """A completed HTTP response."""

    status: int
    body: bytes
    headers: dict[str, str] = field(default_factory=dict)
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def content_type(self) -> str:
        for name, value in self.headers.items():
            if name.lower() == "content-type":
                return value
        return ""

    @property
    def text(self) -> str:
        charset = "utf-8"
        for part in self.content_type.split(";")[1:]:
            key, _, value = part.strip().partition("=")
            if key.lower() == "charset" and value:
                charset = value.strip("\"'")
        try:
            return self.body.decode(charset, errors="replace")
        except LookupError:
            return self.body.decode("utf-8", errors="replace")


class Transport(Protocol):
    """Something that can perform a single HTTP GET."""

    async def fetch(self, url: str, *, headers: dict[str, str], timeout: float) -> HttpResponse: ...


class PlaywrightTransport:
    """Transport backed by Playwright's API request context (no browser needed)."""

    def __init__(self, context: APIRequestContext) -> None:
        self.context = context

    @classmethod
    @asynccontextmanager
    async def launch(cls) -> AsyncIterator["PlaywrightTransport"]:
        """Start Playwright and yield a transport; everything is disposed on exit."""
        async with async_playwright() as p:
            context = await p.request.new_context()
            try:
                yield cls(context)
            finally:
                await context.dispose()

    async def fetch(self, url: str, *, headers: dict[str, str], timeout: float) -> HttpResponse:
        try:
            response = await self.context.get(
                url,
                headers=headers,
                timeout=timeout * 1000,
                fail_on_status_code=False,
            )
        except PlaywrightTimeout as e:
            raise NetworkTimeoutError(f"Request timed out after {timeout}s", url=url, cause=e) from e
        except PlaywrightError as e:
            raise NetworkError(f"Request failed: {e.message}", url=url, cause=e) from e

        try:
            body = await response.body()
            return HttpResponse(
                status=response.status,
                body=body,
                headers=dict(response.headers),
                url=response.url,
            )
        except PlaywrightError as e:
            raise NetworkError(f"Failed to read response body: {e.message}", url=url, cause=e) from e
        finally:
            await response.dispose()


class RateLimiter:
    """Enforces a minimum interval between requests.

    Callers that come too early are delayed, never rejected. The check and the
    update of the last request time happen under one lock.
    """

    def __init__(
        self,
        min_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.min_interval = min_interval
        self.clock = clock
        self.sleep = sleep
        self._last_request: float | None = None
        self._lock = asyncio.Lock()

    async def wait(self) -> float:
        """Wait until a request may be sent; returns the delay applied."""
        async with self._lock:
            delay = 0.0
            if self._last_request is not None:
                delay = self.min_interval - (self.clock() - self._last_request)
                if delay > 0:
                    await self.sleep(delay)
                else:
                    delay = 0.0
            self._last_request = self.clock()
            return delay


def backoff_delay(attempt: int) -> float:
    """Delay after a failed attempt: 1s, 2s, 4s, capped at 4s."""
    return min(2.0 ** (attempt - 1), MAX_BACKOFF)


class KyoboClient:
    """GET client with rate limiting, retries and rotating User-Agents."""

    def __init__(
        self,
        transport: Transport,
        timeout: float = 10.0,
        retries: int = 3,
        min_request_interval: float = 1.0,
        headers: dict[str, str] | None = None,
        logger: logging.Logger | None = None,
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self.transport = transport
        self.timeout = timeout
        self.retries = retries
        self.headers = {**DEFAULT_HEADERS, **(headers or {})}
        self.logger = logger or get_logger("client")
        self.sleep = sleep
        self.clock = clock
        self.rate_limiter = rate_limiter or RateLimiter(min_request_interval, clock=clock, sleep=sleep)
        self._user_agents = itertools.cycle(USER_AGENTS)

    def next_user_agent(self) -> str:
        return next(self._user_agents)

    async def get(
        self,
        url: str,
        *,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
        retries: int | None = None,
    ) -> str:
        """GET a URL and return the decoded body."""
        response = await self.get_response(url, timeout=timeout, headers=headers, retries=retries)
        return response.text

    async def get_response(
        self,
        url: str,
        *,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
        retries: int | None = None,
    ) -> HttpResponse:
        """GET a URL, retrying network errors, timeouts and 5xx responses.

        Raises:
            NetworkError: On a 4xx response (immediately) or once all attempts
                have failed. NetworkTimeoutError if the last attempt timed out.
        """
        timeout = timeout or self.timeout
        attempts = max(1, retries or self.retries)
        request_headers = {**self.headers, "User-Agent": self.next_user_agent(), **(headers or {})}

        await self.rate_limiter.wait()
        started = self.clock()

        last_error: NetworkError | None = None
        for attempt in range(1, attempts + 1):
            self.logger.debug("GET %s (attempt %d/%d)", url, attempt, attempts)
            error = None
            try:
                response = await asyncio.wait_for(
                    self.transport.fetch(url, headers=request_headers, timeout=timeout),
                    timeout,
                )
            except asyncio.TimeoutError as e:
                error = NetworkTimeoutError(f"Request timed out after {timeout}s", url=url, cause=e)
            except NetworkError as e:
                error = e
            except OSError as e:
                error = NetworkError(f"Request failed: {e}", url=url, cause=e)
            else:
                if not response.ok:
                    error = network_error_for_status(response.status, url)
                elif not response.body.strip():
                    error = NetworkError("Empty response body", status_code=response.status, url=url)
                else:
                    self.logger.info(
                        "GET %s -> %d (%.2fs, %d bytes)",
                        url,
                        response.status,
                        self.clock() - started,
                        len(response.body),
                    )
                    return response

            last_error = error
            if not error.retryable:
                self.logger.warning("GET %s failed without retry: %s", url, error)
                raise error

            self.logger.warning("GET %s attempt %d/%d failed: %s", url, attempt, attempts, error)
            if attempt < attempts:
                await self.sleep(backoff_delay(attempt))

        assert last_error is not None
        self.logger.error("GET %s failed after %d attempts", url, attempts)
        if isinstance(last_error, NetworkTimeoutError):
            raise last_error
        raise NetworkError(
            f"Request failed after {attempts} attempts: {last_error.message}",
            status_code=last_error.status_code,
            url=url,
            context={"attempts": attempts},
            cause=last_error,
        )

    async def get_data_url(self, url: str, *, timeout: float | None = None) -> str:
        """Download an image and return it as a base64 ``data:`` URL."""
        response = await self.get_response(url, timeout=timeout, headers={"Accept": IMAGE_ACCEPT})
        mime = guess_image_mime(url, response.content_type)
        encoded = base64.b64encode(response.body).decode("ascii")
        return f"data:{mime};base64,{encoded}"

    async def health_check(self) -> bool:
        """Check whether the site answers. Never raises."""
        try:
            response = await self.get_response(f"{BASE_URL}/", timeout=HEALTH_CHECK_TIMEOUT, retries=1)
        except KyoboError as e:
            self.logger.warning("Health check failed: %s", e)
            return False
        except Exception as e:
            self.logger.warning("Health check failed unexpectedly: %s", e)
            return False
        return len(response.body) > 0

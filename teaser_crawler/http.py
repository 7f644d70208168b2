from __future__ import annotations

import asyncio
import codecs
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional
from urllib.parse import urlsplit

import aiohttp

from teaser_crawler.config import CrawlerConfig

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int
    base_delay_seconds: float
    retry_statuses: frozenset[int]

    @classmethod
    def from_config(cls, config: CrawlerConfig) -> "RetryPolicy":
        return cls(
            max_attempts=max(1, config.max_retry),
            base_delay_seconds=max(0, config.delay_ms) / 1000.0,
            retry_statuses=frozenset(config.retry_status_codes),
        )


@dataclass(frozen=True)
class FetchResponse:
    url: str
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    charset: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self) -> str:
        # unknown charsets raise LookupError
        codec = codecs.lookup(self.charset or "utf-8")
        return self.body.decode(codec.name, errors="replace")


def _host(url: str) -> str:
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


class HostThrottle:
    """Minimum delay between two requests to the same host.

    The last request time of every host is kept in microseconds. A lock per
    host serializes the check so concurrent tasks see each other's requests.
    """

    def __init__(self, delay_seconds: float, *, clock: Clock = time.monotonic, sleep: Sleep = asyncio.sleep) -> None:
        self._delay_us = int(delay_seconds * 1_000_000)
        self._clock = clock
        self._sleep = sleep
        self._locks: dict[str, asyncio.Lock] = {}
        self._last_request_us: dict[str, int] = {}

    def _now_us(self) -> int:
        return int(self._clock() * 1_000_000)

    async def wait(self, url: str) -> None:
        host = _host(url)
        if not host:
            return

        lock = self._locks.setdefault(host, asyncio.Lock())
        async with lock:
            now_us = self._now_us()
            last = self._last_request_us.get(host)
            if last is not None:
                elapsed_us = now_us - last
                if elapsed_us < self._delay_us:
                    await self._sleep((self._delay_us - elapsed_us) / 1_000_000)
                    now_us = self._now_us()
            self._last_request_us[host] = now_us


class HttpClient:
    """Single point of HTTP access: per-host throttling, concurrency bound and retries.

    ``request`` never raises on transport failure; it returns ``None`` once
    every attempt failed without a response.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        throttle: HostThrottle,
        retry: RetryPolicy,
        user_agent: str,
        timeout_seconds: float,
        concurrency_per_host: int = 1,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._session = session
        self._throttle = throttle
        self._retry = retry
        self._headers = {"User-Agent": user_agent}
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._per_host = max(1, concurrency_per_host)
        self._host_sems: dict[str, asyncio.Semaphore] = {}
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        session: aiohttp.ClientSession,
        config: CrawlerConfig,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> "HttpClient":
        return cls(
            session=session,
            throttle=HostThrottle(max(0, config.delay_ms) / 1000.0, clock=clock, sleep=sleep),
            retry=RetryPolicy.from_config(config),
            user_agent=config.user_agent,
            timeout_seconds=config.timeout_seconds,
            concurrency_per_host=config.concurrency_per_host,
            sleep=sleep,
        )

    def _semaphore(self, url: str) -> asyncio.Semaphore:
        return self._host_sems.setdefault(_host(url), asyncio.Semaphore(self._per_host))

    async def _send(self, url: str) -> FetchResponse:
        async with self._semaphore(url):
            async with self._session.get(url, headers=self._headers, timeout=self._timeout) as r:
                body = await r.read()
                return FetchResponse(
                    url=url,
                    status=r.status,
                    headers={str(k).lower(): str(v) for k, v in r.headers.items()},
                    body=body,
                    charset=r.charset,
                )

    def _retry_after_seconds(self, response: FetchResponse) -> Optional[float]:
        value = response.headers.get("retry-after", "").strip()
        if value.isdigit():
            return float(value)
        return None

    async def request(self, url: str) -> Optional[FetchResponse]:
        attempts = self._retry.max_attempts
        backoff = self._retry.base_delay_seconds
        response: Optional[FetchResponse] = None

        for attempt in range(1, attempts + 1):
            await self._throttle.wait(url)
            try:
                response = await self._send(url)
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                logger.warning("Transport error on attempt %d/%d for %s: %r", attempt, attempts, url, exc)
                if attempt < attempts:
                    await self._sleep(backoff)
                    backoff *= 2
                continue

            if response.ok or response.status not in self._retry.retry_statuses:
                return response

            logger.warning(
                "Retryable HTTP status %d for %s (attempt %d/%d)", response.status, url, attempt, attempts
            )
            if attempt < attempts:
                wait = self._retry_after_seconds(response)
                await self._sleep(backoff if wait is None else wait)
                backoff *= 2

        if response is None:
            logger.error("Request failed after all retries: %s", url)
        return response

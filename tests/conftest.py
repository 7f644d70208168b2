from __future__ import annotations

from typing import Any, Callable

import pytest

from teaser_crawler.config import CrawlerConfig


class FakeResponse:
    """Stands in for an aiohttp response used as an async context manager."""

    def __init__(
        self,
        status: int = 200,
        body: str | bytes = "",
        headers: dict[str, str] | None = None,
        charset: str | None = "utf-8",
    ) -> None:
        self.status = status
        self.headers = dict(headers or {})
        self.charset = charset
        self._body = body.encode("utf-8") if isinstance(body, str) else body

    async def read(self) -> bytes:
        return self._body

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, *exc: Any) -> bool:
        return False


class FakeSession:
    """Serves canned responses per URL and records every request.

    A route may be a FakeResponse, an exception instance (raised on request)
    or a list of those consumed one per request (the last one repeats).
    Unknown URLs answer 404.
    """

    def __init__(self, routes: dict[str, Any] | None = None) -> None:
        self.routes: dict[str, Any] = dict(routes or {})
        self.calls: list[tuple[str, dict[str, str]]] = []

    def get(self, url: str, headers: dict[str, str] | None = None, timeout: Any = None) -> FakeResponse:
        self.calls.append((url, dict(headers or {})))
        route = self.routes.get(url)
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if route is None:
            route = FakeResponse(status=404)
        if isinstance(route, BaseException):
            raise route
        return route

    def urls(self) -> list[str]:
        return [u for u, _ in self.calls]


class FakeClock:
    """Monotonic clock that only moves when something sleeps on it."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


BASE_PARAMS: dict[str, Any] = {
    "id": "example",
    "start_urls": [{"url": "https://example.com/", "extraction_depth": 0}],
    "link_section": "#content",
    "link_selector": "a[href]",
    "max_teaser": 10,
    "max_retry": 1,
    "delay_ms": 0,
    "retry_status_codes": [408, 429, 500, 502, 503, 504],
    "concurrency_per_host": 1,
    "user_agent": "TestAgent/1.0",
    "title": {"present": True, "css": ["h1"], "max_chars": 120},
}


@pytest.fixture
def make_config() -> Callable[..., CrawlerConfig]:
    def _make(**overrides: Any) -> CrawlerConfig:
        raw = dict(BASE_PARAMS)
        raw.update(overrides)
        return CrawlerConfig(raw=raw)

    return _make


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()

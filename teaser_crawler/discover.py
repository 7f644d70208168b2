from __future__ import annotations

import logging
from collections import deque
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import Tag

from teaser_crawler.config import CrawlerConfig
from teaser_crawler.http import HttpClient
from teaser_crawler.normalize import URLNormalizer, dedupe, starts_with_any
from teaser_crawler.robots import RobotsChecker
from teaser_crawler.types import SeedFetchError, StartPoint

logger = logging.getLogger(__name__)


def _absolute_url(base_url: str, href: str) -> str | None:
    href = (href or "").strip()
    if not href:
        return None
    try:
        url = urljoin(base_url, href)
    except ValueError:
        logger.debug("Failed to resolve link %r on %s", href, base_url)
        return None
    return url if url.startswith("https://") else None


def extract_links(scope: list[Tag], link_selector: str, base_url: str) -> list[str]:
    """Absolute https links matched by ``link_selector`` inside ``scope``, in document order."""

    links: list[str] = []
    for section in scope:
        for a in section.select(link_selector):
            url = _absolute_url(base_url, str(a.get("href") or ""))
            if url:
                links.append(url)
    return links


class URLCollector:
    """Breadth-first link discovery from the configured start points."""

    def __init__(
        self,
        config: CrawlerConfig,
        normalizer: URLNormalizer,
        client: HttpClient,
        robots: RobotsChecker,
    ) -> None:
        self._config = config
        self._normalizer = normalizer
        self._client = client
        self._robots = robots

    async def find_href_urls_by_css_selector(self) -> list[str]:
        limit = self._config.max_teaser
        found: dict[str, None] = {}
        visited: set[str] = set()

        for start in self._config.start_urls:
            if len(found) >= limit:
                break
            await self._crawl_by_depth(start, found, visited, limit)

        urls = self._normalizer.normalize(found)

        if self._config.respect_robots_txt:
            urls = await self._robots.filter_allowed(urls)

        urls = urls[: max(0, limit)]

        forced = self._config.forced_article_urls
        return dedupe([*urls, *forced])

    async def _load_document(self, url: str) -> BeautifulSoup | None:
        response = await self._client.request(url)
        if response is None:
            raise SeedFetchError(url)
        if not response.ok:
            logger.warning("Skipping links of %s: HTTP status %d", url, response.status)
            return None
        try:
            html = response.text()
        except (LookupError, UnicodeError):
            logger.exception("Skipping links of %s: failed to read content", url)
            return None
        return BeautifulSoup(html, "lxml")

    def _resolve_scope(self, soup: BeautifulSoup, url: str) -> list[Tag] | None:
        section = self._config.link_section
        if not section:
            return [soup]
        scope = soup.select(section)
        if not scope:
            logger.warning("Link section %r not found in %s", section, url)
            return None
        return scope

    async def _crawl_by_depth(
        self,
        start: StartPoint,
        found: dict[str, None],
        visited: set[str],
        limit: int,
    ) -> None:
        max_depth = start.extraction_depth
        deny = self._config.deny_prefixes
        allow = self._config.allow_prefixes
        queue: deque[tuple[str, int]] = deque([(start.url, 0)])

        while queue:
            url, depth = queue.popleft()
            if depth > max_depth or url in visited:
                continue
            visited.add(url)

            soup = await self._load_document(url)
            if soup is None:
                continue
            scope = self._resolve_scope(soup, url)
            if scope is None:
                continue

            for link in extract_links(scope, self._config.link_selector, url):
                if starts_with_any(link, deny):
                    continue
                if allow and not starts_with_any(link, allow):
                    continue

                found.setdefault(link, None)
                if len(found) >= limit:
                    return

                if depth < max_depth and link not in visited:
                    queue.append((link, depth + 1))

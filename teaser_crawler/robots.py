from __future__ import annotations

import logging
from typing import Optional
from urllib import robotparser

from teaser_crawler.config import CrawlerConfig
from teaser_crawler.http import HttpClient
from teaser_crawler.normalize import dedupe

logger = logging.getLogger(__name__)


class RobotsChecker:
    """Filters URLs against the site's robots.txt.

    One parsed policy is cached per robots URL for the lifetime of the
    checker. A policy that cannot be fetched or parsed is cached as ``None``
    and every URL is allowed.
    """

    def __init__(self, config: CrawlerConfig, client: HttpClient) -> None:
        self._config = config
        self._client = client
        self._cache: dict[str, Optional[robotparser.RobotFileParser]] = {}

    async def filter_allowed(self, urls: list[str]) -> list[str]:
        robots_url = self._config.robots_url
        if not robots_url:
            return dedupe(urls)

        rules = await self._get_rules(robots_url)
        if rules is None:
            return dedupe(urls)

        ua = self._config.user_agent
        return dedupe(u for u in urls if rules.can_fetch(ua, u))

    async def _get_rules(self, robots_url: str) -> Optional[robotparser.RobotFileParser]:
        if robots_url in self._cache:
            return self._cache[robots_url]

        rules: Optional[robotparser.RobotFileParser] = None
        try:
            response = await self._client.request(robots_url)
            if response is None or not response.ok:
                status = None if response is None else response.status
                logger.warning("robots.txt could not be read (status %s), allowing all: %s", status, robots_url)
            else:
                rules = robotparser.RobotFileParser(robots_url)
                rules.parse(response.text().strip().splitlines())
        except Exception:
            logger.warning("robots.txt could not be parsed, allowing all: %s", robots_url, exc_info=True)
            rules = None

        self._cache[robots_url] = rules
        return rules

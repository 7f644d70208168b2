from __future__ import annotations

import asyncio
import logging
from typing import Optional

from teaser_crawler.http import FetchResponse, HttpClient
from teaser_crawler.types import FetchedPage

logger = logging.getLogger(__name__)


class Fetcher:
    """Downloads the HTML of a batch of URLs.

    Requests of one batch run concurrently; the client bounds concurrency and
    throttling per host. URLs without a usable 2xx body are dropped.
    """

    def __init__(self, client: HttpClient) -> None:
        self._client = client

    async def fetch_urls(self, urls: list[str]) -> list[FetchedPage]:
        responses = await asyncio.gather(*(self._client.request(u) for u in urls))

        pages: list[FetchedPage] = []
        for url, response in zip(urls, responses):
            page = self._to_page(url, response)
            if page is not None:
                pages.append(page)
        return pages

    def _to_page(self, url: str, response: Optional[FetchResponse]) -> Optional[FetchedPage]:
        if response is None or not response.ok:
            return None
        try:
            return FetchedPage(url=url, html=response.text())
        except (LookupError, UnicodeError):
            logger.exception("Failed to read content of %s", url)
            return None

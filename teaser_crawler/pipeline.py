from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Sequence, TypeVar

import aiohttp

from teaser_crawler.config import CrawlerConfig, load_site_config
from teaser_crawler.discover import URLCollector
from teaser_crawler.extract import Parser
from teaser_crawler.fetch import Fetcher
from teaser_crawler.http import Clock, HttpClient, Sleep
from teaser_crawler.index import Indexer, IndexStatus
from teaser_crawler.normalize import URLNormalizer
from teaser_crawler.process import Processor
from teaser_crawler.robots import RobotsChecker
from teaser_crawler.scoring import TeaserRelevanceEvaluator
from teaser_crawler.types import CleanTeaser, CrawlRunError, StageResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

IndexerFactory = Callable[[CrawlerConfig], Indexer]


def chunked(items: Sequence[T], size: int) -> Iterator[list[T]]:
    size = max(1, size)
    for i in range(0, len(items), size):
        yield list(items[i : i + size])


async def run_stage(name: str, fn: Callable[..., Any], *args: Any) -> StageResult:
    """Run one pipeline step; exceptions and empty output become a StageResult."""

    try:
        result = fn(*args)
        if inspect.isawaitable(result):
            result = await result
        items = list(result or [])
    except Exception as exc:
        logger.exception("[%s] Error: %s", name, exc)
        return StageResult(items=[], failed=True, error=exc)

    if not items:
        logger.warning("[%s] Step returned no data.", name)
    else:
        logger.info("[%s] Step returned %d items.", name, len(items))
    return StageResult(items=items)


@dataclass
class CrawlReport:
    site_id: str
    urls: int = 0
    pages: int = 0
    teasers: int = 0
    status: IndexStatus = IndexStatus()
    failed_stage: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def failed(self) -> bool:
        return self.failed_stage is not None


class CrawlPipeline:
    """Collect -> (Fetch -> Parse -> Process) per chunk -> Index, for one site."""

    def __init__(
        self,
        site_id: str,
        config: CrawlerConfig,
        collector: URLCollector,
        fetcher: Fetcher,
        parser: Parser,
        processor: Processor,
        indexer: Indexer,
    ) -> None:
        self._site_id = site_id
        self._config = config
        self._collector = collector
        self._fetcher = fetcher
        self._parser = parser
        self._processor = processor
        self._indexer = indexer

    async def run(self) -> CrawlReport:
        report = CrawlReport(site_id=self._site_id)
        batch = await self._build_batch(report)
        report.teasers = len(batch)

        # an empty batch is still indexed so stale documents get cleaned up
        status = self._indexer.index(self._site_id, batch)
        report.status = status
        if status.errors == 0:
            logger.info("Status errors [%d]: crawl of %s completed successfully.", status.errors, self._site_id)
        else:
            logger.error("Status errors [%d]: crawl of %s stopped by indexer.", status.errors, self._site_id)
        return report

    def _fail(self, report: CrawlReport, stage: str, result: StageResult) -> list[CleanTeaser]:
        report.failed_stage = stage
        report.error = result.error
        return []

    async def _build_batch(self, report: CrawlReport) -> list[CleanTeaser]:
        collected = await run_stage("URLCollector", self._collector.find_href_urls_by_css_selector)
        if collected.failed:
            return self._fail(report, "URLCollector", collected)
        if collected.empty:
            return []
        report.urls = len(collected.items)

        batch: list[CleanTeaser] = []
        for chunk in chunked(collected.items, self._config.concurrency_per_host):
            fetched = await run_stage("Fetcher", self._fetcher.fetch_urls, chunk)
            if fetched.failed:
                return self._fail(report, "Fetcher", fetched)
            if fetched.empty:
                continue
            report.pages += len(fetched.items)

            parsed = await run_stage("Parser", self._parser.extract_teasers, fetched.items)
            del fetched
            if parsed.failed:
                return self._fail(report, "Parser", parsed)
            if parsed.empty:
                continue

            # only cleaned teasers outlive their chunk
            processed = await run_stage("Processor", self._processor.sanitize_text, parsed.items)
            del parsed
            if processed.failed:
                return self._fail(report, "Processor", processed)
            batch.extend(processed.items)

        return batch


def build_pipeline(
    site_id: str,
    config: CrawlerConfig,
    session: aiohttp.ClientSession,
    indexer: Indexer,
    *,
    clock: Clock = time.monotonic,
    sleep: Sleep = asyncio.sleep,
) -> CrawlPipeline:
    client = HttpClient.from_config(session, config, clock=clock, sleep=sleep)
    collector = URLCollector(
        config=config,
        normalizer=URLNormalizer(config),
        client=client,
        robots=RobotsChecker(config, client),
    )
    return CrawlPipeline(
        site_id=site_id,
        config=config,
        collector=collector,
        fetcher=Fetcher(client),
        parser=Parser(config, TeaserRelevanceEvaluator(config)),
        processor=Processor(),
        indexer=indexer,
    )


async def run_site(
    site_id: str,
    *,
    config_dir: str | Path,
    indexer_factory: IndexerFactory,
    session: Optional[aiohttp.ClientSession] = None,
) -> CrawlReport:
    """Crawl and index one site with a freshly loaded configuration.

    Raises CrawlRunError (after logging) when a stage failed, so callers can
    tell a failed run from one that found nothing.
    """

    logger.info("[Crawler] Starting site: %s", site_id)
    config = load_site_config(config_dir, site_id)
    source = config.id or site_id

    try:
        if session is None:
            connector = aiohttp.TCPConnector(limit_per_host=config.concurrency_per_host)
            async with aiohttp.ClientSession(connector=connector) as own_session:
                report = await build_pipeline(source, config, own_session, indexer_factory(config)).run()
        else:
            report = await build_pipeline(source, config, session, indexer_factory(config)).run()
    except Exception:
        logger.exception("[Crawler] Failed site: %s", site_id)
        raise

    if report.failed:
        logger.error("[Crawler] Failed site: %s (stage %s)", site_id, report.failed_stage)
        raise CrawlRunError(site_id, report.failed_stage or "") from report.error

    logger.info("[Crawler] Finished site: %s", site_id)
    return report

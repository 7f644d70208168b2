from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Iterable, Optional

from bs4 import BeautifulSoup
from dateutil import parser as dateparser

from teaser_crawler.config import CrawlerConfig, DateTimeExtractConfig, FieldExtractConfig
from teaser_crawler.scoring import TeaserRelevanceEvaluator
from teaser_crawler.text import normalize_text, truncate
from teaser_crawler.types import FetchedPage, Teaser

logger = logging.getLogger(__name__)

MAX_HTML_BYTES = 2_000_000

_BARE_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def find_meta_content(soup: BeautifulSoup, prop: str) -> Optional[str]:
    """Content of ``<meta property=prop>`` (or ``<meta name=prop>``), stripped."""

    for attr in ("property", "name"):
        tag = soup.find("meta", attrs={attr: prop})
        if tag is not None and tag.get("content") is not None:
            return str(tag.get("content")).strip()
    return None


def find_css_text(soup: BeautifulSoup, selector: str) -> Optional[str]:
    try:
        el = soup.select_one(selector)
    except Exception:
        logger.exception("Failed to apply CSS selector %r", selector)
        return None
    if el is None:
        return None
    return normalize_text(el.get_text(" ", strip=True))


def find_css_attr(soup: BeautifulSoup, selector: str, attr: str) -> Optional[str]:
    try:
        el = soup.select_one(selector)
    except Exception:
        logger.exception("Failed to apply CSS selector %r", selector)
        return None
    if el is None or el.get(attr) is None:
        return None
    return str(el.get(attr)).strip()


def extract_text(soup: BeautifulSoup, config: FieldExtractConfig) -> Optional[str]:
    """First non-empty structured-markup value, else first non-empty CSS match, truncated."""

    if not config.present:
        return None

    for prop in config.opengraph:
        v = find_meta_content(soup, prop)
        if v:
            return truncate(v, config.max_chars)

    for selector in config.css:
        v = find_css_text(soup, selector)
        if v:
            return truncate(v, config.max_chars)

    return None


def find_datetime_raw(soup: BeautifulSoup, config: DateTimeExtractConfig) -> Optional[str]:
    for prop in config.opengraph:
        v = find_meta_content(soup, prop)
        if v:
            return v

    for selector in config.css:
        v = find_css_attr(soup, selector, "datetime") or find_css_text(soup, selector)
        if v:
            return v.strip()

    return None


def parse_datetime(raw: str, only_date: bool) -> Optional[datetime]:
    raw = raw.strip()
    if only_date and _BARE_DATE_RE.match(raw):
        raw += " 00:00:00"
    try:
        return dateparser.parse(raw)
    except (ValueError, OverflowError):
        logger.warning("Could not parse datetime %r", raw)
        return None


def extract_datetime(soup: BeautifulSoup, config: DateTimeExtractConfig) -> Optional[datetime]:
    if not config.present:
        return None
    raw = find_datetime_raw(soup, config)
    if raw is None:
        return None
    return parse_datetime(raw, config.only_date)


class Parser:
    """Turns fetched pages into teaser candidates.

    A page without a title is dropped; so is a page missing intro text or a
    datetime when that field is configured present. With content scoring
    active, candidates below the configured minimum score are dropped too.
    An error on one page never aborts the batch.
    """

    def __init__(self, config: CrawlerConfig, evaluator: TeaserRelevanceEvaluator) -> None:
        self._config = config
        self._evaluator = evaluator

    def extract_teasers(self, pages: Iterable[FetchedPage]) -> list[Teaser]:
        title_cfg = self._config.title_config
        intro_cfg = self._config.intro_text_config
        dt_cfg = self._config.datetime_config
        scoring = self._config.content_scoring_active
        forced = set(self._config.forced_article_urls)

        teasers: list[Teaser] = []
        for page in pages:
            if not page.html:
                continue
            size = len(page.html.encode("utf-8"))
            if size > MAX_HTML_BYTES:
                logger.warning("Skipping huge HTML (%d bytes): %s", size, page.url)
                continue

            try:
                teaser = self._parse_page(page, title_cfg, intro_cfg, dt_cfg)
                if teaser is None:
                    continue
                if scoring and teaser.url not in forced and not self._evaluator.relevant(teaser, page.html):
                    continue
                teasers.append(teaser)
            except Exception:
                logger.exception("No teaser data extracted for %s", page.url)

        return teasers

    def _parse_page(
        self,
        page: FetchedPage,
        title_cfg: FieldExtractConfig,
        intro_cfg: FieldExtractConfig,
        dt_cfg: DateTimeExtractConfig,
    ) -> Optional[Teaser]:
        soup = BeautifulSoup(page.html, "lxml")

        title = extract_text(soup, title_cfg)
        if not title:
            return None

        intro = extract_text(soup, intro_cfg)
        if intro is None and intro_cfg.present:
            return None

        published_at = extract_datetime(soup, dt_cfg)
        if published_at is None and dt_cfg.present:
            return None

        return Teaser(
            url=page.url,
            title=title_cfg.prefix + title,
            intro_text=intro,
            published_at=published_at,
        )

from __future__ import annotations

import logging
import warnings
from typing import Iterable, Iterator, Optional

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

from teaser_crawler.text import normalize_text, truncate
from teaser_crawler.types import CleanTeaser, Teaser

logger = logging.getLogger(__name__)

MAX_TEXT_CHARS = 120


def clean_string(text: str) -> str:
    """Strip scripts, styles and markup, decode entities and collapse whitespace."""

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", MarkupResemblesLocatorWarning)
        soup = BeautifulSoup(text or "", "lxml")
    for tag in soup.select("script, style"):
        tag.decompose()
    return normalize_text(soup.get_text())


class Processor:
    """Cleans teaser text fields and applies the hard length cap.

    ``sanitize_text`` is a generator: teasers are cleaned on demand, one
    output per valid input, in input order.
    """

    def sanitize_text(self, teasers: Iterable[Teaser]) -> Iterator[CleanTeaser]:
        for item in teasers:
            try:
                cleaned = self._clean(item)
            except Exception:
                logger.exception("Failed to process teaser %r", item)
                continue
            if cleaned is not None:
                yield cleaned

    def _clean(self, item: Teaser) -> Optional[CleanTeaser]:
        if not getattr(item, "title", None) or not getattr(item, "url", None):
            logger.warning("Unexpected teaser format, skipping: %r", item)
            return None

        title = truncate(clean_string(str(item.title)), MAX_TEXT_CHARS)
        if not title:
            return None

        intro: Optional[str] = None
        if item.intro_text:
            intro = truncate(clean_string(str(item.intro_text)), MAX_TEXT_CHARS) or None

        date: Optional[str] = None
        if item.published_at is not None:
            date = clean_string(item.published_at.isoformat(sep=" ")) or None

        return CleanTeaser(url=str(item.url), title=title, intro_text=intro, date=date)

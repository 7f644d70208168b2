from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class StartPoint:
    url: str
    extraction_depth: int = 0


@dataclass(frozen=True)
class FetchedPage:
    url: str
    html: str


@dataclass(frozen=True)
class Teaser:
    url: str
    title: str
    intro_text: Optional[str] = None
    published_at: Optional[datetime] = None


@dataclass(frozen=True)
class CleanTeaser:
    url: str
    title: str
    intro_text: Optional[str] = None
    date: Optional[str] = None


@dataclass
class StageResult(Generic[T]):
    items: list[T] = field(default_factory=list)
    failed: bool = False
    error: Optional[BaseException] = None

    @property
    def empty(self) -> bool:
        return not self.items


class CrawlerError(Exception):
    pass


class SeedFetchError(CrawlerError):
    """A page the collector has to traverse could not be fetched at all."""

    def __init__(self, url: str) -> None:
        super().__init__(f"request failed for {url}")
        self.url = url


class CrawlRunError(CrawlerError):
    def __init__(self, site_id: str, stage: str) -> None:
        super().__init__(f"crawl of site {site_id!r} failed in stage {stage}")
        self.site_id = site_id
        self.stage = stage

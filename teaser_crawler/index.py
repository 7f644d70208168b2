from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import timezone
from pathlib import Path
from typing import Any, Optional, Protocol

import pandas as pd
from dateutil import parser as dateparser

from teaser_crawler.config import CrawlerConfig
from teaser_crawler.types import CleanTeaser

logger = logging.getLogger(__name__)

DOCUMENT_COLUMNS = [
    "id",
    "title",
    "sp_intro",
    "sp_date",
    "url",
    "sp_objecttype",
    "crawl_process_id",
    "sp_source",
]


@dataclass(frozen=True)
class IndexStatus:
    total: int = 0
    indexed: int = 0
    errors: int = 0
    deleted: int = 0


class Indexer(Protocol):
    def index(self, site_id: str, items: list[CleanTeaser]) -> IndexStatus: ...


def _utc_date(value: str) -> Optional[str]:
    try:
        dt = dateparser.parse(value)
    except (ValueError, OverflowError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def build_document(
    item: CleanTeaser,
    *,
    site_id: str,
    process_id: str,
    intro_present: bool,
    date_present: bool,
) -> dict[str, Any]:
    if not item.url or not item.title:
        raise ValueError(f"teaser without url or title: {item!r}")

    doc: dict[str, Any] = {"id": item.url, "title": item.title}
    if item.intro_text and intro_present:
        doc["sp_intro"] = item.intro_text
    if item.date and date_present:
        sp_date = _utc_date(item.date)
        if sp_date is None:
            logger.warning("Invalid date %r for %s, omitting sp_date", item.date, item.url)
        else:
            doc["sp_date"] = sp_date
    doc["url"] = item.url
    doc["sp_objecttype"] = site_id
    doc["crawl_process_id"] = process_id
    doc["sp_source"] = [site_id]
    return doc


def read_existing(path: Path) -> Optional[pd.DataFrame]:
    if not path.exists() or path.stat().st_size == 0:
        return None

    suffix = path.suffix.lower()
    if suffix == ".parquet":
        return pd.read_parquet(path)
    if suffix == ".csv":
        return pd.read_csv(path)
    return pd.read_json(path, orient="records", lines=True, dtype=False)


def write_frame(path: Path, df: pd.DataFrame) -> None:
    suffix = path.suffix.lower()
    if suffix == ".parquet":
        df.to_parquet(path, index=False)
        return
    if suffix == ".csv":
        df.to_csv(path, index=False, encoding="utf-8")
        return
    df.to_json(path, orient="records", lines=True, force_ascii=False)


class FileIndex:
    """Document store kept in one file (JSON lines, CSV or parquet by suffix).

    Each ``index`` call is one crawl process: documents are upserted by id,
    the file is committed, and when every item was submitted the site's
    documents from earlier processes are deleted.
    """

    def __init__(self, path: str | Path, config: CrawlerConfig) -> None:
        self._path = Path(path)
        self._config = config

    def index(self, site_id: str, items: list[CleanTeaser]) -> IndexStatus:
        process_id = uuid.uuid4().hex
        intro_present = self._config.intro_text_config.present
        date_present = self._config.datetime_config.present

        docs: list[dict[str, Any]] = []
        errors = 0
        for item in items:
            try:
                docs.append(
                    build_document(
                        item,
                        site_id=site_id,
                        process_id=process_id,
                        intro_present=intro_present,
                        date_present=date_present,
                    )
                )
            except Exception:
                logger.exception("Indexing failed for %r", item)
                errors += 1

        new_df = pd.DataFrame(docs, columns=DOCUMENT_COLUMNS)
        old_df = read_existing(self._path)
        if old_df is not None and not old_df.empty:
            combined = pd.concat([old_df, new_df], ignore_index=True)
        else:
            combined = new_df
        combined = combined.drop_duplicates(subset=["id"], keep="last")

        deleted = 0
        if len(docs) >= len(items):
            stale = (combined["sp_objecttype"] == site_id) & (combined["crawl_process_id"] != process_id)
            deleted = int(stale.sum())
            combined = combined[~stale]

        self._path.parent.mkdir(parents=True, exist_ok=True)
        write_frame(self._path, combined.reset_index(drop=True))
        logger.info(
            "Indexed %d/%d documents for %s (deleted %d stale, process %s)",
            len(docs),
            len(items),
            site_id,
            deleted,
            process_id,
        )
        return IndexStatus(total=len(items), indexed=len(docs), errors=errors, deleted=deleted)

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from teaser_crawler.types import StartPoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldExtractConfig:
    present: bool
    required_field: bool
    prefix: str
    opengraph: tuple[str, ...]
    css: tuple[str, ...]
    max_chars: int


@dataclass(frozen=True)
class DateTimeExtractConfig:
    present: bool
    required_field: bool
    only_date: bool
    opengraph: tuple[str, ...]
    css: tuple[str, ...]


@dataclass(frozen=True)
class LengthCondition:
    body_text_length_lt: Optional[int] = None


@dataclass(frozen=True)
class ScoreRule:
    score: int
    match_any: tuple[str, ...] = ()
    condition: Optional[LengthCondition] = None


@dataclass(frozen=True)
class ContentScoringConfig:
    min_score: int
    positive: tuple[ScoreRule, ...] = ()
    negative: tuple[ScoreRule, ...] = ()


_MISSING = object()


def _lookup(raw: dict[str, Any], key: str) -> Any:
    node: Any = raw
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return _MISSING
        node = node[part]
    return node


def _int(raw: dict[str, Any], key: str, default: int) -> int:
    v = _lookup(raw, key)
    if v is _MISSING or v is None:
        return default
    if isinstance(v, bool):
        logger.warning("Config invalid int for %s: %r, using default %s", key, v, default)
        return default
    if isinstance(v, int):
        return v
    if isinstance(v, str) and v.strip().isdigit():
        return int(v.strip())
    logger.warning("Config invalid int for %s: %r, using default %s", key, v, default)
    return default


def _float(raw: dict[str, Any], key: str, default: float) -> float:
    v = _lookup(raw, key)
    if v is _MISSING or v is None:
        return default
    try:
        return float(v)
    except (TypeError, ValueError):
        logger.warning("Config invalid number for %s: %r, using default %s", key, v, default)
        return default


def _bool(raw: dict[str, Any], key: str, default: bool) -> bool:
    v = _lookup(raw, key)
    if v is _MISSING or v is None:
        return default
    if isinstance(v, bool):
        return v
    if isinstance(v, str):
        vv = v.strip().lower()
        if vv in {"true", "1"}:
            return True
        if vv in {"false", "0"}:
            return False
    logger.warning("Config invalid bool for %s: %r, using default %s", key, v, default)
    return default


def _str(raw: dict[str, Any], key: str, default: str = "") -> str:
    v = _lookup(raw, key)
    if v is _MISSING or v is None:
        return default
    if isinstance(v, str):
        return v
    logger.warning("Config invalid string for %s: %r, using default %r", key, v, default)
    return default


def _optional_str(raw: dict[str, Any], key: str) -> Optional[str]:
    v = _str(raw, key).strip()
    return v or None


def _str_list(raw: dict[str, Any], key: str) -> tuple[str, ...]:
    v = _lookup(raw, key)
    if v is _MISSING or v is None:
        return ()
    if not isinstance(v, list):
        logger.warning("Config invalid list for %s: %r, using empty list", key, v)
        return ()
    return tuple(str(item) for item in v if item is not None and str(item) != "")


def _int_list(raw: dict[str, Any], key: str) -> tuple[int, ...]:
    v = _lookup(raw, key)
    if v is _MISSING or v is None:
        return ()
    if not isinstance(v, list):
        logger.warning("Config invalid int list for %s: %r, using empty list", key, v)
        return ()

    out: set[int] = set()
    for item in v:
        try:
            out.add(int(item))
        except (TypeError, ValueError):
            logger.warning("Config list item ignored for %s (not int): %r", key, item)
    return tuple(sorted(out))


def _score_rules(raw: dict[str, Any], key: str) -> tuple[ScoreRule, ...]:
    v = _lookup(raw, key)
    if not isinstance(v, list):
        return ()

    rules: list[ScoreRule] = []
    for rule in v:
        if not isinstance(rule, dict):
            continue
        try:
            score = int(rule.get("score", 0))
        except (TypeError, ValueError):
            score = 0

        match_any = tuple(m for m in (rule.get("match_any") or []) if isinstance(m, str) and m)

        condition = None
        cond_raw = rule.get("condition")
        if isinstance(cond_raw, dict) and cond_raw.get("body_text_length_lt") is not None:
            try:
                condition = LengthCondition(body_text_length_lt=int(cond_raw["body_text_length_lt"]))
            except (TypeError, ValueError):
                logger.warning("Config invalid length condition in %s: %r", key, cond_raw)

        rules.append(ScoreRule(score=score, match_any=match_any, condition=condition))
    return tuple(rules)


@dataclass(frozen=True)
class CrawlerConfig:
    """Settings of one site, read from the ``parameters`` mapping of its YAML file."""

    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return _str(self.raw, "id")

    # robots

    @property
    def respect_robots_txt(self) -> bool:
        return _bool(self.raw, "respect_robots_txt", False)

    @property
    def robots_url(self) -> Optional[str]:
        return _optional_str(self.raw, "robots_url")

    # url collection

    @property
    def start_urls(self) -> list[StartPoint]:
        v = _lookup(self.raw, "start_urls")
        if not isinstance(v, list):
            return []

        out: list[StartPoint] = []
        for item in v:
            if isinstance(item, str) and item:
                out.append(StartPoint(url=item))
            elif isinstance(item, dict) and isinstance(item.get("url"), str):
                try:
                    depth = max(0, int(item.get("extraction_depth") or 0))
                except (TypeError, ValueError):
                    depth = 0
                out.append(StartPoint(url=item["url"], extraction_depth=depth))
        return out

    @property
    def link_section(self) -> str:
        return _str(self.raw, "link_section", "#content")

    @property
    def link_selector(self) -> str:
        return _str(self.raw, "link_selector", "a[href]")

    @property
    def allow_prefixes(self) -> tuple[str, ...]:
        return _str_list(self.raw, "allow_prefixes")

    @property
    def deny_prefixes(self) -> tuple[str, ...]:
        return _str_list(self.raw, "deny_prefixes")

    @property
    def deny_endings(self) -> tuple[str, ...]:
        return _str_list(self.raw, "deny_endings")

    @property
    def forced_article_urls(self) -> tuple[str, ...]:
        return _str_list(self.raw, "forced_article_urls")

    @property
    def strip_query_params_active(self) -> bool:
        return _bool(self.raw, "strip_query_params_active", False)

    @property
    def strip_query_params(self) -> tuple[str, ...]:
        return _str_list(self.raw, "strip_query_params")

    @property
    def max_teaser(self) -> int:
        return _int(self.raw, "max_teaser", 100)

    # http

    @property
    def max_retry(self) -> int:
        return _int(self.raw, "max_retry", 3)

    @property
    def retry_status_codes(self) -> tuple[int, ...]:
        return _int_list(self.raw, "retry_status_codes")

    @property
    def delay_ms(self) -> int:
        return _int(self.raw, "delay_ms", 0)

    @property
    def concurrency_per_host(self) -> int:
        return max(1, _int(self.raw, "concurrency_per_host", 1))

    @property
    def user_agent(self) -> str:
        return _str(self.raw, "user_agent", "Crawler/1.0")

    @property
    def timeout_seconds(self) -> float:
        return _float(self.raw, "timeout_seconds", 30.0)

    # parser

    @property
    def title_config(self) -> FieldExtractConfig:
        return FieldExtractConfig(
            present=_bool(self.raw, "title.present", True),
            required_field=True,
            prefix=_str(self.raw, "title.prefix"),
            opengraph=_str_list(self.raw, "title.opengraph"),
            css=_str_list(self.raw, "title.css"),
            max_chars=_int(self.raw, "title.max_chars", 120),
        )

    @property
    def intro_text_config(self) -> FieldExtractConfig:
        return FieldExtractConfig(
            present=_bool(self.raw, "intro_text.present", False),
            required_field=_bool(self.raw, "intro_text.required_field", False),
            prefix="",
            opengraph=_str_list(self.raw, "intro_text.opengraph"),
            css=_str_list(self.raw, "intro_text.css"),
            max_chars=_int(self.raw, "intro_text.max_chars", 120),
        )

    @property
    def datetime_config(self) -> DateTimeExtractConfig:
        return DateTimeExtractConfig(
            present=_bool(self.raw, "datetime.present", False),
            required_field=_bool(self.raw, "datetime.required_field", False),
            only_date=_bool(self.raw, "datetime.only_date", True),
            opengraph=_str_list(self.raw, "datetime.opengraph"),
            css=_str_list(self.raw, "datetime.css"),
        )

    # content scoring

    @property
    def content_scoring_active(self) -> bool:
        return _bool(self.raw, "content_scoring.active", False)

    @property
    def content_scoring_config(self) -> ContentScoringConfig:
        return ContentScoringConfig(
            min_score=_int(self.raw, "content_scoring.min_score", 4),
            positive=_score_rules(self.raw, "content_scoring.positive"),
            negative=_score_rules(self.raw, "content_scoring.negative"),
        )


def load_yaml(path: str | Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def site_config_path(config_dir: str | Path, site_id: str) -> Path:
    return Path(config_dir) / f"{site_id}.yaml"


def load_site_config(config_dir: str | Path, site_id: str) -> CrawlerConfig:
    """Load ``<config_dir>/<site_id>.yaml``; a missing file raises FileNotFoundError."""

    data = load_yaml(site_config_path(config_dir, site_id))
    params = data.get("parameters") or {}
    if not isinstance(params, dict):
        raise ValueError(f"'parameters' of site {site_id!r} must be a mapping")
    return CrawlerConfig(raw=params)

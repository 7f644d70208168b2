from __future__ import annotations

import logging
from dataclasses import dataclass, field

from bs4 import BeautifulSoup

from teaser_crawler.config import ContentScoringConfig, CrawlerConfig, ScoreRule
from teaser_crawler.text import normalize_text
from teaser_crawler.types import Teaser

logger = logging.getLogger(__name__)

BODY_SELECTORS = ("main", "#content", "#boxes", "article", "body")
FRAGMENT_PENALTY = -2


@dataclass(frozen=True)
class Evaluation:
    score: int
    reasons: list[str] = field(default_factory=list)


def _normalize(text: str) -> str:
    return normalize_text(text.lower())


def extract_body_text(html: str) -> str:
    """Text of the first body-like element with content, or an empty string."""

    try:
        soup = BeautifulSoup(html or "", "lxml")
        for sel in BODY_SELECTORS:
            node = soup.select_one(sel)
            if node is None:
                continue
            text = node.get_text(" ", strip=True)
            if text:
                return text
    except Exception:
        logger.debug("Body text extraction failed", exc_info=True)
    return ""


def rule_matches(rule: ScoreRule, haystack: str, intro: str, body: str) -> bool:
    for needle in rule.match_any:
        if needle and _normalize(needle) in haystack:
            return True

    limit = rule.condition.body_text_length_lt if rule.condition else None
    if limit is not None:
        length = len(f"{intro} {body}".strip())
        return 0 < length < limit
    return False


class TeaserRelevanceEvaluator:
    """Rule-based relevance score for a teaser candidate."""

    def __init__(self, config: CrawlerConfig) -> None:
        self._config = config

    def relevant(self, teaser: Teaser, html: str) -> bool:
        # forced URLs are never counted as relevant here
        if teaser.url in self._config.forced_article_urls:
            return False

        cfg = self._config.content_scoring_config
        evaluation = self.evaluate(teaser, html, cfg)
        logger.debug("Score %d for %s: %s", evaluation.score, teaser.url, ", ".join(evaluation.reasons))
        return evaluation.score >= cfg.min_score

    def evaluate(self, teaser: Teaser, html: str, cfg: ContentScoringConfig) -> Evaluation:
        title = teaser.title or ""
        intro = teaser.intro_text or ""
        body = extract_body_text(html)
        haystack = _normalize(f"{title}\n{intro}\n{body}")

        score = 0
        reasons: list[str] = []

        for rule in (*cfg.positive, *cfg.negative):
            if rule_matches(rule, haystack, intro, body):
                score += rule.score
                label = rule.match_any[0] if rule.match_any else "rule"
                reasons.append(f"{rule.score:+d} {label!r}")

        if "#" in teaser.url:
            score += FRAGMENT_PENALTY
            reasons.append(f"{FRAGMENT_PENALTY:+d} fragment url")

        return Evaluation(score=score, reasons=reasons)

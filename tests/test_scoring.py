from teaser_crawler.scoring import TeaserRelevanceEvaluator, extract_body_text
from teaser_crawler.types import Teaser

SCORING = {
    "active": True,
    "min_score": 5,
    "positive": [{"score": 5, "match_any": ["apply"]}],
    "negative": [
        {"score": -4, "match_any": ["sold out", "Cancelled"]},
        {"score": -3, "condition": {"body_text_length_lt": 40}},
    ],
}

LONG_BODY = "This paragraph is long enough to avoid the short page rule. " * 2


def _evaluator(make_config, **scoring):
    return TeaserRelevanceEvaluator(make_config(content_scoring={**SCORING, **scoring}))


def _html(body):
    return f"<html><body><main><p>{body}</p></main></body></html>"


class TestRelevance:
    def test_positive_match_reaches_min_score(self, make_config):
        teaser = Teaser(url="https://example.com/job", title="Apply now")
        assert _evaluator(make_config).relevant(teaser, _html(LONG_BODY))

    def test_matching_is_case_insensitive_and_checks_body(self, make_config):
        teaser = Teaser(url="https://example.com/job", title="Open position")
        assert _evaluator(make_config).relevant(teaser, _html("Please APPLY here. " + LONG_BODY))

    def test_no_match_is_not_relevant(self, make_config):
        teaser = Teaser(url="https://example.com/news", title="Weather report")
        assert not _evaluator(make_config).relevant(teaser, _html(LONG_BODY))

    def test_negative_rule_pulls_score_below_minimum(self, make_config):
        teaser = Teaser(url="https://example.com/event", title="Apply for tickets", intro_text="Sold   out")
        assert not _evaluator(make_config).relevant(teaser, _html(LONG_BODY))

    def test_forced_url_is_never_relevant(self, make_config):
        config = make_config(content_scoring=SCORING, forced_article_urls=["https://example.com/job"])
        teaser = Teaser(url="https://example.com/job", title="Apply now")

        assert not TeaserRelevanceEvaluator(config).relevant(teaser, _html(LONG_BODY))


class TestEvaluate:
    def test_length_condition_applies_to_short_pages(self, make_config):
        ev = _evaluator(make_config)
        cfg = make_config(content_scoring=SCORING).content_scoring_config
        teaser = Teaser(url="https://example.com/x", title="Apply", intro_text="short")

        result = ev.evaluate(teaser, _html("tiny"), cfg)

        assert result.score == 2
        assert len(result.reasons) == 2

    def test_length_condition_ignores_empty_text(self, make_config):
        ev = _evaluator(make_config)
        cfg = make_config(content_scoring=SCORING).content_scoring_config
        teaser = Teaser(url="https://example.com/x", title="Apply")

        assert ev.evaluate(teaser, "", cfg).score == 5

    def test_fragment_url_is_penalized(self, make_config):
        ev = _evaluator(make_config)
        cfg = make_config(content_scoring=SCORING).content_scoring_config
        teaser = Teaser(url="https://example.com/x#section", title="Apply")

        result = ev.evaluate(teaser, _html(LONG_BODY), cfg)

        assert result.score == 3
        assert result.reasons[-1] == "-2 fragment url"


class TestExtractBodyText:
    def test_prefers_main_over_body(self):
        html = "<html><body><p>outer</p><main>inner text</main></body></html>"
        assert extract_body_text(html) == "inner text"

    def test_skips_empty_candidates(self):
        html = "<html><body><main>  </main><article>article text</article></body></html>"
        assert extract_body_text(html) == "article text"

    def test_empty_input(self):
        assert extract_body_text("") == ""

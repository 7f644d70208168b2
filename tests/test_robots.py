import asyncio

from conftest import FakeResponse, FakeSession
from teaser_crawler.http import HttpClient
from teaser_crawler.robots import RobotsChecker

ROBOTS_URL = "https://example.com/robots.txt"

ROBOTS_TXT = """
User-agent: *
Disallow: /private/

User-agent: TestAgent
Disallow: /internal/
"""


def _checker(session, config):
    return RobotsChecker(config, HttpClient.from_config(session, config))


def test_without_robots_url_returns_deduplicated_input(make_config):
    session = FakeSession()
    checker = _checker(session, make_config())

    urls = ["https://example.com/a", "https://example.com/a", "https://example.com/b"]
    assert asyncio.run(checker.filter_allowed(urls)) == ["https://example.com/a", "https://example.com/b"]
    assert session.calls == []


def test_filters_with_user_agent_group(make_config):
    session = FakeSession({ROBOTS_URL: FakeResponse(200, ROBOTS_TXT)})
    checker = _checker(session, make_config(robots_url=ROBOTS_URL))

    urls = [
        "https://example.com/news/1",
        "https://example.com/internal/2",
        "https://example.com/private/3",
    ]
    allowed = asyncio.run(checker.filter_allowed(urls))

    # TestAgent has its own group, so only /internal/ is off limits for it
    assert allowed == ["https://example.com/news/1", "https://example.com/private/3"]


def test_policy_is_fetched_once_per_run(make_config):
    session = FakeSession({ROBOTS_URL: FakeResponse(200, ROBOTS_TXT)})
    checker = _checker(session, make_config(robots_url=ROBOTS_URL))

    async def scenario():
        await checker.filter_allowed(["https://example.com/a"])
        await checker.filter_allowed(["https://example.com/b"])

    asyncio.run(scenario())
    assert session.urls() == [ROBOTS_URL]


def test_fetch_failure_fails_open_and_is_cached(make_config, caplog):
    session = FakeSession({ROBOTS_URL: FakeResponse(500)})
    checker = _checker(session, make_config(robots_url=ROBOTS_URL, retry_status_codes=[]))

    async def scenario():
        first = await checker.filter_allowed(["https://example.com/internal/x"])
        second = await checker.filter_allowed(["https://example.com/internal/y"])
        return first, second

    first, second = asyncio.run(scenario())

    assert first == ["https://example.com/internal/x"]
    assert second == ["https://example.com/internal/y"]
    assert session.urls() == [ROBOTS_URL]
    assert "robots.txt could not be read" in caplog.text


def test_rules_apply_in_file_order_first_match_wins(make_config):
    robots_txt = "User-agent: *\nDisallow: /*?\nDisallow: /*.pdf$\nDisallow: /\nAllow: /news/\n"
    session = FakeSession({ROBOTS_URL: FakeResponse(200, robots_txt)})
    checker = _checker(session, make_config(robots_url=ROBOTS_URL))

    urls = ["https://example.com/news/x", "https://example.com/about"]

    # the catch-all Disallow precedes the Allow, so nothing is fetchable
    assert asyncio.run(checker.filter_allowed(urls)) == []


def test_earlier_allow_overrides_later_disallow(make_config):
    robots_txt = "User-agent: *\nAllow: /news/\nDisallow: /\n"
    session = FakeSession({ROBOTS_URL: FakeResponse(200, robots_txt)})
    checker = _checker(session, make_config(robots_url=ROBOTS_URL))

    urls = ["https://example.com/news/x", "https://example.com/about"]

    assert asyncio.run(checker.filter_allowed(urls)) == ["https://example.com/news/x"]

from teaser_crawler.normalize import URLNormalizer, sanitize_url, strip_query_params


class TestSanitizeUrl:
    def test_lowercases_host_and_keeps_port_query_fragment(self):
        assert sanitize_url("https://Example.COM:8443/a/b?x=1&y=2#top") == "https://example.com:8443/a/b?x=1&y=2#top"

    def test_drops_user_info(self):
        assert sanitize_url("https://user:pw@example.com/a") == "https://example.com/a"

    def test_unparsable_or_relative_url_unchanged(self):
        assert sanitize_url("/relative/path") == "/relative/path"
        assert sanitize_url("https://example.com:notaport/x") == "https://example.com:notaport/x"
        assert sanitize_url("mailto:someone@example.com") == "mailto:someone@example.com"


class TestStripQueryParams:
    def test_removes_only_named_params(self):
        url = "https://example.com/a?utm_source=x&id=5&utm_medium=y"
        assert strip_query_params(url, ["utm_source", "utm_medium"]) == "https://example.com/a?id=5"

    def test_removes_query_entirely_when_all_params_stripped(self):
        assert strip_query_params("https://example.com/a?sid=1#frag", ["sid"]) == "https://example.com/a#frag"


class TestURLNormalizer:
    def test_dedupes_preserving_first_seen_order(self, make_config):
        n = URLNormalizer(make_config())
        urls = ["https://a/x", "https://a/y", "https://a/x"]
        assert n.normalize(["https://a/x", "https://a/x"]) == ["https://a/x"]
        assert n.normalize(urls) == ["https://a/x", "https://a/y"]

    def test_allow_prefixes_keep_only_matching(self, make_config):
        n = URLNormalizer(make_config(allow_prefixes=["https://example.com/news"]))
        urls = ["https://example.com/news/1", "https://example.com/about", "https://other.org/news/1"]
        assert n.normalize(urls) == ["https://example.com/news/1"]

    def test_empty_allow_prefixes_keep_everything(self, make_config):
        n = URLNormalizer(make_config(allow_prefixes=[]))
        assert n.normalize(["https://a.com/1", "https://b.com/2"]) == ["https://a.com/1", "https://b.com/2"]

    def test_deny_prefixes_drop_matching(self, make_config):
        n = URLNormalizer(make_config(deny_prefixes=["https://example.com/archive"]))
        urls = ["https://example.com/archive/1", "https://example.com/news/2"]
        assert n.normalize(urls) == ["https://example.com/news/2"]

    def test_deny_endings_match_path_case_insensitively(self, make_config):
        n = URLNormalizer(make_config(deny_endings=[".pdf", ".JPG"]))
        urls = [
            "https://example.com/doc.PDF",
            "https://example.com/img.jpg?size=large",
            "https://example.com/page.html",
        ]
        assert n.normalize(urls) == ["https://example.com/page.html"]

    def test_strip_query_params_only_when_active(self, make_config):
        urls = ["https://example.com/a?session=1", "https://example.com/a?session=2"]

        inactive = URLNormalizer(make_config(strip_query_params=["session"]))
        assert inactive.normalize(urls) == urls

        active = URLNormalizer(make_config(strip_query_params_active=True, strip_query_params=["session"]))
        assert active.normalize(urls) == ["https://example.com/a"]

    def test_unparsable_urls_still_filtered_as_given(self, make_config):
        n = URLNormalizer(make_config(deny_prefixes=["/private"]))
        assert n.normalize(["/private/x", "/public/y"]) == ["/public/y"]

    def test_idempotent(self, make_config):
        n = URLNormalizer(
            make_config(
                strip_query_params_active=True,
                strip_query_params=["utm_source"],
                deny_endings=[".pdf"],
                deny_prefixes=["https://example.com/skip"],
            )
        )
        urls = [
            "https://Example.com/a?b=c d&utm_source=x",
            "https://example.com/a?b=c+d",
            "https://example.com:443/x#frag",
            "https://example.com/file.pdf",
            "https://example.com/skip/me",
            "relative/link",
            "https://example.com/q?flag",
        ]
        once = n.normalize(urls)
        assert n.normalize(once) == once
        assert once[0] == "https://example.com/a?b=c+d"
        assert len(once) == 4

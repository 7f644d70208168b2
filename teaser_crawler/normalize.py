from __future__ import annotations

from typing import Iterable
from urllib.parse import parse_qsl, urlencode, urlsplit

from teaser_crawler.config import CrawlerConfig


def _rebuild(scheme: str, netloc: str, path: str, params: list[tuple[str, str]], fragment: str) -> str:
    url = f"{scheme}://{netloc}{path}"
    if params:
        url += "?" + urlencode(params, doseq=True)
    if fragment:
        url += "#" + fragment
    return url


def _canonical_netloc(host: str, port: int | None) -> str:
    if ":" in host:
        host = f"[{host}]"
    return host if port is None else f"{host}:{port}"


def sanitize_url(url: str) -> str:
    """Rebuild ``url`` as ``scheme://host[:port]path[?query][#fragment]``.

    URLs that fail to parse or lack a scheme or host are returned unchanged.
    """

    try:
        p = urlsplit(url)
        port = p.port
    except ValueError:
        return url
    if not p.scheme or not p.hostname:
        return url

    params = parse_qsl(p.query, keep_blank_values=True)
    return _rebuild(p.scheme, _canonical_netloc(p.hostname, port), p.path, params, p.fragment)


def strip_query_params(url: str, names: Iterable[str]) -> str:
    drop = set(names)
    try:
        p = urlsplit(url)
        port = p.port
    except ValueError:
        return url
    if not p.scheme or not p.hostname or not p.query:
        return url

    params = [(k, v) for k, v in parse_qsl(p.query, keep_blank_values=True) if k not in drop]
    return _rebuild(p.scheme, _canonical_netloc(p.hostname, port), p.path, params, p.fragment)


def starts_with_any(url: str, prefixes: Iterable[str]) -> bool:
    return any(prefix and url.startswith(prefix) for prefix in prefixes)


def _has_denied_ending(url: str, endings: Iterable[str]) -> bool:
    try:
        path = urlsplit(url).path
    except ValueError:
        return False
    if not path:
        return False
    path_l = path.lower()
    return any(ending and path_l.endswith(ending.lower()) for ending in endings)


def dedupe(urls: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(urls))


class URLNormalizer:
    """Canonicalizes, filters and deduplicates URL lists.

    Steps, in order: sanitize, strip configured query params, allow-prefix
    filter, deny-prefix filter, deny-ending filter, order-preserving dedupe.
    The result depends only on the input and the configuration.
    """

    def __init__(self, config: CrawlerConfig) -> None:
        self._config = config

    def normalize(self, urls: Iterable[str]) -> list[str]:
        out = [sanitize_url(u) for u in urls]

        if self._config.strip_query_params_active:
            names = self._config.strip_query_params
            out = [strip_query_params(u, names) for u in out]

        allow = self._config.allow_prefixes
        if allow:
            out = [u for u in out if starts_with_any(u, allow)]

        deny = self._config.deny_prefixes
        if deny:
            out = [u for u in out if not starts_with_any(u, deny)]

        endings = self._config.deny_endings
        if endings:
            out = [u for u in out if not _has_denied_ending(u, endings)]

        return dedupe(out)

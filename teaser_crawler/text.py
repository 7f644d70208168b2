from __future__ import annotations

import re

_WS_RE = re.compile(r"\s+")

ELLIPSIS = "..."


def normalize_text(text: str) -> str:
    text = _WS_RE.sub(" ", text).strip()
    return text


def truncate(text: str, max_chars: int) -> str:
    """Cut ``text`` to at most ``max_chars`` characters, ending in an ellipsis when cut.

    A non-positive ``max_chars`` disables truncation.
    """

    text = text.strip()
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    cut = text[: max(0, max_chars - len(ELLIPSIS))].rstrip()
    return cut + ELLIPSIS

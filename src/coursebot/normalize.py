from __future__ import annotations
import html
import re
import unicodedata

_QUOTE_MAP = {
    "’": "'",
    "‘": "'",
    "“": "\"",
    "”": "\"",
}

_TAG_RE = re.compile(r"<[^>]+>")

def _nfkc_normalize(s: str) -> str:
    if not s:
        return ""
    s = unicodedata.normalize("NFKC", s)
    for src, dst in _QUOTE_MAP.items():
        s = s.replace(src, dst)
    return s

def norm_text(s: str) -> str:
    s = _nfkc_normalize(s or "")
    s = s.strip()
    s = re.sub(r"\s+", " ", s)
    return s

def plain_text(rich: str) -> str:
    # answers and chat messages are stored as HTML
    s = _TAG_RE.sub(" ", rich or "")
    return norm_text(html.unescape(s))

def excerpt(rich: str, limit: int = 200) -> str:
    s = plain_text(rich)
    if len(s) <= limit:
        return s
    return s[: max(limit - 1, 0)].rstrip() + "…"

"""URL normalization helpers shared by the preview and categorization steps."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
_HTTP_URL_RE = re.compile(r"https?://\S+", re.IGNORECASE)

TRACKING_PARAMS = frozenset(
    {
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_term",
        "utm_content",
        "fbclid",
        "gclid",
        "igshid",
        "mc_cid",
        "mc_eid",
        "mkt_tok",
    }
)


def normalize_url(url: str) -> str:
    """Trim and ensure a scheme, defaulting to https."""
    value = str(url or "").strip()
    if not value:
        return ""
    if _SCHEME_RE.match(value):
        return value
    return f"https://{value.lstrip('/')}"


def hostname_of(url: str) -> Optional[str]:
    try:
        parsed = urlparse(str(url or "").strip())
    except ValueError:
        return None
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        return None
    return parsed.hostname.lower()


def normalize_url_for_comparison(url: Optional[str]) -> Optional[str]:
    """Normalize a URL for cache-key comparison.

    Drops the fragment and tracking parameters and strips trailing slashes from
    the path. Values that do not parse as absolute URLs are returned trimmed.
    """
    if not url:
        return None
    value = str(url).strip()
    try:
        parsed = urlparse(value)
    except ValueError:
        return value or None
    if not parsed.scheme or not parsed.netloc:
        return value or None

    query_pairs = [
        (key, val)
        for key, val in parse_qsl(parsed.query, keep_blank_values=True)
        if key not in TRACKING_PARAMS
    ]
    path = re.sub(r"/+$", "", parsed.path) or "/"
    return urlunparse(
        (
            parsed.scheme.lower(),
            parsed.netloc.lower(),
            path,
            parsed.params,
            urlencode(query_pairs),
            "",
        )
    )


@dataclass(frozen=True)
class UrlExtraction:
    url: Optional[str]
    cleaned_content: str


def _is_http_url(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme.lower() in {"http", "https"} and bool(parsed.netloc)


def extract_url_from_content(content: Optional[str]) -> UrlExtraction:
    """Find the first http(s) URL in free text.

    The match runs to the next whitespace, so query strings and fragments are
    kept. Scheme-less hosts are not treated as URLs.
    """
    cleaned = str(content or "").strip()
    for match in _HTTP_URL_RE.finditer(cleaned):
        candidate = match.group(0)
        if _is_http_url(candidate):
            return UrlExtraction(url=candidate, cleaned_content=cleaned)
    return UrlExtraction(url=None, cleaned_content=cleaned)

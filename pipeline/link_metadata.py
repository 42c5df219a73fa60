"""Link preview extraction from selector-based scrape results."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin, urlparse

from core.contracts import (
    LinkPreviewMetadata,
    PreviewError,
    ScrapeResultItem,
    ScrapeSelectorResult,
    SelectorSource,
)

from .selectors import (
    AUTHOR_SOURCES,
    CANONICAL_SOURCES,
    DESCRIPTION_SOURCES,
    FAVICON_SOURCES,
    FINAL_URL_SOURCES,
    IMAGE_SOURCES,
    PUBLISHED_TIME_SOURCES,
    PUBLISHER_SOURCES,
    SITE_NAME_SOURCES,
    TITLE_SOURCES,
)

TITLE_MAX_LENGTH = 512
DESCRIPTION_MAX_LENGTH = 2048
SHORT_TEXT_MAX_LENGTH = 256
PUBLISHED_AT_MAX_LENGTH = 128

PREVIEW_SOURCE = "selector_scrape"

_WHITESPACE_RE = re.compile(r"\s+")
_DATA_URI_RE = re.compile(r"^data:", re.IGNORECASE)
_UNSAFE_SCHEME_RE = re.compile(r"^(javascript:|mailto:)", re.IGNORECASE)

SelectorMap = Dict[str, List[ScrapeResultItem]]


@dataclass
class ParsedLinkPreview:
    final_url: str
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    favicon_url: Optional[str] = None
    site_name: Optional[str] = None
    author: Optional[str] = None
    publisher: Optional[str] = None
    published_at: Optional[str] = None
    canonical_url: Optional[str] = None
    raw: Optional[List[ScrapeSelectorResult]] = None


def to_selector_map(results: Optional[List[ScrapeSelectorResult]]) -> SelectorMap:
    selector_map: SelectorMap = {}
    for entry in results or []:
        selector_map[entry.selector] = list(entry.results or [])
    return selector_map


def find_attribute_value(item: Optional[ScrapeResultItem], attribute: str) -> Optional[str]:
    if item is None or not item.attributes:
        return None
    needle = attribute.lower()
    for attr in item.attributes:
        if (attr.name or "").lower() == needle:
            return (attr.value or "").strip() or None
    return None


def _item_text(item: ScrapeResultItem) -> Optional[str]:
    return (item.text or "").strip() or (item.html or "").strip() or None


def get_selector_value(selector_map: SelectorMap, source: SelectorSource) -> Optional[str]:
    """Value of ``source`` from the first candidate element that has one."""
    candidates = selector_map.get(source.selector) or []
    if not candidates:
        return None
    for item in candidates:
        if source.attribute == "text":
            value = _item_text(item)
        else:
            value = find_attribute_value(item, source.attribute)
        if value:
            return value
    return None


def first_from_sources(selector_map: SelectorMap, sources: List[SelectorSource]) -> Optional[str]:
    for source in sources:
        value = get_selector_value(selector_map, source)
        if value and value.strip():
            return value.strip()
    return None


def sanitize_text(value: Optional[str], max_length: int) -> Optional[str]:
    if not value:
        return None
    normalized = _WHITESPACE_RE.sub(" ", value).strip()
    if not normalized:
        return None
    return normalized[:max_length]


def sanitize_url(base_url: str, value: Optional[str], allow_data: bool = False) -> Optional[str]:
    """Resolve ``value`` against ``base_url``; only http(s) results survive."""
    if not value:
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    if _DATA_URI_RE.match(trimmed):
        return trimmed if allow_data else None
    if _UNSAFE_SCHEME_RE.match(trimmed):
        return None
    try:
        resolved = urljoin(base_url, trimmed)
        parsed = urlparse(resolved)
    except ValueError:
        return None
    if parsed.scheme.lower() not in {"http", "https"} or not parsed.netloc:
        return None
    return resolved


def sanitize_image_url(base_url: str, value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    trimmed = value.strip()
    if _DATA_URI_RE.match(trimmed):
        return trimmed
    return sanitize_url(base_url, trimmed, allow_data=True)


def build_debug_raw(results: Optional[List[ScrapeSelectorResult]]) -> Optional[List[ScrapeSelectorResult]]:
    """Keep only the first matched element per selector, without inner HTML."""
    if results is None:
        return None
    return [
        ScrapeSelectorResult(
            selector=entry.selector,
            results=[
                ScrapeResultItem(text=item.text, attributes=list(item.attributes))
                for item in list(entry.results or [])[:1]
            ],
        )
        for entry in results
    ]


def parse_link_preview(
    normalized_url: str,
    results: Optional[List[ScrapeSelectorResult]],
) -> ParsedLinkPreview:
    """Extract preview fields from scrape results for ``normalized_url``."""
    selector_map = to_selector_map(results)

    published_raw = first_from_sources(selector_map, PUBLISHED_TIME_SOURCES)
    canonical_url = sanitize_url(normalized_url, first_from_sources(selector_map, CANONICAL_SOURCES))
    final_candidate = sanitize_url(normalized_url, first_from_sources(selector_map, FINAL_URL_SOURCES))

    return ParsedLinkPreview(
        title=sanitize_text(first_from_sources(selector_map, TITLE_SOURCES), TITLE_MAX_LENGTH),
        description=sanitize_text(first_from_sources(selector_map, DESCRIPTION_SOURCES), DESCRIPTION_MAX_LENGTH),
        image_url=sanitize_image_url(normalized_url, first_from_sources(selector_map, IMAGE_SOURCES)),
        favicon_url=sanitize_url(normalized_url, first_from_sources(selector_map, FAVICON_SOURCES)),
        site_name=sanitize_text(first_from_sources(selector_map, SITE_NAME_SOURCES), SHORT_TEXT_MAX_LENGTH),
        author=sanitize_text(first_from_sources(selector_map, AUTHOR_SOURCES), SHORT_TEXT_MAX_LENGTH),
        publisher=sanitize_text(first_from_sources(selector_map, PUBLISHER_SOURCES), SHORT_TEXT_MAX_LENGTH),
        published_at=published_raw.strip()[:PUBLISHED_AT_MAX_LENGTH] if published_raw else None,
        canonical_url=canonical_url,
        final_url=final_candidate or canonical_url or normalized_url,
        raw=build_debug_raw(results),
    )


def build_success_preview(url: str, parsed: ParsedLinkPreview, now: datetime) -> LinkPreviewMetadata:
    return LinkPreviewMetadata(
        source=PREVIEW_SOURCE,
        status="success",
        fetched_at=now,
        url=url,
        final_url=parsed.final_url,
        canonical_url=parsed.canonical_url,
        title=parsed.title,
        description=parsed.description,
        image_url=parsed.image_url,
        favicon_url=parsed.favicon_url,
        site_name=parsed.site_name,
        author=parsed.author,
        publisher=parsed.publisher,
        published_at=parsed.published_at,
        raw=parsed.raw,
    )


def build_error_preview(
    url: str,
    error_type: str,
    message: Optional[str],
    now: datetime,
    *,
    details: Optional[Dict[str, Any]] = None,
    screenshot_id: Optional[str] = None,
    screenshot_updated_at: Optional[datetime] = None,
) -> LinkPreviewMetadata:
    """Error preview; a previously captured screenshot is carried over."""
    return LinkPreviewMetadata(
        source=PREVIEW_SOURCE,
        status="error",
        fetched_at=now,
        url=url,
        final_url=url,
        screenshot_id=screenshot_id,
        screenshot_updated_at=screenshot_updated_at if screenshot_id else None,
        error=PreviewError(type=error_type, message=message, details=details),
    )

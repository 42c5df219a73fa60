from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Optional

from core import ScrapeAttribute, ScrapeResultItem, ScrapeSelectorResult
from pipeline.link_metadata import (
    build_error_preview,
    build_success_preview,
    parse_link_preview,
    sanitize_image_url,
    sanitize_text,
    sanitize_url,
)
from pipeline.selectors import SCRAPE_ELEMENTS

URL = "https://example.com/articles/launch"
NOW = datetime(2024, 3, 2, 8, 30, tzinfo=timezone.utc)


def _result(selector: str, attrs: Optional[Dict[str, str]] = None, text: Optional[str] = None) -> ScrapeSelectorResult:
    return ScrapeSelectorResult(
        selector=selector,
        results=[
            ScrapeResultItem(
                text=text,
                html="<el>",
                attributes=[ScrapeAttribute(name=name, value=value) for name, value in (attrs or {}).items()],
            )
        ],
    )


def test_empty_og_title_falls_back_to_twitter_title() -> None:
    parsed = parse_link_preview(
        URL,
        [
            _result("meta[property='og:title']", {"content": "   "}),
            _result("meta[name='twitter:title']", {"content": "Page Title"}),
        ],
    )
    assert parsed.title == "Page Title"


def test_higher_priority_source_wins_regardless_of_input_order() -> None:
    parsed = parse_link_preview(
        URL,
        [
            _result("head > title", text="Document title"),
            _result("meta[name='description']", {"content": "Plain description"}),
            _result("meta[property='og:description']", {"content": "OG description"}),
            _result("meta[property='og:title']", {"content": "OG title"}),
        ],
    )
    assert parsed.title == "OG title"
    assert parsed.description == "OG description"


def test_text_sources_read_element_text() -> None:
    parsed = parse_link_preview(URL, [_result("head > title", text="  Spaced   out\n title ")])
    assert parsed.title == "Spaced out title"


def test_relative_urls_resolve_against_page() -> None:
    parsed = parse_link_preview(
        URL,
        [
            _result("meta[property='og:image']", {"content": "/img/cover.png"}),
            _result("link[rel='icon']", {"href": "favicon.ico"}),
            _result("link[rel='canonical']", {"href": "https://example.com/articles/launch?ref=canon"}),
        ],
    )
    assert parsed.image_url == "https://example.com/img/cover.png"
    assert parsed.favicon_url == "https://example.com/articles/favicon.ico"
    assert parsed.canonical_url == "https://example.com/articles/launch?ref=canon"


def test_final_url_prefers_og_url_then_canonical_then_input() -> None:
    with_og = parse_link_preview(
        URL,
        [
            _result("meta[property='og:url']", {"content": "https://example.com/final"}),
            _result("link[rel='canonical']", {"href": "https://example.com/canonical"}),
        ],
    )
    canonical_only = parse_link_preview(URL, [_result("link[rel='canonical']", {"href": "/canonical"})])
    nothing = parse_link_preview(URL, [])

    assert with_og.final_url == "https://example.com/final"
    assert canonical_only.final_url == "https://example.com/canonical"
    assert nothing.final_url == URL
    assert nothing.title is None


def test_unsafe_urls_are_dropped() -> None:
    assert sanitize_url(URL, "javascript:alert(1)") is None
    assert sanitize_url(URL, "mailto:me@example.com") is None
    assert sanitize_url(URL, "data:image/png;base64,AAAA") is None
    assert sanitize_image_url(URL, "data:image/png;base64,AAAA") == "data:image/png;base64,AAAA"
    assert sanitize_url(URL, "   ") is None


def test_sanitize_text_collapses_whitespace_and_truncates() -> None:
    assert sanitize_text(" a \n\t b ", 10) == "a b"
    assert sanitize_text("x" * 20, 5) == "xxxxx"
    assert sanitize_text("   ", 5) is None


def test_debug_raw_keeps_first_item_without_html() -> None:
    entry = ScrapeSelectorResult(
        selector="meta[name='author']",
        results=[
            ScrapeResultItem(text="", html="<meta>", attributes=[ScrapeAttribute(name="content", value="Ada")]),
            ScrapeResultItem(text="", html="<meta>", attributes=[ScrapeAttribute(name="content", value="Bob")]),
        ],
    )
    parsed = parse_link_preview(URL, [entry])

    assert parsed.author == "Ada"
    assert len(parsed.raw) == 1
    assert len(parsed.raw[0].results) == 1
    assert parsed.raw[0].results[0].html is None


def test_success_and_error_previews() -> None:
    parsed = parse_link_preview(URL, [_result("meta[property='og:site_name']", {"content": "Example"})])
    success = build_success_preview(URL, parsed, NOW)
    error = build_error_preview(
        URL, "rate_limit", "slow down", NOW, details={"normalizedUrl": URL}, screenshot_id="asset_1"
    )

    assert success.status == "success"
    assert success.source == "selector_scrape"
    assert success.site_name == "Example"
    assert success.fetched_at == NOW
    assert error.status == "error"
    assert error.error.type == "rate_limit"
    assert error.error.details == {"normalizedUrl": URL}
    assert error.screenshot_id == "asset_1"


def test_scrape_elements_are_unique_and_cover_core_fields() -> None:
    assert len(SCRAPE_ELEMENTS) == len(set(SCRAPE_ELEMENTS))
    assert "meta[property='og:title']" in SCRAPE_ELEMENTS
    assert "head > title" in SCRAPE_ELEMENTS
    assert "link[rel='canonical']" in SCRAPE_ELEMENTS

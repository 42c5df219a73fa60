from __future__ import annotations

from typing import Dict, List, Optional

from core import LinkCategory, ScrapeAttribute, ScrapeResultItem, ScrapeSelectorResult
from pipeline.providers import (
    build_raw_selector_map,
    detect_provider,
    enrich_provider,
    format_count_string,
    format_date,
    format_rating,
)


def _raw(entries: Dict[str, Dict[str, Optional[str]]]) -> List[ScrapeSelectorResult]:
    results = []
    for selector, fields in entries.items():
        attrs = [ScrapeAttribute(name=name, value=value) for name, value in fields.items() if name != "text"]
        results.append(
            ScrapeSelectorResult(selector=selector, results=[ScrapeResultItem(text=fields.get("text"), attributes=attrs)])
        )
    return results


def _facts(enrichment) -> Dict[str, str]:
    return {fact.label: fact.value for fact in enrichment.facts or []}


def test_count_rating_and_date_formatting() -> None:
    assert format_count_string("1.2k") == "1,200"
    assert format_count_string("12345") == "12,345"
    assert format_count_string("3M") == "3,000,000"
    assert format_count_string("n/a") == "n/a"
    assert format_rating("4.236") == "4.24"
    assert format_rating("great") == "great"
    assert format_date("2023-12-21") == "Dec 21, 2023"
    assert format_date("2023-12-21T10:00:00Z") == "Dec 21, 2023"
    assert format_date("someday") is None


def test_detect_provider_prefers_hint_then_known_hosts() -> None:
    assert detect_provider("https://www.github.com/org/repo") == "github"
    assert detect_provider("https://example.com/x", hint="spotify") == "spotify"
    assert detect_provider("https://blog.example.com/x") == "blog.example.com"
    assert detect_provider("not a url") is None


def test_github_facts() -> None:
    raw_map = build_raw_selector_map(
        _raw(
            {
                "a[href$='/stargazers']": {"text": " 1.2k "},
                "a[href$='/network/members']": {"text": "340"},
                "span[itemprop='programmingLanguage']": {"text": "Python"},
                "relative-time": {"text": "on Dec 21, 2023"},
            }
        )
    )
    enrichment = enrich_provider("github", LinkCategory.SOFTWARE, raw_map)

    assert _facts(enrichment) == {
        "Stars": "1,200",
        "Forks": "340",
        "Language": "Python",
        "Updated": "Dec 21, 2023",
    }
    assert enrichment.raw["stars"] == "1,200"
    assert enrichment.raw["watchers"] is None


def test_goodreads_facts_keep_missing_raw_values() -> None:
    raw_map = build_raw_selector_map(
        _raw(
            {
                "meta[property='books:rating:average']": {"content": "4.281"},
                "meta[property='books:rating:count']": {"content": "3400000"},
            }
        )
    )
    enrichment = enrich_provider("goodreads", LinkCategory.BOOK, raw_map)

    assert _facts(enrichment) == {"Average rating": "4.28 / 5", "Ratings": "3,400,000"}
    assert enrichment.raw == {"ratingAverage": "4.28", "ratingCount": "3,400,000", "isbn": None}


def test_amazon_price_with_currency() -> None:
    raw_map = build_raw_selector_map(
        _raw(
            {
                "meta[property='og:price:amount']": {"content": "19.99"},
                "meta[property='og:price:currency']": {"content": "USD"},
            }
        )
    )
    enrichment = enrich_provider("amazon", LinkCategory.PRODUCT, raw_map)
    assert _facts(enrichment) == {"Price": "19.99 USD"}


def test_dribbble_designer_stats_and_tags() -> None:
    raw_map = build_raw_selector_map(
        _raw(
            {
                "meta[property='og:title']": {"content": "Mobile Banking App by Jane Doe on Dribbble"},
                "meta[name='twitter:label1']": {"content": "Likes"},
                "meta[name='twitter:data1']": {"content": "1.5k"},
                "meta[name='keywords']": {"content": "ui, mobile, app, ui"},
                "meta[property='og:image']": {"content": "https://cdn.dribbble.com/shot.png"},
            }
        )
    )
    enrichment = enrich_provider("dribbble", LinkCategory.DESIGN_PORTFOLIO, raw_map)
    facts = _facts(enrichment)

    assert facts["Designer"] == "Jane Doe"
    assert facts["Likes"] == "1,500"
    assert facts["Tags"] == "ui, mobile, app"
    assert enrichment.image_url == "https://cdn.dribbble.com/shot.png"


def test_provider_ignored_for_unrelated_category() -> None:
    raw_map = build_raw_selector_map(_raw({"a[href$='/stargazers']": {"text": "10"}}))
    assert enrich_provider("github", LinkCategory.ARTICLE, raw_map) is None
    assert enrich_provider(None, LinkCategory.SOFTWARE, raw_map) is None

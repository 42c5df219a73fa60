from __future__ import annotations

import pytest

from core import LinkCategory
from pipeline.link_categories import (
    LinkCategoryHints,
    get_link_category_label,
    normalize_link_category,
    resolve_link_category,
)
from pipeline.urls import extract_url_from_content, hostname_of, normalize_url, normalize_url_for_comparison


def test_github_repo_resolves_by_domain_rule() -> None:
    result = resolve_link_category("https://github.com/org/repo")

    assert result.category == LinkCategory.SOFTWARE
    assert result.reason == "domain_rule"
    assert result.provider == "github"
    assert result.confidence == pytest.approx(0.98)
    assert result.rule == "github.com"


def test_recipe_path_resolves_by_path_rule() -> None:
    result = resolve_link_category("https://www.example.com/recipes/pasta")

    assert result.category == LinkCategory.RECIPE
    assert result.reason == "path_rule"
    assert result.confidence == pytest.approx(0.8)


def test_unknown_site_falls_back_to_other() -> None:
    result = resolve_link_category("https://example.org/unknown")

    assert result.category == LinkCategory.OTHER
    assert result.reason == "fallback"
    assert result.confidence == pytest.approx(0.35)


def test_domain_rule_beats_path_rule() -> None:
    result = resolve_link_category("https://github.com/someone/recipes")
    assert result.category == LinkCategory.SOFTWARE
    assert result.reason == "domain_rule"


def test_subdomains_match_domain_rules() -> None:
    assert resolve_link_category("https://gist.github.com/abc").category == LinkCategory.SOFTWARE
    assert resolve_link_category("https://m.imdb.com/title/tt0111161/").category == LinkCategory.MOVIE


def test_spotify_episode_path_is_podcast_but_track_is_music() -> None:
    episode = resolve_link_category("https://open.spotify.com/episode/4rOoJ6Egrf8K2IrywzwOMk")
    track = resolve_link_category("https://open.spotify.com/track/11dFghVXANMlKmJXsNCbNl")

    assert episode.category == LinkCategory.PODCAST
    assert episode.confidence == pytest.approx(0.9)
    assert track.category == LinkCategory.MUSIC


def test_provider_mapping_uses_hostname_substring() -> None:
    result = resolve_link_category("https://m.soundcloud.net/abc")

    assert result.category == LinkCategory.MUSIC
    assert result.reason == "provider_mapping"
    assert result.provider == "soundcloud"


def test_heuristic_uses_title_hint() -> None:
    result = resolve_link_category(
        "https://example.com/2024/hello",
        LinkCategoryHints(site_name="Example", title="Company blog"),
    )

    assert result.category == LinkCategory.ARTICLE
    assert result.reason == "heuristic"


@pytest.mark.parametrize("url", ["", "not a url", "ftp://github.com/org/repo", "mailto:me@example.com"])
def test_invalid_urls_fall_back(url: str) -> None:
    assert resolve_link_category(url).reason == "fallback"


def test_resolution_is_deterministic() -> None:
    url = "https://www.goodreads.com/book/show/5907.The_Hobbit"
    assert resolve_link_category(url) == resolve_link_category(url)


def test_normalize_link_category_accepts_labels_and_keys() -> None:
    assert normalize_link_category("Design Portfolio") == LinkCategory.DESIGN_PORTFOLIO
    assert normalize_link_category("design-portfolio") == LinkCategory.DESIGN_PORTFOLIO
    assert normalize_link_category("TV") == LinkCategory.TV
    assert normalize_link_category("nope") is None
    assert get_link_category_label(LinkCategory.TV) == "TV & Video"


def test_url_helpers() -> None:
    assert normalize_url(" example.com/a ") == "https://example.com/a"
    assert normalize_url("http://example.com") == "http://example.com"
    assert hostname_of("https://WWW.Example.com/x") == "www.example.com"
    assert hostname_of("ftp://example.com") is None
    assert (
        normalize_url_for_comparison("HTTPS://Example.com/Path/?utm_source=x&id=1#frag")
        == "https://example.com/Path?id=1"
    )
    assert normalize_url_for_comparison("https://example.com") == "https://example.com/"
    assert normalize_url_for_comparison("  relative/path ") == "relative/path"


@pytest.mark.parametrize(
    ("content", "expected"),
    [
        ("https://example.com", "https://example.com"),
        ("Check this out: https://example.com/path?q=1#top and more", "https://example.com/path?q=1#top"),
        ("first http://a.example.com then https://b.example.com", "http://a.example.com"),
        ("https://localhost:3000/path", "https://localhost:3000/path"),
        ("Just some text", None),
        ("htp://invalid-url", None),
        ("example.com/path", None),
        ("https://", None),
    ],
)
def test_extract_url_from_content(content: str, expected) -> None:
    assert extract_url_from_content(content).url == expected


def test_extract_url_trims_content() -> None:
    extraction = extract_url_from_content("  Visit https://example.com today \n")

    assert extraction.url == "https://example.com"
    assert extraction.cleaned_content == "Visit https://example.com today"
    assert extract_url_from_content("   ").cleaned_content == ""
    assert extract_url_from_content(None).url is None

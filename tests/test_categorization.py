from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from core import (
    Card,
    CardMetadata,
    CardType,
    LinkCategory,
    LinkCategoryMetadata,
    LinkPreviewMetadata,
    ScrapeAttribute,
    ScrapeResultItem,
    ScrapeSelectorResult,
    StructuredData,
    StructuredDataMeta,
)
from pipeline.categorization import CategoryCachePolicy, enrich_link_category, plan_categorization
from pipeline.link_categories import resolve_link_category
from utils.exceptions import CardNotFoundError, InvalidCardError, MissingDataError

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)
REPO = "https://github.com/org/repo"


def _card(url=REPO, category=None, preview=None, card_type=CardType.LINK) -> Card:
    return Card(
        id="card_1",
        type=card_type,
        content=url or "",
        url=url,
        metadata=CardMetadata(link_preview=preview, link_category=category),
    )


def _cached(source_url=REPO, age=timedelta(days=1), raw=None) -> LinkCategoryMetadata:
    return LinkCategoryMetadata(
        category=LinkCategory.SOFTWARE,
        confidence=0.98,
        detected_provider="github",
        fetched_at=NOW - age,
        source_url=source_url,
        raw=raw,
    )


def test_fresh_cache_for_same_url_is_skipped() -> None:
    cached = _cached(source_url=REPO + "/?utm_source=feed")
    plan = plan_categorization(_card(category=cached), NOW)

    assert plan.mode == "skipped"
    assert plan.existing == cached
    assert plan.resolution is None


def test_stale_cache_is_classified_again() -> None:
    plan = plan_categorization(_card(category=_cached(age=timedelta(days=31))), NOW)

    assert plan.mode == "classified"
    assert plan.resolution.category == LinkCategory.SOFTWARE
    assert plan.should_fetch_structured is True


def test_url_change_invalidates_cache() -> None:
    plan = plan_categorization(_card(url="https://www.allrecipes.com/recipes/1", category=_cached()), NOW)

    assert plan.mode == "classified"
    assert plan.resolution.category == LinkCategory.RECIPE


def test_custom_ttl_is_honoured() -> None:
    policy = CategoryCachePolicy(ttl=timedelta(hours=1))
    plan = plan_categorization(_card(category=_cached(age=timedelta(hours=2))), NOW, policy)
    assert plan.mode == "classified"


def test_structured_cache_reused_only_when_fresh_and_same_url() -> None:
    policy = CategoryCachePolicy()
    fresh = _cached(
        age=timedelta(days=40),
        raw={"structured": {"name": "repo"}, "structuredMeta": {"fetched_at": (NOW - timedelta(days=2)).isoformat()}},
    )
    stale = _cached(
        age=timedelta(days=40),
        raw={"structured": {"name": "repo"}, "structuredMeta": {"fetched_at": (NOW - timedelta(days=45)).isoformat()}},
    )

    assert policy.structured_reusable(fresh, REPO, NOW) is True
    assert policy.structured_reusable(stale, REPO, NOW) is False
    assert policy.structured_reusable(fresh, "https://github.com/other/repo", NOW) is False
    assert plan_categorization(_card(category=fresh), NOW).should_fetch_structured is False


def test_plan_errors() -> None:
    with pytest.raises(CardNotFoundError):
        plan_categorization(None, NOW, card_id="missing")
    with pytest.raises(InvalidCardError):
        plan_categorization(_card(card_type=CardType.TEXT), NOW)
    with pytest.raises(MissingDataError):
        plan_categorization(_card(url=None), NOW)


def test_scheme_less_url_is_categorized_like_https() -> None:
    card = _card(url="github.com/teak/app")

    plan = plan_categorization(card, NOW)
    metadata = enrich_link_category(card, plan.resolution, NOW)

    assert plan.mode == "classified"
    assert plan.source_url == "https://github.com/teak/app"
    assert plan.resolution.category == LinkCategory.SOFTWARE
    assert metadata.detected_provider == "github"
    assert metadata.source_url == "https://github.com/teak/app"

    cached = card.model_copy(update={"metadata": CardMetadata(link_category=metadata)})
    assert plan_categorization(cached, NOW).mode == "skipped"


def _github_preview() -> LinkPreviewMetadata:
    return LinkPreviewMetadata(
        status="success",
        url=REPO,
        final_url=REPO,
        title="org/repo",
        site_name="GitHub",
        image_url="https://opengraph.githubassets.com/repo.png",
        raw=[
            ScrapeSelectorResult(
                selector="a[href$='/stargazers']",
                results=[ScrapeResultItem(text="2.5k", attributes=[ScrapeAttribute(name="href", value="/stargazers")])],
            )
        ],
    )


def test_enrich_merges_provider_and_structured_data() -> None:
    card = _card(preview=_github_preview())
    structured = StructuredData(
        entities=[{"@type": "SoftwareSourceCode", "name": "repo", "operatingSystem": "Linux"}],
        meta=StructuredDataMeta(etag="v1", fetched_at=NOW),
    )

    metadata = enrich_link_category(card, resolve_link_category(REPO), NOW, structured)
    facts = {fact.label: fact.value for fact in metadata.facts}

    assert metadata.category == LinkCategory.SOFTWARE
    assert metadata.detected_provider == "github"
    assert metadata.fetched_at == NOW
    assert metadata.image_url == "https://opengraph.githubassets.com/repo.png"
    assert facts["Stars"] == "2,500"
    assert facts["Platform"] == "Linux"
    assert metadata.raw["provider"]["name"] == "github"
    assert metadata.raw["structured"]["name"] == "repo"
    assert metadata.raw["structuredMeta"]["etag"] == "v1"


def test_enrich_drops_inherited_raw_for_different_url() -> None:
    old = _cached(source_url="https://github.com/old/repo", raw={"structured": {"name": "old"}})
    metadata = enrich_link_category(_card(category=old), resolve_link_category(REPO), NOW)

    assert "structured" not in (metadata.raw or {})


def test_enrich_keeps_inherited_structured_raw_for_same_url() -> None:
    old = _cached(raw={"structured": {"name": "repo"}, "structuredMeta": {"etag": "v0"}})
    metadata = enrich_link_category(_card(category=old), resolve_link_category(REPO), NOW)

    assert metadata.raw["structured"] == {"name": "repo"}

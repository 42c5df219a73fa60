"""Link categorization: cache planning and final metadata assembly.

The category cache and the structured-data sub-cache share one freshness
policy. Cached structured data is only reused when it belongs to the same
normalized URL and is still inside the freshness window.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Literal, Optional

from core.contracts import (
    Card,
    CardType,
    LinkCategoryDetail,
    LinkCategoryMetadata,
    StructuredData,
)
from utils.exceptions import CardNotFoundError, InvalidCardError, MissingDataError

from .link_categories import LinkCategoryHints, LinkCategoryResolution, resolve_link_category
from .providers import build_raw_selector_map, detect_provider, enrich_provider, merge_facts
from .structured_data import enrich_with_structured_data
from .urls import normalize_url, normalize_url_for_comparison

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = timedelta(days=30)

CategorizationMode = Literal["classified", "skipped"]


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class CategoryCachePolicy:
    """Freshness rule for cached link categories and their structured data."""

    ttl: timedelta = DEFAULT_CACHE_TTL

    def is_fresh(self, fetched_at: Optional[datetime], now: datetime) -> bool:
        if fetched_at is None:
            return False
        return now - fetched_at < self.ttl

    def category_reusable(self, existing: Optional[LinkCategoryMetadata], source_url: str, now: datetime) -> bool:
        if existing is None or not source_url:
            return False
        cached_url = normalize_url_for_comparison(existing.source_url) or existing.source_url
        return cached_url == source_url and self.is_fresh(existing.fetched_at, now)

    def structured_reusable(self, existing: Optional[LinkCategoryMetadata], source_url: str, now: datetime) -> bool:
        if existing is None or not existing.raw or not existing.raw.get("structured"):
            return False
        cached_url = normalize_url_for_comparison(existing.source_url) or existing.source_url
        if cached_url != source_url:
            return False
        meta = existing.raw.get("structuredMeta") or {}
        fetched_at = _as_datetime(meta.get("fetched_at")) if isinstance(meta, dict) else None
        return self.is_fresh(fetched_at or existing.fetched_at, now)


@dataclass
class CategorizationPlan:
    mode: CategorizationMode
    source_url: str
    resolution: Optional[LinkCategoryResolution] = None
    existing: Optional[LinkCategoryMetadata] = None
    should_fetch_structured: bool = False


def _same_url(left: Optional[str], right: Optional[str]) -> bool:
    return (normalize_url_for_comparison(left) or left) == (normalize_url_for_comparison(right) or right)


def card_source_url(card: Card) -> str:
    preview = card.successful_preview
    raw = card.url or (preview.final_url if preview else None) or (preview.url if preview else None) or ""
    return normalize_url(raw)


def plan_categorization(
    card: Optional[Card],
    now: datetime,
    policy: Optional[CategoryCachePolicy] = None,
    card_id: Optional[str] = None,
) -> CategorizationPlan:
    """Decide whether cached metadata can be reused or the link must be resolved."""
    policy = policy or CategoryCachePolicy()
    if card is None:
        raise CardNotFoundError(card_id or "unknown")
    if card.type != CardType.LINK:
        raise InvalidCardError(f"Card {card.id} is not a link card (type: {card.type.value})")

    raw_source = card_source_url(card)
    source_url = normalize_url_for_comparison(raw_source) or raw_source
    existing = card.metadata.link_category

    if policy.category_reusable(existing, source_url, now):
        logger.info("categorize skip card_id=%s category=%s", card.id, existing.category.value)
        return CategorizationPlan(mode="skipped", source_url=source_url, existing=existing)

    if not source_url:
        raise MissingDataError(f"Card {card.id} has no URL to categorize")

    preview = card.successful_preview
    resolution = resolve_link_category(
        source_url,
        LinkCategoryHints(
            site_name=preview.site_name if preview else None,
            title=(preview.title or preview.description) if preview else None,
        ),
    )
    if resolution.reason == "fallback":
        logger.info("categorize fallback card_id=%s url=%s", card.id, source_url)
    else:
        logger.info(
            "categorize resolved card_id=%s category=%s reason=%s rule=%s",
            card.id,
            resolution.category.value,
            resolution.reason,
            resolution.rule,
        )

    return CategorizationPlan(
        mode="classified",
        source_url=source_url,
        resolution=resolution,
        existing=existing,
        should_fetch_structured=not policy.structured_reusable(existing, source_url, now),
    )


def enrich_link_category(
    card: Card,
    resolution: LinkCategoryResolution,
    now: datetime,
    structured: Optional[StructuredData] = None,
) -> LinkCategoryMetadata:
    """Combine resolver output with provider and structured-data enrichment."""
    preview = card.successful_preview
    source_url = card_source_url(card)
    image_url = preview.image_url if preview else None
    facts: List[LinkCategoryDetail] = []

    provider = detect_provider(source_url, resolution.provider)
    existing = card.metadata.link_category
    raw: Optional[Dict[str, Any]] = None
    if existing and existing.raw and _same_url(existing.source_url, source_url):
        raw = dict(existing.raw)

    enrichment = enrich_provider(
        provider,
        resolution.category,
        build_raw_selector_map(preview.raw if preview else None),
    )
    if enrichment is not None:
        image_url = image_url or enrichment.image_url
        merge_facts(facts, enrichment.facts)

    if provider and (enrichment and enrichment.raw or not (raw or {}).get("provider")):
        previous = (raw or {}).get("provider")
        raw = {
            **(raw or {}),
            "provider": {
                **(previous if isinstance(previous, dict) else {}),
                "name": provider,
                **((enrichment.raw if enrichment else None) or {}),
            },
        }
    elif enrichment is not None and enrichment.raw:
        raw = {**(raw or {}), "provider": enrichment.raw}

    if structured is not None and structured.entities:
        structured_enrichment = enrich_with_structured_data(resolution.category, structured.entities)
        if structured_enrichment is not None:
            image_url = image_url or structured_enrichment.image_url
            merge_facts(facts, structured_enrichment.facts)
            raw = {
                **(raw or {}),
                "structured": structured_enrichment.raw,
                "structuredMeta": structured.meta.model_dump(mode="json") if structured.meta else None,
            }

    return LinkCategoryMetadata(
        category=resolution.category,
        confidence=resolution.confidence,
        detected_provider=provider,
        fetched_at=now,
        source_url=source_url,
        image_url=image_url,
        facts=facts or None,
        raw=raw,
    )

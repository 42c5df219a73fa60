"""JSON-LD structured data extraction and per-category enrichment."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from core.contracts import LinkCategory, LinkCategoryDetail, StructuredData, StructuredDataMeta

from .providers import ProviderEnrichment, format_date

logger = logging.getLogger(__name__)

STRUCTURED_DATA_MAX_ITEMS = 8

STRUCTURED_DATA_FIELDS = (
    "name",
    "url",
    "image",
    "@type",
    "sameAs",
    "datePublished",
    "dateModified",
    "startDate",
    "endDate",
    "author",
    "creator",
    "publisher",
    "headline",
    "description",
    "aggregateRating",
    "recipeIngredient",
    "recipeInstructions",
    "offers",
    "genre",
    "keywords",
    "duration",
    "performer",
    "byArtist",
)

_DURATION_RE = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$", re.IGNORECASE)

# category -> schema.org types searched in order
CATEGORY_ENTITY_TYPES: Dict[LinkCategory, List[str]] = {
    LinkCategory.BOOK: ["Book"],
    LinkCategory.MOVIE: ["Movie", "VideoObject", "CreativeWork"],
    LinkCategory.TV: ["TVSeries", "TVEpisode", "VideoObject"],
    LinkCategory.ARTICLE: ["NewsArticle", "Article", "BlogPosting"],
    LinkCategory.NEWS: ["NewsArticle", "Article", "BlogPosting"],
    LinkCategory.PODCAST: ["PodcastEpisode", "PodcastSeries", "AudioObject"],
    LinkCategory.MUSIC: ["MusicRecording", "MusicAlbum", "MusicPlaylist"],
    LinkCategory.PRODUCT: ["Product", "Offer"],
    LinkCategory.RECIPE: ["Recipe"],
    LinkCategory.COURSE: ["Course", "EducationalOccupationalProgram"],
    LinkCategory.RESEARCH: ["ScholarlyArticle", "ResearchArticle", "Report"],
    LinkCategory.EVENT: ["Event", "MusicEvent", "BusinessEvent"],
    LinkCategory.SOFTWARE: ["SoftwareApplication", "SoftwareSourceCode"],
    LinkCategory.DESIGN_PORTFOLIO: ["CreativeWork", "CollectionPage", "Portfolio"],
}


def _to_list(value: Any) -> List[Any]:
    if not value:
        return []
    return value if isinstance(value, list) else [value]


def pick_fields(value: Dict[str, Any], fields=STRUCTURED_DATA_FIELDS) -> Dict[str, Any]:
    return {field: value[field] for field in fields if value.get(field) is not None}


def _fingerprint(item: Dict[str, Any]) -> str:
    return json.dumps(pick_fields(item, ("@type", "name", "url")), sort_keys=True, default=str)


def _is_ld_json(script_type: Optional[str]) -> bool:
    return bool(script_type) and script_type.strip().lower() == "application/ld+json"


def parse_structured_data(html: str, max_items: int = STRUCTURED_DATA_MAX_ITEMS) -> List[Dict[str, Any]]:
    """Collect distinct JSON-LD objects from ``html``, at most ``max_items``."""
    soup = BeautifulSoup(html or "", "lxml")
    entities: List[Dict[str, Any]] = []
    seen = set()
    for script in soup.find_all("script", attrs={"type": _is_ld_json}):
        text = script.get_text().strip()
        if not text:
            continue
        try:
            parsed = json.loads(text)
        except ValueError as exc:
            logger.warning("Failed to parse JSON-LD block: %s", exc)
            continue
        for item in _to_list(parsed):
            if not isinstance(item, dict):
                continue
            fingerprint = _fingerprint(item)
            if fingerprint in seen:
                continue
            seen.add(fingerprint)
            entities.append(item)
            if len(entities) >= max_items:
                return entities
    return entities


def _matches_type(entity: Dict[str, Any], types: List[str]) -> bool:
    entity_types = {str(entry).lower() for entry in _to_list(entity.get("@type")) if isinstance(entry, str)}
    return any(candidate.lower() in entity_types for candidate in types)


def find_by_type(entities: List[Dict[str, Any]], types: List[str]) -> Optional[Dict[str, Any]]:
    return next((entity for entity in entities if _matches_type(entity, types)), None)


def _string_array(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, list):
        names = [entry if isinstance(entry, str) else (entry or {}).get("name") for entry in value if entry]
        return [name for name in names if isinstance(name, str)]
    if isinstance(value, str):
        return [value]
    if isinstance(value, dict) and isinstance(value.get("name"), str):
        return [value["name"]]
    return []


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value or None
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, dict) and value.get("name"):
        return str(value["name"])
    return None


def _image(value: Any) -> Optional[str]:
    if not value:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        first = value[0]
        if isinstance(first, str):
            return first
        if isinstance(first, dict) and first.get("url"):
            return first["url"]
        return None
    if isinstance(value, dict) and value.get("url"):
        return value["url"]
    return None


def format_duration(value: Optional[str]) -> Optional[str]:
    """``"PT1H2M"`` -> ``"1h 2m"``."""
    if not value:
        return None
    match = _DURATION_RE.match(str(value))
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    parts = [f"{amount}{unit}" for amount, unit in ((hours, "h"), (minutes, "m"), (seconds, "s")) if amount]
    return " ".join(parts) or None


def _rating(entity: Dict[str, Any]) -> Dict[str, Any]:
    rating = entity.get("aggregateRating")
    return rating if isinstance(rating, dict) else {}


def _category_facts(category: LinkCategory, entity: Dict[str, Any]) -> List[tuple]:
    rating = _rating(entity)
    if category == LinkCategory.BOOK:
        return [
            ("Authors", ", ".join(_string_array(entity.get("author")))),
            ("Rating", _text(rating.get("ratingValue"))),
            ("Reviews", _text(rating.get("ratingCount") or rating.get("reviewCount"))),
            ("Length", _text(entity.get("numberOfPages") or entity.get("bookFormat"))),
            ("Published", format_date(entity.get("datePublished"))),
        ]
    if category == LinkCategory.MOVIE:
        return [
            ("Rating", _text(rating.get("ratingValue"))),
            ("Votes", _text(rating.get("ratingCount") or rating.get("reviewCount"))),
            ("Release", format_date(entity.get("datePublished") or entity.get("dateCreated"))),
        ]
    if category == LinkCategory.TV:
        return [
            ("Seasons", _text(entity.get("numberOfSeasons") or entity.get("seasonNumber"))),
            ("Episodes", _text(entity.get("numberOfEpisodes"))),
            ("First aired", format_date(entity.get("datePublished") or entity.get("dateCreated"))),
        ]
    if category in (LinkCategory.ARTICLE, LinkCategory.NEWS):
        published = format_date(entity.get("datePublished"))
        updated = format_date(entity.get("dateModified"))
        return [("Published", published), ("Updated", updated if updated != published else None)]
    if category == LinkCategory.PODCAST:
        return [
            ("Duration", format_duration(entity.get("duration"))),
            ("Series", _text(entity.get("partOfSeries")) or _text(entity.get("isPartOf"))),
        ]
    if category == LinkCategory.MUSIC:
        artists = entity.get("byArtist") or entity.get("creator") or entity.get("performer")
        return [
            ("Artist", ", ".join(_string_array(artists))),
            ("Length", format_duration(entity.get("duration"))),
        ]
    if category == LinkCategory.PRODUCT:
        offers = entity.get("offers") if isinstance(entity.get("offers"), dict) else {}
        price = None
        if offers.get("price"):
            price = f"{offers['price']} {offers.get('priceCurrency') or ''}".strip()
        return [("Price", price), ("Brand", _text(entity.get("brand")))]
    if category == LinkCategory.RECIPE:
        timing = " · ".join(
            f"{label} {value}"
            for label, value in (
                ("Prep", format_duration(entity.get("prepTime"))),
                ("Cook", format_duration(entity.get("cookTime"))),
                ("Total", format_duration(entity.get("totalTime"))),
            )
            if value
        )
        ingredients = _string_array(entity.get("recipeIngredient"))
        return [
            ("Servings", _text(entity.get("recipeYield"))),
            ("Timing", timing or None),
            ("Ingredients", ", ".join(ingredients[:6]) or None),
        ]
    if category == LinkCategory.COURSE:
        return [("Provider", _text(entity.get("provider")) or _text(entity.get("publisher")))]
    if category == LinkCategory.RESEARCH:
        return [
            ("Authors", ", ".join(_string_array(entity.get("author")))),
            ("Published", format_date(entity.get("datePublished"))),
        ]
    if category == LinkCategory.EVENT:
        start = format_date(entity.get("startDate"))
        end = format_date(entity.get("endDate"))
        dates = f"{start} → {end}" if start and end and start != end else start or end
        location = entity.get("location")
        location_name = _text(location.get("name")) if isinstance(location, dict) else None
        return [("Dates", dates), ("Location", location_name or _text(location))]
    if category == LinkCategory.SOFTWARE:
        return [
            ("Platform", _text(entity.get("operatingSystem"))),
            ("Category", _text(entity.get("applicationCategory"))),
        ]
    if category == LinkCategory.DESIGN_PORTFOLIO:
        return [("Creator", _text(entity.get("author")) or _text(entity.get("creator")))]
    return []


def enrich_with_structured_data(
    category: LinkCategory,
    entities: List[Dict[str, Any]],
) -> Optional[ProviderEnrichment]:
    """Facts, image and a raw field subset from the entity matching ``category``."""
    types = CATEGORY_ENTITY_TYPES.get(LinkCategory(category))
    if not types:
        return None
    entity = find_by_type(entities, types)
    if entity is None:
        return None

    facts = [LinkCategoryDetail(label=label, value=value) for label, value in _category_facts(category, entity) if value]
    return ProviderEnrichment(
        image_url=_image(entity.get("image")),
        facts=facts or None,
        raw=pick_fields(entity),
    )


def structured_data_from_html(html: str, max_items: int = STRUCTURED_DATA_MAX_ITEMS, **meta: Any) -> StructuredData:
    return StructuredData(entities=parse_structured_data(html, max_items), meta=StructuredDataMeta(**meta))

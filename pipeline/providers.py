"""Provider-specific enrichment from the raw selector results of a link preview."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from core.contracts import LinkCategory, LinkCategoryDetail, ScrapeResultItem, ScrapeSelectorResult

from .urls import hostname_of

RawSelectorMap = Dict[str, ScrapeResultItem]

_LEADING_NUMBER_RE = re.compile(r"^\s*[-+]?(\d+(\.\d*)?|\.\d+)")
_DATE_FORMATS = ("%Y-%m-%d", "%b %d, %Y", "%B %d, %Y", "%d %b %Y", "%d %B %Y", "%Y/%m/%d")

# hostname substring -> provider name, checked in order
_PROVIDER_HOSTS = (
    ("github.com", "github"),
    ("goodreads.com", "goodreads"),
    ("amazon.", "amazon"),
    ("imdb.com", "imdb"),
    ("netflix.com", "netflix"),
    ("behance.net", "behance"),
    ("dribbble.com", "dribbble"),
    ("spotify.com", "spotify"),
    ("apple.com", "apple"),
    ("youtube.com", "youtube"),
    ("youtu.be", "youtube"),
    ("medium.com", "medium"),
    ("substack.com", "substack"),
)


@dataclass
class ProviderEnrichment:
    image_url: Optional[str] = None
    facts: Optional[List[LinkCategoryDetail]] = None
    raw: Optional[Dict[str, Any]] = None


def normalize_whitespace(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    collapsed = re.sub(r"\s+", " ", value).strip()
    return collapsed or None


def build_raw_selector_map(raw: Optional[Sequence[ScrapeSelectorResult]]) -> RawSelectorMap:
    raw_map: RawSelectorMap = {}
    for entry in raw or []:
        if entry.selector and entry.results:
            raw_map[entry.selector] = entry.results[0]
    return raw_map


def get_raw_text(raw_map: RawSelectorMap, selector: str) -> Optional[str]:
    entry = raw_map.get(selector)
    return normalize_whitespace(entry.text) if entry else None


def get_raw_attribute(raw_map: RawSelectorMap, selector: str, attribute: str) -> Optional[str]:
    entry = raw_map.get(selector)
    if entry is None or not entry.attributes:
        return None
    needle = attribute.lower()
    for attr in entry.attributes:
        if attr.name and attr.name.lower() == needle:
            return normalize_whitespace(attr.value)
    return None


def _parse_float(value: str) -> Optional[float]:
    match = _LEADING_NUMBER_RE.match(value)
    return float(match.group(0)) if match else None


def _parse_count(value: Optional[str]) -> Optional[int]:
    trimmed = normalize_whitespace(value)
    if not trimmed:
        return None
    token = next(
        (segment for segment in trimmed.split(" ") if re.search(r"\d", segment.replace(",", "").replace(".", ""))),
        trimmed,
    )
    lower = token.lower()
    multiplier = 1_000 if lower.endswith("k") else 1_000_000 if lower.endswith("m") else 1
    numeric = lower if multiplier == 1 else lower[:-1]
    parsed = _parse_float(numeric.replace(",", ""))
    if parsed is None:
        return None
    return int(math.floor(parsed * multiplier + 0.5))


def format_count_string(value: Optional[str]) -> Optional[str]:
    """``"1.2k"`` -> ``"1,200"``; non-numeric input is returned whitespace-normalized."""
    number = _parse_count(value)
    if number is not None:
        return f"{number:,}"
    return normalize_whitespace(value)


def format_rating(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    numeric = _parse_float(value)
    if numeric is None:
        return normalize_whitespace(value)
    return f"{numeric:.2f}"


def _parse_date(value: str) -> Optional[datetime]:
    text = value.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def format_date(value: Optional[str]) -> Optional[str]:
    """Render a date as ``"Dec 21, 2023"``; unparseable input yields None."""
    if not value:
        return None
    parsed = _parse_date(str(value))
    if parsed is None:
        return None
    return f"{parsed:%b} {parsed.day}, {parsed.year}"


def merge_facts(target: List[LinkCategoryDetail], incoming: Optional[Sequence[LinkCategoryDetail]]) -> None:
    if not incoming:
        return
    seen = {f"{fact.label}::{fact.value}" for fact in target}
    for fact in incoming:
        key = f"{fact.label}::{fact.value}"
        if key not in seen:
            target.append(fact)
            seen.add(key)


def detect_provider(url: Optional[str], hint: Optional[str] = None) -> Optional[str]:
    if hint:
        return hint
    hostname = hostname_of(url or "")
    if not hostname:
        return None
    for needle, provider in _PROVIDER_HOSTS:
        if needle in hostname:
            return provider
    return hostname


def _compact(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    cleaned = {key: value for key, value in data.items() if value is not None}
    return cleaned or None


def enrich_github(raw_map: RawSelectorMap) -> Optional[ProviderEnrichment]:
    stars = format_count_string(get_raw_text(raw_map, "a[href$='/stargazers']"))
    forks = format_count_string(get_raw_text(raw_map, "a[href$='/network/members']"))
    watchers = format_count_string(get_raw_text(raw_map, "a[href$='/watchers']"))
    language = get_raw_text(raw_map, "span[itemprop='programmingLanguage']")
    updated_raw = get_raw_text(raw_map, "relative-time")

    facts: List[LinkCategoryDetail] = []
    for label, value in (("Stars", stars), ("Forks", forks), ("Watchers", watchers), ("Language", language)):
        if value:
            facts.append(LinkCategoryDetail(label=label, value=value))
    if updated_raw:
        updated = normalize_whitespace(re.sub(r"^on\s+", "", updated_raw, flags=re.IGNORECASE))
        if updated:
            facts.append(LinkCategoryDetail(label="Updated", value=updated))

    if not facts:
        return None
    return ProviderEnrichment(
        facts=facts,
        raw={"stars": stars, "forks": forks, "watchers": watchers, "language": language, "updated": updated_raw},
    )


def enrich_goodreads(raw_map: RawSelectorMap) -> Optional[ProviderEnrichment]:
    average = format_rating(get_raw_attribute(raw_map, "meta[property='books:rating:average']", "content"))
    count = format_count_string(get_raw_attribute(raw_map, "meta[property='books:rating:count']", "content"))
    isbn = get_raw_attribute(raw_map, "meta[property='books:isbn']", "content")

    facts: List[LinkCategoryDetail] = []
    if average:
        facts.append(LinkCategoryDetail(label="Average rating", value=f"{average} / 5"))
    if count:
        facts.append(LinkCategoryDetail(label="Ratings", value=count))
    if isbn:
        facts.append(LinkCategoryDetail(label="ISBN", value=isbn))

    if not facts:
        return None
    return ProviderEnrichment(facts=facts, raw={"ratingAverage": average, "ratingCount": count, "isbn": isbn})


def enrich_amazon(raw_map: RawSelectorMap) -> Optional[ProviderEnrichment]:
    price = (
        get_raw_text(raw_map, "#priceblock_ourprice")
        or get_raw_text(raw_map, "#priceblock_dealprice")
        or get_raw_text(raw_map, ".a-price .a-offscreen")
        or get_raw_attribute(raw_map, "meta[name='price']", "content")
        or get_raw_attribute(raw_map, "meta[property='og:price:amount']", "content")
    )
    currency = get_raw_attribute(raw_map, "meta[property='og:price:currency']", "content")
    if not price and not currency:
        return None

    label = f"{price or ''} {currency}".strip() if currency else price
    return ProviderEnrichment(
        facts=[LinkCategoryDetail(label="Price", value=label)] if label else None,
        raw={"price": price, "currency": currency},
    )


def enrich_imdb(raw_map: RawSelectorMap) -> Optional[ProviderEnrichment]:
    rating = format_rating(
        get_raw_attribute(raw_map, "meta[name='imdb:rating']", "content")
        or get_raw_text(raw_map, "span[data-testid='hero-rating-bar__aggregate-rating__score']")
    )
    votes = format_count_string(get_raw_attribute(raw_map, "meta[name='imdb:votes']", "content"))
    runtime = get_raw_text(raw_map, "span[data-testid='title-techspec_runtime'] span")
    release_raw = get_raw_attribute(raw_map, "meta[property='video:release_date']", "content")
    release = format_date(release_raw)

    facts: List[LinkCategoryDetail] = []
    if rating:
        facts.append(LinkCategoryDetail(label="IMDb rating", value=f"{rating} / 10"))
    for label, value in (("Votes", votes), ("Runtime", runtime), ("Released", release)):
        if value:
            facts.append(LinkCategoryDetail(label=label, value=value))

    if not facts:
        return None
    return ProviderEnrichment(
        facts=facts,
        raw={"rating": rating, "votes": votes, "runtime": runtime, "releaseDate": release_raw},
    )


_DRIBBBLE_STAT_SELECTORS = {
    "likes": (
        "a[href$='/likes']",
        "[data-testid='shot-likes']",
        "[data-testid='shot-likes-count']",
        ".shot-stats [data-label='Likes']",
    ),
    "views": (
        "a[href$='/views']",
        "[data-testid='shot-views']",
        "[data-testid='shot-views-count']",
        ".shot-stats [data-label='Views']",
    ),
    "comments": (
        "a[href$='/comments']",
        "[data-testid='shot-comments']",
        "[data-testid='shot-comments-count']",
        ".shot-stats [data-label='Comments']",
    ),
}
_DRIBBBLE_DESIGNER_SELECTORS = ("meta[name='twitter:creator']", "a[rel='author']", ".shot-byline a")
_DRIBBBLE_KEYWORD_SELECTORS = ("meta[name='keywords']", "meta[name='parsely-tags']", "meta[property='article:tag']")


def _selector_value(raw_map: RawSelectorMap, selector: str) -> Optional[str]:
    if selector.startswith("meta["):
        return get_raw_attribute(raw_map, selector, "content")
    return get_raw_text(raw_map, selector)


def _dribbble_twitter_stats(raw_map: RawSelectorMap) -> Dict[str, str]:
    stats: Dict[str, str] = {}
    for idx in range(1, 5):
        label = get_raw_attribute(raw_map, f"meta[name='twitter:label{idx}']", "content")
        value = get_raw_attribute(raw_map, f"meta[name='twitter:data{idx}']", "content")
        if not (label and value):
            continue
        lowered = label.lower()
        key = next((name for name in ("like", "view", "comment") if name in lowered), None)
        if key and f"{key}s" not in stats:
            stats[f"{key}s"] = value
    return stats


def _dribbble_designer(raw_map: RawSelectorMap) -> Optional[str]:
    candidates: List[str] = []
    title = get_raw_attribute(raw_map, "meta[property='og:title']", "content") or get_raw_text(raw_map, "head > title")
    if title:
        by_idx = title.lower().rfind(" by ")
        if by_idx != -1:
            tail = re.sub(r"\|\s*dribbble$", "", title[by_idx + 4:], flags=re.IGNORECASE)
            tail = normalize_whitespace(re.sub(r"\son\s+dribbble$", "", tail.strip(), flags=re.IGNORECASE))
            if tail:
                candidates.append(tail)
    meta_author = get_raw_attribute(raw_map, "meta[name='author']", "content") or get_raw_attribute(
        raw_map, "meta[property='article:author']", "content"
    )
    if meta_author:
        candidates.append(meta_author)
    candidates.extend(value for value in (_selector_value(raw_map, s) for s in _DRIBBBLE_DESIGNER_SELECTORS) if value)

    for candidate in candidates:
        name = re.sub(r"\s+on\s+dribbble$", "", candidate.lstrip("@").strip(), flags=re.IGNORECASE).strip()
        if name:
            return name
    return None


def _dribbble_keywords(raw_map: RawSelectorMap) -> List[str]:
    keyword_string = next(
        (value for value in (get_raw_attribute(raw_map, s, "content") for s in _DRIBBBLE_KEYWORD_SELECTORS) if value),
        None,
    ) or get_raw_text(raw_map, "a[rel='tag']")
    unique: List[str] = []
    for item in re.split(r"[,|]", keyword_string or ""):
        value = normalize_whitespace(item)
        if value and value not in unique:
            unique.append(value)
        if len(unique) == 5:
            break
    return unique


def enrich_dribbble(raw_map: RawSelectorMap) -> Optional[ProviderEnrichment]:
    designer = _dribbble_designer(raw_map)
    seeded = _dribbble_twitter_stats(raw_map)
    stats: Dict[str, Optional[str]] = {}
    for key, selectors in _DRIBBBLE_STAT_SELECTORS.items():
        value = seeded.get(key) or next(
            (found for found in (_selector_value(raw_map, s) for s in selectors) if found), None
        )
        stats[key] = format_count_string(value) if value else None
    keywords = _dribbble_keywords(raw_map)
    image_url = (
        get_raw_attribute(raw_map, "meta[property='og:image:secure_url']", "content")
        or get_raw_attribute(raw_map, "meta[property='og:image']", "content")
        or get_raw_attribute(raw_map, "meta[name='twitter:image']", "content")
    )

    facts: List[LinkCategoryDetail] = []
    if designer:
        facts.append(LinkCategoryDetail(label="Designer", value=designer))
    for key in ("likes", "views", "comments"):
        if stats[key]:
            facts.append(LinkCategoryDetail(label=key.capitalize(), value=stats[key]))
    if keywords:
        facts.append(LinkCategoryDetail(label="Tags" if len(keywords) > 1 else "Tag", value=", ".join(keywords[:3])))

    raw = _compact({"designer": designer, "stats": _compact(stats), "keywords": keywords or None})
    if not image_url and not facts and not raw:
        return None
    return ProviderEnrichment(image_url=image_url, facts=facts or None, raw=raw)


def enrich_provider(
    provider: Optional[str],
    category: LinkCategory,
    raw_map: RawSelectorMap,
) -> Optional[ProviderEnrichment]:
    """Run the provider's extractor when it applies to ``category``."""
    if provider == "github" and category == LinkCategory.SOFTWARE:
        return enrich_github(raw_map)
    if provider == "goodreads" and category == LinkCategory.BOOK:
        return enrich_goodreads(raw_map)
    if provider == "amazon" and category in (LinkCategory.PRODUCT, LinkCategory.BOOK):
        return enrich_amazon(raw_map)
    if provider == "imdb" and category in (LinkCategory.MOVIE, LinkCategory.TV):
        return enrich_imdb(raw_map)
    if provider == "dribbble" and category == LinkCategory.DESIGN_PORTFOLIO:
        return enrich_dribbble(raw_map)
    return None

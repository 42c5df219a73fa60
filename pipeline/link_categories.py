"""Deterministic link category resolution.

The resolver walks a fixed cascade and stops at the first tier that matches:
domain rule, path rule, provider mapping, keyword heuristic, fallback. A lower
tier never overrides a higher one, even with a better confidence.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Literal, Optional, Pattern, Tuple
from urllib.parse import urlparse

from core.contracts import LinkCategory

LINK_CATEGORY_DEFAULT_CONFIDENCE = 0.6

DOMAIN_RULE_CONFIDENCE = 0.98
PATH_RULE_CONFIDENCE = 0.8
PROVIDER_CONFIDENCE = 0.72
HEURISTIC_CONFIDENCE = 0.58
FALLBACK_CONFIDENCE = 0.35

ResolutionReason = Literal["domain_rule", "path_rule", "provider_mapping", "heuristic", "fallback"]

LINK_CATEGORY_LABELS: Dict[LinkCategory, str] = {
    LinkCategory.BOOK: "Book",
    LinkCategory.MOVIE: "Movie",
    LinkCategory.TV: "TV & Video",
    LinkCategory.ARTICLE: "Article",
    LinkCategory.NEWS: "News",
    LinkCategory.PODCAST: "Podcast",
    LinkCategory.MUSIC: "Music",
    LinkCategory.PRODUCT: "Product",
    LinkCategory.RECIPE: "Recipe",
    LinkCategory.COURSE: "Course",
    LinkCategory.RESEARCH: "Research",
    LinkCategory.EVENT: "Event",
    LinkCategory.SOFTWARE: "Software",
    LinkCategory.DESIGN_PORTFOLIO: "Design Portfolio",
    LinkCategory.OTHER: "Other",
}


@dataclass(frozen=True)
class DomainRule:
    domain: str
    category: LinkCategory
    provider: Optional[str] = None
    path: Optional[Pattern[str]] = None
    confidence: Optional[float] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class PathRule:
    pattern: Pattern[str]
    category: LinkCategory
    confidence: float = PATH_RULE_CONFIDENCE


@dataclass(frozen=True)
class LinkCategoryHints:
    site_name: Optional[str] = None
    title: Optional[str] = None


@dataclass(frozen=True)
class LinkCategoryResolution:
    category: LinkCategory
    confidence: float
    reason: ResolutionReason
    provider: Optional[str] = None
    rule: Optional[str] = None


def _domains(category: LinkCategory, *domains: str, provider: Optional[str] = None) -> List[DomainRule]:
    return [DomainRule(domain=domain, category=category, provider=provider) for domain in domains]


DOMAIN_RULES: Tuple[DomainRule, ...] = tuple(
    _domains(LinkCategory.SOFTWARE, "github.com", provider="github")
    + _domains(LinkCategory.SOFTWARE, "gitlab.com", "bitbucket.org", "npmjs.com", "pypi.org", "rubygems.org")
    + _domains(LinkCategory.MOVIE, "imdb.com", provider="imdb")
    + _domains(LinkCategory.MOVIE, "letterboxd.com")
    + _domains(LinkCategory.BOOK, "goodreads.com", provider="goodreads")
    + _domains(LinkCategory.BOOK, "audible.com")
    + _domains(LinkCategory.PRODUCT, "amazon.com", "amazon.co.uk", "amazon.in", provider="amazon")
    + _domains(LinkCategory.DESIGN_PORTFOLIO, "dribbble.com", provider="dribbble")
    + _domains(LinkCategory.DESIGN_PORTFOLIO, "behance.net")
    + _domains(LinkCategory.DESIGN_PORTFOLIO, "figma.com", provider="figma")
    + _domains(LinkCategory.TV, "youtube.com", "youtu.be", provider="youtube")
    + _domains(LinkCategory.TV, "vimeo.com")
    + _domains(LinkCategory.ARTICLE, "medium.com", provider="medium")
    + _domains(LinkCategory.ARTICLE, "substack.com", provider="substack")
    + _domains(LinkCategory.ARTICLE, "dev.to")
    + [
        DomainRule(
            domain="open.spotify.com",
            category=LinkCategory.PODCAST,
            provider="spotify",
            path=re.compile(r"^/(episode|show)/", re.IGNORECASE),
            confidence=0.9,
            description="spotify episode/show path",
        )
    ]
    + _domains(LinkCategory.MUSIC, "open.spotify.com", "spotify.com", provider="spotify")
    + _domains(LinkCategory.PODCAST, "podcasts.apple.com", provider="apple")
    + _domains(LinkCategory.MUSIC, "music.apple.com", provider="apple")
    + _domains(LinkCategory.TV, "netflix.com", "hulu.com")
    + _domains(LinkCategory.SOFTWARE, "itch.io")
    + _domains(LinkCategory.EVENT, "eventbrite.com", "lu.ma")
    + _domains(LinkCategory.RESEARCH, "arxiv.org", "doi.org")
)

PATH_RULES: Tuple[PathRule, ...] = (
    PathRule(re.compile(r"\brecipe(s)?\b", re.IGNORECASE), LinkCategory.RECIPE),
    PathRule(re.compile(r"\bpodcast(s)?\b|/episode/", re.IGNORECASE), LinkCategory.PODCAST),
    PathRule(re.compile(r"\bcourse(s)?\b|tutorial|bootcamp|lesson|learn", re.IGNORECASE), LinkCategory.COURSE),
    PathRule(re.compile(r"\bresearch\b|arxiv|doi\.org|paper\b", re.IGNORECASE), LinkCategory.RESEARCH),
    PathRule(re.compile(r"\bevent\b|webinar|meetup|conference", re.IGNORECASE), LinkCategory.EVENT),
    PathRule(re.compile(r"shop|store|product|listing|item|cart", re.IGNORECASE), LinkCategory.PRODUCT),
    PathRule(re.compile(r"music|album|track|mixtape", re.IGNORECASE), LinkCategory.MUSIC),
    PathRule(re.compile(r"movie|film|trailer", re.IGNORECASE), LinkCategory.MOVIE),
    PathRule(re.compile(r"series|season|episode", re.IGNORECASE), LinkCategory.TV),
)

# hostname substring -> (provider, category)
PROVIDER_HINTS: Tuple[Tuple[str, str, LinkCategory], ...] = (
    ("youtube", "youtube", LinkCategory.TV),
    ("youtu", "youtube", LinkCategory.TV),
    ("spotify", "spotify", LinkCategory.MUSIC),
    ("soundcloud", "soundcloud", LinkCategory.MUSIC),
    ("bandcamp", "bandcamp", LinkCategory.MUSIC),
    ("github", "github", LinkCategory.SOFTWARE),
    ("gitlab", "gitlab", LinkCategory.SOFTWARE),
    ("bitbucket", "bitbucket", LinkCategory.SOFTWARE),
    ("npm", "npm", LinkCategory.SOFTWARE),
    ("pypi", "pypi", LinkCategory.SOFTWARE),
    ("dribbble", "dribbble", LinkCategory.DESIGN_PORTFOLIO),
    ("behance", "behance", LinkCategory.DESIGN_PORTFOLIO),
    ("figma", "figma", LinkCategory.DESIGN_PORTFOLIO),
    ("medium", "medium", LinkCategory.ARTICLE),
    ("substack", "substack", LinkCategory.ARTICLE),
    ("devto", "devto", LinkCategory.ARTICLE),
    ("imdb", "imdb", LinkCategory.MOVIE),
    ("goodreads", "goodreads", LinkCategory.BOOK),
    ("kindle", "kindle", LinkCategory.BOOK),
)

HEURISTIC_RULES: Tuple[Tuple[Pattern[str], LinkCategory], ...] = (
    (re.compile(r"blog|post"), LinkCategory.ARTICLE),
    (re.compile(r"news|press"), LinkCategory.NEWS),
    (re.compile(r"doc(s)?/|documentation|changelog"), LinkCategory.SOFTWARE),
    (re.compile(r"design|portfolio"), LinkCategory.DESIGN_PORTFOLIO),
)


def normalize_link_category(value: Optional[str]) -> Optional[LinkCategory]:
    """Map free-form input (``"Design Portfolio"``, ``"TV"``) to a category."""
    if not value:
        return None
    key = re.sub(r"[\s-]+", "_", str(value).strip().lower())
    try:
        return LinkCategory(key)
    except ValueError:
        pass
    for category, label in LINK_CATEGORY_LABELS.items():
        if label.lower() == str(value).strip().lower():
            return category
    return None


def get_link_category_label(category: LinkCategory) -> str:
    return LINK_CATEGORY_LABELS.get(LinkCategory(category), LINK_CATEGORY_LABELS[LinkCategory.OTHER])


def _apex(hostname: str) -> str:
    labels = hostname.split(".")
    return ".".join(labels[-2:]) if len(labels) >= 2 else hostname


def _host_matches(hostname: str, domain: str) -> bool:
    if hostname == domain or hostname.endswith(f".{domain}"):
        return True
    apex = _apex(hostname)
    return apex == domain or apex.endswith(f".{domain}")


def _match_provider(hostname: str) -> Optional[Tuple[str, LinkCategory]]:
    for needle, provider, category in PROVIDER_HINTS:
        if needle in hostname:
            return provider, category
    return None


def _fallback() -> LinkCategoryResolution:
    return LinkCategoryResolution(
        category=LinkCategory.OTHER,
        confidence=FALLBACK_CONFIDENCE,
        reason="fallback",
    )


def resolve_link_category(url: str, hints: Optional[LinkCategoryHints] = None) -> LinkCategoryResolution:
    """Resolve ``url`` to a link category. Pure and deterministic."""
    try:
        parsed = urlparse(str(url or "").strip())
        hostname = (parsed.hostname or "").lower()
    except ValueError:
        return _fallback()
    if parsed.scheme not in {"http", "https"} or not hostname:
        return _fallback()

    pathname = parsed.path or "/"
    provider_match = _match_provider(hostname)
    provider_name = provider_match[0] if provider_match else None

    for rule in DOMAIN_RULES:
        if not _host_matches(hostname, rule.domain):
            continue
        if rule.path is not None and not rule.path.search(pathname):
            continue
        return LinkCategoryResolution(
            category=rule.category,
            confidence=rule.confidence if rule.confidence is not None else DOMAIN_RULE_CONFIDENCE,
            reason="domain_rule",
            provider=rule.provider or provider_name,
            rule=rule.description or rule.domain,
        )

    for path_rule in PATH_RULES:
        if path_rule.pattern.search(pathname):
            return LinkCategoryResolution(
                category=path_rule.category,
                confidence=path_rule.confidence,
                reason="path_rule",
                provider=provider_name,
                rule=path_rule.pattern.pattern,
            )

    if provider_match is not None:
        provider, category = provider_match
        return LinkCategoryResolution(
            category=category,
            confidence=PROVIDER_CONFIDENCE,
            reason="provider_mapping",
            provider=provider,
            rule=provider,
        )

    hints = hints or LinkCategoryHints()
    haystack = " ".join([hostname, pathname, hints.site_name or "", hints.title or ""]).lower()
    for pattern, category in HEURISTIC_RULES:
        if pattern.search(haystack):
            return LinkCategoryResolution(
                category=category,
                confidence=HEURISTIC_CONFIDENCE,
                reason="heuristic",
                provider=provider_name,
            )

    return _fallback()

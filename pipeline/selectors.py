"""Selector sources consulted when building a link preview.

Each list is in priority order: the first source yielding a non-empty value
wins for that field.
"""

from __future__ import annotations

from typing import List, Tuple

from core.contracts import SelectorSource


def _sources(*pairs: Tuple[str, str]) -> List[SelectorSource]:
    return [SelectorSource(selector=selector, attribute=attribute) for selector, attribute in pairs]


def _meta(kind: str, *names: str) -> List[Tuple[str, str]]:
    return [(f"meta[{kind}='{name}']", "content") for name in names]


TITLE_SOURCES = _sources(
    ("meta[property='og:title']", "content"),
    ("meta[name='og:title']", "content"),
    ("meta[name='twitter:title']", "content"),
    ("meta[property='twitter:title']", "content"),
    ("meta[name='title']", "content"),
    ("head > title", "text"),
)

DESCRIPTION_SOURCES = _sources(
    ("meta[property='og:description']", "content"),
    ("meta[name='og:description']", "content"),
    ("meta[name='description']", "content"),
    ("meta[property='description']", "content"),
    ("meta[name='twitter:description']", "content"),
    ("meta[property='twitter:description']", "content"),
)

IMAGE_SOURCES = _sources(
    ("meta[property='og:image:secure_url']", "content"),
    ("meta[property='og:image:url']", "content"),
    ("meta[property='og:image']", "content"),
    ("meta[name='og:image']", "content"),
    ("meta[property='twitter:image']", "content"),
    ("meta[name='twitter:image']", "content"),
    ("meta[property='twitter:image:src']", "content"),
    ("meta[name='twitter:image:src']", "content"),
    ("link[rel='image_src']", "href"),
    ("meta[name='msapplication-TileImage']", "content"),
)

FAVICON_SOURCES = _sources(
    ("link[rel='icon']", "href"),
    ("link[rel='shortcut icon']", "href"),
    ("link[rel='apple-touch-icon']", "href"),
    ("link[rel='apple-touch-icon-precomposed']", "href"),
    ("link[rel='mask-icon']", "href"),
)

SITE_NAME_SOURCES = _sources(
    ("meta[property='og:site_name']", "content"),
    ("meta[name='og:site_name']", "content"),
    ("meta[name='application-name']", "content"),
    ("meta[name='publisher']", "content"),
)

AUTHOR_SOURCES = _sources(
    ("meta[name='author']", "content"),
    ("meta[property='article:author']", "content"),
    ("meta[name='byl']", "content"),
    ("meta[property='book:author']", "content"),
)

PUBLISHER_SOURCES = _sources(
    ("meta[property='article:publisher']", "content"),
    ("meta[name='publisher']", "content"),
    ("meta[property='og:site_name']", "content"),
)

PUBLISHED_TIME_SOURCES = _sources(
    ("meta[property='article:published_time']", "content"),
    ("meta[name='article:published_time']", "content"),
    ("meta[name='pubdate']", "content"),
    ("meta[name='publication_date']", "content"),
    ("meta[name='date']", "content"),
)

CANONICAL_SOURCES = _sources(
    ("link[rel='canonical']", "href"),
    ("meta[property='og:url']", "content"),
    ("meta[name='og:url']", "content"),
)

FINAL_URL_SOURCES = _sources(
    ("meta[property='og:url']", "content"),
    ("meta[name='og:url']", "content"),
    ("meta[property='al:web:url']", "content"),
    ("meta[property='twitter:url']", "content"),
    ("meta[name='twitter:url']", "content"),
)

GITHUB_SOURCES = _sources(
    ("a[href$='/stargazers']", "text"),
    ("a[href$='/network/members']", "text"),
    ("a[href$='/watchers']", "text"),
    ("span[itemprop='programmingLanguage']", "text"),
    ("relative-time", "text"),
)

GOODREADS_SOURCES = _sources(
    *_meta("property", "books:rating:average", "books:rating:count", "books:isbn"),
)

AMAZON_SOURCES = _sources(
    ("meta[property='og:price:amount']", "content"),
    ("meta[property='og:price:currency']", "content"),
    ("meta[name='price']", "content"),
    ("#priceblock_ourprice", "text"),
    ("#priceblock_dealprice", "text"),
    (".a-price .a-offscreen", "text"),
)

IMDB_SOURCES = _sources(
    ("meta[name='imdb:rating']", "content"),
    ("meta[name='imdb:votes']", "content"),
    ("meta[property='video:release_date']", "content"),
    ("span[data-testid='hero-rating-bar__aggregate-rating__score']", "text"),
    ("span[data-testid='title-techspec_runtime'] span", "text"),
)

DRIBBBLE_SOURCES = _sources(
    ("meta[name='twitter:creator']", "content"),
    *_meta("name", *(f"twitter:label{idx}" for idx in range(1, 5))),
    *_meta("name", *(f"twitter:data{idx}" for idx in range(1, 5))),
    ("a[rel='author']", "text"),
    (".shot-byline a", "text"),
    ("a[href$='/likes']", "text"),
    ("[data-testid='shot-likes']", "text"),
    ("[data-testid='shot-likes-count']", "text"),
    (".shot-stats [data-label='Likes']", "text"),
    ("a[href$='/views']", "text"),
    ("[data-testid='shot-views']", "text"),
    ("[data-testid='shot-views-count']", "text"),
    (".shot-stats [data-label='Views']", "text"),
    ("a[href$='/comments']", "text"),
    ("[data-testid='shot-comments']", "text"),
    ("[data-testid='shot-comments-count']", "text"),
    (".shot-stats [data-label='Comments']", "text"),
    ("meta[name='keywords']", "content"),
    ("meta[name='parsely-tags']", "content"),
    ("meta[property='article:tag']", "content"),
    ("a[rel='tag']", "text"),
)


def _dedupe_selectors(*groups: List[SelectorSource]) -> List[str]:
    seen = set()
    selectors: List[str] = []
    for group in groups:
        for source in group:
            if source.selector in seen:
                continue
            seen.add(source.selector)
            selectors.append(source.selector)
    return selectors


# Selectors sent to the scraper for every link card.
SCRAPE_ELEMENTS: List[str] = _dedupe_selectors(
    TITLE_SOURCES,
    DESCRIPTION_SOURCES,
    IMAGE_SOURCES,
    FAVICON_SOURCES,
    SITE_NAME_SOURCES,
    AUTHOR_SOURCES,
    PUBLISHER_SOURCES,
    PUBLISHED_TIME_SOURCES,
    CANONICAL_SOURCES,
    FINAL_URL_SOURCES,
    GITHUB_SOURCES,
    GOODREADS_SOURCES,
    AMAZON_SOURCES,
    IMDB_SOURCES,
    DRIBBBLE_SOURCES,
)

"""Quote detection: strip decorative quote layers from user content."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from core.contracts import Card, CardType

OPENING_TO_CLOSING = {
    '"': '"',
    "'": "'",
    "`": "`",
    "＂": "＂",
    "“": "”",
    "„": "“",
    "‘": "’",
    "‚": "‘",
    "❝": "❞",
    "❛": "❜",
    "«": "»",
    "‹": "›",
    "｢": "｣",
    "「": "」",
    "『": "』",
    "《": "》",
    "〈": "〉",
    "〝": "〞",
    "﹁": "﹂",
    "﹃": "﹄",
}

_ATTRIBUTION_PREFIXES = frozenset({"—", "-", "–", "―", "~"})
_PAREN_PREFIXES = frozenset({"(", "[", "{"})
_PUNCT_ONLY_RE = re.compile(r"^[\s.,!?;:…·、。！？；：•]+$")


@dataclass(frozen=True)
class QuoteNormalization:
    text: str
    removed_quotes: bool


def _is_allowed_trailing(text: str) -> bool:
    trimmed = text.lstrip()
    if not trimmed:
        return True
    first = trimmed[0]
    if first in _ATTRIBUTION_PREFIXES or first in _PAREN_PREFIXES:
        return True
    return bool(_PUNCT_ONLY_RE.match(trimmed))


def _find_closing_index(value: str, closing: str) -> int:
    # index 0 is the opener itself
    for idx in range(len(value) - 1, 0, -1):
        if value[idx] != closing:
            continue
        if _is_allowed_trailing(value[idx + 1:]):
            return idx
    return -1


def normalize_quote_content(content: Optional[str]) -> QuoteNormalization:
    """Remove surrounding quote layers, leaving trailing attributions intact.

    ``'"Hello world" — Einstein'`` becomes ``'Hello world — Einstein'``. When no
    layer can be removed the original string is returned unchanged.
    """
    original = content if isinstance(content, str) else ""
    working = original.strip()
    if len(working) < 2:
        return QuoteNormalization(text=original, removed_quotes=False)

    removed = False
    while len(working) > 1:
        closing = OPENING_TO_CLOSING.get(working[0])
        if closing is None:
            break
        closing_idx = _find_closing_index(working, closing)
        if closing_idx == -1:
            break
        working = (working[1:closing_idx] + working[closing_idx + 1:]).strip()
        removed = True

    return QuoteNormalization(text=working if removed else original, removed_quotes=removed)


def strip_surrounding_quotes(text: str) -> str:
    return normalize_quote_content(text).text


def apply_quote_display_formatting(card: Card) -> Card:
    """Return ``card`` with normalized content when it is (or looks like) a quote."""
    normalization = normalize_quote_content(card.content)
    should_format = card.type == CardType.QUOTE or normalization.removed_quotes
    if not should_format or normalization.text == card.content:
        return card
    return card.model_copy(update={"content": normalization.text})

"""Deterministic card type classification.

Signals are checked strongest first: file metadata, URL extension, attached
file, URL, palette text. Quote detection runs before all of them for cards
without a URL or file.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Tuple
from urllib.parse import urlparse

from core.contracts import Card, CardType, ClassificationResult, FileMetadata, StageState

from .palette import extract_hex_colors
from .quotes import normalize_quote_content

logger = logging.getLogger(__name__)

STRONG_CONFIDENCE = 0.97
MEDIUM_CONFIDENCE = 0.9
PALETTE_CONFIDENCE = 0.88
DEFAULT_CONFIDENCE = 0.7
QUOTE_CONFIDENCE = 0.95
TYPE_UPDATE_THRESHOLD = 0.6

_DOCUMENT_MIMES = (
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/markdown",
    "text/csv",
    "application/rtf",
)
_EXTENSION_TYPES = {
    CardType.IMAGE: {"png", "jpg", "jpeg", "webp", "gif", "bmp", "svg", "tiff", "avif", "heic"},
    CardType.VIDEO: {"mp4", "mov", "m4v", "webm", "mkv", "avi", "mpeg", "mpg", "wmv"},
    CardType.AUDIO: {"mp3", "wav", "flac", "m4a", "aac", "ogg", "oga", "opus"},
    CardType.DOCUMENT: {
        "pdf", "doc", "docx", "ppt", "pptx", "xls", "xlsx", "csv", "rtf", "md", "txt", "pages", "key", "numbers",
    },
}
_PALETTE_HINTS = ("palette", "color palette", "brand colors", "brand palette", "swatch", "swatches", "colorway")
_EXTENSION_RE = re.compile(r"\.([a-zA-Z0-9]+)$")

Detection = Tuple[CardType, float]


def palette_text(card: Card) -> str:
    sections = []
    if card.content.strip():
        sections.append(card.content)
    if card.tags:
        sections.append(f"Tags: {', '.join(card.tags)}")
    return "\n".join(sections).strip()


def _has_palette_hint(card: Card) -> bool:
    text = palette_text(card).lower()
    if any(hint in text for hint in _PALETTE_HINTS):
        return True
    return any(re.search(r"palette|color", tag, re.IGNORECASE) for tag in card.tags)


def is_probably_palette(card: Card) -> bool:
    colors = extract_hex_colors(palette_text(card))
    return len(colors) >= 3 or (len(colors) >= 2 and _has_palette_hint(card))


def extension_from_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    try:
        path = urlparse(url).path
    except ValueError:
        return None
    match = _EXTENSION_RE.search(path)
    return match.group(1).lower() if match else None


def classify_by_mime(mime_type: Optional[str]) -> Optional[Detection]:
    if not mime_type:
        return None
    mime = mime_type.lower()
    for prefix, card_type in (("image/", CardType.IMAGE), ("video/", CardType.VIDEO), ("audio/", CardType.AUDIO)):
        if mime.startswith(prefix):
            return card_type, STRONG_CONFIDENCE
    if any(candidate in mime for candidate in _DOCUMENT_MIMES):
        return CardType.DOCUMENT, STRONG_CONFIDENCE
    if mime.startswith("text/"):
        return CardType.TEXT, MEDIUM_CONFIDENCE
    return None


def classify_by_extension(extension: Optional[str]) -> Optional[Detection]:
    if not extension:
        return None
    for card_type, extensions in _EXTENSION_TYPES.items():
        if extension.lower() in extensions:
            return card_type, MEDIUM_CONFIDENCE
    return None


def classify_by_file_metadata(metadata: Optional[FileMetadata]) -> Optional[Detection]:
    if metadata is None:
        return None
    by_mime = classify_by_mime(metadata.mime_type)
    if by_mime:
        return by_mime
    if metadata.duration and metadata.duration > 0:
        if metadata.width or metadata.height:
            return CardType.VIDEO, MEDIUM_CONFIDENCE
        return CardType.AUDIO, MEDIUM_CONFIDENCE
    if metadata.width or metadata.height:
        return CardType.IMAGE, MEDIUM_CONFIDENCE
    return CardType.DOCUMENT, MEDIUM_CONFIDENCE


def deterministic_classify(card: Card) -> Detection:
    for detection in (
        classify_by_file_metadata(card.file_metadata),
        classify_by_extension(extension_from_url(card.url)),
    ):
        if detection:
            return detection
    if card.file_id:
        return CardType.DOCUMENT, MEDIUM_CONFIDENCE
    if card.url:
        return CardType.LINK, MEDIUM_CONFIDENCE
    if is_probably_palette(card):
        return CardType.PALETTE, PALETTE_CONFIDENCE
    return CardType.TEXT, DEFAULT_CONFIDENCE


def is_url_only(card: Card) -> bool:
    content = card.content.strip()
    return bool(card.url) and not card.file_id and (not content or content == card.url)


def result_for_type(card_type: CardType, confidence: float) -> ClassificationResult:
    return ClassificationResult(
        type=card_type,
        confidence=max(0.0, min(confidence, 1.0)),
        should_categorize=card_type == CardType.LINK,
        should_generate_metadata=True,
        should_generate_renderables=card_type in (CardType.IMAGE, CardType.VIDEO, CardType.DOCUMENT),
    )


def classify_card(card: Card) -> ClassificationResult:
    """Detect the card's type and the stages that should run for it."""
    if card.type == CardType.QUOTE and not card.url and not card.file_id:
        classify_status = card.processing_status.classify
        confidence = classify_status.confidence if classify_status and classify_status.confidence else QUOTE_CONFIDENCE
        return result_for_type(CardType.QUOTE, confidence)

    if not card.url and not card.file_id and normalize_quote_content(card.content).removed_quotes:
        logger.info("classify heuristic quote card_id=%s", card.id)
        return result_for_type(CardType.QUOTE, QUOTE_CONFIDENCE)

    card_type, confidence = deterministic_classify(card)
    if is_url_only(card):
        card_type = CardType.LINK
    return result_for_type(card_type, confidence)


def should_update_type(card: Card, result: ClassificationResult) -> bool:
    if is_url_only(card) and card.type != CardType.LINK:
        return True
    return result.type != card.type and result.confidence >= TYPE_UPDATE_THRESHOLD


def has_completed_classification(card: Card) -> bool:
    status = card.processing_status.classify
    return status is not None and status.status == StageState.COMPLETED


class DeterministicClassifier:
    """Classifier collaborator backed by ``classify_card``."""

    async def classify(self, card: Card) -> ClassificationResult:
        return classify_card(card)

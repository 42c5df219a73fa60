"""Collaborator interfaces consumed by the card pipeline orchestrator."""

from __future__ import annotations

from typing import Any, List, Optional, Protocol, Sequence

from core import (
    Card,
    ClassificationResult,
    LinkCategoryMetadata,
    LinkPreviewMetadata,
    ScrapeResponse,
    StageName,
    StageStatus,
    StructuredData,
    TextMetadata,
    Transcript,
)
from pipeline.preview_images import FetchedImage


class CardStore(Protocol):
    """Card persistence. Every write replaces whole fields; reads are snapshots."""

    def get(self, card_id: str) -> Optional[Card]: ...

    def save(self, card: Card) -> Card: ...

    def update(self, card_id: str, **fields: Any) -> Optional[Card]: ...

    def set_stage(self, card_id: str, stage: StageName, status: Optional[StageStatus]) -> Optional[Card]: ...

    def set_link_preview(
        self,
        card_id: str,
        preview: Optional[LinkPreviewMetadata],
        metadata_status: Optional[str] = None,
    ) -> Optional[Card]: ...

    def set_link_category(self, card_id: str, metadata: Optional[LinkCategoryMetadata]) -> Optional[Card]: ...


class Classifier(Protocol):
    async def classify(self, card: Card) -> ClassificationResult: ...


class Scraper(Protocol):
    """Selector scraper. Ordinary failures return ``success=False`` instead of raising."""

    async def scrape(self, url: str, selectors: Sequence[str]) -> ScrapeResponse: ...


class StructuredDataFetcher(Protocol):
    async def fetch(self, url: str) -> Optional[StructuredData]: ...


class ImageFetcher(Protocol):
    """Downloads an image. Returns None for non-OK or oversized responses."""

    async def fetch(self, url: str) -> Optional[FetchedImage]: ...


class AIGenerator(Protocol):
    async def generate_text_metadata(self, content: str) -> TextMetadata: ...

    async def generate_image_metadata(self, image_url: str) -> TextMetadata: ...

    async def transcribe(self, audio_url: str) -> Transcript: ...


class AssetStorage(Protocol):
    async def store(self, data: bytes, content_type: str) -> str: ...

    async def get_url(self, asset_id: str) -> Optional[str]: ...

    async def get_bytes(self, asset_id: str) -> Optional[bytes]: ...

    async def delete(self, asset_id: str) -> None: ...


class ThumbnailGenerator(Protocol):
    """Renders and stores a thumbnail. Returns the new asset ID, or None when not applicable."""

    async def generate(self, card: Card) -> Optional[str]: ...


class ScreenshotCapturer(Protocol):
    """Captures a page image. Raises ``RetryableStepError`` for rate limits and HTTP errors."""

    async def capture(self, url: str) -> bytes: ...


class CardQueue(Protocol):
    def enqueue(self, card_id: str) -> bool: ...

    def dequeue(self) -> Optional[str]: ...

    def remove(self, card_id: str) -> bool: ...

    def size(self) -> int: ...


__all__: List[str] = [
    "AIGenerator",
    "AssetStorage",
    "CardQueue",
    "CardStore",
    "Classifier",
    "ImageFetcher",
    "Scraper",
    "ScreenshotCapturer",
    "StructuredDataFetcher",
    "ThumbnailGenerator",
]

"""Canonical data contracts for the card enrichment pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CardType(str, Enum):
    """Content types a card can take."""

    TEXT = "text"
    LINK = "link"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"
    PALETTE = "palette"
    QUOTE = "quote"


class StageName(str, Enum):
    """Pipeline stages tracked on a card's processing status."""

    CLASSIFY = "classify"
    CATEGORIZE = "categorize"
    METADATA = "metadata"
    RENDERABLES = "renderables"


class StageState(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class StageStatus(BaseModel):
    """Status of a single stage. Immutable; build new values with the helpers
    in ``core.processing_status``."""

    model_config = ConfigDict(frozen=True)

    status: StageState = StageState.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    confidence: Optional[float] = None
    error: Optional[str] = None


class ProcessingStatus(BaseModel):
    """One optional stage status per stage name. A missing stage is not
    applicable to the card type."""

    model_config = ConfigDict(frozen=True)

    classify: Optional[StageStatus] = None
    categorize: Optional[StageStatus] = None
    metadata: Optional[StageStatus] = None
    renderables: Optional[StageStatus] = None

    def get(self, stage: StageName) -> Optional[StageStatus]:
        return getattr(self, StageName(stage).value)


class LinkCategory(str, Enum):
    """Content categories a link can resolve to."""

    BOOK = "book"
    MOVIE = "movie"
    TV = "tv"
    ARTICLE = "article"
    NEWS = "news"
    PODCAST = "podcast"
    MUSIC = "music"
    PRODUCT = "product"
    RECIPE = "recipe"
    COURSE = "course"
    RESEARCH = "research"
    EVENT = "event"
    SOFTWARE = "software"
    DESIGN_PORTFOLIO = "design_portfolio"
    OTHER = "other"


class LinkCategoryDetail(BaseModel):
    """A labelled fact shown alongside a categorized link."""

    label: str
    value: str


class LinkCategoryMetadata(BaseModel):
    """Resolved category plus enrichment for a link card."""

    category: LinkCategory
    confidence: float
    detected_provider: Optional[str] = None
    fetched_at: datetime = Field(default_factory=_utcnow)
    source_url: str
    image_url: Optional[str] = None
    facts: Optional[List[LinkCategoryDetail]] = None
    raw: Optional[Dict[str, Any]] = None


class ScrapeAttribute(BaseModel):
    name: Optional[str] = None
    value: Optional[str] = None


class ScrapeResultItem(BaseModel):
    """One element matched by a selector."""

    text: Optional[str] = None
    html: Optional[str] = None
    attributes: List[ScrapeAttribute] = Field(default_factory=list)


class ScrapeSelectorResult(BaseModel):
    selector: str
    results: List[ScrapeResultItem] = Field(default_factory=list)


class ScrapeResponse(BaseModel):
    """Scraper output. Ordinary failures are reported with ``success=False``."""

    success: bool
    results: Optional[List[ScrapeSelectorResult]] = None
    error: Optional[str] = None


class SelectorSource(BaseModel):
    """A (selector, attribute) pair consulted when extracting a preview field."""

    model_config = ConfigDict(frozen=True)

    selector: str
    attribute: str


class PreviewError(BaseModel):
    type: str
    message: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class LinkPreviewMetadata(BaseModel):
    """Extracted page metadata for a link card."""

    source: str = "selector_scrape"
    status: Literal["success", "error"]
    fetched_at: datetime = Field(default_factory=_utcnow)
    url: str
    final_url: Optional[str] = None
    canonical_url: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    image_storage_id: Optional[str] = None
    image_updated_at: Optional[datetime] = None
    image_width: Optional[int] = None
    image_height: Optional[int] = None
    favicon_url: Optional[str] = None
    site_name: Optional[str] = None
    author: Optional[str] = None
    publisher: Optional[str] = None
    published_at: Optional[str] = None
    screenshot_id: Optional[str] = None
    screenshot_updated_at: Optional[datetime] = None
    raw: Optional[List[ScrapeSelectorResult]] = None
    error: Optional[PreviewError] = None


class StructuredDataMeta(BaseModel):
    etag: Optional[str] = None
    last_modified: Optional[str] = None
    fetched_at: datetime = Field(default_factory=_utcnow)


class StructuredData(BaseModel):
    """JSON-LD entities extracted from a page."""

    entities: List[Dict[str, Any]] = Field(default_factory=list)
    meta: Optional[StructuredDataMeta] = None


class FileMetadata(BaseModel):
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    file_size: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[float] = None


class CardMetadata(BaseModel):
    link_preview: Optional[LinkPreviewMetadata] = None
    link_category: Optional[LinkCategoryMetadata] = None


class Card(BaseModel):
    """User-owned content unit processed by the pipeline."""

    id: str
    user_id: str = "local"
    type: CardType = CardType.TEXT
    content: str = ""
    url: Optional[str] = None
    file_id: Optional[str] = None
    file_metadata: Optional[FileMetadata] = None
    thumbnail_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    ai_tags: Optional[List[str]] = None
    ai_summary: Optional[str] = None
    ai_transcript: Optional[str] = None
    colors: Optional[List[str]] = None
    metadata: CardMetadata = Field(default_factory=CardMetadata)
    metadata_status: Literal["pending", "completed", "failed"] = "pending"
    processing_status: ProcessingStatus = Field(default_factory=ProcessingStatus)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def _non_empty_id(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("value is required")
        return text

    @field_validator("url", mode="before")
    @classmethod
    def _optional_url(cls, value: Any) -> Optional[str]:
        text = str(value or "").strip()
        return text or None

    @property
    def link_preview(self) -> Optional[LinkPreviewMetadata]:
        return self.metadata.link_preview

    @property
    def successful_preview(self) -> Optional[LinkPreviewMetadata]:
        preview = self.metadata.link_preview
        if preview is not None and preview.status == "success":
            return preview
        return None


class ClassificationResult(BaseModel):
    """Detected card type plus the stage flags derived from it."""

    type: CardType
    confidence: float
    should_categorize: bool = False
    should_generate_metadata: bool = True
    should_generate_renderables: bool = False


class TextMetadata(BaseModel):
    """AI output for textual content."""

    tags: List[str] = Field(default_factory=list)
    summary: str = ""


class Transcript(BaseModel):
    transcript: str = ""

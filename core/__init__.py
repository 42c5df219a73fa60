"""Core contracts and stage status helpers for the card pipeline."""

from .contracts import (
    Card,
    CardMetadata,
    CardType,
    ClassificationResult,
    FileMetadata,
    LinkCategory,
    LinkCategoryDetail,
    LinkCategoryMetadata,
    LinkPreviewMetadata,
    PreviewError,
    ProcessingStatus,
    ScrapeAttribute,
    ScrapeResponse,
    ScrapeResultItem,
    ScrapeSelectorResult,
    SelectorSource,
    StageName,
    StageState,
    StageStatus,
    StructuredData,
    StructuredDataMeta,
    TextMetadata,
    Transcript,
)

__all__ = [
    "Card",
    "CardMetadata",
    "CardType",
    "ClassificationResult",
    "FileMetadata",
    "LinkCategory",
    "LinkCategoryDetail",
    "LinkCategoryMetadata",
    "LinkPreviewMetadata",
    "PreviewError",
    "ProcessingStatus",
    "ScrapeAttribute",
    "ScrapeResponse",
    "ScrapeResultItem",
    "ScrapeSelectorResult",
    "SelectorSource",
    "StageName",
    "StageState",
    "StageStatus",
    "StructuredData",
    "StructuredDataMeta",
    "TextMetadata",
    "Transcript",
]

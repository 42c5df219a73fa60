"""Pipeline step handlers and the typed registry that names them.

Each handler receives a ``StepContext`` with the injected collaborators and
reads the card fresh from the store. Handlers persist their own stage status;
only ``RetryableStepError`` escapes to the retry runner.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Dict, Literal, Optional

import httpx

from config.settings import ScreenshotSettings
from core import (
    Card,
    CardType,
    ClassificationResult,
    LinkCategoryMetadata,
    LinkPreviewMetadata,
    StageName,
    StageState,
    StructuredData,
)
from core.processing_status import (
    retarget_stages,
    stage_completed,
    stage_failed,
    stage_in_progress,
    with_stage,
)
from pipeline.categorization import CategorizationPlan, CategoryCachePolicy, enrich_link_category, plan_categorization
from pipeline.classification import has_completed_classification, palette_text, result_for_type, should_update_type
from pipeline.link_metadata import build_error_preview, build_success_preview, parse_link_preview
from pipeline.palette import extract_hex_colors, extract_palette
from pipeline.preview_images import store_preview_image
from pipeline.quotes import normalize_quote_content
from pipeline.selectors import SCRAPE_ELEMENTS
from pipeline.urls import normalize_url
from utils.exceptions import (
    CardNotFoundError,
    ErrorKind,
    FatalStepError,
    MissingDataError,
    PipelineError,
    RetryableStepError,
)

from .ports import (
    AIGenerator,
    AssetStorage,
    CardStore,
    Classifier,
    ImageFetcher,
    Scraper,
    ScreenshotCapturer,
    StructuredDataFetcher,
    ThumbnailGenerator,
)
from .retry import RetryPolicies, SleepFn, run_with_retry

logger = logging.getLogger(__name__)

LINK_METADATA_FAMILY = "linkMetadata"
LINK_ENRICHMENT_FAMILY = "linkEnrichment"
METADATA_FAMILY = "metadata"
RENDERABLES_CONFIDENCE = 0.95
RENDERABLES_SKIPPED_CONFIDENCE = 0.5

OutcomeStatus = Literal["completed", "skipped", "failed"]


class StepName(str, Enum):
    CLASSIFY = "classify"
    LINK_METADATA = "link_metadata"
    CATEGORIZE = "categorize"
    CATEGORIZE_CLASSIFY = "categorize_classify"
    CATEGORIZE_FETCH_STRUCTURED = "categorize_fetch_structured"
    CATEGORIZE_MERGE = "categorize_merge"
    METADATA = "metadata"
    RENDERABLES = "renderables"
    PALETTE = "palette"
    SCREENSHOT = "screenshot"


@dataclass
class StepOutcome:
    step: StepName
    status: OutcomeStatus
    message: Optional[str] = None
    classification: Optional[ClassificationResult] = None

    @property
    def ok(self) -> bool:
        return self.status != "failed"


@dataclass
class PipelineResult:
    """Per-step outcomes of one pipeline run. Callers read stage status from the card."""

    card_id: str
    card_type: Optional[CardType] = None
    outcomes: Dict[StepName, StepOutcome] = field(default_factory=dict)

    def record(self, outcome: StepOutcome) -> StepOutcome:
        self.outcomes[outcome.step] = outcome
        return outcome

    def status_of(self, step: StepName) -> Optional[OutcomeStatus]:
        outcome = self.outcomes.get(step)
        return outcome.status if outcome else None


@dataclass
class StepContext:
    """Collaborators and policies shared by every step of a run."""

    store: CardStore
    classifier: Classifier
    scraper: Scraper
    storage: AssetStorage
    policies: RetryPolicies
    cache_policy: CategoryCachePolicy
    screenshot_settings: ScreenshotSettings
    clock: Callable[[], datetime]
    sleep: SleepFn
    ai: Optional[AIGenerator] = None
    thumbnails: Optional[ThumbnailGenerator] = None
    structured_fetcher: Optional[StructuredDataFetcher] = None
    screenshotter: Optional[ScreenshotCapturer] = None
    image_fetcher: Optional[ImageFetcher] = None

    def now(self) -> datetime:
        return self.clock()

    def require_card(self, card_id: str) -> Card:
        card = self.store.get(card_id)
        if card is None:
            raise CardNotFoundError(card_id)
        return card


def _error_text(exc: BaseException) -> str:
    if isinstance(exc, PipelineError):
        return exc.message
    return str(exc) or exc.__class__.__name__


async def run_classify(ctx: StepContext, card_id: str) -> StepOutcome:
    """Classify the card and persist its type. Raises ``FatalStepError`` on failure."""
    card = ctx.require_card(card_id)
    existing = card.processing_status.classify
    if has_completed_classification(card):
        confidence = existing.confidence if existing.confidence is not None else 1.0
        return StepOutcome(StepName.CLASSIFY, "skipped", classification=result_for_type(card.type, confidence))

    ctx.store.set_stage(card_id, StageName.CLASSIFY, stage_in_progress(ctx.now(), existing))
    try:
        result = await ctx.classifier.classify(card)
    except Exception as exc:
        message = _error_text(exc)
        logger.warning("classify failed card_id=%s error=%s", card_id, message)
        ctx.store.set_stage(card_id, StageName.CLASSIFY, stage_failed(ctx.now(), message, existing))
        if isinstance(exc, FatalStepError):
            raise
        raise FatalStepError(message, {"card_id": card_id}) from exc

    now = ctx.now()
    completed = stage_completed(now, result.confidence)
    if not should_update_type(card, result):
        ctx.store.set_stage(card_id, StageName.CLASSIFY, completed)
        logger.info(
            "classify kept card_id=%s type=%s detected=%s confidence=%.2f",
            card_id,
            card.type.value,
            result.type.value,
            result.confidence,
        )
        return StepOutcome(
            StepName.CLASSIFY, "completed", classification=result_for_type(card.type, result.confidence)
        )

    status = retarget_stages(card.processing_status, result.type, now)
    updates = {"type": result.type, "processing_status": with_stage(status, StageName.CLASSIFY, completed)}
    if result.type == CardType.PALETTE and not card.colors:
        updates["colors"] = extract_hex_colors(palette_text(card)) or None
    if result.type == CardType.QUOTE:
        normalized = normalize_quote_content(card.content)
        if normalized.removed_quotes:
            updates["content"] = normalized.text
    ctx.store.update(card_id, **updates)
    logger.info(
        "classify updated card_id=%s from=%s to=%s confidence=%.2f",
        card_id,
        card.type.value,
        result.type.value,
        result.confidence,
    )
    return StepOutcome(StepName.CLASSIFY, "completed", classification=result)


def _persist_error_preview(
    ctx: StepContext,
    card_id: str,
    url: str,
    kind: ErrorKind,
    message: str,
    previous: Optional[LinkPreviewMetadata] = None,
    details: Optional[dict] = None,
) -> LinkPreviewMetadata:
    preview = build_error_preview(
        url,
        kind.value,
        message,
        ctx.now(),
        details=details or None,
        screenshot_id=previous.screenshot_id if previous else None,
        screenshot_updated_at=previous.screenshot_updated_at if previous else None,
    )
    ctx.store.set_link_preview(card_id, preview, "failed")
    return preview


def _awaiting_classification(card: Card) -> bool:
    status = card.processing_status.classify
    return status is not None and status.status in (StageState.PENDING, StageState.IN_PROGRESS)


async def fetch_link_preview(ctx: StepContext, card_id: str) -> LinkPreviewMetadata:
    """One scrape attempt. Terminal problems are persisted as an error preview."""
    card = ctx.require_card(card_id)
    previous = card.link_preview
    if not card.url:
        return _persist_error_preview(
            ctx, card_id, "", ErrorKind.INVALID_CARD, "Card is missing a valid URL", previous
        )
    if card.type != CardType.LINK:
        if _awaiting_classification(card):
            raise RetryableStepError(
                ErrorKind.AWAITING_CLASSIFICATION,
                f"Card {card_id} is awaiting classification",
                step_family=LINK_METADATA_FAMILY,
            )
        return _persist_error_preview(
            ctx, card_id, card.url, ErrorKind.INVALID_CARD, f"Card {card_id} is not a link card", previous
        )

    normalized = normalize_url(card.url)
    try:
        response = await ctx.scraper.scrape(normalized, SCRAPE_ELEMENTS)
    except RetryableStepError:
        raise
    except (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException) as exc:
        raise RetryableStepError(
            ErrorKind.TIMEOUT,
            str(exc) or "Scrape timed out",
            step_family=LINK_METADATA_FAMILY,
            normalized_url=normalized,
        ) from exc
    except (httpx.TransportError, ConnectionError) as exc:
        raise RetryableStepError(
            ErrorKind.NETWORK_ERROR,
            str(exc) or "Network error",
            step_family=LINK_METADATA_FAMILY,
            normalized_url=normalized,
        ) from exc
    except Exception as exc:
        logger.exception("link metadata scrape crashed card_id=%s url=%s", card_id, normalized)
        return _persist_error_preview(
            ctx, card_id, normalized, ErrorKind.ERROR, _error_text(exc), previous, {"normalizedUrl": normalized}
        )

    if not response.success:
        message = response.error or "Scrape failed"
        lowered = message.lower()
        kind = ErrorKind.RATE_LIMIT if "rate" in lowered or "limit" in lowered else ErrorKind.SCRAPE_ERROR
        raise RetryableStepError(kind, message, step_family=LINK_METADATA_FAMILY, normalized_url=normalized)

    parsed = parse_link_preview(normalized, response.results)
    preview = build_success_preview(normalized, parsed, ctx.now())
    carried = {}
    if previous is not None and previous.screenshot_id:
        carried.update(screenshot_id=previous.screenshot_id, screenshot_updated_at=previous.screenshot_updated_at)
    previous_image_id = previous.image_storage_id if previous is not None else None
    if preview.image_url:
        if previous_image_id and previous.image_url == preview.image_url:
            carried.update(
                image_storage_id=previous_image_id,
                image_updated_at=previous.image_updated_at,
                image_width=previous.image_width,
                image_height=previous.image_height,
            )
        else:
            stored = await store_preview_image(preview.image_url, ctx.image_fetcher, ctx.storage, ctx.now())
            carried.update(stored or {})
    if carried:
        preview = preview.model_copy(update=carried)
    ctx.store.set_link_preview(card_id, preview, "completed")
    if previous_image_id and previous_image_id != preview.image_storage_id:
        await ctx.storage.delete(previous_image_id)
    logger.info("link metadata stored card_id=%s url=%s title=%s", card_id, normalized, preview.title)
    return preview


async def run_link_metadata(ctx: StepContext, card_id: str) -> StepOutcome:
    try:
        preview = await run_with_retry(ctx.policies.link_metadata, fetch_link_preview, ctx, card_id, sleep=ctx.sleep)
    except RetryableStepError as exc:
        card = ctx.store.get(card_id)
        url = exc.normalized_url or (card.url if card and card.url else "")
        details = {"normalizedUrl": exc.normalized_url} if exc.normalized_url else {}
        details.update(exc.details or {})
        logger.warning(
            "link metadata retries exhausted card_id=%s kind=%s error=%s", card_id, exc.kind.value, exc.message
        )
        _persist_error_preview(
            ctx, card_id, url, exc.kind, exc.message, card.link_preview if card else None, details
        )
        return StepOutcome(StepName.LINK_METADATA, "failed", exc.message)

    if preview.status == "success":
        return StepOutcome(StepName.LINK_METADATA, "completed")
    return StepOutcome(StepName.LINK_METADATA, "failed", preview.error.message if preview.error else None)


async def plan_card_categorization(ctx: StepContext, card_id: str) -> CategorizationPlan:
    return plan_categorization(ctx.store.get(card_id), ctx.now(), ctx.cache_policy, card_id=card_id)


async def fetch_structured_data(ctx: StepContext, plan: CategorizationPlan) -> Optional[StructuredData]:
    """Best-effort JSON-LD fetch; ordinary failures yield None."""
    if not plan.should_fetch_structured or ctx.structured_fetcher is None or not plan.source_url:
        return None
    try:
        return await ctx.structured_fetcher.fetch(plan.source_url)
    except RetryableStepError:
        raise
    except Exception as exc:
        logger.warning("structured data fetch failed url=%s error=%s", plan.source_url, _error_text(exc))
        return None


async def merge_link_category(
    ctx: StepContext,
    card_id: str,
    plan: CategorizationPlan,
    structured: Optional[StructuredData],
) -> LinkCategoryMetadata:
    """Persist the category. Skipped plans write the cached metadata back unchanged."""
    if plan.mode == "skipped" and plan.existing is not None:
        ctx.store.set_link_category(card_id, plan.existing)
        return plan.existing

    card = ctx.require_card(card_id)
    metadata = enrich_link_category(card, plan.resolution, ctx.now(), structured)
    ctx.store.set_link_category(card_id, metadata)
    logger.info(
        "categorize stored card_id=%s category=%s provider=%s facts=%d",
        card_id,
        metadata.category.value,
        metadata.detected_provider,
        len(metadata.facts or []),
    )
    return metadata


def _link_summary(card: Card) -> str:
    preview = card.successful_preview
    parts = []
    if preview is not None:
        for label, value in (
            ("Title", preview.title),
            ("Description", preview.description),
            ("Author", preview.author),
            ("Publisher", preview.publisher),
            ("Published", preview.published_at),
        ):
            if value:
                parts.append(f"{label}: {value}")
    if not parts and (card.content or card.url):
        parts.append(f"URL: {card.content or card.url}")
    return "\n".join(parts)


async def _describe_card(ctx: StepContext, card: Card) -> Dict[str, object]:
    ai = ctx.ai
    confidence = 0.9
    tags, summary, transcript = [], "", None

    if card.type in (CardType.TEXT, CardType.QUOTE):
        if card.content.strip():
            result = await ai.generate_text_metadata(card.content)
            tags, summary, confidence = result.tags, result.summary, 0.95
    elif card.type == CardType.IMAGE:
        image_url = await ctx.storage.get_url(card.file_id) if card.file_id else None
        if image_url:
            result = await ai.generate_image_metadata(image_url)
            tags, summary, confidence = result.tags, result.summary, 0.9
    elif card.type == CardType.AUDIO:
        audio_url = await ctx.storage.get_url(card.file_id) if card.file_id else None
        if audio_url:
            transcript = (await ai.transcribe(audio_url)).transcript or None
            if transcript:
                result = await ai.generate_text_metadata(transcript)
                tags, summary, confidence = result.tags, result.summary, 0.85
    elif card.type == CardType.LINK:
        if card.metadata_status == "pending":
            raise RetryableStepError(
                ErrorKind.ERROR,
                f"Link metadata extraction not yet complete for card {card.id}",
                step_family=METADATA_FAMILY,
            )
        content = _link_summary(card)
        if content.strip():
            result = await ai.generate_text_metadata(content)
            tags, summary, confidence = result.tags, result.summary, 0.9
    elif card.type == CardType.DOCUMENT:
        content = card.content
        if card.file_metadata and card.file_metadata.file_name:
            content = f"{card.file_metadata.file_name}\n{content}"
        if content.strip():
            result = await ai.generate_text_metadata(content)
            tags, summary, confidence = result.tags, result.summary, 0.85
    elif card.type == CardType.PALETTE:
        content = card.content
        if card.colors:
            content = f"Colors: {', '.join(card.colors)}\n{content}"
        if content.strip():
            result = await ai.generate_text_metadata(content)
            tags, summary, confidence = result.tags, result.summary, 0.9

    return {"tags": list(tags), "summary": summary, "transcript": transcript, "confidence": confidence}


async def generate_card_metadata(ctx: StepContext, card_id: str) -> float:
    """One generation attempt. Returns the stage confidence."""
    card = ctx.require_card(card_id)
    try:
        generated = await _describe_card(ctx, card)
    except PipelineError:
        raise
    except Exception as exc:
        raise RetryableStepError(ErrorKind.ERROR, _error_text(exc), step_family=METADATA_FAMILY) from exc

    if not generated["tags"] and not generated["summary"] and not generated["transcript"]:
        logger.warning("metadata empty card_id=%s type=%s", card_id, card.type.value)
        raise MissingDataError("No AI metadata generated for card", {"card_id": card_id})

    fields = {"ai_tags": generated["tags"], "ai_summary": generated["summary"] or None}
    if generated["transcript"]:
        fields["ai_transcript"] = generated["transcript"]
    ctx.store.update(card_id, **fields)
    return float(generated["confidence"])


async def run_metadata(ctx: StepContext, card_id: str) -> StepOutcome:
    card = ctx.require_card(card_id)
    previous = card.processing_status.metadata
    ctx.store.set_stage(card_id, StageName.METADATA, stage_in_progress(ctx.now(), previous))

    try:
        if ctx.ai is None:
            raise FatalStepError("No AI generator configured", kind=ErrorKind.ERROR)
        confidence = await run_with_retry(
            ctx.policies.metadata, generate_card_metadata, ctx, card_id, sleep=ctx.sleep
        )
    except Exception as exc:
        message = _error_text(exc)
        if isinstance(exc, PipelineError):
            logger.warning("metadata failed card_id=%s error=%s", card_id, message)
        else:
            logger.exception("metadata crashed card_id=%s", card_id)
        ctx.store.set_stage(card_id, StageName.METADATA, stage_failed(ctx.now(), message, previous))
        return StepOutcome(StepName.METADATA, "failed", message)

    ctx.store.set_stage(card_id, StageName.METADATA, stage_completed(ctx.now(), confidence))
    return StepOutcome(StepName.METADATA, "completed")


async def run_renderables(ctx: StepContext, card_id: str) -> StepOutcome:
    card = ctx.require_card(card_id)
    previous = card.processing_status.renderables
    ctx.store.set_stage(card_id, StageName.RENDERABLES, stage_in_progress(ctx.now(), previous))

    try:
        asset_id = await ctx.thumbnails.generate(card) if ctx.thumbnails is not None else None
        if asset_id:
            ctx.store.update(card_id, thumbnail_id=asset_id)
            if card.thumbnail_id and card.thumbnail_id != asset_id:
                await ctx.storage.delete(card.thumbnail_id)
    except Exception as exc:
        message = _error_text(exc)
        if isinstance(exc, PipelineError):
            logger.warning("renderables failed card_id=%s error=%s", card_id, message)
        else:
            logger.exception("renderables crashed card_id=%s", card_id)
        ctx.store.set_stage(card_id, StageName.RENDERABLES, stage_failed(ctx.now(), message, previous))
        return StepOutcome(StepName.RENDERABLES, "failed", message)

    if not asset_id:
        logger.info("renderables skipped card_id=%s type=%s: no thumbnail generated", card_id, card.type.value)
        ctx.store.set_stage(
            card_id, StageName.RENDERABLES, stage_completed(ctx.now(), RENDERABLES_SKIPPED_CONFIDENCE)
        )
        return StepOutcome(StepName.RENDERABLES, "completed", "no thumbnail generated")

    ctx.store.set_stage(card_id, StageName.RENDERABLES, stage_completed(ctx.now(), RENDERABLES_CONFIDENCE))
    return StepOutcome(StepName.RENDERABLES, "completed")


async def run_palette(ctx: StepContext, card_id: str) -> StepOutcome:
    """Best-effort color extraction for image cards; failures only get logged."""
    card = ctx.require_card(card_id)
    if card.type != CardType.IMAGE or not card.file_id or card.colors:
        return StepOutcome(StepName.PALETTE, "skipped")

    try:
        data = await ctx.storage.get_bytes(card.file_id)
        if not data:
            return StepOutcome(StepName.PALETTE, "skipped", "image bytes unavailable")
        colors = await asyncio.to_thread(extract_palette, data)
    except Exception as exc:
        logger.warning("palette extraction failed card_id=%s error=%s", card_id, _error_text(exc))
        return StepOutcome(StepName.PALETTE, "failed", _error_text(exc))

    if colors:
        ctx.store.update(card_id, colors=colors)
    return StepOutcome(StepName.PALETTE, "completed")


async def run_screenshot(ctx: StepContext, card_id: str) -> StepOutcome:
    if ctx.screenshotter is None:
        return StepOutcome(StepName.SCREENSHOT, "skipped", "no screenshot capturer")
    card = ctx.require_card(card_id)
    preview = card.successful_preview
    if card.type != CardType.LINK or preview is None:
        return StepOutcome(StepName.SCREENSHOT, "skipped", "no successful preview")
    if preview.screenshot_id:
        return StepOutcome(StepName.SCREENSHOT, "skipped", "screenshot exists")

    url = preview.final_url or preview.url or card.url
    settings = ctx.screenshot_settings
    rate_retries = http_retries = 0
    while True:
        try:
            image = await ctx.screenshotter.capture(url)
            break
        except RetryableStepError as exc:
            if exc.kind == ErrorKind.RATE_LIMIT and rate_retries < settings.rate_limit_max_retries:
                rate_retries += 1
                delay_ms = settings.rate_limit_delay_ms
            elif exc.kind == ErrorKind.HTTP_ERROR and http_retries < settings.http_max_retries:
                http_retries += 1
                delay_ms = settings.http_retry_delay_ms
            else:
                logger.warning("screenshot gave up card_id=%s kind=%s error=%s", card_id, exc.kind.value, exc.message)
                return StepOutcome(StepName.SCREENSHOT, "failed", exc.message)
            logger.info("screenshot retry card_id=%s kind=%s delay_ms=%d", card_id, exc.kind.value, delay_ms)
            await ctx.sleep(delay_ms / 1000.0)
        except Exception as exc:
            logger.warning("screenshot failed card_id=%s error=%s", card_id, _error_text(exc))
            return StepOutcome(StepName.SCREENSHOT, "failed", _error_text(exc))

    asset_id = await ctx.storage.store(image, "image/png")
    current_card = ctx.store.get(card_id)
    current = current_card.successful_preview if current_card else None
    if current is None:
        await ctx.storage.delete(asset_id)
        return StepOutcome(StepName.SCREENSHOT, "skipped", "preview changed during capture")

    ctx.store.set_link_preview(
        card_id,
        current.model_copy(update={"screenshot_id": asset_id, "screenshot_updated_at": ctx.now()}),
    )
    if current.screenshot_id and current.screenshot_id != asset_id:
        await ctx.storage.delete(current.screenshot_id)
    logger.info("screenshot stored card_id=%s asset_id=%s", card_id, asset_id)
    return StepOutcome(StepName.SCREENSHOT, "completed")


CardStep = Callable[[StepContext, str], Awaitable[StepOutcome]]


@dataclass(frozen=True)
class StepRegistry:
    """Handlers for every ``StepName``; replace entries to customize a step."""

    classify: CardStep = run_classify
    link_metadata: CardStep = run_link_metadata
    categorize_classify: Callable[[StepContext, str], Awaitable[CategorizationPlan]] = plan_card_categorization
    categorize_fetch_structured: Callable[
        [StepContext, CategorizationPlan], Awaitable[Optional[StructuredData]]
    ] = fetch_structured_data
    categorize_merge: Callable[
        [StepContext, str, CategorizationPlan, Optional[StructuredData]], Awaitable[LinkCategoryMetadata]
    ] = merge_link_category
    metadata: CardStep = run_metadata
    renderables: CardStep = run_renderables
    palette: CardStep = run_palette
    screenshot: CardStep = run_screenshot


DEFAULT_STEPS = StepRegistry()

__all__ = [
    "DEFAULT_STEPS",
    "PipelineResult",
    "StepContext",
    "StepName",
    "StepOutcome",
    "StepRegistry",
]

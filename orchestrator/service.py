"""Card pipeline orchestrator: queue lifecycle plus the per-card step sequence."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional

from config.settings import Settings, get_settings
from core import Card, CardType, StageName
from core.processing_status import (
    build_initial,
    is_stage_completed,
    reset_stages,
    stage_completed,
    stage_failed,
    stage_in_progress,
    stage_pending,
)
from pipeline.categorization import CategoryCachePolicy
from pipeline.classification import DeterministicClassifier
from pipeline.quotes import normalize_quote_content
from pipeline.thumbnails import PillowThumbnailGenerator
from pipeline.urls import extract_url_from_content
from utils.exceptions import CardNotFoundError, ErrorKind, FatalStepError, PipelineError, RetryableStepError

from .ports import (
    AIGenerator,
    AssetStorage,
    CardQueue,
    CardStore,
    Classifier,
    ImageFetcher,
    Scraper,
    ScreenshotCapturer,
    StructuredDataFetcher,
    ThumbnailGenerator,
)
from .queue import InMemoryCardQueue
from .retry import RetryPolicies, SleepFn, run_with_retry
from .steps import (
    DEFAULT_STEPS,
    LINK_ENRICHMENT_FAMILY,
    PipelineResult,
    StepContext,
    StepName,
    StepOutcome,
    StepRegistry,
)

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_STAGES = (StageName.CATEGORIZE, StageName.METADATA, StageName.RENDERABLES)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CardPipelineOrchestrator:
    """Runs enrichment steps for queued cards against injected collaborators."""

    def __init__(
        self,
        *,
        store: CardStore,
        scraper: Scraper,
        storage: AssetStorage,
        ai: Optional[AIGenerator] = None,
        queue: Optional[CardQueue] = None,
        classifier: Optional[Classifier] = None,
        structured_fetcher: Optional[StructuredDataFetcher] = None,
        screenshotter: Optional[ScreenshotCapturer] = None,
        image_fetcher: Optional[ImageFetcher] = None,
        thumbnails: Optional[ThumbnailGenerator] = None,
        settings: Optional[Settings] = None,
        steps: Optional[StepRegistry] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[SleepFn] = None,
    ) -> None:
        settings = settings or get_settings()
        self._store = store
        self._queue = queue or InMemoryCardQueue()
        self._steps = steps or DEFAULT_STEPS
        self._clock = clock or _utcnow
        self._ctx = StepContext(
            store=store,
            classifier=classifier or DeterministicClassifier(),
            scraper=scraper,
            storage=storage,
            policies=RetryPolicies.from_settings(settings.retry),
            cache_policy=CategoryCachePolicy(ttl=timedelta(days=settings.categorization.cache_ttl_days)),
            screenshot_settings=settings.screenshot,
            clock=self._clock,
            sleep=sleep or asyncio.sleep,
            ai=ai,
            thumbnails=thumbnails if thumbnails is not None else PillowThumbnailGenerator(storage),
            structured_fetcher=structured_fetcher,
            screenshotter=screenshotter,
            image_fetcher=image_fetcher,
        )

    @property
    def context(self) -> StepContext:
        return self._ctx

    def get_card(self, card_id: str) -> Optional[Card]:
        return self._store.get(card_id)

    def create_card(self, card: Card, *, type_confirmed: bool = False) -> Card:
        """Persist a new card with its initial stage map and queue it.

        Unless ``type_confirmed`` is set, classification starts pending. A text
        card without a URL or file picks up the first http(s) URL in its content.
        """
        now = self._clock()
        updates = {
            "processing_status": build_initial(
                now,
                card.type,
                classification_status=stage_completed(now, 1.0) if type_confirmed else stage_pending(),
            ),
            "metadata_status": "pending",
        }
        if card.type == CardType.QUOTE:
            updates["content"] = normalize_quote_content(card.content).text
        elif card.type in (CardType.TEXT, CardType.LINK) and not card.url and not card.file_id:
            detected = extract_url_from_content(card.content).url
            if detected:
                logger.info("card url detected card_id=%s url=%s", card.id, detected)
                updates["url"] = detected
        saved = self._store.save(card.model_copy(update=updates))
        self.enqueue(saved.id)
        logger.info("card created card_id=%s type=%s", saved.id, saved.type.value)
        return saved

    def enqueue(self, card_id: str) -> bool:
        return self._queue.enqueue(card_id)

    def pending_count(self) -> int:
        return self._queue.size()

    async def run_next(self) -> Optional[PipelineResult]:
        """Process the next queued card, or return None when the queue is empty."""
        card_id = self._queue.dequeue()
        if card_id is None:
            return None
        return await self.process_card(card_id)

    async def drain(self) -> List[PipelineResult]:
        results = []
        while True:
            result = await self.run_next()
            if result is None:
                return results
            results.append(result)

    def refresh_card(self, card_id: str, stages: Optional[Iterable[StageName]] = None) -> Card:
        """Reset the named stages to pending and queue the card again."""
        card = self._require(card_id)
        stages = list(stages or DEFAULT_REFRESH_STAGES)
        updates = {"processing_status": reset_stages(card.processing_status, stages, card.type)}
        if StageName.METADATA in stages and card.type == CardType.LINK:
            updates["metadata_status"] = "pending"
        updated = self._store.update(card_id, **updates)
        self.enqueue(card_id)
        logger.info("card refresh card_id=%s stages=%s", card_id, ",".join(StageName(s).value for s in stages))
        return updated

    def update_card_url(self, card_id: str, url: Optional[str]) -> Card:
        """Swap the card URL, clearing derived link data and restarting enrichment.

        An unchanged URL leaves the card and its enrichment untouched.
        """
        card = self._require(card_id)
        url = (url or "").strip() or None
        if url == card.url:
            logger.info("card url unchanged card_id=%s", card_id)
            return card
        status = reset_stages(
            card.processing_status, (StageName.CLASSIFY, StageName.METADATA, StageName.CATEGORIZE), card.type
        )
        updated = self._store.update(
            card_id,
            url=url,
            metadata=card.metadata.model_copy(update={"link_preview": None, "link_category": None}),
            metadata_status="pending",
            processing_status=status,
        )
        self.enqueue(card_id)
        logger.info("card url updated card_id=%s url=%s", card_id, updated.url)
        return updated

    def update_card_content(self, card_id: str, content: str) -> Card:
        """Store edited content and regenerate the stages derived from it."""
        card = self._require(card_id)
        if card.type == CardType.QUOTE:
            content = normalize_quote_content(content).text
        stages = [StageName.METADATA]
        if card.type == CardType.LINK:
            stages.append(StageName.CATEGORIZE)
        updated = self._store.update(
            card_id,
            content=content,
            processing_status=reset_stages(card.processing_status, stages, card.type),
        )
        self.enqueue(card_id)
        return updated

    def delete_card(self, card_id: str) -> bool:
        self._queue.remove(card_id)
        delete = getattr(self._store, "soft_delete", None)
        return bool(delete(card_id)) if delete else False

    def _require(self, card_id: str) -> Card:
        card = self._store.get(card_id)
        if card is None:
            raise CardNotFoundError(card_id)
        return card

    async def process_card(self, card_id: str) -> PipelineResult:
        """Run every applicable step for one card.

        Classification failures end the run. Any other failing step only
        affects its own branch.
        """
        result = PipelineResult(card_id=card_id)
        ctx = self._ctx

        try:
            classify = result.record(await self._steps.classify(ctx, card_id))
        except FatalStepError as exc:
            logger.warning("pipeline halted card_id=%s error=%s", card_id, exc.message)
            result.record(StepOutcome(StepName.CLASSIFY, "failed", exc.message))
            return result
        classification = classify.classification
        result.card_type = classification.type

        card = self._store.get(card_id)
        if card is None:
            return result

        if classification.type == CardType.LINK and card.metadata_status == "pending":
            result.record(await self._guard(StepName.LINK_METADATA, self._steps.link_metadata(ctx, card_id)))

        if classification.should_categorize:
            card = self._store.get(card_id)
            if card is not None and not is_stage_completed(card.processing_status, StageName.CATEGORIZE):
                result.record(await self._guard(StepName.CATEGORIZE, self._categorize(card_id)))

        card = self._store.get(card_id)
        if card is None:
            return result
        branches = []
        if classification.should_generate_metadata and not is_stage_completed(
            card.processing_status, StageName.METADATA
        ):
            branches.append(self._guard(StepName.METADATA, self._steps.metadata(ctx, card_id)))
        if classification.should_generate_renderables and not is_stage_completed(
            card.processing_status, StageName.RENDERABLES
        ):
            branches.append(self._guard(StepName.RENDERABLES, self._steps.renderables(ctx, card_id)))
        branches.append(self._guard(StepName.PALETTE, self._steps.palette(ctx, card_id)))
        for outcome in await asyncio.gather(*branches):
            result.record(outcome)

        if classification.type == CardType.LINK:
            result.record(await self._guard(StepName.SCREENSHOT, self._steps.screenshot(ctx, card_id)))

        logger.info(
            "pipeline finished card_id=%s %s",
            card_id,
            " ".join(f"{name.value}={outcome.status}" for name, outcome in result.outcomes.items()),
        )
        return result

    async def _categorize(self, card_id: str) -> StepOutcome:
        ctx = self._ctx
        card = ctx.require_card(card_id)
        previous = card.processing_status.categorize
        self._store.set_stage(card_id, StageName.CATEGORIZE, stage_in_progress(self._clock(), previous))

        async def attempt():
            plan = await self._steps.categorize_classify(ctx, card_id)
            structured = await self._steps.categorize_fetch_structured(ctx, plan)
            return await self._steps.categorize_merge(ctx, card_id, plan, structured)

        async def attempt_retryable():
            try:
                return await attempt()
            except PipelineError:
                raise
            except Exception as exc:
                raise RetryableStepError(
                    ErrorKind.ERROR, str(exc) or exc.__class__.__name__, step_family=LINK_ENRICHMENT_FAMILY
                ) from exc

        try:
            metadata = await run_with_retry(ctx.policies.link_enrichment, attempt_retryable, sleep=ctx.sleep)
        except PipelineError as exc:
            logger.warning("categorize failed card_id=%s error=%s", card_id, exc.message)
            self._store.set_stage(card_id, StageName.CATEGORIZE, stage_failed(self._clock(), exc.message, previous))
            return StepOutcome(StepName.CATEGORIZE, "failed", exc.message)

        self._store.set_stage(card_id, StageName.CATEGORIZE, stage_completed(self._clock(), metadata.confidence))
        return StepOutcome(StepName.CATEGORIZE, "completed", metadata.category.value)

    async def _guard(self, name: StepName, pending) -> StepOutcome:
        """Await a step; a failure it did not handle becomes a failed outcome."""
        try:
            return await pending
        except PipelineError as exc:
            logger.warning("step failed step=%s error=%s", name.value, exc)
            return StepOutcome(name, "failed", exc.message)
        except Exception as exc:
            logger.exception("step crashed step=%s", name.value)
            return StepOutcome(name, "failed", str(exc) or exc.__class__.__name__)


__all__ = ["CardPipelineOrchestrator", "DEFAULT_REFRESH_STAGES"]

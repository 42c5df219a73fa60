"""Stage status constructors and copy-with helpers.

Every helper returns a new value; ``ProcessingStatus`` and ``StageStatus`` are
frozen, so a stage can only change by replacing the whole stage entry.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from .contracts import CardType, ProcessingStatus, StageName, StageState, StageStatus

RENDERABLE_TYPES = frozenset({CardType.IMAGE, CardType.VIDEO, CardType.DOCUMENT})


def stage_pending() -> StageStatus:
    return StageStatus(status=StageState.PENDING)


def stage_in_progress(now: datetime, previous: Optional[StageStatus] = None) -> StageStatus:
    return StageStatus(
        status=StageState.IN_PROGRESS,
        started_at=(previous.started_at if previous and previous.started_at else now),
        confidence=previous.confidence if previous else None,
    )


def stage_completed(now: datetime, confidence: float = 1.0) -> StageStatus:
    return StageStatus(status=StageState.COMPLETED, completed_at=now, confidence=confidence)


def stage_failed(now: datetime, error: str, previous: Optional[StageStatus] = None) -> StageStatus:
    return StageStatus(
        status=StageState.FAILED,
        started_at=(previous.started_at if previous and previous.started_at else now),
        completed_at=now,
        confidence=previous.confidence if previous else None,
        error=error,
    )


def with_stage(
    status: Optional[ProcessingStatus],
    stage: StageName,
    new_stage: Optional[StageStatus],
) -> ProcessingStatus:
    """Return a copy of ``status`` with exactly one stage replaced.

    Passing ``None`` as ``new_stage`` removes the stage (marks it not applicable).
    """
    base = status or ProcessingStatus()
    return base.model_copy(update={StageName(stage).value: new_stage})


def is_categorize_applicable(card_type: CardType) -> bool:
    return CardType(card_type) == CardType.LINK


def is_renderables_applicable(card_type: CardType) -> bool:
    return CardType(card_type) in RENDERABLE_TYPES


def build_initial(
    now: datetime,
    card_type: CardType,
    classification_status: Optional[StageStatus] = None,
    metadata_needed: bool = True,
) -> ProcessingStatus:
    """Derive the initial stage map for a freshly created card."""
    return ProcessingStatus(
        classify=classification_status,
        categorize=stage_pending() if is_categorize_applicable(card_type) else stage_completed(now, 1.0),
        metadata=stage_pending() if metadata_needed else stage_completed(now, 1.0),
        renderables=stage_pending() if is_renderables_applicable(card_type) else stage_completed(now, 1.0),
    )


def reset_stages(
    status: Optional[ProcessingStatus],
    stages: Iterable[StageName],
    card_type: Optional[CardType] = None,
) -> ProcessingStatus:
    """Set the named stages back to pending.

    ``categorize`` and ``renderables`` are only reset when applicable to
    ``card_type``; when it is not given, only stages already present are reset.
    """
    current = status or ProcessingStatus()
    for stage in stages:
        stage = StageName(stage)
        if card_type is not None:
            if stage == StageName.CATEGORIZE and not is_categorize_applicable(card_type):
                continue
            if stage == StageName.RENDERABLES and not is_renderables_applicable(card_type):
                continue
        elif current.get(stage) is None and stage != StageName.METADATA:
            continue
        current = with_stage(current, stage, stage_pending())
    return current


def is_stage_pending(status: Optional[ProcessingStatus], stage: StageName) -> bool:
    entry = status.get(stage) if status else None
    return entry is not None and entry.status == StageState.PENDING


def is_stage_completed(status: Optional[ProcessingStatus], stage: StageName) -> bool:
    entry = status.get(stage) if status else None
    return entry is not None and entry.status == StageState.COMPLETED


def retarget_stages(status: Optional[ProcessingStatus], card_type: CardType, now: datetime) -> ProcessingStatus:
    """Re-derive ``categorize`` and ``renderables`` after a card changes type.

    Stages that become applicable go back to pending; stages that stop being
    applicable are marked completed.
    """
    current = status or ProcessingStatus()
    checks = (
        (StageName.CATEGORIZE, is_categorize_applicable(card_type)),
        (StageName.RENDERABLES, is_renderables_applicable(card_type)),
    )
    for stage, applicable in checks:
        entry = current.get(stage)
        if applicable and (entry is None or entry.status == StageState.COMPLETED):
            current = with_stage(current, stage, stage_pending())
        elif not applicable and (entry is None or entry.status != StageState.COMPLETED):
            current = with_stage(current, stage, stage_completed(now, 1.0))
    return current

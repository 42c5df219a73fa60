from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from core import CardType, ProcessingStatus, StageName, StageState
from core.processing_status import (
    build_initial,
    is_stage_completed,
    is_stage_pending,
    reset_stages,
    retarget_stages,
    stage_completed,
    stage_failed,
    stage_in_progress,
    stage_pending,
    with_stage,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_build_initial_for_text_card_only_leaves_metadata_pending() -> None:
    status = build_initial(NOW, CardType.TEXT)

    assert status.classify is None
    assert status.metadata.status == StageState.PENDING
    assert status.categorize.status == StageState.COMPLETED
    assert status.categorize.confidence == 1.0
    assert status.renderables.status == StageState.COMPLETED


def test_build_initial_for_link_and_image_marks_applicable_stages_pending() -> None:
    link = build_initial(NOW, CardType.LINK, classification_status=stage_pending())
    image = build_initial(NOW, CardType.IMAGE)

    assert link.classify.status == StageState.PENDING
    assert link.categorize.status == StageState.PENDING
    assert link.renderables.status == StageState.COMPLETED
    assert image.categorize.status == StageState.COMPLETED
    assert image.renderables.status == StageState.PENDING


def test_build_initial_always_sets_metadata_even_when_not_needed() -> None:
    status = build_initial(NOW, CardType.QUOTE, metadata_needed=False)

    assert status.metadata is not None
    assert status.metadata.status == StageState.COMPLETED


def test_stage_models_are_immutable() -> None:
    status = build_initial(NOW, CardType.TEXT)

    with pytest.raises(ValidationError):
        status.metadata = stage_completed(NOW)
    with pytest.raises(ValidationError):
        status.metadata.status = StageState.FAILED


def test_with_stage_replaces_one_stage_and_keeps_the_rest() -> None:
    original = build_initial(NOW, CardType.LINK, classification_status=stage_completed(NOW, 0.9))
    updated = with_stage(original, StageName.METADATA, stage_in_progress(NOW))

    assert updated.metadata.status == StageState.IN_PROGRESS
    assert updated.classify == original.classify
    assert updated.categorize == original.categorize
    assert original.metadata.status == StageState.PENDING


def test_with_stage_none_removes_stage() -> None:
    updated = with_stage(ProcessingStatus(metadata=stage_pending()), StageName.METADATA, None)
    assert updated.metadata is None


def test_in_progress_and_failed_keep_original_start_time() -> None:
    started = stage_in_progress(NOW)
    later = NOW + timedelta(minutes=3)

    again = stage_in_progress(later, started)
    failed = stage_failed(later, "boom", again)

    assert again.started_at == NOW
    assert failed.started_at == NOW
    assert failed.completed_at == later
    assert failed.error == "boom"


def test_reset_stages_skips_stages_not_applicable_to_type() -> None:
    status = build_initial(NOW, CardType.TEXT)
    status = with_stage(status, StageName.METADATA, stage_completed(NOW))

    reset = reset_stages(status, [StageName.METADATA, StageName.CATEGORIZE, StageName.RENDERABLES], CardType.TEXT)

    assert is_stage_pending(reset, StageName.METADATA)
    assert is_stage_completed(reset, StageName.CATEGORIZE)
    assert is_stage_completed(reset, StageName.RENDERABLES)


def test_retarget_stages_after_text_card_becomes_link() -> None:
    status = build_initial(NOW, CardType.TEXT)

    retargeted = retarget_stages(status, CardType.LINK, NOW)

    assert is_stage_pending(retargeted, StageName.CATEGORIZE)
    assert is_stage_completed(retargeted, StageName.RENDERABLES)
    assert retargeted.metadata == status.metadata

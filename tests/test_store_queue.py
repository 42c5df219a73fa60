from __future__ import annotations

import pytest

from core import Card, LinkPreviewMetadata, StageName, StageState, StageStatus
from orchestrator.queue import InMemoryCardQueue
from orchestrator.store import InMemoryAssetStorage, InMemoryCardStore, new_card_id


def test_queue_is_fifo_and_deduplicates() -> None:
    queue = InMemoryCardQueue()

    assert queue.enqueue("a") is True
    assert queue.enqueue("b") is True
    assert queue.enqueue("a") is False
    assert queue.size() == 2
    assert queue.dequeue() == "a"
    assert queue.enqueue("a") is True
    assert [queue.dequeue(), queue.dequeue(), queue.dequeue()] == ["b", "a", None]


def test_queue_remove() -> None:
    queue = InMemoryCardQueue()
    queue.enqueue("a")
    queue.enqueue("b")

    assert queue.remove("a") is True
    assert queue.remove("a") is False
    assert queue.dequeue() == "b"


def test_store_returns_copies() -> None:
    store = InMemoryCardStore()
    store.save(Card(id="card_1", tags=["one"]))

    fetched = store.get("card_1")
    fetched.tags.append("two")

    assert store.get("card_1").tags == ["one"]


def test_set_stage_touches_only_that_stage() -> None:
    store = InMemoryCardStore()
    store.save(Card(id="card_1"))
    store.set_stage("card_1", StageName.CLASSIFY, StageStatus(status=StageState.COMPLETED, confidence=0.9))
    updated = store.set_stage("card_1", StageName.METADATA, StageStatus(status=StageState.IN_PROGRESS))

    assert updated.processing_status.classify.status == StageState.COMPLETED
    assert updated.processing_status.metadata.status == StageState.IN_PROGRESS
    assert updated.processing_status.categorize is None


def test_set_link_preview_and_metadata_status() -> None:
    store = InMemoryCardStore()
    store.save(Card(id="card_1", url="https://example.com"))
    preview = LinkPreviewMetadata(status="success", url="https://example.com", title="Example")

    updated = store.set_link_preview("card_1", preview, metadata_status="completed")

    assert updated.metadata.link_preview.title == "Example"
    assert updated.metadata_status == "completed"


def test_soft_delete_hides_card() -> None:
    store = InMemoryCardStore()
    store.save(Card(id="card_1"))

    assert store.soft_delete("card_1") is True
    assert store.get("card_1") is None
    assert store.update("card_1", content="x") is None
    assert store.soft_delete("card_1") is False


def test_new_card_id_is_unique() -> None:
    assert new_card_id() != new_card_id()
    assert new_card_id().startswith("card_")


@pytest.mark.asyncio
async def test_asset_storage_round_trip() -> None:
    storage = InMemoryAssetStorage(base_url="https://assets.test/")
    asset_id = await storage.store(b"png", "image/png")

    assert await storage.get_bytes(asset_id) == b"png"
    assert await storage.get_url(asset_id) == f"https://assets.test/{asset_id}"
    await storage.delete(asset_id)
    assert storage.exists(asset_id) is False
    assert await storage.get_url(asset_id) is None

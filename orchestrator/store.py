"""In-memory card and asset stores."""

from __future__ import annotations

from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, Optional
from uuid import uuid4

from core import Card, LinkCategoryMetadata, LinkPreviewMetadata, StageName, StageStatus
from core.processing_status import with_stage


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_card_id() -> str:
    return f"card_{_utcnow().strftime('%Y%m%d_%H%M%S')}_{uuid4().hex[:8]}"


class InMemoryCardStore:
    """Thread-safe card store. Returns deep copies so callers never share state."""

    def __init__(self) -> None:
        self._cards: Dict[str, Card] = {}
        self._lock = Lock()

    def get(self, card_id: str) -> Optional[Card]:
        with self._lock:
            card = self._cards.get(card_id)
            if card is None or card.is_deleted:
                return None
            return card.model_copy(deep=True)

    def save(self, card: Card) -> Card:
        with self._lock:
            stored = card.model_copy(deep=True)
            self._cards[stored.id] = stored
            return stored.model_copy(deep=True)

    def _replace(self, card_id: str, update: Dict[str, Any]) -> Optional[Card]:
        card = self._cards.get(card_id)
        if card is None or card.is_deleted:
            return None
        update = {**update, "updated_at": _utcnow()}
        stored = card.model_copy(update=update, deep=True)
        self._cards[card_id] = stored
        return stored.model_copy(deep=True)

    def update(self, card_id: str, **fields: Any) -> Optional[Card]:
        with self._lock:
            return self._replace(card_id, fields)

    def set_stage(self, card_id: str, stage: StageName, status: Optional[StageStatus]) -> Optional[Card]:
        """Replace one stage entry; other stages are left as stored."""
        with self._lock:
            card = self._cards.get(card_id)
            if card is None or card.is_deleted:
                return None
            return self._replace(card_id, {"processing_status": with_stage(card.processing_status, stage, status)})

    def set_link_preview(
        self,
        card_id: str,
        preview: Optional[LinkPreviewMetadata],
        metadata_status: Optional[str] = None,
    ) -> Optional[Card]:
        with self._lock:
            card = self._cards.get(card_id)
            if card is None or card.is_deleted:
                return None
            update: Dict[str, Any] = {"metadata": card.metadata.model_copy(update={"link_preview": preview})}
            if metadata_status is not None:
                update["metadata_status"] = metadata_status
            return self._replace(card_id, update)

    def set_link_category(self, card_id: str, metadata: Optional[LinkCategoryMetadata]) -> Optional[Card]:
        with self._lock:
            card = self._cards.get(card_id)
            if card is None or card.is_deleted:
                return None
            return self._replace(
                card_id, {"metadata": card.metadata.model_copy(update={"link_category": metadata})}
            )

    def soft_delete(self, card_id: str) -> bool:
        with self._lock:
            card = self._cards.get(card_id)
            if card is None or card.is_deleted:
                return False
            now = _utcnow()
            self._cards[card_id] = card.model_copy(update={"is_deleted": True, "deleted_at": now, "updated_at": now})
            return True


class InMemoryAssetStorage:
    """Byte blobs keyed by generated asset IDs."""

    def __init__(self, base_url: str = "memory://assets") -> None:
        self._assets: Dict[str, bytes] = {}
        self._content_types: Dict[str, str] = {}
        self._base_url = base_url.rstrip("/")
        self._lock = Lock()

    async def store(self, data: bytes, content_type: str) -> str:
        asset_id = f"asset_{uuid4().hex[:12]}"
        with self._lock:
            self._assets[asset_id] = bytes(data)
            self._content_types[asset_id] = content_type
        return asset_id

    async def get_url(self, asset_id: str) -> Optional[str]:
        with self._lock:
            if asset_id not in self._assets:
                return None
        return f"{self._base_url}/{asset_id}"

    async def get_bytes(self, asset_id: str) -> Optional[bytes]:
        with self._lock:
            return self._assets.get(asset_id)

    async def delete(self, asset_id: str) -> None:
        with self._lock:
            self._assets.pop(asset_id, None)
            self._content_types.pop(asset_id, None)

    def exists(self, asset_id: str) -> bool:
        with self._lock:
            return asset_id in self._assets

"""Thumbnail rendering for image cards."""

from __future__ import annotations

import asyncio
import io
from typing import Optional, Tuple

from PIL import Image

from core.contracts import Card, CardType
from utils.exceptions import MissingDataError

THUMBNAIL_SIZE: Tuple[int, int] = (400, 400)


def render_thumbnail(image_bytes: bytes, size: Tuple[int, int] = THUMBNAIL_SIZE) -> bytes:
    """Downscale to fit ``size`` and encode as PNG."""
    with Image.open(io.BytesIO(image_bytes)) as image:
        thumb = image.convert("RGBA")
        thumb.thumbnail(size)
        buffer = io.BytesIO()
        thumb.save(buffer, format="PNG")
    return buffer.getvalue()


class PillowThumbnailGenerator:
    """Stores a PNG thumbnail for image cards that carry a file."""

    def __init__(self, storage, size: Tuple[int, int] = THUMBNAIL_SIZE) -> None:
        self._storage = storage
        self._size = size

    async def generate(self, card: Card) -> Optional[str]:
        if card.type != CardType.IMAGE or not card.file_id:
            return None
        data = await self._storage.get_bytes(card.file_id)
        if not data:
            raise MissingDataError(f"File {card.file_id} not found for card {card.id}")
        thumbnail = await asyncio.to_thread(render_thumbnail, data, self._size)
        return await self._storage.store(thumbnail, "image/png")

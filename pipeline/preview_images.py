"""Download and store the Open Graph image of a link preview."""

from __future__ import annotations

import asyncio
import base64
import binascii
import io
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
from urllib.parse import unquote_to_bytes

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

_EXTENSION_RE = re.compile(r"\.(png|jpe?g|webp|gif|avif|svg)(?:[?#]|$)", re.IGNORECASE)

EXTENSION_CONTENT_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "gif": "image/gif",
    "avif": "image/avif",
    "svg": "image/svg+xml",
}


@dataclass(frozen=True)
class FetchedImage:
    data: bytes
    content_type: Optional[str] = None


def is_data_uri(url: Optional[str]) -> bool:
    return bool(url) and url[:5].lower() == "data:"


def guess_image_content_type(url: Optional[str]) -> Optional[str]:
    match = _EXTENSION_RE.search(url or "")
    if not match:
        return None
    return EXTENSION_CONTENT_TYPES[match.group(1).lower()]


def resolve_image_content_type(header: Optional[str], url: Optional[str]) -> Optional[str]:
    """Pick the image MIME type from the response header, a data URI, or the file extension."""
    if header and header.strip().lower().startswith("image/"):
        return header.split(";")[0].strip().lower()
    if is_data_uri(url):
        declared = re.split(r"[;,]", url[5:], maxsplit=1)[0].strip().lower()
        return declared or None
    return guess_image_content_type(url)


def decode_data_uri(url: str) -> Optional[FetchedImage]:
    """Decode a ``data:`` URI. Returns None when the payload is malformed."""
    if not is_data_uri(url) or "," not in url:
        return None
    header, payload = url[5:].split(",", 1)
    params = [part.strip().lower() for part in header.split(";")]
    try:
        if "base64" in params[1:]:
            data = base64.b64decode(payload, validate=False)
        else:
            data = unquote_to_bytes(payload)
    except (binascii.Error, ValueError):
        return None
    return FetchedImage(data=data, content_type=params[0] or None)


def read_image_dimensions(data: bytes) -> Optional[Tuple[int, int]]:
    try:
        with Image.open(io.BytesIO(data)) as image:
            width, height = image.size
    except (UnidentifiedImageError, OSError, ValueError):
        return None
    if width <= 0 or height <= 0:
        return None
    return width, height


async def store_preview_image(image_url: str, fetcher, storage, now: datetime) -> Optional[Dict[str, Any]]:
    """Fetch, measure and store a preview image.

    Returns the ``image_*`` preview fields, or None when the image could not be
    fetched, typed, decoded or stored. Problems are logged, never raised.
    """
    try:
        if is_data_uri(image_url):
            fetched = decode_data_uri(image_url)
        elif fetcher is not None:
            fetched = await fetcher.fetch(image_url)
        else:
            return None
        if fetched is None or not fetched.data:
            logger.warning("preview image fetch failed url=%s", image_url[:120])
            return None

        content_type = resolve_image_content_type(fetched.content_type, image_url)
        if not content_type:
            logger.warning("preview image has unknown content type url=%s", image_url[:120])
            return None

        dimensions = await asyncio.to_thread(read_image_dimensions, fetched.data)
        if dimensions is None:
            logger.warning("preview image could not be decoded url=%s", image_url[:120])
            return None

        storage_id = await storage.store(fetched.data, content_type)
    except Exception as exc:
        logger.warning("preview image store failed url=%s error=%s", image_url[:120], exc)
        return None

    width, height = dimensions
    return {
        "image_storage_id": storage_id,
        "image_updated_at": now,
        "image_width": width,
        "image_height": height,
    }

from __future__ import annotations

import base64
import io
from datetime import datetime, timezone
from typing import Optional

import pytest
from PIL import Image

from orchestrator.store import InMemoryAssetStorage
from pipeline.preview_images import (
    FetchedImage,
    decode_data_uri,
    guess_image_content_type,
    read_image_dimensions,
    resolve_image_content_type,
    store_preview_image,
)

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _png(size=(64, 32)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, (0, 128, 255)).save(buffer, format="PNG")
    return buffer.getvalue()


class _Fetcher:
    def __init__(self, image: Optional[FetchedImage] = None, error: Optional[Exception] = None) -> None:
        self.image = image
        self.error = error
        self.urls = []

    async def fetch(self, url: str) -> Optional[FetchedImage]:
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return self.image


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://cdn.example.com/og.PNG", "image/png"),
        ("https://cdn.example.com/og.jpg?v=2", "image/jpeg"),
        ("https://cdn.example.com/og.svg#x", "image/svg+xml"),
        ("https://cdn.example.com/og.avif", "image/avif"),
        ("https://cdn.example.com/og", None),
        ("https://cdn.example.com/og.png.html", None),
    ],
)
def test_guess_image_content_type(url: str, expected) -> None:
    assert guess_image_content_type(url) == expected


def test_resolve_image_content_type_prefers_header() -> None:
    assert resolve_image_content_type("image/webp; charset=binary", "https://x.test/a.png") == "image/webp"
    assert resolve_image_content_type("text/html", "https://x.test/a.png") == "image/png"
    assert resolve_image_content_type(None, "data:image/gif;base64,R0lGODlh") == "image/gif"
    assert resolve_image_content_type("application/octet-stream", "https://x.test/a") is None


def test_decode_data_uri() -> None:
    encoded = base64.b64encode(b"\x89PNG").decode()

    assert decode_data_uri(f"data:image/png;base64,{encoded}") == FetchedImage(b"\x89PNG", "image/png")
    assert decode_data_uri("data:image/svg+xml,%3Csvg%2F%3E") == FetchedImage(b"<svg/>", "image/svg+xml")
    assert decode_data_uri("data:image/png;base64") is None
    assert decode_data_uri("https://x.test/a.png") is None


def test_read_image_dimensions() -> None:
    assert read_image_dimensions(_png()) == (64, 32)
    assert read_image_dimensions(b"not an image") is None


@pytest.mark.asyncio
async def test_store_preview_image_fetches_measures_and_stores() -> None:
    storage = InMemoryAssetStorage()
    fetcher = _Fetcher(FetchedImage(_png(), "image/png"))

    stored = await store_preview_image("https://cdn.example.com/og", fetcher, storage, NOW)

    assert fetcher.urls == ["https://cdn.example.com/og"]
    assert stored["image_width"] == 64
    assert stored["image_height"] == 32
    assert stored["image_updated_at"] == NOW
    assert await storage.get_bytes(stored["image_storage_id"]) == _png()


@pytest.mark.asyncio
async def test_store_preview_image_decodes_data_uri_without_fetcher() -> None:
    storage = InMemoryAssetStorage()
    url = "data:image/png;base64," + base64.b64encode(_png((8, 8))).decode()

    stored = await store_preview_image(url, None, storage, NOW)

    assert (stored["image_width"], stored["image_height"]) == (8, 8)
    assert storage.exists(stored["image_storage_id"])


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "fetcher",
    [
        _Fetcher(None),
        _Fetcher(FetchedImage(_png(), "application/octet-stream")),
        _Fetcher(FetchedImage(b"<html></html>", "image/png")),
        _Fetcher(error=RuntimeError("connection reset")),
        None,
    ],
)
async def test_store_preview_image_is_best_effort(fetcher) -> None:
    storage = InMemoryAssetStorage()

    assert await store_preview_image("https://cdn.example.com/og", fetcher, storage, NOW) is None

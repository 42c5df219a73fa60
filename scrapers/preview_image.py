"""
Preview Image Fetcher
Downloads Open Graph images so link previews can keep a stored copy
"""
import logging
from typing import Dict, Optional

import httpx

from pipeline.preview_images import FetchedImage, decode_data_uri, is_data_uri

from .base import BaseScraper


logger = logging.getLogger(__name__)

IMAGE_ACCEPT = "image/avif,image/webp,image/png,image/jpeg,image/*;q=0.8,*/*;q=0.5"


class PreviewImageFetcher(BaseScraper):
    """
    Image downloader for link previews.

    ``data:`` URIs are decoded without a request. Non-OK responses and bodies
    over ``max_image_size`` return None.
    """

    @property
    def name(self) -> str:
        return "preview_image"

    @property
    def max_size(self) -> int:
        return self.settings.max_image_size

    def default_headers(self) -> Dict[str, str]:
        return {"User-Agent": self.user_agent, "Accept": IMAGE_ACCEPT}

    async def fetch(self, url: str) -> Optional[FetchedImage]:
        if is_data_uri(url):
            return decode_data_uri(url)

        client = await self._get_client()
        try:
            response = await client.get(url, headers=self.default_headers())
        except httpx.HTTPError as exc:
            self._log_error(f"fetch failed for {url}", exc)
            return None

        if response.status_code >= 400:
            logger.info(f"[{self.name}] {url} returned HTTP {response.status_code}")
            return None

        declared = response.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > self.max_size:
            logger.info(f"[{self.name}] {url} image too large ({declared} bytes)")
            return None
        data = response.content
        if len(data) > self.max_size:
            logger.info(f"[{self.name}] {url} image too large ({len(data)} bytes)")
            return None

        return FetchedImage(data=data, content_type=response.headers.get("content-type"))

"""
JSON-LD Fetcher
Downloads a page and extracts schema.org entities for link categorization
"""
import logging
from datetime import datetime, timezone
from typing import Optional

import httpx

from config import get_categorization_settings
from config.settings import CategorizationSettings
from core import StructuredData
from pipeline.structured_data import structured_data_from_html

from .base import BaseScraper


logger = logging.getLogger(__name__)


class JsonLdFetcher(BaseScraper):
    """
    Structured data fetcher.

    Returns None for non-OK responses, non-HTML bodies and pages whose declared
    size is more than twice the parse limit. Bodies are truncated to the limit.
    """

    def __init__(
        self,
        settings: Optional[CategorizationSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.categorization = settings or get_categorization_settings()
        super().__init__(client=client)

    @property
    def name(self) -> str:
        return "json_ld"

    @property
    def timeout(self) -> float:
        return self.categorization.fetch_timeout

    @property
    def user_agent(self) -> str:
        return self.categorization.user_agent

    async def fetch(self, url: str) -> Optional[StructuredData]:
        client = await self._get_client()
        try:
            response = await client.get(url, headers=self.default_headers())
        except httpx.HTTPError as exc:
            self._log_error(f"fetch failed for {url}", exc)
            return None

        if response.status_code >= 400:
            logger.info(f"[{self.name}] {url} returned HTTP {response.status_code}")
            return None
        content_type = response.headers.get("content-type", "").lower()
        if "html" not in content_type:
            return None

        max_size = self.categorization.max_fetch_body_size
        declared = response.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > max_size * 2:
            logger.info(f"[{self.name}] {url} body too large ({declared} bytes)")
            return None

        html = response.text[:max_size]
        structured = await self._run_blocking(
            structured_data_from_html,
            html,
            self.categorization.structured_data_max_items,
            etag=response.headers.get("etag"),
            last_modified=response.headers.get("last-modified"),
            fetched_at=datetime.now(timezone.utc),
        )
        if not structured.entities:
            return None
        return structured

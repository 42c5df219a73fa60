"""
Base Scraper
Shared HTTP client lifecycle for page scrapers
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, TypeVar

import httpx

from config import get_scraper_settings
from config.settings import ScraperSettings
from utils.exceptions import ScraperError


logger = logging.getLogger(__name__)

R = TypeVar("R")

HTML_ACCEPT = "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8"


class BaseScraper(ABC):
    """
    Base class for scrapers that fetch pages over HTTP.

    A client passed in is borrowed and never closed; otherwise one is created
    lazily and closed by ``close()`` or the async context manager.
    """

    def __init__(
        self,
        settings: Optional[ScraperSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_scraper_settings()
        self._client = client
        self._owns_client = client is None
        if self.timeout <= 0:
            raise ScraperError("timeout must be positive", source=self.name, timeout=self.timeout)

    @property
    @abstractmethod
    def name(self) -> str:
        """Scraper name used in logs"""
        pass

    @property
    def timeout(self) -> float:
        return self.settings.timeout

    @property
    def user_agent(self) -> str:
        return self.settings.user_agent

    def default_headers(self) -> Dict[str, str]:
        return {"User-Agent": self.user_agent, "Accept": HTML_ACCEPT}

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers=self.default_headers(),
            )
            self._owns_client = True
        return self._client

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _run_blocking(self, func: Callable[..., R], *args, **kwargs) -> R:
        """Run CPU-bound parsing in a worker thread."""
        return await asyncio.to_thread(func, *args, **kwargs)

    def _log_error(self, message: str, error: Exception):
        logger.error(f"[{self.name}] {message}: {error}")

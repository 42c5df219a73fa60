"""
HTML Selector Scraper
Fetches a page with httpx and runs CSS selectors over it with BeautifulSoup
"""
import logging
from typing import List, Sequence

from bs4 import BeautifulSoup

from core import ScrapeAttribute, ScrapeResponse, ScrapeResultItem, ScrapeSelectorResult

from .base import BaseScraper


logger = logging.getLogger(__name__)

MAX_ITEM_HTML_LENGTH = 2000


def _attribute_value(value) -> str:
    if isinstance(value, (list, tuple)):
        return " ".join(str(part) for part in value)
    return str(value)


def select_elements(html: str, selectors: Sequence[str], max_results: int = 5) -> List[ScrapeSelectorResult]:
    """Run each selector against ``html``; every selector gets an entry, possibly empty."""
    soup = BeautifulSoup(html, "lxml")
    results: List[ScrapeSelectorResult] = []
    for selector in selectors:
        items: List[ScrapeResultItem] = []
        try:
            matches = soup.select(selector, limit=max_results)
        except Exception as exc:
            logger.warning("selector rejected selector=%s error=%s", selector, exc)
            matches = []
        for node in matches:
            items.append(
                ScrapeResultItem(
                    text=node.get_text(" ", strip=True),
                    html=str(node)[:MAX_ITEM_HTML_LENGTH],
                    attributes=[
                        ScrapeAttribute(name=name, value=_attribute_value(value))
                        for name, value in (node.attrs or {}).items()
                    ],
                )
            )
        results.append(ScrapeSelectorResult(selector=selector, results=items))
    return results


class HtmlSelectorScraper(BaseScraper):
    """
    Selector scraper backed by a plain HTTP fetch.

    Ordinary failures (HTTP status, non-HTML body) come back as
    ``ScrapeResponse(success=False)``. Timeouts and transport errors propagate
    as httpx exceptions so the caller can classify them.
    """

    @property
    def name(self) -> str:
        return "html_selector"

    async def scrape(self, url: str, selectors: Sequence[str]) -> ScrapeResponse:
        client = await self._get_client()
        response = await client.get(url, headers=self.default_headers())

        if response.status_code == 429:
            return ScrapeResponse(success=False, error="HTTP 429: rate limit exceeded")
        if response.status_code >= 400:
            return ScrapeResponse(success=False, error=f"HTTP {response.status_code}: {response.reason_phrase}")

        content_type = response.headers.get("content-type", "")
        if content_type and "html" not in content_type.lower():
            return ScrapeResponse(success=False, error=f"Unsupported content type: {content_type}")

        results = await self._run_blocking(
            select_elements, response.text, list(selectors), self.settings.max_results_per_selector
        )
        final_url = str(response.url)
        if final_url != url:
            logger.info(f"[{self.name}] {url} redirected to {final_url}")
        return ScrapeResponse(success=True, results=results)

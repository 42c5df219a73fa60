"""
Scrapers Module
"""
from .base import BaseScraper
from .html_scraper import HtmlSelectorScraper, select_elements
from .preview_image import PreviewImageFetcher
from .structured_data import JsonLdFetcher

__all__ = [
    "BaseScraper",
    "HtmlSelectorScraper",
    "JsonLdFetcher",
    "PreviewImageFetcher",
    "select_elements",
]

"""
Configuration Management Module
"""
from .settings import (
    Settings,
    CategorizationSettings,
    LoggingSettings,
    RetrySettings,
    ScraperSettings,
    ScreenshotSettings,
    get_settings,
    get_retry_settings,
    get_categorization_settings,
    get_scraper_settings,
    get_screenshot_settings,
)

__all__ = [
    "Settings",
    "CategorizationSettings",
    "LoggingSettings",
    "RetrySettings",
    "ScraperSettings",
    "ScreenshotSettings",
    "get_settings",
    "get_retry_settings",
    "get_categorization_settings",
    "get_scraper_settings",
    "get_screenshot_settings",
]

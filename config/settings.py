"""
Settings Configuration
Pydantic-validated configuration for the card pipeline.
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings

from utils.exceptions import ConfigurationError


class RetrySettings(BaseSettings):
    """Backoff policies for the retried steps"""
    metadata_max_attempts: int = Field(default=8, description="AI metadata generation attempts")
    metadata_initial_backoff_ms: int = Field(default=400, description="First metadata retry delay")
    metadata_base: float = Field(default=1.8, description="Metadata backoff multiplier")

    link_metadata_max_attempts: int = Field(default=5, description="Link preview scrape attempts")
    link_metadata_initial_backoff_ms: int = Field(default=5000, description="First scrape retry delay")
    link_metadata_base: float = Field(default=2.0, description="Scrape backoff multiplier")

    link_enrichment_max_attempts: int = Field(default=5, description="Categorization attempts")
    link_enrichment_initial_backoff_ms: int = Field(default=1200, description="First categorization retry delay")
    link_enrichment_base: float = Field(default=1.6, description="Categorization backoff multiplier")

    class Config:
        env_prefix = "PIPELINE_RETRY_"


class CategorizationSettings(BaseSettings):
    """Link categorization and structured data fetching"""
    cache_ttl_days: int = Field(default=30, description="Freshness window for cached categories and structured data")
    structured_data_max_items: int = Field(default=8, description="Max JSON-LD entities kept")
    max_fetch_body_size: int = Field(default=250_000, description="Max page characters parsed for JSON-LD")
    fetch_timeout: float = Field(default=10.0, description="Structured data request timeout (seconds)")
    user_agent: str = Field(
        default="Mozilla/5.0 (compatible; CardPipelineBot/1.0)",
        description="User agent for structured data requests",
    )

    class Config:
        env_prefix = "CATEGORIZATION_"


class ScraperSettings(BaseSettings):
    """Selector scraper used for link previews"""
    timeout: float = Field(default=15.0, description="Page fetch timeout (seconds)")
    user_agent: str = Field(
        default="Mozilla/5.0 (compatible; CardPipelineBot/1.0)",
        description="User agent for page fetches",
    )
    max_results_per_selector: int = Field(default=5, description="Matched elements kept per selector")
    max_image_size: int = Field(default=10 * 1024 * 1024, description="Largest preview image downloaded (bytes)")

    class Config:
        env_prefix = "SCRAPER_"


class ScreenshotSettings(BaseSettings):
    """Screenshot capture retry loop"""
    rate_limit_max_retries: int = Field(default=3, description="Retries after a rate-limit response")
    rate_limit_delay_ms: int = Field(default=15_000, description="Delay before a rate-limit retry")
    http_max_retries: int = Field(default=1, description="Retries after a generic HTTP error")
    http_retry_delay_ms: int = Field(default=5_000, description="Delay before an HTTP error retry")

    class Config:
        env_prefix = "SCREENSHOT_"


class LoggingSettings(BaseSettings):
    """Logging"""
    level: str = Field(default="INFO", description="Log level")
    file: Optional[str] = Field(default=None, description="Optional log file name under logs/")
    use_rich: bool = Field(default=True, description="Render console logs with Rich")

    class Config:
        env_prefix = "LOG_"


class Settings(BaseSettings):
    """Aggregate of all settings groups"""

    retry: RetrySettings = Field(default_factory=RetrySettings)
    categorization: CategorizationSettings = Field(default_factory=CategorizationSettings)
    scraper: ScraperSettings = Field(default_factory=ScraperSettings)
    screenshot: ScreenshotSettings = Field(default_factory=ScreenshotSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def load_from_env_file(cls, env_path: Optional[Path] = None) -> "Settings":
        """Load a .env file (default ``config/.env``) before reading the environment."""
        if env_path is None:
            env_path = Path(__file__).parent / ".env"

        if env_path.exists():
            from dotenv import load_dotenv
            load_dotenv(env_path)

        try:
            return cls(
                retry=RetrySettings(),
                categorization=CategorizationSettings(),
                scraper=ScraperSettings(),
                screenshot=ScreenshotSettings(),
                logging=LoggingSettings(),
            )
        except ValidationError as exc:
            raise ConfigurationError("Invalid pipeline settings", {"errors": exc.errors()}) from exc


@lru_cache()
def get_settings() -> Settings:
    return Settings.load_from_env_file()


def get_retry_settings() -> RetrySettings:
    return get_settings().retry


def get_categorization_settings() -> CategorizationSettings:
    return get_settings().categorization


def get_scraper_settings() -> ScraperSettings:
    return get_settings().scraper


def get_screenshot_settings() -> ScreenshotSettings:
    return get_settings().screenshot

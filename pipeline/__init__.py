"""Deterministic enrichment engines used by the card pipeline."""

from .categorization import CategoryCachePolicy, CategorizationPlan, enrich_link_category, plan_categorization
from .classification import DeterministicClassifier, classify_card
from .link_categories import LinkCategoryHints, LinkCategoryResolution, resolve_link_category
from .link_metadata import build_error_preview, build_success_preview, parse_link_preview
from .quotes import QuoteNormalization, normalize_quote_content
from .selectors import SCRAPE_ELEMENTS
from .urls import extract_url_from_content, normalize_url, normalize_url_for_comparison

__all__ = [
    "CategoryCachePolicy",
    "CategorizationPlan",
    "DeterministicClassifier",
    "LinkCategoryHints",
    "LinkCategoryResolution",
    "QuoteNormalization",
    "SCRAPE_ELEMENTS",
    "build_error_preview",
    "build_success_preview",
    "classify_card",
    "enrich_link_category",
    "extract_url_from_content",
    "normalize_quote_content",
    "normalize_url",
    "normalize_url_for_comparison",
    "parse_link_preview",
    "plan_categorization",
    "resolve_link_category",
]

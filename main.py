"""CLI entrypoint for the card enrichment pipeline."""

from __future__ import annotations

import argparse
import asyncio
import json
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from config import get_settings
from core import Card, CardType, FileMetadata
from orchestrator import CardPipelineOrchestrator, InMemoryAssetStorage, InMemoryCardStore, new_card_id
from pipeline import LinkCategoryHints, normalize_quote_content, resolve_link_category
from pipeline.link_categories import get_link_category_label
from pipeline.link_metadata import parse_link_preview
from pipeline.selectors import SCRAPE_ELEMENTS
from pipeline.urls import normalize_url
from scrapers import HtmlSelectorScraper, JsonLdFetcher, PreviewImageFetcher
from utils import configure_pipeline_logging


def _print(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _split_tags(raw: str) -> List[str]:
    return [item.strip() for item in str(raw or "").split(",") if item.strip()]


async def _process(args: argparse.Namespace) -> Dict[str, Any]:
    settings = get_settings()
    store = InMemoryCardStore()
    storage = InMemoryAssetStorage()
    file_id: Optional[str] = None
    file_metadata: Optional[FileMetadata] = None
    if args.file:
        with open(args.file, "rb") as handle:
            data = handle.read()
        file_id = await storage.store(data, args.mime_type or "application/octet-stream")
        file_metadata = FileMetadata(file_name=args.file, mime_type=args.mime_type, file_size=len(data))

    async with HtmlSelectorScraper(settings.scraper) as scraper, JsonLdFetcher(
        settings.categorization
    ) as fetcher, PreviewImageFetcher(settings.scraper) as images:
        orchestrator = CardPipelineOrchestrator(
            store=store,
            scraper=scraper,
            storage=storage,
            structured_fetcher=None if args.no_structured else fetcher,
            image_fetcher=images,
            settings=settings,
        )
        card = orchestrator.create_card(
            Card(
                id=new_card_id(),
                type=CardType(args.type) if args.type else CardType.TEXT,
                content=args.content or args.url or "",
                url=args.url,
                file_id=file_id,
                file_metadata=file_metadata,
                tags=_split_tags(args.tags),
            ),
            type_confirmed=bool(args.type),
        )
        results = await orchestrator.drain()

    final = store.get(card.id)
    return {
        "card": final.model_dump(mode="json", exclude={"metadata": {"link_preview": {"raw"}}}),
        "steps": {
            name.value: {"status": outcome.status, "message": outcome.message}
            for result in results
            for name, outcome in result.outcomes.items()
        },
    }


async def _preview(url: str) -> Dict[str, Any]:
    normalized = normalize_url(url)
    async with HtmlSelectorScraper() as scraper:
        response = await scraper.scrape(normalized, SCRAPE_ELEMENTS)
    if not response.success:
        return {"url": normalized, "success": False, "error": response.error}
    parsed = parse_link_preview(normalized, response.results)
    payload = asdict(parsed)
    payload.pop("raw", None)
    return {"url": normalized, "success": True, "preview": payload}


def main() -> None:
    parser = argparse.ArgumentParser(description="Card enrichment pipeline CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    process = sub.add_parser("process", help="run the full pipeline for one card")
    process.add_argument("--url", default=None)
    process.add_argument("--content", default="")
    process.add_argument("--file", default=None)
    process.add_argument("--mime-type", default=None)
    process.add_argument("--type", choices=[item.value for item in CardType], default=None)
    process.add_argument("--tags", default="")
    process.add_argument("--no-structured", action="store_true")

    resolve = sub.add_parser("resolve", help="categorize a URL")
    resolve.add_argument("url")
    resolve.add_argument("--site-name", default=None)
    resolve.add_argument("--title", default=None)

    normalize = sub.add_parser("normalize", help="strip wrapping quotes from quote text")
    normalize.add_argument("text")

    preview = sub.add_parser("preview", help="scrape and parse link preview metadata")
    preview.add_argument("url")

    args = parser.parse_args()
    log_settings = get_settings().logging
    configure_pipeline_logging(log_settings.level, log_settings.file, log_settings.use_rich)

    if args.command == "process":
        if not (args.url or args.content or args.file):
            parser.error("process needs --url, --content or --file")
        _print(asyncio.run(_process(args)))
        return

    if args.command == "resolve":
        resolution = resolve_link_category(args.url, LinkCategoryHints(site_name=args.site_name, title=args.title))
        payload = asdict(resolution)
        payload["category"] = resolution.category.value
        payload["label"] = get_link_category_label(resolution.category)
        _print(payload)
        return

    if args.command == "normalize":
        _print(asdict(normalize_quote_content(args.text)))
        return

    if args.command == "preview":
        _print(asyncio.run(_preview(args.url)))
        return


if __name__ == "__main__":
    main()

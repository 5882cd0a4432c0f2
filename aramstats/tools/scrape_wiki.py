#!/usr/bin/env python3
"""
tools/scrape_wiki.py
Force un scrape complet du wiki et affiche un résumé (sans toucher l'API).
  --no-store   n'écrit pas dans PocketBase (store en mémoire)
  --html FILE  parse une page déjà téléchargée au lieu de fetcher
  --check      vérifie PocketBase et le lancement de Chromium, sans scraper
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from aramstats.config import settings
from aramstats.errors import WikiDataError
from aramstats.fetch.headless import HeadlessBrowser
from aramstats.logging_config import setup_logging
from aramstats.models.champion import FetchResult
from aramstats.server import build_service
from aramstats.store.pocketbase import PocketBaseStore
from aramstats.wiki.lua import extract_table
from aramstats.wiki.parser import extract_patch_version, parse_records


class MemoryStore:
    """Stand-in store for dry runs."""

    def __init__(self):
        self.result: Optional[FetchResult] = None

    async def get(self) -> Optional[FetchResult]:
        return self.result

    async def save(self, result: FetchResult) -> None:
        self.result = result

    async def close(self) -> None:
        pass


def print_summary(result: FetchResult, limit: int = 5) -> None:
    print(f"Patch version   : {result.source_version}")
    print(f"Champions       : {len(result.records)}")
    print(f"Timestamp       : {datetime.fromtimestamp(result.fetched_at / 1000, tz=timezone.utc).isoformat()}")
    print(f"Origin          : {result.origin.value}")
    for record in list(result.records.values())[:limit]:
        modified = record.stats_for("aram").modified_fields()
        print(f"\n{record.name} (ID: {record.id})")
        if not modified:
            print("  No ARAM modifications")
        for stat, value in modified.items():
            print(f"  {stat}: {value}")


async def check_dependencies() -> int:
    """Report whether PocketBase answers and Chromium can be launched."""
    async with PocketBaseStore(settings.POCKETBASE_URL, settings.POCKETBASE_TOKEN) as store:
        store_ok = await store.check_health()
    browser_ok = await HeadlessBrowser().health_check()

    print(f"PocketBase      : {'✅' if store_ok else '❌'} {settings.POCKETBASE_URL}")
    print(f"Chromium        : {'✅' if browser_ok else '❌'}")
    return 0 if store_ok and browser_ok else 1


def parse_saved_page(path: str) -> FetchResult:
    page = Path(path).read_text(encoding="utf-8")
    literal = extract_table(page)
    return FetchResult(
        records=parse_records(literal),
        fetched_at=0,
        source_version=extract_patch_version(literal),
    )


async def run(args: argparse.Namespace) -> int:
    if args.check:
        return await check_dependencies()

    if args.html:
        try:
            result = parse_saved_page(args.html)
        except (OSError, WikiDataError) as e:
            print(f"❌ Parsing failed: {e}", file=sys.stderr)
            return 1
        print_summary(result, args.limit)
        return 0 if result.records else 1

    service = build_service(settings)
    if args.no_store:
        await service.store.close()
        service.store = MemoryStore()
    try:
        result = await service.get_data(force_refresh=True, max_age_ms=0)
    except WikiDataError as e:
        print(f"❌ Scraping failed: {e}", file=sys.stderr)
        return 1
    finally:
        await service.close()

    print_summary(result, args.limit)
    print("\n✅ Scraping OK")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Scrape Module:ChampionData once and print a summary")
    parser.add_argument("--no-store", action="store_true", help="do not write to PocketBase")
    parser.add_argument("--html", help="parse a saved HTML page instead of fetching")
    parser.add_argument("--limit", type=int, default=5, help="champions to print")
    parser.add_argument("--check", action="store_true", help="check PocketBase and Chromium, then exit")
    args = parser.parse_args()

    setup_logging(level=settings.LOG_LEVEL)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()

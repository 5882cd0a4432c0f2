# server.py – Point d'entrée : settings → logging → services → API
# -----------------------------------------------------------------------------
#  • Un seul AcquisitionService par process, construit ici et passé à l'app.
#  • Chromium n'est lancé qu'au premier fetch headless et fermé à l'arrêt.
# -----------------------------------------------------------------------------

from __future__ import annotations

import uvicorn
from fastapi import FastAPI

from aramstats.config import Settings, settings
from aramstats.fetch.strategies import build_default_chain
from aramstats.logging_config import get_logger, setup_logging
from aramstats.services.acquisition import AcquisitionService
from aramstats.store.pocketbase import PocketBaseStore
from aramstats.web.api import create_app

log = get_logger("aramstats.server")


def build_service(config: Settings = settings) -> AcquisitionService:
    """Wire the fetch chain and the cache store into one AcquisitionService."""
    store = PocketBaseStore(
        config.POCKETBASE_URL,
        config.POCKETBASE_TOKEN,
        collection=config.POCKETBASE_COLLECTION,
        record_id=config.POCKETBASE_RECORD_ID,
    )
    return AcquisitionService(
        build_default_chain(config),
        store,
        wiki_url=config.WIKI_URL,
        max_age_ms=config.CACHE_MAX_AGE_MS,
    )


def build_app(config: Settings = settings) -> FastAPI:
    return create_app(build_service(config), refresh_secret=config.REFRESH_SECRET)


def main() -> None:
    setup_logging(level=settings.LOG_LEVEL)
    log.info("Starting ARAM wiki data API on %s:%s", settings.API_HOST, settings.API_PORT)
    uvicorn.run(build_app(settings), host=settings.API_HOST, port=settings.API_PORT)


if __name__ == "__main__":
    main()

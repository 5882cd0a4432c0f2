"""Operator HTTP surface: refresh trigger, data age, champion data, probes."""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Header, Response
from fastapi.responses import JSONResponse

from aramstats.errors import CacheStoreError, WikiDataError
from aramstats.models.champion import Origin
from aramstats.services.acquisition import AcquisitionService
from aramstats.services.champions import available_game_modes, champion_data


def create_app(service: AcquisitionService, refresh_secret: Optional[str] = None) -> FastAPI:
    """
    Build the FastAPI app around an already constructed AcquisitionService.

    Args:
        service: The process-wide acquisition service
        refresh_secret: When set, POST /api/refresh requires `Bearer <secret>`
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # Ferme les sessions HTTP et Chromium s'il tourne encore
        await service.close()

    app = FastAPI(title="ARAM wiki data", lifespan=lifespan)
    app.state.service = service
    app.state.start_time = time.time()

    @app.post("/api/refresh")
    async def refresh(authorization: Optional[str] = Header(default=None)) -> JSONResponse:
        """Force a fresh scrape of the wiki and update the cache store."""
        if refresh_secret and authorization != f"Bearer {refresh_secret}":
            return JSONResponse({"error": "Unauthorized"}, status_code=401)

        try:
            report = await service.refresh()
        except WikiDataError as e:
            return JSONResponse({"success": False, "error": str(e)}, status_code=500)

        if report.origin == Origin.STALE_FALLBACK:
            message = "Refresh failed, serving previous data"
        else:
            message = "Data refreshed successfully"
        return JSONResponse({
            "success": True,
            "message": message,
            "data": {
                "patchVersion": report.source_version,
                "timestamp": report.timestamp,
                "championsCount": report.records_count,
                "origin": report.origin.value,
            },
        })

    @app.get("/api/refresh")
    async def refresh_usage() -> Dict[str, Any]:
        return {
            "message": "Use POST method to refresh data",
            "usage": {
                "method": "POST",
                "headers": {"authorization": "Bearer YOUR_SECRET (optional)"},
            },
        }

    @app.get("/api/refresh/info")
    async def refresh_info() -> JSONResponse:
        """
        Age of the cached dataset, without fetching anything.

        Returns:
            200 with age (ms), patch version, last update and a sample champion
            404 when the cache store holds no data yet
        """
        try:
            result = await service.get_cached()
        except CacheStoreError as e:
            return JSONResponse({"success": False, "error": str(e)}, status_code=404)

        data = champion_data(result)
        sample = next(iter(data.values()), None)
        return JSONResponse({
            "age": result.age_ms(),
            "patchVersion": result.source_version,
            # fetch time, not the real patch release date
            "lastUpdate": datetime.fromtimestamp(result.fetched_at / 1000, tz=timezone.utc).isoformat(),
            "championsCount": len(data),
            "state": service.state.value,
            "sample": sample,
        })

    @app.get("/api/champions")
    async def champions() -> JSONResponse:
        """ChampionData mapping for the presentation layer (cache only)."""
        try:
            result = await service.get_cached()
        except CacheStoreError as e:
            return JSONResponse(
                {"success": False, "error": f"{e}. Call POST /api/refresh to populate the cache."},
                status_code=503,
            )
        return JSONResponse({
            "patchVersion": result.source_version,
            "timestamp": result.fetched_at,
            "gameModes": available_game_modes(result),
            "data": champion_data(result),
        })

    @app.get("/health")
    async def health_check() -> JSONResponse:
        uptime = int(time.time() - app.state.start_time)
        return JSONResponse({
            "status": "healthy",
            "uptime_seconds": uptime,
            "service": "aramstats",
            "state": service.state.value,
        })

    @app.get("/liveness")
    async def liveness_check() -> Response:
        return Response(status_code=200, content="Alive")

    return app

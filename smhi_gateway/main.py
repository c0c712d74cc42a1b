from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from smhi_gateway import service, settings
from smhi_gateway.auth import ApiKeyGate
from smhi_gateway.config import (
    APP_VERSION,
    LOG_LEVEL,
    SERVER_HOST,
    SERVER_PORT,
    SETTINGS_FILE,
)
from smhi_gateway.fetchers.smhi import SmhiClient, build_http_client

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Loaded once; the key set is immutable for the life of the process
gateway_settings = settings.load(SETTINGS_FILE)
gate = ApiKeyGate(gateway_settings.api_keys)

_smhi: service.ObservationSource | None = None  # set during lifespan


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _smhi

    async with build_http_client() as client:
        _smhi = SmhiClient(client)
        logger.info("SMHI gateway %s ready, %d API key(s) configured",
                    APP_VERSION, len(gate.valid_keys))
        try:
            yield
        finally:
            _smhi = None


app = FastAPI(
    title="SMHI Observation Gateway",
    version=APP_VERSION,
    lifespan=lifespan,
    openapi_url="/openapi/v1.json",
    docs_url="/openapi/docs",
    redoc_url=None,
)


@app.middleware("http")
async def api_key_middleware(request: Request, call_next):
    rejected = gate.guard(request)
    if rejected is not None:
        return rejected
    return await call_next(request)


# Added after the key check so that CORS wraps it
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)


@app.exception_handler(httpx.HTTPError)
async def upstream_error_handler(request: Request, exc: httpx.HTTPError):
    logger.error("Upstream request failed for %s", request.url.path, exc_info=exc)
    return JSONResponse(status_code=502, content={"detail": "Upstream request failed"})


def _not_ready() -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": "Upstream client not ready"})


@app.get("/api/stations", tags=["Stations"], summary="Get all available weather stations")
async def get_stations():
    """All stations reporting temperature or wind gust, deduplicated by stationId."""
    if _smhi is None:
        return _not_ready()
    stations = await service.get_stations(_smhi)
    return JSONResponse(content=[s.to_api_dict() for s in stations])


@app.get(
    "/api/stationObservations",
    tags=["StationObservations"],
    summary="Get latest observations for all stations",
)
async def get_latest_observations():
    """Latest observation (last hour) per station, merged from temperature and wind gust."""
    if _smhi is None:
        return _not_ready()
    results = await service.get_latest_observations(_smhi)
    return JSONResponse(content=[r.to_api_dict() for r in results])


@app.get(
    "/api/stationObservations/{station_id}",
    tags=["StationObservations"],
    summary="Get observations for a specific station",
)
async def get_station_observations(
    station_id: str,
    range_: str = Query(service.RANGE_LAST_HOUR, alias="range"),
):
    """Every merged observation for one station; ``range`` is lastHour or lastDay."""
    if _smhi is None:
        return _not_ready()
    result = await service.get_station_observations(_smhi, station_id, range_)
    if result is None:
        return JSONResponse(status_code=404, content={"detail": "Station not found"})
    return JSONResponse(content=result.to_api_dict())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT)

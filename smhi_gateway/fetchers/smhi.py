from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from smhi_gateway.config import HTTP_TIMEOUT_SECONDS, SMHI_BASE_URL
from smhi_gateway.models import ObservationValue, ParameterSeries, Station, StationSeries

logger = logging.getLogger(__name__)

TEMPERATURE_PARAMETER = 1  # air temperature, momentary value, once per hour
WIND_GUST_PARAMETER = 21   # wind gust, max, once per hour

LATEST_HOUR = "latest-hour"
LATEST_DAY = "latest-day"


def build_http_client(
    base_url: str = SMHI_BASE_URL,
    timeout: float = HTTP_TIMEOUT_SECONDS,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create the shared AsyncClient used for every SMHI request."""
    return httpx.AsyncClient(
        base_url=base_url,
        headers={"Accept": "application/json"},
        timeout=timeout,
        transport=transport,
    )


def _parse_values(raw_values: Any) -> tuple[ObservationValue, ...]:
    """Parse the ``value`` array. Entries without an integer ``date`` are skipped."""
    values: list[ObservationValue] = []
    for item in raw_values or []:
        if not isinstance(item, dict):
            continue
        try:
            date = int(item["date"])
        except (KeyError, TypeError, ValueError):
            logger.debug("Skipping SMHI value without a usable date: %r", item)
            continue
        raw = item.get("value")
        quality = item.get("quality")
        values.append(ObservationValue(
            date=date,
            value=None if raw is None else str(raw),
            quality=None if quality is None else str(quality),
        ))
    return tuple(values)


def _read_json(resp: httpx.Response) -> dict:
    """Decode a JSON object body; anything else is reported as an httpx.DecodingError."""
    try:
        data = resp.json()
    except ValueError as exc:
        raise httpx.DecodingError(
            f"SMHI returned a non-JSON body for {resp.request.url}", request=resp.request
        ) from exc
    if not isinstance(data, dict):
        raise httpx.DecodingError(
            f"SMHI returned {type(data).__name__} instead of an object for {resp.request.url}",
            request=resp.request,
        )
    return data


def parse_station_list(data: dict) -> list[Station]:
    """Parse the parameter document (``parameter/{id}.json``) into stations."""
    stations: list[Station] = []
    for item in data.get("station") or []:
        if not isinstance(item, dict):
            continue
        key = str(item.get("key") or "").strip()
        if not key:
            continue
        stations.append(Station(id=key, name=item.get("name") or ""))
    return stations


def parse_station_set(data: dict, parameter_id: int) -> ParameterSeries:
    """Parse a station-set data document (every station, one parameter)."""
    series: list[StationSeries] = []
    for item in data.get("station") or []:
        if not isinstance(item, dict):
            continue
        key = str(item.get("key") or "").strip()
        if not key:
            continue
        series.append(StationSeries(
            key=key,
            name=item.get("name") or "",
            values=_parse_values(item.get("value")),
        ))
    return ParameterSeries(parameter_id=parameter_id, stations=tuple(series))


def parse_station_data(data: dict, station_id: str) -> StationSeries:
    """Parse a single-station data document.

    The station block carries key and name; the readings sit at the top level.
    """
    station = data.get("station")
    if not isinstance(station, dict):
        station = {}
    key = str(station.get("key") or "").strip() or station_id
    return StationSeries(
        key=key,
        name=station.get("name") or "",
        values=_parse_values(data.get("value")),
    )


class SmhiClient:
    """Thin async wrapper around the SMHI metobs REST API.

    Non-2xx responses raise ``httpx.HTTPStatusError``; transport problems and
    bodies that are not a JSON object raise ``httpx.RequestError``. Only a 404 on a single-station query is treated as
    a normal outcome (``None``).
    """

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    async def list_stations(self, parameter_id: int) -> list[Station]:
        url = f"api/version/latest/parameter/{parameter_id}.json"
        logger.info("Fetching SMHI stations: %s", url)
        resp = await self._http.get(url)
        resp.raise_for_status()
        stations = parse_station_list(_read_json(resp))
        logger.info("Parsed %d stations for parameter %d", len(stations), parameter_id)
        return stations

    async def fetch_series_all_stations(self, parameter_id: int, period: str) -> ParameterSeries:
        url = f"api/version/latest/parameter/{parameter_id}/station-set/all/period/{period}/data.json"
        logger.info("Fetching SMHI station set: %s", url)
        resp = await self._http.get(url)
        resp.raise_for_status()
        series = parse_station_set(_read_json(resp), parameter_id)
        logger.info("Parsed %d station series for parameter %d", len(series.stations), parameter_id)
        return series

    async def fetch_series_for_station(
        self, parameter_id: int, station_id: str, period: str
    ) -> StationSeries | None:
        url = (
            f"api/version/latest/parameter/{parameter_id}"
            f"/station/{quote(station_id, safe='')}/period/{period}/data.json"
        )
        logger.info("Fetching SMHI station data: %s", url)
        resp = await self._http.get(url)
        if resp.status_code == httpx.codes.NOT_FOUND:
            logger.info("Station %s has no data for parameter %d", station_id, parameter_id)
            return None
        resp.raise_for_status()
        return parse_station_data(_read_json(resp), station_id)

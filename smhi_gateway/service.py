from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Protocol, TypeVar

from smhi_gateway.fetchers.smhi import (
    LATEST_DAY,
    LATEST_HOUR,
    TEMPERATURE_PARAMETER,
    WIND_GUST_PARAMETER,
)
from smhi_gateway.merge import (
    NameMismatchSink,
    merge_latest,
    merge_station_series,
    merge_stations,
)
from smhi_gateway.models import ParameterSeries, Station, StationObservations, StationSeries

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

RANGE_LAST_DAY = "lastDay"
RANGE_LAST_HOUR = "lastHour"


class ObservationSource(Protocol):
    """What the service needs from the upstream client."""

    async def list_stations(self, parameter_id: int) -> list[Station]: ...

    async def fetch_series_all_stations(self, parameter_id: int, period: str) -> ParameterSeries: ...

    async def fetch_series_for_station(
        self, parameter_id: int, station_id: str, period: str
    ) -> StationSeries | None: ...


def resolve_period(range_: str | None) -> str:
    """Map the API's ``range`` value to an SMHI period; unknown values mean last hour."""
    if range_ == RANGE_LAST_DAY:
        return LATEST_DAY
    return LATEST_HOUR


async def fetch_both(first: Awaitable[T], second: Awaitable[U]) -> tuple[T, U]:
    """Await two fetches concurrently and return both results.

    If either raises, or the caller is cancelled, the other task is cancelled
    and the exception propagates. Callers never see one result without the
    other.
    """
    tasks: list[asyncio.Future[Any]] = [
        asyncio.ensure_future(first),
        asyncio.ensure_future(second),
    ]
    try:
        a, b = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        raise
    return a, b


async def get_stations(
    smhi: ObservationSource, diagnostics: NameMismatchSink | None = None
) -> list[Station]:
    temp, wind = await fetch_both(
        smhi.list_stations(TEMPERATURE_PARAMETER),
        smhi.list_stations(WIND_GUST_PARAMETER),
    )
    stations = merge_stations(temp, wind, diagnostics)
    logger.info(
        "Merged stations: %d temperature, %d wind, %d total",
        len(temp), len(wind), len(stations),
    )
    return stations


async def get_latest_observations(
    smhi: ObservationSource, diagnostics: NameMismatchSink | None = None
) -> list[StationObservations]:
    temp, wind = await fetch_both(
        smhi.fetch_series_all_stations(TEMPERATURE_PARAMETER, LATEST_HOUR),
        smhi.fetch_series_all_stations(WIND_GUST_PARAMETER, LATEST_HOUR),
    )
    results = merge_latest(temp, wind, diagnostics)
    logger.info("Merged latest observations for %d stations", len(results))
    return results


async def get_station_observations(
    smhi: ObservationSource,
    station_id: str,
    range_: str | None = RANGE_LAST_HOUR,
    diagnostics: NameMismatchSink | None = None,
) -> StationObservations | None:
    """Merged series for one station, or None if SMHI knows neither parameter for it."""
    period = resolve_period(range_)
    temp, wind = await fetch_both(
        smhi.fetch_series_for_station(TEMPERATURE_PARAMETER, station_id, period),
        smhi.fetch_series_for_station(WIND_GUST_PARAMETER, station_id, period),
    )
    result = merge_station_series(station_id, temp, wind, diagnostics)
    if result is None:
        logger.info("Station %s not found for period %s", station_id, period)
    return result

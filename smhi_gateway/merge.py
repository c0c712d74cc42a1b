"""Reconciliation of the temperature and wind-gust datasets.

Both parameters are fetched separately from SMHI and joined here by station id
and timestamp. Temperature is the authoritative source for station names.
Everything in this module is pure; disagreements are reported through a
``NameMismatchSink`` rather than raised.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Protocol

from smhi_gateway.models import (
    MergedObservation,
    ObservationValue,
    ParameterSeries,
    Station,
    StationObservations,
    StationSeries,
)

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# timestamp (ms) -> (air temp, wind gust)
Readings = dict[int, tuple[Optional[float], Optional[float]]]


class NameMismatchSink(Protocol):
    def record(self, station_id: str, temp_name: str, wind_name: str) -> None: ...


class LoggingNameMismatchSink:
    """Default sink: a debug log line per mismatch."""

    def record(self, station_id: str, temp_name: str, wind_name: str) -> None:
        logger.debug(
            "Station name mismatch for %s: temp=%r, wind=%r",
            station_id, temp_name, wind_name,
        )


_default_sink = LoggingNameMismatchSink()


def parse_value(raw: Optional[str]) -> float | None:
    """Parse a reading, returning None for empty or non-numeric text.

    Accepts plain decimal and exponent notation with ``.`` as the decimal
    separator. Underscore digit grouping and non-finite spellings (``nan``,
    ``inf``) are rejected.
    """
    if raw is None:
        return None
    text = raw.strip()
    if not text or "_" in text:
        return None
    try:
        val = float(text)
    except ValueError:
        return None
    if not math.isfinite(val):
        return None
    return val


def to_utc(millis: int) -> datetime:
    """Convert ms since the Unix epoch to an aware UTC datetime."""
    return _EPOCH + timedelta(milliseconds=millis)


def _add_temperature(readings: Readings, values: Iterable[ObservationValue]) -> None:
    for v in values:
        temp = parse_value(v.value)
        if temp is None:
            continue
        _, wind = readings.get(v.date, (None, None))
        readings[v.date] = (temp, wind)


def _add_wind(readings: Readings, values: Iterable[ObservationValue]) -> None:
    for v in values:
        wind = parse_value(v.value)
        if wind is None:
            continue
        temp, _ = readings.get(v.date, (None, None))
        readings[v.date] = (temp, wind)


def _to_observations(readings: Readings) -> list[MergedObservation]:
    """All points with at least one value, most recent first."""
    return [
        MergedObservation(timestamp=to_utc(ms), air_temp=temp, wind_gust=wind)
        for ms, (temp, wind) in sorted(readings.items(), key=lambda kv: kv[0], reverse=True)
        if temp is not None or wind is not None
    ]


def _latest(readings: Readings) -> tuple[MergedObservation, ...]:
    candidates = [ms for ms, (temp, wind) in readings.items() if temp is not None or wind is not None]
    if not candidates:
        return ()
    ms = max(candidates)
    temp, wind = readings[ms]
    return (MergedObservation(timestamp=to_utc(ms), air_temp=temp, wind_gust=wind),)


def merge_stations(
    temp_stations: Iterable[Station],
    wind_stations: Iterable[Station],
    diagnostics: NameMismatchSink | None = None,
) -> list[Station]:
    """Union of both station lists, deduplicated by id.

    Temperature stations go in first and keep their names; wind stations only
    add ids that are not there yet.
    """
    sink = diagnostics or _default_sink
    merged: dict[str, Station] = {}
    for s in temp_stations:
        merged.setdefault(s.id, s)
    for s in wind_stations:
        existing = merged.get(s.id)
        if existing is None:
            merged[s.id] = s
        elif existing.name != s.name:
            sink.record(s.id, existing.name, s.name)
    return list(merged.values())


def merge_latest(
    temp_series: ParameterSeries,
    wind_series: ParameterSeries,
    diagnostics: NameMismatchSink | None = None,
) -> list[StationObservations]:
    """One result per station in either series, holding only its newest point.

    A station whose readings all fail to parse is still returned, with an
    empty observation tuple.
    """
    sink = diagnostics or _default_sink
    names: dict[str, str] = {}
    readings: dict[str, Readings] = {}

    for s in temp_series.stations:
        names.setdefault(s.key, s.name)
        _add_temperature(readings.setdefault(s.key, {}), s.values)

    for s in wind_series.stations:
        if s.key not in names:
            names[s.key] = s.name
        elif names[s.key] != s.name:
            sink.record(s.key, names[s.key], s.name)
        _add_wind(readings.setdefault(s.key, {}), s.values)

    return [
        StationObservations(station_id=sid, name=name, observations=_latest(readings[sid]))
        for sid, name in names.items()
    ]


def merge_station_series(
    station_id: str,
    temp: StationSeries | None,
    wind: StationSeries | None,
    diagnostics: NameMismatchSink | None = None,
) -> StationObservations | None:
    """Full merged series for one station, or None when neither source knows it.

    The name comes from the temperature series, then the wind series, then
    falls back to the requested id.
    """
    if temp is None and wind is None:
        return None

    temp_name = temp.name if temp is not None else ""
    wind_name = wind.name if wind is not None else ""
    if temp_name and wind_name and temp_name != wind_name:
        (diagnostics or _default_sink).record(station_id, temp_name, wind_name)

    readings: Readings = {}
    if temp is not None:
        _add_temperature(readings, temp.values)
    if wind is not None:
        _add_wind(readings, wind.values)

    return StationObservations(
        station_id=station_id,
        name=temp_name or wind_name or station_id,
        observations=tuple(_to_observations(readings)),
    )

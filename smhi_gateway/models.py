from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True, slots=True)
class Station:
    """A weather station as listed by the provider. Identity is ``id``."""

    id: str
    name: str

    def to_api_dict(self) -> dict:
        return {"stationId": self.id, "name": self.name}


@dataclass(frozen=True, slots=True)
class ObservationValue:
    """One raw reading. ``value`` is the provider's text and may not parse."""

    date: int  # ms since Unix epoch, UTC
    value: Optional[str] = None
    quality: Optional[str] = None


@dataclass(frozen=True, slots=True)
class StationSeries:
    """One station's readings for a single parameter."""

    key: str
    name: str
    values: tuple[ObservationValue, ...] = ()


@dataclass(frozen=True, slots=True)
class ParameterSeries:
    """Readings for one parameter across every station that reported it."""

    parameter_id: int
    stations: tuple[StationSeries, ...] = ()


@dataclass(frozen=True, slots=True)
class MergedObservation:
    """Temperature and wind gust at one timestamp.

    At least one of ``air_temp`` / ``wind_gust`` is set on every instance the
    reconciler emits.
    """

    timestamp: datetime           # UTC
    air_temp: Optional[float] = None   # deg C
    wind_gust: Optional[float] = None  # m/s

    def to_api_dict(self) -> dict:
        """Serialize for the JSON API response.

          timestampUtc: string  ISO-8601 UTC  "2026-02-21T14:00:00Z",
                        with ".fff" milliseconds only when non-zero
          windGust:     float | null  m/s
          airTemp:      float | null  deg C
        """
        if self.timestamp.microsecond:
            ts = self.timestamp.strftime("%Y-%m-%dT%H:%M:%S") + f".{self.timestamp.microsecond // 1000:03d}Z"
        else:
            ts = self.timestamp.strftime("%Y-%m-%dT%H:%M:%SZ")
        return {
            "timestampUtc": ts,
            "windGust": self.wind_gust,
            "airTemp": self.air_temp,
        }


@dataclass(frozen=True, slots=True)
class StationObservations:
    """Merged observations for one station, most recent first."""

    station_id: str
    name: str
    observations: tuple[MergedObservation, ...] = field(default_factory=tuple)

    def to_api_dict(self) -> dict:
        return {
            "stationId": self.station_id,
            "name": self.name,
            "observations": [o.to_api_dict() for o in self.observations],
        }

import asyncio

import httpx
import pytest

from smhi_gateway import service
from smhi_gateway.models import ObservationValue, ParameterSeries, Station, StationSeries


def _series(key, name, *points):
    return StationSeries(
        key=key, name=name,
        values=tuple(ObservationValue(date=d, value=v) for d, v in points),
    )


class FakeSmhi:
    """In-memory stand-in for SmhiClient keyed by parameter id."""

    def __init__(self, stations=None, station_sets=None, station_data=None):
        self.stations = stations or {}
        self.station_sets = station_sets or {}
        self.station_data = station_data or {}
        self.calls: list[tuple] = []

    async def list_stations(self, parameter_id):
        self.calls.append(("list_stations", parameter_id))
        return self.stations.get(parameter_id, [])

    async def fetch_series_all_stations(self, parameter_id, period):
        self.calls.append(("fetch_series_all_stations", parameter_id, period))
        return self.station_sets.get(parameter_id, ParameterSeries(parameter_id))

    async def fetch_series_for_station(self, parameter_id, station_id, period):
        self.calls.append(("fetch_series_for_station", parameter_id, station_id, period))
        return self.station_data.get((parameter_id, station_id))


def test_resolve_period():
    assert service.resolve_period("lastDay") == "latest-day"
    assert service.resolve_period("lastHour") == "latest-hour"
    assert service.resolve_period("lastWeek") == "latest-hour"
    assert service.resolve_period("lastday") == "latest-hour"
    assert service.resolve_period(None) == "latest-hour"


@pytest.mark.asyncio
async def test_get_stations_merges_both_parameters():
    smhi = FakeSmhi(stations={
        1: [Station("1", "Stockholm Temp")],
        21: [Station("1", "Stockholm Wind"), Station("2", "Göteborg Wind")],
    })
    result = await service.get_stations(smhi)
    assert {s.id: s.name for s in result} == {"1": "Stockholm Temp", "2": "Göteborg Wind"}
    assert ("list_stations", 1) in smhi.calls
    assert ("list_stations", 21) in smhi.calls


@pytest.mark.asyncio
async def test_get_latest_observations_uses_latest_hour():
    smhi = FakeSmhi(station_sets={
        1: ParameterSeries(1, (_series("1", "Stockholm", (1000, "20.5")),)),
        21: ParameterSeries(21, (_series("1", "Stockholm", (1000, "8.3")),)),
    })
    result = await service.get_latest_observations(smhi)
    assert len(result) == 1
    assert result[0].observations[0].air_temp == 20.5
    assert result[0].observations[0].wind_gust == 8.3
    assert ("fetch_series_all_stations", 1, "latest-hour") in smhi.calls
    assert ("fetch_series_all_stations", 21, "latest-hour") in smhi.calls


@pytest.mark.asyncio
async def test_get_station_observations_not_found():
    smhi = FakeSmhi()
    assert await service.get_station_observations(smhi, "999", "lastHour") is None


@pytest.mark.asyncio
async def test_get_station_observations_last_day_period():
    smhi = FakeSmhi(station_data={(1, "1"): _series("1", "Stockholm", (1000, "20.5"))})
    result = await service.get_station_observations(smhi, "1", "lastDay")
    assert result is not None
    assert ("fetch_series_for_station", 1, "1", "latest-day") in smhi.calls
    assert ("fetch_series_for_station", 21, "1", "latest-day") in smhi.calls


@pytest.mark.asyncio
async def test_get_station_observations_unknown_range_falls_back_to_last_hour():
    smhi = FakeSmhi(station_data={(21, "1"): _series("1", "Kiruna", (1000, "3.0"))})
    result = await service.get_station_observations(smhi, "1", "fortnight")
    assert result.name == "Kiruna"
    assert ("fetch_series_for_station", 21, "1", "latest-hour") in smhi.calls


@pytest.mark.asyncio
async def test_fetch_both_runs_concurrently():
    both_started = asyncio.Event()
    started = 0

    async def fetch(value):
        nonlocal started
        started += 1
        if started == 2:
            both_started.set()
        await asyncio.wait_for(both_started.wait(), timeout=1)
        return value

    assert await service.fetch_both(fetch("temp"), fetch("wind")) == ("temp", "wind")


@pytest.mark.asyncio
async def test_fetch_both_failure_cancels_sibling():
    sibling_cancelled = asyncio.Event()

    async def slow():
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            sibling_cancelled.set()
            raise

    async def failing():
        await asyncio.sleep(0)
        raise httpx.ConnectError("boom")

    with pytest.raises(httpx.ConnectError):
        await service.fetch_both(slow(), failing())
    await asyncio.sleep(0)
    assert sibling_cancelled.is_set()


@pytest.mark.asyncio
async def test_fetch_both_cancellation_propagates_to_both():
    cancelled: list[str] = []

    async def slow(name):
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.append(name)
            raise

    task = asyncio.ensure_future(service.fetch_both(slow("temp"), slow("wind")))
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert sorted(cancelled) == ["temp", "wind"]


@pytest.mark.asyncio
async def test_upstream_failure_propagates_without_merge():
    class Failing(FakeSmhi):
        async def fetch_series_all_stations(self, parameter_id, period):
            if parameter_id == 21:
                raise httpx.HTTPStatusError(
                    "bad gateway",
                    request=httpx.Request("GET", "https://smhi.test/"),
                    response=httpx.Response(502),
                )
            return ParameterSeries(parameter_id)

    with pytest.raises(httpx.HTTPStatusError):
        await service.get_latest_observations(Failing())

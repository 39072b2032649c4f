"""Shared test fixtures and helpers for the AQI Vision test suite."""

from typing import Callable, Dict, List, Optional

import httpx
import pytest

from aqivision.ingestion.waqi_connector import POLLUTANTS, StationReading


def make_reading(
    aqi: int,
    name: str = "Station",
    uid: int = 1,
    latitude: Optional[float] = 28.6,
    longitude: Optional[float] = 77.2,
    observed_at: Optional[str] = "2024-01-15 10:00:00",
    **pollutants: float,
) -> StationReading:
    """Build a StationReading; pollutant kwargs (pm25=..., o3=...) are optional."""
    values = {kind: None for kind in POLLUTANTS}
    values.update(pollutants)
    return StationReading(
        uid=uid,
        name=name,
        aqi=aqi,
        latitude=latitude,
        longitude=longitude,
        pollutants=values,
        observed_at=observed_at,
    )


def listing_entry(uid: int, name: Optional[str] = None, lat: float = 28.6, lon: float = 77.2) -> dict:
    entry = {"uid": uid, "lat": lat, "lon": lon, "aqi": "-"}
    if name is not None:
        entry["station"] = {"name": name, "time": "2024-01-15T10:00:00+05:30"}
    return entry


def detail_payload(aqi, time_s: str = "2024-01-15 10:00:00", **iaqi) -> dict:
    return {
        "status": "ok",
        "data": {
            "aqi": aqi,
            "idx": 1,
            "time": {"s": time_s, "tz": "+05:30"},
            "iaqi": {kind: {"v": v} for kind, v in iaqi.items()},
        },
    }


class FakeWAQI:
    """
    In-memory WAQI API for httpx.MockTransport.

    ``listing`` is the response for /map/bounds (a dict, or an int HTTP status);
    ``details`` maps uid → response dict, int HTTP status, or an exception.
    """

    def __init__(self, listing, details: Optional[Dict[int, object]] = None):
        self.listing = listing
        self.details = details or {}
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/map/bounds":
            return self._respond(self.listing, request)
        if path.startswith("/feed/@"):
            uid = int(path[len("/feed/@"):].strip("/"))
            return self._respond(self.details.get(uid, 404), request)
        return httpx.Response(404, request=request)

    @staticmethod
    def _respond(spec, request: httpx.Request) -> httpx.Response:
        if isinstance(spec, Exception):
            raise spec
        if isinstance(spec, int):
            return httpx.Response(spec, request=request)
        return httpx.Response(200, json=spec, request=request)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    @property
    def detail_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.startswith("/feed/")]


@pytest.fixture()
def fake_waqi() -> Callable[..., FakeWAQI]:
    return FakeWAQI

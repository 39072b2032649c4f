"""
Tests for Module 05 — HTTP API (refresh, stations, analytics).
"""
import importlib
import logging
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from conftest import detail_payload, listing_entry, make_reading
import api.main
from api.main import app
from api.store import SnapshotStore, get_store
from aqivision import LOG_DATEFMT, LOG_FORMAT
from aqivision.ingestion.acquisition import AcquisitionController, acquire
from aqivision.ingestion.waqi_connector import (
    DEFAULT_BOUNDS,
    ListingFailedError,
    MissingCredentialError,
)


class FakeAcquire:
    """Stands in for acquire(); records calls and returns canned readings."""

    def __init__(self, readings=None, error=None):
        self.readings = readings or []
        self.error = error
        self.calls = []

    def __call__(self, bounds, token, run=None):
        self.calls.append((bounds, token, run))
        if self.error is not None:
            raise self.error
        if not token:
            raise MissingCredentialError("A WAQI API token is required")
        return list(self.readings)


def _readings():
    return [
        make_reading(40, name="Good A", uid=1, pm25=10.0, pm10=20.0),
        make_reading(160, name="Unhealthy A", uid=2, pm25=100.0, pm10=150.0),
        make_reading(170, name="Unhealthy B", uid=3, latitude=None, longitude=None),
    ]


@pytest.fixture()
def make_client(monkeypatch):
    monkeypatch.delenv("WAQI_TOKEN", raising=False)

    def _make(fake: FakeAcquire) -> TestClient:
        store = SnapshotStore(controller=AcquisitionController(), acquire_fn=fake)
        app.dependency_overrides[get_store] = lambda: store
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


def _refresh(client, token="test_token", **body):
    headers = {"X-WAQI-Token": token} if token else {}
    return client.post("/api/stations/refresh", headers=headers, json=body or None)


class TestHealth:
    def test_health(self, make_client):
        client = make_client(FakeAcquire())
        assert client.get("/api/health").json()["status"] == "ok"


class TestRefresh:
    def test_refresh_publishes_snapshot(self, make_client):
        fake = FakeAcquire(_readings())
        client = make_client(fake)
        resp = _refresh(client)
        assert resp.status_code == 200
        assert resp.json()["station_count"] == 3
        assert fake.calls[0][1] == "test_token"

        stations = client.get("/api/stations/").json()
        assert [s["name"] for s in stations] == ["Good A", "Unhealthy A", "Unhealthy B"]
        assert stations[1]["category"] == "Unhealthy"
        assert stations[1]["color"] == "#ff0000"

    def test_missing_token_is_400(self, make_client):
        fake = FakeAcquire(_readings())
        client = make_client(fake)
        resp = _refresh(client, token="")
        assert resp.status_code == 400

    def test_token_falls_back_to_environment(self, make_client, monkeypatch):
        monkeypatch.setenv("WAQI_TOKEN", "env_token")
        fake = FakeAcquire(_readings())
        client = make_client(fake)
        assert _refresh(client, token="").status_code == 200
        assert fake.calls[0][1] == "env_token"

    def test_listing_failure_is_502_and_keeps_old_snapshot(self, make_client):
        fake = FakeAcquire(_readings())
        client = make_client(fake)
        _refresh(client)
        fake.error = ListingFailedError("Station listing failed with HTTP 500")
        resp = _refresh(client)
        assert resp.status_code == 502
        assert len(client.get("/api/stations/").json()) == 3

    def test_custom_bounds(self, make_client):
        fake = FakeAcquire()
        client = make_client(fake)
        resp = _refresh(client, bounds="8.0,76.0,13.5,80.5")
        assert resp.status_code == 200
        assert resp.json()["bounds"] == "8.0,76.0,13.5,80.5"
        assert fake.calls[0][0].south == 8.0

    def test_bad_bounds_is_400(self, make_client):
        fake = FakeAcquire()
        client = make_client(fake)
        assert _refresh(client, bounds="not,a,box").status_code == 400
        assert fake.calls == []


class TestStations:
    def test_empty_before_first_refresh(self, make_client):
        client = make_client(FakeAcquire())
        assert client.get("/api/stations/").json() == []
        assert client.get("/api/analytics/distribution").json() == []

    def test_mappable_filter(self, make_client):
        client = make_client(FakeAcquire(_readings()))
        _refresh(client)
        stations = client.get("/api/stations/", params={"mappable": True}).json()
        assert [s["uid"] for s in stations] == [1, 2]

    def test_top(self, make_client):
        client = make_client(FakeAcquire(_readings()))
        _refresh(client)
        top = client.get("/api/stations/top", params={"n": 2}).json()
        assert [s["aqi"] for s in top] == [170, 160]


class TestAnalytics:
    def test_distribution_in_band_order(self, make_client):
        client = make_client(FakeAcquire(_readings()))
        _refresh(client)
        dist = client.get("/api/analytics/distribution").json()
        assert dist == [
            {"category": "Good", "color": "#00e400", "count": 1},
            {"category": "Unhealthy", "color": "#ff0000", "count": 2},
        ]

    def test_averages_zero_fill_and_present_only(self, make_client):
        client = make_client(FakeAcquire(_readings()))
        _refresh(client)
        zero_fill = client.get("/api/analytics/averages").json()
        unhealthy = next(a for a in zero_fill if a["category"] == "Unhealthy")
        assert unhealthy["pollutants"]["pm25"] == 50.0
        assert unhealthy["avg_aqi"] == 165.0

        present = client.get("/api/analytics/averages", params={"present_only": True}).json()
        unhealthy = next(a for a in present if a["category"] == "Unhealthy")
        assert unhealthy["pollutants"]["pm25"] == 100.0
        assert unhealthy["pollutants"]["o3"] is None

    def test_correlation(self, make_client):
        client = make_client(FakeAcquire(_readings()))
        _refresh(client)
        points = client.get("/api/analytics/correlation").json()
        assert [p["name"] for p in points] == ["Good A", "Unhealthy A"]


class TestSnapshotStore:
    def test_blank_token_does_not_cancel_run_in_flight(self, fake_waqi):
        waqi = fake_waqi(
            {"status": "ok", "data": [
                listing_entry(1, "Anand Vihar", 28.65, 77.31),
                listing_entry(2, "Bandra", 19.06, 72.83),
            ]},
            {1: detail_payload(80), 2: detail_payload(120)},
        )
        controller = AcquisitionController()
        rejected = []

        def blank_refresh_between_requests(seconds):
            with pytest.raises(MissingCredentialError):
                store.refresh(DEFAULT_BOUNDS, "  ")
            rejected.append(seconds)

        def acquire_fn(bounds, token, run=None):
            with waqi.client() as client:
                return acquire(
                    bounds, token, run=run, client=client, min_interval=0.1,
                    sleep=blank_refresh_between_requests, clock=lambda: 0.0,
                )

        store = SnapshotStore(controller=controller, acquire_fn=acquire_fn)
        snapshot = store.refresh(DEFAULT_BOUNDS, "good_token")

        assert rejected == [0.1]
        assert [r.aqi for r in snapshot.readings] == [80, 120]
        assert store.snapshot is snapshot
        assert snapshot.generation == 1

    def test_blank_token_leaves_controller_untouched(self):
        controller = AcquisitionController()
        run = controller.begin()
        fake = FakeAcquire(_readings())
        store = SnapshotStore(controller=controller, acquire_fn=fake)
        with pytest.raises(MissingCredentialError):
            store.refresh(DEFAULT_BOUNDS, "")
        assert controller.is_current(run)
        assert fake.calls == []


class TestLogging:
    def test_api_uses_shared_log_format(self):
        with patch("logging.basicConfig") as mock_config:
            importlib.reload(api.main)
        mock_config.assert_called_once_with(
            level=logging.INFO, format=LOG_FORMAT, datefmt=LOG_DATEFMT,
        )

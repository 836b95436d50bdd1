"""
Integration tests for the HTTP service
"""

import copy
import math
import os
import sys

import pytest
from fastapi.testclient import TestClient

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.config import DEFAULTS
from common.geo import destination_point
from pose_store.store import PoseStore
from service.server import create_app


@pytest.fixture
def store():
    return PoseStore(capacity=64)


@pytest.fixture
def client(store):
    return TestClient(create_app(store, config=copy.deepcopy(DEFAULTS)))


class TestHealth:

    def test_health_reports_store(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "ok"
        assert body["store"]["capacity"] == 64
        assert body["store"]["positions"] == 0


class TestPoseEndpoints:

    def test_empty_store_is_404(self, client):
        r = client.get("/pose", params={"t_ns": 0})
        assert r.status_code == 404
        assert r.json()["detail"]["status"] == "no_data"

    def test_ingest_and_resolve(self, client, store):
        r = client.post("/positions", json=[
            {"t_ns": 0, "wall_ms": 1000, "lat": 35.0, "lon": 129.0, "h": 7.0, "acc_m": 2.5},
        ])
        assert r.json() == {"accepted": 1}
        r = client.post("/orientations", json=[
            {"t_ns": 0, "x": 0, "y": 0, "z": 0, "w": 1},
            {"t_ns": 2000, "x": 0, "y": 0, "z": math.sqrt(0.5), "w": math.sqrt(0.5)},
        ])
        assert r.json() == {"accepted": 2}
        assert len(store) == 3

        r = client.get("/pose", params={"t_ns": 1000, "tolerance_ns": 5000})
        assert r.status_code == 200
        pose = r.json()["pose"]
        assert r.json()["status"] == "ok"
        assert pose["source"] == "interpolated"
        assert pose["lat"] == 35.0
        assert pose["accuracy_m"] == 2.5
        assert pose["quat"][2] == pytest.approx(math.sin(math.pi / 8))

    def test_out_of_tolerance_is_409(self, client, store):
        client.post("/positions", json=[{"t_ns": 0, "lat": 1.0, "lon": 1.0}])
        client.post("/orientations", json=[{"t_ns": 0, "x": 0, "y": 0, "z": 0, "w": 1}])
        r = client.get("/pose", params={"t_ns": 100, "tolerance_ns": 10})
        assert r.status_code == 409
        assert r.json()["detail"]["status"] == "out_of_tolerance"

    def test_negative_tolerance_is_422(self, client):
        r = client.get("/pose", params={"t_ns": 0, "tolerance_ns": -1})
        assert r.status_code == 422

    def test_invalid_position_is_422(self, client):
        r = client.post("/positions", json=[{"t_ns": 0, "lat": 91.0, "lon": 1.0}])
        assert r.status_code == 422

    def test_rejected_batch_stores_nothing(self, client, store):
        r = client.post("/positions", json=[
            {"t_ns": 0, "lat": 1.0, "lon": 1.0},
            {"t_ns": 1, "lat": 91.0, "lon": 1.0},
        ])
        assert r.status_code == 422
        assert store.stats()["positions"] == 0

        # retrying the corrected batch stores each sample exactly once
        r = client.post("/positions", json=[
            {"t_ns": 0, "lat": 1.0, "lon": 1.0},
            {"t_ns": 1, "lat": 2.0, "lon": 1.0},
        ])
        assert r.json() == {"accepted": 2}
        assert store.stats()["positions"] == 2


class TestGraphEndpoint:

    def _points(self):
        lat0, lon0 = 35.1796, 129.0756
        east = destination_point(lat0, lon0, 90.0, 50.0)
        west = destination_point(lat0, lon0, 270.0, 60.0)
        return [
            {"lat": lat0, "lon": lon0, "label": "asphalt_good", "confidence": 0.9},
            {"lat": east[0], "lon": east[1], "label": "Asphalt_Good_v2", "confidence": 0.7},
            {"lat": west[0], "lon": west[1], "label": "asphalt_good", "confidence": 0.5},
        ]

    def test_build_and_carry_keys(self, client):
        r = client.post("/graph", json={"points": self._points()})
        assert r.status_code == 200
        body = r.json()
        assert {(e["a"], e["b"]) for e in body["edges"]} == {(0, 1), (0, 2)}
        assert all(e["title"] == "Asphalt - Good" for e in body["edges"])
        assert len(body["keys"]) == 2

        again = client.post("/graph", json={"points": self._points(), "keys": body["keys"]}).json()
        assert again["edges"] == []
        assert again["keys"] == body["keys"]

    def test_threshold_override(self, client):
        body = client.post("/graph", json={"points": self._points(), "connect_threshold_m": 55}).json()
        assert {(e["a"], e["b"]) for e in body["edges"]} == {(0, 1)}

    @pytest.mark.parametrize("payload", [
        {"points": [], "min_angle_deg": 270},
        {"points": [], "keys": ["not-a-key"]},
        {"points": [{"lat": 0, "lon": 0, "quat": [0, 0, 1]}]},
    ])
    def test_rejects_bad_requests(self, client, payload):
        assert client.post("/graph", json=payload).status_code == 422

"""
Unit tests for capture records and sensor log replay
"""

import json
import os
import sys

import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from capture.records import (
    load_records_jsonl,
    load_samples_jsonl,
    record_from_label_doc,
    to_road_points,
)
from pose_store.store import PoseStore


def _doc(**overrides):
    data = {
        "sampleId": "s-1",
        "lat": 35.18,
        "lon": 129.07,
        "h": 4.5,
        "qx": 0.0, "qy": 0.0, "qz": 0.6, "qw": 0.8,
        "annotations": [{"class": "asphalt_good", "score": 0.93}, {"class": "paved_bad", "score": 0.2}],
        "createdAt": 1_700_000_000_000,
        "imageHref": "gs://bucket/img/s-1.jpg",
        "geoposeHref": "gs://bucket/geopose/s-1.json",
    }
    data.update(overrides)
    return data


def _write_jsonl(path, rows):
    path.write_text("\n".join(r if isinstance(r, str) else json.dumps(r) for r in rows) + "\n")
    return str(path)


class TestLabelDocuments:

    def test_full_document(self):
        rec = record_from_label_doc("doc-9", _doc())
        assert rec.id == "s-1"
        assert rec.label == "asphalt_good"
        assert rec.confidence == pytest.approx(0.93)
        assert (rec.lat, rec.lon, rec.h) == (35.18, 129.07, 4.5)
        assert rec.quat == (0.0, 0.0, 0.6, 0.8)
        assert rec.ts_ms == 1_700_000_000_000
        assert rec.image_ref.endswith("s-1.jpg")

    def test_defaults(self):
        rec = record_from_label_doc("doc-9", {"lat": 1.0, "lon": 2.0})
        assert rec.id == "doc-9"
        assert rec.label == ""
        assert rec.confidence == 0.0
        assert rec.h == 0.0
        assert rec.quat == (0.0, 0.0, 0.0, 1.0)
        assert rec.ts_ms == 0

    def test_iso_created_at(self):
        rec = record_from_label_doc("d", _doc(createdAt="2023-11-14T22:13:20.000Z"))
        assert rec.ts_ms == 1_700_000_000_000

    @pytest.mark.parametrize("data", [
        None,
        {},
        {"lon": 129.0},
        {"lat": float("nan"), "lon": 129.0},
        {"lat": "35.1", "lon": 129.0},
        {"lat": 95.0, "lon": 129.0},
    ])
    def test_unusable_documents(self, data):
        assert record_from_label_doc("d", data) is None

    def test_to_road_points_orders_by_creation(self):
        recs = [
            record_from_label_doc("b", _doc(sampleId="b", createdAt=300)),
            record_from_label_doc("a", _doc(sampleId="a", createdAt=100)),
            record_from_label_doc("c", _doc(sampleId="c", createdAt=200, imageHref="")),
        ]
        points = to_road_points(recs)
        assert [p.index for p in points] == [0, 1, 2]
        assert [p.image_ref for p in points] == ["gs://bucket/img/s-1.jpg", None, "gs://bucket/img/s-1.jpg"]
        assert points[0].label == "asphalt_good"

    def test_load_records_jsonl(self, tmp_path):
        path = _write_jsonl(tmp_path / "caps.jsonl", [
            _doc(sampleId="one"),
            "{not json",
            {"lat": None, "lon": 1.0},
            "",
            _doc(sampleId="two"),
        ])
        assert [r.id for r in load_records_jsonl(path)] == ["one", "two"]

    def test_missing_jsonl(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_records_jsonl(str(tmp_path / "missing.jsonl"))


class TestSampleReplay:

    def test_replay_into_store(self, tmp_path):
        path = _write_jsonl(tmp_path / "samples.jsonl", [
            {"kind": "position", "t_ns": 0, "wall_ms": 5, "lat": 1.0, "lon": 2.0, "h": 3.0, "acc_m": 4.0},
            {"kind": "orientation", "t_ns": 0, "x": 0, "y": 0, "z": 0, "w": 2},
            {"kind": "position", "t_ns": 10, "lat": 100.0, "lon": 2.0},
            {"kind": "orientation", "t_ns": 5},
            {"kind": "velocity", "t_ns": 1},
        ])
        store = PoseStore()
        counts = load_samples_jsonl(path, store)
        assert counts == {"position": 1, "orientation": 1, "skipped": 3}

        pose = store.resolve(0, 0).pose
        assert (pose.lat, pose.lon, pose.height_m, pose.accuracy_m, pose.wall_ms) == (1.0, 2.0, 3.0, 4.0, 5)
        assert pose.quat == pytest.approx((0.0, 0.0, 0.0, 1.0))

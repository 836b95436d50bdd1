"""
End-to-end flow: sensor samples -> fused pose -> tagged frames -> road graph
"""

import json
import math
import os
import sys

import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from capture.postprocess import VideoPostProcessJob
from capture.records import load_records_jsonl, to_road_points
from common.geo import destination_point
from common.types import OrientationSample, PositionSample
from pose_store.store import PoseStore
from road_graph.builder import build_edges


class TestPoseResolution:

    def test_interpolated_pose_between_two_samples(self):
        store = PoseStore()
        store.add_position(PositionSample(0, 0, 0.0, 0.0))
        store.add_position(PositionSample(2_000_000_000, 0, 0.001, 0.001))
        store.add_orientation(OrientationSample(0, 0.0, 0.0, 0.0, 1.0))
        store.add_orientation(OrientationSample(2_000_000_000, 0.0, 0.0, 0.7071, 0.7071))

        res = store.resolve(1_000_000_000, 5_000_000_000)
        assert res
        pose = res.pose
        # equidistant positions: the earlier-inserted one wins
        assert (pose.lat, pose.lon) == (0.0, 0.0)
        assert pose.source == "interpolated"
        assert pose.quat == pytest.approx((0.0, 0.0, math.sin(math.pi / 8), math.cos(math.pi / 8)), abs=1e-4)


class TestSurveyRun:

    def test_frames_to_graph(self, tmp_path):
        sec = 1_000_000_000
        lat0, lon0 = 35.1796, 129.0756
        store = PoseStore()
        track = [destination_point(lat0, lon0, 90.0, 40.0 * i) for i in range(4)]
        for i, (lat, lon) in enumerate(track):
            t = (i + 1) * sec
            store.add_position(PositionSample(t, 1_700_000_000_000 + i * 1000, lat, lon))
            store.add_orientation(OrientationSample(t, 0.0, 0.0, math.sqrt(0.5), math.sqrt(0.5)))

        raw = tmp_path / "raw"
        raw.mkdir()
        frames = []
        for i in range(4):
            f = raw / f"frame_{i + 1:06d}.jpg"
            f.write_bytes(b"jpeg")
            frames.append(f)

        out = tmp_path / "tagged"
        summary = VideoPostProcessJob(store, str(out), tolerance_ns=sec // 10).run(frames, sec, "drive")
        assert summary.geopose_written == 4

        # classifier output joined with the written GeoPose docs
        captures = tmp_path / "captures.jsonl"
        with captures.open("w") as fh:
            for i, geo_path in enumerate(summary.outputs):
                doc = json.loads(geo_path.read_text())
                q = doc["quaternion"]
                fh.write(json.dumps({
                    "id": doc["id"],
                    "lat": doc["position"]["lat"],
                    "lon": doc["position"]["lon"],
                    "qx": q["x"], "qy": q["y"], "qz": q["z"], "qw": q["w"],
                    "annotations": [{"class": "paved_bad", "score": 0.8}],
                    "createdAt": doc["timestamp"],
                }) + "\n")

        points = to_road_points(load_records_jsonl(str(captures)))
        assert [p.index for p in points] == [0, 1, 2, 3]
        result = build_edges(points)
        assert {e.pair for e in result.edges} == {(0, 1), (1, 2), (2, 3)}
        assert {e.label for e in result.edges} == {"paved_bad"}

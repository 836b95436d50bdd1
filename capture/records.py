from __future__ import annotations

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from common.logging_setup import get_logger
from common.types import OrientationSample, PositionSample, RoadPoint
from common.utils import parse_iso8601
from pose_store.store import PoseStore


log = get_logger("capture.records")


@dataclass(slots=True)
class CaptureRecord:
    """
    One labeled capture as stored upstream (label document).

    Attributes:
        id: sample id (falls back to the document id).
        label, confidence: first annotation's class and score.
        lat, lon, h: capture position (h defaults to 0.0).
        quat: capture orientation (x, y, z, w); w defaults to 1.0.
        ts_ms: creation time, epoch ms (0 if unknown).
        image_ref, geopose_ref: storage references.
    """
    id: str
    label: str
    confidence: float
    lat: float
    lon: float
    h: float
    quat: Tuple[float, float, float, float]
    ts_ms: int
    image_ref: str = ""
    geopose_ref: str = ""


def _num(v: Any, default: float) -> float:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return default
    return float(v)


def _ts_ms(v: Any) -> int:
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return int(v)
    if isinstance(v, str) and v:
        try:
            return int(parse_iso8601(v).timestamp() * 1000)
        except ValueError:
            return 0
    return 0


def record_from_label_doc(doc_id: str, data: Optional[Dict[str, Any]]) -> Optional[CaptureRecord]:
    """
    Map an upstream label document to a CaptureRecord.
    Returns None for empty documents or ones without usable coordinates.
    """
    if not data:
        return None
    annotations = data.get("annotations") or []
    first = annotations[0] if annotations and isinstance(annotations[0], dict) else {}

    lat = _num(data.get("lat"), math.nan)
    lon = _num(data.get("lon"), math.nan)
    if math.isnan(lat) or math.isnan(lon):
        return None
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        log.warning("capture record out of range", extra={"extra": {"id": doc_id, "lat": lat, "lon": lon}})
        return None

    return CaptureRecord(
        id=str(data.get("sampleId") or doc_id),
        label=str(first.get("class") or ""),
        confidence=_num(first.get("score"), 0.0),
        lat=lat,
        lon=lon,
        h=_num(data.get("h"), 0.0),
        quat=(
            _num(data.get("qx"), 0.0),
            _num(data.get("qy"), 0.0),
            _num(data.get("qz"), 0.0),
            _num(data.get("qw"), 1.0),
        ),
        ts_ms=_ts_ms(data.get("createdAt")),
        image_ref=str(data.get("imageHref") or ""),
        geopose_ref=str(data.get("geoposeHref") or ""),
    )


def to_road_points(records: Iterable[CaptureRecord]) -> List[RoadPoint]:
    """Order records by creation time and assign stable batch indices."""
    ordered = sorted(records, key=lambda r: r.ts_ms)
    return [
        RoadPoint(
            index=i,
            lat=r.lat,
            lon=r.lon,
            label=r.label,
            confidence=r.confidence,
            quat=r.quat,
            image_ref=r.image_ref or None,
        )
        for i, r in enumerate(ordered)
    ]


def _jsonl_rows(path: str) -> Iterator[Tuple[int, Dict[str, Any]]]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"JSONL not found: {path}")
    with p.open("r") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                row = json.loads(line)
            except json.JSONDecodeError:
                log.warning("skipping malformed JSONL row", extra={"extra": {"path": path, "line": lineno}})
                continue
            if isinstance(row, dict):
                yield lineno, row


def load_records_jsonl(path: str) -> List[CaptureRecord]:
    """Read label documents, one JSON object per line (`id` key optional)."""
    out = []
    for lineno, row in _jsonl_rows(path):
        rec = record_from_label_doc(str(row.get("id") or f"line{lineno}"), row)
        if rec is not None:
            out.append(rec)
    return out


def load_samples_jsonl(path: str, store: PoseStore) -> Dict[str, int]:
    """
    Replay a sensor log into `store`. Rows:
      {"kind": "position", "t_ns": ..., "wall_ms": ..., "lat": ..., "lon": ..., "h": ..., "acc_m": ...}
      {"kind": "orientation", "t_ns": ..., "x": ..., "y": ..., "z": ..., "w": ...}
    Returns per-kind counts; rows that fail validation are skipped.
    """
    counts = {"position": 0, "orientation": 0, "skipped": 0}
    for lineno, row in _jsonl_rows(path):
        kind = row.get("kind")
        try:
            if kind == "position":
                store.add_position(PositionSample(
                    t_ns=int(row["t_ns"]),
                    wall_ms=int(row.get("wall_ms", 0)),
                    lat=float(row["lat"]),
                    lon=float(row["lon"]),
                    height_m=None if row.get("h") is None else float(row["h"]),
                    accuracy_m=None if row.get("acc_m") is None else float(row["acc_m"]),
                ))
            elif kind == "orientation":
                store.add_orientation(OrientationSample(
                    t_ns=int(row["t_ns"]),
                    x=float(row["x"]), y=float(row["y"]), z=float(row["z"]), w=float(row["w"]),
                ))
            else:
                raise ValueError(f"unknown kind {kind!r}")
        except (KeyError, TypeError, ValueError) as e:
            counts["skipped"] += 1
            log.warning("skipping sample row", extra={"extra": {"line": lineno, "error": str(e)}})
            continue
        counts[kind] += 1
    return counts

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np

from common.config import ConfigurationError
from common.geo import (
    angle_separation_deg,
    destination_point,
    initial_bearing_deg,
    pairwise_bearing_deg,
    pairwise_haversine_m,
    snap_to_cell,
)
from common.logging_setup import get_logger
from common.types import DedupKey, GraphEdge, RoadPoint
from pose_store.quat import to_ypr_deg
from road_graph.labels import canonical_label


log = get_logger("road_graph")

LabelNormalizer = Callable[[Optional[str]], str]


@dataclass(frozen=True)
class GraphConfig:
    """
    Tunable thresholds for build_edges().

    connect_threshold_m: max distance (m) for any edge.
    min_angle_deg: min bearing separation between primary and secondary edge.
    rail_cell_m: dedup grid cell side (m).
    bearing_bin_deg: dedup bearing bin width (deg).
    """
    connect_threshold_m: float = 200.0
    min_angle_deg: float = 100.0
    rail_cell_m: float = 8.0
    bearing_bin_deg: float = 12.0

    def __post_init__(self) -> None:
        for name in ("connect_threshold_m", "min_angle_deg", "rail_cell_m", "bearing_bin_deg"):
            v = getattr(self, name)
            if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(v):
                raise ConfigurationError(f"{name} must be a finite number, got {v!r}")
        if self.connect_threshold_m < 0:
            raise ConfigurationError(f"connect_threshold_m must be >= 0, got {self.connect_threshold_m}")
        if not (0.0 <= self.min_angle_deg <= 180.0):
            raise ConfigurationError(f"min_angle_deg must be in [0, 180], got {self.min_angle_deg}")
        if self.rail_cell_m <= 0:
            raise ConfigurationError(f"rail_cell_m must be > 0, got {self.rail_cell_m}")
        if not (0.0 < self.bearing_bin_deg <= 180.0):
            raise ConfigurationError(f"bearing_bin_deg must be in (0, 180], got {self.bearing_bin_deg}")

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "GraphConfig":
        d = d or {}
        kwargs = {k: float(d[k]) for k in ("connect_threshold_m", "min_angle_deg", "rail_cell_m", "bearing_bin_deg") if k in d}
        return cls(**kwargs)


@dataclass(frozen=True)
class GraphResult:
    """New edges of one invocation plus the dedup keys to carry into the next."""
    edges: Tuple[GraphEdge, ...]
    keys: FrozenSet[DedupKey]


def dedup_key(a: RoadPoint, b: RoadPoint, label: str, cfg: GraphConfig) -> DedupKey:
    """
    (label, bearing bin, grid cell) of segment a-b.

    The midpoint is snapped to a cfg.rail_cell_m grid using a latitude-corrected
    scale; the bearing is folded to an undirected [0, 180) line orientation so
    that a->b and b->a share a bin.
    """
    mid_lat = (a.lat + b.lat) / 2.0
    mid_lon = (a.lon + b.lon) / 2.0
    gx, gy = snap_to_cell(mid_lat, mid_lon, cfg.rail_cell_m)

    heading180 = initial_bearing_deg(a.lat, a.lon, b.lat, b.lon) % 180.0
    hb = math.floor(heading180 / cfg.bearing_bin_deg + 0.5)
    if hb * cfg.bearing_bin_deg >= 180.0:
        hb = 0
    return DedupKey(label, int(hb), gx, gy)


def build_edges(
    points: Sequence[RoadPoint],
    config: Optional[GraphConfig] = None,
    seen_keys: Iterable[DedupKey] = (),
    normalizer: LabelNormalizer = canonical_label,
) -> GraphResult:
    """
    Greedy road graph over a batch of labeled points.

    Per canonical label group, each point links to its nearest neighbor within
    connect_threshold_m and, optionally, to the nearest remaining candidate whose
    bearing differs from that primary link by at least min_angle_deg. Links are
    kept once per endpoint pair, and once per dedup key across `seen_keys`.

    Point indices must be unique within the batch (ValueError otherwise).
    Pure: `seen_keys` is not mutated; the returned result carries the union.
    """
    cfg = config or GraphConfig()
    keys: Set[DedupKey] = set(seen_keys)
    edges: List[GraphEdge] = []
    suppressed = 0

    groups: Dict[str, List[RoadPoint]] = {}
    indices: Set[int] = set()
    for p in points:
        if p.index in indices:
            raise ValueError(f"duplicate RoadPoint index {p.index} in batch")
        indices.add(p.index)
        groups.setdefault(normalizer(p.label), []).append(p)

    for label, pts in groups.items():
        if len(pts) < 2:
            continue
        lat = np.array([p.lat for p in pts], dtype=float)
        lon = np.array([p.lon for p in pts], dtype=float)
        dist = pairwise_haversine_m(lat, lon)
        bearing = pairwise_bearing_deg(lat, lon)

        added_pairs: Set[Tuple[int, int]] = set()
        for i, a in enumerate(pts):
            row = dist[i]
            cand = np.flatnonzero(row <= cfg.connect_threshold_m)
            cand = cand[cand != i]
            if cand.size == 0:
                continue
            cand = cand[np.argsort(row[cand], kind="stable")]

            primary = int(cand[0])
            if not _add_once(a, pts[primary], label, cfg, added_pairs, keys, edges):
                suppressed += 1

            primary_bearing = float(bearing[i, primary])
            for j in cand[1:]:
                j = int(j)
                if angle_separation_deg(primary_bearing, float(bearing[i, j])) >= cfg.min_angle_deg:
                    if not _add_once(a, pts[j], label, cfg, added_pairs, keys, edges):
                        suppressed += 1
                    break

    log.debug(
        "road graph built",
        extra={"extra": {"points": len(points), "groups": len(groups), "edges": len(edges), "suppressed": suppressed}},
    )
    return GraphResult(tuple(edges), frozenset(keys))


def _add_once(
    a: RoadPoint,
    b: RoadPoint,
    label: str,
    cfg: GraphConfig,
    added_pairs: Set[Tuple[int, int]],
    keys: Set[DedupKey],
    edges: List[GraphEdge],
) -> bool:
    pair = (a.index, b.index) if a.index < b.index else (b.index, a.index)
    if pair in added_pairs:
        return False
    added_pairs.add(pair)

    key = dedup_key(a, b, label, cfg)
    if key in keys:
        return False
    keys.add(key)

    edges.append(GraphEdge(pair[0], pair[1], label, (a.confidence + b.confidence) / 2.0, key))
    return True


def heading_arrows(
    points: Iterable[RoadPoint],
    length_m: float = 10.0,
    normalizer: LabelNormalizer = canonical_label,
) -> List[Dict[str, Any]]:
    """
    Short segments from each point along the yaw of its orientation, for
    drawing capture direction next to the point marker.
    """
    out = []
    for p in points:
        yaw, _, _ = to_ypr_deg(p.quat)
        end_lat, end_lon = destination_point(p.lat, p.lon, yaw, length_m)
        out.append({
            "index": p.index,
            "label": normalizer(p.label),
            "start": (p.lat, p.lon),
            "end": (end_lat, end_lon),
            "yaw_deg": yaw,
        })
    return out

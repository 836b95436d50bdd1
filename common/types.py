from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Optional, Tuple, Any, Dict, NamedTuple
import math
import numpy as np


Quat = Tuple[float, float, float, float]   # (x, y, z, w)

SOURCE_INTERPOLATED = "interpolated"
SOURCE_NEAREST = "nearest"


def _check_lat_lon(lat: float, lon: float) -> None:
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise ValueError("lat/lon must be finite")
    if not (-90.0 <= lat <= 90.0) or not (-180.0 <= lon <= 180.0):
        raise ValueError("lat/lon out of range")


@dataclass(frozen=True, slots=True)
class PositionSample:
    """
    A single GNSS fix keyed by the capture clock.

    Attributes:
        t_ns: capture-clock timestamp (monotonic ns, opaque epoch).
        wall_ms: wall-clock epoch ms, only used for human-readable output.
        lat, lon: WGS84 degrees.
        height_m: ellipsoidal height (m) or None.
        accuracy_m: horizontal accuracy (m) or None.
    """
    t_ns: int
    wall_ms: int
    lat: float
    lon: float
    height_m: Optional[float] = None
    accuracy_m: Optional[float] = None

    def __post_init__(self) -> None:
        _check_lat_lon(self.lat, self.lon)


@dataclass(frozen=True, slots=True)
class OrientationSample:
    """Orientation quaternion (x, y, z, w) keyed by the capture clock."""
    t_ns: int
    x: float
    y: float
    z: float
    w: float

    @property
    def quat(self) -> Quat:
        return (self.x, self.y, self.z, self.w)

    def as_array(self) -> np.ndarray:
        return np.array(self.quat, dtype=float)

    @classmethod
    def from_array(cls, t_ns: int, q: np.ndarray) -> "OrientationSample":
        return cls(t_ns, float(q[0]), float(q[1]), float(q[2]), float(q[3]))


@dataclass(frozen=True, slots=True)
class FusedPose:
    """
    Best-estimate pose at a query instant.

    Attributes:
        t_ns: the *query* instant on the capture clock.
        lat, lon, height_m: taken from the nearest position sample.
        quat: (x, y, z, w), interpolated or nearest.
        source: "interpolated" or "nearest" (orientation provenance).
        position_dt_ns: |query - position sample time|.
        orientation_dt_ns: |query - orientation sample time|; for interpolated
            poses, the larger distance to the two bracket ends.
        wall_ms, accuracy_m: carried over from the position sample.
    """
    t_ns: int
    lat: float
    lon: float
    height_m: Optional[float]
    quat: Quat
    source: str
    position_dt_ns: int
    orientation_dt_ns: int
    wall_ms: int = 0
    accuracy_m: Optional[float] = None

    @property
    def interpolated(self) -> bool:
        return self.source == SOURCE_INTERPOLATED

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["quat"] = list(self.quat)
        return d


@dataclass(frozen=True, slots=True)
class RoadPoint:
    """
    Labeled, geolocated point fed into the road graph builder.

    `index` is stable within the current batch and is what GraphEdge refers to.
    `label` is the raw classifier label; the builder canonicalizes it.
    """
    index: int
    lat: float
    lon: float
    label: str
    confidence: float
    quat: Quat = (0.0, 0.0, 0.0, 1.0)
    image_ref: Optional[str] = None

    def __post_init__(self) -> None:
        _check_lat_lon(self.lat, self.lon)


class DedupKey(NamedTuple):
    """Quantized (label, bearing bin, grid cell) identifying a rendered road segment."""
    label: str
    bearing_bin: int
    cell_x: int
    cell_y: int

    def to_str(self) -> str:
        return f"{self.label}|{self.bearing_bin}|{self.cell_x}|{self.cell_y}"

    @classmethod
    def parse(cls, s: str) -> "DedupKey":
        parts = s.rsplit("|", 3)
        if len(parts) != 4:
            raise ValueError(f"Malformed dedup key: {s!r}")
        return cls(parts[0], int(parts[1]), int(parts[2]), int(parts[3]))


@dataclass(frozen=True, slots=True)
class GraphEdge:
    """
    Undirected road segment between two RoadPoints of the same canonical label.
    Endpoints are stored with a < b.
    """
    a: int
    b: int
    label: str
    confidence: float
    key: DedupKey

    @property
    def pair(self) -> Tuple[int, int]:
        return (self.a, self.b)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "a": self.a,
            "b": self.b,
            "label": self.label,
            "confidence": self.confidence,
            "key": self.key.to_str(),
        }

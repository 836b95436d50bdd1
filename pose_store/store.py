from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Optional, Tuple

from common.config import ConfigurationError
from common.logging_setup import get_logger
from common.utils import clamp
from common.types import (
    FusedPose,
    OrientationSample,
    PositionSample,
    SOURCE_INTERPOLATED,
    SOURCE_NEAREST,
)
from pose_store import quat as qm


log = get_logger("pose_store")

DEFAULT_CAPACITY = 4096

STATUS_OK = "ok"
STATUS_NO_DATA = "no_data"
STATUS_OUT_OF_TOLERANCE = "out_of_tolerance"


@dataclass(frozen=True)
class PoseResolution:
    """
    Outcome of PoseStore.resolve().

    status:
        "ok"               -> pose is set
        "no_data"          -> nothing recorded in a buffer the query needs
        "out_of_tolerance" -> samples exist but none close enough in time
    Truthy only when a pose was resolved.
    """
    status: str
    pose: Optional[FusedPose] = None
    reason: str = ""

    def __bool__(self) -> bool:
        return self.status == STATUS_OK


class PoseStore:
    """
    Thread-safe rolling buffers of GNSS positions and orientation quaternions,
    keyed by the capture clock (ns).

    Both buffers are bounded FIFOs of `capacity` samples; the oldest sample is
    evicted silently when full. One lock guards both buffers; every operation is
    a bounded scan with no I/O.

    Lookups never assume the buffers are sorted: nearest-sample queries scan
    everything. Interpolation brackets, however, are found by walking insertion
    order, which is exact for time-ordered input and best-effort otherwise.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
            raise ConfigurationError(f"capacity must be a positive int, got {capacity!r}")
        self.capacity = capacity
        self._positions: Deque[PositionSample] = deque(maxlen=capacity)
        self._orientations: Deque[OrientationSample] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._evicted_positions = 0
        self._evicted_orientations = 0
        self._degenerate_orientations = 0

    # -------------------------
    # Ingestion
    # -------------------------
    def add_position(self, sample: PositionSample) -> None:
        with self._lock:
            if len(self._positions) == self.capacity:
                self._evicted_positions += 1
            self._positions.append(sample)

    def add_orientation(self, sample: OrientationSample) -> None:
        """Store a unit-norm copy of the sample; zero-norm input is kept as-is."""
        n = qm.norm(sample.quat)
        if n > 0.0:
            stored = OrientationSample.from_array(sample.t_ns, qm.normalize(sample.quat))
        else:
            stored = sample
        with self._lock:
            if n <= 0.0:
                self._degenerate_orientations += 1
            if len(self._orientations) == self.capacity:
                self._evicted_orientations += 1
            self._orientations.append(stored)
        if n <= 0.0:
            log.debug("degenerate orientation stored unnormalized", extra={"extra": {"t_ns": sample.t_ns}})

    # -------------------------
    # Queries
    # -------------------------
    def nearest_position(self, t_ns: int) -> Optional[PositionSample]:
        with self._lock:
            return _nearest(self._positions, t_ns)

    def nearest_orientation(self, t_ns: int) -> Optional[OrientationSample]:
        with self._lock:
            return _nearest(self._orientations, t_ns)

    def interpolated_orientation(self, t_ns: int) -> Optional[OrientationSample]:
        """
        SLERP between the samples bracketing t_ns; falls back to the nearest
        sample when no usable bracket exists. None only if the buffer is empty.
        """
        with self._lock:
            q, _, _ = self._orientation_locked(t_ns)
            return q

    def resolve(self, t_ns: int, tolerance_ns: int) -> PoseResolution:
        """
        Fused pose at capture instant t_ns.

        Position is the nearest GNSS sample (never interpolated) and must lie
        within tolerance_ns. Orientation is interpolated when a bracket exists
        (accepted without further checks); a nearest-sample fallback must also
        lie within tolerance_ns.
        """
        if tolerance_ns < 0:
            raise ConfigurationError(f"tolerance_ns must be >= 0, got {tolerance_ns}")

        with self._lock:
            pos = _nearest(self._positions, t_ns)
            if pos is None:
                return PoseResolution(STATUS_NO_DATA, reason="no position samples")
            pos_dt = abs(pos.t_ns - t_ns)
            if pos_dt > tolerance_ns:
                return PoseResolution(
                    STATUS_OUT_OF_TOLERANCE,
                    reason=f"nearest position {pos_dt} ns away",
                )

            q, interpolated, q_dt = self._orientation_locked(t_ns)
            if q is None:
                return PoseResolution(STATUS_NO_DATA, reason="no orientation samples")
            if not interpolated and q_dt > tolerance_ns:
                return PoseResolution(
                    STATUS_OUT_OF_TOLERANCE,
                    reason=f"nearest orientation {q_dt} ns away",
                )

        return PoseResolution(
            STATUS_OK,
            FusedPose(
                t_ns=t_ns,
                lat=pos.lat,
                lon=pos.lon,
                height_m=pos.height_m,
                quat=q.quat,
                source=SOURCE_INTERPOLATED if interpolated else SOURCE_NEAREST,
                position_dt_ns=pos_dt,
                orientation_dt_ns=q_dt,
                wall_ms=pos.wall_ms,
                accuracy_m=pos.accuracy_m,
            ),
        )

    # -------------------------
    # Introspection
    # -------------------------
    def snapshot_positions(self) -> Tuple[PositionSample, ...]:
        with self._lock:
            return tuple(self._positions)

    def snapshot_orientations(self) -> Tuple[OrientationSample, ...]:
        with self._lock:
            return tuple(self._orientations)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "capacity": self.capacity,
                "positions": len(self._positions),
                "orientations": len(self._orientations),
                "evicted_positions": self._evicted_positions,
                "evicted_orientations": self._evicted_orientations,
                "degenerate_orientations": self._degenerate_orientations,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._positions) + len(self._orientations)

    # -------------------------
    # Internals (caller holds the lock)
    # -------------------------
    def _orientation_locked(self, t_ns: int) -> Tuple[Optional[OrientationSample], bool, int]:
        """Return (sample, interpolated?, |dt| to the source sample(s))."""
        buf = self._orientations
        if not buf:
            return None, False, 0
        if len(buf) == 1:
            only = buf[0]
            return only, False, abs(only.t_ns - t_ns)

        # Walk insertion order: a = last sample at or before t, b = first after it.
        a = buf[0]
        b = buf[-1]
        for e in buf:
            if e.t_ns <= t_ns:
                a = e
            else:
                b = e
                break

        span = b.t_ns - a.t_ns
        if span <= 0:
            near = _nearest(buf, t_ns)
            log.debug("no orientation bracket, using nearest", extra={"extra": {"t_ns": t_ns}})
            return near, False, abs(near.t_ns - t_ns)

        u = clamp((t_ns - a.t_ns) / span, 0.0, 1.0)
        q = qm.slerp(a.as_array(), b.as_array(), u)
        dt = max(abs(t_ns - a.t_ns), abs(b.t_ns - t_ns))
        return OrientationSample.from_array(t_ns, q), True, dt


def _nearest(buf, t_ns: int):
    """Full scan; ties keep the earliest-inserted sample."""
    if not buf:
        return None
    best = buf[0]
    best_dt = abs(best.t_ns - t_ns)
    for e in buf:
        dt = abs(e.t_ns - t_ns)
        if dt < best_dt:
            best = e
            best_dt = dt
    return best

from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy as np


# Above this |dot| the two rotations are treated as parallel and blended linearly.
SLERP_LINEAR_THRESHOLD = 0.9995


def norm(q: Sequence[float]) -> float:
    a = np.asarray(q, dtype=float)
    return float(np.sqrt(a @ a))


def normalize(q: Sequence[float]) -> np.ndarray:
    """
    Unit-length copy of q (x, y, z, w).
    A zero-norm input is returned unchanged (copied) instead of dividing by zero.
    """
    a = np.array(q, dtype=float)
    n = float(np.sqrt(a @ a))
    if n > 0.0:
        a /= n
    return a


def slerp(a: Sequence[float], b: Sequence[float], u: float) -> np.ndarray:
    """
    Spherical linear interpolation between unit quaternions a and b, u in [0, 1].

    Takes the shorter arc (negates b when a·b < 0), so q and -q give the same
    rotation. Near-parallel inputs fall back to lerp + renormalize.
    """
    qa = np.asarray(a, dtype=float)
    qb = np.array(b, dtype=float)

    cos = float(qa @ qb)
    if cos < 0.0:
        qb = -qb
        cos = -cos
    cos = max(-1.0, min(1.0, cos))

    if cos > SLERP_LINEAR_THRESHOLD:
        q = qa + u * (qb - qa)
        return normalize(q)

    theta = math.acos(cos)
    sin_theta = math.sin(theta)
    s1 = math.sin((1.0 - u) * theta) / sin_theta
    s2 = math.sin(u * theta) / sin_theta
    return s1 * qa + s2 * qb


def same_rotation(a: Sequence[float], b: Sequence[float], atol: float = 1e-6) -> bool:
    """True if a and b encode the same rotation (q and -q are equivalent)."""
    qa, qb = normalize(a), normalize(b)
    return abs(abs(float(qa @ qb)) - 1.0) <= atol


def to_ypr_deg(q: Sequence[float]) -> Tuple[float, float, float]:
    """
    (yaw, pitch, roll) in degrees from quaternion (x, y, z, w), ZYX convention.
    Pitch is clamped at +/-90 deg for gimbal-lock inputs.
    """
    x, y, z, w = (float(v) for v in q)
    t0 = 2.0 * (w * x + y * z)
    t1 = 1.0 - 2.0 * (x * x + y * y)
    roll = math.degrees(math.atan2(t0, t1))

    t2 = 2.0 * (w * y - z * x)
    t2 = max(-1.0, min(1.0, t2))
    pitch = math.degrees(math.asin(t2))

    t3 = 2.0 * (w * z + x * y)
    t4 = 1.0 - 2.0 * (y * y + z * z)
    yaw = math.degrees(math.atan2(t3, t4))
    return yaw, pitch, roll

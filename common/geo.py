from __future__ import annotations

from typing import Tuple
import math
import numpy as np


EARTH_RADIUS_M = 6371008.8        # mean Earth radius (m)
METERS_PER_DEG_LAT = 111_320.0    # flat approximation used for grid snapping


# -------------------------
# Great-circle & bearings
# -------------------------
def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine great-circle distance on WGS84 sphere approximation."""
    p1 = math.radians(lat1)
    p2 = math.radians(lat2)
    dphi = p2 - p1
    dl = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2.0) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2.0) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(min(1.0, a)))


def initial_bearing_deg(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial great-circle bearing from point 1 to point 2 (degrees, 0..360)."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dl = math.radians(lon2 - lon1)
    y = math.sin(dl) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dl)
    b = math.degrees(math.atan2(y, x))
    return (b + 360.0) % 360.0


def angle_separation_deg(a: float, b: float) -> float:
    """Smallest angle between two bearings (degrees, 0..180)."""
    d = abs(a - b) % 360.0
    return 360.0 - d if d > 180.0 else d


def destination_point(lat: float, lon: float, bearing_deg: float, distance_m: float) -> Tuple[float, float]:
    """
    Point reached travelling `distance_m` from (lat, lon) along an initial bearing.
    Returns (lat, lon) in degrees, longitude wrapped to [-180, 180).
    """
    d = distance_m / EARTH_RADIUS_M
    th = math.radians(bearing_deg)
    p1 = math.radians(lat)
    l1 = math.radians(lon)
    p2 = math.asin(math.sin(p1) * math.cos(d) + math.cos(p1) * math.sin(d) * math.cos(th))
    l2 = l1 + math.atan2(
        math.sin(th) * math.sin(d) * math.cos(p1),
        math.cos(d) - math.sin(p1) * math.sin(p2),
    )
    lon2 = (math.degrees(l2) + 540.0) % 360.0 - 180.0
    return math.degrees(p2), lon2


# -------------------------
# Vectorised pairwise forms
# -------------------------
def pairwise_haversine_m(lat: np.ndarray, lon: np.ndarray) -> np.ndarray:
    """
    NxN great-circle distances (m) between all points of a batch.
    Row i holds distances from point i.
    """
    phi = np.radians(np.asarray(lat, dtype=float))
    lam = np.radians(np.asarray(lon, dtype=float))
    dphi = phi[None, :] - phi[:, None]
    dl = lam[None, :] - lam[:, None]
    a = np.sin(dphi / 2.0) ** 2 + np.cos(phi)[:, None] * np.cos(phi)[None, :] * np.sin(dl / 2.0) ** 2
    return 2 * EARTH_RADIUS_M * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))


def pairwise_bearing_deg(lat: np.ndarray, lon: np.ndarray) -> np.ndarray:
    """NxN initial bearings (deg, 0..360); entry [i, j] is the bearing from i to j."""
    phi = np.radians(np.asarray(lat, dtype=float))
    lam = np.radians(np.asarray(lon, dtype=float))
    dl = lam[None, :] - lam[:, None]
    y = np.sin(dl) * np.cos(phi)[None, :]
    x = np.cos(phi)[:, None] * np.sin(phi)[None, :] - np.sin(phi)[:, None] * np.cos(phi)[None, :] * np.cos(dl)
    return (np.degrees(np.arctan2(y, x)) + 360.0) % 360.0


# -------------------------
# Local metric grid
# -------------------------
def meters_per_degree(lat: float) -> Tuple[float, float]:
    """
    Local (lat, lon) scale factors in meters per degree at latitude `lat`.
    Longitude spacing shrinks with cos(lat); clamped away from zero at the poles.
    """
    m_lat = METERS_PER_DEG_LAT
    m_lon = max(1e-6, m_lat * math.cos(math.radians(lat)))
    return m_lat, m_lon


def snap_to_cell(lat: float, lon: float, cell_m: float) -> Tuple[int, int]:
    """
    Snap a coordinate onto a square grid of side `cell_m` meters.
    Returns integer (gx, gy) cell indices (round half up).
    """
    m_lat, m_lon = meters_per_degree(lat)
    gy = math.floor(lat / (cell_m / m_lat) + 0.5)
    gx = math.floor(lon / (cell_m / m_lon) + 0.5)
    return int(gx), int(gy)

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import time


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def iso_from_epoch_ms(epoch_ms: int) -> str:
    """UTC RFC-3339 timestamp with millisecond precision and 'Z' suffix."""
    dt = _EPOCH + timedelta(milliseconds=int(epoch_ms))
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso8601(ts: str) -> datetime:
    """Parse a strict ISO-8601 timestamp with optional 'Z'."""
    if ts.endswith("Z"):
        ts = ts[:-1] + "+00:00"
    return datetime.fromisoformat(ts)


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


def clamp(v: float, lo: float, hi: float) -> float:
    return float(min(hi, max(lo, v)))

from __future__ import annotations

from pathlib import Path
from typing import List

import cv2

from common.logging_setup import get_logger


log = get_logger("capture.frames")


def fps_from_expr(expr: str) -> float:
    """
    Parse a sampling-rate expression: "1" (1 Hz), "2", "1/3" (one frame every 3 s).
    Unparsable parts default to 1.0.
    """
    s = (expr or "").strip()
    if "/" in s:
        n, d = s.split("/", 1)
        return _to_float(n, 1.0) / (_to_float(d, 1.0) or 1.0)
    return _to_float(s, 1.0)


def _to_float(s: str, default: float) -> float:
    try:
        return float(s.strip())
    except ValueError:
        return default


def frame_interval_ns(fps: float) -> int:
    """Spacing between sampled frames on the capture clock (>= 1 ns)."""
    if fps <= 0:
        raise ValueError(f"fps must be > 0, got {fps}")
    return max(1, int(1e9 / fps))


def frame_instant_ns(start_ns: int, idx: int, fps: float) -> int:
    """Capture-clock instant of the idx-th sampled frame (frames evenly spaced from start)."""
    return start_ns + idx * frame_interval_ns(fps)


def extract_frames(video: str, out_dir: str, fps_expr: str = "1", jpeg_quality: int = 92) -> List[Path]:
    """
    Sample a video at `fps_expr` and write frame_000001.jpg, ... into out_dir.
    Returns the written paths in order.
    """
    if not Path(video).exists():
        raise FileNotFoundError(f"Video not found: {video}")
    fps = fps_from_expr(fps_expr)
    if fps <= 0:
        raise ValueError(f"Invalid fps expression: {fps_expr!r}")

    cap = cv2.VideoCapture(video)
    if not cap.isOpened():
        raise RuntimeError(f"Cannot open video: {video}")

    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    step_ms = 1000.0 / fps
    next_ms = 0.0
    written: List[Path] = []
    try:
        while True:
            ok, img = cap.read()
            if not ok:
                break
            pos_ms = cap.get(cv2.CAP_PROP_POS_MSEC)
            if pos_ms + 1e-6 < next_ms:
                continue
            fn = out / f"frame_{len(written) + 1:06d}.jpg"
            cv2.imwrite(str(fn), img, [cv2.IMWRITE_JPEG_QUALITY, int(jpeg_quality)])
            written.append(fn)
            while next_ms <= pos_ms + 1e-6:
                next_ms += step_ms
    finally:
        cap.release()

    log.info("frames extracted", extra={"extra": {"video": video, "fps": fps, "frames": len(written)}})
    return written

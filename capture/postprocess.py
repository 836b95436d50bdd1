from __future__ import annotations

"""
Offline pose tagging of captured imagery.

  1) Take frames sampled from a recorded video at a known rate (fps_expr).
  2) For each frame, resolve a fused pose from the PoseStore at the frame's
     capture-clock instant (frames evenly spaced from the recording start).
  3) Write an OGC GeoPose (Basic-Quaternion) JSON next to a renamed copy of
     the frame: <video>_<000001>.jpg + <video>_<000001>.geopose.json
  4) Hand each pair to an optional sink (e.g., an uploader); sink failures are
     tracked per item with exponential backoff instead of aborting the job.

Example:
  python -m capture.postprocess --video data/run1.mp4 --samples logs/samples.jsonl \
      --start-ns 123456789000 --fps 1 --out runtime/frames
"""

import argparse
import json
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from common.config import ConfigurationError, load_config
from common.logging_setup import get_logger, setup_logging
from capture.frames import extract_frames, fps_from_expr, frame_instant_ns
from capture.geopose import quaternion_doc, write_geopose
from capture.records import load_samples_jsonl
from pose_store.store import PoseStore


log = get_logger("capture.postprocess")

DEFAULT_TOLERANCE_NS = 5_000_000_000

Sink = Callable[[Path, Path, Dict[str, Any]], None]


@dataclass
class RetryState:
    """Per-item retry bookkeeping: attempt count and the next eligible time (epoch s)."""
    attempts: int = 0
    next_eligible_s: float = 0.0
    last_error: str = ""

    def record_failure(self, now_s: float, error: str, base_s: float = 2.0, max_s: float = 300.0) -> None:
        self.attempts += 1
        self.last_error = error
        self.next_eligible_s = now_s + min(max_s, base_s * (2 ** (self.attempts - 1)))

    def eligible(self, now_s: float) -> bool:
        return now_s >= self.next_eligible_s


@dataclass
class JobSummary:
    frames_total: int = 0
    geopose_written: int = 0
    delivered: int = 0
    skipped: Dict[str, int] = field(default_factory=dict)
    outputs: List[Path] = field(default_factory=list)

    def skip(self, reason: str) -> None:
        self.skipped[reason] = self.skipped.get(reason, 0) + 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frames_total": self.frames_total,
            "geopose_written": self.geopose_written,
            "delivered": self.delivered,
            "skipped": dict(self.skipped),
        }


class VideoPostProcessJob:
    """
    Pose-tag frames sampled from one recording.

    The store is injected by whoever created the capture session; the job never
    looks one up globally.
    """

    def __init__(
        self,
        store: PoseStore,
        out_dir: str,
        *,
        tolerance_ns: int = DEFAULT_TOLERANCE_NS,
        fps_expr: str = "1",
        ori_std_deg: Optional[float] = 2.0,
        sink: Optional[Sink] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if tolerance_ns < 0:
            raise ConfigurationError(f"tolerance_ns must be >= 0, got {tolerance_ns}")
        fps = fps_from_expr(fps_expr)
        if fps <= 0:
            raise ConfigurationError(f"Invalid fps expression: {fps_expr!r}")
        self.store = store
        self.out_dir = Path(out_dir)
        self.tolerance_ns = tolerance_ns
        self.fps = fps
        self.ori_std_deg = ori_std_deg
        self.sink = sink
        self.clock = clock
        self.retries: Dict[str, RetryState] = {}
        self._pending: Dict[str, tuple] = {}

    def run(self, frames: Sequence[Path], start_ns: int, video_name: str) -> JobSummary:
        if start_ns <= 0:
            raise ConfigurationError(f"start_ns must be > 0, got {start_ns}")
        summary = JobSummary()
        ordered = sorted((Path(f) for f in frames), key=lambda p: p.name)
        summary.frames_total = len(ordered)

        for idx, frame in enumerate(ordered):
            t_ns = frame_instant_ns(start_ns, idx, self.fps)
            res = self.store.resolve(t_ns, self.tolerance_ns)
            if not res:
                summary.skip(res.status)
                log.warning("no pose for frame", extra={"extra": {"frame": frame.name, "status": res.status, "reason": res.reason}})
                continue

            item_id = f"{video_name}_{idx + 1:06d}"
            try:
                image_path = self.out_dir / f"{item_id}{frame.suffix or '.jpg'}"
                self.out_dir.mkdir(parents=True, exist_ok=True)
                if frame.resolve() != image_path.resolve():
                    shutil.copyfile(frame, image_path)
                geo_path = write_geopose(
                    self.out_dir / f"{item_id}.geopose.json",
                    quaternion_doc(res.pose, item_id, self.ori_std_deg),
                )
            except OSError as e:
                summary.skip("io_error")
                log.warning("failed to write frame outputs", extra={"extra": {"frame": frame.name, "error": str(e)}})
                continue

            summary.geopose_written += 1
            summary.outputs.append(geo_path)
            meta = {"id": item_id, "ts": res.pose.wall_ms, "lat": res.pose.lat, "lon": res.pose.lon}
            if self._deliver(item_id, image_path, geo_path, meta):
                summary.delivered += 1

        log.info("post-process finished", extra={"extra": {"video": video_name, **summary.to_dict()}})
        return summary

    def retry_pending(self) -> int:
        """Re-deliver items whose backoff has elapsed; returns how many succeeded."""
        now = self.clock()
        ok = 0
        for item_id in list(self._pending):
            if not self.retries[item_id].eligible(now):
                continue
            image_path, geo_path, meta = self._pending[item_id]
            if self._deliver(item_id, image_path, geo_path, meta):
                ok += 1
        return ok

    @property
    def pending(self) -> List[str]:
        return sorted(self._pending)

    def _deliver(self, item_id: str, image_path: Path, geo_path: Path, meta: Dict[str, Any]) -> bool:
        if self.sink is None:
            return False
        try:
            self.sink(image_path, geo_path, meta)
        except Exception as e:  # sink is an external collaborator; keep the job going
            state = self.retries.setdefault(item_id, RetryState())
            state.record_failure(self.clock(), str(e))
            self._pending[item_id] = (image_path, geo_path, meta)
            log.warning("delivery failed", extra={"extra": {"id": item_id, "attempts": state.attempts, "error": str(e)}})
            return False
        self._pending.pop(item_id, None)
        self.retries.pop(item_id, None)
        return True


def tag_still(
    store: PoseStore,
    image_path: str,
    t_ns: int,
    *,
    tolerance_ns: int = DEFAULT_TOLERANCE_NS,
    ori_std_deg: Optional[float] = 2.0,
) -> Optional[Path]:
    """
    Write <image>.geopose.json beside a single still capture.
    Returns the document path, or None when no pose is available in tolerance.
    """
    img = Path(image_path)
    res = store.resolve(t_ns, tolerance_ns)
    if not res:
        log.warning("no pose for still", extra={"extra": {"image": img.name, "status": res.status}})
        return None
    return write_geopose(img.with_name(f"{img.stem}.geopose.json"), quaternion_doc(res.pose, img.stem, ori_std_deg))


def main() -> None:
    ap = argparse.ArgumentParser(description="Pose-tag frames sampled from a recording")
    ap.add_argument("--config", default="config/params.yaml")
    src = ap.add_mutually_exclusive_group(required=True)
    src.add_argument("--video", help="Recorded video; frames are extracted first")
    src.add_argument("--frames-dir", help="Directory of already-sampled frames (*.jpg, *.png)")
    ap.add_argument("--samples", required=True, help="Sensor log JSONL (position/orientation rows)")
    ap.add_argument("--start-ns", type=int, required=True, help="Capture-clock ns at recording start")
    ap.add_argument("--fps", default=None, help="Sampling expression, e.g. 1, 2, 1/3 (overrides config)")
    ap.add_argument("--tolerance-ns", type=int, default=None, help="Pose matching tolerance (overrides config)")
    ap.add_argument("--out", default=None, help="Output directory (overrides config)")
    args = ap.parse_args()

    P = load_config(args.config)
    setup_logging(P["logging"].get("level"), force=True)
    fps_expr = args.fps or str(P["capture"].get("fps_expr", "1"))
    tol = args.tolerance_ns if args.tolerance_ns is not None else int(P["pose_store"]["tolerance_ns"])
    out_dir = Path(args.out or P["capture"].get("out_dir", "runtime/frames"))

    store = PoseStore(capacity=int(P["pose_store"]["capacity"]))
    counts = load_samples_jsonl(args.samples, store)
    log.info("samples loaded", extra={"extra": counts})

    if args.video:
        name = Path(args.video).stem
        frames = extract_frames(args.video, str(out_dir / "raw" / name), fps_expr=fps_expr)
    else:
        d = Path(args.frames_dir)
        name = d.name
        frames = [p for p in d.iterdir() if p.suffix.lower() in (".jpg", ".jpeg", ".png")]

    job = VideoPostProcessJob(
        store,
        str(out_dir / name),
        tolerance_ns=tol,
        fps_expr=fps_expr,
        ori_std_deg=float(P["capture"].get("orientation_std_deg", 2.0)),
    )
    summary = job.run(frames, args.start_ns, name)
    print(json.dumps(summary.to_dict()))


if __name__ == "__main__":
    main()

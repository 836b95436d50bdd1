"""
Temporal Pose Store

Provides:
- PoseStore: bounded, thread-safe dual ring buffer of GNSS positions and
  orientation quaternions keyed by the capture clock (ns)
- nearest-sample lookups, SLERP-interpolated orientation, and resolve()
  which fuses both into a FusedPose under a time tolerance
- quat: small numpy quaternion helpers (normalize, slerp, yaw/pitch/roll)

Usage:
    from pose_store import PoseStore
    store = PoseStore(capacity=4096)
    store.add_position(PositionSample(...))
    res = store.resolve(t_ns, tolerance_ns=5_000_000_000)
    if res:
        pose = res.pose
"""
from .store import PoseStore, PoseResolution, STATUS_OK, STATUS_NO_DATA, STATUS_OUT_OF_TOLERANCE

__all__ = ["PoseStore", "PoseResolution", "STATUS_OK", "STATUS_NO_DATA", "STATUS_OUT_OF_TOLERANCE"]

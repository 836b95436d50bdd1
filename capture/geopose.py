"""
OGC GeoPose 1.0 documents (Basic-Quaternion and Basic-YPR) for tagged images.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from common.types import FusedPose
from common.utils import iso_from_epoch_ms
from pose_store.quat import to_ypr_deg


GEOPOSE_STANDARD = "OGC.GeoPose.1.0"
REFERENCE_FRAME = "EPSG:4979"


@dataclass(slots=True)
class GeoPoseDoc:
    id: str
    timestamp: str
    lat: float
    lon: float
    h: float
    quat: Optional[Tuple[float, float, float, float]] = None
    ypr_deg: Optional[Tuple[float, float, float]] = None
    pos_std_m: Optional[float] = None
    ori_std_deg: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "standard": GEOPOSE_STANDARD,
            "referenceFrame": REFERENCE_FRAME,
            "id": self.id,
            "timestamp": self.timestamp,
            "position": {"lat": self.lat, "lon": self.lon, "h": self.h},
        }
        if self.quat is not None:
            x, y, z, w = self.quat
            d["quaternion"] = {"x": x, "y": y, "z": z, "w": w}
        if self.ypr_deg is not None:
            yaw, pitch, roll = self.ypr_deg
            d["yprAngles"] = {"yaw": yaw, "pitch": pitch, "roll": roll}
        if self.pos_std_m is not None or self.ori_std_deg is not None:
            d["accuracy"] = {"posStdDevM": self.pos_std_m, "oriStdDevDeg": self.ori_std_deg}
        return d


def quaternion_doc(pose: FusedPose, doc_id: str, ori_std_deg: Optional[float] = None) -> GeoPoseDoc:
    """Basic-Quaternion GeoPose for a resolved pose; missing height is written as 0."""
    return GeoPoseDoc(
        id=doc_id,
        timestamp=iso_from_epoch_ms(pose.wall_ms),
        lat=pose.lat,
        lon=pose.lon,
        h=pose.height_m if pose.height_m is not None else 0.0,
        quat=pose.quat,
        pos_std_m=pose.accuracy_m,
        ori_std_deg=ori_std_deg,
    )


def ypr_doc(pose: FusedPose, doc_id: str, ori_std_deg: Optional[float] = None) -> GeoPoseDoc:
    """Basic-YPR sibling, handy for eyeballing orientation in QA."""
    return GeoPoseDoc(
        id=doc_id,
        timestamp=iso_from_epoch_ms(pose.wall_ms),
        lat=pose.lat,
        lon=pose.lon,
        h=pose.height_m if pose.height_m is not None else 0.0,
        ypr_deg=to_ypr_deg(pose.quat),
        pos_std_m=pose.accuracy_m,
        ori_std_deg=ori_std_deg,
    )


def write_geopose(path: Path, doc: GeoPoseDoc) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(doc.to_dict(), indent=2))
    return path

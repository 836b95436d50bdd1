from __future__ import annotations

import argparse
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from common.config import ConfigurationError, load_config
from common.logging_setup import get_logger, setup_logging
from common.types import DedupKey, OrientationSample, PositionSample, RoadPoint
from common.utils import wall_clock_ms
from pose_store.store import STATUS_NO_DATA, PoseStore
from road_graph.builder import GraphConfig, build_edges
from road_graph.labels import pretty_label


log = get_logger("service")


# -------------------------
# Request bodies
# -------------------------
class PositionIn(BaseModel):
    t_ns: int
    wall_ms: Optional[int] = None  # receipt time when omitted
    lat: float
    lon: float
    h: Optional[float] = None
    acc_m: Optional[float] = None


class OrientationIn(BaseModel):
    t_ns: int
    x: float
    y: float
    z: float
    w: float


class PointIn(BaseModel):
    lat: float
    lon: float
    label: str = ""
    confidence: float = 0.0
    quat: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0, 1.0], min_length=4, max_length=4)
    image_ref: Optional[str] = None


class GraphRequest(BaseModel):
    points: List[PointIn]
    keys: List[str] = Field(default_factory=list)
    connect_threshold_m: Optional[float] = None
    min_angle_deg: Optional[float] = None


def create_app(store: Optional[PoseStore] = None, config: Optional[Dict[str, Any]] = None) -> FastAPI:
    """
    HTTP surface over one PoseStore (ingest + resolve) and the graph builder.
    The store is owned by the caller; a fresh one is made from config if omitted.
    """
    P = config or load_config()
    if store is None:
        store = PoseStore(capacity=int(P["pose_store"]["capacity"]))
    default_tol = int(P["pose_store"]["tolerance_ns"])
    graph_defaults = dict(P["road_graph"])

    app = FastAPI(title="RouteX Survey Core API", version="1.0.0")
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten as needed
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health():
        return {"status": "ok", "store": store.stats()}

    @app.post("/positions")
    def add_positions(samples: List[PositionIn]):
        # all-or-nothing: a rejected batch leaves the store untouched
        now_ms = wall_clock_ms()
        try:
            parsed = [
                PositionSample(s.t_ns, now_ms if s.wall_ms is None else s.wall_ms, s.lat, s.lon, s.h, s.acc_m)
                for s in samples
            ]
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        for sample in parsed:
            store.add_position(sample)
        return {"accepted": len(parsed)}

    @app.post("/orientations")
    def add_orientations(samples: List[OrientationIn]):
        for s in samples:
            store.add_orientation(OrientationSample(s.t_ns, s.x, s.y, s.z, s.w))
        return {"accepted": len(samples)}

    @app.get("/pose")
    def pose(t_ns: int = Query(...), tolerance_ns: Optional[int] = Query(None)):
        tol = default_tol if tolerance_ns is None else tolerance_ns
        try:
            res = store.resolve(t_ns, tol)
        except ConfigurationError as e:
            raise HTTPException(status_code=422, detail=str(e))
        if not res:
            code = 404 if res.status == STATUS_NO_DATA else 409
            raise HTTPException(status_code=code, detail={"status": res.status, "reason": res.reason})
        return {"status": res.status, "pose": res.pose.to_dict()}

    @app.post("/graph")
    def graph(req: GraphRequest):
        cfg_d = dict(graph_defaults)
        if req.connect_threshold_m is not None:
            cfg_d["connect_threshold_m"] = req.connect_threshold_m
        if req.min_angle_deg is not None:
            cfg_d["min_angle_deg"] = req.min_angle_deg
        try:
            cfg = GraphConfig.from_dict(cfg_d)
            seen = [DedupKey.parse(k) for k in req.keys]
            points = [
                RoadPoint(i, p.lat, p.lon, p.label, p.confidence, tuple(p.quat), p.image_ref)
                for i, p in enumerate(req.points)
            ]
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))

        result = build_edges(points, cfg, seen_keys=seen)
        return {
            "edges": [{**e.to_dict(), "title": pretty_label(e.label)} for e in result.edges],
            "keys": sorted(k.to_str() for k in result.keys),
        }

    return app


# -------- local dev entrypoint --------
def main() -> None:
    ap = argparse.ArgumentParser(description="RouteX Survey Core API")
    ap.add_argument("--config", default="config/params.yaml")
    ap.add_argument("--host", default="0.0.0.0")
    ap.add_argument("--port", type=int, default=8000)
    args = ap.parse_args()

    P = load_config(args.config)
    setup_logging(P["logging"].get("level"), force=True)
    log.info("starting service", extra={"extra": {"host": args.host, "port": args.port}})
    uvicorn.run(create_app(config=P), host=args.host, port=args.port)


if __name__ == "__main__":
    main()

from __future__ import annotations

"""
Build road edges from a JSONL of capture label documents and print them as
JSON lines (one edge per line).

  python -m road_graph.cli --points captures.jsonl
  python -m road_graph.cli --points captures.jsonl --keys seen_keys.txt --arrows
"""

import argparse
import json
from pathlib import Path
from typing import List

from common.config import load_config
from common.logging_setup import get_logger, setup_logging
from common.types import DedupKey
from capture.records import load_records_jsonl, to_road_points
from road_graph.builder import GraphConfig, build_edges, heading_arrows


log = get_logger("road_graph.cli")


def _read_keys(path: Path) -> List[DedupKey]:
    if not path.exists():
        return []
    return [DedupKey.parse(line.strip()) for line in path.read_text().splitlines() if line.strip()]


def main() -> None:
    ap = argparse.ArgumentParser(description="Road Graph Builder")
    ap.add_argument("--config", default="config/params.yaml")
    ap.add_argument("--points", required=True, help="JSONL of capture label documents")
    ap.add_argument("--keys", default=None, help="Dedup key file carried across runs (read + rewritten)")
    ap.add_argument("--connect-m", type=float, default=None, help="Override connect_threshold_m")
    ap.add_argument("--min-angle", type=float, default=None, help="Override min_angle_deg")
    ap.add_argument("--arrows", action="store_true", help="Also emit heading arrows")
    args = ap.parse_args()

    P = load_config(args.config)
    setup_logging(P["logging"].get("level"), force=True)
    rg = dict(P["road_graph"])
    if args.connect_m is not None:
        rg["connect_threshold_m"] = args.connect_m
    if args.min_angle is not None:
        rg["min_angle_deg"] = args.min_angle
    cfg = GraphConfig.from_dict(rg)

    points = to_road_points(load_records_jsonl(args.points))
    keys_path = Path(args.keys) if args.keys else None
    seen = _read_keys(keys_path) if keys_path else []

    result = build_edges(points, cfg, seen_keys=seen)
    for e in result.edges:
        print(json.dumps({"type": "edge", **e.to_dict()}))
    if args.arrows:
        for arrow in heading_arrows(points, float(rg.get("arrow_length_m", 10.0))):
            print(json.dumps({"type": "arrow", **arrow}))

    if keys_path:
        keys_path.parent.mkdir(parents=True, exist_ok=True)
        keys_path.write_text("".join(k.to_str() + "\n" for k in sorted(result.keys)))

    log.info("edges emitted", extra={"extra": {"points": len(points), "edges": len(result.edges)}})


if __name__ == "__main__":
    main()

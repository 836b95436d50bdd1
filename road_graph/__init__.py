"""
Road Graph Builder

Turns a batch of labeled, geolocated capture points into road segments:
- labels.canonical_label: prefix-based surface category normalizer
- builder.build_edges: per-label nearest + branch edges with pair and
  (cell, bearing, label) deduplication, carried across calls via the
  returned key set
- builder.heading_arrows: capture-direction ticks for rendering

Entry point:
    python -m road_graph.cli --points captures.jsonl
"""
from .builder import GraphConfig, GraphResult, build_edges, dedup_key, heading_arrows
from .labels import CANONICAL_LABELS, FALLBACK_LABEL, canonical_label, pretty_label

__all__ = [
    "GraphConfig",
    "GraphResult",
    "build_edges",
    "dedup_key",
    "heading_arrows",
    "CANONICAL_LABELS",
    "FALLBACK_LABEL",
    "canonical_label",
    "pretty_label",
]

from __future__ import annotations

from typing import Dict, Optional, Tuple


FALLBACK_LABEL = "asphalt_regular"

# Order matters: specific prefixes before their generic surface family.
_PREFIXES: Tuple[Tuple[str, str], ...] = (
    ("asphalt_good", "asphalt_good"),
    ("asphalt_regular", "asphalt_regular"),
    ("asphalt_bad", "asphalt_bad"),
    ("paved_regular", "paved_regular"),
    ("paved_bad", "paved_bad"),
    ("unpaved_regular", "unpaved_regular"),
    ("unpaved_bad", "unpaved_bad"),
    ("asphalt", "asphalt_regular"),
    ("unpaved", "unpaved_regular"),
    ("paved", "paved_regular"),
)

CANONICAL_LABELS: Tuple[str, ...] = (
    "asphalt_good",
    "asphalt_regular",
    "asphalt_bad",
    "paved_regular",
    "paved_bad",
    "unpaved_regular",
    "unpaved_bad",
)

_PRETTY: Dict[str, str] = {
    "asphalt_good": "Asphalt - Good",
    "asphalt_regular": "Asphalt - Regular",
    "asphalt_bad": "Asphalt - Bad",
    "paved_regular": "Paved - Regular",
    "paved_bad": "Paved - Bad",
    "unpaved_regular": "Unpaved - Regular",
    "unpaved_bad": "Unpaved - Bad",
}


def canonical_label(raw: Optional[str]) -> str:
    """
    Map a raw classifier label onto one of CANONICAL_LABELS by prefix.
    Empty or unknown labels map to FALLBACK_LABEL.
    """
    s = (raw or "").strip().lower()
    for prefix, canonical in _PREFIXES:
        if s.startswith(prefix):
            return canonical
    return FALLBACK_LABEL


def pretty_label(label: Optional[str]) -> str:
    """Human-readable name for a canonical label (raw labels are canonicalized first)."""
    return _PRETTY.get(canonical_label(label), "Unclassified")

"""
hareline.ingestion.normalization.fields

Label-anchored field extraction from announcement bodies.

A field's value runs from just after its label to the next known label
(which must be followed by a colon), a newline, or end of text. Values
that contain a boundary word without a colon ("The Station Hotel") are
therefore kept whole.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Optional, Sequence
from urllib.parse import quote

_GPS = re.compile(r"(-?\d{1,3}\.\d+)\s*,\s*(-?\d{1,3}\.\d+)")
_UK_POSTCODE = re.compile(r"\b[A-Z]{1,2}\d[A-Z\d]?\s?\d[A-Z]{2}\b", re.IGNORECASE)
_RUN_NUMBER = re.compile(r"(?:#|\bRun\s*(?:No\.?|Number)?\s*#?\s*|\bTrail\s*#?\s*)(\d+(?:\.5)?)\b", re.IGNORECASE)


def _alternation(labels: Iterable[str]) -> str:
    return "|".join(labels)


@lru_cache(maxsize=256)
def _label_pattern(labels: tuple[str, ...], boundaries: tuple[str, ...]) -> re.Pattern:
    stop = rf"(?=\s*\b(?:{_alternation(boundaries)})\s*:|\n|$)" if boundaries else r"(?=\n|$)"
    return re.compile(rf"\b(?:{_alternation(labels)})\s*:\s*(.+?){stop}", re.IGNORECASE)


def extract_label(
    text: Optional[str],
    labels: Sequence[str],
    boundaries: Sequence[str] = (),
) -> Optional[str]:
    """
    Value following the first of ``labels`` (regex fragments, no colon).

    ``boundaries`` are the other labels that end the value when they
    appear with a colon.
    """
    if not text:
        return None
    pattern = _label_pattern(tuple(labels), tuple(b for b in boundaries if b not in labels))
    m = pattern.search(text)
    if not m:
        return None
    value = m.group(1).strip().rstrip(",;|").strip()
    return value or None


def google_maps_search_url(query: str) -> str:
    """Maps search link for a free-text location or a "lat,lng" pair."""
    gps = _GPS.search(query or "")
    if gps:
        return f"https://www.google.com/maps/search/?api=1&query={gps.group(1)},{gps.group(2)}"
    return f"https://www.google.com/maps/search/?api=1&query={quote(query or '', safe='')}"


def extract_uk_postcode(text: Optional[str]) -> Optional[str]:
    m = _UK_POSTCODE.search(text or "")
    return m.group(0).upper() if m else None


def extract_run_number(text: Optional[str]) -> Optional[float]:
    """Run number from '#1506', 'Run 12', 'Trail #2298'; half runs kept."""
    m = _RUN_NUMBER.search(text or "")
    if not m:
        return None
    value = float(m.group(1))
    return int(value) if value.is_integer() else value

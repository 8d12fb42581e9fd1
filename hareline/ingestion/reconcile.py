"""
Batch reconciliation before resolution.

Exact duplicates (same fingerprint) are dropped and counted as skipped.
Two events for the same tag and date that carry different run numbers
are both kept, and the conflict is recorded as a merge error.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from hareline.ingestion.adapters.base_adapter import MergeErrorDetail
from hareline.schemas.event import PreResolutionEvent

FINGERPRINT_FIELDS = (
    "date", "group_tag", "run_number", "title", "location",
    "location_url", "people", "description", "start_time", "source_url",
)


def event_fingerprint(event: PreResolutionEvent) -> str:
    parts = []
    for name in FINGERPRINT_FIELDS:
        value = getattr(event, name)
        parts.append("" if value is None else str(value))
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


@dataclass
class ReconcileOutcome:
    events: List[PreResolutionEvent] = field(default_factory=list)
    skipped: int = 0
    merge_errors: List[MergeErrorDetail] = field(default_factory=list)


def reconcile_batch(events: Sequence[PreResolutionEvent]) -> ReconcileOutcome:
    outcome = ReconcileOutcome()
    seen: set = set()
    run_numbers: Dict[Tuple[str, str], PreResolutionEvent] = {}
    reported: set = set()

    for event in events:
        fingerprint = event_fingerprint(event)
        if fingerprint in seen:
            outcome.skipped += 1
            continue
        seen.add(fingerprint)
        outcome.events.append(event)

        if event.run_number is None:
            continue
        key = (event.group_tag.lower(), event.date)
        first = run_numbers.setdefault(key, event)
        if first.run_number != event.run_number and (key, event.run_number) not in reported:
            reported.add((key, event.run_number))
            outcome.merge_errors.append(
                MergeErrorDetail(
                    reason=f"Conflicting run numbers {first.run_number} and {event.run_number}",
                    group_tag=event.group_tag,
                    date=event.date,
                    fingerprint=fingerprint,
                )
            )
    return outcome

"""
Per-field fill rates for a batch of extracted events.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Sequence

from hareline.schemas.event import PreResolutionEvent

FILL_FIELDS = ("title", "location", "people", "start_time", "run_number")


@dataclass(frozen=True)
class FieldFillRates:
    """Percentages 0-100 of events carrying each optional field."""
    title: int = 0
    location: int = 0
    people: int = 0
    start_time: int = 0
    run_number: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)

    def to_wire(self) -> Dict[str, int]:
        return {
            "title": self.title,
            "location": self.location,
            "people": self.people,
            "startTime": self.start_time,
            "runNumber": self.run_number,
        }

    def average(self, fields: Sequence[str] = FILL_FIELDS) -> float:
        if not fields:
            return 0.0
        values = self.as_dict()
        return sum(values[f] for f in fields) / len(fields)


def compute_fill_rates(events: Sequence[PreResolutionEvent]) -> FieldFillRates:
    if not events:
        return FieldFillRates()
    n = len(events)

    def pct(field: str) -> int:
        present = sum(1 for e in events if getattr(e, field) is not None)
        return round(present * 100 / n)

    return FieldFillRates(**{f: pct(f) for f in FILL_FIELDS})

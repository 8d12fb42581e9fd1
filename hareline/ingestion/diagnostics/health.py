"""
hareline.ingestion.diagnostics.health

Source health classification and the alert checks run after each scrape.

Health uses the latest successful run: its average fill rate over the
fields this source has ever populated decides HEALTHY (>90),
DEGRADED (70-90) or FAILING (<70). A successful run with zero events is
FAILING. No successful run within the expected cadence is STALE.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence

from hareline.ingestion.diagnostics.alerts import AlertBook
from hareline.ingestion.diagnostics.fill_rates import FILL_FIELDS, FieldFillRates
from hareline.schemas.alert import Alert, AlertSeverity, AlertType
from hareline.schemas.scrape_log import HealthStatus, ScrapeLog

HEALTHY_ABOVE = 90
FAILING_BELOW = 70

_WIRE_TO_FIELD = {"title": "title", "location": "location", "people": "people",
                  "startTime": "start_time", "runNumber": "run_number"}


def _rates(log: ScrapeLog) -> FieldFillRates:
    values = {_WIRE_TO_FIELD.get(k, k): v for k, v in log.fill_rates.items()}
    return FieldFillRates(**{f: int(values.get(f, 0)) for f in FILL_FIELDS})


def populated_fields(history: Iterable[ScrapeLog]) -> List[str]:
    """Fields with a non-zero fill rate in any successful run."""
    seen = set()
    for log in history:
        if log.succeeded:
            rates = _rates(log).as_dict()
            seen.update(f for f in FILL_FIELDS if rates[f] > 0)
    return [f for f in FILL_FIELDS if f in seen]


def health_score(log: ScrapeLog, fields: Sequence[str]) -> float:
    if not fields:
        return 100.0
    return _rates(log).average(fields)


def classify_health(
    history: Sequence[ScrapeLog],
    now: datetime,
    expected_cadence_hours: float,
) -> HealthStatus:
    successes = sorted((log for log in history if log.succeeded), key=lambda log: log.completed_at)
    if not successes:
        return HealthStatus.UNKNOWN if not history else HealthStatus.STALE
    latest = successes[-1]
    if now - latest.completed_at > timedelta(hours=expected_cadence_hours):
        return HealthStatus.STALE
    if latest.events_found == 0:
        return HealthStatus.FAILING
    score = health_score(latest, populated_fields(successes))
    if score > HEALTHY_ABOVE:
        return HealthStatus.HEALTHY
    if score >= FAILING_BELOW:
        return HealthStatus.DEGRADED
    return HealthStatus.FAILING


# ---------------------------------------------------------------------
# Alert checks
# ---------------------------------------------------------------------


def check_structure_change(
    source_id: str,
    previous_hash: Optional[str],
    current_hash: Optional[str],
    *,
    previous_event_count: Optional[int] = None,
    current_event_count: Optional[int] = None,
    book: Optional[AlertBook] = None,
    now: Optional[datetime] = None,
) -> Optional[Alert]:
    """
    STRUCTURE_CHANGE candidate when both hashes exist and differ.

    A stable hash resolves any active STRUCTURE_CHANGE alert in ``book``.
    """
    if not previous_hash or not current_hash:
        return None
    if previous_hash == current_hash:
        if book is not None:
            book.resolve_type(
                source_id, AlertType.STRUCTURE_CHANGE,
                "Auto-resolved: structure stabilized on subsequent scrape", now=now,
            )
        return None

    dropped = (
        previous_event_count is not None
        and current_event_count is not None
        and previous_event_count > 0
        and current_event_count < previous_event_count * 0.8
    )
    return Alert(
        source_id=source_id,
        type=AlertType.STRUCTURE_CHANGE,
        severity=AlertSeverity.WARNING if dropped else AlertSeverity.INFO,
        title="Page structure changed" + (" and event count dropped" if dropped else ""),
        details=f"Structural fingerprint changed: {previous_hash[:12]} -> {current_hash[:12]}",
        context={
            "previousHash": previous_hash,
            "currentHash": current_hash,
            "previousEventCount": previous_event_count,
            "currentEventCount": current_event_count,
        },
    )


def check_unmatched_tags(
    source_id: str, unmatched: Sequence[str], recent_runs: Iterable[ScrapeLog] = ()
) -> Optional[Alert]:
    """UNMATCHED_TAGS candidate for tags not already reported by a recent run."""
    previous = {t for log in recent_runs for t in log.unmatched_tags}
    novel = [t for t in dict.fromkeys(unmatched) if t not in previous]
    if not novel:
        return None
    plural = "s" if len(novel) != 1 else ""
    return Alert(
        source_id=source_id,
        type=AlertType.UNMATCHED_TAGS,
        severity=AlertSeverity.INFO,
        title=f"{len(novel)} new unmatched group tag{plural}",
        details=f"New tags: {', '.join(novel)}. These need an alias or a new group.",
        context={"tags": novel},
    )


def check_group_mismatch(source_id: str, blocked_tags: Sequence[str]) -> Optional[Alert]:
    """GROUP_MISMATCH candidate for tags that resolved to a group not linked to the source."""
    tags = list(dict.fromkeys(blocked_tags))
    if not tags:
        return None
    plural = "s" if len(tags) != 1 else ""
    return Alert(
        source_id=source_id,
        type=AlertType.GROUP_MISMATCH,
        severity=AlertSeverity.WARNING,
        title=f"{len(tags)} group tag{plural} blocked: not linked to source",
        details=f"Tags [{', '.join(tags)}] resolved to known groups that are not linked to this source.",
        context={"tags": tags},
    )

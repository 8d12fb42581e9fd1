"""
hareline.ingestion.diagnostics.alerts

In-memory alert collaborator.

``raise_alert`` de-duplicates by (source, type): an open or acknowledged
alert of the same type is updated in place, an expired snooze is
re-opened with the new details, an active snooze swallows the candidate.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

from hareline.schemas.alert import Alert, AlertStatus, AlertType

logger = logging.getLogger(__name__)


class AlertBook:
    def __init__(self, alerts: Optional[List[Alert]] = None):
        self._alerts: Dict[str, Alert] = {a.id: a for a in alerts or []}
        self._lock = threading.RLock()

    def _snapshot(self) -> List[Alert]:
        with self._lock:
            return list(self._alerts.values())

    def all(self) -> List[Alert]:
        return self._snapshot()

    def get(self, alert_id: str) -> Alert:
        with self._lock:
            return self._alerts[alert_id]

    def for_source(
        self,
        source_id: str,
        alert_type: Optional[AlertType] = None,
        *,
        active_only: bool = False,
    ) -> List[Alert]:
        return [
            a for a in self._snapshot()
            if a.source_id == source_id
            and (alert_type is None or a.type == alert_type)
            and (not active_only or a.is_active)
        ]

    def active(self, alert_type: Optional[AlertType] = None) -> List[Alert]:
        return [a for a in self._snapshot() if a.is_active and (alert_type is None or a.type == alert_type)]

    def raise_alert(self, candidate: Alert, *, now: Optional[datetime] = None) -> Optional[Alert]:
        """Record ``candidate``; returns the stored alert, or None when snoozed."""
        now = now or datetime.now(timezone.utc)
        with self._lock:
            existing = self.for_source(candidate.source_id, candidate.type)
            for alert in existing:
                if alert.is_active:
                    self._refresh(alert, candidate)
                    return alert
            for alert in existing:
                if alert.status != AlertStatus.SNOOZED:
                    continue
                if alert.snooze_active(now):
                    logger.debug(f"Alert {alert.type.value} for {alert.source_id} is snoozed")
                    return None
                alert.reopen()
                self._refresh(alert, candidate)
                return alert
            self._alerts[candidate.id] = candidate
            logger.info(f"New {candidate.type.value} alert for {candidate.source_id}: {candidate.title}")
            return candidate

    @staticmethod
    def _refresh(alert: Alert, candidate: Alert) -> None:
        alert.title = candidate.title
        alert.details = candidate.details
        alert.severity = candidate.severity
        alert.context = candidate.context

    def resolve_type(
        self, source_id: str, alert_type: AlertType, note: str, *, now: Optional[datetime] = None
    ) -> List[Alert]:
        resolved = []
        with self._lock:
            for alert in self.for_source(source_id, alert_type, active_only=True):
                alert.resolve(note, now=now)
                resolved.append(alert)
        return resolved

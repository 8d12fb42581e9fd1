"""
hareline.schemas.alert

Operator-facing alerts raised by the orchestrator.

State machine::

    OPEN -> ACKNOWLEDGED -> RESOLVED | SNOOZED
    OPEN -> RESOLVED                  (automation)
    SNOOZED -> OPEN                   (snooze expiry)
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from hareline.ingestion.errors import InvalidAlertTransition


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AlertType(str, Enum):
    GROUP_MISMATCH = "GROUP_MISMATCH"
    UNMATCHED_TAGS = "UNMATCHED_TAGS"
    STRUCTURE_CHANGE = "STRUCTURE_CHANGE"


class AlertSeverity(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class AlertStatus(str, Enum):
    OPEN = "OPEN"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    RESOLVED = "RESOLVED"
    SNOOZED = "SNOOZED"


ACTIVE_STATUSES = (AlertStatus.OPEN, AlertStatus.ACKNOWLEDGED)


class Alert(BaseModel):
    """A durable anomaly record for one source."""

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    source_id: str = Field(..., alias="sourceId")
    type: AlertType
    severity: AlertSeverity = AlertSeverity.WARNING
    status: AlertStatus = AlertStatus.OPEN
    title: str
    details: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utc_now, alias="createdAt")
    resolved_at: datetime | None = Field(default=None, alias="resolvedAt")
    resolution_note: str | None = Field(default=None, alias="resolutionNote")
    snoozed_until: datetime | None = Field(default=None, alias="snoozedUntil")

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def acknowledge(self) -> "Alert":
        if self.status != AlertStatus.OPEN:
            raise InvalidAlertTransition(f"Cannot acknowledge alert in status {self.status.value}")
        self.status = AlertStatus.ACKNOWLEDGED
        return self

    def snooze(self, hours: float, *, now: datetime | None = None) -> "Alert":
        if self.status != AlertStatus.ACKNOWLEDGED:
            raise InvalidAlertTransition(f"Cannot snooze alert in status {self.status.value}")
        if hours <= 0:
            raise InvalidAlertTransition("Snooze duration must be positive")
        self.snoozed_until = (now or _utc_now()) + timedelta(hours=hours)
        self.status = AlertStatus.SNOOZED
        return self

    def resolve(self, note: str | None = None, *, now: datetime | None = None) -> "Alert":
        if not self.is_active:
            raise InvalidAlertTransition(f"Cannot resolve alert in status {self.status.value}")
        self.status = AlertStatus.RESOLVED
        self.resolved_at = now or _utc_now()
        self.resolution_note = note
        return self

    def reopen(self) -> "Alert":
        """Re-open a snoozed alert whose snooze has expired."""
        if self.status != AlertStatus.SNOOZED:
            raise InvalidAlertTransition(f"Cannot reopen alert in status {self.status.value}")
        self.status = AlertStatus.OPEN
        self.snoozed_until = None
        return self

    def snooze_active(self, now: datetime | None = None) -> bool:
        return (
            self.status == AlertStatus.SNOOZED
            and self.snoozed_until is not None
            and self.snoozed_until > (now or _utc_now())
        )

"""
hareline.schemas.scrape_log

Persistence-facing record of one scrape run. The pipeline produces these;
an external collaborator writes them.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ScrapeStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class HealthStatus(str, Enum):
    HEALTHY = "HEALTHY"
    DEGRADED = "DEGRADED"
    FAILING = "FAILING"
    STALE = "STALE"
    UNKNOWN = "UNKNOWN"


class ScrapeLog(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_id: str = Field(..., alias="sourceId")
    status: ScrapeStatus
    started_at: datetime = Field(..., alias="startedAt")
    completed_at: datetime = Field(..., alias="completedAt")
    duration_ms: int = Field(default=0, alias="durationMs")

    events_found: int = Field(default=0, alias="eventsFound")
    events_created: int = Field(default=0, alias="eventsCreated")
    events_updated: int = Field(default=0, alias="eventsUpdated")
    events_skipped: int = Field(default=0, alias="eventsSkipped")

    fill_rates: dict[str, int] = Field(default_factory=dict, alias="fillRates")
    structure_hash: str | None = Field(default=None, alias="structureHash")
    unmatched_tags: list[str] = Field(default_factory=list, alias="unmatchedTags")
    blocked_tags: list[str] = Field(default_factory=list, alias="blockedTags")

    errors: list[str] = Field(default_factory=list)
    error_details: dict[str, Any] | None = Field(default=None, alias="errorDetails")
    diagnostic_context: dict[str, Any] = Field(default_factory=dict, alias="diagnosticContext")
    health: HealthStatus = HealthStatus.UNKNOWN

    @property
    def succeeded(self) -> bool:
        return self.status == ScrapeStatus.SUCCESS

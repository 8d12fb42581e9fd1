"""
hareline.schemas.source

Pydantic models for sources, their type-tagged configuration, and the
group directory they resolve against.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ----------------------------
# Enums
# ----------------------------

class SourceType(str, Enum):
    HTML_SCRAPER = "HTML_SCRAPER"
    GOOGLE_CALENDAR = "GOOGLE_CALENDAR"
    GOOGLE_SHEETS = "GOOGLE_SHEETS"
    ICAL_FEED = "ICAL_FEED"
    RSS_FEED = "RSS_FEED"
    HASHREGO = "HASHREGO"
    MEETUP = "MEETUP"
    STATIC_SCHEDULE = "STATIC_SCHEDULE"


# ----------------------------
# Source configuration
# ----------------------------

class GroupTagRules(BaseModel):
    """Sheets tag rules: a default tag plus optional special-run overrides."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    default: str | None = None
    special_run_map: dict[str, str] = Field(default_factory=dict, alias="specialRunMap")
    numeric_special_tag: str | None = Field(default=None, alias="numericSpecialTag")


class StartTimeRules(BaseModel):
    """Sheets start-time rules: weekday name to HH:MM, plus a fallback."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    by_day_of_week: dict[str, str] = Field(default_factory=dict, alias="byDayOfWeek")
    default: str | None = None


class SourceConfig(BaseModel):
    """
    Type-tagged configuration for one source.

    Only the subset relevant to the source's type is populated. Shape is
    checked here; required-field and pattern-safety checks live in
    ``hareline.ingestion.config_validation``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    # generic pattern extraction
    group_patterns: list[tuple[str, str]] = Field(default_factory=list, alias="groupPatterns")
    skip_patterns: list[str] = Field(default_factory=list, alias="skipPatterns")
    default_group_tag: str | None = Field(default=None, alias="defaultGroupTag")

    # google sheets
    sheet_id: str | None = Field(default=None, alias="sheetId")
    column_map: dict[str, int] = Field(default_factory=dict, alias="columnMap")
    group_tag_rules: GroupTagRules | None = Field(default=None, alias="groupTagRules")
    start_time_rules: StartTimeRules | None = Field(default=None, alias="startTimeRules")
    tabs: list[str] = Field(default_factory=list)

    # hash rego
    group_slugs: list[str] = Field(default_factory=list, alias="groupSlugs")

    # single-group sources (static schedule, meetup)
    group_tag: str | None = Field(default=None, alias="groupTag")
    recurrence_rule: str | None = Field(default=None, alias="recurrenceRule")
    start_time: str | None = Field(default=None, alias="startTime")
    anchor_date: str | None = Field(default=None, alias="anchorDate")
    group_url_name: str | None = Field(default=None, alias="groupUrlName")

    # defaults applied to generated events
    default_title: str | None = Field(default=None, alias="defaultTitle")
    default_location: str | None = Field(default=None, alias="defaultLocation")
    default_description: str | None = Field(default=None, alias="defaultDescription")

    # google calendar
    calendar_id: str | None = Field(default=None, alias="calendarId")

    @field_validator("group_patterns", mode="before")
    @classmethod
    def coerce_pattern_pairs(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, list):
            out = []
            for item in v:
                if not isinstance(item, (list, tuple)) or len(item) != 2:
                    raise ValueError("groupPatterns entries must be [pattern, tag] pairs")
                out.append((item[0], item[1]))
            return out
        return v


# ----------------------------
# Sources and groups
# ----------------------------

class SourceDescriptor(BaseModel):
    """One configured source as loaded from the catalogue."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    name: str
    type: SourceType
    url: str = ""
    config: dict[str, Any] = Field(default_factory=dict)
    linked_group_ids: list[str] = Field(default_factory=list, alias="linkedGroupIds")
    enabled: bool = True
    expected_cadence_hours: float = Field(default=24 * 7, gt=0, alias="expectedCadenceHours")

    def parsed_config(self) -> SourceConfig:
        """Parse ``config`` into a ``SourceConfig`` (raises on shape errors)."""
        return SourceConfig.model_validate(self.config or {})


class GroupRecord(BaseModel):
    """A canonical group (kennel) in the directory."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    short_name: str = Field(..., min_length=1, alias="shortName")
    full_name: str = Field(default="", alias="fullName")
    aliases: list[str] = Field(default_factory=list)


class AliasEntry(BaseModel):
    """Case-insensitive alias pointing at a canonical group id."""

    model_config = ConfigDict(populate_by_name=True)

    alias: str = Field(..., min_length=1)
    group_id: str = Field(..., alias="groupId")
    created_at: datetime = Field(default_factory=_utc_now, alias="createdAt")

    @property
    def key(self) -> str:
        return self.alias.strip().lower()

# hareline/schemas/event.py
"""
Pre-resolution event schema.

The record every adapter emits: one trail announcement, with its date
fully resolved and its group tag still free text. Resolution to a
canonical group happens later, in the orchestrator.
"""

import re
import datetime
import math
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

RunNumber = Union[int, float]


class PreResolutionEvent(BaseModel):
    """
    Canonical output of extraction.

    Field names are snake_case in Python and camelCase on the wire
    (``groupTag``, ``runNumber``, ``peopleText`` ...).
    """

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    date: str
    group_tag: str = Field(alias="groupTag")
    run_number: Optional[RunNumber] = Field(default=None, alias="runNumber")
    title: Optional[str] = None
    description: Optional[str] = None
    people: Optional[str] = Field(default=None, alias="peopleText")
    location: Optional[str] = None
    location_url: Optional[str] = Field(default=None, alias="locationUrl")
    start_time: Optional[str] = Field(default=None, alias="startTime")
    source_url: Optional[str] = Field(default=None, alias="sourceUrl")

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        if not _ISO_DATE.match(v):
            raise ValueError(f"date must be YYYY-MM-DD, got {v!r}")
        datetime.date.fromisoformat(v)
        return v

    @field_validator("group_tag")
    @classmethod
    def validate_group_tag(cls, v: str) -> str:
        if not v:
            raise ValueError("group_tag must not be blank")
        return v

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        if not _HHMM.match(v):
            raise ValueError(f"start_time must be HH:MM (24-hour), got {v!r}")
        return v

    @field_validator("run_number", mode="before")
    @classmethod
    def validate_run_number(cls, v: Any) -> Optional[RunNumber]:
        if v is None or v == "":
            return None
        if isinstance(v, bool):
            raise ValueError("run_number must be numeric")
        number = float(v)
        if not math.isfinite(number):
            raise ValueError("run_number must be finite")
        if number * 2 != int(number * 2):
            raise ValueError(f"run_number must be whole or half, got {v!r}")
        if number.is_integer():
            return int(number)
        return number

    @field_validator(
        "title", "description", "people", "location", "location_url", "source_url"
    )
    @classmethod
    def empty_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    def to_wire(self) -> Dict[str, Any]:
        """Serialize to the camelCase shape consumed downstream."""
        return self.model_dump(by_alias=True, exclude_none=True)

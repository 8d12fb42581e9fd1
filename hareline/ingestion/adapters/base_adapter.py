"""
Source adapter contract.

Every adapter exposes ``fetch(source, options) -> ScrapeResult`` and never
raises past that boundary: network failures become fetch errors, bad
records become parse errors, and the batch carries on.

Adapters are plain classes satisfying ``SourceAdapter``; they are wired
up through ``AdapterRegistry`` rather than a shared base class.
"""

import logging
import threading
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from hareline.schemas.event import PreResolutionEvent
from hareline.schemas.source import SourceDescriptor

RAW_TEXT_LIMIT = 2000


@dataclass
class FetchErrorDetail:
    """One failed network attempt."""
    url: str
    message: str
    status: Optional[int] = None


@dataclass
class ParseError:
    """
    One record that could not be extracted.

    ``raw_text`` keeps enough of the source record (truncated) for a
    manual or automated recovery pass.
    """
    row: int
    error: str
    section: Optional[str] = None
    field: Optional[str] = None
    raw_text: Optional[str] = None
    partial_data: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        if self.raw_text is not None and len(self.raw_text) > RAW_TEXT_LIMIT:
            self.raw_text = self.raw_text[:RAW_TEXT_LIMIT]


@dataclass
class MergeErrorDetail:
    """Identity or fingerprint conflict found while reconciling a batch."""
    reason: str
    group_tag: Optional[str] = None
    date: Optional[str] = None
    fingerprint: Optional[str] = None


@dataclass
class ErrorDetails:
    fetch: List[FetchErrorDetail] = field(default_factory=list)
    parse: List[ParseError] = field(default_factory=list)
    merge: List[MergeErrorDetail] = field(default_factory=list)

    def has_any(self) -> bool:
        return bool(self.fetch or self.parse or self.merge)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.fetch:
            out["fetch"] = [_camel(asdict(e)) for e in self.fetch]
        if self.parse:
            out["parse"] = [_camel(asdict(e)) for e in self.parse]
        if self.merge:
            out["merge"] = [_camel(asdict(e)) for e in self.merge]
        return out


@dataclass
class ScrapeResult:
    """
    Output of one adapter fetch.

    ``errors`` is the flat message list for simple displays;
    ``error_details`` is the fetch/parse/merge breakdown. The ``add_*``
    helpers keep the two in step.
    """
    events: List[PreResolutionEvent] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    structure_hash: Optional[str] = None
    error_details: ErrorDetails = field(default_factory=ErrorDetails)
    diagnostic_context: Dict[str, Any] = field(default_factory=dict)

    def add_fetch_error(self, url: str, message: str, status: Optional[int] = None) -> None:
        self.errors.append(message)
        self.error_details.fetch.append(FetchErrorDetail(url=url, message=message, status=status))

    def add_parse_error(
        self,
        row: int,
        error: str,
        *,
        section: Optional[str] = None,
        field: Optional[str] = None,
        raw_text: Optional[str] = None,
        partial_data: Optional[Dict[str, Any]] = None,
        message: Optional[str] = None,
    ) -> None:
        self.errors.append(message or f"Parse error ({section or 'row'} {row}): {error}")
        self.error_details.parse.append(
            ParseError(
                row=row,
                error=error,
                section=section,
                field=field,
                raw_text=raw_text,
                partial_data=partial_data,
            )
        )

    def add_merge_error(self, reason: str, **kwargs: Any) -> None:
        self.errors.append(f"Merge conflict: {reason}")
        self.error_details.merge.append(MergeErrorDetail(reason=reason, **kwargs))

    def extend(self, other: "ScrapeResult") -> None:
        """Fold a sub-fetch result into this one (used by fault-isolated sub-fetches)."""
        self.events.extend(other.events)
        self.errors.extend(other.errors)
        self.error_details.fetch.extend(other.error_details.fetch)
        self.error_details.parse.extend(other.error_details.parse)
        self.error_details.merge.extend(other.error_details.merge)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors) or self.error_details.has_any()

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "events": [e.to_wire() for e in self.events],
            "errors": list(self.errors),
            "diagnosticContext": dict(self.diagnostic_context),
        }
        if self.structure_hash:
            out["structureHash"] = self.structure_hash
        if self.error_details.has_any():
            out["errorDetails"] = self.error_details.to_dict()
        return out


@dataclass
class FetchOptions:
    """Per-run fetch parameters."""
    days: int = 90
    now: Optional[datetime] = None
    cancel: Optional[threading.Event] = None

    @property
    def reference_time(self) -> datetime:
        return self.now or datetime.now(timezone.utc)

    @property
    def reference_date(self) -> date:
        return self.reference_time.date()

    @property
    def cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()


@runtime_checkable
class SourceAdapter(Protocol):
    """Anything that can fetch a source into a ScrapeResult."""

    name: str

    def fetch(
        self, source: SourceDescriptor, options: Optional[FetchOptions] = None
    ) -> ScrapeResult:
        ...


def adapter_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"hareline.adapter.{name}")


def within_window(iso_date: str, options: FetchOptions) -> bool:
    """True when ``iso_date`` falls within ``options.days`` of the reference date."""
    delta = (date.fromisoformat(iso_date) - options.reference_date).days
    return -options.days <= delta <= options.days


def _camel(d: Dict[str, Any]) -> Dict[str, Any]:
    out = {}
    for k, v in d.items():
        if v is None:
            continue
        head, *rest = k.split("_")
        out[head + "".join(p.title() for p in rest)] = v
    return out


__all__ = [
    "ErrorDetails",
    "FetchErrorDetail",
    "FetchOptions",
    "MergeErrorDetail",
    "ParseError",
    "RAW_TEXT_LIMIT",
    "ScrapeResult",
    "SourceAdapter",
    "adapter_logger",
    "within_window",
]

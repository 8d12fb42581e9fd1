"""
iCal feed adapter.

Parses a public ``.ics`` feed with ``icalendar`` and applies the source's
group and skip patterns to each VEVENT summary.
"""

from __future__ import annotations

import datetime
import re
from typing import Any, Optional

from icalendar import Calendar

from hareline.ingestion.adapters.base_adapter import (
    RAW_TEXT_LIMIT,
    FetchOptions,
    ScrapeResult,
    adapter_logger,
    within_window,
)
from hareline.ingestion.adapters.feeds import (
    extract_feed_run_number,
    extract_people,
    load_config,
    resolve_group_tag,
)
from hareline.ingestion.normalization.fields import google_maps_search_url
from hareline.ingestion.normalization.group_patterns import GroupPatternMatcher
from hareline.ingestion.normalization.text import decode_lines, strip_or_none, truncate
from hareline.ingestion.runtime.http import HttpClient
from hareline.schemas.event import PreResolutionEvent
from hareline.schemas.source import SourceDescriptor

# "SFH3 #2285: A Very Heated Rivalry" -> "A Very Heated Rivalry"
_PREFIXED_TITLE = re.compile(r"^[A-Za-z0-9 .'-]+(?:\s*#[\d.A-Za-z]+)?:\s*(.+)$")


def summary_title(summary: str) -> str:
    m = _PREFIXED_TITLE.match(summary)
    return (m.group(1).strip() if m else "") or summary


def local_date_time(value: Any) -> tuple[Optional[str], Optional[str]]:
    """Date and HH:MM in the event's own timezone; date-only events have no time."""
    if isinstance(value, datetime.datetime):
        return value.date().isoformat(), value.strftime("%H:%M")
    if isinstance(value, datetime.date):
        return value.isoformat(), None
    return None, None


class ICalFeedAdapter:
    name = "ical_feed"

    def __init__(self, http: HttpClient):
        self.http = http
        self.logger = adapter_logger(self.name)

    def fetch(self, source: SourceDescriptor, options: Optional[FetchOptions] = None) -> ScrapeResult:
        options = options or FetchOptions()
        result = ScrapeResult()
        config = load_config(source)
        matcher = GroupPatternMatcher.from_config(config)
        result.diagnostic_context["fetchMethod"] = "ical"

        res = self.http.get(source.url, headers={"Accept": "text/calendar"}, cancel=options.cancel)
        if not res.ok:
            result.add_fetch_error(source.url, f"iCal fetch failed: {res.short_error()}", res.status_code)
            return result

        try:
            calendar = Calendar.from_ical(res.text)
        except ValueError as e:
            result.add_parse_error(0, f"iCal parse error: {e}", section="calendar", raw_text=res.text[:RAW_TEXT_LIMIT])
            return result

        total = out_of_range = skipped = cancelled = 0
        for row, vevent in enumerate(calendar.walk("VEVENT")):
            total += 1
            summary = strip_or_none(vevent.get("SUMMARY"))
            try:
                if str(vevent.get("STATUS", "")).upper() == "CANCELLED":
                    cancelled += 1
                    continue
                if not summary or vevent.get("DTSTART") is None:
                    continue
                if matcher.should_skip(summary):
                    skipped += 1
                    continue

                date, start_time = local_date_time(vevent.get("DTSTART").dt)
                if date is None:
                    raise ValueError("Unsupported DTSTART value")
                if not within_window(date, options):
                    out_of_range += 1
                    continue

                description = decode_lines(str(vevent.get("DESCRIPTION", ""))) or None
                location = strip_or_none(vevent.get("LOCATION"))
                geo = vevent.get("GEO")
                if geo is not None:
                    location_url = google_maps_search_url(f"{geo.latitude},{geo.longitude}")
                else:
                    location_url = google_maps_search_url(location) if location else None

                result.events.append(
                    PreResolutionEvent(
                        date=date,
                        group_tag=resolve_group_tag(matcher, summary),
                        run_number=extract_feed_run_number(summary),
                        title=summary_title(summary),
                        description=truncate(description, RAW_TEXT_LIMIT),
                        people=extract_people(description),
                        location=location,
                        location_url=location_url,
                        start_time=start_time,
                        source_url=strip_or_none(vevent.get("URL")) or source.url,
                    )
                )
            except Exception as e:
                self.logger.warning(f"Failed to parse VEVENT {row}: {e}")
                result.add_parse_error(
                    row,
                    str(e),
                    section="vevents",
                    raw_text=vevent.to_ical().decode("utf-8", "replace"),
                    partial_data={"title": summary},
                )

        result.diagnostic_context.update(
            {
                "totalVEvents": total,
                "skippedDateRange": out_of_range,
                "skippedPattern": skipped,
                "cancelledEvents": cancelled,
                "eventsParsed": len(result.events),
            }
        )
        return result

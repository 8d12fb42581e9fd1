"""
Google Calendar API v3 adapter.

Lists a public calendar's events over ``±days`` and applies the source's
group patterns to each summary.
"""

from __future__ import annotations

import re
from datetime import timedelta
from typing import Any, Optional
from urllib.parse import quote

from hareline.configs.settings import get_settings
from hareline.ingestion.adapters.base_adapter import (
    RAW_TEXT_LIMIT,
    FetchOptions,
    ScrapeResult,
    adapter_logger,
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

API_URL = "https://www.googleapis.com/calendar/v3/calendars/{calendar_id}/events"
MAX_PAGES = 20

_DATETIME = re.compile(r"^(\d{4}-\d{2}-\d{2})T(\d{2}):(\d{2})")
_DATE = re.compile(r"(\d{4}-\d{2}-\d{2})")


def extract_date_time(start: dict[str, Any]) -> tuple[Optional[str], Optional[str]]:
    """Local date and HH:MM from an event's ``start`` (no timezone shifting)."""
    if start.get("dateTime"):
        m = _DATETIME.match(start["dateTime"])
        if m:
            return m.group(1), f"{m.group(2)}:{m.group(3)}"
        m = _DATE.search(start["dateTime"])
        return (m.group(1) if m else None), None
    return start.get("date") or None, None


def diagnostic_text(item: dict[str, Any]) -> str:
    parts = [f"Summary: {item.get('summary') or 'unknown'}"]
    if item.get("description"):
        parts.append(f"Description: {item['description']}")
    if item.get("location"):
        parts.append(f"Location: {item['location']}")
    start = item.get("start") or {}
    if start:
        parts.append(f"Start: {start.get('dateTime') or start.get('date') or ''}")
    return "\n".join(parts)[:RAW_TEXT_LIMIT]


class GoogleCalendarAdapter:
    name = "google_calendar"

    def __init__(self, http: HttpClient, api_key: Optional[str] = None):
        self.http = http
        self.api_key = api_key
        self.logger = adapter_logger(self.name)

    def _api_key(self) -> Optional[str]:
        return self.api_key or get_settings().google_api_key()

    def fetch(self, source: SourceDescriptor, options: Optional[FetchOptions] = None) -> ScrapeResult:
        options = options or FetchOptions()
        result = ScrapeResult()
        config = load_config(source)
        matcher = GroupPatternMatcher.from_config(config)
        calendar_id = config.calendar_id or source.url
        result.diagnostic_context.update({"calendarId": calendar_id, "fetchMethod": "calendar-api"})

        api_key = self._api_key()
        if not api_key:
            result.add_fetch_error(calendar_id, "GOOGLE_API_KEY is not configured")
            return result

        now = options.reference_time
        url = API_URL.format(calendar_id=quote(calendar_id, safe=""))
        params = {
            "key": api_key,
            "timeMin": (now - timedelta(days=options.days)).isoformat(),
            "timeMax": (now + timedelta(days=options.days)).isoformat(),
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": "250",
        }

        page_token: Optional[str] = None
        pages = items_returned = cancelled = skipped = row = 0
        while pages < MAX_PAGES:
            if page_token:
                params["pageToken"] = page_token
            res = self.http.get(url, params=params, cancel=options.cancel)
            if not res.ok:
                result.add_fetch_error(url, f"Google Calendar API: {res.short_error()}", res.status_code)
                break
            try:
                data = res.json()
            except ValueError:
                result.add_fetch_error(url, "Google Calendar API returned invalid JSON", res.status_code)
                break
            if data.get("error"):
                err = data["error"]
                result.add_fetch_error(url, f"Google Calendar API error {err.get('code')}: {err.get('message')}", err.get("code"))
                break

            pages += 1
            items = data.get("items") or []
            items_returned += len(items)
            for item in items:
                if item.get("status") == "cancelled":
                    cancelled += 1
                elif self._skip(item, matcher):
                    skipped += 1
                else:
                    self._extract(item, row, matcher, result)
                row += 1

            page_token = data.get("nextPageToken")
            if not page_token:
                break

        result.diagnostic_context.update(
            {
                "pagesProcessed": pages,
                "itemsReturned": items_returned,
                "cancelledItems": cancelled,
                "skippedItems": skipped,
            }
        )
        return result

    def _skip(self, item: dict[str, Any], matcher: GroupPatternMatcher) -> bool:
        return matcher.should_skip(item.get("summary") or "") is not None

    def _extract(self, item: dict[str, Any], row: int, matcher: GroupPatternMatcher, result: ScrapeResult) -> None:
        summary = strip_or_none(item.get("summary"))
        start = item.get("start") or {}
        if not summary or not (start.get("dateTime") or start.get("date")):
            return
        try:
            date, start_time = extract_date_time(start)
            if not date:
                raise ValueError("Unparseable start date")
            raw_description = decode_lines(item.get("description")) or None
            location = strip_or_none(item.get("location"))
            result.events.append(
                PreResolutionEvent(
                    date=date,
                    group_tag=resolve_group_tag(matcher, summary),
                    run_number=extract_feed_run_number(summary, raw_description),
                    title=summary,
                    description=truncate(raw_description, RAW_TEXT_LIMIT),
                    people=extract_people(raw_description),
                    location=location,
                    location_url=google_maps_search_url(location) if location else None,
                    start_time=start_time,
                    source_url=item.get("htmlLink"),
                )
            )
        except Exception as e:
            self.logger.warning(f"Failed to parse calendar item {row}: {e}")
            result.add_parse_error(
                row,
                str(e),
                section="calendar_events",
                raw_text=diagnostic_text(item),
                partial_data={"title": summary, "date": start.get("dateTime") or start.get("date")},
                message=f"Event parse error ({summary or 'unknown'}): {e}",
            )

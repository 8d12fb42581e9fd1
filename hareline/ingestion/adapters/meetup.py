"""
Meetup adapter.

Reads a public group's events from the Meetup events JSON endpoint. Every
event is tagged with the source's single ``groupTag``.
"""

from __future__ import annotations

from typing import Any, Optional
from urllib.parse import quote

from hareline.configs.settings import get_settings
from hareline.ingestion.adapters.base_adapter import (
    RAW_TEXT_LIMIT,
    FetchOptions,
    ScrapeResult,
    adapter_logger,
    within_window,
)
from hareline.ingestion.adapters.feeds import extract_people, load_config
from hareline.ingestion.normalization.fields import google_maps_search_url
from hareline.ingestion.normalization.text import decode_lines, strip_or_none, truncate
from hareline.ingestion.runtime.http import HttpClient
from hareline.schemas.event import PreResolutionEvent
from hareline.schemas.source import SourceDescriptor

EVENT_FIELDS = "id,name,status,time,local_date,local_time,description,venue,link"


def venue_location(venue: Optional[dict[str, Any]]) -> Optional[str]:
    if not venue:
        return None
    parts = [venue.get(k) for k in ("name", "address_1", "city", "state")]
    joined = ", ".join(p.strip() for p in parts if p and p.strip())
    return joined or None


def meetup_event(item: dict[str, Any], group_tag: str) -> PreResolutionEvent:
    description = decode_lines(item.get("description") or "") or None
    location = venue_location(item.get("venue"))
    return PreResolutionEvent(
        date=item["local_date"],
        group_tag=group_tag,
        title=strip_or_none(item.get("name")),
        description=truncate(description, RAW_TEXT_LIMIT),
        people=extract_people(description),
        location=location,
        location_url=google_maps_search_url(location) if location else None,
        start_time=strip_or_none(item.get("local_time")),
        source_url=strip_or_none(item.get("link")),
    )


class MeetupAdapter:
    name = "meetup"

    def __init__(self, http: HttpClient, api_base: Optional[str] = None):
        self.http = http
        self.api_base = (api_base or get_settings().MEETUP_API_BASE).rstrip("/")
        self.logger = adapter_logger(self.name)

    def fetch(self, source: SourceDescriptor, options: Optional[FetchOptions] = None) -> ScrapeResult:
        options = options or FetchOptions()
        result = ScrapeResult()
        config = load_config(source)
        if not config.group_url_name or not config.group_tag:
            result.add_fetch_error(source.url, "Meetup source needs groupUrlName and groupTag")
            return result

        url = f"{self.api_base}/{quote(config.group_url_name, safe='')}/events"
        params = {"status": "upcoming,past", "page": "100", "only": EVENT_FIELDS}
        res = self.http.get(url, params=params, headers={"Accept": "application/json"}, cancel=options.cancel)
        if not res.ok:
            result.add_fetch_error(
                url, f"Meetup API error for group {config.group_url_name!r}: {res.short_error()}", res.status_code
            )
            return result
        try:
            items = res.json()
        except ValueError:
            result.add_fetch_error(url, "Meetup API returned invalid JSON", res.status_code)
            return result
        if not isinstance(items, list):
            result.add_fetch_error(url, "Meetup API returned an unexpected payload", res.status_code)
            return result

        out_of_range = 0
        for row, item in enumerate(items):
            try:
                if not within_window(item["local_date"], options):
                    out_of_range += 1
                    continue
                result.events.append(meetup_event(item, config.group_tag))
            except Exception as e:
                self.logger.warning(f"Failed to parse Meetup event {row}: {e}")
                result.add_parse_error(
                    row,
                    str(e),
                    section="events",
                    raw_text=str(item),
                    partial_data={"title": item.get("name") if isinstance(item, dict) else None},
                    message=f"Failed to parse event {item.get('id') if isinstance(item, dict) else row}: {e}",
                )

        result.diagnostic_context.update(
            {
                "groupUrlName": config.group_url_name,
                "eventsFound": len(items),
                "skippedDateRange": out_of_range,
                "eventsParsed": len(result.events),
            }
        )
        return result

"""
Hash Rego adapter.

Fetches the hashrego.com events index once, keeps the rows hosted by the
configured group slugs, then fetches each matching event page on its
own. A failed or unparseable event page falls back to the index row, so
one broken event never costs the rest of the batch.
"""

from __future__ import annotations

import datetime
import re
from dataclasses import dataclass, field
from typing import Optional

from bs4 import BeautifulSoup

from hareline.ingestion.adapters.base_adapter import (
    RAW_TEXT_LIMIT,
    FetchOptions,
    ScrapeResult,
    adapter_logger,
    within_window,
)
from hareline.ingestion.adapters.feeds import load_config
from hareline.ingestion.adapters.html_scraper.common import BROWSER_HEADERS
from hareline.ingestion.diagnostics.structure_hash import generate_structure_hash
from hareline.ingestion.normalization.dates import expand_year, to_hhmm
from hareline.ingestion.normalization.text import strip_or_none, truncate
from hareline.ingestion.runtime.http import HttpClient
from hareline.schemas.event import PreResolutionEvent
from hareline.schemas.source import SourceDescriptor

BASE_URL = "https://hashrego.com"
INDEX_URL = f"{BASE_URL}/events"

_EVENT_HREF = re.compile(r"^/events/([^/?#]+)")
_GROUP_HREF = re.compile(r"/kennels/([^/?#]+)")
_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})(?:/(\d{2,4}))?")
_TIME = re.compile(r"(\d{1,2}):(\d{2})\s*(AM|PM)", re.IGNORECASE)
_RANGE = re.compile(
    r"(\d{1,2})/(\d{1,2})\s+\d{1,2}:\d{2}\s*(?:AM|PM)\s+to\s+(\d{1,2})/(\d{1,2})\s+\d{1,2}:\d{2}\s*(?:AM|PM)",
    re.IGNORECASE,
)
_MAPS = re.compile(r"maps\.google\.com/maps\?q=([^)\s\"]+)")
_OG_TITLE_DATE = re.compile(r"^\d{2}/\d{2}\s+")
_EXTRACTED_LINES = re.compile(
    r"(?:\*\*(?:Hare\(s\)|Hares|Cost|Where|When):?\*\*:?|^(?:Hare\(s\)|Hares|Cost|Where|When):?\s)[^\n]*",
    re.IGNORECASE | re.MULTILINE,
)


@dataclass
class IndexEntry:
    """One row of the events index table."""
    slug: str
    group_slug: str
    title: str
    start_date: str
    start_time: str
    event_type: str = ""
    cost: str = ""

    @property
    def url(self) -> str:
        return f"{INDEX_URL}/{self.slug}"


@dataclass
class EventDetail:
    title: str
    group_slug: str
    dates: list[str] = field(default_factory=list)
    start_times: list[str] = field(default_factory=list)
    location: Optional[str] = None
    location_url: Optional[str] = None
    hares: Optional[str] = None
    description: Optional[str] = None


# ---------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------


def parse_events_index(html: str) -> list[IndexEntry]:
    """Rows of ``#eventListTable``: name | type | host | start | cost | regos."""
    soup = BeautifulSoup(html, "lxml")
    entries = []
    for row in soup.select("#eventListTable tbody tr"):
        cells = row.find_all("td")
        if len(cells) < 6:
            continue
        link = cells[0].find("a")
        slug = _EVENT_HREF.match(link.get("href", "")) if link else None
        host = cells[2].find("a")
        group = _GROUP_HREF.search(host.get("href", "")) if host else None
        if not slug or not group:
            continue
        date_lines = [s.strip() for s in cells[3].get_text("\n").split("\n") if s.strip()]
        entries.append(
            IndexEntry(
                slug=slug.group(1),
                group_slug=group.group(1),
                title=link.get_text(strip=True),
                start_date=date_lines[0] if date_lines else "",
                start_time=date_lines[1] if len(date_lines) > 1 else "",
                event_type=cells[1].get_text(strip=True),
                cost=cells[4].get_text(strip=True),
            )
        )
    return entries


def parse_hashrego_date(text: str, reference_year: Optional[int] = None) -> Optional[str]:
    """'02/19/26' or '02/19' (with ``reference_year``) -> ISO date."""
    m = _DATE.match((text or "").strip())
    if not m:
        return None
    year = expand_year(m.group(3)) if m.group(3) else reference_year
    if year is None:
        return None
    try:
        return datetime.date(year, int(m.group(1)), int(m.group(2))).isoformat()
    except ValueError:
        return None


def parse_hashrego_time(text: str) -> Optional[str]:
    """'06:45 PM' -> '18:45'; 11:59 PM is the site's "no time set" value."""
    m = _TIME.search(text or "")
    if not m:
        return None
    hhmm = to_hhmm(int(m.group(1)), int(m.group(2)), m.group(3))
    return None if hhmm == "23:59" else hhmm


def extract_markdown_field(text: str, name: str) -> Optional[str]:
    escaped = re.escape(name)
    m = re.search(rf"\*\*{escaped}:?\*\*:?\s*(.+?)(?:\n|$)", text, re.IGNORECASE)
    if not m:
        m = re.search(rf"(?:^|\n)\s*{escaped}:?\s+(.+?)(?:\n|$)", text, re.IGNORECASE)
    return m.group(1).strip() if m else None


def _date_range(description: str, entry: IndexEntry) -> list[str]:
    m = _RANGE.search(description)
    year_match = re.search(r"\d{1,2}/\d{1,2}/(\d{2,4})", entry.start_date)
    if not m or not year_match:
        return []
    year = expand_year(year_match.group(1))
    try:
        start = datetime.date(year, int(m.group(1)), int(m.group(2)))
        end = datetime.date(year, int(m.group(3)), int(m.group(4)))
    except (TypeError, ValueError):
        return []
    days = (end - start).days
    if days < 0 or days > 14:
        return []
    return [(start + datetime.timedelta(days=i)).isoformat() for i in range(days + 1)]


def clean_description(text: str) -> Optional[str]:
    cleaned = _EXTRACTED_LINES.sub("", text)
    cleaned = re.sub(r"//maps\.google\.com\S+", "", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned).strip()
    if len(cleaned) < 10:
        return None
    return truncate(cleaned, RAW_TEXT_LIMIT)


def parse_event_detail(html: str, entry: IndexEntry) -> EventDetail:
    """Event page: og:title / og:description plus the host kennel link."""
    soup = BeautifulSoup(html, "lxml")
    og_title = soup.find("meta", attrs={"property": "og:title"})
    title = _OG_TITLE_DATE.sub("", og_title.get("content", "") if og_title else "").strip()
    if not title and soup.title:
        title = soup.title.get_text(strip=True)

    host = soup.select_one('a[href^="/kennels/"]')
    group = _GROUP_HREF.search(host.get("href", "")) if host else None

    og_desc = soup.find("meta", attrs={"property": "og:description"})
    raw = og_desc.get("content", "") if og_desc else ""

    detail = EventDetail(
        title=title or entry.title,
        group_slug=group.group(1) if group else entry.group_slug,
        hares=extract_markdown_field(raw, "Hare(s)") or extract_markdown_field(raw, "Hares"),
        location=extract_markdown_field(raw, "Where"),
        description=clean_description(raw),
    )
    maps = _MAPS.search(raw)
    if maps:
        detail.location_url = f"https://maps.google.com/maps?q={maps.group(1)}"

    detail.dates = _date_range(raw, entry)
    if detail.dates:
        detail.start_times = [t for t in (parse_hashrego_time(m.group(0)) for m in _TIME.finditer(raw)) if t]
    else:
        date = parse_hashrego_date(entry.start_date)
        detail.dates = [date] if date else []
        time = parse_hashrego_time(entry.start_time)
        detail.start_times = [time] if time else []
    return detail


def detail_to_events(detail: EventDetail, entry: IndexEntry) -> list[PreResolutionEvent]:
    """One event per day; multi-day events get a "(Day N)" title suffix."""
    multi_day = len(detail.dates) > 1
    events = []
    for i, date in enumerate(detail.dates):
        start_time = detail.start_times[i] if i < len(detail.start_times) else None
        events.append(
            PreResolutionEvent(
                date=date,
                group_tag=detail.group_slug,
                title=f"{detail.title} (Day {i + 1})" if multi_day else detail.title,
                description=detail.description,
                people=detail.hares,
                location=detail.location,
                location_url=detail.location_url,
                start_time=start_time or (detail.start_times[0] if detail.start_times else None),
                source_url=entry.url,
            )
        )
    return events


def index_to_events(entry: IndexEntry) -> list[PreResolutionEvent]:
    """Thin event built from the index row alone."""
    date = parse_hashrego_date(entry.start_date)
    if not date:
        return []
    return [
        PreResolutionEvent(
            date=date,
            group_tag=entry.group_slug,
            title=strip_or_none(entry.title),
            start_time=parse_hashrego_time(entry.start_time),
            source_url=entry.url,
        )
    ]


# ---------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------


class HashRegoAdapter:
    name = "hashrego"

    def __init__(self, http: HttpClient):
        self.http = http
        self.logger = adapter_logger(self.name)

    def fetch(self, source: SourceDescriptor, options: Optional[FetchOptions] = None) -> ScrapeResult:
        options = options or FetchOptions()
        result = ScrapeResult()
        config = load_config(source)
        slugs = {s.strip().upper() for s in config.group_slugs if s and s.strip()}
        if not slugs:
            result.add_fetch_error(source.url or INDEX_URL, "No groupSlugs configured, nothing to scrape")
            return result

        index_url = source.url or INDEX_URL
        res = self.http.get(index_url, headers=BROWSER_HEADERS, cancel=options.cancel)
        if not res.ok:
            result.add_fetch_error(index_url, f"Index fetch failed: {res.short_error()}", res.status_code)
            return result

        result.structure_hash = generate_structure_hash(res.text)
        entries = parse_events_index(res.text)
        matching = [e for e in entries if e.group_slug.upper() in slugs]

        per_slug: dict[str, int] = {}
        for entry in matching:
            if options.cancelled:
                break
            sub = self._fetch_entry(entry, options)
            kept = [e for e in sub.events if within_window(e.date, options)]
            sub.events = kept
            result.extend(sub)
            per_slug[entry.group_slug.upper()] = per_slug.get(entry.group_slug.upper(), 0) + len(kept)

        result.diagnostic_context.update(
            {
                "totalIndexEntries": len(entries),
                "matchingEntries": len(matching),
                "groupSlugsConfigured": sorted(slugs),
                "eventsPerSlug": per_slug,
                "eventsProduced": len(result.events),
            }
        )
        return result

    def _fetch_entry(self, entry: IndexEntry, options: FetchOptions) -> ScrapeResult:
        """Detail page for one index row, isolated from every other row."""
        sub = ScrapeResult()
        res = self.http.get(entry.url, headers=BROWSER_HEADERS, cancel=options.cancel)
        if not res.ok:
            sub.add_fetch_error(
                entry.url, f"Detail fetch failed for {entry.slug}: {res.short_error()}", res.status_code
            )
            sub.events.extend(index_to_events(entry))
            return sub
        try:
            sub.events.extend(detail_to_events(parse_event_detail(res.text, entry), entry))
        except Exception as e:
            self.logger.warning(f"Failed to parse {entry.slug}: {e}")
            sub.add_parse_error(
                0,
                str(e),
                section=entry.slug,
                raw_text=f"Slug: {entry.slug}\nTitle: {entry.title}\nDate: {entry.start_date}",
                message=f"Error processing {entry.slug}: {e}",
            )
            sub.events.extend(index_to_events(entry))
        return sub

"""
RSS/Atom feed adapter.

Entries are parsed with ``feedparser``. The event date comes from the
entry's title or summary text when it names one, falling back to the
published date of the entry itself.
"""

from __future__ import annotations

import datetime
from typing import Any, Optional

import feedparser

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
from hareline.ingestion.normalization.dates import parse_date_text, parse_time_text
from hareline.ingestion.normalization.group_patterns import GroupPatternMatcher
from hareline.ingestion.normalization.text import decode, decode_lines, strip_or_none, truncate
from hareline.ingestion.runtime.http import HttpClient
from hareline.schemas.event import PreResolutionEvent
from hareline.schemas.source import SourceDescriptor

FEED_HEADERS = {"Accept": "application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.8"}


def entry_text(entry: Any) -> str:
    """Plain-text body of a feed entry (content preferred over summary)."""
    contents = entry.get("content") or []
    raw = contents[0].get("value") if contents else entry.get("summary")
    return decode_lines(raw or "")


def published_date(entry: Any) -> Optional[str]:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        return None
    return datetime.date(parsed.tm_year, parsed.tm_mon, parsed.tm_mday).isoformat()


class RssFeedAdapter:
    name = "rss_feed"

    def __init__(self, http: HttpClient):
        self.http = http
        self.logger = adapter_logger(self.name)

    def fetch(self, source: SourceDescriptor, options: Optional[FetchOptions] = None) -> ScrapeResult:
        options = options or FetchOptions()
        result = ScrapeResult()
        config = load_config(source)
        matcher = GroupPatternMatcher.from_config(config)
        result.diagnostic_context["fetchMethod"] = "rss"

        res = self.http.get(source.url, headers=FEED_HEADERS, cancel=options.cancel)
        if not res.ok:
            result.add_fetch_error(source.url, f"Failed to fetch RSS feed: {res.short_error()}", res.status_code)
            return result

        feed = feedparser.parse(res.text)
        if feed.bozo and not feed.entries:
            result.add_parse_error(
                0,
                f"Feed parse error: {feed.get('bozo_exception')}",
                section="feed",
                raw_text=res.text[:RAW_TEXT_LIMIT],
            )
            return result

        out_of_range = skipped = 0
        reference = options.reference_date
        for row, entry in enumerate(feed.entries):
            title = strip_or_none(decode(entry.get("title")))
            try:
                if not title:
                    continue
                if matcher.should_skip(title):
                    skipped += 1
                    continue
                body = entry_text(entry)
                date = (
                    parse_date_text(title, reference)
                    or parse_date_text(body, reference)
                    or published_date(entry)
                )
                if not date:
                    raise ValueError("No date in entry")
                if not within_window(date, options):
                    out_of_range += 1
                    continue

                result.events.append(
                    PreResolutionEvent(
                        date=date,
                        group_tag=resolve_group_tag(matcher, title, body),
                        run_number=extract_feed_run_number(title, body),
                        title=title,
                        description=truncate(strip_or_none(body), RAW_TEXT_LIMIT),
                        people=extract_people(body),
                        start_time=parse_time_text(body),
                        source_url=strip_or_none(entry.get("link")) or source.url,
                    )
                )
            except Exception as e:
                self.logger.warning(f"Failed to parse RSS item {row}: {e}")
                result.add_parse_error(
                    row,
                    str(e),
                    section="items",
                    raw_text=f"Title: {title or 'unknown'}\n{entry.get('summary') or ''}",
                    partial_data={"title": title},
                    message=f"Failed to parse RSS item {row}: {e}",
                )

        result.diagnostic_context.update(
            {
                "feedTitle": feed.feed.get("title"),
                "itemCount": len(feed.entries),
                "skippedDateRange": out_of_range,
                "skippedPattern": skipped,
                "eventsParsed": len(result.events),
            }
        )
        return result

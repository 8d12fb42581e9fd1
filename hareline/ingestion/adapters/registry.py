"""
Adapter registry.

Adapters are chosen by walking an ordered list of ``(predicate, factory)``
pairs; the first predicate that accepts the source wins. Site-specific
HTML adapters are registered ahead of the per-type defaults so a URL rule
always beats a generic handler.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, List, Optional, Tuple

from hareline.ingestion.adapters.base_adapter import SourceAdapter
from hareline.ingestion.adapters.google_calendar import GoogleCalendarAdapter
from hareline.ingestion.adapters.google_sheets import GoogleSheetsAdapter
from hareline.ingestion.adapters.hashrego import HashRegoAdapter
from hareline.ingestion.adapters.html_scraper.dch4 import DCH4Adapter
from hareline.ingestion.adapters.html_scraper.ewh3 import EWH3Adapter
from hareline.ingestion.adapters.html_scraper.hashnyc import HashNYCAdapter
from hareline.ingestion.adapters.html_scraper.london_hash import LondonHashAdapter
from hareline.ingestion.adapters.ical_feed import ICalFeedAdapter
from hareline.ingestion.adapters.meetup import MeetupAdapter
from hareline.ingestion.adapters.rss_feed import RssFeedAdapter
from hareline.ingestion.adapters.static_schedule import StaticScheduleAdapter
from hareline.ingestion.errors import AdapterNotFoundError
from hareline.ingestion.runtime.http import HttpClient
from hareline.schemas.source import SourceDescriptor, SourceType

logger = logging.getLogger(__name__)

Predicate = Callable[[SourceDescriptor], bool]
Factory = Callable[[HttpClient], SourceAdapter]


def for_type(source_type: SourceType) -> Predicate:
    return lambda source: source.type == source_type


def for_url(source_type: SourceType, pattern: str) -> Predicate:
    """Sources of ``source_type`` whose URL matches ``pattern`` (case-insensitive)."""
    compiled = re.compile(pattern, re.IGNORECASE)
    return lambda source: source.type == source_type and bool(compiled.search(source.url or ""))


class AdapterRegistry:
    """Ordered predicate -> factory table."""

    def __init__(self, http: HttpClient):
        self.http = http
        self._entries: List[Tuple[str, Predicate, Factory]] = []

    def register(self, name: str, predicate: Predicate, factory: Factory) -> "AdapterRegistry":
        self._entries.append((name, predicate, factory))
        return self

    def names(self) -> List[str]:
        return [name for name, _, _ in self._entries]

    def find(self, source: SourceDescriptor) -> Optional[str]:
        for name, predicate, _ in self._entries:
            if predicate(source):
                return name
        return None

    def get_adapter(self, source: SourceDescriptor) -> SourceAdapter:
        """
        Build the adapter for ``source``.

        Raises:
            AdapterNotFoundError: no registered predicate accepts the source.
        """
        for name, predicate, factory in self._entries:
            if predicate(source):
                logger.debug(f"Source {source.id} -> adapter {name}")
                return factory(self.http)
        raise AdapterNotFoundError(source.type.value, source.url)


def default_registry(http: HttpClient) -> AdapterRegistry:
    registry = AdapterRegistry(http)
    html = SourceType.HTML_SCRAPER
    # site-specific HTML adapters first
    registry.register("ewh3", for_url(html, r"ewh3\.com"), EWH3Adapter)
    registry.register("dch4", for_url(html, r"dch4\.org"), DCH4Adapter)
    registry.register("london_hash", for_url(html, r"londonhash\.org"), LondonHashAdapter)
    # per-type defaults
    registry.register("hashnyc", for_type(html), HashNYCAdapter)
    registry.register("google_calendar", for_type(SourceType.GOOGLE_CALENDAR), GoogleCalendarAdapter)
    registry.register("google_sheets", for_type(SourceType.GOOGLE_SHEETS), GoogleSheetsAdapter)
    registry.register("ical_feed", for_type(SourceType.ICAL_FEED), ICalFeedAdapter)
    registry.register("rss_feed", for_type(SourceType.RSS_FEED), RssFeedAdapter)
    registry.register("hashrego", for_type(SourceType.HASHREGO), HashRegoAdapter)
    registry.register("meetup", for_type(SourceType.MEETUP), MeetupAdapter)
    registry.register("static_schedule", for_type(SourceType.STATIC_SCHEDULE), lambda _http: StaticScheduleAdapter())
    return registry

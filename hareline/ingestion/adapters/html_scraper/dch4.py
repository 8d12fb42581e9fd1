"""
DCH4 trail posts (dch4.org, WordPress).

Titles::

    DCH4 Trail# 2299 - 2/14 @ 2pm
    DCH4 Trail# 2298 - 2/7/26 @ 2pm
    DCH4 Trail# 2224 - 2/17 @ 2pm - SWILL TEAM SIX!!
    DCH4 Trail 1926: 10/15 10am MD Renaissance Festival
"""

from __future__ import annotations

import datetime
import re
from dataclasses import dataclass
from typing import Optional, Union

from hareline.ingestion.adapters.base_adapter import (
    FetchOptions,
    ScrapeResult,
    adapter_logger,
)
from hareline.ingestion.adapters.html_scraper.common import fetch_page, iter_wordpress_articles
from hareline.ingestion.diagnostics.structure_hash import generate_structure_hash
from hareline.ingestion.normalization.dates import build_date, expand_year, to_hhmm
from hareline.ingestion.normalization.fields import extract_label, google_maps_search_url
from hareline.ingestion.normalization.text import decode, decode_lines
from hareline.ingestion.runtime.http import HttpClient
from hareline.schemas.event import PreResolutionEvent
from hareline.schemas.source import SourceDescriptor

GROUP_TAG = "DCH4"
DEFAULT_URL = "https://dch4.org/"

_TITLE = re.compile(
    r"DCH4\s+Trail\s*#?\s*(\d+)\s*[-–:]\s*(\d{1,2})/(\d{1,2})(?:/(\d{2,4}))?\s*@?\s*"
    r"(\d{1,2})(?::(\d{2}))?\s*(am|pm)(?:\s*[-–]?\s*(.+))?",
    re.IGNORECASE,
)
_COST = re.compile(r"(?:Hash Cash|Cost)\s*:\s*\$?(\d+)", re.IGNORECASE)
_RUNNERS = re.compile(r"Runners?\s*(?:~|about|less than|:)?\s*([\d.]+)\s*mi(?:les?)?", re.IGNORECASE)
_WALKERS = re.compile(r"Walkers?\s*(?:~|about|:)?\s*([\d.]+)\s*mi(?:les?)?", re.IGNORECASE)

_HARE_BOUNDARIES = ("Start", "Location", "Cost", "Hash Cash", r"On\s*-?\s*After", "Trail", "Dog", "Stroller")
_LOCATION_BOUNDARIES = ("Hares?", "Cost", "Hash Cash", "Trail", "Dog", "Stroller", r"On\s*-?\s*After")


@dataclass
class Dch4Title:
    run_number: int
    date: str
    start_time: Optional[str]
    theme: Optional[str] = None


@dataclass
class Dch4Body:
    hares: Optional[str] = None
    location: Optional[str] = None
    hash_cash: Optional[str] = None
    on_after: Optional[str] = None
    runner_distance: Optional[str] = None
    walker_distance: Optional[str] = None


def parse_dch4_title(
    title: str, reference: Union[int, datetime.date, None] = None
) -> Optional[Dch4Title]:
    """
    Run number, date, and start time from a post title.

    A title without a year takes ``reference`` (a year or a date).
    """
    m = _TITLE.search(decode(title))
    if not m:
        return None
    if m.group(4):
        year = expand_year(m.group(4))
    elif isinstance(reference, datetime.date):
        year = reference.year
    elif reference is not None:
        year = int(reference)
    else:
        year = datetime.date.today().year
    iso = build_date(year, int(m.group(2)), int(m.group(3)))
    if iso is None:
        return None
    theme = (m.group(8) or "").strip() or None
    return Dch4Title(
        run_number=int(m.group(1)),
        date=iso,
        start_time=to_hhmm(int(m.group(5)), int(m.group(6) or 0), m.group(7)),
        theme=theme,
    )


def parse_dch4_body(text: str) -> Dch4Body:
    cost = _COST.search(text or "")
    runners = _RUNNERS.search(text or "")
    walkers = _WALKERS.search(text or "")
    return Dch4Body(
        hares=extract_label(text, ["Hares?"], _HARE_BOUNDARIES),
        location=extract_label(text, ["Start Location", "Start", "Location", "Where"], _LOCATION_BOUNDARIES),
        hash_cash=f"${cost.group(1)}" if cost else None,
        on_after=extract_label(text, [r"On\s*-?\s*After"]),
        runner_distance=f"{runners.group(1)} mi" if runners else None,
        walker_distance=f"{walkers.group(1)} mi" if walkers else None,
    )


class DCH4Adapter:
    """HTML listing of DCH4 trail posts."""

    name = "dch4"

    def __init__(self, http: HttpClient):
        self.http = http
        self.logger = adapter_logger(self.name)

    def fetch(self, source: SourceDescriptor, options: Optional[FetchOptions] = None) -> ScrapeResult:
        options = options or FetchOptions()
        base_url = source.url or DEFAULT_URL
        result = ScrapeResult()
        result.diagnostic_context["fetchMethod"] = "html"

        html = fetch_page(self.http, base_url, result, options)
        if html is None:
            return result

        result.structure_hash = generate_structure_hash(html)
        reference = options.reference_date
        articles = list(iter_wordpress_articles(html, base_url))

        for post in articles:
            if not post.title:
                continue
            try:
                parsed = parse_dch4_title(post.title, reference)
                if parsed is None:
                    continue
                body = parse_dch4_body(decode_lines(post.body_html))
                desc_parts = [
                    part
                    for part in (
                        parsed.theme,
                        body.runner_distance and f"Runners: {body.runner_distance}",
                        body.walker_distance and f"Walkers: {body.walker_distance}",
                        body.hash_cash and f"Hash Cash: {body.hash_cash}",
                        body.on_after and f"On After: {body.on_after}",
                    )
                    if part
                ]
                result.events.append(
                    PreResolutionEvent(
                        date=parsed.date,
                        group_tag=GROUP_TAG,
                        run_number=parsed.run_number,
                        title=parsed.theme or f"DCH4 Trail #{parsed.run_number}",
                        people=body.hares,
                        location=body.location,
                        location_url=google_maps_search_url(body.location) if body.location else None,
                        start_time=parsed.start_time,
                        source_url=post.url,
                        description=" | ".join(desc_parts) or None,
                    )
                )
            except Exception as e:
                self.logger.warning(f"Failed to parse post {post.index}: {e}")
                result.add_parse_error(
                    post.index,
                    str(e),
                    section="posts",
                    raw_text=f"{post.title}\n{decode_lines(post.body_html)}",
                    partial_data={"title": post.title},
                )

        result.diagnostic_context.update({"articlesFound": len(articles), "eventsParsed": len(result.events)})
        return result

"""
EWH3 trail news (ewh3.com, WordPress).

Post titles carry most of the data::

    EWH3 #1506: Huaynaputina's Revenge, February 19, 2026, NoMa/Gallaudet U (Red Line)
    EWH3 #1499.5: Outgoing Misman Trail, January 8th, 2025, Navy Yard/Ballpark (Green)
    EWH3 Orphan Christmas Trail, Dec 25 2025, Greenbelt (Green Line)

Bodies add hares, the on-after venue, and the end metro stop. The REST
API is tried first; the HTML listing is the fallback.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from hareline.ingestion.adapters.base_adapter import (
    FetchOptions,
    ScrapeResult,
    adapter_logger,
)
from hareline.ingestion.adapters.html_scraper.common import (
    Post,
    fetch_page,
    iter_wordpress_articles,
)
from hareline.ingestion.adapters.html_scraper.wordpress_api import fetch_wordpress_posts
from hareline.ingestion.diagnostics.structure_hash import generate_structure_hash
from hareline.ingestion.normalization.dates import parse_date_text
from hareline.ingestion.normalization.fields import extract_label
from hareline.ingestion.normalization.text import decode, decode_lines
from hareline.ingestion.runtime.fallback import (
    FetchStrategy,
    StrategyFailure,
    StrategySuccess,
    run_fallback_chain,
)
from hareline.ingestion.runtime.http import HttpClient
from hareline.schemas.event import PreResolutionEvent
from hareline.schemas.source import SourceDescriptor

GROUP_TAG = "EWH3"
DEFAULT_URL = "https://www.ewh3.com/"
START_TIME = "18:45"

_DATE = r"(\w+\s+\d{1,2}(?:st|nd|rd|th)?,?\s+\d{4})"
_TAIL = r"(.+?)(?:\s*[–—-]\s*EWH3)?$"
_NUMBERED = re.compile(rf"^EWH3\s*#([\d.]+)\s*:\s*(.+?),\s*{_DATE},\s*{_TAIL}", re.IGNORECASE)
_UNNUMBERED = re.compile(rf"^EWH3\s+(.+?),\s*{_DATE},\s*{_TAIL}", re.IGNORECASE)
_METRO = re.compile(r"^(.+?)\s*\(([^)]+)\)$")

BODY_LABELS = (
    "Hares?",
    "When",
    "Where",
    "Bring",
    "Nearest",
    "Trail Details",
    "Miscellaneous",
    "End Metro",
    r"On[- ]?After\*?",
    "Last Trains",
    "Give Back",
)


@dataclass
class Ewh3Title:
    name: str
    date: Optional[str]
    location: str
    lines: Optional[str] = None
    run_number: Optional[float] = None


@dataclass
class Ewh3Body:
    hares: Optional[str] = None
    on_after: Optional[str] = None
    end_metro: Optional[str] = None


def _run_number(raw: str) -> Optional[float]:
    try:
        value = float(raw)
    except ValueError:
        return None
    return int(value) if value.is_integer() else value


def _split_metro(raw: str) -> tuple[str, Optional[str]]:
    m = _METRO.match(raw.strip())
    if m:
        return m.group(1).strip(), m.group(2).strip()
    return raw.strip(), None


def parse_ewh3_title(title: str) -> Optional[Ewh3Title]:
    """Structured fields from a post title, or None when it doesn't fit."""
    title = decode(title)
    m = _NUMBERED.match(title)
    if m:
        location, lines = _split_metro(m.group(4))
        return Ewh3Title(
            run_number=_run_number(m.group(1)),
            name=m.group(2).strip(),
            date=parse_date_text(m.group(3)),
            location=location,
            lines=lines,
        )
    m = _UNNUMBERED.match(title)
    if m:
        location, lines = _split_metro(m.group(3))
        return Ewh3Title(
            name=m.group(1).strip(),
            date=parse_date_text(m.group(2)),
            location=location,
            lines=lines,
        )
    return None


def parse_ewh3_body(text: str) -> Ewh3Body:
    return Ewh3Body(
        hares=extract_label(text, ["Hares?"], BODY_LABELS),
        on_after=extract_label(text, [r"On[- ]?After\*?"], BODY_LABELS),
        end_metro=extract_label(text, ["End Metro"], BODY_LABELS),
    )


class EWH3Adapter:
    """WordPress trail posts for EWH3: REST API first, HTML listing second."""

    name = "ewh3"

    def __init__(self, http: HttpClient):
        self.http = http
        self.logger = adapter_logger(self.name)

    def fetch(self, source: SourceDescriptor, options: Optional[FetchOptions] = None) -> ScrapeResult:
        options = options or FetchOptions()
        base_url = source.url or DEFAULT_URL
        result = ScrapeResult()
        html_holder: dict[str, str] = {}

        def via_api():
            wp = fetch_wordpress_posts(self.http, base_url, cancel=options.cancel)
            if not wp.ok:
                return StrategyFailure(name="wordpress-api", message=wp.error or "failed", status_code=wp.status)
            posts = [Post(index=i, title=p.title, body_html=p.content, url=p.url or base_url) for i, p in enumerate(wp.posts)]
            return StrategySuccess(name="wordpress-api", value=posts)

        def via_html():
            attempt = ScrapeResult()
            html = fetch_page(self.http, base_url, attempt, options)
            if html is None:
                detail = attempt.error_details.fetch[-1]
                return StrategyFailure(name="html", message=detail.message, status_code=detail.status, url=base_url)
            html_holder["html"] = html
            return StrategySuccess(name="html", value=list(iter_wordpress_articles(html, base_url)))

        chain = run_fallback_chain(
            [FetchStrategy("wordpress-api", via_api), FetchStrategy("html", via_html)],
            cancel=options.cancel,
        )
        result.diagnostic_context["fetchAttempts"] = chain.attempted
        if not chain.ok:
            for failure in chain.failures:
                result.add_fetch_error(failure.url or base_url, f"{failure.name}: {failure.message}", failure.status_code)
            return result

        result.diagnostic_context["fetchMethod"] = chain.success.name
        if "html" in html_holder:
            result.structure_hash = generate_structure_hash(html_holder["html"])
        posts = chain.success.value
        self._extract(posts, result)
        result.diagnostic_context.update({"articlesFound": len(posts), "eventsParsed": len(result.events)})
        return result

    def _extract(self, posts: Iterable[Post], result: ScrapeResult) -> None:
        for post in posts:
            if not post.title:
                continue
            try:
                parsed = parse_ewh3_title(post.title)
                if parsed is None or parsed.date is None:
                    # Non-trail posts ("EWH3 Trash", announcements)
                    continue
                body = parse_ewh3_body(decode_lines(post.body_html))
                location = f"{parsed.location} ({parsed.lines})" if parsed.lines else parsed.location
                desc_parts = [parsed.name]
                if body.end_metro:
                    desc_parts.append(f"End Metro: {body.end_metro}")
                if body.on_after:
                    desc_parts.append(f"On After: {body.on_after}")
                result.events.append(
                    PreResolutionEvent(
                        date=parsed.date,
                        group_tag=GROUP_TAG,
                        run_number=parsed.run_number,
                        title=parsed.name,
                        people=body.hares,
                        location=location or None,
                        start_time=START_TIME,
                        source_url=post.url,
                        description=" | ".join(desc_parts) if len(desc_parts) > 1 else None,
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

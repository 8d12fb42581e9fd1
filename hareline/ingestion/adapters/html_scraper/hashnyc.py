"""
HashNYC run tables (hashnyc.com); also the default for HTML sources no
site-specific adapter claims.

The site renders two tables from two URLs: ``table.past_hashes`` from
``/?days=N&backwards=true`` and ``table.future_hashes`` from ``/?days=N``.
Each table is fetched and parsed on its own, so a failed or broken table
never costs the other one its events.

Row layout::

    <tr id="2024oct30">
      <td>Wednesday October 30 7:00 pm</td>
      <td><b>Halloween Trail</b> NYCH3 Run #2105 Start: <a href=maps>...</a> Transit: ...</td>
      <td>Hare A, Hare B</td>
      <td class="onin">...</td>
    </tr>

Past rows carry their year in the row id; future rows are year-less and
take the year nearest the fetch date.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from bs4 import BeautifulSoup, Tag

from hareline.ingestion.adapters.base_adapter import (
    FetchOptions,
    ScrapeResult,
    adapter_logger,
)
from hareline.ingestion.adapters.html_scraper.common import absolute_url, fetch_page
from hareline.ingestion.diagnostics.structure_hash import generate_structure_hash
from hareline.ingestion.normalization.dates import (
    build_date,
    find_explicit_year,
    infer_year,
    month_number,
    parse_12_hour_time,
)
from hareline.ingestion.normalization.fields import extract_label
from hareline.ingestion.normalization.group_patterns import GroupPatternMatcher
from hareline.ingestion.normalization.text import decode, decode_lines
from hareline.ingestion.runtime.http import HttpClient
from hareline.schemas.event import PreResolutionEvent
from hareline.schemas.source import SourceDescriptor

DEFAULT_URL = "https://hashnyc.com"
DEFAULT_GROUP_TAG = "NYCH3"
MIN_YEAR = 2016

# Longer names before the shorter tags they contain.
DEFAULT_GROUP_PATTERNS: list[tuple[str, str]] = [
    ("Knickerbocker", "Knick"),
    ("Queens Black Knights", "QBK"),
    ("New Amsterdam", "NAH3"),
    (r"Long Island(?:\s+Lunatics)?", "LIL"),
    ("Staten Island", "SI"),
    ("Drinking Practice", "Drinking Practice (NYC)"),
    ("Brooklyn", "BrH3"),
    ("Harriettes", "Harriettes"),
    ("Columbia", "Columbia"),
    ("NAWW(?:H3)?", "NAWWH3"),
    ("NASS", "NAH3"),
    ("GGFM", "GGFM"),
    ("BrH3", "BrH3"),
    ("NAH3", "NAH3"),
    ("Knick", "Knick"),
    ("QBK", "QBK"),
    ("LIL", "LIL"),
    (r"SI\b", "SI"),
    ("NYC(?:H3)?", "NYCH3"),
    ("Queens", "QBK"),
    ("Special", "Special (NYC)"),
]

TABLES = (
    ("past_hashes", "{base}/?days={days}&backwards=true"),
    ("future_hashes", "{base}/?days={days}"),
)

_ROW_ID_YEAR = re.compile(r"^(\d{4})")
_MONTH_DAY = re.compile(r"([A-Za-z]+)\.?\s+(\d{1,2})(?:st|nd|rd|th)?\b")
_RUN = re.compile(r"(?:Run|Trail|#)\s*(\d+)", re.IGNORECASE)
_RUN_PREFIX = re.compile(r"^.*?(?:Run|Trail|#)\s*\d+\s*[:\-–—]?\s*", re.IGNORECASE | re.DOTALL)
_BARE_RUN = re.compile(r"^(?:Run|Trail|#)\s*\d+$", re.IGNORECASE)
_MAPS = re.compile(r"maps\.|google\.\w+/maps", re.IGNORECASE)
_SIGN_UP = re.compile(r"sign up to hare", re.IGNORECASE)


@dataclass
class NycDetails:
    group_tag: str
    run_number: Optional[int] = None
    title: Optional[str] = None
    location: Optional[str] = None
    location_url: Optional[str] = None
    description: Optional[str] = None


def _maps_href(cell: Tag) -> Optional[str]:
    for a in cell.select("a[href]"):
        if _MAPS.search(a["href"]):
            return a["href"]
    return None


def parse_details_cell(cell: Tag, matcher: GroupPatternMatcher) -> NycDetails:
    """Group tag, run number, title, start location and blurb from the details cell."""
    text = decode_lines(cell.decode_contents())
    found = matcher.match(text)
    tag = found.tag if found else DEFAULT_GROUP_TAG
    run = _RUN.search(text)
    run_number = int(run.group(1)) if run else None

    name = None
    bold = cell.find("b")
    if bold is not None:
        bold_text = bold.get_text(" ", strip=True)
        if len(bold_text) > 1 and not _BARE_RUN.match(bold_text):
            name = bold_text

    if name:
        title = f"{name} - {tag} #{run_number}" if run_number else f"{name} - {tag}"
    else:
        head = re.split(r"\bStart\s*:", text, maxsplit=1, flags=re.IGNORECASE)[0]
        title = _RUN_PREFIX.sub("", head).strip() or None

    location = extract_label(text, ["Start"], ["Transit", "Hares?"])
    if location and location.upper().startswith("TBD"):
        location = "TBD"

    paragraphs = [p.get_text(" ", strip=True) for p in cell.find_all("p")]
    description = "\n\n".join(p for p in paragraphs if p) or None

    return NycDetails(
        group_tag=tag,
        run_number=run_number,
        title=title,
        location=location,
        location_url=_maps_href(cell),
        description=description,
    )


def parse_hares(cells: list[Tag], future: bool) -> Optional[str]:
    """
    Future rows keep hares in the third cell. Past rows keep them just
    before the ``onin`` cell, else in a short third cell.
    """
    hares = None
    if future:
        if len(cells) >= 3:
            hares = decode(cells[2].decode_contents())
    else:
        onin = next((i for i, c in enumerate(cells) if "onin" in (c.get("class") or [])), -1)
        if onin > 1:
            candidate = decode(cells[onin - 1].decode_contents())
            if candidate and len(candidate) < 100:
                hares = candidate
        if hares is None and len(cells) >= 3 and "onin" not in (cells[2].get("class") or []):
            candidate = decode(cells[2].decode_contents())
            if candidate and len(candidate) < 50:
                hares = candidate
    if not hares or _SIGN_UP.search(hares):
        return None
    return hares


def row_source_url(row: Tag, base_url: str) -> Optional[str]:
    """Deep link to the row when present, else its first page link."""
    deeplink = row.select_one("a.deeplink[id]")
    if deeplink is not None:
        return f"{base_url.rstrip('/')}/#{deeplink['id']}"
    for a in row.select("a[href]"):
        href = a["href"]
        if _MAPS.search(href) or href.lower().startswith("mailto:"):
            continue
        return absolute_url(href, base_url)
    return None


def row_date(row: Tag, date_text: str, future: bool, options: FetchOptions) -> Optional[str]:
    month = day = None
    for m in _MONTH_DAY.finditer(date_text):
        month = month_number(m.group(1))
        if month:
            day = int(m.group(2))
            break
    if not month:
        return None
    if future:
        return infer_year(month, day, options.reference_date)

    id_year = _ROW_ID_YEAR.match(row.get("id") or "")
    year = int(id_year.group(1)) if id_year else find_explicit_year(date_text)
    if year is None or year < MIN_YEAR:
        return None
    return build_date(year, month, day)


class HashNYCAdapter:
    name = "hashnyc"

    def __init__(self, http: HttpClient):
        self.http = http
        self.logger = adapter_logger(self.name)

    def fetch(self, source: SourceDescriptor, options: Optional[FetchOptions] = None) -> ScrapeResult:
        options = options or FetchOptions()
        base_url = (source.url or DEFAULT_URL).rstrip("/")
        config = source.parsed_config()
        matcher = GroupPatternMatcher(
            config.group_patterns or DEFAULT_GROUP_PATTERNS,
            config.skip_patterns,
            config.default_group_tag or DEFAULT_GROUP_TAG,
        )

        result = ScrapeResult()
        result.diagnostic_context.update({"fetchMethod": "html", "tables": [t for t, _ in TABLES]})

        for table, url_template in TABLES:
            sub = ScrapeResult()
            url = url_template.format(base=base_url, days=options.days)
            html = fetch_page(self.http, url, sub, options)
            rows = 0
            if html is not None:
                if result.structure_hash is None:
                    result.structure_hash = generate_structure_hash(html)
                rows = self._parse_table(html, table, base_url, matcher, options, sub)
            result.extend(sub)
            key = "pastRowCount" if table == "past_hashes" else "futureRowCount"
            result.diagnostic_context[key] = rows

        result.diagnostic_context["eventsParsed"] = len(result.events)
        return result

    def _parse_table(
        self,
        html: str,
        table: str,
        base_url: str,
        matcher: GroupPatternMatcher,
        options: FetchOptions,
        result: ScrapeResult,
    ) -> int:
        future = table == "future_hashes"
        rows = BeautifulSoup(html, "lxml").select(f"table.{table} tr")
        for i, row in enumerate(rows):
            cells = row.find_all("td")
            if len(cells) < 2:
                continue
            try:
                date_text = decode(cells[0].decode_contents())
                details = parse_details_cell(cells[1], matcher)
                if matcher.should_skip(details.title):
                    continue
                date = row_date(row, date_text, future, options)
                if date is None:
                    result.add_parse_error(
                        i,
                        f"No usable date in {date_text!r}",
                        section=table,
                        field="date",
                        raw_text=" | ".join(c.get_text(" ", strip=True) for c in cells),
                        partial_data={"groupTag": details.group_tag, "runNumber": details.run_number},
                    )
                    continue
                result.events.append(
                    PreResolutionEvent(
                        date=date,
                        group_tag=details.group_tag,
                        run_number=details.run_number,
                        title=details.title,
                        description=details.description,
                        people=parse_hares(cells, future),
                        location=details.location,
                        location_url=details.location_url,
                        start_time=parse_12_hour_time(date_text),
                        source_url=row_source_url(row, base_url),
                    )
                )
            except Exception as e:
                self.logger.warning(f"Failed to parse {table} row {i}: {e}")
                result.add_parse_error(
                    i,
                    str(e),
                    section=table,
                    raw_text=" | ".join(c.get_text(" ", strip=True) for c in cells),
                )
        return len(rows)

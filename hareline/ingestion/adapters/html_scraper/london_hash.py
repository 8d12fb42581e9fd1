"""
London Hash (londonhash.org run list).

The page is loosely marked up: each run is a text block anchored by a
``nextrun.php?run=N`` link. Dates usually omit the year ("Saturday 21st
of February"), so the year is inferred from the fetch date.
"""

from __future__ import annotations

import datetime
import re
from dataclasses import dataclass
from typing import Optional

from bs4 import BeautifulSoup

from hareline.ingestion.adapters.base_adapter import (
    FetchOptions,
    ScrapeResult,
    adapter_logger,
)
from hareline.ingestion.adapters.html_scraper.common import fetch_page
from hareline.ingestion.diagnostics.structure_hash import generate_structure_hash
from hareline.ingestion.normalization.dates import (
    ReferenceLike,
    build_date,
    parse_12_hour_time,
    parse_date_text,
)
from hareline.ingestion.normalization.fields import extract_label
from hareline.ingestion.normalization.text import decode_lines
from hareline.ingestion.runtime.http import HttpClient
from hareline.schemas.event import PreResolutionEvent
from hareline.schemas.source import SourceDescriptor

GROUP_TAG = "LH3"
DEFAULT_URL = "https://www.londonhash.org/runlist.php"
RUN_URL = "https://www.londonhash.org/nextrun.php?run={run_id}"
DEFAULT_START_TIME = "12:00"

_RUN_ID = re.compile(r"run=(\d+)")
_DMY = re.compile(r"(?<!\d)(\d{1,2})/(\d{1,2})/(\d{4})(?!\d)")
_HARED_BY = re.compile(r"Hared?\s+by\s+(.+?)(?:\n|$|\*)", re.IGNORECASE)
_HARE_COLON = re.compile(r"Hares?\s*:\s*(.+?)(?:\n|$|\*)", re.IGNORECASE)
_PLACEHOLDER = re.compile(r"required|volunteer|\btb[acd]\b", re.IGNORECASE)
_P_TRAIL = re.compile(
    r"(?:Follow|P\s*trail)\s+(?:the\s+P\s+trail\s+)?from\s+(.+?)\s+(?:station\s+)?to\s+(.+?)(?:\n|$|\*)",
    re.IGNORECASE,
)
_NOON = re.compile(r"\b(?:12\s+)?noon\b", re.IGNORECASE)

_LABELS = ("Start", "Station", "Pub", "Hares?", "Time")


@dataclass
class RunBlock:
    run_number: int
    run_id: str
    text: str


def _run_link_parts(link) -> Optional[tuple[int, str]]:
    m = _RUN_ID.search(link.get("href") or "")
    if not m:
        return None
    try:
        return int(link.get_text(strip=True)), m.group(1)
    except ValueError:
        return None


def parse_run_blocks(html: str) -> list[RunBlock]:
    """Split the run list into one text block per run link."""
    soup = BeautifulSoup(html or "", "lxml")
    blocks: list[RunBlock] = []

    containers = soup.select(".runListDetails")
    if containers:
        for el in containers:
            link = el.select_one('a[href*="nextrun.php"]')
            parts = _run_link_parts(link) if link else None
            if parts:
                blocks.append(RunBlock(parts[0], parts[1], decode_lines(el.decode_contents())))
        return blocks

    # Flat layout: a block runs from one run link to the next.
    links = soup.select('a[href*="nextrun.php"]')
    for i, link in enumerate(links):
        parts = _run_link_parts(link)
        if not parts:
            continue
        parent = link.find_parent(["p", "li", "section", "body"]) or link.parent
        full = decode_lines(parent.decode_contents()) if parent else ""
        link_text = link.get_text(strip=True)
        start = full.find(link_text)
        text = ""
        if start >= 0:
            end = -1
            if i + 1 < len(links):
                end = full.find(links[i + 1].get_text(strip=True), start + len(link_text))
            text = full[start:end].strip() if end > start else full[start:].strip()
        blocks.append(RunBlock(parts[0], parts[1], text or link.parent.get_text(" ", strip=True)))
    return blocks


def parse_block_date(text: str, reference: ReferenceLike = None) -> Optional[str]:
    """DD/MM/YYYY first, then written dates (year inferred when absent)."""
    m = _DMY.search(text or "")
    if m:
        iso = build_date(int(m.group(3)), int(m.group(2)), int(m.group(1)))
        if iso:
            return iso
    return parse_date_text(text, reference)


def parse_block_hares(text: str) -> Optional[str]:
    for pattern in (_HARED_BY, _HARE_COLON):
        m = pattern.search(text or "")
        if m:
            hares = m.group(1).strip()
            if not hares or _PLACEHOLDER.search(hares):
                return None
            return hares
    return None


def parse_block_location(text: str) -> tuple[Optional[str], Optional[str]]:
    """(location, nearest station)."""
    m = _P_TRAIL.search(text or "")
    if m:
        return m.group(2).strip(), m.group(1).strip()
    location = extract_label(text, ["Start", "Pub"], _LABELS)
    station = extract_label(text, ["Station"], _LABELS)
    return location, station


def parse_block_time(text: str) -> Optional[str]:
    if _NOON.search(text or ""):
        return "12:00"
    return parse_12_hour_time(text)


class LondonHashAdapter:
    name = "london_hash"

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
        reference: datetime.date = options.reference_date
        blocks = parse_run_blocks(html)

        for i, block in enumerate(blocks):
            try:
                date = parse_block_date(block.text, reference)
                if not date:
                    result.add_parse_error(
                        i,
                        f"No date in block for run #{block.run_number}",
                        section="runlist",
                        field="date",
                        raw_text=block.text,
                        partial_data={"runNumber": block.run_number},
                    )
                    continue
                location, station = parse_block_location(block.text)
                result.events.append(
                    PreResolutionEvent(
                        date=date,
                        group_tag=GROUP_TAG,
                        run_number=block.run_number,
                        title=f"London Hash Run #{block.run_number}",
                        people=parse_block_hares(block.text),
                        location=location,
                        start_time=parse_block_time(block.text) or DEFAULT_START_TIME,
                        source_url=RUN_URL.format(run_id=block.run_id),
                        description=f"Nearest station: {station}" if station else None,
                    )
                )
            except Exception as e:
                self.logger.warning(f"Failed to parse run #{block.run_number}: {e}")
                result.add_parse_error(
                    i,
                    str(e),
                    section="runlist",
                    raw_text=block.text,
                    partial_data={"runNumber": block.run_number},
                )

        result.diagnostic_context.update({"blocksFound": len(blocks), "eventsParsed": len(result.events)})
        return result

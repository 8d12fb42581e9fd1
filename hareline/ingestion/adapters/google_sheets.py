"""
Google Sheets adapter.

Each spreadsheet tab (usually one per year) is exported as CSV and read
through the source's ``columnMap``. Tabs are fetched independently and
rows are parsed independently: one bad tab or row never sinks the rest.
"""

from __future__ import annotations

import csv
import datetime
import io
import re
from typing import Optional
from urllib.parse import quote

from hareline.configs.settings import get_settings
from hareline.ingestion.adapters.base_adapter import (
    RAW_TEXT_LIMIT,
    FetchOptions,
    ScrapeResult,
    adapter_logger,
    within_window,
)
from hareline.ingestion.adapters.feeds import load_config
from hareline.ingestion.normalization.dates import build_date, expand_year
from hareline.ingestion.normalization.fields import google_maps_search_url
from hareline.ingestion.normalization.text import strip_or_none, truncate
from hareline.ingestion.runtime.http import HttpClient
from hareline.schemas.event import PreResolutionEvent
from hareline.schemas.source import GroupTagRules, SourceConfig, SourceDescriptor, StartTimeRules

META_URL = "https://sheets.googleapis.com/v4/spreadsheets/{sheet_id}"
CSV_URL = "https://docs.google.com/spreadsheets/d/{sheet_id}/gviz/tq?tqx=out:csv&sheet={tab}"

_SHEET_DATE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})$")
_DIGITS = re.compile(r"^\d+$")
_WEEKDAY_ABBR = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def parse_sheet_date(cell: str) -> Optional[str]:
    """M-D-YY, M/D/YYYY, M/DD/YY."""
    m = _SHEET_DATE.match((cell or "").strip())
    if not m:
        return None
    return build_date(expand_year(m.group(3)), int(m.group(1)), int(m.group(2)))


def infer_start_time(iso_date: str, rules: Optional[StartTimeRules]) -> Optional[str]:
    """Start time by weekday ("Mon", "Sat" ...), falling back to the rule default."""
    if rules is None:
        return None
    weekday = _WEEKDAY_ABBR[datetime.date.fromisoformat(iso_date).weekday()]
    return rules.by_day_of_week.get(weekday) or rules.default


def parse_csv(text: str) -> list[list[str]]:
    rows = csv.reader(io.StringIO(text or ""))
    return [row for row in rows if len(row) > 1 or (row and row[0] != "")]


def _cell(row: list[str], index: Optional[int]) -> Optional[str]:
    if index is None or index < 0 or index >= len(row):
        return None
    return strip_or_none(row[index])


def tag_and_run_number(
    run_cell: Optional[str], special_cell: Optional[str], rules: GroupTagRules
) -> Optional[tuple[str, Optional[int]]]:
    """
    Group tag and run number for a row; None for rows that aren't runs.

    Named special runs map through ``specialRunMap``; a numeric special
    cell takes ``numericSpecialTag``; otherwise a numeric run cell takes
    the default tag.
    """
    run_number = int(run_cell) if run_cell and _DIGITS.match(run_cell) else None
    if special_cell and special_cell in rules.special_run_map:
        return rules.special_run_map[special_cell], run_number
    if special_cell and _DIGITS.match(special_cell) and rules.numeric_special_tag:
        return rules.numeric_special_tag, int(special_cell)
    if run_number is not None and rules.default:
        return rules.default, run_number
    return None


class GoogleSheetsAdapter:
    name = "google_sheets"

    def __init__(self, http: HttpClient, api_key: Optional[str] = None):
        self.http = http
        self.api_key = api_key
        self.logger = adapter_logger(self.name)

    def fetch(self, source: SourceDescriptor, options: Optional[FetchOptions] = None) -> ScrapeResult:
        options = options or FetchOptions()
        result = ScrapeResult()
        config = load_config(source)
        result.diagnostic_context["fetchMethod"] = "csv-export"

        tabs = self._tabs(config, result, options)
        if tabs is None:
            return result

        processed: list[str] = []
        rows_per_tab: dict[str, int] = {}
        for tab in tabs:
            url = CSV_URL.format(sheet_id=config.sheet_id, tab=quote(tab, safe=""))
            res = self.http.get(url, cancel=options.cancel)
            if not res.ok:
                result.add_fetch_error(url, f'Failed to fetch tab "{tab}": {res.short_error()}', res.status_code)
                continue

            processed.append(tab)
            rows = parse_csv(res.text)
            rows_per_tab[tab] = len(rows)
            before = len(result.events)
            in_window = self._extract_tab(tab, rows, config, source, options, result)

            # Tabs run newest first; an out-of-window tab after hits means older data.
            if not in_window and before > 0:
                break

        result.diagnostic_context.update(
            {"tabsDiscovered": tabs, "tabsProcessed": processed, "rowsPerTab": rows_per_tab}
        )
        return result

    def _tabs(self, config: SourceConfig, result: ScrapeResult, options: FetchOptions) -> Optional[list[str]]:
        if config.tabs:
            return list(config.tabs)
        api_key = self.api_key or get_settings().google_api_key()
        url = META_URL.format(sheet_id=config.sheet_id)
        if not api_key:
            result.add_fetch_error(url, "GOOGLE_API_KEY is not configured (needed for tab discovery)")
            return None
        res = self.http.get(url, params={"fields": "sheets.properties.title", "key": api_key}, cancel=options.cancel)
        if not res.ok:
            result.add_fetch_error(url, f"Sheets API error: {res.short_error()}", res.status_code)
            return None
        try:
            titles = [s["properties"]["title"] for s in res.json().get("sheets", [])]
        except (ValueError, KeyError, TypeError) as e:
            result.add_fetch_error(url, f"Failed to discover tabs: {e}", res.status_code)
            return None
        # Year-named data tabs, newest first
        return sorted((t for t in titles if t[:1].isdigit()), reverse=True)

    def _extract_tab(
        self,
        tab: str,
        rows: list[list[str]],
        config: SourceConfig,
        source: SourceDescriptor,
        options: FetchOptions,
        result: ScrapeResult,
    ) -> bool:
        columns = config.column_map
        rules = config.group_tag_rules or GroupTagRules()
        in_window = False

        for idx, row in enumerate(rows[1:], start=1):
            try:
                date_cell = _cell(row, columns.get("date"))
                if not date_cell:
                    continue
                date = parse_sheet_date(date_cell)
                if date is None:
                    raise ValueError(f"Unrecognized date {date_cell!r}")
                if not within_window(date, options):
                    continue
                in_window = True

                tagged = tag_and_run_number(
                    _cell(row, columns.get("runNumber")), _cell(row, columns.get("specialRun")), rules
                )
                if tagged is None:
                    continue
                group_tag, run_number = tagged
                location = _cell(row, columns.get("location"))
                result.events.append(
                    PreResolutionEvent(
                        date=date,
                        group_tag=group_tag,
                        run_number=run_number,
                        title=_cell(row, columns.get("title")),
                        description=truncate(_cell(row, columns.get("description")), RAW_TEXT_LIMIT),
                        people=_cell(row, columns.get("hares")),
                        location=location,
                        location_url=google_maps_search_url(location) if location else None,
                        start_time=infer_start_time(date, config.start_time_rules),
                        source_url=source.url or None,
                    )
                )
            except Exception as e:
                self.logger.warning(f'Row {idx} in tab "{tab}": {e}')
                result.add_parse_error(
                    idx,
                    str(e),
                    section=tab,
                    raw_text=",".join(row),
                    message=f'Row {idx} in tab "{tab}": {e}',
                )
        return in_window

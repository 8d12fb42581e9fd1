"""
hareline.ingestion.normalization.dates

Date and time parsing for free-form announcement text.

Every parser returns an ISO ``YYYY-MM-DD`` string (or ``HH:MM`` for times)
or ``None`` for "no match". Nothing here raises on bad input.

Year-less dates ("25 February") are resolved against a reference date:
the year among reference-1, reference, reference+1 that puts the date
within six months of the reference wins, with the reference year
preferred on ties and at the boundary. An explicit four-digit year
anywhere in the text overrides inference.
"""

from __future__ import annotations

import datetime
import re
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

MONTHS = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sept": 9, "sep": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

ReferenceLike = Union[datetime.date, datetime.datetime, int, None]

_ORD = r"(?:st|nd|rd|th)?"
_YEAR = r"(\d{4}|'?\d{2})(?!\d|[:.]\d|\s*[ap]\.?m\b|\s*(?:noon|midnight)\b)"

_ISO = re.compile(r"(?<!\d)(\d{4})-(\d{1,2})-(\d{1,2})(?!\d)")
# "February 19, 2026", "Thu Feb 19th 2026", "Feb. 19 '26"
_MONTH_FIRST = re.compile(
    rf"\b([A-Za-z]{{3,9}})\.?\s+(\d{{1,2}}){_ORD}\b,?[^\S\n]+{_YEAR}", re.IGNORECASE
)
# "19 February 2026", "19th of Feb, 2026"
_DAY_FIRST = re.compile(
    rf"(?<!\d)(\d{{1,2}}){_ORD}\s+(?:of\s+)?([A-Za-z]{{3,9}})\.?,?[^\S\n]+{_YEAR}", re.IGNORECASE
)
_MONTH_FIRST_NO_YEAR = re.compile(r"\b([A-Za-z]{3,9})\.?\s+(\d{1,2})" + _ORD + r"(?!\d)", re.IGNORECASE)
_DAY_FIRST_NO_YEAR = re.compile(
    r"(?<!\d)(\d{1,2})" + _ORD + r"\s+(?:of\s+)?([A-Za-z]{3,9})\b", re.IGNORECASE
)
_EXPLICIT_YEAR = re.compile(r"(?<![#\d])((?:19|20)\d{2})(?!\d)")
_NUMERIC = re.compile(r"(?<![\d/])(\d{1,2})[/.-](\d{1,2})(?:[/.-](\d{2,4}))?(?![\d/])")

_TIME_12H = re.compile(
    r"(?<![\d:])(\d{1,2})(?:[:.](\d{2}))?\s*(a\.?m\.?|p\.?m\.?)(?![a-z])", re.IGNORECASE
)
_TIME_24H = re.compile(r"(?<![\d:])([01]?\d|2[0-3]):([0-5]\d)(?![\d:])")
_NOON = re.compile(r"\bnoon\b", re.IGNORECASE)
_MIDNIGHT = re.compile(r"\bmidnight\b", re.IGNORECASE)


# ---------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------


def month_number(token: str) -> Optional[int]:
    """Month number for a full or abbreviated month name, else None."""
    if not token:
        return None
    return MONTHS.get(token.strip().rstrip(".").lower())


def expand_year(year: Union[int, str]) -> Optional[int]:
    """Expand a 2-digit year: 00-49 -> 20xx, 50-99 -> 19xx."""
    try:
        y = int(str(year).lstrip("'"))
    except ValueError:
        return None
    if y < 100:
        return 2000 + y if y < 50 else 1900 + y
    return y


def build_date(year: Optional[int], month: Optional[int], day: Optional[int]) -> Optional[str]:
    """ISO date string if the parts form a real calendar date, else None."""
    if year is None or month is None or day is None:
        return None
    try:
        return datetime.date(int(year), int(month), int(day)).isoformat()
    except (ValueError, OverflowError):
        return None


def as_reference_date(reference: ReferenceLike) -> datetime.date:
    if reference is None:
        return datetime.date.today()
    if isinstance(reference, datetime.datetime):
        return reference.date()
    if isinstance(reference, datetime.date):
        return reference
    return datetime.date(int(reference), 1, 1)


def infer_year(month: int, day: int, reference: ReferenceLike = None) -> Optional[str]:
    """
    Resolve a year-less month/day against ``reference``.

    Tries the reference year first, then the previous and next year; the
    first candidate within six months (inclusive) of the reference wins.
    """
    ref = as_reference_date(reference)
    lower = ref - relativedelta(months=6)
    upper = ref + relativedelta(months=6)
    for year in (ref.year, ref.year - 1, ref.year + 1):
        iso = build_date(year, month, day)
        if iso is None:
            continue
        if lower <= datetime.date.fromisoformat(iso) <= upper:
            return iso
    return None


def find_explicit_year(text: str) -> Optional[int]:
    """First standalone 19xx/20xx year in ``text`` (not a "#2025" run number)."""
    m = _EXPLICIT_YEAR.search(text or "")
    return int(m.group(1)) if m else None


# ---------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------


def parse_date_text(text: Optional[str], reference: ReferenceLike = None) -> Optional[str]:
    """
    Find a date in free text.

    Forms tried in order: ISO, month-first with year, day-first with year,
    then year-less month-first / day-first with year inference.
    """
    if not text:
        return None

    m = _ISO.search(text)
    if m:
        iso = build_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        if iso:
            return iso

    for m in _MONTH_FIRST.finditer(text):
        iso = build_date(expand_year(m.group(3)), month_number(m.group(1)), int(m.group(2)))
        if iso:
            return iso

    for m in _DAY_FIRST.finditer(text):
        iso = build_date(expand_year(m.group(3)), month_number(m.group(2)), int(m.group(1)))
        if iso:
            return iso

    return parse_yearless_date(text, reference)


def parse_yearless_date(text: Optional[str], reference: ReferenceLike = None) -> Optional[str]:
    """Day + month without a year ("25 February", "Feb 25th")."""
    if not text:
        return None
    explicit_year = find_explicit_year(text)

    candidates: list[tuple[int, int, int]] = []
    for m in _DAY_FIRST_NO_YEAR.finditer(text):
        month = month_number(m.group(2))
        if month:
            candidates.append((m.start(), month, int(m.group(1))))
    for m in _MONTH_FIRST_NO_YEAR.finditer(text):
        month = month_number(m.group(1))
        if month:
            candidates.append((m.start(), month, int(m.group(2))))

    for _, month, day in sorted(candidates):
        if not 1 <= day <= 31:
            continue
        if explicit_year is not None:
            iso = build_date(explicit_year, month, day)
        else:
            iso = infer_year(month, day, reference)
        if iso:
            return iso
    return None


def parse_numeric_date(
    text: Optional[str],
    *,
    order: str = "MDY",
    reference: ReferenceLike = None,
) -> Optional[str]:
    """
    Numeric dates such as 2/7/26 (``order="MDY"``) or 07/02/2026 (``"DMY"``).

    A missing year takes the reference year.
    """
    if not text:
        return None
    for m in _NUMERIC.finditer(text):
        a, b, y = int(m.group(1)), int(m.group(2)), m.group(3)
        month, day = (a, b) if order == "MDY" else (b, a)
        year = expand_year(y) if y else as_reference_date(reference).year
        iso = build_date(year, month, day)
        if iso:
            return iso
    return None


# ---------------------------------------------------------------------
# Times
# ---------------------------------------------------------------------


def to_hhmm(hours: int, minutes: int = 0, meridiem: Optional[str] = None) -> Optional[str]:
    """Normalize to 24-hour HH:MM; None when out of range."""
    if meridiem:
        mer = meridiem.replace(".", "").lower()
        if not 1 <= hours <= 12:
            return None
        if mer == "pm" and hours != 12:
            hours += 12
        elif mer == "am" and hours == 12:
            hours = 0
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        return None
    return f"{hours:02d}:{minutes:02d}"


def parse_12_hour_time(text: Optional[str]) -> Optional[str]:
    """'2pm' -> '14:00', '7:15 p.m.' -> '19:15', 'noon' -> '12:00'."""
    if not text:
        return None
    m = _TIME_12H.search(text)
    if m:
        return to_hhmm(int(m.group(1)), int(m.group(2) or 0), m.group(3))
    if _NOON.search(text):
        return "12:00"
    if _MIDNIGHT.search(text):
        return "00:00"
    return None


def parse_time_text(text: Optional[str]) -> Optional[str]:
    """12-hour forms first, then a bare 24-hour HH:MM."""
    found = parse_12_hour_time(text)
    if found:
        return found
    m = _TIME_24H.search(text or "")
    if m:
        return to_hhmm(int(m.group(1)), int(m.group(2)))
    return None

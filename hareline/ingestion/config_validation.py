"""
hareline.ingestion.config_validation

Source configuration checks run before any network access.

``validate_source_config`` returns human-readable messages; an empty list
means the configuration is valid. Checks cover shape, type-specific
required fields, and the safety of every operator-supplied pattern.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Dict, List, Mapping

from pydantic import ValidationError

from hareline.ingestion.errors import ConfigValidationError
from hareline.ingestion.regex_safety import check_pattern
from hareline.schemas.source import SourceConfig, SourceDescriptor, SourceType

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_FREQ = re.compile(r"^(?:RRULE:)?FREQ=(?:YEARLY|MONTHLY|WEEKLY|DAILY)\b", re.IGNORECASE)

# Types whose events are tagged by group patterns / default tag.
PATTERN_TYPES = (SourceType.GOOGLE_CALENDAR, SourceType.ICAL_FEED, SourceType.RSS_FEED)


def _get(obj: Mapping[str, Any], camel: str, snake: str) -> Any:
    return obj[camel] if camel in obj else obj.get(snake)


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _check_group_patterns(value: Any, errors: List[str]) -> None:
    if value is None:
        return
    if not isinstance(value, list):
        errors.append("groupPatterns must be a list of [pattern, tag] pairs")
        return
    for i, pair in enumerate(value):
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            errors.append(f"groupPatterns[{i}]: must be a [pattern, tag] pair")
            continue
        pattern, tag = pair
        if not isinstance(pattern, str) or not isinstance(tag, str):
            errors.append(f"groupPatterns[{i}]: both pattern and tag must be strings")
            continue
        if not tag.strip():
            errors.append(f"groupPatterns[{i}]: group tag cannot be empty")
        reason = check_pattern(pattern)
        if reason:
            errors.append(f'groupPatterns[{i}]: rejected pattern "{pattern}": {reason}')


def _check_skip_patterns(value: Any, errors: List[str]) -> None:
    if value is None:
        return
    if not isinstance(value, list):
        errors.append("skipPatterns must be a list of pattern strings")
        return
    for i, pattern in enumerate(value):
        reason = check_pattern(pattern)
        if reason:
            errors.append(f'skipPatterns[{i}]: rejected pattern "{pattern}": {reason}')


def _check_required(source_type: SourceType, obj: Mapping[str, Any], url: str, errors: List[str]) -> None:
    if source_type == SourceType.HTML_SCRAPER and not url:
        errors.append("HTML scraper source requires a url")

    if source_type in PATTERN_TYPES:
        if source_type != SourceType.GOOGLE_CALENDAR and not url:
            errors.append(f"{source_type.value} source requires a url")
        if source_type == SourceType.GOOGLE_CALENDAR and not (url or _get(obj, "calendarId", "calendar_id")):
            errors.append("Google Calendar source requires a calendarId or url")
        if not _get(obj, "groupPatterns", "group_patterns") and not _non_empty_str(
            _get(obj, "defaultGroupTag", "default_group_tag")
        ):
            errors.append(f"{source_type.value} config requires groupPatterns or a defaultGroupTag")

    if source_type == SourceType.GOOGLE_SHEETS:
        if not _non_empty_str(_get(obj, "sheetId", "sheet_id")):
            errors.append("Google Sheets config requires sheetId")
        columns = _get(obj, "columnMap", "column_map")
        if not isinstance(columns, dict) or "date" not in columns:
            errors.append("Google Sheets config requires a columnMap with a date column")
        rules = _get(obj, "groupTagRules", "group_tag_rules")
        if not isinstance(rules, dict) or not _non_empty_str(rules.get("default")):
            errors.append("Google Sheets config requires groupTagRules with a default tag")

    if source_type == SourceType.HASHREGO:
        slugs = _get(obj, "groupSlugs", "group_slugs")
        if not isinstance(slugs, list) or not any(_non_empty_str(s) for s in slugs):
            errors.append("Hash Rego config requires at least one groupSlug")

    if source_type == SourceType.MEETUP:
        if not _non_empty_str(_get(obj, "groupUrlName", "group_url_name")):
            errors.append("Meetup config requires groupUrlName")
        if not _non_empty_str(_get(obj, "groupTag", "group_tag")):
            errors.append("Meetup config requires groupTag")

    if source_type == SourceType.STATIC_SCHEDULE:
        if not _non_empty_str(_get(obj, "groupTag", "group_tag")):
            errors.append("Static schedule config requires groupTag")
        rule = _get(obj, "recurrenceRule", "recurrence_rule")
        if not _non_empty_str(rule):
            errors.append("Static schedule config requires recurrenceRule")
        elif not _FREQ.match(rule.strip()):
            errors.append(f'recurrenceRule must begin with FREQ=..., got "{rule}"')


def _check_formats(obj: Mapping[str, Any], errors: List[str]) -> None:
    start_time = _get(obj, "startTime", "start_time")
    if start_time is not None and not (isinstance(start_time, str) and _HHMM.match(start_time)):
        errors.append(f'startTime must be "HH:MM", got {start_time!r}')

    anchor = _get(obj, "anchorDate", "anchor_date")
    if anchor is not None:
        valid = isinstance(anchor, str) and _ISO_DATE.match(anchor)
        if valid:
            try:
                date.fromisoformat(anchor)
            except ValueError:
                valid = False
        if not valid:
            errors.append(f'anchorDate must be "YYYY-MM-DD", got {anchor!r}')


def _shape_errors(obj: Mapping[str, Any]) -> List[str]:
    try:
        SourceConfig.model_validate(dict(obj))
    except ValidationError as e:
        return [
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors()
        ]
    return []


def validate_source_config(source_type: SourceType | str, config: Any, url: str = "") -> List[str]:
    """Messages describing everything wrong with ``config``; empty when valid."""
    try:
        source_type = SourceType(source_type)
    except ValueError:
        return [f"Unknown source type: {source_type}"]
    if config is None:
        config = {}
    if not isinstance(config, dict):
        return ["config must be a mapping"]

    errors: List[str] = []
    _check_group_patterns(_get(config, "groupPatterns", "group_patterns"), errors)
    _check_skip_patterns(_get(config, "skipPatterns", "skip_patterns"), errors)
    _check_required(source_type, config, url or "", errors)
    _check_formats(config, errors)
    if not errors:
        errors.extend(_shape_errors(config))
    return errors


def validate_source(source: SourceDescriptor) -> List[str]:
    return validate_source_config(source.type, source.config, source.url)


def ensure_valid(source: SourceDescriptor) -> None:
    """Raise ``ConfigValidationError`` when ``source`` is not runnable."""
    errors = validate_source(source)
    if errors:
        raise ConfigValidationError(source.id, errors)


def validate_catalogue(sources: List[SourceDescriptor]) -> Dict[str, List[str]]:
    """Map of source id -> messages, for sources with at least one problem."""
    report: Dict[str, List[str]] = {}
    for source in sources:
        errors = validate_source(source)
        if errors:
            report[source.id] = errors
    return report


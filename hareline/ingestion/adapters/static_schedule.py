"""
Static schedule adapter.

Generates events for groups that publish nothing machine-readable but
run on a fixed rhythm. The source's ``recurrenceRule`` (an RFC 5545
RRULE body such as ``FREQ=WEEKLY;BYDAY=SA``) is expanded with dateutil
from ``anchorDate`` and clipped to the ``±days`` window. No network I/O.
"""

from __future__ import annotations

import datetime
from typing import Optional

from dateutil.rrule import rrulestr

from hareline.ingestion.adapters.base_adapter import FetchOptions, ScrapeResult, adapter_logger
from hareline.ingestion.adapters.feeds import load_config
from hareline.ingestion.normalization.dates import parse_time_text
from hareline.schemas.event import PreResolutionEvent
from hareline.schemas.source import SourceDescriptor


def expand_occurrences(
    rule: str, anchor: datetime.date, start: datetime.date, end: datetime.date
) -> list[str]:
    """ISO dates of ``rule`` occurrences in ``[start, end]``; raises ValueError on a bad rule."""
    body = rule.strip()
    if body.upper().startswith("RRULE:"):
        body = body[len("RRULE:"):]
    dtstart = datetime.datetime.combine(anchor, datetime.time(12, 0))
    recurrence = rrulestr(body, dtstart=dtstart)
    lower = datetime.datetime.combine(start, datetime.time.min)
    upper = datetime.datetime.combine(end, datetime.time.max)
    return [d.date().isoformat() for d in recurrence.between(lower, upper, inc=True)]


class StaticScheduleAdapter:
    name = "static_schedule"

    def __init__(self):
        self.logger = adapter_logger(self.name)

    def fetch(self, source: SourceDescriptor, options: Optional[FetchOptions] = None) -> ScrapeResult:
        options = options or FetchOptions()
        result = ScrapeResult()
        config = load_config(source)
        if not config.group_tag or not config.recurrence_rule:
            result.add_fetch_error(source.url, "Static schedule needs groupTag and recurrenceRule")
            return result

        today = options.reference_date
        start = today - datetime.timedelta(days=options.days)
        end = today + datetime.timedelta(days=options.days)
        try:
            anchor = datetime.date.fromisoformat(config.anchor_date) if config.anchor_date else start
            dates = expand_occurrences(config.recurrence_rule, anchor, max(start, anchor), end)
        except (ValueError, TypeError) as e:
            message = f"Invalid recurrence rule {config.recurrence_rule!r}: {e}"
            result.add_fetch_error(source.url, message)
            return result

        start_time = parse_time_text(config.start_time) if config.start_time else None
        for date in dates:
            result.events.append(
                PreResolutionEvent(
                    date=date,
                    group_tag=config.group_tag,
                    title=config.default_title,
                    description=config.default_description,
                    location=config.default_location,
                    start_time=start_time,
                    source_url=source.url or None,
                )
            )

        result.diagnostic_context.update(
            {
                "recurrenceRule": config.recurrence_rule,
                "anchorDate": anchor.isoformat(),
                "occurrencesGenerated": len(result.events),
                "windowStart": start.isoformat(),
                "windowEnd": end.isoformat(),
            }
        )
        return result

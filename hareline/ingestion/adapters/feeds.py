"""
Helpers shared by the config-driven (feed style) adapters.
"""

from __future__ import annotations

import re
from typing import Optional

from hareline.ingestion.normalization.group_patterns import GroupPatternMatcher
from hareline.schemas.source import SourceConfig, SourceDescriptor

_HARE_LINES = (
    re.compile(r"(?:^|\n)\s*Hares?\s*:\s*(.+)", re.IGNORECASE),
    re.compile(r"(?:^|\n)\s*Who\s*:\s*(.+)", re.IGNORECASE),
)
_NOT_A_HARE = re.compile(r"^(?:that be you|you|your|all|everyone|tb[acd])\b", re.IGNORECASE)
_SUMMARY_RUN = re.compile(r"#\s*(\d+(?:\.5)?)\b")
_STANDALONE_RUN = re.compile(r"(?:^|\n)\s*#(\d{2,})\s*(?:\n|$)")


class MissingGroupTag(ValueError):
    """No group pattern matched and the source has no default tag."""


def load_config(source: SourceDescriptor) -> SourceConfig:
    return source.parsed_config()


def extract_people(description: Optional[str]) -> Optional[str]:
    """Names from a 'Hare(s):' or 'Who:' line, ignoring generic answers."""
    if not description:
        return None
    for pattern in _HARE_LINES:
        m = pattern.search(description)
        if not m:
            continue
        people = m.group(1).split("\n")[0].strip()
        if _NOT_A_HARE.match(people):
            continue
        if 0 < len(people) < 200:
            return people
    return None


def extract_feed_run_number(summary: Optional[str], description: Optional[str] = None) -> Optional[float]:
    """'#2781' in the summary, else a standalone '#2792' line in the description."""
    m = _SUMMARY_RUN.search(summary or "")
    if not m and description:
        m = _STANDALONE_RUN.search(description)
    if not m:
        return None
    value = float(m.group(1))
    return int(value) if value.is_integer() else value


def resolve_group_tag(matcher: GroupPatternMatcher, *texts: Optional[str]) -> str:
    """Group tag for the first text that yields one; raises ``MissingGroupTag``."""
    for text in texts:
        if not text:
            continue
        found = matcher.match(text)
        if found and found.stage != "default":
            return found.tag
    if matcher.default_group_tag:
        return matcher.default_group_tag
    raise MissingGroupTag("No group pattern matched and no defaultGroupTag configured")

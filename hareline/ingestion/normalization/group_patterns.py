"""
hareline.ingestion.normalization.group_patterns

Config-driven group-tag extraction for feed-style sources.

Patterns are tried in configured order, case-insensitively, first match
wins. Stage one only accepts matches at the start of the text; stage two
accepts a match anywhere, but only when a run-number token sits near it.
Operators list longer tags before shorter tags that are their prefixes.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence

from hareline.ingestion.regex_safety import check_pattern, compile_pattern

logger = logging.getLogger(__name__)

RUN_TOKEN_WINDOW = 40
_RUN_TOKEN = re.compile(r"#\s*\d+|\b(?:run|trail|hash)\s*(?:no\.?\s*)?#?\s*\d+", re.IGNORECASE)


@dataclass(frozen=True)
class GroupMatch:
    tag: str
    stage: str  # anchored | nearby | default
    pattern: Optional[str] = None


class GroupPatternMatcher:
    """Compiled group/skip patterns for one source."""

    def __init__(
        self,
        group_patterns: Sequence[tuple[str, str]] = (),
        skip_patterns: Sequence[str] = (),
        default_group_tag: Optional[str] = None,
    ):
        self.default_group_tag = default_group_tag
        self.rejected: list[str] = []
        self._groups = []
        for pattern, tag in group_patterns:
            compiled = self._compile(pattern)
            if compiled is not None:
                self._groups.append((pattern, compiled, tag))
        self._skips = []
        for pattern in skip_patterns:
            compiled = self._compile(pattern)
            if compiled is not None:
                self._skips.append((pattern, compiled))

    @classmethod
    def from_config(cls, config) -> "GroupPatternMatcher":
        return cls(config.group_patterns, config.skip_patterns, config.default_group_tag)

    def _compile(self, pattern: str):
        reason = check_pattern(pattern)
        if reason:
            # Validation runs before any fetch; this only guards direct callers.
            logger.warning(f"Ignoring unsafe pattern {pattern!r}: {reason}")
            self.rejected.append(pattern)
            return None
        return compile_pattern(pattern)

    @property
    def has_patterns(self) -> bool:
        return bool(self._groups)

    def should_skip(self, text: Optional[str]) -> Optional[str]:
        """The first skip pattern found in ``text``, else None."""
        if not text:
            return None
        for pattern, compiled in self._skips:
            if compiled.search(text):
                return pattern
        return None

    def match(self, text: Optional[str]) -> Optional[GroupMatch]:
        """Group tag for ``text``; falls back to the default tag."""
        text = text or ""
        for pattern, compiled, tag in self._groups:
            if compiled.match(text):
                return GroupMatch(tag=tag, stage="anchored", pattern=pattern)

        for pattern, compiled, tag in self._groups:
            for m in compiled.finditer(text):
                lo = max(0, m.start() - RUN_TOKEN_WINDOW)
                hi = min(len(text), m.end() + RUN_TOKEN_WINDOW)
                if _RUN_TOKEN.search(text[lo:hi]):
                    return GroupMatch(tag=tag, stage="nearby", pattern=pattern)

        if self.default_group_tag:
            return GroupMatch(tag=self.default_group_tag, stage="default")
        return None


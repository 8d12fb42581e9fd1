"""
Fuzzy group-name suggestions.

Used only by interactive flows that propose a group for an unmatched tag;
the resolver never auto-assigns a fuzzy hit.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import Iterable, List

from hareline.schemas.source import GroupRecord

SUGGESTION_THRESHOLD = 0.6

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class Suggestion:
    group_id: str
    short_name: str
    score: float


def _norm(text: str) -> str:
    return _NON_ALNUM.sub("", (text or "").lower())


def similarity(a: str, b: str) -> float:
    left, right = _norm(a), _norm(b)
    if not left or not right:
        return 0.0
    return SequenceMatcher(None, left, right).ratio()


def suggest_groups(
    tag: str,
    groups: Iterable[GroupRecord],
    *,
    threshold: float = SUGGESTION_THRESHOLD,
    limit: int = 5,
) -> List[Suggestion]:
    """Groups whose short or full name is similar to ``tag``, best first."""
    found = []
    for group in groups:
        names = [group.short_name, group.full_name, *group.aliases]
        score = max(similarity(tag, name) for name in names if name) if any(names) else 0.0
        if score >= threshold:
            found.append(Suggestion(group.id, group.short_name, round(score, 3)))
    found.sort(key=lambda s: (-s.score, s.short_name))
    return found[:limit]

"""
hareline.ingestion.resolution.resolver

Maps a free-text group tag to a canonical group id.

Precedence, first hit wins:

1. exact short name
2. case-insensitive short name (a group linked to the calling source wins
   when several share the name)
3. case-insensitive alias
4. tag patterns: the first configured pattern found in the tag names a
   short name, which is retried through steps 2 and 3

Unmatched tags are reported, never defaulted. Results are cached per
(tag, source) until ``clear_cache()`` is called by whoever changed the
alias table or the source links; the resolver never invalidates itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from hareline.ingestion.regex_safety import check_pattern, compile_pattern
from hareline.ingestion.resolution.cache import ResolverCache
from hareline.ingestion.resolution.directory import GroupDirectory
from hareline.ingestion.resolution.fuzzy import SUGGESTION_THRESHOLD, Suggestion, suggest_groups

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedIdentity:
    matched: bool
    canonical_id: Optional[str] = None
    via: Optional[str] = None

    def to_dict(self) -> dict:
        return {"matched": self.matched, "canonicalId": self.canonical_id}


UNMATCHED = ResolvedIdentity(matched=False)


class IdentityResolver:
    def __init__(
        self,
        directory: GroupDirectory,
        cache: Optional[ResolverCache] = None,
        tag_patterns: Sequence[tuple[str, str]] = (),
    ):
        self.directory = directory
        self.cache = cache if cache is not None else ResolverCache()
        self.rejected_patterns: list[str] = []
        self._tag_patterns = []
        for pattern, short_name in tag_patterns:
            reason = check_pattern(pattern)
            if reason:
                logger.warning(f"Ignoring unsafe tag pattern {pattern!r}: {reason}")
                self.rejected_patterns.append(pattern)
                continue
            self._tag_patterns.append((compile_pattern(pattern), short_name))

    def map_tag(self, tag: str) -> Optional[str]:
        """Short name named by the first tag pattern found in ``tag``."""
        for compiled, short_name in self._tag_patterns:
            if compiled.search(tag):
                return short_name
        return None

    def resolve(self, tag: str, linked_group_ids: Iterable[str] = ()) -> ResolvedIdentity:
        normalized = (tag or "").strip()
        if not normalized:
            return UNMATCHED

        linked = frozenset(linked_group_ids)
        key = f"{normalized.lower()}|{','.join(sorted(linked))}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        result = self._lookup(normalized, linked)
        self.cache.put(key, result)
        if not result.matched:
            logger.debug(f"Unmatched group tag: {normalized!r}")
        return result

    def _lookup(self, tag: str, linked: frozenset) -> ResolvedIdentity:
        exact = self.directory.by_short_name(tag)
        if exact:
            return ResolvedIdentity(True, self._prefer_linked(exact, linked), "short_name")

        folded = self.directory.by_short_name(tag, case_sensitive=False)
        if folded:
            return ResolvedIdentity(True, self._prefer_linked(folded, linked), "short_name_ci")

        alias = self.directory.find_alias(tag)
        if alias is not None:
            return ResolvedIdentity(True, alias.group_id, "alias")

        mapped = self.map_tag(tag)
        if mapped and mapped.lower() != tag.lower():
            by_name = self.directory.by_short_name(mapped, case_sensitive=False)
            if by_name:
                return ResolvedIdentity(True, self._prefer_linked(by_name, linked), "pattern")
            alias = self.directory.find_alias(mapped)
            if alias is not None:
                return ResolvedIdentity(True, alias.group_id, "pattern")

        return UNMATCHED

    @staticmethod
    def _prefer_linked(candidates, linked: frozenset) -> str:
        for group in candidates:
            if group.id in linked:
                return group.id
        return candidates[0].id

    def resolve_many(self, tags: Iterable[str], linked_group_ids: Iterable[str] = ()) -> dict:
        """One resolution per unique tag."""
        linked = list(linked_group_ids)
        return {tag: self.resolve(tag, linked) for tag in dict.fromkeys(tags)}

    def suggest(self, tag: str, *, threshold: float = SUGGESTION_THRESHOLD, limit: int = 5) -> List[Suggestion]:
        return suggest_groups(tag, self.directory.groups(), threshold=threshold, limit=limit)

    def clear_cache(self) -> None:
        self.cache.clear()

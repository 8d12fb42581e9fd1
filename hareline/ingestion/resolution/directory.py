"""
In-memory group directory: canonical groups plus the alias table.

Stands in for the persistence collaborator that owns groups and aliases.
Aliases are case-insensitive and never silently overwritten.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from hareline.ingestion.errors import AliasExistsError, UnknownGroupError
from hareline.schemas.source import AliasEntry, GroupRecord

logger = logging.getLogger(__name__)


class GroupDirectory:
    def __init__(self, groups: Iterable[GroupRecord] = (), aliases: Iterable[AliasEntry] = ()):
        self._groups: Dict[str, GroupRecord] = {}
        self._aliases: Dict[str, AliasEntry] = {}
        for group in groups:
            self.add_group(group)
        for entry in aliases:
            self._store_alias(entry)

    # ----------------------------
    # Groups
    # ----------------------------

    def add_group(self, group: GroupRecord) -> None:
        self._groups[group.id] = group
        for alias in group.aliases:
            key = alias.strip().lower()
            if key and key not in self._aliases:
                self._aliases[key] = AliasEntry(alias=alias.strip(), group_id=group.id)

    def get(self, group_id: str) -> GroupRecord:
        try:
            return self._groups[group_id]
        except KeyError:
            raise UnknownGroupError(f"Unknown group id: {group_id}") from None

    def __contains__(self, group_id: str) -> bool:
        return group_id in self._groups

    def groups(self) -> List[GroupRecord]:
        return list(self._groups.values())

    def by_short_name(self, tag: str, *, case_sensitive: bool = True) -> List[GroupRecord]:
        if case_sensitive:
            return [g for g in self._groups.values() if g.short_name == tag]
        key = tag.lower()
        return [g for g in self._groups.values() if g.short_name.lower() == key]

    # ----------------------------
    # Aliases
    # ----------------------------

    def find_alias(self, tag: str) -> Optional[AliasEntry]:
        return self._aliases.get(tag.strip().lower())

    def aliases(self) -> List[AliasEntry]:
        return list(self._aliases.values())

    def add_alias(self, alias: str, group_id: str) -> AliasEntry:
        """
        Create an alias.

        Raises:
            UnknownGroupError: ``group_id`` is not in the directory.
            AliasExistsError: the alias (case-insensitively) already exists.
        """
        if group_id not in self._groups:
            raise UnknownGroupError(f"Unknown group id: {group_id}")
        entry = AliasEntry(alias=alias.strip(), group_id=group_id)
        self._store_alias(entry)
        logger.info(f"Alias '{entry.alias}' -> {group_id}")
        return entry

    def _store_alias(self, entry: AliasEntry) -> None:
        existing = self._aliases.get(entry.key)
        if existing is not None:
            raise AliasExistsError(existing.alias, existing.group_id)
        self._aliases[entry.key] = entry

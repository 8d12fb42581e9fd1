"""
hareline.ingestion.resolution.actions

Operator actions that change how tags resolve.

Each action clears the resolver cache itself and then auto-resolves the
alerts whose recorded tags are now fully resolvable. For GROUP_MISMATCH
alerts every tag must also resolve to a group linked to the source.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Mapping, Optional

from hareline.ingestion.diagnostics.alerts import AlertBook
from hareline.ingestion.resolution.directory import GroupDirectory
from hareline.ingestion.resolution.resolver import IdentityResolver
from hareline.schemas.alert import Alert, AlertType
from hareline.schemas.source import AliasEntry, SourceDescriptor

logger = logging.getLogger(__name__)


def create_alias(
    alias: str,
    group_id: str,
    *,
    directory: GroupDirectory,
    resolver: IdentityResolver,
    alerts: Optional[AlertBook] = None,
    sources: Optional[Mapping[str, SourceDescriptor]] = None,
    now: Optional[datetime] = None,
) -> AliasEntry:
    """
    Add an alias and re-check open tag alerts.

    Raises:
        AliasExistsError: the alias already exists (never overwritten).
        UnknownGroupError: ``group_id`` is not in the directory.
    """
    entry = directory.add_alias(alias, group_id)
    resolver.clear_cache()
    if alerts is not None:
        auto_resolve_tag_alerts(alerts, resolver, sources or {}, now=now, note=f"Alias '{entry.alias}' created")
    return entry


def link_group_to_source(
    source: SourceDescriptor,
    group_id: str,
    *,
    directory: GroupDirectory,
    resolver: IdentityResolver,
    alerts: Optional[AlertBook] = None,
    now: Optional[datetime] = None,
) -> SourceDescriptor:
    """
    Link ``group_id`` to ``source`` (idempotent).

    Raises:
        UnknownGroupError: ``group_id`` is not in the directory.
    """
    directory.get(group_id)
    if group_id not in source.linked_group_ids:
        source.linked_group_ids.append(group_id)
        logger.info(f"Linked group {group_id} to source {source.id}")
    resolver.clear_cache()
    if alerts is not None:
        auto_resolve_tag_alerts(
            alerts, resolver, {source.id: source}, now=now, note=f"Group {group_id} linked to source"
        )
    return source


def _tags_resolved(alert: Alert, resolver: IdentityResolver, source: Optional[SourceDescriptor]) -> bool:
    tags: Iterable[str] = alert.context.get("tags") or []
    tags = list(tags)
    if not tags:
        return False
    linked = source.linked_group_ids if source is not None else []
    for tag in tags:
        identity = resolver.resolve(tag, linked)
        if not identity.matched:
            return False
        if alert.type == AlertType.GROUP_MISMATCH and identity.canonical_id not in linked:
            return False
    return True


def auto_resolve_tag_alerts(
    alerts: AlertBook,
    resolver: IdentityResolver,
    sources: Mapping[str, SourceDescriptor],
    *,
    now: Optional[datetime] = None,
    note: str = "Auto-resolved: tags now resolvable",
) -> List[Alert]:
    """Resolve active UNMATCHED_TAGS / GROUP_MISMATCH alerts whose tags all resolve."""
    resolved = []
    for alert_type in (AlertType.UNMATCHED_TAGS, AlertType.GROUP_MISMATCH):
        for alert in alerts.active(alert_type):
            source = sources.get(alert.source_id)
            if alert_type == AlertType.GROUP_MISMATCH and source is None:
                continue
            if _tags_resolved(alert, resolver, source):
                alert.resolve(f"Auto-resolved: {note}", now=now)
                resolved.append(alert)
    if resolved:
        logger.info(f"Auto-resolved {len(resolved)} alert(s)")
    return resolved

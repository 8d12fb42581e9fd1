"""
In-memory run history per source.

Stands in for the persistence collaborator: keeps the ScrapeLogs the
orchestrator produced and the event fingerprints already accepted, so
later runs can count created/updated/skipped events and compare
structure hashes run-over-run.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Dict, List, Optional, Set, Tuple

from hareline.schemas.scrape_log import ScrapeLog

EventKey = Tuple[str, str]  # (canonical group id, date)


class ScrapeHistory:
    def __init__(self, max_logs_per_source: int = 50):
        self.max_logs_per_source = max_logs_per_source
        self._logs: Dict[str, List[ScrapeLog]] = defaultdict(list)
        self._fingerprints: Dict[str, Set[str]] = defaultdict(set)
        self._events: Dict[str, Dict[EventKey, str]] = defaultdict(dict)
        self._lock = threading.Lock()

    def logs(self, source_id: str) -> List[ScrapeLog]:
        """Oldest first."""
        return list(self._logs.get(source_id, []))

    def recent_successful(self, source_id: str, limit: int = 10) -> List[ScrapeLog]:
        """Newest first."""
        return [log for log in reversed(self._logs.get(source_id, [])) if log.succeeded][:limit]

    def previous_structure_hash(self, source_id: str) -> Optional[str]:
        for log in self.recent_successful(source_id):
            if log.structure_hash:
                return log.structure_hash
        return None

    def record(self, log: ScrapeLog) -> None:
        with self._lock:
            logs = self._logs[log.source_id]
            logs.append(log)
            del logs[: -self.max_logs_per_source]

    def accept(self, source_id: str, key: EventKey, fingerprint: str) -> str:
        """Store an accepted event; returns "created", "updated" or "skipped"."""
        with self._lock:
            if fingerprint in self._fingerprints[source_id]:
                return "skipped"
            self._fingerprints[source_id].add(fingerprint)
            previous = self._events[source_id].get(key)
            self._events[source_id][key] = fingerprint
            return "updated" if previous is not None else "created"

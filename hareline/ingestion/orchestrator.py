"""
Scrape Orchestrator.

Drives one source end-to-end: validate config, fetch through the source's
adapter, reconcile the batch, resolve group tags, diagnose (fill rates,
structure drift, alerts, health), and emit a ``ScrapeLog``.

Every source runs inside its own failure boundary: an exception that
escapes an adapter becomes a FAILED log for that source only.
"""

from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from hareline.ingestion.adapters.base_adapter import FetchOptions, ScrapeResult
from hareline.ingestion.adapters.registry import AdapterRegistry
from hareline.ingestion.config_validation import validate_source
from hareline.ingestion.diagnostics.alerts import AlertBook
from hareline.ingestion.diagnostics.fill_rates import FieldFillRates, compute_fill_rates
from hareline.ingestion.diagnostics.health import (
    check_group_mismatch,
    check_structure_change,
    check_unmatched_tags,
    classify_health,
)
from hareline.ingestion.history import ScrapeHistory
from hareline.ingestion.reconcile import event_fingerprint, reconcile_batch
from hareline.ingestion.resolution.resolver import IdentityResolver, ResolvedIdentity
from hareline.monitoring.logging import with_context
from hareline.monitoring.metrics import MetricsRegistry
from hareline.schemas.alert import Alert
from hareline.schemas.event import PreResolutionEvent
from hareline.schemas.scrape_log import HealthStatus, ScrapeLog, ScrapeStatus
from hareline.schemas.source import SourceDescriptor

logger = logging.getLogger(__name__)


@dataclass
class ResolvedEvent:
    """An accepted event together with its canonical group id."""
    event: PreResolutionEvent
    group_id: str
    fingerprint: str

    def to_dict(self) -> Dict[str, Any]:
        return {**self.event.to_wire(), "groupId": self.group_id, "fingerprint": self.fingerprint}


@dataclass
class SourceRun:
    """Everything one source's run produced."""
    source_id: str
    run_id: str
    result: ScrapeResult
    log: Optional[ScrapeLog] = None
    accepted: List[ResolvedEvent] = field(default_factory=list)
    identities: Dict[str, ResolvedIdentity] = field(default_factory=dict)
    alerts: List[Alert] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.log is not None and self.log.succeeded

    def to_dict(self) -> Dict[str, Any]:
        return {
            "runId": self.run_id,
            "scrapeLog": self.log.model_dump(mode="json", by_alias=True),
            "events": [e.to_dict() for e in self.accepted],
            "alerts": [a.model_dump(mode="json", by_alias=True) for a in self.alerts],
        }


@dataclass
class PreviewResult:
    """What a candidate configuration would extract, with no side effects."""
    source_id: str
    config_errors: List[str] = field(default_factory=list)
    result: Optional[ScrapeResult] = None
    fill_rates: FieldFillRates = field(default_factory=FieldFillRates)
    unmatched_tags: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.config_errors

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"sourceId": self.source_id, "ok": self.ok}
        if self.config_errors:
            out["configErrors"] = list(self.config_errors)
            return out
        out.update(self.result.to_dict() if self.result else {})
        out["fillRates"] = self.fill_rates.to_wire()
        out["unmatchedTags"] = list(self.unmatched_tags)
        return out


class ScrapeOrchestrator:
    """
    Coordinates scrapes across sources.

    Responsibilities:
    - Pick the adapter for each source and run it inside a failure boundary
    - Resolve group tags and apply the source's group links
    - Track run history, fill rates, structure drift and alerts
    - Run many sources concurrently
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        resolver: IdentityResolver,
        *,
        alerts: Optional[AlertBook] = None,
        history: Optional[ScrapeHistory] = None,
        days: int = 90,
        max_workers: int = 4,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.registry = registry
        self.resolver = resolver
        self.alerts = alerts if alerts is not None else AlertBook()
        self.history = history if history is not None else ScrapeHistory()
        self.days = days
        self.max_workers = max_workers
        self.clock = clock

    # ========================================================================
    # SINGLE SOURCE
    # ========================================================================

    def scrape(
        self,
        source: SourceDescriptor,
        *,
        options: Optional[FetchOptions] = None,
        run_id: Optional[str] = None,
    ) -> SourceRun:
        run_id = run_id or uuid.uuid4().hex[:12]
        options = options or FetchOptions(days=self.days)
        metrics = MetricsRegistry()
        started = self.clock()

        def log_stage(stage: str, message: str, level: int = logging.INFO) -> None:
            with_context(logger, run_id=run_id, source_id=source.id, stage=stage).log(level, message)

        # validate: nothing touches the network on a bad config
        with metrics.time("validate"):
            config_errors = validate_source(source)
        if config_errors:
            log_stage("validate", f"Config invalid ({len(config_errors)} problem(s))", logging.WARNING)
            result = ScrapeResult(errors=[f"Config: {e}" for e in config_errors])
            self._count_stage(metrics, "validate", 0, len(config_errors))
            return self._failed(source, run_id, started, result, metrics)
        log_stage("validate", "Config valid")

        # fetch
        try:
            with metrics.time("fetch"):
                adapter = self.registry.get_adapter(source)
                result = adapter.fetch(source, options)
        except Exception as e:
            logger.error(f"Adapter crashed for {source.id}", exc_info=True)
            log_stage("fetch", f"Adapter failed: {e}", logging.ERROR)
            result = ScrapeResult(errors=[f"Adapter failed: {e}"])
            self._count_stage(metrics, "fetch", 0, 1)
            return self._failed(source, run_id, started, result, metrics)
        self._count_stage(metrics, "fetch", len(result.events), len(result.errors))
        log_stage(
            "fetch",
            f"{getattr(adapter, 'name', type(adapter).__name__)}: {len(result.events)} events, {len(result.errors)} errors",
        )

        # reconcile
        with metrics.time("reconcile"):
            outcome = reconcile_batch(result.events)
            for merge in outcome.merge_errors:
                result.add_merge_error(
                    merge.reason, group_tag=merge.group_tag, date=merge.date, fingerprint=merge.fingerprint
                )
        self._count_stage(metrics, "reconcile", len(outcome.events), len(outcome.merge_errors))
        metrics.inc("duplicates", outcome.skipped)
        log_stage("reconcile", f"{len(outcome.events)} unique, {outcome.skipped} duplicate")

        # resolve
        with metrics.time("resolve"):
            run = SourceRun(source_id=source.id, run_id=run_id, result=result)
            unmatched, blocked, counts = self._resolve(source, outcome.events, run)
        self._count_stage(metrics, "resolve", len(run.accepted), len(unmatched) + len(blocked))
        for outcome_name, n in counts.items():
            metrics.inc("events_written", n, labels={"outcome": outcome_name})
        log_stage(
            "resolve",
            f"{len(run.accepted)} accepted, {len(unmatched)} unmatched tag(s), {len(blocked)} blocked tag(s)",
        )

        # diagnose
        with metrics.time("diagnose"):
            fill_rates = compute_fill_rates(outcome.events)
            for field_name, rate in fill_rates.as_dict().items():
                metrics.set_gauge("fill_rate", rate, labels={"field": field_name})
            exhausted = not result.events and bool(result.error_details.fetch)
            status = ScrapeStatus.FAILED if exhausted else ScrapeStatus.SUCCESS
            if status == ScrapeStatus.SUCCESS:
                run.alerts = self._raise_alerts(source, result, unmatched, blocked, len(outcome.events))

        self._export_metrics(result, metrics)
        run.log = self._build_log(
            source,
            status,
            started,
            result,
            events_found=len(result.events),
            created=counts["created"],
            updated=counts["updated"],
            skipped=outcome.skipped + counts["skipped"],
            fill_rates=fill_rates,
            unmatched=unmatched,
            blocked=blocked,
        )
        self.history.record(run.log)
        run.log.health = classify_health(
            self.history.logs(source.id), self.clock(), source.expected_cadence_hours
        )
        log_stage("diagnose", f"status={status.value} health={run.log.health.value}")
        return run

    def _resolve(self, source: SourceDescriptor, events: Sequence[PreResolutionEvent], run: SourceRun):
        linked = list(source.linked_group_ids)
        run.identities = self.resolver.resolve_many((e.group_tag for e in events), linked)
        unmatched: List[str] = []
        blocked: List[str] = []
        counts = {"created": 0, "updated": 0, "skipped": 0}

        for event in events:
            identity = run.identities[event.group_tag]
            if not identity.matched:
                if event.group_tag not in unmatched:
                    unmatched.append(event.group_tag)
                counts["skipped"] += 1
                continue
            # a source with links only accepts events for its linked groups
            if linked and identity.canonical_id not in linked:
                if event.group_tag not in blocked:
                    blocked.append(event.group_tag)
                counts["skipped"] += 1
                continue
            fingerprint = event_fingerprint(event)
            outcome = self.history.accept(source.id, (identity.canonical_id, event.date), fingerprint)
            counts[outcome] += 1
            run.accepted.append(ResolvedEvent(event, identity.canonical_id, fingerprint))
        return unmatched, blocked, counts

    def _raise_alerts(
        self,
        source: SourceDescriptor,
        result: ScrapeResult,
        unmatched: List[str],
        blocked: List[str],
        event_count: int,
    ) -> List[Alert]:
        recent = self.history.recent_successful(source.id)
        previous_count = recent[0].events_found if recent else None
        now = self.clock()
        candidates = [
            check_structure_change(
                source.id,
                self.history.previous_structure_hash(source.id),
                result.structure_hash,
                previous_event_count=previous_count,
                current_event_count=event_count,
                book=self.alerts,
                now=now,
            ),
            check_unmatched_tags(source.id, unmatched, recent),
            check_group_mismatch(source.id, blocked),
        ]
        raised = []
        for candidate in candidates:
            if candidate is None:
                continue
            stored = self.alerts.raise_alert(candidate, now=now)
            if stored is not None:
                raised.append(stored)
        return raised

    @staticmethod
    def _count_stage(metrics: MetricsRegistry, stage: str, events: int, errors: int) -> None:
        metrics.inc("events", events, labels={"stage": stage})
        metrics.inc("errors", errors, labels={"stage": stage})

    @staticmethod
    def _export_metrics(result: ScrapeResult, metrics: MetricsRegistry) -> None:
        exported = metrics.as_dict()
        result.diagnostic_context["timings"] = metrics.timings_ms()
        result.diagnostic_context["metrics"] = {"counters": exported["counters"], "gauges": exported["gauges"]}

    def _failed(
        self,
        source: SourceDescriptor,
        run_id: str,
        started: datetime,
        result: ScrapeResult,
        metrics: MetricsRegistry,
    ) -> SourceRun:
        self._export_metrics(result, metrics)
        log = self._build_log(source, ScrapeStatus.FAILED, started, result)
        self.history.record(log)
        log.health = classify_health(self.history.logs(source.id), self.clock(), source.expected_cadence_hours)
        return SourceRun(source_id=source.id, run_id=run_id, result=result, log=log)

    def _build_log(
        self,
        source: SourceDescriptor,
        status: ScrapeStatus,
        started: datetime,
        result: ScrapeResult,
        *,
        events_found: int = 0,
        created: int = 0,
        updated: int = 0,
        skipped: int = 0,
        fill_rates: Optional[FieldFillRates] = None,
        unmatched: Sequence[str] = (),
        blocked: Sequence[str] = (),
    ) -> ScrapeLog:
        completed = self.clock()
        return ScrapeLog(
            source_id=source.id,
            status=status,
            started_at=started,
            completed_at=completed,
            duration_ms=max(0, int((completed - started).total_seconds() * 1000)),
            events_found=events_found,
            events_created=created,
            events_updated=updated,
            events_skipped=skipped,
            fill_rates=(fill_rates or FieldFillRates()).to_wire(),
            structure_hash=result.structure_hash,
            unmatched_tags=list(unmatched),
            blocked_tags=list(blocked),
            errors=list(result.errors),
            error_details=result.error_details.to_dict() if result.error_details.has_any() else None,
            diagnostic_context=dict(result.diagnostic_context),
            health=HealthStatus.UNKNOWN,
        )

    # ========================================================================
    # MANY SOURCES
    # ========================================================================

    def scrape_many(
        self,
        sources: Sequence[SourceDescriptor],
        *,
        days: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> List[SourceRun]:
        """Scrape enabled sources concurrently; results keep the input order."""
        run_id = uuid.uuid4().hex[:12]
        enabled = [s for s in sources if s.enabled]
        logger.info(f"Run {run_id}: scraping {len(enabled)} source(s) with {self.max_workers} worker(s)")

        def one(source: SourceDescriptor) -> SourceRun:
            options = FetchOptions(days=days or self.days, now=self.clock(), cancel=cancel)
            try:
                return self.scrape(source, options=options, run_id=run_id)
            except Exception as e:
                logger.error(f"Scrape failed for {source.id}", exc_info=True)
                result = ScrapeResult(errors=[f"Scrape failed: {e}"])
                return self._failed(source, run_id, self.clock(), result, MetricsRegistry())

        with ThreadPoolExecutor(max_workers=max(1, self.max_workers)) as pool:
            runs = list(pool.map(one, enabled))

        failed = sum(1 for r in runs if not r.succeeded)
        logger.info(f"Run {run_id}: {len(runs) - failed} succeeded, {failed} failed")
        return runs

    # ========================================================================
    # PREVIEW
    # ========================================================================

    def preview(self, source: SourceDescriptor, *, options: Optional[FetchOptions] = None) -> PreviewResult:
        """Validate, fetch and extract without touching history or alerts."""
        preview = PreviewResult(source_id=source.id)
        preview.config_errors = validate_source(source)
        if preview.config_errors:
            return preview
        options = options or FetchOptions(days=self.days)
        try:
            preview.result = self.registry.get_adapter(source).fetch(source, options)
        except Exception as e:
            logger.error(f"Preview failed for {source.id}", exc_info=True)
            preview.result = ScrapeResult(errors=[f"Adapter failed: {e}"])
            return preview
        preview.fill_rates = compute_fill_rates(preview.result.events)
        identities = self.resolver.resolve_many(
            (e.group_tag for e in preview.result.events), source.linked_group_ids
        )
        preview.unmatched_tags = [tag for tag, identity in identities.items() if not identity.matched]
        return preview

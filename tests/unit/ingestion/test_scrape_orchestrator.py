"""
Unit tests for the scrape orchestrator: per-source runs, batch
reconciliation, group links, alerts, concurrency and preview.
"""

import pytest

from hareline.ingestion.adapters.base_adapter import ScrapeResult
from hareline.ingestion.adapters.registry import AdapterRegistry, for_type
from hareline.ingestion.diagnostics.alerts import AlertBook
from hareline.ingestion.history import ScrapeHistory
from hareline.ingestion.resolution import GroupDirectory, IdentityResolver
from hareline.ingestion.orchestrator import ScrapeOrchestrator
from hareline.schemas.alert import AlertType
from hareline.schemas.scrape_log import HealthStatus, ScrapeStatus
from hareline.schemas.source import SourceType


# =============================================================================
# FIXTURES
# =============================================================================


class StubAdapter:
    """Returns a canned ScrapeResult, or raises when told to."""

    name = "stub"

    def __init__(self, script):
        self.script = script

    def fetch(self, source, options=None):
        outcome = self.script[source.id]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome()


@pytest.fixture
def script():
    """Per-source factories for the stub adapter's results."""
    return {}


@pytest.fixture
def orchestrator(fake_http, groups, script, now):
    registry = AdapterRegistry(fake_http)
    registry.register("stub", for_type(SourceType.ICAL_FEED), lambda http: StubAdapter(script))
    resolver = IdentityResolver(GroupDirectory(groups))
    return ScrapeOrchestrator(
        registry, resolver, alerts=AlertBook(), history=ScrapeHistory(), max_workers=2, clock=lambda: now
    )


@pytest.fixture
def ical_source(make_source):
    """Return a function that builds a valid ICAL_FEED source."""

    def _ical_source(source_id="feed", linked=None, **kwargs):
        return make_source(
            "ICAL_FEED",
            url=f"https://{source_id}.example/feed.ics",
            config={"defaultGroupTag": "EWH3"},
            source_id=source_id,
            linked=linked,
            **kwargs,
        )

    return _ical_source


def _result(events, *, structure_hash=None, fetch_error=None):
    def build():
        result = ScrapeResult(events=list(events), structure_hash=structure_hash)
        if fetch_error:
            result.add_fetch_error("https://feed.example/", fetch_error, 500)
        return result

    return build


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestScrape:
    """Tests for ScrapeOrchestrator.scrape."""

    def test_success_counts_and_unmatched(self, orchestrator, script, ical_source, make_event):
        """Should drop duplicates, resolve tags and report unmatched ones."""
        ewh3 = make_event(group_tag="EWH3")
        script["feed"] = _result([ewh3, ewh3, make_event(group_tag="NOPE"), make_event(group_tag="WH4")])

        run = orchestrator.scrape(ical_source())

        assert run.succeeded
        log = run.log
        assert log.events_found == 4
        assert log.events_created == 2
        assert log.events_skipped == 2
        assert log.unmatched_tags == ["NOPE"]
        assert [e.group_id for e in run.accepted] == ["ewh3", "wh4"]
        assert log.health == HealthStatus.HEALTHY
        assert [a.type for a in run.alerts] == [AlertType.UNMATCHED_TAGS]
        assert set(log.diagnostic_context["timings"]) >= {"validate", "fetch", "resolve"}

    def test_stage_metrics_exported(self, orchestrator, script, ical_source, make_event):
        """Should count events and errors per stage and export fill-rate gauges."""
        ewh3 = make_event(group_tag="EWH3")
        script["feed"] = _result([ewh3, ewh3, make_event(group_tag="NOPE"), make_event(group_tag="WH4")])

        run = orchestrator.scrape(ical_source())

        metrics = run.log.diagnostic_context["metrics"]
        counters = metrics["counters"]
        assert counters["events|stage=fetch"] == 4.0
        assert counters["errors|stage=fetch"] == 0.0
        assert counters["events|stage=reconcile"] == 3.0
        assert counters["duplicates"] == 1.0
        assert counters["events|stage=resolve"] == 2.0
        assert counters["errors|stage=resolve"] == 1.0
        assert counters["events_written|outcome=created"] == 2.0
        assert "fill_rate|field=title" in metrics["gauges"]

    def test_crash_counts_fetch_error(self, orchestrator, script, ical_source):
        """Should count a crashed adapter as one fetch-stage error."""
        script["feed"] = RuntimeError("boom")
        run = orchestrator.scrape(ical_source())
        assert run.log.diagnostic_context["metrics"]["counters"]["errors|stage=fetch"] == 1.0

    def test_second_run_skips_known_events(self, orchestrator, script, ical_source, make_event):
        """Should count unchanged events as skipped and not re-alert on known tags."""
        script["feed"] = _result([make_event(group_tag="EWH3"), make_event(group_tag="NOPE")])
        orchestrator.scrape(ical_source())
        second = orchestrator.scrape(ical_source())

        assert second.log.events_created == 0
        assert second.log.events_skipped == 2
        assert second.alerts == []

    def test_changed_event_is_updated(self, orchestrator, script, ical_source, make_event):
        """Should count a changed event on a known group and date as updated."""
        script["feed"] = _result([make_event(title="Old title")])
        orchestrator.scrape(ical_source())
        script["feed"] = _result([make_event(title="New title")])
        assert orchestrator.scrape(ical_source()).log.events_updated == 1

    def test_linked_source_blocks_other_groups(self, orchestrator, script, ical_source, make_event):
        """Should only accept events for linked groups and raise a mismatch alert."""
        script["feed"] = _result([make_event(group_tag="EWH3"), make_event(group_tag="WH4")])
        run = orchestrator.scrape(ical_source(linked=["ewh3"]))

        assert [e.group_id for e in run.accepted] == ["ewh3"]
        assert run.log.blocked_tags == ["WH4"]
        assert [a.type for a in run.alerts] == [AlertType.GROUP_MISMATCH]

    def test_run_number_conflict_is_a_merge_error(self, orchestrator, script, ical_source, make_event):
        """Should keep both events and record a merge error."""
        script["feed"] = _result([make_event(run_number=1506), make_event(run_number=1507)])
        run = orchestrator.scrape(ical_source())
        assert len(run.accepted) == 2
        assert run.log.error_details["merge"][0]["groupTag"] == "EWH3"

    def test_invalid_config_fails_without_fetch(self, orchestrator, script, make_source):
        """Should fail a bad config before any adapter runs."""
        source = make_source("ICAL_FEED", url="", source_id="bad")
        run = orchestrator.scrape(source)
        assert not run.succeeded
        assert run.log.status == ScrapeStatus.FAILED
        assert all(e.startswith("Config: ") for e in run.log.errors)

    def test_adapter_crash_is_contained(self, orchestrator, script, ical_source):
        """Should turn an escaping exception into a FAILED log."""
        script["feed"] = RuntimeError("boom")
        run = orchestrator.scrape(ical_source())
        assert run.log.status == ScrapeStatus.FAILED
        assert run.log.errors == ["Adapter failed: boom"]
        assert run.log.health == HealthStatus.STALE

    def test_fetch_errors_without_events_fail(self, orchestrator, script, ical_source):
        """Should mark a run FAILED when nothing came back and fetching failed."""
        script["feed"] = _result([], fetch_error="HTTP 500")
        run = orchestrator.scrape(ical_source())
        assert run.log.status == ScrapeStatus.FAILED
        assert run.alerts == []

    def test_partial_success_keeps_events(self, orchestrator, script, ical_source, make_event):
        """Should succeed when some events came back despite errors."""
        script["feed"] = _result([make_event()], fetch_error="HTTP 500 on page 2")
        run = orchestrator.scrape(ical_source())
        assert run.succeeded
        assert run.log.errors == ["HTTP 500 on page 2"]

    def test_structure_change_alert(self, orchestrator, script, ical_source, make_event):
        """Should alert when the page skeleton hash changes between runs."""
        script["feed"] = _result([make_event()], structure_hash="a" * 64)
        orchestrator.scrape(ical_source())
        script["feed"] = _result([make_event()], structure_hash="b" * 64)
        run = orchestrator.scrape(ical_source())
        assert [a.type for a in run.alerts] == [AlertType.STRUCTURE_CHANGE]

    def test_to_dict_wire_shape(self, orchestrator, script, ical_source, make_event):
        """Should serialize with camelCase keys."""
        script["feed"] = _result([make_event(title="Trail")])
        out = orchestrator.scrape(ical_source(), run_id="run-1").to_dict()
        assert out["runId"] == "run-1"
        assert out["scrapeLog"]["sourceId"] == "feed"
        assert out["events"][0]["groupId"] == "ewh3"
        assert out["events"][0]["groupTag"] == "EWH3"


class TestScrapeMany:
    """Tests for ScrapeOrchestrator.scrape_many."""

    def test_order_isolation_and_disabled(self, orchestrator, script, ical_source, make_event):
        """Should keep input order, skip disabled sources and isolate failures."""
        script["a"] = _result([make_event()])
        script["b"] = RuntimeError("boom")
        script["c"] = _result([make_event(group_tag="DCH4")])
        sources = [ical_source("a"), ical_source("b"), ical_source("off", enabled=False), ical_source("c")]

        runs = orchestrator.scrape_many(sources)

        assert [r.source_id for r in runs] == ["a", "b", "c"]
        assert [r.succeeded for r in runs] == [True, False, True]
        assert len({r.run_id for r in runs}) == 1


class TestPreview:
    """Tests for ScrapeOrchestrator.preview."""

    def test_preview_has_no_side_effects(self, orchestrator, script, ical_source, make_event):
        """Should extract and resolve without touching history or alerts."""
        script["feed"] = _result([make_event(title="Trail"), make_event(group_tag="NOPE")])
        preview = orchestrator.preview(ical_source())

        assert preview.ok
        assert preview.unmatched_tags == ["NOPE"]
        assert preview.fill_rates.title == 50
        assert orchestrator.history.logs("feed") == []
        assert orchestrator.alerts.all() == []
        assert preview.to_dict()["fillRates"]["title"] == 50

    def test_preview_reports_config_errors(self, orchestrator, make_source):
        """Should return config errors instead of fetching."""
        preview = orchestrator.preview(make_source("ICAL_FEED", url=""))
        assert not preview.ok
        assert preview.to_dict()["configErrors"]

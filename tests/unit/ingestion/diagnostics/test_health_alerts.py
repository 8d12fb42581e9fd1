"""
Unit tests for fill rates, health classification and the alert book.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from hareline.ingestion.diagnostics.alerts import AlertBook
from hareline.ingestion.diagnostics.fill_rates import FieldFillRates, compute_fill_rates
from hareline.ingestion.diagnostics.health import (
    check_group_mismatch,
    check_structure_change,
    check_unmatched_tags,
    classify_health,
    populated_fields,
)
from hareline.ingestion.errors import InvalidAlertTransition
from hareline.schemas.alert import Alert, AlertSeverity, AlertStatus, AlertType
from hareline.schemas.scrape_log import HealthStatus, ScrapeLog, ScrapeStatus


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def make_log(now):
    """Return a function that builds ScrapeLog objects completed ``hours_ago``."""

    def _make_log(
        status=ScrapeStatus.SUCCESS,
        hours_ago: float = 1,
        events_found: int = 10,
        fill_rates=None,
        **kwargs,
    ) -> ScrapeLog:
        done = now - timedelta(hours=hours_ago)
        return ScrapeLog(
            source_id=kwargs.pop("source_id", "src"),
            status=status,
            started_at=done - timedelta(seconds=5),
            completed_at=done,
            events_found=events_found,
            fill_rates=fill_rates if fill_rates is not None else {"title": 100, "location": 100},
            **kwargs,
        )

    return _make_log


def _alert(alert_type=AlertType.UNMATCHED_TAGS, **kwargs) -> Alert:
    return Alert(source_id=kwargs.pop("source_id", "src"), type=alert_type, title=kwargs.pop("title", "t"), **kwargs)


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestFillRates:
    """Tests for compute_fill_rates."""

    def test_empty_batch(self):
        """Should report zeros for an empty batch."""
        assert compute_fill_rates([]) == FieldFillRates()

    def test_percentages(self, make_event):
        """Should round the share of events carrying each field."""
        events = [
            make_event(title="A", location="Pub", run_number=1),
            make_event(title="B"),
            make_event(title="C", people="Alice", start_time="18:45"),
        ]
        rates = compute_fill_rates(events)
        assert rates.title == 100
        assert rates.location == 33
        assert rates.people == 33
        assert rates.start_time == 33
        assert rates.run_number == 33

    def test_wire_shape_and_average(self):
        """Should use camelCase keys on the wire and average chosen fields."""
        rates = FieldFillRates(title=100, location=50, start_time=80)
        assert rates.to_wire()["startTime"] == 80
        assert rates.average(["title", "location"]) == 75
        assert rates.average([]) == 0.0


class TestClassifyHealth:
    """Tests for classify_health."""

    def test_unknown_without_history(self, now):
        """Should be UNKNOWN when the source never ran."""
        assert classify_health([], now, 24) == HealthStatus.UNKNOWN

    def test_stale_when_only_failures(self, make_log, now):
        """Should be STALE when no run ever succeeded."""
        assert classify_health([make_log(status=ScrapeStatus.FAILED)], now, 24) == HealthStatus.STALE

    def test_stale_when_overdue(self, make_log, now):
        """Should be STALE when the latest success is older than the cadence."""
        assert classify_health([make_log(hours_ago=30)], now, 24) == HealthStatus.STALE

    def test_failing_on_zero_events(self, make_log, now):
        """Should be FAILING when the latest success found nothing."""
        history = [make_log(hours_ago=5), make_log(hours_ago=1, events_found=0, fill_rates={})]
        assert classify_health(history, now, 24) == HealthStatus.FAILING

    def test_healthy(self, make_log, now):
        """Should be HEALTHY above 90 on the populated fields."""
        assert classify_health([make_log()], now, 24) == HealthStatus.HEALTHY

    def test_degraded_and_failing_by_score(self, make_log, now):
        """Should grade by the average over fields the source has ever populated."""
        first = make_log(hours_ago=10, fill_rates={"title": 100, "location": 100})
        degraded = make_log(hours_ago=1, fill_rates={"title": 100, "location": 60})
        failing = make_log(hours_ago=1, fill_rates={"title": 100, "location": 20})
        assert classify_health([first, degraded], now, 24) == HealthStatus.DEGRADED
        assert classify_health([first, failing], now, 24) == HealthStatus.FAILING

    def test_populated_fields_ignore_failures(self, make_log):
        """Should collect fields only from successful runs."""
        history = [
            make_log(fill_rates={"title": 100}),
            make_log(status=ScrapeStatus.FAILED, fill_rates={"people": 100}),
        ]
        assert populated_fields(history) == ["title"]


class TestAlertChecks:
    """Tests for the post-scrape alert checks."""

    def test_structure_change_info(self):
        """Should raise an INFO alert when only the hash changed."""
        alert = check_structure_change("src", "a" * 64, "b" * 64, previous_event_count=10, current_event_count=10)
        assert alert.type == AlertType.STRUCTURE_CHANGE
        assert alert.severity == AlertSeverity.INFO

    def test_structure_change_warning_on_drop(self):
        """Should escalate to WARNING when events dropped by more than a fifth."""
        alert = check_structure_change("src", "a" * 64, "b" * 64, previous_event_count=10, current_event_count=7)
        assert alert.severity == AlertSeverity.WARNING

    def test_stable_hash_resolves_open_alert(self, now):
        """Should auto-resolve an open STRUCTURE_CHANGE alert when the hash is stable."""
        book = AlertBook([_alert(AlertType.STRUCTURE_CHANGE)])
        assert check_structure_change("src", "a" * 64, "a" * 64, book=book, now=now) is None
        (alert,) = book.all()
        assert alert.status == AlertStatus.RESOLVED
        assert alert.resolved_at == now

    def test_no_hash_no_alert(self):
        """Should not compare when either hash is missing."""
        assert check_structure_change("src", None, "b" * 64) is None

    def test_unmatched_reports_only_new_tags(self, make_log):
        """Should skip tags a recent run already reported."""
        recent = [make_log(unmatched_tags=["OLD"])]
        alert = check_unmatched_tags("src", ["OLD", "NEW", "NEW"], recent)
        assert alert.context["tags"] == ["NEW"]
        assert alert.severity == AlertSeverity.INFO
        assert check_unmatched_tags("src", ["OLD"], recent) is None

    def test_group_mismatch(self):
        """Should raise a WARNING listing blocked tags once each."""
        alert = check_group_mismatch("src", ["WH4", "WH4"])
        assert alert.context["tags"] == ["WH4"]
        assert alert.severity == AlertSeverity.WARNING
        assert check_group_mismatch("src", []) is None


class TestAlertBook:
    """Tests for AlertBook de-duplication and snoozing."""

    def test_new_alert_is_stored(self, now):
        """Should store a first alert of a type."""
        book = AlertBook()
        stored = book.raise_alert(_alert(), now=now)
        assert book.all() == [stored]

    def test_active_alert_is_updated_in_place(self, now):
        """Should refresh the existing open alert instead of adding another."""
        book = AlertBook()
        first = book.raise_alert(_alert(title="one"), now=now)
        second = book.raise_alert(_alert(title="two"), now=now)
        assert second.id == first.id
        assert len(book.all()) == 1
        assert first.title == "two"

    def test_active_snooze_swallows_candidate(self, now):
        """Should return None while a snooze is active."""
        existing = _alert().acknowledge().snooze(4, now=now)
        book = AlertBook([existing])
        assert book.raise_alert(_alert(), now=now + timedelta(hours=1)) is None

    def test_expired_snooze_reopens(self, now):
        """Should reopen an expired snooze with the new details."""
        existing = _alert(title="old").acknowledge().snooze(1, now=now)
        book = AlertBook([existing])
        stored = book.raise_alert(_alert(title="fresh"), now=now + timedelta(hours=2))
        assert stored.id == existing.id
        assert stored.status == AlertStatus.OPEN
        assert stored.title == "fresh"

    def test_resolved_alert_allows_new_one(self, now):
        """Should open a new alert once the previous one was resolved."""
        old = _alert().resolve("done", now=now)
        book = AlertBook([old])
        stored = book.raise_alert(_alert(), now=now)
        assert stored.id != old.id
        assert len(book.active()) == 1

    def test_concurrent_raise_and_read(self, now):
        """Should keep reads consistent while other threads add alerts."""
        book = AlertBook()
        sources = [f"src-{i}" for i in range(200)]

        def writer(source_id):
            book.raise_alert(_alert(source_id=source_id), now=now)
            book.raise_alert(_alert(AlertType.STRUCTURE_CHANGE, source_id=source_id), now=now)

        def reader(source_id):
            book.active()
            book.for_source(source_id)
            book.resolve_type(source_id, AlertType.STRUCTURE_CHANGE, "layout restored", now=now)

        with ThreadPoolExecutor(max_workers=8) as pool:
            futures = [pool.submit(writer, s) for s in sources]
            futures += [pool.submit(reader, s) for s in sources]
            for future in futures:
                future.result()

        assert len(book.active(AlertType.UNMATCHED_TAGS)) == len(sources)
        assert len(book.all()) <= 2 * len(sources)


class TestAlertTransitions:
    """Tests for the Alert state machine."""

    def test_acknowledge_then_resolve(self, now):
        """Should walk OPEN -> ACKNOWLEDGED -> RESOLVED."""
        alert = _alert().acknowledge().resolve("fixed", now=now)
        assert alert.status == AlertStatus.RESOLVED
        assert alert.resolution_note == "fixed"

    def test_snooze_requires_acknowledge(self):
        """Should refuse to snooze an OPEN alert."""
        with pytest.raises(InvalidAlertTransition):
            _alert().snooze(1)

    def test_cannot_resolve_twice(self):
        """Should refuse to resolve a resolved alert."""
        alert = _alert().resolve()
        with pytest.raises(InvalidAlertTransition):
            alert.resolve()

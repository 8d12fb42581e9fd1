"""
Unit tests for structured logging and the metrics registry.
"""

import io
import json
import logging

from hareline.monitoring.logging import LoggingOptions, setup_logging, with_context
from hareline.monitoring.metrics import MetricsRegistry


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestLogging:
    """Tests for setup_logging and with_context."""

    def test_json_logs_carry_context(self):
        """Should emit one JSON object per record with context fields."""
        stream = io.StringIO()
        logger = setup_logging(LoggingOptions(json_logs=True, stream=stream))
        with_context(logger, run_id="r1", source_id="src", stage="fetch").info("hello %s", "world")
        record = json.loads(stream.getvalue().strip())
        assert record["msg"] == "hello world"
        assert record["run_id"] == "r1"
        assert record["source_id"] == "src"
        assert record["stage"] == "fetch"

    def test_text_logs(self):
        """Should render context as a bracketed prefix."""
        stream = io.StringIO()
        logger = setup_logging(LoggingOptions(stream=stream))
        with_context(logger, source_id="src").warning("careful")
        assert stream.getvalue().strip() == "WARNING hareline [source=src] careful"

    def test_setup_is_idempotent(self):
        """Should not stack handlers on repeated setup."""
        setup_logging(LoggingOptions(stream=io.StringIO()))
        logger = setup_logging(LoggingOptions(stream=io.StringIO(), level="debug"))
        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG
        assert logger.propagate is False


class TestMetricsRegistry:
    """Tests for MetricsRegistry."""

    def test_counters_and_gauges(self):
        """Should key metrics by name and sorted labels."""
        metrics = MetricsRegistry()
        metrics.inc("events", labels={"source": "a"})
        metrics.inc("events", 2, labels={"source": "a"})
        metrics.set_gauge("fill", 75)
        out = metrics.as_dict()
        assert out["counters"] == {"events|source=a": 3.0}
        assert out["gauges"] == {"fill": 75.0}

    def test_timers(self):
        """Should aggregate observations and total them in milliseconds."""
        metrics = MetricsRegistry()
        metrics.observe("fetch", 10.4)
        metrics.observe("fetch", 20.0)
        with metrics.time("parse"):
            pass
        assert metrics.timers["fetch"]["count"] == 2.0
        assert metrics.timers["fetch"]["max"] == 20.0
        timings = metrics.timings_ms()
        assert timings["fetch"] == 30
        assert timings["parse"] >= 0

"""
Unit tests for the HTTP runtime: client retries, URL safety, URL variants
and fallback chains.
"""

import threading

import pytest
import requests

from hareline.ingestion.runtime import (
    FetchStrategy,
    HttpClient,
    HttpClientOptions,
    StrategyFailure,
    StrategySuccess,
    build_url_variant_candidates,
    run_fallback_chain,
)
from hareline.ingestion.runtime.http import check_public_url
from hareline.ingestion.runtime.resilience import RetryPolicy


# =============================================================================
# FIXTURES
# =============================================================================


class FakeResponse:
    def __init__(self, status_code=200, text="ok", url="https://example.org/"):
        self.status_code = status_code
        self.text = text
        self.url = url
        self.headers = {"Content-Type": "text/html"}
        self.encoding = "utf-8"


class FakeSession:
    """Plays back a scripted list of responses or exceptions."""

    def __init__(self, script):
        self.script = list(script)
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        pass


@pytest.fixture
def make_client():
    """Return a function building an HttpClient over a scripted session."""

    def _make_client(script, **option_kwargs):
        session = FakeSession(script)
        sleeps = []
        options = HttpClientOptions(**option_kwargs)
        client = HttpClient(options=options, session=session, sleep=sleeps.append)
        return client, session, sleeps

    return _make_client


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestHttpClient:
    """Tests for HttpClient.get."""

    def test_success(self, make_client):
        """Should return the body and status of a good response."""
        client, session, _ = make_client([FakeResponse(text="<html></html>")], user_agent="Bot/1.0")
        result = client.get("https://example.org/")
        assert result.ok
        assert result.text == "<html></html>"
        assert session.calls[0][1]["headers"]["User-Agent"] == "Bot/1.0"

    def test_retries_retryable_status(self, make_client):
        """Should retry a 503 and return the later success."""
        client, session, sleeps = make_client([FakeResponse(503), FakeResponse(200)], max_retries=1)
        result = client.get("https://example.org/")
        assert result.ok
        assert len(session.calls) == 2
        assert len(sleeps) == 1

    def test_does_not_retry_404(self, make_client):
        """Should return a 404 without retrying."""
        client, session, _ = make_client([FakeResponse(404)], max_retries=3)
        result = client.get("https://example.org/")
        assert result.status_code == 404
        assert result.short_error() == "HTTP 404"
        assert len(session.calls) == 1

    def test_transport_error_never_raises(self, make_client):
        """Should report exhausted connection errors as data."""
        client, session, _ = make_client(
            [requests.ConnectionError("refused"), requests.ConnectionError("refused")], max_retries=1
        )
        result = client.get("https://example.org/")
        assert not result.ok
        assert result.error.type == "ConnectionError"
        assert result.error.is_retryable
        assert len(session.calls) == 2

    def test_check_is_single_short_attempt(self, make_client):
        """Should make exactly one attempt with the short check timeout."""
        client, session, _ = make_client([FakeResponse(503)], max_retries=3, check_timeout_s=2.0)
        result = client.check("https://example.org/wp-json/wp/v2/posts")
        assert result.status_code == 503
        assert len(session.calls) == 1
        assert session.calls[0][1]["timeout"] == 2.0

    def test_cancelled_before_first_attempt(self, make_client):
        """Should not touch the network once cancelled."""
        client, session, _ = make_client([])
        cancel = threading.Event()
        cancel.set()
        result = client.get("https://example.org/", cancel=cancel)
        assert result.cancelled
        assert session.calls == []

    def test_private_host_refused(self, make_client):
        """Should refuse private hosts unless allowed."""
        client, session, _ = make_client([])
        result = client.get("http://127.0.0.1/admin")
        assert result.error.type == "UnsafeUrl"
        assert session.calls == []


class TestUrlSafety:
    """Tests for check_public_url."""

    @pytest.mark.parametrize(
        "url", ["ftp://example.org/", "http://localhost/", "http://10.0.0.1/", "http://169.254.169.254/", "https:///x"]
    )
    def test_rejected(self, url):
        """Should reject non-http schemes, private hosts and hostless URLs."""
        assert check_public_url(url) is not None

    def test_public_allowed(self):
        """Should accept ordinary public URLs."""
        assert check_public_url("https://www.ewh3.com/") is None


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_backoff_modes(self):
        """Should compute exponential, fixed and disabled delays."""
        assert RetryPolicy(base_delay_s=1, jitter=0).compute_backoff_s(3) == 4
        assert RetryPolicy(backoff_mode="fixed", base_delay_s=1, jitter=0).compute_backoff_s(3) == 1
        assert RetryPolicy(backoff_mode="none").compute_backoff_s(3) == 0.0
        assert RetryPolicy(base_delay_s=1, jitter=0, max_delay_s=2).compute_backoff_s(5) == 2


class TestUrlVariants:
    """Tests for build_url_variant_candidates."""

    def test_order_and_dedupe(self):
        """Should list original, host, protocol and protocol+host variants."""
        assert build_url_variant_candidates("https://www.ewh3.com/") == [
            "https://www.ewh3.com",
            "https://ewh3.com",
            "http://www.ewh3.com",
            "http://ewh3.com",
        ]

    def test_non_url(self):
        """Should keep a bare value as the only candidate."""
        assert build_url_variant_candidates("not a url") == ["not a url"]


class TestFallbackChain:
    """Tests for run_fallback_chain."""

    def test_first_success_wins(self):
        """Should stop at the first success and keep earlier failures."""
        chain = run_fallback_chain(
            [
                FetchStrategy("a", lambda: StrategyFailure(name="a", message="nope")),
                FetchStrategy("b", lambda: StrategySuccess(name="b", value=1)),
                FetchStrategy("c", lambda: StrategySuccess(name="c", value=2)),
            ]
        )
        assert chain.ok
        assert chain.success.value == 1
        assert chain.attempted == ["a", "b"]
        assert chain.last_failure.name == "a"

    def test_terminal_failure_stops(self):
        """Should not try later strategies after a terminal failure."""
        chain = run_fallback_chain(
            [
                FetchStrategy("a", lambda: StrategyFailure(name="a", message="500", terminal=True)),
                FetchStrategy("b", lambda: StrategySuccess(name="b", value=1)),
            ]
        )
        assert not chain.ok
        assert chain.attempted == ["a"]

    def test_exception_becomes_failure(self):
        """Should record an exception escaping a strategy as its failure."""

        def boom():
            raise RuntimeError("kaput")

        chain = run_fallback_chain([FetchStrategy("a", boom)])
        assert chain.failures[0].message == "RuntimeError: kaput"

    def test_cancelled(self):
        """Should stop before running anything once cancelled."""
        cancel = threading.Event()
        cancel.set()
        chain = run_fallback_chain([FetchStrategy("a", lambda: StrategySuccess(name="a", value=1))], cancel=cancel)
        assert chain.attempted == []
        assert chain.failures[0].message == "Cancelled"

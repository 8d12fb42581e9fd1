"""
Shared pytest fixtures for the Hareline test suite.

Provides a canned HTTP client, source/event factories and a fixed clock so
adapter and orchestrator tests never touch the network.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from hareline.ingestion.adapters.base_adapter import FetchOptions
from hareline.ingestion.runtime.results import EngineError, FetchResult
from hareline.schemas.event import PreResolutionEvent
from hareline.schemas.source import GroupRecord, SourceDescriptor

NOW = datetime(2026, 2, 24, 12, 0, tzinfo=timezone.utc)


class FakeHttp:
    """
    Stand-in for ``HttpClient``: serves canned responses by exact URL.

    Unknown URLs answer 404. Every call is recorded in ``calls``.
    """

    def __init__(self, routes: Optional[Dict[str, FetchResult]] = None):
        self.routes: Dict[str, FetchResult] = dict(routes or {})
        self.calls: List[dict] = []

    def add(self, url: str, text: str = "", status: int = 200) -> "FakeHttp":
        self.routes[url] = FetchResult(final_url=url, status_code=status, text=text)
        return self

    def fail(self, url: str, message: str = "connection refused") -> "FakeHttp":
        self.routes[url] = FetchResult(
            final_url=url, error=EngineError(type="ConnectionError", message=message, is_retryable=True)
        )
        return self

    def get(self, url, *, headers=None, params=None, cancel=None, timeout_s=None, retries=None):
        self.calls.append({"url": url, "headers": headers, "params": params})
        return self.routes.get(url) or FetchResult(final_url=url, status_code=404, text="Not Found")

    def check(self, url, *, headers=None, cancel=None):
        return self.get(url, headers=headers, cancel=cancel)

    @property
    def urls(self) -> List[str]:
        return [c["url"] for c in self.calls]


@pytest.fixture
def now():
    """Fixed reference time: 2026-02-24 12:00 UTC."""
    return NOW


@pytest.fixture
def options():
    """Fetch options pinned to the fixed reference time."""
    return FetchOptions(days=90, now=NOW)


@pytest.fixture
def fake_http():
    return FakeHttp()


@pytest.fixture
def make_source():
    """
    Return a function that builds SourceDescriptor objects.

    Example:
        source = make_source("ICAL_FEED", url="https://x/feed.ics", config={"defaultGroupTag": "BFM"})
    """

    def _make_source(
        source_type: str = "HTML_SCRAPER",
        *,
        url: str = "https://example.org/",
        config: Optional[dict] = None,
        source_id: str = "test-source",
        linked: Optional[List[str]] = None,
        **kwargs,
    ) -> SourceDescriptor:
        return SourceDescriptor(
            id=source_id,
            name=kwargs.pop("name", source_id),
            type=source_type,
            url=url,
            config=config or {},
            linked_group_ids=linked or [],
            **kwargs,
        )

    return _make_source


@pytest.fixture
def make_event():
    """Return a function that builds PreResolutionEvent objects with sensible defaults."""

    def _make_event(date: str = "2026-02-19", group_tag: str = "EWH3", **kwargs) -> PreResolutionEvent:
        return PreResolutionEvent(date=date, group_tag=group_tag, **kwargs)

    return _make_event


@pytest.fixture
def groups():
    """A small group directory."""
    return [
        GroupRecord(id="ewh3", short_name="EWH3", full_name="Everyday Is Wednesday H3"),
        GroupRecord(id="dch4", short_name="DCH4", full_name="DC Harriettes and Harriers"),
        GroupRecord(id="lh3", short_name="LH3", full_name="London Hash House Harriers", aliases=["London Hash"]),
        GroupRecord(id="wh4", short_name="WH4", full_name="White House H3"),
    ]

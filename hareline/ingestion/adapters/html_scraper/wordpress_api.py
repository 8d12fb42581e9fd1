"""
WordPress REST API fetcher.

Some WordPress hosts block HTML page requests from cloud IP ranges but let
the built-in JSON API through. Two endpoint shapes are tried on each URL
variant: the pretty permalink ``/wp-json/wp/v2/posts`` and the query-string
form ``/?rest_route=/wp/v2/posts``. Only 403 and 404 move on to the next
endpoint; other HTTP statuses end the chain, transport errors do not.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlencode

from hareline.ingestion.normalization.text import decode
from hareline.ingestion.runtime.fallback import (
    FetchStrategy,
    StrategyFailure,
    StrategySuccess,
    run_fallback_chain,
)
from hareline.ingestion.runtime.http import HttpClient
from hareline.ingestion.runtime.url_variants import build_url_variant_candidates

CHAIN_CONTINUE_STATUSES = (403, 404)


@dataclass
class WordPressPost:
    title: str  # plain text
    content: str  # HTML body
    url: str
    date: str  # ISO 8601 publish timestamp


@dataclass
class WordPressFetchResult:
    posts: list[WordPressPost] = field(default_factory=list)
    error: Optional[str] = None
    status: Optional[int] = None
    endpoint: Optional[str] = None
    attempted: list[str] = field(default_factory=list)
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


def wordpress_endpoints(site_url: str, per_page: int = 10) -> list[str]:
    params = urlencode({"per_page": per_page, "_fields": "title,content,link,date"})
    endpoints = []
    for base in build_url_variant_candidates(site_url):
        endpoints.append(f"{base}/wp-json/wp/v2/posts?{params}")
        endpoints.append(f"{base}/?rest_route=/wp/v2/posts&{params}")
    return endpoints


def _parse_posts(payload) -> list[WordPressPost]:
    posts = []
    for item in payload:
        item = item or {}
        posts.append(
            WordPressPost(
                title=decode((item.get("title") or {}).get("rendered", "")),
                content=(item.get("content") or {}).get("rendered", "") or "",
                url=item.get("link") or "",
                date=item.get("date") or "",
            )
        )
    return posts


def _endpoint_strategy(http: HttpClient, url: str, cancel: threading.Event | None) -> FetchStrategy:
    def run():
        res = http.check(url, headers={"Accept": "application/json"}, cancel=cancel)
        if res.error is not None:
            return StrategyFailure(name=url, url=url, message=f"WordPress API fetch error: {res.short_error()}")
        if not res.ok:
            return StrategyFailure(
                name=url,
                url=url,
                status_code=res.status_code,
                message=f"WordPress API HTTP {res.status_code}",
                terminal=res.status_code not in CHAIN_CONTINUE_STATUSES,
            )
        try:
            payload = res.json()
        except ValueError:
            return StrategyFailure(name=url, url=url, message="WordPress API returned invalid JSON")
        if not isinstance(payload, list):
            return StrategyFailure(name=url, url=url, message="WordPress API returned non-array response")
        return StrategySuccess(name=url, value=_parse_posts(payload), detail={"elapsed_ms": res.elapsed_ms})

    return FetchStrategy(name=url, run=run)


def fetch_wordpress_posts(
    http: HttpClient,
    site_url: str,
    per_page: int = 10,
    *,
    cancel: threading.Event | None = None,
) -> WordPressFetchResult:
    """Fetch recent posts, walking endpoint and host/protocol variants."""
    strategies = [_endpoint_strategy(http, url, cancel) for url in wordpress_endpoints(site_url, per_page)]
    chain = run_fallback_chain(strategies, cancel=cancel)
    if chain.ok:
        return WordPressFetchResult(
            posts=chain.success.value,
            endpoint=chain.success.name,
            attempted=chain.attempted,
            elapsed_ms=chain.success.detail.get("elapsed_ms", 0.0),
        )
    last = chain.last_failure
    return WordPressFetchResult(
        error=last.message if last else "WordPress API fetch failed",
        status=last.status_code if last else None,
        attempted=chain.attempted,
    )

"""Requests-based HTTP client shared by all adapters.

Features:
- session reuse + connection pooling
- retry with backoff (shared policy)
- short check timeout for endpoints that may not exist vs. longer page timeout
- cooperative cancellation between attempts
- never raises: failures come back as ``FetchResult.error``
"""

from __future__ import annotations

import ipaddress
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import urlsplit

import requests
from requests.adapters import HTTPAdapter

from hareline.ingestion.runtime.resilience import RetryPolicy
from hareline.ingestion.runtime.results import EngineError, FetchResult

logger = logging.getLogger(__name__)

Headers = dict[str, str]


@dataclass
class HttpClientOptions:
    """Configuration options for the HTTP client."""

    check_timeout_s: float = 5.0
    page_timeout_s: float = 20.0
    verify_ssl: bool = True

    # retry
    max_retries: int = 1
    backoff_mode: str = "exp"  # exp | fixed | none
    base_delay_s: float = 0.5

    user_agent: str | None = None
    allow_private_hosts: bool = False

    # pool
    pool_connections: int = 10
    pool_maxsize: int = 20

    @classmethod
    def from_settings(cls, settings: Any) -> "HttpClientOptions":
        return cls(
            check_timeout_s=settings.HTTP_CHECK_TIMEOUT_S,
            page_timeout_s=settings.HTTP_PAGE_TIMEOUT_S,
            max_retries=settings.HTTP_MAX_RETRIES,
            user_agent=settings.USER_AGENT,
        )


def check_public_url(url: str) -> str | None:
    """
    Return a reason string if ``url`` must not be fetched, else None.

    Only http(s) URLs whose host is not a loopback/private/link-local
    literal (or ``localhost``) are allowed.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return "Malformed URL"
    if parts.scheme not in ("http", "https"):
        return f"Unsupported scheme: {parts.scheme or '(none)'}"
    host = (parts.hostname or "").lower()
    if not host:
        return "Missing host"
    if host == "localhost" or host.endswith(".localhost"):
        return "Private host"
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return None
    if ip.is_private or ip.is_loopback or ip.is_link_local or ip.is_reserved or ip.is_multicast:
        return "Private host"
    return None


class HttpClient:
    """HTTP client using the requests library."""

    def __init__(
        self,
        *,
        options: HttpClientOptions | None = None,
        session: requests.Session | None = None,
        sleep=time.sleep,
    ) -> None:
        self.options = options or HttpClientOptions()
        self._session = session or requests.Session()
        self._sleep = sleep

        if session is None:
            adapter = HTTPAdapter(
                pool_connections=self.options.pool_connections,
                pool_maxsize=self.options.pool_maxsize,
            )
            self._session.mount("http://", adapter)
            self._session.mount("https://", adapter)

        self._retry_policy = RetryPolicy(
            max_retries=self.options.max_retries,
            backoff_mode=self.options.backoff_mode,
            base_delay_s=self.options.base_delay_s,
        )

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def check(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        cancel: threading.Event | None = None,
    ) -> FetchResult:
        """Single short-timeout attempt, for endpoints that may not exist."""
        return self.get(
            url,
            timeout_s=self.options.check_timeout_s,
            headers=headers,
            retries=0,
            cancel=cancel,
        )

    def get(
        self,
        url: str,
        *,
        timeout_s: float | None = None,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
        retries: int | None = None,
        cancel: threading.Event | None = None,
    ) -> FetchResult:
        """GET ``url``; retries retryable failures per the shared policy."""
        timeout = float(timeout_s or self.options.page_timeout_s)
        max_retries = self._retry_policy.max_retries if retries is None else retries

        if not self.options.allow_private_hosts:
            reason = check_public_url(url)
            if reason:
                return FetchResult(final_url=url, error=EngineError(type="UnsafeUrl", message=reason))

        req_headers: Headers = {}
        if self.options.user_agent:
            req_headers["User-Agent"] = self.options.user_agent
        if headers:
            req_headers.update({str(k): str(v) for k, v in headers.items()})

        last_result: FetchResult | None = None
        attempts: list[dict[str, Any]] = []

        for attempt in range(0, max_retries + 1):
            if cancel is not None and cancel.is_set():
                return FetchResult(
                    final_url=url,
                    error=EngineError(type="Cancelled", message="Fetch cancelled"),
                    attempts=attempts,
                )

            t0 = time.time()
            try:
                resp = self._session.get(
                    url,
                    timeout=timeout,
                    verify=self.options.verify_ssl,
                    headers=req_headers,
                    params=params,
                    allow_redirects=True,
                )
                elapsed_ms = (time.time() - t0) * 1000
                resp_headers = {str(k): str(v) for k, v in resp.headers.items()}
                resp.encoding = resp.encoding or "utf-8"

                result = FetchResult(
                    final_url=str(resp.url),
                    status_code=int(resp.status_code),
                    content_type=resp_headers.get("Content-Type"),
                    text=resp.text or "",
                    elapsed_ms=elapsed_ms,
                    headers=resp_headers,
                    attempts=attempts,
                )
                if result.ok:
                    return result

                attempts.append({"attempt": attempt, "status": result.status_code, "ok": False})
                last_result = result
                if attempt < max_retries and self._retry_policy.should_retry_status(result.status_code):
                    self._backoff(attempt + 1, cancel)
                    continue
                return result

            except requests.RequestException as e:
                elapsed_ms = (time.time() - t0) * 1000
                retryable = isinstance(e, (requests.Timeout, requests.ConnectionError))
                err = EngineError(type=type(e).__name__, message=str(e), is_retryable=retryable)
                last_result = FetchResult(
                    final_url=url, elapsed_ms=elapsed_ms, error=err, attempts=attempts
                )
                attempts.append({"attempt": attempt, "error": err.type, "ok": False})
                logger.debug(f"GET {url} failed on attempt {attempt}: {err.type}")

                if attempt < max_retries and retryable:
                    self._backoff(attempt + 1, cancel)
                    continue
                return last_result

        return last_result or FetchResult(
            final_url=url,
            error=EngineError(type="HttpClientError", message="Exhausted retries"),
            attempts=attempts,
        )

    def _backoff(self, attempt: int, cancel: threading.Event | None) -> None:
        delay = self._retry_policy.compute_backoff_s(attempt)
        if delay <= 0:
            return
        if cancel is not None:
            cancel.wait(delay)
        else:
            self._sleep(delay)

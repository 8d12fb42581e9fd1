"""
URL variant helpers for hostname/protocol fallback probing.

Some hosts answer on only one of www/non-www or http/https depending on
edge rules, so fetchers walk these candidates in order.
"""

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit


def _toggle_www(host: str) -> str:
    return host[4:] if host.startswith("www.") else f"www.{host}"


def _with(parts, *, scheme: str | None = None, host: str | None = None) -> str:
    netloc = host if host is not None else parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    if parts.username:
        auth = parts.username + (f":{parts.password}" if parts.password else "")
        netloc = f"{auth}@{netloc}"
    url = urlunsplit((scheme or parts.scheme, netloc, parts.path, parts.query, parts.fragment))
    return url.rstrip("/")


def build_url_variant_candidates(base_url: str) -> list[str]:
    """
    Build canonical + fallback URL bases.

    Order: original, host variant (www/non-www), protocol variant
    (http/https), protocol+host variant. Duplicates removed, order kept.
    """
    normalized = base_url.rstrip("/")
    candidates = [normalized]

    parts = urlsplit(normalized)
    if parts.scheme and parts.hostname:
        host = parts.hostname
        candidates.append(_with(parts, host=_toggle_www(host)))
        if parts.scheme in ("http", "https"):
            flipped = "http" if parts.scheme == "https" else "https"
            candidates.append(_with(parts, scheme=flipped))
            candidates.append(_with(parts, scheme=flipped, host=_toggle_www(host)))

    return list(dict.fromkeys(candidates))

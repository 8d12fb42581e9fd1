"""
Source adapters.

Each adapter turns one configured source into a ``ScrapeResult`` of
pre-resolution events. Adapters are looked up through
``hareline.ingestion.adapters.registry``.
"""

from hareline.ingestion.adapters.base_adapter import (
    ErrorDetails,
    FetchErrorDetail,
    FetchOptions,
    MergeErrorDetail,
    ParseError,
    ScrapeResult,
    SourceAdapter,
)

__all__ = [
    "ErrorDetails",
    "FetchErrorDetail",
    "FetchOptions",
    "MergeErrorDetail",
    "ParseError",
    "ScrapeResult",
    "SourceAdapter",
]

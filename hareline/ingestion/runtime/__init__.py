"""HTTP runtime: client, retry policy, URL variants, and fallback chains."""

from hareline.ingestion.runtime.fallback import (
    FetchStrategy,
    StrategyFailure,
    StrategySuccess,
    run_fallback_chain,
)
from hareline.ingestion.runtime.http import HttpClient, HttpClientOptions
from hareline.ingestion.runtime.results import EngineError, FetchResult
from hareline.ingestion.runtime.url_variants import build_url_variant_candidates

__all__ = [
    "EngineError",
    "FetchResult",
    "FetchStrategy",
    "HttpClient",
    "HttpClientOptions",
    "StrategyFailure",
    "StrategySuccess",
    "build_url_variant_candidates",
    "run_fallback_chain",
]

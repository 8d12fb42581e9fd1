"""
hareline.ingestion.runtime.results

Response model returned by the HTTP client. The client never raises;
failures are carried in ``error``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class EngineError:
    type: str
    message: str
    is_retryable: bool = False


@dataclass
class FetchResult:
    final_url: str
    status_code: Optional[int] = None
    content_type: Optional[str] = None
    text: str = ""
    elapsed_ms: float = 0.0
    headers: dict[str, str] = field(default_factory=dict)

    error: Optional[EngineError] = None
    attempts: list[dict[str, Any]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None and self.status_code is not None and 200 <= self.status_code < 400

    @property
    def cancelled(self) -> bool:
        return self.error is not None and self.error.type == "Cancelled"

    def json(self) -> Any:
        """Decode the body as JSON (raises ValueError on malformed bodies)."""
        return json.loads(self.text)

    def short_error(self) -> str:
        if self.ok:
            return ""
        if self.error:
            return f"{self.error.type}: {self.error.message}"
        if self.status_code:
            return f"HTTP {self.status_code}"
        return "Unknown Error"

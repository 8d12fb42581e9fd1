"""
hareline.ingestion.runtime.fallback

Ordered fallback chains: try each strategy in turn, stop at the first
success, keep every failure for diagnostics.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class StrategySuccess(Generic[T]):
    name: str
    value: T
    detail: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StrategyFailure:
    name: str
    message: str
    status_code: Optional[int] = None
    url: Optional[str] = None
    # A terminal failure ends the chain; later strategies are not tried.
    terminal: bool = False


StrategyOutcome = Union[StrategySuccess, StrategyFailure]


@dataclass(frozen=True)
class FetchStrategy:
    name: str
    run: Callable[[], StrategyOutcome]


@dataclass
class ChainResult:
    success: Optional[StrategySuccess] = None
    failures: list[StrategyFailure] = field(default_factory=list)
    attempted: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.success is not None

    @property
    def last_failure(self) -> Optional[StrategyFailure]:
        return self.failures[-1] if self.failures else None


def run_fallback_chain(
    strategies: list[FetchStrategy],
    *,
    cancel: threading.Event | None = None,
) -> ChainResult:
    """
    Run strategies in order until one succeeds.

    An exception escaping a strategy is recorded as a failure for that
    strategy. A cancelled chain records one ``cancelled`` failure and stops.
    """
    result = ChainResult()
    for strategy in strategies:
        if cancel is not None and cancel.is_set():
            result.failures.append(StrategyFailure(name=strategy.name, message="Cancelled", terminal=True))
            break

        result.attempted.append(strategy.name)
        try:
            outcome = strategy.run()
        except Exception as e:
            logger.warning(f"Strategy {strategy.name} raised: {e}", exc_info=True)
            outcome = StrategyFailure(name=strategy.name, message=f"{type(e).__name__}: {e}")

        if isinstance(outcome, StrategySuccess):
            result.success = outcome
            return result

        result.failures.append(outcome)
        if outcome.terminal:
            break
    return result

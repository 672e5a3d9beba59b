from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IterationStats:
    iteration: int
    pair_count: int
    discovered_count: int
    new_count: int
    reachable_count: int
    iteration_seconds: float
    total_seconds: float


@dataclass(frozen=True)
class ReachabilitySummary:
    iterations: int
    reachable_count: int
    owned_count: int
    pairs_evaluated: int
    total_seconds: float
    precondition_passed: bool


class IterationObserver(Protocol):
    """Callbacks invoked at iteration boundaries. Never called concurrently."""

    def on_iteration(self, stats: IterationStats) -> None: ...

    def on_complete(self, summary: ReachabilitySummary) -> None: ...


class LoggingIterationObserver:
    def __init__(self, *, level: int = logging.INFO, log: logging.Logger | None = None) -> None:
        self.level = level
        self.log = log if log is not None else logger

    def on_iteration(self, stats: IterationStats) -> None:
        self.log.log(
            self.level,
            "Iteration %d: processed %d pairs, found %d children (%d new), took %.1fms (total %.1fms)",
            stats.iteration,
            stats.pair_count,
            stats.discovered_count,
            stats.new_count,
            stats.iteration_seconds * 1000.0,
            stats.total_seconds * 1000.0,
        )

    def on_complete(self, summary: ReachabilitySummary) -> None:
        self.log.log(
            self.level,
            "Reachability calculation completed in %d iterations, %d total reachable pals, took %.1fms total",
            summary.iterations,
            summary.reachable_count,
            summary.total_seconds * 1000.0,
        )


@dataclass
class RecordingIterationObserver:
    """Keeps every callback payload in memory; handy for tests and diagnostics."""

    iterations: list[IterationStats] = field(default_factory=list)
    summary: ReachabilitySummary | None = None

    def on_iteration(self, stats: IterationStats) -> None:
        self.iterations.append(stats)

    def on_complete(self, summary: ReachabilitySummary) -> None:
        self.summary = summary

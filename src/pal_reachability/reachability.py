"""Breeding reachability: the transitive closure of an owned set under the breeding relation.

The engine runs as a small LangGraph state machine::

    precondition -> enumerate_pairs -> evaluate_pairs -> merge -> enumerate_pairs ...
         |                                                 |
         +-------------------> END <-----------------------+

Each pass pairs every reachable pal with every other reachable pal (self-pairs
included), looks the pairs up concurrently, and then merges the children into
the reachable set on the graph's own thread. The loop stops on the first pass
that adds nothing. Since every other pass adds at least one id from a finite
universe, the loop always terminates.
"""

from __future__ import annotations

import logging
import math
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Any, Iterable, Sequence, TypedDict

from langgraph.graph import END, START, StateGraph

from .breeding_db import BreedingLookup
from .models import (
    InvalidBreedingDatabaseError,
    Pal,
    PalId,
    ReachabilityCancelled,
    ReachabilityTimeout,
)
from .observers import IterationObserver, IterationStats, ReachabilitySummary
from .settings import RuntimeSettings

logger = logging.getLogger(__name__)

# convergence and the cancel checks bound the loop, not the graph step count
_UNBOUNDED_STEPS = sys.maxsize


def can_breed(owned_pals: Sequence[Pal]) -> bool:
    """Return whether breeding is plausible for the owned instances.

    Gender is not known at this level, so the check is deliberately generous:
    a single instance of a single species cannot breed, anything else might.
    """
    if not owned_pals:
        return False
    distinct = {pal.id for pal in owned_pals}
    if len(distinct) == 1 and len(owned_pals) < 2:
        return False
    return len(owned_pals) >= 2 or len(distinct) >= 2


def enumerate_pairs(pals: Sequence[Pal]) -> list[tuple[Pal, Pal]]:
    """All unordered pairs ``(pals[i], pals[j])`` with ``i <= j``."""
    return [(pals[i], pals[j]) for i in range(len(pals)) for j in range(i, len(pals))]


def breeding_children(db: BreedingLookup, parent1: Pal, parent2: Pal) -> set[Pal]:
    """Children of ``parent1 x parent2``, looked up in both parent orders."""
    children: set[Pal] = set()
    for result in db.lookup(parent1.id, parent2.id):
        children.add(result.child)
    if parent1.id != parent2.id:
        for result in db.lookup(parent2.id, parent1.id):
            children.add(result.child)
    return children


def evaluate_pair_batch(db: BreedingLookup, pairs: Sequence[tuple[Pal, Pal]]) -> set[Pal]:
    """Union of the children of every pair in ``pairs``."""
    children: set[Pal] = set()
    for parent1, parent2 in pairs:
        children |= breeding_children(db, parent1, parent2)
    return children


def merge_children(reachable_ids: set[PalId], reachable_pals: list[Pal], batches: Iterable[Iterable[Pal]]) -> list[Pal]:
    """Fold child batches into the reachable set and return the newly added pals.

    This is the only writer of ``reachable_ids`` and ``reachable_pals``; it must
    not run while a batch is still being evaluated.
    """
    added: list[Pal] = []
    for batch in batches:
        for child in sorted(batch, key=lambda pal: (pal.id.sort_key, pal.name)):
            if child.id in reachable_ids:
                continue
            reachable_ids.add(child.id)
            reachable_pals.append(child)
            added.append(child)
    return added


def chunk_pairs(pairs: Sequence[tuple[Pal, Pal]], chunk_size: int) -> list[Sequence[tuple[Pal, Pal]]]:
    """Split ``pairs`` into consecutive slices of at most ``chunk_size``."""
    return [pairs[idx : idx + chunk_size] for idx in range(0, len(pairs), chunk_size)]


class ReachabilityState(TypedDict, total=False):
    owned: list[Pal]
    reachable_ids: set[PalId]
    reachable_pals: list[Pal]
    precondition_passed: bool
    iteration: int
    pairs: list[tuple[Pal, Pal]]
    batches: list[set[Pal]]
    new_pals: list[Pal]
    pairs_evaluated: int
    started_at: float
    iteration_started_at: float
    deadline: float | None
    cancel_event: threading.Event | None
    executor: ThreadPoolExecutor | None


@dataclass(frozen=True)
class ReachabilityResult:
    reachable_ids: frozenset[PalId]
    reachable_pals: tuple[Pal, ...]
    owned_ids: frozenset[PalId]
    iterations: int
    pairs_evaluated: int
    precondition_passed: bool
    total_seconds: float

    @property
    def new_ids(self) -> frozenset[PalId]:
        return self.reachable_ids - self.owned_ids


class BreedingReachability:
    """Reachability engine bound to one read-only breeding database.

    ``compute`` may be called repeatedly and from several threads; every call
    keeps its own state and worker pool.
    """

    def __init__(
        self,
        db: BreedingLookup,
        *,
        settings: RuntimeSettings | None = None,
        observer: IterationObserver | None = None,
    ) -> None:
        if db is None:
            raise InvalidBreedingDatabaseError("Breeding database is required")
        if not isinstance(db, BreedingLookup):
            raise InvalidBreedingDatabaseError(
                f"Breeding database must provide lookup(), got {type(db).__name__}"
            )
        self.db = db
        self.settings = settings if settings is not None else RuntimeSettings.from_env()
        self.observer = observer
        self.graph = self._build_graph().compile()

    def _build_graph(self) -> StateGraph:
        graph = StateGraph(ReachabilityState)
        graph.add_node("precondition", self._precondition_node)
        graph.add_node("enumerate_pairs", self._enumerate_pairs_node)
        graph.add_node("evaluate_pairs", self._evaluate_pairs_node)
        graph.add_node("merge", self._merge_node)

        graph.add_edge(START, "precondition")
        graph.add_conditional_edges(
            "precondition",
            self._precondition_route,
            {
                "iterate": "enumerate_pairs",
                "end": END,
            },
        )
        graph.add_edge("enumerate_pairs", "evaluate_pairs")
        graph.add_edge("evaluate_pairs", "merge")
        graph.add_conditional_edges(
            "merge",
            self._convergence_route,
            {
                "iterate": "enumerate_pairs",
                "end": END,
            },
        )
        return graph

    def _precondition_node(self, state: ReachabilityState) -> dict[str, Any]:
        owned = state["owned"]
        reachable_ids: set[PalId] = set()
        reachable_pals: list[Pal] = []
        for pal in owned:
            if pal.id not in reachable_ids:
                reachable_ids.add(pal.id)
                reachable_pals.append(pal)

        passed = can_breed(owned)
        if not passed:
            logger.debug("Breeding precondition failed for %d owned pals; skipping closure", len(owned))
        return {
            "reachable_ids": reachable_ids,
            "reachable_pals": reachable_pals,
            "precondition_passed": passed,
            "iteration": 0,
            "pairs_evaluated": 0,
        }

    def _precondition_route(self, state: ReachabilityState) -> str:
        return "iterate" if state.get("precondition_passed") else "end"

    def _check_cancelled(self, state: ReachabilityState) -> None:
        cancel_event = state.get("cancel_event")
        if cancel_event is not None and cancel_event.is_set():
            raise ReachabilityCancelled(f"Reachability cancelled before iteration {state['iteration'] + 1}")
        deadline = state.get("deadline")
        if deadline is not None and time.perf_counter() >= deadline:
            raise ReachabilityTimeout(f"Reachability timed out before iteration {state['iteration'] + 1}")

    def _enumerate_pairs_node(self, state: ReachabilityState) -> dict[str, Any]:
        self._check_cancelled(state)
        return {
            "iteration": state["iteration"] + 1,
            "iteration_started_at": time.perf_counter(),
            "pairs": enumerate_pairs(state["reachable_pals"]),
        }

    def _chunk_size(self, pair_count: int) -> int:
        if self.settings.chunk_size > 0:
            return self.settings.chunk_size
        # a few chunks per worker keeps the pool busy when lookups are uneven
        return max(1, math.ceil(pair_count / (self.settings.max_workers * 4)))

    def _evaluate_pairs_node(self, state: ReachabilityState) -> dict[str, Any]:
        pairs = state["pairs"]
        executor = state.get("executor")
        if executor is None or len(pairs) < self.settings.min_parallel_pairs:
            batches = [evaluate_pair_batch(self.db, pairs)]
        else:
            chunks = chunk_pairs(pairs, self._chunk_size(len(pairs)))
            # map() yields in submission order and blocks until every chunk is done
            batches = list(executor.map(partial(evaluate_pair_batch, self.db), chunks))
        return {"batches": batches, "pairs_evaluated": state["pairs_evaluated"] + len(pairs)}

    def _merge_node(self, state: ReachabilityState) -> dict[str, Any]:
        reachable_ids = set(state["reachable_ids"])
        reachable_pals = list(state["reachable_pals"])
        batches = state["batches"]
        new_pals = merge_children(reachable_ids, reachable_pals, batches)

        now = time.perf_counter()
        stats = IterationStats(
            iteration=state["iteration"],
            pair_count=len(state["pairs"]),
            discovered_count=len({child.id for batch in batches for child in batch}),
            new_count=len(new_pals),
            reachable_count=len(reachable_ids),
            iteration_seconds=now - state["iteration_started_at"],
            total_seconds=now - state["started_at"],
        )
        logger.debug(
            "Iteration %d: %d pairs, %d children, %d new, %d reachable",
            stats.iteration,
            stats.pair_count,
            stats.discovered_count,
            stats.new_count,
            stats.reachable_count,
        )
        if self.observer is not None:
            self.observer.on_iteration(stats)
        return {
            "reachable_ids": reachable_ids,
            "reachable_pals": reachable_pals,
            "new_pals": new_pals,
            "pairs": [],
            "batches": [],
        }

    def _convergence_route(self, state: ReachabilityState) -> str:
        return "iterate" if state.get("new_pals") else "end"

    def compute(
        self,
        owned_pals: Iterable[Pal] | None,
        *,
        cancel_event: threading.Event | None = None,
        timeout_seconds: float | None = None,
    ) -> ReachabilityResult:
        """Compute every pal reachable from ``owned_pals``.

        Args:
            owned_pals: Owned pal instances. Repeats count as extra instances for
                the breeding precondition. ``None`` is treated as empty.
            cancel_event: Checked before every iteration; when set the run is
                abandoned with ``ReachabilityCancelled``.
            timeout_seconds: Wall-clock budget checked before every iteration;
                falls back to ``settings.timeout``. Expiry raises ``ReachabilityTimeout``.

        Returns:
            The closure together with run statistics.

        Raises:
            TypeError: If an owned entry is not a ``Pal``.
            ValueError: If ``timeout_seconds`` is negative or NaN.
            ReachabilityCancelled: If cancelled or timed out. No partial result is kept.
        """
        owned = list(owned_pals) if owned_pals is not None else []
        for pal in owned:
            if not isinstance(pal, Pal):
                raise TypeError(f"owned_pals must contain Pal instances, got {type(pal).__name__}")
        if timeout_seconds is not None and (math.isnan(timeout_seconds) or timeout_seconds < 0):
            raise ValueError(f"timeout_seconds must be >= 0, got: {timeout_seconds}")

        timeout = timeout_seconds if timeout_seconds is not None else self.settings.timeout
        started_at = time.perf_counter()
        initial_state: ReachabilityState = {
            "owned": owned,
            "started_at": started_at,
            "deadline": started_at + timeout if timeout else None,
            "cancel_event": cancel_event,
            "executor": None,
        }
        config = {"recursion_limit": _UNBOUNDED_STEPS}

        executor: ThreadPoolExecutor | None = None
        if self.settings.max_workers > 1:
            executor = ThreadPoolExecutor(max_workers=self.settings.max_workers, thread_name_prefix="pal-reach")
            initial_state["executor"] = executor
        try:
            final_state = self.graph.invoke(initial_state, config=config)
        finally:
            if executor is not None:
                executor.shutdown(wait=True, cancel_futures=True)

        total_seconds = time.perf_counter() - started_at
        result = ReachabilityResult(
            reachable_ids=frozenset(final_state["reachable_ids"]),
            reachable_pals=tuple(final_state["reachable_pals"]),
            owned_ids=frozenset(pal.id for pal in owned),
            iterations=int(final_state.get("iteration", 0)),
            pairs_evaluated=int(final_state.get("pairs_evaluated", 0)),
            precondition_passed=bool(final_state.get("precondition_passed")),
            total_seconds=total_seconds,
        )
        logger.debug(
            "Reachability calculation completed in %d iterations, %d total reachable pals, took %.1fms total",
            result.iterations,
            len(result.reachable_ids),
            total_seconds * 1000.0,
        )
        if self.observer is not None:
            self.observer.on_complete(
                ReachabilitySummary(
                    iterations=result.iterations,
                    reachable_count=len(result.reachable_ids),
                    owned_count=len(result.owned_ids),
                    pairs_evaluated=result.pairs_evaluated,
                    total_seconds=total_seconds,
                    precondition_passed=result.precondition_passed,
                )
            )
        return result


def get_reachable_pals(
    db: BreedingLookup,
    owned_pals: Iterable[Pal] | None,
    *,
    settings: RuntimeSettings | None = None,
    observer: IterationObserver | None = None,
    cancel_event: threading.Event | None = None,
    timeout_seconds: float | None = None,
) -> frozenset[PalId]:
    """Return the ids of every pal reachable by breeding from ``owned_pals`` (owned ids included)."""
    engine = BreedingReachability(db, settings=settings, observer=observer)
    return engine.compute(owned_pals, cancel_event=cancel_event, timeout_seconds=timeout_seconds).reachable_ids

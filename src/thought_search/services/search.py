"""Search orchestration for the thought-search engine.

Drives the Generator -> Evaluator -> Selector loop under one of two
traversal policies and hands the final tree to the result assembler.

Classes
-------
BaseTreeSearch
    Shared machinery: generation with timeout and shape checks, batch
    evaluation, selection checks, event publishing, cancellation.
BreadthFirstSearch
    Level-synchronous search, one generator call per level.
DepthFirstSearch
    Backtracking search over an explicit frame stack with a global
    best-so-far tracker.

Functions
---------
breadth_first_search, depth_first_search
    Entry points taking ``(problem, config, generator, evaluator, selector)``.
run_search, run_search_sync
    Build evaluator and selector from the config and dispatch on
    ``config.algorithm``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from thought_search.domain.aggregates import ThoughtTree
from thought_search.domain.entities import Thought
from thought_search.domain.enums import Origin, SearchAlgorithm, SearchState
from thought_search.domain.events import (
    BatchEvaluated,
    BranchBacktracked,
    DomainEvent,
    EvaluationRecovered,
    FrontierSelected,
    SearchCompleted,
    SearchStarted,
    ThoughtsGenerated,
)
from thought_search.domain.exceptions import (
    GenerationFailed,
    InvariantViolation,
    NoSolutionFound,
    SearchError,
)
from thought_search.domain.values import Evaluation, SearchResult
from thought_search.infrastructure.cache import EvaluationCache
from thought_search.infrastructure.config import SearchConfig
from thought_search.infrastructure.event_bus import EventBus
from thought_search.services.dispatch import CancellationToken, call_with_timeout
from thought_search.services.evaluation import BatchEvaluator, ThoughtScorer, build_evaluator
from thought_search.services.generation import ThoughtGenerator
from thought_search.services.result import assemble_result
from thought_search.services.selection import SelectionStrategy, build_selector

logger = logging.getLogger(__name__)


@dataclass
class _RunState:
    """Mutable bookkeeping for one run."""

    problem: str
    config: SearchConfig
    tree: ThoughtTree = field(default_factory=ThoughtTree)
    started: float = field(default_factory=time.monotonic)
    state: SearchState = SearchState.GENERATING
    generation_failures: list[str] = field(default_factory=list)
    evaluation_failures: int = 0
    dead_end: bool = False
    cancelled: bool = False


@dataclass
class _Frame:
    """One DFS stack frame: the node being expanded and its untried children."""

    node: Thought | None
    depth: int
    expanded: bool = False
    pending: list[Thought] = field(default_factory=list)


# ===================================================================== #
#  Base orchestrator                                                     #
# ===================================================================== #

class BaseTreeSearch(ABC):
    """Template for a tree search run.

    Parameters
    ----------
    generator:
        Port producing candidate thoughts.
    evaluator:
        Batch evaluator attaching one ``Evaluation`` per thought.
    selector:
        Strategy choosing the next frontier from a scored batch.
    event_bus:
        Optional bus receiving progress events.
    cancel_token:
        Optional token; once cancelled, no further external calls are made
        and the run finishes with what it has.
    """

    algorithm: SearchAlgorithm

    def __init__(
        self,
        generator: ThoughtGenerator,
        evaluator: BatchEvaluator,
        selector: SelectionStrategy,
        event_bus: EventBus | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        self.generator = generator
        self.evaluator = evaluator
        self.selector = selector
        self.event_bus = event_bus
        self.cancel_token = cancel_token

    @property
    def name(self) -> str:
        return type(self).__name__

    # -- template -------------------------------------------------------------

    async def run(self, problem: str, config: SearchConfig) -> SearchResult:
        """Search for the best thought for *problem*.

        Raises
        ------
        GenerationFailed
            When the very first generator call fails.
        NoSolutionFound
            When the run ends without any thought.
        InvariantViolation
            On any contract breach by a collaborator.
        """
        config.validate()
        run = _RunState(problem=problem, config=config)
        logger.info(
            "%s: starting search (max_depth=%d, n_generate=%d, n_select=%d)",
            self.name, config.max_depth, config.n_generate, config.n_select,
        )
        self._publish(
            SearchStarted(
                source_id=self.name,
                problem=problem,
                algorithm=self.algorithm,
                config=config.to_dict(),
            )
        )
        try:
            best, metadata = await self._search(run)
            if best is None:
                raise NoSolutionFound(algorithm=self.algorithm.value)
            elapsed = time.monotonic() - run.started
            metadata.update(
                {
                    "algorithm": self.algorithm.value,
                    "final_state": run.state.value,
                    "best_score": best.score,
                    "generation_failures": list(run.generation_failures),
                    "evaluation_failures": run.evaluation_failures,
                    "dead_end": run.dead_end,
                    "cancelled": run.cancelled,
                    "elapsed_seconds": elapsed,
                }
            )
            result = assemble_result(run.tree, best, metadata)
        except SearchError as exc:
            if not exc.partial_thoughts:
                exc.partial_thoughts = tuple(run.tree.thoughts)
            raise

        logger.info(
            "%s: finished in state %s, best %s scored %.2f at depth %d (%d thoughts)",
            self.name, run.state.value, best.thought_id, best.score or 0.0,
            best.depth, len(run.tree),
        )
        self._publish(
            SearchCompleted(
                source_id=self.name,
                best_thought_id=best.thought_id,
                best_score=best.score or 0.0,
                final_state=run.state,
                total_thoughts=len(run.tree),
                elapsed_seconds=result.metadata["elapsed_seconds"],
            )
        )
        return result

    @abstractmethod
    async def _search(self, run: _RunState) -> tuple[Thought | None, dict[str, Any]]:
        """Traverse the tree; return the best thought and run metadata."""
        ...

    # -- steps ----------------------------------------------------------------

    def _cancelled(self, run: _RunState) -> bool:
        if self.cancel_token is not None and self.cancel_token.cancelled:
            if not run.cancelled:
                logger.info(
                    "%s: cancelled (%s)", self.name, self.cancel_token.reason or "no reason"
                )
            run.cancelled = True
            run.state = SearchState.CANCELLED
        return run.cancelled

    async def _generate(
        self, run: _RunState, frontier: Sequence[Thought], depth: int
    ) -> list[Thought]:
        run.state = SearchState.GENERATING
        config = run.config
        parent_id = frontier[0].thought_id if len(frontier) == 1 else None
        try:
            produced = await call_with_timeout(
                self.generator.generate,
                run.problem,
                list(frontier),
                depth,
                config,
                timeout=config.timeout_seconds,
            )
        except InvariantViolation:
            raise
        except asyncio.TimeoutError:
            raise GenerationFailed(
                f"Generator timed out after {config.timeout_seconds}s at depth {depth}",
                depth=depth,
                parent_id=parent_id,
            ) from None
        except Exception as exc:
            raise GenerationFailed(
                f"Generator failed at depth {depth}: {exc}",
                depth=depth,
                parent_id=parent_id,
            ) from exc

        thoughts = self._check_shape(produced, frontier, depth, config)
        run.tree.add(thoughts)
        logger.debug(
            "%s: depth %d produced %d thoughts", self.name, depth, len(thoughts)
        )
        self._publish(
            ThoughtsGenerated(
                source_id=self.name,
                depth=depth,
                thought_ids=tuple(t.thought_id for t in thoughts),
                parent_ids=tuple(t.thought_id for t in frontier),
            )
        )
        return thoughts

    @staticmethod
    def _check_shape(
        produced: Any,
        frontier: Sequence[Thought],
        depth: int,
        config: SearchConfig,
    ) -> list[Thought]:
        if not isinstance(produced, Sequence) or isinstance(produced, str):
            raise InvariantViolation(
                f"Generator must return a list of thoughts, got {type(produced).__name__}"
            )
        thoughts = list(produced)
        if len(thoughts) > config.n_generate:
            raise InvariantViolation(
                f"Generator returned {len(thoughts)} thoughts, more than "
                f"n_generate={config.n_generate}"
            )
        frontier_ids = {t.thought_id for t in frontier}
        for thought in thoughts:
            if not isinstance(thought, Thought):
                raise InvariantViolation(
                    f"Generator returned {type(thought).__name__}, expected Thought"
                )
            if thought.depth != depth:
                raise InvariantViolation(
                    f"Thought {thought.thought_id!r} has depth {thought.depth}, "
                    f"expected {depth}"
                )
            if frontier_ids and thought.parent_id not in frontier_ids:
                raise InvariantViolation(
                    f"Thought {thought.thought_id!r} names parent "
                    f"{thought.parent_id!r} outside the frontier"
                )
            if not frontier_ids and thought.parent_id is not None:
                raise InvariantViolation(
                    f"Root thought {thought.thought_id!r} cannot have a parent"
                )
            if thought.is_evaluated:
                raise InvariantViolation(
                    f"Generator returned an already scored thought {thought.thought_id!r}"
                )
        return thoughts

    async def _evaluate(
        self, run: _RunState, thoughts: Sequence[Thought], depth: int
    ) -> list[Evaluation]:
        run.state = SearchState.EVALUATING
        evaluations = await self.evaluator.evaluate(
            run.problem, thoughts, run.config, self.cancel_token
        )
        if [e.thought_id for e in evaluations] != [t.thought_id for t in thoughts]:
            raise InvariantViolation(
                f"{self.evaluator.name} returned evaluations that do not match the batch"
            )
        run.tree.record_many(evaluations)

        failures = 0
        for evaluation in evaluations:
            if evaluation.failed:
                failures += 1
                self._publish(
                    EvaluationRecovered(
                        source_id=self.name,
                        thought_id=evaluation.thought_id,
                        evaluator=self.evaluator.name,
                        error_message=str(evaluation.metadata.get("error", "")),
                    )
                )
        run.evaluation_failures += failures

        scores = {e.thought_id: e.overall_score for e in evaluations}
        max_score = max(scores.values(), default=0.0)
        logger.debug(
            "%s: depth %d evaluated %d thoughts, max %.2f, %d failures",
            self.name, depth, len(evaluations), max_score, failures,
        )
        self._publish(
            BatchEvaluated(
                source_id=self.name,
                depth=depth,
                scores=scores,
                max_score=max_score,
                failures=failures,
            )
        )
        return evaluations

    def _select(
        self,
        run: _RunState,
        evaluations: Sequence[Evaluation],
        thoughts: Sequence[Thought],
        n_select: int,
    ) -> list[int]:
        run.state = SearchState.SELECTING
        indices = list(self.selector.select(evaluations, thoughts, n_select))
        if len(set(indices)) != len(indices) or len(indices) > n_select:
            raise InvariantViolation(
                f"Selector {self.selector.name} returned {indices}, expected at most "
                f"{n_select} distinct indices"
            )
        if any(not 0 <= i < len(thoughts) for i in indices):
            raise InvariantViolation(
                f"Selector {self.selector.name} returned out-of-range indices {indices}"
            )
        return indices

    @staticmethod
    def _first_best(thoughts: Sequence[Thought]) -> Thought | None:
        """Highest scoring thought; the earliest wins ties."""
        best: Thought | None = None
        for thought in thoughts:
            if thought.score is None:
                continue
            if best is None or thought.score > best.score:  # type: ignore[operator]
                best = thought
        return best

    def _publish(self, event: DomainEvent) -> None:
        if self.event_bus is not None:
            self.event_bus.publish(event)


# ===================================================================== #
#  Breadth-first                                                         #
# ===================================================================== #

class BreadthFirstSearch(BaseTreeSearch):
    """Level-synchronous search.

    Each level calls the generator once with the whole frontier, evaluates
    the batch and selects the next frontier.  The run stops early when a
    level's best score meets a positive ``confidence_threshold``; otherwise
    it processes ``min(steps, max_depth)`` levels and returns the best
    member of the final frontier.  A level without thoughts, or a failed
    generator call past the first level, ends the run with the previous
    frontier.  A selection that keeps nothing ends it with the level just
    scored.
    """

    algorithm = SearchAlgorithm.BREADTH_FIRST

    async def _search(self, run: _RunState) -> tuple[Thought | None, dict[str, Any]]:
        config = run.config
        frontier: list[Thought] = []
        early_best: Thought | None = None
        levels = 0
        final_depth = 0

        for depth in range(config.effective_steps):
            if self._cancelled(run):
                break
            try:
                thoughts = await self._generate(run, frontier, depth)
            except GenerationFailed as exc:
                if depth == 0:
                    raise
                logger.warning(
                    "%s: generation failed at depth %d, ending with the previous "
                    "frontier: %s", self.name, depth, exc,
                )
                run.generation_failures.append(str(exc))
                run.dead_end = True
                run.state = SearchState.EXHAUSTED
                break
            if not thoughts:
                logger.warning("%s: dead end at depth %d", self.name, depth)
                run.dead_end = True
                run.state = SearchState.EXHAUSTED
                break

            evaluations = await self._evaluate(run, thoughts, depth)
            levels += 1
            final_depth = depth

            indices = self._select(run, evaluations, thoughts, config.n_select)
            level_best = self._first_best(thoughts)
            if (
                config.early_stop_enabled
                and level_best is not None
                and level_best.score >= config.confidence_threshold  # type: ignore[operator]
            ):
                run.state = SearchState.EARLY_STOP
                early_best = level_best
                logger.info(
                    "%s: early stop at depth %d, %s scored %.2f >= %.2f",
                    self.name, depth, level_best.thought_id, level_best.score,
                    config.confidence_threshold,
                )
                self._publish(
                    FrontierSelected(
                        source_id=self.name,
                        depth=depth,
                        selected_ids=(level_best.thought_id,),
                        strategy=self.selector.name,
                        state=run.state,
                    )
                )
                break

            if not indices:
                logger.warning(
                    "%s: %s kept no thoughts at depth %d, ending with this level",
                    self.name, self.selector.name, depth,
                )
                run.dead_end = True
                run.state = SearchState.EXHAUSTED
                frontier = list(thoughts)
                break

            frontier = [thoughts[i] for i in indices]
            run.state = SearchState.CONTINUE
            self._publish(
                FrontierSelected(
                    source_id=self.name,
                    depth=depth,
                    selected_ids=tuple(t.thought_id for t in frontier),
                    strategy=self.selector.name,
                    state=run.state,
                )
            )
        else:
            run.state = SearchState.EXHAUSTED

        best = early_best if early_best is not None else self._first_best(frontier)
        metadata = {
            "stopped_early": early_best is not None,
            "final_depth": final_depth,
            "levels": levels,
        }
        return best, metadata


# ===================================================================== #
#  Depth-first                                                           #
# ===================================================================== #

class DepthFirstSearch(BaseTreeSearch):
    """Backtracking search with a global best-so-far tracker.

    Frames live on an explicit stack, so deep trees never touch the
    interpreter's recursion limit.  After each expansion the best thought
    seen anywhere in the traversal is updated (a strictly greater score
    replaces it); meeting a positive ``confidence_threshold`` ends the whole
    search.  Selected children are explored best first; with
    ``dfs_single_branch`` only the best child is explored.  A failed
    generator call abandons its branch, except at the root.
    """

    algorithm = SearchAlgorithm.DEPTH_FIRST

    async def _search(self, run: _RunState) -> tuple[Thought | None, dict[str, Any]]:
        config = run.config
        stack: list[_Frame] = [_Frame(node=None, depth=0)]
        best: Thought | None = None
        nodes_expanded = 0
        stopped_early = False

        while stack:
            if self._cancelled(run):
                break
            frame = stack[-1]

            if not frame.expanded:
                frame.expanded = True
                run.state = SearchState.EXPLORING
                if frame.depth >= config.max_depth:
                    run.state = SearchState.DEPTH_LIMIT
                    stack.pop()
                    continue

                frontier = [frame.node] if frame.node is not None else []
                try:
                    thoughts = await self._generate(run, frontier, frame.depth)
                except GenerationFailed as exc:
                    if frame.node is None:
                        raise
                    logger.warning(
                        "%s: generation failed below %s, backtracking: %s",
                        self.name, frame.node.thought_id, exc,
                    )
                    run.generation_failures.append(str(exc))
                    self._backtrack(run, stack, "generation_failed")
                    continue
                nodes_expanded += 1

                if not thoughts:
                    logger.debug("%s: dead end at depth %d", self.name, frame.depth)
                    run.dead_end = True
                    self._backtrack(run, stack, "dead_end")
                    continue

                evaluations = await self._evaluate(run, thoughts, frame.depth)
                for thought in thoughts:
                    if best is None or thought.score > best.score:  # type: ignore[operator]
                        best = thought

                if (
                    config.early_stop_enabled
                    and best is not None
                    and best.score >= config.confidence_threshold  # type: ignore[operator]
                ):
                    run.state = SearchState.EARLY_STOP
                    stopped_early = True
                    logger.info(
                        "%s: early stop at depth %d, %s scored %.2f >= %.2f",
                        self.name, frame.depth, best.thought_id, best.score,
                        config.confidence_threshold,
                    )
                    break

                n_select = min(config.n_select, len(thoughts))
                indices = self._select(run, evaluations, thoughts, n_select)
                indices.sort(key=lambda i: -thoughts[i].score)  # type: ignore[operator]
                if config.dfs_single_branch:
                    indices = indices[:1]
                frame.pending = [thoughts[i] for i in indices]
                self._publish(
                    FrontierSelected(
                        source_id=self.name,
                        depth=frame.depth,
                        selected_ids=tuple(t.thought_id for t in frame.pending),
                        strategy=self.selector.name,
                        state=SearchState.DESCEND,
                    )
                )

            if frame.pending:
                child = frame.pending.pop(0)
                run.state = SearchState.DESCEND
                stack.append(_Frame(node=child, depth=frame.depth + 1))
            else:
                self._backtrack(run, stack, "exhausted")

        if not stack and run.state is not SearchState.CANCELLED:
            run.state = SearchState.EXHAUSTED

        metadata = {
            "stopped_early": stopped_early,
            "final_depth": run.tree.max_depth if len(run.tree) else 0,
            "nodes_expanded": nodes_expanded,
        }
        return best, metadata

    def _backtrack(self, run: _RunState, stack: list[_Frame], reason: str) -> None:
        frame = stack.pop()
        run.state = SearchState.BACKTRACK
        if frame.node is not None:
            self._publish(
                BranchBacktracked(
                    source_id=self.name,
                    thought_id=frame.node.thought_id,
                    depth=frame.node.depth,
                    reason=reason,
                )
            )


# ===================================================================== #
#  Entry points                                                          #
# ===================================================================== #

EvaluatorInput = BatchEvaluator | ThoughtScorer | Mapping[Origin, ThoughtScorer]


def _resolve_evaluator(
    evaluator: EvaluatorInput, config: SearchConfig, cache: EvaluationCache | None
) -> BatchEvaluator:
    if isinstance(evaluator, BatchEvaluator):
        return evaluator
    return build_evaluator(config, evaluator, cache=cache)


def _resolve_selector(
    selector: SelectionStrategy | None,
    config: SearchConfig,
    rng: np.random.Generator | None,
) -> SelectionStrategy:
    if selector is None:
        return build_selector(config, rng=rng)
    return selector


async def breadth_first_search(
    problem: str,
    config: SearchConfig,
    generator: ThoughtGenerator,
    evaluator: EvaluatorInput,
    selector: SelectionStrategy | None = None,
    *,
    event_bus: EventBus | None = None,
    cancel_token: CancellationToken | None = None,
    cache: EvaluationCache | None = None,
    rng: np.random.Generator | None = None,
) -> SearchResult:
    """Run a breadth-first search.

    *evaluator* may be a ready ``BatchEvaluator`` or the scorer(s) to build
    one from *config*; a missing *selector* is built from *config*.
    """
    search = BreadthFirstSearch(
        generator,
        _resolve_evaluator(evaluator, config, cache),
        _resolve_selector(selector, config, rng),
        event_bus=event_bus,
        cancel_token=cancel_token,
    )
    return await search.run(problem, config)


async def depth_first_search(
    problem: str,
    config: SearchConfig,
    generator: ThoughtGenerator,
    evaluator: EvaluatorInput,
    selector: SelectionStrategy | None = None,
    *,
    event_bus: EventBus | None = None,
    cancel_token: CancellationToken | None = None,
    cache: EvaluationCache | None = None,
    rng: np.random.Generator | None = None,
) -> SearchResult:
    """Run a depth-first search; arguments as for :func:`breadth_first_search`."""
    search = DepthFirstSearch(
        generator,
        _resolve_evaluator(evaluator, config, cache),
        _resolve_selector(selector, config, rng),
        event_bus=event_bus,
        cancel_token=cancel_token,
    )
    return await search.run(problem, config)


async def run_search(
    problem: str,
    config: SearchConfig,
    generator: ThoughtGenerator,
    scorer: EvaluatorInput,
    selector: SelectionStrategy | None = None,
    **kwargs: Any,
) -> SearchResult:
    """Dispatch to the entry point named by ``config.algorithm``."""
    if config.algorithm is SearchAlgorithm.DEPTH_FIRST:
        return await depth_first_search(problem, config, generator, scorer, selector, **kwargs)
    return await breadth_first_search(problem, config, generator, scorer, selector, **kwargs)


def run_search_sync(
    problem: str,
    config: SearchConfig,
    generator: ThoughtGenerator,
    scorer: EvaluatorInput,
    selector: SelectionStrategy | None = None,
    **kwargs: Any,
) -> SearchResult:
    """Blocking wrapper around :func:`run_search` for non-async callers."""
    return asyncio.run(run_search(problem, config, generator, scorer, selector, **kwargs))

"""Domain exceptions for the thought-search engine.

All domain-specific exceptions inherit from ``SearchError`` so callers can
catch the full family with a single ``except`` clause when needed.  Every
error may carry the thoughts explored before the failure in
``partial_thoughts`` for diagnostics.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .entities import Thought


class SearchError(Exception):
    """Base exception for all thought-search domain errors."""

    def __init__(
        self,
        message: str = "",
        details: dict[str, Any] | None = None,
        partial_thoughts: Sequence[Thought] = (),
    ) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = details or {}
        self.partial_thoughts: tuple[Thought, ...] = tuple(partial_thoughts)


class GenerationFailed(SearchError):
    """Raised when a generator call errors or times out.

    Aborts the branch being explored.  It only aborts the whole run when it
    happens at the root, where no alternative branch exists.
    """

    def __init__(
        self,
        message: str = "Generation failed",
        depth: int = 0,
        parent_id: str | None = None,
        details: dict[str, Any] | None = None,
        partial_thoughts: Sequence[Thought] = (),
    ) -> None:
        super().__init__(message, details, partial_thoughts)
        self.depth = depth
        self.parent_id = parent_id


class EvaluationFailed(SearchError):
    """Raised when a scoring or ranking callback errors or times out.

    Evaluators recover from this locally: the thought gets a minimal score
    and a low confidence and the batch carries on.
    """

    def __init__(
        self,
        message: str = "Evaluation failed",
        thought_id: str = "",
        evaluator: str = "",
        details: dict[str, Any] | None = None,
        partial_thoughts: Sequence[Thought] = (),
    ) -> None:
        super().__init__(message, details, partial_thoughts)
        self.thought_id = thought_id
        self.evaluator = evaluator


class NoCandidates(SearchError):
    """Raised when a selector receives an empty batch."""

    def __init__(
        self,
        message: str = "No candidates to select from",
        strategy: str = "",
        details: dict[str, Any] | None = None,
        partial_thoughts: Sequence[Thought] = (),
    ) -> None:
        super().__init__(message, details, partial_thoughts)
        self.strategy = strategy


class InvariantViolation(SearchError, ValueError):
    """Raised when a data-model invariant is broken.

    Examples: a parent id that does not resolve, a score outside [0, 10],
    a ranking that is not a permutation.  Always fatal; it signals a
    contract breach by a generator or scorer implementation.
    """


class NoSolutionFound(SearchError):
    """Raised when a run completes without ever generating a thought."""

    def __init__(
        self,
        message: str = "Search finished without generating any thought",
        algorithm: str = "",
        details: dict[str, Any] | None = None,
        partial_thoughts: Sequence[Thought] = (),
    ) -> None:
        super().__init__(message, details, partial_thoughts)
        self.algorithm = algorithm

"""Value objects for the thought-search engine.

All types here are frozen dataclasses: immutable and compared by value.
``Evaluation`` is the scoring record for one thought; ``SearchResult`` is
the outcome of one search run.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from .entities import Thought
from .enums import EvaluatorOrigin
from .exceptions import InvariantViolation

_MEAN_TOLERANCE = 1e-6

# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Evaluation:
    """Scoring record for one thought.

    ``overall_score`` is in [0, 10] and equals the arithmetic mean of
    ``raw_scores`` (the individual repeated measurements).  ``confidence``
    is in [0, 1] and is derived from the variance of ``raw_scores`` by the
    evaluator that produced the record.
    """

    thought_id: str
    overall_score: float
    confidence: float
    evaluator_origin: EvaluatorOrigin = EvaluatorOrigin.CROSS
    raw_scores: tuple[float, ...] = ()
    breakdown: Mapping[str, float] = field(default_factory=dict)
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.evaluator_origin, EvaluatorOrigin):
            object.__setattr__(
                self, "evaluator_origin", EvaluatorOrigin(self.evaluator_origin)
            )
        if not self.raw_scores:
            object.__setattr__(self, "raw_scores", (float(self.overall_score),))
        else:
            object.__setattr__(
                self, "raw_scores", tuple(float(s) for s in self.raw_scores)
            )
        if not 0.0 <= self.overall_score <= 10.0:
            raise InvariantViolation(
                f"overall_score must be in [0, 10], got {self.overall_score}"
            )
        if not 0.0 <= self.confidence <= 1.0:
            raise InvariantViolation(
                f"confidence must be in [0, 1], got {self.confidence}"
            )
        mean = float(np.mean(self.raw_scores))
        if abs(mean - self.overall_score) > _MEAN_TOLERANCE:
            raise InvariantViolation(
                f"overall_score {self.overall_score} does not match the mean "
                f"of raw_scores ({mean})"
            )

    @property
    def evaluation_count(self) -> int:
        """Number of individual measurements behind the score."""
        return len(self.raw_scores)

    @property
    def failed(self) -> bool:
        """True when the score is a recovery value for a failed evaluation."""
        return bool(self.metadata.get("failed", False))


# ---------------------------------------------------------------------------
# SearchResult
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SearchResult:
    """Outcome of one search run, constructed once by the result assembler.

    ``path`` runs root -> ``best_thought``; ``all_thoughts`` holds every
    thought generated during the run and ``evaluations`` maps thought ids
    to their scoring record.
    """

    best_thought: Thought
    path: tuple[Thought, ...]
    all_thoughts: tuple[Thought, ...]
    evaluations: Mapping[str, Evaluation]
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", tuple(self.path))
        object.__setattr__(self, "all_thoughts", tuple(self.all_thoughts))
        best_id = self.best_thought.thought_id

        if not any(t.thought_id == best_id for t in self.path):
            raise InvariantViolation("best_thought must be in path")
        if not any(t.thought_id == best_id for t in self.all_thoughts):
            raise InvariantViolation("best_thought must be in all_thoughts")
        if best_id not in self.evaluations:
            raise InvariantViolation("best_thought must have an evaluation")
        if self.path[-1].thought_id != best_id:
            raise InvariantViolation("path must end at best_thought")
        for parent, child in zip(self.path, self.path[1:]):
            if child.parent_id != parent.thought_id:
                raise InvariantViolation(
                    f"path is broken between {parent.thought_id!r} and "
                    f"{child.thought_id!r}"
                )

    @property
    def best_evaluation(self) -> Evaluation:
        return self.evaluations[self.best_thought.thought_id]

    def path_ids(self) -> list[str]:
        """Thought ids along the path, root first."""
        return [t.thought_id for t in self.path]

    def path_scores(self) -> list[float]:
        """Overall scores along the path, root first."""
        return [self.evaluations[t.thought_id].overall_score for t in self.path]

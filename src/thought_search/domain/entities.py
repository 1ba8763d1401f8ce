"""Domain entities for the thought-search engine.

``Thought`` is the single entity: it has identity (``thought_id``), is
created unscored by a generator, and is mutated exactly once when its
evaluation is attached.  Thoughts form a tree via ``parent_id``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .enums import Origin
from .exceptions import InvariantViolation

if TYPE_CHECKING:
    from .values import Evaluation


def _check_score(score: float | None) -> None:
    if score is not None and not 0.0 <= score <= 10.0:
        raise InvariantViolation(f"score must be in [0, 10], got {score}")


def _check_confidence(confidence: float | None) -> None:
    if confidence is not None and not 0.0 <= confidence <= 1.0:
        raise InvariantViolation(f"confidence must be in [0, 1], got {confidence}")


# ---------------------------------------------------------------------------
# Thought entity
# ---------------------------------------------------------------------------

@dataclass
class Thought:
    """A node in the search tree: one candidate step toward a solution.

    ``origin`` accepts an ``Origin`` member or its string value; any other
    tag is rejected.  A thought at depth 0 has no parent and every deeper
    thought must name one.  ``score`` and ``confidence`` stay ``None`` until
    :meth:`attach_evaluation` is called.
    """

    text: str
    origin: Origin
    depth: int = 0
    parent_id: str | None = None
    thought_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    score: float | None = None
    confidence: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.text or not self.text.strip():
            raise InvariantViolation("Thought text cannot be empty")
        if not isinstance(self.origin, Origin):
            try:
                self.origin = Origin(self.origin)
            except ValueError:
                raise InvariantViolation(
                    f"Unknown origin {self.origin!r}; expected one of "
                    f"{[o.value for o in Origin]}"
                ) from None
        if self.depth < 0:
            raise InvariantViolation(f"Invalid depth: {self.depth}")
        if self.depth == 0 and self.parent_id is not None:
            raise InvariantViolation(
                f"Thought {self.thought_id!r} at depth 0 cannot have a parent"
            )
        if self.depth > 0 and self.parent_id is None:
            raise InvariantViolation(
                f"Thought {self.thought_id!r} at depth {self.depth} needs a parent"
            )
        _check_score(self.score)
        _check_confidence(self.confidence)
        if self.metadata is None:
            self.metadata = {}

    # -- state ----------------------------------------------------------------

    @property
    def is_evaluated(self) -> bool:
        """True once a score has been attached."""
        return self.score is not None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    # -- lifecycle transitions ------------------------------------------------

    def attach_evaluation(self, evaluation: Evaluation) -> None:
        """Copy score and confidence from *evaluation* onto this thought.

        Raises
        ------
        InvariantViolation
            If the evaluation belongs to another thought or this thought was
            already scored.
        """
        if evaluation.thought_id != self.thought_id:
            raise InvariantViolation(
                f"Evaluation for {evaluation.thought_id!r} cannot be attached "
                f"to thought {self.thought_id!r}"
            )
        if self.is_evaluated:
            raise InvariantViolation(
                f"Thought {self.thought_id!r} has already been evaluated"
            )
        _check_score(evaluation.overall_score)
        _check_confidence(evaluation.confidence)
        self.score = evaluation.overall_score
        self.confidence = evaluation.confidence

"""Aggregate root for the thought-search engine.

``ThoughtTree`` is the consistency boundary for one search run: it owns the
append-only list of every generated thought and the evaluation recorded
for each of them.  External code only grows the tree through ``add`` and
``record``, never by mutating thoughts directly.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator, Sequence

from .entities import Thought
from .exceptions import InvariantViolation
from .values import Evaluation

# ---------------------------------------------------------------------------
# ThoughtTree
# ---------------------------------------------------------------------------

class ThoughtTree:
    """Append-only store of thoughts and their evaluations.

    Every added thought must either be a root (depth 0, no parent) or point
    at a thought already in the tree whose depth is exactly one less.  The
    parent chain is therefore acyclic and strictly depth-decreasing.
    """

    def __init__(self, thoughts: Iterable[Thought] = ()) -> None:
        self._thoughts: list[Thought] = []
        self._by_id: dict[str, Thought] = {}
        self._children: dict[str, list[str]] = {}
        self._evaluations: dict[str, Evaluation] = {}
        self._lock = threading.Lock()
        self.add(thoughts)

    # -- properties -----------------------------------------------------------

    @property
    def size(self) -> int:
        """Total number of thoughts in the tree."""
        return len(self._thoughts)

    @property
    def thoughts(self) -> list[Thought]:
        """All thoughts in generation order (a copy)."""
        with self._lock:
            return list(self._thoughts)

    @property
    def evaluations(self) -> dict[str, Evaluation]:
        """Mapping of thought id to evaluation (a copy)."""
        with self._lock:
            return dict(self._evaluations)

    @property
    def max_depth(self) -> int:
        """Deepest level reached, or -1 for an empty tree."""
        with self._lock:
            return max((t.depth for t in self._thoughts), default=-1)

    # -- mutations ------------------------------------------------------------

    def add(self, thoughts: Iterable[Thought]) -> None:
        """Append *thoughts*, validating ids and the parent chain.

        The batch is validated as a whole before anything is stored, so a
        bad batch leaves the tree unchanged.

        Raises
        ------
        InvariantViolation
            On duplicate ids, unknown parents or a depth mismatch.
        """
        batch = list(thoughts)
        with self._lock:
            staged: dict[str, Thought] = {}
            for thought in batch:
                tid = thought.thought_id
                if tid in self._by_id or tid in staged:
                    raise InvariantViolation(f"Duplicate thought id {tid!r}")
                if thought.parent_id is not None:
                    parent = self._by_id.get(thought.parent_id) or staged.get(
                        thought.parent_id
                    )
                    if parent is None:
                        raise InvariantViolation(
                            f"Parent {thought.parent_id!r} of thought {tid!r} "
                            "is not in the tree"
                        )
                    if thought.depth != parent.depth + 1:
                        raise InvariantViolation(
                            f"Thought {tid!r} has depth {thought.depth} but its "
                            f"parent is at depth {parent.depth}"
                        )
                staged[tid] = thought

            for thought in batch:
                self._thoughts.append(thought)
                self._by_id[thought.thought_id] = thought
                self._children.setdefault(thought.thought_id, [])
                if thought.parent_id is not None:
                    self._children.setdefault(thought.parent_id, []).append(
                        thought.thought_id
                    )

    def record(self, evaluation: Evaluation) -> None:
        """Store *evaluation* and attach its score to the thought.

        Raises
        ------
        InvariantViolation
            If the thought is unknown or already evaluated.
        """
        with self._lock:
            thought = self._by_id.get(evaluation.thought_id)
            if thought is None:
                raise InvariantViolation(
                    f"Cannot record evaluation for unknown thought "
                    f"{evaluation.thought_id!r}"
                )
            thought.attach_evaluation(evaluation)
            self._evaluations[evaluation.thought_id] = evaluation

    def record_many(self, evaluations: Sequence[Evaluation]) -> None:
        for evaluation in evaluations:
            self.record(evaluation)

    # -- queries --------------------------------------------------------------

    def get(self, thought_id: str) -> Thought:
        """Retrieve a thought by id.  Raises ``KeyError`` if absent."""
        with self._lock:
            if thought_id not in self._by_id:
                raise KeyError(f"Thought {thought_id!r} not found in tree")
            return self._by_id[thought_id]

    def evaluation_for(self, thought_id: str) -> Evaluation | None:
        with self._lock:
            return self._evaluations.get(thought_id)

    def children(self, thought_id: str) -> list[Thought]:
        """Direct children of *thought_id* in generation order."""
        with self._lock:
            return [self._by_id[c] for c in self._children.get(thought_id, [])]

    def roots(self) -> list[Thought]:
        with self._lock:
            return [t for t in self._thoughts if t.parent_id is None]

    def at_depth(self, depth: int) -> list[Thought]:
        with self._lock:
            return [t for t in self._thoughts if t.depth == depth]

    def best(self) -> Thought | None:
        """Highest-scoring evaluated thought; earliest wins ties."""
        with self._lock:
            best: Thought | None = None
            for thought in self._thoughts:
                if thought.score is None:
                    continue
                if best is None or thought.score > best.score:  # type: ignore[operator]
                    best = thought
            return best

    def __contains__(self, thought_id: object) -> bool:
        with self._lock:
            return thought_id in self._by_id

    def __iter__(self) -> Iterator[Thought]:
        return iter(self.thoughts)

    def __len__(self) -> int:
        return self.size

"""Domain enumerations for the thought-search engine.

These enums capture the fixed vocabularies used across the domain layer:
generation categories, evaluator identities, search algorithms, evaluation
and selection methods, problem types, and traversal states.
"""

from enum import Enum


class Origin(Enum):
    """Generation category that produced a thought.

    The engine never interprets thought content; the origin is only a
    label for diversity, ratio and cross-evaluation logic.
    """

    PRACTICAL = "practical"  # practicality-first channel
    TECHNICAL = "technical"  # technical-depth channel

    @property
    def opposite(self) -> "Origin":
        """The other category (used to avoid self-scoring)."""
        return Origin.TECHNICAL if self is Origin.PRACTICAL else Origin.PRACTICAL


class EvaluatorOrigin(Enum):
    """Which scorer produced an ``Evaluation``."""

    PRACTICAL = "practical"
    TECHNICAL = "technical"
    CROSS = "cross"

    @classmethod
    def from_origin(cls, origin: Origin) -> "EvaluatorOrigin":
        return cls(origin.value)


class SearchAlgorithm(Enum):
    """Tree traversal policy."""

    BREADTH_FIRST = "bfs"
    DEPTH_FIRST = "dfs"


class EvaluationMethod(Enum):
    """How a batch of thoughts is scored."""

    VALUE = "value"  # independent scoring
    VOTE = "vote"  # comparative ranking


class SelectionMethod(Enum):
    """How a scored batch is reduced to the next frontier."""

    GREEDY = "greedy"
    SAMPLE = "sample"
    HYBRID = "hybrid"
    THRESHOLD = "threshold"
    ENSEMBLE = "ensemble"
    CATEGORY_AWARE = "category_aware"


class ProblemType(Enum):
    """Kind of problem being searched; drives category preferences."""

    DEBUG = "debug"
    REFACTOR = "refactor"
    DESIGN = "design"
    CUSTOM = "custom"


class SearchState(Enum):
    """States of the search orchestrator state machines.

    Breadth-first uses GENERATING -> EVALUATING -> SELECTING ->
    (CONTINUE | EARLY_STOP | EXHAUSTED).  Depth-first uses EXPLORING ->
    (DESCEND | BACKTRACK | EARLY_STOP | DEPTH_LIMIT).
    """

    GENERATING = "generating"
    EVALUATING = "evaluating"
    SELECTING = "selecting"
    CONTINUE = "continue"
    EARLY_STOP = "early_stop"
    EXHAUSTED = "exhausted"
    EXPLORING = "exploring"
    DESCEND = "descend"
    BACKTRACK = "backtrack"
    DEPTH_LIMIT = "depth_limit"
    CANCELLED = "cancelled"

"""Domain layer for the thought-search engine.

Re-exports all public domain types so that consumers can write::

    from thought_search.domain import Thought, Evaluation, Origin
"""

# -- Enumerations -------------------------------------------------------------
from .enums import (
    EvaluationMethod,
    EvaluatorOrigin,
    Origin,
    ProblemType,
    SearchAlgorithm,
    SearchState,
    SelectionMethod,
)

# -- Entities -----------------------------------------------------------------
from .entities import Thought

# -- Value Objects ------------------------------------------------------------
from .values import Evaluation, SearchResult

# -- Aggregates ---------------------------------------------------------------
from .aggregates import ThoughtTree

# -- Domain Events ------------------------------------------------------------
from .events import (
    BatchEvaluated,
    BranchBacktracked,
    DomainEvent,
    EvaluationRecovered,
    FrontierSelected,
    SearchCompleted,
    SearchStarted,
    ThoughtsGenerated,
)

# -- Exceptions ---------------------------------------------------------------
from .exceptions import (
    EvaluationFailed,
    GenerationFailed,
    InvariantViolation,
    NoCandidates,
    NoSolutionFound,
    SearchError,
)

__all__ = [
    # enums
    "EvaluationMethod",
    "EvaluatorOrigin",
    "Origin",
    "ProblemType",
    "SearchAlgorithm",
    "SearchState",
    "SelectionMethod",
    # entities
    "Thought",
    # values
    "Evaluation",
    "SearchResult",
    # aggregates
    "ThoughtTree",
    # events
    "BatchEvaluated",
    "BranchBacktracked",
    "DomainEvent",
    "EvaluationRecovered",
    "FrontierSelected",
    "SearchCompleted",
    "SearchStarted",
    "ThoughtsGenerated",
    # exceptions
    "EvaluationFailed",
    "GenerationFailed",
    "InvariantViolation",
    "NoCandidates",
    "NoSolutionFound",
    "SearchError",
]

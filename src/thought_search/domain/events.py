"""Domain events for the thought-search engine.

Every event is a frozen dataclass inheriting from ``DomainEvent``.  The
search orchestrators publish them on an optional event bus so that
observers (loggers, recorders, progress displays) can follow a run
without the engine knowing about them.

All events carry a ``timestamp`` and a ``source_id`` naming the emitting
orchestrator.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .enums import SearchAlgorithm, SearchState

# ---------------------------------------------------------------------------
# Base event
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    timestamp: float = field(default_factory=time.time)
    source_id: str = ""


# ---------------------------------------------------------------------------
# Run lifecycle
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SearchStarted(DomainEvent):
    """A search run began."""

    problem: str = ""
    algorithm: SearchAlgorithm | None = None
    config: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SearchCompleted(DomainEvent):
    """A search run finished and its result was assembled."""

    best_thought_id: str = ""
    best_score: float = 0.0
    final_state: SearchState | None = None
    total_thoughts: int = 0
    elapsed_seconds: float = 0.0


# ---------------------------------------------------------------------------
# Per-batch events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ThoughtsGenerated(DomainEvent):
    """The generator returned a batch of unscored thoughts."""

    depth: int = 0
    thought_ids: tuple[str, ...] = ()
    parent_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class BatchEvaluated(DomainEvent):
    """A batch of thoughts received evaluations."""

    depth: int = 0
    scores: Mapping[str, float] = field(default_factory=dict)
    max_score: float = 0.0
    failures: int = 0


@dataclass(frozen=True)
class EvaluationRecovered(DomainEvent):
    """A scoring callback failed and the thought got the recovery score."""

    thought_id: str = ""
    evaluator: str = ""
    error_message: str = ""


@dataclass(frozen=True)
class FrontierSelected(DomainEvent):
    """The selector reduced a batch to the next frontier."""

    depth: int = 0
    selected_ids: tuple[str, ...] = ()
    strategy: str = ""
    state: SearchState | None = None


@dataclass(frozen=True)
class BranchBacktracked(DomainEvent):
    """Depth-first search abandoned a branch and returned to its parent."""

    thought_id: str = ""
    depth: int = 0
    reason: str = ""

"""Shared fixtures for the Thought Search test suite."""

from __future__ import annotations

import pytest

from thought_search.domain.entities import Thought
from thought_search.domain.enums import EvaluatorOrigin, Origin
from thought_search.domain.values import Evaluation
from thought_search.infrastructure.config import SearchConfig
from thought_search.infrastructure.event_bus import EventBus, EventStore
from thought_search.services.generation import MockThoughtGenerator
from thought_search.testing import MockThoughtScorer

# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def root_thought() -> Thought:
    return Thought(text="Check the logs", origin=Origin.PRACTICAL, thought_id="root")


@pytest.fixture
def child_thought() -> Thought:
    return Thought(
        text="Bisect the last deploy",
        origin=Origin.TECHNICAL,
        depth=1,
        parent_id="root",
        thought_id="child",
    )


@pytest.fixture
def sample_evaluation() -> Evaluation:
    """Three samples averaging 7.0."""
    return Evaluation(
        thought_id="root",
        overall_score=7.0,
        confidence=0.9,
        evaluator_origin=EvaluatorOrigin.TECHNICAL,
        raw_scores=(6.0, 7.0, 8.0),
    )


@pytest.fixture
def mixed_batch() -> list[Thought]:
    """Five depth-0 thoughts: three practical then two technical."""
    origins = [Origin.PRACTICAL] * 3 + [Origin.TECHNICAL] * 2
    return [
        Thought(text=f"idea {i}", origin=o, thought_id=f"t{i}")
        for i, o in enumerate(origins)
    ]


# ---------------------------------------------------------------------------
# Service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fast_config() -> SearchConfig:
    """Small deterministic config without caching or early stop."""
    return SearchConfig(
        n_generate=4,
        n_evaluate=2,
        n_select=2,
        max_depth=3,
        confidence_threshold=0.0,
        cache_enabled=False,
        timeout_seconds=5.0,
        seed=7,
    )


@pytest.fixture
def generator() -> MockThoughtGenerator:
    return MockThoughtGenerator()


@pytest.fixture
def scorer() -> MockThoughtScorer:
    return MockThoughtScorer(origin=Origin.PRACTICAL)


@pytest.fixture
def scorers() -> dict[Origin, MockThoughtScorer]:
    return {
        Origin.PRACTICAL: MockThoughtScorer(origin=Origin.PRACTICAL),
        Origin.TECHNICAL: MockThoughtScorer(origin=Origin.TECHNICAL, low=4.0, high=8.0),
    }


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def store(bus: EventBus) -> EventStore:
    event_store = EventStore()
    event_store.attach(bus)
    return event_store

"""Selection strategies for the thought-search engine.

A selector reduces a scored batch to the indices of the thoughts that form
the next frontier.  Every strategy returns distinct indices, at most
``n_select`` of them, and raises ``NoCandidates`` on an empty batch.

Each strategy exists twice: as a pure function over scores (handy on its
own and in tests) and as a ``SelectionStrategy`` class registered under
the ``"selector"`` registry category, which is what ``build_selector``
hands to the search orchestrators.

Stochastic strategies draw from an injected ``numpy.random.Generator`` so
runs are reproducible with a seed.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Sequence
from typing import Any, Union

import numpy as np

from thought_search.domain.entities import Thought
from thought_search.domain.enums import Origin, ProblemType, SelectionMethod
from thought_search.domain.exceptions import NoCandidates
from thought_search.domain.values import Evaluation
from thought_search.infrastructure.config import SearchConfig, parse_ratio, split_count
from thought_search.infrastructure.registry import SELECTOR, ComponentRegistry, registry

logger = logging.getLogger(__name__)

Scored = Union[Evaluation, float]

# Practical / technical weights per problem type; CUSTOM uses the config ratio.
CATEGORY_PREFERENCES: dict[ProblemType, tuple[float, float]] = {
    ProblemType.DEBUG: (0.6, 0.4),
    ProblemType.REFACTOR: (0.5, 0.5),
    ProblemType.DESIGN: (0.4, 0.6),
}


def _scores(batch: Sequence[Scored]) -> list[float]:
    return [
        item.overall_score if isinstance(item, Evaluation) else float(item)
        for item in batch
    ]


def _origins(thoughts: Sequence[Thought | Origin]) -> list[Origin]:
    return [t.origin if isinstance(t, Thought) else Origin(t) for t in thoughts]


def _require(scores: Sequence[float], strategy: str) -> None:
    if not scores:
        raise NoCandidates(strategy=strategy)


def _top(keys: Sequence[Any], n: int) -> list[int]:
    """Indices of the *n* largest keys; sort is stable so ties keep index order."""
    order = sorted(range(len(keys)), key=lambda i: keys[i], reverse=True)
    return order[: max(0, min(n, len(keys)))]


# ===================================================================== #
#  Pure selection functions                                              #
# ===================================================================== #

def select_greedy(batch: Sequence[Scored], n_select: int) -> list[int]:
    """Top ``n_select`` indices by descending score; ties keep input order."""
    scores = _scores(batch)
    _require(scores, "greedy")
    return _top(scores, n_select)


def select_sample(
    batch: Sequence[Scored],
    n_select: int,
    temperature: float = 1.0,
    rng: np.random.Generator | None = None,
) -> list[int]:
    """Temperature-scaled sampling without replacement.

    Scores are shifted so the minimum is at least 0.01, divided by the
    maximum, raised to ``1 / temperature`` and normalized; each draw
    removes the chosen index's mass and renormalizes the rest.  Low
    temperatures approach greedy selection.
    """
    scores = _scores(batch)
    _require(scores, "sample")
    if temperature <= 0:
        raise ValueError(f"temperature must be > 0, got {temperature}")
    rng = rng if rng is not None else np.random.default_rng()

    arr = np.asarray(scores, dtype=float)
    low = float(arr.min())
    if low < 0.01:
        arr = arr + (0.01 - low)
    # Scaled to (0, 1] so the power underflows instead of overflowing;
    # the maximum keeps weight 1.
    weights = np.power(arr / arr.max(), 1.0 / temperature)

    selected: list[int] = []
    remaining = weights.copy()
    wanted = min(n_select, len(scores))
    while len(selected) < wanted:
        total = float(remaining.sum())
        if total <= 0:
            # Remaining mass underflowed; take the rest best first.
            rest = [i for i in _top(scores, len(scores)) if i not in selected]
            selected.extend(rest[: wanted - len(selected)])
            break
        choice = int(rng.choice(len(remaining), p=remaining / total))
        selected.append(choice)
        remaining[choice] = 0.0
    return selected


def select_hybrid(
    batch: Sequence[Scored],
    thoughts: Sequence[Thought | Origin],
    n_select: int,
    diversity_weight: float = 0.3,
) -> list[int]:
    """Blend min-max normalized score with origin diversity, then pick greedily.

    Diversity is ``1 / (same-origin count + 1)`` divided by the largest such
    value in the batch.  Equal blended values fall back to the raw score,
    then input order, so a zero weight reproduces greedy selection.
    """
    scores = _scores(batch)
    _require(scores, "hybrid")
    origins = _origins(thoughts)
    if len(origins) != len(scores):
        raise ValueError("hybrid selection needs one thought per score")

    low, high = min(scores), max(scores)
    if high - low < 0.001:
        quality = [0.5] * len(scores)
    else:
        quality = [(s - low) / (high - low) for s in scores]

    counts = Counter(origins)
    diversity = [1.0 / (counts[o] + 1) for o in origins]
    top_diversity = max(diversity)
    diversity = [d / top_diversity for d in diversity] if top_diversity > 0 else [0.0] * len(diversity)

    blended = [
        q * (1.0 - diversity_weight) + d * diversity_weight
        for q, d in zip(quality, diversity)
    ]
    return _top([(b, s) for b, s in zip(blended, scores)], n_select)


def select_threshold(
    batch: Sequence[Scored],
    threshold: float,
    max_select: int,
) -> list[int]:
    """Every score at or above *threshold*, best first, capped at *max_select*.

    When nothing qualifies, the single best candidate is returned.
    """
    scores = _scores(batch)
    _require(scores, "threshold")
    qualified = [i for i in _top(scores, len(scores)) if scores[i] >= threshold]
    if not qualified:
        return [max(range(len(scores)), key=lambda i: (scores[i], -i))]
    return qualified[:max_select]


def adaptive_threshold(scores: Sequence[float], percentile: float) -> float:
    """Score at index ``floor(n * percentile / 100)`` of the ascending scores."""
    ordered = sorted(scores)
    index = min(len(ordered) - 1, max(0, math.floor(len(ordered) * percentile / 100)))
    return ordered[index]


def select_adaptive_threshold(
    batch: Sequence[Scored],
    percentile: float,
    max_select: int,
) -> list[int]:
    scores = _scores(batch)
    _require(scores, "adaptive_threshold")
    return select_threshold(scores, adaptive_threshold(scores, percentile), max_select)


def select_ensemble(
    batch: Sequence[Scored],
    thoughts: Sequence[Thought | Origin],
    n_select: int,
    temperature: float = 0.7,
    diversity_weight: float = 0.3,
    rng: np.random.Generator | None = None,
) -> list[int]:
    """Combine greedy, sample and hybrid picks.

    Candidates chosen by all three come first, then those chosen by two,
    then the rest of the union by descending score.
    """
    scores = _scores(batch)
    _require(scores, "ensemble")
    greedy = select_greedy(scores, n_select)
    sample = select_sample(scores, n_select, temperature, rng)
    hybrid = select_hybrid(scores, thoughts, n_select, diversity_weight)
    greedy_set, sample_set, hybrid_set = set(greedy), set(sample), set(hybrid)

    chosen = [i for i in greedy if i in sample_set and i in hybrid_set]
    if len(chosen) < n_select:
        for i in greedy + sample:
            votes = (i in greedy_set) + (i in sample_set) + (i in hybrid_set)
            if votes >= 2 and i not in chosen:
                chosen.append(i)
    if len(chosen) < n_select:
        rest = [i for i in greedy_set | sample_set | hybrid_set if i not in chosen]
        rest.sort(key=lambda i: (-scores[i], i))
        chosen.extend(rest)
    return chosen[:n_select]


def category_weights(
    problem_type: ProblemType | str,
    ratio: str = "5:5",
) -> tuple[float, float]:
    """Practical / technical preference for *problem_type*."""
    problem_type = ProblemType(problem_type)
    if problem_type in CATEGORY_PREFERENCES:
        return CATEGORY_PREFERENCES[problem_type]
    return parse_ratio(ratio)


def select_category_aware(
    batch: Sequence[Scored],
    thoughts: Sequence[Thought | Origin],
    n_select: int,
    problem_type: ProblemType | str = ProblemType.CUSTOM,
    ratio: str = "5:5",
) -> list[int]:
    """Top scorers per origin, in proportion to the problem type's preference.

    Practical picks come first, then technical ones.  A category with too
    few candidates leaves its share unfilled.
    """
    scores = _scores(batch)
    _require(scores, "category_aware")
    origins = _origins(thoughts)
    if len(origins) != len(scores):
        raise ValueError("category-aware selection needs one thought per score")

    quotas = split_count(n_select, category_weights(problem_type, ratio))
    selected: list[int] = []
    for origin, quota in zip((Origin.PRACTICAL, Origin.TECHNICAL), quotas):
        members = [i for i, o in enumerate(origins) if o is origin]
        ranked = sorted(members, key=lambda i: (-scores[i], i))
        selected.extend(ranked[:quota])
    return selected


# ===================================================================== #
#  Strategy classes                                                      #
# ===================================================================== #

class SelectionStrategy(ABC):
    """Reduces a scored batch to the indices of the next frontier."""

    method: SelectionMethod

    @abstractmethod
    def select(
        self,
        evaluations: Sequence[Evaluation],
        thoughts: Sequence[Thought],
        n_select: int,
    ) -> list[int]:
        ...

    @classmethod
    def from_config(
        cls, config: SearchConfig, rng: np.random.Generator | None = None
    ) -> SelectionStrategy:
        return cls()

    @property
    def name(self) -> str:
        return self.method.value

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


@registry.register(SELECTOR, SelectionMethod.GREEDY.value)
class GreedySelector(SelectionStrategy):
    method = SelectionMethod.GREEDY

    def select(self, evaluations, thoughts, n_select):
        return select_greedy(evaluations, n_select)


@registry.register(SELECTOR, SelectionMethod.SAMPLE.value)
class SampleSelector(SelectionStrategy):
    method = SelectionMethod.SAMPLE

    def __init__(
        self, temperature: float = 0.7, rng: np.random.Generator | None = None
    ) -> None:
        self.temperature = temperature
        self.rng = rng if rng is not None else np.random.default_rng()

    @classmethod
    def from_config(cls, config, rng=None):
        return cls(temperature=config.temperature, rng=rng)

    def select(self, evaluations, thoughts, n_select):
        return select_sample(evaluations, n_select, self.temperature, self.rng)


@registry.register(SELECTOR, SelectionMethod.HYBRID.value)
class HybridSelector(SelectionStrategy):
    method = SelectionMethod.HYBRID

    def __init__(self, diversity_weight: float = 0.3) -> None:
        self.diversity_weight = diversity_weight

    @classmethod
    def from_config(cls, config, rng=None):
        return cls(diversity_weight=config.diversity_weight)

    def select(self, evaluations, thoughts, n_select):
        return select_hybrid(evaluations, thoughts, n_select, self.diversity_weight)


@registry.register(SELECTOR, SelectionMethod.THRESHOLD.value)
class ThresholdSelector(SelectionStrategy):
    """Absolute threshold, or a batch percentile when ``percentile`` is set."""

    method = SelectionMethod.THRESHOLD

    def __init__(self, threshold: float = 7.0, percentile: float | None = None) -> None:
        self.threshold = threshold
        self.percentile = percentile

    @classmethod
    def from_config(cls, config, rng=None):
        threshold = (
            config.selection_threshold
            if config.selection_threshold is not None
            else config.confidence_threshold
        )
        return cls(threshold=threshold, percentile=config.adaptive_percentile)

    def select(self, evaluations, thoughts, n_select):
        if self.percentile is not None:
            return select_adaptive_threshold(evaluations, self.percentile, n_select)
        return select_threshold(evaluations, self.threshold, n_select)


@registry.register(SELECTOR, SelectionMethod.ENSEMBLE.value)
class EnsembleSelector(SelectionStrategy):
    method = SelectionMethod.ENSEMBLE

    def __init__(
        self,
        temperature: float = 0.7,
        diversity_weight: float = 0.3,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.temperature = temperature
        self.diversity_weight = diversity_weight
        self.rng = rng if rng is not None else np.random.default_rng()

    @classmethod
    def from_config(cls, config, rng=None):
        return cls(
            temperature=config.temperature,
            diversity_weight=config.diversity_weight,
            rng=rng,
        )

    def select(self, evaluations, thoughts, n_select):
        return select_ensemble(
            evaluations, thoughts, n_select,
            self.temperature, self.diversity_weight, self.rng,
        )


@registry.register(SELECTOR, SelectionMethod.CATEGORY_AWARE.value)
class CategoryAwareSelector(SelectionStrategy):
    method = SelectionMethod.CATEGORY_AWARE

    def __init__(
        self,
        problem_type: ProblemType | str = ProblemType.CUSTOM,
        ratio: str = "5:5",
    ) -> None:
        self.problem_type = ProblemType(problem_type)
        self.ratio = ratio

    @classmethod
    def from_config(cls, config, rng=None):
        return cls(problem_type=config.problem_type, ratio=config.category_ratio)

    def select(self, evaluations, thoughts, n_select):
        return select_category_aware(
            evaluations, thoughts, n_select, self.problem_type, self.ratio
        )


def build_selector(
    config: SearchConfig,
    rng: np.random.Generator | None = None,
    components: ComponentRegistry | None = None,
) -> SelectionStrategy:
    """Build the strategy named by ``config.selection_method``.

    Stochastic strategies get *rng*, or a generator seeded with
    ``config.seed``.
    """
    if rng is None:
        rng = np.random.default_rng(config.seed)
    component = (components or registry).get(SELECTOR, config.selection_method.value)
    if isinstance(component, type):
        selector = component.from_config(config, rng)
    else:
        selector = component
    logger.debug("build_selector: %r for %s", selector, config.selection_method.value)
    return selector

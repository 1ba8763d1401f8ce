"""Evaluation services for the thought-search engine.

Turns a batch of unscored thoughts into ``Evaluation`` records.  Two
families of batch evaluators are provided:

* **value**: every thought is scored independently ``n_evaluate`` times
  and the samples are averaged (``ValueEvaluator``, and the two-category
  ``CrossValueEvaluator`` that reconciles both categories' averages).
* **vote**: the whole batch is ranked ``n_evaluate`` times and the rankings
  are aggregated with a Borda count (``VoteEvaluator`` and the
  two-category ``CrossVoteEvaluator``).

Scoring itself is delegated to ``ThoughtScorer`` implementations
(``score(problem, text)`` and ``rank(problem, texts)``).  Every scorer call
runs under the configured timeout; a failing or timed-out call is recovered
locally with a score of 0 and a confidence of 0.5.  Out-of-range scores and
malformed rankings are contract breaches and raise ``InvariantViolation``.

The module also exposes the numeric building blocks: confidence from
variance, Borda aggregation, rank correlation and score normalization.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

import numpy as np

from thought_search.domain.entities import Thought
from thought_search.domain.enums import EvaluatorOrigin, EvaluationMethod, Origin
from thought_search.domain.exceptions import EvaluationFailed, InvariantViolation
from thought_search.domain.values import Evaluation
from thought_search.infrastructure.cache import EvaluationCache
from thought_search.infrastructure.config import SearchConfig
from thought_search.infrastructure.registry import EVALUATOR, ComponentRegistry, registry
from thought_search.services.dispatch import (
    CancellationToken,
    call_with_timeout,
    gather_bounded,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.8
FAILURE_CONFIDENCE = 0.5
VALUE_AGREEMENT_CUTOFF = 0.8
VOTE_CONSENSUS_CUTOFF = 0.7
PRACTICAL_VOTE_WEIGHT = 0.6


# ===================================================================== #
#  Numeric helpers                                                       #
# ===================================================================== #

def confidence_from_scores(scores: Sequence[float]) -> float:
    """Confidence from the population variance of repeated scores.

    ``max(0.5, 1 - variance / 8)`` rounded to two decimals; fewer than two
    samples give the default 0.8.
    """
    if len(scores) < 2:
        return DEFAULT_CONFIDENCE
    variance = float(np.var(np.asarray(scores, dtype=float)))
    return round(max(0.5, 1.0 - variance / 8.0), 2)


def validate_ranking(ranking: Sequence[int], n: int) -> list[int]:
    """Return *ranking* as a list of ints, or raise if it is not a permutation."""
    try:
        values = [int(i) for i in ranking]
    except (TypeError, ValueError):
        raise InvariantViolation(f"Ranking must contain integers, got {ranking!r}") from None
    if sorted(values) != list(range(n)):
        raise InvariantViolation(
            f"Ranking {values!r} is not a permutation of range({n})"
        )
    return values


def ranking_points(rankings: Sequence[Sequence[int]], n: int) -> np.ndarray:
    """Per-ranking normalized Borda points, shape ``(len(rankings), n)``.

    The candidate at position ``r`` of a ranking earns ``(n - r) / n * 10``.
    """
    points = np.zeros((len(rankings), n), dtype=float)
    for row, ranking in enumerate(rankings):
        for rank, candidate in enumerate(validate_ranking(ranking, n)):
            points[row, candidate] = (n - rank) / n * 10.0
    return points


def aggregate_votes(rankings: Sequence[Sequence[int]], n: int) -> list[float]:
    """Borda count over *rankings* of *n* candidates, normalized to [0, 10].

    Rank ``r`` earns ``n - r`` points; totals are divided by
    ``n * len(rankings)`` and scaled by 10.  Unanimous first place therefore
    scores exactly 10.0.
    """
    if n == 0:
        return []
    if not rankings:
        raise ValueError("aggregate_votes needs at least one ranking")
    totals = [0] * n
    for ranking in rankings:
        for rank, candidate in enumerate(validate_ranking(ranking, n)):
            totals[candidate] += n - rank
    max_possible = n * len(rankings)
    return [total / max_possible * 10.0 for total in totals]


def scores_to_rankings(scores: Sequence[float]) -> list[int]:
    """Rank position of each score, 0 for the highest; ties keep input order."""
    order = sorted(range(len(scores)), key=lambda i: -scores[i])
    ranks = [0] * len(scores)
    for rank, index in enumerate(order):
        ranks[index] = rank
    return ranks


def rank_correlation(a: Sequence[float], b: Sequence[float]) -> float:
    """Spearman rank correlation of two score vectors, clamped to [0, 1]."""
    if len(a) != len(b):
        raise ValueError("Score arrays must have the same length")
    n = len(a)
    if n < 2:
        return 1.0
    ra = np.asarray(scores_to_rankings(a), dtype=float)
    rb = np.asarray(scores_to_rankings(b), dtype=float)
    d_squared = float(np.sum((ra - rb) ** 2))
    return max(0.0, 1.0 - 6.0 * d_squared / (n * (n * n - 1)))


def normalize_scores(scores: Sequence[float], method: str = "minmax") -> list[float]:
    """Rescale *scores* to [0, 10].

    ``minmax`` maps the range linearly; ``zscore`` maps z in [-3, 3] onto
    [0, 10] and clips.  A (near-)constant batch maps to 5.0 everywhere.
    """
    if not scores:
        return []
    arr = np.asarray(scores, dtype=float)
    if method == "minmax":
        low, high = float(arr.min()), float(arr.max())
        if high - low < 0.001:
            return [5.0] * len(scores)
        return ((arr - low) / (high - low) * 10.0).tolist()
    if method == "zscore":
        std = float(arr.std())
        if std < 0.001:
            return [5.0] * len(scores)
        z = (arr - arr.mean()) / std
        return np.clip((z + 3.0) / 6.0 * 10.0, 0.0, 10.0).tolist()
    raise ValueError(f"Unknown normalization method {method!r}")


def _check_score(value: Any, source: str) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        raise InvariantViolation(f"{source} returned a non-numeric score {value!r}") from None
    if math.isnan(score) or not 0.0 <= score <= 10.0:
        raise InvariantViolation(f"{source} returned score {score} outside [0, 10]")
    return score


def _clamp(score: float) -> float:
    return min(10.0, max(0.0, float(score)))


# ===================================================================== #
#  Scorer port                                                           #
# ===================================================================== #

class ThoughtScorer(ABC):
    """External scoring callback for one origin category.

    ``score`` rates a single thought text in [0, 10]; ``rank`` orders a
    batch of texts, most preferred first, as a permutation of indices.
    Scorers that only support one of the two leave the other raising
    ``NotImplementedError``.
    """

    def __init__(self, origin: Origin | str = Origin.PRACTICAL, name: str = "") -> None:
        self.origin = Origin(origin)
        self.name = name or f"{type(self).__name__}[{self.origin.value}]"

    @abstractmethod
    async def score(self, problem: str, text: str) -> float:
        ...

    async def rank(self, problem: str, texts: Sequence[str]) -> list[int]:
        raise NotImplementedError(f"{self.name} does not support ranking")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(origin={self.origin.value!r})"


class FunctionScorer(ThoughtScorer):
    """Adapts plain callables (sync or async) to the scorer port.

    Synchronous callables run in the default executor.
    """

    def __init__(
        self,
        score_fn: Callable[[str, str], float | Awaitable[float]] | None = None,
        rank_fn: Callable[[str, list[str]], Sequence[int] | Awaitable[Sequence[int]]]
        | None = None,
        origin: Origin | str = Origin.PRACTICAL,
        name: str = "",
    ) -> None:
        super().__init__(origin=origin, name=name)
        self._score_fn = score_fn
        self._rank_fn = rank_fn

    async def score(self, problem: str, text: str) -> float:
        if self._score_fn is None:
            raise NotImplementedError(f"{self.name} has no score function")
        return await call_with_timeout(self._score_fn, problem, text)

    async def rank(self, problem: str, texts: Sequence[str]) -> list[int]:
        if self._rank_fn is None:
            raise NotImplementedError(f"{self.name} has no rank function")
        return list(await call_with_timeout(self._rank_fn, problem, list(texts)))


ScorerInput = ThoughtScorer | Mapping[Origin, ThoughtScorer]


def as_scorer_map(scorers: ScorerInput) -> dict[Origin, ThoughtScorer]:
    """Normalize a single scorer or an origin mapping to a mapping."""
    if isinstance(scorers, ThoughtScorer):
        return {scorers.origin: scorers}
    result = {Origin(origin): scorer for origin, scorer in scorers.items()}
    if not result:
        raise ValueError("At least one scorer is required")
    return result


# ===================================================================== #
#  Failure and skip records                                              #
# ===================================================================== #

def failed_evaluation(
    thought_id: str,
    error: str,
    evaluator_origin: EvaluatorOrigin = EvaluatorOrigin.CROSS,
) -> Evaluation:
    """Recovery record for a thought whose scoring failed."""
    return Evaluation(
        thought_id=thought_id,
        overall_score=0.0,
        confidence=FAILURE_CONFIDENCE,
        evaluator_origin=evaluator_origin,
        raw_scores=(0.0,),
        metadata={"failed": True, "error": error},
    )


def skipped_evaluation(
    thought_id: str,
    reason: str,
    evaluator_origin: EvaluatorOrigin = EvaluatorOrigin.CROSS,
) -> Evaluation:
    """Zero-score record for a thought left unevaluated on purpose."""
    return Evaluation(
        thought_id=thought_id,
        overall_score=0.0,
        confidence=DEFAULT_CONFIDENCE,
        evaluator_origin=evaluator_origin,
        raw_scores=(0.0,),
        metadata={"skipped": True, "reason": reason},
    )


# ===================================================================== #
#  Abstract batch evaluator                                              #
# ===================================================================== #

class BatchEvaluator(ABC):
    """Scores a whole batch, returning one ``Evaluation`` per thought, in order.

    Parameters
    ----------
    scorers:
        A single scorer or a mapping of origin to scorer.
    cache:
        Optional memoization of value scores; vote evaluators ignore it.
    """

    method: EvaluationMethod = EvaluationMethod.VALUE

    def __init__(
        self,
        scorers: ScorerInput,
        cache: EvaluationCache | None = None,
    ) -> None:
        self.scorers = as_scorer_map(scorers)
        self.cache = cache

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def evaluate(
        self,
        problem: str,
        thoughts: Sequence[Thought],
        config: SearchConfig,
        cancel_token: CancellationToken | None = None,
    ) -> list[Evaluation]:
        ...

    def _primary_scorer(self) -> ThoughtScorer:
        return self.scorers.get(Origin.PRACTICAL) or next(iter(self.scorers.values()))

    async def _call_score(
        self,
        scorer: ThoughtScorer,
        problem: str,
        thought: Thought,
        config: SearchConfig,
    ) -> float:
        try:
            value = await call_with_timeout(
                scorer.score, problem, thought.text, timeout=config.timeout_seconds
            )
        except InvariantViolation:
            raise
        except asyncio.TimeoutError:
            raise EvaluationFailed(
                f"{scorer.name} timed out after {config.timeout_seconds}s",
                thought_id=thought.thought_id,
                evaluator=scorer.name,
            ) from None
        except Exception as exc:
            raise EvaluationFailed(
                f"{scorer.name} failed: {exc}",
                thought_id=thought.thought_id,
                evaluator=scorer.name,
            ) from exc
        return _check_score(value, scorer.name)

    async def _call_rank(
        self,
        scorer: ThoughtScorer,
        problem: str,
        thoughts: Sequence[Thought],
        config: SearchConfig,
    ) -> list[int]:
        texts = [t.text for t in thoughts]
        try:
            ranking = await call_with_timeout(
                scorer.rank, problem, texts, timeout=config.timeout_seconds
            )
        except InvariantViolation:
            raise
        except asyncio.TimeoutError:
            raise EvaluationFailed(
                f"{scorer.name} ranking timed out after {config.timeout_seconds}s",
                evaluator=scorer.name,
            ) from None
        except Exception as exc:
            raise EvaluationFailed(
                f"{scorer.name} ranking failed: {exc}", evaluator=scorer.name
            ) from exc
        return validate_ranking(ranking, len(thoughts))


# ===================================================================== #
#  Value-style evaluators                                                #
# ===================================================================== #

class PerThoughtEvaluator(BatchEvaluator):
    """Shared batch driver for evaluators that score thoughts independently.

    Duplicate texts within a batch are scored once.  Without early
    stopping the unique thoughts are assessed concurrently (bounded by
    ``max_concurrency``); with ``early_stop_evaluation`` they are assessed
    in order and the rest of the batch is skipped as soon as one thought
    meets the confidence threshold.
    """

    evaluator_origin: EvaluatorOrigin = EvaluatorOrigin.CROSS

    @abstractmethod
    async def assess(
        self, problem: str, thought: Thought, config: SearchConfig
    ) -> Evaluation:
        """Score one thought; may raise ``EvaluationFailed``."""
        ...

    def origin_for(self, thought: Thought) -> EvaluatorOrigin:
        return self.evaluator_origin

    async def evaluate(
        self,
        problem: str,
        thoughts: Sequence[Thought],
        config: SearchConfig,
        cancel_token: CancellationToken | None = None,
    ) -> list[Evaluation]:
        unique: dict[str, Thought] = {}
        for thought in thoughts:
            unique.setdefault(thought.text, thought)

        results: dict[str, Evaluation] = {}
        if config.early_stop_evaluation and config.early_stop_enabled:
            stopped = False
            for text, thought in unique.items():
                if stopped:
                    results[text] = skipped_evaluation(
                        thought.thought_id, "early_stop", self.origin_for(thought)
                    )
                    continue
                evaluation = await self._assess_safely(
                    problem, thought, config, cancel_token
                )
                results[text] = evaluation
                if (
                    not evaluation.metadata.get("skipped")
                    and evaluation.overall_score >= config.confidence_threshold
                ):
                    logger.debug(
                        "%s: %s reached %.2f, skipping the rest of the batch",
                        self.name, thought.thought_id, evaluation.overall_score,
                    )
                    stopped = True
        else:
            items = list(unique.items())
            evaluations = await gather_bounded(
                [
                    lambda t=thought: self._assess_safely(problem, t, config, cancel_token)
                    for _, thought in items
                ],
                config.max_concurrency,
            )
            results = {text: ev for (text, _), ev in zip(items, evaluations)}

        out: list[Evaluation] = []
        for thought in thoughts:
            evaluation = results[thought.text]
            if evaluation.thought_id != thought.thought_id:
                evaluation = dataclasses.replace(evaluation, thought_id=thought.thought_id)
            out.append(evaluation)
        return out

    async def _assess_safely(
        self,
        problem: str,
        thought: Thought,
        config: SearchConfig,
        cancel_token: CancellationToken | None,
    ) -> Evaluation:
        origin = self.origin_for(thought)
        if cancel_token is not None and cancel_token.cancelled:
            return skipped_evaluation(thought.thought_id, "cancelled", origin)

        use_cache = self.cache is not None and config.cache_enabled
        if use_cache:
            cached = self.cache.lookup(problem, thought.text)  # type: ignore[union-attr]
            if cached is not None:
                logger.debug("%s: cache hit for %s", self.name, thought.thought_id)
                return Evaluation(
                    thought_id=thought.thought_id,
                    overall_score=cached,
                    confidence=DEFAULT_CONFIDENCE,
                    evaluator_origin=origin,
                    raw_scores=(cached,),
                    metadata={"cached": True},
                )

        try:
            evaluation = await self.assess(problem, thought, config)
        except EvaluationFailed as exc:
            logger.warning(
                "%s: evaluation of %s failed, recovering with score 0: %s",
                self.name, thought.thought_id, exc,
            )
            return failed_evaluation(thought.thought_id, str(exc), origin)

        if use_cache:
            self.cache.store(problem, thought.text, evaluation.overall_score)  # type: ignore[union-attr]
        return evaluation

    async def _sample(
        self,
        scorer: ThoughtScorer,
        problem: str,
        thought: Thought,
        config: SearchConfig,
        allow_early_stop: bool,
    ) -> list[float]:
        """Draw up to ``n_evaluate`` scores from *scorer*.

        With *allow_early_stop*, sampling ends once at least two samples
        have a running mean at or above the threshold.
        """
        samples: list[float] = []
        for i in range(config.n_evaluate):
            samples.append(await self._call_score(scorer, problem, thought, config))
            if (
                allow_early_stop
                and i >= 1
                and float(np.mean(samples)) >= config.confidence_threshold
            ):
                break
        return samples


@registry.register(EVALUATOR, "value")
class ValueEvaluator(PerThoughtEvaluator):
    """Independent repeated scoring with variance-based confidence.

    Each thought is scored by the other category's scorer when one is
    available, so a category never grades its own output; with a single
    scorer, that scorer grades everything.
    """

    def scorer_for(self, thought: Thought) -> ThoughtScorer:
        return (
            self.scorers.get(thought.origin.opposite)
            or self.scorers.get(thought.origin)
            or self._primary_scorer()
        )

    def origin_for(self, thought: Thought) -> EvaluatorOrigin:
        return EvaluatorOrigin.from_origin(self.scorer_for(thought).origin)

    async def assess(
        self, problem: str, thought: Thought, config: SearchConfig
    ) -> Evaluation:
        scorer = self.scorer_for(thought)
        allow_early_stop = config.early_stop_evaluation and config.early_stop_enabled
        samples = await self._sample(scorer, problem, thought, config, allow_early_stop)
        mean = float(np.mean(samples))
        logger.debug(
            "%s: %s scored %.2f over %d samples by %s",
            self.name, thought.thought_id, mean, len(samples), scorer.name,
        )
        return Evaluation(
            thought_id=thought.thought_id,
            overall_score=_clamp(mean),
            confidence=confidence_from_scores(samples),
            evaluator_origin=EvaluatorOrigin.from_origin(scorer.origin),
            raw_scores=tuple(samples),
            metadata={"method": "value", "evaluator": scorer.name},
        )


@registry.register(EVALUATOR, "cross_value")
class CrossValueEvaluator(PerThoughtEvaluator):
    """Two-category value scoring reconciled by agreement.

    Both categories score every thought ``n_evaluate`` times.  With
    agreement ``1 - |a - b| / max(a, b, 1)`` above 0.8 the two averages are
    averaged; otherwise the lower (more conservative) average wins.
    """

    evaluator_origin = EvaluatorOrigin.CROSS

    def __init__(
        self,
        scorers: ScorerInput,
        cache: EvaluationCache | None = None,
    ) -> None:
        super().__init__(scorers, cache)
        missing = [o.value for o in Origin if o not in self.scorers]
        if missing:
            raise ValueError(
                f"CrossValueEvaluator needs a scorer per origin, missing {missing}"
            )

    async def assess(
        self, problem: str, thought: Thought, config: SearchConfig
    ) -> Evaluation:
        outcomes = await asyncio.gather(
            self._sample(self.scorers[Origin.PRACTICAL], problem, thought, config, False),
            self._sample(self.scorers[Origin.TECHNICAL], problem, thought, config, False),
            return_exceptions=True,
        )
        # Both channels finish before the first failure is raised.
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        practical_samples, technical_samples = outcomes
        practical = float(np.mean(practical_samples))
        technical = float(np.mean(technical_samples))
        agreement = 1.0 - abs(practical - technical) / max(practical, technical, 1.0)

        if agreement > VALUE_AGREEMENT_CUTOFF:
            raw = tuple(practical_samples) + tuple(technical_samples)
            combined = "mean"
        elif practical <= technical:
            raw = tuple(practical_samples)
            combined = "min"
        else:
            raw = tuple(technical_samples)
            combined = "min"
        score = float(np.mean(raw))
        logger.debug(
            "%s: %s practical=%.2f technical=%.2f agreement=%.2f -> %.2f",
            self.name, thought.thought_id, practical, technical, agreement, score,
        )
        return Evaluation(
            thought_id=thought.thought_id,
            overall_score=_clamp(score),
            confidence=confidence_from_scores(raw),
            evaluator_origin=EvaluatorOrigin.CROSS,
            raw_scores=raw,
            breakdown={
                Origin.PRACTICAL.value: practical,
                Origin.TECHNICAL.value: technical,
                "agreement": agreement,
            },
            metadata={"method": "cross_value", "combined": combined},
        )


# ===================================================================== #
#  Vote-style evaluators                                                 #
# ===================================================================== #

class _RankingEvaluator(BatchEvaluator):
    method = EvaluationMethod.VOTE

    async def _collect_rankings(
        self,
        scorer: ThoughtScorer,
        problem: str,
        thoughts: Sequence[Thought],
        config: SearchConfig,
        cancel_token: CancellationToken | None,
    ) -> tuple[list[list[int]], list[str]]:
        """Gather ``n_evaluate`` rankings; failed ones are dropped and reported."""

        async def _one() -> list[int] | str:
            if cancel_token is not None and cancel_token.cancelled:
                return "cancelled"
            try:
                return await self._call_rank(scorer, problem, thoughts, config)
            except EvaluationFailed as exc:
                logger.warning("%s: ranking dropped: %s", self.name, exc)
                return str(exc)

        outcomes = await gather_bounded(
            [_one for _ in range(config.n_evaluate)], config.max_concurrency
        )
        rankings = [o for o in outcomes if isinstance(o, list)]
        errors = [o for o in outcomes if isinstance(o, str)]
        return rankings, errors


@registry.register(EVALUATOR, "vote")
class VoteEvaluator(_RankingEvaluator):
    """Comparative ranking aggregated with a Borda count.

    Each thought's ``raw_scores`` are its normalized points in the
    individual rankings, so their mean is the Borda score.  When every
    ranking fails, the whole batch gets the failure record.
    """

    async def evaluate(
        self,
        problem: str,
        thoughts: Sequence[Thought],
        config: SearchConfig,
        cancel_token: CancellationToken | None = None,
    ) -> list[Evaluation]:
        if not thoughts:
            return []
        scorer = self._primary_scorer()
        origin = EvaluatorOrigin.from_origin(scorer.origin)
        if cancel_token is not None and cancel_token.cancelled:
            return [skipped_evaluation(t.thought_id, "cancelled", origin) for t in thoughts]
        rankings, errors = await self._collect_rankings(
            scorer, problem, thoughts, config, cancel_token
        )
        if not rankings:
            error = "; ".join(errors) or "no rankings"
            logger.warning("%s: all rankings failed for the batch", self.name)
            return [failed_evaluation(t.thought_id, error, origin) for t in thoughts]

        n = len(thoughts)
        points = ranking_points(rankings, n)
        borda = aggregate_votes(rankings, n)
        evaluations = []
        for i, thought in enumerate(thoughts):
            raw = tuple(float(p) for p in points[:, i])
            evaluations.append(
                Evaluation(
                    thought_id=thought.thought_id,
                    overall_score=_clamp(float(np.mean(raw))),
                    confidence=confidence_from_scores(raw),
                    evaluator_origin=origin,
                    raw_scores=raw,
                    breakdown={"borda": borda[i]},
                    metadata={
                        "method": "vote",
                        "rankings": len(rankings),
                        "dropped_rankings": len(errors),
                    },
                )
            )
        logger.debug(
            "%s: %d thoughts ranked %d times, best %.2f",
            self.name, n, len(rankings), max(borda),
        )
        return evaluations


@registry.register(EVALUATOR, "cross_vote")
class CrossVoteEvaluator(_RankingEvaluator):
    """Two-category voting reconciled by rank correlation.

    Each category produces Borda scores; their Spearman correlation
    (clamped at 0) is the consensus.  Above 0.7 the two score vectors are
    averaged, otherwise they are blended 0.6/0.4 in favor of the practical
    category.  A category whose rankings all fail is left out.
    """

    def __init__(
        self,
        scorers: ScorerInput,
        cache: EvaluationCache | None = None,
    ) -> None:
        super().__init__(scorers, cache)
        missing = [o.value for o in Origin if o not in self.scorers]
        if missing:
            raise ValueError(
                f"CrossVoteEvaluator needs a scorer per origin, missing {missing}"
            )

    async def evaluate(
        self,
        problem: str,
        thoughts: Sequence[Thought],
        config: SearchConfig,
        cancel_token: CancellationToken | None = None,
    ) -> list[Evaluation]:
        if not thoughts:
            return []
        n = len(thoughts)
        if cancel_token is not None and cancel_token.cancelled:
            return [
                skipped_evaluation(t.thought_id, "cancelled", EvaluatorOrigin.CROSS)
                for t in thoughts
            ]
        (p_rankings, p_errors), (t_rankings, t_errors) = await asyncio.gather(
            self._collect_rankings(
                self.scorers[Origin.PRACTICAL], problem, thoughts, config, cancel_token
            ),
            self._collect_rankings(
                self.scorers[Origin.TECHNICAL], problem, thoughts, config, cancel_token
            ),
        )

        if not p_rankings and not t_rankings:
            error = "; ".join(p_errors + t_errors) or "no rankings"
            logger.warning("%s: all rankings failed for the batch", self.name)
            return [
                failed_evaluation(t.thought_id, error, EvaluatorOrigin.CROSS)
                for t in thoughts
            ]

        practical = aggregate_votes(p_rankings, n) if p_rankings else None
        technical = aggregate_votes(t_rankings, n) if t_rankings else None
        if practical is not None and technical is not None:
            consensus = rank_correlation(practical, technical)
            if consensus > VOTE_CONSENSUS_CUTOFF:
                weights = (0.5, 0.5)
            else:
                weights = (PRACTICAL_VOTE_WEIGHT, 1.0 - PRACTICAL_VOTE_WEIGHT)
            combined = [
                p * weights[0] + t * weights[1] for p, t in zip(practical, technical)
            ]
        else:
            consensus = 0.0
            weights = (1.0, 0.0) if practical is not None else (0.0, 1.0)
            combined = list(practical if practical is not None else technical)  # type: ignore[arg-type]
            logger.warning(
                "%s: one category produced no rankings, using the other alone",
                self.name,
            )

        logger.debug(
            "%s: consensus=%.2f weights=%s", self.name, consensus, weights
        )
        evaluations = []
        for i, thought in enumerate(thoughts):
            score = _clamp(combined[i])
            breakdown = {"consensus": consensus}
            if practical is not None:
                breakdown[Origin.PRACTICAL.value] = practical[i]
            if technical is not None:
                breakdown[Origin.TECHNICAL.value] = technical[i]
            evaluations.append(
                Evaluation(
                    thought_id=thought.thought_id,
                    overall_score=score,
                    confidence=confidence_from_scores((score,)),
                    evaluator_origin=EvaluatorOrigin.CROSS,
                    raw_scores=(score,),
                    breakdown=breakdown,
                    metadata={
                        "method": "cross_vote",
                        "weights": list(weights),
                        "dropped_rankings": len(p_errors) + len(t_errors),
                    },
                )
            )
        return evaluations


# ===================================================================== #
#  Factory                                                               #
# ===================================================================== #

def evaluator_name(config: SearchConfig, scorers: Mapping[Origin, ThoughtScorer]) -> str:
    """Registry name of the evaluator *config* calls for."""
    cross = config.cross_evaluation and all(o in scorers for o in Origin)
    if config.evaluation_method is EvaluationMethod.VOTE:
        return "cross_vote" if cross else "vote"
    return "cross_value" if cross else "value"


def build_evaluator(
    config: SearchConfig,
    scorers: ScorerInput,
    cache: EvaluationCache | None = None,
    components: ComponentRegistry | None = None,
) -> BatchEvaluator:
    """Build the batch evaluator described by *config*.

    Cross-category evaluators are used when ``cross_evaluation`` is set and
    a scorer exists for both origins.  A fresh cache honoring
    ``cache_ttl_seconds`` is created when caching is enabled and none is
    given.
    """
    scorer_map = as_scorer_map(scorers)
    if config.cache_enabled and cache is None:
        cache = EvaluationCache(ttl_seconds=config.cache_ttl_seconds)
    name = evaluator_name(config, scorer_map)
    evaluator = (components or registry).create(
        EVALUATOR, name, scorers=scorer_map, cache=cache if config.cache_enabled else None
    )
    logger.debug("build_evaluator: %s for %s", type(evaluator).__name__, name)
    return evaluator

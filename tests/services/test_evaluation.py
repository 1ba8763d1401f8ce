"""Tests for the evaluation services: numeric helpers and batch evaluators."""

from __future__ import annotations

import asyncio

import pytest

from thought_search.domain.entities import Thought
from thought_search.domain.enums import EvaluatorOrigin, Origin
from thought_search.domain.exceptions import InvariantViolation
from thought_search.infrastructure.cache import EvaluationCache
from thought_search.infrastructure.config import SearchConfig
from thought_search.services.dispatch import CancellationToken
from thought_search.services.evaluation import (
    CrossValueEvaluator,
    CrossVoteEvaluator,
    FunctionScorer,
    ValueEvaluator,
    VoteEvaluator,
    aggregate_votes,
    build_evaluator,
    confidence_from_scores,
    normalize_scores,
    rank_correlation,
    scores_to_rankings,
    validate_ranking,
)
from thought_search.testing import FailingScorer, MockThoughtScorer, ScriptedScorer

PROBLEM = "The service returns 500 on login"


def _config(**overrides) -> SearchConfig:
    base = dict(
        n_generate=5,
        n_select=2,
        n_evaluate=3,
        confidence_threshold=0.0,
        cache_enabled=False,
        timeout_seconds=2.0,
    )
    base.update(overrides)
    return SearchConfig(**base)


# ===================================================================== #
#  Numeric helpers                                                        #
# ===================================================================== #


class TestConfidence:

    def test_identical_scores(self) -> None:
        assert confidence_from_scores([7.0, 7.0, 7.0]) == 1.0

    def test_single_sample_default(self) -> None:
        assert confidence_from_scores([4.0]) == 0.8
        assert confidence_from_scores([]) == 0.8

    def test_floor(self) -> None:
        assert confidence_from_scores([0.0, 10.0]) == 0.5

    def test_formula(self) -> None:
        # population variance of (6, 8) is 1.0
        assert confidence_from_scores([6.0, 8.0]) == round(1 - 1 / 8, 2)

    def test_monotonic_in_variance(self) -> None:
        spreads = [0.0, 0.5, 1.0, 2.0, 3.0, 5.0]
        confidences = [confidence_from_scores([5.0 - s, 5.0 + s]) for s in spreads]
        assert confidences == sorted(confidences, reverse=True)
        assert all(0.5 <= c <= 1.0 for c in confidences)


class TestBorda:

    def test_unanimous_first_scores_ten(self) -> None:
        scores = aggregate_votes([[2, 0, 1]] * 4, 3)
        assert scores[2] == pytest.approx(10.0)
        assert scores[0] == pytest.approx(20 / 3)
        assert scores[1] == pytest.approx(10 / 3)

    def test_mixed_rankings(self) -> None:
        scores = aggregate_votes([[0, 1], [1, 0]], 2)
        assert scores == [pytest.approx(7.5), pytest.approx(7.5)]

    def test_empty_batch(self) -> None:
        assert aggregate_votes([], 0) == []

    @pytest.mark.parametrize("ranking", [[0, 0, 1], [0, 1], [0, 1, 3], ["a", 1, 2]])
    def test_non_permutation_rejected(self, ranking: list) -> None:
        with pytest.raises(InvariantViolation):
            validate_ranking(ranking, 3)


class TestRankCorrelation:

    def test_identical_order(self) -> None:
        assert rank_correlation([1, 2, 3], [10, 20, 30]) == pytest.approx(1.0)

    def test_reversed_order_clamped(self) -> None:
        assert rank_correlation([1, 2, 3], [3, 2, 1]) == 0.0

    def test_short_input(self) -> None:
        assert rank_correlation([4.0], [1.0]) == 1.0

    def test_length_mismatch(self) -> None:
        with pytest.raises(ValueError):
            rank_correlation([1, 2], [1])

    def test_scores_to_rankings(self) -> None:
        assert scores_to_rankings([5.0, 9.0, 5.0]) == [1, 0, 2]


class TestNormalize:

    def test_minmax(self) -> None:
        assert normalize_scores([2.0, 4.0, 6.0]) == [0.0, 5.0, 10.0]

    def test_constant_batch(self) -> None:
        assert normalize_scores([3.0, 3.0], "zscore") == [5.0, 5.0]

    def test_zscore_centre(self) -> None:
        out = normalize_scores([1.0, 2.0, 3.0], "zscore")
        assert out[1] == pytest.approx(5.0)
        assert all(0.0 <= v <= 10.0 for v in out)

    def test_unknown_method(self) -> None:
        with pytest.raises(ValueError):
            normalize_scores([1.0], "rank")


# ===================================================================== #
#  Value evaluation                                                       #
# ===================================================================== #


class TestValueEvaluator:

    @pytest.mark.asyncio
    async def test_scores_each_thought(self, mixed_batch: list[Thought]) -> None:
        scorer = ScriptedScorer(lambda text: 6.0)
        evaluations = await ValueEvaluator(scorer).evaluate(PROBLEM, mixed_batch, _config())
        assert [e.thought_id for e in evaluations] == [t.thought_id for t in mixed_batch]
        assert all(e.overall_score == 6.0 for e in evaluations)
        assert all(e.evaluation_count == 3 for e in evaluations)
        assert all(e.confidence == 1.0 for e in evaluations)
        assert evaluations[0].evaluator_origin is EvaluatorOrigin.PRACTICAL

    @pytest.mark.asyncio
    async def test_mean_and_confidence_from_samples(self) -> None:
        values = iter([6.0, 8.0])
        scorer = ScriptedScorer(lambda text: next(values))
        thought = Thought(text="a", origin=Origin.PRACTICAL)
        [ev] = await ValueEvaluator(scorer).evaluate(
            PROBLEM, [thought], _config(n_evaluate=2)
        )
        assert ev.overall_score == 7.0
        assert ev.raw_scores == (6.0, 8.0)
        assert ev.confidence == 0.88

    @pytest.mark.asyncio
    async def test_opposite_category_scores(self, mixed_batch: list[Thought]) -> None:
        practical = ScriptedScorer(lambda text: 4.0, origin=Origin.PRACTICAL)
        technical = ScriptedScorer(lambda text: 8.0, origin=Origin.TECHNICAL)
        evaluator = ValueEvaluator({Origin.PRACTICAL: practical, Origin.TECHNICAL: technical})
        evaluations = await evaluator.evaluate(PROBLEM, mixed_batch, _config(n_evaluate=1))
        # practical thoughts are graded by the technical scorer and vice versa
        assert [e.overall_score for e in evaluations] == [8.0, 8.0, 8.0, 4.0, 4.0]
        assert evaluations[0].evaluator_origin is EvaluatorOrigin.TECHNICAL

    @pytest.mark.asyncio
    async def test_duplicates_scored_once(self) -> None:
        scorer = ScriptedScorer(lambda text: 5.0)
        thoughts = [
            Thought(text="same", origin=Origin.PRACTICAL, thought_id="a"),
            Thought(text="same", origin=Origin.PRACTICAL, thought_id="b"),
        ]
        evaluations = await ValueEvaluator(scorer).evaluate(
            PROBLEM, thoughts, _config(n_evaluate=1)
        )
        assert len(scorer.scored) == 1
        assert [e.thought_id for e in evaluations] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_failure_recovered(self, mixed_batch: list[Thought]) -> None:
        evaluations = await ValueEvaluator(FailingScorer()).evaluate(
            PROBLEM, mixed_batch, _config()
        )
        for ev in evaluations:
            assert ev.overall_score == 0.0
            assert ev.confidence == 0.5
            assert ev.failed
            assert "scorer unavailable" in ev.metadata["error"]

    @pytest.mark.asyncio
    async def test_timeout_recovered(self) -> None:
        scorer = ScriptedScorer(lambda text: 9.0, delay=0.5)
        thought = Thought(text="slow", origin=Origin.PRACTICAL)
        [ev] = await ValueEvaluator(scorer).evaluate(
            PROBLEM, [thought], _config(n_evaluate=1, timeout_seconds=0.05)
        )
        assert ev.failed
        assert "timed out" in ev.metadata["error"]

    @pytest.mark.asyncio
    async def test_out_of_range_score_is_fatal(self) -> None:
        scorer = ScriptedScorer(lambda text: 12.0)
        thought = Thought(text="a", origin=Origin.PRACTICAL)
        with pytest.raises(InvariantViolation, match="outside"):
            await ValueEvaluator(scorer).evaluate(PROBLEM, [thought], _config())

    @pytest.mark.asyncio
    async def test_sync_function_scorer(self) -> None:
        scorer = FunctionScorer(score_fn=lambda problem, text: 3.5)
        thought = Thought(text="a", origin=Origin.TECHNICAL)
        [ev] = await ValueEvaluator(scorer).evaluate(PROBLEM, [thought], _config())
        assert ev.overall_score == 3.5

    @pytest.mark.asyncio
    async def test_cache_hit(self) -> None:
        cache = EvaluationCache()
        scorer = ScriptedScorer(lambda text: 7.0)
        evaluator = ValueEvaluator(scorer, cache=cache)
        config = _config(cache_enabled=True)
        thought = Thought(text="a", origin=Origin.PRACTICAL, thought_id="first")
        await evaluator.evaluate(PROBLEM, [thought], config)
        assert len(scorer.scored) == 3

        again = Thought(text="a", origin=Origin.PRACTICAL, thought_id="second")
        [ev] = await evaluator.evaluate(PROBLEM, [again], config)
        assert len(scorer.scored) == 3
        assert ev.metadata["cached"] is True
        assert ev.overall_score == 7.0
        assert ev.confidence == 0.8
        assert ev.thought_id == "second"

    @pytest.mark.asyncio
    async def test_early_stop_skips_rest_of_batch(self) -> None:
        scorer = ScriptedScorer(lambda text: 9.5 if text == "good" else 3.0)
        thoughts = [
            Thought(text="weak", origin=Origin.PRACTICAL),
            Thought(text="good", origin=Origin.PRACTICAL),
            Thought(text="later", origin=Origin.PRACTICAL),
        ]
        config = _config(confidence_threshold=9.0, early_stop_evaluation=True)
        evaluations = await ValueEvaluator(scorer).evaluate(PROBLEM, thoughts, config)
        assert evaluations[1].overall_score == 9.5
        # sampling stopped after two samples at or above the threshold
        assert evaluations[1].evaluation_count == 2
        assert evaluations[2].metadata["skipped"] is True
        assert evaluations[2].overall_score == 0.0
        assert evaluations[2].confidence == 0.8
        assert "later" not in scorer.scored

    @pytest.mark.asyncio
    async def test_cancelled_batch_is_skipped(self, mixed_batch: list[Thought]) -> None:
        token = CancellationToken()
        token.cancel("user abort")
        scorer = ScriptedScorer(lambda text: 5.0)
        evaluations = await ValueEvaluator(scorer).evaluate(
            PROBLEM, mixed_batch, _config(), token
        )
        assert scorer.scored == []
        assert all(e.metadata["reason"] == "cancelled" for e in evaluations)


class TestCrossValueEvaluator:

    @pytest.mark.asyncio
    async def test_agreement_averages(self) -> None:
        evaluator = CrossValueEvaluator(
            {
                Origin.PRACTICAL: ScriptedScorer(lambda t: 8.0, origin=Origin.PRACTICAL),
                Origin.TECHNICAL: ScriptedScorer(lambda t: 7.0, origin=Origin.TECHNICAL),
            }
        )
        thought = Thought(text="a", origin=Origin.PRACTICAL)
        [ev] = await evaluator.evaluate(PROBLEM, [thought], _config(n_evaluate=2))
        assert ev.overall_score == pytest.approx(7.5)
        assert ev.evaluation_count == 4
        assert ev.breakdown["agreement"] == pytest.approx(1 - 1 / 8)
        assert ev.metadata["combined"] == "mean"
        assert ev.evaluator_origin is EvaluatorOrigin.CROSS

    @pytest.mark.asyncio
    async def test_disagreement_takes_minimum(self) -> None:
        evaluator = CrossValueEvaluator(
            {
                Origin.PRACTICAL: ScriptedScorer(lambda t: 9.0, origin=Origin.PRACTICAL),
                Origin.TECHNICAL: ScriptedScorer(lambda t: 3.0, origin=Origin.TECHNICAL),
            }
        )
        thought = Thought(text="a", origin=Origin.TECHNICAL)
        [ev] = await evaluator.evaluate(PROBLEM, [thought], _config(n_evaluate=2))
        assert ev.overall_score == 3.0
        assert ev.raw_scores == (3.0, 3.0)
        assert ev.breakdown["practical"] == 9.0
        assert ev.breakdown["technical"] == 3.0
        assert ev.metadata["combined"] == "min"

    @pytest.mark.asyncio
    async def test_one_channel_failing_waits_for_the_other(self) -> None:
        slow = ScriptedScorer(lambda t: 6.0, origin=Origin.TECHNICAL, delay=0.02)
        evaluator = CrossValueEvaluator(
            {Origin.PRACTICAL: FailingScorer(origin=Origin.PRACTICAL), Origin.TECHNICAL: slow}
        )
        thought = Thought(text="a", origin=Origin.PRACTICAL)
        [ev] = await evaluator.evaluate(PROBLEM, [thought], _config(n_evaluate=2))
        assert ev.failed
        assert ev.overall_score == 0.0
        assert "scorer unavailable" in ev.metadata["error"]
        # the technical channel ran to completion before the failure surfaced
        assert slow.scored == ["a", "a"]

    def test_needs_both_scorers(self) -> None:
        with pytest.raises(ValueError, match="technical"):
            CrossValueEvaluator(MockThoughtScorer(origin=Origin.PRACTICAL))


# ===================================================================== #
#  Vote evaluation                                                        #
# ===================================================================== #


class TestVoteEvaluator:

    @pytest.mark.asyncio
    async def test_borda_scores(self) -> None:
        scores = {"a": 2.0, "b": 9.0, "c": 5.0}
        scorer = ScriptedScorer(lambda text: scores[text])
        thoughts = [Thought(text=t, origin=Origin.PRACTICAL) for t in "abc"]
        evaluations = await VoteEvaluator(scorer).evaluate(PROBLEM, thoughts, _config())
        assert evaluations[1].overall_score == pytest.approx(10.0)
        assert evaluations[2].overall_score == pytest.approx(20 / 3)
        assert evaluations[0].overall_score == pytest.approx(10 / 3)
        assert evaluations[1].evaluation_count == 3
        assert evaluations[1].confidence == 1.0
        assert len(scorer.ranked) == 3

    @pytest.mark.asyncio
    async def test_all_rankings_failed(self, mixed_batch: list[Thought]) -> None:
        evaluations = await VoteEvaluator(FailingScorer()).evaluate(
            PROBLEM, mixed_batch, _config()
        )
        assert all(e.failed and e.overall_score == 0.0 for e in evaluations)

    @pytest.mark.asyncio
    async def test_malformed_ranking_is_fatal(self) -> None:
        scorer = FunctionScorer(rank_fn=lambda problem, texts: [0, 0])
        thoughts = [Thought(text=t, origin=Origin.PRACTICAL) for t in "ab"]
        with pytest.raises(InvariantViolation, match="permutation"):
            await VoteEvaluator(scorer).evaluate(PROBLEM, thoughts, _config())

    @pytest.mark.asyncio
    async def test_empty_batch(self) -> None:
        assert await VoteEvaluator(MockThoughtScorer()).evaluate(PROBLEM, [], _config()) == []


class TestCrossVoteEvaluator:

    @pytest.mark.asyncio
    async def test_consensus_equal_weights(self) -> None:
        scores = {"a": 2.0, "b": 9.0, "c": 5.0}
        evaluator = CrossVoteEvaluator(
            {
                Origin.PRACTICAL: ScriptedScorer(scores.__getitem__, origin=Origin.PRACTICAL),
                Origin.TECHNICAL: ScriptedScorer(scores.__getitem__, origin=Origin.TECHNICAL),
            }
        )
        thoughts = [Thought(text=t, origin=Origin.PRACTICAL) for t in "abc"]
        evaluations = await evaluator.evaluate(PROBLEM, thoughts, _config())
        assert evaluations[1].overall_score == pytest.approx(10.0)
        assert evaluations[1].breakdown["consensus"] == pytest.approx(1.0)
        assert evaluations[1].metadata["weights"] == [0.5, 0.5]
        assert evaluations[1].confidence == 0.8

    @pytest.mark.asyncio
    async def test_disagreement_favours_practical(self) -> None:
        practical = {"a": 9.0, "b": 5.0, "c": 1.0}
        technical = {"a": 1.0, "b": 5.0, "c": 9.0}
        evaluator = CrossVoteEvaluator(
            {
                Origin.PRACTICAL: ScriptedScorer(practical.__getitem__, origin=Origin.PRACTICAL),
                Origin.TECHNICAL: ScriptedScorer(technical.__getitem__, origin=Origin.TECHNICAL),
            }
        )
        thoughts = [Thought(text=t, origin=Origin.TECHNICAL) for t in "abc"]
        evaluations = await evaluator.evaluate(PROBLEM, thoughts, _config())
        assert evaluations[0].breakdown["consensus"] == 0.0
        # a: practical 10, technical 10/3
        assert evaluations[0].overall_score == pytest.approx(0.6 * 10 + 0.4 * 10 / 3)
        assert evaluations[0].overall_score > evaluations[2].overall_score

    @pytest.mark.asyncio
    async def test_one_side_failing(self) -> None:
        scores = {"a": 2.0, "b": 9.0}
        evaluator = CrossVoteEvaluator(
            {
                Origin.PRACTICAL: FailingScorer(origin=Origin.PRACTICAL),
                Origin.TECHNICAL: ScriptedScorer(scores.__getitem__, origin=Origin.TECHNICAL),
            }
        )
        thoughts = [Thought(text=t, origin=Origin.PRACTICAL) for t in "ab"]
        evaluations = await evaluator.evaluate(PROBLEM, thoughts, _config())
        assert evaluations[1].overall_score == pytest.approx(10.0)
        assert "practical" not in evaluations[1].breakdown
        assert evaluations[1].metadata["dropped_rankings"] == 3


# ===================================================================== #
#  Factory                                                                #
# ===================================================================== #


class TestBuildEvaluator:

    @pytest.mark.parametrize(
        "method, cross, expected",
        [
            ("value", True, CrossValueEvaluator),
            ("value", False, ValueEvaluator),
            ("vote", True, CrossVoteEvaluator),
            ("vote", False, VoteEvaluator),
        ],
    )
    def test_selects_class(self, scorers, method: str, cross: bool, expected: type) -> None:
        config = _config(evaluation_method=method, cross_evaluation=cross)
        assert type(build_evaluator(config, scorers)) is expected

    def test_single_scorer_falls_back(self, scorer: MockThoughtScorer) -> None:
        assert type(build_evaluator(_config(), scorer)) is ValueEvaluator

    def test_cache_created_with_ttl(self, scorer: MockThoughtScorer) -> None:
        evaluator = build_evaluator(_config(cache_enabled=True, cache_ttl_seconds=5.0), scorer)
        assert evaluator.cache is not None
        assert evaluator.cache.ttl_seconds == 5.0

    def test_cache_disabled(self, scorer: MockThoughtScorer) -> None:
        evaluator = build_evaluator(_config(cache_enabled=False), scorer, cache=EvaluationCache())
        assert evaluator.cache is None


def test_hash_scorer_is_stable() -> None:
    scorer = MockThoughtScorer()
    first = asyncio.run(scorer.score(PROBLEM, "idea"))
    second = asyncio.run(scorer.score(PROBLEM, "idea"))
    assert first == second
    assert 3.0 <= first <= 9.0

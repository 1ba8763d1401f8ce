"""Service layer for the thought-search engine.

Re-exports public service types for convenient top-level access::

    from thought_search.services import (
        ThoughtGenerator, CategoryGenerator, MockThoughtGenerator,
        ThoughtScorer, FunctionScorer, BatchEvaluator,
        ValueEvaluator, CrossValueEvaluator, VoteEvaluator, CrossVoteEvaluator,
        SelectionStrategy, GreedySelector, SampleSelector, HybridSelector,
        ThresholdSelector, EnsembleSelector, CategoryAwareSelector,
        BreadthFirstSearch, DepthFirstSearch, run_search,
    )

The LLM adapters live in :mod:`thought_search.services.llm_generation` and
:mod:`thought_search.services.llm_scoring`.
"""

from thought_search.services.dispatch import (
    CancellationToken,
    call_with_timeout,
    gather_bounded,
)
from thought_search.services.evaluation import (
    BatchEvaluator,
    CrossValueEvaluator,
    CrossVoteEvaluator,
    FunctionScorer,
    PerThoughtEvaluator,
    ThoughtScorer,
    ValueEvaluator,
    VoteEvaluator,
    aggregate_votes,
    build_evaluator,
    confidence_from_scores,
    normalize_scores,
    rank_correlation,
)
from thought_search.services.generation import (
    CategoryGenerator,
    MockThoughtGenerator,
    ThoughtGenerator,
)
from thought_search.services.result import (
    assemble_result,
    depth_distribution,
    extract_path,
    origin_distribution,
    tree_statistics,
)
from thought_search.services.search import (
    BaseTreeSearch,
    BreadthFirstSearch,
    DepthFirstSearch,
    breadth_first_search,
    depth_first_search,
    run_search,
    run_search_sync,
)
from thought_search.services.selection import (
    CategoryAwareSelector,
    EnsembleSelector,
    GreedySelector,
    HybridSelector,
    SampleSelector,
    SelectionStrategy,
    ThresholdSelector,
    build_selector,
    select_adaptive_threshold,
    select_category_aware,
    select_ensemble,
    select_greedy,
    select_hybrid,
    select_sample,
    select_threshold,
)

__all__ = [
    # dispatch
    "CancellationToken",
    "call_with_timeout",
    "gather_bounded",
    # generation
    "CategoryGenerator",
    "MockThoughtGenerator",
    "ThoughtGenerator",
    # evaluation
    "BatchEvaluator",
    "CrossValueEvaluator",
    "CrossVoteEvaluator",
    "FunctionScorer",
    "PerThoughtEvaluator",
    "ThoughtScorer",
    "ValueEvaluator",
    "VoteEvaluator",
    "aggregate_votes",
    "build_evaluator",
    "confidence_from_scores",
    "normalize_scores",
    "rank_correlation",
    # selection
    "CategoryAwareSelector",
    "EnsembleSelector",
    "GreedySelector",
    "HybridSelector",
    "SampleSelector",
    "SelectionStrategy",
    "ThresholdSelector",
    "build_selector",
    "select_adaptive_threshold",
    "select_category_aware",
    "select_ensemble",
    "select_greedy",
    "select_hybrid",
    "select_sample",
    "select_threshold",
    # result
    "assemble_result",
    "depth_distribution",
    "extract_path",
    "origin_distribution",
    "tree_statistics",
    # search
    "BaseTreeSearch",
    "BreadthFirstSearch",
    "DepthFirstSearch",
    "breadth_first_search",
    "depth_first_search",
    "run_search",
    "run_search_sync",
]

"""Serialization utilities for the thought-search engine.

Provides ``to_dict`` / ``from_dict`` conversion for thoughts, evaluations,
search results and configs.

Design goals:
- Every ``to_dict`` output is JSON-serializable (enum values, plain lists,
  no numpy scalars).
- ``from_dict`` reconstructors re-run the domain validation, so a
  tampered document raises ``InvariantViolation`` or ``ValueError``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from thought_search.domain.entities import Thought
from thought_search.domain.enums import EvaluatorOrigin, Origin
from thought_search.domain.values import Evaluation, SearchResult
from thought_search.infrastructure.config import SearchConfig

logger = logging.getLogger(__name__)


# =========================================================================== #
#  Generic helpers                                                             #
# =========================================================================== #

def _enum_val(v: Any) -> Any:
    """Return the ``.value`` if *v* is an enum member, else *v* unchanged."""
    if hasattr(v, "value"):
        return v.value
    return v


def _plain(value: Any) -> Any:
    """Recursively convert metadata into JSON-friendly builtins."""
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_plain(v) for v in value]
    if hasattr(value, "item") and callable(value.item):
        # numpy scalar
        return value.item()
    return _enum_val(value)


# =========================================================================== #
#  Thought                                                                     #
# =========================================================================== #

def thought_to_dict(thought: Thought) -> dict[str, Any]:
    return {
        "thought_id": thought.thought_id,
        "text": thought.text,
        "origin": thought.origin.value,
        "depth": thought.depth,
        "parent_id": thought.parent_id,
        "score": thought.score,
        "confidence": thought.confidence,
        "metadata": _plain(thought.metadata),
    }


def thought_from_dict(data: dict[str, Any]) -> Thought:
    score = data.get("score")
    confidence = data.get("confidence")
    return Thought(
        text=data["text"],
        origin=Origin(data["origin"]),
        depth=int(data.get("depth", 0)),
        parent_id=data.get("parent_id"),
        thought_id=data["thought_id"],
        score=float(score) if score is not None else None,
        confidence=float(confidence) if confidence is not None else None,
        metadata=dict(data.get("metadata", {})),
    )


# =========================================================================== #
#  Evaluation                                                                  #
# =========================================================================== #

def evaluation_to_dict(evaluation: Evaluation) -> dict[str, Any]:
    return {
        "thought_id": evaluation.thought_id,
        "overall_score": float(evaluation.overall_score),
        "confidence": float(evaluation.confidence),
        "evaluator_origin": evaluation.evaluator_origin.value,
        "raw_scores": [float(s) for s in evaluation.raw_scores],
        "breakdown": {k: float(v) for k, v in evaluation.breakdown.items()},
        "metadata": _plain(evaluation.metadata),
    }


def evaluation_from_dict(data: dict[str, Any]) -> Evaluation:
    return Evaluation(
        thought_id=data["thought_id"],
        overall_score=float(data["overall_score"]),
        confidence=float(data["confidence"]),
        evaluator_origin=EvaluatorOrigin(data.get("evaluator_origin", "cross")),
        raw_scores=tuple(float(s) for s in data.get("raw_scores", ())),
        breakdown={k: float(v) for k, v in data.get("breakdown", {}).items()},
        metadata=dict(data.get("metadata", {})),
    )


# =========================================================================== #
#  SearchResult                                                                #
# =========================================================================== #

def search_result_to_dict(result: SearchResult) -> dict[str, Any]:
    """Flatten *result*; the path is stored as ids into ``all_thoughts``."""
    return {
        "best_thought_id": result.best_thought.thought_id,
        "path": result.path_ids(),
        "all_thoughts": [thought_to_dict(t) for t in result.all_thoughts],
        "evaluations": {
            tid: evaluation_to_dict(e) for tid, e in result.evaluations.items()
        },
        "metadata": _plain(result.metadata),
    }


def search_result_from_dict(data: dict[str, Any]) -> SearchResult:
    thoughts = [thought_from_dict(t) for t in data["all_thoughts"]]
    by_id = {t.thought_id: t for t in thoughts}
    try:
        path = tuple(by_id[tid] for tid in data["path"])
        best = by_id[data["best_thought_id"]]
    except KeyError as exc:
        raise ValueError(f"Search result references unknown thought {exc}") from None
    return SearchResult(
        best_thought=best,
        path=path,
        all_thoughts=tuple(thoughts),
        evaluations={
            tid: evaluation_from_dict(e) for tid, e in data["evaluations"].items()
        },
        metadata=dict(data.get("metadata", {})),
    )


def search_result_to_json(result: SearchResult, indent: int | None = 2) -> str:
    return json.dumps(search_result_to_dict(result), indent=indent, ensure_ascii=False)


def search_result_from_json(text: str) -> SearchResult:
    return search_result_from_dict(json.loads(text))


# =========================================================================== #
#  Config                                                                      #
# =========================================================================== #

def search_config_to_json(config: SearchConfig, indent: int | None = 2) -> str:
    return json.dumps(config.to_dict(), indent=indent)


def search_config_from_json(text: str) -> SearchConfig:
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("SearchConfig JSON must be an object")
    return SearchConfig.from_dict(data)

"""Result assembly: path reconstruction and tree statistics."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping, Sequence
from typing import Any

from thought_search.domain.aggregates import ThoughtTree
from thought_search.domain.entities import Thought
from thought_search.domain.exceptions import InvariantViolation
from thought_search.domain.values import Evaluation, SearchResult

logger = logging.getLogger(__name__)


def extract_path(thoughts: Sequence[Thought], leaf_id: str) -> list[Thought]:
    """Root-to-leaf path ending at *leaf_id*.

    Raises ``InvariantViolation`` when the leaf or any parent id does not
    resolve, or when the parent chain loops.
    """
    by_id = {t.thought_id: t for t in thoughts}
    if leaf_id not in by_id:
        raise InvariantViolation(f"Thought {leaf_id!r} not found")

    path: list[Thought] = []
    seen: set[str] = set()
    current: Thought | None = by_id[leaf_id]
    while current is not None:
        if current.thought_id in seen:
            raise InvariantViolation(
                f"Parent chain of {leaf_id!r} loops at {current.thought_id!r}"
            )
        seen.add(current.thought_id)
        path.append(current)
        if current.parent_id is None:
            current = None
        elif current.parent_id in by_id:
            current = by_id[current.parent_id]
        else:
            raise InvariantViolation(
                f"Parent {current.parent_id!r} of {current.thought_id!r} not found"
            )
    path.reverse()
    return path


def origin_distribution(thoughts: Sequence[Thought]) -> dict[str, int]:
    return dict(Counter(t.origin.value for t in thoughts))


def depth_distribution(thoughts: Sequence[Thought]) -> dict[int, int]:
    return dict(sorted(Counter(t.depth for t in thoughts).items()))


def tree_statistics(thoughts: Sequence[Thought]) -> dict[str, Any]:
    """Size and shape summary of a thought tree."""
    if not thoughts:
        return {
            "total_nodes": 0,
            "max_depth": 0,
            "avg_depth": 0.0,
            "avg_nodes_per_level": 0.0,
            "origin_distribution": {},
            "depth_distribution": {},
        }
    depths = depth_distribution(thoughts)
    return {
        "total_nodes": len(thoughts),
        "max_depth": max(depths),
        "avg_depth": sum(t.depth for t in thoughts) / len(thoughts),
        "avg_nodes_per_level": len(thoughts) / len(depths),
        "origin_distribution": origin_distribution(thoughts),
        "depth_distribution": depths,
    }


def assemble_result(
    tree: ThoughtTree,
    best: Thought,
    metadata: Mapping[str, Any] | None = None,
) -> SearchResult:
    """Build the immutable ``SearchResult`` for *best* from *tree*."""
    thoughts = tree.thoughts
    evaluations: dict[str, Evaluation] = tree.evaluations
    path = extract_path(thoughts, best.thought_id)
    meta = dict(metadata or {})
    meta.setdefault("depth_reached", best.depth)
    meta["statistics"] = tree_statistics(thoughts)
    logger.debug(
        "assemble_result: best %s at depth %d, path of %d, %d thoughts",
        best.thought_id, best.depth, len(path), len(thoughts),
    )
    return SearchResult(
        best_thought=best,
        path=tuple(path),
        all_thoughts=tuple(thoughts),
        evaluations=evaluations,
        metadata=meta,
    )

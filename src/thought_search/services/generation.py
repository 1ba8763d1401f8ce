"""Thought generation port.

The engine never produces thought text itself.  A ``ThoughtGenerator``
turns ``(problem, frontier, depth, config)`` into unscored ``Thought``
objects; the orchestrator validates only their structure.

Classes
-------
ThoughtGenerator
    Abstract async port every backend implements.
CategoryGenerator
    Splits ``n_generate`` across the two origins by ``category_ratio`` and
    asks each origin for its share concurrently.  Subclasses implement
    :meth:`CategoryGenerator.propose`.
MockThoughtGenerator
    Deterministic generator for tests and demos.
"""

from __future__ import annotations

import itertools
import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Any

from thought_search.domain.entities import Thought
from thought_search.domain.enums import Origin
from thought_search.infrastructure.config import SearchConfig, TaskConfig
from thought_search.services.dispatch import gather_bounded

logger = logging.getLogger(__name__)


def _random_id() -> str:
    return str(uuid.uuid4())[:8]


# ===================================================================== #
#  Abstract port                                                         #
# ===================================================================== #

class ThoughtGenerator(ABC):
    """Produces candidate thoughts for the next level of the tree.

    Implementations return between 0 and ``config.n_generate`` thoughts at
    ``depth``, each tagged with an origin and parented on a member of
    *frontier* (or unparented when *frontier* is empty at depth 0).  Zero
    thoughts mean the branch is a dead end.
    """

    @abstractmethod
    async def generate(
        self,
        problem: str,
        frontier: Sequence[Thought],
        depth: int,
        config: SearchConfig,
    ) -> list[Thought]:
        ...


# ===================================================================== #
#  Category-split generator                                              #
# ===================================================================== #

class CategoryGenerator(ThoughtGenerator):
    """Generator that asks each origin for its ratio share of thoughts.

    Parameters
    ----------
    task:
        Optional task preset; its step name for the current depth is
        passed to :meth:`propose` and stored in each thought's metadata.
    id_factory:
        Zero-argument callable producing thought ids.
    """

    def __init__(
        self,
        task: TaskConfig | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._task = task
        self._id_factory = id_factory or _random_id

    @abstractmethod
    async def propose(
        self,
        origin: Origin,
        problem: str,
        frontier: Sequence[Thought],
        depth: int,
        count: int,
        step_name: str,
    ) -> list[str]:
        """Return up to *count* thought texts from the *origin* channel."""
        ...

    def step_name(self, depth: int) -> str:
        if self._task is None:
            return f"Step {depth + 1}"
        return self._task.step_name(depth)

    async def generate(
        self,
        problem: str,
        frontier: Sequence[Thought],
        depth: int,
        config: SearchConfig,
    ) -> list[Thought]:
        counts = config.category_counts()
        origins = [origin for origin, count in counts.items() if count > 0]
        step = self.step_name(depth)

        batches = await gather_bounded(
            [
                lambda o=o: self.propose(o, problem, frontier, depth, counts[o], step)
                for o in origins
            ],
            config.max_concurrency,
        )

        thoughts: list[Thought] = []
        for origin, texts in zip(origins, batches):
            if len(texts) > counts[origin]:
                logger.debug(
                    "%s: %s channel returned %d texts, keeping %d",
                    type(self).__name__, origin.value, len(texts), counts[origin],
                )
            for text in list(texts)[: counts[origin]]:
                thoughts.append(
                    self._make_thought(text, origin, frontier, depth, len(thoughts), step)
                )

        logger.debug(
            "%s: generated %d thoughts at depth %d from %d parents",
            type(self).__name__, len(thoughts), depth, len(frontier),
        )
        return thoughts

    def _make_thought(
        self,
        text: str,
        origin: Origin,
        frontier: Sequence[Thought],
        depth: int,
        index: int,
        step: str,
    ) -> Thought:
        # Parents are assigned round-robin so every frontier member is expanded.
        parent_id = frontier[index % len(frontier)].thought_id if frontier else None
        return Thought(
            text=text,
            origin=origin,
            depth=depth,
            parent_id=parent_id,
            thought_id=self._id_factory(),
            metadata={"step_name": step},
        )


# ===================================================================== #
#  Mock generator                                                        #
# ===================================================================== #

class MockThoughtGenerator(CategoryGenerator):
    """Deterministic generator producing numbered placeholder thoughts.

    Ids are ``mock-0``, ``mock-1``, ... in generation order, so runs are
    reproducible.  ``dead_end_depth`` makes every call at or beyond that
    depth return no thoughts.
    """

    def __init__(
        self,
        task: TaskConfig | None = None,
        dead_end_depth: int | None = None,
    ) -> None:
        counter = itertools.count()
        super().__init__(task=task, id_factory=lambda: f"mock-{next(counter)}")
        self.dead_end_depth = dead_end_depth
        self.calls: list[dict[str, Any]] = []

    async def propose(
        self,
        origin: Origin,
        problem: str,
        frontier: Sequence[Thought],
        depth: int,
        count: int,
        step_name: str,
    ) -> list[str]:
        self.calls.append(
            {
                "origin": origin,
                "depth": depth,
                "count": count,
                "frontier": [t.thought_id for t in frontier],
            }
        )
        if self.dead_end_depth is not None and depth >= self.dead_end_depth:
            return []
        base = len(self.calls)
        return [
            f"{step_name}: {origin.value} idea {i + 1} (call {base}, depth {depth})"
            for i in range(count)
        ]

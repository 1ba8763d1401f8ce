"""Tests for the generator port and the category-split generator."""

from __future__ import annotations

import pytest

from thought_search.domain.entities import Thought
from thought_search.domain.enums import Origin
from thought_search.infrastructure.config import SearchConfig, get_task_config
from thought_search.services.generation import MockThoughtGenerator


class TestMockThoughtGenerator:

    @pytest.mark.asyncio
    async def test_root_level_split(self) -> None:
        gen = MockThoughtGenerator()
        config = SearchConfig(n_generate=5, category_ratio="6:4")
        thoughts = await gen.generate("p", [], 0, config)
        assert [t.thought_id for t in thoughts] == [f"mock-{i}" for i in range(5)]
        assert [t.origin for t in thoughts].count(Origin.PRACTICAL) == 3
        assert [t.origin for t in thoughts].count(Origin.TECHNICAL) == 2
        assert all(t.depth == 0 and t.parent_id is None for t in thoughts)
        assert not any(t.is_evaluated for t in thoughts)

    @pytest.mark.asyncio
    async def test_parents_round_robin(self) -> None:
        gen = MockThoughtGenerator()
        frontier = [
            Thought(text="a", origin=Origin.PRACTICAL, thought_id="a"),
            Thought(text="b", origin=Origin.TECHNICAL, thought_id="b"),
        ]
        thoughts = await gen.generate("p", frontier, 1, SearchConfig(n_generate=4))
        assert [t.parent_id for t in thoughts] == ["a", "b", "a", "b"]
        assert all(t.depth == 1 for t in thoughts)

    @pytest.mark.asyncio
    async def test_one_call_per_origin(self) -> None:
        gen = MockThoughtGenerator()
        await gen.generate("p", [], 0, SearchConfig(n_generate=5))
        assert sorted(c["origin"].value for c in gen.calls) == ["practical", "technical"]
        assert sum(c["count"] for c in gen.calls) == 5

    @pytest.mark.asyncio
    async def test_zero_share_origin_not_called(self) -> None:
        gen = MockThoughtGenerator()
        thoughts = await gen.generate(
            "p", [], 0, SearchConfig(n_generate=3, n_select=1, category_ratio="1:0")
        )
        assert [c["origin"] for c in gen.calls] == [Origin.PRACTICAL]
        assert all(t.origin is Origin.PRACTICAL for t in thoughts)

    @pytest.mark.asyncio
    async def test_dead_end(self) -> None:
        gen = MockThoughtGenerator(dead_end_depth=1)
        parent = Thought(text="a", origin=Origin.PRACTICAL, thought_id="a")
        assert await gen.generate("p", [parent], 1, SearchConfig()) == []

    @pytest.mark.asyncio
    async def test_step_names_from_task(self) -> None:
        gen = MockThoughtGenerator(task=get_task_config("debug"))
        thoughts = await gen.generate("p", [], 0, SearchConfig(n_generate=2, n_select=1))
        assert all(t.metadata["step_name"] == "Root cause analysis" for t in thoughts)
        assert thoughts[0].text.startswith("Root cause analysis:")

    @pytest.mark.asyncio
    async def test_default_step_name(self) -> None:
        gen = MockThoughtGenerator()
        [thought, *_] = await gen.generate("p", [], 0, SearchConfig(n_generate=2, n_select=1))
        assert thought.metadata["step_name"] == "Step 1"

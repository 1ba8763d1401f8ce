"""Tests for ComponentRegistry and the built-in registrations."""

from __future__ import annotations

import pytest

from thought_search.domain.enums import SelectionMethod
from thought_search.infrastructure.registry import (
    EVALUATOR,
    SELECTOR,
    ComponentRegistry,
    registry,
)
from thought_search.services import evaluation, selection  # noqa: F401  (registers built-ins)


class Dummy:
    def __init__(self, value: int = 0) -> None:
        self.value = value


class TestComponentRegistry:

    @pytest.fixture
    def reg(self) -> ComponentRegistry:
        return ComponentRegistry()

    def test_decorator_registration(self, reg: ComponentRegistry) -> None:
        @reg.register("thing", "dummy")
        class Local(Dummy):
            pass

        assert reg.get("thing", "dummy") is Local
        assert ("thing", "dummy") in reg
        assert reg.create("thing", "dummy", value=3).value == 3

    def test_duplicate_rejected(self, reg: ComponentRegistry) -> None:
        reg.register_instance("thing", "a", Dummy())
        with pytest.raises(ValueError, match="already registered"):
            reg.register_instance("thing", "a", Dummy())
        reg.register_instance("thing", "a", Dummy(5), overwrite=True)
        assert reg.get("thing", "a").value == 5

    def test_missing_lists_alternatives(self, reg: ComponentRegistry) -> None:
        reg.register_instance("thing", "a", Dummy())
        with pytest.raises(KeyError, match=r"\['a'\]"):
            reg.get("thing", "b")

    def test_instance_takes_no_kwargs(self, reg: ComponentRegistry) -> None:
        instance = Dummy()
        reg.register_instance("thing", "a", instance)
        assert reg.create("thing", "a") is instance
        with pytest.raises(TypeError):
            reg.create("thing", "a", value=1)

    def test_unregister(self, reg: ComponentRegistry) -> None:
        reg.register_instance("thing", "a", Dummy())
        reg.unregister("thing", "a")
        assert not reg.has("thing", "a")
        with pytest.raises(KeyError):
            reg.unregister("thing", "a")

    def test_contains_needs_pair(self, reg: ComponentRegistry) -> None:
        assert "thing" not in reg


class TestBuiltinRegistrations:

    def test_every_selection_method_registered(self) -> None:
        names = set(registry.list_category(SELECTOR))
        assert {m.value for m in SelectionMethod} <= names

    def test_evaluators_registered(self) -> None:
        assert {"value", "cross_value", "vote", "cross_vote"} <= set(
            registry.list_category(EVALUATOR)
        )

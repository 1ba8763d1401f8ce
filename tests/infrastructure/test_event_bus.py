"""Tests for EventBus and EventStore."""

from __future__ import annotations

from thought_search.domain.enums import SearchState
from thought_search.domain.events import (
    BatchEvaluated,
    BranchBacktracked,
    DomainEvent,
    FrontierSelected,
)
from thought_search.infrastructure.event_bus import EventBus, EventStore


def _batch(depth: int = 0, source: str = "bfs") -> BatchEvaluated:
    return BatchEvaluated(
        source_id=source, depth=depth, scores={"a": 5.0}, max_score=5.0, failures=0
    )


class TestEventBus:

    def test_typed_subscription(self, bus: EventBus) -> None:
        received: list[DomainEvent] = []
        bus.subscribe(BatchEvaluated, received.append)
        bus.publish(_batch())
        bus.publish(BranchBacktracked(thought_id="x", depth=1, reason="dead_end"))
        assert len(received) == 1
        assert isinstance(received[0], BatchEvaluated)

    def test_global_handlers_first(self, bus: EventBus) -> None:
        order: list[str] = []
        bus.subscribe(BatchEvaluated, lambda e: order.append("typed"))
        bus.subscribe_all(lambda e: order.append("global"))
        bus.publish(_batch())
        assert order == ["global", "typed"]

    def test_failing_handler_is_skipped(self, bus: EventBus) -> None:
        received: list[DomainEvent] = []

        def broken(event: DomainEvent) -> None:
            raise RuntimeError("observer bug")

        bus.subscribe(BatchEvaluated, broken)
        bus.subscribe(BatchEvaluated, received.append)
        bus.publish(_batch())
        assert len(received) == 1

    def test_unsubscribe(self, bus: EventBus) -> None:
        received: list[DomainEvent] = []
        bus.subscribe(BatchEvaluated, received.append)
        assert bus.unsubscribe(BatchEvaluated, received.append)
        assert not bus.unsubscribe(BatchEvaluated, received.append)
        bus.publish(_batch())
        assert received == []

    def test_handler_count_and_clear(self, bus: EventBus) -> None:
        bus.subscribe(BatchEvaluated, lambda e: None)
        bus.subscribe_all(lambda e: None)
        assert bus.handler_count(BatchEvaluated) == 1
        assert bus.handler_count() == 2
        bus.clear()
        assert bus.handler_count() == 0


class TestEventStore:

    def test_records_published_events(self, bus: EventBus, store: EventStore) -> None:
        bus.publish_many([_batch(0), _batch(1, source="dfs")])
        assert len(store) == 2
        assert store.latest.depth == 1
        assert len(store.query(BatchEvaluated)) == 2
        assert len(store.query(source_id="dfs")) == 1
        assert store.query(FrontierSelected) == []

    def test_query_limit(self, bus: EventBus, store: EventStore) -> None:
        bus.publish_many([_batch(d) for d in range(5)])
        assert [e.depth for e in store.query(limit=2)] == [3, 4]

    def test_max_size(self) -> None:
        store = EventStore(max_size=2)
        for d in range(4):
            store.append(_batch(d))
        assert [e.depth for e in store.query()] == [2, 3]

    def test_replay(self, bus: EventBus, store: EventStore) -> None:
        bus.publish(
            FrontierSelected(
                depth=0, selected_ids=("a",), strategy="greedy", state=SearchState.CONTINUE
            )
        )
        other = EventBus()
        seen: list[DomainEvent] = []
        other.subscribe(FrontierSelected, seen.append)
        assert store.replay(other) == 1
        assert seen[0].selected_ids == ("a",)

    def test_clear(self, bus: EventBus, store: EventStore) -> None:
        bus.publish(_batch())
        store.clear()
        assert len(store) == 0
        assert store.latest is None

"""Event bus infrastructure for the thought-search engine.

Search orchestrators publish progress events on an optional ``EventBus``;
an ``EventStore`` subscribed to the bus keeps them for inspection and
replay.  A subscriber that raises is logged and skipped, so observers can
never break a search run.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable, Sequence

from thought_search.domain.events import DomainEvent

logger = logging.getLogger(__name__)

Handler = Callable[[DomainEvent], None]


# ===================================================================== #
#  Event Bus                                                             #
# ===================================================================== #

class EventBus:
    """Thread-safe synchronous pub-sub for search events.

    Handlers run in registration order, global handlers before typed ones.
    A typed handler receives instances of its event type only (not of
    subclasses).

    Usage::

        bus = EventBus()
        bus.subscribe(BatchEvaluated, on_batch)
        await breadth_first_search(..., event_bus=bus)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[type[DomainEvent], list[Handler]] = defaultdict(list)
        self._global_handlers: list[Handler] = []

    def subscribe(self, event_type: type[DomainEvent], handler: Handler) -> None:
        with self._lock:
            self._handlers[event_type].append(handler)

    def subscribe_all(self, handler: Handler) -> None:
        """Register *handler* to receive every published event."""
        with self._lock:
            self._global_handlers.append(handler)

    def unsubscribe(self, event_type: type[DomainEvent], handler: Handler) -> bool:
        """Remove *handler* from *event_type*.  Returns ``True`` if found."""
        with self._lock:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)
                return True
            return False

    def publish(self, event: DomainEvent) -> None:
        with self._lock:
            targets = list(self._global_handlers)
            targets.extend(self._handlers.get(type(event), []))

        for handler in targets:
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "EventBus: handler %r failed on %s", handler, type(event).__name__
                )

    def publish_many(self, events: Sequence[DomainEvent]) -> None:
        for event in events:
            self.publish(event)

    def handler_count(self, event_type: type[DomainEvent] | None = None) -> int:
        """Number of handlers for *event_type*, or in total when ``None``."""
        with self._lock:
            if event_type is not None:
                return len(self._handlers.get(event_type, []))
            return sum(len(hs) for hs in self._handlers.values()) + len(
                self._global_handlers
            )

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()
            self._global_handlers.clear()


# ===================================================================== #
#  Event Store                                                           #
# ===================================================================== #

class EventStore:
    """Append-only in-memory record of published events.

    Wire it to a bus with :meth:`attach`, then query the trace of a run::

        store = EventStore()
        store.attach(bus)
        ...
        levels = store.query(FrontierSelected)
    """

    def __init__(self, max_size: int = 0) -> None:
        """``max_size`` caps the stored events (oldest dropped); 0 = unlimited."""
        self._events: list[DomainEvent] = []
        self._max_size = max_size
        self._lock = threading.Lock()

    def attach(self, bus: EventBus) -> None:
        bus.subscribe_all(self.append)

    def append(self, event: DomainEvent) -> None:
        with self._lock:
            self._events.append(event)
            if self._max_size > 0 and len(self._events) > self._max_size:
                self._events = self._events[-self._max_size:]

    def query(
        self,
        event_type: type[DomainEvent] | None = None,
        source_id: str | None = None,
        limit: int = 0,
    ) -> list[DomainEvent]:
        """Stored events, optionally filtered by type and emitter.

        ``limit`` keeps only the most recent matches (0 = all).
        """
        with self._lock:
            result = list(self._events)
        if event_type is not None:
            result = [e for e in result if isinstance(e, event_type)]
        if source_id is not None:
            result = [e for e in result if e.source_id == source_id]
        if limit > 0:
            result = result[-limit:]
        return result

    def replay(self, bus: EventBus) -> int:
        """Re-publish every stored event on *bus*; returns the count."""
        events = self.query()
        bus.publish_many(events)
        return len(events)

    @property
    def latest(self) -> DomainEvent | None:
        with self._lock:
            return self._events[-1] if self._events else None

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

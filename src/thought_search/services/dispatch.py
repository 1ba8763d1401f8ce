"""Async dispatch helpers shared by generators, evaluators and searches.

Every external call (generator, scorer) goes through
:func:`call_with_timeout`, which accepts plain functions, coroutine
functions and callables returning awaitables alike.  Concurrent fan-out
is bounded with :func:`gather_bounded`.  A :class:`CancellationToken`
lets a caller ask a running search to stop at its next check point.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """Cooperative stop flag shared between a caller and a running search.

    Thread-safe: :meth:`cancel` may be called from any thread, including
    an event-bus handler.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason = ""

    def cancel(self, reason: str = "") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"


async def call_with_timeout(
    func: Callable[..., Any],
    *args: Any,
    timeout: float | None = None,
) -> Any:
    """Call *func* with *args* and await its result within *timeout* seconds.

    Synchronous callables run in the default executor so a slow blocking
    callback cannot stall the event loop.  Raises ``asyncio.TimeoutError``
    when the limit is hit; any exception from *func* propagates unchanged.
    """
    if inspect.iscoroutinefunction(func):
        awaitable: Awaitable[Any] = func(*args)
    else:
        loop = asyncio.get_running_loop()
        awaitable = loop.run_in_executor(None, lambda: func(*args))

    result = await asyncio.wait_for(awaitable, timeout=timeout)
    # Sync wrappers around async code hand back the coroutine itself.
    if inspect.isawaitable(result):
        result = await asyncio.wait_for(result, timeout=timeout)
    return result


async def gather_bounded(
    factories: Iterable[Callable[[], Awaitable[T]]],
    limit: int,
) -> list[T]:
    """Run the awaitables produced by *factories* with at most *limit* in flight.

    Results come back in input order.  Exceptions propagate after every
    task has finished, so callers that need per-item recovery must handle
    errors inside the factory.
    """
    semaphore = asyncio.Semaphore(max(1, limit))

    async def _run(factory: Callable[[], Awaitable[T]]) -> T:
        async with semaphore:
            return await factory()

    outcomes = await asyncio.gather(
        *(_run(f) for f in factories), return_exceptions=True
    )
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome
    return list(outcomes)  # type: ignore[arg-type]

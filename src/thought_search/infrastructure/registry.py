"""Component registry for the thought-search engine.

Selection strategies and batch evaluators register themselves by
*category* and *name* so that a ``SearchConfig`` can name them by its enum
values.  ``build_selector`` and ``build_evaluator`` resolve through the
module-level ``registry``; tests can pass an isolated
``ComponentRegistry`` instead.

Categories in use: ``"selector"`` and ``"evaluator"``.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

SELECTOR = "selector"
EVALUATOR = "evaluator"


class ComponentRegistry:
    """Service locator keyed by ``(category, name)`` pairs.

    Usage -- decorator style::

        @registry.register("selector", "greedy")
        class GreedySelector(SelectionStrategy):
            ...

    Usage -- imperative style::

        registry.register_instance("selector", "mine", MySelector())
    """

    def __init__(self) -> None:
        # category -> name -> component (class or instance)
        self._components: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    # -- registration ---------------------------------------------------------

    def register(
        self,
        category: str,
        name: str,
        *,
        overwrite: bool = False,
    ) -> Callable[[type[T]], type[T]]:
        """Class decorator registering under ``(category, name)``.

        Duplicates raise ``ValueError`` unless *overwrite* is set.
        """

        def decorator(cls: type[T]) -> type[T]:
            self._set(category, name, cls, overwrite=overwrite)
            return cls

        return decorator

    def register_instance(
        self,
        category: str,
        name: str,
        instance: Any,
        *,
        overwrite: bool = False,
    ) -> None:
        self._set(category, name, instance, overwrite=overwrite)

    # -- lookup ---------------------------------------------------------------

    def get(self, category: str, name: str) -> Any:
        """Return the component.  Raises ``KeyError`` listing alternatives."""
        with self._lock:
            bucket = self._components.get(category, {})
            if name in bucket:
                return bucket[name]
            available = sorted(bucket)
        raise KeyError(
            f"Component '{category}/{name}' not registered. "
            f"Available in '{category}': {available}"
        )

    def create(self, category: str, name: str, **kwargs: Any) -> Any:
        """Instantiate a registered class, or return a registered instance.

        Keyword arguments are only accepted for class registrations.
        """
        component = self.get(category, name)
        if isinstance(component, type):
            return component(**kwargs)
        if kwargs:
            raise TypeError(
                f"'{category}/{name}' is a registered instance and takes no "
                f"arguments, got {sorted(kwargs)}"
            )
        return component

    def has(self, category: str, name: str) -> bool:
        with self._lock:
            return name in self._components.get(category, {})

    def list_category(self, category: str) -> list[str]:
        with self._lock:
            return list(self._components.get(category, {}))

    def unregister(self, category: str, name: str) -> Any:
        """Remove and return the component.  Raises ``KeyError`` if missing."""
        with self._lock:
            try:
                return self._components[category].pop(name)
            except KeyError:
                raise KeyError(
                    f"Cannot unregister '{category}/{name}': not found."
                ) from None

    # -- internals ------------------------------------------------------------

    def _set(
        self,
        category: str,
        name: str,
        component: Any,
        *,
        overwrite: bool = False,
    ) -> None:
        with self._lock:
            bucket = self._components.setdefault(category, {})
            if not overwrite and name in bucket:
                raise ValueError(
                    f"Component '{category}/{name}' is already registered as "
                    f"{bucket[name]!r}. Pass overwrite=True to replace."
                )
            bucket[name] = component
        logger.debug("Registered %s/%s: %r", category, name, component)

    def __contains__(self, key: object) -> bool:
        """Support ``("selector", "greedy") in registry``."""
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        return self.has(*key)

    def __repr__(self) -> str:
        with self._lock:
            parts = [f"{cat}({len(ns)})" for cat, ns in self._components.items()]
        return f"<ComponentRegistry [{', '.join(parts)}]>"


registry = ComponentRegistry()
"""Module-level registry the built-in selectors and evaluators populate."""

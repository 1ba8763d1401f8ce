"""Infrastructure layer for the thought-search engine.

Re-exports the public API surface for convenience::

    from thought_search.infrastructure import (
        SearchConfig, DEFAULT_SEARCH_CONFIG,
        EvaluationCache, EventBus, EventStore,
        ComponentRegistry, registry,
    )
"""

from thought_search.infrastructure.cache import EvaluationCache
from thought_search.infrastructure.config import (
    DEFAULT_SEARCH_CONFIG,
    TASK_PRESETS,
    SearchConfig,
    TaskConfig,
    get_task_config,
    load_config_from_json,
    parse_ratio,
    split_count,
)
from thought_search.infrastructure.event_bus import EventBus, EventStore
from thought_search.infrastructure.registry import ComponentRegistry, registry
from thought_search.infrastructure.serialization import (
    evaluation_from_dict,
    evaluation_to_dict,
    search_result_from_dict,
    search_result_from_json,
    search_result_to_dict,
    search_result_to_json,
    thought_from_dict,
    thought_to_dict,
)

__all__ = [
    "DEFAULT_SEARCH_CONFIG",
    "TASK_PRESETS",
    "ComponentRegistry",
    "EvaluationCache",
    "EventBus",
    "EventStore",
    "SearchConfig",
    "TaskConfig",
    "evaluation_from_dict",
    "evaluation_to_dict",
    "get_task_config",
    "load_config_from_json",
    "parse_ratio",
    "registry",
    "search_result_from_dict",
    "search_result_from_json",
    "search_result_to_dict",
    "search_result_to_json",
    "split_count",
    "thought_from_dict",
    "thought_to_dict",
]

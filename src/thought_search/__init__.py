"""Thought Search.

Tree-of-thought search engine: two generation categories propose
candidate reasoning steps, batch evaluators score them, selection
strategies pick the frontier, and breadth-first or depth-first
orchestrators return the best thought with its root-to-leaf path.
"""

__version__ = "0.1.0"

from thought_search.domain import Origin, SearchResult, Thought
from thought_search.infrastructure.config import SearchConfig, TaskConfig, get_task_config
from thought_search.services.search import (
    breadth_first_search,
    depth_first_search,
    run_search,
    run_search_sync,
)

__all__ = [
    "Origin",
    "SearchConfig",
    "SearchResult",
    "TaskConfig",
    "Thought",
    "breadth_first_search",
    "depth_first_search",
    "get_task_config",
    "run_search",
    "run_search_sync",
]

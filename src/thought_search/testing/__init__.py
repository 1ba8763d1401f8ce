"""Public testing utilities for Thought Search.

Provides a mock chat model and deterministic scorers for writing
self-contained examples and tests without requiring API keys.
"""

from thought_search.testing.fakes import (
    FailingScorer,
    MockThoughtScorer,
    ScriptedScorer,
    hash_score,
)
from thought_search.testing.mock_llm import MockStructuredChatModel

__all__ = [
    "FailingScorer",
    "MockStructuredChatModel",
    "MockThoughtScorer",
    "ScriptedScorer",
    "hash_score",
]

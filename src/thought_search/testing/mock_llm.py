"""Mock LLM for testing and examples.

Provides a ``MockStructuredChatModel`` that supports ``with_structured_output``
by returning pre-configured Pydantic model instances.  Works with the LLM
generator and scorer, or any other ``BaseChatModel``-based chain.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from langchain_core.callbacks import CallbackManagerForLLMRun
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage
from langchain_core.outputs import ChatGeneration, ChatResult
from langchain_core.runnables import RunnableSerializable
from pydantic import BaseModel, ConfigDict


class MockStructuredChatModel(BaseChatModel):
    """A mock chat model that supports with_structured_output.

    Usage::

        model = MockStructuredChatModel(
            structured_responses=[ScoreOutput(score=7.0), ScoreOutput(score=8.0)],
        )
        # Each call to the chain returns the next response in order and
        # cycles back to the start once the list is exhausted.

    A response may also be a callable taking the prompt input dict, so a
    single model can answer differently per thought.  Every prompt input
    is recorded in ``calls``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    structured_responses: list[Any] = []
    calls: list[Any] = []
    _call_index: int = 0

    @property
    def _llm_type(self) -> str:
        return "mock-structured"

    def _next_response(self, input: Any) -> Any:
        if not self.structured_responses:
            raise RuntimeError("MockStructuredChatModel has no responses configured")
        idx = self._call_index % len(self.structured_responses)
        self._call_index += 1
        self.calls.append(input)
        resp = self.structured_responses[idx]
        if isinstance(resp, BaseException):
            raise resp
        if callable(resp) and not isinstance(resp, BaseModel):
            return resp(input)
        return resp

    def _generate(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: CallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> ChatResult:
        resp = self._next_response(messages)
        text = resp.model_dump_json() if isinstance(resp, BaseModel) else str(resp)
        return ChatResult(
            generations=[ChatGeneration(message=AIMessage(content=text))]
        )

    def with_structured_output(self, schema: Any, **kwargs: Any) -> Any:
        """Return a runnable that yields the pre-configured structured responses."""
        model_ref = self

        class _MultiStructuredRunnable(RunnableSerializable):
            """Returns responses in sequence, cycling."""

            model_config = ConfigDict(arbitrary_types_allowed=True)

            def invoke(self, input: Any, config: Any = None, **kwargs: Any) -> Any:
                return model_ref._next_response(_prompt_values(input))

            async def ainvoke(self, input: Any, config: Any = None, **kwargs: Any) -> Any:
                return self.invoke(input, config, **kwargs)

        return _MultiStructuredRunnable()


def _prompt_values(input: Any) -> Any:
    """Flatten a rendered prompt to its message texts for inspection."""
    to_messages: Callable[[], list[BaseMessage]] | None = getattr(input, "to_messages", None)
    if to_messages is None:
        return input
    return "\n".join(str(m.content) for m in to_messages())

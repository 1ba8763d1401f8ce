"""LLM-backed thought generation using LangChain structured output.

Each origin category is served by its own chat model (they may be the same
object).  The prompt tells the model which perspective to take, which step
of the task it is on and what the frontier thoughts are, and
``model.with_structured_output()`` parses the reply into a list of
thought texts.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel, Field

from thought_search.domain.entities import Thought
from thought_search.domain.enums import Origin
from thought_search.infrastructure.config import TaskConfig
from thought_search.services.generation import CategoryGenerator

logger = logging.getLogger(__name__)

# -- Structured output schema ------------------------------------------------


class ThoughtProposals(BaseModel):
    """Structured output schema for thought generation."""

    thoughts: list[str] = Field(
        default_factory=list,
        description="Distinct candidate next steps, one self-contained idea each",
    )


# -- Prompt ------------------------------------------------------------------

PERSPECTIVES: dict[Origin, str] = {
    Origin.PRACTICAL: (
        "You favour practical, low-risk steps that can be carried out and "
        "verified quickly."
    ),
    Origin.TECHNICAL: (
        "You favour technically rigorous steps that address the underlying "
        "cause, even when they take more effort."
    ),
}

_GENERATION_PROMPT = ChatPromptTemplate.from_messages(
    [
        (
            "system",
            "You are one of two reasoning channels exploring a problem step by "
            "step. {perspective}\n\n"
            "Propose exactly {count} distinct candidate thoughts for the current "
            "step. Each thought must be a single concrete idea that builds on "
            "the previous thoughts shown.",
        ),
        (
            "human",
            "## Problem\n{problem}\n\n"
            "## Current step\n{step_name} (depth {depth})\n\n"
            "## Previous thoughts\n{frontier}\n\n"
            "Propose {count} thoughts for this step.",
        ),
    ]
)


def format_frontier(frontier: Sequence[Thought]) -> str:
    if not frontier:
        return "None yet; this is the first step."
    return "\n".join(f"- [{t.origin.value}] {t.text}" for t in frontier)


# -- LLMThoughtGenerator ------------------------------------------------------


class LLMThoughtGenerator(CategoryGenerator):
    """Thought generator driven by one chat model per origin.

    Parameters
    ----------
    models:
        A single chat model used for both origins, or a mapping of origin
        to model.  Origins missing from the mapping fall back to any model
        in it.
    task:
        Optional task preset providing step names.
    prompt:
        Optional custom ``ChatPromptTemplate``; it receives ``problem``,
        ``perspective``, ``step_name``, ``depth``, ``frontier`` and
        ``count``.
    id_factory:
        Zero-argument callable producing thought ids.
    """

    def __init__(
        self,
        models: BaseChatModel | Mapping[Origin, BaseChatModel],
        task: TaskConfig | None = None,
        prompt: ChatPromptTemplate | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        super().__init__(task=task, id_factory=id_factory)
        if isinstance(models, BaseChatModel):
            self.models = {origin: models for origin in Origin}
        else:
            self.models = {Origin(o): m for o, m in models.items()}
            if not self.models:
                raise ValueError("At least one chat model is required")
        self._prompt = prompt or _GENERATION_PROMPT
        self._chains = {origin: self._build_chain(origin) for origin in Origin}

    def _build_chain(self, origin: Origin) -> Any:
        model = self.models.get(origin) or next(iter(self.models.values()))
        return self._prompt | model.with_structured_output(ThoughtProposals)

    async def propose(
        self,
        origin: Origin,
        problem: str,
        frontier: Sequence[Thought],
        depth: int,
        count: int,
        step_name: str,
    ) -> list[str]:
        result: ThoughtProposals = await self._chains[origin].ainvoke(
            {
                "problem": problem,
                "perspective": PERSPECTIVES[origin],
                "step_name": step_name,
                "depth": depth,
                "frontier": format_frontier(frontier),
                "count": count,
            }
        )
        texts = [t.strip() for t in result.thoughts if t and t.strip()]
        logger.debug(
            "LLMThoughtGenerator: %s channel proposed %d/%d thoughts at depth %d",
            origin.value, len(texts), count, depth,
        )
        return texts

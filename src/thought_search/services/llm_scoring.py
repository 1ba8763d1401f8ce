"""LLM-backed scorer using LangChain structured output.

``LLMThoughtScorer`` implements both halves of the scorer port: a 0-10
rating for a single thought and a preference ranking over a batch.  Errors
from the model propagate; the batch evaluators turn them into recovery
records.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel, Field

from thought_search.domain.enums import Origin
from thought_search.services.evaluation import ThoughtScorer
from thought_search.services.llm_generation import PERSPECTIVES

logger = logging.getLogger(__name__)

# -- Structured output schemas -----------------------------------------------


class ScoreOutput(BaseModel):
    """Structured output schema for rating one thought."""

    score: float = Field(ge=0, le=10, description="Quality of the thought [0, 10]")
    reasoning: str = Field(default="", description="Short justification")


class RankingOutput(BaseModel):
    """Structured output schema for ranking a batch of thoughts."""

    ranking: list[int] = Field(
        description="Zero-based indices of the thoughts, most preferred first"
    )
    reasoning: str = Field(default="", description="Short justification")


# -- Prompts -----------------------------------------------------------------

_SCORE_PROMPT = ChatPromptTemplate.from_messages(
    [
        (
            "system",
            "You are a critic rating candidate reasoning steps. {perspective}\n\n"
            "Scoring guide:\n"
            "  10 = clearly correct and decisive\n"
            "   5 = plausible but unproven\n"
            "   0 = wrong or irrelevant",
        ),
        (
            "human",
            "## Problem\n{problem}\n\n## Thought\n{text}\n\n"
            "Rate this thought from 0 to 10.",
        ),
    ]
)

_RANK_PROMPT = ChatPromptTemplate.from_messages(
    [
        (
            "system",
            "You are a critic comparing candidate reasoning steps. {perspective}\n\n"
            "Return every index exactly once, best first.",
        ),
        (
            "human",
            "## Problem\n{problem}\n\n## Thoughts\n{thoughts}\n\n"
            "Rank all {count} thoughts.",
        ),
    ]
)


# -- LLMThoughtScorer ---------------------------------------------------------


class LLMThoughtScorer(ThoughtScorer):
    """Scores and ranks thoughts with a chat model.

    Parameters
    ----------
    model:
        A LangChain chat model.
    origin:
        The category perspective this scorer judges from.
    score_prompt, rank_prompt:
        Optional replacements for the default prompts.
    """

    def __init__(
        self,
        model: BaseChatModel,
        origin: Origin | str = Origin.PRACTICAL,
        name: str = "",
        score_prompt: ChatPromptTemplate | None = None,
        rank_prompt: ChatPromptTemplate | None = None,
    ) -> None:
        super().__init__(origin=origin, name=name)
        self.model = model
        self._score_chain: Any = (score_prompt or _SCORE_PROMPT) | model.with_structured_output(
            ScoreOutput
        )
        self._rank_chain: Any = (rank_prompt or _RANK_PROMPT) | model.with_structured_output(
            RankingOutput
        )

    async def score(self, problem: str, text: str) -> float:
        result: ScoreOutput = await self._score_chain.ainvoke(
            {"problem": problem, "text": text, "perspective": PERSPECTIVES[self.origin]}
        )
        logger.debug("%s: scored %.2f", self.name, result.score)
        return float(result.score)

    async def rank(self, problem: str, texts: Sequence[str]) -> list[int]:
        listing = "\n".join(f"{i}. {text}" for i, text in enumerate(texts))
        result: RankingOutput = await self._rank_chain.ainvoke(
            {
                "problem": problem,
                "thoughts": listing,
                "count": len(texts),
                "perspective": PERSPECTIVES[self.origin],
            }
        )
        return list(result.ranking)

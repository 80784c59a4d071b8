"""AI Oracle Adapters: Anthropic-backed QuestionGenerator and GuessJudge.

Invariants:
    - AnthropicQuestionGenerator.generate yields raw text fragments (caller concatenates)
    - AnthropicGuessJudge.rate always returns a value in [1, 10]: the first number
      in the reply, clamped; non-numeric replies yield the fallback rating
    - Both satisfy the Protocols in core/repository_protocols.py structurally

Design Decisions:
    - Low temperature for judging, high for question generation
    - Timeouts are NOT applied here: the round engine and rating orchestrator
      own the deadlines so fakes and real clients behave the same
"""

import logging
from collections.abc import AsyncIterator

from mindmeld.core.round_rules import FALLBACK_RATING, parse_rating
from mindmeld.infrastructure.anthropic_client import ResilientAnthropicClient
from mindmeld.services.prompts import (
    JUDGE_SYSTEM_PROMPT, QUESTION_SYSTEM_PROMPT,
    build_judge_message, build_question_message,
)

logger = logging.getLogger(__name__)


class AnthropicQuestionGenerator:
    """Streams one question from the Messages API."""

    def __init__(
        self, client: ResilientAnthropicClient, model: str, max_tokens: int = 200,
    ):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    async def generate(
        self, theme: str, previous_questions: list[str],
    ) -> AsyncIterator[str]:
        async with self.client.stream_text(
            model=self.model,
            max_tokens=self.max_tokens,
            system=QUESTION_SYSTEM_PROMPT,
            messages=[{
                "role": "user",
                "content": build_question_message(theme, previous_questions),
            }],
            temperature=0.9,
        ) as fragments:
            async for fragment in fragments:
                yield fragment


class AnthropicGuessJudge:
    """Asks the model for a 1–10 similarity score."""

    def __init__(
        self,
        client: ResilientAnthropicClient,
        model: str,
        fallback: float = FALLBACK_RATING,
    ):
        self.client = client
        self.model = model
        self.fallback = fallback

    async def rate(self, original_answer: str, guess: str, question: str) -> float:
        response = await self.client.create_message(
            model=self.model,
            max_tokens=10,
            system=JUDGE_SYSTEM_PROMPT,
            messages=[{
                "role": "user",
                "content": build_judge_message(original_answer, guess, question),
            }],
            temperature=0.3,
        )
        text = "".join(
            block.text for block in response.content
            if getattr(block, "type", None) == "text"
        )
        rating = parse_rating(text, self.fallback)
        if not text.strip():
            logger.warning("Judge returned no text, using fallback rating")
        return rating

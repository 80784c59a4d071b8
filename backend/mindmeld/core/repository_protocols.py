"""Boundary Protocols: contracts between core and the external oracle / fan-out.

Invariants:
    - Core NEVER imports from shell: dependency arrows point inward only
    - The question generator and judge are reached only through these Protocols
    - Implementations provided by shell via dependency injection (GameContext)

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
    - generate() returns an async iterator of text fragments; callers concatenate
      the whole stream before use (no partial questions)
    - rate() may raise or hang: the caller owns the timeout and the fallback
"""

from collections.abc import AsyncIterator
from typing import Protocol


class QuestionGenerator(Protocol):
    """Produces one open-ended question for a theme, avoiding earlier ones."""
    def generate(
        self, theme: str, previous_questions: list[str],
    ) -> AsyncIterator[str]: ...


class GuessJudge(Protocol):
    """Scores how closely a guess matches the original answer, 1–10."""
    async def rate(
        self, original_answer: str, guess: str, question: str,
    ) -> float: ...


class SnapshotPublisher(Protocol):
    """Fan-out sink the services broadcast full-state snapshots to."""
    def publish(self, topic: str, payload: dict) -> int: ...

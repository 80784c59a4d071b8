"""Game Context: process-lifetime wiring of the bus, the oracle and the settings.

Invariants:
    - One GameContext per app (created in the FastAPI lifespan, kept on app.state)
    - Services are built per request around that request's AsyncSession
    - Tests swap in fake oracles by building their own GameContext

Design Decisions:
    - Dataclass factory instead of module-level singletons: every test gets an
      isolated bus and its own fakes
"""

import random
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from mindmeld.config import Settings
from mindmeld.core.repository_protocols import GuessJudge, QuestionGenerator
from mindmeld.infrastructure.anthropic_client import ResilientAnthropicClient
from mindmeld.infrastructure.event_bus import EventBus
from mindmeld.services.ai_oracle import AnthropicGuessJudge, AnthropicQuestionGenerator
from mindmeld.services.rating_orchestrator import RatingOrchestrator
from mindmeld.services.room_registry import RoomRegistry
from mindmeld.services.round_engine import RoundEngine
from mindmeld.services.snapshots import SnapshotBroadcaster


@dataclass
class GameContext:
    settings: Settings
    bus: EventBus
    question_generator: QuestionGenerator
    judge: GuessJudge
    rng: random.Random = field(default_factory=random.Random)

    @property
    def broadcaster(self) -> SnapshotBroadcaster:
        return SnapshotBroadcaster(self.bus, self.settings.presence_fresh_seconds)

    def registry(self, db: AsyncSession) -> RoomRegistry:
        return RoomRegistry(
            db, self.broadcaster, self.settings, self.rng, rounds=self.engine(db),
        )

    def orchestrator(self, db: AsyncSession) -> RatingOrchestrator:
        return RatingOrchestrator(db, self.broadcaster, self.judge, self.settings)

    def engine(self, db: AsyncSession) -> RoundEngine:
        return RoundEngine(
            db, self.broadcaster, self.question_generator,
            self.orchestrator(db), self.settings,
        )


def build_game_context(settings: Settings) -> GameContext:
    """Production wiring: Anthropic-backed oracle, in-process bus."""
    client = ResilientAnthropicClient(
        api_key=settings.anthropic_api_key,
        max_retries=settings.anthropic_max_retries,
        base_delay_ms=settings.anthropic_base_delay_ms,
        max_delay_ms=settings.anthropic_max_delay_ms,
        timeout_seconds=settings.anthropic_timeout_seconds,
    )
    return GameContext(
        settings=settings,
        bus=EventBus(settings.subscriber_queue_size),
        question_generator=AnthropicQuestionGenerator(client, settings.question_model),
        judge=AnthropicGuessJudge(
            client, settings.judge_model, float(settings.fallback_rating),
        ),
    )

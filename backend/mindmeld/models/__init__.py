"""ORM Models: SQLAlchemy declarative models for all domain entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Room is the aggregate root; players and rounds are scoped by room_id,
      answers and guesses by round_id

Design Decisions:
    - One file per entity for locality
    - No relationship() attributes: async sessions never lazy-load, every
      read is an explicit select() in the services
    - All models imported here so Base.metadata is complete before create_all
"""

from mindmeld.models.room import Room  # noqa: F401
from mindmeld.models.player import Player  # noqa: F401
from mindmeld.models.game_round import GameRound  # noqa: F401
from mindmeld.models.answer import Answer  # noqa: F401
from mindmeld.models.guess import Guess  # noqa: F401

"""Guess Target Assignment: deterministic, stateless pairing of guesser to target.

Invariants:
    - PURE: same (player ids, round number, caller) always yields the same target
    - Never returns the caller
    - Returns None below 2 players or when the caller is not in the list
    - No persisted assignment record: any party can re-derive it

Design Decisions:
    - Lexicographic order on str(id): the client can reproduce it without the DB
    - offset = round_number mod n rotates pairings across rounds for n > 2
"""

from collections.abc import Iterable
from uuid import UUID


def assign_guess_target(
    player_ids: Iterable[UUID], round_number: int, caller_id: UUID,
) -> UUID | None:
    """Return the player whose answer `caller_id` must guess this round."""
    ordered = sorted(player_ids, key=str)
    n = len(ordered)
    if n < 2 or caller_id not in ordered:
        return None

    i = ordered.index(caller_id)
    target = (i + round_number % n) % n
    if target == i:
        target = (i + 1) % n
    return ordered[target]


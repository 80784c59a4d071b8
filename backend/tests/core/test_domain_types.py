"""Domain Types: verifies rich type definitions and enum values.

Tests:
    - NewType wrappers exist and are callable
    - Enums have expected members and serialize to string
    - RoundPhase has exactly 3 members (no separate guessing phase)
"""

from uuid import uuid4

from mindmeld.core.domain_types import (
    RoomId, PlayerId, RoundId, RoomCode, Rating,
    RoomStatus, PlayerStatus, RoundPhase, PresenceColor, Topic, topic_key,
)


def test_identity_types_wrap_uuid():
    uid = uuid4()
    assert RoomId(uid) == uid
    assert PlayerId(uid) == uid
    assert RoundId(uid) == uid


def test_value_types_wrap_primitives():
    assert Rating(7.5) == 7.5
    assert RoomCode("ABCDE") == "ABCDE"


def test_room_status_has_four_states():
    assert set(RoomStatus) == {
        RoomStatus.LOBBY,
        RoomStatus.CONFIGURING,
        RoomStatus.PLAYING,
        RoomStatus.FINISHED,
    }


def test_round_phase_has_exactly_three_phases():
    assert len(RoundPhase) == 3
    assert [p.value for p in RoundPhase] == ["answering", "rating", "completed"]


def test_player_status_and_presence_colors():
    assert {s.value for s in PlayerStatus} == {"online", "away", "offline"}
    assert {c.value for c in PresenceColor} == {"green", "yellow", "red"}


def test_enums_serialize_to_string():
    assert RoomStatus.LOBBY.value == "lobby"
    assert RoomStatus.PLAYING == "playing"
    assert PresenceColor.RED == "red"


def test_topic_key_combines_kind_and_id():
    uid = uuid4()
    assert topic_key(Topic.ROOM, uid) == f"room:{uid}"
    assert topic_key(Topic.ROUND, uid) == f"round:{uid}"

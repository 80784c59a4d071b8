"""Errors: response shape and status mapping of the error hierarchy."""

from mindmeld.core.errors import (
    AlreadySubmittedError, ErrorContext, ExternalServiceError, ForbiddenError,
    InvalidPhaseError, MindMeldError, NotEnoughPlayersError, PlayerNotInRoomError,
    QuestionGenerationError, RoomCreationFailedError, RoomNotFoundError,
    RoomNotJoinableError, RoundNotFoundError,
)


def test_to_response_shape():
    err = RoomNotFoundError("ABCDE", ErrorContext(room_id="r1"))
    body = err.to_response()["error"]
    assert body["code"] == "ROOM_NOT_FOUND"
    assert body["category"] == "resource_not_found"
    assert body["context"]["room_id"] == "r1"
    assert "ABCDE" in body["message"]


def test_status_codes():
    assert RoomNotFoundError("x").http_status == 404
    assert RoundNotFoundError("x").http_status == 404
    assert ForbiddenError("no").http_status == 403
    assert PlayerNotInRoomError("p").http_status == 403
    assert InvalidPhaseError("op", "a", "b").http_status == 409
    assert AlreadySubmittedError("answer").http_status == 409
    assert NotEnoughPlayersError(1, 2).http_status == 409
    assert RoomCreationFailedError(10).http_status == 503
    assert ExternalServiceError("boom", "timeout").http_status == 503


def test_room_not_joinable_is_a_phase_error():
    err = RoomNotJoinableError("playing")
    assert isinstance(err, InvalidPhaseError)
    assert err.code == "ROOM_NOT_JOINABLE"
    assert err.actual == "playing"


def test_question_generation_is_external_failure():
    err = QuestionGenerationError("timed out")
    assert isinstance(err, ExternalServiceError)
    assert isinstance(err, MindMeldError)
    assert err.code == "QUESTION_GENERATION_FAILED"
    assert err.http_status == 503


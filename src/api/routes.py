"""
HTTP surface of the room commands. Every route is a thin shell around one RoomService method.

Bodies arrive as plain dicts and go through the request models, whose validators pick the error code.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request

from src.api.models import (
    AddBotRequest,
    AddBotResponse,
    CreateRoomRequest,
    CreateRoomResponse,
    GetRoomRequest,
    JoinRoomRequest,
    JoinRoomResponse,
    LeaveRequest,
    LeaveResponse,
    PresenceRequest,
    PresenceResponse,
    QuitRequest,
    QuitResponse,
    RollRequest,
    RollResponse,
    RoomStateResponse,
    ScoreRequest,
    ScoreResponse,
    SkipRequest,
    SkipResponse,
    StartGameRequest,
    StartGameResponse,
)
from src.services.events import InMemoryBroadcaster
from src.services.room_service import RoomService

router = APIRouter(prefix="/rooms", tags=["rooms"])


def get_room_service(request: Request) -> RoomService:
    return request.app.state.room_service


@router.post("")
def create_room(
    payload: dict[str, Any] = Body(default_factory=dict),
    service: RoomService = Depends(get_room_service),
) -> CreateRoomResponse:
    return service.create_room(CreateRoomRequest(**payload))


@router.get("/{code}")
def get_room(code: str, service: RoomService = Depends(get_room_service)) -> RoomStateResponse:
    return service.get_room_state(GetRoomRequest(room_code=code))


@router.get("/{code}/events")
def get_events(
    code: str,
    since: int = Query(default=0, ge=0),
    service: RoomService = Depends(get_room_service),
) -> list[dict[str, Any]]:
    """Events after the given version (for clients without a push channel)."""
    room_code = GetRoomRequest(room_code=code).room_code
    # fails with ROOM_NOT_FOUND for unknown rooms
    service.get_room_state(GetRoomRequest(room_code=room_code))
    broadcaster = service.broadcaster
    if not isinstance(broadcaster, InMemoryBroadcaster):
        return []
    return [
        event.model_dump(by_alias=True, mode="json")
        for event in broadcaster.events_since(room_code, since)
    ]


@router.post("/{code}/join")
def join_room(
    code: str,
    payload: dict[str, Any] = Body(default_factory=dict),
    service: RoomService = Depends(get_room_service),
) -> JoinRoomResponse:
    return service.join_room(JoinRoomRequest(room_code=code, **payload))


@router.post("/{code}/bots")
def add_bot(
    code: str,
    payload: dict[str, Any] = Body(default_factory=dict),
    service: RoomService = Depends(get_room_service),
) -> AddBotResponse:
    return service.add_bot(AddBotRequest(room_code=code, **payload))


@router.post("/{code}/start")
def start_game(
    code: str,
    payload: dict[str, Any] = Body(default_factory=dict),
    service: RoomService = Depends(get_room_service),
) -> StartGameResponse:
    return service.start_game(StartGameRequest(room_code=code, **payload))


@router.post("/{code}/roll")
def roll(
    code: str,
    payload: dict[str, Any] = Body(default_factory=dict),
    service: RoomService = Depends(get_room_service),
) -> RollResponse:
    return service.roll(RollRequest(room_code=code, **payload))


@router.post("/{code}/score")
def score(
    code: str,
    payload: dict[str, Any] = Body(default_factory=dict),
    service: RoomService = Depends(get_room_service),
) -> ScoreResponse:
    return service.score(ScoreRequest(room_code=code, **payload))


@router.post("/{code}/skip")
def skip(
    code: str,
    payload: dict[str, Any] = Body(default_factory=dict),
    service: RoomService = Depends(get_room_service),
) -> SkipResponse:
    return service.skip(SkipRequest(room_code=code, **payload))


@router.post("/{code}/quit")
def quit_game(
    code: str,
    payload: dict[str, Any] = Body(default_factory=dict),
    service: RoomService = Depends(get_room_service),
) -> QuitResponse:
    return service.quit(QuitRequest(room_code=code, **payload))


@router.post("/{code}/leave")
def leave_room(
    code: str,
    payload: dict[str, Any] = Body(default_factory=dict),
    service: RoomService = Depends(get_room_service),
) -> LeaveResponse:
    return service.leave_room(LeaveRequest(room_code=code, **payload))


@router.post("/{code}/presence")
def set_presence(
    code: str,
    payload: dict[str, Any] = Body(default_factory=dict),
    service: RoomService = Depends(get_room_service),
) -> PresenceResponse:
    return service.set_presence(PresenceRequest(room_code=code, **payload))

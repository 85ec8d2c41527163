"""
Custom exceptions shared by all layers.

Every error carries the code reported to clients and the HTTP status the API layer answers with.
"""


class GameError(Exception):
    """Top-level exception for anything that goes wrong while handling a room command."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str = "", code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


# --- Validation errors ---
class InvalidRequestError(GameError):
    """Malformed input: bad name length, unknown category, wrong held mask."""

    code = "INVALID_REQUEST"
    status_code = 400


# --- Capacity / lifecycle errors ---
class RoomNotFoundError(GameError):
    code = "ROOM_NOT_FOUND"
    status_code = 404


class GameStartedError(GameError):
    code = "GAME_STARTED"
    status_code = 409


class RoomFullError(GameError):
    code = "ROOM_FULL"
    status_code = 409


class NotHostError(GameError):
    code = "NOT_HOST"
    status_code = 403


class NotEnoughPlayersError(GameError):
    code = "NOT_ENOUGH_PLAYERS"
    status_code = 409


class GameNotInProgressError(GameError):
    code = "GAME_NOT_IN_PROGRESS"
    status_code = 409


class NotInGameError(GameError):
    code = "NOT_IN_GAME"
    status_code = 403


# --- Turn ownership errors ---
class NotYourTurnError(GameError):
    code = "NOT_YOUR_TURN"
    status_code = 403


class MaxRollsReachedError(GameError):
    code = "MAX_ROLLS_REACHED"
    status_code = 409


class MustRollFirstError(GameError):
    code = "MUST_ROLL_FIRST"
    status_code = 409


class CategoryFilledError(GameError):
    code = "CATEGORY_FILLED"
    status_code = 409


class NoCategoriesError(GameError):
    code = "NO_CATEGORIES"
    status_code = 409


# --- Infrastructure errors ---
class PersistenceError(GameError):
    """Writing to the persistence layer failed (after retries)."""

    code = "INTERNAL_ERROR"
    status_code = 500


class InternalError(GameError):
    code = "INTERNAL_ERROR"
    status_code = 500

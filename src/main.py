"""
FastAPI application.

Run with: uvicorn src.main:create_app --factory
"""

from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from src.api.routes import router
from src.core.config import Settings, get_settings
from src.core.exceptions import GameError, InvalidRequestError
from src.core.logging import setup_logging
from src.db.database import build_engine, build_session_factory
from src.db.sql_repository import SQLRoomRepository
from src.services.room_service import RoomService

logger = structlog.get_logger()


def error_response(error: GameError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content={"error": {"code": error.code, "message": error.message}},
    )


def build_room_service(settings: Settings) -> RoomService:
    engine = build_engine(settings)
    repository = SQLRoomRepository(build_session_factory(engine))
    return RoomService(repository, settings=settings)


def create_app(service: Optional[RoomService] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings if settings is not None else get_settings()
    setup_logging(settings.log_level, settings.log_format)

    app = FastAPI(title="Yahtzee rooms")
    app.state.room_service = service if service is not None else build_room_service(settings)
    app.include_router(router)

    @app.exception_handler(GameError)
    def handle_game_error(request: Request, exc: GameError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("command_failed", path=request.url.path, code=exc.code, message=exc.message)
        else:
            logger.info("command_rejected", path=request.url.path, code=exc.code, message=exc.message)
        return error_response(exc)

    @app.exception_handler(ValidationError)
    @app.exception_handler(RequestValidationError)
    def handle_validation_error(request: Request, exc: Exception) -> JSONResponse:
        logger.info("command_rejected", path=request.url.path, code=InvalidRequestError.code)
        return error_response(InvalidRequestError(f"Malformed request: {exc}"))

    return app

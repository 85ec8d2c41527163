"""Unit tests for src/core/config.py and src/core/logging.py"""

import logging

import pytest
import structlog

from src.core.config import Settings
from src.core.exceptions import GameError, InvalidRequestError, NotYourTurnError
from src.core.logging import setup_logging


# --- SETTINGS ---
def test_defaults() -> None:
    settings = Settings(_env_file=None)
    assert settings.turn_timeout_seconds == 30
    assert settings.room_ttl_hours == 24
    assert settings.default_max_players == 4
    assert settings.persistence_retries == 3
    assert settings.event_log_size == 500
    assert settings.database_url.startswith("sqlite")


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("YAHTZEE_TURN_TIMEOUT_SECONDS", "5")
    monkeypatch.setenv("YAHTZEE_LOG_FORMAT", "json")
    settings = Settings(_env_file=None)
    assert settings.turn_timeout_seconds == 5
    assert settings.log_format == "json"


# --- LOGGING ---
@pytest.mark.parametrize("log_format", ["console", "json", "JSON"])
def test_setup_logging(log_format: str) -> None:
    setup_logging("debug", log_format)
    assert logging.getLogger().level == logging.DEBUG
    structlog.get_logger().info("configured", log_format=log_format)


def test_setup_logging_rejects_unknown_values() -> None:
    with pytest.raises(ValueError):
        setup_logging("INFO", "xml")
    with pytest.raises(ValueError):
        setup_logging("LOUD", "console")


# --- ERRORS ---
def test_errors_carry_code_and_status() -> None:
    error = NotYourTurnError("It is not your turn.")
    assert isinstance(error, GameError)
    assert error.code == "NOT_YOUR_TURN"
    assert error.status_code == 403
    assert error.message == "It is not your turn."


def test_error_code_can_be_specialised() -> None:
    error = InvalidRequestError("bad name", code="INVALID_NAME")
    assert error.code == "INVALID_NAME"
    assert InvalidRequestError("x").code == "INVALID_REQUEST"

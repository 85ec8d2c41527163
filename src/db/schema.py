"""Database tables / schema"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class DBRoom(Base):
    __tablename__ = "game_rooms"
    code: Mapped[str] = mapped_column(primary_key=True)
    host_session_id: Mapped[str]
    status: Mapped[str] = mapped_column(index=True)
    max_players: Mapped[int]
    current_turn_player_index: Mapped[int] = mapped_column(default=0)
    current_round: Mapped[int] = mapped_column(default=1)
    version: Mapped[int] = mapped_column(default=0)
    # snapshot of the running game (dice, scorecards, ...) so a room can be resumed. NULL outside of a game
    game_state: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    started_at: Mapped[Optional[datetime]]
    finished_at: Mapped[Optional[datetime]]
    expires_at: Mapped[datetime] = mapped_column(index=True)

    players: Mapped[list["DBPlayer"]] = relationship(
        back_populates="room",
        cascade="all, delete-orphan",
        order_by="DBPlayer.player_index",
    )
    scores: Mapped[list["DBGameScore"]] = relationship(
        back_populates="room", cascade="all, delete-orphan"
    )


class DBPlayer(Base):
    __tablename__ = "players"
    __table_args__ = (
        UniqueConstraint("room_code", "session_id"),
        UniqueConstraint("room_code", "player_index"),
    )
    id: Mapped[str] = mapped_column(primary_key=True)
    room_code: Mapped[str] = mapped_column(ForeignKey("game_rooms.code"), index=True)
    session_id: Mapped[str] = mapped_column(index=True)
    display_name: Mapped[str]
    player_index: Mapped[int]
    is_bot: Mapped[bool] = mapped_column(default=False)
    is_connected: Mapped[bool] = mapped_column(default=True)
    joined_at: Mapped[datetime] = mapped_column(default=utc_now)

    room: Mapped[DBRoom] = relationship(back_populates="players")


class DBGameScore(Base):
    __tablename__ = "game_scores"
    __table_args__ = (UniqueConstraint("room_code", "player_id"),)
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    room_code: Mapped[str] = mapped_column(ForeignKey("game_rooms.code"), index=True)
    player_id: Mapped[str]
    player_index: Mapped[int]
    upper_total: Mapped[int]
    upper_bonus: Mapped[int]
    lower_total: Mapped[int]
    grand_total: Mapped[int]
    is_winner: Mapped[bool] = mapped_column(default=False)
    scorecard_data: Mapped[dict[str, Optional[int]]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(default=utc_now)

    room: Mapped[DBRoom] = relationship(back_populates="scores")

"""Implementation of (Room)Repository using SQLAlchemy"""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from src.core.exceptions import PersistenceError
from src.core.models import GameScoreModel, PlayerModel, RoomModel
from src.db.schema import DBGameScore, DBPlayer, DBRoom


def as_utc(moment: datetime | None) -> datetime | None:
    """SQLite hands datetimes back without timezone. Everything in this app is UTC."""
    if moment is None or moment.tzinfo is not None:
        return moment
    return moment.replace(tzinfo=timezone.utc)


class SQLRoomRepository:
    """
    Data stored using SQL / methods implemented using SQLAlchemy.
    Opens a short-lived Session per call (the service is long-lived and used from several threads).
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def get_room(self, code: str) -> RoomModel | None:
        """Get room (with its players) by code, if record exists."""
        with self._session() as db:
            room_db = self._fetch_room(db, code)
            if room_db:
                return self._to_model(room_db)
        return None

    def room_exists(self, code: str) -> bool:
        with self._session() as db:
            return self._fetch_room(db, code) is not None

    def create_room(self, room: RoomModel) -> RoomModel:
        """Store a new room with its players."""
        with self._session() as db:
            room_db = DBRoom(
                code=room.code,
                host_session_id=room.host_session_id,
                status=room.status,
                max_players=room.max_players,
                current_turn_player_index=room.current_turn_player_index,
                current_round=room.current_round,
                version=room.version,
                game_state=room.game_state,
                created_at=room.created_at,
                started_at=room.started_at,
                finished_at=room.finished_at,
                expires_at=room.expires_at,
                players=[self._to_db_player(p) for p in room.players],
            )
            db.add(room_db)
            db.commit()
            db.refresh(room_db)
            return self._to_model(room_db)

    def update_room(self, room: RoomModel) -> RoomModel | None:
        """Overwrite room fields, players (added / removed / changed) and the game state snapshot."""
        with self._session() as db:
            room_db = self._fetch_room(db, room.code)
            if not room_db:
                return None
            room_db.host_session_id = room.host_session_id
            room_db.status = room.status
            room_db.max_players = room.max_players
            room_db.current_turn_player_index = room.current_turn_player_index
            room_db.current_round = room.current_round
            room_db.version = room.version
            room_db.game_state = room.game_state
            room_db.started_at = room.started_at
            room_db.finished_at = room.finished_at
            room_db.expires_at = room.expires_at
            self._sync_players(db, room_db, room.players)
            db.commit()
            db.refresh(room_db)
            return self._to_model(room_db)

    def delete_room(self, code: str) -> RoomModel | None:
        """Remove a room and everything attached to it."""
        with self._session() as db:
            room_db = self._fetch_room(db, code)
            if not room_db:
                return None
            room_model = self._to_model(room_db)
            db.delete(room_db)
            db.commit()
            return room_model

    def save_final_scores(self, code: str, scores: list[GameScoreModel]) -> None:
        """Write the final score of every player. Writing twice for the same room is a no-op."""
        with self._session() as db:
            already_written = db.scalar(
                select(DBGameScore.id).where(DBGameScore.room_code == code).limit(1)
            )
            if already_written is not None:
                return
            db.add_all(
                DBGameScore(
                    room_code=code,
                    player_id=score.player_id,
                    player_index=score.player_index,
                    upper_total=score.upper_total,
                    upper_bonus=score.upper_bonus,
                    lower_total=score.lower_total,
                    grand_total=score.grand_total,
                    is_winner=score.is_winner,
                    scorecard_data=score.scorecard,
                )
                for score in scores
            )
            db.commit()

    def get_final_scores(self, code: str) -> list[GameScoreModel]:
        with self._session() as db:
            query = (
                select(DBGameScore)
                .where(DBGameScore.room_code == code)
                .order_by(DBGameScore.player_index)
            )
            return [self._to_score_model(row) for row in db.scalars(query)]

    def delete_expired(self, now: datetime) -> list[str]:
        with self._session() as db:
            expired = list(db.scalars(select(DBRoom).where(DBRoom.expires_at <= now)))
            codes = [room_db.code for room_db in expired]
            for room_db in expired:
                db.delete(room_db)
            db.commit()
            return codes

    # -- Internal helpers --
    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Session for one call. Database failures surface as PersistenceError."""
        try:
            with self.session_factory() as db:
                yield db
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Database operation failed: {exc}") from exc

    def _fetch_room(self, db: Session, code: str) -> DBRoom | None:
        query = select(DBRoom).where(DBRoom.code == code)
        return db.scalar(query)

    def _sync_players(
        self, db: Session, room_db: DBRoom, players: list[PlayerModel]
    ) -> None:
        """Make the stored players match the given list (matched on player id)."""
        wanted = {p.id: p for p in players}
        for player_db in list(room_db.players):
            if player_db.id not in wanted:
                room_db.players.remove(player_db)
        # flush removals first, a new player may take over a freed player index
        db.flush()

        stored = {player_db.id: player_db for player_db in room_db.players}

        # (room, player_index) is unique: park re-numbered players on a temporary index first
        moved = [
            player_db
            for player_db in stored.values()
            if player_db.player_index != wanted[player_db.id].player_index
        ]
        for temporary_index, player_db in enumerate(moved, start=1):
            player_db.player_index = -temporary_index
        db.flush()

        for player in players:
            player_db = stored.get(player.id)
            if player_db is None:
                room_db.players.append(self._to_db_player(player))
                continue
            player_db.display_name = player.display_name
            player_db.player_index = player.player_index
            player_db.is_bot = player.is_bot
            player_db.is_connected = player.is_connected

    def _to_db_player(self, player: PlayerModel) -> DBPlayer:
        return DBPlayer(
            id=player.id,
            session_id=player.session_id,
            display_name=player.display_name,
            player_index=player.player_index,
            is_bot=player.is_bot,
            is_connected=player.is_connected,
        )

    def _to_model(self, room_db: DBRoom) -> RoomModel:
        """Convert SQLAlchemy model to data transfer model."""
        return RoomModel(
            code=room_db.code,
            host_session_id=room_db.host_session_id,
            status=room_db.status,
            max_players=room_db.max_players,
            current_turn_player_index=room_db.current_turn_player_index,
            current_round=room_db.current_round,
            created_at=as_utc(room_db.created_at),
            expires_at=as_utc(room_db.expires_at),
            started_at=as_utc(room_db.started_at),
            finished_at=as_utc(room_db.finished_at),
            version=room_db.version,
            players=[
                PlayerModel(
                    id=p.id,
                    session_id=p.session_id,
                    display_name=p.display_name,
                    player_index=p.player_index,
                    is_bot=p.is_bot,
                    is_connected=p.is_connected,
                )
                for p in room_db.players
            ],
            game_state=room_db.game_state,
        )

    def _to_score_model(self, row: DBGameScore) -> GameScoreModel:
        return GameScoreModel(
            player_id=row.player_id,
            player_index=row.player_index,
            upper_total=row.upper_total,
            upper_bonus=row.upper_bonus,
            lower_total=row.lower_total,
            grand_total=row.grand_total,
            is_winner=row.is_winner,
            scorecard=row.scorecard_data,
        )

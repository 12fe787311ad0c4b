"""Implementation of (Snapshot)Repository using SQLAlchemy"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.core.models import GameModel
from src.db.schema import DBGame


class SQLSnapshotRepository:
    """Data stored using SQL / methods implemented using SQLAlchemy"""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get_game(self, game_id: str) -> GameModel | None:
        """Get game by ID, if record exists."""
        game_db = self._fetch_game(game_id)
        if game_db:
            return self._to_model(game_db)
        return None

    def save_game(self, game: GameModel) -> bool:
        """Upsert. Refuses to go back to a lower move count."""
        game_db = self._fetch_game(game.game_id)
        if game_db is None:
            game_db = DBGame(id=game.game_id)
            self.db.add(game_db)
        elif game.move_count < game_db.move_count:
            return False

        game_db.board_state = game.board_state
        game_db.current_turn = game.current_turn
        game_db.status = game.status
        game_db.move_count = game.move_count
        game_db.red_player = game.red_player
        game_db.black_player = game.black_player
        game_db.result = game.result
        game_db.payload = game.payload
        self.db.commit()
        return True

    def list_games(self, status: Optional[str] = None) -> list[GameModel]:
        query = select(DBGame).order_by(DBGame.created_at)
        if status is not None:
            query = query.where(DBGame.status == status)
        return [self._to_model(game_db) for game_db in self.db.scalars(query)]

    def delete_game(self, game_id: str) -> GameModel | None:
        """Remove a game's record."""
        game_db = self._fetch_game(game_id)
        if not game_db:
            return None
        game_model = self._to_model(game_db)
        self.db.delete(game_db)
        self.db.commit()
        return game_model

    def _fetch_game(self, game_id: str) -> DBGame | None:
        query = select(DBGame).where(DBGame.id == game_id)
        return self.db.scalar(query)

    def _to_model(self, game_db: DBGame) -> GameModel:
        """Convert SQLAlchemy model to data transfer model."""
        return GameModel(
            game_id=game_db.id,
            board_state=game_db.board_state,
            current_turn=game_db.current_turn,
            status=game_db.status,
            move_count=game_db.move_count,
            red_player=game_db.red_player,
            black_player=game_db.black_player,
            result=game_db.result,
            payload=dict(game_db.payload or {}),
        )

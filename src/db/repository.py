"""Protocol repository for the accepted game snapshots (SQLAlchemy implementation in sql_repository.py)"""

from typing import Optional, Protocol

from src.core.models import GameModel


class SnapshotRepository(Protocol):
    """Persistence layer orchestration"""

    def get_game(self, game_id: str) -> GameModel | None:
        """Get game by ID, if record exists."""
        ...

    def save_game(self, game: GameModel) -> bool:
        """
        Insert or update the record of the game.
        A stored record is never replaced by one with a lower move count: returns False (and stores nothing) in that case.
        """
        ...

    def list_games(self, status: Optional[str] = None) -> list[GameModel]:
        """All stored games, optionally only the ones with the given status."""
        ...

    def delete_game(self, game_id: str) -> GameModel | None:
        """Remove a game's record."""
        ...

"""
Pytest will auto-discover / import this file called 'conftest.py'. ]
This file defines fixtures/variables required for testing multiple layers.
"""

from typing import Any, Callable, Generator, Optional

import pytest
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.api.models import (
    CreateGameRequest,
    GameSnapshot,
    JoinGameRequest,
    JoinQueueRequest,
    MoveRecord,
    MoveRequest,
    PlayerStats,
    QueueStatusEntry,
)
from src.checkers.board_state import STARTING_BOARD_STATE
from src.checkers.game import Position
from src.checkers.moves import Move
from src.checkers.square import Square
from src.core.config import ClientSettings
from src.core.exceptions import GameError
from src.core.shared_types import GameStatus, PlayerType, Turn
from src.db.schema import Base
from src.services.scheduler import Scheduler
from src.services.session import GameSession
from src.services.synchronizer import GameSynchronizer

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)

RED_PLAYER = "player_red00001"
BLACK_PLAYER = "player_blk00001"
GAME_ID = "game-1"


@pytest.fixture
def db_session_repo() -> Generator[Session, None, None]:
    """Connection to a test database. Tables are removed at teardown to make unit tests of repository independent of each other."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        Base.metadata.drop_all(bind=engine)
        db.close()


# --- GAME SNAPSHOTS ---
SnapshotFactory = Callable[..., GameSnapshot]


def build_snapshot(**overrides: Any) -> GameSnapshot:
    """An active game between RED_PLAYER and BLACK_PLAYER, in the starting position, red to move"""
    fields: dict[str, Any] = {
        "id": GAME_ID,
        "board_state": STARTING_BOARD_STATE,
        "status": GameStatus.ACTIVE,
        "current_turn": Turn.RED,
        "move_count": 0,
        "red_player": RED_PLAYER,
        "black_player": BLACK_PLAYER,
        "moves": [],
        "created_at": 1_700_000_000_000_000,
        "updated_at": 1_700_000_000_000_000,
    }
    fields.update(overrides)
    return GameSnapshot(**fields)


@pytest.fixture
def make_snapshot() -> SnapshotFactory:
    return build_snapshot


# --- MOCK GAME SERVICE ---
class FakeGameService:
    """
    In-memory game service.

    * `games`: what the service currently knows. Moves are played on it (like the real service would), unless
      `apply_moves` is switched off.
    * `scripted`: per game id, snapshots handed out (in order) by `game()` before falling back on `games`.
    * `errors`: raised (once) by the method with that name.
    """

    def __init__(self) -> None:
        self.games: dict[str, GameSnapshot] = {}
        self.scripted: dict[str, list[Optional[GameSnapshot]]] = {}
        self.errors: dict[str, GameError] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.stats: dict[str, PlayerStats] = {}
        self.queue_entries: list[QueueStatusEntry] = []
        self.queue_match: Optional[str] = None
        self.created: list[GameSnapshot] = []
        self.apply_moves = True

    def add(self, snapshot: GameSnapshot) -> GameSnapshot:
        self.games[snapshot.id] = snapshot
        return snapshot

    def calls_to(self, name: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == name]

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        if name in self.errors:
            raise self.errors.pop(name)

    # --- queries ---
    async def game(self, game_id: str) -> GameSnapshot | None:
        self._record("game", game_id)
        if self.scripted.get(game_id):
            return self.scripted[game_id].pop(0)
        return self.games.get(game_id)

    async def all_games(self) -> list[GameSnapshot]:
        self._record("all_games")
        return list(self.games.values())

    async def pending_games(self) -> list[GameSnapshot]:
        self._record("pending_games")
        return [game for game in self.games.values() if game.status == GameStatus.PENDING]

    async def active_games(self) -> list[GameSnapshot]:
        self._record("active_games")
        return [game for game in self.games.values() if game.status == GameStatus.ACTIVE]

    async def player_games(self, chain_id: str) -> list[GameSnapshot]:
        self._record("player_games", chain_id)
        return [game for game in self.games.values() if game.has_player(chain_id)]

    async def player_stats(self, chain_id: str) -> PlayerStats | None:
        self._record("player_stats", chain_id)
        return self.stats.get(chain_id)

    async def queue_status(self) -> list[QueueStatusEntry]:
        self._record("queue_status")
        return self.queue_entries

    # --- mutations ---
    async def create_game(self, request: CreateGameRequest) -> None:
        self._record("create_game", request)
        for snapshot in self.created:
            self.add(snapshot)

    async def join_game(self, request: JoinGameRequest) -> None:
        self._record("join_game", request)
        game = self.games.get(request.game_id)
        if game is not None:
            self.add(
                game.model_copy(
                    update={"black_player": request.player_id, "status": GameStatus.ACTIVE}
                )
            )

    async def make_move(self, request: MoveRequest) -> None:
        self._record("make_move", request)
        if not self.apply_moves:
            return
        game = self.games[request.game_id]
        move = Move(
            Square(request.from_row, request.from_col),
            Square(request.to_row, request.to_col),
        )
        position = Position.from_state(game.board_state, game.current_turn, game.move_count)
        next_position, applied = position.play(move)
        captured = move.captured_square
        record = MoveRecord(
            from_row=request.from_row,
            from_col=request.from_col,
            to_row=request.to_row,
            to_col=request.to_col,
            captured_row=captured.row if captured else None,
            captured_col=captured.col if captured else None,
            promoted=applied.promoted,
        )
        self.add(
            game.model_copy(
                update={
                    "board_state": next_position.to_state(),
                    "current_turn": next_position.current_turn,
                    "move_count": next_position.move_count,
                    "moves": [*(game.moves or []), record],
                }
            )
        )

    async def resign(self, game_id: str, player_id: str) -> None:
        self._record("resign", game_id, player_id)
        self._finish(game_id)

    async def request_ai_move(self, game_id: str) -> None:
        self._record("request_ai_move", game_id)

    async def offer_draw(self, game_id: str) -> None:
        self._record("offer_draw", game_id)

    async def accept_draw(self, game_id: str) -> None:
        self._record("accept_draw", game_id)
        self._finish(game_id)

    async def decline_draw(self, game_id: str) -> None:
        self._record("decline_draw", game_id)

    async def claim_time_win(self, game_id: str) -> None:
        self._record("claim_time_win", game_id)
        self._finish(game_id)

    async def join_queue(self, request: JoinQueueRequest) -> Optional[str]:
        self._record("join_queue", request)
        return self.queue_match

    async def leave_queue(self, player_id: str) -> None:
        self._record("leave_queue", player_id)

    def _finish(self, game_id: str) -> None:
        game = self.games.get(game_id)
        if game is not None:
            self.add(game.model_copy(update={"status": GameStatus.FINISHED}))


@pytest.fixture
def fake_service() -> FakeGameService:
    return FakeGameService()


@pytest.fixture
def settings() -> ClientSettings:
    """No waiting around in tests. Polling intervals long enough to never fire during a test."""
    return ClientSettings(
        player_id=RED_PLAYER,
        move_settle_delay_ms=0,
        confirm_retry_interval_ms=0,
        create_settle_delay_ms=0,
        premove_settle_delay_ms=0,
        ai_move_delay_ms=0,
        poll_interval_pending_ms=60_000,
        poll_interval_active_ms=60_000,
        queue_poll_interval_ms=60_000,
    )


@pytest.fixture
def session() -> GameSession:
    return GameSession(player_id=RED_PLAYER)


@pytest.fixture
def scheduler() -> Scheduler:
    return Scheduler()


@pytest.fixture
def synchronizer(
    fake_service: FakeGameService,
    session: GameSession,
    settings: ClientSettings,
    scheduler: Scheduler,
) -> GameSynchronizer:
    return GameSynchronizer(fake_service, session, settings, scheduler)


@pytest.fixture
def ai_snapshot(make_snapshot: SnapshotFactory) -> GameSnapshot:
    """Game against the AI, the AI playing black"""
    return make_snapshot(black_player=None, black_player_type=PlayerType.AI)

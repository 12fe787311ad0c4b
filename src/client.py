"""
CheckersClient: wires the session, the synchronizer, the clock, the timeout arbiter and the controller together.

    async with CheckersClient(ClientSettings.from_env()) as client:
        await client.sync.fetch_games()
        await client.select_game(game_id)
        await client.click(5, 0)
        await client.click(4, 1)
"""

import logging
import time
from typing import Callable, Optional

from sqlalchemy.orm import Session

from src.checkers.board import Board
from src.checkers.moves import Move, legal_moves
from src.checkers.square import Square
from src.core.config import ClientSettings
from src.db.database import create_session_factory
from src.db.repository import SnapshotRepository
from src.db.sql_repository import SQLSnapshotRepository
from src.services.clock import ClockManager
from src.services.controller import ClickOutcome, GameController
from src.services.game_service import GameService
from src.services.graphql_client import GraphQLGameService
from src.services.scheduler import ScheduledTask, Scheduler
from src.services.session import GameSession
from src.services.synchronizer import GameSynchronizer
from src.services.timeout_arbiter import TimeoutArbiter

logger = logging.getLogger(__name__)


class CheckersClient:
    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        service: Optional[GameService] = None,
        repository: Optional[SnapshotRepository] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or ClientSettings.from_env()
        self.monotonic = monotonic
        self.scheduler = Scheduler()

        self._db: Optional[Session] = None
        if repository is None:
            self._db = create_session_factory(self.settings)()
            repository = SQLSnapshotRepository(self._db)

        self._graphql: Optional[GraphQLGameService] = None
        if service is None:
            self._graphql = GraphQLGameService(self.settings)
            service = self._graphql

        self.session = GameSession(player_id=self.settings.player_id)
        self.sync = GameSynchronizer(
            service, self.session, self.settings, self.scheduler, repository
        )
        self.clock = ClockManager(self.settings.clock_tick_ms)
        self.sync.add_listener(self.clock.sync)
        self.arbiter = TimeoutArbiter(
            self.sync, self.clock, self.settings.timeout_cooldown_ms, monotonic
        )
        self.controller = GameController(self.sync, self.scheduler, self.settings)
        self._clock_task: Optional[ScheduledTask] = None
        self._last_tick_at: Optional[float] = None
        self.timeout_task: Optional[ScheduledTask] = None

    async def __aenter__(self) -> "CheckersClient":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def start(self) -> None:
        """Restore the locally stored games and start the clock"""
        restored = self.sync.restore_games()
        logger.info(
            "Checkers client for %s started (%d stored games)",
            self.settings.player_id,
            len(restored),
        )
        self._last_tick_at = self.monotonic()
        self._clock_task = self.scheduler.every(
            self.settings.clock_tick_ms, self.on_tick, "clock"
        )

    async def on_tick(self) -> None:
        """Count down by the time measured since the last tick. A resign or claim runs as a task of its own."""
        now = self.monotonic()
        elapsed_ms = None
        if self._last_tick_at is not None:
            elapsed_ms = round((now - self._last_tick_at) * 1000)
        self._last_tick_at = now
        self.clock.tick(self.session, elapsed_ms)

        if self.arbiter.decide() is None:
            return
        if self.timeout_task is None or self.timeout_task.done:
            self.timeout_task = self.scheduler.after(0, self._resolve_timeout, "timeout")

    async def _resolve_timeout(self) -> None:
        await self.arbiter.evaluate()

    async def aclose(self) -> None:
        """Tear down every timer, then the connections"""
        self.controller.cancel_timers()
        await self.sync.shutdown()
        await self.scheduler.cancel_all()
        if self._graphql is not None:
            await self._graphql.aclose()
        if self._db is not None:
            self._db.close()

    # --- conveniences ---
    async def select_game(self, game_id: Optional[str]) -> None:
        await self.sync.select_game(game_id)

    async def click(self, row: int, col: int) -> ClickOutcome:
        return await self.controller.click(row, col)

    async def make_move(self, from_row: int, from_col: int, to_row: int, to_col: int) -> bool:
        move = Move(Square(from_row, from_col), Square(to_row, to_col))
        return await self.sync.make_move(move)

    def legal_moves(self, row: int, col: int) -> list[Square]:
        """Legal destinations on the rendered board (empty without a selected game)"""
        view = self.session.view
        if view is None:
            return []
        return legal_moves(Board.from_state(view.board_state), row, col)

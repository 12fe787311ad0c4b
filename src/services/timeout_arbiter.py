"""
Decides what to do when a clock runs out (evaluated after every clock tick).

* my time is up (and the opponent's is not) -> resign
* otherwise, the opponent's time is up -> claim the win on time

Once triggered, the arbiter stays quiet until the mutation finished AND a cool-down passed,
so a single expiry never causes more than one resign / claim.
"""

import logging
import time
from enum import Enum, auto
from typing import Callable, Optional

from src.core.shared_types import GameStatus, PlayerColor, Turn
from src.services.clock import ClockManager
from src.services.synchronizer import GameSynchronizer

logger = logging.getLogger(__name__)


class TimeoutAction(Enum):
    RESIGN = auto()
    CLAIM_TIME_WIN = auto()


class TimeoutArbiter:
    def __init__(
        self,
        synchronizer: GameSynchronizer,
        clock: ClockManager,
        cooldown_ms: int = 2000,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.sync = synchronizer
        self.clock = clock
        self.cooldown_s = cooldown_ms / 1000
        self.monotonic = monotonic
        self._release_at: Optional[float] = None

    def decide(self) -> Optional[TimeoutAction]:
        """Which arm (if any) the current clocks call for. Spectators and untimed games never trigger."""
        session = self.sync.session
        view = session.view
        if view is None or view.status != GameStatus.ACTIVE or not self.clock.is_timed:
            return None
        color = session.player_color
        if color == PlayerColor.SPECTATOR:
            return None

        my_turn = Turn[color.name]
        opponent_turn = Turn.BLACK if my_turn == Turn.RED else Turn.RED
        i_am_expired = self.clock.is_expired(my_turn)
        opponent_expired = self.clock.is_expired(opponent_turn)
        if i_am_expired and not opponent_expired:
            return TimeoutAction.RESIGN
        if opponent_expired:
            return TimeoutAction.CLAIM_TIME_WIN
        return None

    def _guard_is_released(self) -> bool:
        session = self.sync.session
        if not session.timeout_resolving:
            return True
        if self._release_at is not None and self.monotonic() >= self._release_at:
            session.timeout_resolving = False
            self._release_at = None
            return True
        return False

    async def evaluate(self) -> Optional[TimeoutAction]:
        """Run at most one arm. Mutation errors propagate (after the cool-down has been armed)."""
        if not self._guard_is_released():
            return None
        action = self.decide()
        if action is None:
            return None

        session = self.sync.session
        game_id = session.selected_game_id
        generation = session.generation
        session.timeout_resolving = True
        self._release_at = None
        try:
            if action == TimeoutAction.RESIGN:
                logger.info("Out of time in game %s, resigning", game_id)
                await self.sync.resign()
            else:
                logger.info("Opponent out of time in game %s, claiming the win", game_id)
                await self.sync.claim_time_win(game_id)
        finally:
            if session.is_current(generation, game_id):
                self._release_at = self.monotonic() + self.cooldown_s
        return action

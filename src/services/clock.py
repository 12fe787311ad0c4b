"""
Local game clock.

The game service only reports remaining times when it is asked for a snapshot. In between, the clock of the side to
move is counted down locally (every tick, floored at zero) and overwritten again by the next fresher snapshot.
"""

import logging
from typing import Optional

from src.api.models import GameSnapshot
from src.core.shared_types import TIME_CONTROLS, GameStatus, TimeControl, Turn
from src.services.session import GameSession

logger = logging.getLogger(__name__)


class ClockManager:
    def __init__(self, tick_ms: int = 100) -> None:
        self.tick_ms = tick_ms
        self.red_ms = 0
        self.black_ms = 0
        self.is_timed = False
        self._game_id: Optional[str] = None
        self._synced_move_count = -1
        self._has_clock_data = False

    def remaining(self, turn: Turn) -> int:
        return self.red_ms if turn == Turn.RED else self.black_ms

    def is_expired(self, turn: Turn) -> bool:
        return self.is_timed and self.remaining(turn) <= 0

    def reset(self) -> None:
        self.red_ms = 0
        self.black_ms = 0
        self.is_timed = False
        self._game_id = None
        self._synced_move_count = -1
        self._has_clock_data = False

    def reset_for(self, time_control: TimeControl) -> None:
        """Both sides get the full initial time of the time control"""
        initial_ms = TIME_CONTROLS[time_control].initial_time_ms
        self.red_ms = initial_ms
        self.black_ms = initial_ms
        self.is_timed = True

    def sync(self, session: GameSession) -> bool:
        """
        Take the times of the confirmed snapshot of the selected game, but only when
        * another game got selected, or
        * the move count went up, or
        * this is the first time the game reports clock data.
        Returns whether the local times were overwritten.
        """
        snapshot = session.confirmed
        if snapshot is None or snapshot.id != session.selected_game_id:
            if self._game_id is not None:
                self.reset()
            return False

        game_changed = snapshot.id != self._game_id
        if game_changed:
            self.reset()
            self._game_id = snapshot.id

        fresher = snapshot.move_count > self._synced_move_count
        first_clock = snapshot.clock is not None and not self._has_clock_data
        if not (game_changed or fresher or first_clock):
            return False
        return self._overwrite(snapshot)

    def _overwrite(self, snapshot: GameSnapshot) -> bool:
        if snapshot.clock is not None:
            self.red_ms = snapshot.clock.red_time_ms
            self.black_ms = snapshot.clock.black_time_ms
            self._has_clock_data = True
            self.is_timed = True
        elif snapshot.time_control is not None and not self.is_timed:
            self.reset_for(snapshot.time_control)
        else:
            return False
        self._synced_move_count = snapshot.move_count
        logger.debug(
            "Clock of %s synced at moveCount %d: red %d ms, black %d ms",
            snapshot.id,
            snapshot.move_count,
            self.red_ms,
            self.black_ms,
        )
        return True

    def tick(self, session: GameSession, elapsed_ms: Optional[int] = None) -> None:
        """Count down the side to move. Only for a timed, active game."""
        view = session.view
        if not self.is_timed or view is None or view.status != GameStatus.ACTIVE:
            return
        if view.id != self._game_id:
            return
        elapsed = self.tick_ms if elapsed_ms is None else elapsed_ms
        if view.current_turn == Turn.RED:
            self.red_ms = max(0, self.red_ms - elapsed)
        else:
            self.black_ms = max(0, self.black_ms - elapsed)

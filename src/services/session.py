"""
The game session: everything the client knows about the games of the local player.

Owned by the synchronizer, which is the only component that changes the selected game.
The rendered state of the selected game is `view`: the last accepted snapshot, overlaid with at most one optimistic move.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from src.api.models import GameSnapshot, PlayerStats
from src.checkers.premove import PremoveQueue
from src.core.shared_types import GameStatus, PlayerColor, TimeControl
from src.services.optimistic import OptimisticMove

logger = logging.getLogger(__name__)


@dataclass
class QueueState:
    in_queue: bool = False
    time_control: Optional[TimeControl] = None
    joined_at_ms: Optional[int] = None
    counts: dict[TimeControl, int] = field(
        default_factory=lambda: {time_control: 0 for time_control in TimeControl}
    )

    def enter(self, time_control: TimeControl, joined_at_ms: int) -> None:
        self.in_queue = True
        self.time_control = time_control
        self.joined_at_ms = joined_at_ms

    def leave(self) -> None:
        self.in_queue = False
        self.time_control = None
        self.joined_at_ms = None


@dataclass
class GameSession:
    player_id: str
    games: list[GameSnapshot] = field(default_factory=list)
    selected_game_id: Optional[str] = None
    confirmed: Optional[GameSnapshot] = None
    overlay: Optional[OptimisticMove] = None
    premove: PremoveQueue = field(default_factory=PremoveQueue)
    queue: QueueState = field(default_factory=QueueState)
    my_stats: Optional[PlayerStats] = None
    opponent_stats: Optional[PlayerStats] = None
    error: Optional[str] = None

    # --- single-flight guards of the selected game ---
    move_in_flight: bool = False
    ai_move_in_flight: bool = False
    timeout_resolving: bool = False

    # bumped on every selection change: async work started for an older generation must not touch the session
    generation: int = 0

    # --- SELECTION ---
    def select_game(self, game_id: Optional[str]) -> None:
        """Switch to another game (or to none). Resets everything that belongs to the previous game."""
        self.generation += 1
        self.selected_game_id = game_id
        self.confirmed = self.find_game(game_id) if game_id else None
        self.overlay = None
        self.move_in_flight = False
        self.ai_move_in_flight = False
        self.timeout_resolving = False
        self.premove.reset()
        self.error = None

    def is_current(self, generation: int, game_id: Optional[str] = None) -> bool:
        """Is the selection still the one async work was started for?"""
        if generation != self.generation:
            return False
        return game_id is None or game_id == self.selected_game_id

    def find_game(self, game_id: Optional[str]) -> Optional[GameSnapshot]:
        return next((game for game in self.games if game.id == game_id), None)

    # --- VIEW ---
    @property
    def view(self) -> Optional[GameSnapshot]:
        if self.overlay is not None:
            return self.overlay.projected
        return self.confirmed

    @property
    def player_color(self) -> PlayerColor:
        if self.view is None:
            return PlayerColor.SPECTATOR
        return self.view.player_color(self.player_id)

    @property
    def is_my_turn(self) -> bool:
        return self.view is not None and self.view.is_my_turn(self.player_id)

    @property
    def is_active(self) -> bool:
        return self.view is not None and self.view.status == GameStatus.ACTIVE

    # --- RECONCILIATION ---
    def accept(self, snapshot: GameSnapshot) -> bool:
        """
        Monotonic move count rule
        ----
        A snapshot of the selected game replaces the cached one only when its move count is at least as high.
        Older snapshots are dropped, whatever order they arrive in. Snapshots of other games just refresh the list.
        Returns whether the selected game took the snapshot.
        """
        if snapshot.id != self.selected_game_id:
            self._store_in_list(snapshot)
            return False

        if self.confirmed is not None and snapshot.move_count < self.confirmed.move_count:
            logger.debug(
                "Dropping stale snapshot of %s (moveCount %d < %d)",
                snapshot.id,
                snapshot.move_count,
                self.confirmed.move_count,
            )
            return False

        snapshot = self._keep_details(snapshot)
        self.confirmed = snapshot
        self._store_in_list(snapshot)
        if self.overlay is not None and self.overlay.is_superseded_by(snapshot):
            self.overlay = None
        return True

    def _keep_details(self, snapshot: GameSnapshot) -> GameSnapshot:
        """List queries leave out the move history and the clock: at the same move count, the known ones still hold"""
        confirmed = self.confirmed
        if confirmed is None or confirmed.id != snapshot.id or confirmed.move_count != snapshot.move_count:
            return snapshot
        missing = {
            name: getattr(confirmed, name)
            for name in ("moves", "clock")
            if getattr(snapshot, name) is None and getattr(confirmed, name) is not None
        }
        return snapshot.model_copy(update=missing) if missing else snapshot

    def replace_games(self, games: list[GameSnapshot]) -> None:
        """A refreshed game list. The selected game inside it still obeys the monotonic rule."""
        self.games = list(games)
        selected = self.find_game(self.selected_game_id)
        if selected is not None:
            self.accept(selected)
        if self.confirmed is not None and selected is not None and self.confirmed is not selected:
            # keep the list consistent with what the selected game shows
            self._store_in_list(self.confirmed)

    def merge_games(self, games: list[GameSnapshot], status: GameStatus) -> None:
        """Replace the games of one status with a fresh list of that status"""
        others = [game for game in self.games if game.status != status]
        self.replace_games(others + list(games))

    # --- OPTIMISTIC UPDATES ---
    def apply_overlay(self, optimistic: OptimisticMove) -> None:
        self.overlay = optimistic

    def rollback_overlay(self) -> Optional[GameSnapshot]:
        """Back to the last confirmed snapshot. A premove staged on top of the undone move goes with it."""
        self.overlay = None
        self.premove.cancel()
        return self.confirmed

    # --- ERRORS ---
    def record_error(self, message: str) -> None:
        self.error = message

    def clear_error(self) -> None:
        self.error = None

    def _store_in_list(self, snapshot: GameSnapshot) -> None:
        for idx, game in enumerate(self.games):
            if game.id == snapshot.id:
                self.games[idx] = snapshot
                return
        self.games.append(snapshot)

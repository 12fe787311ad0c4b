"""
Optimistic move: the board the player sees right after moving, before the game service confirms it.

A command object holding both the snapshot it was applied to (for rollback) and the projected snapshot
(board updated, turn flipped, move count + 1).
"""

from dataclasses import dataclass
from typing import Self

from src.api.models import GameSnapshot
from src.checkers.game import AppliedMove, Position
from src.checkers.moves import Move


@dataclass(frozen=True)
class OptimisticMove:
    base: GameSnapshot
    projected: GameSnapshot
    applied: AppliedMove

    @classmethod
    def build(cls, snapshot: GameSnapshot, move: Move) -> Self:
        """Decode the board, play the move on it and re-encode. The given snapshot is left untouched."""
        position = Position.from_state(
            snapshot.board_state, snapshot.current_turn, snapshot.move_count
        )
        next_position, applied = position.play(move)
        projected = snapshot.model_copy(
            update={
                "board_state": next_position.to_state(),
                "current_turn": next_position.current_turn,
                "move_count": next_position.move_count,
            }
        )
        return cls(base=snapshot, projected=projected, applied=applied)

    @property
    def game_id(self) -> str:
        return self.base.id

    @property
    def move_count(self) -> int:
        return self.projected.move_count

    def is_superseded_by(self, snapshot: GameSnapshot) -> bool:
        """A confirmed snapshot at least as far along as the projection makes the overlay obsolete"""
        return snapshot.id == self.game_id and snapshot.move_count >= self.move_count

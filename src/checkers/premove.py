"""
Premoves: a move staged while the opponent is still thinking.

At most one premove is pending. It is NOT checked for legality when staged (the board is about to change anyway);
the controller submits it through the normal move path as soon as the turn flips, which applies the full rules.
"""

from dataclasses import dataclass, field
from typing import Optional

from src.checkers.moves import Board, Move, premove_candidates
from src.checkers.pieces import Side
from src.checkers.square import Square


@dataclass
class PremoveQueue:
    pending: Optional[Move] = None
    selected: Optional[Square] = None
    candidates: list[Square] = field(default_factory=list)
    _was_my_turn: Optional[bool] = None

    def select(self, board: Board, square: Square, side: Side) -> list[Square]:
        """
        Select one of your own pieces to premove with.
        Ownership is checked against your side, not against the side to move.
        Selecting a piece discards the pending premove.
        """
        if not board.piece(square).belongs_to(side):
            return []
        self.cancel()
        self.selected = square
        self.candidates = premove_candidates(board, square)
        return self.candidates

    def queue(self, move: Move) -> None:
        """Replaces any previously pending premove"""
        self.pending = move
        self._clear_selection()

    def handle_click(self, board: Board, square: Square, side: Side) -> Optional[Move]:
        """
        Off-turn click
        ----
        * own piece -> (re)select it
        * candidate square of the selected piece -> queue the premove (returned)
        * anywhere else -> drop the selection, or cancel the pending premove when nothing was selected
        """
        if board.piece(square).belongs_to(side):
            self.select(board, square, side)
            return None

        if self.selected is not None:
            move = Move(self.selected, square) if square in self.candidates else None
            self._clear_selection()
            if move is not None:
                self.queue(move)
            return move

        self.cancel()
        return None

    def cancel(self) -> None:
        self.pending = None
        self._clear_selection()

    def take(self) -> Optional[Move]:
        """Pop the pending premove. The slot is empty afterwards, whatever happens to the move."""
        move, self.pending = self.pending, None
        return move

    def observe_turn(self, is_my_turn: bool) -> bool:
        """Returns True exactly once per flip from the opponent's turn to yours"""
        flipped = self._was_my_turn is False and is_my_turn
        self._was_my_turn = is_my_turn
        return flipped

    def reset(self) -> None:
        """New game selected (or game left the active state)"""
        self.cancel()
        self._was_my_turn = None

    def _clear_selection(self) -> None:
        self.selected = None
        self.candidates = []

"""
The Position is the entrypoint into the domain layer for the service layer.
It is responsible for the business logic of playing one move on a board that was received from the game service:
checking the move against the legality engine, and producing the next board (captures and promotion included).

The game service has the final say. Whatever is computed here is an opinion used for validation before sending a
move and for the optimistic update of the board shown to the player.
"""

from dataclasses import dataclass
from typing import Optional, Self

from src.checkers.board import Board
from src.checkers.moves import (
    Move,
    generate_legal_moves,
    is_promotion,
    legal_moves,
    pieces_with_captures,
)
from src.checkers.pieces import Piece, Side
from src.checkers.square import Square
from src.core.exceptions import IllegalMoveError, NotYourTurnError
from src.core.shared_types import Turn


def side_from_turn(turn: Turn | str) -> Side:
    """Turn is the wire value ('RED' / 'BLACK'), Side the domain one."""
    try:
        return Side[Turn(turn).name]
    except ValueError as e:
        raise IllegalMoveError(f"Unknown turn: {turn!r}") from e


def turn_from_side(side: Side) -> Turn:
    return Turn[side.name]


@dataclass(frozen=True)
class AppliedMove:
    """What happened on the board when a move was applied"""

    move: Move
    piece: Piece
    captured: Optional[Piece]
    promoted: bool

    @property
    def is_capture(self) -> bool:
        return self.captured is not None


@dataclass
class Position:
    board: Board
    side_to_move: Side
    move_count: int = 0

    @classmethod
    def from_state(cls, board_state: str, current_turn: Turn | str, move_count: int = 0) -> Self:
        return cls(Board.from_state(board_state), side_from_turn(current_turn), move_count)

    def to_state(self) -> str:
        return self.board.to_state()

    @property
    def current_turn(self) -> Turn:
        return turn_from_side(self.side_to_move)

    def legal_moves(self, row: int, col: int) -> list[Square]:
        return legal_moves(self.board, row, col)

    def forced_pieces(self) -> list[Square]:
        """Pieces of the side to move that are able to capture (and so must)."""
        return pieces_with_captures(self.board, self.side_to_move)

    def validate(self, move: Move, side: Optional[Side] = None) -> None:
        """
        Checks before a move is sent to the game service
        ----

        1. The moving piece must belong to the side to move (and to `side`, when given)
        2. The destination must be one of the legal moves of the piece
        """
        moving_piece = self.board.piece(move.from_square)
        if side is not None and side != self.side_to_move:
            raise NotYourTurnError(
                f"It is {self.side_to_move.name}'s turn, not {side.name}'s."
            )
        if not moving_piece.belongs_to(self.side_to_move):
            raise IllegalMoveError(
                f"No piece of {self.side_to_move.name} on {move.from_square.to_dict()}."
            )
        if move not in generate_legal_moves(self.board, move.from_square):
            raise IllegalMoveError(
                f"Move not allowed: {move.from_square.to_dict()} -> {move.to_square.to_dict()}"
            )

    def play(self, move: Move) -> tuple[Self, AppliedMove]:
        """Apply a (validated) move. Returns the next position and leaves this one untouched."""
        board, applied = apply_move(self.board, move)
        next_position = type(self)(
            board=board,
            side_to_move=self.side_to_move.opponent,
            move_count=self.move_count + 1,
        )
        return next_position, applied


def apply_move(board: Board, move: Move) -> tuple[Board, AppliedMove]:
    """
    Produce the board after the move
    ----
    Source, destination and the jumped square all change on a fresh copy, never on the given board.
    A man reaching the far row is crowned immediately (also when it got there by capturing).
    """
    new_board = board.copy()
    moving_piece = board.piece(move.from_square)
    if moving_piece.is_empty:
        raise IllegalMoveError(f"No piece to move on {move.from_square.to_dict()}.")

    captured: Optional[Piece] = None
    if move.captured_square is not None:
        captured = board.piece(move.captured_square)
        new_board.place(move.captured_square, Piece.EMPTY)

    promoted = is_promotion(moving_piece, move.to_square.row)
    new_board.place(move.from_square, Piece.EMPTY)
    new_board.place(
        move.to_square, moving_piece.to_king() if promoted else moving_piece
    )
    return new_board, AppliedMove(move, moving_piece, captured, promoted)

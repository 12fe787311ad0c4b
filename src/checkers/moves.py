"""
Geometry/Base movement and capturing rules

Key idea: Use strategy pattern to define the movement directions for each piece.

Men step forward diagonally (red moves DOWN the board, black moves UP), kings step along all four diagonals.
A capture jumps over an adjacent opposing piece onto the empty square right behind it.

The mandatory capture rule is applied in `legal_moves()`. Premove candidates skip it, as the board will have changed
by the time they are executed.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

from src.checkers.pieces import Piece, Side
from src.checkers.square import BOARD_DIMENSIONS, Square


class Board(Protocol):
    """Just the parts the movement rules need"""

    def piece(self, square: Square) -> Piece: ...
    def is_empty(self, square: Square) -> bool: ...
    def locate_side(self, side: Side) -> list[Square]: ...


Vector = tuple[int, int]


@dataclass(frozen=True)
class Move:
    """basic definition of a move to be made (a single step or a single jump)"""

    from_square: Square
    to_square: Square

    @property
    def is_capture(self) -> bool:
        return abs(self.to_square.row - self.from_square.row) == 2

    @property
    def captured_square(self) -> Optional[Square]:
        """The square that is jumped over. Only exists for captures."""
        if not self.is_capture:
            return None
        return Square(
            (self.from_square.row + self.to_square.row) // 2,
            (self.from_square.col + self.to_square.col) // 2,
        )

    def to_dict(self) -> dict[str, int]:
        """Argument names used by the makeMove mutation"""
        return {
            "fromRow": self.from_square.row,
            "fromCol": self.from_square.col,
            "toRow": self.to_square.row,
            "toCol": self.to_square.col,
        }


# -- STRATEGY PATTERN: MOVEMENT DIRECTIONS ---
RED_FORWARD: list[Vector] = [(1, -1), (1, 1)]  # red moves down
BLACK_FORWARD: list[Vector] = [(-1, -1), (-1, 1)]  # black moves up
ALL_DIAGONALS: list[Vector] = [(-1, -1), (-1, 1), (1, -1), (1, 1)]

MOVEMENT_DIRECTIONS: dict[Piece, list[Vector]] = {
    Piece.EMPTY: [],
    Piece.RED: RED_FORWARD,
    Piece.BLACK: BLACK_FORWARD,
    Piece.RED_KING: ALL_DIAGONALS,
    Piece.BLACK_KING: ALL_DIAGONALS,
}


# --- MOVEMENT RULES ---
def simple_moves(board: Board, square: Square) -> list[Move]:
    """Single diagonal steps onto empty squares"""
    moving_piece = board.piece(square)
    moves: list[Move] = []
    for dr, dc in MOVEMENT_DIRECTIONS[moving_piece]:
        target_square = square.offset(dr, dc)
        if board.is_empty(target_square):
            moves.append(Move(from_square=square, to_square=target_square))
    return moves


def capture_moves(board: Board, square: Square) -> list[Move]:
    """Jumps over an adjacent opposing piece onto the (empty) landing square behind it"""
    moving_piece = board.piece(square)
    side = moving_piece.side
    if side is None:
        return []

    moves: list[Move] = []
    for dr, dc in MOVEMENT_DIRECTIONS[moving_piece]:
        if _is_capture_along(board, square, side, (dr, dc)):
            moves.append(
                Move(from_square=square, to_square=square.offset(2 * dr, 2 * dc))
            )
    return moves


def _is_capture_along(
    board: Board, square: Square, side: Side, direction: Vector
) -> bool:
    dr, dc = direction
    landing_square = square.offset(2 * dr, 2 * dc)
    jumped_square = square.offset(dr, dc)
    return board.is_empty(landing_square) and board.piece(
        jumped_square
    ).is_opponent_of(side)


def has_any_capture(board: Board, side: Side) -> bool:
    """Scan every piece of the given side for at least one capture"""
    return any(capture_moves(board, square) for square in board.locate_side(side))


def pieces_with_captures(board: Board, side: Side) -> list[Square]:
    """Squares of the pieces that are able to capture (used to highlight forced captures)"""
    return [
        square for square in board.locate_side(side) if capture_moves(board, square)
    ]


# --- LEGAL MOVES ---
def generate_legal_moves(board: Board, square: Square) -> list[Move]:
    """
    Mandatory capture rule
    ----
    1. The piece can capture? -> ONLY its captures are legal.
    2. Another piece of the same side can capture? -> this piece cannot move at all.
    3. Nobody can capture -> the simple moves.
    """
    if not square.is_within_bounds():
        return []
    side = board.piece(square).side
    if side is None:
        return []

    captures = capture_moves(board, square)
    if captures:
        return captures
    if has_any_capture(board, side):
        return []
    return simple_moves(board, square)


def legal_moves(board: Board, row: int, col: int) -> list[Square]:
    """Destination squares the piece on (row, col) may move to. Computed fresh on every call."""
    return [
        move.to_square for move in generate_legal_moves(board, Square(row, col))
    ]


def premove_candidates(board: Board, square: Square) -> list[Square]:
    """
    Destinations offered when staging a premove: per direction the simple move followed by the capture.

    NOTE: no mandatory capture here. The premove is checked against the full rules once it is executed.
    """
    moving_piece = board.piece(square)
    side = moving_piece.side
    if not square.is_within_bounds() or side is None:
        return []

    destinations: list[Square] = []
    for dr, dc in MOVEMENT_DIRECTIONS[moving_piece]:
        step = square.offset(dr, dc)
        if board.is_empty(step):
            destinations.append(step)
        if _is_capture_along(board, square, side, (dr, dc)):
            destinations.append(square.offset(2 * dr, 2 * dc))
    return destinations


# -- PROMOTION --
PROMOTION_ROWS: dict[Side, int] = {
    Side.RED: BOARD_DIMENSIONS[0] - 1,
    Side.BLACK: 0,
}


def promotion_row(side: Side) -> int:
    return PROMOTION_ROWS[side]


def is_promotion(piece: Piece, to_row: int) -> bool:
    """Only men get crowned: red on the last row, black on the first row"""
    if piece.is_king or piece.side is None:
        return False
    return to_row == promotion_row(piece.side)

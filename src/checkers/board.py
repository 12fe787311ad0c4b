"""The Game board: the 8x8 grid of pieces and its conversion from/to the board string of the game service"""

from dataclasses import dataclass
from typing import Self

from src.checkers.board_state import ROW_SEPARATOR, assert_valid_board_state
from src.checkers.pieces import EMPTY_CHAR, Piece, Side
from src.checkers.square import BOARD_DIMENSIONS, Square


@dataclass
class Board:
    grid: list[list[Piece]]

    @classmethod
    def from_state(cls, board_state: str) -> Self:
        """Construct a board using a given board string.

        ex. standard starting position:
        " r r r r/r r r r / r r r r/        /        /b b b b / b b b b/b b b b "
        means:
        * red men on the dark squares of rows 0 through 2 (top of the string)
        * rows 3 and 4 are empty
        * black men on the dark squares of rows 5 through 7
        """
        assert_valid_board_state(board_state)
        grid = [
            [Piece.from_char(character) for character in row]
            for row in board_state.split(ROW_SEPARATOR)
        ]
        return cls(grid)

    @classmethod
    def empty(cls) -> Self:
        num_rows, num_cols = BOARD_DIMENSIONS
        return cls([[Piece.EMPTY] * num_cols for _ in range(num_rows)])

    def to_state(self, empty_char: str = EMPTY_CHAR) -> str:
        """
        Rows are separated by slashes. Empty squares are written as `empty_char`.

        Decoding accepts both ' ' and '.' for an empty square, so a dotted string only comes back unchanged with
        `empty_char="."`.
        """
        return ROW_SEPARATOR.join(
            "".join(
                empty_char if piece.is_empty else piece.to_char() for piece in row
            )
            for row in self.grid
        )

    def piece(self, square: Square) -> Piece:
        """Anything outside of the board reads as an empty square"""
        if not square.is_within_bounds():
            return Piece.EMPTY
        return self.grid[square.row][square.col]

    def is_empty(self, square: Square) -> bool:
        return square.is_within_bounds() and self.piece(square).is_empty

    def place(self, square: Square, piece: Piece) -> None:
        self.grid[square.row][square.col] = piece

    def copy(self) -> "Board":
        return Board([list(row) for row in self.grid])

    def locate_side(self, side: Side) -> list[Square]:
        """All squares holding a piece (man or king) of the given side, in row-major order"""
        return [
            Square(row_idx, col_idx)
            for row_idx, row in enumerate(self.grid)
            for col_idx, piece in enumerate(row)
            if piece.belongs_to(side)
        ]
"""Defines the checkers pieces and the two sides playing the game"""

from enum import Enum, auto
from typing import Optional


class Side(Enum):
    RED = auto()
    BLACK = auto()

    @property
    def opponent(self) -> "Side":
        return Side.BLACK if self == Side.RED else Side.RED


class Piece(Enum):
    """Values match the Piece enum of the game service"""

    EMPTY = "EMPTY"
    RED = "RED"
    BLACK = "BLACK"
    RED_KING = "RED_KING"
    BLACK_KING = "BLACK_KING"

    @property
    def side(self) -> Optional[Side]:
        if self in (Piece.RED, Piece.RED_KING):
            return Side.RED
        if self in (Piece.BLACK, Piece.BLACK_KING):
            return Side.BLACK
        return None

    @property
    def is_king(self) -> bool:
        return self in (Piece.RED_KING, Piece.BLACK_KING)

    @property
    def is_empty(self) -> bool:
        return self == Piece.EMPTY

    def belongs_to(self, side: Side) -> bool:
        return self.side == side

    def is_opponent_of(self, side: Side) -> bool:
        return self.side == side.opponent

    def to_king(self) -> "Piece":
        """Crowning a man. Kings (and empty squares) stay what they are."""
        return KING_OF.get(self, self)

    def to_char(self) -> str:
        return PIECE_TO_CHAR[self]

    @classmethod
    def from_char(cls, character: str) -> "Piece":
        return CHAR_TO_PIECE[character]


KING_OF: dict[Piece, Piece] = {
    Piece.RED: Piece.RED_KING,
    Piece.BLACK: Piece.BLACK_KING,
}

# Board string alphabet. Lower case: men, upper case: kings, space: empty square.
EMPTY_CHAR = " "
# the web client writes empty squares as dots. Accepted when reading, never written unless asked for.
ALT_EMPTY_CHAR = "."

CHAR_TO_PIECE: dict[str, Piece] = {
    EMPTY_CHAR: Piece.EMPTY,
    ALT_EMPTY_CHAR: Piece.EMPTY,
    "r": Piece.RED,
    "b": Piece.BLACK,
    "R": Piece.RED_KING,
    "B": Piece.BLACK_KING,
}

PIECE_TO_CHAR: dict[Piece, str] = {
    Piece.EMPTY: EMPTY_CHAR,
    Piece.RED: "r",
    Piece.BLACK: "b",
    Piece.RED_KING: "R",
    Piece.BLACK_KING: "B",
}

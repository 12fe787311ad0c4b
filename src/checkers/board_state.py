"""
Validation of the board string sent around by the game service.

Board state format
----
8 rows joined by slashes, read from the top row (row 0, where red starts) to the bottom row (row 7, where black starts).
Every row is exactly 8 characters:

* ' ' : empty square ('.' is accepted as well)
* 'r' / 'b' : red man / black man
* 'R' / 'B' : red king / black king

ex) The starting position:
" r r r r/r r r r / r r r r/        /        /b b b b / b b b b/b b b b "
"""

from src.checkers.pieces import CHAR_TO_PIECE
from src.checkers.square import BOARD_DIMENSIONS
from src.core.exceptions import InvalidBoardStateError

ROW_SEPARATOR = "/"
STARTING_BOARD_STATE = " r r r r/r r r r / r r r r/        /        /b b b b / b b b b/b b b b "
EMPTY_BOARD_STATE = ROW_SEPARATOR.join([" " * BOARD_DIMENSIONS[1]] * BOARD_DIMENSIONS[0])


def is_valid_board_state(board_state: str) -> bool:
    """Check the amount of rows, the length of every row and the characters used."""
    num_rows, num_cols = BOARD_DIMENSIONS
    rows = board_state.split(ROW_SEPARATOR)
    if len(rows) != num_rows:
        return False

    for row in rows:
        if len(row) != num_cols:
            return False
        if any(character not in CHAR_TO_PIECE for character in row):
            return False
    return True


def assert_valid_board_state(board_state: str) -> None:
    if not is_valid_board_state(board_state):
        raise InvalidBoardStateError(
            f"Cannot interpret supplied string as a board state: {board_state!r}"
        )

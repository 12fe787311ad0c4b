"""Requests and Response models of the game service (GraphQL wire format, camelCase on the wire)"""

from typing import Any, Optional, Self

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from src.checkers.board_state import assert_valid_board_state
from src.checkers.square import BOARD_DIMENSIONS
from src.core.exceptions import InvalidRequestError
from src.core.shared_types import (
    TIME_CONTROLS,
    ColorPreference,
    GameResult,
    GameStatus,
    PlayerColor,
    PlayerType,
    TimeControl,
    TimeControlCategory,
    Turn,
)

DEFAULT_RATING = 1200
AI_RATING = 1500
AI_PLAYER_ID = "AI"


class WireModel(BaseModel):
    """snake_case in Python, camelCase on the wire"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# --- REQUEST MODELS ---
class CreateGameRequest(WireModel):
    vs_ai: bool
    player_id: str
    time_control: Optional[TimeControl] = None
    color_preference: Optional[ColorPreference] = None
    is_rated: Optional[bool] = None


class JoinGameRequest(WireModel):
    game_id: str
    player_id: str


class MoveRequest(WireModel):
    game_id: str
    from_row: int
    from_col: int
    to_row: int
    to_col: int
    player_id: str

    @field_validator(*["from_row", "from_col", "to_row", "to_col"])
    @classmethod
    def validate_coordinate(cls, value: int) -> int:
        if not 0 <= value < BOARD_DIMENSIONS[0]:
            raise InvalidRequestError(
                f"Coordinate {value!r} is off the board (expected 0-{BOARD_DIMENSIONS[0] - 1})."
            )
        return value


class JoinQueueRequest(WireModel):
    time_control: TimeControl
    player_id: str


# --- RESPONSE MODELS ---
class MoveRecord(WireModel):
    from_row: int
    from_col: int
    to_row: int
    to_col: int
    captured_row: Optional[int] = None
    captured_col: Optional[int] = None
    promoted: bool = False
    timestamp: int = 0

    @property
    def is_capture(self) -> bool:
        return self.captured_row is not None


class ClockState(WireModel):
    """Remaining times in milliseconds. lastMoveAt is a microsecond timestamp."""

    initial_time_ms: int
    increment_ms: int
    red_time_ms: int
    black_time_ms: int
    last_move_at: int = 0


class GameSnapshot(WireModel):
    """
    One game as reported by the game service.

    The list queries leave out some fields (pending games have no turn / move count / moves) and the defaults fill in
    for them. `moves` is None (rather than empty) when the query did not ask for the move history.
    """

    id: str
    board_state: str
    status: GameStatus
    current_turn: Turn = Turn.RED
    move_count: int = 0
    red_player: Optional[str] = None
    black_player: Optional[str] = None
    red_player_type: PlayerType = PlayerType.HUMAN
    black_player_type: PlayerType = PlayerType.HUMAN
    moves: Optional[list[MoveRecord]] = None
    result: Optional[GameResult] = None
    created_at: int = 0
    updated_at: int = 0
    clock: Optional[ClockState] = None
    time_control: Optional[TimeControl] = None

    @field_validator("board_state")
    @classmethod
    def validate_board_state(cls, value: str) -> str:
        assert_valid_board_state(value)
        return value

    @field_validator("move_count")
    @classmethod
    def validate_move_count(cls, value: int) -> int:
        if value < 0:
            raise InvalidRequestError(f"moveCount cannot be negative, got {value!r}.")
        return value

    def player_color(self, player_id: Optional[str]) -> PlayerColor:
        if not player_id:
            return PlayerColor.SPECTATOR
        if self.red_player == player_id:
            return PlayerColor.RED
        if self.black_player == player_id:
            return PlayerColor.BLACK
        return PlayerColor.SPECTATOR

    def is_my_turn(self, player_id: Optional[str]) -> bool:
        color = self.player_color(player_id)
        if color == PlayerColor.SPECTATOR:
            return False
        return color.value.upper() == self.current_turn.value

    def has_player(self, player_id: Optional[str]) -> bool:
        return self.player_color(player_id) != PlayerColor.SPECTATOR

    def opponent_of(self, player_id: Optional[str]) -> Optional[str]:
        """Id of the other seat (AI seats report as 'AI')"""
        color = self.player_color(player_id)
        if color == PlayerColor.RED:
            return AI_PLAYER_ID if self.black_player_type == PlayerType.AI else self.black_player
        if color == PlayerColor.BLACK:
            return AI_PLAYER_ID if self.red_player_type == PlayerType.AI else self.red_player
        return None

    def player_type_of(self, turn: Turn) -> PlayerType:
        return self.red_player_type if turn == Turn.RED else self.black_player_type

    @property
    def is_ai_turn(self) -> bool:
        return self.player_type_of(self.current_turn) == PlayerType.AI

    @property
    def last_move(self) -> Optional[MoveRecord]:
        if not self.moves:
            return None
        return self.moves[-1]

    @property
    def is_timed(self) -> bool:
        return self.clock is not None

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> Self:
        return cls.model_validate(data)


class PlayerStats(WireModel):
    chain_id: str = ""
    games_played: int = 0
    games_won: int = 0
    games_lost: int = 0
    games_drawn: int = 0
    win_streak: int = 0
    best_streak: int = 0
    bullet_rating: int = DEFAULT_RATING
    blitz_rating: int = DEFAULT_RATING
    rapid_rating: int = DEFAULT_RATING
    bullet_games: int = 0
    blitz_games: int = 0
    rapid_games: int = 0

    @classmethod
    def defaults_for(cls, chain_id: str) -> Self:
        """Stats of a player that never finished a game"""
        return cls(chain_id=chain_id)

    @classmethod
    def for_ai(cls) -> Self:
        return cls(
            chain_id=AI_PLAYER_ID,
            bullet_rating=AI_RATING,
            blitz_rating=AI_RATING,
            rapid_rating=AI_RATING,
        )

    def rating_for(self, time_control: Optional[TimeControl]) -> int:
        """Blitz rating when the game has no time control"""
        if time_control is None:
            return self.blitz_rating or DEFAULT_RATING
        category = TIME_CONTROLS[time_control].category
        ratings = {
            TimeControlCategory.BULLET: self.bullet_rating,
            TimeControlCategory.BLITZ: self.blitz_rating,
            TimeControlCategory.RAPID: self.rapid_rating,
        }
        return ratings[category] or DEFAULT_RATING


class QueueStatusEntry(WireModel):
    time_control: TimeControl
    player_count: int = 0

"""
Type definitions used across layers (values match the game service's GraphQL enums)
"""

from dataclasses import dataclass
from enum import StrEnum


class Turn(StrEnum):
    RED = "RED"
    BLACK = "BLACK"


class GameStatus(StrEnum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    FINISHED = "FINISHED"


class GameResult(StrEnum):
    RED_WINS = "RED_WINS"
    BLACK_WINS = "BLACK_WINS"
    DRAW = "DRAW"
    IN_PROGRESS = "IN_PROGRESS"


class PlayerType(StrEnum):
    HUMAN = "HUMAN"
    AI = "AI"


# --- NOTE: Turn and PlayerColor look alike. Turn is what the service reports, PlayerColor is the seat of the local player
# --- (which can also be "spectator"). The checkers domain layer has its own Side enum, see src/checkers/pieces.py


class PlayerColor(StrEnum):
    RED = "red"
    BLACK = "black"
    SPECTATOR = "spectator"


class ColorPreference(StrEnum):
    RED = "RED"
    BLACK = "BLACK"
    RANDOM = "RANDOM"


class TimeControl(StrEnum):
    BULLET_1_0 = "BULLET_1_0"
    BULLET_2_1 = "BULLET_2_1"
    BLITZ_3_0 = "BLITZ_3_0"
    BLITZ_5_3 = "BLITZ_5_3"
    RAPID_10_0 = "RAPID_10_0"


class TimeControlCategory(StrEnum):
    BULLET = "bullet"
    BLITZ = "blitz"
    RAPID = "rapid"


@dataclass(frozen=True)
class TimeControlMetadata:
    label: str
    minutes: int
    increment: int
    category: TimeControlCategory

    @property
    def initial_time_ms(self) -> int:
        return self.minutes * 60 * 1000

    @property
    def increment_ms(self) -> int:
        return self.increment * 1000


TIME_CONTROLS: dict[TimeControl, TimeControlMetadata] = {
    TimeControl.BULLET_1_0: TimeControlMetadata("1+0", 1, 0, TimeControlCategory.BULLET),
    TimeControl.BULLET_2_1: TimeControlMetadata("2+1", 2, 1, TimeControlCategory.BULLET),
    TimeControl.BLITZ_3_0: TimeControlMetadata("3+0", 3, 0, TimeControlCategory.BLITZ),
    TimeControl.BLITZ_5_3: TimeControlMetadata("5+3", 5, 3, TimeControlCategory.BLITZ),
    TimeControl.RAPID_10_0: TimeControlMetadata("10+0", 10, 0, TimeControlCategory.RAPID),
}

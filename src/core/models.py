"""
Boundary layer data model(s).

These objects are used to communicate between the Service layer and the persistence (db) layer.
(Decouples the wire format of the game service (see src/api/models.py) from the way accepted snapshots are stored locally)
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class GameModel:
    """Storage-safe representation of an accepted game snapshot."""

    game_id: str
    board_state: str
    current_turn: str
    status: str
    move_count: int
    red_player: Optional[str] = None
    black_player: Optional[str] = None
    result: Optional[str] = None
    # the full snapshot as received (camelCase keys), so nothing is lost when restoring it
    payload: dict[str, Any] = field(default_factory=dict)

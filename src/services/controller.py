"""
Interaction controller: turns square clicks into selections, moves and premoves, and reacts to state changes of the
selected game (premove execution on the turn flip, automatic AI move requests).
"""

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional

from src.checkers.board import Board
from src.checkers.moves import Move, is_promotion, legal_moves, pieces_with_captures
from src.checkers.pieces import Side
from src.checkers.square import Square
from src.core.config import ClientSettings
from src.core.exceptions import (
    GameStateError,
    IllegalMoveError,
    MoveInFlightError,
    NoGameSelectedError,
    NotYourTurnError,
)
from src.core.shared_types import GameStatus, PlayerColor
from src.services.scheduler import ScheduledTask, Scheduler
from src.services.session import GameSession
from src.services.synchronizer import GameSynchronizer

logger = logging.getLogger(__name__)

# a premove that cannot be played on the board it meets is dropped, never retried
PREMOVE_REJECTIONS = (
    IllegalMoveError,
    NotYourTurnError,
    GameStateError,
    MoveInFlightError,
    NoGameSelectedError,
)


class ClickKind(Enum):
    IGNORED = auto()
    SELECTED = auto()
    DESELECTED = auto()
    MOVED = auto()
    PREMOVE_SELECTED = auto()
    PREMOVE_QUEUED = auto()
    PREMOVE_CANCELLED = auto()


@dataclass
class ClickOutcome:
    kind: ClickKind
    square: Square
    targets: list[Square] = field(default_factory=list)
    is_capture: bool = False
    is_promotion: bool = False
    confirmed: Optional[bool] = None


class GameController:
    def __init__(
        self,
        synchronizer: GameSynchronizer,
        scheduler: Scheduler,
        settings: ClientSettings,
    ) -> None:
        self.sync = synchronizer
        self.scheduler = scheduler
        self.settings = settings
        self.selected: Optional[Square] = None
        self.targets: list[Square] = []
        self.premove_timer: Optional[ScheduledTask] = None
        self.ai_timer: Optional[ScheduledTask] = None
        self._watched_game_id: Optional[str] = None
        synchronizer.add_listener(self.on_state_change)

    @property
    def session(self) -> GameSession:
        return self.sync.session

    def _my_side(self) -> Optional[Side]:
        color = self.session.player_color
        if color == PlayerColor.SPECTATOR:
            return None
        return Side[color.name]

    def forced_pieces(self) -> list[Square]:
        """Own pieces that must capture (only meaningful on your turn)"""
        view = self.session.view
        side = self._my_side()
        if view is None or side is None or not self.session.is_my_turn:
            return []
        return pieces_with_captures(Board.from_state(view.board_state), side)

    # --- CLICKS ---
    async def click(self, row: int, col: int) -> ClickOutcome:
        """
        On your turn
        ----
        * own piece -> select it, targets are its legal moves
        * a target of the selected piece -> play the move
        * anything else -> deselect

        Off turn, clicks stage premoves instead (see PremoveQueue.handle_click)
        """
        square = Square(row, col)
        view = self.session.view
        side = self._my_side()
        if view is None or side is None or view.status != GameStatus.ACTIVE:
            return ClickOutcome(ClickKind.IGNORED, square)

        board = Board.from_state(view.board_state)
        if not self.session.is_my_turn:
            return self._premove_click(board, square, side)

        if board.piece(square).belongs_to(side):
            self.selected = square
            self.targets = legal_moves(board, row, col)
            return ClickOutcome(ClickKind.SELECTED, square, targets=list(self.targets))

        if self.selected is None or square not in self.targets:
            self._deselect()
            return ClickOutcome(ClickKind.DESELECTED, square)

        move = Move(self.selected, square)
        moving_piece = board.piece(self.selected)
        self._deselect()
        confirmed = await self.sync.make_move(move)
        return ClickOutcome(
            ClickKind.MOVED,
            square,
            is_capture=move.is_capture,
            is_promotion=is_promotion(moving_piece, square.row),
            confirmed=confirmed,
        )

    def _premove_click(self, board: Board, square: Square, side: Side) -> ClickOutcome:
        premove = self.session.premove
        had_pending = premove.pending is not None
        queued = premove.handle_click(board, square, side)
        if queued is not None:
            return ClickOutcome(ClickKind.PREMOVE_QUEUED, square)
        if premove.selected is not None:
            return ClickOutcome(
                ClickKind.PREMOVE_SELECTED, square, targets=list(premove.candidates)
            )
        if had_pending and premove.pending is None:
            return ClickOutcome(ClickKind.PREMOVE_CANCELLED, square)
        return ClickOutcome(ClickKind.IGNORED, square)

    def _deselect(self) -> None:
        self.selected = None
        self.targets = []

    # --- REACTIONS TO STATE CHANGES ---
    def on_state_change(self, session: GameSession) -> None:
        view = session.view
        if view is None or view.id != self._watched_game_id:
            self._watched_game_id = view.id if view is not None else None
            self._deselect()
            self.cancel_timers()

        if view is None or view.status != GameStatus.ACTIVE:
            session.premove.reset()
            return

        flipped = session.premove.observe_turn(session.is_my_turn)
        if flipped and session.premove.pending is not None:
            self.scheduler.cancel(self.premove_timer)
            self.premove_timer = self.scheduler.after(
                self.settings.premove_settle_delay_ms,
                self.execute_premove,
                "premove",
            )

        if self._should_request_ai_move(session):
            self.ai_timer = self.scheduler.after(
                self.settings.ai_move_delay_ms, self._request_ai_move, "ai-move"
            )

    def _should_request_ai_move(self, session: GameSession) -> bool:
        view = session.view
        if view is None or not view.is_ai_turn:
            return False
        if session.player_color == PlayerColor.SPECTATOR or session.ai_move_in_flight:
            return False
        return self.ai_timer is None or self.ai_timer.done

    async def execute_premove(self) -> Optional[bool]:
        """Take the premove (the slot is empty afterwards, whatever happens) and play it through the normal move path"""
        move = self.session.premove.take()
        if move is None:
            return None
        try:
            confirmed = await self.sync.make_move(move)
        except PREMOVE_REJECTIONS as e:
            logger.warning("Premove %s dropped: %s", move.to_dict(), e)
            return None
        logger.info("Premove %s executed", move.to_dict())
        return confirmed

    async def _request_ai_move(self) -> None:
        if not self._should_request_ai_move_now():
            return
        await self.sync.request_ai_move()

    def _should_request_ai_move_now(self) -> bool:
        view = self.session.view
        return (
            view is not None
            and view.status == GameStatus.ACTIVE
            and view.is_ai_turn
            and not self.session.ai_move_in_flight
        )

    def cancel_timers(self) -> None:
        self.scheduler.cancel(self.premove_timer)
        self.scheduler.cancel(self.ai_timer)
        self.premove_timer = None
        self.ai_timer = None

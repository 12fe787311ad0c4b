"""
Orchestration of communication between the player (controller / client facade), the game session, the remote game
service and the local snapshot store.

Convergence rule: a snapshot of the selected game is only taken when its move count did not go down
(see GameSession.accept). Background polling, the confirmation loop after a move and list refreshes all go through it,
so it does not matter in which order responses arrive.
"""

import logging
import time
from typing import Any, Awaitable, Callable, Optional

from src.api.models import (
    AI_PLAYER_ID,
    CreateGameRequest,
    GameSnapshot,
    JoinGameRequest,
    JoinQueueRequest,
    MoveRequest,
    PlayerStats,
)
from src.checkers.game import Position
from src.checkers.moves import Move
from src.checkers.pieces import Side
from src.core.config import ClientSettings
from src.core.exceptions import (
    GameError,
    GameStateError,
    MoveInFlightError,
    NoGameSelectedError,
    NotYourTurnError,
)
from src.core.models import GameModel
from src.core.shared_types import ColorPreference, GameStatus, PlayerColor, TimeControl
from src.db.repository import SnapshotRepository
from src.services.game_service import GameService
from src.services.optimistic import OptimisticMove
from src.services.scheduler import ScheduledTask, Scheduler, sleep_ms
from src.services.session import GameSession

logger = logging.getLogger(__name__)

Listener = Callable[[GameSession], None]

# a game found while waiting in the queue counts as "ours" when created at most this long before we joined
QUEUE_MATCH_TOLERANCE_MS = 5000


def snapshot_to_model(snapshot: GameSnapshot) -> GameModel:
    return GameModel(
        game_id=snapshot.id,
        board_state=snapshot.board_state,
        current_turn=snapshot.current_turn.value,
        status=snapshot.status.value,
        move_count=snapshot.move_count,
        red_player=snapshot.red_player,
        black_player=snapshot.black_player,
        result=snapshot.result.value if snapshot.result else None,
        payload=snapshot.to_wire(),
    )


def model_to_snapshot(model: GameModel) -> GameSnapshot:
    return GameSnapshot.from_wire(model.payload)


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


class GameSynchronizer:
    """Keeps the GameSession in line with the game service. The only component that changes the selected game."""

    def __init__(
        self,
        service: GameService,
        session: GameSession,
        settings: ClientSettings,
        scheduler: Scheduler,
        repository: Optional[SnapshotRepository] = None,
        now_ms: Callable[[], int] = wall_clock_ms,
    ) -> None:
        self.service = service
        self.session = session
        self.settings = settings
        self.scheduler = scheduler
        self.repo = repository
        self.now_ms = now_ms
        self.listeners: list[Listener] = []
        self._polling: Optional[ScheduledTask] = None
        self._queue_polling: Optional[ScheduledTask] = None

    def add_listener(self, listener: Listener) -> None:
        """Called (synchronously) whenever the selected game or its rendered state changed"""
        self.listeners.append(listener)

    # -- RECONCILIATION --
    def _accept(self, snapshot: GameSnapshot) -> bool:
        accepted = self.session.accept(snapshot)
        self._persist(self.session.confirmed if accepted else snapshot)
        if accepted:
            self._notify()
        return accepted

    def _persist(self, snapshot: GameSnapshot) -> None:
        if self.repo is not None:
            self.repo.save_game(snapshot_to_model(snapshot))

    def _notify(self) -> None:
        for listener in self.listeners:
            listener(self.session)

    def restore_games(self) -> list[GameSnapshot]:
        """Load the games accepted in earlier runs from the local store"""
        if self.repo is None:
            return []
        games = [model_to_snapshot(model) for model in self.repo.list_games()]
        self.session.replace_games(games)
        return games

    # -- QUERIES --
    async def fetch_game(self, game_id: str) -> Optional[GameSnapshot]:
        """Fetch the full snapshot of a game and reconcile it."""
        try:
            snapshot = await self.service.game(game_id)
        except GameError as e:
            self.session.record_error(f"Failed to fetch game: {e}")
            raise
        if snapshot is None:
            self.session.record_error("Game not found")
            return None
        self._accept(snapshot)
        return snapshot

    async def fetch_games(self) -> list[GameSnapshot]:
        games = await self._query_games(self.service.all_games(), "fetch games")
        self._take_game_list(games)
        return games

    async def fetch_pending_games(self) -> list[GameSnapshot]:
        pending = await self._query_games(self.service.pending_games(), "fetch pending games")
        self._take_game_list(pending, status=GameStatus.PENDING)
        return pending

    async def fetch_active_games(self) -> list[GameSnapshot]:
        active = await self._query_games(self.service.active_games(), "fetch active games")
        self._take_game_list(active, status=GameStatus.ACTIVE)
        return active

    async def fetch_player_games(self, chain_id: Optional[str] = None) -> list[GameSnapshot]:
        """Games of a chain (the configured chain, or the local player when there is none)"""
        chain = chain_id or self.settings.chain_id or self.session.player_id
        games = await self._query_games(self.service.player_games(chain), "fetch player games")
        self._take_game_list(games)
        return games

    async def _query_games(
        self, query: Awaitable[list[GameSnapshot]], action: str
    ) -> list[GameSnapshot]:
        try:
            return await query
        except GameError as e:
            self.session.record_error(f"Failed to {action}: {e}")
            raise

    def _take_game_list(
        self, games: list[GameSnapshot], status: Optional[GameStatus] = None
    ) -> None:
        before = self.session.view
        if status is None:
            self.session.replace_games(games)
        else:
            self.session.merge_games(games, status)
        for game in games:
            # the selected game may have kept details the list entry lacks
            self._persist(self.session.find_game(game.id) or game)
        if self.session.view is not before:
            self._notify()

    async def fetch_my_stats(self) -> PlayerStats:
        """Falls back on the stats of a new player when the service has none (or cannot be reached)"""
        player_id = self.session.player_id
        stats = await self._query_stats(player_id)
        self.session.my_stats = stats or PlayerStats.defaults_for(player_id)
        return self.session.my_stats

    async def fetch_opponent_stats(self, opponent_id: Optional[str] = None) -> PlayerStats:
        if opponent_id is None and self.session.view is not None:
            opponent_id = self.session.view.opponent_of(self.session.player_id)
        if not opponent_id or opponent_id == AI_PLAYER_ID:
            self.session.opponent_stats = PlayerStats.for_ai()
            return self.session.opponent_stats

        stats = await self._query_stats(opponent_id)
        self.session.opponent_stats = stats or PlayerStats.defaults_for(opponent_id)
        return self.session.opponent_stats

    async def _query_stats(self, chain_id: str) -> Optional[PlayerStats]:
        try:
            return await self.service.player_stats(chain_id)
        except GameError as e:
            logger.warning("Could not fetch stats of %s: %s", chain_id, e)
            return None

    async def fetch_queue_status(self) -> dict[TimeControl, int]:
        entries = await self.service.queue_status()
        for entry in entries:
            self.session.queue.counts[entry.time_control] = entry.player_count
        return self.session.queue.counts

    # -- SELECTION --
    async def select_game(self, game_id: Optional[str]) -> None:
        """
        Switch the selected game
        ----
        Stops the polling of the previous game and invalidates its in-flight work (generation counter).
        Fetches the full snapshot when the list entry has no move history, then polls the new game.
        """
        self.stop_polling()
        self.session.select_game(game_id)
        self._notify()
        if game_id is None:
            return

        self.start_polling()
        confirmed = self.session.confirmed
        if confirmed is None or confirmed.moves is None:
            await self.fetch_game(game_id)

    def _require_selected(self) -> GameSnapshot:
        snapshot = self.session.view
        if self.session.selected_game_id is None or snapshot is None:
            raise NoGameSelectedError("No game selected.")
        return snapshot

    # -- MOVES --
    def validate_move(self, snapshot: GameSnapshot, move: Move) -> None:
        """Everything that can be checked locally, before a move is sent"""
        if snapshot.status != GameStatus.ACTIVE:
            raise GameStateError(f"Game is not active. status: {snapshot.status}")
        color = snapshot.player_color(self.session.player_id)
        if color == PlayerColor.SPECTATOR:
            raise GameStateError(f"{self.session.player_id} is not playing in game {snapshot.id}.")
        if not snapshot.is_my_turn(self.session.player_id):
            raise NotYourTurnError(f"It is {snapshot.current_turn}'s turn.")

        position = Position.from_state(
            snapshot.board_state, snapshot.current_turn, snapshot.move_count
        )
        position.validate(move, Side[color.name])

    async def make_move(self, move: Move, optimistic: bool = True) -> bool:
        """
        Submit a move
        ----
        1. Single-flight: a second move while one is in flight is rejected, not queued.
        2. Local validation. Nothing is sent for an illegal move.
        3. (Optionally) show the move right away. Undone if the mutation fails.
        4. Wait for the service to settle, then poll for a snapshot with a higher move count.
        5. Returns True once confirmed, False when the confirmation did not arrive (the optimistic move is undone).
        """
        session = self.session
        if session.move_in_flight:
            raise MoveInFlightError("A move is already being processed.")
        snapshot = self._require_selected()
        self.validate_move(snapshot, move)

        game_id = snapshot.id
        generation = session.generation
        request = MoveRequest(
            game_id=game_id,
            player_id=session.player_id,
            from_row=move.from_square.row,
            from_col=move.from_square.col,
            to_row=move.to_square.row,
            to_col=move.to_square.col,
        )

        session.move_in_flight = True
        session.clear_error()
        try:
            if optimistic:
                session.apply_overlay(OptimisticMove.build(snapshot, move))
                self._notify()
            try:
                await self.service.make_move(request)
            except GameError as e:
                if session.is_current(generation, game_id):
                    session.record_error(f"Failed to make move: {e}")
                    session.rollback_overlay()
                    self._notify()
                raise
            logger.info(
                "Move %s submitted in game %s (moveCount %d)",
                request.to_wire(),
                game_id,
                snapshot.move_count,
            )

            confirmed = await self._await_confirmation(game_id, snapshot.move_count, generation)
            if not confirmed and session.is_current(generation, game_id):
                logger.warning("Move in game %s not confirmed in time, rolling back", game_id)
                session.rollback_overlay()
                self._notify()
            return confirmed
        finally:
            if session.is_current(generation, game_id):
                session.move_in_flight = False

    async def _await_confirmation(self, game_id: str, base_move_count: int, generation: int) -> bool:
        """Fixed backoff. Abandoned (False) as soon as another game got selected."""
        await sleep_ms(self.settings.move_settle_delay_ms)
        attempts = self.settings.confirm_attempts
        for attempt in range(1, attempts + 1):
            if not self.session.is_current(generation, game_id):
                logger.debug("Selection changed, abandoning confirmation of %s", game_id)
                return False
            try:
                snapshot = await self.service.game(game_id)
            except GameError as e:
                logger.debug("Confirmation fetch %d/%d failed: %s", attempt, attempts, e)
                snapshot = None

            if not self.session.is_current(generation, game_id):
                return False
            if snapshot is not None:
                self._accept(snapshot)
                if snapshot.move_count > base_move_count:
                    return True

            logger.debug("Move not visible yet (attempt %d/%d)", attempt, attempts)
            if attempt < attempts:
                await sleep_ms(self.settings.confirm_retry_interval_ms)
        return False

    # -- OTHER MUTATIONS --
    async def _mutate(self, action: str, mutation: Awaitable[Any]) -> None:
        try:
            await mutation
        except GameError as e:
            self.session.record_error(f"Failed to {action}: {e}")
            raise
        logger.info("%s: done", action)

    async def _refresh(self, game_id: str) -> None:
        """Learn the effect of a mutation. Polling catches up when this fails."""
        try:
            await self.fetch_game(game_id)
        except GameError as e:
            logger.warning("Refresh of %s failed: %s", game_id, e)

    async def create_game(
        self,
        vs_ai: bool,
        time_control: Optional[TimeControl] = None,
        color_preference: Optional[ColorPreference] = None,
        is_rated: Optional[bool] = None,
    ) -> Optional[str]:
        """
        The mutation does not return the new game: after a settle delay the game list is refreshed and the newest
        pending/active game we are seated in is taken to be it (games against the AI start active).
        """
        request = CreateGameRequest(
            vs_ai=vs_ai,
            player_id=self.session.player_id,
            time_control=time_control,
            color_preference=color_preference,
            is_rated=is_rated,
        )
        self.session.clear_error()
        await self._mutate("create game", self.service.create_game(request))
        await sleep_ms(self.settings.create_settle_delay_ms)
        await self.fetch_games()

        mine = [
            game
            for game in self.session.games
            if game.status in (GameStatus.PENDING, GameStatus.ACTIVE)
            and game.has_player(self.session.player_id)
        ]
        newest = max(mine, key=lambda game: game.created_at, default=None)
        return newest.id if newest else None

    async def join_game(self, game_id: str) -> None:
        request = JoinGameRequest(game_id=game_id, player_id=self.session.player_id)
        self.session.clear_error()
        await self._mutate("join game", self.service.join_game(request))
        await self.select_game(game_id)

    async def resign(self) -> None:
        snapshot = self._require_selected()
        await self._mutate(
            "resign", self.service.resign(snapshot.id, self.session.player_id)
        )
        await self._refresh(snapshot.id)

    async def request_ai_move(self) -> None:
        """Single-flight per game"""
        session = self.session
        if session.ai_move_in_flight:
            raise MoveInFlightError("An AI move was already requested.")
        snapshot = self._require_selected()
        generation = session.generation
        session.ai_move_in_flight = True
        try:
            await self._mutate("request AI move", self.service.request_ai_move(snapshot.id))
            await self._refresh(snapshot.id)
        finally:
            if session.is_current(generation, snapshot.id):
                session.ai_move_in_flight = False

    async def offer_draw(self, game_id: str) -> None:
        await self._mutate("offer draw", self.service.offer_draw(game_id))
        await self._refresh(game_id)

    async def accept_draw(self, game_id: str) -> None:
        await self._mutate("accept draw", self.service.accept_draw(game_id))
        await self._refresh(game_id)

    async def decline_draw(self, game_id: str) -> None:
        await self._mutate("decline draw", self.service.decline_draw(game_id))
        await self._refresh(game_id)

    async def claim_time_win(self, game_id: str) -> None:
        await self._mutate("claim time win", self.service.claim_time_win(game_id))
        await self._refresh(game_id)

    # -- MATCHMAKING --
    async def join_queue(self, time_control: TimeControl) -> Optional[str]:
        """Returns the game id when matched right away. Otherwise waits in the queue (and polls for a match)."""
        request = JoinQueueRequest(time_control=time_control, player_id=self.session.player_id)
        self.session.clear_error()
        try:
            game_id = await self.service.join_queue(request)
        except GameError as e:
            self.session.record_error(f"Failed to join queue: {e}")
            raise

        if game_id:
            logger.info("Matched right away: %s", game_id)
            self.session.queue.leave()
            await self.select_game(game_id)
            return game_id

        self.session.queue.enter(time_control, self.now_ms())
        self.start_queue_polling()
        return None

    async def leave_queue(self) -> None:
        await self._mutate("leave queue", self.service.leave_queue(self.session.player_id))
        self.session.queue.leave()
        self.scheduler.cancel(self._queue_polling)
        self._queue_polling = None

    async def check_queue_match(self) -> Optional[str]:
        """Look for an active game, created after we joined the queue, that we are seated in"""
        queue = self.session.queue
        if not queue.in_queue or queue.joined_at_ms is None:
            return None
        await self.fetch_games()
        earliest = queue.joined_at_ms - QUEUE_MATCH_TOLERANCE_MS
        match = next(
            (
                game
                for game in self.session.games
                if game.status == GameStatus.ACTIVE
                and game.has_player(self.session.player_id)
                # createdAt is in microseconds
                and game.created_at // 1000 >= earliest
            ),
            None,
        )
        if match is None:
            return None

        logger.info("Queue match found: %s", match.id)
        queue.leave()
        await self.select_game(match.id)
        return match.id

    def start_queue_polling(self) -> None:
        self.scheduler.cancel(self._queue_polling)
        self._queue_polling = self.scheduler.spawn(self._queue_loop(), "queue-match")

    async def _queue_loop(self) -> None:
        while self.session.queue.in_queue:
            await sleep_ms(self.settings.queue_poll_interval_ms)
            try:
                await self.check_queue_match()
            except GameError as e:
                logger.error("Queue match polling failed: %s", e)

    # -- POLLING --
    def poll_interval_ms(self, snapshot: Optional[GameSnapshot]) -> Optional[int]:
        """Pending and active games are polled (at different rates), finished games are not"""
        if snapshot is None or snapshot.status == GameStatus.PENDING:
            return self.settings.poll_interval_pending_ms
        if snapshot.status == GameStatus.ACTIVE:
            return self.settings.poll_interval_active_ms
        return None

    def start_polling(self) -> None:
        game_id = self.session.selected_game_id
        if game_id is None:
            return
        self.stop_polling()
        self._polling = self.scheduler.spawn(
            self._poll_loop(game_id, self.session.generation), f"poll-{game_id}"
        )

    def stop_polling(self) -> None:
        self.scheduler.cancel(self._polling)
        self._polling = None

    async def _poll_loop(self, game_id: str, generation: int) -> None:
        while self.session.is_current(generation, game_id):
            interval = self.poll_interval_ms(self.session.view)
            if interval is None:
                logger.debug("Game %s finished, polling stopped", game_id)
                return
            await sleep_ms(interval)
            if not self.session.is_current(generation, game_id):
                return
            try:
                await self.fetch_game(game_id)
            except GameError as e:
                logger.error("Polling game %s failed: %s", game_id, e)

    async def shutdown(self) -> None:
        self.stop_polling()
        self.scheduler.cancel(self._queue_polling)
        self._queue_polling = None

"""Unit tests for src/services/synchronizer.py"""

import asyncio

import pytest
from sqlalchemy.orm import Session

from conftest import BLACK_PLAYER, GAME_ID, RED_PLAYER, FakeGameService, SnapshotFactory
from src.api.models import (
    AI_PLAYER_ID,
    ClockState,
    GameSnapshot,
    MoveRecord,
    MoveRequest,
    PlayerStats,
    QueueStatusEntry,
)
from src.checkers.board import Board
from src.checkers.moves import Move
from src.checkers.pieces import Piece
from src.checkers.square import Square
from src.core.config import ClientSettings
from src.core.exceptions import (
    GameStateError,
    IllegalMoveError,
    MoveInFlightError,
    NoGameSelectedError,
    NotYourTurnError,
    ServiceRejectedError,
    TransportError,
)
from src.core.shared_types import GameStatus, PlayerColor, PlayerType, TimeControl, Turn
from src.db.sql_repository import SQLSnapshotRepository
from src.services.scheduler import Scheduler
from src.services.session import GameSession
from src.services.synchronizer import GameSynchronizer, snapshot_to_model

OPENING_MOVE = Move(Square(2, 1), Square(3, 0))


class GatedService(FakeGameService):
    """makeMove only returns once the gate is opened"""

    def __init__(self) -> None:
        super().__init__()
        self.gate = asyncio.Event()

    async def make_move(self, request: MoveRequest) -> None:
        self._record("make_move_started", request)
        await self.gate.wait()
        await super().make_move(request)


async def select(sync: GameSynchronizer, service: FakeGameService, *snapshots: GameSnapshot) -> None:
    """Register the games with the service, load the list and select the first one"""
    for snapshot in snapshots:
        service.add(snapshot)
    await sync.fetch_games()
    await sync.select_game(snapshots[0].id)


# --- QUERIES ---
@pytest.mark.asyncio
async def test_fetch_game_notifies_listeners(
    synchronizer: GameSynchronizer,
    fake_service: FakeGameService,
    session: GameSession,
    make_snapshot: SnapshotFactory,
) -> None:
    await select(synchronizer, fake_service, make_snapshot())
    seen: list[int] = []
    synchronizer.add_listener(lambda s: seen.append(s.view.move_count))

    fake_service.add(make_snapshot(move_count=1, current_turn=Turn.BLACK))
    snapshot = await synchronizer.fetch_game(GAME_ID)

    assert snapshot is not None
    assert seen == [1]
    assert session.confirmed.move_count == 1
    await synchronizer.shutdown()


@pytest.mark.asyncio
async def test_fetch_unknown_game(synchronizer: GameSynchronizer, session: GameSession) -> None:
    assert await synchronizer.fetch_game("nope") is None
    assert session.error == "Game not found"


@pytest.mark.asyncio
async def test_fetch_game_failure(
    synchronizer: GameSynchronizer, fake_service: FakeGameService, session: GameSession
) -> None:
    fake_service.errors["game"] = TransportError("service down")
    with pytest.raises(TransportError):
        await synchronizer.fetch_game(GAME_ID)
    assert session.error == "Failed to fetch game: service down"


@pytest.mark.asyncio
async def test_out_of_order_snapshots_converge(
    synchronizer: GameSynchronizer,
    fake_service: FakeGameService,
    session: GameSession,
    make_snapshot: SnapshotFactory,
) -> None:
    """moveCount 3, 2, 5, 4 arriving in that order leaves the game at 5"""
    await select(synchronizer, fake_service, make_snapshot())
    fake_service.scripted[GAME_ID] = [make_snapshot(move_count=count) for count in [3, 2, 5, 4]]

    for _ in range(4):
        await synchronizer.fetch_game(GAME_ID)

    assert session.confirmed.move_count == 5
    await synchronizer.shutdown()


@pytest.mark.asyncio
async def test_game_lists(
    synchronizer: GameSynchronizer,
    fake_service: FakeGameService,
    session: GameSession,
    make_snapshot: SnapshotFactory,
) -> None:
    fake_service.add(make_snapshot(id="active-1"))
    fake_service.add(make_snapshot(id="pending-1", status=GameStatus.PENDING))
    fake_service.add(make_snapshot(id="finished-1", status=GameStatus.FINISHED))

    assert len(await synchronizer.fetch_games()) == 3

    fake_service.games.pop("pending-1")
    fake_service.add(make_snapshot(id="pending-2", status=GameStatus.PENDING))
    await synchronizer.fetch_pending_games()
    assert {game.id for game in session.games} == {"active-1", "finished-1", "pending-2"}

    await synchronizer.fetch_active_games()
    assert {game.id for game in session.games} == {"active-1", "finished-1", "pending-2"}


@pytest.mark.asyncio
async def test_player_games_default_to_local_player(
    synchronizer: GameSynchronizer, fake_service: FakeGameService, make_snapshot: SnapshotFactory
) -> None:
    fake_service.add(make_snapshot())
    fake_service.add(make_snapshot(id="game-2", red_player="x", black_player="y"))

    games = await synchronizer.fetch_player_games()

    assert [game.id for game in games] == [GAME_ID]
    assert fake_service.calls_to("player_games") == [("player_games", RED_PLAYER)]


@pytest.mark.asyncio
async def test_game_list_failure(
    synchronizer: GameSynchronizer, fake_service: FakeGameService, session: GameSession
) -> None:
    fake_service.errors["all_games"] = TransportError("service down")
    with pytest.raises(TransportError):
        await synchronizer.fetch_games()
    assert session.error == "Failed to fetch games: service down"


# --- SELECTION ---
@pytest.mark.asyncio
async def test_select_game_fetches_missing_history(
    synchronizer: GameSynchronizer,
    fake_service: FakeGameService,
    session: GameSession,
    scheduler: Scheduler,
    make_snapshot: SnapshotFactory,
) -> None:
    """List entries come without moves: the full snapshot is fetched on selection"""
    fake_service.add(make_snapshot(moves=None))
    await synchronizer.fetch_games()
    fake_service.add(make_snapshot(moves=[]))

    await synchronizer.select_game(GAME_ID)

    assert fake_service.calls_to("game") == [("game", GAME_ID)]
    assert session.confirmed.moves == []
    assert scheduler.active == [f"poll-{GAME_ID}"]
    await synchronizer.shutdown()


@pytest.mark.asyncio
async def test_switching_games_stops_previous_polling(
    synchronizer: GameSynchronizer,
    fake_service: FakeGameService,
    scheduler: Scheduler,
    make_snapshot: SnapshotFactory,
) -> None:
    await select(synchronizer, fake_service, make_snapshot(), make_snapshot(id="game-2"))
    await synchronizer.select_game("game-2")
    await asyncio.sleep(0.01)
    assert scheduler.active == ["poll-game-2"]

    await synchronizer.select_game(None)
    await asyncio.sleep(0.01)
    assert scheduler.active == []


@pytest.mark.asyncio
async def test_background_polling(
    fake_service: FakeGameService,
    session: GameSession,
    settings: ClientSettings,
    scheduler: Scheduler,
    make_snapshot: SnapshotFactory,
) -> None:
    fast = settings.model_copy(update={"poll_interval_active_ms": 1})
    sync = GameSynchronizer(fake_service, session, fast, scheduler)
    await select(sync, fake_service, make_snapshot())

    fake_service.add(make_snapshot(move_count=1, current_turn=Turn.BLACK))
    for _ in range(200):
        if session.confirmed.move_count == 1:
            break
        await asyncio.sleep(0.005)

    assert session.confirmed.move_count == 1
    await sync.shutdown()


@pytest.mark.asyncio
async def test_polling_stops_for_finished_games(
    fake_service: FakeGameService,
    session: GameSession,
    settings: ClientSettings,
    scheduler: Scheduler,
    make_snapshot: SnapshotFactory,
) -> None:
    fast = settings.model_copy(update={"poll_interval_active_ms": 1})
    sync = GameSynchronizer(fake_service, session, fast, scheduler)
    await select(sync, fake_service, make_snapshot())

    fake_service.add(make_snapshot(status=GameStatus.FINISHED))
    for _ in range(200):
        if not scheduler.active:
            break
        await asyncio.sleep(0.005)

    assert scheduler.active == []
    assert session.confirmed.status == GameStatus.FINISHED


def test_poll_intervals(synchronizer: GameSynchronizer, make_snapshot: SnapshotFactory) -> None:
    settings = synchronizer.settings
    assert synchronizer.poll_interval_ms(None) == settings.poll_interval_pending_ms
    assert (
        synchronizer.poll_interval_ms(make_snapshot(status=GameStatus.PENDING))
        == settings.poll_interval_pending_ms
    )
    assert synchronizer.poll_interval_ms(make_snapshot()) == settings.poll_interval_active_ms
    assert synchronizer.poll_interval_ms(make_snapshot(status=GameStatus.FINISHED)) is None


# --- MOVES ---
@pytest.mark.asyncio
async def test_make_move_confirmed(
    synchronizer: GameSynchronizer,
    fake_service: FakeGameService,
    session: GameSession,
    make_snapshot: SnapshotFactory,
) -> None:
    await select(synchronizer, fake_service, make_snapshot())

    assert await synchronizer.make_move(OPENING_MOVE)

    (_, request), = fake_service.calls_to("make_move")
    assert request.to_wire() == {
        "gameId": GAME_ID,
        "fromRow": 2,
        "fromCol": 1,
        "toRow": 3,
        "toCol": 0,
        "playerId": RED_PLAYER,
    }
    assert session.overlay is None
    assert not session.move_in_flight
    assert session.confirmed.move_count == 1
    assert session.confirmed.current_turn == Turn.BLACK
    assert Board.from_state(session.confirmed.board_state).piece(Square(3, 0)) == Piece.RED
    await synchronizer.shutdown()


@pytest.mark.asyncio
async def test_optimistic_overlay_shown_before_confirmation(
    synchronizer: GameSynchronizer, fake_service: FakeGameService, make_snapshot: SnapshotFactory
) -> None:
    await select(synchronizer, fake_service, make_snapshot())
    overlays: list[bool] = []
    synchronizer.add_listener(lambda s: overlays.append(s.overlay is not None))

    await synchronizer.make_move(OPENING_MOVE)
    assert overlays[0]
    assert not overlays[-1]
    await synchronizer.shutdown()


@pytest.mark.asyncio
async def test_non_optimistic_move(
    synchronizer: GameSynchronizer, fake_service: FakeGameService, make_snapshot: SnapshotFactory
) -> None:
    await select(synchronizer, fake_service, make_snapshot())
    overlays: list[bool] = []
    synchronizer.add_listener(lambda s: overlays.append(s.overlay is not None))

    assert await synchronizer.make_move(OPENING_MOVE, optimistic=False)
    assert overlays == [False]
    await synchronizer.shutdown()


@pytest.mark.asyncio
async def test_illegal_move_sends_nothing(
    synchronizer: GameSynchronizer,
    fake_service: FakeGameService,
    session: GameSession,
    make_snapshot: SnapshotFactory,
) -> None:
    await select(synchronizer, fake_service, make_snapshot())
    before = session.view

    with pytest.raises(IllegalMoveError):
        await synchronizer.make_move(Move(Square(2, 1), Square(4, 3)))

    assert fake_service.calls_to("make_move") == []
    assert session.view is before
    assert not session.move_in_flight
    await synchronizer.shutdown()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides, error",
    [
        ({"current_turn": Turn.BLACK}, NotYourTurnError),
        ({"status": GameStatus.PENDING}, GameStateError),
        ({"status": GameStatus.FINISHED}, GameStateError),
        ({"red_player": "someone_else"}, GameStateError),
    ],
)
async def test_move_rejected_before_sending(
    synchronizer: GameSynchronizer,
    fake_service: FakeGameService,
    make_snapshot: SnapshotFactory,
    overrides: dict,
    error: type[Exception],
) -> None:
    await select(synchronizer, fake_service, make_snapshot(**overrides))
    with pytest.raises(error):
        await synchronizer.make_move(OPENING_MOVE)
    assert fake_service.calls_to("make_move") == []
    await synchronizer.shutdown()


@pytest.mark.asyncio
async def test_move_without_selected_game(synchronizer: GameSynchronizer) -> None:
    with pytest.raises(NoGameSelectedError):
        await synchronizer.make_move(OPENING_MOVE)


@pytest.mark.asyncio
async def test_second_move_while_in_flight_is_rejected(
    session: GameSession,
    settings: ClientSettings,
    scheduler: Scheduler,
    make_snapshot: SnapshotFactory,
) -> None:
    service = GatedService()
    sync = GameSynchronizer(service, session, settings, scheduler)
    await select(sync, service, make_snapshot())

    first = asyncio.create_task(sync.make_move(OPENING_MOVE))
    await asyncio.sleep(0)
    assert session.move_in_flight

    with pytest.raises(MoveInFlightError):
        await sync.make_move(Move(Square(2, 3), Square(3, 4)))

    service.gate.set()
    assert await first
    assert len(service.calls_to("make_move")) == 1
    assert not session.move_in_flight
    await sync.shutdown()


@pytest.mark.asyncio
async def test_failed_mutation_rolls_back(
    synchronizer: GameSynchronizer,
    fake_service: FakeGameService,
    session: GameSession,
    make_snapshot: SnapshotFactory,
) -> None:
    await select(synchronizer, fake_service, make_snapshot())
    before = session.view
    fake_service.errors["make_move"] = ServiceRejectedError("Not your turn")

    with pytest.raises(ServiceRejectedError):
        await synchronizer.make_move(OPENING_MOVE)

    assert session.view is before
    assert session.overlay is None
    assert session.error == "Failed to make move: Not your turn"
    assert not session.move_in_flight
    await synchronizer.shutdown()


@pytest.mark.asyncio
async def test_confirmation_timeout_rolls_back(
    synchronizer: GameSynchronizer,
    fake_service: FakeGameService,
    session: GameSession,
    settings: ClientSettings,
    make_snapshot: SnapshotFactory,
) -> None:
    """The service never shows the move: not an error, but the board goes back"""
    await select(synchronizer, fake_service, make_snapshot())
    fake_service.apply_moves = False

    assert not await synchronizer.make_move(OPENING_MOVE)

    assert len(fake_service.calls_to("game")) == settings.confirm_attempts
    assert session.overlay is None
    assert session.view.move_count == 0
    assert not session.move_in_flight
    assert session.error is None
    await synchronizer.shutdown()


@pytest.mark.asyncio
async def test_confirmation_survives_failed_fetch(
    synchronizer: GameSynchronizer,
    fake_service: FakeGameService,
    session: GameSession,
    make_snapshot: SnapshotFactory,
) -> None:
    await select(synchronizer, fake_service, make_snapshot())
    fake_service.errors["game"] = TransportError("blip")

    assert await synchronizer.make_move(OPENING_MOVE)
    assert len(fake_service.calls_to("game")) == 2
    assert session.confirmed.move_count == 1
    await synchronizer.shutdown()


@pytest.mark.asyncio
async def test_confirmation_abandoned_when_selection_changes(
    session: GameSession,
    settings: ClientSettings,
    scheduler: Scheduler,
    make_snapshot: SnapshotFactory,
) -> None:
    service = GatedService()
    sync = GameSynchronizer(service, session, settings, scheduler)
    await select(sync, service, make_snapshot(), make_snapshot(id="game-2"))

    pending = asyncio.create_task(sync.make_move(OPENING_MOVE))
    await asyncio.sleep(0)
    await sync.select_game("game-2")
    service.gate.set()

    assert not await pending
    assert [call for call in service.calls_to("game") if call[1] == GAME_ID] == []
    assert session.selected_game_id == "game-2"
    assert session.overlay is None
    assert not session.move_in_flight
    await sync.shutdown()


# --- OTHER MUTATIONS ---
@pytest.mark.asyncio
async def test_create_game_returns_newest_own_game(
    synchronizer: GameSynchronizer, fake_service: FakeGameService, make_snapshot: SnapshotFactory
) -> None:
    fake_service.add(make_snapshot(id="old", created_at=1))
    fake_service.add(make_snapshot(id="not-mine", red_player="x", black_player="y", created_at=9_999_999_999_999_999))
    fake_service.created = [
        make_snapshot(
            id="new",
            status=GameStatus.PENDING,
            black_player=None,
            created_at=1_800_000_000_000_000,
        )
    ]

    game_id = await synchronizer.create_game(vs_ai=False, time_control=TimeControl.BLITZ_3_0)

    assert game_id == "new"
    (_, request), = fake_service.calls_to("create_game")
    assert request.to_wire() == {"vsAi": False, "playerId": RED_PLAYER, "timeControl": "BLITZ_3_0"}


@pytest.mark.asyncio
async def test_create_game_failure(
    synchronizer: GameSynchronizer, fake_service: FakeGameService, session: GameSession
) -> None:
    fake_service.errors["create_game"] = TransportError("service down")
    with pytest.raises(TransportError):
        await synchronizer.create_game(vs_ai=True)
    assert session.error == "Failed to create game: service down"
    assert fake_service.calls_to("all_games") == []


@pytest.mark.asyncio
async def test_join_game_selects_it(
    synchronizer: GameSynchronizer,
    fake_service: FakeGameService,
    session: GameSession,
    make_snapshot: SnapshotFactory,
) -> None:
    fake_service.add(
        make_snapshot(red_player=BLACK_PLAYER, black_player=None, status=GameStatus.PENDING)
    )

    await synchronizer.join_game(GAME_ID)

    assert session.selected_game_id == GAME_ID
    assert session.player_color == PlayerColor.BLACK
    assert session.confirmed.status == GameStatus.ACTIVE
    await synchronizer.shutdown()


@pytest.mark.asyncio
async def test_resign(
    synchronizer: GameSynchronizer,
    fake_service: FakeGameService,
    session: GameSession,
    make_snapshot: SnapshotFactory,
) -> None:
    await select(synchronizer, fake_service, make_snapshot())
    await synchronizer.resign()
    assert fake_service.calls_to("resign") == [("resign", GAME_ID, RED_PLAYER)]
    assert session.confirmed.status == GameStatus.FINISHED
    await synchronizer.shutdown()


@pytest.mark.asyncio
async def test_resign_without_game(synchronizer: GameSynchronizer) -> None:
    with pytest.raises(NoGameSelectedError):
        await synchronizer.resign()


@pytest.mark.asyncio
async def test_request_ai_move_is_single_flight(
    synchronizer: GameSynchronizer,
    fake_service: FakeGameService,
    session: GameSession,
    make_snapshot: SnapshotFactory,
) -> None:
    await select(
        synchronizer,
        fake_service,
        make_snapshot(black_player=None, black_player_type=PlayerType.AI, current_turn=Turn.BLACK),
    )
    session.ai_move_in_flight = True
    with pytest.raises(MoveInFlightError):
        await synchronizer.request_ai_move()

    session.ai_move_in_flight = False
    await synchronizer.request_ai_move()
    assert fake_service.calls_to("request_ai_move") == [("request_ai_move", GAME_ID)]
    assert not session.ai_move_in_flight
    await synchronizer.shutdown()


@pytest.mark.asyncio
async def test_draw_offers_and_time_claims(
    synchronizer: GameSynchronizer, fake_service: FakeGameService, make_snapshot: SnapshotFactory
) -> None:
    fake_service.add(make_snapshot())
    await synchronizer.offer_draw(GAME_ID)
    await synchronizer.decline_draw(GAME_ID)
    await synchronizer.accept_draw(GAME_ID)
    await synchronizer.claim_time_win(GAME_ID)

    names = [call[0] for call in fake_service.calls if call[0] != "game"]
    assert names == ["offer_draw", "decline_draw", "accept_draw", "claim_time_win"]
    # every mutation is followed by a refresh of the game
    assert len(fake_service.calls_to("game")) == 4


@pytest.mark.asyncio
async def test_mutation_failure_is_recorded(
    synchronizer: GameSynchronizer, fake_service: FakeGameService, session: GameSession
) -> None:
    fake_service.errors["claim_time_win"] = ServiceRejectedError("Time not expired")
    with pytest.raises(ServiceRejectedError):
        await synchronizer.claim_time_win(GAME_ID)
    assert session.error == "Failed to claim time win: Time not expired"
    assert fake_service.calls_to("game") == []


@pytest.mark.asyncio
async def test_failed_refresh_is_not_an_error(
    synchronizer: GameSynchronizer, fake_service: FakeGameService, make_snapshot: SnapshotFactory
) -> None:
    """Polling catches up later"""
    fake_service.add(make_snapshot())
    fake_service.errors["game"] = TransportError("blip")
    await synchronizer.offer_draw(GAME_ID)
    assert fake_service.calls_to("offer_draw") == [("offer_draw", GAME_ID)]


# --- MATCHMAKING ---
@pytest.mark.asyncio
async def test_join_queue_matched_right_away(
    synchronizer: GameSynchronizer,
    fake_service: FakeGameService,
    session: GameSession,
    make_snapshot: SnapshotFactory,
) -> None:
    fake_service.add(make_snapshot())
    fake_service.queue_match = GAME_ID

    assert await synchronizer.join_queue(TimeControl.BLITZ_3_0) == GAME_ID
    assert session.selected_game_id == GAME_ID
    assert not session.queue.in_queue
    await synchronizer.shutdown()


@pytest.mark.asyncio
async def test_join_and_leave_queue(
    fake_service: FakeGameService,
    session: GameSession,
    settings: ClientSettings,
    scheduler: Scheduler,
) -> None:
    sync = GameSynchronizer(fake_service, session, settings, scheduler, now_ms=lambda: 1_000)

    assert await sync.join_queue(TimeControl.RAPID_10_0) is None
    assert session.queue.in_queue
    assert session.queue.time_control == TimeControl.RAPID_10_0
    assert session.queue.joined_at_ms == 1_000
    assert scheduler.active == ["queue-match"]

    await sync.leave_queue()
    await asyncio.sleep(0.01)
    assert not session.queue.in_queue
    assert fake_service.calls_to("leave_queue") == [("leave_queue", RED_PLAYER)]
    assert scheduler.active == []


@pytest.mark.asyncio
async def test_queue_match_found(
    synchronizer: GameSynchronizer,
    fake_service: FakeGameService,
    session: GameSession,
    make_snapshot: SnapshotFactory,
) -> None:
    """Only active games of ours, created after we joined (minus the tolerance), count"""
    joined_at_ms = 1_700_000_000_000
    fake_service.add(make_snapshot(id="before-queue", created_at=(joined_at_ms - 60_000) * 1000))
    fake_service.add(make_snapshot(id="not-mine", red_player="x", black_player="y"))
    fake_service.add(make_snapshot(id="pending", status=GameStatus.PENDING))
    session.queue.enter(TimeControl.BLITZ_3_0, joined_at_ms)
    assert await synchronizer.check_queue_match() is None

    fake_service.add(make_snapshot(id="match", created_at=(joined_at_ms - 2_000) * 1000))
    assert await synchronizer.check_queue_match() == "match"
    assert session.selected_game_id == "match"
    assert not session.queue.in_queue
    await synchronizer.shutdown()


@pytest.mark.asyncio
async def test_no_queue_match_outside_queue(
    synchronizer: GameSynchronizer, fake_service: FakeGameService
) -> None:
    assert await synchronizer.check_queue_match() is None
    assert fake_service.calls == []


@pytest.mark.asyncio
async def test_queue_status(synchronizer: GameSynchronizer, fake_service: FakeGameService) -> None:
    fake_service.queue_entries = [QueueStatusEntry(time_control=TimeControl.BULLET_1_0, player_count=4)]
    counts = await synchronizer.fetch_queue_status()
    assert counts[TimeControl.BULLET_1_0] == 4
    assert counts[TimeControl.RAPID_10_0] == 0


# --- STATS ---
@pytest.mark.asyncio
async def test_my_stats(
    synchronizer: GameSynchronizer, fake_service: FakeGameService, session: GameSession
) -> None:
    assert await synchronizer.fetch_my_stats() == PlayerStats.defaults_for(RED_PLAYER)

    fake_service.stats[RED_PLAYER] = PlayerStats(chain_id=RED_PLAYER, games_won=3)
    stats = await synchronizer.fetch_my_stats()
    assert stats.games_won == 3
    assert session.my_stats is stats


@pytest.mark.asyncio
async def test_stats_failure_falls_back_on_defaults(
    synchronizer: GameSynchronizer, fake_service: FakeGameService
) -> None:
    fake_service.errors["player_stats"] = TransportError("service down")
    assert await synchronizer.fetch_my_stats() == PlayerStats.defaults_for(RED_PLAYER)


@pytest.mark.asyncio
async def test_opponent_stats(
    synchronizer: GameSynchronizer,
    fake_service: FakeGameService,
    session: GameSession,
    make_snapshot: SnapshotFactory,
) -> None:
    await select(synchronizer, fake_service, make_snapshot())
    fake_service.stats[BLACK_PLAYER] = PlayerStats(chain_id=BLACK_PLAYER, blitz_rating=1333)

    stats = await synchronizer.fetch_opponent_stats()
    assert stats.blitz_rating == 1333
    assert session.opponent_stats is stats

    ai_stats = await synchronizer.fetch_opponent_stats(AI_PLAYER_ID)
    assert ai_stats == PlayerStats.for_ai()
    assert fake_service.calls_to("player_stats") == [("player_stats", BLACK_PLAYER)]
    await synchronizer.shutdown()


# --- LOCAL STORE ---
@pytest.mark.asyncio
async def test_accepted_snapshots_are_stored(
    db_session_repo: Session,
    fake_service: FakeGameService,
    session: GameSession,
    settings: ClientSettings,
    scheduler: Scheduler,
    make_snapshot: SnapshotFactory,
) -> None:
    repo = SQLSnapshotRepository(db_session_repo)
    sync = GameSynchronizer(fake_service, session, settings, scheduler, repo)
    await select(sync, fake_service, make_snapshot())

    assert await sync.make_move(OPENING_MOVE)
    stored = repo.get_game(GAME_ID)
    assert stored is not None
    assert stored.move_count == 1
    assert stored.current_turn == "BLACK"
    await sync.shutdown()

    # a new client picks up where the previous one stopped
    restored_session = GameSession(player_id=RED_PLAYER)
    restored = GameSynchronizer(fake_service, restored_session, settings, scheduler, repo)
    assert [game.id for game in restored.restore_games()] == [GAME_ID]
    assert restored_session.find_game(GAME_ID).move_count == 1


def test_snapshot_model_conversion(make_snapshot: SnapshotFactory) -> None:
    model = snapshot_to_model(make_snapshot(move_count=3, current_turn=Turn.BLACK))
    assert model.game_id == GAME_ID
    assert model.current_turn == "BLACK"
    assert model.status == "ACTIVE"
    assert model.move_count == 3
    assert model.payload["moveCount"] == 3


@pytest.mark.asyncio
async def test_game_list_keeps_stored_details(
    db_session_repo: Session,
    fake_service: FakeGameService,
    session: GameSession,
    settings: ClientSettings,
    scheduler: Scheduler,
    make_snapshot: SnapshotFactory,
) -> None:
    """The game list has no moves and no clock: neither the view nor the store loses them"""
    repo = SQLSnapshotRepository(db_session_repo)
    sync = GameSynchronizer(fake_service, session, settings, scheduler, repo)
    clock = ClockState(initial_time_ms=180_000, increment_ms=0, red_time_ms=170_000, black_time_ms=175_000)
    record = MoveRecord(from_row=5, from_col=0, to_row=4, to_col=1)
    await select(sync, fake_service, make_snapshot(move_count=1, moves=[record], clock=clock))

    fake_service.add(make_snapshot(move_count=1, moves=None, clock=None))
    await sync.fetch_games()

    assert session.view.clock == clock
    assert session.view.last_move == record
    stored = repo.get_game(GAME_ID)
    assert stored is not None
    assert stored.payload["clock"]["redTimeMs"] == 170_000
    restored = GameSynchronizer(fake_service, GameSession(player_id=RED_PLAYER), settings, scheduler, repo)
    (game,) = restored.restore_games()
    assert game.clock == clock
    await sync.shutdown()

"""
Protocol of the remote game service (implemented over GraphQL in graphql_client.py, by fakes in the tests).

Mutations are fire-and-forget: their result tells nothing about the new state of a game.
The effect of a mutation is learned by querying the game afterwards.
"""

from typing import Optional, Protocol

from src.api.models import (
    CreateGameRequest,
    GameSnapshot,
    JoinGameRequest,
    JoinQueueRequest,
    MoveRequest,
    PlayerStats,
    QueueStatusEntry,
)


class GameService(Protocol):
    # --- queries ---
    async def game(self, game_id: str) -> GameSnapshot | None:
        """Full snapshot (moves and clock included), None if unknown"""
        ...

    async def all_games(self) -> list[GameSnapshot]: ...

    async def pending_games(self) -> list[GameSnapshot]: ...

    async def active_games(self) -> list[GameSnapshot]: ...

    async def player_games(self, chain_id: str) -> list[GameSnapshot]: ...

    async def player_stats(self, chain_id: str) -> PlayerStats | None: ...

    async def queue_status(self) -> list[QueueStatusEntry]: ...

    # --- mutations ---
    async def create_game(self, request: CreateGameRequest) -> None: ...

    async def join_game(self, request: JoinGameRequest) -> None: ...

    async def make_move(self, request: MoveRequest) -> None: ...

    async def resign(self, game_id: str, player_id: str) -> None: ...

    async def request_ai_move(self, game_id: str) -> None: ...

    async def offer_draw(self, game_id: str) -> None: ...

    async def accept_draw(self, game_id: str) -> None: ...

    async def decline_draw(self, game_id: str) -> None: ...

    async def claim_time_win(self, game_id: str) -> None: ...

    async def join_queue(self, request: JoinQueueRequest) -> Optional[str]:
        """Returns the id of the game when a match was found right away"""
        ...

    async def leave_queue(self, player_id: str) -> None: ...

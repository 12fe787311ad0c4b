"""
GameService implementation talking GraphQL over HTTP (httpx).

Every request is a POST of {query, variables} to the chain/application endpoint of the settings.
"""

import json
import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from src.api.models import (
    CreateGameRequest,
    GameSnapshot,
    JoinGameRequest,
    JoinQueueRequest,
    MoveRequest,
    PlayerStats,
    QueueStatusEntry,
)
from src.core.config import ClientSettings
from src.core.exceptions import ServiceRejectedError, TransportError

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Content-Type": "application/json",
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
}

# --- QUERIES ---
GAME_LIST_FIELDS = """
      id
      redPlayer
      blackPlayer
      redPlayerType
      blackPlayerType
      boardState
      currentTurn
      moveCount
      status
      result
      createdAt
      updatedAt
"""

GET_ALL_GAMES = f"query GetAllGames {{ allGames {{ {GAME_LIST_FIELDS} }} }}"
GET_ACTIVE_GAMES = f"query GetActiveGames {{ activeGames {{ {GAME_LIST_FIELDS} }} }}"
GET_PLAYER_GAMES = f"query GetPlayerGames($chainId: String!) {{ playerGames(chainId: $chainId) {{ {GAME_LIST_FIELDS} }} }}"
GET_PENDING_GAMES = """
query GetPendingGames {
  pendingGames { id redPlayer redPlayerType boardState status createdAt }
}
"""

GET_GAME = f"""
query GetGame($id: String!) {{
  game(id: $id) {{
    {GAME_LIST_FIELDS}
    moves {{ fromRow fromCol toRow toCol capturedRow capturedCol promoted timestamp }}
    clock {{ initialTimeMs incrementMs redTimeMs blackTimeMs lastMoveAt }}
  }}
}}
"""

GET_PLAYER_STATS = """
query GetPlayerStats($chainId: String!) {
  playerStats(chainId: $chainId) {
    chainId gamesPlayed gamesWon gamesLost gamesDrawn winStreak bestStreak
    bulletRating blitzRating rapidRating bulletGames blitzGames rapidGames
  }
}
"""

GET_QUEUE_STATUS = "query GetQueueStatus { queueStatus { timeControl playerCount } }"

# --- MUTATIONS ---
CREATE_GAME = """
mutation CreateGame($vsAi: Boolean!, $timeControl: TimeControl, $colorPreference: ColorPreference, $isRated: Boolean, $playerId: String!) {
  createGame(vsAi: $vsAi, timeControl: $timeControl, colorPreference: $colorPreference, isRated: $isRated, playerId: $playerId)
}
"""
JOIN_GAME = "mutation JoinGame($gameId: String!, $playerId: String!) { joinGame(gameId: $gameId, playerId: $playerId) }"
MAKE_MOVE = """
mutation MakeMove($gameId: String!, $fromRow: Int!, $fromCol: Int!, $toRow: Int!, $toCol: Int!, $playerId: String!) {
  makeMove(gameId: $gameId, fromRow: $fromRow, fromCol: $fromCol, toRow: $toRow, toCol: $toCol, playerId: $playerId)
}
"""
RESIGN = "mutation Resign($gameId: String!, $playerId: String!) { resign(gameId: $gameId, playerId: $playerId) }"
REQUEST_AI_MOVE = "mutation RequestAiMove($gameId: String!) { requestAiMove(gameId: $gameId) }"
OFFER_DRAW = "mutation OfferDraw($gameId: String!) { offerDraw(gameId: $gameId) }"
ACCEPT_DRAW = "mutation AcceptDraw($gameId: String!) { acceptDraw(gameId: $gameId) }"
DECLINE_DRAW = "mutation DeclineDraw($gameId: String!) { declineDraw(gameId: $gameId) }"
CLAIM_TIME_WIN = "mutation ClaimTimeWin($gameId: String!) { claimTimeWin(gameId: $gameId) }"
JOIN_QUEUE = "mutation JoinQueue($timeControl: TimeControl!, $playerId: String!) { joinQueue(timeControl: $timeControl, playerId: $playerId) }"
LEAVE_QUEUE = "mutation LeaveQueue($playerId: String!) { leaveQueue(playerId: $playerId) }"


class GraphQLGameService:
    """Talks to the game service. Pass in an httpx.AsyncClient to control transport (tests use httpx.MockTransport)."""

    def __init__(
        self, settings: ClientSettings, client: Optional[httpx.AsyncClient] = None
    ) -> None:
        self.settings = settings
        self.endpoint = settings.graphql_endpoint
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=settings.request_timeout_s)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    # -- transport --
    async def execute(
        self, query: str, variables: Optional[dict[str, Any]] = None
    ) -> dict[str, Any]:
        """
        POST the document and return the `data` of the response
        ----
        * network problems, HTTP error statuses and unreadable bodies -> TransportError
        * `errors` reported by the service -> ServiceRejectedError
        * some nodes wrap the whole answer as a JSON string in an `error` field: unwrapped when it holds data
        """
        try:
            response = await self.client.post(
                self.endpoint,
                json={"query": query, "variables": variables or {}},
                headers=NO_CACHE_HEADERS,
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"Game service answered HTTP {e.response.status_code} for {self.endpoint}"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Game service unreachable at {self.endpoint}: {e}") from e
        except ValueError as e:
            raise TransportError(f"Cannot decode the game service response: {e}") from e

        if not isinstance(body, dict):
            raise TransportError(f"Unexpected response body: {body!r}")
        return self._extract_data(body)

    def _extract_data(self, body: dict[str, Any]) -> dict[str, Any]:
        wrapped = body.get("error")
        if isinstance(wrapped, str):
            try:
                unwrapped = json.loads(wrapped)
            except ValueError:
                raise ServiceRejectedError(wrapped) from None
            if isinstance(unwrapped, dict) and unwrapped.get("data"):
                return unwrapped["data"]
            raise ServiceRejectedError(wrapped)
        if isinstance(wrapped, list) and wrapped:
            raise ServiceRejectedError(str(wrapped[0]))

        if body.get("data"):
            return body["data"]

        errors = body.get("errors")
        if errors:
            first = errors[0]
            message = first.get("message") if isinstance(first, dict) else str(first)
            raise ServiceRejectedError(message or "GraphQL error")

        logger.warning("Empty response from the game service for %s", self.endpoint)
        return {}

    def _parse_games(self, data: dict[str, Any], key: str) -> list[GameSnapshot]:
        try:
            return [GameSnapshot.from_wire(game) for game in data.get(key) or []]
        except ValidationError as e:
            raise TransportError(f"Malformed game list in {key!r}: {e}") from e

    # -- queries --
    async def game(self, game_id: str) -> GameSnapshot | None:
        data = await self.execute(GET_GAME, {"id": game_id})
        raw = data.get("game")
        if raw is None:
            return None
        try:
            return GameSnapshot.from_wire(raw)
        except ValidationError as e:
            raise TransportError(f"Malformed game {game_id!r}: {e}") from e

    async def all_games(self) -> list[GameSnapshot]:
        return self._parse_games(await self.execute(GET_ALL_GAMES), "allGames")

    async def pending_games(self) -> list[GameSnapshot]:
        return self._parse_games(await self.execute(GET_PENDING_GAMES), "pendingGames")

    async def active_games(self) -> list[GameSnapshot]:
        return self._parse_games(await self.execute(GET_ACTIVE_GAMES), "activeGames")

    async def player_games(self, chain_id: str) -> list[GameSnapshot]:
        data = await self.execute(GET_PLAYER_GAMES, {"chainId": chain_id})
        return self._parse_games(data, "playerGames")

    async def player_stats(self, chain_id: str) -> PlayerStats | None:
        data = await self.execute(GET_PLAYER_STATS, {"chainId": chain_id})
        raw = data.get("playerStats")
        if raw is None:
            return None
        try:
            return PlayerStats.model_validate(raw)
        except ValidationError as e:
            raise TransportError(f"Malformed stats for {chain_id!r}: {e}") from e

    async def queue_status(self) -> list[QueueStatusEntry]:
        data = await self.execute(GET_QUEUE_STATUS)
        try:
            return [
                QueueStatusEntry.model_validate(entry)
                for entry in data.get("queueStatus") or []
            ]
        except ValidationError as e:
            raise TransportError(f"Malformed queue status: {e}") from e

    # -- mutations --
    async def create_game(self, request: CreateGameRequest) -> None:
        await self.execute(CREATE_GAME, request.to_wire())

    async def join_game(self, request: JoinGameRequest) -> None:
        await self.execute(JOIN_GAME, request.to_wire())

    async def make_move(self, request: MoveRequest) -> None:
        await self.execute(MAKE_MOVE, request.to_wire())

    async def resign(self, game_id: str, player_id: str) -> None:
        await self.execute(RESIGN, {"gameId": game_id, "playerId": player_id})

    async def request_ai_move(self, game_id: str) -> None:
        await self.execute(REQUEST_AI_MOVE, {"gameId": game_id})

    async def offer_draw(self, game_id: str) -> None:
        await self.execute(OFFER_DRAW, {"gameId": game_id})

    async def accept_draw(self, game_id: str) -> None:
        await self.execute(ACCEPT_DRAW, {"gameId": game_id})

    async def decline_draw(self, game_id: str) -> None:
        await self.execute(DECLINE_DRAW, {"gameId": game_id})

    async def claim_time_win(self, game_id: str) -> None:
        await self.execute(CLAIM_TIME_WIN, {"gameId": game_id})

    async def join_queue(self, request: JoinQueueRequest) -> Optional[str]:
        data = await self.execute(JOIN_QUEUE, request.to_wire())
        game_id = data.get("joinQueue")
        return game_id if isinstance(game_id, str) and game_id else None

    async def leave_queue(self, player_id: str) -> None:
        await self.execute(LEAVE_QUEUE, {"playerId": player_id})

"""
Custom exceptions.

Everything derives from GameError, so callers (and background loops) can catch a single top-level type.
"""


class GameError(Exception):
    """Top-level exception of the checkers client."""


# --- Input / encoding problems ---
class InvalidBoardStateError(GameError):
    """Board string does not follow the '8 rows of 8 characters joined by /' wire format."""


class InvalidRequestError(GameError):
    """Malformed data supplied to a request / settings model."""


# --- Rejected before anything is sent to the game service ---
class GameStateError(GameError):
    """Operation not allowed in the current state of the game (not active, no players, etc.)"""


class IllegalMoveError(GameError):
    """Move is not in the set of legal moves of the selected piece."""


class NotYourTurnError(GameError):
    """Attempt to move while the opponent holds the turn."""


class NoGameSelectedError(GameError):
    """Game specific operation requested, but the session has no selected game."""


class MoveInFlightError(GameError):
    """Single-flight guard: a mutation of the same kind is still outstanding for this game."""


# --- Communication with the game service ---
class TransportError(GameError):
    """Game service unreachable / HTTP failure / response could not be decoded. Safe to retry."""


class ServiceRejectedError(GameError):
    """Game service answered, but reported errors for the request."""

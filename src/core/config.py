"""
Client configuration.

Defaults mirror the timings the web client was tuned with. Every field can be overridden through a CHECKERS_<FIELD> environment variable.
"""

import os
from typing import Mapping, Optional, Self
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from src.core.exceptions import InvalidRequestError

ENV_PREFIX = "CHECKERS_"
DEFAULT_GRAPHQL_URL = "http://localhost:8080"
DEFAULT_DATABASE_URL = "sqlite:///:memory:"


def generate_player_id() -> str:
    """Same shape as the ids handed out by the web client: 'player_' + 8 hex characters"""
    return f"player_{uuid4().hex[:8]}"


class ClientSettings(BaseModel):
    # --- game service endpoint ---
    graphql_url: str = DEFAULT_GRAPHQL_URL
    chain_id: Optional[str] = None
    app_id: Optional[str] = None
    request_timeout_s: float = 10.0

    # --- identity / persistence ---
    player_id: str = Field(default_factory=generate_player_id)
    database_url: str = DEFAULT_DATABASE_URL

    # --- timings (milliseconds) ---
    poll_interval_pending_ms: int = 1500
    poll_interval_active_ms: int = 2000
    move_settle_delay_ms: int = 800
    confirm_attempts: int = 3
    confirm_retry_interval_ms: int = 500
    create_settle_delay_ms: int = 500
    clock_tick_ms: int = 100
    timeout_cooldown_ms: int = 2000
    premove_settle_delay_ms: int = 100
    ai_move_delay_ms: int = 1500
    queue_poll_interval_ms: int = 1000

    @field_validator("player_id")
    @classmethod
    def default_player_id(cls, value: str) -> str:
        return value or generate_player_id()

    @field_validator(
        "clock_tick_ms",
        "confirm_attempts",
        "poll_interval_pending_ms",
        "poll_interval_active_ms",
        "queue_poll_interval_ms",
    )
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise InvalidRequestError(f"Expected a positive value, got {value!r}.")
        return value

    @field_validator(
        "move_settle_delay_ms",
        "confirm_retry_interval_ms",
        "create_settle_delay_ms",
        "timeout_cooldown_ms",
        "premove_settle_delay_ms",
        "ai_move_delay_ms",
    )
    @classmethod
    def validate_not_negative(cls, value: int) -> int:
        if value < 0:
            raise InvalidRequestError(f"Delays cannot be negative, got {value!r}.")
        return value

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Self:
        """Collect CHECKERS_* variables (pydantic takes care of the type conversion)"""
        environ = os.environ if environ is None else environ
        overrides = {
            name: environ[f"{ENV_PREFIX}{name.upper()}"]
            for name in cls.model_fields
            if f"{ENV_PREFIX}{name.upper()}" in environ
        }
        return cls(**overrides)

    @property
    def graphql_endpoint(self) -> str:
        """The service exposes one GraphQL endpoint per chain + application. Fall back to the bare URL when not configured."""
        if not (self.chain_id and self.app_id):
            return self.graphql_url
        return f"{self.graphql_url.rstrip('/')}/chains/{self.chain_id}/applications/{self.app_id}"

"""Database tables / schema"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class DBGame(Base):
    """Last accepted snapshot per game (id is the game service's id)"""

    __tablename__ = "games"
    id: Mapped[str] = mapped_column(primary_key=True)
    board_state: Mapped[str]
    current_turn: Mapped[str]
    status: Mapped[str] = mapped_column(index=True)
    move_count: Mapped[int] = mapped_column(default=0)
    red_player: Mapped[Optional[str]]
    black_player: Mapped[Optional[str]]
    result: Mapped[Optional[str]]
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, onupdate=utc_now)

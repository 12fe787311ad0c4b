"""Generate database session"""

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.core.config import ClientSettings
from src.db.schema import Base


def create_db_engine(settings: ClientSettings) -> Engine:
    """In-memory SQLite only lives as long as its connection: share a single one."""
    if settings.database_url.startswith("sqlite") and ":memory:" in settings.database_url:
        return create_engine(
            settings.database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(settings.database_url)


def create_session_factory(settings: ClientSettings) -> sessionmaker[Session]:
    engine = create_db_engine(settings)
    # Ensure all tables are created
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine)

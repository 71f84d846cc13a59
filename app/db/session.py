"""Database session management."""

from collections.abc import Generator

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from app.config import get_settings

settings = get_settings()

# Convert postgresql:// to postgresql+psycopg:// for psycopg v3 driver
database_url = settings.DATABASE_URL
if database_url.startswith("postgresql://"):
    database_url = database_url.replace("postgresql://", "postgresql+psycopg://", 1)

engine_kwargs = {}
if database_url.startswith("sqlite"):
    # Timer callbacks and request handlers share connections across threads
    engine_kwargs["connect_args"] = {"check_same_thread": False}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every checkout sees an empty database
        engine_kwargs["poolclass"] = StaticPool
else:
    engine_kwargs["connect_args"] = {"sslmode": "require"}
    engine_kwargs["pool_pre_ping"] = True

engine = create_engine(database_url, echo=False, **engine_kwargs)


def get_session() -> Generator[Session, None, None]:
    """Get database session with automatic cleanup."""
    with Session(engine) as session:
        yield session


def new_session() -> Session:
    """Open a standalone session for work outside a request (timers, sweeps)."""
    return Session(engine)

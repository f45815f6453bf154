"""Database connection and session management for taskorch.

SQLite by default; any SQLAlchemy URL works through `DATABASE_URL`.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from taskorch.config import Settings, get_settings

settings = get_settings()


def _is_sqlite_url(database_url: str) -> bool:
    return "sqlite" in (database_url or "")


def get_engine_kwargs(database_url: str, config: Settings = settings) -> dict:
    """Return deterministic create_engine kwargs for a DB URL.

    Separated from `build_engine` so it can be tested without connecting.
    """
    engine_kwargs: dict = {
        "echo": config.debug,
        "pool_pre_ping": True,
    }

    if _is_sqlite_url(database_url):
        # Sessions are handed across FastAPI worker threads
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        return engine_kwargs

    engine_kwargs["pool_size"] = config.db_pool_size
    engine_kwargs["max_overflow"] = config.db_max_overflow
    engine_kwargs["pool_timeout"] = config.db_pool_timeout_sec
    return engine_kwargs


def build_engine(database_url: str) -> Engine:
    return create_engine(database_url, **get_engine_kwargs(database_url))


# Module-level singleton
engine = build_engine(settings.database_url)


@event.listens_for(Engine, "connect")
def set_sqlite_pragmas(dbapi_conn, connection_record):
    """Enable foreign keys and WAL on SQLite connections."""
    if _is_sqlite_url(settings.database_url):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Session:
    """Get database session (dependency for FastAPI)."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine = None) -> None:
    """Create the schema directly from the ORM models."""
    # Register the mapped classes on Base.metadata
    from taskorch.database import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)

"""
Database session management for the engagement store.

Provides SQLAlchemy engine and session factories with SQLite-specific
settings (WAL mode, foreign keys enforcement).
"""
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, event, Engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool


def _set_sqlite_pragma(dbapi_conn, connection_record):
    """
    Set SQLite pragmas for performance and data integrity.

    Pragmas:
    - foreign_keys=ON: Enforce foreign key constraints
    - journal_mode=WAL: Write-Ahead Logging for better concurrency
    - synchronous=NORMAL: Balance between safety and performance
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def create_db_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL and make sure its tables exist.

    SQLite file databases get their parent directory created; in-memory
    SQLite databases share a single connection.
    """
    from daybrief.storage.models import Base

    url = make_url(database_url)
    kwargs = {"echo": False}

    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        else:
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(database_url, **kwargs)

    if url.get_backend_name() == "sqlite":
        event.listen(engine, "connect", _set_sqlite_pragma)

    Base.metadata.create_all(bind=engine)
    return engine


def create_session_factory(database_url: str) -> sessionmaker:
    """Session factory bound to a freshly created engine"""
    engine = create_db_engine(database_url)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_test_db() -> Generator[sessionmaker, None, None]:
    """
    Test session factory backed by an in-memory SQLite database.

    Each test gets a fresh database with all tables created.

    Example:
        @pytest.fixture
        def session_factory():
            yield from get_test_db()
    """
    from daybrief.storage.models import Base

    engine = create_db_engine("sqlite:///:memory:")
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield factory
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """Yield a session and make sure it is closed after use"""
    db = factory()
    try:
        yield db
    finally:
        db.close()

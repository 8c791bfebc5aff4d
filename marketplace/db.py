# marketplace/db.py

"""
Database configuration and session management for the Marketplace Service.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DATABASE_URL


def _build_engine(url: str):
    if url.startswith("sqlite"):
        # SQLite is used for local runs and tests. Requests are served from a
        # thread pool, and an in-memory database only lives as long as its
        # single connection.
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url == "sqlite://":
            kwargs["poolclass"] = StaticPool
        sqlite_engine = create_engine(url, **kwargs)

        @event.listens_for(sqlite_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return sqlite_engine

    # pool_pre_ping=True helps maintain healthy connections in a pool
    return create_engine(url, pool_pre_ping=True)


engine = _build_engine(DATABASE_URL)

# autocommit=False ensures transactions must be committed explicitly.
# autoflush=False means changes aren't flushed to DB until commit or explicit flush.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for the ORM models
Base = declarative_base()


def get_db():
    """
    Dependency to provide a new database session for FastAPI endpoints.
    A session is created for each request and automatically closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

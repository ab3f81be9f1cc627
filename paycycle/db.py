from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from paycycle.config import get_settings

settings = get_settings()


def _sqlite_connect_args(database_url: str) -> dict:
    # Generation iterations run in worker threads, so pooled SQLite connections cross threads.
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": settings.sqlite_busy_timeout_ms / 1000}
    return {}


def build_engine(database_url: str) -> Engine:
    return create_engine(
        database_url,
        future=True,
        pool_pre_ping=True,
        connect_args=_sqlite_connect_args(database_url),
    )


def build_session_factory(bind: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, future=True, expire_on_commit=False)


engine = build_engine(settings.database_url)

SessionLocal = build_session_factory(engine)


@event.listens_for(Engine, "connect")
def apply_sqlite_pragmas(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
    module_name = dbapi_connection.__class__.__module__
    if "sqlite3" not in module_name:
        return

    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute(f"PRAGMA busy_timeout={settings.sqlite_busy_timeout_ms};")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


def get_db_session() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()

from __future__ import annotations

from collections.abc import Generator
from typing import Annotated

from fastapi import Depends
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from sharecal.core.config import settings


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """Cascades on events rely on SQLite enforcing foreign keys."""

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _build_engine():
    connect_args = {}
    if settings.DATABASE_URL.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    engine = create_engine(
        settings.DATABASE_URL, echo=settings.SQL_ECHO, connect_args=connect_args
    )
    if engine.dialect.name == "sqlite":
        enable_sqlite_foreign_keys(engine)
    return engine


engine = _build_engine()


def init_db() -> None:
    """Create database tables in environments without migrations."""
    import sharecal.models  # noqa: F401

    SQLModel.metadata.create_all(bind=engine)


def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


SessionDep = Annotated[Session, Depends(get_session)]

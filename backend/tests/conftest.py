from __future__ import annotations

from collections.abc import Callable, Generator
from datetime import datetime, timedelta
from itertools import count

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import sharecal.models  # noqa: F401
from sharecal.db import enable_sqlite_foreign_keys, get_session
from sharecal.main import app
from sharecal.models import Event, User

START = datetime(2026, 3, 2, 10, 0, 0)


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(engine) -> Generator[TestClient, None, None]:
    def get_session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = get_session_override
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session: Session) -> Callable[..., User]:
    sequence = count(1)

    def _make_user(username: str | None = None) -> User:
        n = next(sequence)
        username = username or f"user{n}"
        user = User(username=username, email=f"{username}@example.com", full_name=username.title())
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_event(session: Session) -> Callable[..., Event]:
    def _make_event(owner: User, starts_at: datetime = START, **fields) -> Event:
        event = Event(
            title=fields.pop("title", "Planning"),
            starts_at=starts_at,
            ends_at=fields.pop("ends_at", starts_at + timedelta(hours=1)),
            owner_id=owner.id,
            **fields,
        )
        session.add(event)
        session.commit()
        session.refresh(event)
        return event

    return _make_event


@pytest.fixture
def owner(make_user) -> User:
    return make_user("owner")

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlmodel import Session, select

from sharecal.core.config import settings
from sharecal.core.logging import configure_logging
from sharecal.db import engine, init_db
from sharecal.models import Event, User
from sharecal.services.permissions import share_with_users
from sharecal.services.reminders import set_reminders

logger = logging.getLogger(__name__)


def ensure_user(session: Session, *, username: str, email: str, full_name: str) -> User:
    user = session.exec(select(User).where(User.username == username)).one_or_none()
    if user:
        return user

    user = User(username=username, email=email, full_name=full_name)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    init_db()
    with Session(engine) as session:
        demo_accounts = [
            ("alice", "alice@example.com", "Alice Demo"),
            ("bob", "bob@example.com", "Bob Demo"),
            ("carol", "carol@example.com", "Carol Demo"),
        ]
        alice, bob, carol = [
            ensure_user(session, username=username, email=email, full_name=full_name)
            for username, email, full_name in demo_accounts
        ]

        starts_at = (datetime.utcnow() + timedelta(days=1)).replace(
            hour=9, minute=0, second=0, microsecond=0
        )
        event = Event(
            title="Team sync",
            location="Room A",
            starts_at=starts_at,
            ends_at=starts_at + timedelta(hours=1),
            owner_id=alice.id,
        )
        session.add(event)
        session.flush()
        share_with_users(session, event, {bob.id: "VIEW", carol.id: "EDIT"})
        set_reminders(session, event, alice.id, [15, 60, 1440])
        session.commit()

        logger.info("Demo event %s shared with %s and %s", event.id, bob.username, carol.username)


if __name__ == "__main__":
    main()

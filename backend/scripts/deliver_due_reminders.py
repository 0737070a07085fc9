"""Poll due reminders for every user and mark them as sent.

Meant to be run from cron or a scheduler; delivery itself is just a log line.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlmodel import Session, select

from sharecal.core.config import settings
from sharecal.core.logging import configure_logging
from sharecal.db import engine
from sharecal.models import Reminder
from sharecal.services.reminders import get_pending_reminders, mark_reminder_sent

logger = logging.getLogger(__name__)


def deliver_due_reminders(session: Session, now: datetime | None = None) -> int:
    now = now or datetime.utcnow()
    user_ids = session.exec(
        select(Reminder.user_id)
        .where(Reminder.is_sent == False, Reminder.reminder_time <= now)  # noqa: E712
        .distinct()
    ).all()

    delivered = 0
    for user_id in user_ids:
        for reminder in get_pending_reminders(session, user_id, now):
            logger.info("Reminder for user %s: %s", user_id, reminder.message)
            mark_reminder_sent(session, reminder.id, now)
            delivered += 1
    session.commit()
    return delivered


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    with Session(engine) as session:
        delivered = deliver_due_reminders(session)
        logger.info("Delivered %s reminders", delivered)


if __name__ == "__main__":
    main()

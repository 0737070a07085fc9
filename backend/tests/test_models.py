from __future__ import annotations

from datetime import datetime, timedelta

from sharecal.core.config import settings
from sharecal.models import Event, Reminder
from sharecal.services.reminders import set_reminders
from tests.conftest import START


def test_reminder_for_event_derives_time():
    event = Event(title="Standup", starts_at=START, ends_at=START + timedelta(minutes=15), owner_id=1)

    reminder = Reminder.for_event(event, user_id=1, minutes_before_event=30)

    assert reminder.reminder_time == START - timedelta(minutes=30)
    assert reminder in event.reminders


def test_changing_minutes_recomputes_reminder_time(session, owner, make_event):
    event = make_event(owner)
    (reminder,) = set_reminders(session, event, owner.id, [15])
    session.commit()

    reminder.minutes_before_event = 90

    assert reminder.reminder_time == START - timedelta(minutes=90)


def test_moving_event_recomputes_every_users_reminders(session, owner, make_user, make_event):
    guest = make_user()
    event = make_event(owner)
    set_reminders(session, event, owner.id, [60])
    set_reminders(session, event, guest.id, [10])
    session.commit()
    new_start = START + timedelta(days=2)

    event.starts_at = new_start
    session.commit()

    times = {r.user_id: r.reminder_time for r in session.get(Event, event.id).reminders}
    assert times == {
        owner.id: new_start - timedelta(minutes=60),
        guest.id: new_start - timedelta(minutes=10),
    }


def test_mark_sent_is_idempotent():
    reminder = Reminder(user_id=1, minutes_before_event=5, reminder_time=START)
    first = datetime(2026, 3, 2, 9, 55)

    assert reminder.mark_sent(first) is True
    assert reminder.mark_sent(first + timedelta(hours=1)) is False
    assert reminder.sent_at == first


def test_shared_user_ids_sorted(session, owner, make_user, make_event):
    b, a = make_user("bravo"), make_user("alpha")
    event = make_event(owner)
    event.shared_with.extend([a, b])
    session.commit()

    assert event.shared_user_ids == sorted([a.id, b.id])


def test_reminder_type_defaults_to_configured_value():
    event = Event(title="Retro", starts_at=START, ends_at=START + timedelta(hours=1), owner_id=1)

    built = Reminder.for_event(event, user_id=1, minutes_before_event=10)
    bare = Reminder(user_id=1, minutes_before_event=10, reminder_time=START)

    assert built.reminder_type == settings.DEFAULT_REMINDER_TYPE
    assert bare.reminder_type == settings.DEFAULT_REMINDER_TYPE

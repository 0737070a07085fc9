from __future__ import annotations

from datetime import timedelta

from sharecal.services.reminders import get_pending_reminders, set_reminders
from scripts.deliver_due_reminders import deliver_due_reminders
from tests.conftest import START


def test_marks_due_reminders_of_every_user(session, owner, make_user, make_event):
    guest = make_user()
    event = make_event(owner)
    set_reminders(session, event, owner.id, [30, 5])
    set_reminders(session, event, guest.id, [60])
    session.commit()
    now = START - timedelta(minutes=20)

    assert deliver_due_reminders(session, now) == 2

    assert get_pending_reminders(session, owner.id, now) == []
    assert get_pending_reminders(session, guest.id, now) == []
    assert [r.minutes_before_event for r in get_pending_reminders(session, owner.id, START)] == [5]


def test_second_run_delivers_nothing(session, owner, make_event):
    event = make_event(owner)
    set_reminders(session, event, owner.id, [15])
    session.commit()

    assert deliver_due_reminders(session, START) == 1
    assert deliver_due_reminders(session, START) == 0

from __future__ import annotations

import pytest
from sqlmodel import select

from sharecal.models import EventPermission, EventSharedUser
from sharecal.services import permissions
from sharecal.services.permissions import (
    PermissionWriteError,
    WriteOutcome,
    get_event_permissions,
    get_event_shared_users,
    get_user_permission,
    purge_orphaned_permissions,
    remove_shared_user,
    replace_shared_users,
    share_with_user,
    share_with_user_ids,
    share_with_users,
    write_permission,
)


def _membership_rows(session, event_id):
    return session.exec(
        select(EventSharedUser).where(EventSharedUser.event_id == event_id)
    ).all()


def _permission_rows(session, event_id):
    return session.exec(
        select(EventPermission).where(EventPermission.event_id == event_id)
    ).all()


class TestShareWithUser:
    def test_sets_flag_membership_and_default_permission(self, session, owner, make_user, make_event):
        guest = make_user()
        event = make_event(owner)

        share_with_user(session, event, guest)

        assert event.is_shared is True
        assert [row.user_id for row in _membership_rows(session, event.id)] == [guest.id]
        assert get_event_permissions(session, event.id) == {guest.id: "VIEW"}

    def test_is_idempotent_and_overwrites_permission(self, session, owner, make_user, make_event):
        guest = make_user()
        event = make_event(owner)

        share_with_user(session, event, guest, "EDIT")
        share_with_user(session, event, guest, "EDIT")
        session.commit()

        assert len(_membership_rows(session, event.id)) == 1
        assert len(_permission_rows(session, event.id)) == 1
        assert get_user_permission(session, event.id, guest.id) == "EDIT"

        share_with_user(session, event, guest, "ADMIN")
        assert get_user_permission(session, event.id, guest.id) == "ADMIN"

    def test_unknown_permission_strings_are_stored_as_given(self, session, owner, make_user, make_event):
        guest = make_user()
        event = make_event(owner)

        share_with_user(session, event, guest, "OWNER")

        assert get_event_permissions(session, event.id) == {guest.id: "OWNER"}


class TestBulkSharing:
    def test_permission_map_without_existing_membership(self, session, owner, make_user, make_event):
        viewer = make_user()
        admin = make_user()
        event = make_event(owner)
        assert _membership_rows(session, event.id) == []

        share_with_users(session, event, {viewer.id: "VIEW", admin.id: "ADMIN"})
        session.commit()

        assert get_event_permissions(session, event.id) == {
            viewer.id: "VIEW",
            admin.id: "ADMIN",
        }
        assert event.is_shared is True

    def test_unknown_ids_are_skipped(self, session, owner, make_user, make_event):
        first = make_user()
        second = make_user()
        event = make_event(owner)

        share_with_user_ids(session, event, [first.id, 9999, second.id])
        session.commit()

        assert sorted(u.id for u in event.shared_with) == sorted([first.id, second.id])
        assert get_event_permissions(session, event.id) == {
            first.id: "VIEW",
            second.id: "VIEW",
        }

    def test_only_unknown_ids_leaves_event_unshared(self, session, owner, make_event):
        event = make_event(owner)

        share_with_users(session, event, {4242: "EDIT"})

        assert event.is_shared is False
        assert _permission_rows(session, event.id) == []

    def test_existing_member_permission_is_updated(self, session, owner, make_user, make_event):
        guest = make_user()
        event = make_event(owner)
        share_with_user(session, event, guest, "VIEW")

        share_with_users(session, event, {guest.id: "EDIT"})

        assert len(_membership_rows(session, event.id)) == 1
        assert get_event_permissions(session, event.id) == {guest.id: "EDIT"}


class TestRemoveSharedUser:
    def test_removed_user_permission_is_hidden(self, session, owner, make_user, make_event):
        keep = make_user()
        drop = make_user()
        event = make_event(owner)
        share_with_users(session, event, {keep.id: "EDIT", drop.id: "ADMIN"})
        session.commit()

        remove_shared_user(session, event, drop)
        session.commit()

        # The orphaned row is still there but never surfaced
        assert len(_permission_rows(session, event.id)) == 2
        assert get_event_permissions(session, event.id) == {keep.id: "EDIT"}
        assert get_user_permission(session, event.id, drop.id) == "VIEW"
        assert event.is_shared is True

    def test_removing_last_user_clears_flag(self, session, owner, make_user, make_event):
        guest = make_user()
        event = make_event(owner)
        share_with_user(session, event, guest)

        remove_shared_user(session, event, guest)

        assert event.is_shared is False
        assert event.shared_with == []

    def test_removing_non_member_is_harmless(self, session, owner, make_user, make_event):
        member = make_user()
        stranger = make_user()
        event = make_event(owner)
        share_with_user(session, event, member)

        remove_shared_user(session, event, stranger)

        assert event.is_shared is True
        assert [u.id for u in event.shared_with] == [member.id]

    def test_purge_orphaned_permissions(self, session, owner, make_user, make_event):
        keep = make_user()
        drop = make_user()
        event = make_event(owner)
        share_with_user_ids(session, event, [keep.id, drop.id])
        remove_shared_user(session, event, drop)

        assert purge_orphaned_permissions(session, event.id) == 1
        assert [row.user_id for row in _permission_rows(session, event.id)] == [keep.id]


class TestSharedFlagInvariant:
    def test_flag_tracks_membership_through_mutations(self, session, owner, make_user, make_event):
        a, b = make_user(), make_user()
        event = make_event(owner)

        steps = [
            lambda: share_with_user(session, event, a),
            lambda: share_with_users(session, event, {b.id: "EDIT"}),
            lambda: remove_shared_user(session, event, a),
            lambda: replace_shared_users(session, event, []),
            lambda: share_with_user_ids(session, event, [a.id, b.id]),
            lambda: remove_shared_user(session, event, a),
            lambda: remove_shared_user(session, event, b),
        ]
        for step in steps:
            step()
            session.flush()
            assert event.is_shared == (len(_membership_rows(session, event.id)) > 0)


class TestWritePermission:
    def test_update_then_insert_outcomes(self, session, owner, make_user, make_event):
        guest = make_user()
        event = make_event(owner)
        event.shared_with.append(guest)
        session.flush()

        assert write_permission(session, event.id, guest.id, "EDIT") is WriteOutcome.INSERTED
        assert write_permission(session, event.id, guest.id, "ADMIN") is WriteOutcome.UPDATED

    def test_insert_collision_retries_update(self, session, owner, make_user, make_event, monkeypatch):
        guest = make_user()
        event = make_event(owner)
        share_with_user(session, event, guest, "VIEW")

        real_update = permissions._update_permission
        calls = []

        def flaky_update(*args):
            calls.append(args)
            # First attempt misses as if the row were not visible yet
            if len(calls) == 1:
                return 0
            return real_update(*args)

        monkeypatch.setattr(permissions, "_update_permission", flaky_update)

        outcome = write_permission(session, event.id, guest.id, "ADMIN")

        assert outcome is WriteOutcome.RETRIED
        assert len(calls) == 2
        assert get_user_permission(session, event.id, guest.id) == "ADMIN"

    def test_double_failure_is_escalated(self, session, owner, make_user, make_event, monkeypatch):
        guest = make_user()
        event = make_event(owner)
        share_with_user(session, event, guest, "VIEW")

        monkeypatch.setattr(permissions, "_update_permission", lambda *args: 0)

        with pytest.raises(PermissionWriteError) as excinfo:
            write_permission(session, event.id, guest.id, "EDIT")

        assert excinfo.value.status_code == 409
        # The savepoint rollback keeps the earlier write intact
        assert get_user_permission(session, event.id, guest.id) == "VIEW"


def test_get_user_permission_defaults_to_view(session, owner, make_user, make_event):
    event = make_event(owner)
    assert get_user_permission(session, event.id, make_user().id) == "VIEW"


def test_shared_users_listing(session, owner, make_user, make_event):
    a, b = make_user(), make_user()
    event = make_event(owner)
    share_with_user_ids(session, event, [b.id, a.id])

    assert [u.id for u in get_event_shared_users(session, event.id)] == sorted([a.id, b.id])

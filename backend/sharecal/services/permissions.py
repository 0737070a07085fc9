"""Sharing membership and per-user permission reconciliation.

Membership (``event_shared_users``) is written through the ORM relationship
``Event.shared_with``; permission levels (``event_permissions``) are written
with direct statements. Every writer here flushes membership before touching
permissions, and permission writes go through :func:`write_permission`.

None of these functions commit; the caller owns the transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from enum import Enum

from fastapi import HTTPException, status
from sqlalchemy import and_, delete, insert, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from sharecal.core.config import settings
from sharecal.models import Event, EventPermission, EventSharedUser, PermissionLevel, User

logger = logging.getLogger(__name__)

DEFAULT_PERMISSION = settings.DEFAULT_PERMISSION


class WriteOutcome(str, Enum):
    UPDATED = "updated"
    INSERTED = "inserted"
    RETRIED = "retried"


class PermissionWriteError(HTTPException):
    """Both the insert and the retried update of a permission row failed."""

    def __init__(self, event_id: int, user_id: int) -> None:
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Could not record permission for user {user_id} on event {event_id}",
        )
        self.event_id = event_id
        self.user_id = user_id


def _permission_value(permission: PermissionLevel | str) -> str:
    if isinstance(permission, PermissionLevel):
        return permission.value
    return permission


def _update_permission(
    session: Session, event_id: int, user_id: int, permission: str
) -> int:
    result = session.exec(
        update(EventPermission)
        .where(
            EventPermission.event_id == event_id,
            EventPermission.user_id == user_id,
        )
        .values(permission=permission, updated_at=datetime.utcnow())
    )
    return result.rowcount


def _insert_permission(
    session: Session, event_id: int, user_id: int, permission: str
) -> None:
    session.exec(
        insert(EventPermission).values(
            event_id=event_id,
            user_id=user_id,
            permission=permission,
            updated_at=datetime.utcnow(),
        )
    )


def write_permission(
    session: Session,
    event_id: int,
    user_id: int,
    permission: PermissionLevel | str,
) -> WriteOutcome:
    """Upsert the permission row for (event, user).

    Tries an update first. If no row was touched, inserts inside a savepoint;
    if that insert collides with a row written in the meantime, the update is
    retried once. Raises :class:`PermissionWriteError` when the retry misses too.
    """
    value = _permission_value(permission)

    if _update_permission(session, event_id, user_id, value) > 0:
        logger.debug("Updated permission %s for user %s on event %s", value, user_id, event_id)
        return WriteOutcome.UPDATED

    try:
        with session.begin_nested():
            _insert_permission(session, event_id, user_id, value)
    except IntegrityError as exc:
        logger.info(
            "Permission insert for user %s on event %s collided, retrying update",
            user_id,
            event_id,
        )
        if _update_permission(session, event_id, user_id, value) == 0:
            logger.error(
                "Permission for user %s on event %s could not be written: %s",
                user_id,
                event_id,
                exc.orig,
            )
            raise PermissionWriteError(event_id, user_id) from exc
        return WriteOutcome.RETRIED

    logger.debug("Inserted permission %s for user %s on event %s", value, user_id, event_id)
    return WriteOutcome.INSERTED


def _add_member(event: Event, user: User) -> bool:
    if any(member.id == user.id for member in event.shared_with):
        return False
    event.shared_with.append(user)
    return True


def _sync_shared_flag(event: Event) -> None:
    event.is_shared = bool(event.shared_with)


def share_with_user(
    session: Session,
    event: Event,
    user: User,
    permission: PermissionLevel | str = DEFAULT_PERMISSION,
) -> Event:
    """Share ``event`` with ``user`` and set their permission level.

    Re-sharing with an existing member leaves membership untouched and
    overwrites the permission.
    """
    added = _add_member(event, user)
    _sync_shared_flag(event)
    event.touch()
    session.add(event)
    session.flush()

    write_permission(session, event.id, user.id, permission)
    if added:
        logger.info("Shared event %s with user %s", event.id, user.id)
    return event


def apply_permissions(
    session: Session,
    event: Event,
    user_permissions: Mapping[int, PermissionLevel | str],
) -> dict[int, WriteOutcome]:
    """Write permission levels for users that are currently members.

    Entries for non-members are skipped; membership is expected to be flushed.
    """
    member_ids = {member.id for member in event.shared_with}
    outcomes: dict[int, WriteOutcome] = {}
    for user_id, permission in user_permissions.items():
        if user_id not in member_ids:
            logger.warning(
                "Ignoring permission %s for user %s: not shared on event %s",
                _permission_value(permission),
                user_id,
                event.id,
            )
            continue
        outcomes[user_id] = write_permission(session, event.id, user_id, permission)
    return outcomes


def share_with_users(
    session: Session,
    event: Event,
    user_permissions: Mapping[int, PermissionLevel | str],
) -> Event:
    """Bulk share: add every resolvable user, flush, then write permissions.

    Unknown user ids are skipped rather than failing the batch.
    """
    for user_id in user_permissions:
        user = session.get(User, user_id)
        if user is None:
            logger.warning(
                "Skipping unknown user %s while sharing event %s", user_id, event.id
            )
            continue
        _add_member(event, user)

    _sync_shared_flag(event)
    event.touch()
    session.add(event)
    # Permission statements below assume these membership rows exist
    session.flush()

    apply_permissions(session, event, user_permissions)
    return event


def share_with_user_ids(
    session: Session,
    event: Event,
    user_ids: Iterable[int],
) -> Event:
    """Bulk share where every user gets the default level."""
    return share_with_users(
        session, event, {user_id: DEFAULT_PERMISSION for user_id in user_ids}
    )


def replace_shared_users(
    session: Session,
    event: Event,
    user_ids: Iterable[int],
) -> Event:
    """Make membership exactly the resolvable subset of ``user_ids``.

    Permission rows of members that stay are kept; rows of removed members
    are left behind and hidden by the readers. Users that were not members
    before the call get the default level, replacing any row left from an
    earlier membership.
    """
    previous_ids = {member.id for member in event.shared_with}
    users: list[User] = []
    seen: set[int] = set()
    for user_id in user_ids:
        if user_id in seen:
            continue
        seen.add(user_id)
        user = session.get(User, user_id)
        if user is None:
            logger.warning(
                "Skipping unknown user %s while sharing event %s", user_id, event.id
            )
            continue
        users.append(user)

    event.shared_with = users
    _sync_shared_flag(event)
    session.add(event)
    session.flush()

    for user in users:
        if user.id not in previous_ids:
            write_permission(session, event.id, user.id, DEFAULT_PERMISSION)
    return event


def remove_shared_user(session: Session, event: Event, user: User) -> Event:
    for member in list(event.shared_with):
        if member.id == user.id:
            event.shared_with.remove(member)
            logger.info("Removed user %s from event %s", user.id, event.id)
    _sync_shared_flag(event)
    event.touch()
    session.add(event)
    session.flush()
    return event


def _membership_join():
    return and_(
        EventSharedUser.event_id == EventPermission.event_id,
        EventSharedUser.user_id == EventPermission.user_id,
    )


def get_event_permissions(session: Session, event_id: int) -> dict[int, str]:
    """Permission map for an event, read from the tables.

    Rows without a matching membership row are not returned.
    """
    rows = session.exec(
        select(EventPermission.user_id, EventPermission.permission)
        .join(EventSharedUser, _membership_join())
        .where(EventPermission.event_id == event_id)
    ).all()
    return {user_id: permission for user_id, permission in rows}


def get_user_permission(session: Session, event_id: int, user_id: int) -> str:
    permission = session.exec(
        select(EventPermission.permission)
        .join(EventSharedUser, _membership_join())
        .where(
            EventPermission.event_id == event_id,
            EventPermission.user_id == user_id,
        )
    ).first()
    return permission if permission is not None else DEFAULT_PERMISSION


def get_event_shared_users(session: Session, event_id: int) -> list[User]:
    return list(
        session.exec(
            select(User)
            .join(EventSharedUser, EventSharedUser.user_id == User.id)
            .where(EventSharedUser.event_id == event_id)
            .order_by(User.id)
        ).all()
    )


def purge_orphaned_permissions(session: Session, event_id: int) -> int:
    """Delete permission rows of users no longer shared on the event."""
    member_ids = select(EventSharedUser.user_id).where(
        EventSharedUser.event_id == event_id
    )
    result = session.exec(
        delete(EventPermission).where(
            EventPermission.event_id == event_id,
            EventPermission.user_id.not_in(member_ids),
        )
    )
    if result.rowcount:
        logger.info(
            "Purged %s orphaned permission rows on event %s", result.rowcount, event_id
        )
    return result.rowcount

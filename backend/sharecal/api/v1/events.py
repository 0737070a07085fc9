from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Body, Query, status

from sharecal.core.config import settings
from sharecal.db import SessionDep
from sharecal.schemas import (
    EventCreate,
    EventRead,
    EventUpdate,
    PermissionRead,
    SharedUserRead,
)
from sharecal.services import events as event_service
from sharecal.services.permissions import (
    get_event_permissions,
    get_event_shared_users,
    get_user_permission,
    remove_shared_user,
    share_with_user,
    share_with_user_ids,
    share_with_users,
)

router = APIRouter()


def _commit_and_enrich(session: SessionDep, event) -> EventRead:
    session.commit()
    session.refresh(event)
    return event_service.enrich_event(session, event, event.owner_id)


@router.post(
    "/",
    response_model=EventRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create event",
)
def create_event(
    payload: EventCreate,
    session: SessionDep,
    owner_id: int = Query(..., description="Owner of the new event"),
) -> EventRead:
    return event_service.create_event(session, payload, owner_id)


@router.get("/user/{user_id}", response_model=List[EventRead], summary="Events owned by user")
def list_user_events(
    user_id: int,
    session: SessionDep,
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None),
) -> List[EventRead]:
    return event_service.get_user_events(session, user_id, start, end)


@router.get(
    "/user/{user_id}/all",
    response_model=List[EventRead],
    summary="Owned and shared events of user",
)
def list_all_user_events(
    user_id: int,
    session: SessionDep,
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None),
) -> List[EventRead]:
    return event_service.get_all_user_events(session, user_id, start, end)


@router.get(
    "/shared/{user_id}",
    response_model=List[EventRead],
    summary="Events shared with user",
)
def list_shared_events(
    user_id: int,
    session: SessionDep,
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None),
) -> List[EventRead]:
    return event_service.get_shared_events(session, user_id, start, end)


@router.get("/{event_id}", response_model=EventRead, summary="Get event by id")
def get_event(
    event_id: int,
    session: SessionDep,
    user_id: Optional[int] = Query(
        default=None, description="Requesting user, defaults to the owner"
    ),
) -> EventRead:
    return event_service.get_event_with_permissions(session, event_id, user_id)


@router.put("/{event_id}", response_model=EventRead, summary="Update event")
def update_event(
    event_id: int,
    payload: EventUpdate,
    session: SessionDep,
) -> EventRead:
    return event_service.update_event(session, event_id, payload)


@router.delete(
    "/{event_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete event",
    response_model=None,
)
def delete_event(event_id: int, session: SessionDep) -> None:
    event_service.delete_event(session, event_id)


@router.post(
    "/{event_id}/share/permissions",
    response_model=EventRead,
    summary="Share event with users at given permission levels",
)
def share_event_with_permissions(
    event_id: int,
    session: SessionDep,
    user_permissions: Dict[int, str] = Body(...),
) -> EventRead:
    event = event_service.get_event_or_404(session, event_id)
    share_with_users(session, event, user_permissions)
    return _commit_and_enrich(session, event)


@router.post(
    "/{event_id}/share",
    response_model=EventRead,
    summary="Share event with users at the default level",
)
def share_event_with_users(
    event_id: int,
    session: SessionDep,
    user_ids: List[int] = Body(...),
) -> EventRead:
    event = event_service.get_event_or_404(session, event_id)
    share_with_user_ids(session, event, user_ids)
    return _commit_and_enrich(session, event)


@router.post(
    "/{event_id}/share/{user_id}",
    response_model=EventRead,
    summary="Share event with one user",
)
def share_event(
    event_id: int,
    user_id: int,
    session: SessionDep,
    permission: str = Query(default=settings.DEFAULT_PERMISSION),
) -> EventRead:
    event = event_service.get_event_or_404(session, event_id)
    user = event_service.get_user_or_404(session, user_id)
    share_with_user(session, event, user, permission)
    return _commit_and_enrich(session, event)


@router.delete(
    "/{event_id}/share/{user_id}",
    response_model=EventRead,
    summary="Stop sharing event with user",
)
def unshare_event(event_id: int, user_id: int, session: SessionDep) -> EventRead:
    event = event_service.get_event_or_404(session, event_id)
    user = event_service.get_user_or_404(session, user_id)
    remove_shared_user(session, event, user)
    return _commit_and_enrich(session, event)


@router.get(
    "/{event_id}/shared-users",
    response_model=List[SharedUserRead],
    summary="Users the event is shared with",
)
def list_shared_users(event_id: int, session: SessionDep) -> List[SharedUserRead]:
    event_service.get_event_or_404(session, event_id)
    return get_event_shared_users(session, event_id)


@router.get(
    "/{event_id}/permissions",
    response_model=Dict[int, str],
    summary="Permission map of event",
)
def read_event_permissions(event_id: int, session: SessionDep) -> Dict[int, str]:
    event_service.get_event_or_404(session, event_id)
    return get_event_permissions(session, event_id)


@router.get(
    "/{event_id}/user/{user_id}/permission",
    response_model=PermissionRead,
    summary="Permission of one user on event",
)
def read_user_permission(
    event_id: int, user_id: int, session: SessionDep
) -> PermissionRead:
    event_service.get_event_or_404(session, event_id)
    return PermissionRead(permission=get_user_permission(session, event_id, user_id))

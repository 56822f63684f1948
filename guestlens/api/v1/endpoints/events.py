"""Event API endpoints: host event management and the gallery."""
from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session
from typing import Optional

from guestlens.api.deps import get_current_user, get_db, get_optional_user, requester_for
from guestlens.models.user import User
from guestlens.schemas.event import (
    EventCreate,
    EventListResponse,
    EventPublicResponse,
    EventResponse,
    EventUpdate,
    HostPlanResponse,
)
from guestlens.schemas.photo import EventStats, GalleryPage
from guestlens.services.events import EventService
from guestlens.services.photos import event_stats, list_event_photos
from guestlens.services.storage.base import ObjectStore
from guestlens.services.storage.s3 import get_object_store


router = APIRouter()


@router.post('', response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    payload: EventCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create an event. Resubmitting the same name and date returns the existing event."""
    return await EventService(db).create_event(current_user.id, payload)


@router.get('', response_model=EventListResponse)
async def list_my_events(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return await EventService(db).list_for_owner(current_user.id)


@router.get('/code/{event_code}', response_model=EventPublicResponse)
async def get_event_by_code(event_code: str, db: Session = Depends(get_db)):
    """Locate an event by its public code (guest entry point)."""
    return EventService(db).get_by_code(event_code)


@router.get('/{event_id}/host-plan', response_model=HostPlanResponse)
async def get_host_plan(event_id: int, db: Session = Depends(get_db)):
    """Upload limits inherited from the host's plan, for client-side checks."""
    return EventService(db).host_plan(event_id)


@router.patch('/{event_id}', response_model=EventResponse)
async def update_event(
    event_id: int,
    payload: EventUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return await EventService(db).update_event(event_id, payload, requester_for(current_user))


@router.post('/{event_id}/access-code', response_model=EventResponse)
async def regenerate_access_code(
    event_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Issue a new private access code, revoking the old one."""
    return await EventService(db).regenerate_access_code(event_id, requester_for(current_user))


@router.delete('/{event_id}', status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(
    event_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store)
):
    await EventService(db, store).delete_event(event_id, requester_for(current_user))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get('/{event_id}/photos', response_model=GalleryPage)
async def list_photos(
    event_id: int,
    request: Request,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100, alias='pageSize'),
    code: Optional[str] = Query(None, description="Event access code"),
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """Gallery page. Pending photos are included only for event managers."""
    return await list_event_photos(
        db,
        event_id,
        requester_for(current_user, code),
        request.headers,
        request.cookies,
        page=page,
        page_size=page_size,
    )


@router.get('/{event_id}/stats', response_model=EventStats)
async def get_event_stats(
    event_id: int,
    request: Request,
    code: Optional[str] = Query(None, description="Event access code"),
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    return await event_stats(
        db, event_id, requester_for(current_user, code), request.headers, request.cookies
    )

"""Event lifecycle: idempotent creation, host listing, edits and deletion."""
import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from guestlens.app.config import settings
from guestlens.core.access import Requester, can_manage, is_owner
from guestlens.core.cache import build_user_events_scope
from guestlens.core.cache_utils import bump_event_version, bump_user_events_version, get_or_compute
from guestlens.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from guestlens.core.idempotency import creation_guard, event_creation_key, normalize_name
from guestlens.core.plans import limits_for
from guestlens.models.event import Event
from guestlens.repositories.event_repo import EventRepository
from guestlens.repositories.photo_repo import PhotoRepository
from guestlens.repositories.user_repo import UserRepository
from guestlens.schemas.event import (
    EventCreate,
    EventListResponse,
    EventResponse,
    EventUpdate,
    HostPlanResponse,
)
from guestlens.services.photos import delete_stored_objects
from guestlens.services.storage.base import ObjectStore, photo_key_prefix
from guestlens.utils.concurrency import run_blocking

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECS = 0.1


class EventService:
    def __init__(self, db: Session, store: Optional[ObjectStore] = None):
        self.db = db
        self.store = store
        self.events = EventRepository(db)
        self.photos = PhotoRepository(db)

    def _find_duplicate(self, owner_id: int, data: EventCreate) -> Optional[Event]:
        since = datetime.utcnow() - timedelta(seconds=settings.EVENT_CREATE_GUARD_TTL_SECS)
        return self.events.find_recent_duplicate(owner_id, normalize_name(data.name), data.date, since)

    async def create_event(self, owner_id: int, data: EventCreate) -> Event:
        """
        Create an event at most once per (owner, name, day) within the guard window.

        A retried submission returns the event the first one created. A
        concurrent submission that loses the guard waits briefly for the
        winner's row.

        Raises:
            ConflictError: Another request holds the guard and produced nothing in time
        """
        key = event_creation_key(owner_id, data.name, data.date)

        async with creation_guard(key, settings.EVENT_CREATE_GUARD_TTL_SECS) as acquired:
            if acquired:
                existing = self._find_duplicate(owner_id, data)
                if existing is not None:
                    logger.info(f"Event create deduplicated to event {existing.id} for user {owner_id}")
                    return existing

                event = self.events.create_event(owner_id, data.model_dump())
                await bump_user_events_version(owner_id)
                logger.info(f"Event {event.id} created by user {owner_id}")
                return event

        deadline = time.monotonic() + settings.EVENT_CREATE_WAIT_SECS
        while True:
            # the winner commits on its own session; drop anything cached here
            self.db.expire_all()
            existing = self._find_duplicate(owner_id, data)
            if existing is not None:
                return existing
            if time.monotonic() >= deadline:
                break
            await asyncio.sleep(POLL_INTERVAL_SECS)

        logger.warning(f"Event create conflict for user {owner_id}: {key}")
        raise ConflictError("An identical event is already being created. Please retry.")

    async def list_for_owner(self, owner_id: int) -> dict:
        """Host's events, cached under the user's event-list scope."""
        async def compute() -> dict:
            events = self.events.list_for_owner(owner_id)
            response = EventListResponse(
                events=[EventResponse.model_validate(e) for e in events],
                total=len(events),
            )
            return response.model_dump(mode="json", by_alias=True)

        return await get_or_compute(
            build_user_events_scope(owner_id),
            "list",
            "all",
            settings.USER_EVENTS_TTL_SECS,
            compute,
        )

    def get_by_code(self, event_code: str) -> Event:
        """Locate an event by its public code. Reveals nothing private."""
        event = self.events.get_by_event_code(event_code)
        if event is None:
            raise NotFoundError("Event not found")
        return event

    def host_plan(self, event_id: int) -> HostPlanResponse:
        """Upload limits the event inherits from its owner's plan."""
        event = self._load(event_id)
        limits = limits_for(UserRepository(self.db).get_plan_name(event.created_by))
        return HostPlanResponse(
            plan_name=limits.plan.value,
            max_file_size=limits.max_file_size_bytes,
            max_photos_per_event=limits.max_photos_per_event,
        )

    def _load(self, event_id: int) -> Event:
        event = self.events.get(event_id)
        if event is None:
            raise NotFoundError("Event not found")
        return event

    async def update_event(self, event_id: int, data: EventUpdate, requester: Requester) -> Event:
        event = self._load(event_id)
        if not can_manage(event, requester, self.events.get_member_role(event.id, requester.user_id)):
            raise ForbiddenError("Forbidden")

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if changes:
            event = self.events.update(event.id, changes)
            await bump_event_version(event.id)
            await bump_user_events_version(event.created_by)
        return event

    async def regenerate_access_code(self, event_id: int, requester: Requester) -> Event:
        """Rotate the private code; links and cookies with the old code stop working."""
        event = self._load(event_id)
        if not can_manage(event, requester, self.events.get_member_role(event.id, requester.user_id)):
            raise ForbiddenError("Forbidden")
        event = self.events.regenerate_access_code(event.id)
        await bump_user_events_version(event.created_by)
        return event

    async def delete_event(self, event_id: int, requester: Requester) -> None:
        """
        Delete an event and its photos. Only the creator or a super-admin may.

        Stored objects are removed best-effort after the rows are gone.
        """
        event = self._load(event_id)
        if not (is_owner(event, requester) or requester.is_admin):
            raise ForbiddenError("Only the event creator can delete this event")

        keys = [photo.s3_key for photo in self.photos.list_all_for_event(event.id)]
        owner_id = event.created_by

        removed = self.photos.delete_for_event(event.id)
        self.events.delete_members(event.id)
        self.events.delete(event.id)

        await bump_event_version(event_id)
        await bump_user_events_version(owner_id)

        if self.store is not None:
            await self._purge_objects(event_id, keys)

        logger.info(f"Event {event_id} deleted by user {requester.user_id} ({removed} photos)")

    async def _purge_objects(self, event_id: int, keys: List[str]) -> None:
        """Best-effort removal of everything the event left in the bucket."""
        for key in keys:
            await delete_stored_objects(self.store, key)

        # grants that were never finalized leave objects without rows
        try:
            leftovers = await run_blocking(self.store.list, photo_key_prefix(event_id))
        except Exception as e:
            logger.warning(f"Could not list leftover objects of event {event_id}: {e}")
            return
        for obj in leftovers:
            try:
                await run_blocking(self.store.delete, obj["key"])
            except Exception as e:
                logger.warning(f"Failed to delete stored object {obj['key']}: {e}")

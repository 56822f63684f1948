"""Photo reads and moderation shared by the photo and gallery routes."""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from guestlens.app.config import settings
from guestlens.core.access import Requester, can_access, can_manage, resolve_access_code
from guestlens.core.cache import build_event_scope
from guestlens.core.cache_utils import bump_event_version, get_or_compute
from guestlens.core.exceptions import ForbiddenError, InvalidInputError, NotFoundError, UpstreamError
from guestlens.models.event import Event
from guestlens.models.photo import Photo
from guestlens.repositories.event_repo import EventRepository
from guestlens.repositories.photo_repo import PhotoRepository
from guestlens.schemas.photo import EventStats, GalleryPage, PhotoResponse
from guestlens.services.storage.base import ObjectStore, derive_thumbnail_key
from guestlens.services.storage.s3 import S3ServiceError
from guestlens.utils.concurrency import run_blocking

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


@dataclass
class PhotoContext:
    photo: Photo
    event: Event
    requester: Requester
    can_manage: bool


def photo_url(photo_id: int) -> str:
    return f"{settings.API_V1_PREFIX}/photos/{photo_id}"


def thumbnail_url(photo_id: int) -> str:
    return f"{photo_url(photo_id)}/thumb"


def effective_requester(
    event: Event,
    requester: Requester,
    headers: Mapping[str, str],
    cookies: Mapping[str, str],
) -> Requester:
    """Requester carrying the access code presented for this event."""
    return requester.with_code(
        resolve_access_code(requester.access_code, headers, cookies, event.event_code)
    )


def load_viewable_photo(
    db: Session,
    photo_id: int,
    requester: Requester,
    headers: Mapping[str, str],
    cookies: Mapping[str, str],
) -> PhotoContext:
    """
    Load a photo the requester may see.

    Pending photos are visible only to event managers.

    Raises:
        NotFoundError: Photo or its event does not exist
        ForbiddenError: Access denied
    """
    photo = PhotoRepository(db).get(photo_id)
    if photo is None:
        raise NotFoundError("Photo not found")
    events = EventRepository(db)
    event = events.get(photo.event_id)
    if event is None:
        raise NotFoundError("Event not found")

    requester = effective_requester(event, requester, headers, cookies)
    role = events.get_member_role(event.id, requester.user_id)
    if not can_access(event, requester, role):
        raise ForbiddenError("Forbidden")

    manager = can_manage(event, requester, role)
    if not photo.is_approved and not manager:
        raise NotFoundError("Photo not found")
    return PhotoContext(photo=photo, event=event, requester=requester, can_manage=manager)


def local_photo_path(file_path: str) -> Path:
    """Resolve a legacy local locator inside LOCAL_UPLOAD_DIR."""
    base = Path(settings.LOCAL_UPLOAD_DIR).resolve()
    path = (base / file_path.lstrip("/")).resolve()
    if base != path and base not in path.parents:
        raise InvalidInputError("Invalid photo path")
    return path


async def original_location(photo: Photo, store: ObjectStore, download: bool = False) -> Tuple[str, str]:
    """
    Where the original bytes live.

    Returns:
        ("url", signed_url) for bucket objects, ("file", path) for local files
    """
    key = photo.s3_key
    if key is None:
        path = local_photo_path(photo.file_path)
        if not path.is_file():
            raise NotFoundError("Photo file not found")
        return "file", str(path)

    try:
        url = await run_blocking(
            store.sign_get,
            key,
            settings.SIGNED_URL_TTL_SECS,
            photo.display_filename,
            not download,
        )
    except S3ServiceError as e:
        raise UpstreamError(f"Failed to sign download URL: {e}")
    return "url", url


def _require_manager(db: Session, photo_id: int, requester: Requester) -> Tuple[Photo, Event]:
    photo = PhotoRepository(db).get(photo_id)
    if photo is None:
        raise NotFoundError("Photo not found")
    events = EventRepository(db)
    event = events.get(photo.event_id)
    if event is None:
        raise NotFoundError("Event not found")
    if not can_manage(event, requester, events.get_member_role(event.id, requester.user_id)):
        raise ForbiddenError("Forbidden")
    return photo, event


async def approve_photo(db: Session, photo_id: int, requester: Requester, approved: bool = True) -> Photo:
    """Set a photo's moderation state."""
    photo, event = _require_manager(db, photo_id, requester)
    photo = PhotoRepository(db).set_approved(photo.id, approved)
    await bump_event_version(event.id)
    logger.info(f"Photo {photo.id} approved={approved} by user {requester.user_id}")
    return photo


async def delete_stored_objects(store: ObjectStore, key: Optional[str]) -> None:
    """Best-effort removal of an original and its derivative."""
    if not key:
        return
    for target in (key, derive_thumbnail_key(key, settings.THUMBNAIL_SIZE_TAG)):
        try:
            await run_blocking(store.delete, target)
        except Exception as e:
            logger.warning(f"Failed to delete stored object {target}: {e}")


async def delete_photo(db: Session, store: ObjectStore, photo_id: int, requester: Requester) -> None:
    """Delete the row, then best-effort remove the stored objects."""
    photo, event = _require_manager(db, photo_id, requester)
    key = photo.s3_key
    PhotoRepository(db).delete(photo.id)
    await bump_event_version(event.id)
    await delete_stored_objects(store, key)
    logger.info(f"Photo {photo_id} deleted from event {event.id} by user {requester.user_id}")


async def list_event_photos(
    db: Session,
    event_id: int,
    requester: Requester,
    headers: Mapping[str, str],
    cookies: Mapping[str, str],
    page: int = 1,
    page_size: int = 50,
) -> dict:
    """
    Gallery page for an event, cached under the event scope version.

    Managers see pending photos too; everyone else sees approved ones only.
    """
    events = EventRepository(db)
    event = events.get(event_id)
    if event is None:
        raise NotFoundError("Event not found")

    requester = effective_requester(event, requester, headers, cookies)
    role = events.get_member_role(event.id, requester.user_id)
    if not can_access(event, requester, role):
        raise ForbiddenError("Forbidden")

    page = max(1, page)
    page_size = max(1, min(page_size, MAX_PAGE_SIZE))
    approved_only = not can_manage(event, requester, role)
    params = f"{'approved' if approved_only else 'all'}:{page}:{page_size}"

    async def compute() -> dict:
        photos, total = PhotoRepository(db).list_for_event(
            event.id,
            approved_only=approved_only,
            skip=(page - 1) * page_size,
            limit=page_size,
        )
        items = []
        for photo in photos:
            item = PhotoResponse.model_validate(photo)
            item.url = photo_url(photo.id)
            item.thumbnail_url = thumbnail_url(photo.id)
            items.append(item)
        page_model = GalleryPage(photos=items, total=total, page=page, page_size=page_size)
        return page_model.model_dump(mode="json", by_alias=True)

    return await get_or_compute(
        build_event_scope(event.id),
        "photos",
        params,
        settings.EVENT_PHOTOS_TTL_SECS,
        compute,
    )


async def event_stats(
    db: Session,
    event_id: int,
    requester: Requester,
    headers: Mapping[str, str],
    cookies: Mapping[str, str],
) -> dict:
    """Photo counts and stored bytes of an event, cached with its gallery pages."""
    events = EventRepository(db)
    event = events.get(event_id)
    if event is None:
        raise NotFoundError("Event not found")

    requester = effective_requester(event, requester, headers, cookies)
    if not can_access(event, requester, events.get_member_role(event.id, requester.user_id)):
        raise ForbiddenError("Forbidden")

    async def compute() -> dict:
        stats = EventStats(**PhotoRepository(db).get_event_stats(event.id))
        return stats.model_dump(by_alias=True)

    return await get_or_compute(
        build_event_scope(event.id),
        "stats",
        "all",
        settings.EVENT_PHOTOS_TTL_SECS,
        compute,
    )

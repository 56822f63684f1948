"""
Upload Service
==============

Two halves of the direct-to-storage upload flow:

1. ``UploadGrantIssuer`` checks access and plan quota, then signs one PUT URL
   per accepted file. Clients upload bytes straight to the bucket.
2. ``UploadFinalizer`` turns uploaded objects into photo rows, one
   transaction per item, so a retried finalize never duplicates a photo.
"""
import enum
import logging
import secrets
import time
from typing import List, Mapping, Optional, Sequence, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from guestlens.app.config import settings
from guestlens.core.access import Requester, can_access, can_upload, resolve_access_code
from guestlens.core.cache_utils import bump_event_version
from guestlens.core.exceptions import (
    CapacityExceededError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from guestlens.core.plans import PlanLimits, limits_for, remaining_capacity
from guestlens.core.rate_limiter import enforce_rate_limit
from guestlens.models.event import Event
from guestlens.repositories.event_repo import EventRepository
from guestlens.repositories.photo_repo import DuplicatePhotoError, PhotoRepository
from guestlens.repositories.user_repo import UserRepository
from guestlens.schemas.upload import (
    FinalizeItem,
    FinalizeResponse,
    PresignResponse,
    UploadCandidate,
    UploadGrant,
)
from guestlens.services.storage.base import ObjectStore, generate_photo_key, photo_key_prefix
from guestlens.utils.concurrency import run_blocking, run_bounded
from guestlens.utils.parsing import coerce_positive_int

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"


class Trust(str, enum.Enum):
    """How much the caller is trusted; selects the signing concurrency."""
    host = "host"
    guest = "guest"


def parse_event_id(value: Union[int, str, None]) -> int:
    event_id = coerce_positive_int(value)
    if event_id is None:
        raise InvalidInputError("Invalid event ID")
    return event_id


def load_event(db: Session, event_id: int) -> Event:
    event = EventRepository(db).get(event_id)
    if event is None:
        raise NotFoundError("Event not found")
    return event


def filter_candidates(
    candidates: Sequence[UploadCandidate],
    limits: PlanLimits,
    remaining: Optional[int],
) -> List[UploadCandidate]:
    """
    Keep images with a positive size within the plan ceiling, in input order,
    truncated to the remaining capacity (None means unbounded).
    """
    accepted = []
    for candidate in candidates:
        if remaining is not None and len(accepted) >= remaining:
            break
        if not candidate.type or not candidate.type.lower().startswith("image/"):
            continue
        if not candidate.size or candidate.size <= 0:
            continue
        if candidate.size > limits.max_file_size_bytes:
            continue
        accepted.append(candidate)
    return accepted


class UploadGrantIssuer:
    """Issues signed PUT URLs under access and quota rules."""

    def __init__(self, db: Session, store: ObjectStore):
        self.db = db
        self.store = store
        self.events = EventRepository(db)
        self.photos = PhotoRepository(db)
        self.users = UserRepository(db)

    async def issue_grants(
        self,
        event_id: Union[int, str],
        candidates: Sequence[UploadCandidate],
        requester: Requester,
        trust: Trust = Trust.host,
        client: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        cookies: Optional[Mapping[str, str]] = None,
    ) -> PresignResponse:
        """
        Issue upload grants for the accepted subset of ``candidates``.

        Args:
            event_id: Target event (coerced to a positive int)
            candidates: Files the client wants to upload
            requester: Identity and presented access code
            trust: host or guest, selects signing concurrency
            client: Client IP, rate limited on the guest path
            headers: Request headers, for the x-access-code fallback
            cookies: Request cookies, for the per-event access cookie

        Returns:
            PresignResponse with one grant per accepted file

        Raises:
            InvalidInputError: Bad id, no files, or nothing acceptable
            NotFoundError: Event does not exist
            ForbiddenError: Access or upload denied
            CapacityExceededError: Event photo cap reached
            RateLimitedError: Guest presign ceiling exceeded
        """
        event_id = parse_event_id(event_id)
        if not candidates:
            raise InvalidInputError("No files provided")

        if trust == Trust.guest and client:
            await enforce_rate_limit(
                "guest-presign",
                event_id,
                client,
                settings.GUEST_PRESIGN_RATE_LIMIT,
                settings.GUEST_PRESIGN_RATE_WINDOW_SECS,
            )

        event = load_event(self.db, event_id)
        requester = requester.with_code(
            resolve_access_code(requester.access_code, headers or {}, cookies or {}, event.event_code)
        )
        role = self.events.get_member_role(event.id, requester.user_id)
        if not can_access(event, requester, role):
            raise ForbiddenError("Forbidden")
        if not can_upload(event, requester, role):
            raise ForbiddenError("Uploads are not allowed for this event")

        limits = limits_for(self.users.get_plan_name(event.created_by))
        remaining = remaining_capacity(limits, self.photos.count_for_event(event.id))
        if remaining == 0:
            raise CapacityExceededError("Photo limit for this event has been reached.")

        accepted = filter_candidates(candidates, limits, remaining)
        if not accepted:
            raise InvalidInputError("No valid files to upload")

        concurrency = (
            settings.GUEST_SIGNING_CONCURRENCY if trust == Trust.guest
            else settings.HOST_SIGNING_CONCURRENCY
        )

        async def sign(candidate: UploadCandidate) -> UploadGrant:
            key = generate_photo_key(
                event.id,
                candidate.name,
                int(time.time() * 1000),
                secrets.token_hex(6),
            )
            url = await run_blocking(
                self.store.sign_put, key, settings.SIGNED_URL_TTL_SECS, candidate.type
            )
            return UploadGrant(
                key=key,
                url=url,
                original_filename=candidate.name,
                mime_type=candidate.type,
                file_size=candidate.size,
                client_id=candidate.client_id,
            )

        results = await run_bounded(accepted, sign, concurrency)
        grants = []
        for result in results:
            if result.ok:
                grants.append(result.value)
            else:
                logger.error(f"Failed to sign upload for event {event.id}: {result.error}")

        if not grants:
            raise InvalidInputError("No valid files to upload")

        logger.info(
            f"Issued {len(grants)}/{len(candidates)} upload grants for event {event.id} ({trust.value})"
        )
        return PresignResponse(uploads=grants, max_file_size=limits.max_file_size_bytes)


class UploadFinalizer:
    """Materializes uploaded objects into photo rows."""

    def __init__(self, db: Session, store: ObjectStore, verify_objects: Optional[bool] = None):
        self.db = db
        self.store = store
        self.events = EventRepository(db)
        self.photos = PhotoRepository(db)
        self.verify_objects = (
            settings.FINALIZE_VERIFY_OBJECTS if verify_objects is None else verify_objects
        )

    async def finalize(
        self,
        event_id: Union[int, str],
        items: Sequence[FinalizeItem],
        requester: Optional[Requester] = None,
        guest_name: Optional[str] = None,
        guest_email: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        cookies: Optional[Mapping[str, str]] = None,
    ) -> FinalizeResponse:
        """
        Record uploaded objects as photos.

        ``requester`` set means the authenticated path; None means guest, which
        requires ``guest_name`` and an event that allows guest uploads.

        Raises:
            InvalidInputError: Bad id, no items, missing guest name, nothing recorded
            NotFoundError: Event does not exist
            ForbiddenError: Uploads not allowed
        """
        event_id = parse_event_id(event_id)
        if not items:
            raise InvalidInputError("No items")

        event = load_event(self.db, event_id)

        uploaded_by = None
        if requester is None:
            if not event.allow_guest_uploads:
                raise ForbiddenError("Guest uploads are disabled for this event")
            guest_name = (guest_name or "").strip()
            if not guest_name:
                raise InvalidInputError("Guest name is required")
            guest_email = (guest_email or "").strip() or None
        else:
            requester = requester.with_code(
                resolve_access_code(requester.access_code, headers or {}, cookies or {}, event.event_code)
            )
            role = self.events.get_member_role(event.id, requester.user_id)
            if not can_upload(event, requester, role):
                raise ForbiddenError("Forbidden")
            uploaded_by = requester.user_id
            guest_name = guest_email = None

        prefix = photo_key_prefix(event.id)
        created = 0
        duplicates = 0

        for item in items:
            if not item.key.startswith(prefix):
                logger.warning(f"Ignoring finalize key outside event {event.id}: {item.key}")
                continue

            if self.photos.get_by_s3_key(item.key):
                duplicates += 1
                continue

            if self.verify_objects and not await self._object_exists(item.key):
                logger.warning(f"Finalize skipped missing object: {item.key}")
                continue

            try:
                self.photos.create_photo(
                    event_id=event.id,
                    s3_key=item.key,
                    original_filename=item.original_filename or item.key.rsplit("/", 1)[-1],
                    mime_type=item.mime_type or DEFAULT_MIME_TYPE,
                    file_size=item.file_size or 0,
                    is_approved=not event.require_approval,
                    uploaded_by=uploaded_by,
                    guest_name=guest_name,
                    guest_email=guest_email,
                )
                created += 1
            except DuplicatePhotoError:
                duplicates += 1
            except SQLAlchemyError as e:
                logger.error(f"Failed to record photo {item.key}: {e}")

        if created == 0 and duplicates == 0:
            raise InvalidInputError("No valid items")

        if created:
            await bump_event_version(event.id)

        logger.info(f"Finalized event {event.id}: {created} created, {duplicates} duplicates")
        return FinalizeResponse(count=created, duplicates=duplicates)

    async def _object_exists(self, key: str) -> bool:
        try:
            return await run_blocking(self.store.head, key)
        except Exception as e:
            logger.error(f"HEAD failed for {key}: {e}")
            return False

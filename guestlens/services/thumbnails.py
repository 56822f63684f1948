"""
Thumbnail Resolver
==================

Read-through cache over the object store: the derivative object's existence
is the hit signal. On a miss the original is downloaded, transformed off the
event loop and written back best-effort. Two concurrent misses may both
generate; the writes are idempotent.

Any failure degrades to a redirect to the original photo route.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from sqlalchemy.orm import Session

from guestlens.app.config import settings
from guestlens.core.access import Requester
from guestlens.services.photos import load_viewable_photo, photo_url
from guestlens.services.storage.base import ObjectStore, derive_thumbnail_key
from guestlens.utils.concurrency import run_blocking
from guestlens.utils.images import THUMBNAIL_MIME_TYPE, make_thumbnail

logger = logging.getLogger(__name__)


@dataclass
class ThumbnailResult:
    """Either image bytes to serve or a URL to redirect to."""
    data: Optional[bytes] = None
    content_type: str = THUMBNAIL_MIME_TYPE
    redirect_to: Optional[str] = None
    generated: bool = False


class ThumbnailResolver:
    def __init__(self, db: Session, store: ObjectStore):
        self.db = db
        self.store = store

    async def resolve(
        self,
        photo_id: int,
        requester: Requester,
        headers: Mapping[str, str],
        cookies: Mapping[str, str],
    ) -> ThumbnailResult:
        """
        Serve the small derivative of a photo.

        Raises:
            NotFoundError: Photo does not exist
            ForbiddenError: Access denied
        """
        context = load_viewable_photo(self.db, photo_id, requester, headers, cookies)
        original = photo_url(context.photo.id)

        key = context.photo.s3_key
        if key is None:
            return ThumbnailResult(redirect_to=original)

        thumb_key = derive_thumbnail_key(key, settings.THUMBNAIL_SIZE_TAG)

        cached = await self._read_derivative(thumb_key)
        if cached is not None:
            return cached

        async def generate() -> bytes:
            source = await run_blocking(self.store.get, key)
            return await run_blocking(
                make_thumbnail,
                source.data,
                max_dimension=settings.THUMBNAIL_MAX_DIMENSION,
                quality=settings.THUMBNAIL_JPEG_QUALITY,
            )

        try:
            data = await asyncio.wait_for(generate(), timeout=settings.THUMBNAIL_TIMEOUT_SECS)
        except asyncio.TimeoutError:
            logger.warning(f"Thumbnail generation timed out for photo {photo_id}")
            return ThumbnailResult(redirect_to=original)
        except Exception as e:
            logger.warning(f"Thumbnail generation failed for photo {photo_id}: {e}")
            return ThumbnailResult(redirect_to=original)

        try:
            await run_blocking(self.store.put, thumb_key, data, THUMBNAIL_MIME_TYPE)
        except Exception as e:
            logger.warning(f"Failed to persist thumbnail {thumb_key}: {e}")

        return ThumbnailResult(data=data, generated=True)

    async def _read_derivative(self, thumb_key: str) -> Optional[ThumbnailResult]:
        try:
            if not await run_blocking(self.store.head, thumb_key):
                return None
            stored = await run_blocking(self.store.get, thumb_key)
        except Exception as e:
            logger.warning(f"Thumbnail lookup failed for {thumb_key}: {e}")
            return None
        return ThumbnailResult(data=stored.data, content_type=stored.content_type or THUMBNAIL_MIME_TYPE)

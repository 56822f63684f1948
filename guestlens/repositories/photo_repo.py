"""Photo repository for database operations."""
from sqlalchemy.orm import Session
from sqlalchemy import func, desc
from sqlalchemy.exc import IntegrityError
from typing import Optional, List, Tuple, Dict, Any

from guestlens.repositories.base import BaseRepository
from guestlens.models.photo import Photo, S3_PREFIX


class DuplicatePhotoError(Exception):
    """A photo with the same storage locator is already recorded."""


class PhotoRepository(BaseRepository[Photo]):
    """Repository for photo database operations."""

    def __init__(self, db: Session):
        super().__init__(Photo, db)

    def create_photo(
        self,
        event_id: int,
        s3_key: str,
        original_filename: str,
        mime_type: str,
        file_size: int,
        is_approved: bool,
        uploaded_by: Optional[int] = None,
        guest_name: Optional[str] = None,
        guest_email: Optional[str] = None,
    ) -> Photo:
        """
        Create photo record for an object already in the bucket.

        Raises:
            DuplicatePhotoError: If the key is already recorded
        """
        photo = Photo(
            event_id=event_id,
            file_path=f'{S3_PREFIX}{s3_key}',
            filename=s3_key.rsplit('/', 1)[-1] or original_filename,
            original_filename=original_filename,
            mime_type=mime_type,
            file_size=file_size,
            is_approved=is_approved,
            uploaded_by=uploaded_by,
            guest_name=guest_name,
            guest_email=guest_email,
        )
        self.db.add(photo)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if self.get_by_s3_key(s3_key):
                raise DuplicatePhotoError(s3_key) from e
            raise
        self.db.refresh(photo)
        return photo

    def get_by_s3_key(self, s3_key: str) -> Optional[Photo]:
        return self.get_by_field('file_path', f'{S3_PREFIX}{s3_key}')

    def count_for_event(self, event_id: int) -> int:
        """All photos of an event, approved and pending."""
        return self.count(filters={'event_id': event_id})

    def list_for_event(
        self,
        event_id: int,
        approved_only: bool = True,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[List[Photo], int]:
        """
        Photos of an event, newest first.

        Returns:
            Tuple of (photos list, total count)
        """
        query = self.db.query(Photo).filter(Photo.event_id == event_id)
        if approved_only:
            query = query.filter(Photo.is_approved.is_(True))

        total = query.count()
        photos = query.order_by(desc(Photo.uploaded_at), desc(Photo.id)).offset(skip).limit(limit).all()
        return photos, total

    def get_event_stats(self, event_id: int) -> Dict[str, Any]:
        """Counts and total bytes of an event's photos."""
        total, approved, total_bytes = self.db.query(
            func.count(Photo.id),
            func.count(Photo.id).filter(Photo.is_approved.is_(True)),
            func.coalesce(func.sum(Photo.file_size), 0),
        ).filter(Photo.event_id == event_id).one()
        return {
            'total_photos': total or 0,
            'approved_photos': approved or 0,
            'pending_photos': (total or 0) - (approved or 0),
            'total_size_bytes': int(total_bytes or 0),
        }

    def set_approved(self, photo_id: int, approved: bool = True) -> Optional[Photo]:
        return self.update(photo_id, {'is_approved': approved})

    def list_all_for_event(self, event_id: int) -> List[Photo]:
        return self.db.query(Photo).filter(Photo.event_id == event_id).all()

    def delete_for_event(self, event_id: int) -> int:
        count = self.db.query(Photo).filter(Photo.event_id == event_id).delete(
            synchronize_session=False
        )
        self.db.commit()
        return count

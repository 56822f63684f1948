"""Photo model."""
from datetime import datetime

from sqlalchemy import Column, Integer, String, BigInteger, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from guestlens.db.base import Base

S3_PREFIX = 's3:'


class Photo(Base):
    """Photo uploaded to an event, stored either in the bucket or on local disk."""

    __tablename__ = 'photos'

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey('events.id', ondelete='CASCADE'), nullable=False, index=True)
    uploaded_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True)

    # Storage: "s3:<key>" for bucket objects, a relative path for legacy local files
    file_path = Column(String(512), nullable=False, unique=True, index=True)

    # File metadata
    filename = Column(String(255), nullable=False)
    original_filename = Column(String(255), nullable=False)
    mime_type = Column(String(100), nullable=False, default='image/jpeg')
    file_size = Column(BigInteger, nullable=False)

    # Guest uploader
    guest_name = Column(String(100), nullable=True)
    guest_email = Column(String(255), nullable=True)

    # Moderation
    is_approved = Column(Boolean, default=True, nullable=False, index=True)
    uploaded_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Relationships
    event = relationship('Event', back_populates='photos')
    uploader = relationship('User', foreign_keys=[uploaded_by])

    @property
    def s3_key(self):
        """Object key when stored in the bucket, otherwise None."""
        if self.file_path and self.file_path.startswith(S3_PREFIX):
            return self.file_path[len(S3_PREFIX):]
        return None

    @property
    def display_filename(self) -> str:
        return self.original_filename or self.filename or f'photo-{self.id}'

    def __repr__(self) -> str:
        return f'<Photo(id={self.id}, event_id={self.event_id}, file_path={self.file_path})>'

"""Event model."""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from guestlens.db.base import Base
from .base import TimestampMixin


class Event(Base, TimestampMixin):
    """Event that guests upload photos to."""

    __tablename__ = 'events'

    id = Column(Integer, primary_key=True, index=True)
    created_by = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)

    # Event details
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    date = Column(DateTime, nullable=False)

    # Codes: event_code is public, access_code is the private secret
    event_code = Column(String(16), unique=True, nullable=False, index=True)
    access_code = Column(String(16), unique=True, nullable=False, index=True)

    # Policy flags
    is_public = Column(Boolean, default=False, nullable=False)
    allow_guest_uploads = Column(Boolean, default=True, nullable=False)
    require_approval = Column(Boolean, default=False, nullable=False)

    # Relationships
    owner = relationship('User', back_populates='events', foreign_keys=[created_by])
    photos = relationship('Photo', back_populates='event', cascade='all, delete-orphan', passive_deletes=True)
    members = relationship('EventMember', back_populates='event', cascade='all, delete-orphan', passive_deletes=True)

    def __repr__(self) -> str:
        return f'<Event(id={self.id}, code={self.event_code}, name={self.name})>'

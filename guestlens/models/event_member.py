"""Event membership model."""
from sqlalchemy import Column, Integer, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship

from guestlens.db.base import Base
from .base import TimestampMixin
from .enums import MemberRole


class EventMember(Base, TimestampMixin):
    """Role granted to an account on a single event."""

    __tablename__ = 'event_members'
    __table_args__ = (
        UniqueConstraint('event_id', 'user_id', name='uq_event_members_event_user'),
    )

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey('events.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    role = Column(SQLEnum(MemberRole), default=MemberRole.viewer, nullable=False)

    event = relationship('Event', back_populates='members')
    user = relationship('User', back_populates='memberships')

    def __repr__(self) -> str:
        return f'<EventMember(event_id={self.event_id}, user_id={self.user_id}, role={self.role})>'

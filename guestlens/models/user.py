"""User model."""
from sqlalchemy import Column, Integer, String, Boolean, Enum as SQLEnum
from sqlalchemy.orm import relationship

from guestlens.db.base import Base
from .base import TimestampMixin
from .enums import UserRole


class User(Base, TimestampMixin):
    """Account hosting events. The plan comes from the subscription system."""

    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(SQLEnum(UserRole), default=UserRole.member, nullable=False)
    plan_name = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    events = relationship('Event', back_populates='owner', foreign_keys='Event.created_by')
    memberships = relationship('EventMember', back_populates='user', cascade='all, delete-orphan')

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin

    def __repr__(self) -> str:
        return f'<User(id={self.id}, email={self.email}, role={self.role})>'

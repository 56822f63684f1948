"""Import all models for Alembic."""
from .base import TimestampMixin
from .enums import UserRole, MemberRole, PlanName
from .user import User
from .event import Event
from .event_member import EventMember
from .photo import Photo, S3_PREFIX

__all__ = [
    "TimestampMixin",
    "UserRole",
    "MemberRole",
    "PlanName",
    "User",
    "Event",
    "EventMember",
    "Photo",
    "S3_PREFIX",
]

"""Event schemas."""
import re
from pydantic import ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime

from guestlens.schemas.upload import CamelModel


def clean_event_name(value: str) -> str:
    """Trim and collapse inner whitespace; stored names match the creation guard key."""
    value = re.sub(r'\s+', ' ', value.strip())
    if not value:
        raise ValueError('Event name cannot be blank')
    return value


class EventCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    date: datetime
    description: Optional[str] = None
    location: Optional[str] = Field(default=None, max_length=255)
    is_public: bool = False
    allow_guest_uploads: bool = True
    require_approval: bool = False

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return clean_event_name(v)


class EventUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    date: Optional[datetime] = None
    description: Optional[str] = None
    location: Optional[str] = Field(default=None, max_length=255)
    is_public: Optional[bool] = None
    allow_guest_uploads: Optional[bool] = None
    require_approval: Optional[bool] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else clean_event_name(v)


class EventResponse(CamelModel):
    """Host view of an event, including its private access code."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    location: Optional[str] = None
    date: datetime
    event_code: str
    access_code: str
    is_public: bool
    allow_guest_uploads: bool
    require_approval: bool
    created_by: int
    created_at: Optional[datetime] = None


class EventListResponse(CamelModel):
    events: List[EventResponse]
    total: int


class EventPublicResponse(CamelModel):
    """What a guest sees when locating an event by its public code."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    location: Optional[str] = None
    date: datetime
    event_code: str
    is_public: bool
    allow_guest_uploads: bool
    require_approval: bool


class HostPlanResponse(CamelModel):
    plan_name: str
    max_file_size: int
    max_photos_per_event: Optional[int] = None

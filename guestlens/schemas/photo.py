"""Photo schemas."""
from pydantic import ConfigDict, Field
from typing import Optional, List, Any
from datetime import datetime

from guestlens.schemas.upload import CamelModel


class PhotoResponse(CamelModel):
    """Gallery entry. Image bytes are served by the photo and thumbnail routes."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: int
    original_filename: str
    mime_type: str
    file_size: int
    is_approved: bool
    uploaded_at: datetime
    uploaded_by: Optional[int] = None
    guest_name: Optional[str] = None
    url: Optional[str] = None
    thumbnail_url: Optional[str] = None


class GalleryPage(CamelModel):
    photos: List[PhotoResponse]
    total: int
    page: int
    page_size: int


class PhotoApproveResponse(CamelModel):
    id: int
    is_approved: bool


class BulkDownloadRequest(CamelModel):
    """Photo ids are coerced leniently; non-numeric and non-positive ids are dropped."""
    photo_ids: List[Any] = Field(default_factory=list)
    access_code: Optional[str] = None


class EventStats(CamelModel):
    total_photos: int
    approved_photos: int
    pending_photos: int
    total_size_bytes: int

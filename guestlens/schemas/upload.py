"""Upload schemas for the presign and finalize flow."""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List, Union


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, serializes camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UploadCandidate(CamelModel):
    """File the client intends to upload. Invalid candidates are filtered, not rejected."""
    name: str = Field(default='', max_length=255, description="Original filename")
    type: str = Field(default='', description="MIME type reported by the client")
    size: Optional[int] = Field(default=None, description="File size in bytes")
    client_id: Optional[str] = Field(default=None, description="Opaque id echoed in the grant")


class PresignRequest(CamelModel):
    """Request for upload grants."""
    event_id: Union[int, str] = Field(..., description="Target event ID")
    files: List[UploadCandidate] = Field(default_factory=list)
    access_code: Optional[str] = Field(default=None, description="Event access code")


class UploadGrant(CamelModel):
    """Signed permission to PUT one object."""
    key: str
    url: str
    original_filename: str
    mime_type: str
    file_size: int
    client_id: Optional[str] = None


class PresignResponse(CamelModel):
    uploads: List[UploadGrant]
    max_file_size: int = Field(..., description="Plan file size ceiling in bytes")


class FinalizeItem(CamelModel):
    """Object the client finished uploading."""
    key: str = Field(..., min_length=1, max_length=500)
    original_filename: Optional[str] = Field(default=None, max_length=255)
    mime_type: Optional[str] = Field(default=None, max_length=100)
    file_size: Optional[int] = Field(default=None, ge=0)


class FinalizeRequest(CamelModel):
    event_id: Union[int, str]
    items: List[FinalizeItem] = Field(default_factory=list)
    access_code: Optional[str] = None


class GuestFinalizeRequest(CamelModel):
    event_id: Union[int, str]
    items: List[FinalizeItem] = Field(default_factory=list)
    guest_name: Optional[str] = Field(default=None, max_length=100)
    guest_email: Optional[str] = Field(default=None, max_length=255)


class FinalizeResponse(CamelModel):
    count: int = Field(..., description="Photos created by this call")
    duplicates: int = Field(0, description="Items whose key was already recorded")

"""Photo API endpoints: upload grants, finalize, serving, bulk download, moderation."""
from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import FileResponse, RedirectResponse, StreamingResponse
from sqlalchemy.orm import Session
from typing import Optional
from urllib.parse import urlencode

from guestlens.api.deps import (
    get_archive_fetcher,
    get_client_ip,
    get_current_user,
    get_db,
    get_optional_user,
    requester_for,
)
from guestlens.app.config import settings
from guestlens.models.user import User
from guestlens.schemas.photo import BulkDownloadRequest, PhotoApproveResponse
from guestlens.schemas.upload import (
    FinalizeRequest,
    FinalizeResponse,
    GuestFinalizeRequest,
    PresignRequest,
    PresignResponse,
)
from guestlens.services.archive import BulkArchiveStreamer
from guestlens.services.photos import approve_photo, delete_photo, load_viewable_photo, original_location
from guestlens.services.storage.base import ObjectStore
from guestlens.services.storage.s3 import get_object_store
from guestlens.services.thumbnails import ThumbnailResolver
from guestlens.services.uploads import Trust, UploadFinalizer, UploadGrantIssuer


router = APIRouter()


# ============================================================================
# UPLOAD FLOW
# ============================================================================

@router.post('/presign', response_model=PresignResponse)
async def presign_uploads(
    payload: PresignRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store)
):
    """Issue signed PUT URLs for an authenticated uploader (Step 1 of upload flow)."""
    issuer = UploadGrantIssuer(db, store)
    return await issuer.issue_grants(
        payload.event_id,
        payload.files,
        requester_for(current_user, payload.access_code),
        trust=Trust.host,
        headers=request.headers,
        cookies=request.cookies,
    )


@router.post('/guest/presign', response_model=PresignResponse)
async def presign_guest_uploads(
    payload: PresignRequest,
    request: Request,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store)
):
    """Issue signed PUT URLs for a guest holding the event's access code."""
    issuer = UploadGrantIssuer(db, store)
    return await issuer.issue_grants(
        payload.event_id,
        payload.files,
        requester_for(current_user, payload.access_code),
        trust=Trust.guest,
        client=get_client_ip(request),
        headers=request.headers,
        cookies=request.cookies,
    )


@router.post('/finalize', response_model=FinalizeResponse)
async def finalize_uploads(
    payload: FinalizeRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store)
):
    """Record uploaded objects as photos (Step 2 of upload flow)."""
    finalizer = UploadFinalizer(db, store)
    return await finalizer.finalize(
        payload.event_id,
        payload.items,
        requester=requester_for(current_user, payload.access_code),
        headers=request.headers,
        cookies=request.cookies,
    )


@router.post('/guest/finalize', response_model=FinalizeResponse)
async def finalize_guest_uploads(
    payload: GuestFinalizeRequest,
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store)
):
    # no access code here: guest presign already checked it before issuing the keys
    finalizer = UploadFinalizer(db, store)
    return await finalizer.finalize(
        payload.event_id,
        payload.items,
        guest_name=payload.guest_name,
        guest_email=payload.guest_email,
    )


# ============================================================================
# BULK DOWNLOAD
# ============================================================================

@router.post('/bulk-download')
async def bulk_download(
    payload: BulkDownloadRequest,
    request: Request,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    fetcher=Depends(get_archive_fetcher)
):
    """Stream the selected photos as one ZIP archive."""
    streamer = BulkArchiveStreamer(db, store, fetcher=fetcher)
    plan = await streamer.prepare(
        payload.photo_ids,
        requester_for(current_user, payload.access_code),
        request.headers,
        request.cookies,
        get_client_ip(request),
    )
    return StreamingResponse(
        streamer.stream(plan),
        media_type='application/zip',
        headers=plan.headers,
    )


# ============================================================================
# SERVING
# ============================================================================

def _with_code(url: str, code: Optional[str]) -> str:
    if not code:
        return url
    return f"{url}?{urlencode({'code': code})}"


@router.get('/{photo_id}')
async def get_photo(
    photo_id: int,
    request: Request,
    code: Optional[str] = Query(None, description="Event access code"),
    download: bool = Query(False),
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store)
):
    """Serve the original: redirect to a signed URL, or the file for legacy local photos."""
    context = load_viewable_photo(
        db, photo_id, requester_for(current_user, code), request.headers, request.cookies
    )
    kind, location = await original_location(context.photo, store, download=download)
    if kind == 'url':
        return RedirectResponse(location, status_code=status.HTTP_302_FOUND)
    return FileResponse(
        location,
        media_type=context.photo.mime_type,
        filename=context.photo.display_filename if download else None,
    )


@router.get('/{photo_id}/thumb')
async def get_photo_thumbnail(
    photo_id: int,
    request: Request,
    code: Optional[str] = Query(None, description="Event access code"),
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store)
):
    """Small JPEG derivative, generated on first request."""
    resolver = ThumbnailResolver(db, store)
    result = await resolver.resolve(
        photo_id, requester_for(current_user, code), request.headers, request.cookies
    )
    if result.redirect_to:
        return RedirectResponse(_with_code(result.redirect_to, code), status_code=status.HTTP_302_FOUND)
    return Response(
        content=result.data,
        media_type=result.content_type,
        headers={'Cache-Control': settings.THUMBNAIL_CACHE_CONTROL},
    )


# ============================================================================
# MODERATION
# ============================================================================

@router.post('/{photo_id}/approve', response_model=PhotoApproveResponse)
async def approve(
    photo_id: int,
    approved: bool = Query(True),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    photo = await approve_photo(db, photo_id, requester_for(current_user), approved=approved)
    return PhotoApproveResponse(id=photo.id, is_approved=photo.is_approved)


@router.delete('/{photo_id}', status_code=status.HTTP_204_NO_CONTENT)
async def remove_photo(
    photo_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store)
):
    await delete_photo(db, store, photo_id, requester_for(current_user))
    return Response(status_code=status.HTTP_204_NO_CONTENT)

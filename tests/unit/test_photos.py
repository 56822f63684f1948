import pytest

from guestlens.app.config import settings
from guestlens.core.access import Requester
from guestlens.core.exceptions import ForbiddenError, InvalidInputError, NotFoundError
from guestlens.models import MemberRole
from guestlens.repositories.photo_repo import PhotoRepository
from guestlens.services.photos import (
    approve_photo,
    delete_photo,
    event_stats,
    list_event_photos,
    load_viewable_photo,
    local_photo_path,
    original_location,
)


@pytest.mark.asyncio
async def test_gallery_requires_access(db_session, event, make_photo):
    make_photo(event)
    with pytest.raises(ForbiddenError):
        await list_event_photos(db_session, event.id, Requester(), {}, {})

    page = await list_event_photos(db_session, event.id, Requester(), {"x-access-code": event.access_code}, {})
    assert page["total"] == 1
    photo = page["photos"][0]
    assert photo["url"] == f"{settings.API_V1_PREFIX}/photos/{photo['id']}"
    assert photo["thumbnailUrl"].endswith("/thumb")
    assert "pageSize" in page


@pytest.mark.asyncio
async def test_gallery_hides_pending_from_guests(db_session, make_event, make_photo):
    event = make_event(is_public=True)
    make_photo(event)
    make_photo(event, is_approved=False)

    guest_page = await list_event_photos(db_session, event.id, Requester(), {}, {})
    host_page = await list_event_photos(db_session, event.id, Requester(user_id=event.created_by), {}, {})
    assert guest_page["total"] == 1
    assert host_page["total"] == 2


@pytest.mark.asyncio
async def test_gallery_is_cached_until_event_changes(db_session, make_event, make_photo):
    event = make_event(is_public=True)
    make_photo(event)
    assert (await list_event_photos(db_session, event.id, Requester(), {}, {}))["total"] == 1

    # a row written behind the service's back is not visible until a bump
    make_photo(event)
    assert (await list_event_photos(db_session, event.id, Requester(), {}, {}))["total"] == 1

    pending = make_photo(event, is_approved=False)
    await approve_photo(db_session, pending.id, Requester(user_id=event.created_by))
    assert (await list_event_photos(db_session, event.id, Requester(), {}, {}))["total"] == 3


@pytest.mark.asyncio
async def test_page_size_is_clamped(db_session, make_event, make_photo):
    event = make_event(is_public=True)
    for _ in range(3):
        make_photo(event)
    page = await list_event_photos(db_session, event.id, Requester(), {}, {}, page=2, page_size=2)
    assert page["total"] == 3
    assert len(page["photos"]) == 1

    page = await list_event_photos(db_session, event.id, Requester(), {}, {}, page=0, page_size=1000)
    assert page["page"] == 1
    assert page["pageSize"] == 100


def test_pending_photo_is_not_found_for_guests(db_session, make_event, make_photo):
    event = make_event(is_public=True)
    pending = make_photo(event, is_approved=False)
    with pytest.raises(NotFoundError):
        load_viewable_photo(db_session, pending.id, Requester(), {}, {})

    context = load_viewable_photo(db_session, pending.id, Requester(user_id=event.created_by), {}, {})
    assert context.can_manage


def test_cookie_grants_access_to_private_photo(db_session, event, make_photo):
    photo = make_photo(event)
    cookies = {f"evt:{event.event_code}:access": event.access_code.lower()}
    context = load_viewable_photo(db_session, photo.id, Requester(), {}, cookies)
    assert context.photo.id == photo.id


@pytest.mark.asyncio
async def test_approve_requires_manager(db_session, event, other_user, make_photo, add_member):
    photo = make_photo(event, is_approved=False)
    with pytest.raises(ForbiddenError):
        await approve_photo(db_session, photo.id, Requester(user_id=other_user.id))

    add_member(event, other_user, MemberRole.manager)
    approved = await approve_photo(db_session, photo.id, Requester(user_id=other_user.id))
    assert approved.is_approved


@pytest.mark.asyncio
async def test_delete_photo_removes_objects(db_session, store, event, make_photo):
    photo = make_photo(event)
    store.put(photo.s3_key, b"data", "image/jpeg")

    await delete_photo(db_session, store, photo.id, Requester(user_id=event.created_by))
    assert PhotoRepository(db_session).get(photo.id) is None
    assert photo.s3_key not in store.objects


@pytest.mark.asyncio
async def test_delete_photo_tolerates_storage_failure(db_session, store, event, make_photo):
    photo = make_photo(event)
    store.fail_delete = True
    await delete_photo(db_session, store, photo.id, Requester(user_id=event.created_by))
    assert PhotoRepository(db_session).get(photo.id) is None


@pytest.mark.asyncio
async def test_original_location_signs_with_disposition(db_session, store, event, make_photo):
    photo = make_photo(event)
    kind, url = await original_location(photo, store, download=True)
    assert kind == "url"
    assert url.startswith("https://storage.test/events/")
    assert f"ttl={settings.SIGNED_URL_TTL_SECS}" in url


def test_local_path_cannot_escape_upload_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "LOCAL_UPLOAD_DIR", str(tmp_path))
    assert local_photo_path("a/b.jpg") == (tmp_path / "a" / "b.jpg").resolve()
    with pytest.raises(InvalidInputError):
        local_photo_path("../../etc/passwd")


@pytest.mark.asyncio
async def test_event_stats_cached_per_event_version(db_session, event, make_photo):
    make_photo(event, file_size=300)
    pending = make_photo(event, file_size=200, is_approved=False)
    owner = Requester(user_id=event.created_by)

    stats = await event_stats(db_session, event.id, owner, {}, {})
    assert stats == {"totalPhotos": 2, "approvedPhotos": 1, "pendingPhotos": 1, "totalSizeBytes": 500}

    await approve_photo(db_session, pending.id, owner)
    stats = await event_stats(db_session, event.id, owner, {}, {})
    assert stats["approvedPhotos"] == 2

    with pytest.raises(ForbiddenError):
        await event_stats(db_session, event.id, Requester(), {}, {})

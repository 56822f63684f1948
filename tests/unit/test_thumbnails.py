import cv2
import numpy as np
import pytest

from guestlens.app.config import settings
from guestlens.core.access import Requester
from guestlens.core.exceptions import ForbiddenError, NotFoundError
from guestlens.services import thumbnails as thumbnails_module
from guestlens.services.thumbnails import ThumbnailResolver


def jpeg(width=1600, height=1200):
    ok, buf = cv2.imencode(".jpg", np.full((height, width, 3), 128, dtype=np.uint8))
    return buf.tobytes()


@pytest.fixture
def stored_photo(store, event, make_photo):
    photo = make_photo(event)
    store.put(photo.s3_key, jpeg(), "image/jpeg")
    store.calls.clear()
    return photo


def owner(event):
    return Requester(user_id=event.created_by)


@pytest.mark.asyncio
async def test_miss_generates_and_persists(db_session, store, event, stored_photo):
    resolver = ThumbnailResolver(db_session, store)
    result = await resolver.resolve(stored_photo.id, owner(event), {}, {})

    thumb_key = f"events/{event.id}/photos/thumbs/sm-{stored_photo.filename}"
    assert result.generated
    assert result.content_type == "image/jpeg"
    assert store.ops("put") == [thumb_key]
    image = cv2.imdecode(np.frombuffer(result.data, dtype=np.uint8), cv2.IMREAD_COLOR)
    assert max(image.shape[:2]) == settings.THUMBNAIL_MAX_DIMENSION


@pytest.mark.asyncio
async def test_second_request_served_from_derivative(db_session, store, event, stored_photo):
    resolver = ThumbnailResolver(db_session, store)
    first = await resolver.resolve(stored_photo.id, owner(event), {}, {})
    store.calls.clear()

    second = await resolver.resolve(stored_photo.id, owner(event), {}, {})
    assert not second.generated
    assert second.data == first.data
    assert stored_photo.s3_key not in store.ops("get")
    assert store.ops("put") == []


@pytest.mark.asyncio
async def test_persist_failure_still_serves(db_session, store, event, stored_photo):
    store.fail_put = True
    result = await ThumbnailResolver(db_session, store).resolve(stored_photo.id, owner(event), {}, {})
    assert result.data and result.redirect_to is None


@pytest.mark.asyncio
async def test_missing_original_redirects(db_session, store, event, make_photo):
    photo = make_photo(event)
    result = await ThumbnailResolver(db_session, store).resolve(photo.id, owner(event), {}, {})
    assert result.redirect_to == f"/api/v1/photos/{photo.id}"


@pytest.mark.asyncio
async def test_corrupt_original_redirects(db_session, store, event, make_photo):
    photo = make_photo(event)
    store.put(photo.s3_key, b"garbage", "image/jpeg")
    result = await ThumbnailResolver(db_session, store).resolve(photo.id, owner(event), {}, {})
    assert result.redirect_to == f"/api/v1/photos/{photo.id}"


@pytest.mark.asyncio
async def test_transform_timeout_redirects(db_session, store, event, stored_photo, monkeypatch):
    import time

    def slow(*args, **kwargs):
        time.sleep(0.3)
        return b""

    monkeypatch.setattr(thumbnails_module, "make_thumbnail", slow)
    monkeypatch.setattr(settings, "THUMBNAIL_TIMEOUT_SECS", 0.05)
    result = await ThumbnailResolver(db_session, store).resolve(stored_photo.id, owner(event), {}, {})
    assert result.redirect_to is not None


@pytest.mark.asyncio
async def test_slow_original_fetch_redirects(db_session, store, event, stored_photo, monkeypatch):
    import time

    fetch = store.get

    def slow_get(key):
        if "/thumbs/" not in key:
            time.sleep(0.5)
        return fetch(key)

    monkeypatch.setattr(store, "get", slow_get)
    monkeypatch.setattr(settings, "THUMBNAIL_TIMEOUT_SECS", 0.05)

    started = time.monotonic()
    result = await ThumbnailResolver(db_session, store).resolve(stored_photo.id, owner(event), {}, {})

    assert result.redirect_to == f"/api/v1/photos/{stored_photo.id}"
    assert time.monotonic() - started < 0.4
    assert store.ops("put") == []


@pytest.mark.asyncio
async def test_local_photo_redirects_to_original(db_session, store, event, make_photo):
    photo = make_photo(event, file_path="legacy/1/a.jpg")
    result = await ThumbnailResolver(db_session, store).resolve(photo.id, owner(event), {}, {})
    assert result.redirect_to == f"/api/v1/photos/{photo.id}"
    assert store.calls == []


@pytest.mark.asyncio
async def test_access_is_checked(db_session, store, event, stored_photo):
    resolver = ThumbnailResolver(db_session, store)
    with pytest.raises(ForbiddenError):
        await resolver.resolve(stored_photo.id, Requester(), {}, {})

    cookies = {f"evt:{event.event_code}:access": event.access_code}
    result = await resolver.resolve(stored_photo.id, Requester(), {}, cookies)
    assert result.data


@pytest.mark.asyncio
async def test_unknown_photo(db_session, store):
    with pytest.raises(NotFoundError):
        await ThumbnailResolver(db_session, store).resolve(12345, Requester(), {}, {})

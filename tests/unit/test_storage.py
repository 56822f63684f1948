import io
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from guestlens.services.storage.base import derive_thumbnail_key, generate_photo_key, photo_key_prefix
from guestlens.services.storage.s3 import S3Service, S3ServiceError


def _client_error(code):
    return ClientError({"Error": {"Code": code, "Message": code}}, "HeadObject")


def test_generate_photo_key():
    key = generate_photo_key(12, "Beach Day.JPG", 1718000000000, "a1b2c3")
    assert key == "events/12/photos/1718000000000-a1b2c3.jpg"
    assert key.startswith(photo_key_prefix(12))
    assert generate_photo_key(1, "noext", 1, "x").endswith(".jpg")


def test_derive_thumbnail_key():
    assert derive_thumbnail_key("events/1/photos/abc.jpg", "sm") == "events/1/photos/thumbs/sm-abc.jpg"
    assert derive_thumbnail_key("abc.jpg", "sm") == "thumbs/sm-abc.jpg"


@pytest.fixture
def s3_client():
    return MagicMock()


@pytest.fixture
def service(s3_client):
    return S3Service(bucket_name="bucket", client=s3_client)


def test_head_missing_object_is_false(service, s3_client):
    s3_client.head_object.side_effect = _client_error("404")
    assert service.head("missing") is False


def test_head_other_errors_raise(service, s3_client):
    s3_client.head_object.side_effect = _client_error("403")
    with pytest.raises(S3ServiceError):
        service.head("forbidden")


def test_get_returns_bytes_and_content_type(service, s3_client):
    s3_client.get_object.return_value = {"Body": io.BytesIO(b"jpeg"), "ContentType": "image/jpeg"}
    stored = service.get("events/1/photos/a.jpg")
    assert stored.data == b"jpeg"
    assert stored.content_type == "image/jpeg"


def test_get_missing_object(service, s3_client):
    s3_client.get_object.side_effect = _client_error("NoSuchKey")
    with pytest.raises(S3ServiceError, match="not found"):
        service.get("missing")


def test_sign_put_passes_content_type(service, s3_client):
    s3_client.generate_presigned_url.return_value = "https://signed"
    assert service.sign_put("k", 3600, "image/png") == "https://signed"
    s3_client.generate_presigned_url.assert_called_once_with(
        "put_object",
        Params={"Bucket": "bucket", "Key": "k", "ContentType": "image/png"},
        ExpiresIn=3600,
    )


def test_sign_get_sets_disposition(service, s3_client):
    s3_client.generate_presigned_url.return_value = "https://signed"
    service.sign_get("k", 300, filename="a.jpg", inline=True)
    params = s3_client.generate_presigned_url.call_args.kwargs["Params"]
    assert params["ResponseContentDisposition"] == 'inline; filename="a.jpg"'


def test_put_and_delete(service, s3_client):
    service.put("k", b"data", "image/jpeg")
    s3_client.put_object.assert_called_once_with(Bucket="bucket", Key="k", Body=b"data", ContentType="image/jpeg")

    s3_client.delete_object.side_effect = _client_error("500")
    with pytest.raises(S3ServiceError):
        service.delete("k")


def test_list_follows_pages(service, s3_client):
    s3_client.get_paginator.return_value.paginate.return_value = [
        {"Contents": [{"Key": "events/1/photos/a.jpg", "Size": 3, "LastModified": None}]},
        {"Contents": [{"Key": "events/1/photos/b.jpg", "Size": 4, "LastModified": None}]},
        {},
    ]
    assert [obj["key"] for obj in service.list("events/1/")] == [
        "events/1/photos/a.jpg",
        "events/1/photos/b.jpg",
    ]
    s3_client.get_paginator.assert_called_once_with("list_objects_v2")

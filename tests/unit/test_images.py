import cv2
import numpy as np
import pytest

from guestlens.utils.images import ImageTransformError, fit_within, make_thumbnail


def encode(width, height, ext=".jpg"):
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:, : width // 2] = (0, 0, 255)
    ok, buf = cv2.imencode(ext, image)
    assert ok
    return buf.tobytes()


def decode(data):
    return cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)


def test_thumbnail_fits_bounding_box():
    thumb = decode(make_thumbnail(encode(2000, 1000), max_dimension=512))
    assert thumb.shape[:2] == (256, 512)


def test_portrait_keeps_aspect_ratio():
    thumb = decode(make_thumbnail(encode(600, 1200, ".png")))
    assert thumb.shape[:2] == (512, 256)


def test_small_images_are_not_enlarged():
    thumb = decode(make_thumbnail(encode(100, 80)))
    assert thumb.shape[:2] == (80, 100)


def test_output_is_jpeg():
    assert make_thumbnail(encode(64, 64, ".png"))[:3] == b"\xff\xd8\xff"


def test_quality_changes_size():
    source = np.random.default_rng(0).integers(0, 255, (400, 400, 3), dtype=np.uint8)
    ok, buf = cv2.imencode(".png", source)
    high = make_thumbnail(buf.tobytes(), quality=95)
    low = make_thumbnail(buf.tobytes(), quality=20)
    assert len(low) < len(high)


@pytest.mark.parametrize("payload", [b"", b"not an image"])
def test_invalid_input(payload):
    with pytest.raises(ImageTransformError):
        make_thumbnail(payload)


def test_fit_within_noop():
    image = np.zeros((10, 20, 3), dtype=np.uint8)
    assert fit_within(image, 512) is image

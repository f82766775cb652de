import io

import pytest
from PIL import Image

from uploads.compress import CompressionOptions, normalize, output_name
from uploads.errors import CompressionFailed
from uploads.utils import MediaFile


def _open(file: MediaFile) -> Image.Image:
    img = Image.open(io.BytesIO(file.data))
    img.load()
    return img


def test_non_image_passes_through_unchanged(pdf_file):
    future = normalize(pdf_file)
    assert future.done()
    assert future.result() is pdf_file


def test_image_is_reencoded_to_webp_and_capped(make_image):
    src = make_image("Temple Photo.jpg", size=(3000, 1500))
    out = normalize(src).result(timeout=30)

    assert out.name == "Temple Photo.webp"
    assert out.content_type == "image/webp"
    img = _open(out)
    assert img.format == "WEBP"
    assert img.size == (1920, 960)


def test_small_image_is_never_upscaled(make_image):
    out = normalize(make_image(size=(300, 200))).result(timeout=30)
    assert _open(out).size == (300, 200)


def test_transparency_survives(make_image):
    src = make_image("logo.png", size=(64, 64), fmt="PNG", content_type="image/png", mode="RGBA")
    out = normalize(src).result(timeout=30)
    assert _open(out).mode == "RGBA"


def test_soft_size_target_is_honoured(make_image):
    opts = CompressionOptions(max_size_mb=0.01, max_width_or_height=1920, quality=0.95)
    out = normalize(make_image(size=(1600, 1200)), opts).result(timeout=60)
    assert out.size <= 0.01 * 1024 * 1024 or min(_open(out).size) < 400


def test_corrupt_image_fails_with_compression_failed():
    broken = MediaFile(name="broken.jpg", content_type="image/jpeg", data=b"definitely not an image")
    with pytest.raises(CompressionFailed) as exc_info:
        normalize(broken).result(timeout=30)
    assert exc_info.value.filename == "broken.jpg"


@pytest.mark.parametrize(
    "name, expected",
    [("a.JPG", "a.webp"), ("archive.tar.png", "archive.tar.webp"), ("noext", "noext.webp")],
)
def test_output_name(name, expected):
    assert output_name(name) == expected

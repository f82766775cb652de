import re
from concurrent.futures import ThreadPoolExecutor

import pytest

from uploads.naming import (
    build_path,
    is_variant_path,
    sanitize_base_name,
    variant_path,
)
from uploads.utils import MediaFile

PATH_RE = re.compile(r"^posts/(\d{13})-([0-9a-f-]{36})-([a-z0-9-]+)\.([a-z0-9]+)$")


def _file(name, content_type="image/webp"):
    return MediaFile(name=name, content_type=content_type, data=b"x")


def test_image_path_forces_webp_and_sanitizes_name():
    path = build_path("posts/", _file("Temple Photo.jpg", "image/jpeg"))
    m = PATH_RE.match(path)
    assert m, path
    assert m.group(3) == "temple-photo"
    assert m.group(4) == "webp"


def test_document_keeps_extension_lowercased():
    path = build_path("temples/t1/docs", _file("Guide Book.PDF", "application/pdf"))
    assert path.startswith("temples/t1/docs/")
    assert path.endswith("-guide-book.pdf")


def test_missing_extension_defaults_to_bin():
    assert build_path("posts", _file("README", "application/pdf")).endswith("-readme.bin")


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Hello   World!!.png", "hello-world"),
        ("ÜBER café.jpg", "ber-caf"),
        ("....jpg", "file"),
        ("a" * 80 + ".jpg", "a" * 40),
        ("dir/with\\slashes.jpeg", "slashes"),
    ],
)
def test_sanitize_base_name(name, expected):
    assert sanitize_base_name(name) == expected


def test_concurrent_calls_never_collide():
    f = _file("same.jpg", "image/jpeg")
    with ThreadPoolExecutor(max_workers=16) as pool:
        paths = list(pool.map(lambda _: build_path("posts", f), range(10_000)))
    assert len(set(paths)) == 10_000


def test_variant_path_inserts_suffix_and_forces_format():
    assert variant_path("posts/123-abc-temple-photo.webp", "thumb") == "posts/123-abc-temple-photo_thumb.webp"
    assert variant_path("users/u1/profile/x.png", "medium") == "users/u1/profile/x_medium.webp"
    assert variant_path("posts/v1.2/noext", "thumb") == "posts/v1.2/noext_thumb.webp"


def test_is_variant_path_uses_configured_names(settings):
    assert is_variant_path("posts/x_thumb.webp")
    assert is_variant_path("posts/x_medium.webp")
    assert not is_variant_path("posts/x_thumb.jpg")
    assert not is_variant_path("posts/thumbnail.webp")

    settings.MEDIA_VARIANTS = [("small", 100)]
    assert is_variant_path("posts/x_small.webp")
    assert not is_variant_path("posts/x_thumb.webp")

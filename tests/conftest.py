import io
from dataclasses import dataclass, field
from pathlib import Path

import pytest
from PIL import Image

from uploads.errors import UploadFailed
from uploads.utils import MediaFile


@dataclass
class StoredObject:
    data: bytes
    content_type: str
    cache_control: str | None
    metadata: dict = field(default_factory=dict)


class FakeObjectStore:
    """In-memory stand-in for uploads.s3.ObjectStore that records every call."""

    def __init__(self, fail_suffixes=()):
        self.objects: dict[str, StoredObject] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_suffixes = tuple(fail_suffixes)

    def put(self, path, data, *, content_type, cache_control=None, metadata=None, on_progress=None):
        self.calls.append(("put", path))
        if self.fail_suffixes and path.endswith(self.fail_suffixes):
            raise UploadFailed(path, ConnectionError("simulated outage"))
        if on_progress:
            on_progress(40)
            on_progress(100)
        self.objects[path] = StoredObject(data, content_type, cache_control, dict(metadata or {}))
        return path

    def download_url(self, path):
        self.calls.append(("download_url", path))
        return f"https://cdn.test/{path}"

    def download_to(self, path, dest):
        self.calls.append(("download_to", path))
        Path(dest).write_bytes(self.objects[path].data)

    def delete(self, path):
        self.calls.append(("delete", path))
        self.objects.pop(path, None)

    def puts(self):
        return [p for op, p in self.calls if op == "put"]


@pytest.fixture
def store(monkeypatch):
    fake = FakeObjectStore()
    monkeypatch.setattr("uploads.submission.get_object_store", lambda: fake)
    monkeypatch.setattr("uploads.variants.get_object_store", lambda: fake)
    return fake


def image_bytes(size=(640, 480), fmt="JPEG", mode="RGB") -> bytes:
    # Smooth gradient so the encoders have something real to work on.
    bands = [
        Image.linear_gradient("L").resize(size),
        Image.linear_gradient("L").rotate(90).resize(size),
        Image.new("L", size, 128),
    ]
    if mode == "RGBA":
        bands.append(Image.new("L", size, 160))
    img = Image.merge(mode, bands)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def make_image():
    def _make(name="photo.jpg", size=(640, 480), fmt="JPEG", content_type="image/jpeg", mode="RGB"):
        return MediaFile(name=name, content_type=content_type, data=image_bytes(size, fmt, mode))

    return _make


@pytest.fixture
def pdf_file():
    return MediaFile(name="Guide Book.PDF", content_type="application/pdf", data=b"%PDF-1.4\n" + b"0" * 2048)


@pytest.fixture
def make_record(db):
    from uploads.models import MediaRecord

    counter = {"n": 0}

    def _make(owner="u1", storage_path=None, **fields):
        counter["n"] += 1
        storage_path = storage_path or f"posts/{counter['n']}-id-photo.webp"
        defaults = {
            "download_url": f"https://cdn.test/{storage_path}",
            "media_type": MediaRecord.MediaType.POST_IMAGE,
            "content_type": "image/webp",
            "size_bytes": 1234,
        }
        defaults.update(fields)
        return MediaRecord.objects.create(owner=owner, storage_path=storage_path, **defaults)

    return _make

import mimetypes
from dataclasses import dataclass

from PIL import Image


@dataclass(frozen=True)
class MediaFile:
    """An in-memory file travelling through the submission pipeline."""

    name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_image(self) -> bool:
        return guess_kind(self.content_type) == "image"


def read_uploaded_file(djangofile) -> MediaFile:
    """Read a Django UploadedFile into a MediaFile, trusting the declared content type."""
    content_type = djangofile.content_type or mimetypes.guess_type(djangofile.name)[0] or ""
    data = b"".join(djangofile.chunks())
    return MediaFile(name=djangofile.name, content_type=content_type.lower(), data=data)


def guess_kind(content_type: str) -> str:
    """Return 'image' | 'document' | 'other' for a MIME type."""
    if not content_type:
        return "other"
    if content_type.startswith("image/"):
        return "image"
    if content_type == "application/pdf":
        return "document"
    return "other"


def prepare_for_webp(img: Image.Image) -> Image.Image:
    """Convert to a mode the WebP encoder accepts, keeping transparency if present."""
    has_alpha = img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)
    target = "RGBA" if has_alpha else "RGB"
    if img.mode != target:
        img = img.convert(target)
    return img

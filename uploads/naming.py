"""
Storage path naming.

Original uploads live at ``{folder}/{epoch_ms}-{uuid4}-{name}.{ext}``; the random
part keeps two uploads of the same name in the same millisecond apart. Variant
paths are derived from the original by a pure suffix transform, which is also
what lets the variant generator recognise (and skip) its own output.
"""
import posixpath
import re
import time
import uuid

from django.conf import settings

from .utils import MediaFile

VARIANT_FORMAT = "webp"
MAX_BASE_NAME_LENGTH = 40
DEFAULT_EXTENSION = "bin"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_EXTENSION = re.compile(r"\.([^./\\]+)$")


def sanitize_base_name(filename: str) -> str:
    base = _EXTENSION.sub("", posixpath.basename(filename.replace("\\", "/"))).lower()
    base = _NON_ALNUM.sub("-", base)[:MAX_BASE_NAME_LENGTH].strip("-")
    return base or "file"


def extension_for(file: MediaFile) -> str:
    # Images are always stored re-encoded by the compressor.
    if file.is_image:
        return VARIANT_FORMAT
    match = _EXTENSION.search(file.name)
    return match.group(1).lower() if match else DEFAULT_EXTENSION


def build_path(folder: str, file: MediaFile) -> str:
    folder = folder.strip().rstrip("/")
    stamp = int(time.time() * 1000)
    return f"{folder}/{stamp}-{uuid.uuid4()}-{sanitize_base_name(file.name)}.{extension_for(file)}"


def variant_path(path: str, variant: str) -> str:
    """posts/123-abc-photo.webp -> posts/123-abc-photo_thumb.webp"""
    head, base = posixpath.split(path)
    stem, _ = posixpath.splitext(base)
    return posixpath.join(head, f"{stem}_{variant}.{VARIANT_FORMAT}")


def variant_suffixes(names=None) -> tuple[str, ...]:
    if names is None:
        names = [name for name, _ in settings.MEDIA_VARIANTS]
    return tuple(f"_{name}.{VARIANT_FORMAT}" for name in names)


def is_variant_path(path: str, names=None) -> bool:
    return path.endswith(variant_suffixes(names))

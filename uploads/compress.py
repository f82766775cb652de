"""
Submission-side image normalization.

Images are re-encoded to WebP, capped at ``max_width_or_height`` and squeezed
towards ``max_size_mb``. The transcode runs on a small thread pool and the
caller gets a ``concurrent.futures.Future`` back, so a large image never ties
up the thread that accepted the upload until it asks for the result.
"""
import io
import logging
import re
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from functools import lru_cache

from django.conf import settings
from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import CompressionFailed
from .naming import VARIANT_FORMAT
from .utils import MediaFile, prepare_for_webp

logger = logging.getLogger(__name__)

OUTPUT_CONTENT_TYPE = "image/webp"
MIN_QUALITY = 40
QUALITY_STEP = 10
SHRINK_FACTOR = 0.8
MIN_DIMENSION = 320


@dataclass(frozen=True)
class CompressionOptions:
    max_size_mb: float
    max_width_or_height: int
    quality: float  # 0..1

    @classmethod
    def defaults(cls) -> "CompressionOptions":
        return cls(
            max_size_mb=settings.MEDIA_COMPRESS_MAX_SIZE_MB,
            max_width_or_height=settings.MEDIA_COMPRESS_MAX_WIDTH_OR_HEIGHT,
            quality=settings.MEDIA_COMPRESS_QUALITY,
        )


@lru_cache(maxsize=1)
def _executor() -> ThreadPoolExecutor:
    return ThreadPoolExecutor(
        max_workers=settings.MEDIA_COMPRESS_WORKERS,
        thread_name_prefix="compress",
    )


def normalize(file: MediaFile, opts: CompressionOptions | None = None) -> "Future[MediaFile]":
    """
    Return a future resolving to the normalized file.

    Non-images resolve immediately to the same file. A failed transcode
    resolves with CompressionFailed.
    """
    if not file.is_image:
        done: Future = Future()
        done.set_result(file)
        return done
    return _executor().submit(_transcode, file, opts or CompressionOptions.defaults())


def output_name(filename: str) -> str:
    stem, n = re.subn(r"\.[^./\\]+$", "", filename)
    return f"{stem if n else filename}.{VARIANT_FORMAT}"


def _transcode(file: MediaFile, opts: CompressionOptions) -> MediaFile:
    try:
        with Image.open(io.BytesIO(file.data)) as src:
            img = prepare_for_webp(ImageOps.exif_transpose(src))
        img.thumbnail((opts.max_width_or_height, opts.max_width_or_height), Image.Resampling.LANCZOS)
        data = _encode_within(img, opts)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        logger.warning("Compression failed for %s: %s", file.name, exc)
        raise CompressionFailed(file.name, exc) from exc

    logger.debug("Compressed %s: %d -> %d bytes", file.name, file.size, len(data))
    return MediaFile(name=output_name(file.name), content_type=OUTPUT_CONTENT_TYPE, data=data)


def _encode_within(img: Image.Image, opts: CompressionOptions) -> bytes:
    """
    Encode as WebP, lowering quality and then dimensions until the soft size
    target is met or the floors are reached.
    """
    target = int(opts.max_size_mb * 1024 * 1024)
    quality = max(MIN_QUALITY, min(100, round(opts.quality * 100)))

    while True:
        buf = io.BytesIO()
        img.save(buf, format="WEBP", quality=quality)
        data = buf.getvalue()
        if len(data) <= target:
            return data
        if quality > MIN_QUALITY:
            quality = max(MIN_QUALITY, quality - QUALITY_STEP)
            continue
        if min(img.size) * SHRINK_FACTOR < MIN_DIMENSION:
            return data
        w, h = img.size
        img = img.resize((int(w * SHRINK_FACTOR), int(h * SHRINK_FACTOR)), Image.Resampling.LANCZOS)

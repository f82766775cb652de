"""
Submission orchestrator.

validate -> compress -> name -> upload -> register. Every check that can fail
cheaply runs before any network call, and the record is written last, so a
failed submission leaves neither an object nor a record behind.
"""
import logging
from dataclasses import dataclass

from django.conf import settings

from .compress import normalize
from .errors import FileTooLarge, Unauthenticated, UnsupportedType, ValidationFailed
from .models import MediaRecord
from .naming import build_path
from .ratelimit import check_and_admit
from .s3 import get_object_store
from .utils import MediaFile, guess_kind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionResult:
    media_id: str
    download_url: str
    storage_path: str


def validate_file(file: MediaFile) -> None:
    """Check type and size of the original (pre-compression) file."""
    kind = guess_kind(file.content_type)

    if kind == "image":
        if file.content_type not in settings.MEDIA_ALLOWED_IMAGE_TYPES:
            raise UnsupportedType(file.content_type, f"Unsupported image format: {file.content_type}.")
        if file.size > settings.MEDIA_MAX_IMAGE_BYTES:
            raise FileTooLarge("image", file.size, settings.MEDIA_MAX_IMAGE_BYTES)
    elif kind == "document" and file.content_type in settings.MEDIA_ALLOWED_DOCUMENT_TYPES:
        if file.size > settings.MEDIA_MAX_DOCUMENT_BYTES:
            raise FileTooLarge("document", file.size, settings.MEDIA_MAX_DOCUMENT_BYTES)
    else:
        raise UnsupportedType(file.content_type)

    if file.size == 0:
        raise ValidationFailed("File is empty.")


def submit(
    file: MediaFile,
    folder: str,
    media_type: str,
    *,
    actor_id: str | None,
    on_progress=None,
    store=None,
) -> SubmissionResult:
    if not actor_id:
        raise Unauthenticated()
    if media_type not in MediaRecord.MediaType.values:
        raise ValidationFailed(f"Unknown media type: {media_type!r}.")

    check_and_admit(actor_id)
    validate_file(file)

    processed = normalize(file).result() if file.is_image else file

    # Named after compression so the extension matches the stored bytes.
    storage_path = build_path(folder, processed)
    store = store or get_object_store()
    store.put(
        storage_path,
        processed.data,
        content_type=processed.content_type,
        cache_control=settings.MEDIA_CACHE_CONTROL,
        # Informational only; authorization never reads object metadata.
        metadata={"uploaded-by": actor_id, "original-name": file.name},
        on_progress=on_progress,
    )
    download_url = store.download_url(storage_path)

    try:
        record = MediaRecord.objects.create(
            storage_path=storage_path,
            download_url=download_url,
            variants={},
            owner=actor_id,
            media_type=media_type,
            content_type=processed.content_type,
            size_bytes=processed.size,
            status=MediaRecord.Status.PROCESSING,
        )
    except Exception:
        logger.exception("Could not register %s; removing uploaded object", storage_path)
        _discard_object(store, storage_path)
        raise

    logger.info("Submitted %s for %s as media %s", storage_path, actor_id, record.pk)
    return SubmissionResult(media_id=str(record.pk), download_url=download_url, storage_path=storage_path)


def _discard_object(store, path: str) -> None:
    try:
        store.delete(path)
    except Exception:
        logger.warning("Could not delete orphaned object %s", path, exc_info=True)

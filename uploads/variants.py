"""
Variant generation for finalized original images.

``generate_variants`` is the whole handler: it takes a FinalizeEvent and does
not care how the event was delivered. Delivery is at-least-once, so every run
must be safe to repeat:

- the scope guard filters variants and foreign objects before any I/O,
- records that already carry every variant (or are no longer processing)
  are left alone,
- the record is written once, at the end, as a union merge that never
  replaces an existing variant URL.
"""
import enum
import logging
import posixpath
import shutil
import tempfile
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import VariantGenerationFailed
from .guard import should_process
from .models import MediaRecord
from .naming import variant_path
from .s3 import get_object_store
from .utils import prepare_for_webp

logger = logging.getLogger(__name__)

VARIANT_CONTENT_TYPE = "image/webp"


@dataclass(frozen=True)
class FinalizeEvent:
    path: str
    content_type: str


@dataclass(frozen=True)
class VariantSpec:
    name: str
    width: int


class VariantOutcome(str, enum.Enum):
    SKIPPED = "skipped"
    NOT_FOUND = "not_found"
    ALREADY_PROCESSED = "already_processed"
    READY = "ready"
    FAILED = "failed"


def configured_variants() -> list[VariantSpec]:
    return [VariantSpec(name, width) for name, width in settings.MEDIA_VARIANTS]


def attempt_best_effort(fn, *args, **kwargs) -> bool:
    """Call ``fn`` and report whether it worked; errors are logged, never raised."""
    try:
        fn(*args, **kwargs)
    except Exception:
        logger.warning("Best-effort call %s failed", getattr(fn, "__name__", fn), exc_info=True)
        return False
    return True


def mark_failed(record_id) -> int:
    # Conditional so a ready record is never pulled back.
    return MediaRecord.objects.filter(pk=record_id, status=MediaRecord.Status.PROCESSING).update(
        status=MediaRecord.Status.FAILED, updated_at=timezone.now()
    )


def finalize_record(record_id, urls: dict) -> MediaRecord:
    """Union-merge ``urls`` into the record's variants and promote it to ready."""
    with transaction.atomic():
        record = MediaRecord.objects.select_for_update().get(pk=record_id)
        # Existing URLs win: a concurrent run that finished first keeps its values.
        record.variants = {**urls, **(record.variants or {})}
        if record.status == MediaRecord.Status.PROCESSING:
            record.status = MediaRecord.Status.READY
        record.save(update_fields=["variants", "status", "updated_at"])
    return record


def generate_variants(event: FinalizeEvent, *, store=None) -> VariantOutcome:
    if not should_process(event.path, event.content_type):
        return VariantOutcome.SKIPPED

    record = MediaRecord.objects.filter(storage_path=event.path).first()
    if record is None:
        # The submitter may not have registered it yet; redelivery will retry.
        logger.info("No media record for %s", event.path)
        return VariantOutcome.NOT_FOUND

    specs = configured_variants()
    if record.is_terminal or record.has_variants([s.name for s in specs]):
        logger.info("Variants already handled for %s (%s). Skipping.", event.path, record.status)
        return VariantOutcome.ALREADY_PROCESSED

    store = store or get_object_store()
    scratch = Path(tempfile.mkdtemp(prefix="variants-"))
    try:
        try:
            urls = _produce_variants(store, event.path, specs, scratch)
        except Exception:
            logger.exception("Failed to process %s", event.path)
            attempt_best_effort(mark_failed, record.pk)
            return VariantOutcome.FAILED

        finalize_record(record.pk, urls)
        logger.info("Processed variants for %s: %s", event.path, sorted(urls))
        return VariantOutcome.READY
    finally:
        shutil.rmtree(scratch, ignore_errors=True)


def _produce_variants(store, path: str, specs: list[VariantSpec], scratch: Path) -> dict:
    original = scratch / f"original-{posixpath.basename(path)}"
    store.download_to(path, original)

    urls = {}
    for spec in specs:
        out_path = variant_path(path, spec.name)
        local = scratch / posixpath.basename(out_path)
        render_variant(original, local, spec.width, quality=settings.MEDIA_VARIANT_QUALITY, source_path=path)

        store.put(
            out_path,
            local.read_bytes(),
            content_type=VARIANT_CONTENT_TYPE,
            cache_control=settings.MEDIA_CACHE_CONTROL,
        )
        urls[spec.name] = store.download_url(out_path)
    return urls


def render_variant(src: Path, dest: Path, width: int, *, quality: int, source_path: str = "") -> tuple[int, int]:
    """
    Write a WebP no wider than ``width`` to ``dest``. Height follows the aspect
    ratio and images are never enlarged. Returns the output size.
    """
    try:
        with Image.open(src) as original:
            img = prepare_for_webp(ImageOps.exif_transpose(original))
        if img.width > width:
            height = max(1, round(img.height * width / img.width))
            img = img.resize((width, height), Image.Resampling.LANCZOS)
        img.save(dest, format="WEBP", quality=quality)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise VariantGenerationFailed(source_path or str(src), dest.name, exc) from exc
    return img.size


def reconcile_stale_records(*, now=None, dispatch=None) -> dict:
    """
    Sweep records stuck in processing.

    Only records the guard would accept are considered; documents and other
    objects without variants stay as they are. Past MEDIA_STALE_GIVE_UP_SECONDS
    a record is marked failed, younger stale records are handed to ``dispatch``
    again, which is safe because generation is idempotent.
    """
    now = now or timezone.now()
    give_up_before = now - timedelta(seconds=settings.MEDIA_STALE_GIVE_UP_SECONDS)
    stale_before = now - timedelta(seconds=settings.MEDIA_STALE_PROCESSING_SECONDS)

    stale = MediaRecord.objects.filter(
        status=MediaRecord.Status.PROCESSING, created_at__lt=stale_before
    ).values_list("pk", "storage_path", "content_type", "created_at")

    expired = []
    requeued = 0
    for pk, path, content_type, created_at in stale.iterator():
        if not should_process(path, content_type):
            continue
        if created_at < give_up_before:
            expired.append(pk)
            continue
        if dispatch is not None:
            dispatch(FinalizeEvent(path, content_type))
        requeued += 1

    failed = 0
    if expired:
        failed = MediaRecord.objects.filter(pk__in=expired, status=MediaRecord.Status.PROCESSING).update(
            status=MediaRecord.Status.FAILED, updated_at=now
        )

    if failed or requeued:
        logger.info("Reconciled stale media: %d failed, %d requeued", failed, requeued)
    return {"failed": failed, "requeued": requeued}

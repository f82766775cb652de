"""
Per-actor upload rate limit.

This is a soft guard that lets the submitter see a friendly error early. It is
not the security boundary: the bucket policy enforces the real limit. The count
is read without locking, so a burst of concurrent submissions from one actor
can overshoot the ceiling slightly.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from .errors import RateLimited
from .models import MediaRecord

logger = logging.getLogger(__name__)


def recent_upload_count(actor_id: str, *, window_seconds: int, now=None) -> int:
    since = (now or timezone.now()) - timedelta(seconds=window_seconds)
    return MediaRecord.objects.filter(owner=actor_id, created_at__gte=since).count()


def check_and_admit(actor_id: str, *, now=None) -> None:
    """Raise RateLimited if ``actor_id`` is at or above the ceiling for the trailing window."""
    limit = settings.MEDIA_UPLOAD_RATE_LIMIT
    window = settings.MEDIA_UPLOAD_RATE_WINDOW_SECONDS

    count = recent_upload_count(actor_id, window_seconds=window, now=now)
    if count >= limit:
        logger.info("Rate limit hit for %s: %d uploads in %ds", actor_id, count, window)
        raise RateLimited(limit, window)

import uuid
from django.db import models


class MediaRecord(models.Model):
    class Status(models.TextChoices):
        PROCESSING = "processing"
        READY = "ready"
        FAILED = "failed"

    class MediaType(models.TextChoices):
        PROFILE_IMAGE = "profile-image"
        POST_IMAGE = "post-image"
        TEMPLE_IMAGE = "temple-image"
        DOCUMENT = "document"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    storage_path = models.CharField(max_length=1024, unique=True)  # key of the original object
    download_url = models.URLField(max_length=2048)
    variants = models.JSONField(default=dict, blank=True)  # {"thumb": url, "medium": url}
    owner = models.CharField(max_length=128)
    media_type = models.CharField(max_length=32, choices=MediaType.choices)
    content_type = models.CharField(max_length=127)
    size_bytes = models.PositiveBigIntegerField()
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PROCESSING)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["owner", "created_at"], name="uploads_med_owner_c3f1a2_idx"),
            models.Index(fields=["status", "created_at"], name="uploads_med_status_8b7d4e_idx"),
        ]

    def __str__(self):
        return f"{self.storage_path} ({self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in (self.Status.READY, self.Status.FAILED)

    def has_variants(self, names) -> bool:
        existing = self.variants or {}
        return all(existing.get(name) for name in names)

    def variant_url(self, name: str) -> str:
        """URL to show for a variant; the original is the fallback while it is missing."""
        return (self.variants or {}).get(name) or self.download_url

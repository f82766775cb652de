from urllib.parse import unquote_plus

from django.conf import settings
from rest_framework import serializers

from .models import MediaRecord


class MediaRecordSerializer(serializers.ModelSerializer):
    type = serializers.CharField(source="media_type", read_only=True)
    display = serializers.SerializerMethodField()

    class Meta:
        model = MediaRecord
        fields = [
            "id",
            "storage_path",
            "download_url",
            "variants",
            "display",
            "owner",
            "type",
            "content_type",
            "size_bytes",
            "status",
            "created_at",
            "updated_at",
        ]

    def get_display(self, obj) -> dict:
        """Per variant: its URL, or the original while the variant is missing."""
        return {name: obj.variant_url(name) for name, _ in settings.MEDIA_VARIANTS}


class MediaSubmitSerializer(serializers.Serializer):
    file = serializers.FileField()
    # Bucket-relative folder, e.g. "posts/<post_id>/images"; bucket policy decides who may write there.
    folder = serializers.CharField(max_length=256)
    type = serializers.ChoiceField(choices=MediaRecord.MediaType.choices)

    def validate_folder(self, value):
        value = value.strip().strip("/")
        if not value or ".." in value.split("/"):
            raise serializers.ValidationError("Invalid folder.")
        return value

    def validate(self, attrs):
        # Variants are only generated under the monitored prefixes; an image
        # stored elsewhere would keep status "processing" forever.
        content_type = (getattr(attrs["file"], "content_type", "") or "").lower()
        folder = f"{attrs['folder']}/"
        if content_type.startswith("image/") and not folder.startswith(tuple(settings.MEDIA_MONITORED_PREFIXES)):
            raise serializers.ValidationError(
                {"folder": f"Images must be uploaded under one of: {', '.join(settings.MEDIA_MONITORED_PREFIXES)}"}
            )
        return attrs


class SubmissionResultSerializer(serializers.Serializer):
    media_id = serializers.CharField()
    download_url = serializers.URLField()
    storage_path = serializers.CharField()


class StorageNotificationSerializer(serializers.Serializer):
    """MinIO/S3 bucket notification body: {"Records": [...]}."""

    Records = serializers.ListField(child=serializers.DictField(), allow_empty=True)

    def finalized_objects(self) -> list[tuple[str, str]]:
        """(path, content_type) for every object-created record, keys URL-decoded."""
        found = []
        for rec in self.validated_data["Records"]:
            if not str(rec.get("eventName", "")).startswith(("s3:ObjectCreated:", "ObjectCreated:")):
                continue
            obj = (rec.get("s3") or {}).get("object") or {}
            key = obj.get("key")
            if not key:
                continue
            found.append((unquote_plus(key), obj.get("contentType") or ""))
        return found

import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="MediaRecord",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("storage_path", models.CharField(max_length=1024, unique=True)),
                ("download_url", models.URLField(max_length=2048)),
                ("variants", models.JSONField(blank=True, default=dict)),
                ("owner", models.CharField(max_length=128)),
                (
                    "media_type",
                    models.CharField(
                        choices=[
                            ("profile-image", "Profile Image"),
                            ("post-image", "Post Image"),
                            ("temple-image", "Temple Image"),
                            ("document", "Document"),
                        ],
                        max_length=32,
                    ),
                ),
                ("content_type", models.CharField(max_length=127)),
                ("size_bytes", models.PositiveBigIntegerField()),
                (
                    "status",
                    models.CharField(
                        choices=[("processing", "Processing"), ("ready", "Ready"), ("failed", "Failed")],
                        default="processing",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["owner", "created_at"], name="uploads_med_owner_c3f1a2_idx"),
                    models.Index(fields=["status", "created_at"], name="uploads_med_status_8b7d4e_idx"),
                ],
            },
        ),
    ]

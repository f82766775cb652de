import pytest
from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from rest_framework.test import APIClient

from uploads import views
from uploads.models import MediaRecord

from conftest import image_bytes

pytestmark = pytest.mark.django_db


@pytest.fixture
def user():
    return get_user_model().objects.create_user(username="u1", password="pw-not-used")


@pytest.fixture
def client(user):
    api = APIClient()
    api.force_authenticate(user=user)
    return api


@pytest.fixture
def queued(monkeypatch):
    calls = []
    monkeypatch.setattr(views.process_finalized_object, "delay", lambda *args: calls.append(args))
    return calls


def _jpeg(name="Temple Photo.jpg", size=(800, 600)):
    return SimpleUploadedFile(name, image_bytes(size), content_type="image/jpeg")


def test_submit_returns_ids_and_creates_record(client, user, store):
    resp = client.post("/api/media/", {"file": _jpeg(), "folder": "posts/", "type": "post-image"}, format="multipart")

    assert resp.status_code == 201, resp.content
    body = resp.json()
    assert set(body) == {"media_id", "download_url", "storage_path"}
    assert body["storage_path"].startswith("posts/") and body["storage_path"].endswith("-temple-photo.webp")

    record = MediaRecord.objects.get(pk=body["media_id"])
    assert record.owner == str(user.pk)
    assert record.status == "processing"


def test_submit_anonymous_is_401(store):
    resp = APIClient().post("/api/media/", {"file": _jpeg(), "folder": "posts", "type": "post-image"}, format="multipart")
    assert resp.status_code == 401
    assert resp.json()["code"] == "unauthenticated"
    assert MediaRecord.objects.count() == 0


def test_submit_rate_limited_is_429(client, user, store, make_record):
    for _ in range(20):
        make_record(owner=str(user.pk))

    resp = client.post("/api/media/", {"file": _jpeg(), "folder": "posts", "type": "post-image"}, format="multipart")

    assert resp.status_code == 429
    assert resp.json()["limit"] == 20
    assert MediaRecord.objects.count() == 20


def test_submit_oversized_is_413(client, settings, store):
    settings.MEDIA_MAX_IMAGE_BYTES = 1024
    resp = client.post("/api/media/", {"file": _jpeg(), "folder": "posts", "type": "post-image"}, format="multipart")

    assert resp.status_code == 413
    assert resp.json()["limit_bytes"] == 1024
    assert store.calls == []


def test_submit_rejects_bad_folder_and_type(client, store):
    resp = client.post("/api/media/", {"file": _jpeg(), "folder": "../etc", "type": "banner"}, format="multipart")
    assert resp.status_code == 400
    assert set(resp.json()) == {"folder", "type"}


def test_detail_falls_back_to_original_until_variants_exist(client, make_record):
    record = make_record(variants={"thumb": "https://cdn.test/t.webp"})

    resp = client.get(f"/api/media/{record.pk}/")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "processing"
    assert body["type"] == "post-image"
    assert body["display"] == {"thumb": "https://cdn.test/t.webp", "medium": record.download_url}


def test_detail_not_found(client):
    resp = client.get("/api/media/00000000-0000-0000-0000-000000000000/")
    assert resp.status_code == 404


def _notification(*records):
    return {"Records": list(records)}


def _created(key, content_type="image/webp", event="s3:ObjectCreated:Put"):
    return {"eventName": event, "s3": {"object": {"key": key, "contentType": content_type}}}


def test_storage_events_queue_created_objects(queued):
    payload = _notification(
        _created("posts%2F1-a-temple+photo.webp"),
        _created("posts%2F1-a-x_thumb.webp"),
        _created("posts%2Fgone.webp", event="s3:ObjectRemoved:Delete"),
    )

    resp = APIClient().post("/api/storage/events/", payload, format="json")

    assert resp.status_code == 202
    assert resp.json() == {"queued": 2}
    assert queued == [("posts/1-a-temple photo.webp", "image/webp"), ("posts/1-a-x_thumb.webp", "image/webp")]


def test_storage_events_require_token_when_configured(settings, queued):
    settings.STORAGE_EVENTS_TOKEN = "s3cret"
    payload = _notification(_created("posts%2F1-a-x.webp"))

    assert APIClient().post("/api/storage/events/", payload, format="json").status_code == 401
    assert queued == []

    resp = APIClient().post(
        "/api/storage/events/", payload, format="json", HTTP_AUTHORIZATION="Bearer s3cret"
    )
    assert resp.status_code == 202
    assert len(queued) == 1


def test_submit_image_outside_monitored_folders_is_400(client, store):
    resp = client.post("/api/media/", {"file": _jpeg(), "folder": "avatars", "type": "post-image"}, format="multipart")

    assert resp.status_code == 400
    assert "folder" in resp.json()
    assert store.calls == []
    assert MediaRecord.objects.count() == 0


def test_submit_document_to_any_folder_is_accepted(client, store):
    pdf = SimpleUploadedFile("Guide.pdf", b"%PDF-1.4\n" + b"0" * 512, content_type="application/pdf")
    resp = client.post("/api/media/", {"file": pdf, "folder": "library/docs", "type": "document"}, format="multipart")

    assert resp.status_code == 201, resp.content
    assert resp.json()["storage_path"].startswith("library/docs/")

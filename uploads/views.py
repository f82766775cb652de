import hmac
import logging

from django.conf import settings
from rest_framework import status, views
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .errors import MediaPipelineError, NotFound
from .models import MediaRecord
from .serializers import (
    MediaRecordSerializer,
    MediaSubmitSerializer,
    StorageNotificationSerializer,
    SubmissionResultSerializer,
)
from .submission import submit
from .tasks import process_finalized_object
from .utils import read_uploaded_file

logger = logging.getLogger(__name__)


class MediaSubmitView(views.APIView):
    """
    Accepts a file, runs the submission pipeline and returns the new media id.
    Variants are produced later; poll MediaDetailView for status.
    """
    # Anonymous requests reach submit() so they fail the same way as any other caller.
    permission_classes = [AllowAny]

    def post(self, request):
        ser = MediaSubmitSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        actor_id = str(request.user.pk) if request.user.is_authenticated else None
        try:
            result = submit(
                read_uploaded_file(ser.validated_data["file"]),
                ser.validated_data["folder"],
                ser.validated_data["type"],
                actor_id=actor_id,
            )
        except MediaPipelineError as exc:
            return Response(exc.as_dict(), status=exc.http_status)

        out = SubmissionResultSerializer(result).data
        return Response(out, status=status.HTTP_201_CREATED)


class MediaDetailView(views.APIView):
    permission_classes = [AllowAny]

    def get(self, request, media_id):
        try:
            record = MediaRecord.objects.get(pk=media_id)
        except MediaRecord.DoesNotExist:
            exc = NotFound("Not found")
            return Response(exc.as_dict(), status=exc.http_status)

        return Response(MediaRecordSerializer(record).data)


class StorageEventView(views.APIView):
    """
    Webhook target for MinIO/S3 bucket notifications. Each object-created
    record is queued for variant generation; filtering happens in the task.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        token = settings.STORAGE_EVENTS_TOKEN
        if token:
            supplied = request.headers.get("Authorization", "")
            if not hmac.compare_digest(supplied.encode(), f"Bearer {token}".encode()):
                return Response({"detail": "Invalid token"}, status=401)

        ser = StorageNotificationSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        queued = 0
        for path, content_type in ser.finalized_objects():
            process_finalized_object.delay(path, content_type)
            queued += 1

        logger.debug("Queued %d finalize events", queued)
        return Response({"queued": queued}, status=status.HTTP_202_ACCEPTED)

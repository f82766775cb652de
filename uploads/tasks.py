from celery import shared_task
from django.conf import settings

from .variants import FinalizeEvent, generate_variants, reconcile_stale_records


@shared_task(
    acks_late=True,
    time_limit=settings.MEDIA_VARIANT_TIME_LIMIT,
    soft_time_limit=max(1, settings.MEDIA_VARIANT_TIME_LIMIT - 10),
)
def process_finalized_object(path: str, content_type: str):
    outcome = generate_variants(FinalizeEvent(path=path, content_type=content_type))
    return outcome.value


@shared_task
def reconcile_stale_media():
    def dispatch(event: FinalizeEvent):
        process_finalized_object.delay(event.path, event.content_type)

    return reconcile_stale_records(dispatch=dispatch)

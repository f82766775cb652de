from django.urls import path
from .views import MediaSubmitView, MediaDetailView, StorageEventView

urlpatterns = [
    path("media/", MediaSubmitView.as_view(), name="media_submit"),
    path("media/<uuid:media_id>/", MediaDetailView.as_view(), name="media_detail"),
    path("storage/events/", StorageEventView.as_view(), name="storage_events"),
]

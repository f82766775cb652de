import logging

from django.conf import settings

from .naming import is_variant_path

logger = logging.getLogger(__name__)


def should_process(path: str, content_type: str) -> bool:
    """
    Decide whether a finalized object is an original image this pipeline owns.

    Runs before any store access. The variant-suffix check is what keeps a
    variant's own finalize event from triggering another round of generation.
    """
    if not path or not content_type or not content_type.startswith("image/"):
        logger.debug("Skipping non-image: %s (%s)", path, content_type)
        return False

    if not any(path.startswith(prefix) for prefix in settings.MEDIA_MONITORED_PREFIXES):
        logger.debug("Skipping unmonitored path: %s", path)
        return False

    if is_variant_path(path):
        logger.debug("Skipping variant file: %s", path)
        return False

    return True

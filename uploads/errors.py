"""
Error taxonomy of the media pipeline.

Submission errors are raised to the caller of ``submit`` and rendered by the
API views; none of them leaves an object or a record behind. Variant generation
errors never reach a caller, they end up as ``status = failed`` on the record.
"""


class MediaPipelineError(Exception):
    code = "media_error"
    http_status = 400

    def as_dict(self) -> dict:
        return {"detail": str(self), "code": self.code}


class Unauthenticated(MediaPipelineError):
    code = "unauthenticated"
    http_status = 401

    def __init__(self, message: str = "Authentication required. Please sign in to upload files."):
        super().__init__(message)


class RateLimited(MediaPipelineError):
    code = "rate_limited"
    http_status = 429

    def __init__(self, limit: int, window_seconds: int):
        self.limit = limit
        self.window_seconds = window_seconds
        super().__init__(
            f"Upload limit reached. You may upload up to {limit} files per {_describe_window(window_seconds)}."
        )

    def as_dict(self) -> dict:
        return {**super().as_dict(), "limit": self.limit, "window_seconds": self.window_seconds}


class ValidationFailed(MediaPipelineError):
    code = "validation_failed"


class UnsupportedType(ValidationFailed):
    code = "unsupported_type"

    def __init__(self, content_type: str, message: str | None = None):
        self.content_type = content_type
        super().__init__(
            message or f"Unsupported file type: {content_type or 'unknown'}. Only images and PDFs are accepted."
        )


class FileTooLarge(ValidationFailed):
    code = "file_too_large"
    http_status = 413

    def __init__(self, kind: str, size_bytes: int, limit_bytes: int):
        self.kind = kind
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes
        super().__init__(
            f"{kind.capitalize()} exceeds {_mb(limit_bytes)} MB limit ({_mb(size_bytes)} MB)."
        )

    def as_dict(self) -> dict:
        return {**super().as_dict(), "limit_bytes": self.limit_bytes, "size_bytes": self.size_bytes}


class CompressionFailed(MediaPipelineError):
    code = "compression_failed"
    http_status = 422

    def __init__(self, filename: str, cause: Exception):
        self.filename = filename
        self.cause = cause
        super().__init__(f"Could not process image {filename!r}: {cause}")


class UploadFailed(MediaPipelineError):
    code = "upload_failed"
    http_status = 502

    def __init__(self, path: str, cause: Exception):
        self.path = path
        self.cause = cause
        super().__init__(f"Upload of {path} failed: {cause}")


class NotFound(MediaPipelineError):
    code = "not_found"
    http_status = 404


class VariantGenerationFailed(MediaPipelineError):
    code = "variant_generation_failed"
    http_status = 500

    def __init__(self, path: str, variant: str, cause: Exception):
        self.path = path
        self.variant = variant
        self.cause = cause
        super().__init__(f"Variant {variant!r} of {path} failed: {cause}")


def _mb(num_bytes: int) -> str:
    value = num_bytes / 1024 / 1024
    return f"{value:.0f}" if value.is_integer() else f"{value:.1f}"


def _describe_window(seconds: int) -> str:
    if seconds == 3600:
        return "hour"
    if seconds % 3600 == 0:
        return f"{seconds // 3600} hours"
    if seconds % 60 == 0:
        return f"{seconds // 60} minutes"
    return f"{seconds} seconds"

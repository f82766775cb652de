from pathlib import Path
import os
from dotenv import load_dotenv
from django.core.exceptions import ImproperlyConfigured

# -----------------------------------------------------
# Helpers
# -----------------------------------------------------
def env(name: str, default=None, *, required: bool = False):
    val = os.getenv(name, default)
    if required and (val is None or (isinstance(val, str) and val.strip() == "")):
        raise ImproperlyConfigured(f"Missing required environment variable: {name}")
    return val

def env_bool(name: str, default: bool = False) -> bool:
    return str(os.getenv(name, str(default))).lower() in {"1", "true", "yes", "on"}

def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ImproperlyConfigured(f"{name} must be an integer, got {raw!r}")

def env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ImproperlyConfigured(f"{name} must be a number, got {raw!r}")

def env_list(name: str, default: str) -> list[str]:
    return [v.strip() for v in os.getenv(name, default).split(",") if v.strip()]

def env_variants(name: str, default: str) -> list[tuple[str, int]]:
    """Parse "thumb:200,medium:800" into [("thumb", 200), ("medium", 800)], keeping order."""
    variants = []
    for item in env_list(name, default):
        vname, _, width = item.partition(":")
        if not vname or not width.isdigit() or int(width) <= 0:
            raise ImproperlyConfigured(f"Bad variant definition in {name}: {item!r}")
        variants.append((vname.strip(), int(width)))
    return variants

# -----------------------------------------------------
# Paths & basics
# -----------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

DEBUG = env_bool("DEBUG", False)

# In production (DEBUG=False) you must set a strong secret in .env
SECRET_KEY = env("DJANGO_SECRET_KEY", "dev-only-secret-key-change-me", required=not DEBUG)

# Keep hosts explicit by default
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "127.0.0.1,localhost,testserver").split(",") if h.strip()]

# -----------------------------------------------------
# Applications
# -----------------------------------------------------
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third-party
    "rest_framework",

    # Local
    "uploads",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "media_ingest.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "media_ingest.wsgi.application"

# -----------------------------------------------------
# Database (Postgres if DB_* env vars set, else SQLite)
# -----------------------------------------------------
if os.getenv("DB_HOST"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": env("DB_NAME", "media_ingest"),
            "USER": env("DB_USER", "media_user"),
            "PASSWORD": env("DB_PASSWORD", ""),
            "HOST": env("DB_HOST", "127.0.0.1"),
            "PORT": env("DB_PORT", "5432"),
            "CONN_MAX_AGE": int(env("DB_CONN_MAX_AGE", "60")),  # keep-alive
            "OPTIONS": {
                **({"sslmode": os.getenv("DB_SSLMODE")} if os.getenv("DB_SSLMODE") else {})
            },
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

# -----------------------------------------------------
# Password validation
# -----------------------------------------------------
AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

# -----------------------------------------------------
# Internationalization
# -----------------------------------------------------
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# -----------------------------------------------------
# Static
# -----------------------------------------------------
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# -----------------------------------------------------
# Django REST Framework
# -----------------------------------------------------
REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
        "rest_framework.renderers.BrowsableAPIRenderer" if DEBUG else "rest_framework.renderers.JSONRenderer",
    ],
    "DEFAULT_PARSER_CLASSES": [
        "rest_framework.parsers.JSONParser",
        "rest_framework.parsers.FormParser",
        "rest_framework.parsers.MultiPartParser",
    ],
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
        "rest_framework.authentication.BasicAuthentication",
    ],
}

CSRF_TRUSTED_ORIGINS = [
    o.strip() for o in os.getenv("CSRF_TRUSTED_ORIGINS", "").split(",") if o.strip()
]

# -----------------------------------------------------
# Logging
# -----------------------------------------------------
LOG_LEVEL = env("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "uploads": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "celery": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}

# -----------------------------------------------------
# Celery / Redis
# -----------------------------------------------------
CELERY_BROKER_URL = env("CELERY_BROKER_URL", "redis://127.0.0.1:6379/0")
CELERY_RESULT_BACKEND = env("CELERY_RESULT_BACKEND", "redis://127.0.0.1:6379/0")
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = env_int("CELERY_TASK_TIME_LIMIT", 60 * 15)  # seconds
# Finalize events are delivered at-least-once; ack only after the handler ran.
CELERY_TASK_ACKS_LATE = True
CELERY_WORKER_PREFETCH_MULTIPLIER = 1
CELERY_WORKER_MAX_MEMORY_PER_CHILD = env_int("CELERY_WORKER_MAX_MEMORY_PER_CHILD", 512 * 1024)  # KiB
CELERY_BEAT_SCHEDULE = {
    "reconcile-stale-media": {
        "task": "uploads.tasks.reconcile_stale_media",
        "schedule": float(env_int("MEDIA_RECONCILE_INTERVAL_SECONDS", 600)),
    },
}

# -----------------------------------------------------
# Default PK type
# -----------------------------------------------------
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# -----------------------------------------------------
# S3 / MinIO (env-driven; no hardcoded secrets)
# -----------------------------------------------------
S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL") or "http://127.0.0.1:9000"  # fine for local
S3_PUBLIC_ENDPOINT = os.getenv("S3_PUBLIC_ENDPOINT", S3_ENDPOINT_URL)
S3_REGION = os.getenv("S3_REGION", "us-east-1")
S3_BUCKET = os.getenv("S3_BUCKET", "media-local")
S3_ACCESS_KEY = os.getenv("S3_ACCESS_KEY")          # set in .env for local
S3_SECRET_KEY = os.getenv("S3_SECRET_KEY")          # set in .env for local

# Public base for stored objects, e.g. https://cdn.example.com. Falls back to
# S3_PUBLIC_ENDPOINT/S3_BUCKET when empty.
MEDIA_CDN_BASE_URL = os.getenv("MEDIA_CDN_BASE_URL", "").rstrip("/")

# Shared secret MinIO sends as "Authorization: Bearer <token>" on bucket notifications.
STORAGE_EVENTS_TOKEN = os.getenv("STORAGE_EVENTS_TOKEN", "")

# -----------------------------------------------------
# Media pipeline
# -----------------------------------------------------
# Paths are immutable (they embed a timestamp + uuid), so objects can be cached forever.
MEDIA_CACHE_CONTROL = env("MEDIA_CACHE_CONTROL", "public, max-age=31536000, immutable")

# Submission limits, checked on the original file before compression.
MEDIA_MAX_IMAGE_BYTES = env_int("MEDIA_MAX_IMAGE_BYTES", 5 * 1024 * 1024)
MEDIA_MAX_DOCUMENT_BYTES = env_int("MEDIA_MAX_DOCUMENT_BYTES", 20 * 1024 * 1024)
MEDIA_ALLOWED_IMAGE_TYPES = env_list(
    "MEDIA_ALLOWED_IMAGE_TYPES", "image/jpeg,image/png,image/gif,image/webp,image/avif"
)
MEDIA_ALLOWED_DOCUMENT_TYPES = env_list("MEDIA_ALLOWED_DOCUMENT_TYPES", "application/pdf")

# Soft, client-observable limit. The bucket policy is the real enforcement point.
MEDIA_UPLOAD_RATE_LIMIT = env_int("MEDIA_UPLOAD_RATE_LIMIT", 20)
MEDIA_UPLOAD_RATE_WINDOW_SECONDS = env_int("MEDIA_UPLOAD_RATE_WINDOW_SECONDS", 60 * 60)

# Submission-side compression
MEDIA_COMPRESS_MAX_SIZE_MB = env_float("MEDIA_COMPRESS_MAX_SIZE_MB", 1.0)
MEDIA_COMPRESS_MAX_WIDTH_OR_HEIGHT = env_int("MEDIA_COMPRESS_MAX_WIDTH_OR_HEIGHT", 1920)
MEDIA_COMPRESS_QUALITY = env_float("MEDIA_COMPRESS_QUALITY", 0.82)
MEDIA_COMPRESS_WORKERS = env_int("MEDIA_COMPRESS_WORKERS", 2)

# Variant generation
MEDIA_MONITORED_PREFIXES = env_list("MEDIA_MONITORED_PREFIXES", "posts/,temples/,users/")
MEDIA_VARIANTS = env_variants("MEDIA_VARIANTS", "thumb:200,medium:800")
MEDIA_VARIANT_QUALITY = env_int("MEDIA_VARIANT_QUALITY", 80)
MEDIA_VARIANT_TIME_LIMIT = env_int("MEDIA_VARIANT_TIME_LIMIT", 120)  # seconds

# Reconciliation of records whose finalize event never arrived or timed out
MEDIA_STALE_PROCESSING_SECONDS = env_int("MEDIA_STALE_PROCESSING_SECONDS", 15 * 60)
MEDIA_STALE_GIVE_UP_SECONDS = env_int("MEDIA_STALE_GIVE_UP_SECONDS", 24 * 60 * 60)

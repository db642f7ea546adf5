"""Django settings for the service desk backend.

Environment-driven configuration for the database, Redis, JWT, CORS,
notifications, and logging. Every value is read once at import time.
"""
import os
from pathlib import Path
from urllib.parse import urlparse

from django.core.exceptions import ImproperlyConfigured

BASE_DIR = Path(__file__).resolve().parent.parent


def _get_env(name: str, default: str | None = None) -> str | None:
    """Read an environment variable with an optional fallback."""
    return os.environ.get(name, default)


def _get_int_env(name: str, default: int) -> int:
    """Read an integer environment variable, failing loudly on bad input."""
    raw = _get_env(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ImproperlyConfigured(f"{name} must be an integer, got {raw!r}") from exc


def _get_list_env(name: str, default: str = "") -> list[str]:
    return [item.strip() for item in (_get_env(name, default) or "").split(",") if item.strip()]


def _parse_database_url(url: str) -> dict:
    """Parse a DATABASE_URL into a Django DATABASES entry.

    ``postgres://``/``postgresql://`` URLs map to the psycopg backend and
    ``sqlite:///path`` to SQLite.
    """
    parsed = urlparse(url)
    if parsed.scheme == "sqlite":
        return {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": parsed.path.lstrip("/") or str(BASE_DIR / "db.sqlite3"),
        }
    if parsed.scheme not in ("postgres", "postgresql"):
        raise ImproperlyConfigured(f"Unsupported DATABASE_URL scheme: {parsed.scheme}")
    return {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": parsed.path.lstrip("/"),
        "USER": parsed.username,
        "PASSWORD": parsed.password,
        "HOST": parsed.hostname,
        "PORT": parsed.port or "5432",
    }


SECRET_KEY = _get_env("SECRET_KEY", "dev-secret-key-change-me")
DEBUG = _get_env("DEBUG", "True") == "True"
if not DEBUG and SECRET_KEY in ("change-me", "dev-secret-key-change-me"):
    raise ImproperlyConfigured("SECRET_KEY must be set in production")
ALLOWED_HOSTS = _get_list_env("ALLOWED_HOSTS", "localhost,127.0.0.1,0.0.0.0,testserver")

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.staticfiles",
    "corsheaders",
    "rest_framework",
    "drf_spectacular",
    "core",
    "access_control",
    "authentication",
    "audit",
    "customers",
    "inventory",
    "problems",
    "tickets",
    "installations",
    "notifications",
    "dashboard",
    "scripts",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "core.middleware.RequestIdMiddleware",
    # Runs last so every view sees the resolved principal on request.user.
    "core.middleware.JWTAuthMiddleware",
]

ROOT_URLCONF = "core.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
            ],
        },
    },
]

WSGI_APPLICATION = "core.wsgi.application"
ASGI_APPLICATION = "core.asgi.application"

DATABASE_URL = _get_env("DATABASE_URL")
if DATABASE_URL:
    DATABASES = {"default": _parse_database_url(DATABASE_URL)}
elif _get_env("POSTGRES_HOST"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": _get_env("POSTGRES_DB", "service_desk"),
            "USER": _get_env("POSTGRES_USER", "service_desk"),
            "PASSWORD": _get_env("POSTGRES_PASSWORD", "service_desk"),
            "HOST": _get_env("POSTGRES_HOST"),
            "PORT": _get_env("POSTGRES_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
MEDIA_URL = _get_env("MEDIA_URL", "/media/")
MEDIA_ROOT = Path(_get_env("MEDIA_ROOT", str(BASE_DIR / "media")))
FILE_UPLOAD_MAX_MEMORY_SIZE = 5 * 1024 * 1024
TICKET_ATTACHMENT_MAX_FILES = _get_int_env("TICKET_ATTACHMENT_MAX_FILES", 5)
TICKET_ATTACHMENT_MAX_BYTES = _get_int_env("TICKET_ATTACHMENT_MAX_BYTES", 5 * 1024 * 1024)

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

AUTH_USER_MODEL = "authentication.User"

# JWT / token blocklist
JWT_SECRET = _get_env("JWT_SECRET", SECRET_KEY)
JWT_ACCESS_TTL_MINUTES = _get_int_env("JWT_ACCESS_TTL_MINUTES", 15)
JWT_REFRESH_TTL_HOURS = _get_int_env("JWT_REFRESH_TTL_HOURS", 24)
DEBUG_AUTH_ERRORS = _get_env("DEBUG_AUTH_ERRORS", "False") == "True"
REDIS_URL = _get_env("REDIS_URL", "redis://localhost:6379/0")
REDIS_SOCKET_TIMEOUT = float(_get_env("REDIS_SOCKET_TIMEOUT", "2.0") or 2.0)

# CORS
CORS_ALLOWED_ORIGINS = _get_list_env(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:5173,http://127.0.0.1:5173"
)
CORS_ALLOW_CREDENTIALS = True
CORS_EXPOSE_HEADERS = ["X-Request-ID"]

# Listing and ticket policy
PAGINATION_DEFAULT_LIMIT = _get_int_env("PAGINATION_DEFAULT_LIMIT", 10)
PAGINATION_MAX_LIMIT = _get_int_env("PAGINATION_MAX_LIMIT", 100)
TICKET_DELETE_REASON_MIN_LENGTH = _get_int_env("TICKET_DELETE_REASON_MIN_LENGTH", 10)

# Notifications
EMAIL_BACKEND = _get_env("EMAIL_BACKEND", "django.core.mail.backends.console.EmailBackend")
EMAIL_HOST = _get_env("EMAIL_HOST", "localhost")
EMAIL_PORT = _get_int_env("EMAIL_PORT", 587)
EMAIL_HOST_USER = _get_env("EMAIL_HOST_USER", "")
EMAIL_HOST_PASSWORD = _get_env("EMAIL_HOST_PASSWORD", "")
EMAIL_USE_TLS = _get_env("EMAIL_USE_TLS", "True") == "True"
DEFAULT_FROM_EMAIL = _get_env("DEFAULT_FROM_EMAIL", "Service Desk <no-reply@localhost>")
WHATSAPP_API_URL = _get_env("WHATSAPP_API_URL", "")
WHATSAPP_API_TOKEN = _get_env("WHATSAPP_API_TOKEN", "")
WHATSAPP_TIMEOUT_SECONDS = _get_int_env("WHATSAPP_TIMEOUT_SECONDS", 10)
REPORTS_DIR = Path(_get_env("REPORTS_DIR", str(BASE_DIR / "reports")))

LOG_LEVEL = (_get_env("LOG_LEVEL", "INFO") or "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"},
    },
    "handlers": {
        "default": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "loggers": {
        "": {"handlers": ["default"], "level": LOG_LEVEL},
        "django": {"handlers": ["default"], "level": LOG_LEVEL, "propagate": False},
        "django.request": {"handlers": ["default"], "level": "ERROR", "propagate": False},
    },
}

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": ["core.authentication.MiddlewareUserAuthentication"],
    "DEFAULT_PERMISSION_CLASSES": [],
    "DEFAULT_PAGINATION_CLASS": "core.pagination.StandardPagination",
    "PAGE_SIZE": PAGINATION_DEFAULT_LIMIT,
    "EXCEPTION_HANDLER": "core.exceptions.custom_exception_handler",
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Service Desk API",
    "DESCRIPTION": (
        "OpenAPI schema for the support ticketing and inventory backend: JWT "
        "authentication, permission-code RBAC, ticket lifecycle, and audit logs."
    ),
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
    "SERVE_PUBLIC": True,
    "APPEND_COMPONENTS": {
        "securitySchemes": {
            "bearerAuth": {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
            }
        }
    },
    "SECURITY": [{"bearerAuth": []}],
}

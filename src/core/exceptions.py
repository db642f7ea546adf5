"""Error taxonomy and the exception handler that enforces the error envelope.

Every failure leaving the API is rendered as::

    {"status": "fail" | "error", "message": str, "code": str, "data": null, "errors": [...]}

``fail`` is used for 4xx responses and ``error`` for 5xx, so clients can tell
a rejected request from a server fault without parsing the status code.
"""

import logging
import traceback
from typing import Any

from django.conf import settings
from django.core.exceptions import ObjectDoesNotExist
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, IntegrityError
from django.db.models import ProtectedError
from rest_framework import status
from rest_framework.exceptions import (
    APIException,
    AuthenticationFailed,
    NotAuthenticated,
    PermissionDenied,
)
from rest_framework.exceptions import NotFound as DRFNotFound
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class BlocklistUnavailable(Exception):
    """Raised when the Redis token blocklist cannot be reached (fail-closed)."""


UNAUTHENTICATED_MESSAGE = (
    "Authentication credentials were not provided or are invalid, "
    "token revoked, or user is inactive."
)
FORBIDDEN_MESSAGE = "You do not have permission to perform this action on this resource."


class ValidationFailed(APIException):
    """Input failed business validation (400)."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Validation failed."
    default_code = "validation_failed"


class InsufficientPermission(PermissionDenied):
    """The principal holds none of the required permission codes."""

    default_detail = FORBIDDEN_MESSAGE
    default_code = "insufficient_permission"


class Forbidden(PermissionDenied):
    """A business rule forbids the action regardless of permission codes."""

    default_detail = "This action is forbidden."
    default_code = "forbidden"


class RoleNotFound(PermissionDenied):
    """The principal references a role that no longer exists."""

    default_detail = "The role assigned to this user no longer exists."
    default_code = "role_not_found"


class NotFound(DRFNotFound):
    default_detail = "Resource not found."
    default_code = "not_found"


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The request conflicts with the current state of the resource."
    default_code = "conflict"


class InvalidTransition(APIException):
    """A lifecycle transition is not allowed from the current state."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid status transition."
    default_code = "invalid_transition"

    def __init__(self, current: str, requested: str, detail: str | None = None, entity: str = "ticket"):
        self.current = str(current)
        self.requested = str(requested)
        super().__init__(detail or f"Cannot transition {entity} from {self.current} to {self.requested}.")

    @property
    def extra(self) -> dict[str, str]:
        return {"current_status": self.current, "requested_status": self.requested}


class Internal(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal server error."
    default_code = "internal_error"


def _normalize_errors(payload: Any) -> list[Any]:
    """Convert DRF's response.data into a list for the envelope."""

    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and "detail" in payload:
        # Common DRF pattern: {"detail": "..."}
        return [payload["detail"]]
    return [payload]


def _first_message(errors: list[Any], fallback: str) -> str:
    """Pick a human readable message out of normalized errors."""
    for error in errors:
        if isinstance(error, str):
            return error
        if isinstance(error, dict):
            for field, value in error.items():
                if isinstance(value, list) and value:
                    return f"{field}: {value[0]}"
                if isinstance(value, str):
                    return f"{field}: {value}"
    return fallback


def _envelope(
    status_code: int,
    message: str,
    errors: list[Any],
    code: str,
    extra: dict[str, Any] | None = None,
) -> Response:
    body: dict[str, Any] = {
        "status": "fail" if status_code < 500 else "error",
        "message": message,
        "code": code,
        "data": None,
        "errors": errors,
    }
    if extra:
        body["details"] = extra
    return Response(body, status=status_code)


def _translate_django_exception(exc: Exception) -> Response | None:
    """Map ORM and model-layer exceptions onto the taxonomy."""

    # IntegrityError subclasses DatabaseError, so it is checked first.
    if isinstance(exc, IntegrityError):
        return _envelope(409, "Resource conflicts with an existing record.", [str(exc)], "conflict")
    if isinstance(exc, ProtectedError):
        return _envelope(
            409, "Resource is still referenced by other records.", [str(exc.args[0])], "conflict"
        )
    if isinstance(exc, DjangoValidationError):
        errors: list[Any] = [exc.message_dict] if hasattr(exc, "error_dict") else list(exc.messages)
        return _envelope(400, _first_message(errors, "Validation failed."), errors, "validation_failed")
    if isinstance(exc, ObjectDoesNotExist):
        return _envelope(404, "Resource not found.", ["Resource not found."], "not_found")
    if isinstance(exc, DatabaseError):
        # Treat database errors as a temporary outage, still in the envelope.
        logger.error("database error: %s", exc)
        return _envelope(
            503, "Service temporarily unavailable.", ["Service temporarily unavailable."],
            "service_unavailable",
        )
    return None


def custom_exception_handler(exc: Exception, context: dict[str, Any]) -> Response:
    """Single translation boundary from exceptions to the error envelope.

    - Blocklist outages fail closed with 503.
    - Django/ORM exceptions are mapped to 400/404/409/503.
    - DRF exceptions keep their status, with auth failures forced to 401.
    - Anything else becomes a logged 500; the stack is only exposed in DEBUG.
    """

    if isinstance(exc, BlocklistUnavailable):
        message = "Authentication service unavailable (blocklist)."
        return _envelope(503, message, [message], "service_unavailable")

    translated = _translate_django_exception(exc)
    if translated is not None:
        return translated

    response = drf_exception_handler(exc, context)

    if response is None:
        view = context.get("view")
        logger.exception("unhandled error in %s", type(view).__name__ if view else "request", exc_info=exc)
        extra = {"stack": traceback.format_exception(type(exc), exc, exc.__traceback__)} if settings.DEBUG else None
        return _envelope(500, "Internal server error.", ["Internal server error."], "internal_error", extra)

    # DRF downgrades 401 to 403 when no WWW-Authenticate header is available.
    if isinstance(exc, (AuthenticationFailed, NotAuthenticated)):
        response.status_code = status.HTTP_401_UNAUTHORIZED

    code = getattr(exc, "default_code", "error")
    if isinstance(exc, APIException):
        codes = exc.get_codes()
        if isinstance(codes, str):
            code = codes

    if response.status_code == status.HTTP_401_UNAUTHORIZED:
        if getattr(settings, "DEBUG_AUTH_ERRORS", False):
            errors = _normalize_errors(response.data)
        else:
            errors = [UNAUTHENTICATED_MESSAGE]
        code = "unauthenticated"
    elif type(exc) is PermissionDenied:
        errors = [FORBIDDEN_MESSAGE]
        code = "insufficient_permission"
    else:
        errors = _normalize_errors(response.data)

    fallback = FORBIDDEN_MESSAGE if response.status_code == 403 else "Request failed."
    enveloped = _envelope(
        response.status_code,
        _first_message(errors, fallback),
        errors,
        code,
        getattr(exc, "extra", None),
    )
    for header in ("WWW-Authenticate", "Retry-After"):
        if response.has_header(header):
            enveloped[header] = response[header]
    return enveloped


__all__ = [
    "BlocklistUnavailable",
    "ValidationFailed",
    "InsufficientPermission",
    "Forbidden",
    "RoleNotFound",
    "NotFound",
    "Conflict",
    "InvalidTransition",
    "Internal",
    "custom_exception_handler",
]

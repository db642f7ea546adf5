"""Request middleware: request ids for tracing and JWT principal resolution."""

import logging
import uuid

from django.contrib.auth.models import AnonymousUser
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin
from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed

from authentication.services import BlocklistUnavailable, TokenService

logger = logging.getLogger(__name__)


class RequestIdMiddleware(MiddlewareMixin):
    """Propagate or create ``X-Request-ID`` for request tracing.

    The id is read from the incoming header when present, otherwise
    generated, stored on ``request.request_id`` and echoed in the response.
    """

    header_name = "X-Request-ID"

    def process_request(self, request):  # type: ignore[override]
        request.request_id = request.META.get("HTTP_X_REQUEST_ID") or str(uuid.uuid4())
        return None

    def process_response(self, request, response):  # type: ignore[override]
        request_id = getattr(request, "request_id", None)
        if request_id:
            response[self.header_name] = request_id
        return response


class JWTAuthMiddleware(MiddlewareMixin):
    """Resolve the bearer access token into ``request.user``.

    Requests without a bearer header continue as anonymous; the permission
    gate on each view decides whether that is acceptable. A header that is
    present but invalid, expired, revoked, or bound to an inactive user is
    rejected here with 401 before any view code runs.
    """

    def process_request(self, request):  # type: ignore[override]
        """Authenticate request using Bearer access token if present."""
        auth_header = request.META.get("HTTP_AUTHORIZATION", "")
        if not auth_header or not auth_header.startswith("Bearer "):
            request.user = AnonymousUser()
            return None

        token = auth_header.split(" ", 1)[1].strip()

        try:
            request.user = TokenService.authenticate(token)
            return None
        except AuthenticationFailed as exc:
            logger.info("rejected bearer token: %s", exc.detail)
            return _unauthorized()
        except BlocklistUnavailable:
            logger.error("token blocklist unavailable")
            return _service_unavailable()


def _unauthorized() -> JsonResponse:
    message = (
        "Authentication credentials were not provided or are invalid, token revoked, or user is inactive."
    )
    return JsonResponse(
        {"status": "fail", "message": message, "code": "unauthenticated", "data": None, "errors": [message]},
        status=status.HTTP_401_UNAUTHORIZED,
    )


def _service_unavailable() -> JsonResponse:
    message = "Authentication service unavailable (blocklist)."
    return JsonResponse(
        {"status": "error", "message": message, "code": "service_unavailable", "data": None, "errors": [message]},
        status=status.HTTP_503_SERVICE_UNAVAILABLE,
    )


__all__ = ["JWTAuthMiddleware", "RequestIdMiddleware"]

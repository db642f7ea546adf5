"""Response helpers and base classes for consistent API envelopes."""

from typing import Any

from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet, ModelViewSet


def api_response(data: Any, status: int = 200, message: str = "") -> Response:
    """Return data wrapped in the success envelope.

    All successful JSON responses should use this helper (or a view based on
    ``EnvelopeMixin``) to keep the ``{"status", "message", "data"}`` shape.
    """

    return Response({"status": "success", "message": message, "data": data}, status=status)


def _is_enveloped(payload: Any) -> bool:
    return isinstance(payload, dict) and "status" in payload and "data" in payload


class EnvelopeMixin:
    """Mixin to wrap successful responses in the standard envelope."""

    def finalize_response(self, request, response, *args, **kwargs):  # type: ignore[override]
        """Ensure non-error responses include the success envelope."""
        if hasattr(response, "data") and response.status_code and response.status_code < 400:
            if response.status_code != 204 and not _is_enveloped(response.data):
                response.data = {"status": "success", "message": "", "data": response.data}
        # DRF's APIView/ModelViewSet provide finalize_response; mixin alone doesn't.
        return super().finalize_response(request, response, *args, **kwargs)  # type: ignore[attr-defined]


class BaseAPIView(EnvelopeMixin, APIView):
    """APIView that ensures successful responses use the standard envelope."""


class BaseGenericViewSet(EnvelopeMixin, GenericViewSet):
    """GenericViewSet for resources that only expose a subset of CRUD."""


class BaseViewSet(EnvelopeMixin, ModelViewSet):
    """ModelViewSet variant that wraps successful responses in the envelope."""


def client_address(request) -> str | None:
    """Best-effort source address for audit and activity records."""
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.META.get("REMOTE_ADDR") or None

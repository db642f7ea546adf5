"""DRF permission gate that maps view actions to required permission codes."""

from rest_framework import permissions

from core.exceptions import InsufficientPermission

from .evaluator import get_evaluator


class HasAnyPermission(permissions.BasePermission):
    """Allow the request when the caller holds ANY code required by the action.

    Views declare ``required_permissions`` as a mapping of DRF action name
    (``list``, ``create``, ``assign``...) or HTTP method (``GET``, ``POST``...)
    to a non-empty tuple of codes. An action missing from the mapping is
    denied. Anonymous callers are rejected with 401 by DRF before the
    evaluator is consulted.
    """

    message = InsufficientPermission.default_detail

    def has_permission(self, request, view) -> bool:
        user = getattr(request, "user", None)
        if not user or not getattr(user, "is_authenticated", False):
            return False

        required = self.required_for(request, view)
        if not required:
            return False

        if not get_evaluator().has_any_permission(user, required):
            raise InsufficientPermission()
        return True

    @staticmethod
    def required_for(request, view) -> tuple[str, ...]:
        mapping = getattr(view, "required_permissions", None) or {}
        action = getattr(view, "action", None)
        if action and action in mapping:
            return tuple(mapping[action])
        return tuple(mapping.get(request.method, ()))


__all__ = ["HasAnyPermission"]

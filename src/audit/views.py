"""Read endpoints for the audit trail and activity log."""

from datetime import datetime

from rest_framework import mixins

from access_control.permissions import HasAnyPermission
from access_control.registry import PermissionCode as P
from core.exceptions import ValidationFailed
from core.response import BaseGenericViewSet
from .models import ActivityLog, AuditLogEntry
from .serializers import ActivityLogSerializer, AuditLogEntrySerializer


def parse_date_param(params, name: str):
    """Parse an ISO date (``YYYY-MM-DD``) query parameter, or None."""
    value = params.get(name)
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise ValidationFailed(f"{name} must be a date in YYYY-MM-DD format") from exc


class AuditLogViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, BaseGenericViewSet):
    permission_classes = [HasAnyPermission]
    required_permissions = {
        "list": (P.VIEW_AUDIT_LOGS, P.VIEW_LOG),
        "retrieve": (P.VIEW_AUDIT_LOGS, P.VIEW_LOG),
    }
    serializer_class = AuditLogEntrySerializer
    queryset = AuditLogEntry.objects.select_related("performed_by")

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        if params.get("entity_type"):
            qs = qs.filter(entity_type__iexact=params["entity_type"])
        if params.get("entity_id"):
            qs = qs.filter(entity_id=params["entity_id"])
        if params.get("action"):
            qs = qs.filter(action=params["action"].upper())
        if params.get("performed_by"):
            qs = qs.filter(performed_by_id=params["performed_by"])
        start = parse_date_param(params, "start_date")
        if start:
            qs = qs.filter(performed_at__date__gte=start)
        end = parse_date_param(params, "end_date")
        if end:
            qs = qs.filter(performed_at__date__lte=end)
        return qs


class ActivityLogViewSet(mixins.ListModelMixin, BaseGenericViewSet):
    permission_classes = [HasAnyPermission]
    required_permissions = {"list": (P.VIEW_ACTIVITY_LOGS, P.VIEW_LOG)}
    serializer_class = ActivityLogSerializer
    queryset = ActivityLog.objects.select_related("user")

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        if params.get("user"):
            qs = qs.filter(user_id=params["user"])
        if params.get("action"):
            qs = qs.filter(action=params["action"].upper())
        start = parse_date_param(params, "start_date")
        if start:
            qs = qs.filter(timestamp__date__gte=start)
        end = parse_date_param(params, "end_date")
        if end:
            qs = qs.filter(timestamp__date__lte=end)
        return qs

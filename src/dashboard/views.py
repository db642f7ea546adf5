"""Dashboard endpoints; all read-only."""

from access_control.permissions import HasAnyPermission
from access_control.registry import PermissionCode as P
from access_control.registry import resource_code
from audit.serializers import ActivityLogSerializer
from core.exceptions import ValidationFailed
from core.response import BaseAPIView, api_response
from . import services

VIEW_DASHBOARD = (P.VIEW_DASHBOARD, resource_code("DASHBOARD", "VIEW"))


def _limit(request, default: int, maximum: int = 50) -> int:
    raw = request.query_params.get("limit")
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValidationFailed("limit must be an integer") from exc
    if value < 1:
        raise ValidationFailed("limit must be positive")
    return min(value, maximum)


class DashboardView(BaseAPIView):
    permission_classes = [HasAnyPermission]
    required_permissions = {"GET": VIEW_DASHBOARD}


class StatsView(DashboardView):
    # noinspection PyMethodMayBeStatic
    def get(self, request):
        return api_response(services.summary())


class TicketStatsView(DashboardView):
    # noinspection PyMethodMayBeStatic
    def get(self, request):
        return api_response(services.ticket_stats())


class RecentActivitiesView(DashboardView):
    def get(self, request):
        activities = services.recent_activities(_limit(request, 10))
        return api_response(ActivityLogSerializer(activities, many=True).data)


class TopCustomersView(DashboardView):
    def get(self, request):
        return api_response(services.top_customers(_limit(request, 5)))


class LowStockView(DashboardView):
    def get(self, request):
        return api_response(services.low_stock_items(_limit(request, 5)))

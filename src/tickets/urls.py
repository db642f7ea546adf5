"""Routing for tickets and ticket settings."""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import AutoApprovalView, DueDatesView, TicketSettingsResetView, TicketSettingsView, TicketViewSet

router = DefaultRouter()
router.register(r"tickets", TicketViewSet, basename="ticket")

urlpatterns = [
    path("", include(router.urls)),
    path("settings/tickets/", TicketSettingsView.as_view(), name="ticket-settings"),
    path("settings/tickets/reset/", TicketSettingsResetView.as_view(), name="ticket-settings-reset"),
    path("settings/tickets/auto-approval/", AutoApprovalView.as_view(), name="ticket-settings-auto-approval"),
    path("settings/tickets/due-dates/", DueDatesView.as_view(), name="ticket-settings-due-dates"),
]

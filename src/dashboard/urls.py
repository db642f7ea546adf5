"""Routing for dashboard endpoints."""

from django.urls import path

from .views import LowStockView, RecentActivitiesView, StatsView, TicketStatsView, TopCustomersView

urlpatterns = [
    path("stats/", StatsView.as_view(), name="dashboard-stats"),
    path("ticket-stats/", TicketStatsView.as_view(), name="dashboard-ticket-stats"),
    path("activities/", RecentActivitiesView.as_view(), name="dashboard-activities"),
    path("top-customers/", TopCustomersView.as_view(), name="dashboard-top-customers"),
    path("low-stock/", LowStockView.as_view(), name="dashboard-low-stock"),
]

"""Routing for log endpoints."""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import ActivityLogViewSet, AuditLogViewSet

router = DefaultRouter()
router.register(r"audit", AuditLogViewSet, basename="audit-log")
router.register(r"activity", ActivityLogViewSet, basename="activity-log")

urlpatterns = [
    path("", include(router.urls)),
]

"""Routing for installation request endpoints."""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import InstallationRequestViewSet

router = DefaultRouter()
router.register(r"installation-requests", InstallationRequestViewSet, basename="installation-request")

urlpatterns = [
    path("", include(router.urls)),
]

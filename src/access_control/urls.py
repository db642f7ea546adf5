"""Routing for role administration endpoints."""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import RoleViewSet

router = DefaultRouter()
router.register(r"roles", RoleViewSet, basename="role")

urlpatterns = [
    path("", include(router.urls)),
]

"""Routing for problem catalogue endpoints."""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import ProblemViewSet

router = DefaultRouter()
router.register(r"problems", ProblemViewSet, basename="problem")

urlpatterns = [
    path("", include(router.urls)),
]

"""Routing for inventory endpoints."""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import InventoryMovementViewSet, ItemViewSet

router = DefaultRouter()
router.register(r"items", ItemViewSet, basename="item")
router.register(r"inventory-movements", InventoryMovementViewSet, basename="inventory-movement")

urlpatterns = [
    path("", include(router.urls)),
]

"""Inventory item and stock movement endpoints; every write is audited."""

from django.db import transaction
from django.db.models import Q
from rest_framework import status
from rest_framework.decorators import action

from access_control.permissions import HasAnyPermission
from access_control.registry import PermissionCode as P
from access_control.registry import resource_code
from audit.models import AuditAction
from audit.recorder import audit_mutation, snapshot
from core.response import BaseViewSet, api_response, client_address
from .models import InventoryMovement, Item
from .serializers import InventoryMovementSerializer, ItemSerializer
from . import services

VIEW_ITEMS = (P.VIEW_ITEM, P.MANAGE_INVENTORY, resource_code("INVENTORY_ITEMS", "VIEW"))
EDIT_ITEMS = (P.UPDATE_ITEM, P.MANAGE_INVENTORY, resource_code("INVENTORY_ITEMS", "EDIT"))
VIEW_MOVEMENTS = (P.VIEW_DISPATCH, P.MANAGE_INVENTORY, resource_code("INVENTORY_MOVEMENTS", "VIEW"))
EDIT_MOVEMENTS = (P.UPDATE_DISPATCH, P.MANAGE_INVENTORY, resource_code("INVENTORY_MOVEMENTS", "EDIT"))


class ItemViewSet(BaseViewSet):
    permission_classes = [HasAnyPermission]
    required_permissions = {
        "list": VIEW_ITEMS,
        "retrieve": VIEW_ITEMS,
        "movements": VIEW_MOVEMENTS,
        "create": (P.CREATE_ITEM, P.MANAGE_INVENTORY, resource_code("INVENTORY_ITEMS", "CREATE")),
        "update": EDIT_ITEMS,
        "partial_update": EDIT_ITEMS,
        "destroy": (P.DELETE_ITEM, P.MANAGE_INVENTORY, resource_code("INVENTORY_ITEMS", "DELETE")),
    }
    serializer_class = ItemSerializer
    queryset = Item.objects.all()

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        if params.get("search"):
            term = params["search"]
            qs = qs.filter(Q(name__icontains=term) | Q(sku__icontains=term))
        if params.get("category"):
            qs = qs.filter(category__iexact=params["category"])
        if params.get("status"):
            qs = qs.filter(status=params["status"].upper())
        return qs

    def perform_create(self, serializer):
        with transaction.atomic():
            with audit_mutation(
                "Item",
                AuditAction.CREATE,
                performed_by=self.request.user,
                source_address=client_address(self.request),
            ) as capture:
                item = serializer.save(created_by=self.request.user, updated_by=self.request.user)
                capture.entity_id = item.pk
                capture.new_state = snapshot(item)

    def perform_update(self, serializer):
        with transaction.atomic():
            with audit_mutation(
                "Item",
                AuditAction.UPDATE,
                instance=serializer.instance,
                performed_by=self.request.user,
                source_address=client_address(self.request),
            ) as capture:
                item = serializer.save(updated_by=self.request.user)
                capture.new_state = snapshot(item)

    def perform_destroy(self, instance):
        with transaction.atomic():
            with audit_mutation(
                "Item",
                AuditAction.DELETE,
                instance=instance,
                performed_by=self.request.user,
                source_address=client_address(self.request),
            ):
                instance.delete()

    @action(detail=True, methods=["get"])
    def movements(self, request, pk=None):
        """Stock movements recorded against this item, newest first."""
        qs = self.get_object().movements.select_related("item", "created_by")
        page = self.paginate_queryset(qs)
        data = InventoryMovementSerializer(page if page is not None else qs, many=True).data
        if page is not None:
            return self.get_paginated_response(data)
        return api_response(data)


class InventoryMovementViewSet(BaseViewSet):
    permission_classes = [HasAnyPermission]
    required_permissions = {
        "list": VIEW_MOVEMENTS,
        "retrieve": VIEW_MOVEMENTS,
        "create": (P.CREATE_DISPATCH, P.MANAGE_INVENTORY, resource_code("INVENTORY_MOVEMENTS", "CREATE")),
        "update": EDIT_MOVEMENTS,
        "partial_update": EDIT_MOVEMENTS,
        "complete": EDIT_MOVEMENTS,
        "cancel": EDIT_MOVEMENTS,
        "destroy": (P.MANAGE_INVENTORY, resource_code("INVENTORY_MOVEMENTS", "DELETE")),
    }
    serializer_class = InventoryMovementSerializer
    queryset = InventoryMovement.objects.select_related("item", "created_by")

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        if params.get("type"):
            qs = qs.filter(movement_type=params["type"].upper())
        if params.get("status"):
            qs = qs.filter(status=params["status"].upper())
        for field in ("item", "ticket", "installation", "created_by"):
            if params.get(field):
                qs = qs.filter(**{f"{field}_id": params[field]})
        return qs

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        movement = services.create_movement(
            serializer.validated_data, actor=request.user, source_address=client_address(request)
        )
        return api_response(
            InventoryMovementSerializer(movement).data, status=status.HTTP_201_CREATED, message="Movement created"
        )

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        movement = self.get_object()
        serializer = self.get_serializer(movement, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        movement = services.update_movement(
            movement, dict(serializer.validated_data), actor=request.user, source_address=client_address(request)
        )
        return api_response(InventoryMovementSerializer(movement).data, message="Movement updated")

    def destroy(self, request, *args, **kwargs):
        services.delete_movement(self.get_object(), actor=request.user, source_address=client_address(request))
        return api_response(None, message="Movement deleted")

    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        movement = services.complete_movement(
            self.get_object(), actor=request.user, source_address=client_address(request)
        )
        return api_response(InventoryMovementSerializer(movement).data, message="Movement completed")

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        movement = services.cancel_movement(self.get_object(), actor=request.user, source_address=client_address(request))
        return api_response(InventoryMovementSerializer(movement).data, message="Movement cancelled")

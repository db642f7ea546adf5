"""Role administration and permission catalogue endpoints."""

from dataclasses import asdict

from django.db.models import Q
from rest_framework import status
from rest_framework.decorators import action

from core.response import BaseViewSet, api_response, client_address
from .models import Role
from .permissions import HasAnyPermission
from .registry import PermissionCode as P
from .registry import get_registry, resource_code
from .serializers import (
    PermissionDefinitionSerializer,
    RoleDropdownSerializer,
    RolePermissionsSerializer,
    RoleSerializer,
    RoleWriteSerializer,
)
from . import services

VIEW_ROLES = (P.VIEW_ROLE, resource_code("ROLES", "VIEW"))


class RoleViewSet(BaseViewSet):
    """CRUD for roles plus the permission catalogue."""

    permission_classes = [HasAnyPermission]
    required_permissions = {
        "list": VIEW_ROLES,
        "retrieve": VIEW_ROLES,
        "create": (P.CREATE_ROLE, resource_code("ROLES", "CREATE")),
        "update": (P.UPDATE_ROLE, resource_code("ROLES", "EDIT")),
        "partial_update": (P.UPDATE_ROLE, resource_code("ROLES", "EDIT")),
        "destroy": (P.DELETE_ROLE, resource_code("ROLES", "DELETE")),
        "catalogue": VIEW_ROLES,
        "dropdown": VIEW_ROLES + (P.CREATE_USER, P.UPDATE_USER, P.ASSIGN_ROLE),
        "role_permissions": VIEW_ROLES,
        "replace_permissions": (P.UPDATE_ROLE, P.ASSIGN_ROLE, resource_code("ROLES", "EDIT")),
    }
    queryset = Role.objects.with_user_counts().prefetch_related("permissions")
    serializer_class = RoleSerializer

    def get_serializer_class(self):
        if self.action in ("create", "update", "partial_update"):
            return RoleWriteSerializer
        return RoleSerializer

    def get_queryset(self):
        qs = super().get_queryset()
        search = self.request.query_params.get("search")
        if search:
            qs = qs.filter(Q(name__icontains=search) | Q(code__icontains=search.upper()))
        return qs

    def create(self, request, *args, **kwargs):
        serializer = RoleWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        role = services.create_role(
            actor=request.user, source_address=client_address(request), **serializer.validated_data
        )
        return api_response(RoleSerializer(role).data, status=status.HTTP_201_CREATED, message="Role created")

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        role = self.get_object()
        serializer = RoleWriteSerializer(role, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        changes = dict(serializer.validated_data)
        changes.pop("code", None)
        role = services.update_role(role, actor=request.user, source_address=client_address(request), **changes)
        return api_response(RoleSerializer(role).data, message="Role updated")

    def destroy(self, request, *args, **kwargs):
        role = self.get_object()
        services.delete_role(role, actor=request.user, source_address=client_address(request))
        return api_response(None, message="Role deleted")

    @action(detail=False, methods=["get"], url_path="permissions", url_name="catalogue")
    def catalogue(self, request):
        """All defined permissions, flat and grouped for display."""
        registry = get_registry()
        flat = [asdict(d) for d in registry.list_permissions()]
        groups = [
            {"name": name, "permissions": PermissionDefinitionSerializer(defs, many=True).data}
            for name, defs in registry.groups().items()
        ]
        return api_response({"permissions": flat, "groups": groups})

    @action(detail=False, methods=["get"])
    def dropdown(self, request):
        roles = Role.objects.order_by("level", "name")
        return api_response(RoleDropdownSerializer(roles, many=True).data)

    @action(detail=True, methods=["get"], url_path="permissions", url_name="permissions")
    def role_permissions(self, request, pk=None):
        role = self.get_object()
        return api_response(RoleSerializer(role).data["permissions"])

    @role_permissions.mapping.put
    def replace_permissions(self, request, pk=None):
        role = self.get_object()
        serializer = RolePermissionsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        role = services.set_role_permissions(
            role,
            serializer.validated_data["permissions"],
            actor=request.user,
            source_address=client_address(request),
        )
        return api_response(RoleSerializer(role).data, message="Role permissions updated")


__all__ = ["RoleViewSet"]

"""Serializers for roles and permission listings."""

import re

from rest_framework import serializers

from .models import Role
from .registry import get_registry

CODE_PATTERN = re.compile(r"^[A-Z0-9_]+$")


class PermissionDefinitionSerializer(serializers.Serializer):
    code = serializers.CharField()
    name = serializers.CharField()
    group = serializers.CharField()
    resource = serializers.CharField(allow_null=True)
    action = serializers.CharField(allow_null=True)


class RoleSerializer(serializers.ModelSerializer):
    """Read representation; permissions are exposed as codes with display names."""

    permissions = serializers.SerializerMethodField()
    user_count = serializers.SerializerMethodField()

    class Meta:
        model = Role
        fields = [
            "id",
            "name",
            "code",
            "description",
            "permissions",
            "level",
            "is_default",
            "user_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_permissions(self, obj: Role) -> list[dict]:
        registry = get_registry()
        return [
            {"code": code, "name": registry.display_name(code)}
            for code in sorted(obj.permissions.values_list("code", flat=True))
        ]

    def get_user_count(self, obj: Role) -> int:
        annotated = getattr(obj, "user_count", None)
        if annotated is not None:
            return annotated
        return obj.users.count()


class RoleWriteSerializer(serializers.ModelSerializer):
    """Validate role create/update payloads.

    Permission codes are checked against the registry by the role service,
    which rejects the whole write before anything is stored.
    """

    code = serializers.CharField(max_length=50)
    permissions = serializers.ListField(child=serializers.CharField(), required=False)
    level = serializers.IntegerField(min_value=1, max_value=3, required=False)

    class Meta:
        model = Role
        fields = ["name", "code", "description", "permissions", "level"]
        extra_kwargs = {"description": {"required": False, "allow_blank": True}}

    def validate_code(self, value: str) -> str:
        value = value.strip().upper()
        if not CODE_PATTERN.match(value):
            raise serializers.ValidationError("Role code must contain only A-Z, 0-9 and underscores.")
        if self.instance is not None:
            if value != self.instance.code:
                raise serializers.ValidationError("Role code cannot be changed.")
        elif Role.objects.filter(code=value).exists():
            raise serializers.ValidationError("A role with this code already exists.")
        return value


class RolePermissionsSerializer(serializers.Serializer):
    permissions = serializers.ListField(child=serializers.CharField(), allow_empty=True)


class RoleDropdownSerializer(serializers.ModelSerializer):
    class Meta:
        model = Role
        fields = ["id", "name", "code"]
        read_only_fields = fields


__all__ = [
    "PermissionDefinitionSerializer",
    "RoleDropdownSerializer",
    "RolePermissionsSerializer",
    "RoleSerializer",
    "RoleWriteSerializer",
]

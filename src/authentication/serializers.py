"""Serializers for authentication flows and user administration."""

from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework.exceptions import AuthenticationFailed

from access_control.evaluator import Unrestricted, get_evaluator
from access_control.models import Role
from access_control.registry import get_registry
from core.exceptions import RoleNotFound

from .managers import UserManager

User = get_user_model()


class LoginSerializer(serializers.Serializer):
    """Authenticate a user via email/password using bcrypt verification."""

    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        """Authenticate credentials and attach the user to validated_data."""
        email = attrs.get("email", "").lower()
        password = attrs.get("password")
        try:
            user = User.objects.select_related("role").get(email=email)
        except User.DoesNotExist:
            raise AuthenticationFailed("Invalid credentials")

        if not user.is_active:
            raise AuthenticationFailed("User is inactive")

        if not UserManager.verify_password(user, password):
            raise AuthenticationFailed("Invalid credentials")

        attrs["user"] = user
        return attrs


class RoleSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Role
        fields = ["id", "name", "code", "level"]
        read_only_fields = fields


class UserDetailSerializer(serializers.ModelSerializer):
    """Read-only user payload for responses."""

    role = RoleSummarySerializer(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "name",
            "phone",
            "role",
            "is_active",
            "last_login",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ProfileSerializer(UserDetailSerializer):
    """Current user's profile including effective permission codes."""

    permissions = serializers.SerializerMethodField()

    class Meta(UserDetailSerializer.Meta):
        fields = UserDetailSerializer.Meta.fields + ["permissions"]
        read_only_fields = fields

    def get_permissions(self, obj) -> list[str]:
        try:
            grant = get_evaluator().grant_for(obj)
        except RoleNotFound:
            return []
        if isinstance(grant, Unrestricted):
            return sorted(get_registry().codes())
        return sorted(grant.codes)


class UserCreateSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=8)
    role = serializers.PrimaryKeyRelatedField(queryset=Role.objects.all())

    class Meta:
        model = User
        fields = ["email", "password", "name", "phone", "role", "is_active"]
        extra_kwargs = {"phone": {"required": False, "allow_blank": True}}

    @staticmethod
    def validate_email(value: str) -> str:
        """Ensure email is unique before creation."""
        value = value.lower()
        if User.objects.filter(email=value).exists():
            raise serializers.ValidationError("Email already in use")
        return value


class UserUpdateSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=8, required=False)
    role = serializers.PrimaryKeyRelatedField(queryset=Role.objects.all(), required=False)

    class Meta:
        model = User
        fields = ["email", "password", "name", "phone", "role", "is_active"]
        extra_kwargs = {field: {"required": False} for field in ["email", "name", "phone", "is_active"]}

    def validate_email(self, value: str) -> str:
        value = value.lower()
        qs = User.objects.filter(email=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("Email already in use")
        return value


class ProfileUpdateSerializer(serializers.ModelSerializer):
    """Patchable fields for /auth/me updates."""

    class Meta:
        """Allow partial updates of profile fields."""
        model = User
        fields = ["name", "phone"]
        extra_kwargs = {"name": {"required": False}, "phone": {"required": False, "allow_blank": True}}

    def validate(self, attrs):
        """Reject email and role changes through the profile endpoint."""
        initial = getattr(self, "initial_data", {})
        if "email" in initial:
            raise serializers.ValidationError("Email cannot be updated via this endpoint")
        if "role" in initial:
            raise serializers.ValidationError("Role cannot be updated via this endpoint")
        return super().validate(attrs)


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True, min_length=8)
    confirm_password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        if attrs["new_password"] != attrs["confirm_password"]:
            raise serializers.ValidationError("Passwords do not match")
        if attrs["new_password"] == attrs["current_password"]:
            raise serializers.ValidationError("New password must differ from the current password")
        return attrs


__all__ = [
    "ChangePasswordSerializer",
    "LoginSerializer",
    "ProfileSerializer",
    "ProfileUpdateSerializer",
    "UserCreateSerializer",
    "UserDetailSerializer",
    "UserUpdateSerializer",
]

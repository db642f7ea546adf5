"""Authentication endpoints and user administration."""

from typing import Any

from django.contrib.auth import get_user_model
from django.db.models import Q
from rest_framework import mixins, status
from rest_framework.decorators import action
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.response import Response
from rest_framework.views import APIView

from access_control.permissions import HasAnyPermission
from access_control.registry import PermissionCode as P
from access_control.registry import resource_code
from audit.recorder import log_activity
from core.exceptions import Forbidden
from core.response import BaseAPIView, BaseGenericViewSet, api_response, client_address
from .serializers import (
    ChangePasswordSerializer,
    LoginSerializer,
    ProfileSerializer,
    ProfileUpdateSerializer,
    UserCreateSerializer,
    UserDetailSerializer,
    UserUpdateSerializer,
)
from .services import TokenService, UserService

User = get_user_model()


class LoginView(BaseAPIView):
    permission_classes: list[Any] = []

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Authenticate and issue access + refresh tokens."""
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.validated_data["user"]
        UserService.touch_last_login(user)
        access, refresh = TokenService.generate_tokens(user)
        log_activity(user, "LOGIN", {"email": user.email}, client_address(request))
        return api_response(
            {"access": access, "refresh": refresh, "user": ProfileSerializer(user).data},
            message="Login successful",
        )


class RefreshView(BaseAPIView):
    permission_classes: list[Any] = []

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Exchange a valid refresh token for new access/refresh tokens."""
        refresh_token = request.data.get("refresh")
        if not refresh_token:
            raise AuthenticationFailed("Refresh token required")

        payload = TokenService.decode_token(refresh_token, expected_type="refresh")
        if TokenService.is_token_blocked(payload.get("jti", "")):
            raise AuthenticationFailed("Invalid or revoked refresh token")
        # Rejects inactive users and tokens minted before a logout-all.
        user = TokenService.user_for_payload(payload)

        # Refresh tokens are single use.
        TokenService.block_token(payload["jti"], payload["exp"])
        access, new_refresh = TokenService.generate_tokens(user)
        return api_response({"access": access, "refresh": new_refresh})


class LogoutView(APIView):
    """Invalidate the current access token by blocklisting its jti."""

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Blocklist the bearer access token (and refresh token if sent)."""
        if not request.user.is_authenticated:
            raise AuthenticationFailed("Authentication required")
        token = _get_bearer_token(request)
        if token:
            TokenService.revoke(token)
        refresh_token = request.data.get("refresh") if hasattr(request.data, "get") else None
        if refresh_token:
            TokenService.revoke(refresh_token)
        log_activity(request.user, "LOGOUT", {}, client_address(request))
        # 204 responses must not include a body.
        return Response(status=status.HTTP_204_NO_CONTENT)


class LogoutAllView(APIView):
    """Invalidate all existing tokens for the current user across devices."""

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Increment token_version and blocklist the current access token."""
        if not request.user.is_authenticated:
            raise AuthenticationFailed("Authentication required")

        user = request.user
        user.revoke_tokens()
        user.save(update_fields=["token_version"])

        token = _get_bearer_token(request)
        if token:
            TokenService.revoke(token)

        return Response(status=status.HTTP_204_NO_CONTENT)


class MeView(BaseAPIView):
    permission_classes: list[Any] = []

    # noinspection PyMethodMayBeStatic
    def get(self, request):
        """Return the current user's profile and effective permissions."""
        if not request.user.is_authenticated:
            raise AuthenticationFailed("Authentication required")
        return api_response(ProfileSerializer(request.user).data)

    # noinspection PyMethodMayBeStatic
    def patch(self, request):
        """Update profile fields for the current user."""
        if not request.user.is_authenticated:
            raise AuthenticationFailed("Authentication required")
        serializer = ProfileUpdateSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        user = UserService.update_user(
            request.user,
            actor=request.user,
            source_address=client_address(request),
            **serializer.validated_data,
        )
        return api_response(ProfileSerializer(user).data, message="Profile updated")


class ChangePasswordView(BaseAPIView):
    permission_classes: list[Any] = []

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Change the caller's password; every older token stops working."""
        if not request.user.is_authenticated:
            raise AuthenticationFailed("Authentication required")
        serializer = ChangePasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        UserService.change_password(
            request.user,
            serializer.validated_data["current_password"],
            serializer.validated_data["new_password"],
        )
        log_activity(request.user, "PASSWORD_CHANGED", {}, client_address(request))
        access, refresh = TokenService.generate_tokens(request.user)
        return api_response({"access": access, "refresh": refresh}, message="Password changed")


class UserViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    BaseGenericViewSet,
):
    """Staff account administration; accounts are created by other staff."""

    permission_classes = [HasAnyPermission]
    required_permissions = {
        "list": (P.VIEW_USER, resource_code("USERS", "VIEW")),
        "retrieve": (P.VIEW_USER, resource_code("USERS", "VIEW")),
        "create": (P.CREATE_USER, resource_code("USERS", "CREATE")),
        "update": (P.UPDATE_USER, resource_code("USERS", "EDIT")),
        "partial_update": (P.UPDATE_USER, resource_code("USERS", "EDIT")),
        "destroy": (P.DELETE_USER, resource_code("USERS", "DELETE")),
        "activate": (P.UPDATE_USER, resource_code("USERS", "EDIT")),
        "deactivate": (P.UPDATE_USER, resource_code("USERS", "EDIT")),
    }
    serializer_class = UserDetailSerializer
    queryset = User.objects.select_related("role")

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        if params.get("role"):
            qs = qs.filter(role__code=params["role"].upper())
        if params.get("is_active") in ("true", "false"):
            qs = qs.filter(is_active=params["is_active"] == "true")
        if params.get("search"):
            term = params["search"]
            qs = qs.filter(Q(name__icontains=term) | Q(email__icontains=term))
        return qs

    def create(self, request):
        serializer = UserCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = UserService.create_user(
            actor=request.user, source_address=client_address(request), **serializer.validated_data
        )
        return api_response(UserDetailSerializer(user).data, status=status.HTTP_201_CREATED, message="User created")

    def update(self, request, pk=None, partial=False):
        user = self.get_object()
        serializer = UserUpdateSerializer(user, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        user = UserService.update_user(
            user, actor=request.user, source_address=client_address(request), **serializer.validated_data
        )
        return api_response(UserDetailSerializer(user).data, message="User updated")

    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk, partial=True)

    def destroy(self, request, pk=None):
        user = self.get_object()
        removed = UserService.delete_user(user, actor=request.user, source_address=client_address(request))
        return api_response(None, message="User deleted" if removed else "User deactivated")

    @action(detail=True, methods=["post"])
    def activate(self, request, pk=None):
        user = UserService.set_active(
            self.get_object(), True, actor=request.user, source_address=client_address(request)
        )
        return api_response(UserDetailSerializer(user).data, message="User activated")

    @action(detail=True, methods=["post"])
    def deactivate(self, request, pk=None):
        user = self.get_object()
        if user.pk == request.user.pk:
            raise Forbidden("You cannot deactivate your own account")
        user = UserService.set_active(user, False, actor=request.user, source_address=client_address(request))
        return api_response(UserDetailSerializer(user).data, message="User deactivated")


def _get_bearer_token(request) -> str | None:
    """Extract the Bearer token from Authorization header if present."""
    auth_header = request.META.get("HTTP_AUTHORIZATION", "")
    if auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1]
    return None

"""Token and user-account services.

``TokenService`` issues and verifies JWTs and maintains the Redis blocklist.
``UserService`` holds the account operations used by the user endpoints.
"""

import logging
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Tuple

import jwt
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone as dj_timezone
from rest_framework.exceptions import AuthenticationFailed

from access_control.evaluator import get_evaluator
from audit.models import AuditAction
from audit.recorder import audit_mutation, snapshot
from core.exceptions import BlocklistUnavailable, Forbidden
from core.redis_client import get_redis_client

logger = logging.getLogger(__name__)


class TokenService:
    """Handle JWT issuance, decoding, verification, and blocklisting."""

    ALGORITHM = "HS256"
    BLOCKLIST_PREFIX = "blocklist:token:"

    @staticmethod
    def access_ttl() -> timedelta:
        return timedelta(minutes=settings.JWT_ACCESS_TTL_MINUTES)

    @staticmethod
    def refresh_ttl() -> timedelta:
        return timedelta(hours=settings.JWT_REFRESH_TTL_HOURS)

    @classmethod
    def generate_tokens(cls, user) -> Tuple[str, str]:
        """Generate signed access and refresh tokens for the given user."""

        now = datetime.now(timezone.utc)
        access_payload = cls._build_payload(user, "access", now, cls.access_ttl())
        refresh_payload = cls._build_payload(user, "refresh", now, cls.refresh_ttl())

        access_token = jwt.encode(access_payload, settings.JWT_SECRET, algorithm=cls.ALGORITHM)
        refresh_token = jwt.encode(refresh_payload, settings.JWT_SECRET, algorithm=cls.ALGORITHM)
        return access_token, refresh_token

    @classmethod
    def _build_payload(cls, user, token_type: str, issued_at: datetime, ttl: timedelta) -> dict[str, Any]:
        exp = issued_at + ttl
        # The role is deliberately not embedded: permissions are re-read from
        # the role on every request so revocation is immediate.
        return {
            "sub": str(user.id),
            "jti": str(uuid.uuid4()),
            "exp": int(exp.timestamp()),
            "iat": int(issued_at.timestamp()),
            "ver": getattr(user, "token_version", 1),
            "type": token_type,
        }

    @classmethod
    def decode_token(cls, token: str, expected_type: str | None = None) -> dict[str, Any]:
        """Decode and validate a JWT; optionally enforce token type."""

        try:
            payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[cls.ALGORITHM])
        except jwt.ExpiredSignatureError as exc:
            raise AuthenticationFailed("Token has expired") from exc
        except jwt.InvalidTokenError as exc:
            raise AuthenticationFailed("Invalid token") from exc

        if expected_type and payload.get("type") != expected_type:
            raise AuthenticationFailed("Invalid token type")

        return payload

    @classmethod
    def user_for_payload(cls, payload: dict[str, Any]):
        """Return the active user a verified payload belongs to.

        The ``ver`` claim must match the user's current ``token_version``;
        a logout-all or deactivation bumps the version and kills older tokens.
        """
        user_id = payload.get("sub")
        if not user_id:
            raise AuthenticationFailed("Invalid token")
        User = get_user_model()
        try:
            user = User.objects.select_related("role").get(id=user_id)
        except (User.DoesNotExist, DjangoValidationError, ValueError, TypeError) as exc:
            raise AuthenticationFailed("User not found") from exc
        if not user.is_active:
            raise AuthenticationFailed("User is inactive")
        if payload.get("ver") != user.token_version:
            raise AuthenticationFailed("Token has been revoked")
        return user

    @classmethod
    def authenticate(cls, token: str | None):
        """Resolve an access token into its active user or raise 401."""
        if not token:
            raise AuthenticationFailed("Authentication credentials were not provided")
        payload = cls.decode_token(token, expected_type="access")
        jti = payload.get("jti")
        if not jti:
            raise AuthenticationFailed("Invalid token")
        if cls.is_token_blocked(jti):
            raise AuthenticationFailed("Token has been revoked")
        return cls.user_for_payload(payload)

    @classmethod
    def revoke(cls, token: str) -> None:
        """Blocklist a still-valid token until it would have expired."""
        payload = cls.decode_token(token)
        cls.block_token(payload["jti"], payload["exp"])

    @classmethod
    def block_token(cls, jti: str, exp: int) -> None:
        """Add token jti to blocklist until its expiration timestamp."""

        client = get_redis_client()
        ttl_seconds = max(1, exp - int(time.time()))
        try:
            client.setex(f"{cls.BLOCKLIST_PREFIX}{jti}", ttl_seconds, "1")
        except Exception as exc:  # pragma: no cover - network failure
            raise BlocklistUnavailable("Redis unavailable while blocklisting") from exc

    @classmethod
    def is_token_blocked(cls, jti: str) -> bool:
        """Check if a token jti is present in the blocklist."""

        client = get_redis_client()
        try:
            return client.get(f"{cls.BLOCKLIST_PREFIX}{jti}") is not None
        except Exception as exc:  # pragma: no cover - network failure
            raise BlocklistUnavailable("Redis unavailable while checking blocklist") from exc


class UserService:
    """Account lifecycle operations with audit capture."""

    @staticmethod
    def _check_role_assignment(actor, role) -> None:
        if role is None or actor is None:
            return
        if role.level > get_evaluator().role_level(actor):
            raise Forbidden("Cannot assign a role above your own")

    @classmethod
    def create_user(cls, *, actor, source_address: str | None = None, password: str, **fields):
        cls._check_role_assignment(actor, fields.get("role"))
        User = get_user_model()
        with transaction.atomic():
            with audit_mutation(
                "User", AuditAction.CREATE, performed_by=actor, source_address=source_address
            ) as capture:
                user = User.objects.create_user(password=password, created_by=actor, **fields)
                capture.entity_id = user.pk
                capture.new_state = snapshot(user)
        logger.info("user %s created by %s", user.pk, getattr(actor, "pk", None))
        return user

    @classmethod
    def update_user(cls, user, *, actor, source_address: str | None = None, **changes):
        if "role" in changes and changes["role"] != user.role:
            cls._check_role_assignment(actor, changes["role"])
        password = changes.pop("password", None)
        with transaction.atomic():
            with audit_mutation(
                "User", AuditAction.UPDATE, instance=user, performed_by=actor, source_address=source_address
            ) as capture:
                for field, value in changes.items():
                    setattr(user, field, value)
                if password:
                    user.set_password(password)
                    user.revoke_tokens()
                if changes.get("is_active") is False:
                    user.revoke_tokens()
                user.save()
                capture.new_state = snapshot(user)
        return user

    @classmethod
    def set_active(cls, user, active: bool, *, actor, source_address: str | None = None):
        return cls.update_user(user, actor=actor, source_address=source_address, is_active=active)

    @staticmethod
    def has_history(user) -> bool:
        return (
            user.created_tickets.exists()
            or user.assigned_tickets.exists()
            or user.ticket_comments.exists()
            or user.audit_entries.exists()
        )

    @classmethod
    def delete_user(cls, user, *, actor, source_address: str | None = None) -> bool:
        """Hard-delete a user without history, otherwise deactivate.

        Returns True when the row was removed.
        """
        if actor is not None and user.pk == actor.pk:
            raise Forbidden("You cannot delete your own account")
        if cls.has_history(user):
            cls.set_active(user, False, actor=actor, source_address=source_address)
            return False
        with transaction.atomic():
            with audit_mutation(
                "User", AuditAction.DELETE, instance=user, performed_by=actor, source_address=source_address
            ):
                user.delete()
        return True

    @staticmethod
    def change_password(user, current_password: str, new_password: str) -> None:
        if not user.check_password(current_password):
            raise AuthenticationFailed("Current password is incorrect")
        user.set_password(new_password)
        user.revoke_tokens()
        user.save(update_fields=["password_hash", "token_version", "updated_at"])

    @staticmethod
    def touch_last_login(user) -> None:
        user.last_login = dj_timezone.now()
        user.save(update_fields=["last_login"])


__all__ = ["BlocklistUnavailable", "TokenService", "UserService"]

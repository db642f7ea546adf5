"""Shared helpers for tests (role seeding, user creation, fake Redis)."""

from __future__ import annotations

from typing import Dict
from unittest import mock

from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from access_control.models import Role
from access_control.services import ensure_default_roles
from authentication.managers import UserManager
from authentication.services import TokenService

User = get_user_model()


class FakeRedis:
    """Minimal Redis stub supporting the commands used by TokenService."""

    def __init__(self):
        self._store: Dict[str, str] = {}

    def setex(self, key: str, ttl_seconds: int, value: str) -> None:
        """Mimic Redis SETEX; TTL is ignored in tests, value stored in-memory."""
        self._store[key] = value

    def get(self, key: str):
        """Return stored value for key or None, matching Redis GET semantics."""
        return self._store.get(key)

    def ping(self) -> bool:
        return True


class FakeRedisMixin:
    """Patch both Redis lookups with one in-memory fake for the whole class."""

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        cls.fake_redis = FakeRedis()
        cls.patchers = [
            mock.patch("core.redis_client.get_redis_client", return_value=cls.fake_redis),
            mock.patch("authentication.services.get_redis_client", return_value=cls.fake_redis),
        ]
        for patcher in cls.patchers:
            patcher.start()

    @classmethod
    def tearDownClass(cls):
        for patcher in cls.patchers:
            patcher.stop()
        super().tearDownClass()


def seed_roles() -> dict[str, Role]:
    """Create the permission rows and built-in roles, keyed by role code.

    Uses the same helper as the ``seed_rbac`` management command.
    """
    return ensure_default_roles()


def create_user(email: str, password: str, role: Role | None, **extra):
    """Create a user with a bcrypt-hashed password for tests."""
    extra.setdefault("name", email.split("@")[0].title())
    return User.objects.create(
        email=email,
        password_hash=UserManager.hash_password(password),
        role=role,
        **extra,
    )


def auth_client(user) -> APIClient:
    """Return an APIClient authenticated with a fresh access token."""
    token, _ = TokenService.generate_tokens(user)
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client

"""Custom user manager handling bcrypt hashing and verification."""

import uuid

import bcrypt
from django.contrib.auth.base_user import BaseUserManager


class UserManager(BaseUserManager):
    """Manager to create users with bcrypt password hashes."""

    use_in_migrations = True

    def _create_user(self, email: str, password: str, **extra_fields):
        if not email:
            raise ValueError("The Email must be set")
        email = self.normalize_email(email).lower()
        user = self.model(id=uuid.uuid4(), email=email, **extra_fields)
        user.password_hash = self.hash_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email: str, password: str | None = None, **extra_fields):
        """Create a user with a bcrypt-hashed password."""
        if password is None:
            raise ValueError("Password must be provided")
        extra_fields.setdefault("name", email.split("@")[0])
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email: str, password: str, **extra_fields):
        """Create an active user holding the SUPER_ADMIN role.

        Used by ``createsuperuser``; the built-in roles are created first if
        the database has not been seeded yet.
        """
        from access_control.registry import RoleCode
        from access_control.services import ensure_default_roles

        roles = ensure_default_roles()
        extra_fields.setdefault("role", roles[RoleCode.SUPER_ADMIN])
        extra_fields.setdefault("is_active", True)
        return self.create_user(email, password, **extra_fields)

    def active(self):
        return self.filter(is_active=True)

    @staticmethod
    def hash_password(raw_password: str) -> str:
        """Hash a raw password using bcrypt and return the utf-8 string."""
        salt = bcrypt.gensalt()
        hashed = bcrypt.hashpw(raw_password.encode(), salt)
        return hashed.decode()

    @staticmethod
    def verify_password(user, raw_password: str) -> bool:
        """Verify raw password against stored bcrypt hash."""

        if not user.password_hash:
            return False
        return bcrypt.checkpw(raw_password.encode(), user.password_hash.encode("utf-8"))


__all__ = ["UserManager"]

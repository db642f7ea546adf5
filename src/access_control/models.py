"""RBAC models: Permission rows mirrored from the registry, and Role."""

from django.conf import settings
from django.core.validators import RegexValidator
from django.db import models

from .registry import ROLE_LEVELS


class Permission(models.Model):
    """Persisted copy of a registry entry so roles can reference it."""

    code = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=100)
    group = models.CharField(max_length=100, blank=True)
    resource = models.CharField(max_length=50, blank=True)
    action = models.CharField(max_length=20, blank=True)

    class Meta:
        ordering = ["id"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.code


class RoleQuerySet(models.QuerySet):
    def with_user_counts(self):
        return self.annotate(user_count=models.Count("users", distinct=True))


class Role(models.Model):
    """Named bundle of permission codes assigned to users.

    ``SUPER_ADMIN`` is granted everything by the evaluator regardless of
    its stored permissions.
    """

    name = models.CharField(max_length=50, unique=True)
    code = models.CharField(
        max_length=50,
        unique=True,
        validators=[RegexValidator(r"^[A-Z0-9_]+$", "Role code must contain only A-Z, 0-9 and underscores.")],
    )
    description = models.TextField(blank=True)
    permissions = models.ManyToManyField(Permission, related_name="roles", blank=True)
    level = models.PositiveSmallIntegerField(default=1)
    is_default = models.BooleanField(default=False)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = RoleQuerySet.as_manager()

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.name

    def save(self, *args, **kwargs):
        self.code = (self.code or "").upper()
        if self._state.adding and self.code in ROLE_LEVELS and self.level == 1:
            self.level = ROLE_LEVELS[self.code]
        super().save(*args, **kwargs)

    def permission_codes(self) -> list[str]:
        return list(self.permissions.values_list("code", flat=True))


__all__ = ["Permission", "Role"]

"""App configuration for the access_control Django application.

Loads the permission registry once, registers the RBAC system checks, and
keeps Permission rows in step with the registry after every migrate.
"""

from django.apps import AppConfig
from django.db.models.signals import post_migrate


def _sync_permissions(sender, using="default", **kwargs) -> None:
    from .services import sync_permissions

    sync_permissions(using=using)


class AccessControlConfig(AppConfig):
    """Application configuration for the access_control app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "access_control"

    def ready(self) -> None:
        """Build the registry, register system checks and the sync hook."""
        from . import checks  # noqa: F401
        from .registry import get_registry

        get_registry()
        post_migrate.connect(_sync_permissions, sender=self, dispatch_uid="access_control.sync_permissions")

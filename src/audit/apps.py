"""App configuration for the audit trail."""

from django.apps import AppConfig


class AuditConfig(AppConfig):
    """Audit app holds the append-only audit log and the activity log."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "audit"

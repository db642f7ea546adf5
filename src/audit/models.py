"""Append-only audit trail and best-effort activity log."""

from django.conf import settings
from django.db import models
from django.utils import timezone


class AuditAction(models.TextChoices):
    CREATE = "CREATE", "Create"
    UPDATE = "UPDATE", "Update"
    DELETE = "DELETE", "Delete"


class AuditLogEntry(models.Model):
    """Before/after snapshot of one successful mutation.

    Rows are only ever inserted; updating or deleting an existing entry
    raises.
    """

    entity_type = models.CharField(max_length=50, db_index=True)
    entity_id = models.CharField(max_length=64, db_index=True)
    action = models.CharField(max_length=10, choices=AuditAction.choices)
    previous_state = models.JSONField(null=True, blank=True)
    new_state = models.JSONField(null=True, blank=True)
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="audit_entries",
    )
    performed_at = models.DateTimeField(default=timezone.now, db_index=True)
    source_address = models.CharField(max_length=64, blank=True, null=True)

    class Meta:
        ordering = ["-performed_at", "-id"]
        indexes = [models.Index(fields=["entity_type", "entity_id"], name="audit_entity_idx")]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.action} {self.entity_type}:{self.entity_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Audit log entries are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Audit log entries cannot be deleted")


class ActivityLog(models.Model):
    """User-facing activity feed entry (logins, ticket events...)."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="activities",
    )
    action = models.CharField(max_length=64, db_index=True)
    details = models.JSONField(default=dict, blank=True)
    timestamp = models.DateTimeField(default=timezone.now, db_index=True)
    source_address = models.CharField(max_length=64, blank=True, null=True)

    class Meta:
        ordering = ["-timestamp", "-id"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.action} by {self.user_id}"


__all__ = ["ActivityLog", "AuditAction", "AuditLogEntry"]

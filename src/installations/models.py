"""Installation requests scheduled with an external agency."""

from django.conf import settings
from django.db import models
from django.db.models.functions import Length


class InstallationStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    IN_PROGRESS = "IN_PROGRESS", "In progress"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"


def next_request_id() -> str:
    """Six digit zero-padded sequence shared by all requests."""
    latest = (
        InstallationRequest.objects.order_by(Length("request_id").desc(), "-request_id")
        .values_list("request_id", flat=True)
        .first()
    )
    return f"{int(latest) + 1 if latest else 1:06d}"


class InstallationRequest(models.Model):
    request_id = models.CharField(max_length=12, unique=True, editable=False)
    customer = models.ForeignKey(
        "customers.Customer", on_delete=models.PROTECT, related_name="installation_requests"
    )
    item = models.ForeignKey("inventory.Item", on_delete=models.PROTECT, related_name="installation_requests")
    status = models.CharField(
        max_length=20, choices=InstallationStatus.choices, default=InstallationStatus.PENDING, db_index=True
    )
    assigned_agency = models.CharField(max_length=150)
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="installation_requests",
    )
    scheduled_date = models.DateField()
    completed_date = models.DateField(null=True, blank=True)
    verification_photos = models.JSONField(default=list, blank=True)
    verification_videos = models.JSONField(default=list, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.request_id

    def save(self, *args, **kwargs):
        if not self.request_id:
            self.request_id = next_request_id()
        super().save(*args, **kwargs)


__all__ = ["InstallationRequest", "InstallationStatus", "next_request_id"]

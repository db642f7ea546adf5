"""Ticket, its children, and the singleton ticket settings."""

from django.conf import settings
from django.core.validators import MaxValueValidator, MinLengthValidator, MinValueValidator
from django.db import models
from django.db.models.functions import Length
from django.utils import timezone


class TicketStatus(models.TextChoices):
    OPEN = "OPEN", "Open"
    ASSIGNED = "ASSIGNED", "Assigned"
    IN_PROGRESS = "IN_PROGRESS", "In progress"
    PENDING_APPROVAL = "PENDING_APPROVAL", "Pending approval"
    RESOLVED = "RESOLVED", "Resolved"
    CLOSED = "CLOSED", "Closed"
    REOPENED = "REOPENED", "Reopened"


class TicketPriority(models.TextChoices):
    LOW = "LOW", "Low"
    MEDIUM = "MEDIUM", "Medium"
    HIGH = "HIGH", "High"
    CRITICAL = "CRITICAL", "Critical"


class TicketCategory(models.TextChoices):
    HARDWARE = "HARDWARE", "Hardware"
    SOFTWARE = "SOFTWARE", "Software"
    NETWORK = "NETWORK", "Network"
    ACCOUNT = "ACCOUNT", "Account"
    OTHER = "OTHER", "Other"


TICKET_ID_PREFIX = "TKT"


class TicketQuerySet(models.QuerySet):
    def alive(self):
        return self.filter(is_deleted=False)

    def visible_to(self, user):
        return self.filter(models.Q(created_by=user) | models.Q(assigned_to=user))


def next_ticket_id(now=None) -> str:
    """``TKT<YYYYMMDD><seq:04>``, the sequence restarting every day."""
    stamp = timezone.localdate(now).strftime("%Y%m%d")
    prefix = f"{TICKET_ID_PREFIX}{stamp}"
    latest = (
        Ticket.objects.filter(ticket_id__startswith=prefix)
        .order_by(Length("ticket_id").desc(), "-ticket_id")
        .values_list("ticket_id", flat=True)
        .first()
    )
    sequence = int(latest[len(prefix):]) + 1 if latest else 1
    return f"{prefix}{sequence:04d}"


class Ticket(models.Model):
    ticket_id = models.CharField(max_length=20, unique=True, editable=False)
    title = models.CharField(max_length=100, validators=[MinLengthValidator(5)])
    description = models.TextField(validators=[MinLengthValidator(10)])
    priority = models.CharField(max_length=10, choices=TicketPriority.choices, default=TicketPriority.MEDIUM)
    category = models.CharField(max_length=10, choices=TicketCategory.choices, default=TicketCategory.OTHER)
    status = models.CharField(max_length=20, choices=TicketStatus.choices, default=TicketStatus.OPEN, db_index=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="created_tickets"
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="assigned_tickets",
    )
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    assigned_at = models.DateTimeField(null=True, blank=True)

    customer = models.ForeignKey(
        "customers.Customer", null=True, blank=True, on_delete=models.PROTECT, related_name="tickets"
    )
    item = models.ForeignKey(
        "inventory.Item", null=True, blank=True, on_delete=models.SET_NULL, related_name="tickets"
    )
    serial_number = models.CharField(max_length=100, blank=True, db_index=True)
    problems = models.ManyToManyField("problems.Problem", blank=True, related_name="tickets")

    due_date = models.DateTimeField(null=True, blank=True)
    resolution_note = models.TextField(blank=True)
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    resolved_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    closed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    closed_at = models.DateTimeField(null=True, blank=True)

    is_deleted = models.BooleanField(default=False, db_index=True)
    deleted_at = models.DateTimeField(null=True, blank=True)
    deleted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    deletion_reason = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TicketQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["priority"], name="ticket_priority_idx"),
            models.Index(fields=["category"], name="ticket_category_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.ticket_id} {self.title}"

    def save(self, *args, **kwargs):
        if not self.ticket_id:
            self.ticket_id = next_ticket_id()
        super().save(*args, **kwargs)

    def attachment_summary(self) -> list[dict]:
        return [
            {"id": attachment.pk, "filename": attachment.filename, "url": attachment.url}
            for attachment in self.attachments.order_by("id")
        ]


class TicketComment(models.Model):
    ticket = models.ForeignKey(Ticket, on_delete=models.CASCADE, related_name="comments")
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, on_delete=models.SET_NULL, related_name="ticket_comments"
    )
    body = models.TextField(max_length=2000)
    is_internal = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]


class TicketAttachment(models.Model):
    ticket = models.ForeignKey(Ticket, on_delete=models.CASCADE, related_name="attachments")
    comment = models.ForeignKey(
        TicketComment, null=True, blank=True, on_delete=models.SET_NULL, related_name="attachments"
    )
    url = models.CharField(max_length=500)
    filename = models.CharField(max_length=255)
    storage_name = models.CharField(max_length=500)
    mime_type = models.CharField(max_length=100, blank=True)
    size = models.PositiveIntegerField(default=0)
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, on_delete=models.SET_NULL, related_name="+"
    )
    uploaded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["uploaded_at", "id"]


class TicketAssignment(models.Model):
    """Append-only assignment history, separate from the audit trail."""

    ticket = models.ForeignKey(Ticket, on_delete=models.CASCADE, related_name="assignment_history")
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, on_delete=models.SET_NULL, related_name="+"
    )
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, on_delete=models.SET_NULL, related_name="+"
    )
    assigned_at = models.DateTimeField(default=timezone.now)
    notes = models.CharField(max_length=500, blank=True)

    class Meta:
        ordering = ["assigned_at", "id"]


def default_priority_due_dates() -> dict[str, int]:
    return {
        "LOW": 10,
        "MEDIUM": 7,
        "HIGH": 3,
        "CRITICAL": 1,
    }


class TicketSettings(models.Model):
    """Single-row policy knobs for the ticket workflow; use ``load()``."""

    DEFAULTS = {
        "auto_approval": False,
        "auto_approval_roles": [],
        "default_assign_to_support_manager": False,
        "default_due_date_days": 7,
        "notify_on_status_change": True,
        "allow_reopen_closed_tickets": True,
        "reopen_window_days": 30,
    }

    auto_approval = models.BooleanField(default=False)
    auto_approval_roles = models.JSONField(default=list, blank=True)
    default_assign_to_support_manager = models.BooleanField(default=False)
    default_due_date_days = models.PositiveIntegerField(
        default=7, validators=[MinValueValidator(1), MaxValueValidator(90)]
    )
    priority_due_dates = models.JSONField(default=default_priority_due_dates)
    notify_on_status_change = models.BooleanField(default=True)
    allow_reopen_closed_tickets = models.BooleanField(default=True)
    reopen_window_days = models.PositiveIntegerField(
        default=30, validators=[MinValueValidator(1), MaxValueValidator(365)]
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "ticket settings"

    @classmethod
    def load(cls) -> "TicketSettings":
        instance, _ = cls.objects.get_or_create(pk=1)
        missing = {
            key: value
            for key, value in default_priority_due_dates().items()
            if key not in (instance.priority_due_dates or {})
        }
        if missing:
            instance.priority_due_dates = {**(instance.priority_due_dates or {}), **missing}
            instance.save(update_fields=["priority_due_dates", "updated_at"])
        return instance

    def save(self, *args, **kwargs):
        self.pk = 1
        super().save(*args, **kwargs)

    def due_days_for(self, priority: str) -> int:
        return int((self.priority_due_dates or {}).get(priority) or self.default_due_date_days)

    def reset(self) -> None:
        for field, value in self.DEFAULTS.items():
            setattr(self, field, list(value) if isinstance(value, list) else value)
        self.priority_due_dates = default_priority_due_dates()


__all__ = [
    "Ticket",
    "TicketAssignment",
    "TicketAttachment",
    "TicketCategory",
    "TicketComment",
    "TicketPriority",
    "TicketSettings",
    "TicketStatus",
    "next_ticket_id",
]

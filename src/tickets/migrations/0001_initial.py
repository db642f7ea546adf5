import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import tickets.models


def user_fk(related_name="+", null=True, on_delete=django.db.models.deletion.SET_NULL, blank=True):
    return models.ForeignKey(
        blank=blank,
        null=null,
        on_delete=on_delete,
        related_name=related_name,
        to=settings.AUTH_USER_MODEL,
    )


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("customers", "0001_initial"),
        ("inventory", "0001_initial"),
        ("problems", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Ticket",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("ticket_id", models.CharField(editable=False, max_length=20, unique=True)),
                (
                    "title",
                    models.CharField(max_length=100, validators=[django.core.validators.MinLengthValidator(5)]),
                ),
                ("description", models.TextField(validators=[django.core.validators.MinLengthValidator(10)])),
                (
                    "priority",
                    models.CharField(
                        choices=[("LOW", "Low"), ("MEDIUM", "Medium"), ("HIGH", "High"), ("CRITICAL", "Critical")],
                        default="MEDIUM",
                        max_length=10,
                    ),
                ),
                (
                    "category",
                    models.CharField(
                        choices=[
                            ("HARDWARE", "Hardware"),
                            ("SOFTWARE", "Software"),
                            ("NETWORK", "Network"),
                            ("ACCOUNT", "Account"),
                            ("OTHER", "Other"),
                        ],
                        default="OTHER",
                        max_length=10,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("OPEN", "Open"),
                            ("ASSIGNED", "Assigned"),
                            ("IN_PROGRESS", "In progress"),
                            ("PENDING_APPROVAL", "Pending approval"),
                            ("RESOLVED", "Resolved"),
                            ("CLOSED", "Closed"),
                            ("REOPENED", "Reopened"),
                        ],
                        db_index=True,
                        default="OPEN",
                        max_length=20,
                    ),
                ),
                ("assigned_at", models.DateTimeField(blank=True, null=True)),
                ("serial_number", models.CharField(blank=True, db_index=True, max_length=100)),
                ("problems", models.ManyToManyField(blank=True, related_name="tickets", to="problems.problem")),
                ("due_date", models.DateTimeField(blank=True, null=True)),
                ("resolution_note", models.TextField(blank=True)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                ("is_deleted", models.BooleanField(db_index=True, default=False)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                ("deletion_reason", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    user_fk(
                        related_name="created_tickets",
                        null=False,
                        blank=False,
                        on_delete=django.db.models.deletion.PROTECT,
                    ),
                ),
                ("assigned_to", user_fk(related_name="assigned_tickets")),
                ("assigned_by", user_fk()),
                (
                    "customer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="tickets",
                        to="customers.customer",
                    ),
                ),
                (
                    "item",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="tickets",
                        to="inventory.item",
                    ),
                ),
                ("resolved_by", user_fk()),
                ("approved_by", user_fk()),
                ("closed_by", user_fk()),
                ("deleted_by", user_fk()),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["priority"], name="ticket_priority_idx"),
                    models.Index(fields=["category"], name="ticket_category_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TicketComment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("body", models.TextField(max_length=2000)),
                ("is_internal", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("author", user_fk(related_name="ticket_comments", blank=False)),
                (
                    "ticket",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="comments", to="tickets.ticket"
                    ),
                ),
            ],
            options={"ordering": ["created_at", "id"]},
        ),
        migrations.CreateModel(
            name="TicketAttachment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("url", models.CharField(max_length=500)),
                ("filename", models.CharField(max_length=255)),
                ("storage_name", models.CharField(max_length=500)),
                ("mime_type", models.CharField(blank=True, max_length=100)),
                ("size", models.PositiveIntegerField(default=0)),
                ("uploaded_at", models.DateTimeField(auto_now_add=True)),
                (
                    "comment",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="attachments",
                        to="tickets.ticketcomment",
                    ),
                ),
                (
                    "ticket",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="attachments", to="tickets.ticket"
                    ),
                ),
                ("uploaded_by", user_fk(blank=False)),
            ],
            options={"ordering": ["uploaded_at", "id"]},
        ),
        migrations.CreateModel(
            name="TicketAssignment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("assigned_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("notes", models.CharField(blank=True, max_length=500)),
                ("assigned_by", user_fk(blank=False)),
                ("assigned_to", user_fk(blank=False)),
                (
                    "ticket",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="assignment_history",
                        to="tickets.ticket",
                    ),
                ),
            ],
            options={"ordering": ["assigned_at", "id"]},
        ),
        migrations.CreateModel(
            name="TicketSettings",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("auto_approval", models.BooleanField(default=False)),
                ("auto_approval_roles", models.JSONField(blank=True, default=list)),
                ("default_assign_to_support_manager", models.BooleanField(default=False)),
                (
                    "default_due_date_days",
                    models.PositiveIntegerField(
                        default=7,
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(90),
                        ],
                    ),
                ),
                ("priority_due_dates", models.JSONField(default=tickets.models.default_priority_due_dates)),
                ("notify_on_status_change", models.BooleanField(default=True)),
                ("allow_reopen_closed_tickets", models.BooleanField(default=True)),
                (
                    "reopen_window_days",
                    models.PositiveIntegerField(
                        default=30,
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(365),
                        ],
                    ),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("updated_by", user_fk()),
            ],
            options={"verbose_name_plural": "ticket settings"},
        ),
    ]

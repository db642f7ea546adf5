"""Ticket lifecycle operations.

Each operation validates its input and the requested transition first,
then mutates inside ``transaction.atomic()`` wrapped in ``audit_mutation``
so the audit row is only written for a mutation that succeeded.
Notifications are sent after the mutation and never fail it.
"""

import logging
from datetime import timedelta
from typing import Any, Iterable

from django.conf import settings as django_settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from access_control.evaluator import Unrestricted, get_evaluator
from access_control.registry import RoleCode
from audit.models import AuditAction
from audit.recorder import audit_mutation, log_activity, record, snapshot
from core.exceptions import Forbidden, InvalidTransition, ValidationFailed
from notifications import services as notifications

from . import lifecycle
from .models import (
    Ticket,
    TicketAssignment,
    TicketAttachment,
    TicketComment,
    TicketPriority,
    TicketSettings,
    TicketStatus,
)
from .storage import check_upload_limits, delete_upload, store_upload

logger = logging.getLogger(__name__)

ELEVATED_LEVEL = 2
AUTO_ASSIGN_NOTE = "Auto-assigned based on system settings"

# Roles that can hold ticket assignments; the assigner must also outrank the assignee.
ASSIGNABLE_ROLES = frozenset({RoleCode.SUPPORT_MANAGER, RoleCode.ENGINEER})

# Field edits engineers may not make on tickets assigned to them.
ENGINEER_LOCKED_FIELDS = frozenset({"priority", "category"})


def is_elevated(user) -> bool:
    """True for unrestricted callers and roles at SUPPORT_MANAGER level or above."""
    evaluator = get_evaluator()
    if isinstance(evaluator.grant_for(user), Unrestricted):
        return True
    return evaluator.is_role_at_least(evaluator.role_level(user), ELEVATED_LEVEL)


def _is_assignee(ticket: Ticket, user) -> bool:
    return ticket.assigned_to_id is not None and ticket.assigned_to_id == user.pk


def _role_code(user) -> str | None:
    return get_evaluator().load_role(user).code


class TicketService:
    """State transitions and child mutations for a single ticket."""

    @staticmethod
    def visible_tickets(user):
        """Tickets the caller may list; lower roles only see their own."""
        qs = Ticket.objects.alive().select_related("created_by", "assigned_to", "customer", "item")
        if is_elevated(user):
            return qs
        return qs.visible_to(user)

    @staticmethod
    def _default_assignee():
        return (
            notifications.support_managers()
            .order_by(F("last_login").desc(nulls_last=True))
            .first()
        )

    @classmethod
    def create(cls, data: dict[str, Any], *, actor, source_address: str | None = None) -> Ticket:
        settings = TicketSettings.load()
        data = dict(data)
        if not data.get("due_date"):
            days = settings.due_days_for(data.get("priority") or TicketPriority.MEDIUM)
            data["due_date"] = timezone.now() + timedelta(days=days)

        assignee = None
        if settings.default_assign_to_support_manager and _role_code(actor) != RoleCode.SUPER_ADMIN:
            assignee = cls._default_assignee()

        with transaction.atomic():
            with audit_mutation(
                "Ticket", AuditAction.CREATE, performed_by=actor, source_address=source_address
            ) as capture:
                problems = data.pop("problems", None)
                ticket = Ticket(created_by=actor, **data)
                if assignee is not None:
                    ticket.status = TicketStatus.ASSIGNED
                    ticket.assigned_to = assignee
                    ticket.assigned_by = actor
                    ticket.assigned_at = timezone.now()
                ticket.save()
                if assignee is not None:
                    TicketAssignment.objects.create(
                        ticket=ticket,
                        assigned_to=assignee,
                        assigned_by=actor,
                        assigned_at=ticket.assigned_at,
                        notes=AUTO_ASSIGN_NOTE,
                    )
                if problems:
                    ticket.problems.set(problems)
                capture.entity_id = ticket.pk
                capture.new_state = snapshot(ticket)

        log_activity(actor, "TICKET_CREATED", {"ticket_id": ticket.ticket_id, "title": ticket.title}, source_address)
        logger.info("ticket %s created by %s", ticket.ticket_id, actor.pk)
        if assignee is not None:
            notifications.ticket_assigned(ticket, actor)
        return ticket

    @classmethod
    def update_fields(cls, ticket: Ticket, changes: dict[str, Any], *, actor, source_address: str | None = None):
        """Edit descriptive fields; status only moves through the transitions."""
        if not is_elevated(actor):
            if not _is_assignee(ticket, actor):
                raise Forbidden("You do not have permission to update this ticket")
            locked = sorted(ENGINEER_LOCKED_FIELDS.intersection(changes))
            if locked:
                raise Forbidden(f"Engineers cannot modify the {locked[0]} field")
        if not changes:
            return ticket

        with transaction.atomic():
            with audit_mutation(
                "Ticket", AuditAction.UPDATE, instance=ticket, performed_by=actor, source_address=source_address
            ) as capture:
                for field, value in changes.items():
                    if field == "problems":
                        ticket.problems.set(value)
                    else:
                        setattr(ticket, field, value)
                ticket.save()
                capture.new_state = snapshot(ticket)
        log_activity(actor, "TICKET_UPDATED", {"ticket_id": ticket.ticket_id, "fields": sorted(changes)}, source_address)
        return ticket

    @classmethod
    def assign(cls, ticket: Ticket, assignee_id, *, actor, notes: str = "", source_address: str | None = None):
        User = get_user_model()
        assignee = User.objects.active().select_related("role").filter(pk=assignee_id).first()
        if assignee is None:
            raise ValidationFailed("User to assign not found or inactive")
        lifecycle.ensure_transition(ticket.status, TicketStatus.ASSIGNED)

        if assignee.role is None:
            raise ValidationFailed("User to assign has no role")
        if assignee.role.level >= get_evaluator().role_level(actor):
            raise Forbidden("Tickets can only be assigned to users with a lower role than your own")
        if assignee.role.code not in ASSIGNABLE_ROLES:
            raise Forbidden("Tickets can only be assigned to Support Managers or Engineers")

        now = timezone.now()
        with transaction.atomic():
            with audit_mutation(
                "Ticket", AuditAction.UPDATE, instance=ticket, performed_by=actor, source_address=source_address
            ) as capture:
                ticket.assigned_to = assignee
                ticket.assigned_by = actor
                ticket.assigned_at = now
                ticket.status = TicketStatus.ASSIGNED
                ticket.save()
                TicketAssignment.objects.create(
                    ticket=ticket, assigned_to=assignee, assigned_by=actor, assigned_at=now, notes=notes or ""
                )
                capture.new_state = snapshot(ticket)

        log_activity(
            actor,
            "TICKET_ASSIGNED",
            {"ticket_id": ticket.ticket_id, "assigned_to": str(assignee.pk)},
            source_address,
        )
        notifications.ticket_assigned(ticket, actor)
        return ticket

    @classmethod
    def _change_status(cls, ticket: Ticket, status: str, *, actor, source_address, **fields) -> Ticket:
        previous = ticket.status
        with transaction.atomic():
            with audit_mutation(
                "Ticket", AuditAction.UPDATE, instance=ticket, performed_by=actor, source_address=source_address
            ) as capture:
                ticket.status = status
                for field, value in fields.items():
                    setattr(ticket, field, value)
                ticket.save()
                capture.new_state = snapshot(ticket)

        log_activity(
            actor,
            "TICKET_STATUS_CHANGED",
            {"ticket_id": ticket.ticket_id, "from": previous, "to": str(status)},
            source_address,
        )
        if TicketSettings.load().notify_on_status_change:
            notifications.ticket_status_changed(ticket, actor)
        return ticket

    @classmethod
    def start(cls, ticket: Ticket, *, actor, source_address: str | None = None) -> Ticket:
        lifecycle.ensure_transition(ticket.status, TicketStatus.IN_PROGRESS)
        if not (_is_assignee(ticket, actor) or is_elevated(actor)):
            raise Forbidden("Only the assignee can start work on this ticket")
        return cls._change_status(ticket, TicketStatus.IN_PROGRESS, actor=actor, source_address=source_address)

    @classmethod
    def resolve(cls, ticket: Ticket, resolution_note: str, *, actor, source_address: str | None = None) -> Ticket:
        if not (resolution_note or "").strip():
            raise ValidationFailed("A resolution note is required")
        target = lifecycle.resolution_target(TicketSettings.load(), _role_code(actor))
        lifecycle.ensure_transition(ticket.status, target)
        if not (_is_assignee(ticket, actor) or is_elevated(actor)):
            raise Forbidden("Only the assignee can resolve this ticket")
        return cls._change_status(
            ticket,
            target,
            actor=actor,
            source_address=source_address,
            resolution_note=resolution_note.strip(),
            resolved_by=actor,
            resolved_at=timezone.now(),
        )

    @classmethod
    def approve(cls, ticket: Ticket, *, actor, source_address: str | None = None) -> Ticket:
        if ticket.status != TicketStatus.PENDING_APPROVAL:
            raise InvalidTransition(
                ticket.status, TicketStatus.RESOLVED, "Only tickets pending approval can be approved."
            )
        now = timezone.now()
        ticket = cls._change_status(
            ticket,
            TicketStatus.RESOLVED,
            actor=actor,
            source_address=source_address,
            approved_by=actor,
            approved_at=now,
            resolved_at=now,
        )
        notifications.ticket_approved(ticket, actor)
        return ticket

    @classmethod
    def close(cls, ticket: Ticket, *, actor, source_address: str | None = None) -> Ticket:
        lifecycle.ensure_transition(ticket.status, TicketStatus.CLOSED)
        return cls._change_status(
            ticket,
            TicketStatus.CLOSED,
            actor=actor,
            source_address=source_address,
            closed_by=actor,
            closed_at=timezone.now(),
        )

    @classmethod
    def reopen(cls, ticket: Ticket, *, actor, source_address: str | None = None) -> Ticket:
        lifecycle.ensure_reopenable(ticket, TicketSettings.load())
        return cls._change_status(ticket, TicketStatus.REOPENED, actor=actor, source_address=source_address)

    @classmethod
    def delete(cls, ticket: Ticket, reason: str, *, actor, source_address: str | None = None) -> Ticket:
        """Soft-delete with a mandatory reason kept in the audit snapshot."""
        reason = (reason or "").strip()
        min_length = django_settings.TICKET_DELETE_REASON_MIN_LENGTH
        if len(reason) < min_length:
            raise ValidationFailed(f"A deletion reason of at least {min_length} characters is required")
        lifecycle.ensure_transition(ticket.status, lifecycle.DELETED)

        with transaction.atomic():
            with audit_mutation(
                "Ticket",
                AuditAction.DELETE,
                previous_state=snapshot(ticket, extra={"deletion_reason": reason}),
                instance=ticket,
                performed_by=actor,
                source_address=source_address,
            ) as capture:
                ticket.is_deleted = True
                ticket.deleted_at = timezone.now()
                ticket.deleted_by = actor
                ticket.deletion_reason = reason
                ticket.save()
                capture.new_state = snapshot(ticket)

        log_activity(actor, "TICKET_DELETED", {"ticket_id": ticket.ticket_id, "reason": reason}, source_address)
        return ticket

    @classmethod
    def _store_attachments(cls, ticket: Ticket, files: Iterable, *, actor, comment=None) -> list[TicketAttachment]:
        created = []
        for upload in files:
            stored = store_upload(upload)
            created.append(
                TicketAttachment.objects.create(
                    ticket=ticket,
                    comment=comment,
                    url=stored.url,
                    filename=stored.filename,
                    storage_name=stored.name,
                    mime_type=stored.mime_type,
                    size=stored.size,
                    uploaded_by=actor,
                )
            )
        return created

    @classmethod
    def add_attachments(cls, ticket: Ticket, files: list, *, actor, source_address: str | None = None):
        if not files:
            raise ValidationFailed("No files uploaded")
        check_upload_limits(files)
        before = ticket.attachment_summary()
        with transaction.atomic():
            created = cls._store_attachments(ticket, files, actor=actor)
            ticket.save(update_fields=["updated_at"])
        record(
            "Ticket",
            ticket.pk,
            AuditAction.UPDATE,
            previous_state={"attachments": before},
            new_state={"attachments": ticket.attachment_summary()},
            performed_by=actor,
            source_address=source_address,
        )
        log_activity(
            actor, "ATTACHMENT_ADDED", {"ticket_id": ticket.ticket_id, "count": len(created)}, source_address
        )
        return created

    @classmethod
    def remove_attachment(cls, ticket: Ticket, attachment: TicketAttachment, *, actor, source_address=None) -> None:
        if not (is_elevated(actor) or attachment.uploaded_by_id == actor.pk):
            raise Forbidden("You can only delete attachments you uploaded")
        before = ticket.attachment_summary()
        storage_name = attachment.storage_name
        with transaction.atomic():
            attachment.delete()
            ticket.save(update_fields=["updated_at"])
        delete_upload(storage_name)
        record(
            "Ticket",
            ticket.pk,
            AuditAction.UPDATE,
            previous_state={"attachments": before},
            new_state={"attachments": ticket.attachment_summary()},
            performed_by=actor,
            source_address=source_address,
        )
        log_activity(
            actor, "ATTACHMENT_REMOVED", {"ticket_id": ticket.ticket_id, "filename": attachment.filename}, source_address
        )

    @classmethod
    def add_comment(
        cls,
        ticket: Ticket,
        body: str,
        *,
        actor,
        is_internal: bool = False,
        files: list | None = None,
        source_address: str | None = None,
    ) -> TicketComment:
        files = files or []
        check_upload_limits(files)
        before = ticket.attachment_summary() if files else None
        with transaction.atomic():
            comment = TicketComment.objects.create(ticket=ticket, author=actor, body=body, is_internal=is_internal)
            cls._store_attachments(ticket, files, actor=actor, comment=comment)
            ticket.save(update_fields=["updated_at"])
        if files:
            record(
                "Ticket",
                ticket.pk,
                AuditAction.UPDATE,
                previous_state={"attachments": before},
                new_state={"attachments": ticket.attachment_summary()},
                performed_by=actor,
                source_address=source_address,
            )
        log_activity(
            actor,
            "TICKET_COMMENTED",
            {"ticket_id": ticket.ticket_id, "internal": is_internal},
            source_address,
        )
        notifications.ticket_commented(ticket, comment, actor)
        return comment


class TicketSettingsService:
    """Read and change the singleton ticket settings."""

    MANAGER_FIELDS = frozenset({"default_due_date_days", "priority_due_dates", "notify_on_status_change"})

    @staticmethod
    def _is_unrestricted(actor) -> bool:
        return isinstance(get_evaluator().grant_for(actor), Unrestricted)

    @classmethod
    def _save(cls, instance: TicketSettings, changes: dict[str, Any], *, actor, source_address=None):
        with transaction.atomic():
            with audit_mutation(
                "TicketSettings",
                AuditAction.UPDATE,
                instance=instance,
                performed_by=actor,
                source_address=source_address,
            ) as capture:
                for field, value in changes.items():
                    setattr(instance, field, value)
                instance.updated_by = actor
                instance.save()
                capture.new_state = snapshot(instance)
        return instance

    @staticmethod
    def _merge_due_dates(instance: TicketSettings, updates: dict[str, int]) -> dict[str, int]:
        merged = dict(instance.priority_due_dates or {})
        merged.update(updates)
        return merged

    @classmethod
    def update(cls, changes: dict[str, Any], *, actor, source_address: str | None = None) -> TicketSettings:
        if not cls._is_unrestricted(actor):
            if not is_elevated(actor):
                raise Forbidden("You do not have permission to update settings")
            restricted = sorted(set(changes) - cls.MANAGER_FIELDS)
            if restricted:
                raise Forbidden(f"Support Managers cannot modify the {restricted[0]} setting")
        instance = TicketSettings.load()
        changes = dict(changes)
        if "priority_due_dates" in changes:
            changes["priority_due_dates"] = cls._merge_due_dates(instance, changes["priority_due_dates"])
        return cls._save(instance, changes, actor=actor, source_address=source_address)

    @classmethod
    def reset(cls, *, actor, source_address: str | None = None) -> TicketSettings:
        if not cls._is_unrestricted(actor):
            raise Forbidden("Only Super Admins can reset settings to defaults")
        instance = TicketSettings.load()
        with transaction.atomic():
            with audit_mutation(
                "TicketSettings",
                AuditAction.UPDATE,
                instance=instance,
                performed_by=actor,
                source_address=source_address,
            ) as capture:
                instance.reset()
                instance.updated_by = actor
                instance.save()
                capture.new_state = snapshot(instance)
        return instance

    @classmethod
    def toggle_auto_approval(
        cls, enabled: bool, roles: list[str] | None, *, actor, source_address: str | None = None
    ) -> TicketSettings:
        if not cls._is_unrestricted(actor):
            raise Forbidden("Only Super Admins can modify auto-approval settings")
        changes: dict[str, Any] = {"auto_approval": enabled}
        if roles is not None:
            changes["auto_approval_roles"] = roles
        return cls._save(TicketSettings.load(), changes, actor=actor, source_address=source_address)

    @staticmethod
    def get() -> TicketSettings:
        return TicketSettings.load()

    @staticmethod
    def due_dates() -> dict[str, Any]:
        instance = TicketSettings.load()
        return {
            "default_due_date_days": instance.default_due_date_days,
            "priority_due_dates": instance.priority_due_dates,
        }

    @classmethod
    def update_due_dates(cls, config: dict[str, Any], *, actor, source_address: str | None = None) -> TicketSettings:
        if not is_elevated(actor):
            raise Forbidden("You do not have permission to update settings")
        instance = TicketSettings.load()
        changes: dict[str, Any] = {}
        if config.get("default_due_date_days") is not None:
            changes["default_due_date_days"] = config["default_due_date_days"]
        if config.get("priority_due_dates"):
            changes["priority_due_dates"] = cls._merge_due_dates(instance, config["priority_due_dates"])
        return cls._save(instance, changes, actor=actor, source_address=source_address)


__all__ = ["TicketService", "TicketSettingsService", "is_elevated"]

"""Installation request lifecycle.

Writes run inside ``transaction.atomic()`` wrapped in ``audit_mutation``.
Engineers may only move requests that are assigned to them.
"""

import logging
from typing import Any

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from access_control.registry import RoleCode
from audit.models import AuditAction
from audit.recorder import audit_mutation, log_activity, snapshot
from core.exceptions import Conflict, Forbidden, InvalidTransition, ValidationFailed
from notifications import services as notifications
from tickets.services import is_elevated
from tickets.storage import check_upload_limits, store_upload

from .models import InstallationRequest, InstallationStatus as S

logger = logging.getLogger(__name__)

ENTITY = "InstallationRequest"
UPLOAD_DIR = "installations"

TRANSITIONS: dict[str, frozenset[str]] = {
    S.PENDING: frozenset({S.IN_PROGRESS, S.CANCELLED}),
    S.IN_PROGRESS: frozenset({S.COMPLETED, S.CANCELLED}),
}
OPEN_STATES = frozenset(TRANSITIONS)
DELETABLE = frozenset({S.PENDING, S.CANCELLED})


def ensure_transition(current: str, requested: str) -> None:
    if requested not in TRANSITIONS.get(current, frozenset()):
        raise InvalidTransition(current, requested, entity="installation request")


def _ensure_actor_may_work(request: InstallationRequest, actor) -> None:
    if is_elevated(actor):
        return
    if request.assigned_to_id is None or request.assigned_to_id != actor.pk:
        raise Forbidden("You can only work on installation requests assigned to you")


def create(data: dict[str, Any], *, actor, source_address: str | None = None) -> InstallationRequest:
    with transaction.atomic():
        with audit_mutation(ENTITY, AuditAction.CREATE, performed_by=actor, source_address=source_address) as capture:
            request = InstallationRequest.objects.create(created_by=actor, **data)
            capture.entity_id = request.pk
            capture.new_state = snapshot(request)
    log_activity(actor, "INSTALLATION_CREATED", {"request_id": request.request_id}, source_address)
    return request


def update(
    request: InstallationRequest, changes: dict[str, Any], *, actor, source_address: str | None = None
) -> InstallationRequest:
    if request.status not in OPEN_STATES:
        raise ValidationFailed(f"A {request.get_status_display().lower()} installation request cannot be edited")
    _ensure_actor_may_work(request, actor)
    return _save(request, changes, actor=actor, source_address=source_address)


def _save(request: InstallationRequest, changes: dict[str, Any], *, actor, source_address) -> InstallationRequest:
    with transaction.atomic():
        with audit_mutation(
            ENTITY, AuditAction.UPDATE, instance=request, performed_by=actor, source_address=source_address
        ) as capture:
            for field, value in changes.items():
                setattr(request, field, value)
            request.save()
            capture.new_state = snapshot(request)
    return request


def assign(request: InstallationRequest, assignee_id, *, actor, source_address: str | None = None):
    if request.status not in OPEN_STATES:
        raise ValidationFailed("Only pending or in-progress installation requests can be assigned")
    assignee = get_user_model().objects.active().select_related("role").filter(pk=assignee_id).first()
    if assignee is None:
        raise ValidationFailed("User to assign not found or inactive")
    if assignee.role is None or assignee.role.code != RoleCode.ENGINEER:
        raise Forbidden("Installation requests can only be assigned to Engineers")

    request = _save(request, {"assigned_to": assignee}, actor=actor, source_address=source_address)
    log_activity(
        actor,
        "INSTALLATION_ASSIGNED",
        {"request_id": request.request_id, "assigned_to": str(assignee.pk)},
        source_address,
    )
    notifications.notify_users(
        [assignee],
        f"New Installation Assignment: #{request.request_id}",
        f"You have been assigned installation request #{request.request_id} for {request.customer.name}, "
        f"scheduled on {request.scheduled_date:%Y-%m-%d}.",
        exclude=actor,
    )
    return request


def start(request: InstallationRequest, *, actor, source_address: str | None = None) -> InstallationRequest:
    ensure_transition(request.status, S.IN_PROGRESS)
    _ensure_actor_may_work(request, actor)
    request = _save(request, {"status": S.IN_PROGRESS}, actor=actor, source_address=source_address)
    logger.info("installation %s started by %s", request.request_id, actor.pk)
    return request


def complete(
    request: InstallationRequest,
    *,
    actor,
    completed_date=None,
    notes: str | None = None,
    photos: list | None = None,
    videos: list | None = None,
    source_address: str | None = None,
) -> InstallationRequest:
    """IN_PROGRESS -> COMPLETED, storing any verification uploads."""
    ensure_transition(request.status, S.COMPLETED)
    _ensure_actor_may_work(request, actor)
    photos, videos = list(photos or []), list(videos or [])
    check_upload_limits(photos + videos)

    changes: dict[str, Any] = {
        "status": S.COMPLETED,
        "completed_date": completed_date or timezone.localdate(),
        "verification_photos": request.verification_photos + [store_upload(f, UPLOAD_DIR).url for f in photos],
        "verification_videos": request.verification_videos + [store_upload(f, UPLOAD_DIR).url for f in videos],
    }
    if notes:
        changes["notes"] = notes
    request = _save(request, changes, actor=actor, source_address=source_address)
    log_activity(actor, "INSTALLATION_COMPLETED", {"request_id": request.request_id}, source_address)
    return request


def cancel(request: InstallationRequest, *, actor, source_address: str | None = None) -> InstallationRequest:
    ensure_transition(request.status, S.CANCELLED)
    if not is_elevated(actor):
        raise Forbidden("Only managers can cancel installation requests")
    return _save(request, {"status": S.CANCELLED}, actor=actor, source_address=source_address)


def delete(request: InstallationRequest, *, actor, source_address: str | None = None) -> None:
    if request.status not in DELETABLE:
        raise Conflict("Only pending or cancelled installation requests can be deleted")
    if request.movements.exists():
        raise Conflict("Installation request has inventory movements and cannot be deleted")
    with transaction.atomic():
        with audit_mutation(
            ENTITY, AuditAction.DELETE, instance=request, performed_by=actor, source_address=source_address
        ):
            request.delete()
    log_activity(actor, "INSTALLATION_DELETED", {"request_id": request.request_id}, source_address)

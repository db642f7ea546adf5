"""Audit and activity recording.

Recording is best-effort: a failure to persist an entry is logged on the
``audit`` logger and never propagates to the caller, so the business
operation that triggered it still succeeds.

Typical use around a mutation::

    with audit_mutation("Ticket", AuditAction.UPDATE, instance=ticket,
                        performed_by=user, source_address=ip) as capture:
        ticket.status = TicketStatus.CLOSED
        ticket.save()
        capture.new_state = snapshot(ticket)

The previous state is captured before the block runs and the entry is only
written when the block exits without an exception.
"""

import json
import logging
from contextlib import contextmanager
from typing import Any, Iterator

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models, transaction

from .models import ActivityLog, AuditAction, AuditLogEntry

logger = logging.getLogger("audit")

SENSITIVE_FIELDS = frozenset({"password", "password_hash"})


def _json_safe(data: Any) -> Any:
    return json.loads(json.dumps(data, cls=DjangoJSONEncoder))


def snapshot(instance: models.Model, extra: dict[str, Any] | None = None) -> dict[str, Any]:
    """JSON-safe dict of an instance's concrete fields and M2M ids.

    Foreign keys are stored by attname (``assigned_to_id``); sensitive
    fields are dropped. ``extra`` is merged last and wins on key clashes.
    """
    data: dict[str, Any] = {}
    for field in instance._meta.concrete_fields:
        if field.name in SENSITIVE_FIELDS:
            continue
        data[field.attname] = field.value_from_object(instance)
    if instance.pk is not None:
        for field in instance._meta.many_to_many:
            related = getattr(instance, field.name)
            data[field.name] = sorted(related.values_list("pk", flat=True))
    if extra:
        data.update(extra)
    return _json_safe(data)


def _actor_id(user) -> Any:
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    return user.pk


def record(
    entity_type: str,
    entity_id: Any,
    action: str,
    previous_state: dict[str, Any] | None = None,
    new_state: dict[str, Any] | None = None,
    performed_by=None,
    source_address: str | None = None,
) -> AuditLogEntry | None:
    """Persist one audit entry; returns None when persisting failed."""
    try:
        with transaction.atomic():
            return AuditLogEntry.objects.create(
                entity_type=entity_type,
                entity_id=str(entity_id),
                action=action,
                previous_state=_json_safe(previous_state) if previous_state is not None else None,
                new_state=_json_safe(new_state) if new_state is not None else None,
                performed_by_id=_actor_id(performed_by),
                source_address=source_address,
            )
    except Exception:
        logger.exception("failed to record audit entry %s %s:%s", action, entity_type, entity_id)
        return None


class AuditCapture:
    """Mutable handle yielded by ``audit_mutation``."""

    def __init__(self, entity_id: Any, previous_state: dict[str, Any] | None):
        self.entity_id = entity_id
        self.previous_state = previous_state
        self.new_state: dict[str, Any] | None = None
        self.entry: AuditLogEntry | None = None


@contextmanager
def audit_mutation(
    entity_type: str,
    action: str,
    *,
    instance: models.Model | None = None,
    previous_state: dict[str, Any] | None = None,
    performed_by=None,
    source_address: str | None = None,
) -> Iterator[AuditCapture]:
    """Snapshot before, run the mutation, record after it succeeded."""
    if previous_state is None and instance is not None and action != AuditAction.CREATE:
        previous_state = snapshot(instance)
    capture = AuditCapture(getattr(instance, "pk", None), previous_state)

    yield capture

    if capture.entity_id is None:
        logger.error("audit capture for %s %s finished without an entity id", action, entity_type)
        return
    capture.entry = record(
        entity_type,
        capture.entity_id,
        action,
        previous_state=capture.previous_state,
        new_state=capture.new_state,
        performed_by=performed_by,
        source_address=source_address,
    )


def log_activity(user, action: str, details: dict[str, Any] | None = None, source_address: str | None = None):
    """Append an activity entry; failures are logged and swallowed."""
    try:
        with transaction.atomic():
            return ActivityLog.objects.create(
                user_id=_actor_id(user),
                action=action,
                details=_json_safe(details or {}),
                source_address=source_address,
            )
    except Exception:
        logger.exception("failed to record activity %s", action)
        return None


__all__ = ["AuditCapture", "audit_mutation", "log_activity", "record", "snapshot"]

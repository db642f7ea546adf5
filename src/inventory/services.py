"""Stock movements; completing one adjusts the item quantity."""

import logging
from typing import Any

from django.db import transaction

from audit.models import AuditAction
from audit.recorder import audit_mutation, snapshot
from core.exceptions import InvalidTransition, ValidationFailed

from .models import InventoryMovement, Item, MovementStatus, MovementType

logger = logging.getLogger(__name__)

ENTITY = "InventoryMovement"

TRANSITIONS: dict[str, frozenset[str]] = {
    MovementStatus.PENDING: frozenset({MovementStatus.COMPLETED, MovementStatus.CANCELLED}),
}


def _ensure_pending(movement: InventoryMovement, requested: str) -> None:
    if requested not in TRANSITIONS.get(movement.status, frozenset()):
        raise InvalidTransition(movement.status, requested, entity="movement")


def create_movement(data: dict[str, Any], *, actor, source_address: str | None = None) -> InventoryMovement:
    with transaction.atomic():
        with audit_mutation(ENTITY, AuditAction.CREATE, performed_by=actor, source_address=source_address) as capture:
            movement = InventoryMovement.objects.create(created_by=actor, **data)
            capture.entity_id = movement.pk
            capture.new_state = snapshot(movement)
    return movement


def update_movement(
    movement: InventoryMovement, changes: dict[str, Any], *, actor, source_address: str | None = None
) -> InventoryMovement:
    if movement.status != MovementStatus.PENDING:
        raise ValidationFailed("Only pending movements can be edited")
    with transaction.atomic():
        with audit_mutation(
            ENTITY, AuditAction.UPDATE, instance=movement, performed_by=actor, source_address=source_address
        ) as capture:
            for field, value in changes.items():
                setattr(movement, field, value)
            movement.save()
            capture.new_state = snapshot(movement)
    return movement


def complete_movement(movement: InventoryMovement, *, actor, source_address: str | None = None) -> InventoryMovement:
    """PENDING -> COMPLETED; a dispatch takes stock out, a return puts it back."""
    _ensure_pending(movement, MovementStatus.COMPLETED)
    with transaction.atomic():
        item = Item.objects.select_for_update().get(pk=movement.item_id)
        dispatch = movement.movement_type == MovementType.DISPATCH
        if dispatch and item.quantity < movement.quantity:
            raise ValidationFailed("Insufficient inventory quantity for dispatch")

        with audit_mutation(
            "Item", AuditAction.UPDATE, instance=item, performed_by=actor, source_address=source_address
        ) as item_capture:
            item.quantity += -movement.quantity if dispatch else movement.quantity
            item.save()
            item_capture.new_state = snapshot(item)

        with audit_mutation(
            ENTITY, AuditAction.UPDATE, instance=movement, performed_by=actor, source_address=source_address
        ) as capture:
            movement.status = MovementStatus.COMPLETED
            movement.save()
            capture.new_state = snapshot(movement)
    logger.info(
        "movement %s completed: %s %s x%s", movement.pk, movement.movement_type, item.pk, movement.quantity
    )
    return movement


def cancel_movement(movement: InventoryMovement, *, actor, source_address: str | None = None) -> InventoryMovement:
    _ensure_pending(movement, MovementStatus.CANCELLED)
    with transaction.atomic():
        with audit_mutation(
            ENTITY, AuditAction.UPDATE, instance=movement, performed_by=actor, source_address=source_address
        ) as capture:
            movement.status = MovementStatus.CANCELLED
            movement.save()
            capture.new_state = snapshot(movement)
    return movement


def delete_movement(movement: InventoryMovement, *, actor, source_address: str | None = None) -> None:
    if movement.status != MovementStatus.PENDING:
        raise ValidationFailed("Only movements with status 'pending' can be deleted")
    with transaction.atomic():
        with audit_mutation(
            ENTITY, AuditAction.DELETE, instance=movement, performed_by=actor, source_address=source_address
        ):
            movement.delete()

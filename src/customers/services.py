"""Customer operations with duplicate detection and audit capture."""

from django.db import transaction

from audit.models import AuditAction
from audit.recorder import audit_mutation, snapshot
from core.exceptions import Conflict

from .models import Customer


def _ensure_unique(data: dict, instance: Customer | None = None) -> None:
    qs = Customer.objects.all()
    if instance is not None:
        qs = qs.exclude(pk=instance.pk)
    if data.get("mobile") and qs.filter(mobile=data["mobile"]).exists():
        raise Conflict("Customer with this mobile number already exists")
    if data.get("email") and qs.filter(email=data["email"]).exists():
        raise Conflict("Customer with this email already exists")


def create_customer(data: dict, *, actor, source_address: str | None = None) -> Customer:
    _ensure_unique(data)
    with transaction.atomic():
        with audit_mutation(
            "Customer", AuditAction.CREATE, performed_by=actor, source_address=source_address
        ) as capture:
            customer = Customer.objects.create(created_by=actor, **data)
            capture.entity_id = customer.pk
            capture.new_state = snapshot(customer)
    return customer


def update_customer(customer: Customer, data: dict, *, actor, source_address: str | None = None) -> Customer:
    _ensure_unique(data, instance=customer)
    with transaction.atomic():
        with audit_mutation(
            "Customer", AuditAction.UPDATE, instance=customer, performed_by=actor, source_address=source_address
        ) as capture:
            for field, value in data.items():
                setattr(customer, field, value)
            customer.save()
            capture.new_state = snapshot(customer)
    return customer


def delete_customer(customer: Customer, *, actor, source_address: str | None = None) -> bool:
    """Delete a customer, or deactivate it when tickets reference it.

    Returns True when the row was removed.
    """
    if customer.tickets.exists() or customer.installation_requests.exists():
        update_customer(customer, {"is_active": False}, actor=actor, source_address=source_address)
        return False
    with transaction.atomic():
        with audit_mutation(
            "Customer", AuditAction.DELETE, instance=customer, performed_by=actor, source_address=source_address
        ):
            customer.delete()
    return True

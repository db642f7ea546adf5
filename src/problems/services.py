"""Problem catalogue writes, each captured in the audit trail."""

from django.db import transaction

from audit.models import AuditAction
from audit.recorder import audit_mutation, snapshot
from core.exceptions import Conflict

from .models import Problem


def create_problem(data: dict, *, actor, source_address: str | None = None) -> Problem:
    with transaction.atomic():
        with audit_mutation(
            "Problem", AuditAction.CREATE, performed_by=actor, source_address=source_address
        ) as capture:
            problem = Problem.objects.create(created_by=actor, updated_by=actor, **data)
            capture.entity_id = problem.pk
            capture.new_state = snapshot(problem)
    return problem


def update_problem(problem: Problem, data: dict, *, actor, source_address: str | None = None) -> Problem:
    with transaction.atomic():
        with audit_mutation(
            "Problem", AuditAction.UPDATE, instance=problem, performed_by=actor, source_address=source_address
        ) as capture:
            for field, value in data.items():
                setattr(problem, field, value)
            problem.updated_by = actor
            problem.save()
            capture.new_state = snapshot(problem)
    return problem


def delete_problem(problem: Problem, *, actor, source_address: str | None = None) -> None:
    """Delete a problem that no ticket references."""
    if problem.tickets.exists():
        raise Conflict("Problem is linked to tickets and cannot be deleted")
    with transaction.atomic():
        with audit_mutation(
            "Problem", AuditAction.DELETE, instance=problem, performed_by=actor, source_address=source_address
        ):
            problem.delete()

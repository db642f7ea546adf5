"""Ticket status transition table.

Every status change goes through ``ensure_transition`` before anything is
written, so an illegal request never leaves a partial mutation behind.
"""

import math
from datetime import datetime

from django.utils import timezone

from core.exceptions import InvalidTransition

from .models import TicketStatus as S

DELETED = "DELETED"

TRANSITIONS: dict[str, frozenset[str]] = {
    S.OPEN: frozenset({S.ASSIGNED}),
    S.ASSIGNED: frozenset({S.ASSIGNED, S.IN_PROGRESS}),
    S.IN_PROGRESS: frozenset({S.PENDING_APPROVAL, S.RESOLVED}),
    S.PENDING_APPROVAL: frozenset({S.RESOLVED}),
    S.RESOLVED: frozenset({S.CLOSED}),
    S.CLOSED: frozenset({S.REOPENED}),
    S.REOPENED: frozenset({S.ASSIGNED}),
}

# States from which a ticket may still be soft-deleted.
DELETABLE = frozenset(set(S.values) - {S.CLOSED})


def can_transition(current: str, requested: str) -> bool:
    if requested == DELETED:
        return current in DELETABLE
    return requested in TRANSITIONS.get(current, frozenset())


def ensure_transition(current: str, requested: str) -> None:
    if not can_transition(current, requested):
        raise InvalidTransition(current, requested)


def days_since(moment: datetime, now: datetime | None = None) -> int:
    """Whole days elapsed since ``moment``, any started day counting as one."""
    now = now or timezone.now()
    return math.ceil((now - moment).total_seconds() / 86400)


def ensure_reopenable(ticket, settings, now: datetime | None = None) -> None:
    """CLOSED -> REOPENED, subject to the feature flag and the reopen window."""
    ensure_transition(ticket.status, S.REOPENED)
    if not settings.allow_reopen_closed_tickets:
        raise InvalidTransition(ticket.status, S.REOPENED, "Reopening closed tickets is not allowed.")
    if ticket.closed_at is not None and days_since(ticket.closed_at, now) > settings.reopen_window_days:
        raise InvalidTransition(
            ticket.status,
            S.REOPENED,
            f"Tickets can only be reopened within {settings.reopen_window_days} days of closure.",
        )


def resolution_target(settings, role_code: str | None) -> str:
    """RESOLVED directly when auto-approval covers the caller's role."""
    if settings.auto_approval and role_code in (settings.auto_approval_roles or []):
        return S.RESOLVED
    return S.PENDING_APPROVAL


__all__ = [
    "DELETABLE",
    "DELETED",
    "TRANSITIONS",
    "can_transition",
    "days_since",
    "ensure_reopenable",
    "ensure_transition",
    "resolution_target",
]

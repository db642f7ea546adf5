"""Aggregate queries behind the dashboard endpoints."""

from django.contrib.auth import get_user_model
from django.db.models import Count, Q

from audit.models import ActivityLog
from customers.models import Customer
from inventory.models import Item
from tickets.models import Ticket, TicketStatus

LOW_STOCK_THRESHOLD = 10

OPEN_STATUSES = (
    TicketStatus.OPEN,
    TicketStatus.ASSIGNED,
    TicketStatus.IN_PROGRESS,
    TicketStatus.REOPENED,
    TicketStatus.PENDING_APPROVAL,
)


def summary() -> dict:
    tickets = Ticket.objects.alive()
    return {
        "users": {"total": get_user_model().objects.active().count()},
        "tickets": {
            "total": tickets.count(),
            "open": tickets.filter(status__in=OPEN_STATUSES).count(),
        },
        "inventory": {
            "total": Item.objects.count(),
            "low_stock": Item.objects.filter(quantity__lte=LOW_STOCK_THRESHOLD).count(),
        },
        "customers": {"total": Customer.objects.filter(is_active=True).count()},
    }


def ticket_counts_by(field: str) -> dict[str, int]:
    rows = Ticket.objects.alive().values(field).annotate(count=Count("id")).order_by(field)
    return {row[field]: row["count"] for row in rows}


def ticket_stats() -> dict[str, int]:
    """Count per status, every status present even when zero."""
    counts = ticket_counts_by("status")
    return {status.lower(): counts.get(status, 0) for status in TicketStatus.values}


def recent_activities(limit: int = 10):
    return ActivityLog.objects.select_related("user")[:limit]


def top_customers(limit: int = 5) -> list[dict]:
    alive = Q(tickets__is_deleted=False)
    rows = (
        Customer.objects.annotate(
            ticket_count=Count("tickets", filter=alive),
            open_tickets=Count("tickets", filter=alive & Q(tickets__status__in=OPEN_STATUSES)),
        )
        .filter(ticket_count__gt=0)
        .order_by("-ticket_count", "name")[:limit]
    )
    return [
        {
            "id": customer.pk,
            "name": customer.name,
            "mobile": customer.mobile,
            "email": customer.email,
            "ticket_count": customer.ticket_count,
            "open_tickets": customer.open_tickets,
        }
        for customer in rows
    ]


def low_stock_items(limit: int = 5) -> list[dict]:
    return list(
        Item.objects.filter(quantity__lte=LOW_STOCK_THRESHOLD)
        .order_by("quantity", "name")
        .values("id", "name", "category", "quantity", "status")[:limit]
    )

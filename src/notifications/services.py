"""Outbound email and WhatsApp delivery.

Delivery is fire-and-forget: every failure is logged on the
``notifications`` logger and the caller carries on.
"""

import logging
from typing import Iterable, Sequence

import requests
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail

from access_control.registry import RoleCode
from tickets.models import TicketStatus

logger = logging.getLogger("notifications")


def send_email(recipient: str, subject: str, message: str) -> bool:
    if not recipient:
        logger.warning("email skipped: no recipient for %r", subject)
        return False
    try:
        send_mail(subject, message, settings.DEFAULT_FROM_EMAIL, [recipient], fail_silently=False)
    except Exception:
        logger.exception("email to %s failed", recipient)
        return False
    logger.info("email sent to %s: %s", recipient, subject)
    return True


def send_whatsapp(recipient: str, template: str, variables: Sequence[str] = ()) -> bool:
    """POST a template message; a no-op unless the API is configured."""
    url = settings.WHATSAPP_API_URL
    token = settings.WHATSAPP_API_TOKEN
    if not (url and token):
        logger.debug("whatsapp not configured, skipping %s", template)
        return False
    if not recipient:
        return False
    payload = {
        "to": recipient,
        "template": template,
        "variables": [str(value) for value in variables],
    }
    headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
    try:
        response = requests.post(url, json=payload, headers=headers, timeout=settings.WHATSAPP_TIMEOUT_SECONDS)
        response.raise_for_status()
    except requests.RequestException:
        logger.exception("whatsapp message %s to %s failed", template, recipient)
        return False
    logger.info("whatsapp %s sent to %s (%s)", template, recipient, response.status_code)
    return True


def notify_users(users: Iterable, subject: str, message: str, *, exclude=None) -> int:
    """Email each distinct active user once; returns how many were sent."""
    sent = 0
    seen = set()
    exclude_id = getattr(exclude, "pk", None)
    for user in users:
        if user is None or user.pk in seen or user.pk == exclude_id or not user.is_active:
            continue
        seen.add(user.pk)
        if send_email(user.email, subject, message):
            sent += 1
    return sent


def support_managers():
    return get_user_model().objects.active().filter(role__code=RoleCode.SUPPORT_MANAGER)


def _label(ticket) -> str:
    return f"{ticket.title} (#{ticket.ticket_id})"


def _name(actor) -> str:
    return getattr(actor, "name", None) or "A user"


def ticket_assigned(ticket, actor) -> None:
    if ticket.assigned_to is None:
        return
    notify_users(
        [ticket.assigned_to],
        f"New Ticket Assignment: {_label(ticket)}",
        f'{_name(actor)} has assigned you a ticket titled "{ticket.title}" with {ticket.priority} priority. '
        "Please review and take necessary action.",
    )
    phone = getattr(ticket.assigned_to, "phone", "")
    if phone:
        send_whatsapp(phone, "ticket_assigned", [ticket.ticket_id, ticket.title, ticket.priority])


def ticket_status_changed(ticket, actor) -> None:
    """Tell the people who care about the ticket's new status."""
    label = _label(ticket)
    if ticket.status == TicketStatus.PENDING_APPROVAL:
        notify_users(
            support_managers(),
            f"Ticket Needs Approval: {label}",
            f'A ticket resolution by {_name(actor)} is waiting for your approval. Ticket: "{label}"',
        )
    elif ticket.status == TicketStatus.RESOLVED:
        notify_users(
            [ticket.created_by],
            f"Ticket Update: {label}",
            f'Your ticket "{label}" has been resolved by {_name(actor)}.',
            exclude=actor,
        )
    elif ticket.status == TicketStatus.CLOSED:
        notify_users(
            [ticket.assigned_to, ticket.created_by],
            f"Ticket Update: {label}",
            f'Ticket "{label}" has been closed by {_name(actor)}.',
            exclude=actor,
        )
    elif ticket.status == TicketStatus.REOPENED:
        notify_users(
            [ticket.assigned_to, *support_managers()],
            f"Ticket Reopened: {label}",
            f'{_name(actor)} has reopened the ticket "{label}".',
        )


def ticket_approved(ticket, actor) -> None:
    notify_users(
        [ticket.resolved_by],
        f"Resolution Approved: {_label(ticket)}",
        f'{_name(actor)} has approved your resolution for ticket "{_label(ticket)}".',
    )


def ticket_commented(ticket, comment, actor) -> None:
    body = comment.body if len(comment.body) <= 100 else f"{comment.body[:100]}..."
    if comment.is_internal:
        recipients = [ticket.assigned_to]
        if ticket.assigned_to is not None and ticket.assigned_to.role_id is not None:
            if ticket.assigned_to.role.code == RoleCode.ENGINEER:
                recipients.extend(support_managers())
        subject = f"New Internal Comment: {_label(ticket)}"
        message = f'{_name(actor)} left an internal comment on ticket "{ticket.title}": "{body}"'
    else:
        recipients = [ticket.created_by, ticket.assigned_to]
        subject = f"New Comment: {_label(ticket)}"
        message = f'{_name(actor)} commented on ticket "{ticket.title}": "{body}"'
    notify_users(recipients, subject, message, exclude=actor)


__all__ = [
    "notify_users",
    "send_email",
    "send_whatsapp",
    "support_managers",
    "ticket_approved",
    "ticket_assigned",
    "ticket_commented",
    "ticket_status_changed",
]

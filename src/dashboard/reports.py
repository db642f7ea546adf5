"""Daily and weekly ticket reports, written to CSV and emailed to managers."""

import csv
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import EmailMessage
from django.db.models import Count, F, Q
from django.utils import timezone

from access_control.registry import RoleCode
from tickets.models import Ticket

from .services import ticket_counts_by

logger = logging.getLogger(__name__)

PERIODS = {"daily": timedelta(days=1), "weekly": timedelta(days=7)}
PERFORMANCE_WINDOW = timedelta(days=7)
RECIPIENT_ROLES = (RoleCode.SUPER_ADMIN, RoleCode.SUPPORT_MANAGER)


@dataclass
class Report:
    period: str
    generated_at: Any
    by_status: dict[str, int]
    by_priority: dict[str, int]
    by_category: dict[str, int]
    recent_tickets: list[dict]
    engineer_performance: list[dict] = field(default_factory=list)

    @property
    def title(self) -> str:
        return f"{self.period.capitalize()} Support Ticket Report - {self.generated_at:%Y-%m-%d}"


def engineer_performance(now=None) -> list[dict]:
    """Assigned/resolved counts and mean hours to resolve over the last week."""
    now = now or timezone.now()
    since = now - PERFORMANCE_WINDOW
    engineers = (
        get_user_model()
        .objects.active()
        .filter(role__code=RoleCode.ENGINEER)
        .annotate(
            assigned=Count("assigned_tickets", filter=Q(assigned_tickets__assigned_at__gte=since), distinct=True),
        )
        .order_by("name")
    )
    rows = []
    for engineer in engineers:
        resolved = Ticket.objects.filter(resolved_by=engineer, resolved_at__gte=since)
        durations = [
            (ticket.resolved_at - ticket.assigned_at).total_seconds() / 3600
            for ticket in resolved.exclude(assigned_at=None).only("resolved_at", "assigned_at")
        ]
        rows.append(
            {
                "engineer": engineer.name,
                "assigned_tickets": engineer.assigned,
                "resolved_tickets": resolved.count(),
                "avg_resolution_hours": round(sum(durations) / len(durations), 2) if durations else 0,
            }
        )
    return rows


def build_report(period: str, now=None) -> Report:
    if period not in PERIODS:
        raise ValueError(f"Unknown report period: {period}")
    now = now or timezone.now()
    recent = (
        Ticket.objects.alive()
        .filter(created_at__gte=now - PERIODS[period])
        .order_by("-created_at")
        .values("ticket_id", "title", "status", "priority", "created_at", customer_name=F("customer__name"))
    )
    return Report(
        period=period,
        generated_at=now,
        by_status=ticket_counts_by("status"),
        by_priority=ticket_counts_by("priority"),
        by_category=ticket_counts_by("category"),
        recent_tickets=list(recent),
        engineer_performance=engineer_performance(now) if period == "weekly" else [],
    )


def report_rows(report: Report) -> list[tuple[str, Any]]:
    rows: list[tuple[str, Any]] = []
    for heading, counts in (
        ("TICKET COUNTS BY STATUS", report.by_status),
        ("TICKET COUNTS BY PRIORITY", report.by_priority),
        ("TICKET COUNTS BY CATEGORY", report.by_category),
    ):
        rows.append((heading, ""))
        rows.extend((key or "Unknown", value) for key, value in counts.items())
        rows.append(("", ""))
    if report.engineer_performance:
        rows.append(("ENGINEER PERFORMANCE", ""))
        for entry in report.engineer_performance:
            rows.append((f"{entry['engineer']} - Assigned Tickets", entry["assigned_tickets"]))
            rows.append((f"{entry['engineer']} - Resolved Tickets", entry["resolved_tickets"]))
            rows.append((f"{entry['engineer']} - Avg Resolution Time (hours)", entry["avg_resolution_hours"]))
            rows.append(("", ""))
    return rows


def write_csv(report: Report, directory: Path | None = None) -> Path:
    directory = Path(directory or settings.REPORTS_DIR)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{report.period}_report_{report.generated_at:%Y-%m-%d}.csv"
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(["Category", "Value"])
        writer.writerows(report_rows(report))
    return path


def email_body(report: Report) -> str:
    status_summary = ", ".join(f"{key}: {value}" for key, value in report.by_status.items()) or "none"
    window = "24 hours" if report.period == "daily" else "7 days"
    lines = [
        report.title,
        "",
        "Summary:",
        f"- Total tickets created in the last {window}: {len(report.recent_tickets)}",
        f"- Ticket Status Summary: {status_summary}",
    ]
    for entry in report.engineer_performance:
        lines.append(
            f"- {entry['engineer']}: {entry['assigned_tickets']} assigned, "
            f"{entry['resolved_tickets']} resolved, {entry['avg_resolution_hours']}h average"
        )
    lines.append("")
    lines.append("Please find the detailed report attached.")
    return "\n".join(lines)


def recipients() -> list[str]:
    return list(
        get_user_model()
        .objects.active()
        .filter(role__code__in=RECIPIENT_ROLES)
        .values_list("email", flat=True)
    )


def generate_and_send(period: str, now=None) -> tuple[Report, Path, int]:
    """Build, write and email a report; returns how many addresses were mailed."""
    report = build_report(period, now)
    path = write_csv(report)
    to = recipients()
    if not to:
        logger.warning("%s report written to %s but no recipients are configured", period, path)
        return report, path, 0
    message = EmailMessage(report.title, email_body(report), settings.DEFAULT_FROM_EMAIL, to)
    message.attach_file(str(path), "text/csv")
    message.send(fail_silently=False)
    logger.info("%s report sent to %d recipient(s)", period, len(to))
    return report, path, len(to)

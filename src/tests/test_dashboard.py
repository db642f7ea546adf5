"""Dashboard aggregates and the scheduled ticket reports."""

from __future__ import annotations

import csv
import shutil
import tempfile
from datetime import timedelta
from io import StringIO

from django.core import mail
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone

from access_control.registry import RoleCode
from customers.models import Customer
from dashboard import reports
from inventory.models import Item
from tickets.models import Ticket, TicketPriority, TicketStatus
from tests.utils import FakeRedisMixin, auth_client, create_user, seed_roles

REPORTS_TMP = tempfile.mkdtemp(prefix="reports-")


def _ticket(seq, created_by, **fields):
    return Ticket.objects.create(
        ticket_id=f"TKT20240101{seq:04d}",
        title=f"Ticket number {seq}",
        description="Something is broken again",
        created_by=created_by,
        **fields,
    )


class DashboardApiTests(FakeRedisMixin, TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.roles = seed_roles()
        cls.manager = create_user("manager@example.com", "MgrPass1234", cls.roles[RoleCode.SUPPORT_MANAGER])
        cls.orphan = create_user("orphan@example.com", "OrphanPass1", None)
        cls.customer = Customer.objects.create(
            name="Asha Verma", address="12 Market Road", state="Kerala", city="Kochi", pincode="682001",
            mobile="9876543210",
        )
        _ticket(1, cls.manager, customer=cls.customer)
        _ticket(2, cls.manager, customer=cls.customer, status=TicketStatus.CLOSED)
        _ticket(3, cls.manager, is_deleted=True)
        Item.objects.create(name="Valve", quantity=2)
        Item.objects.create(name="Tank", quantity=50)

    def test_stats(self):
        response = auth_client(self.manager).get("/dashboard/stats/")
        data = response.json()["data"]

        self.assertEqual(response.status_code, 200)
        self.assertEqual(data["tickets"], {"total": 2, "open": 1})
        self.assertEqual(data["inventory"], {"total": 2, "low_stock": 1})
        self.assertEqual(data["customers"]["total"], 1)

    def test_ticket_stats_lists_every_status(self):
        data = auth_client(self.manager).get("/dashboard/ticket-stats/").json()["data"]

        self.assertEqual(set(data), {status.lower() for status in TicketStatus.values})
        self.assertEqual(data["open"], 1)
        self.assertEqual(data["closed"], 1)
        self.assertEqual(data["reopened"], 0)

    def test_top_customers(self):
        data = auth_client(self.manager).get("/dashboard/top-customers/").json()["data"]
        self.assertEqual(data[0]["ticket_count"], 2)
        self.assertEqual(data[0]["open_tickets"], 1)

    def test_low_stock(self):
        data = auth_client(self.manager).get("/dashboard/low-stock/", {"limit": 3}).json()["data"]
        self.assertEqual([row["name"] for row in data], ["Valve"])

    def test_limit_must_be_a_positive_integer(self):
        client = auth_client(self.manager)
        self.assertEqual(client.get("/dashboard/activities/", {"limit": "ten"}).status_code, 400)
        self.assertEqual(client.get("/dashboard/activities/", {"limit": 0}).status_code, 400)

    def test_requires_role(self):
        self.assertEqual(auth_client(self.orphan).get("/dashboard/stats/").status_code, 403)


@override_settings(REPORTS_DIR=REPORTS_TMP)
class ReportTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.roles = seed_roles()
        cls.admin = create_user("admin@example.com", "AdminPass123", cls.roles[RoleCode.SUPER_ADMIN])
        cls.engineer = create_user(
            "engineer@example.com", "EngPass1234", cls.roles[RoleCode.ENGINEER], name="Field Engineer"
        )
        now = timezone.now()
        _ticket(1, cls.admin, priority=TicketPriority.HIGH)
        _ticket(
            2,
            cls.admin,
            status=TicketStatus.RESOLVED,
            assigned_to=cls.engineer,
            assigned_at=now - timedelta(hours=6),
            resolved_by=cls.engineer,
            resolved_at=now - timedelta(hours=2),
        )

    @classmethod
    def tearDownClass(cls):
        super().tearDownClass()
        shutil.rmtree(REPORTS_TMP, ignore_errors=True)

    def test_unknown_period(self):
        with self.assertRaises(ValueError):
            reports.build_report("monthly")

    def test_daily_report_counts(self):
        report = reports.build_report("daily")

        self.assertEqual(report.by_status, {TicketStatus.OPEN: 1, TicketStatus.RESOLVED: 1})
        self.assertEqual(len(report.recent_tickets), 2)
        self.assertEqual(report.engineer_performance, [])

    def test_weekly_report_includes_engineer_performance(self):
        report = reports.build_report("weekly")

        self.assertEqual(len(report.engineer_performance), 1)
        row = report.engineer_performance[0]
        self.assertEqual(row["engineer"], "Field Engineer")
        self.assertEqual(row["assigned_tickets"], 1)
        self.assertEqual(row["resolved_tickets"], 1)
        self.assertEqual(row["avg_resolution_hours"], 4.0)

    def test_write_csv(self):
        path = reports.write_csv(reports.build_report("daily"))

        with path.open(newline="", encoding="utf-8") as handle:
            rows = list(csv.reader(handle))
        self.assertEqual(rows[0], ["Category", "Value"])
        self.assertIn(["TICKET COUNTS BY STATUS", ""], rows)
        self.assertIn(["HIGH", "1"], rows)

    def test_generate_and_send_mails_managers_with_attachment(self):
        _, path, sent = reports.generate_and_send("weekly")

        self.assertEqual(sent, 1)
        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.to, [self.admin.email])
        self.assertIn("Weekly Support Ticket Report", message.subject)
        self.assertEqual(message.attachments[0][0], path.name)

    def test_command(self):
        out = StringIO()
        call_command("generate_reports", "--period", "daily", stdout=out)

        self.assertIn("Daily report written", out.getvalue())
        self.assertEqual(len(mail.outbox), 1)

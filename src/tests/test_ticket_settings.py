"""Ticket settings: singleton behaviour and who may change what."""

from __future__ import annotations

from django.test import TestCase

from access_control.registry import RoleCode
from audit.models import AuditLogEntry
from tickets.models import TicketSettings
from tests.utils import FakeRedisMixin, auth_client, create_user, seed_roles


class TicketSettingsModelTests(TestCase):
    def test_load_creates_single_row_with_defaults(self):
        first = TicketSettings.load()
        second = TicketSettings.load()

        self.assertEqual(first.pk, 1)
        self.assertEqual(TicketSettings.objects.count(), 1)
        self.assertEqual(second.priority_due_dates, {"LOW": 10, "MEDIUM": 7, "HIGH": 3, "CRITICAL": 1})
        self.assertEqual(second.reopen_window_days, 30)

    def test_load_fills_in_missing_priorities(self):
        TicketSettings.objects.create(priority_due_dates={"HIGH": 2})
        self.assertEqual(
            TicketSettings.load().priority_due_dates, {"HIGH": 2, "LOW": 10, "MEDIUM": 7, "CRITICAL": 1}
        )

    def test_due_days_falls_back_to_default(self):
        settings = TicketSettings(default_due_date_days=5, priority_due_dates={"HIGH": 2})
        self.assertEqual(settings.due_days_for("HIGH"), 2)
        self.assertEqual(settings.due_days_for("LOW"), 5)


class TicketSettingsApiTests(FakeRedisMixin, TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.roles = seed_roles()
        cls.admin = create_user("admin@example.com", "AdminPass123", cls.roles[RoleCode.SUPER_ADMIN])
        cls.manager = create_user("manager@example.com", "MgrPass1234", cls.roles[RoleCode.SUPPORT_MANAGER])
        cls.engineer = create_user("engineer@example.com", "EngPass1234", cls.roles[RoleCode.ENGINEER])

    def test_manager_can_read_settings(self):
        response = auth_client(self.manager).get("/settings/tickets/")
        self.assertEqual(response.status_code, 200)
        self.assertIn("auto_approval", response.json()["data"])

    def test_engineer_cannot_read_settings(self):
        self.assertEqual(auth_client(self.engineer).get("/settings/tickets/").status_code, 403)

    def test_super_admin_updates_any_field_and_is_audited(self):
        response = auth_client(self.admin).patch(
            "/settings/tickets/",
            {"allow_reopen_closed_tickets": False, "priority_due_dates": {"HIGH": 2}},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertFalse(data["allow_reopen_closed_tickets"])
        self.assertEqual(data["priority_due_dates"]["HIGH"], 2)
        self.assertEqual(data["priority_due_dates"]["LOW"], 10)
        entry = AuditLogEntry.objects.get(entity_type="TicketSettings")
        self.assertTrue(entry.previous_state["allow_reopen_closed_tickets"])
        self.assertFalse(entry.new_state["allow_reopen_closed_tickets"])

    def test_manager_limited_to_due_dates_and_notifications(self):
        manager = auth_client(self.manager)
        TicketSettings.load()

        allowed = manager.put("/settings/tickets/", {"default_due_date_days": 5}, format="json")
        denied = manager.put("/settings/tickets/", {"auto_approval": True}, format="json")

        self.assertEqual(allowed.status_code, 200)
        self.assertEqual(allowed.json()["data"]["default_due_date_days"], 5)
        self.assertEqual(denied.status_code, 403)
        self.assertIn("auto_approval", denied.json()["message"])
        self.assertFalse(TicketSettings.load().auto_approval)

    def test_manager_cannot_reset_or_toggle_auto_approval(self):
        manager = auth_client(self.manager)
        self.assertEqual(manager.post("/settings/tickets/reset/").status_code, 403)
        self.assertEqual(
            manager.patch("/settings/tickets/auto-approval/", {"enabled": True}, format="json").status_code, 403
        )

    def test_priority_days_are_validated(self):
        response = auth_client(self.admin).patch(
            "/settings/tickets/", {"priority_due_dates": {"HIGH": 0}}, format="json"
        )
        self.assertEqual(response.status_code, 400)

        response = auth_client(self.admin).patch(
            "/settings/tickets/", {"priority_due_dates": {"URGENT": 2}}, format="json"
        )
        self.assertEqual(response.status_code, 400)

    def test_auto_approval_roles_must_exist(self):
        response = auth_client(self.admin).patch(
            "/settings/tickets/auto-approval/", {"enabled": True, "roles": ["WIZARD"]}, format="json"
        )
        self.assertEqual(response.status_code, 400)

    def test_toggle_auto_approval(self):
        response = auth_client(self.admin).patch(
            "/settings/tickets/auto-approval/", {"enabled": True, "roles": ["engineer"]}, format="json"
        )

        self.assertEqual(response.status_code, 200)
        settings = TicketSettings.load()
        self.assertTrue(settings.auto_approval)
        self.assertEqual(settings.auto_approval_roles, [RoleCode.ENGINEER])

    def test_reset_restores_defaults(self):
        TicketSettings.objects.create(auto_approval=True, reopen_window_days=3)

        response = auth_client(self.admin).post("/settings/tickets/reset/")

        self.assertEqual(response.status_code, 200)
        settings = TicketSettings.load()
        self.assertFalse(settings.auto_approval)
        self.assertEqual(settings.reopen_window_days, 30)

    def test_due_dates_endpoint(self):
        client = auth_client(self.admin)

        updated = client.put(
            "/settings/tickets/due-dates/",
            {"default_due_date_days": 4, "priority_due_dates": {"CRITICAL": 2}},
            format="json",
        )
        fetched = client.get("/settings/tickets/due-dates/")

        self.assertEqual(updated.status_code, 200)
        self.assertEqual(fetched.json()["data"]["default_due_date_days"], 4)
        self.assertEqual(fetched.json()["data"]["priority_due_dates"]["CRITICAL"], 2)

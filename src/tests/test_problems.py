"""Problem catalogue endpoints and the ticket link."""

from __future__ import annotations

from django.test import TestCase

from access_control.registry import RoleCode
from audit.models import AuditAction, AuditLogEntry
from problems.models import Problem, ProblemCategory
from tickets.models import Ticket
from tickets.services import TicketService
from tests.utils import FakeRedisMixin, auth_client, create_user, seed_roles

TICKET = {
    "title": "Pump leaking water",
    "description": "Water collects under the pump housing.",
}


class ProblemApiTests(FakeRedisMixin, TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.roles = seed_roles()
        cls.admin = create_user("admin@example.com", "AdminPass123", cls.roles[RoleCode.SUPER_ADMIN])
        cls.manager = create_user("manager@example.com", "MgrPass1234", cls.roles[RoleCode.SUPPORT_MANAGER])
        cls.engineer = create_user("engineer@example.com", "EngPass1234", cls.roles[RoleCode.ENGINEER])
        cls.leak = Problem.objects.create(name="Leak", category=ProblemCategory.MAJOR)
        cls.noise = Problem.objects.create(name="Noise", description="Rattling motor")

    def test_manager_creates_problem(self):
        response = auth_client(self.manager).post(
            "/problems/", {"name": "  Overheating  ", "category": "MAJOR"}, format="json"
        )
        body = response.json()

        self.assertEqual(response.status_code, 201)
        self.assertEqual(body["data"]["name"], "Overheating")
        problem = Problem.objects.get(pk=body["data"]["id"])
        self.assertEqual(problem.created_by_id, self.manager.pk)
        entry = AuditLogEntry.objects.get(entity_type="Problem", action=AuditAction.CREATE)
        self.assertEqual(entry.entity_id, str(problem.pk))

    def test_category_defaults_to_minor(self):
        response = auth_client(self.manager).post("/problems/", {"name": "Dust"}, format="json")
        self.assertEqual(response.json()["data"]["category"], ProblemCategory.MINOR)

    def test_blank_name_rejected(self):
        response = auth_client(self.manager).post("/problems/", {"name": "   "}, format="json")
        self.assertEqual(response.status_code, 400)

    def test_update_is_audited(self):
        response = auth_client(self.manager).patch(
            f"/problems/{self.noise.pk}/", {"category": "MAJOR"}, format="json"
        )

        self.assertEqual(response.status_code, 200)
        entry = AuditLogEntry.objects.get(entity_type="Problem", action=AuditAction.UPDATE)
        self.assertEqual(entry.previous_state["category"], ProblemCategory.MINOR)
        self.assertEqual(entry.new_state["category"], ProblemCategory.MAJOR)
        self.assertEqual(entry.new_state["updated_by_id"], str(self.manager.pk))

    def test_engineer_reads_but_cannot_write(self):
        client = auth_client(self.engineer)

        self.assertEqual(client.get("/problems/").status_code, 200)
        self.assertEqual(client.post("/problems/", {"name": "Crack"}, format="json").status_code, 403)
        self.assertEqual(client.delete(f"/problems/{self.noise.pk}/").status_code, 403)

    def test_manager_cannot_delete(self):
        self.assertEqual(auth_client(self.manager).delete(f"/problems/{self.noise.pk}/").status_code, 403)

    def test_search_and_category_filter(self):
        client = auth_client(self.engineer)

        by_text = client.get("/problems/", {"search": "rattling"}).json()["data"]
        by_category = client.get("/problems/", {"category": "major"}).json()["data"]

        self.assertEqual([row["name"] for row in by_text], ["Noise"])
        self.assertEqual([row["name"] for row in by_category], ["Leak"])

    def test_dropdown_sorted_by_name(self):
        data = auth_client(self.engineer).get("/problems/dropdown/").json()["data"]

        self.assertEqual([row["name"] for row in data], ["Leak", "Noise"])
        self.assertEqual(set(data[0]), {"id", "name", "category"})

    def test_ticket_links_problems_and_count_ignores_deleted(self):
        client = auth_client(self.manager)
        created = client.post("/tickets/", {**TICKET, "problems": [self.leak.pk]}, format="json")
        ticket = Ticket.objects.get(pk=created.json()["data"]["id"])
        TicketService.create({**TICKET, "problems": [self.leak.pk]}, actor=self.manager)
        Ticket.objects.exclude(pk=ticket.pk).update(is_deleted=True)

        detail = client.get(f"/tickets/{ticket.pk}/").json()["data"]
        problem = client.get(f"/problems/{self.leak.pk}/").json()["data"]

        self.assertEqual([row["name"] for row in detail["problems"]], ["Leak"])
        self.assertEqual(problem["ticket_count"], 1)
        entry = AuditLogEntry.objects.filter(entity_type="Ticket", action=AuditAction.CREATE).first()
        self.assertIn("problems", entry.new_state)

    def test_ticket_update_replaces_problems(self):
        ticket = TicketService.create({**TICKET, "problems": [self.leak.pk]}, actor=self.manager)

        response = auth_client(self.manager).patch(
            f"/tickets/{ticket.pk}/", {"problems": [self.noise.pk]}, format="json"
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(list(ticket.problems.values_list("name", flat=True)), ["Noise"])
        entry = AuditLogEntry.objects.get(entity_type="Ticket", action=AuditAction.UPDATE)
        self.assertEqual(entry.previous_state["problems"], [self.leak.pk])
        self.assertEqual(entry.new_state["problems"], [self.noise.pk])

    def test_linked_problem_cannot_be_deleted(self):
        TicketService.create({**TICKET, "problems": [self.leak.pk]}, actor=self.manager)
        client = auth_client(self.admin)

        linked = client.delete(f"/problems/{self.leak.pk}/")
        unlinked = client.delete(f"/problems/{self.noise.pk}/")

        self.assertEqual(linked.status_code, 409)
        self.assertEqual(unlinked.status_code, 200)
        self.assertEqual(list(Problem.objects.values_list("name", flat=True)), ["Leak"])
        self.assertTrue(AuditLogEntry.objects.filter(entity_type="Problem", action=AuditAction.DELETE).exists())

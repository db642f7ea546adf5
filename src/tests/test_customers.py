"""Customer endpoints: duplicates, soft delete and per-customer tickets."""

from __future__ import annotations

from django.test import TestCase

from access_control.registry import RoleCode
from audit.models import AuditAction, AuditLogEntry
from customers.models import Customer
from tickets.models import Ticket
from tests.utils import FakeRedisMixin, auth_client, create_user, seed_roles

CUSTOMER = {
    "name": "Asha Verma",
    "address": "12 Market Road",
    "state": "Kerala",
    "city": "Kochi",
    "pincode": "682001",
    "mobile": "9876543210",
    "email": "Asha@Example.com",
}


class CustomerApiTests(FakeRedisMixin, TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.roles = seed_roles()
        cls.admin = create_user("admin@example.com", "AdminPass123", cls.roles[RoleCode.SUPER_ADMIN])
        cls.manager = create_user("manager@example.com", "MgrPass1234", cls.roles[RoleCode.SUPPORT_MANAGER])
        cls.engineer = create_user("engineer@example.com", "EngPass1234", cls.roles[RoleCode.ENGINEER])

    def test_manager_creates_customer(self):
        response = auth_client(self.manager).post("/customers/", CUSTOMER, format="json")
        body = response.json()

        self.assertEqual(response.status_code, 201)
        self.assertEqual(body["data"]["email"], "asha@example.com")
        self.assertTrue(body["data"]["is_active"])
        entry = AuditLogEntry.objects.get(entity_type="Customer", action=AuditAction.CREATE)
        self.assertEqual(entry.entity_id, str(body["data"]["id"]))
        self.assertEqual(entry.performed_by_id, self.manager.pk)

    def test_duplicate_mobile_conflicts(self):
        client = auth_client(self.manager)
        client.post("/customers/", CUSTOMER, format="json")

        response = client.post("/customers/", {**CUSTOMER, "email": "other@example.com"}, format="json")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "conflict")
        self.assertEqual(Customer.objects.count(), 1)

    def test_invalid_mobile_rejected(self):
        response = auth_client(self.manager).post("/customers/", {**CUSTOMER, "mobile": "12ab"}, format="json")
        self.assertEqual(response.status_code, 400)

    def test_engineer_can_view_but_not_create(self):
        Customer.objects.create(**{**CUSTOMER, "email": "asha@example.com"})
        client = auth_client(self.engineer)

        self.assertEqual(client.get("/customers/").status_code, 200)
        self.assertEqual(client.post("/customers/", CUSTOMER, format="json").status_code, 403)

    def test_manager_cannot_delete(self):
        customer = Customer.objects.create(**{**CUSTOMER, "email": "asha@example.com"})
        self.assertEqual(auth_client(self.manager).delete(f"/customers/{customer.pk}/").status_code, 403)

    def test_delete_without_tickets_removes_row(self):
        customer = Customer.objects.create(**{**CUSTOMER, "email": "asha@example.com"})

        response = auth_client(self.admin).delete(f"/customers/{customer.pk}/")

        self.assertEqual(response.status_code, 200)
        self.assertFalse(Customer.objects.filter(pk=customer.pk).exists())
        self.assertTrue(AuditLogEntry.objects.filter(entity_type="Customer", action=AuditAction.DELETE).exists())

    def test_delete_with_tickets_deactivates(self):
        customer = Customer.objects.create(**{**CUSTOMER, "email": "asha@example.com"})
        Ticket.objects.create(
            ticket_id="TKT202401010001", title="Broken pump", description="Pump stopped", customer=customer,
            created_by=self.admin,
        )

        response = auth_client(self.admin).delete(f"/customers/{customer.pk}/")

        self.assertEqual(response.status_code, 200)
        self.assertIn("deactivated", response.json()["message"])
        customer.refresh_from_db()
        self.assertFalse(customer.is_active)

    def test_customer_tickets_listing(self):
        customer = Customer.objects.create(**{**CUSTOMER, "email": "asha@example.com"})
        Ticket.objects.create(
            ticket_id="TKT202401010001", title="Broken pump", description="Pump stopped", customer=customer,
            created_by=self.admin,
        )

        response = auth_client(self.manager).get(f"/customers/{customer.pk}/tickets/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["ticket_id"] for row in response.json()["data"]], ["TKT202401010001"])

    def test_search_filter(self):
        Customer.objects.create(**{**CUSTOMER, "email": "asha@example.com"})
        Customer.objects.create(**{**CUSTOMER, "name": "Ravi Nair", "mobile": "9123456780", "email": None})

        response = auth_client(self.manager).get("/customers/", {"search": "ravi"})

        self.assertEqual([row["name"] for row in response.json()["data"]], ["Ravi Nair"])

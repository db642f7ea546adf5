"""Inventory movements: references, stock adjustment on completion, deletion."""

from __future__ import annotations

from datetime import date

from django.test import TestCase

from access_control.registry import RoleCode
from audit.models import AuditAction, AuditLogEntry
from customers.models import Customer
from installations.models import InstallationRequest
from inventory.models import InventoryMovement, Item, ItemStatus, MovementStatus, MovementType
from tickets.models import Ticket
from tests.utils import FakeRedisMixin, auth_client, create_user, seed_roles


class InventoryMovementApiTests(FakeRedisMixin, TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.roles = seed_roles()
        cls.manager = create_user("manager@example.com", "MgrPass1234", cls.roles[RoleCode.SUPPORT_MANAGER])
        cls.engineer = create_user("engineer@example.com", "EngPass1234", cls.roles[RoleCode.ENGINEER])
        cls.stock_keeper = create_user(
            "inventory@example.com", "InvPass1234", cls.roles[RoleCode.INVENTORY_MANAGER]
        )
        cls.dispatcher = create_user("dispatch@example.com", "DispPass1234", cls.roles[RoleCode.DISPATCH_MANAGER])
        cls.item = Item.objects.create(name="Filter cartridge", quantity=5)
        cls.ticket = Ticket.objects.create(
            title="Replace the filter", description="Filter is clogged and needs replacing", created_by=cls.manager
        )
        customer = Customer.objects.create(
            name="Asha Verma", address="12 Market Road", state="Kerala", city="Kochi", pincode="682001",
            mobile="9876543210",
        )
        cls.installation = InstallationRequest.objects.create(
            customer=customer,
            item=cls.item,
            assigned_agency="Kochi Installers",
            scheduled_date=date(2024, 6, 1),
        )

    def _movement(self, movement_type=MovementType.DISPATCH, quantity=2, status=MovementStatus.PENDING):
        return InventoryMovement.objects.create(
            item=self.item,
            movement_type=movement_type,
            quantity=quantity,
            ticket=self.ticket,
            status=status,
            created_by=self.stock_keeper,
        )

    def test_dispatcher_creates_pending_movement(self):
        response = auth_client(self.dispatcher).post(
            "/inventory-movements/",
            {"item": self.item.pk, "movement_type": "DISPATCH", "quantity": 3, "ticket": self.ticket.pk},
            format="json",
        )
        data = response.json()["data"]

        self.assertEqual(response.status_code, 201)
        self.assertEqual(data["status"], MovementStatus.PENDING)
        self.assertEqual(data["item_name"], "Filter cartridge")
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 5)
        entry = AuditLogEntry.objects.get(entity_type="InventoryMovement", action=AuditAction.CREATE)
        self.assertEqual(entry.entity_id, str(data["id"]))

    def test_exactly_one_reference(self):
        client = auth_client(self.stock_keeper)
        payload = {"item": self.item.pk, "movement_type": "RETURN", "quantity": 1}

        neither = client.post("/inventory-movements/", payload, format="json")
        both = client.post(
            "/inventory-movements/",
            {**payload, "ticket": self.ticket.pk, "installation": self.installation.pk},
            format="json",
        )
        installation_only = client.post(
            "/inventory-movements/", {**payload, "installation": self.installation.pk}, format="json"
        )

        self.assertEqual(neither.status_code, 400)
        self.assertEqual(both.status_code, 400)
        self.assertEqual(installation_only.status_code, 201)

    def test_quantity_must_be_positive(self):
        response = auth_client(self.stock_keeper).post(
            "/inventory-movements/",
            {"item": self.item.pk, "movement_type": "DISPATCH", "quantity": 0, "ticket": self.ticket.pk},
            format="json",
        )
        self.assertEqual(response.status_code, 400)

    def test_completing_dispatch_takes_stock(self):
        movement = self._movement(quantity=5)

        response = auth_client(self.stock_keeper).post(f"/inventory-movements/{movement.pk}/complete/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["status"], MovementStatus.COMPLETED)
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 0)
        self.assertEqual(self.item.status, ItemStatus.OUT_OF_STOCK)
        item_entry = AuditLogEntry.objects.get(entity_type="Item", action=AuditAction.UPDATE)
        self.assertEqual(item_entry.previous_state["quantity"], 5)
        self.assertEqual(item_entry.new_state["quantity"], 0)

    def test_completing_return_adds_stock(self):
        movement = self._movement(movement_type=MovementType.RETURN, quantity=4)

        auth_client(self.stock_keeper).post(f"/inventory-movements/{movement.pk}/complete/")

        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 9)

    def test_insufficient_stock_for_dispatch(self):
        movement = self._movement(quantity=6)

        response = auth_client(self.stock_keeper).post(f"/inventory-movements/{movement.pk}/complete/")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Insufficient inventory quantity for dispatch")
        movement.refresh_from_db()
        self.item.refresh_from_db()
        self.assertEqual(movement.status, MovementStatus.PENDING)
        self.assertEqual(self.item.quantity, 5)
        self.assertFalse(AuditLogEntry.objects.filter(entity_type="Item").exists())

    def test_only_pending_movements_change_status(self):
        completed = self._movement(status=MovementStatus.COMPLETED)
        cancelled = self._movement(status=MovementStatus.CANCELLED)
        client = auth_client(self.stock_keeper)

        again = client.post(f"/inventory-movements/{completed.pk}/complete/")
        revived = client.post(f"/inventory-movements/{cancelled.pk}/complete/")

        self.assertEqual(again.status_code, 400)
        self.assertEqual(again.json()["code"], "invalid_transition")
        self.assertEqual(revived.status_code, 400)
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 5)

    def test_cancel_leaves_stock_alone(self):
        movement = self._movement()

        response = auth_client(self.dispatcher).post(f"/inventory-movements/{movement.pk}/cancel/")

        self.assertEqual(response.status_code, 200)
        movement.refresh_from_db()
        self.item.refresh_from_db()
        self.assertEqual(movement.status, MovementStatus.CANCELLED)
        self.assertEqual(self.item.quantity, 5)

    def test_edit_only_while_pending(self):
        pending = self._movement()
        completed = self._movement(status=MovementStatus.COMPLETED)
        client = auth_client(self.stock_keeper)

        edited = client.patch(f"/inventory-movements/{pending.pk}/", {"quantity": 1}, format="json")
        refused = client.patch(f"/inventory-movements/{completed.pk}/", {"quantity": 1}, format="json")

        self.assertEqual(edited.status_code, 200)
        self.assertEqual(refused.status_code, 400)
        pending.refresh_from_db()
        self.assertEqual(pending.quantity, 1)

    def test_delete_only_pending(self):
        pending = self._movement()
        completed = self._movement(status=MovementStatus.COMPLETED)
        client = auth_client(self.stock_keeper)

        self.assertEqual(client.delete(f"/inventory-movements/{completed.pk}/").status_code, 400)
        self.assertEqual(client.delete(f"/inventory-movements/{pending.pk}/").status_code, 200)
        self.assertEqual(list(InventoryMovement.objects.values_list("pk", flat=True)), [completed.pk])
        self.assertTrue(
            AuditLogEntry.objects.filter(entity_type="InventoryMovement", action=AuditAction.DELETE).exists()
        )

    def test_roles_without_stock_access_are_refused(self):
        self._movement()

        self.assertEqual(auth_client(self.engineer).get("/inventory-movements/").status_code, 403)
        self.assertEqual(auth_client(self.manager).get("/inventory-movements/").status_code, 403)

    def test_item_movements_and_filters(self):
        dispatch = self._movement()
        self._movement(movement_type=MovementType.RETURN, status=MovementStatus.COMPLETED)
        other = Item.objects.create(name="Tap", quantity=1)
        InventoryMovement.objects.create(item=other, movement_type=MovementType.RETURN, quantity=1, ticket=self.ticket)
        client = auth_client(self.stock_keeper)

        for_item = client.get(f"/items/{self.item.pk}/movements/").json()["data"]
        dispatches = client.get("/inventory-movements/", {"type": "dispatch", "status": "pending"}).json()["data"]

        self.assertEqual(len(for_item), 2)
        self.assertEqual([row["id"] for row in dispatches], [dispatch.pk])

    def test_item_with_movements_cannot_be_deleted(self):
        self._movement()
        response = auth_client(self.stock_keeper).delete(f"/items/{self.item.pk}/")
        self.assertEqual(response.status_code, 409)

"""Installation request lifecycle: creation, assignment, completion, deletion."""

from __future__ import annotations

import shutil
import tempfile
from datetime import date

from django.core import mail
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from django.utils import timezone

from access_control.registry import RoleCode
from audit.models import AuditAction, AuditLogEntry
from customers.models import Customer
from installations.models import InstallationRequest, InstallationStatus, next_request_id
from inventory.models import Item
from tests.utils import FakeRedisMixin, auth_client, create_user, seed_roles

TMP_MEDIA = tempfile.mkdtemp(prefix="installations-")


@override_settings(MEDIA_ROOT=TMP_MEDIA)
class InstallationRequestApiTests(FakeRedisMixin, TestCase):
    @classmethod
    def tearDownClass(cls):
        super().tearDownClass()
        shutil.rmtree(TMP_MEDIA, ignore_errors=True)

    @classmethod
    def setUpTestData(cls):
        cls.roles = seed_roles()
        cls.admin = create_user("admin@example.com", "AdminPass123", cls.roles[RoleCode.SUPER_ADMIN])
        cls.manager = create_user("manager@example.com", "MgrPass1234", cls.roles[RoleCode.SUPPORT_MANAGER])
        cls.engineer = create_user("engineer@example.com", "EngPass1234", cls.roles[RoleCode.ENGINEER])
        cls.stock_keeper = create_user(
            "inventory@example.com", "InvPass1234", cls.roles[RoleCode.INVENTORY_MANAGER]
        )
        cls.customer = Customer.objects.create(
            name="Asha Verma", address="12 Market Road", state="Kerala", city="Kochi", pincode="682001",
            mobile="9876543210",
        )
        cls.item = Item.objects.create(name="Water purifier", quantity=5)

    def _payload(self, **overrides):
        payload = {
            "customer": self.customer.pk,
            "item": self.item.pk,
            "assigned_agency": "Kochi Installers",
            "scheduled_date": "2024-06-01",
        }
        payload.update(overrides)
        return payload

    def _request(self, status=InstallationStatus.PENDING, assignee=None) -> InstallationRequest:
        return InstallationRequest.objects.create(
            customer=self.customer,
            item=self.item,
            assigned_agency="Kochi Installers",
            scheduled_date=date(2024, 6, 1),
            status=status,
            assigned_to=assignee,
            created_by=self.manager,
        )

    def test_manager_creates_request(self):
        response = auth_client(self.manager).post("/installation-requests/", self._payload(), format="json")
        data = response.json()["data"]

        self.assertEqual(response.status_code, 201)
        self.assertEqual(data["request_id"], "000001")
        self.assertEqual(data["status"], InstallationStatus.PENDING)
        self.assertEqual(data["customer_name"], "Asha Verma")
        created = InstallationRequest.objects.get(pk=data["id"])
        self.assertEqual(created.created_by_id, self.manager.pk)
        entry = AuditLogEntry.objects.get(entity_type="InstallationRequest", action=AuditAction.CREATE)
        self.assertEqual(entry.entity_id, str(created.pk))

    def test_request_ids_count_numerically(self):
        InstallationRequest.objects.bulk_create(
            [
                InstallationRequest(
                    request_id=request_id,
                    customer=self.customer,
                    item=self.item,
                    assigned_agency="Kochi Installers",
                    scheduled_date=date(2024, 6, 1),
                )
                for request_id in ("000009", "000010")
            ]
        )
        self.assertEqual(next_request_id(), "000011")

    def test_required_fields(self):
        client = auth_client(self.manager)

        blank_agency = client.post("/installation-requests/", self._payload(assigned_agency="  "), format="json")
        no_date = client.post("/installation-requests/", self._payload(scheduled_date=None), format="json")

        self.assertEqual(blank_agency.status_code, 400)
        self.assertEqual(no_date.status_code, 400)
        self.assertFalse(InstallationRequest.objects.exists())

    def test_inactive_customer_rejected(self):
        Customer.objects.filter(pk=self.customer.pk).update(is_active=False)
        response = auth_client(self.manager).post("/installation-requests/", self._payload(), format="json")
        self.assertEqual(response.status_code, 400)

    def test_view_only_role_cannot_create(self):
        client = auth_client(self.stock_keeper)
        self._request()

        self.assertEqual(client.get("/installation-requests/").status_code, 200)
        self.assertEqual(client.post("/installation-requests/", self._payload(), format="json").status_code, 403)

    def test_assign_to_engineer_notifies(self):
        request = self._request()

        response = auth_client(self.manager).post(
            f"/installation-requests/{request.pk}/assign/", {"assigned_to": str(self.engineer.pk)}, format="json"
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["assigned_to"]["email"], self.engineer.email)
        self.assertEqual([message.to for message in mail.outbox], [[self.engineer.email]])
        self.assertIn(request.request_id, mail.outbox[0].subject)

    def test_assign_only_to_engineers(self):
        request = self._request()

        response = auth_client(self.manager).post(
            f"/installation-requests/{request.pk}/assign/", {"assigned_to": str(self.stock_keeper.pk)}, format="json"
        )

        self.assertEqual(response.status_code, 403)
        request.refresh_from_db()
        self.assertIsNone(request.assigned_to_id)

    def test_engineer_starts_only_own_requests(self):
        unassigned = self._request()
        own = self._request(assignee=self.engineer)
        client = auth_client(self.engineer)

        self.assertEqual(client.post(f"/installation-requests/{unassigned.pk}/start/").status_code, 403)
        response = client.post(f"/installation-requests/{own.pk}/start/")

        self.assertEqual(response.status_code, 200)
        own.refresh_from_db()
        self.assertEqual(own.status, InstallationStatus.IN_PROGRESS)

    def test_complete_requires_in_progress(self):
        request = self._request(assignee=self.engineer)

        response = auth_client(self.engineer).post(f"/installation-requests/{request.pk}/complete/")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "invalid_transition")
        request.refresh_from_db()
        self.assertEqual(request.status, InstallationStatus.PENDING)

    def test_complete_stores_verification_uploads(self):
        request = self._request(status=InstallationStatus.IN_PROGRESS, assignee=self.engineer)
        photo = SimpleUploadedFile("unit.png", b"\x89PNG fake", content_type="image/png")
        video = SimpleUploadedFile("demo.mp4", b"fake video", content_type="video/mp4")

        response = auth_client(self.engineer).post(
            f"/installation-requests/{request.pk}/complete/",
            {"photos": [photo], "videos": [video], "notes": "Installed and tested"},
            format="multipart",
        )

        self.assertEqual(response.status_code, 200)
        request.refresh_from_db()
        self.assertEqual(request.status, InstallationStatus.COMPLETED)
        self.assertEqual(request.completed_date, timezone.localdate())
        self.assertEqual(len(request.verification_photos), 1)
        self.assertEqual(len(request.verification_videos), 1)
        self.assertEqual(request.notes, "Installed and tested")
        entry = AuditLogEntry.objects.get(entity_type="InstallationRequest", action=AuditAction.UPDATE)
        self.assertEqual(entry.previous_state["status"], InstallationStatus.IN_PROGRESS)
        self.assertEqual(entry.new_state["status"], InstallationStatus.COMPLETED)

    def test_cancel(self):
        pending = self._request(assignee=self.engineer)
        completed = self._request(status=InstallationStatus.COMPLETED)

        client = auth_client(self.manager)
        self.assertEqual(
            auth_client(self.engineer).post(f"/installation-requests/{pending.pk}/cancel/").status_code, 403
        )
        self.assertEqual(client.post(f"/installation-requests/{pending.pk}/cancel/").status_code, 200)
        self.assertEqual(client.post(f"/installation-requests/{completed.pk}/cancel/").status_code, 400)
        pending.refresh_from_db()
        self.assertEqual(pending.status, InstallationStatus.CANCELLED)

    def test_finished_request_cannot_be_edited(self):
        request = self._request(status=InstallationStatus.COMPLETED)

        response = auth_client(self.manager).patch(
            f"/installation-requests/{request.pk}/", {"assigned_agency": "Other Agency"}, format="json"
        )

        self.assertEqual(response.status_code, 400)
        request.refresh_from_db()
        self.assertEqual(request.assigned_agency, "Kochi Installers")

    def test_manager_edits_pending_request(self):
        request = self._request()

        response = auth_client(self.manager).patch(
            f"/installation-requests/{request.pk}/", {"scheduled_date": "2024-07-15"}, format="json"
        )

        self.assertEqual(response.status_code, 200)
        request.refresh_from_db()
        self.assertEqual(request.scheduled_date, date(2024, 7, 15))

    def test_delete_rules(self):
        pending = self._request()
        started = self._request(status=InstallationStatus.IN_PROGRESS)

        self.assertEqual(auth_client(self.manager).delete(f"/installation-requests/{pending.pk}/").status_code, 403)
        client = auth_client(self.admin)
        self.assertEqual(client.delete(f"/installation-requests/{started.pk}/").status_code, 409)
        self.assertEqual(client.delete(f"/installation-requests/{pending.pk}/").status_code, 200)
        self.assertEqual(list(InstallationRequest.objects.values_list("pk", flat=True)), [started.pk])
        self.assertTrue(
            AuditLogEntry.objects.filter(entity_type="InstallationRequest", action=AuditAction.DELETE).exists()
        )

    def test_options(self):
        Customer.objects.create(
            name="Inactive", address="1 Road", state="Kerala", city="Kochi", pincode="682001",
            mobile="9876500000", is_active=False,
        )

        data = auth_client(self.engineer).get("/installation-requests/options/").json()["data"]

        self.assertEqual([row["value"] for row in data["statuses"]], InstallationStatus.values)
        self.assertEqual([row["name"] for row in data["customers"]], ["Asha Verma"])
        self.assertEqual([row["name"] for row in data["items"]], ["Water purifier"])

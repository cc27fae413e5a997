import datetime
import json
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from django.urls import reverse

from ..middleware import SESSION_CUSTOMER_KEY
from ..models import Customer, Invoice, MobileLinkRequest, Payment, StagingImport
from .helpers import csv_bytes
from .test_xml_pipeline import BILLS_XML, CUSTOMERS_XML

PARTY_CSV = csv_bytes("Name,Receivable Balance", "ABC School,5000")


class StaffApiTestCase(TestCase):
    def setUp(self):
        User = get_user_model()
        self.staff = User.objects.create_user("staff", password="pw", is_staff=True)
        self.client.force_login(self.staff)

    def upload(self, name, file_name, content, **kwargs):
        return self.client.post(
            reverse(name, kwargs=kwargs or None),
            {"file": SimpleUploadedFile(file_name, content)},
        )


class AccessTests(TestCase):
    def test_import_endpoints_need_staff(self):
        user = get_user_model().objects.create_user("shop", password="pw")
        self.client.force_login(user)
        response = self.client.post(reverse("ledger_core:import-upload"))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {"message": "Admin access required"})

    def test_dashboard_needs_customer_session(self):
        response = self.client.get(reverse("ledger_core:dashboard"))
        self.assertEqual(response.status_code, 401)

    def test_wrong_method(self):
        response = self.client.get(reverse("ledger_core:import-upload"))
        self.assertEqual(response.status_code, 405)


class StagedImportApiTests(StaffApiTestCase):
    def test_upload_then_sync(self):
        response = self.upload("ledger_core:import-upload", "parties.csv", PARTY_CSV)
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual((body["type"], body["rows"]), ("customers", 1))

        status = self.client.get(reverse("ledger_core:import-status", args=[body["importId"]]))
        self.assertEqual(status.json()["status"], "pending")

        synced = self.client.post(reverse("ledger_core:import-sync", args=[body["importId"]]))
        self.assertEqual(synced.status_code, 200)
        self.assertTrue(synced.json()["success"])
        self.assertEqual(synced.json()["processed"], 1)

        history = self.client.get(reverse("ledger_core:import-history")).json()["imports"]
        self.assertEqual(history[0]["status"], "processed")

    def test_duplicate_upload_conflicts(self):
        first = self.upload("ledger_core:import-upload", "parties.csv", PARTY_CSV).json()
        response = self.upload("ledger_core:import-upload", "parties.csv", PARTY_CSV)
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["importId"], first["importId"])

    def test_missing_file(self):
        response = self.client.post(reverse("ledger_core:import-upload"))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "No file uploaded")

    def test_unknown_import(self):
        response = self.client.post(reverse("ledger_core:import-sync", args=[999]))
        self.assertEqual(response.status_code, 404)

    @override_settings(LEDGER_IMPORT={"ASYNC_SYNC": True})
    def test_background_sync_is_queued(self):
        staged = self.upload("ledger_core:import-upload", "parties.csv", PARTY_CSV).json()
        with mock.patch("ledger_core.views.sync_staging_import") as task:
            response = self.client.post(reverse("ledger_core:import-sync", args=[staged["importId"]]))

        self.assertEqual(response.status_code, 202)
        self.assertEqual(response.json(), {"importId": staged["importId"], "status": "queued"})
        task.delay.assert_called_once_with(staged["importId"])
        self.assertEqual(StagingImport.objects.get(pk=staged["importId"]).status, "queued")

    @override_settings(LEDGER_IMPORT={"ASYNC_SYNC": True})
    def test_queued_import_is_not_queued_again(self):
        staged = self.upload("ledger_core:import-upload", "parties.csv", PARTY_CSV).json()
        url = reverse("ledger_core:import-sync", args=[staged["importId"]])
        with mock.patch("ledger_core.views.sync_staging_import") as task:
            self.client.post(url)
            response = self.client.post(url)

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json(), {"message": f"Import {staged['importId']} is already queued"})
        task.delay.assert_called_once_with(staged["importId"])


class TallyApiTests(StaffApiTestCase):
    def test_missing_column(self):
        response = self.upload("ledger_core:tally-party", "party.csv", csv_bytes("Ledger,Amount", "x,1"))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Required column 'Party Name' not found in Excel file")

    def test_party_import_and_logs(self):
        response = self.upload("ledger_core:tally-party", "party.csv", csv_bytes("Party Name,Opening Balance", "ABC,10"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["summary"]["imported"], 1)

        logs = self.client.get(reverse("ledger_core:tally-logs"), {"type": "party"}).json()["logs"]
        self.assertEqual(len(logs), 1)


class XmlUploadApiTests(StaffApiTestCase):
    def test_order_violation(self):
        response = self.upload("ledger_core:xml-bills", "bills.xml", BILLS_XML)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Upload order violation")
        self.assertEqual(response.json()["details"], "Customers XML must be uploaded before Bills XML")

    def test_upload_status_and_error_report(self):
        response = self.upload("ledger_core:xml-customers", "customers.xml", CUSTOMERS_XML)
        self.assertEqual(response.status_code, 200)
        log_id = response.json()["uploadLogId"]

        status = self.client.get(reverse("ledger_core:xml-status")).json()
        self.assertTrue(status["canUploadBills"])

        report = self.client.get(reverse("ledger_core:xml-errors", args=[log_id]))
        self.assertEqual(report["Content-Type"], "text/csv")
        self.assertIn("Invalid or missing mobile number", report.content.decode())

    def test_duplicate_xml(self):
        self.upload("ledger_core:xml-customers", "customers.xml", CUSTOMERS_XML)
        response = self.upload("ledger_core:xml-customers", "customers.xml", CUSTOMERS_XML)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "This file has already been uploaded")

    def test_only_xml_files(self):
        response = self.upload("ledger_core:xml-customers", "customers.csv", PARTY_CSV)
        self.assertEqual(response.status_code, 400)


class CustomerApiTests(TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(name="ABC School", mobile="0012345678")
        invoice = Invoice.objects.create(
            customer=self.customer, invoice_number="INV-100",
            date=datetime.date(2024, 4, 1), total_amount=Decimal("5000.00"),
        )
        Payment.objects.create(
            customer=self.customer, invoice=invoice, receipt_number="R-1",
            date=datetime.date(2024, 4, 10), amount=Decimal("3000.00"),
        )
        session = self.client.session
        session[SESSION_CUSTOMER_KEY] = self.customer.pk
        session.save()

    def test_dashboard(self):
        response = self.client.get(
            reverse("ledger_core:dashboard"), {"start_date": "2024-04-01", "end_date": "2024-04-30"}
        )
        self.assertEqual(response.status_code, 200)
        summary = response.json()["summary"]
        self.assertEqual(Decimal(summary["currentBalance"]), Decimal("2000"))
        self.assertEqual(Decimal(summary["totalPaid"]), Decimal("3000"))

    def test_dashboard_bad_window(self):
        response = self.client.get(
            reverse("ledger_core:dashboard"), {"start_date": "2024-05-01", "end_date": "2024-04-01"}
        )
        self.assertEqual(response.status_code, 400)

    def test_mobile_request(self):
        response = self.client.post(
            reverse("ledger_core:mobile-add"), json.dumps({"mobile": "9876543210"}), content_type="application/json"
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "pending")

        again = self.client.post(
            reverse("ledger_core:mobile-add"), json.dumps({"mobile": "9876543210"}), content_type="application/json"
        )
        self.assertEqual(again.status_code, 400)

        status = self.client.get(reverse("ledger_core:mobile-status")).json()
        self.assertEqual(status["pendingMobile"], "9876543210")


class StaffDecisionApiTests(StaffApiTestCase):
    def setUp(self):
        super().setUp()
        self.customer = Customer.objects.create(name="ABC School", mobile="0012345678")
        self.invoice = Invoice.objects.create(
            customer=self.customer, invoice_number="INV-100",
            date=datetime.date(2024, 4, 1), total_amount=Decimal("5000.00"),
        )

    def post_json(self, name, payload):
        return self.client.post(reverse(name), json.dumps(payload), content_type="application/json")

    def test_settle(self):
        response = self.post_json(
            "ledger_core:settle",
            {"invoiceId": self.invoice.pk, "amount": "3000", "paymentDate": "2024-04-10"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Decimal(response.json()["remainingDue"]), Decimal("2000"))

        over = self.post_json(
            "ledger_core:settle",
            {"invoiceId": self.invoice.pk, "amount": "2500", "paymentDate": "2024-04-11"},
        )
        self.assertEqual(over.status_code, 400)
        self.assertEqual(Decimal(over.json()["remainingDue"]), Decimal("2000"))

    def test_settle_unknown_invoice(self):
        response = self.post_json("ledger_core:settle", {"invoiceId": 999, "amount": "1", "paymentDate": "2024-04-10"})
        self.assertEqual(response.status_code, 404)

    def test_malformed_body(self):
        response = self.client.post(reverse("ledger_core:settle"), "{oops", content_type="application/json")
        self.assertEqual(response.status_code, 400)

    def test_verify_and_reject(self):
        first = MobileLinkRequest.objects.create(customer=self.customer, shop_name="ABC School", mobile="9876543210")
        pending = self.client.get(reverse("ledger_core:mobile-pending")).json()["requests"]
        self.assertEqual(len(pending), 1)

        response = self.post_json("ledger_core:mobile-verify", {"requestId": first.pk})
        self.assertEqual(response.status_code, 200)
        self.customer.refresh_from_db()
        self.assertTrue(self.customer.mobile_verified)

        other = Customer.objects.create(name="XYZ Traders")
        second = MobileLinkRequest.objects.create(customer=other, shop_name="XYZ Traders", mobile="9123456789")
        response = self.post_json("ledger_core:mobile-reject", {"requestId": second.pk})
        self.assertEqual(response.status_code, 200)

        missing = self.post_json("ledger_core:mobile-verify", {"requestId": 4242})
        self.assertEqual(missing.status_code, 404)

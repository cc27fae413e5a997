import datetime
from decimal import Decimal
from unittest import mock

from django.test import TestCase

from ..exceptions import DuplicateFileError, ImportRejected
from ..models import Customer, ImportLog, Invoice, Payment, StagingImport
from ..services.staging import (process_staging_import, queue_staging_import,
                                stage_upload)
from .helpers import csv_bytes, xlsx_bytes

PARTY_CSV = csv_bytes(
    "Name,Phone No.,Receivable Balance,Payable Balance,Address",
    "ABC School,9876543210,5000,0,Main Road",
    "XYZ Traders,,0,1200,",
)

LEDGER_CSV = csv_bytes(
    "Date,Party Name,Transaction Type,Invoice No,Total Amount,Payment Type",
    "01/04/2024,ABC School,Sale,INV-100,5000,",
    "10/04/2024,ABC School,Payment-In,R-1,3000,Cash",
)


class StageUploadTests(TestCase):
    def test_upload_detects_type_and_holds_rows(self):
        staging = stage_upload(PARTY_CSV, "parties.csv")

        self.assertEqual(staging.import_type, "customers")
        self.assertEqual(staging.status, "pending")
        self.assertEqual(len(staging.raw_rows), 2)
        # nothing is applied until sync
        self.assertFalse(Customer.objects.exists())

    def test_same_bytes_twice_is_rejected(self):
        first = stage_upload(PARTY_CSV, "parties.csv")
        with self.assertRaises(DuplicateFileError) as ctx:
            stage_upload(PARTY_CSV, "renamed.csv")
        self.assertEqual(ctx.exception.previous.pk, first.pk)
        self.assertEqual(StagingImport.objects.count(), 1)

    def test_unrecognized_headers(self):
        with self.assertRaises(ImportRejected) as ctx:
            stage_upload(csv_bytes("Foo,Bar", "1,2"), "odd.csv")
        self.assertTrue(ctx.exception.message.startswith("Unrecognized file format"))
        self.assertEqual(ctx.exception.details["headers"], ["Foo", "Bar"])

    def test_products_are_refused(self):
        content = csv_bytes("Item Name,Stock Quantity,Sale Price", "Pen,10,5")
        with self.assertRaises(ImportRejected) as ctx:
            stage_upload(content, "items.csv")
        self.assertEqual(ctx.exception.message, "Product catalog imports are not supported")
        self.assertFalse(StagingImport.objects.exists())

    def test_header_only_file(self):
        with self.assertRaises(ImportRejected):
            stage_upload(csv_bytes("Name,Receivable Balance"), "empty.csv")


class SyncCustomersTests(TestCase):
    def test_first_import_inserts_and_locks(self):
        staging = stage_upload(PARTY_CSV, "parties.csv")
        result = process_staging_import(staging.pk)

        self.assertEqual(result["status"], "processed")
        self.assertEqual(result["processed"], 2)
        self.assertEqual(result["errors"], 0)

        abc = Customer.objects.get(name="ABC School")
        self.assertTrue(abc.locked)
        self.assertEqual(abc.opening_balance, Decimal("5000.00"))
        self.assertEqual(abc.mobile, "9876543210")
        xyz = Customer.objects.get(name="XYZ Traders")
        self.assertEqual((xyz.opening_balance, xyz.balance_type), (Decimal("-1200.00"), "payable"))

        log = ImportLog.objects.get(staging_import=staging)
        self.assertEqual((log.pipeline, log.status, log.imported_rows), ("staged", "success", 2))

    def test_locked_customer_is_not_overwritten(self):
        process_staging_import(stage_upload(PARTY_CSV, "parties.csv").pk)

        changed = csv_bytes(
            "Name,Phone No.,Receivable Balance,Payable Balance,Address",
            "abc school ,9000000000,99999,0,Elsewhere",
        )
        result = process_staging_import(stage_upload(changed, "parties-2.csv").pk)

        self.assertEqual(result["processed"], 0)
        self.assertEqual(result["duplicates"], 1)
        self.assertEqual(result["errorLog"][0]["reason"], "Duplicate (locked from previous import)")

        abc = Customer.objects.get(name="ABC School")
        self.assertEqual(abc.opening_balance, Decimal("5000.00"))
        self.assertEqual(abc.mobile, "9876543210")
        self.assertEqual(Customer.objects.count(), 2)

    def test_unlocked_customer_is_filled_not_blanked(self):
        existing = Customer.objects.create(name="ABC School", mobile="0012345678", address="Old Road")
        content = csv_bytes("Name,Phone No.,Receivable Balance,Address", "ABC School,9876543210,250,")
        result = process_staging_import(stage_upload(content, "parties.csv").pk)

        self.assertEqual(result["processed"], 1)
        existing.refresh_from_db()
        self.assertTrue(existing.locked)
        self.assertEqual(existing.mobile, "9876543210")
        # blank cell does not erase the stored address
        self.assertEqual(existing.address, "Old Road")
        self.assertEqual(existing.opening_balance, Decimal("250.00"))

    def test_settled_import_is_not_reprocessed(self):
        staging = stage_upload(PARTY_CSV, "parties.csv")
        first = process_staging_import(staging.pk)
        second = process_staging_import(staging.pk)

        self.assertEqual(first, second)
        self.assertEqual(ImportLog.objects.filter(pipeline="staged").count(), 1)


class SyncLedgerTests(TestCase):
    def test_sale_and_payment_with_auto_created_customer(self):
        result = process_staging_import(stage_upload(LEDGER_CSV, "sales.csv").pk)

        self.assertEqual(result["status"], "processed")
        self.assertEqual(result["processed"], 2)

        customer = Customer.objects.get(name="ABC School")
        self.assertEqual(customer.source, "auto-created")
        self.assertTrue(customer.mobile.startswith("00"))
        self.assertFalse(customer.has_real_mobile)

        invoice = Invoice.objects.get(invoice_number="INV-100")
        self.assertEqual(invoice.date, datetime.date(2024, 4, 1))
        self.assertEqual(invoice.total_amount, Decimal("5000.00"))
        payment = Payment.objects.get(receipt_number="R-1")
        self.assertEqual((payment.amount, payment.mode), (Decimal("3000.00"), "cash"))

    def test_reimport_with_other_bytes_counts_duplicates(self):
        process_staging_import(stage_upload(LEDGER_CSV, "sales.csv").pk)
        again = LEDGER_CSV + b"\n"
        result = process_staging_import(stage_upload(again, "sales-copy.csv").pk)

        self.assertEqual(result["processed"], 0)
        self.assertEqual(result["duplicates"], 2)
        self.assertEqual(Invoice.objects.count(), 1)
        self.assertEqual(Payment.objects.count(), 1)
        self.assertEqual(Customer.objects.count(), 1)

    def test_bad_rows_do_not_block_good_ones(self):
        content = csv_bytes(
            "Date,Party Name,Transaction Type,Invoice No,Total Amount",
            "01/04/2024,ABC School,Sale,INV-100,5000",
            "31/31/2024,ABC School,Sale,INV-101,100",
            "02/04/2024,ABC School,Credit Note,CN-1,400",
        )
        result = process_staging_import(stage_upload(content, "sales.csv").pk)

        self.assertEqual(result["status"], "partial")
        self.assertEqual(result["processed"], 2)
        self.assertEqual(result["errorLog"], [{"row": 3, "field": "date", "reason": "Invalid date: 31/31/2024"}])
        # credit notes are negative invoices
        self.assertEqual(Invoice.objects.get(invoice_number="CN-1").total_amount, Decimal("-400.00"))

    def test_row_with_two_problems_fails_once(self):
        content = csv_bytes(
            "Date,Party Name,Transaction Type,Invoice No,Total Amount",
            "01/04/2024,ABC School,Sale,INV-100,5000",
            ",,Sale,INV-101,100",
            "02/04/2024,ABC School,Sale,INV-102,400",
        )
        result = process_staging_import(stage_upload(content, "sales.csv").pk)

        self.assertEqual((result["processed"], result["errors"]), (2, 1))
        self.assertEqual(result["errorLog"][0]["row"], 3)
        log = ImportLog.objects.get(pipeline="staged")
        self.assertEqual((log.total_rows, log.imported_rows, log.failed_rows), (3, 2, 1))

    def test_payment_without_receipt_uses_fallback_key(self):
        content = csv_bytes(
            "Date,Party Name,Transaction Type,Total Amount,Payment Type",
            "10/04/2024,ABC School,Payment-In,3000,Cash",
            "10/04/2024,ABC School,Payment-In,3000,Cash",
            "10/04/2024,ABC School,Payment-In,3000,UPI",
        )
        result = process_staging_import(stage_upload(content, "payments.csv").pk)

        self.assertEqual(result["processed"], 2)
        self.assertEqual(result["duplicates"], 1)
        self.assertEqual(Payment.objects.filter(receipt_number__isnull=True).count(), 2)


class SyncInvoiceListTests(TestCase):
    def test_invoice_list_from_workbook(self):
        content = xlsx_bytes(
            ["Invoice No", "Party Name", "Date", "Amount"],
            ["B-1", "New Shop", datetime.datetime(2024, 5, 1), 750],
            [None, "Other Shop", datetime.datetime(2024, 5, 1), 10],
        )
        staging = stage_upload(content, "invoices.xlsx")
        self.assertEqual(staging.import_type, "invoices")

        result = process_staging_import(staging.pk)
        self.assertEqual(result["status"], "partial")
        self.assertEqual(result["processed"], 1)
        self.assertEqual(result["errorLog"][0]["reason"], "Missing Invoice No")
        self.assertTrue(Customer.objects.filter(name="New Shop").exists())
        self.assertFalse(Customer.objects.filter(name="Other Shop").exists())


class BackgroundSyncTests(TestCase):
    def test_task_runs_the_same_sync(self):
        from ..tasks import sync_staging_import

        staging = stage_upload(PARTY_CSV, "parties.csv")
        result = sync_staging_import(staging.pk)

        self.assertEqual(result["status"], "processed")
        self.assertEqual(Customer.objects.filter(locked=True).count(), 2)

    def test_queued_import_is_not_queued_twice(self):
        staging = stage_upload(PARTY_CSV, "parties.csv")

        self.assertTrue(queue_staging_import(staging.pk))
        with self.assertRaises(ImportRejected) as ctx:
            queue_staging_import(staging.pk)
        self.assertEqual(ctx.exception.status, 409)
        self.assertEqual(StagingImport.objects.get(pk=staging.pk).status, "queued")

    def test_inline_sync_settles_a_queued_import_once(self):
        from ..tasks import sync_staging_import

        staging = stage_upload(PARTY_CSV, "parties.csv")
        queue_staging_import(staging.pk)
        inline = process_staging_import(staging.pk)
        late = sync_staging_import(staging.pk)

        self.assertEqual(inline, late)
        self.assertEqual(ImportLog.objects.filter(pipeline="staged").count(), 1)
        # settled batches cannot be queued again
        self.assertFalse(queue_staging_import(staging.pk))

    def test_import_already_processing_is_refused(self):
        from ..tasks import sync_staging_import

        staging = stage_upload(PARTY_CSV, "parties.csv")
        StagingImport.objects.filter(pk=staging.pk).update(status="processing")

        with self.assertRaises(ImportRejected) as ctx:
            process_staging_import(staging.pk)
        self.assertEqual(ctx.exception.status, 409)
        self.assertEqual(sync_staging_import(staging.pk)["status"], "skipped")
        self.assertFalse(ImportLog.objects.exists())
        self.assertFalse(Customer.objects.exists())

    def test_failed_sync_hands_the_import_back(self):
        staging = stage_upload(PARTY_CSV, "parties.csv")
        with mock.patch("ledger_core.services.staging.map_staged_rows", side_effect=RuntimeError("boom")):
            with self.assertRaises(RuntimeError):
                process_staging_import(staging.pk)
        self.assertEqual(StagingImport.objects.get(pk=staging.pk).status, "pending")

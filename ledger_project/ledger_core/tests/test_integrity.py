import datetime
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase

from ..models import Customer, Invoice, Payment
from ..services.integrity import fix_ledger_integrity, unmatched_paid_invoices
from ..services.ledger import balance_summary


class LedgerIntegrityTests(TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(name="ABC School", mobile="9876543210")
        self.orphan = Invoice.objects.create(
            customer=self.customer,
            invoice_number="INV-7",
            date=datetime.date(2024, 4, 1),
            total_amount=Decimal("1000.00"),
            status="paid",
        )
        matched = Invoice.objects.create(
            customer=self.customer,
            invoice_number="INV-8",
            date=datetime.date(2024, 4, 2),
            total_amount=Decimal("400.00"),
            status="paid",
        )
        Payment.objects.create(
            customer=self.customer, invoice=matched, receipt_number="R-8",
            date=datetime.date(2024, 4, 2), amount=Decimal("400.00"),
        )

    def test_only_unmatched_paid_invoices_are_found(self):
        self.assertEqual(list(unmatched_paid_invoices()), [self.orphan])

    def test_fix_writes_one_adjustment(self):
        fixed = fix_ledger_integrity()

        self.assertEqual(len(fixed), 1)
        payment = Payment.objects.get(receipt_number="FIX-INV-7")
        self.assertEqual(payment.mode, "adjustment")
        self.assertEqual(payment.source, "system-fix")
        self.assertEqual(payment.amount, Decimal("1000.00"))
        self.assertEqual(balance_summary(self.customer)["currentBalance"], Decimal("0.00"))

        # nothing left to repair
        self.assertEqual(fix_ledger_integrity(), [])
        self.assertEqual(Payment.objects.filter(source="system-fix").count(), 1)

    def test_command_dry_run_writes_nothing(self):
        out = StringIO()
        call_command("fix_ledger_integrity", "--dry-run", stdout=out)

        self.assertIn("INV-7", out.getvalue())
        self.assertIn("Would fix 1 invoice(s).", out.getvalue())
        self.assertFalse(Payment.objects.filter(source="system-fix").exists())

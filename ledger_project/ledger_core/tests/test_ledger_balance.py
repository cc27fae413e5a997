import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase, override_settings

from ..models import Customer, Invoice, LedgerEntry, Payment
from ..services.ledger import (balance_summary, dashboard, financial_year_bounds,
                               resolve_pagination, resolve_period,
                               running_ledger)

APRIL = (datetime.date(2024, 4, 1), datetime.date(2024, 4, 30))
MAY = (datetime.date(2024, 5, 1), datetime.date(2024, 5, 31))


class LedgerViewTests(TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(name="ABC School", mobile="9876543210")
        self.invoice = Invoice.objects.create(
            customer=self.customer,
            invoice_number="INV-100",
            date=datetime.date(2024, 4, 1),
            total_amount=Decimal("5000.00"),
        )
        self.payment = Payment.objects.create(
            customer=self.customer,
            invoice=self.invoice,
            receipt_number="R-1",
            date=datetime.date(2024, 4, 10),
            amount=Decimal("3000.00"),
        )

    def test_view_rows_mirror_invoices_and_payments(self):
        entries = list(LedgerEntry.objects.for_customer(self.customer).chronological())

        self.assertEqual([e.id for e in entries], [f"inv-{self.invoice.pk}", f"pay-{self.payment.pk}"])
        inv, pay = entries
        self.assertEqual((inv.debit, inv.credit), (Decimal("5000.00"), Decimal("0.00")))
        self.assertEqual((pay.debit, pay.credit), (Decimal("0.00"), Decimal("3000.00")))
        self.assertEqual(inv.description, "INV-INV-100")
        self.assertEqual(pay.description, "PAY-R-1")

    def test_cancelled_invoices_leave_the_ledger(self):
        Invoice.objects.create(
            customer=self.customer,
            invoice_number="INV-101",
            date=datetime.date(2024, 4, 2),
            total_amount=Decimal("700.00"),
            status="cancelled",
        )
        self.assertEqual(LedgerEntry.objects.for_customer(self.customer).count(), 2)

    def test_ledger_rows_cannot_be_written(self):
        entry = LedgerEntry.objects.for_customer(self.customer).first()
        with self.assertRaises(NotImplementedError):
            entry.save()


class BalanceTests(TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(name="ABC School", mobile="9876543210")
        invoice = Invoice.objects.create(
            customer=self.customer,
            invoice_number="INV-100",
            date=datetime.date(2024, 4, 1),
            total_amount=Decimal("5000.00"),
        )
        Payment.objects.create(
            customer=self.customer,
            invoice=invoice,
            receipt_number="R-1",
            date=datetime.date(2024, 4, 10),
            amount=Decimal("3000.00"),
        )

    def test_april_window(self):
        summary = balance_summary(self.customer, *APRIL)
        self.assertEqual(summary, {
            "openingBalance": Decimal("0.00"),
            "totalPurchases": Decimal("5000.00"),
            "totalPaid": Decimal("3000.00"),
            "currentBalance": Decimal("2000.00"),
        })

    def test_adjacent_windows_chain(self):
        Payment.objects.create(
            customer=self.customer, receipt_number="R-2", date=datetime.date(2024, 5, 3), amount=Decimal("500.00")
        )
        april = balance_summary(self.customer, *APRIL)
        may = balance_summary(self.customer, *MAY)

        # closing of one window is the opening of the next
        self.assertEqual(may["openingBalance"], april["currentBalance"])
        self.assertEqual(may["currentBalance"], Decimal("1500.00"))

    def test_base_opening_balance_is_included(self):
        self.customer.opening_balance = Decimal("-1200.00")
        self.customer.save()
        summary = balance_summary(self.customer, *MAY)
        self.assertEqual(summary["openingBalance"], Decimal("800.00"))
        self.assertEqual(balance_summary(self.customer)["currentBalance"], Decimal("800.00"))

    def test_dashboard_payload(self):
        data = dashboard(self.customer, start_date="2024-04-01", end_date="2024-04-30")

        self.assertEqual(data["summary"]["currentBalance"], Decimal("2000.00"))
        self.assertEqual(data["period"], {"type": "custom", "startDate": APRIL[0], "endDate": APRIL[1]})
        self.assertIsNone(data["pagination"])

        (invoice,) = data["invoices"]
        self.assertEqual(invoice["invoiceNo"], "INV-100")
        self.assertEqual(invoice["paidAmount"], Decimal("3000.00"))
        self.assertEqual(invoice["dueAmount"], Decimal("2000.00"))
        self.assertEqual(invoice["status"], "partial")

        # latest first, balance running from the window opening
        self.assertEqual([row["type"] for row in data["ledger"]], ["payment", "invoice"])
        self.assertEqual(data["ledger"][0]["balance"], Decimal("2000.00"))
        self.assertEqual(data["ledger"][1]["balance"], Decimal("5000.00"))

        self.assertEqual(data["monthly"], [{
            "month": "2024-04",
            "label": "Apr",
            "totalPurchase": Decimal("5000.00"),
            "totalPaid": Decimal("3000.00"),
        }])
        self.assertEqual(data["customer"]["mobile"], "9876543210")

    def test_dashboard_pagination(self):
        data = dashboard(self.customer, page="1", page_size="1")
        self.assertEqual(data["pagination"], {"page": 1, "pageSize": 1, "total": 1, "totalPages": 1})


class LedgerCapTests(TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(name="Busy Shop", mobile="9876500000")
        for day in range(1, 5):
            Invoice.objects.create(
                customer=self.customer,
                invoice_number=f"B-{day}",
                date=datetime.date(2024, 4, day),
                total_amount=Decimal("100.00"),
            )

    @override_settings(LEDGER_IMPORT={"MAX_PAGE_SIZE": 2})
    def test_capped_ledger_keeps_the_newest_rows(self):
        rows = running_ledger(self.customer, *APRIL)

        self.assertEqual([r["entryDate"] for r in rows], [datetime.date(2024, 4, 4), datetime.date(2024, 4, 3)])
        # rows dropped by the cap still feed the running balance
        self.assertEqual([r["balance"] for r in rows], [Decimal("400.00"), Decimal("300.00")])
        self.assertEqual(rows[0]["balance"], balance_summary(self.customer, *APRIL)["currentBalance"])

    def test_uncapped_ledger_runs_from_the_opening(self):
        rows = running_ledger(self.customer, *APRIL, limit=10)
        self.assertEqual([r["balance"] for r in rows], [Decimal("400.00"), Decimal("300.00"), Decimal("200.00"), Decimal("100.00")])


class PeriodResolutionTests(TestCase):
    def test_monthly(self):
        self.assertEqual(
            resolve_period("monthly", today=datetime.date(2024, 2, 10)),
            (datetime.date(2024, 2, 1), datetime.date(2024, 2, 29), "monthly"),
        )

    def test_yearly_is_the_financial_year(self):
        start, end, _ = resolve_period("yearly", today=datetime.date(2024, 2, 10))
        self.assertEqual((start, end), (datetime.date(2023, 4, 1), datetime.date(2024, 3, 31)))
        self.assertEqual(
            financial_year_bounds(datetime.date(2024, 4, 1)),
            (datetime.date(2024, 4, 1), datetime.date(2025, 3, 31)),
        )

    def test_explicit_dates_win(self):
        start, end, label = resolve_period("monthly", start_date="2024-01-01")
        self.assertEqual((start, end, label), (datetime.date(2024, 1, 1), None, "custom"))

    def test_all_is_unbounded(self):
        self.assertEqual(resolve_period(), (None, None, "all"))

    def test_bad_inputs(self):
        with self.assertRaises(ValidationError):
            resolve_period(start_date="2024-05-01", end_date="2024-04-01")
        with self.assertRaises(ValidationError):
            resolve_period(start_date="01/05/2024")
        with self.assertRaises(ValidationError):
            resolve_period("weekly")
        with self.assertRaises(ValidationError):
            resolve_pagination(page="x")

    def test_page_size_is_capped(self):
        self.assertEqual(resolve_pagination(page="2", page_size="5000"), (2, 1000))
        self.assertEqual(resolve_pagination(), (None, None))

import logging

from django.db import transaction

from ..models import Invoice, Payment

logger = logging.getLogger(__name__)

""" Ledger integrity repair.
    Invoices marked paid must have a matching payment (same customer,
    amount and date). Where one is missing, an adjustment payment is
    written; the ledger view picks it up without further repair. """


def unmatched_paid_invoices():
    paid = Invoice.objects.filter(status="paid", total_amount__gt=0)
    for invoice in paid.select_related("customer").order_by("id"):
        matched = Payment.objects.filter(
            customer_id=invoice.customer_id,
            amount=invoice.total_amount,
            date=invoice.date,
        ).exists()
        if not matched:
            yield invoice


def fix_ledger_integrity(dry_run=False):
    """-> list of (invoice, payment or None)."""
    fixed = []
    for invoice in unmatched_paid_invoices():
        receipt = f"FIX-{invoice.invoice_number}"
        if dry_run:
            fixed.append((invoice, None))
            continue
        with transaction.atomic():
            # a repeat run finds the adjustment by receipt number
            payment, created = Payment.objects.get_or_create(
                customer_id=invoice.customer_id,
                receipt_number=receipt,
                defaults={
                    "amount": invoice.total_amount,
                    "date": invoice.date,
                    "mode": "adjustment",
                    "reference_no": f"INV-{invoice.invoice_number}",
                    "source": "system-fix",
                },
            )
        if created:
            logger.info("Adjustment %s written for invoice %s", receipt, invoice.invoice_number)
            fixed.append((invoice, payment))
    return fixed

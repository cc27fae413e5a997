import datetime
import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from ..exceptions import SettlementRejected
from ..models import Invoice, Payment
from ..models.payment import normalize_payment_mode
from .audit_helper import log_action

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


# ----------------------------
# Manual invoice settlement
# ----------------------------
def _parse_amount(value) -> Decimal:
    try:
        amount = Decimal(str(value)).quantize(ZERO)
    except (InvalidOperation, TypeError, ValueError):
        raise SettlementRejected("Payment amount must be greater than 0")
    if amount <= 0:
        raise SettlementRejected("Payment amount must be greater than 0")
    return amount


def _parse_date(value) -> datetime.date:
    if isinstance(value, datetime.date):
        return value
    try:
        return datetime.date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise SettlementRejected("paymentDate must be YYYY-MM-DD")


def settle_invoice(invoice_id, amount, payment_date, payment_mode=None, reference_no=None, user=None):
    """
    Record a payment against one invoice.
    The remaining due is summed from the invoice's linked payments inside
    the transaction, with the invoice row locked, so two settlements
    cannot both pass the bound.
    """
    if not invoice_id or amount in (None, "") or not payment_date:
        raise SettlementRejected("Missing required fields (invoiceId, amount, paymentDate)")

    amount = _parse_amount(amount)
    paid_on = _parse_date(payment_date)

    with transaction.atomic():
        invoice = Invoice.objects.select_for_update().filter(pk=invoice_id).first()
        if invoice is None:
            raise SettlementRejected("Invoice not found", status=404)

        total_paid = invoice.payments.aggregate(total=Sum("amount"))["total"] or ZERO
        invoice_total = invoice.total_amount
        remaining = invoice_total - total_paid

        if amount > remaining:
            raise SettlementRejected(
                f"Payment amount ({amount}) exceeds remaining due amount ({remaining})",
                remainingDue=remaining,
                totalPaid=total_paid,
                invoiceTotal=invoice_total,
            )

        existing = invoice.payments.filter(amount=amount, date=paid_on).first()
        if existing is not None:
            raise SettlementRejected(
                "A payment with the same amount and date already exists for this invoice",
                existingPaymentId=existing.pk,
            )

        receipt = reference_no or f"SETTLE-{timezone.now():%Y%m%d%H%M%S%f}"
        payment = Payment.objects.create(
            customer_id=invoice.customer_id,
            invoice=invoice,
            receipt_number=receipt,
            date=paid_on,
            amount=amount,
            mode=normalize_payment_mode(payment_mode),
            reference_no=reference_no,
            source="manual_settlement",
        )

        # status is informational; balances never read it
        paid_now = total_paid + amount
        invoice.status = "paid" if paid_now >= invoice_total else "partial"
        invoice.save(update_fields=["status"])

        log_action(
            action="settle",
            instance=payment,
            user=user,
            changes={"invoice": invoice.pk, "amount": str(amount), "remainingDue": str(remaining - amount)},
        )

    logger.info("Settled %s against invoice %s (remaining %s)", amount, invoice.pk, remaining - amount)
    return payment, remaining - amount

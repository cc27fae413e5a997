from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from .customer import Customer
from .invoice import Invoice

PAYMENT_MODES = [
    ("cash", "Cash"),
    ("upi", "UPI"),
    ("bank", "Bank"),
    ("cheque", "Cheque"),
    ("adjustment", "Adjustment"),  # integrity-fix entries
]


def normalize_payment_mode(value, default="cash"):
    """Map free-text modes from exports ("Cash", "NEFT", "Cheque No") to a choice."""
    text = str(value or "").strip().lower()
    if not text:
        return default
    if "upi" in text or "gpay" in text or "phonepe" in text or "paytm" in text:
        return "upi"
    if "cheque" in text or "check" in text or "chq" in text:
        return "cheque"
    if "adjust" in text:
        return "adjustment"
    if any(k in text for k in ("bank", "neft", "rtgs", "imps", "transfer")):
        return "bank"
    if "cash" in text:
        return "cash"
    return default


class Payment(models.Model):  # A settlement: credit against a customer
    customer = models.ForeignKey(
        Customer, on_delete=models.PROTECT, related_name="payments"
    )
    # Optional link to the invoice this payment settles
    invoice = models.ForeignKey(
        Invoice,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="payments",
    )

    # Natural key together with customer; may be absent on loose exports
    receipt_number = models.CharField(max_length=64, null=True, blank=True)
    date = models.DateField()
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    mode = models.CharField(max_length=12, choices=PAYMENT_MODES, default="cash")
    reference_no = models.CharField(max_length=128, null=True, blank=True)
    source = models.CharField(max_length=32, default="manual")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "payments"
        ordering = ["-date", "-id"]
        indexes = [
            models.Index(fields=["customer", "date"], name="payments_custome_8b0c6d_idx"),
            models.Index(fields=["invoice"], name="payments_invoice_2e7a41_idx"),
        ]
        constraints = [
            # NULL receipt numbers do not collide
            models.UniqueConstraint(
                fields=["customer", "receipt_number"],
                name="uq_payment_customer_receipt",
            ),
        ]

    def __str__(self):
        return f"Pay {self.receipt_number or self.pk} ({self.amount})"

    def clean(self):
        if self.amount is not None and self.amount < 0:
            raise ValidationError("Payment amount must be non-negative")
        # Prevent cross-customer links
        if self.invoice_id and self.customer_id:
            inv_customer = (
                Invoice.objects.only("customer_id").get(pk=self.invoice_id).customer_id
            )
            if inv_customer != self.customer_id:
                raise ValidationError("Payment and invoice must belong to the same customer.")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

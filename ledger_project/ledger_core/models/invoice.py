from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from .customer import Customer

INV_STATUS_CHOICES = [
    ("unpaid", "Unpaid"),
    ("partial", "Partial"),
    ("paid", "Paid"),
    ("cancelled", "Cancelled"),
]


class Invoice(models.Model):  # A sale: debit against a customer
    customer = models.ForeignKey(
        Customer,
        # customers are never hard-deleted
        on_delete=models.PROTECT,
        related_name="invoices",
    )

    # Natural key together with customer: two customers may reuse numbering
    invoice_number = models.CharField(max_length=64)
    date = models.DateField()

    # Credit notes are stored as negative amounts
    total_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    # Informational only; balances come from the ledger view
    status = models.CharField(
        max_length=10, choices=INV_STATUS_CHOICES, default="unpaid"
    )
    source = models.CharField(max_length=32, default="manual")
    locked = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "invoices"
        ordering = ["-date", "-id"]
        indexes = [
            models.Index(fields=["customer", "date"], name="invoices_custome_4c1e0b_idx"),
            models.Index(fields=["invoice_number", "date"], name="invoices_invoice_9d2f3a_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["customer", "invoice_number"],
                name="uq_invoice_customer_number",
            ),
        ]

    def __str__(self):
        return f"Inv {self.invoice_number}"

    def clean(self):
        """Amounts are immutable once recorded: settlements are separate
        Payment rows, never edits of the invoice."""
        if self.pk:
            orig = (
                Invoice.objects.filter(pk=self.pk)
                .values("total_amount", "customer_id", "invoice_number")
                .first()
            )
            if orig is None:
                return
            changed = [
                field
                for field in ("total_amount", "customer_id", "invoice_number")
                if orig[field] != getattr(self, field)
            ]
            if changed:
                raise ValidationError(f"Cannot modify {changed} on a recorded invoice.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)

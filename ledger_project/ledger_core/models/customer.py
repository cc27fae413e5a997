from decimal import Decimal

from django.db import models

from ..managers import CustomerManager

BALANCE_TYPE_CHOICES = [
    ("receivable", "Receivable"),  # Dr: the customer owes us
    ("payable", "Payable"),  # Cr: we owe the customer
]

# Auto-created customers get a synthetic number starting with this prefix
PLACEHOLDER_MOBILE_PREFIX = "00"


def is_placeholder_mobile(mobile):
    if not mobile:
        return True
    mobile = str(mobile)
    return len(mobile) < 10 or mobile.startswith(PLACEHOLDER_MOBILE_PREFIX)


# ---------- Customer ----------
# A party with a running financial relationship (the "shop")
class Customer(models.Model):
    name = models.CharField(max_length=255)

    # Optional or placeholder until the mobile-verification flow links one
    mobile = models.CharField(max_length=20, null=True, blank=True)
    mobile_verified = models.BooleanField(default=False)

    # Code from the external bookkeeping tool (XML exports)
    customer_code = models.CharField(max_length=64, null=True, blank=True)

    address = models.TextField(blank=True, default="")

    # Balance carried over from before this system's history.
    # Signed: payable balances are stored negative.
    opening_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    balance_type = models.CharField(
        max_length=10, choices=BALANCE_TYPE_CHOICES, default="receivable"
    )

    # Set once an authoritative bulk import has claimed the record;
    # later imports of the same entity type must not overwrite it.
    locked = models.BooleanField(default=False)

    # Provenance: manual, vyapar, tally, xml_upload, auto-created ...
    source = models.CharField(max_length=32, default="manual")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CustomerManager()

    class Meta:
        db_table = "customers"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["name"], name="customers_name_a57b16_idx"),
            models.Index(fields=["mobile"], name="customers_mobile_0f6e0e_idx"),
        ]
        constraints = [
            # NULL codes never collide
            models.UniqueConstraint(
                fields=["customer_code"], name="uq_customer_code"
            ),
        ]

    def __str__(self):
        return self.name

    @property
    def has_real_mobile(self):
        return not is_placeholder_mobile(self.mobile)

from django.conf import settings
from django.db import models

from .customer import Customer

LINK_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("approved", "Approved"),
    ("rejected", "Rejected"),
]


class MobileLinkRequest(models.Model):
    """A customer's request to link a real mobile number to their record,
    approved or rejected by staff."""

    customer = models.ForeignKey(
        Customer, on_delete=models.CASCADE, related_name="mobile_requests"
    )
    shop_name = models.CharField(max_length=255)
    mobile = models.CharField(max_length=10)
    status = models.CharField(
        max_length=10, choices=LINK_STATUS_CHOICES, default="pending"
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    approved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "mobile_link_requests"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="mobile_link_status_3c8d21_idx"),
        ]

    def __str__(self):
        return f"{self.shop_name} → {self.mobile} [{self.status}]"

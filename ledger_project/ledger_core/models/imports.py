from django.core.exceptions import ValidationError
from django.db import models

from ..managers import ImportLogQuerySet

PIPELINE_CHOICES = [
    ("staged", "Auto-detect (staged)"),
    ("tally", "Tally Excel"),
    ("xml", "Ordered XML"),
]

IMPORT_TYPE_CHOICES = [
    ("customers", "Customers"),
    ("ledger", "Ledger / sales"),
    ("invoices", "Invoice list"),
    ("products", "Products"),
    ("party", "Party report"),
    ("sales", "Sales report"),
    ("bills", "Bills"),
    ("payments", "Payments"),
]

LOG_STATUS_CHOICES = [
    ("success", "Success"),
    ("partial", "Partial"),
    ("failed", "Failed"),
]

STAGING_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("queued", "Queued"),
    ("processing", "Processing"),
    ("processed", "Processed"),
    ("partial", "Partial"),
    ("failed", "Failed"),
]
SETTLED_STATUSES = ("processed", "partial", "failed")


# ---------- Import / upload audit log ----------
class ImportLog(models.Model):
    """One processed file. The unique content hash is the file-level
    duplicate guard; the row is never edited after it is written."""

    file_name = models.CharField(max_length=255)
    file_hash = models.CharField(max_length=64, unique=True)
    pipeline = models.CharField(max_length=10, choices=PIPELINE_CHOICES)
    import_type = models.CharField(max_length=12, choices=IMPORT_TYPE_CHOICES)

    total_rows = models.PositiveIntegerField(default=0)
    imported_rows = models.PositiveIntegerField(default=0)
    skipped_rows = models.PositiveIntegerField(default=0)
    failed_rows = models.PositiveIntegerField(default=0)

    # [{"row": 3, "field": "customer", "reason": "..."}]
    error_log = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=10, choices=LOG_STATUS_CHOICES)

    # Staged imports point back to the batch they summarize
    staging_import = models.OneToOneField(
        "StagingImport",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="import_log",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    objects = ImportLogQuerySet.as_manager()

    class Meta:
        db_table = "import_logs"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(
                fields=["pipeline", "import_type", "status"],
                name="import_logs_pipelin_6a3f9e_idx",
            ),
        ]

    def __str__(self):
        return f"{self.pipeline}:{self.import_type} {self.file_name} ({self.status})"

    def save(self, *args, **kwargs):
        if self.pk and ImportLog.objects.filter(pk=self.pk).exists():
            raise ValidationError("Import logs are immutable once written.")
        return super().save(*args, **kwargs)


# ---------- Staging store ----------
class StagingImport(models.Model):
    """An uploaded batch held until the sync call reconciles it."""

    file_name = models.CharField(max_length=255)
    file_hash = models.CharField(max_length=64, unique=True)
    import_type = models.CharField(max_length=12, choices=IMPORT_TYPE_CHOICES)
    status = models.CharField(
        max_length=10, choices=STAGING_STATUS_CHOICES, default="pending"
    )

    # Parsed rows exactly as read from the file (list of dicts)
    raw_rows = models.JSONField(default=list)
    error_log = models.JSONField(default=list, blank=True)
    processed_count = models.PositiveIntegerField(default=0)
    duplicates_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "staging_imports"
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"Staging {self.pk} {self.file_name} [{self.import_type}/{self.status}]"

    @property
    def is_settled(self):
        return self.status in SETTLED_STATUSES

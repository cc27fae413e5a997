from django.conf import settings  # To access global project settings
from django.db import models


# ---------- Audit / Event log ----------
class AuditLog(models.Model):  # Traceability for settlements, locks, verifications
    # Which user performed the action
    # (Nullable when the action was automated, e.g. an import or a fix command)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )
    # Common choices: create, update, lock, settle, verify_mobile
    action = models.CharField(max_length=50)
    # What kind of object was affected (e.g. "Payment", "Customer")
    object_type = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    # Before/after details of what changed, in JSON format
    changes = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "audit_logs"
        indexes = [
            models.Index(fields=["object_type", "object_id"], name="audit_logs_object__5d1e7b_idx"),
            models.Index(fields=["created_at"], name="audit_logs_created_9a4c02_idx"),
        ]

    def __str__(self):
        return f"[{self.created_at:%Y-%m-%d %H:%M}] {self.user} {self.action} {self.object_type}({self.object_id})"

from django.contrib import admin

from ..models import LedgerEntry
from .ReadOnly import ReadOnlyAdmin


# Rows come from the customer_ledger_view SQL view
@admin.register(LedgerEntry)
class LedgerEntryAdmin(ReadOnlyAdmin):
    list_display = ("id", "customer", "entry_date", "entry_type", "description", "debit", "credit")
    search_fields = ("description", "customer__name")
    ordering = ("customer", "entry_date", "created_at")

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("customer")

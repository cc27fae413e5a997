from django.contrib import admin

from ..models import Customer, Invoice, Payment


# Register `Customer` model
@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "name",
        "customer_code",
        "mobile",
        "mobile_verified",
        "opening_balance",
        "balance_type",
        "locked",
        "source",
    )
    search_fields = ("name", "customer_code", "mobile")
    list_filter = ("mobile_verified", "locked", "source", "balance_type")

    # never hard-deleted
    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "invoice_number",
        "customer",
        "date",
        "total_amount",
        "status",
        "source",
    )
    list_filter = ("status", "source", "date")
    search_fields = ("invoice_number", "customer__name")

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("customer")

    """ The amount is fixed once the invoice exists """

    def get_readonly_fields(self, request, obj=None):
        if obj is not None:
            return ("customer", "total_amount", "locked", "source")
        return super().get_readonly_fields(request, obj)


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "receipt_number",
        "customer",
        "invoice",
        "date",
        "amount",
        "mode",
        "source",
    )
    list_filter = ("mode", "source", "date")
    search_fields = ("receipt_number", "reference_no", "customer__name")

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("customer", "invoice")

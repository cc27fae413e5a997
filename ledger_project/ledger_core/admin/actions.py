from django.contrib import admin, messages

from ..exceptions import ImportRejected, MobileVerificationError
from ..services.mobile import approve_request, reject_request
from ..services.staging import process_staging_import

# ---------- Admin actions ----------


@admin.action(description="Sync selected staging imports")
def sync_staging_imports(modeladmin, request, queryset):
    """
    Run the reconciliation for each selected pending batch. Settled batches
    are left alone; each batch commits on its own.
    """
    synced = 0
    for batch in queryset.filter(status__in=("pending", "queued")):
        try:
            result = process_staging_import(batch.pk)
        except ImportRejected as exc:
            modeladmin.message_user(
                request, f"Could not sync import {batch.pk}: {exc.message}", level=messages.ERROR
            )
            continue
        synced += 1
        modeladmin.message_user(
            request,
            f"Import {batch.pk}: {result['processed']} processed, "
            f"{result['duplicates']} duplicates, {result['errors']} errors",
        )
    modeladmin.message_user(request, f"Synced {synced} import(s).", level=messages.SUCCESS)


@admin.action(description="Approve selected mobile requests")
def approve_mobile_requests(modeladmin, request, queryset):
    for link in queryset.filter(status="pending"):
        try:
            approve_request(link.pk, staff_user=request.user)
        except MobileVerificationError as e:
            modeladmin.message_user(request, f"{link}: {e.message}", level=messages.ERROR)


@admin.action(description="Reject selected mobile requests")
def reject_mobile_requests(modeladmin, request, queryset):
    for link in queryset.filter(status="pending"):
        try:
            reject_request(link.pk, staff_user=request.user)
        except MobileVerificationError as e:
            modeladmin.message_user(request, f"{link}: {e.message}", level=messages.ERROR)

from django.urls import path

from . import views

app_name = "ledger_core"

urlpatterns = [
    # auto-detect spreadsheet imports (staged)
    path("api/import/upload", views.upload_view, name="import-upload"),
    path("api/import/status/<int:import_id>", views.import_status_view, name="import-status"),
    path("api/import/sync/<int:import_id>", views.sync_view, name="import-sync"),
    path("api/import/history", views.import_history_view, name="import-history"),

    # Tally Excel reports
    path("api/tally/import-party", views.tally_party_view, name="tally-party"),
    path("api/tally/import-sales", views.tally_sales_view, name="tally-sales"),
    path("api/tally/import-logs", views.tally_logs_view, name="tally-logs"),

    # ordered XML uploads
    path("api/admin/upload/status", views.xml_status_view, name="xml-status"),
    path("api/admin/upload/customers", views.xml_upload_view, {"stage": "customers"}, name="xml-customers"),
    path("api/admin/upload/bills", views.xml_upload_view, {"stage": "bills"}, name="xml-bills"),
    path("api/admin/upload/payments", views.xml_upload_view, {"stage": "payments"}, name="xml-payments"),
    path("api/admin/upload/<int:log_id>/errors", views.xml_errors_view, name="xml-errors"),

    path("api/dashboard", views.dashboard_view, name="dashboard"),
    path("api/admin/settle", views.settle_view, name="settle"),

    path("api/mobile/verification-status", views.mobile_status_view, name="mobile-status"),
    path("api/mobile/add", views.mobile_add_view, name="mobile-add"),
    path("api/admin/mobile-verifications", views.mobile_pending_view, name="mobile-pending"),
    path("api/admin/mobile-verifications/verify", views.mobile_verify_view, name="mobile-verify"),
    path("api/admin/mobile-verifications/reject", views.mobile_reject_view, name="mobile-reject"),
]

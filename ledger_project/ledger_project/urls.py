from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    # Import pipelines, dashboard, settlements, mobile verification
    path("", include("ledger_core.urls")),
]

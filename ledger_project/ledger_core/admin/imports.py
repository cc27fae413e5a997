from django.contrib import admin

from ..models import ImportLog, StagingImport
from .ReadOnly import ReadOnlyAdmin
from .actions import sync_staging_imports


@admin.register(ImportLog)
class ImportLogAdmin(ReadOnlyAdmin):
    list_display = (
        "id",
        "pipeline",
        "import_type",
        "file_name",
        "total_rows",
        "imported_rows",
        "skipped_rows",
        "failed_rows",
        "status",
        "created_at",
    )
    ordering = ("-created_at",)


@admin.register(StagingImport)
class StagingImportAdmin(ReadOnlyAdmin):
    list_display = (
        "id",
        "import_type",
        "file_name",
        "status",
        "processed_count",
        "duplicates_count",
        "created_at",
        "processed_at",
    )
    actions = [sync_staging_imports]
    ordering = ("-created_at",)

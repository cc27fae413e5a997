import logging
from functools import partial

from django.db import IntegrityError, transaction

from ..conf import get_import_setting
from ..exceptions import DuplicateFileError, ImportRejected
from ..models import ImportLog
from .duplicates import ensure_new_file, find_previous_import
from .mapping import map_tally_party, map_tally_sales
from .parsers import parse_spreadsheet
from .reconcile import (ReconciliationEngine, StrictCustomerResolver,
                        apply_customer_row, apply_invoice_row)
from .staging import check_upload_size

logger = logging.getLogger(__name__)

# ----------------------------------------
# Tally Excel reports, applied synchronously (no staging).
#   party report -> customers (locking import, Dr/Cr polarity)
#   sales report -> invoices (customer must already exist)
# ----------------------------------------

MAPPERS = {
    "party": map_tally_party,
    "sales": map_tally_sales,
}


def _handler(report):
    if report == "party":
        return partial(apply_customer_row, source="tally")
    return partial(apply_invoice_row, resolver=StrictCustomerResolver(), source="tally", locked=True)


def import_tally_report(report, content: bytes, file_name: str) -> dict:
    if report not in MAPPERS:
        raise ValueError(f"Unknown Tally report {report!r}")

    check_upload_size(content)
    digest = ensure_new_file(content)

    raw_rows = parse_spreadsheet(content, file_name)
    if not raw_rows:
        raise ImportRejected("File is empty or could not be parsed")

    mapping = MAPPERS[report](raw_rows)
    if mapping.header_error:
        raise ImportRejected(mapping.header_error)
    if mapping.errors and not mapping.rows:
        raise ImportRejected("Validation failed for all rows", details=mapping.error_dicts())

    engine = ReconciliationEngine(commit_size=1, label=f"tally {report} {file_name}")
    summary = engine.run(mapping.rows, _handler(report))

    if summary.applied > 0:
        status = "partial" if summary.errors else "success"
    else:
        status = "failed"

    try:
        with transaction.atomic():
            log = ImportLog.objects.create(
                file_name=file_name,
                file_hash=digest,
                pipeline="tally",
                import_type=report,
                total_rows=len(raw_rows),
                imported_rows=summary.applied,
                skipped_rows=summary.duplicates,
                # rows rejected by validation count as failed too
                failed_rows=summary.failed + len(mapping.errors),
                error_log=summary.error_dicts() + mapping.error_dicts(),
                status=status,
            )
    except IntegrityError:
        raise DuplicateFileError(find_previous_import(digest))

    logger.info(
        "Tally %s import %s (%s): imported=%d skipped=%d failed=%d",
        report, log.pk, status, summary.applied, summary.duplicates, summary.failed,
    )

    sample = get_import_setting("TALLY_ERROR_SAMPLE_SIZE")
    return {
        "message": f"{report.capitalize()} import completed",
        "importId": log.pk,
        "status": status,
        "summary": {
            "totalRows": len(raw_rows),
            "imported": summary.applied,
            "skipped": summary.duplicates,
            "failed": len(summary.errors),
        },
        "errors": summary.error_dicts()[:sample],
        "validationErrors": mapping.error_dicts()[:sample],
    }


def import_log_as_dict(log) -> dict:
    return {
        "id": log.pk,
        "fileName": log.file_name,
        "pipeline": log.pipeline,
        "importType": log.import_type,
        "totalRows": log.total_rows,
        "importedRows": log.imported_rows,
        "skippedRows": log.skipped_rows,
        "failedRows": log.failed_rows,
        "status": log.status,
        "importedAt": log.created_at.isoformat() if log.created_at else None,
    }


def import_history(limit=50, import_type=None):
    qs = ImportLog.objects.for_pipeline("tally")
    if import_type:
        qs = qs.filter(import_type=import_type)
    return [import_log_as_dict(log) for log in qs[:limit]]

import logging
from functools import partial

from django.db import IntegrityError, transaction
from django.utils import timezone

from ..conf import get_import_setting
from ..exceptions import DuplicateFileError, ImportRejected
from ..models import ImportLog, StagingImport
from .detection import detect_file_type
from .duplicates import ensure_new_file, find_previous_import
from .headers import headers_of
from .mapping import RowError, map_staged_rows
from .parsers import parse_spreadsheet
from .reconcile import (BatchSummary, PermissiveCustomerResolver,
                        ReconciliationEngine, apply_customer_row,
                        apply_invoice_row, apply_ledger_row)

logger = logging.getLogger(__name__)

""" Auto-detect pipeline.
    upload: hash -> parse -> detect -> StagingImport(pending)
    sync:   StagingImport -> typed rows -> reconciliation -> ImportLog
    The two steps are separate calls so "file accepted" and "batch applied"
    are reported independently. """


def check_upload_size(content: bytes):
    limit = get_import_setting("MAX_UPLOAD_MB") * 1024 * 1024
    if len(content) > limit:
        raise ImportRejected(f"File exceeds the {get_import_setting('MAX_UPLOAD_MB')} MB upload limit")


def stage_upload(content: bytes, file_name: str) -> StagingImport:
    check_upload_size(content)
    digest = ensure_new_file(content)

    rows = parse_spreadsheet(content, file_name)
    if not rows:
        raise ImportRejected("File is empty or could not be parsed")

    import_type = detect_file_type(headers_of(rows))
    if import_type is None:
        raise ImportRejected(
            "Unrecognized file format. Upload a Vyapar party, sale or invoice report.",
            details={"headers": headers_of(rows)[:30]},
        )
    if import_type == "products":
        raise ImportRejected("Product catalog imports are not supported")

    try:
        with transaction.atomic():
            staging = StagingImport.objects.create(
                file_name=file_name,
                file_hash=digest,
                import_type=import_type,
                raw_rows=rows,
            )
    except IntegrityError:
        # same bytes staged concurrently
        raise DuplicateFileError(find_previous_import(digest))

    logger.info("Staged %s as %s import %s (%d rows)", file_name, import_type, staging.pk, len(rows))
    return staging


def _row_handler(import_type):
    if import_type == "customers":
        return partial(apply_customer_row, source="vyapar")
    resolver = PermissiveCustomerResolver()
    if import_type == "ledger":
        return partial(apply_ledger_row, resolver=resolver)
    if import_type == "invoices":
        return partial(apply_invoice_row, resolver=resolver, source="vyapar")
    raise ImportRejected(f"Import type {import_type!r} cannot be synced")


def queue_staging_import(import_id) -> bool:
    """pending -> queued, under a row lock. False for a settled batch; a
    batch already queued or running is refused with 409."""
    with transaction.atomic():
        staging = StagingImport.objects.select_for_update().get(pk=import_id)
        if staging.is_settled:
            return False
        if staging.status != "pending":
            raise ImportRejected(f"Import {staging.pk} is already {staging.status}", status=409)
        staging.status = "queued"
        staging.save(update_fields=["status"])
    logger.info("Staging import %s queued for background sync", staging.pk)
    return True


def _claim(import_id):
    """Lock the batch and move it to processing so no second caller runs it."""
    with transaction.atomic():
        staging = StagingImport.objects.select_for_update().get(pk=import_id)
        if staging.is_settled:
            return staging, False
        if staging.status == "processing":
            raise ImportRejected(f"Import {staging.pk} is already processing", status=409)
        staging.status = "processing"
        staging.save(update_fields=["status"])
    return staging, True


def process_staging_import(import_id) -> dict:
    """Reconcile one pending (or queued) staging import. A settled import is
    returned as it stands and never processed again."""
    staging, claimed = _claim(import_id)
    if not claimed:
        logger.info("Staging import %s already %s, not reprocessing", staging.pk, staging.status)
        return staging_result(staging)

    try:
        return _apply_staged_rows(staging)
    except Exception:
        # hand the batch back so it can be synced again
        StagingImport.objects.filter(pk=staging.pk, status="processing").update(status="pending")
        raise


def _apply_staged_rows(staging) -> dict:
    mapping = map_staged_rows(staging.raw_rows, staging.import_type)

    summary = BatchSummary(total=len(mapping.errors), failed=len(mapping.errors))
    summary.errors.extend(mapping.errors)

    engine = ReconciliationEngine(
        commit_size=get_import_setting("STAGED_COMMIT_SIZE"),
        label=f"staging {staging.pk}",
    )
    engine.run(mapping.rows, _row_handler(staging.import_type), summary)

    anomaly = summary.applied == 0 and summary.duplicates == 0 and not summary.errors
    if anomaly:
        summary.errors.append(RowError("GENERAL", "No valid rows found to process."))

    if anomaly:
        status = "failed"
    elif summary.failed == 0:
        status = "processed"
    else:
        status = "partial" if summary.applied else "failed"

    with transaction.atomic():
        staging.status = status
        staging.processed_count = summary.applied
        staging.duplicates_count = summary.duplicates
        staging.error_log = summary.error_dicts()
        staging.processed_at = timezone.now()
        staging.save()

        ImportLog.objects.create(
            file_name=staging.file_name,
            file_hash=staging.file_hash,
            pipeline="staged",
            import_type=staging.import_type,
            total_rows=len(staging.raw_rows),
            imported_rows=summary.applied,
            skipped_rows=summary.duplicates,
            failed_rows=summary.failed,
            error_log=summary.error_dicts(),
            status="failed" if anomaly else summary.status,
            staging_import=staging,
        )

    logger.info(
        "Staging import %s %s: processed=%d duplicates=%d errors=%d",
        staging.pk, status, summary.applied, summary.duplicates, len(summary.errors),
    )
    return staging_result(staging)


def staging_result(staging) -> dict:
    sample = get_import_setting("TALLY_ERROR_SAMPLE_SIZE")
    errors = staging.error_log or []
    return {
        "importId": staging.pk,
        "status": staging.status,
        "processed": staging.processed_count,
        "duplicates": staging.duplicates_count,
        "errors": len(errors),
        "errorLog": errors[:sample],
    }


def staging_as_dict(staging) -> dict:
    return {
        "id": staging.pk,
        "fileName": staging.file_name,
        "type": staging.import_type,
        "status": staging.status,
        "rows": len(staging.raw_rows or []),
        "processedCount": staging.processed_count,
        "duplicatesCount": staging.duplicates_count,
        "errorLog": staging.error_log or [],
        "createdAt": staging.created_at.isoformat() if staging.created_at else None,
        "processedAt": staging.processed_at.isoformat() if staging.processed_at else None,
    }

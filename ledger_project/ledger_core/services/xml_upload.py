import csv
import logging
import re
from typing import Dict, List, Tuple

from django.db import IntegrityError, transaction

from ..conf import get_import_setting
from ..exceptions import DuplicateFileError, ImportRejected, UploadOrderViolation
from ..models import Customer, ImportLog, Invoice, Payment
from ..models.payment import normalize_payment_mode
from .duplicates import ensure_new_file, find_previous_import
from .headers import normalize_header
from .mapping import (CustomerRow, InvoiceRow, PaymentRow, RowError,
                      parse_amount, parse_date, text)
from .parsers import element_to_record, find_records, parse_xml
from .reconcile import (BatchSummary, Outcome, ReconciliationEngine,
                        RowFailure, StrictCustomerResolver,
                        apply_invoice_row)
from .staging import check_upload_size

logger = logging.getLogger(__name__)

_NOT_DIGIT = re.compile(r"[^0-9]")

""" Ordered XML upload pipeline.
    Three stages, each gated on the one before it having at least one
    successful or partial upload on record:
        customers -> bills -> payments
    Rows are committed in chunks; a failing row rolls back alone. Each
    stage writes exactly one ImportLog (pipeline="xml"). """

STAGES = ("customers", "bills", "payments")
PREREQUISITE = {"customers": None, "bills": "customers", "payments": "bills"}

# containers / record elements accepted per stage
RECORD_ELEMENTS = {
    "customers": (["Customers"], ["Customer"]),
    "bills": (["Bills"], ["Bill"]),
    "payments": (["Payments"], ["Payment"]),
}

FIELDS = {
    "customers": {
        "name": ["NAME", "CUSTOMER_NAME", "PARTYNAME"],
        "mobile": ["MOBILE", "PHONE", "LEDGERMOBILE"],
        "code": ["CODE", "CUSTOMER_CODE", "GUID"],
    },
    "bills": {
        "bill_no": ["BILLNO", "BILL_NO", "NUMBER", "VOUCHERNUMBER"],
        "date": ["DATE", "BILLDATE", "BILL_DATE"],
        "amount": ["AMOUNT", "TOTAL"],
        "customer_code": ["CUSTOMER_CODE"],
        "customer_name": ["CUSTOMER_NAME", "PARTYNAME", "PARTYLEDGERNAME"],
    },
    "payments": {
        "receipt_no": ["RECEIPTNO", "RECEIPT_NO", "NUMBER"],
        "bill_no": ["BILLNO", "BILL_NO", "AGAINST_BILL"],
        "amount": ["AMOUNT"],
        "date": ["DATE", "PAYMENTDATE", "PAYMENT_DATE"],
        "mode": ["MODE", "METHOD"],
    },
}


def _field(record: Dict, names: List[str]):
    by_norm = {normalize_header(k): v for k, v in record.items()}
    for name in names:
        value = by_norm.get(normalize_header(name))
        if value not in (None, ""):
            return value
    return None


# ---------------- stage gating ----------------


def upload_status() -> dict:
    done = set(
        ImportLog.objects.for_pipeline("xml")
        .completed()
        .values_list("import_type", flat=True)
        .distinct()
    )
    return {
        "customersUploaded": "customers" in done,
        "billsUploaded": "bills" in done,
        "paymentsUploaded": "payments" in done,
        "canUploadBills": "customers" in done,
        "canUploadPayments": "bills" in done,
    }


def ensure_stage_allowed(stage):
    required = PREREQUISITE[stage]
    if required is None:
        return
    if not ImportLog.objects.for_pipeline("xml").completed().filter(import_type=required).exists():
        raise UploadOrderViolation(stage, required)


# ---------------- extraction ----------------


def extract_rows(stage, root) -> Tuple[list, List[RowError]]:
    """Record elements -> typed rows. Records lacking their identifying
    fields are not records of this stage and are dropped; records with an
    unreadable date are row failures."""
    containers, items = RECORD_ELEMENTS[stage]
    elements = find_records(root, containers, items)
    fields = FIELDS[stage]
    rows, errors = [], []

    for row_no, element in enumerate(elements, start=1):
        record = element_to_record(element)

        if stage == "customers":
            name = text(_field(record, fields["name"]))
            if not name:
                continue
            rows.append(
                CustomerRow(
                    row=row_no,
                    name=name,
                    mobile=text(_field(record, fields["mobile"])) or None,
                    customer_code=text(_field(record, fields["code"])) or None,
                )
            )

        elif stage == "bills":
            bill_no = text(_field(record, fields["bill_no"]))
            raw_date = _field(record, fields["date"])
            if not bill_no or not raw_date:
                continue
            bill_date = parse_date(raw_date)
            if bill_date is None:
                errors.append(RowError(row_no, f"Invalid date: {raw_date}", "date"))
                continue
            rows.append(
                InvoiceRow(
                    row=row_no,
                    invoice_number=bill_no,
                    date=bill_date,
                    amount=parse_amount(_field(record, fields["amount"])),
                    customer_code=text(_field(record, fields["customer_code"])) or None,
                    customer_name=text(_field(record, fields["customer_name"])),
                )
            )

        else:
            receipt_no = text(_field(record, fields["receipt_no"]))
            bill_no = text(_field(record, fields["bill_no"]))
            raw_date = _field(record, fields["date"])
            if not (receipt_no and bill_no and raw_date):
                continue
            paid_on = parse_date(raw_date)
            if paid_on is None:
                errors.append(RowError(row_no, f"Invalid date: {raw_date}", "date"))
                continue
            rows.append(
                PaymentRow(
                    row=row_no,
                    receipt_number=receipt_no,
                    bill_number=bill_no,
                    date=paid_on,
                    amount=parse_amount(_field(record, fields["amount"])),
                    mode=normalize_payment_mode(_field(record, fields["mode"])),
                )
            )
    return rows, errors


# ---------------- row handlers ----------------


def apply_xml_customer(row: CustomerRow):
    mobile = _NOT_DIGIT.sub("", row.mobile or "")[-10:]
    if row.customer_code:
        existing = Customer.objects.filter(customer_code=row.customer_code)
    else:
        existing = Customer.objects.by_name(row.name).filter(mobile=mobile)
    if existing.exists():
        return Outcome("duplicate", f"Customer exists: {row.customer_code or row.name}")

    if len(mobile) < 10:
        raise RowFailure("Invalid or missing mobile number", "mobile")

    Customer.objects.create(
        name=row.name,
        mobile=mobile,
        customer_code=row.customer_code,
        source="xml_upload",
    )
    return Outcome("inserted")


def apply_xml_bill(row: InvoiceRow, resolver):
    # bill number + date identifies a bill across the export
    if Invoice.objects.filter(invoice_number=row.invoice_number, date=row.date).exists():
        return Outcome("duplicate", f"Bill exists: {row.invoice_number}")
    return apply_invoice_row(row, resolver, source="xml_upload")


def apply_xml_payment(row: PaymentRow):
    bill = (
        Invoice.objects.filter(invoice_number=row.bill_number)
        .select_related("customer")
        .order_by("-date", "-id")
        .first()
    )
    if bill is None:
        raise RowFailure(f"Bill not found: {row.bill_number}", "bill")

    if Payment.objects.filter(receipt_number=row.receipt_number, invoice=bill).exists():
        return Outcome("duplicate", f"Payment exists: {row.receipt_number}")

    Payment.objects.create(
        customer=bill.customer,
        invoice=bill,
        receipt_number=row.receipt_number,
        date=row.date,
        amount=abs(row.amount),
        mode=row.mode,
        source="xml_upload",
    )
    return Outcome("inserted")


# ---------------- stage runner ----------------


def run_stage(stage, content: bytes, file_name: str) -> dict:
    if stage not in STAGES:
        raise ValueError(f"Unknown upload stage {stage!r}")

    ensure_stage_allowed(stage)
    check_upload_size(content)
    digest = ensure_new_file(content)

    root = parse_xml(content)
    rows, invalid = extract_rows(stage, root)
    if not rows and not invalid:
        raise ImportRejected(f"No {stage[:-1]} records found in XML")

    summary = BatchSummary(total=len(invalid), failed=len(invalid))
    summary.errors.extend(invalid)

    if stage == "customers":
        handler = apply_xml_customer
    elif stage == "bills":
        resolver = StrictCustomerResolver()

        def handler(row):
            return apply_xml_bill(row, resolver)
    else:
        handler = apply_xml_payment

    engine = ReconciliationEngine(
        commit_size=get_import_setting("XML_CHUNK_SIZE"),
        label=f"xml {stage} {file_name}",
    )
    engine.run(rows, handler, summary)
    # stored errors keep file order
    summary.errors.sort(key=lambda e: e.row if isinstance(e.row, int) else 0)

    try:
        with transaction.atomic():
            log = ImportLog.objects.create(
                file_name=file_name,
                file_hash=digest,
                pipeline="xml",
                import_type=stage,
                total_rows=summary.total,
                imported_rows=summary.inserted,
                skipped_rows=summary.duplicates,
                failed_rows=summary.failed,
                error_log=summary.error_dicts(),
                status=summary.status,
            )
    except IntegrityError:
        raise DuplicateFileError(find_previous_import(digest))

    logger.info(
        "XML %s upload %s (%s): total=%d inserted=%d skipped=%d failed=%d",
        stage, log.pk, log.status, summary.total, summary.inserted, summary.duplicates, summary.failed,
    )

    return {
        "success": log.status != "failed",
        "summary": {
            "total": summary.total,
            "inserted": summary.inserted,
            "skipped": summary.duplicates,
            "failed": summary.failed,
        },
        "errors": summary.error_dicts()[: get_import_setting("ERROR_SAMPLE_SIZE")],
        "uploadLogId": log.pk,
    }


def write_error_csv(log, stream):
    """Full error list of one upload as Row,Field,Reason."""
    writer = csv.writer(stream)
    writer.writerow(["Row", "Field", "Reason"])
    for error in log.error_log or []:
        writer.writerow([error.get("row", ""), error.get("field") or "", error.get("reason", "")])

import datetime
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple

from dateutil import parser as date_parser

from ..conf import get_import_setting
from ..models.payment import normalize_payment_mode
from .headers import (TALLY_ALIASES, TALLY_REQUIRED, VYAPAR_ALIASES,
                      headers_of, pick, resolve_headers)

logger = logging.getLogger(__name__)

EXCEL_EPOCH = datetime.date(1899, 12, 30)
ZERO = Decimal("0.00")

_AMOUNT = re.compile(r"-?\d+(?:\.\d+)?")
_NOT_DIGIT = re.compile(r"[^0-9]")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")


# ----------------------------------------
# Row diagnostics
# ----------------------------------------
@dataclass
class RowError:
    row: object  # 1-based file row (header = row 1), or a natural key / "HEADER"
    reason: str
    field: Optional[str] = None

    def as_dict(self):
        return {"row": self.row, "field": self.field, "reason": self.reason}


def file_row(index):
    """0-based data index -> spreadsheet row number (row 1 is the header)."""
    return index + 2


def row_rejected(row_no, problems: List[RowError]) -> RowError:
    """Several problems on one row still reject it once."""
    if len(problems) == 1:
        return problems[0]
    fields = [p.field for p in problems if p.field]
    return RowError(
        row_no,
        ", ".join(p.reason for p in problems),
        ", ".join(fields) or None,
    )


# ----------------------------------------
# Typed rows: what crosses into reconciliation
# ----------------------------------------
@dataclass
class CustomerRow:
    row: int
    name: str
    mobile: Optional[str] = None
    address: str = ""
    opening_balance: Decimal = ZERO
    balance_type: str = "receivable"
    customer_code: Optional[str] = None


@dataclass
class LedgerRow:
    row: int
    customer_name: str
    kind: str  # sale / credit_note / payment
    date: datetime.date
    amount: Decimal
    reference: str = ""
    receipt_number: Optional[str] = None
    mode: str = "cash"


@dataclass
class InvoiceRow:
    row: int
    invoice_number: str
    date: datetime.date
    amount: Decimal
    customer_name: str = ""
    customer_code: Optional[str] = None


@dataclass
class PaymentRow:
    row: int
    receipt_number: str
    bill_number: str
    date: datetime.date
    amount: Decimal
    mode: str = "cash"


@dataclass
class MappingResult:
    rows: list = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)
    header_error: Optional[str] = None

    def error_dicts(self):
        return [e.as_dict() for e in self.errors]


# ----------------------------------------
# Coercions. None of these raise on bad input.
# ----------------------------------------
def text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def parse_amount(value) -> Decimal:
    """ "Rs. 1,250.50" -> Decimal("1250.50"); anything unreadable -> 0. """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, (int, float, Decimal)):
        try:
            return Decimal(str(value)).quantize(ZERO)
        except InvalidOperation:
            return ZERO
    # "Rs." carries a dot of its own, so take the first number after dropping separators
    found = _AMOUNT.search(str(value).replace(",", ""))
    if found is None:
        return ZERO
    try:
        return Decimal(found.group()).quantize(ZERO)
    except InvalidOperation:
        return ZERO


def parse_date(value, dayfirst=None) -> Optional[datetime.date]:
    """Accepts date objects, spreadsheet serial numbers, ISO text and free text."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, (int, float)):
        return _from_serial(value)

    raw = str(value).strip()
    if not raw:
        return None
    if raw.isdigit() and len(raw) <= 5:
        return _from_serial(int(raw))
    if _ISO_DATE.match(raw):
        try:
            return datetime.date.fromisoformat(raw[:10])
        except ValueError:
            return None

    if dayfirst is None:
        dayfirst = get_import_setting("DATE_DAYFIRST")
    try:
        return date_parser.parse(raw, dayfirst=dayfirst).date()
    except (ValueError, OverflowError):
        return None


def _from_serial(serial) -> Optional[datetime.date]:
    try:
        return EXCEL_EPOCH + datetime.timedelta(days=int(serial))
    except (OverflowError, ValueError):
        return None


def normalize_mobile(value) -> Optional[str]:
    """Last 10 digits, or None when fewer than 10 digits are present."""
    digits = _NOT_DIGIT.sub("", text(value))
    digits = digits[-10:]
    return digits if len(digits) == 10 else None


def normalize_ledger_kind(value) -> Optional[str]:
    kind = text(value).lower()
    if "credit" in kind or "return" in kind:
        return "credit_note"
    if "sale" in kind or "invoice" in kind:
        return "sale"
    if "payment" in kind or "receipt" in kind:
        return "payment"
    return None


def balance_polarity(amount: Decimal, marker) -> Tuple[Decimal, str]:
    """Apply a Dr/Cr marker: credit balances are payable and stored negative."""
    mark = text(marker).lower()
    if "cr" in mark or mark == "c":
        return -abs(amount), "payable"
    return amount, "receivable"


# ----------------------------------------
# Vyapar (auto-detect pipeline)
# ----------------------------------------
def map_customers(raw_rows) -> MappingResult:
    result = MappingResult()
    mapping = resolve_headers(VYAPAR_ALIASES["customers"], headers_of(raw_rows))

    for index, raw in enumerate(raw_rows):
        name = text(pick(raw, mapping, "name"))
        if not name:
            result.errors.append(RowError(file_row(index), "Missing Name", "name"))
            continue

        receivable = parse_amount(pick(raw, mapping, "receivable"))
        payable = parse_amount(pick(raw, mapping, "payable"))
        if payable > 0 and payable > receivable:
            opening, balance_type = -payable, "payable"
        else:
            opening, balance_type = receivable, "receivable"

        result.rows.append(
            CustomerRow(
                row=file_row(index),
                name=name,
                mobile=normalize_mobile(pick(raw, mapping, "mobile")),
                address=text(pick(raw, mapping, "address")),
                opening_balance=opening,
                balance_type=balance_type,
            )
        )
    return result


def map_ledger(raw_rows, dayfirst=None) -> MappingResult:
    result = MappingResult()
    mapping = resolve_headers(VYAPAR_ALIASES["ledger"], headers_of(raw_rows))

    for index, raw in enumerate(raw_rows):
        row_no = file_row(index)
        problems = []

        party = text(pick(raw, mapping, "party"))
        if not party:
            problems.append(RowError(row_no, "Missing Party Name", "party"))

        raw_date = pick(raw, mapping, "date")
        entry_date = parse_date(raw_date, dayfirst)
        if raw_date in (None, ""):
            problems.append(RowError(row_no, "Missing Date", "date"))
        elif entry_date is None:
            problems.append(RowError(row_no, f"Invalid date: {raw_date}", "date"))

        kind = normalize_ledger_kind(pick(raw, mapping, "type"))
        if kind is None:
            problems.append(
                RowError(row_no, f"Unsupported transaction type: {text(pick(raw, mapping, 'type')) or '(blank)'}", "type")
            )

        reference = text(pick(raw, mapping, "ref"))
        if kind in ("sale", "credit_note") and not reference:
            problems.append(RowError(row_no, "Missing Invoice No", "ref"))

        if problems:
            result.errors.append(row_rejected(row_no, problems))
            continue

        receipt = text(pick(raw, mapping, "receipt"))
        if kind == "payment" and not receipt:
            receipt = reference

        result.rows.append(
            LedgerRow(
                row=row_no,
                customer_name=party,
                kind=kind,
                date=entry_date,
                amount=parse_amount(pick(raw, mapping, "amount")),
                reference=reference,
                receipt_number=receipt or None,
                mode=normalize_payment_mode(pick(raw, mapping, "mode")),
            )
        )
    return result


def map_invoices(raw_rows, dayfirst=None) -> MappingResult:
    result = MappingResult()
    mapping = resolve_headers(VYAPAR_ALIASES["invoices"], headers_of(raw_rows))

    for index, raw in enumerate(raw_rows):
        row_no = file_row(index)
        problems = []

        number = text(pick(raw, mapping, "invoice_no"))
        if not number:
            problems.append(RowError(row_no, "Missing Invoice No", "invoice_no"))
        party = text(pick(raw, mapping, "customer_name"))
        if not party:
            problems.append(RowError(row_no, "Missing Party Name", "customer_name"))

        raw_date = pick(raw, mapping, "date")
        invoice_date = parse_date(raw_date, dayfirst)
        if raw_date in (None, ""):
            problems.append(RowError(row_no, "Missing Date", "date"))
        elif invoice_date is None:
            problems.append(RowError(row_no, f"Invalid date: {raw_date}", "date"))

        if problems:
            result.errors.append(row_rejected(row_no, problems))
            continue

        result.rows.append(
            InvoiceRow(
                row=row_no,
                invoice_number=number,
                customer_name=party,
                date=invoice_date,
                amount=parse_amount(pick(raw, mapping, "total")),
            )
        )
    return result


STAGED_MAPPERS = {
    "customers": map_customers,
    "ledger": map_ledger,
    "invoices": map_invoices,
}


def map_staged_rows(raw_rows, import_type) -> MappingResult:
    try:
        mapper = STAGED_MAPPERS[import_type]
    except KeyError:
        raise ValueError(f"No row mapper for import type {import_type!r}")
    result = mapper(raw_rows)
    logger.info(
        "Mapped %d %s rows: %d valid, %d rejected",
        len(raw_rows), import_type, len(result.rows), len(result.errors),
    )
    return result


# ----------------------------------------
# Tally Excel reports
# ----------------------------------------
def _check_required(kind, mapping, result):
    required, message = TALLY_REQUIRED[kind]
    if any(f not in mapping for f in required):
        result.header_error = message
        result.errors.append(RowError("HEADER", message))
        return False
    return True


def map_tally_party(raw_rows) -> MappingResult:
    result = MappingResult()
    if not raw_rows:
        return result
    mapping = resolve_headers(TALLY_ALIASES["party"], headers_of(raw_rows))
    if not _check_required("party", mapping, result):
        return result

    for index, raw in enumerate(raw_rows):
        name = text(pick(raw, mapping, "name"))
        if not name:
            result.errors.append(RowError(file_row(index), "Missing Party Name", "name"))
            continue

        raw_balance = pick(raw, mapping, "opening_balance")
        marker = pick(raw, mapping, "balance_type")
        if marker is None and text(raw_balance).lower().endswith(("cr", "dr")):
            # "1,500.00 Cr" with no separate Dr/Cr column
            marker = text(raw_balance)[-2:]
        opening, balance_type = balance_polarity(parse_amount(raw_balance), marker)

        result.rows.append(
            CustomerRow(
                row=file_row(index),
                name=name,
                mobile=normalize_mobile(pick(raw, mapping, "mobile")),
                address=text(pick(raw, mapping, "address")),
                opening_balance=opening,
                balance_type=balance_type,
            )
        )
    return result


def map_tally_sales(raw_rows, dayfirst=None, today=None) -> MappingResult:
    result = MappingResult()
    if not raw_rows:
        return result
    mapping = resolve_headers(TALLY_ALIASES["sales"], headers_of(raw_rows))
    if not _check_required("sales", mapping, result):
        return result
    today = today or datetime.date.today()

    for index, raw in enumerate(raw_rows):
        row_no = file_row(index)
        problems = []

        number = text(pick(raw, mapping, "invoice_no"))
        if not number:
            problems.append(RowError(row_no, "Missing Invoice No", "invoice_no"))
        party = text(pick(raw, mapping, "customer_name"))
        if not party:
            problems.append(RowError(row_no, "Missing Party Name", "customer_name"))

        raw_date = pick(raw, mapping, "invoice_date")
        if raw_date in (None, ""):
            # missing date defaults to today
            invoice_date = today
        else:
            invoice_date = parse_date(raw_date, dayfirst)
            if invoice_date is None:
                problems.append(RowError(row_no, "Invalid date format", "invoice_date"))

        if problems:
            result.errors.append(row_rejected(row_no, problems))
            continue

        result.rows.append(
            InvoiceRow(
                row=row_no,
                invoice_number=number,
                customer_name=party,
                date=invoice_date,
                amount=parse_amount(pick(raw, mapping, "amount")),
            )
        )
    return result


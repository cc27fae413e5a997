import re
from typing import Dict, Iterable, List, Optional

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_header(header) -> str:
    """ "Phone No." -> "phoneno"; case, whitespace and punctuation are dropped. """
    if header is None:
        return ""
    return _NON_ALNUM.sub("", str(header).strip().lower())


def resolve_headers(aliases: Dict[str, List[str]], headers: Iterable[str]) -> Dict[str, str]:
    """
    Map each canonical field to the actual header that carries it.
    Aliases are tried in priority order; the first one whose normalized form
    matches an actual header wins. Fields with no match are left out.
    """
    by_norm = {}
    for header in headers:
        # first occurrence wins if two columns normalize the same way
        by_norm.setdefault(normalize_header(header), header)

    mapping = {}
    for field, names in aliases.items():
        for name in names:
            actual = by_norm.get(normalize_header(name))
            if actual is not None:
                mapping[field] = actual
                break
    return mapping


def headers_of(rows) -> List[str]:
    """Union of keys over all rows, in first-seen order."""
    seen = {}
    for row in rows:
        for key in row.keys():
            seen.setdefault(key, None)
    return list(seen)


def pick(row: dict, mapping: Dict[str, str], field: str) -> Optional[object]:
    header = mapping.get(field)
    if header is None:
        return None
    return row.get(header)


# ----------------------------------------
# Accepted header aliases per export shape
# ----------------------------------------

# Vyapar exports (auto-detect pipeline)
VYAPAR_ALIASES = {
    "customers": {
        "name": ["Name", "Party Name", "Customer Name"],
        "mobile": ["Mobile", "Phone", "Phone No", "Phone No."],
        "receivable": ["Receivable Balance", "Receivable"],
        "payable": ["Payable Balance", "Payable"],
        "address": ["Address", "Billing Address"],
    },
    "ledger": {
        "party": ["Party Name", "Particulars", "Customer Name"],
        "type": ["Transaction Type", "Voucher Type", "Type"],
        "date": ["Date", "Bill Date"],
        "amount": ["Total Amount", "Amount", "Debit", "Credit"],
        "ref": ["Invoice No", "Voucher No", "Ref No"],
        "receipt": ["Receipt No", "Receipt Number"],
        "mode": ["Payment Type", "Payment Mode", "Mode"],
    },
    "invoices": {
        "invoice_no": ["Invoice No", "Invoice No.", "Bill No", "Bill Number", "Voucher No", "Ref No"],
        "customer_name": ["Party Name", "Customer Name"],
        "date": ["Date", "Invoice Date", "Bill Date"],
        "total": ["Amount", "Total Amount", "Invoice Amount", "Net Amount", "Grand Total", "Total"],
    },
}

# Tally Excel reports
TALLY_ALIASES = {
    "party": {
        "name": ["Party Name", "Name", "Customer Name"],
        "opening_balance": ["Opening Balance", "Balance", "Amount", "Closing Balance"],
        "balance_type": ["Dr/Cr", "Type", "Balance Type", "Dr / Cr"],
        "mobile": ["Mobile", "Phone", "Contact No", "Mobile No", "Phone Number"],
        "address": ["Address", "Billing Address"],
    },
    "sales": {
        "invoice_no": ["Invoice No", "Bill No", "Voucher No", "Invoice Number"],
        "customer_name": ["Party Name", "Customer Name", "Name"],
        "invoice_date": ["Date", "Invoice Date", "Bill Date", "Voucher Date"],
        "amount": ["Amount", "Total", "Bill Amount", "Invoice Amount"],
    },
}

# Headers a Tally file cannot be processed without, with the message shown
TALLY_REQUIRED = {
    "party": (["name"], "Required column 'Party Name' not found in Excel file"),
    "sales": (["invoice_no", "customer_name"], "Required columns not found. Need: Invoice No, Party Name"),
}

from typing import Iterable, Optional

from .headers import normalize_header

""" File type detection for the auto-detect pipeline.
    Signatures are checked in priority order: a sales/ledger export is the
    most specific shape, so it must win even when it also carries an
    invoice-number column. """


def detect_file_type(headers: Iterable[str]) -> Optional[str]:
    normalized = [normalize_header(h) for h in headers]

    # 1. ledger / sale report
    if any("transactiontype" in h or "vouchertype" in h for h in normalized):
        return "ledger"

    # 2. party report with balance columns
    if any("receivable" in h or "payablebalance" in h for h in normalized):
        return "customers"

    # 3. item master
    if any("itemname" in h and ("stock" in h or "price" in h) for h in normalized):
        return "products"
    if any(h == "itemname" for h in normalized) and any(
        "stock" in h or "price" in h for h in normalized
    ):
        return "products"

    # 4. plain invoice list (fallback)
    if any("invoiceno" in h or "billno" in h for h in normalized):
        return "invoices"

    return None

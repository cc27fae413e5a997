import datetime
import logging
import math
from calendar import monthrange
from decimal import Decimal
from typing import Optional

from django.core.exceptions import ValidationError
from django.db.models import DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce, TruncMonth

from ..conf import get_import_setting
from ..models import Invoice, LedgerEntry, Payment

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
MONEY = DecimalField(max_digits=18, decimal_places=2)

""" Balance calculator.
    Every figure is summed from the ledger view at call time:
        opening = base opening balance + sum(debit - credit) before start
        closing = opening + purchases in window - payments in window
    There is no stored running balance anywhere. """


def _money(value) -> Decimal:
    return (value or ZERO).quantize(ZERO)


# ---------------- period resolution ----------------


def financial_year_bounds(today: datetime.date):
    """Indian financial year (1 April - 31 March) containing `today`."""
    start_year = today.year if today.month >= 4 else today.year - 1
    return datetime.date(start_year, 4, 1), datetime.date(start_year + 1, 3, 31)


def _iso(value, name):
    if not value:
        return None
    try:
        return datetime.date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValidationError(f"Invalid {name}: expected YYYY-MM-DD")


def resolve_period(period=None, start_date=None, end_date=None, today=None):
    """
    -> (start, end, label). Explicit dates win over `period`; either one
    may be given alone. monthly = current month, yearly = current financial
    year, all / missing = unbounded.
    """
    today = today or datetime.date.today()
    start, end = _iso(start_date, "start_date"), _iso(end_date, "end_date")
    if start or end:
        if start and end and start > end:
            raise ValidationError("start_date must not be after end_date")
        return start, end, "custom"

    label = (period or "all").lower()
    if label == "monthly":
        last_day = monthrange(today.year, today.month)[1]
        return today.replace(day=1), today.replace(day=last_day), label
    if label == "yearly":
        start, end = financial_year_bounds(today)
        return start, end, label
    if label == "all":
        return None, None, label
    raise ValidationError(f"Unknown period {period!r}: use monthly, yearly or all")


def resolve_pagination(page=None, page_size=None):
    """-> (page, page_size) or (None, None) when the caller did not ask to page."""
    if page in (None, "") and page_size in (None, ""):
        return None, None
    try:
        page_num = max(1, int(page or 1))
        size = int(page_size or get_import_setting("MAX_PAGE_SIZE"))
    except (TypeError, ValueError):
        raise ValidationError("page and pageSize must be integers")
    size = max(1, min(size, get_import_setting("MAX_PAGE_SIZE")))
    return page_num, size


# ---------------- balance ----------------


def opening_balance(customer, start: Optional[datetime.date]) -> Decimal:
    base = _money(customer.opening_balance)
    if start is None:
        return base
    totals = LedgerEntry.objects.for_customer(customer).before(start).aggregate(
        debit=Sum("debit"), credit=Sum("credit")
    )
    return _money(base + _money(totals["debit"]) - _money(totals["credit"]))


def balance_summary(customer, start=None, end=None) -> dict:
    opening = opening_balance(customer, start)
    totals = LedgerEntry.objects.for_customer(customer).within(start, end).aggregate(
        purchase=Sum("debit"), paid=Sum("credit")
    )
    purchase = _money(totals["purchase"])
    paid = _money(totals["paid"])
    return {
        "openingBalance": opening,
        "totalPurchases": purchase,
        "totalPaid": paid,
        "currentBalance": opening + purchase - paid,
    }


def running_ledger(customer, start=None, end=None, opening=None, limit=None):
    """The newest `limit` window rows with a running balance, latest first.
    Older window rows that fall outside the cap still count towards the
    balance, so the top row always carries the closing balance."""
    if opening is None:
        opening = opening_balance(customer, start)
    limit = limit or get_import_setting("MAX_PAGE_SIZE")

    window = LedgerEntry.objects.for_customer(customer).within(start, end)
    newest = list(window.latest_first()[:limit])

    balance = opening
    if len(newest) == limit:
        totals = window.aggregate(debit=Sum("debit"), credit=Sum("credit"))
        shown = sum((_money(e.debit) - _money(e.credit) for e in newest), ZERO)
        balance += _money(totals["debit"]) - _money(totals["credit"]) - shown

    rows = []
    for entry in reversed(newest):
        balance += _money(entry.debit) - _money(entry.credit)
        rows.append({
            "id": entry.source_id,
            "type": entry.entry_type,
            "entryDate": entry.entry_date,
            "referenceNo": entry.description,
            "debit": _money(entry.debit),
            "credit": _money(entry.credit),
            "balance": balance,
            "createdAt": entry.created_at,
        })
    rows.reverse()
    return rows


def monthly_series(customer, start=None, end=None):
    buckets = (
        LedgerEntry.objects.for_customer(customer)
        .within(start, end)
        .annotate(month=TruncMonth("entry_date"))
        .values("month")
        .annotate(purchase=Sum("debit"), paid=Sum("credit"))
        .order_by("month")
    )
    series = []
    for bucket in buckets:
        month = bucket["month"]
        series.append({
            "month": month.strftime("%Y-%m"),
            "label": month.strftime("%b"),
            "totalPurchase": _money(bucket["purchase"]),
            "totalPaid": _money(bucket["paid"]),
        })
    return series


# ---------------- invoice / payment lists ----------------


def _date_window(field, start, end):
    q = Q()
    if start is not None:
        q &= Q(**{f"{field}__gte": start})
    if end is not None:
        q &= Q(**{f"{field}__lte": end})
    return q


def invoice_status(total, paid):
    due = total - paid
    if due <= 0:
        return "paid"
    return "partial" if paid > 0 else "unpaid"


def invoice_list(customer, start=None, end=None, page=None, page_size=None):
    """Invoices in the window, each reconciled against its linked payments."""
    qs = (
        Invoice.objects.filter(customer=customer)
        .exclude(status="cancelled")
        .filter(_date_window("date", start, end))
        .annotate(paid_amount=Coalesce(Sum("payments__amount"), Value(ZERO), output_field=MONEY))
        .order_by("-date", "-id")
    )
    total_count = qs.count()
    if page is not None:
        offset = (page - 1) * page_size
        qs = qs[offset:offset + page_size]

    invoices = []
    for invoice in qs:
        paid = _money(invoice.paid_amount)
        total = _money(invoice.total_amount)
        invoices.append({
            "id": invoice.pk,
            "invoiceNo": invoice.invoice_number,
            "date": invoice.date,
            "totalAmount": total,
            "paidAmount": paid,
            "dueAmount": total - paid,
            "status": invoice_status(total, paid),
            "source": invoice.source,
        })
    return invoices, total_count


def payment_list(customer, start=None, end=None, page=None, page_size=None):
    qs = (
        Payment.objects.filter(customer=customer)
        .filter(_date_window("date", start, end))
        .select_related("invoice")
        .order_by("-date", "-id")
    )
    if page is not None:
        offset = (page - 1) * page_size
        qs = qs[offset:offset + page_size]
    return [
        {
            "id": p.pk,
            "receiptNo": p.receipt_number,
            "invoiceId": p.invoice_id,
            "invoiceNo": p.invoice.invoice_number if p.invoice_id else None,
            "paymentDate": p.date,
            "amount": _money(p.amount),
            "mode": p.mode,
            "referenceNo": p.reference_no,
            "source": p.source,
        }
        for p in qs
    ]


def customer_profile(customer) -> dict:
    return {
        "id": customer.pk,
        "name": customer.name,
        "mobile": customer.mobile if customer.has_real_mobile else None,
        "mobileVerified": customer.mobile_verified,
        "customerCode": customer.customer_code,
        "address": customer.address,
        "openingBalance": _money(customer.opening_balance),
        "balanceType": customer.balance_type,
    }


def dashboard(customer, period=None, start_date=None, end_date=None, page=None, page_size=None, today=None):
    """Everything the customer dashboard shows, for one window."""
    start, end, label = resolve_period(period, start_date, end_date, today=today)
    page, page_size = resolve_pagination(page, page_size)

    summary = balance_summary(customer, start, end)
    invoices, invoice_count = invoice_list(customer, start, end, page, page_size)

    payload = {
        "customer": customer_profile(customer),
        "summary": summary,
        "ledger": running_ledger(customer, start, end, opening=summary["openingBalance"]),
        "invoices": invoices,
        "payments": payment_list(customer, start, end, page, page_size),
        "monthly": monthly_series(customer, start, end),
        "period": {"type": label, "startDate": start, "endDate": end},
        "pagination": None,
    }
    if page is not None:
        payload["pagination"] = {
            "page": page,
            "pageSize": page_size,
            "total": invoice_count,
            "totalPages": math.ceil(invoice_count / page_size) if page_size else None,
        }
    logger.debug("Dashboard for customer %s window %s..%s", customer.pk, start, end)
    return payload

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from django.core.exceptions import ValidationError
from django.db import DatabaseError, IntegrityError, transaction
from django.utils.crypto import get_random_string

from ..models import Customer, Invoice, Payment
from ..models.customer import PLACEHOLDER_MOBILE_PREFIX
from .audit_helper import log_action
from .mapping import CustomerRow, InvoiceRow, LedgerRow, RowError

logger = logging.getLogger(__name__)

# -------------------------------------------------------------
# Reconciliation engine
#   typed rows -> Customer / Invoice / Payment rows, with
#   natural-key duplicate suppression and per-row diagnostics.
#   The same engine serves the per-row (staged, Tally) and the
#   per-chunk (XML) pipelines; only commit_size differs.
# -------------------------------------------------------------


class RowFailure(Exception):
    """A single row cannot be applied; the batch goes on."""

    def __init__(self, reason, field=None):
        super().__init__(reason)
        self.reason = reason
        self.field = field


@dataclass
class Outcome:
    status: str  # inserted / updated / duplicate
    reason: Optional[str] = None
    # duplicates that the operator must see (locked customers)
    report: bool = False


@dataclass
class BatchSummary:
    total: int = 0
    inserted: int = 0
    updated: int = 0
    duplicates: int = 0
    failed: int = 0
    errors: List[RowError] = field(default_factory=list)

    @property
    def applied(self):
        return self.inserted + self.updated

    @property
    def status(self):
        if self.failed == 0:
            return "success"
        return "partial" if self.applied > 0 else "failed"

    def record(self, row_no, outcome):
        if outcome.status == "inserted":
            self.inserted += 1
        elif outcome.status == "updated":
            self.updated += 1
        else:
            self.duplicates += 1
            if outcome.report:
                self.errors.append(RowError(row_no, outcome.reason))

    def fail(self, row_no, reason, field=None):
        self.failed += 1
        self.errors.append(RowError(row_no, reason, field))

    def error_dicts(self):
        return [e.as_dict() for e in self.errors]


def chunked(items, size):
    size = max(int(size or 1), 1)
    for start in range(0, len(items), size):
        yield items[start:start + size]


class ReconciliationEngine:
    """
    Apply rows in file order. Each chunk of `commit_size` rows commits in
    its own transaction and each row runs in a nested savepoint, so a bad
    row rolls back alone and never undoes rows committed before it.
    commit_size=1 gives one transaction per row.
    """

    def __init__(self, commit_size=1, label="import"):
        self.commit_size = commit_size
        self.label = label

    def run(self, rows, apply_row: Callable, summary: BatchSummary = None) -> BatchSummary:
        summary = summary or BatchSummary()
        summary.total += len(rows)
        logger.info("%s: applying %d rows (commit size %s)", self.label, len(rows), self.commit_size)

        for chunk in chunked(list(rows), self.commit_size):
            results = []
            try:
                with transaction.atomic():
                    for row in chunk:
                        results.append((row, self._apply_one(row, apply_row)))
            except DatabaseError:
                logger.exception("%s: chunk starting at row %s failed to commit", self.label, chunk[0].row)
                for row in chunk:
                    summary.fail(row.row, "Database error")
                continue

            for row, result in results:
                if isinstance(result, RowFailure):
                    summary.fail(row.row, result.reason, result.field)
                else:
                    summary.record(row.row, result)

        logger.info(
            "%s: done. inserted=%d updated=%d duplicates=%d failed=%d",
            self.label, summary.inserted, summary.updated, summary.duplicates, summary.failed,
        )
        return summary

    def _apply_one(self, row, apply_row):
        try:
            with transaction.atomic():
                return apply_row(row)
        except RowFailure as failure:
            logger.warning("%s: row %s rejected: %s", self.label, row.row, failure.reason)
            return failure
        except IntegrityError as exc:
            # a concurrent import won the race on a natural key
            logger.warning("%s: row %s hit a uniqueness constraint: %s", self.label, row.row, exc)
            return RowFailure(f"Duplicate key: {_natural_key(row)}")
        except ValidationError as exc:
            # model clean/constraint validation on save
            logger.warning("%s: row %s failed validation: %s", self.label, row.row, exc.messages)
            return RowFailure("; ".join(exc.messages))
        except DatabaseError:
            logger.exception("%s: row %s failed", self.label, row.row)
            return RowFailure("Database error")


def _natural_key(row):
    for attr in ("invoice_number", "receipt_number", "reference", "customer_code", "name"):
        value = getattr(row, attr, None)
        if value:
            return value
    return row.row


# ---------------- customer resolution ----------------


def placeholder_mobile():
    return PLACEHOLDER_MOBILE_PREFIX + get_random_string(8, allowed_chars="0123456789")


class PermissiveCustomerResolver:
    """Loose spreadsheet path: an unknown party is created on first sight."""

    source = "auto-created"

    def resolve(self, name=None, code=None):
        customer = None
        if code:
            customer = Customer.objects.filter(customer_code=code).first()
        if customer is None and name:
            customer = Customer.objects.find_by_name(name)
        if customer is not None:
            return customer
        if not name:
            raise RowFailure("Missing Party Name", "customer")

        customer = Customer.objects.create(
            name=name.strip(),
            mobile=placeholder_mobile(),
            opening_balance=0,
            source=self.source,
        )
        logger.info("Auto-created customer %s (%s)", customer.pk, customer.name)
        return customer


class StrictCustomerResolver:
    """Trusted exports: the customer must already exist."""

    def resolve(self, name=None, code=None):
        customer = None
        if code:
            customer = Customer.objects.filter(customer_code=code).first()
        elif name:
            customer = Customer.objects.find_by_name(name)
        if customer is None:
            raise RowFailure(f"Customer not found: {code or name}", "customer")
        return customer


# ---------------- row handlers ----------------


def apply_customer_row(row: CustomerRow, source, user=None):
    """Insert, or update an unlocked customer without blanking anything and
    lock it. A locked customer is left untouched and reported."""
    existing = Customer.objects.find_by_name(row.name)

    if existing is None:
        Customer.objects.create(
            name=row.name,
            mobile=row.mobile,
            address=row.address,
            customer_code=row.customer_code or None,
            opening_balance=row.opening_balance,
            balance_type=row.balance_type,
            locked=True,
            source=source,
        )
        return Outcome("inserted")

    if existing.locked:
        return Outcome("duplicate", "Duplicate (locked from previous import)", report=True)

    changes = {}
    if row.mobile and not existing.has_real_mobile:
        changes["mobile"] = row.mobile
    if row.address and not existing.address:
        changes["address"] = row.address
    if row.customer_code and not existing.customer_code:
        changes["customer_code"] = row.customer_code
    if row.opening_balance:
        changes["opening_balance"] = row.opening_balance
        changes["balance_type"] = row.balance_type

    for attr, value in changes.items():
        setattr(existing, attr, value)
    existing.locked = True
    existing.source = source
    existing.save()

    log_action(
        action="lock",
        instance=existing,
        user=user,
        changes={k: str(v) for k, v in changes.items()},
    )
    return Outcome("updated")


def apply_ledger_row(row: LedgerRow, resolver, source="vyapar_ledger"):
    customer = resolver.resolve(name=row.customer_name)

    if row.kind in ("sale", "credit_note"):
        amount = row.amount if row.kind == "sale" else -abs(row.amount)
        if Invoice.objects.filter(customer=customer, invoice_number=row.reference).exists():
            return Outcome("duplicate", f"Duplicate invoice {row.reference}")
        Invoice.objects.create(
            customer=customer,
            invoice_number=row.reference,
            date=row.date,
            total_amount=amount,
            source=source,
        )
        return Outcome("inserted")

    amount = abs(row.amount)
    if row.receipt_number:
        duplicate = Payment.objects.filter(customer=customer, receipt_number=row.receipt_number)
    else:
        # no receipt number: fall back to (customer, date, amount, mode)
        duplicate = Payment.objects.filter(
            customer=customer, date=row.date, amount=amount, mode=row.mode
        )
    if duplicate.exists():
        return Outcome("duplicate", f"Duplicate payment {row.receipt_number or row.date}")

    Payment.objects.create(
        customer=customer,
        receipt_number=row.receipt_number,
        date=row.date,
        amount=amount,
        mode=row.mode,
        source=source,
    )
    return Outcome("inserted")


def apply_invoice_row(row: InvoiceRow, resolver, source, locked=False):
    customer = resolver.resolve(name=row.customer_name, code=row.customer_code)
    if Invoice.objects.filter(customer=customer, invoice_number=row.invoice_number).exists():
        return Outcome("duplicate", f"Duplicate invoice {row.invoice_number}")
    Invoice.objects.create(
        customer=customer,
        invoice_number=row.invoice_number,
        date=row.date,
        total_amount=row.amount,
        source=source,
        locked=locked,
    )
    return Outcome("inserted")

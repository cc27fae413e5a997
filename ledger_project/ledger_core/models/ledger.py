from django.db import models

from ..managers import LedgerQuerySet

# ------------------------ Ledger View ----------------------

""" Derived, read-only transaction stream per customer.
    Invoices become debit rows and payments credit rows; the SQL view
    `customer_ledger_view` is created by migration and has no backing
    table, so there is no stored balance that could drift. """


class LedgerEntry(models.Model):
    # "inv-<invoice id>" / "pay-<payment id>"
    id = models.CharField(max_length=40, primary_key=True)
    entry_type = models.CharField(max_length=10)  # invoice / payment
    source_id = models.BigIntegerField()
    customer = models.ForeignKey(
        "ledger_core.Customer",
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name="ledger_entries",
    )
    entry_date = models.DateField()
    debit = models.DecimalField(max_digits=18, decimal_places=2)
    credit = models.DecimalField(max_digits=18, decimal_places=2)
    description = models.CharField(max_length=80)
    created_at = models.DateTimeField()

    objects = LedgerQuerySet.as_manager()

    class Meta:
        managed = False  # Django won't try to create/drop this
        db_table = "customer_ledger_view"  # must match the view name
        ordering = ["entry_date", "created_at", "id"]
        verbose_name = "Ledger entry"
        verbose_name_plural = "Ledger (derived view)"

    def __str__(self):
        return f"{self.entry_date} {self.description} Dr {self.debit} Cr {self.credit}"

    def save(self, *args, **kwargs):
        raise NotImplementedError("The ledger is a derived view; write invoices or payments instead.")

    def delete(self, *args, **kwargs):
        raise NotImplementedError("The ledger is a derived view.")

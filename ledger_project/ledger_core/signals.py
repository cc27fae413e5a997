from django.core.exceptions import ValidationError
from django.db.models.signals import pre_delete
from django.dispatch import receiver

from .models import Customer, ImportLog

""" Customers are never hard-deleted: their ledger is derived from
    invoices and payments that must keep pointing at them."""


# pre_delete signal auto-fires just before Django deletes a model instance
@receiver(pre_delete, sender=Customer)
def prevent_delete_customer(sender, instance, **kwargs):
    raise ValidationError("Customers cannot be deleted.")


"""Import logs are the file-level duplicate guard; deleting one would let
   the same file be applied twice."""


@receiver(pre_delete, sender=ImportLog)
def prevent_delete_import_log(sender, instance, **kwargs):
    raise ValidationError("Import logs cannot be deleted.")

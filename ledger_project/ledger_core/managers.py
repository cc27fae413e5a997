from django.db import models
from django.db.models.functions import Lower, Trim

# -----------------------------------------
# Query helpers shared by importers, the
# ledger view and the dashboard
# -----------------------------------------


class CustomerQuerySet(models.QuerySet):
    def by_name(self, name):
        """Case-insensitive, whitespace-trimmed name match."""
        target = (name or "").strip().lower()
        return self.annotate(_norm_name=Lower(Trim("name"))).filter(_norm_name=target)

    def find_by_name(self, name):
        # oldest record wins when legacy data holds near-duplicates
        return self.by_name(name).order_by("id").first()


class CustomerManager(models.Manager):
    def get_queryset(self):
        return CustomerQuerySet(self.model, using=self._db)

    def by_name(self, name):
        return self.get_queryset().by_name(name)

    def find_by_name(self, name):
        return self.get_queryset().find_by_name(name)


class LedgerQuerySet(models.QuerySet):
    def for_customer(self, customer):
        customer_id = getattr(customer, "pk", customer)
        return self.filter(customer_id=customer_id)

    def before(self, day):
        # strictly before the window start
        return self.filter(entry_date__lt=day)

    def within(self, start=None, end=None):
        # inclusive bounds, a missing bound is open on that side
        qs = self
        if start is not None:
            qs = qs.filter(entry_date__gte=start)
        if end is not None:
            qs = qs.filter(entry_date__lte=end)
        return qs

    def chronological(self):
        return self.order_by("entry_date", "created_at", "id")

    def latest_first(self):
        return self.order_by("-entry_date", "-created_at", "-id")


class ImportLogQuerySet(models.QuerySet):
    def completed(self):
        # a stage counts as done once it has any success
        return self.filter(status__in=["success", "partial"])

    def for_pipeline(self, pipeline):
        return self.filter(pipeline=pipeline)

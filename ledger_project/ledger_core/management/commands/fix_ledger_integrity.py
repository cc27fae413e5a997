from django.core.management.base import BaseCommand

from ledger_core.services.integrity import fix_ledger_integrity


class Command(BaseCommand):
    help = "Write adjustment payments for paid invoices that have no matching payment."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List the invoices that would be fixed without writing anything",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        fixed = fix_ledger_integrity(dry_run=dry_run)

        for invoice, payment in fixed:
            line = f"{invoice.invoice_number} ({invoice.customer.name}) {invoice.total_amount} on {invoice.date}"
            if payment is not None:
                line += f" -> {payment.receipt_number}"
            self.stdout.write(line)

        verb = "Would fix" if dry_run else "Fixed"
        self.stdout.write(self.style.SUCCESS(f"{verb} {len(fixed)} invoice(s)."))

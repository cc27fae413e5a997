from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("mobile", models.CharField(blank=True, max_length=20, null=True)),
                ("mobile_verified", models.BooleanField(default=False)),
                ("customer_code", models.CharField(blank=True, max_length=64, null=True)),
                ("address", models.TextField(blank=True, default="")),
                ("opening_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("balance_type", models.CharField(choices=[("receivable", "Receivable"), ("payable", "Payable")], default="receivable", max_length=10)),
                ("locked", models.BooleanField(default=False)),
                ("source", models.CharField(default="manual", max_length=32)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "customers",
                "ordering": ["name"],
                "indexes": [
                    models.Index(fields=["name"], name="customers_name_a57b16_idx"),
                    models.Index(fields=["mobile"], name="customers_mobile_0f6e0e_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("customer_code",), name="uq_customer_code"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("invoice_number", models.CharField(max_length=64)),
                ("date", models.DateField()),
                ("total_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("status", models.CharField(choices=[("unpaid", "Unpaid"), ("partial", "Partial"), ("paid", "Paid"), ("cancelled", "Cancelled")], default="unpaid", max_length=10)),
                ("source", models.CharField(default="manual", max_length=32)),
                ("locked", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("customer", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="invoices", to="ledger_core.customer")),
            ],
            options={
                "db_table": "invoices",
                "ordering": ["-date", "-id"],
                "indexes": [
                    models.Index(fields=["customer", "date"], name="invoices_custome_4c1e0b_idx"),
                    models.Index(fields=["invoice_number", "date"], name="invoices_invoice_9d2f3a_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("customer", "invoice_number"), name="uq_invoice_customer_number"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("receipt_number", models.CharField(blank=True, max_length=64, null=True)),
                ("date", models.DateField()),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("mode", models.CharField(choices=[("cash", "Cash"), ("upi", "UPI"), ("bank", "Bank"), ("cheque", "Cheque"), ("adjustment", "Adjustment")], default="cash", max_length=12)),
                ("reference_no", models.CharField(blank=True, max_length=128, null=True)),
                ("source", models.CharField(default="manual", max_length=32)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("customer", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="ledger_core.customer")),
                ("invoice", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="ledger_core.invoice")),
            ],
            options={
                "db_table": "payments",
                "ordering": ["-date", "-id"],
                "indexes": [
                    models.Index(fields=["customer", "date"], name="payments_custome_8b0c6d_idx"),
                    models.Index(fields=["invoice"], name="payments_invoice_2e7a41_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("customer", "receipt_number"), name="uq_payment_customer_receipt"),
                ],
            },
        ),
        migrations.CreateModel(
            name="StagingImport",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("file_name", models.CharField(max_length=255)),
                ("file_hash", models.CharField(max_length=64, unique=True)),
                ("import_type", models.CharField(choices=[("customers", "Customers"), ("ledger", "Ledger / sales"), ("invoices", "Invoice list"), ("products", "Products"), ("party", "Party report"), ("sales", "Sales report"), ("bills", "Bills"), ("payments", "Payments")], max_length=12)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("processed", "Processed"), ("partial", "Partial"), ("failed", "Failed")], default="pending", max_length=10)),
                ("raw_rows", models.JSONField(default=list)),
                ("error_log", models.JSONField(blank=True, default=list)),
                ("processed_count", models.PositiveIntegerField(default=0)),
                ("duplicates_count", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "db_table": "staging_imports",
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="ImportLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("file_name", models.CharField(max_length=255)),
                ("file_hash", models.CharField(max_length=64, unique=True)),
                ("pipeline", models.CharField(choices=[("staged", "Auto-detect (staged)"), ("tally", "Tally Excel"), ("xml", "Ordered XML")], max_length=10)),
                ("import_type", models.CharField(choices=[("customers", "Customers"), ("ledger", "Ledger / sales"), ("invoices", "Invoice list"), ("products", "Products"), ("party", "Party report"), ("sales", "Sales report"), ("bills", "Bills"), ("payments", "Payments")], max_length=12)),
                ("total_rows", models.PositiveIntegerField(default=0)),
                ("imported_rows", models.PositiveIntegerField(default=0)),
                ("skipped_rows", models.PositiveIntegerField(default=0)),
                ("failed_rows", models.PositiveIntegerField(default=0)),
                ("error_log", models.JSONField(blank=True, default=list)),
                ("status", models.CharField(choices=[("success", "Success"), ("partial", "Partial"), ("failed", "Failed")], max_length=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("staging_import", models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="import_log", to="ledger_core.stagingimport")),
            ],
            options={
                "db_table": "import_logs",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["pipeline", "import_type", "status"], name="import_logs_pipelin_6a3f9e_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="MobileLinkRequest",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("shop_name", models.CharField(max_length=255)),
                ("mobile", models.CharField(max_length=10)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("approved", "Approved"), ("rejected", "Rejected")], default="pending", max_length=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("approved_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
                ("customer", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="mobile_requests", to="ledger_core.customer")),
            ],
            options={
                "db_table": "mobile_link_requests",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="mobile_link_status_3c8d21_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=50)),
                ("object_type", models.CharField(max_length=100)),
                ("object_id", models.CharField(max_length=100)),
                ("changes", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "audit_logs",
                "indexes": [
                    models.Index(fields=["object_type", "object_id"], name="audit_logs_object__5d1e7b_idx"),
                    models.Index(fields=["created_at"], name="audit_logs_created_9a4c02_idx"),
                ],
            },
        ),
        # Unmanaged: backed by the SQL view created in 0002
        migrations.CreateModel(
            name="LedgerEntry",
            fields=[
                ("id", models.CharField(max_length=40, primary_key=True, serialize=False)),
                ("entry_type", models.CharField(max_length=10)),
                ("source_id", models.BigIntegerField()),
                ("entry_date", models.DateField()),
                ("debit", models.DecimalField(decimal_places=2, max_digits=18)),
                ("credit", models.DecimalField(decimal_places=2, max_digits=18)),
                ("description", models.CharField(max_length=80)),
                ("created_at", models.DateTimeField()),
                ("customer", models.ForeignKey(db_constraint=False, on_delete=django.db.models.deletion.DO_NOTHING, related_name="ledger_entries", to="ledger_core.customer")),
            ],
            options={
                "verbose_name": "Ledger entry",
                "verbose_name_plural": "Ledger (derived view)",
                "db_table": "customer_ledger_view",
                "ordering": ["entry_date", "created_at", "id"],
                "managed": False,
            },
        ),
    ]

from django.db import migrations


class Migration(migrations.Migration):
    dependencies = [
        ("ledger_core", "0001_initial"),
    ]

    """ Customer ledger view:
        - One row per invoice (debit) and per payment (credit).
        - Cancelled invoices are left out.
        - Plain SQL view, no stored balances: every read reflects the
          current invoices and payments tables.
        - Written to run unchanged on SQLite and PostgreSQL.
    """

    operations = [
        migrations.RunSQL(
            """
            CREATE VIEW customer_ledger_view AS
            SELECT
                'inv-' || CAST(i.id AS VARCHAR(20)) AS id,
                'invoice' AS entry_type,
                i.id AS source_id,
                i.customer_id AS customer_id,
                i.date AS entry_date,
                i.total_amount AS debit,
                CAST(0 AS NUMERIC(18, 2)) AS credit,
                'INV-' || i.invoice_number AS description,
                i.created_at AS created_at
            FROM invoices i
            WHERE i.status <> 'cancelled'
            UNION ALL
            SELECT
                'pay-' || CAST(p.id AS VARCHAR(20)) AS id,
                'payment' AS entry_type,
                p.id AS source_id,
                p.customer_id AS customer_id,
                p.date AS entry_date,
                CAST(0 AS NUMERIC(18, 2)) AS debit,
                p.amount AS credit,
                'PAY-' || COALESCE(p.receipt_number, CAST(p.id AS VARCHAR(20))) AS description,
                p.created_at AS created_at
            FROM payments p
            """,
            reverse_sql="DROP VIEW IF EXISTS customer_ledger_view;",
        ),
    ]

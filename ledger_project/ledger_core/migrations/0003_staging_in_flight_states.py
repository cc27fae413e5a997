from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("ledger_core", "0002_customer_ledger_view"),
    ]

    operations = [
        migrations.AlterField(
            model_name="stagingimport",
            name="status",
            field=models.CharField(
                choices=[
                    ("pending", "Pending"),
                    ("queued", "Queued"),
                    ("processing", "Processing"),
                    ("processed", "Processed"),
                    ("partial", "Partial"),
                    ("failed", "Failed"),
                ],
                default="pending",
                max_length=10,
            ),
        ),
    ]

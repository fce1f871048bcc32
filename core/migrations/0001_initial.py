import uuid

import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Transaction",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("request_id", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("buyer_address", models.CharField(db_index=True, max_length=42)),
                ("type", models.CharField(choices=[("BUY", "Buy"), ("APPROVE", "Approve")], default="BUY", max_length=10)),
                ("amount", models.DecimalField(decimal_places=18, max_digits=38)),
                ("status", models.CharField(choices=[("PENDING", "Pending"), ("PAID", "Paid (USDT received, not minted)"), ("SUCCESS", "Success"), ("FAILED", "Failed")], default="PENDING", max_length=10)),
                ("tx_hash", models.CharField(max_length=100, unique=True)),
                ("payment_tx_hash", models.CharField(blank=True, default="", max_length=100)),
                ("error", models.TextField(blank=True, default="")),
                ("timestamp", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("token_price", models.DecimalField(decimal_places=6, max_digits=18)),
                ("usdt_amount", models.DecimalField(decimal_places=6, max_digits=24)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["-timestamp"], name="tx_timestamp_idx"),
                    models.Index(fields=["buyer_address", "-timestamp"], name="tx_buyer_timestamp_idx"),
                ],
            },
        ),
    ]

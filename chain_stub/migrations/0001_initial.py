import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ChainStubBalance",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("contract", models.CharField(max_length=42)),
                ("address", models.CharField(max_length=42)),
                ("balance_units", models.DecimalField(decimal_places=0, default=0, max_digits=78)),
            ],
            options={
                "unique_together": {("contract", "address")},
            },
        ),
        migrations.CreateModel(
            name="ChainStubAllowance",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("contract", models.CharField(max_length=42)),
                ("owner", models.CharField(max_length=42)),
                ("spender", models.CharField(max_length=42)),
                ("amount_units", models.DecimalField(decimal_places=0, default=0, max_digits=78)),
            ],
            options={
                "unique_together": {("contract", "owner", "spender")},
            },
        ),
        migrations.CreateModel(
            name="ChainStubTx",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("tx_hash", models.CharField(max_length=66, unique=True)),
                ("contract", models.CharField(max_length=42)),
                ("method", models.CharField(max_length=20)),
                ("sender", models.CharField(blank=True, default="", max_length=42)),
                ("recipient", models.CharField(max_length=42)),
                ("amount_units", models.DecimalField(decimal_places=0, max_digits=78)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
        ),
    ]

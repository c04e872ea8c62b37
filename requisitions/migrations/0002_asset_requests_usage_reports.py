import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("inventory", "0001_initial"),
        ("requisitions", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="request",
            name="request_type",
            field=models.CharField(
                choices=[("CONSUMABLE", "Consumable"), ("ASSET", "Fixed Asset")],
                db_index=True,
                default="CONSUMABLE",
                max_length=20,
            ),
        ),
        migrations.AlterField(
            model_name="request",
            name="target_warehouse",
            field=models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.PROTECT,
                related_name="consumable_requests",
                to="inventory.warehouse",
            ),
        ),
        migrations.CreateModel(
            name="RequestAssetItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "qty_requested",
                    models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)]),
                ),
                ("qty_approved", models.PositiveIntegerField(blank=True, null=True)),
                (
                    "asset_model",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="request_items",
                        to="inventory.assetmodel",
                    ),
                ),
                (
                    "request",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="asset_items",
                        to="requisitions.request",
                    ),
                ),
            ],
            options={
                "db_table": "request_asset_items",
                "ordering": ["asset_model__name"],
            },
        ),
        migrations.CreateModel(
            name="UsageReport",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("activity_name", models.CharField(max_length=255)),
                ("activity_date", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "room",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="usage_reports",
                        to="inventory.room",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="usage_reports",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "usage_reports",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="UsageDetail",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("batch_number", models.CharField(default="-", max_length=100)),
                ("expiry_date", models.DateTimeField(blank=True, null=True)),
                (
                    "qty_used",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.01"))],
                    ),
                ),
                (
                    "consumable",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="usage_details",
                        to="inventory.consumable",
                    ),
                ),
                (
                    "report",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="details",
                        to="requisitions.usagereport",
                    ),
                ),
            ],
            options={
                "db_table": "usage_details",
                "ordering": ["consumable__name", "expiry_date"],
            },
        ),
    ]

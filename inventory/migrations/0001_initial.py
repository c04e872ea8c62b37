import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def uuid_pk():
    return ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False))


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
    ]

    operations = [
        # Organization
        migrations.CreateModel(
            name="Faculty",
            fields=[
                uuid_pk(),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "faculties",
                "ordering": ["name"],
                "verbose_name_plural": "faculties",
            },
        ),
        migrations.CreateModel(
            name="Unit",
            fields=[
                uuid_pk(),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "faculty",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="units",
                        to="inventory.faculty",
                    ),
                ),
            ],
            options={"db_table": "units", "ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="Building",
            fields=[
                uuid_pk(),
                ("name", models.CharField(max_length=255)),
                ("code", models.CharField(blank=True, max_length=50, null=True)),
                ("description", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "faculty",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="buildings",
                        to="inventory.faculty",
                    ),
                ),
            ],
            options={"db_table": "buildings", "ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="Room",
            fields=[
                uuid_pk(),
                ("name", models.CharField(max_length=255)),
                ("floor_level", models.IntegerField(default=1)),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("LABORATORY", "Laboratory"),
                            ("ADMIN_OFFICE", "Admin Office"),
                            ("LECTURE_HALL", "Lecture Hall"),
                            ("WAREHOUSE_UNIT", "Unit Warehouse"),
                        ],
                        default="LECTURE_HALL",
                        max_length=20,
                    ),
                ),
                ("qr_token", models.CharField(blank=True, max_length=64, null=True, unique=True)),
                ("description", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "building",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="rooms",
                        to="inventory.building",
                    ),
                ),
                (
                    "unit",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="rooms",
                        to="inventory.unit",
                    ),
                ),
            ],
            options={"db_table": "rooms", "ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="Warehouse",
            fields=[
                uuid_pk(),
                ("name", models.CharField(max_length=255)),
                (
                    "type",
                    models.CharField(
                        choices=[("CHEMICAL", "Chemical"), ("GENERAL_ATK", "General Office Supplies")],
                        max_length=20,
                    ),
                ),
                ("description", models.TextField(blank=True, null=True)),
                (
                    "faculty",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="warehouses",
                        to="inventory.faculty",
                    ),
                ),
            ],
            options={"db_table": "warehouses", "ordering": ["name"]},
        ),
        # Catalog
        migrations.CreateModel(
            name="Category",
            fields=[
                uuid_pk(),
                ("name", models.CharField(max_length=255)),
            ],
            options={
                "db_table": "categories",
                "ordering": ["name"],
                "verbose_name_plural": "categories",
            },
        ),
        migrations.CreateModel(
            name="Brand",
            fields=[
                uuid_pk(),
                ("name", models.CharField(max_length=255, unique=True)),
                ("country", models.CharField(blank=True, max_length=100, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={"db_table": "brands", "ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="Consumable",
            fields=[
                uuid_pk(),
                ("name", models.CharField(max_length=255)),
                ("sku", models.CharField(blank=True, max_length=100, null=True, unique=True)),
                ("base_unit", models.CharField(max_length=50)),
                ("minimum_stock", models.IntegerField(default=10)),
                ("has_expiry", models.BooleanField(default=False)),
                ("description", models.TextField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "category",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="consumables",
                        to="inventory.category",
                    ),
                ),
            ],
            options={"db_table": "consumables", "ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="AssetModel",
            fields=[
                uuid_pk(),
                ("name", models.CharField(max_length=255)),
                ("model_number", models.CharField(blank=True, max_length=100, null=True)),
                ("is_movable", models.BooleanField(default=False)),
                ("specifications", models.JSONField(blank=True, default=dict)),
                ("description", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "brand",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="asset_models",
                        to="inventory.brand",
                    ),
                ),
                (
                    "category",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="asset_models",
                        to="inventory.category",
                    ),
                ),
            ],
            options={"db_table": "asset_models", "ordering": ["name"]},
        ),
        # Stocks
        migrations.CreateModel(
            name="WarehouseStock",
            fields=[
                uuid_pk(),
                (
                    "quantity",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0"),
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                    ),
                ),
                ("batch_number", models.CharField(default="-", max_length=100)),
                ("expiry_date", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "consumable",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="warehouse_stocks",
                        to="inventory.consumable",
                    ),
                ),
                (
                    "warehouse",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stocks",
                        to="inventory.warehouse",
                    ),
                ),
            ],
            options={
                "db_table": "warehouse_stocks",
                "ordering": ["expiry_date", "updated_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("warehouse", "consumable", "batch_number"), name="unique_stock_batch"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RoomConsumable",
            fields=[
                uuid_pk(),
                ("quantity", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=10)),
                ("batch_number", models.CharField(default="-", max_length=100)),
                ("expiry_date", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "consumable",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="room_stocks",
                        to="inventory.consumable",
                    ),
                ),
                (
                    "room",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="consumables",
                        to="inventory.room",
                    ),
                ),
            ],
            options={
                "db_table": "room_consumables",
                "ordering": ["room", "consumable"],
                "indexes": [
                    models.Index(fields=["room", "consumable"], name="rc_room_item_idx"),
                ],
            },
        ),
        # Physical assets
        migrations.CreateModel(
            name="FixedAsset",
            fields=[
                uuid_pk(),
                ("inventory_number", models.CharField(blank=True, max_length=100, null=True, unique=True)),
                ("is_movable", models.BooleanField(default=True)),
                (
                    "movement_status",
                    models.CharField(
                        choices=[
                            ("IN_STORE", "In Store"),
                            ("IN_USE", "In Use"),
                            ("IN_TRANSIT", "In Transit"),
                            ("LOST", "Lost"),
                        ],
                        db_index=True,
                        default="IN_STORE",
                        max_length=20,
                    ),
                ),
                ("qr_token", models.CharField(max_length=64, unique=True)),
                ("serial_number", models.CharField(blank=True, max_length=100, null=True)),
                (
                    "condition",
                    models.CharField(
                        choices=[
                            ("GOOD", "Good"),
                            ("MINOR_DAMAGE", "Minor Damage"),
                            ("MAJOR_DAMAGE", "Major Damage"),
                            ("BROKEN", "Broken"),
                            ("LOST", "Lost"),
                            ("MAINTENANCE", "Maintenance"),
                        ],
                        default="GOOD",
                        max_length=20,
                    ),
                ),
                ("procurement_year", models.IntegerField(blank=True, null=True)),
                ("price", models.DecimalField(blank=True, decimal_places=2, max_digits=15, null=True)),
                ("purchase_date", models.DateField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "custodian",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="custodied_assets",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "model",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="assets",
                        to="inventory.assetmodel",
                    ),
                ),
                (
                    "room",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="fixed_assets",
                        to="inventory.room",
                    ),
                ),
                (
                    "warehouse",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="fixed_assets",
                        to="inventory.warehouse",
                    ),
                ),
            ],
            options={
                "db_table": "fixed_assets",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["room", "model", "movement_status"], name="fa_room_model_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("room__isnull", False), ("warehouse__isnull", False), _negated=True),
                        name="fixed_asset_single_location",
                    ),
                ],
            },
        ),
        # Asset distribution
        migrations.CreateModel(
            name="AssetDistribution",
            fields=[
                uuid_pk(),
                ("distribution_code", models.CharField(db_index=True, max_length=50, unique=True)),
                ("total_quantity", models.PositiveIntegerField()),
                (
                    "status",
                    models.CharField(
                        choices=[("DRAFT", "Draft"), ("SHIPPED", "Shipped"), ("COMPLETED", "Completed")],
                        db_index=True,
                        default="DRAFT",
                        max_length=20,
                    ),
                ),
                ("notes", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "actor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="asset_distributions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "model",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="distributions",
                        to="inventory.assetmodel",
                    ),
                ),
            ],
            options={
                "db_table": "asset_distributions",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="dist_status_created_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("total_quantity__gt", 0)), name="dist_total_quantity_positive"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="AssetDistributionTarget",
            fields=[
                uuid_pk(),
                ("allocated_quantity", models.PositiveIntegerField()),
                ("received_quantity", models.PositiveIntegerField(default=0)),
                ("received_at", models.DateTimeField(blank=True, null=True)),
                (
                    "distribution",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="targets",
                        to="inventory.assetdistribution",
                    ),
                ),
                (
                    "receiver",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="received_distribution_targets",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "target_room",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="distribution_targets",
                        to="inventory.room",
                    ),
                ),
            ],
            options={
                "db_table": "asset_distribution_targets",
                "ordering": ["distribution", "target_room__name"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("distribution", "target_room"), name="unique_distribution_room"
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("received_quantity__lte", models.F("allocated_quantity"))),
                        name="target_received_within_allocated",
                    ),
                ],
            },
        ),
    ]

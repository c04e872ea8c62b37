"""
Inventory Models

Organization structure (faculties, units, buildings, rooms, warehouses),
catalog definitions (categories, brands, consumables, asset models) and the
physical inventory that references them (warehouse/room consumable stock and
individually tracked fixed assets), plus the stock adjustment ledger and
asset maintenance log.
"""
import secrets
import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone
from decimal import Decimal


# ---------------------------------------------------------------------------
# Organization
# ---------------------------------------------------------------------------

class Faculty(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'faculties'
        ordering = ['name']
        verbose_name_plural = 'faculties'

    def __str__(self):
        return self.name


class Unit(models.Model):
    """Department-level organizational unit belonging to a faculty."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    faculty = models.ForeignKey(Faculty, on_delete=models.PROTECT, related_name='units', null=True, blank=True)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'units'
        ordering = ['name']

    def __str__(self):
        return self.name


class Building(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    faculty = models.ForeignKey(Faculty, on_delete=models.PROTECT, related_name='buildings')
    name = models.CharField(max_length=255)
    code = models.CharField(max_length=50, blank=True, null=True)
    description = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'buildings'
        ordering = ['name']

    def __str__(self):
        return self.name


class Room(models.Model):
    """
    Physical room inside a building.

    A room without a unit is a shared faculty room (halls, auditoriums);
    otherwise it belongs to the unit operating it.
    """
    TYPE_LABORATORY = 'LABORATORY'
    TYPE_ADMIN_OFFICE = 'ADMIN_OFFICE'
    TYPE_LECTURE_HALL = 'LECTURE_HALL'
    TYPE_WAREHOUSE_UNIT = 'WAREHOUSE_UNIT'
    TYPE_CHOICES = [
        (TYPE_LABORATORY, 'Laboratory'),
        (TYPE_ADMIN_OFFICE, 'Admin Office'),
        (TYPE_LECTURE_HALL, 'Lecture Hall'),
        (TYPE_WAREHOUSE_UNIT, 'Unit Warehouse'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    building = models.ForeignKey(Building, on_delete=models.CASCADE, related_name='rooms')
    unit = models.ForeignKey(Unit, on_delete=models.PROTECT, related_name='rooms', null=True, blank=True)
    name = models.CharField(max_length=255)
    floor_level = models.IntegerField(default=1)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_LECTURE_HALL)
    qr_token = models.CharField(max_length=64, unique=True, null=True, blank=True)
    description = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'rooms'
        ordering = ['name']

    def __str__(self):
        return self.name


class Warehouse(models.Model):
    TYPE_CHEMICAL = 'CHEMICAL'
    TYPE_GENERAL_ATK = 'GENERAL_ATK'
    TYPE_CHOICES = [
        (TYPE_CHEMICAL, 'Chemical'),
        (TYPE_GENERAL_ATK, 'General Office Supplies'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    faculty = models.ForeignKey(Faculty, on_delete=models.PROTECT, related_name='warehouses', null=True, blank=True)
    description = models.TextField(blank=True, null=True)

    class Meta:
        db_table = 'warehouses'
        ordering = ['name']

    def __str__(self):
        return self.name


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class Category(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)

    class Meta:
        db_table = 'categories'
        ordering = ['name']
        verbose_name_plural = 'categories'

    def __str__(self):
        return self.name


class Brand(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, unique=True)
    country = models.CharField(max_length=100, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'brands'
        ordering = ['name']

    def __str__(self):
        return self.name


class Consumable(models.Model):
    """Consumable item definition (chemicals, stationery, lab supplies)."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    category = models.ForeignKey(Category, on_delete=models.PROTECT, related_name='consumables', null=True, blank=True)
    name = models.CharField(max_length=255)
    sku = models.CharField(max_length=100, unique=True, null=True, blank=True)
    base_unit = models.CharField(max_length=50)
    minimum_stock = models.IntegerField(default=10)
    has_expiry = models.BooleanField(default=False)
    description = models.TextField(blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'consumables'
        ordering = ['name']

    def __str__(self):
        return self.name


class AssetModel(models.Model):
    """Specification of a fixed asset type (e.g. a microscope model)."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    category = models.ForeignKey(Category, on_delete=models.PROTECT, related_name='asset_models', null=True, blank=True)
    brand = models.ForeignKey(Brand, on_delete=models.PROTECT, related_name='asset_models', null=True, blank=True)
    name = models.CharField(max_length=255)
    model_number = models.CharField(max_length=100, blank=True, null=True)
    is_movable = models.BooleanField(default=False)
    specifications = models.JSONField(default=dict, blank=True)
    description = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'asset_models'
        ordering = ['name']

    def __str__(self):
        return self.name


# ---------------------------------------------------------------------------
# Stocks
# ---------------------------------------------------------------------------

class WarehouseStock(models.Model):
    """A consumable batch held in a warehouse."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT, related_name='stocks')
    consumable = models.ForeignKey(Consumable, on_delete=models.PROTECT, related_name='warehouse_stocks')
    quantity = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0'),
        validators=[MinValueValidator(Decimal('0'))]
    )
    batch_number = models.CharField(max_length=100, default='-')
    expiry_date = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'warehouse_stocks'
        ordering = ['expiry_date', 'updated_at']
        constraints = [
            models.UniqueConstraint(
                fields=['warehouse', 'consumable', 'batch_number'],
                name='unique_stock_batch'
            ),
        ]

    def __str__(self):
        return f"{self.consumable} @ {self.warehouse} [{self.batch_number}] x{self.quantity}"


class RoomConsumable(models.Model):
    """Consumable stock delivered to a room."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    room = models.ForeignKey(Room, on_delete=models.CASCADE, related_name='consumables')
    consumable = models.ForeignKey(Consumable, on_delete=models.PROTECT, related_name='room_stocks')
    quantity = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))
    batch_number = models.CharField(max_length=100, default='-')
    expiry_date = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'room_consumables'
        ordering = ['room', 'consumable']
        indexes = [
            models.Index(fields=['room', 'consumable'], name='rc_room_item_idx'),
        ]

    def __str__(self):
        return f"{self.consumable} @ {self.room} x{self.quantity}"


def generate_qr_token(model_id, prefix=None):
    """
    Build a physical asset token: ``<prefix>-<model fragment>-<8 hex chars>``.

    The fragment is the first three characters of the asset model id.
    """
    prefix = prefix or getattr(settings, 'INVENTA_QR_TOKEN_PREFIX', 'QR')
    fragment = str(model_id).replace('-', '')[:3].upper()
    return f"{prefix}-{fragment}-{secrets.token_hex(4).upper()}"


class FixedAsset(models.Model):
    """
    One physically trackable asset unit.

    The asset lives either in a room or in a warehouse, never both.
    """
    MOVEMENT_IN_STORE = 'IN_STORE'
    MOVEMENT_IN_USE = 'IN_USE'
    MOVEMENT_IN_TRANSIT = 'IN_TRANSIT'
    MOVEMENT_LOST = 'LOST'
    MOVEMENT_STATUS_CHOICES = [
        (MOVEMENT_IN_STORE, 'In Store'),
        (MOVEMENT_IN_USE, 'In Use'),
        (MOVEMENT_IN_TRANSIT, 'In Transit'),
        (MOVEMENT_LOST, 'Lost'),
    ]

    CONDITION_GOOD = 'GOOD'
    CONDITION_MINOR_DAMAGE = 'MINOR_DAMAGE'
    CONDITION_MAJOR_DAMAGE = 'MAJOR_DAMAGE'
    CONDITION_BROKEN = 'BROKEN'
    CONDITION_MAINTENANCE = 'MAINTENANCE'
    CONDITION_CHOICES = [
        (CONDITION_GOOD, 'Good'),
        (CONDITION_MINOR_DAMAGE, 'Minor Damage'),
        (CONDITION_MAJOR_DAMAGE, 'Major Damage'),
        (CONDITION_BROKEN, 'Broken'),
        ('LOST', 'Lost'),
        (CONDITION_MAINTENANCE, 'Maintenance'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    model = models.ForeignKey(AssetModel, on_delete=models.PROTECT, related_name='assets')
    room = models.ForeignKey(Room, on_delete=models.PROTECT, related_name='fixed_assets', null=True, blank=True)
    warehouse = models.ForeignKey(
        Warehouse,
        on_delete=models.PROTECT,
        related_name='fixed_assets',
        null=True,
        blank=True
    )
    custodian = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='custodied_assets',
        null=True,
        blank=True
    )
    inventory_number = models.CharField(max_length=100, unique=True, null=True, blank=True)
    is_movable = models.BooleanField(default=True)
    movement_status = models.CharField(
        max_length=20,
        choices=MOVEMENT_STATUS_CHOICES,
        default=MOVEMENT_IN_STORE,
        db_index=True
    )
    qr_token = models.CharField(max_length=64, unique=True)
    serial_number = models.CharField(max_length=100, blank=True, null=True)
    condition = models.CharField(max_length=20, choices=CONDITION_CHOICES, default=CONDITION_GOOD)
    procurement_year = models.IntegerField(null=True, blank=True)
    price = models.DecimalField(max_digits=15, decimal_places=2, null=True, blank=True)
    purchase_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'fixed_assets'
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['room', 'model', 'movement_status'], name='fa_room_model_status_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~(Q(room__isnull=False) & Q(warehouse__isnull=False)),
                name='fixed_asset_single_location'
            ),
        ]

    def __str__(self):
        return f"{self.model} [{self.qr_token}]"

    def clean(self):
        super().clean()
        if self.room_id and self.warehouse_id:
            raise ValidationError('An asset is located in a room or a warehouse, not both.')


# ---------------------------------------------------------------------------
# Stock adjustments and maintenance
# ---------------------------------------------------------------------------

class ConsumableAdjustment(models.Model):
    """Signed correction of a stock batch (physical count, damage, loss)."""
    TYPE_STOCK_OPNAME = 'STOCK_OPNAME'
    TYPE_DAMAGE = 'DAMAGE'
    TYPE_LOSS = 'LOSS'
    TYPE_CORRECTION = 'CORRECTION'
    TYPE_CHOICES = [
        (TYPE_STOCK_OPNAME, 'Stock Opname'),
        (TYPE_DAMAGE, 'Damage'),
        (TYPE_LOSS, 'Loss'),
        (TYPE_CORRECTION, 'Correction'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='stock_adjustments')
    consumable = models.ForeignKey(Consumable, on_delete=models.PROTECT, related_name='adjustments')
    warehouse = models.ForeignKey(
        Warehouse,
        on_delete=models.PROTECT,
        related_name='adjustments',
        null=True,
        blank=True
    )
    room = models.ForeignKey(Room, on_delete=models.PROTECT, related_name='adjustments', null=True, blank=True)
    batch_number = models.CharField(max_length=100, default='-')
    delta_quantity = models.DecimalField(max_digits=10, decimal_places=2)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_STOCK_OPNAME)
    reason = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'consumable_adjustments'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['warehouse', 'consumable', 'created_at'], name='adj_wh_item_created_idx'),
        ]

    def __str__(self):
        return f"{self.type} {self.consumable} [{self.batch_number}] {self.delta_quantity:+}"


class AssetMaintenance(models.Model):
    """Damage report and repair log of one fixed asset."""
    SEVERITY_MINOR = 'MINOR'
    SEVERITY_MODERATE = 'MODERATE'
    SEVERITY_MAJOR = 'MAJOR'
    SEVERITY_CHOICES = [
        (SEVERITY_MINOR, 'Minor'),
        (SEVERITY_MODERATE, 'Moderate'),
        (SEVERITY_MAJOR, 'Major'),
    ]

    STATUS_REPORTED = 'REPORTED'
    STATUS_IN_PROGRESS = 'IN_PROGRESS'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_IRREPARABLE = 'IRREPARABLE'
    STATUS_CHOICES = [
        (STATUS_REPORTED, 'Reported'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_IRREPARABLE, 'Irreparable'),
    ]
    CLOSED_STATUSES = (STATUS_COMPLETED, STATUS_IRREPARABLE)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    asset = models.ForeignKey(FixedAsset, on_delete=models.CASCADE, related_name='maintenances')
    reporter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='reported_maintenances'
    )
    severity = models.CharField(max_length=20, choices=SEVERITY_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_REPORTED, db_index=True)
    description = models.TextField()
    repair_cost = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0'))]
    )
    downtime_start = models.DateTimeField(default=timezone.now)
    downtime_end = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'asset_maintenances'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.asset} {self.severity} ({self.status})"

    @property
    def is_closed(self):
        return self.status in self.CLOSED_STATUSES


from .distribution_models import AssetDistribution, AssetDistributionTarget  # noqa: E402,F401

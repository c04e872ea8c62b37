"""
Requisition Models

Consumable and fixed asset requests raised by units and procurements raised
by warehouse staff. Both move through the status machine in
``requisitions.workflow`` and record every transition in an append-only
timeline. Usage reports record what a room consumed.
"""
import random
import secrets
import string
import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


class AppendOnlyQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise ValidationError(f'{self.model.__name__} entries are append-only and cannot be updated.')

    def delete(self):
        raise ValidationError(f'{self.model.__name__} entries are append-only and cannot be deleted.')


class AppendOnlyModel(models.Model):
    """Rows can be inserted but never changed or removed afterwards."""

    objects = AppendOnlyQuerySet.as_manager()

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError(f'{type(self).__name__} entries are append-only and cannot be updated.')
        kwargs['force_insert'] = True
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(f'{type(self).__name__} entries are append-only and cannot be deleted.')


# ---------------------------------------------------------------------------
# Consumable and asset requests
# ---------------------------------------------------------------------------

class Request(models.Model):
    STATUS_PENDING_UNIT = 'PENDING_UNIT'
    STATUS_PENDING_FACULTY = 'PENDING_FACULTY'
    STATUS_APPROVED = 'APPROVED'
    STATUS_PROCESSING = 'PROCESSING'
    STATUS_READY_TO_PICKUP = 'READY_TO_PICKUP'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_REJECTED = 'REJECTED'
    STATUS_CANCELED = 'CANCELED'

    TYPE_CONSUMABLE = 'CONSUMABLE'
    TYPE_ASSET = 'ASSET'
    TYPE_CHOICES = [
        (TYPE_CONSUMABLE, 'Consumable'),
        (TYPE_ASSET, 'Fixed Asset'),
    ]

    STATUS_CHOICES = [
        (STATUS_PENDING_UNIT, 'Pending Unit Approval'),
        (STATUS_PENDING_FACULTY, 'Pending Faculty Approval'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_PROCESSING, 'Processing'),
        (STATUS_READY_TO_PICKUP, 'Ready to Pick Up'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_CANCELED, 'Canceled'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    request_code = models.CharField(max_length=50, unique=True, db_index=True)
    requester = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='consumable_requests'
    )
    room = models.ForeignKey('inventory.Room', on_delete=models.PROTECT, related_name='consumable_requests')
    target_warehouse = models.ForeignKey(
        'inventory.Warehouse',
        on_delete=models.PROTECT,
        related_name='consumable_requests',
        null=True,
        blank=True
    )
    request_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_CONSUMABLE, db_index=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING_UNIT, db_index=True)
    description = models.TextField(blank=True, null=True)
    rejection_reason = models.TextField(blank=True, null=True)
    approved_by_unit = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='unit_approved_requests'
    )
    approved_by_faculty = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='faculty_approved_requests'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'requests'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'created_at'], name='req_status_created_idx'),
            models.Index(fields=['target_warehouse', 'status'], name='req_warehouse_status_idx'),
        ]

    def __str__(self):
        return f"{self.request_code} ({self.status})"

    @property
    def is_asset_request(self):
        return self.request_type == self.TYPE_ASSET

    def save(self, *args, **kwargs):
        if not self.request_code:
            self.request_code = self._generate_request_code()
        super().save(*args, **kwargs)

    @staticmethod
    def _generate_request_code():
        """Generate a code of the form REQ/YYYYMMDD/XXXXX."""
        date_part = timezone.localdate().strftime('%Y%m%d')
        alphabet = string.ascii_uppercase + string.digits
        while True:
            suffix = ''.join(secrets.choice(alphabet) for _ in range(5))
            code = f"REQ/{date_part}/{suffix}"
            if not Request.objects.filter(request_code=code).exists():
                return code


class RequestItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    request = models.ForeignKey(Request, on_delete=models.CASCADE, related_name='items')
    consumable = models.ForeignKey('inventory.Consumable', on_delete=models.PROTECT, related_name='request_items')
    qty_requested = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    qty_approved = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    class Meta:
        db_table = 'request_items'
        ordering = ['consumable__name']

    def __str__(self):
        return f"{self.consumable} x{self.qty_requested}"

    @property
    def qty_needed(self):
        return self.qty_approved if self.qty_approved is not None else self.qty_requested


class RequestAssetItem(models.Model):
    """A fixed asset model and unit count asked for by an asset request."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    request = models.ForeignKey(Request, on_delete=models.CASCADE, related_name='asset_items')
    asset_model = models.ForeignKey('inventory.AssetModel', on_delete=models.PROTECT, related_name='request_items')
    qty_requested = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    qty_approved = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        db_table = 'request_asset_items'
        ordering = ['asset_model__name']

    def __str__(self):
        return f"{self.asset_model} x{self.qty_requested}"


class RequestItemAllocation(models.Model):
    """A warehouse batch reserved for a request item at faculty approval."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    request_item = models.ForeignKey(RequestItem, on_delete=models.CASCADE, related_name='allocations')
    warehouse = models.ForeignKey('inventory.Warehouse', on_delete=models.PROTECT, related_name='request_allocations')
    consumable = models.ForeignKey('inventory.Consumable', on_delete=models.PROTECT, related_name='request_allocations')
    batch_number = models.CharField(max_length=100, default='-')
    expiry_date = models.DateTimeField(null=True, blank=True)
    quantity = models.DecimalField(max_digits=10, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'request_item_allocations'
        ordering = ['expiry_date', 'created_at']

    def __str__(self):
        return f"{self.consumable} [{self.batch_number}] x{self.quantity}"


class RequestTimeline(AppendOnlyModel):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    request = models.ForeignKey(Request, on_delete=models.CASCADE, related_name='timelines')
    status = models.CharField(max_length=20, choices=Request.STATUS_CHOICES)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='request_timeline_entries'
    )
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(default=timezone.now, editable=False)

    class Meta:
        db_table = 'request_timelines'
        ordering = ['created_at']

    def __str__(self):
        return f"{self.request_id} -> {self.status}"


# ---------------------------------------------------------------------------
# Procurements
# ---------------------------------------------------------------------------

class Procurement(models.Model):
    STATUS_PENDING = 'PENDING'
    STATUS_APPROVED = 'APPROVED'
    STATUS_REJECTED = 'REJECTED'
    STATUS_COMPLETED = 'COMPLETED'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_COMPLETED, 'Completed'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    procurement_code = models.CharField(max_length=50, unique=True, db_index=True)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='procurements')
    warehouse = models.ForeignKey(
        'inventory.Warehouse',
        on_delete=models.PROTECT,
        related_name='procurements',
        null=True,
        blank=True
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    description = models.TextField()
    supplier = models.CharField(max_length=255, blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'procurements'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.procurement_code} ({self.status})"

    def save(self, *args, **kwargs):
        if not self.procurement_code:
            self.procurement_code = self._generate_procurement_code()
        super().save(*args, **kwargs)

    @staticmethod
    def _generate_procurement_code():
        """Generate a code of the form PO/YYYY/NNNN."""
        year = timezone.localdate().year
        while True:
            code = f"PO/{year}/{random.randint(1000, 9999)}"
            if not Procurement.objects.filter(procurement_code=code).exists():
                return code


class ProcurementItem(models.Model):
    CONDITION_GOOD = 'GOOD'
    CONDITION_DAMAGED = 'DAMAGED'
    CONDITION_INCOMPLETE = 'INCOMPLETE'
    CONDITION_CHOICES = [
        (CONDITION_GOOD, 'Good'),
        (CONDITION_DAMAGED, 'Damaged'),
        (CONDITION_INCOMPLETE, 'Incomplete'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    procurement = models.ForeignKey(Procurement, on_delete=models.CASCADE, related_name='items')
    consumable = models.ForeignKey('inventory.Consumable', on_delete=models.PROTECT, related_name='procurement_items')
    warehouse = models.ForeignKey(
        'inventory.Warehouse',
        on_delete=models.PROTECT,
        related_name='procurement_items',
        null=True,
        blank=True
    )
    quantity = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    received_quantity = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    price_per_unit = models.DecimalField(max_digits=15, decimal_places=2, null=True, blank=True)
    batch_number = models.CharField(max_length=100, blank=True, null=True)
    expiry_date = models.DateTimeField(null=True, blank=True)
    condition = models.CharField(max_length=20, choices=CONDITION_CHOICES, blank=True, null=True)
    notes = models.TextField(blank=True, null=True)

    class Meta:
        db_table = 'procurement_consumables'
        ordering = ['consumable__name']

    def __str__(self):
        return f"{self.consumable} x{self.quantity}"


class ProcurementTimeline(AppendOnlyModel):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    procurement = models.ForeignKey(Procurement, on_delete=models.CASCADE, related_name='timelines')
    status = models.CharField(max_length=20, choices=Procurement.STATUS_CHOICES)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='procurement_timeline_entries'
    )
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(default=timezone.now, editable=False)

    class Meta:
        db_table = 'procurement_timelines'
        ordering = ['created_at']

    def __str__(self):
        return f"{self.procurement_id} -> {self.status}"


# ---------------------------------------------------------------------------
# Room usage reports
# ---------------------------------------------------------------------------

class UsageReport(models.Model):
    """Consumables used up in a room during one activity (e.g. a practicum)."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='usage_reports')
    room = models.ForeignKey('inventory.Room', on_delete=models.PROTECT, related_name='usage_reports')
    activity_name = models.CharField(max_length=255)
    activity_date = models.DateTimeField(default=timezone.now, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'usage_reports'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.activity_name} @ {self.room}"


class UsageDetail(models.Model):
    """Quantity taken from one room batch; kept per batch so it can be put back."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    report = models.ForeignKey(UsageReport, on_delete=models.CASCADE, related_name='details')
    consumable = models.ForeignKey('inventory.Consumable', on_delete=models.PROTECT, related_name='usage_details')
    batch_number = models.CharField(max_length=100, default='-')
    expiry_date = models.DateTimeField(null=True, blank=True)
    qty_used = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )

    class Meta:
        db_table = 'usage_details'
        ordering = ['consumable__name', 'expiry_date']

    def __str__(self):
        return f"{self.consumable} [{self.batch_number}] x{self.qty_used}"

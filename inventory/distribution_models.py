"""
Asset distribution ("dropping") models

A distribution ships a quantity of one asset model to several rooms. Each
destination room has one target row recording how many units were allocated
and how many the room has confirmed as received.
"""
import time
import uuid

from django.conf import settings
from django.db import models
from django.db.models import F, Q


class AssetDistribution(models.Model):
    STATUS_DRAFT = 'DRAFT'
    STATUS_SHIPPED = 'SHIPPED'
    STATUS_COMPLETED = 'COMPLETED'

    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_SHIPPED, 'Shipped'),
        (STATUS_COMPLETED, 'Completed'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    distribution_code = models.CharField(max_length=50, unique=True, db_index=True)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='asset_distributions'
    )
    model = models.ForeignKey(
        'inventory.AssetModel',
        on_delete=models.PROTECT,
        related_name='distributions'
    )
    total_quantity = models.PositiveIntegerField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT, db_index=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'asset_distributions'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'created_at'], name='dist_status_created_idx'),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(total_quantity__gt=0), name='dist_total_quantity_positive'),
        ]

    def __str__(self):
        return f"{self.distribution_code} - {self.model} x{self.total_quantity} ({self.status})"

    def save(self, *args, **kwargs):
        if not self.distribution_code:
            self.distribution_code = self._generate_distribution_code()
        super().save(*args, **kwargs)

    @staticmethod
    def _generate_distribution_code():
        """Generate a code of the form DROP-XXXXXX from the current timestamp."""
        stamp = int(time.time() * 1000)
        while True:
            code = f"DROP-{str(stamp)[-6:]}"
            if not AssetDistribution.objects.filter(distribution_code=code).exists():
                return code
            stamp += 1

    @property
    def is_draft(self):
        return self.status == self.STATUS_DRAFT

    @property
    def allocated_total(self):
        return sum(target.allocated_quantity for target in self.targets.all())

    @property
    def received_total(self):
        return sum(target.received_quantity for target in self.targets.all())


class AssetDistributionTarget(models.Model):
    """One destination room's share within a distribution."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    distribution = models.ForeignKey(
        AssetDistribution,
        on_delete=models.CASCADE,
        related_name='targets'
    )
    target_room = models.ForeignKey(
        'inventory.Room',
        on_delete=models.PROTECT,
        related_name='distribution_targets'
    )
    allocated_quantity = models.PositiveIntegerField()
    received_quantity = models.PositiveIntegerField(default=0)
    receiver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='received_distribution_targets'
    )
    received_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'asset_distribution_targets'
        ordering = ['distribution', 'target_room__name']
        constraints = [
            models.UniqueConstraint(fields=['distribution', 'target_room'], name='unique_distribution_room'),
            models.CheckConstraint(
                condition=Q(received_quantity__lte=F('allocated_quantity')),
                name='target_received_within_allocated'
            ),
        ]

    def __str__(self):
        return f"{self.distribution.distribution_code} -> {self.target_room} ({self.received_quantity}/{self.allocated_quantity})"

    @property
    def pending_quantity(self):
        return self.allocated_quantity - self.received_quantity

    @property
    def is_fully_received(self):
        return self.received_quantity >= self.allocated_quantity

"""
Stock opname services

A physical count sets a warehouse batch to the quantity found on the shelf.
The signed difference is written to the ``ConsumableAdjustment`` ledger next
to an audit log row, so the history of a batch can be rebuilt from both.
"""
import logging
from decimal import Decimal, InvalidOperation

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction

from accounts.utils import log_user_action

from .exceptions import NotFoundError, RoleNotAllowed, ValidationFailed
from .models import ConsumableAdjustment, WarehouseStock

logger = logging.getLogger(__name__)

User = get_user_model()

ROUTINE_MATCH_REASON = 'Routine count (matches system stock)'


def _to_physical_quantity(value):
    try:
        quantity = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationFailed('Physical quantity must be a number.')
    if not quantity.is_finite() or quantity < 0:
        raise ValidationFailed('Physical quantity cannot be negative.')
    return quantity


@transaction.atomic
def submit_stock_opname(actor, warehouse_stock_id, physical_qty, reason=None,
                        adjustment_type=ConsumableAdjustment.TYPE_STOCK_OPNAME, request=None):
    """
    Record the counted quantity of one warehouse batch.

    Returns the ``ConsumableAdjustment`` holding ``physical - system``. A count
    that matches the system stock still writes a zero-delta row as proof of
    the check.
    """
    if not (actor.is_super_admin or actor.role == User.ROLE_WAREHOUSE_STAFF):
        raise RoleNotAllowed('Only warehouse staff can record stock counts.')
    if adjustment_type not in dict(ConsumableAdjustment.TYPE_CHOICES):
        raise ValidationFailed('Unknown adjustment type.', {'type': adjustment_type})
    physical = _to_physical_quantity(physical_qty)

    try:
        stock = WarehouseStock.objects.select_for_update().select_related('consumable').get(pk=warehouse_stock_id)
    except (WarehouseStock.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError('Stock batch not found.')
    if not actor.is_super_admin and stock.warehouse_id != actor.warehouse_id:
        raise RoleNotAllowed('This batch belongs to another warehouse.')

    system_qty = stock.quantity
    delta = physical - system_qty
    reason = (reason or '').strip()
    if not reason and delta == 0:
        reason = ROUTINE_MATCH_REASON
    if len(reason) < 3:
        raise ValidationFailed('An adjustment reason of at least 3 characters is required.')

    adjustment = ConsumableAdjustment.objects.create(
        user=actor,
        consumable_id=stock.consumable_id,
        warehouse_id=stock.warehouse_id,
        batch_number=stock.batch_number,
        delta_quantity=delta,
        type=adjustment_type,
        reason=reason,
    )
    stock.quantity = physical
    stock.save(update_fields=['quantity', 'updated_at'])

    log_user_action(
        actor, adjustment_type, WarehouseStock._meta.db_table, stock.pk,
        old_values={'quantity': str(system_qty), 'batch_number': stock.batch_number},
        new_values={
            'quantity': str(physical),
            'type': adjustment_type,
            'reason': reason,
            'delta': str(delta),
        },
        request=request,
    )
    logger.info(
        "Stock count for %s [%s]: %s -> %s (%s) by %s",
        stock.consumable.name, stock.batch_number, system_qty, physical, adjustment_type, actor.pk,
    )
    return adjustment

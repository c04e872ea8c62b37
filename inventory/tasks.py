"""
Celery tasks for Inventory Management
Periodic stock checks feeding the notification center
"""

from celery import shared_task
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Sum
import logging

logger = logging.getLogger(__name__)


@shared_task(name='inventory.tasks.check_low_warehouse_stock')
def check_low_warehouse_stock(warehouse_id: str = None):
    """
    Notify warehouse staff about consumables below their minimum stock.

    Args:
        warehouse_id: Optional warehouse UUID to restrict the check to

    Returns:
        dict: Number of low-stock lines and notified users
    """
    from accounts.models import Notification
    from accounts.utils import notify_users
    from inventory.models import Consumable, Warehouse, WarehouseStock

    User = get_user_model()

    warehouses = Warehouse.objects.all()
    if warehouse_id:
        warehouses = warehouses.filter(id=warehouse_id)

    low_lines = 0
    notified = 0
    for warehouse in warehouses:
        totals = dict(
            WarehouseStock.objects.filter(warehouse=warehouse)
            .order_by()
            .values_list('consumable_id')
            .annotate(total=Sum('quantity'))
        )
        consumables = Consumable.objects.filter(id__in=totals.keys(), is_active=True)
        low_items = [
            (consumable, totals[consumable.id])
            for consumable in consumables
            if totals[consumable.id] < consumable.minimum_stock
        ]
        if not low_items:
            continue

        low_lines += len(low_items)
        items_list = "\n".join(
            f"- {consumable.name}: {quantity} {consumable.base_unit} remaining "
            f"(minimum {consumable.minimum_stock})"
            for consumable, quantity in low_items[:20]
        )
        staff = User.objects.filter(
            warehouse=warehouse,
            role=User.ROLE_WAREHOUSE_STAFF,
            is_active=True,
        )
        with transaction.atomic():
            notifications = notify_users(
                staff,
                f'Low stock in {warehouse.name}',
                f'The following consumables are below their minimum stock:\n{items_list}',
                link='/dashboard/warehouse-stocks',
                type=Notification.TYPE_WARNING,
            )
        notified += len(notifications)
        logger.info(f"Warehouse {warehouse.name}: {len(low_items)} low stock line(s)")

    return {'low_stock_lines': low_lines, 'notified': notified}

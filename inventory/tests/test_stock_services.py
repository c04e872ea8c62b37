"""
Stock opname service tests

Run with: python manage.py test inventory.tests.test_stock_services
"""
from decimal import Decimal

from django.test import TestCase

from accounts.models import AuditLog, User
from inventory.exceptions import NotFoundError, RoleNotAllowed, ValidationFailed
from inventory.models import ConsumableAdjustment, Warehouse, WarehouseStock
from inventory.stock_services import ROUTINE_MATCH_REASON, submit_stock_opname
from inventory.tests.mixins import InventaTestMixin


class StockOpnameTests(InventaTestMixin, TestCase):
    def setUp(self):
        self.create_fixtures()
        self.stock = self.add_stock(self.consumable, 20, batch_number='ETH-01')

    def test_shortage_is_recorded_as_negative_delta(self):
        adjustment = submit_stock_opname(self.warehouse_staff, self.stock.pk, '18', reason='Two bottles broken')

        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity, Decimal('18'))
        self.assertEqual(adjustment.delta_quantity, Decimal('-2'))
        self.assertEqual(adjustment.type, ConsumableAdjustment.TYPE_STOCK_OPNAME)
        self.assertEqual(adjustment.batch_number, 'ETH-01')
        self.assertEqual(adjustment.warehouse, self.warehouse)

        log = AuditLog.objects.get(action='STOCK_OPNAME', table_name='warehouse_stocks')
        self.assertEqual(log.record_id, str(self.stock.pk))
        self.assertEqual(Decimal(log.old_values['quantity']), Decimal('20'))
        self.assertEqual(Decimal(log.new_values['delta']), Decimal('-2'))

    def test_matching_count_keeps_zero_delta_row(self):
        adjustment = submit_stock_opname(self.warehouse_staff, self.stock.pk, 20)

        self.assertEqual(adjustment.delta_quantity, Decimal('0'))
        self.assertEqual(adjustment.reason, ROUTINE_MATCH_REASON)
        self.assertEqual(ConsumableAdjustment.objects.count(), 1)

    def test_difference_needs_a_reason(self):
        with self.assertRaises(ValidationFailed):
            submit_stock_opname(self.warehouse_staff, self.stock.pk, 25, reason=' ')
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity, Decimal('20'))
        self.assertFalse(ConsumableAdjustment.objects.exists())

    def test_negative_count_is_refused(self):
        with self.assertRaises(ValidationFailed):
            submit_stock_opname(self.warehouse_staff, self.stock.pk, -1, reason='Typo')

    def test_damage_adjustment_type(self):
        adjustment = submit_stock_opname(
            self.super_admin, self.stock.pk, 15, reason='Leaking canisters',
            adjustment_type=ConsumableAdjustment.TYPE_DAMAGE,
        )
        self.assertEqual(adjustment.type, ConsumableAdjustment.TYPE_DAMAGE)
        self.assertTrue(AuditLog.objects.filter(action='DAMAGE').exists())

    def test_scope(self):
        other_warehouse = Warehouse.objects.create(
            name='Chemicals Store', type=Warehouse.TYPE_CHEMICAL, faculty=self.faculty
        )
        other_staff = self.create_user(User.ROLE_WAREHOUSE_STAFF, warehouse=other_warehouse)
        with self.assertRaises(RoleNotAllowed):
            submit_stock_opname(other_staff, self.stock.pk, 10, reason='Recount')
        with self.assertRaises(RoleNotAllowed):
            submit_stock_opname(self.unit_admin, self.stock.pk, 10, reason='Recount')
        with self.assertRaises(NotFoundError):
            submit_stock_opname(self.warehouse_staff, '00000000-0000-0000-0000-000000000000', 10, reason='Recount')
        self.assertEqual(WarehouseStock.objects.get(pk=self.stock.pk).quantity, Decimal('20'))

"""
Request and procurement workflow service tests

Run with: python manage.py test requisitions.tests.test_services
"""
from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from accounts.models import AuditLog, Notification, User
from inventory.exceptions import (
    InvalidStateError,
    InvalidTransition,
    NotFoundError,
    RoleNotAllowed,
    ValidationFailed,
)
from inventory.models import RoomConsumable, Warehouse, WarehouseStock
from inventory.tests.mixins import InventaTestMixin
from requisitions import services
from requisitions.models import (
    Procurement,
    ProcurementItem,
    Request,
    RequestItemAllocation,
    RequestTimeline,
)


class RequestTestMixin(InventaTestMixin):
    def setUp(self):
        self.create_fixtures()
        now = timezone.now()
        self.early_expiry = now + timedelta(days=10)
        self.late_expiry = now + timedelta(days=60)
        self.late = self.add_stock(self.consumable, 5, batch_number='B-LATE', expiry_date=self.late_expiry)
        self.early = self.add_stock(self.consumable, 3, batch_number='B-EARLY', expiry_date=self.early_expiry)
        self.undated = self.add_stock(self.consumable, 10, batch_number='B-NONE')

    def submit(self, quantity=4, requester=None, consumable=None, room=None):
        return services.create_request(
            requester or self.unit_staff,
            (room or self.room).pk,
            self.warehouse.pk,
            [{'consumable_id': (consumable or self.consumable).pk, 'quantity': quantity}],
            description='For titration practicum',
        )

    def approve_fully(self, quantity=4):
        request_obj = self.submit(quantity)
        services.approve_request(request_obj.pk, self.unit_admin)
        return services.approve_request(request_obj.pk, self.faculty_admin)


class CreateRequestTests(RequestTestMixin, TestCase):
    def test_unit_staff_request_waits_for_unit(self):
        request_obj = self.submit()

        self.assertEqual(request_obj.status, Request.STATUS_PENDING_UNIT)
        item = request_obj.items.get()
        self.assertEqual(item.qty_requested, Decimal('4'))
        self.assertEqual(item.qty_approved, Decimal('4'))
        self.assertEqual(request_obj.timelines.count(), 1)
        self.assertTrue(AuditLog.objects.filter(action='CREATE', table_name='requests').exists())
        self.assertEqual(Notification.objects.filter(user=self.unit_admin).count(), 1)
        self.assertFalse(Notification.objects.filter(user=self.faculty_admin).exists())

    def test_unit_admin_request_goes_to_faculty(self):
        request_obj = self.submit(requester=self.unit_admin)

        self.assertEqual(request_obj.status, Request.STATUS_PENDING_FACULTY)
        self.assertEqual(request_obj.approved_by_unit, self.unit_admin)
        self.assertEqual(Notification.objects.filter(user=self.faculty_admin).count(), 1)

    def test_room_must_belong_to_requesters_unit(self):
        with self.assertRaises(ValidationFailed):
            self.submit(room=self.other_room)
        self.assertFalse(Request.objects.exists())

    def test_stock_estimate_is_checked(self):
        with self.assertRaises(ValidationFailed) as ctx:
            self.submit(quantity=100)
        self.assertEqual(Decimal(ctx.exception.details['available']), Decimal('18'))

    def test_duplicate_consumables_are_refused(self):
        with self.assertRaises(ValidationFailed):
            services.create_request(
                self.unit_staff, self.room.pk, self.warehouse.pk,
                [
                    {'consumable_id': self.consumable.pk, 'quantity': 1},
                    {'consumable_id': self.consumable.pk, 'quantity': 2},
                ],
            )

    def test_non_positive_quantity_is_refused(self):
        with self.assertRaises(ValidationFailed):
            self.submit(quantity=0)

    def test_warehouse_staff_cannot_request(self):
        with self.assertRaises(RoleNotAllowed):
            self.submit(requester=self.warehouse_staff)


class RequestWorkflowTests(RequestTestMixin, TestCase):
    def test_full_flow_allocates_fefo_and_delivers(self):
        request_obj = self.submit(quantity=4)

        request_obj = services.approve_request(request_obj.pk, self.unit_admin)
        self.assertEqual(request_obj.status, Request.STATUS_PENDING_FACULTY)
        self.assertEqual(request_obj.approved_by_unit, self.unit_admin)

        request_obj = services.approve_request(request_obj.pk, self.faculty_admin)
        self.assertEqual(request_obj.status, Request.STATUS_APPROVED)
        self.assertEqual(request_obj.approved_by_faculty, self.faculty_admin)

        allocations = {
            a.batch_number: a.quantity
            for a in RequestItemAllocation.objects.filter(request_item__request=request_obj)
        }
        self.assertEqual(allocations, {'B-EARLY': Decimal('3'), 'B-LATE': Decimal('1')})
        self.assertFalse(WarehouseStock.objects.filter(pk=self.early.pk).exists())
        self.late.refresh_from_db()
        self.undated.refresh_from_db()
        self.assertEqual(self.late.quantity, Decimal('4'))
        self.assertEqual(self.undated.quantity, Decimal('10'))

        services.process_request(request_obj.pk, self.warehouse_staff)
        services.mark_request_ready(request_obj.pk, self.warehouse_staff)
        request_obj = services.complete_request(request_obj.pk, self.warehouse_staff)

        self.assertEqual(request_obj.status, Request.STATUS_COMPLETED)
        room_stock = {
            rc.batch_number: rc.quantity
            for rc in RoomConsumable.objects.filter(room=self.room, consumable=self.consumable)
        }
        self.assertEqual(room_stock, {'B-EARLY': Decimal('3'), 'B-LATE': Decimal('1')})
        self.assertEqual(
            list(RequestTimeline.objects.filter(request=request_obj).values_list('status', flat=True)),
            [
                Request.STATUS_PENDING_UNIT,
                Request.STATUS_PENDING_FACULTY,
                Request.STATUS_APPROVED,
                Request.STATUS_PROCESSING,
                Request.STATUS_READY_TO_PICKUP,
                Request.STATUS_COMPLETED,
            ],
        )

        with self.assertRaises(InvalidStateError) as ctx:
            services.complete_request(request_obj.pk, self.warehouse_staff)
        self.assertIn('already been picked up', ctx.exception.message)

    def test_delivery_merges_matching_room_batch(self):
        RoomConsumable.objects.create(
            room=self.room, consumable=self.consumable, batch_number='B-EARLY',
            expiry_date=self.early_expiry, quantity=Decimal('2'),
        )
        request_obj = self.approve_fully(quantity=2)
        services.process_request(request_obj.pk, self.warehouse_staff)
        services.mark_request_ready(request_obj.pk, self.warehouse_staff)
        services.complete_request(request_obj.pk, self.warehouse_staff)

        rows = RoomConsumable.objects.filter(room=self.room, consumable=self.consumable)
        self.assertEqual(rows.count(), 1)
        self.assertEqual(rows.get().quantity, Decimal('4'))

    def test_insufficient_stock_at_faculty_approval(self):
        request_obj = self.submit(quantity=4)
        services.approve_request(request_obj.pk, self.unit_admin)
        WarehouseStock.objects.update(quantity=Decimal('1'))

        with self.assertRaises(ValidationFailed) as ctx:
            services.approve_request(request_obj.pk, self.faculty_admin)
        self.assertEqual(Decimal(ctx.exception.details['available']), Decimal('3'))

        request_obj.refresh_from_db()
        self.assertEqual(request_obj.status, Request.STATUS_PENDING_FACULTY)
        self.assertFalse(RequestItemAllocation.objects.exists())

    def test_steps_cannot_be_skipped(self):
        request_obj = self.submit()
        with self.assertRaises(RoleNotAllowed):
            services.approve_request(request_obj.pk, self.faculty_admin)
        with self.assertRaises(InvalidTransition):
            services.process_request(request_obj.pk, self.warehouse_staff)
        with self.assertRaises(InvalidTransition):
            services.complete_request(request_obj.pk, self.warehouse_staff)

        request_obj.refresh_from_db()
        self.assertEqual(request_obj.status, Request.STATUS_PENDING_UNIT)

    def test_other_unit_admin_cannot_approve(self):
        stranger = self.create_user(User.ROLE_UNIT_ADMIN, unit=self.other_unit)
        request_obj = self.submit()
        with self.assertRaises(RoleNotAllowed):
            services.approve_request(request_obj.pk, stranger)

    def test_other_warehouse_cannot_handle(self):
        other_warehouse = Warehouse.objects.create(
            name='Annex Warehouse', type=Warehouse.TYPE_CHEMICAL, faculty=self.faculty
        )
        outsider = self.create_user(User.ROLE_WAREHOUSE_STAFF, warehouse=other_warehouse)
        request_obj = self.approve_fully()
        with self.assertRaises(RoleNotAllowed):
            services.process_request(request_obj.pk, outsider)

    def test_unknown_request(self):
        with self.assertRaises(NotFoundError):
            services.approve_request('00000000-0000-0000-0000-000000000000', self.unit_admin)


class RejectAndCancelTests(RequestTestMixin, TestCase):
    def test_reject_requires_reason(self):
        request_obj = self.submit()
        with self.assertRaises(ValidationFailed):
            services.reject_request(request_obj.pk, self.unit_admin, '  ')

    def test_unit_rejection(self):
        request_obj = self.submit()
        request_obj = services.reject_request(request_obj.pk, self.unit_admin, 'Not in budget')

        self.assertEqual(request_obj.status, Request.STATUS_REJECTED)
        self.assertEqual(request_obj.rejection_reason, 'Not in budget')
        notification = Notification.objects.get(user=self.unit_staff)
        self.assertEqual(notification.type, Notification.TYPE_ERROR)

    def test_rejection_after_approval_returns_stock(self):
        request_obj = self.approve_fully(quantity=4)
        services.process_request(request_obj.pk, self.warehouse_staff)

        services.reject_request(request_obj.pk, self.warehouse_staff, 'Batch recalled')

        self.assertFalse(RequestItemAllocation.objects.exists())
        early = WarehouseStock.objects.get(warehouse=self.warehouse, consumable=self.consumable, batch_number='B-EARLY')
        self.assertEqual(early.quantity, Decimal('3'))
        self.assertEqual(early.expiry_date, self.early_expiry)
        self.late.refresh_from_db()
        self.assertEqual(self.late.quantity, Decimal('5'))

    def test_rejected_is_terminal(self):
        request_obj = self.submit()
        services.reject_request(request_obj.pk, self.unit_admin, 'No')
        with self.assertRaises(InvalidTransition):
            services.approve_request(request_obj.pk, self.faculty_admin)

    def test_cancel_keeps_the_record(self):
        request_obj = self.submit()
        request_obj = services.cancel_request(request_obj.pk, self.unit_staff)

        self.assertEqual(request_obj.status, Request.STATUS_CANCELED)
        self.assertTrue(Request.objects.filter(pk=request_obj.pk).exists())
        self.assertTrue(AuditLog.objects.filter(action='CANCEL', record_id=str(request_obj.pk)).exists())

        with self.assertRaises(InvalidTransition):
            services.cancel_request(request_obj.pk, self.unit_staff)

    def test_only_requester_can_cancel(self):
        request_obj = self.submit()
        with self.assertRaises(RoleNotAllowed):
            services.cancel_request(request_obj.pk, self.unit_admin)

    def test_cannot_cancel_after_approval(self):
        request_obj = self.approve_fully()
        with self.assertRaises(InvalidTransition):
            services.cancel_request(request_obj.pk, self.unit_staff)


class UpdateRequestTests(RequestTestMixin, TestCase):
    def test_revise_pending_request(self):
        request_obj = self.submit(quantity=2)
        request_obj = services.update_request(
            request_obj.pk, self.unit_staff, self.room_b.pk, self.warehouse.pk,
            [{'consumable_id': self.consumable.pk, 'quantity': 6}],
            description='More needed',
        )

        self.assertEqual(request_obj.status, Request.STATUS_PENDING_UNIT)
        self.assertEqual(request_obj.room, self.room_b)
        self.assertEqual(request_obj.items.get().qty_requested, Decimal('6'))
        self.assertTrue(request_obj.timelines.filter(notes='Request revised.').exists())

    def test_cannot_revise_after_unit_approval(self):
        request_obj = self.submit()
        services.approve_request(request_obj.pk, self.unit_admin)
        with self.assertRaises(InvalidTransition):
            services.update_request(
                request_obj.pk, self.unit_staff, self.room.pk, self.warehouse.pk,
                [{'consumable_id': self.consumable.pk, 'quantity': 1}],
            )

    def test_only_requester_can_revise(self):
        request_obj = self.submit()
        colleague = self.create_user(User.ROLE_UNIT_STAFF, unit=self.unit)
        with self.assertRaises(RoleNotAllowed):
            services.update_request(
                request_obj.pk, colleague, self.room.pk, self.warehouse.pk,
                [{'consumable_id': self.consumable.pk, 'quantity': 1}],
            )


class ProcurementServiceTests(InventaTestMixin, TestCase):
    def setUp(self):
        self.create_fixtures()

    def create(self, actor=None, items=None):
        return services.create_procurement(
            actor or self.warehouse_staff,
            'Quarterly restock',
            items or [
                {'consumable_id': self.consumable.pk, 'quantity': 20, 'price_per_unit': Decimal('12.50')},
                {'consumable_id': self.paper.pk, 'quantity': 10},
            ],
            supplier='PT Kimia',
        )

    def test_create(self):
        procurement = self.create()

        self.assertEqual(procurement.status, Procurement.STATUS_PENDING)
        self.assertRegex(procurement.procurement_code, r'^PO/\d{4}/\d{4}$')
        self.assertEqual(procurement.warehouse, self.warehouse)
        self.assertEqual(procurement.items.count(), 2)
        self.assertEqual(set(procurement.items.values_list('warehouse_id', flat=True)), {self.warehouse.pk})
        self.assertEqual(Notification.objects.filter(user=self.faculty_admin).count(), 1)

    def test_description_is_required(self):
        with self.assertRaises(ValidationFailed):
            services.create_procurement(
                self.warehouse_staff, 'ab', [{'consumable_id': self.paper.pk, 'quantity': 1}]
            )

    def test_only_warehouse_staff_can_create(self):
        with self.assertRaises(RoleNotAllowed):
            self.create(actor=self.unit_admin)

    def test_revise_replaces_items(self):
        procurement = self.create()
        procurement = services.update_procurement(
            procurement.pk, self.warehouse_staff, 'Quarterly restock (revised)',
            [{'consumable_id': self.paper.pk, 'quantity': 15}],
        )
        self.assertEqual(procurement.description, 'Quarterly restock (revised)')
        self.assertEqual(list(procurement.items.values_list('quantity', flat=True)), [Decimal('15')])

        other_staff = self.create_user(User.ROLE_WAREHOUSE_STAFF, warehouse=self.warehouse)
        with self.assertRaises(RoleNotAllowed):
            services.update_procurement(
                procurement.pk, other_staff, 'Hijack', [{'consumable_id': self.paper.pk, 'quantity': 1}]
            )

    def test_approve_then_no_more_revisions(self):
        procurement = self.create()
        procurement = services.approve_procurement(procurement.pk, self.faculty_admin)
        self.assertEqual(procurement.status, Procurement.STATUS_APPROVED)

        with self.assertRaises(InvalidTransition):
            services.update_procurement(
                procurement.pk, self.warehouse_staff, 'Too late', [{'consumable_id': self.paper.pk, 'quantity': 1}]
            )

    def test_reject_stores_reason(self):
        procurement = self.create()
        procurement = services.reject_procurement(procurement.pk, self.super_admin, 'Over budget')

        self.assertEqual(procurement.status, Procurement.STATUS_REJECTED)
        self.assertEqual(procurement.notes, 'Over budget')
        self.assertTrue(procurement.timelines.filter(notes='Rejected: Over budget').exists())

    def test_delete_only_while_pending(self):
        procurement = self.create()
        services.delete_procurement(procurement.pk, self.warehouse_staff)
        self.assertFalse(Procurement.objects.exists())

        procurement = self.create()
        services.approve_procurement(procurement.pk, self.faculty_admin)
        with self.assertRaises(InvalidStateError):
            services.delete_procurement(procurement.pk, self.super_admin)

    def test_receive_requires_batch_and_expiry_for_dated_items(self):
        procurement = self.create()
        services.approve_procurement(procurement.pk, self.faculty_admin)
        ethanol = procurement.items.get(consumable=self.consumable)

        with self.assertRaises(ValidationFailed):
            services.receive_procurement(
                procurement.pk, self.warehouse_staff, [{'item_id': ethanol.pk, 'quantity': 20}]
            )
        procurement.refresh_from_db()
        self.assertEqual(procurement.status, Procurement.STATUS_APPROVED)

    def test_receive_stocks_good_items(self):
        existing_paper = self.add_stock(self.paper, 4)
        procurement = self.create()
        services.approve_procurement(procurement.pk, self.faculty_admin)
        ethanol = procurement.items.get(consumable=self.consumable)
        paper = procurement.items.get(consumable=self.paper)
        expiry = timezone.now() + timedelta(days=365)

        procurement = services.receive_procurement(procurement.pk, self.warehouse_staff, [
            {'item_id': ethanol.pk, 'quantity': 18, 'batch_number': 'ETH-2027', 'expiry_date': expiry},
            {'item_id': paper.pk, 'quantity': 10, 'condition': ProcurementItem.CONDITION_GOOD},
        ])

        self.assertEqual(procurement.status, Procurement.STATUS_COMPLETED)
        stock = WarehouseStock.objects.get(consumable=self.consumable, batch_number='ETH-2027')
        self.assertEqual(stock.quantity, Decimal('18'))
        self.assertEqual(stock.expiry_date, expiry)
        existing_paper.refresh_from_db()
        self.assertEqual(existing_paper.quantity, Decimal('14'))

        ethanol.refresh_from_db()
        self.assertEqual(ethanol.received_quantity, Decimal('18'))
        self.assertEqual(ethanol.condition, ProcurementItem.CONDITION_GOOD)
        self.assertTrue(AuditLog.objects.filter(action='INBOUND_RECEIPT').exists())

    def test_damaged_items_are_not_stocked(self):
        procurement = self.create(items=[{'consumable_id': self.paper.pk, 'quantity': 5}])
        services.approve_procurement(procurement.pk, self.faculty_admin)
        paper = procurement.items.get()

        services.receive_procurement(procurement.pk, self.warehouse_staff, [
            {'item_id': paper.pk, 'quantity': 5, 'condition': ProcurementItem.CONDITION_DAMAGED},
        ])
        self.assertFalse(WarehouseStock.objects.filter(consumable=self.paper).exists())

    def test_receive_rules(self):
        procurement = self.create(items=[{'consumable_id': self.paper.pk, 'quantity': 5}])
        paper = procurement.items.get()
        lines = [{'item_id': paper.pk, 'quantity': 5}]

        with self.assertRaises(InvalidTransition):
            services.receive_procurement(procurement.pk, self.warehouse_staff, lines)

        services.approve_procurement(procurement.pk, self.faculty_admin)
        other_staff = self.create_user(User.ROLE_WAREHOUSE_STAFF, warehouse=self.warehouse)
        with self.assertRaises(RoleNotAllowed):
            services.receive_procurement(procurement.pk, other_staff, lines)

        with self.assertRaises(ValidationFailed):
            services.receive_procurement(procurement.pk, self.warehouse_staff, [
                {'item_id': '00000000-0000-0000-0000-000000000000', 'quantity': 5}
            ])


class AssetRequestTests(RequestTestMixin, TestCase):
    def submit_assets(self, quantity=3, requester=None):
        return services.create_asset_request(
            requester or self.unit_staff,
            self.room.pk,
            [{'model_id': self.asset_model.pk, 'quantity': quantity}],
            description='Microscopes for the new practicum',
        )

    def test_asset_request_enters_request_workflow(self):
        request_obj = self.submit_assets()

        self.assertEqual(request_obj.request_type, Request.TYPE_ASSET)
        self.assertEqual(request_obj.status, Request.STATUS_PENDING_UNIT)
        self.assertIsNone(request_obj.target_warehouse_id)
        item = request_obj.asset_items.get()
        self.assertEqual(item.asset_model, self.asset_model)
        self.assertEqual(item.qty_requested, 3)
        self.assertFalse(request_obj.items.exists())
        self.assertEqual(Notification.objects.filter(user=self.unit_admin).count(), 1)

    def test_faculty_approval_reserves_no_stock(self):
        request_obj = self.submit_assets()
        services.approve_request(request_obj.pk, self.unit_admin)
        request_obj = services.approve_request(request_obj.pk, self.faculty_admin)

        self.assertEqual(request_obj.status, Request.STATUS_APPROVED)
        self.assertEqual(request_obj.approved_by_faculty, self.faculty_admin)
        self.assertFalse(RequestItemAllocation.objects.exists())
        self.assertEqual(WarehouseStock.objects.get(pk=self.early.pk).quantity, Decimal('3'))
        self.assertTrue(Notification.objects.filter(
            user=self.super_admin, title='Asset request ready for distribution'
        ).exists())

    def test_approved_asset_request_has_no_warehouse_steps(self):
        request_obj = self.submit_assets()
        services.approve_request(request_obj.pk, self.unit_admin)
        services.approve_request(request_obj.pk, self.faculty_admin)

        with self.assertRaises(InvalidStateError):
            services.process_request(request_obj.pk, self.warehouse_staff)
        with self.assertRaises(InvalidStateError):
            services.complete_request(request_obj.pk, self.warehouse_staff)
        request_obj.refresh_from_db()
        self.assertEqual(request_obj.status, Request.STATUS_APPROVED)

    def test_asset_request_cannot_be_revised_as_consumables(self):
        request_obj = self.submit_assets()
        with self.assertRaises(InvalidStateError):
            services.update_request(
                request_obj.pk, self.unit_staff, self.room.pk, self.warehouse.pk,
                [{'consumable_id': self.consumable.pk, 'quantity': 1}],
            )

    def test_requester_can_cancel(self):
        request_obj = self.submit_assets()
        request_obj = services.cancel_request(request_obj.pk, self.unit_staff)
        self.assertEqual(request_obj.status, Request.STATUS_CANCELED)

    def test_quantities_are_whole_units(self):
        with self.assertRaises(ValidationFailed):
            self.submit_assets(quantity='1.5')
        with self.assertRaises(ValidationFailed):
            services.create_asset_request(
                self.unit_staff, self.room.pk,
                [{'model_id': '00000000-0000-0000-0000-000000000000', 'quantity': 1}],
            )
        self.assertFalse(Request.objects.exists())

    def test_warehouse_staff_cannot_request_assets(self):
        with self.assertRaises(RoleNotAllowed):
            self.submit_assets(requester=self.warehouse_staff)

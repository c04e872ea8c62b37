"""
Asset distribution service tests

Run with: python manage.py test inventory.tests.test_distribution_services
"""
import re
import uuid
from unittest import mock

from django.core.cache import cache
from django.test import SimpleTestCase, TestCase

from accounts.models import AuditLog, Notification
from inventory.distribution_models import AssetDistribution, AssetDistributionTarget
from inventory.distribution_services import (
    create_distribution_draft,
    delete_distribution_draft,
    execute_distribution,
    generate_qr_tokens,
    get_distribution_summary,
    receive_distribution,
    update_distribution_draft,
    validate_allocations,
)
from inventory.exceptions import (
    AllocationError,
    ConsistencyError,
    InvalidStateError,
    InventaError,
    RoleNotAllowed,
    ValidationFailed,
)
from inventory.models import FixedAsset
from inventory.tests.mixins import InventaTestMixin

TOKEN_PATTERN = re.compile(r'^QR-[0-9A-F]{3}-[0-9A-F]{8}$')


class ValidateAllocationsTests(SimpleTestCase):
    def setUp(self):
        self.room_a = uuid.uuid4()
        self.room_b = uuid.uuid4()

    def test_returns_non_zero_allocations(self):
        result = validate_allocations(5, [(self.room_a, 5), (self.room_b, 0)])
        self.assertEqual(result, [(self.room_a, 5)])

    def test_accepts_dict_targets(self):
        result = validate_allocations(3, [
            {'room_id': self.room_a, 'quantity': 1},
            {'room_id': self.room_b, 'quantity': 2},
        ])
        self.assertEqual(result, [(self.room_a, 1), (self.room_b, 2)])

    def test_rejects_sum_mismatch(self):
        with self.assertRaises(AllocationError) as ctx:
            validate_allocations(5, [(self.room_a, 2), (self.room_b, 2)])
        self.assertEqual(ctx.exception.details, {'allocated': 4, 'total_quantity': 5})

    def test_rejects_duplicate_room(self):
        with self.assertRaises(AllocationError):
            validate_allocations(4, [(self.room_a, 2), (self.room_a, 2)])

    def test_rejects_negative_quantity(self):
        with self.assertRaises(AllocationError):
            validate_allocations(2, [(self.room_a, 3), (self.room_b, -1)])

    def test_rejects_empty_targets(self):
        with self.assertRaises(AllocationError):
            validate_allocations(2, [])

    def test_rejects_non_positive_total(self):
        for total in (0, -3, 2.5, True, '4'):
            with self.subTest(total=total):
                with self.assertRaises(AllocationError):
                    validate_allocations(total, [(self.room_a, 1)])

    def test_rejects_fractional_quantity(self):
        with self.assertRaises(AllocationError):
            validate_allocations(2, [(self.room_a, 1.5), (self.room_b, 0.5)])


class DistributionDraftTests(InventaTestMixin, TestCase):
    def setUp(self):
        cache.clear()
        self.create_fixtures()

    def test_create_draft_persists_targets(self):
        distribution = create_distribution_draft(
            self.warehouse_staff, self.asset_model.pk, 5,
            [(self.room.pk, 3), (self.room_b.pk, 2), (self.other_room.pk, 0)],
            notes='Semester restock',
        )

        self.assertEqual(distribution.status, AssetDistribution.STATUS_DRAFT)
        self.assertTrue(distribution.distribution_code.startswith('DROP-'))
        targets = {t.target_room_id: t for t in distribution.targets.all()}
        self.assertEqual(set(targets), {self.room.pk, self.room_b.pk})
        self.assertEqual(targets[self.room.pk].allocated_quantity, 3)
        self.assertTrue(all(t.received_quantity == 0 for t in targets.values()))
        self.assertTrue(
            AuditLog.objects.filter(action='CREATE', record_id=str(distribution.pk)).exists()
        )

    def test_invalid_allocation_writes_nothing(self):
        with self.assertRaises(AllocationError):
            create_distribution_draft(
                self.warehouse_staff, self.asset_model.pk, 5, [(self.room.pk, 2), (self.room_b.pk, 2)]
            )
        self.assertFalse(AssetDistribution.objects.exists())
        self.assertFalse(AssetDistributionTarget.objects.exists())

    def test_unknown_room_writes_nothing(self):
        with self.assertRaises(ValidationFailed):
            create_distribution_draft(self.warehouse_staff, self.asset_model.pk, 1, [(uuid.uuid4(), 1)])
        self.assertFalse(AssetDistribution.objects.exists())

    def test_unknown_model_is_rejected(self):
        with self.assertRaises(ValidationFailed):
            create_distribution_draft(self.warehouse_staff, uuid.uuid4(), 1, [(self.room.pk, 1)])

    def test_update_replaces_allocation(self):
        distribution = create_distribution_draft(
            self.warehouse_staff, self.asset_model.pk, 2, [(self.room.pk, 2)]
        )
        update_distribution_draft(
            distribution.pk, 4, [(self.room_b.pk, 1), (self.other_room.pk, 3)], actor=self.warehouse_staff
        )

        distribution.refresh_from_db()
        self.assertEqual(distribution.total_quantity, 4)
        allocated = dict(distribution.targets.values_list('target_room_id', 'allocated_quantity'))
        self.assertEqual(allocated, {self.room_b.pk: 1, self.other_room.pk: 3})

    def test_update_keeps_previous_allocation_when_invalid(self):
        distribution = create_distribution_draft(
            self.warehouse_staff, self.asset_model.pk, 2, [(self.room.pk, 2)]
        )
        with self.assertRaises(AllocationError):
            update_distribution_draft(distribution.pk, 4, [(self.room.pk, 1)])
        self.assertEqual(distribution.targets.get().allocated_quantity, 2)

    def test_only_drafts_can_be_edited_or_deleted(self):
        distribution = create_distribution_draft(
            self.warehouse_staff, self.asset_model.pk, 1, [(self.room.pk, 1)]
        )
        execute_distribution(distribution.pk, actor=self.warehouse_staff)

        with self.assertRaises(InvalidStateError):
            update_distribution_draft(distribution.pk, 1, [(self.room_b.pk, 1)])
        with self.assertRaises(InvalidStateError):
            delete_distribution_draft(distribution.pk)

    def test_delete_draft_removes_targets(self):
        distribution = create_distribution_draft(
            self.warehouse_staff, self.asset_model.pk, 1, [(self.room.pk, 1)]
        )
        delete_distribution_draft(distribution.pk, actor=self.warehouse_staff)
        self.assertFalse(AssetDistribution.objects.exists())
        self.assertFalse(AssetDistributionTarget.objects.exists())


class ExecuteDistributionTests(InventaTestMixin, TestCase):
    def setUp(self):
        cache.clear()
        self.create_fixtures()
        self.distribution = create_distribution_draft(
            self.warehouse_staff, self.asset_model.pk, 5, [(self.room.pk, 3), (self.other_room.pk, 2)]
        )

    def test_execute_creates_in_transit_assets(self):
        execute_distribution(self.distribution.pk, actor=self.warehouse_staff)

        self.distribution.refresh_from_db()
        self.assertEqual(self.distribution.status, AssetDistribution.STATUS_SHIPPED)

        assets = FixedAsset.objects.filter(model=self.asset_model)
        self.assertEqual(assets.count(), 5)
        self.assertEqual(assets.filter(room=self.room).count(), 3)
        self.assertEqual(assets.filter(room=self.other_room).count(), 2)

        fragment = str(self.asset_model.pk).replace('-', '')[:3].upper()
        for asset in assets:
            self.assertEqual(asset.movement_status, FixedAsset.MOVEMENT_IN_TRANSIT)
            self.assertEqual(asset.condition, FixedAsset.CONDITION_GOOD)
            self.assertIsNone(asset.warehouse_id)
            self.assertIsNone(asset.inventory_number)
            self.assertTrue(asset.is_movable)
            self.assertEqual(asset.notes, f'Distributed via {self.distribution.distribution_code}')
            self.assertRegex(asset.qr_token, TOKEN_PATTERN)
            self.assertEqual(asset.qr_token.split('-')[1], fragment)
        self.assertEqual(len({a.qr_token for a in assets}), 5)

    def test_execute_notifies_destination_units(self):
        execute_distribution(self.distribution.pk, actor=self.warehouse_staff)

        notified = set(Notification.objects.values_list('user_id', flat=True))
        self.assertIn(self.unit_staff.pk, notified)
        self.assertIn(self.unit_admin.pk, notified)
        self.assertIn(self.other_unit_staff.pk, notified)
        self.assertNotIn(self.warehouse_staff.pk, notified)
        self.assertTrue(
            AuditLog.objects.filter(action='EXECUTE', record_id=str(self.distribution.pk)).exists()
        )

    def test_execute_twice_is_rejected(self):
        execute_distribution(self.distribution.pk)
        with self.assertRaises(InvalidStateError):
            execute_distribution(self.distribution.pk)
        self.assertEqual(FixedAsset.objects.count(), 5)

    def test_failed_insert_rolls_back(self):
        with mock.patch(
            'inventory.distribution_services.generate_qr_tokens',
            side_effect=lambda model_id, count: ['QR-DUP-00000000'] * count,
        ):
            with self.assertRaises(InventaError):
                execute_distribution(self.distribution.pk)

        self.distribution.refresh_from_db()
        self.assertEqual(self.distribution.status, AssetDistribution.STATUS_DRAFT)
        self.assertFalse(FixedAsset.objects.exists())

    def test_inconsistent_allocation_is_reported(self):
        AssetDistribution.objects.filter(pk=self.distribution.pk).update(total_quantity=9)
        with self.assertRaises(ConsistencyError):
            execute_distribution(self.distribution.pk)
        self.assertFalse(FixedAsset.objects.exists())


class GenerateQrTokensTests(InventaTestMixin, TestCase):
    def setUp(self):
        self.create_organization()
        self.create_catalog()
        FixedAsset.objects.create(model=self.asset_model, room=self.room, qr_token='QR-AAA-00000001')

    def test_colliding_tokens_are_regenerated(self):
        with mock.patch(
            'inventory.distribution_services.generate_qr_token',
            side_effect=['QR-AAA-00000001', 'QR-AAA-00000002', 'QR-AAA-00000003'],
        ):
            tokens = generate_qr_tokens(self.asset_model.pk, 2)
        self.assertEqual(sorted(tokens), ['QR-AAA-00000002', 'QR-AAA-00000003'])

    def test_gives_up_after_bounded_rounds(self):
        with mock.patch(
            'inventory.distribution_services.generate_qr_token', return_value='QR-AAA-00000001'
        ) as generator:
            with self.assertRaises(InventaError):
                generate_qr_tokens(self.asset_model.pk, 1, max_rounds=3)
        self.assertEqual(generator.call_count, 3)

    def test_tokens_are_unique_within_batch(self):
        tokens = generate_qr_tokens(self.asset_model.pk, 50)
        self.assertEqual(len(set(tokens)), 50)


class ReceiveDistributionTests(InventaTestMixin, TestCase):
    def setUp(self):
        cache.clear()
        self.create_fixtures()
        self.distribution = create_distribution_draft(
            self.warehouse_staff, self.asset_model.pk, 5, [(self.room.pk, 3), (self.room_b.pk, 2)]
        )
        execute_distribution(self.distribution.pk)
        self.target = self.distribution.targets.get(target_room=self.room)
        self.target_b = self.distribution.targets.get(target_room=self.room_b)

    def test_partial_receipt(self):
        receive_distribution(self.target.pk, 2, self.room.pk, self.unit_staff)

        self.target.refresh_from_db()
        self.assertEqual(self.target.received_quantity, 2)
        self.assertEqual(self.target.receiver, self.unit_staff)
        self.assertIsNotNone(self.target.received_at)
        self.assertEqual(
            FixedAsset.objects.filter(room=self.room, movement_status=FixedAsset.MOVEMENT_IN_STORE).count(), 2
        )
        self.assertEqual(
            FixedAsset.objects.filter(room=self.room, movement_status=FixedAsset.MOVEMENT_IN_TRANSIT).count(), 1
        )
        self.distribution.refresh_from_db()
        self.assertEqual(self.distribution.status, AssetDistribution.STATUS_SHIPPED)
        self.assertTrue(
            Notification.objects.filter(user=self.warehouse_staff, type=Notification.TYPE_SUCCESS).exists()
        )

    def test_over_receipt_is_rejected_without_changes(self):
        receive_distribution(self.target.pk, 2, self.room.pk, self.unit_staff)
        with self.assertRaises(ValidationFailed) as ctx:
            receive_distribution(self.target.pk, 2, self.room.pk, self.unit_staff)
        self.assertEqual(ctx.exception.details, {'pending_quantity': 1})

        self.target.refresh_from_db()
        self.assertEqual(self.target.received_quantity, 2)
        self.assertEqual(
            FixedAsset.objects.filter(room=self.room, movement_status=FixedAsset.MOVEMENT_IN_STORE).count(), 2
        )

    def test_stale_target_snapshot_is_caught_by_conditional_update(self):
        second = create_distribution_draft(
            self.warehouse_staff, self.asset_model.pk, 2, [(self.room.pk, 2)]
        )
        execute_distribution(second.pk)
        stale = AssetDistributionTarget.objects.get(pk=self.target.pk)
        receive_distribution(self.target.pk, 2, self.room.pk, self.unit_staff)

        # The row lock hands back the pre-receipt snapshot, so only the
        # conditional counter update can notice the target is nearly full.
        with mock.patch('inventory.distribution_services._get_for_update', return_value=stale):
            with self.assertRaises(ValidationFailed) as ctx:
                receive_distribution(self.target.pk, 2, self.room.pk, self.unit_staff)
        self.assertEqual(ctx.exception.message, 'Received quantity exceeds the pending quantity.')

        self.target.refresh_from_db()
        self.assertEqual(self.target.received_quantity, 2)
        self.assertEqual(
            FixedAsset.objects.filter(room=self.room, movement_status=FixedAsset.MOVEMENT_IN_STORE).count(), 2
        )
        self.assertEqual(
            FixedAsset.objects.filter(room=self.room, movement_status=FixedAsset.MOVEMENT_IN_TRANSIT).count(), 3
        )

    def test_receipt_locks_parent_distribution(self):
        manager = AssetDistribution.objects
        with mock.patch.object(manager, 'select_for_update', wraps=manager.select_for_update) as locked:
            receive_distribution(self.target_b.pk, 2, self.room_b.pk, self.unit_admin)

        locked.assert_called_once_with()
        self.distribution.refresh_from_db()
        self.assertEqual(self.distribution.status, AssetDistribution.STATUS_SHIPPED)

    def test_received_never_exceeds_allocated(self):
        for qty in (1, 1, 1, 1):
            try:
                receive_distribution(self.target.pk, qty, self.room.pk, self.unit_staff)
            except ValidationFailed:
                pass
            self.target.refresh_from_db()
            self.assertLessEqual(self.target.received_quantity, self.target.allocated_quantity)
        self.assertEqual(self.target.received_quantity, 3)

    def test_full_receipt_completes_distribution(self):
        receive_distribution(self.target.pk, 3, self.room.pk, self.unit_staff)
        receive_distribution(self.target_b.pk, '2', self.room_b.pk, self.unit_admin)

        self.distribution.refresh_from_db()
        self.assertEqual(self.distribution.status, AssetDistribution.STATUS_COMPLETED)
        self.assertFalse(
            FixedAsset.objects.filter(movement_status=FixedAsset.MOVEMENT_IN_TRANSIT).exists()
        )

    def test_room_must_match_target(self):
        with self.assertRaises(ValidationFailed):
            receive_distribution(self.target.pk, 1, self.room_b.pk, self.unit_staff)

    def test_receiver_must_belong_to_room_unit(self):
        with self.assertRaises(RoleNotAllowed):
            receive_distribution(self.target.pk, 1, self.room.pk, self.other_unit_staff)

    def test_quantity_must_be_positive_integer(self):
        for qty in (0, -1, 1.5, 'two'):
            with self.subTest(qty=qty):
                with self.assertRaises(ValidationFailed):
                    receive_distribution(self.target.pk, qty, self.room.pk, self.unit_staff)

    def test_draft_cannot_be_received(self):
        draft = create_distribution_draft(
            self.warehouse_staff, self.asset_model.pk, 1, [(self.room.pk, 1)]
        )
        with self.assertRaises(InvalidStateError):
            receive_distribution(draft.targets.get().pk, 1, self.room.pk, self.unit_staff)

    def test_missing_in_transit_assets_is_a_consistency_error(self):
        FixedAsset.objects.filter(room=self.room).delete()
        with self.assertRaises(ConsistencyError):
            receive_distribution(self.target.pk, 1, self.room.pk, self.unit_staff)
        self.target.refresh_from_db()
        self.assertEqual(self.target.received_quantity, 0)


class DistributionSummaryTests(InventaTestMixin, TestCase):
    def setUp(self):
        cache.clear()
        self.create_fixtures()

    def test_summary_counts_by_status(self):
        create_distribution_draft(self.warehouse_staff, self.asset_model.pk, 1, [(self.room.pk, 1)])
        shipped = create_distribution_draft(self.warehouse_staff, self.asset_model.pk, 1, [(self.room.pk, 1)])
        execute_distribution(shipped.pk)

        summary = get_distribution_summary()
        self.assertEqual(summary, {'DRAFT': 1, 'SHIPPED': 1, 'COMPLETED': 0, 'total': 2})

    def test_summary_is_invalidated_on_commit(self):
        self.assertEqual(get_distribution_summary()['total'], 0)

        with self.captureOnCommitCallbacks(execute=True):
            create_distribution_draft(self.warehouse_staff, self.asset_model.pk, 1, [(self.room.pk, 1)])

        self.assertEqual(get_distribution_summary()['DRAFT'], 1)

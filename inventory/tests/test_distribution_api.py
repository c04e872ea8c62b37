"""
Asset distribution, fixed asset, stock count and maintenance API tests

Run with: python manage.py test inventory.tests.test_distribution_api
"""
from decimal import Decimal
from unittest import mock

from django.core.cache import cache
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from inventory.distribution_models import AssetDistribution
from inventory.distribution_services import create_distribution_draft, execute_distribution
from inventory.models import FixedAsset
from inventory.tests.mixins import InventaTestMixin


class AssetDistributionAPITest(InventaTestMixin, APITestCase):
    def setUp(self):
        cache.clear()
        self.create_fixtures()
        self.list_url = reverse('distributions-list')

    def payload(self, total=3, targets=None):
        return {
            'model_id': str(self.asset_model.pk),
            'total_quantity': total,
            'notes': 'New microscopes',
            'targets': targets if targets is not None else [
                {'room_id': str(self.room.pk), 'allocated_quantity': 2},
                {'room_id': str(self.room_b.pk), 'allocated_quantity': 1},
            ],
        }

    def test_warehouse_staff_creates_draft(self):
        self.client.force_authenticate(self.warehouse_staff)
        response = self.client.post(self.list_url, self.payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['data']['status'], AssetDistribution.STATUS_DRAFT)
        self.assertEqual(len(response.data['data']['targets']), 2)

    def test_invalid_allocation_returns_error_envelope(self):
        self.client.force_authenticate(self.warehouse_staff)
        response = self.client.post(self.list_url, self.payload(total=5), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['error']['code'], 'ALLOCATION_ERROR')
        self.assertFalse(AssetDistribution.objects.exists())

    def test_malformed_payload_is_rejected(self):
        self.client.force_authenticate(self.faculty_admin)
        response = self.client.post(self.list_url, {'total_quantity': 'many'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'VALIDATION_ERROR')

    def test_duplicate_distribution_code_returns_retry_conflict(self):
        existing = create_distribution_draft(
            self.warehouse_staff, self.asset_model.pk, 1, [(self.room.pk, 1)]
        )
        self.client.force_authenticate(self.warehouse_staff)
        with mock.patch.object(
            AssetDistribution, '_generate_distribution_code', return_value=existing.distribution_code
        ):
            response = self.client.post(self.list_url, self.payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'CONFLICT')
        self.assertIn('try again', response.data['message'])
        self.assertEqual(AssetDistribution.objects.count(), 1)

    def test_unit_staff_cannot_create(self):
        self.client.force_authenticate(self.unit_staff)
        response = self.client.post(self.list_url, self.payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unauthenticated_is_rejected(self):
        response = self.client.get(self.list_url)
        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_update_and_delete_draft(self):
        distribution = create_distribution_draft(
            self.warehouse_staff, self.asset_model.pk, 1, [(self.room.pk, 1)]
        )
        self.client.force_authenticate(self.warehouse_staff)
        detail_url = reverse('distributions-detail', args=[distribution.pk])

        response = self.client.put(detail_url, {
            'total_quantity': 2,
            'targets': [{'room_id': str(self.room_b.pk), 'allocated_quantity': 2}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['total_quantity'], 2)

        response = self.client.delete(detail_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(AssetDistribution.objects.exists())

    def test_execute_and_repeat(self):
        distribution = create_distribution_draft(
            self.warehouse_staff, self.asset_model.pk, 2, [(self.room.pk, 2)]
        )
        self.client.force_authenticate(self.warehouse_staff)
        url = reverse('distributions-execute', args=[distribution.pk])

        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], AssetDistribution.STATUS_SHIPPED)
        self.assertEqual(FixedAsset.objects.count(), 2)

        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'INVALID_STATE')
        self.assertEqual(FixedAsset.objects.count(), 2)

    def test_summary(self):
        create_distribution_draft(self.warehouse_staff, self.asset_model.pk, 1, [(self.room.pk, 1)])
        self.client.force_authenticate(self.faculty_admin)

        response = self.client.get(reverse('distributions-summary'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['DRAFT'], 1)
        self.assertEqual(response.data['total'], 1)


class IncomingDistributionAPITest(InventaTestMixin, APITestCase):
    def setUp(self):
        cache.clear()
        self.create_fixtures()
        self.distribution = create_distribution_draft(
            self.warehouse_staff, self.asset_model.pk, 3, [(self.room.pk, 2), (self.other_room.pk, 1)]
        )
        execute_distribution(self.distribution.pk)
        self.target = self.distribution.targets.get(target_room=self.room)

    def test_lists_only_own_unit_targets(self):
        self.client.force_authenticate(self.unit_staff)
        response = self.client.get(reverse('incoming-distributions-list'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        results = response.data['results']
        self.assertEqual([r['id'] for r in results], [str(self.target.pk)])
        self.assertEqual(results[0]['pending_quantity'], 2)

    def test_receive(self):
        self.client.force_authenticate(self.unit_staff)
        url = reverse('incoming-distributions-receive', args=[self.target.pk])

        response = self.client.post(url, {'room_id': str(self.room.pk), 'received_quantity': 2}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['data']['received_quantity'], 2)

        response = self.client.post(url, {'room_id': str(self.room.pk), 'received_quantity': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])

    def test_other_unit_cannot_see_target(self):
        self.client.force_authenticate(self.other_unit_staff)
        url = reverse('incoming-distributions-receive', args=[self.target.pk])
        response = self.client.post(url, {'room_id': str(self.room.pk), 'received_quantity': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_warehouse_staff_cannot_receive(self):
        self.client.force_authenticate(self.warehouse_staff)
        url = reverse('incoming-distributions-receive', args=[self.target.pk])
        response = self.client.post(url, {'room_id': str(self.room.pk), 'received_quantity': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class FixedAssetAPITest(InventaTestMixin, APITestCase):
    def setUp(self):
        self.create_fixtures()
        self.asset = FixedAsset.objects.create(
            model=self.asset_model, room=self.room, qr_token='QR-ABC-12345678'
        )
        FixedAsset.objects.create(model=self.asset_model, room=self.other_room, qr_token='QR-ABC-87654321')

    def test_unit_staff_sees_own_unit_assets(self):
        self.client.force_authenticate(self.unit_staff)
        response = self.client.get(reverse('fixed-assets-list'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([r['qr_token'] for r in response.data['results']], ['QR-ABC-12345678'])

    def test_by_token_lookup(self):
        self.client.force_authenticate(self.faculty_admin)
        response = self.client.get(reverse('fixed-assets-by-token', kwargs={'token': 'QR-ABC-87654321'}))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['room'], self.other_room.pk)

    def test_qr_png(self):
        self.client.force_authenticate(self.unit_staff)
        response = self.client.get(reverse('fixed-assets-qr', args=[self.asset.pk]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'image/png')
        self.assertTrue(response.content.startswith(b'\x89PNG'))


class StockOpnameAPITest(InventaTestMixin, APITestCase):
    def setUp(self):
        self.create_fixtures()
        self.stock = self.add_stock(self.consumable, 20, batch_number='ETH-01')

    def test_warehouse_staff_counts_stock(self):
        self.client.force_authenticate(self.warehouse_staff)
        url = reverse('warehouse-stocks-opname', args=[self.stock.pk])
        response = self.client.post(url, {'physical_qty': '17', 'reason': 'Spilled during transfer'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['data']['delta_quantity']), Decimal('-3'))
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity, Decimal('17'))

        history = self.client.get(reverse('stock-adjustments-list'))
        self.assertEqual(history.data['count'], 1)

    def test_unit_staff_cannot_count(self):
        self.client.force_authenticate(self.unit_staff)
        url = reverse('warehouse-stocks-opname', args=[self.stock.pk])
        response = self.client.post(url, {'physical_qty': '17', 'reason': 'Recount'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AssetMaintenanceAPITest(InventaTestMixin, APITestCase):
    def setUp(self):
        self.create_fixtures()
        self.asset = FixedAsset.objects.create(model=self.asset_model, room=self.room, qr_token='QR-ABC-12345678')

    def test_report_and_repair(self):
        self.client.force_authenticate(self.unit_staff)
        response = self.client.post(reverse('maintenances-list'), {
            'asset_id': str(self.asset.pk),
            'severity': 'MINOR',
            'description': 'Stage clip is loose',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        maintenance_id = response.data['data']['id']

        # Unit staff report damage but do not manage repairs
        url = reverse('maintenances-update-status', args=[maintenance_id])
        response = self.client.post(url, {'status': 'COMPLETED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.unit_admin)
        response = self.client.post(url, {'status': 'COMPLETED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'COMPLETED')
        self.asset.refresh_from_db()
        self.assertEqual(self.asset.condition, FixedAsset.CONDITION_GOOD)

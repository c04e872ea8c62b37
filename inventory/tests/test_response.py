"""
Action envelope tests

Run with: python manage.py test inventory.tests.test_response
"""
from django.db import IntegrityError
from django.db.models import ProtectedError
from django.test import SimpleTestCase
from rest_framework import status

from inventory.exceptions import NotFoundError
from inventory.utils.response import run_action


def _raise(exc):
    def operation():
        raise exc
    return operation


class RunActionTests(SimpleTestCase):
    def test_success_envelope(self):
        response = run_action(lambda: 41, 'Done.', serialize=lambda value: value + 1)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data'], 42)
        self.assertTrue(response.data['success'])

    def test_business_error_keeps_its_status(self):
        response = run_action(_raise(NotFoundError('Room not found.')), 'Done.')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['message'], 'Room not found.')

    def test_unique_violation_is_a_retry_conflict(self):
        for message in (
            'UNIQUE constraint failed: asset_distributions.distribution_code',
            'duplicate key value violates unique constraint "asset_distributions_distribution_code_key"',
        ):
            with self.subTest(message=message):
                response = run_action(_raise(IntegrityError(message)), 'Done.')

                self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
                self.assertEqual(response.data['error']['code'], 'CONFLICT')
                self.assertNotIn('referenced', response.data['message'])

    def test_foreign_key_violation_is_still_referenced(self):
        response = run_action(_raise(IntegrityError('FOREIGN KEY constraint failed')), 'Done.')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'REFERENCED_OBJECT')

    def test_protected_delete_is_still_referenced(self):
        response = run_action(_raise(ProtectedError('protected', set())), 'Done.')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'REFERENCED_OBJECT')

    def test_unexpected_error_is_hidden(self):
        with self.assertLogs('inventory.utils.response', level='ERROR'):
            response = run_action(_raise(RuntimeError('boom')), 'Done.')

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['error']['code'], 'SERVER_ERROR')
        self.assertNotIn('boom', response.data['message'])

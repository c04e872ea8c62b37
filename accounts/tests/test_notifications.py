"""
Notification center and audit log tests

Run with: python manage.py test accounts.tests.test_notifications
"""
from datetime import timedelta

from django.core import mail
from django.test import RequestFactory, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import AuditLog, Notification, User
from accounts.tasks import purge_read_notifications, send_notification_email
from accounts.utils import log_user_action, notify_users
from inventory.tests.mixins import InventaTestMixin


@override_settings(EMAIL_BACKEND='django.core.mail.backends.locmem.EmailBackend')
class NotifyUsersTests(InventaTestMixin, TestCase):
    def setUp(self):
        self.alice = self.create_user(User.ROLE_UNIT_STAFF)
        self.bob = self.create_user(User.ROLE_UNIT_ADMIN)

    def test_creates_one_row_per_recipient(self):
        notifications = notify_users([self.alice, self.bob, self.alice, None], 'Hello', 'Body')

        self.assertEqual(len(notifications), 2)
        self.assertEqual(Notification.objects.filter(user=self.alice).count(), 1)
        self.assertEqual(Notification.objects.filter(user=self.bob).count(), 1)

    def test_email_is_sent_after_commit(self):
        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            notify_users([self.alice], 'Stock low', 'Please restock', link='/dashboard')
        self.assertEqual(len(callbacks), 1)
        self.assertEqual(len(mail.outbox), 0)

        callbacks[0]()
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, '[Inventa] Stock low')
        self.assertIn('/dashboard', mail.outbox[0].body)
        self.assertEqual(mail.outbox[0].to, [self.alice.email])

    def test_email_can_be_skipped(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            notify_users([self.alice], 'Quiet', 'No email', send_email=False)
        self.assertEqual(callbacks, [])
        self.assertEqual(len(mail.outbox), 0)

    def test_email_task_skips_inactive_users(self):
        self.bob.is_active = False
        self.bob.save(update_fields=['is_active'])

        result = send_notification_email([str(self.alice.pk), str(self.bob.pk)], 'Title', 'Message')
        self.assertEqual(result, {'sent': 1, 'total': 1})

    def test_purge_only_removes_old_read_notifications(self):
        old_read = Notification.objects.create(user=self.alice, title='Old', message='Read', is_read=True)
        old_unread = Notification.objects.create(user=self.alice, title='Old', message='Unread')
        recent_read = Notification.objects.create(user=self.alice, title='New', message='Read', is_read=True)
        Notification.objects.filter(pk__in=[old_read.pk, old_unread.pk]).update(
            created_at=timezone.now() - timedelta(days=45)
        )

        result = purge_read_notifications(days=30)

        self.assertEqual(result, {'deleted': 1})
        self.assertEqual(
            set(Notification.objects.values_list('pk', flat=True)), {old_unread.pk, recent_read.pk}
        )


class AuditLogTests(InventaTestMixin, TestCase):
    def test_log_user_action_records_request_metadata(self):
        user = self.create_user(User.ROLE_SUPER_ADMIN)
        request = RequestFactory().post(
            '/', HTTP_X_FORWARDED_FOR='203.0.113.7, 10.0.0.1', HTTP_USER_AGENT='pytest'
        )

        entry = log_user_action(user, 'UPDATE', 'rooms', 'abc', old_values={'a': 1}, new_values={'a': 2},
                                request=request)

        self.assertEqual(entry.ip_address, '203.0.113.7')
        self.assertEqual(entry.user_agent, 'pytest')
        self.assertEqual(entry.new_values, {'a': 2})


class NotificationAPITest(InventaTestMixin, APITestCase):
    def setUp(self):
        self.user = self.create_user(User.ROLE_UNIT_STAFF)
        self.other = self.create_user(User.ROLE_UNIT_STAFF)
        self.first = Notification.objects.create(user=self.user, title='First', message='One')
        Notification.objects.create(user=self.user, title='Second', message='Two')
        Notification.objects.create(user=self.other, title='Other', message='Hidden')
        self.client.force_authenticate(self.user)

    def test_lists_only_own_notifications(self):
        response = self.client.get(reverse('notification-list'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

    def test_unread_count_and_mark_read(self):
        response = self.client.get(reverse('notification-unread-count'))
        self.assertEqual(response.data, {'count': 2})

        response = self.client.post(reverse('notification-mark-read', args=[self.first.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['data']['is_read'])

        response = self.client.get(reverse('notification-unread-count'))
        self.assertEqual(response.data, {'count': 1})

    def test_mark_all_read(self):
        response = self.client.post(reverse('notification-mark-all-read'))
        self.assertEqual(response.data['data'], {'updated': 2})
        self.assertFalse(Notification.objects.filter(user=self.user, is_read=False).exists())
        self.assertTrue(Notification.objects.filter(user=self.other, is_read=False).exists())

    def test_cannot_delete_foreign_notification(self):
        foreign = Notification.objects.get(user=self.other)
        response = self.client.delete(reverse('notification-detail', args=[foreign.pk]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.delete(reverse('notification-detail', args=[self.first.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Notification.objects.filter(pk=self.first.pk).exists())


class AuditLogAPITest(InventaTestMixin, APITestCase):
    def setUp(self):
        self.admin = self.create_user(User.ROLE_SUPER_ADMIN)
        self.staff = self.create_user(User.ROLE_WAREHOUSE_STAFF)
        AuditLog.objects.create(user=self.admin, action='CREATE', table_name='rooms', record_id='1')

    def test_super_admin_can_read(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get(reverse('auditlog-list'), {'table_name': 'rooms'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

    def test_other_roles_are_denied(self):
        self.client.force_authenticate(self.staff)
        response = self.client.get(reverse('auditlog-list'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AuthAPITest(InventaTestMixin, APITestCase):
    def test_login_returns_token_and_profile(self):
        user = self.create_user(User.ROLE_UNIT_STAFF)
        response = self.client.post(
            reverse('login'), {'email': user.email, 'password': self.password}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('token', response.data)
        self.assertEqual(response.data['user']['role'], User.ROLE_UNIT_STAFF)

        self.client.credentials(HTTP_AUTHORIZATION=f"Token {response.data['token']}")
        response = self.client.get(reverse('me'))
        self.assertEqual(response.data['email'], user.email)

    def test_login_with_wrong_password(self):
        user = self.create_user(User.ROLE_UNIT_STAFF)
        response = self.client.post(
            reverse('login'), {'email': user.email, 'password': 'wrong'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

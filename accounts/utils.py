import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.forms.models import model_to_dict

from .models import AuditLog, Notification

logger = logging.getLogger(__name__)


User = get_user_model()


def get_client_ip(request):
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def log_user_action(user, action, table_name, record_id, old_values=None, new_values=None, request=None):
    """
    Log user actions for audit trail

    Args:
        user: User instance performing the action
        action: Action type (CREATE, UPDATE, DELETE, APPROVE, ...)
        table_name: Database table of the affected record
        record_id: ID of the affected record
        old_values: Snapshot before the change (optional)
        new_values: Snapshot after the change (optional)
        request: HTTP request object (optional)
    """
    audit_data = {
        'user': user if getattr(user, 'pk', None) else None,
        'action': action,
        'table_name': table_name,
        'record_id': str(record_id),
        'old_values': old_values,
        'new_values': new_values,
    }

    if request is not None:
        audit_data['ip_address'] = get_client_ip(request)
        audit_data['user_agent'] = request.META.get('HTTP_USER_AGENT', '')

    return AuditLog.objects.create(**audit_data)


def snapshot(instance, fields=None):
    """Return a JSON-friendly dict of a model instance for audit logs."""
    if instance is None:
        return None
    data = model_to_dict(instance, fields=fields)
    return {key: (str(value) if hasattr(value, 'pk') else value) for key, value in data.items()}


def notify_users(users, title, message, link=None, type=Notification.TYPE_INFO, send_email=True):
    """
    Create in-app notifications for the given users.

    Rows are written in the caller's transaction; email delivery is queued
    to Celery once that transaction commits.
    """
    recipients = {}
    for user in users:
        if user is None:
            continue
        recipients[user.pk] = user

    if not recipients:
        return []

    notifications = Notification.objects.bulk_create([
        Notification(user=user, title=title, message=message, link=link, type=type)
        for user in recipients.values()
    ])

    if send_email:
        from .tasks import send_notification_email

        user_ids = [str(pk) for pk in recipients]
        transaction.on_commit(
            lambda: send_notification_email.delay(user_ids, title, message, link)
        )

    logger.debug("Queued notification '%s' for %d user(s)", title, len(notifications))
    return notifications


def users_with_role(role, **scope):
    """Active users having ``role`` and matching the given scope filters."""
    return User.objects.filter(role=role, is_active=True, **scope)

from celery import shared_task
from django.contrib.auth import get_user_model
from django.utils import timezone
from django.core.mail import send_mail
from django.conf import settings
from datetime import timedelta
import logging

from .models import Notification

User = get_user_model()
logger = logging.getLogger(__name__)


@shared_task
def send_notification_email(user_ids, title, message, link=None):
    """
    Send a notification as plain-text email to each active user
    """
    recipients = list(
        User.objects.filter(id__in=user_ids, is_active=True)
        .exclude(email='')
        .values_list('email', flat=True)
    )
    if not recipients:
        logger.info("No email recipients for notification '%s'", title)
        return {'sent': 0}

    body = message
    if link:
        body = f"{message}\n\n{settings.FRONTEND_URL.rstrip('/')}{link}"

    sent = 0
    for email in recipients:
        try:
            send_mail(
                f"[Inventa] {title}",
                body,
                settings.DEFAULT_FROM_EMAIL,
                [email],
                fail_silently=False,
            )
            sent += 1
        except Exception as e:
            logger.error(f"Failed to send notification email to {email}: {str(e)}")

    logger.info(f"Notification email '{title}' sent to {sent}/{len(recipients)} recipient(s)")
    return {'sent': sent, 'total': len(recipients)}


@shared_task
def purge_read_notifications(days=30):
    """
    Delete notifications that were read more than ``days`` days ago
    """
    cutoff = timezone.now() - timedelta(days=days)
    deleted, _ = Notification.objects.filter(is_read=True, created_at__lt=cutoff).delete()
    logger.info(f"Purged {deleted} read notifications older than {days} days")
    return {'deleted': deleted}

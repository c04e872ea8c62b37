"""
Security Middleware for the Inventa backend
"""

from django.conf import settings
from django.utils.deprecation import MiddlewareMixin
import logging

logger = logging.getLogger(__name__)

INSECURE_DEFAULT_SECRET_KEY = 'django-insecure-inventa-dev-key-change-me'


class EnvironmentSecurityMiddleware(MiddlewareMixin):
    """
    Prevents production deployment with development settings
    """

    _reported = False

    def process_request(self, request):
        if settings.DEBUG or EnvironmentSecurityMiddleware._reported:
            return None

        dangerous_configs = []

        if settings.SECRET_KEY == INSECURE_DEFAULT_SECRET_KEY:
            dangerous_configs.append("Using default/weak SECRET_KEY in production")

        if not settings.SECURE_SSL_REDIRECT:
            dangerous_configs.append("SSL redirect disabled in production")

        if not settings.SESSION_COOKIE_SECURE:
            dangerous_configs.append("Insecure session cookies in production")

        if settings.CELERY_TASK_ALWAYS_EAGER:
            dangerous_configs.append("Celery tasks run eagerly inside web requests")

        if dangerous_configs:
            logger.critical(
                "SECURITY WARNING: Dangerous production configuration detected:\n" +
                "\n".join(f"  - {config}" for config in dangerous_configs)
            )
        EnvironmentSecurityMiddleware._reported = True

        return None

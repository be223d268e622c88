from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
import logging
import sys

logger = logging.getLogger(__name__)


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core'

    def ready(self):
        """
        Refuse to serve production traffic with development secrets.

        Only runs for server processes (runserver, gunicorn); management
        commands and the test runner skip it.
        """
        is_server = 'runserver' in sys.argv or 'gunicorn' in sys.argv[0]
        if not is_server:
            return

        self._validate_security_settings()
        logger.info("Startup security validations passed")

    def _validate_security_settings(self):
        """Validate secret keys and HTTPS settings when DEBUG is off."""
        if settings.DEBUG:
            return

        weak_patterns = ['insecure', 'change-me', 'dev-jwt', 'secret-key']
        for name in ('SECRET_KEY', 'JWT_SECRET_KEY'):
            value = getattr(settings, name).lower()
            for pattern in weak_patterns:
                if pattern in value:
                    raise ImproperlyConfigured(
                        f"{name} appears to be a development default (contains '{pattern}'). "
                        f"Generate a strong key with: "
                        f"python -c \"import secrets; print(secrets.token_urlsafe(50))\""
                    )

        if not settings.SECURE_SSL_REDIRECT:
            logger.warning(
                "SECURE_SSL_REDIRECT is not enabled in production. "
                "HTTPS should be enforced for security."
            )

"""
Session token middleware.

Reads the session token from ``Authorization: Bearer <token>`` or, for
browser clients, the session cookie. A valid token for an active user sets
``request.user`` to that user, freshly loaded from the database, and
``request.session_token`` to the raw token. Any other request keeps the
user Django's own AuthenticationMiddleware resolved.
"""
import logging
from django.conf import settings
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)


class SessionTokenMiddleware(MiddlewareMixin):
    """Authenticate API requests from the signed session token."""

    def process_request(self, request):
        from apps.rbac.services import AuthService

        request.session_token = None

        token = self._extract_token(request)
        if not token:
            return None

        user = AuthService.get_user_from_token(token)
        if user is None:
            logger.debug(
                "Session token rejected",
                extra={'path': request.path}
            )
            return None

        request.user = user
        request.session_token = token

        from apps.core.sentry_utils import set_user_context
        set_user_context(user)
        return None

    @staticmethod
    def _extract_token(request):
        auth_header = request.META.get('HTTP_AUTHORIZATION', '')
        if auth_header.startswith('Bearer '):
            return auth_header[7:].strip() or None
        return request.COOKIES.get(settings.SESSION_TOKEN_COOKIE_NAME) or None

"""
Custom DRF authentication classes.
"""
from rest_framework.authentication import BaseAuthentication


class MiddlewareAuthentication(BaseAuthentication):
    """
    DRF authentication class that uses the user set by SessionTokenMiddleware.

    The middleware validates the session token and reloads the user from the
    database on every request; this class simply hands that user to DRF.
    Django admin sessions are ignored here so cookie-only admin logins never
    reach the JSON API without a token.
    """

    def authenticate(self, request):
        """
        Return the token-authenticated user from the middleware if present.

        Returns:
            tuple: (user, token) if a valid session token was presented, None otherwise
        """
        django_request = request._request

        token = getattr(django_request, 'session_token', None)
        user = getattr(django_request, 'user', None)
        if token and user is not None and user.is_authenticated:
            return (user, token)

        return None

    def authenticate_header(self, request):
        """Advertise bearer tokens so unauthenticated calls get 401, not 403."""
        return 'Bearer realm="api"'

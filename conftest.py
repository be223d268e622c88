"""
Pytest configuration and fixtures.
"""
import pytest
from django.conf import settings
from django.core.management import call_command


def pytest_configure(config):
    """Test-time settings: inline Celery, plain HTTP, no rate limits, fast hashing."""
    settings.SECURE_SSL_REDIRECT = False
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True
    settings.RATELIMIT_ENABLE = False
    settings.PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

    from config.celery import app as celery_app
    celery_app.conf.task_always_eager = True
    celery_app.conf.task_eager_propagates = True


@pytest.fixture(scope='session')
def django_db_setup(django_db_setup, django_db_blocker):
    """Set up test database; apps without migrations are created by syncdb."""
    with django_db_blocker.unblock():
        call_command('migrate', '--run-syncdb', verbosity=0)


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def make_user(db):
    """Factory creating users with a known password."""
    from apps.rbac.models import User

    def _make_user(email, role='user', status='active', name=None, password='testpass123'):
        return User.objects.create_user(
            email=email,
            password=password,
            name=name or email.split('@')[0].title(),
            role=role,
            status=status,
        )

    return _make_user


@pytest.fixture
def owner_user(make_user):
    """Create owner user."""
    return make_user('owner@test.com', role='owner', name='Owner User')


@pytest.fixture
def admin_user(make_user):
    """Create admin user."""
    return make_user('admin@test.com', role='admin', name='Admin User')


@pytest.fixture
def manager_user(make_user):
    """Create manager user."""
    return make_user('manager@test.com', role='manager', name='Manager User')


@pytest.fixture
def regular_user(make_user):
    """Create regular user."""
    return make_user('user@test.com', role='user', name='Regular User')


@pytest.fixture
def auth_client():
    """
    Factory returning an APIClient authenticated as ``user`` with a real
    session token.
    """
    from rest_framework.test import APIClient
    from apps.rbac.services import AuthService

    def _auth_client(user):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {AuthService.generate_token(user)}')
        return client

    return _auth_client

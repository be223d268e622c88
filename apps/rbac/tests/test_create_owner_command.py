"""
Tests for the create_owner management command.
"""
import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from apps.rbac.models import User
from apps.rbac.roles import Role, UserStatus


@pytest.mark.django_db
class TestCreateOwnerCommand:
    """Test bootstrapping the first owner."""

    def test_creates_owner(self):
        """A new email becomes an active owner."""
        call_command('create_owner', email='Founder@Test.com', password='N3w-Secure-Passphrase', name='Founder')

        user = User.objects.get(email='founder@test.com')
        assert user.role == Role.OWNER
        assert user.status == UserStatus.ACTIVE
        assert user.check_password('N3w-Secure-Passphrase')

    def test_promotes_existing_user(self, make_user):
        """Existing accounts are promoted and activated."""
        make_user('someone@test.com', status=UserStatus.SUSPENDED)

        call_command('create_owner', email='someone@test.com')

        user = User.objects.get(email='someone@test.com')
        assert user.role == Role.OWNER
        assert user.status == UserStatus.ACTIVE

    def test_new_user_needs_password(self, db):
        """Creating requires --password."""
        with pytest.raises(CommandError):
            call_command('create_owner', email='nobody@test.com')

    def test_weak_password_rejected(self, db):
        """Password validators apply."""
        with pytest.raises(CommandError):
            call_command('create_owner', email='nobody@test.com', password='123')

        assert not User.objects.filter(email='nobody@test.com').exists()

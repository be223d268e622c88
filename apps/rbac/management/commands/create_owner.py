"""
Management command to bootstrap the first owner account.

Creates the user if needed, or promotes and activates an existing one.
"""
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from apps.rbac.models import User
from apps.rbac.roles import Role, UserStatus


class Command(BaseCommand):
    help = 'Create an owner account, or promote an existing user to owner'

    def add_arguments(self, parser):
        """Add command arguments."""
        parser.add_argument(
            '--email',
            type=str,
            required=True,
            help='User email address',
        )
        parser.add_argument(
            '--name',
            type=str,
            default='',
            help='Display name for a new user',
        )
        parser.add_argument(
            '--password',
            type=str,
            help='Password for a new user (required when the user does not exist)',
        )

    def handle(self, *args, **options):
        """Create or promote the owner."""
        email = User.objects.normalize_email(options['email'])
        name = options.get('name') or ''
        password = options.get('password')

        with transaction.atomic():
            user = User.objects.by_email(email)

            if user is None:
                if not password:
                    raise CommandError(
                        f'User not found: {email}\n'
                        f'Use --password=<password> to create the user'
                    )
                try:
                    validate_password(password)
                except DjangoValidationError as e:
                    raise CommandError('Password rejected: ' + ' '.join(e.messages))

                user = User.objects.create_superuser(
                    email=email,
                    password=password,
                    name=name or email.split('@')[0],
                )
                self.stdout.write(self.style.SUCCESS(f'Created owner: {user.email}'))
                return

            if user.role == Role.OWNER and user.status == UserStatus.ACTIVE:
                self.stdout.write(self.style.WARNING(f'{user.email} is already an active owner'))
                return

            user.role = Role.OWNER
            user.status = UserStatus.ACTIVE
            user.save(update_fields=['role', 'status', 'updated_at'])
            self.stdout.write(self.style.SUCCESS(f'Promoted {user.email} to owner'))

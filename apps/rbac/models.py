"""
User identity model.

Implements:
- User: the AUTH_USER_MODEL, carrying the ranked role and account status
- UserManager: case-insensitive lookups and team queries
"""
import logging
from django.db import models
from django.contrib.auth.hashers import make_password, check_password
from django.utils import timezone
from apps.core.models import BaseModel
from apps.rbac.roles import Role, UserStatus

logger = logging.getLogger(__name__)


class UserManager(models.Manager):
    """
    Manager for User queries.

    Compatible with Django's authentication system and admin interface.
    """

    def active(self):
        """Return only active users."""
        return self.filter(status=UserStatus.ACTIVE)

    def by_email(self, email):
        """Find user by email, ignoring case."""
        if not email:
            return None
        return self.filter(email__iexact=email.strip()).first()

    def email_taken(self, email, exclude_user_id=None) -> bool:
        """Whether another user already holds ``email`` (case-insensitive)."""
        queryset = self.filter(email__iexact=email.strip())
        if exclude_user_id is not None:
            queryset = queryset.exclude(id=exclude_user_id)
        return queryset.exists()

    def with_role(self, role):
        """Users holding exactly ``role``."""
        return self.filter(role=role)

    def create_user(self, email, password=None, **extra_fields):
        """
        Create a new user with hashed password.

        This method is compatible with Django's authentication system.
        """
        if not email:
            raise ValueError('Email address is required')

        email = self.normalize_email(email)
        extra_fields.setdefault('role', Role.USER)
        extra_fields.setdefault('status', UserStatus.ACTIVE)

        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """
        Create an owner account.

        Required for Django's createsuperuser command.
        """
        extra_fields['role'] = Role.OWNER
        extra_fields.setdefault('status', UserStatus.ACTIVE)
        return self.create_user(email, password, **extra_fields)

    @classmethod
    def normalize_email(cls, email):
        """Emails are stored lowercased so uniqueness is case-insensitive."""
        return (email or '').strip().lower()

    def get_by_natural_key(self, email):
        """
        Get user by natural key (email).

        This method is required for Django's authentication system.
        """
        return self.get(email__iexact=email)


class User(BaseModel):
    """
    Tender Hub user identity.

    Role and status are the only inputs to authorization decisions.
    Name and email are changed through the profile update approval
    workflow; role and status through team management.

    This is the AUTH_USER_MODEL for the entire application, including Django admin.
    """

    name = models.CharField(
        max_length=255,
        help_text="Display name"
    )
    email = models.EmailField(
        unique=True,
        db_index=True,
        help_text="User email address (unique, stored lowercased)"
    )
    password_hash = models.CharField(
        max_length=255,
        blank=True,
        help_text="Hashed password",
        db_column='password_hash'
    )
    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        default=Role.USER,
        db_index=True,
        help_text="Ranked role: user < manager < admin < owner"
    )
    status = models.CharField(
        max_length=20,
        choices=UserStatus.choices,
        default=UserStatus.ACTIVE,
        db_index=True,
        help_text="Only active users can sign in"
    )

    # Invitation provenance
    invited_by = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='invited_users',
        help_text="User who sent the invitation this account was created from"
    )
    invited_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the invitation was sent"
    )

    last_login_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last login timestamp"
    )

    USERNAME_FIELD = 'email'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = ['name']

    objects = UserManager()

    class Meta:
        db_table = 'users'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['role', 'status']),
        ]

    def __str__(self):
        return self.email

    def save(self, *args, **kwargs):
        self.email = UserManager.normalize_email(self.email)
        super().save(*args, **kwargs)

    @property
    def password(self):
        """
        Alias for password_hash to maintain Django admin compatibility.
        """
        return self.password_hash

    @password.setter
    def password(self, value):
        self.password_hash = value

    def check_password(self, raw_password):
        """Check if provided password matches stored hash."""
        return check_password(raw_password, self.password_hash)

    def set_password(self, raw_password):
        """Set user password (hashes automatically)."""
        self.password_hash = make_password(raw_password)

    def get_full_name(self):
        return self.name or self.email

    def get_short_name(self):
        return self.name.split(' ')[0] if self.name else self.email

    def update_last_login(self):
        """Update last_login_at to current time."""
        self.last_login_at = timezone.now()
        self.save(update_fields=['last_login_at'])

    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False

    @property
    def is_active(self):
        """Django auth compatibility: suspended and pending users cannot sign in."""
        return self.status == UserStatus.ACTIVE

    @property
    def is_staff(self):
        """Owners and admins may use the Django admin."""
        return self.is_active and self.role in (Role.OWNER, Role.ADMIN)

    @property
    def is_superuser(self):
        return self.is_active and self.role == Role.OWNER

    def has_perm(self, perm, obj=None):
        return self.is_staff

    def has_perms(self, perm_list, obj=None):
        return self.is_staff

    def has_module_perms(self, app_label):
        return self.is_staff

    def get_user_permissions(self, obj=None):
        return set()

    def get_group_permissions(self, obj=None):
        return set()

    def get_all_permissions(self, obj=None):
        return set()

    def natural_key(self):
        return (self.email,)

"""
Authentication and team management services.

Implements:
- AuthService: session tokens, login/logout, password change
- TeamService: role-gated update and removal of team members
"""
import uuid
from datetime import timedelta
from typing import Any, Dict, Optional
import logging

import jwt
from django.conf import settings
from django.contrib.auth.password_validation import validate_password
from django.core.cache import cache
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from apps.audit.schemas import (
    AuditAction, SessionMetadata, PasswordChangedMetadata,
    TeamMemberUpdatedMetadata, RoleChangedMetadata, StatusChangedMetadata,
    UserDeletedMetadata,
)
from apps.audit.services import AuditLogWriter, get_client_ip
from apps.core.exceptions import (
    ValidationError, AuthorizationError, NotFoundError, ConflictError,
)
from apps.core.logging import SecurityLogger
from apps.notifications.services import NotificationService
from apps.rbac.models import User
from apps.rbac.permissions import check_permission
from apps.rbac.roles import Role, UserStatus

logger = logging.getLogger(__name__)


def _load_user_for_update(user_id) -> User:
    """Lock and return a user row, or raise NotFoundError."""
    try:
        return User.objects.select_for_update().get(id=user_id)
    except (User.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFoundError("User not found")


class AuthService:
    """
    Service for authentication operations: session tokens, login, logout
    and password changes.
    """

    REVOKED_TOKEN_KEY = 'auth:revoked:{jti}'

    @classmethod
    def generate_token(cls, user: User) -> str:
        """
        Generate a signed session token for a user.

        Args:
            user: User instance

        Returns:
            JWT token string
        """
        now = timezone.now()
        payload = {
            'user_id': str(user.id),
            'email': user.email,
            'exp': now + timedelta(hours=settings.JWT_EXPIRATION_HOURS),
            'iat': now,
            'jti': uuid.uuid4().hex,
            'type': 'access',
        }

        return jwt.encode(
            payload,
            settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM
        )

    @classmethod
    def validate_token(cls, token: str) -> Optional[Dict[str, Any]]:
        """
        Validate a session token and return its payload.

        Args:
            token: JWT token string

        Returns:
            Decoded payload dict or None if invalid, expired or revoked
        """
        try:
            payload = jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[settings.JWT_ALGORITHM]
            )
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

        if payload.get('type') != 'access':
            return None

        jti = payload.get('jti')
        if jti and cache.get(cls.REVOKED_TOKEN_KEY.format(jti=jti)):
            return None

        return payload

    @classmethod
    def get_user_from_token(cls, token: str) -> Optional[User]:
        """
        Resolve the user a token was issued to.

        The user is always reloaded from the database so role and status
        changes apply to the next request. Suspended and pending users get
        None.

        Args:
            token: JWT token string

        Returns:
            Active User instance or None
        """
        payload = cls.validate_token(token)
        if not payload:
            return None

        user_id = payload.get('user_id')
        if not user_id:
            return None

        try:
            return User.objects.active().get(id=user_id)
        except (User.DoesNotExist, ValueError, DjangoValidationError):
            return None

    @classmethod
    def revoke_token(cls, token: str):
        """Reject ``token`` until it would have expired anyway."""
        payload = cls.validate_token(token)
        if not payload or not payload.get('jti'):
            return

        remaining = int(payload['exp'] - timezone.now().timestamp())
        if remaining > 0:
            cache.set(cls.REVOKED_TOKEN_KEY.format(jti=payload['jti']), True, timeout=remaining)

    @classmethod
    def login(cls, email: str, password: str, request=None) -> Optional[Dict[str, Any]]:
        """
        Authenticate user and issue a session token.

        Args:
            email: User email (case-insensitive)
            password: User password
            request: Originating request, for audit context

        Returns:
            Dict with user and token, or None if authentication failed
        """
        user = User.objects.by_email(email)
        ip_address = get_client_ip(request) or 'unknown'
        user_agent = request.META.get('HTTP_USER_AGENT') if request is not None else None

        reason = None
        if user is None:
            reason = 'unknown_email'
            # Equalise timing with the known-user path
            User().set_password(password)
        elif not user.check_password(password):
            reason = 'bad_password'
        elif not user.is_active:
            reason = f'status_{user.status}'

        if reason:
            SecurityLogger.log_failed_login(
                email=email,
                ip_address=ip_address,
                user_agent=user_agent,
                reason=reason,
            )
            return None

        with transaction.atomic():
            user.update_last_login()
            AuditLogWriter.append(
                AuditAction.USER_LOGIN,
                actor_id=user.id,
                target_user_id=user.id,
                metadata=SessionMetadata(user_agent=user_agent),
                request=request,
            )

        return {
            'user': user,
            'token': cls.generate_token(user),
        }

    @classmethod
    def logout(cls, user: User, token: Optional[str] = None, request=None):
        """
        End a session: revoke the token and record the logout.

        Args:
            user: Authenticated user
            token: The session token being ended
            request: Originating request, for audit context
        """
        if token:
            cls.revoke_token(token)

        user_agent = request.META.get('HTTP_USER_AGENT') if request is not None else None
        AuditLogWriter.append(
            AuditAction.USER_LOGOUT,
            actor_id=user.id,
            target_user_id=user.id,
            metadata=SessionMetadata(user_agent=user_agent),
            request=request,
        )

    @classmethod
    @transaction.atomic
    def change_password(cls, user: User, current_password: str, new_password: str, request=None) -> User:
        """
        Change the caller's own password.

        Args:
            user: Authenticated user
            current_password: Password currently set
            new_password: Replacement, checked by AUTH_PASSWORD_VALIDATORS
            request: Originating request, for audit context

        Returns:
            Updated User

        Raises:
            ValidationError: Wrong current password or weak new password
        """
        if not user.check_password(current_password or ''):
            raise ValidationError(
                "Current password is incorrect",
                details={'current_password': ['Current password is incorrect.']}
            )

        if current_password == new_password:
            raise ValidationError(
                "New password must differ from the current one",
                details={'new_password': ['New password must differ from the current one.']}
            )

        try:
            validate_password(new_password, user=user)
        except DjangoValidationError as e:
            raise ValidationError("Password is too weak", details={'new_password': list(e.messages)})

        user.set_password(new_password)
        user.save(update_fields=['password_hash', 'updated_at'])

        AuditLogWriter.append(
            AuditAction.PASSWORD_CHANGED,
            actor_id=user.id,
            target_user_id=user.id,
            metadata=PasswordChangedMetadata(),
            request=request,
        )
        NotificationService.enqueue(
            template_name='password_changed',
            recipient=user.email,
            subject='Your Tender Hub password was changed',
            context={'name': user.name, 'changed_at': timezone.now().isoformat()},
        )

        logger.info(
            "Password changed",
            extra={'user_id': str(user.id)}
        )
        return user


class TeamService:
    """
    Team member administration.

    Every operation re-checks the acting user's capabilities with the
    permission evaluator; views only pre-filter by minimum role.
    """

    @classmethod
    @transaction.atomic
    def update_member(
        cls,
        actor: User,
        target_id,
        name: Optional[str] = None,
        role: Optional[str] = None,
        status: Optional[str] = None,
        request=None,
    ) -> User:
        """
        Update a team member's name, role or status.

        Args:
            actor: Acting user
            target_id: ID of the member to update
            name: New display name
            role: New role
            status: New account status
            request: Originating request, for audit context

        Returns:
            The updated User

        Raises:
            NotFoundError: Target does not exist
            AuthorizationError: Actor may not make this change
            ValidationError: Unknown role or status, or blank name
        """
        target = _load_user_for_update(target_id)
        permissions = check_permission(actor)

        if not permissions.can_modify_user(target):
            raise AuthorizationError("Cannot modify this user")

        changes = {}

        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Name cannot be blank", details={'name': ['This field may not be blank.']})
            if name != target.name:
                changes['name'] = name

        if role is not None and role != target.role:
            if role not in Role.values:
                raise ValidationError(f"Unknown role: {role}", details={'role': [f'"{role}" is not a valid choice.']})
            if not permissions.can_assign_role(role):
                raise AuthorizationError("Cannot assign this role")
            changes['role'] = role

        if status is not None and status != target.status:
            if status not in UserStatus.values:
                raise ValidationError(f"Unknown status: {status}", details={'status': [f'"{status}" is not a valid choice.']})
            if not permissions.can_suspend_user(target):
                raise AuthorizationError("Cannot change this user's status")
            changes['status'] = status

        if not changes:
            return target

        previous_values = {field: getattr(target, field) for field in changes}
        for field, value in changes.items():
            setattr(target, field, value)
        target.save(update_fields=list(changes) + ['updated_at'])

        AuditLogWriter.append(
            AuditAction.TEAM_MEMBER_UPDATED,
            actor_id=actor.id,
            target_user_id=target.id,
            metadata=TeamMemberUpdatedMetadata(previous_values=previous_values, new_values=changes),
            request=request,
        )

        if 'role' in changes:
            AuditLogWriter.append(
                AuditAction.ROLE_CHANGED,
                actor_id=actor.id,
                target_user_id=target.id,
                metadata=RoleChangedMetadata(previous_role=previous_values['role'], new_role=changes['role']),
                request=request,
            )

        if 'status' in changes:
            status_action = {
                UserStatus.SUSPENDED: AuditAction.USER_SUSPENDED,
                UserStatus.ACTIVE: AuditAction.USER_ACTIVATED,
            }.get(changes['status'])
            if status_action:
                AuditLogWriter.append(
                    status_action,
                    actor_id=actor.id,
                    target_user_id=target.id,
                    metadata=StatusChangedMetadata(
                        previous_status=previous_values['status'],
                        new_status=changes['status'],
                    ),
                    request=request,
                )

            NotificationService.enqueue(
                template_name='user_status_change',
                recipient=target.email,
                subject='Your Tender Hub account status has changed',
                context={
                    'name': target.name,
                    'previous_status': previous_values['status'],
                    'new_status': changes['status'],
                },
            )

        logger.info(
            f"Team member updated: {', '.join(changes)}",
            extra={
                'actor_id': str(actor.id),
                'target_user_id': str(target.id),
                'changed_fields': list(changes),
            }
        )
        return target

    @classmethod
    @transaction.atomic
    def delete_member(cls, actor: User, target_id, request=None):
        """
        Permanently delete a team member.

        Args:
            actor: Acting user
            target_id: ID of the member to delete
            request: Originating request, for audit context

        Raises:
            NotFoundError: Target does not exist
            AuthorizationError: Actor may not delete this user
            ConflictError: Target is the last remaining admin
        """
        target = _load_user_for_update(target_id)

        if not check_permission(actor).can_delete_user(target):
            raise AuthorizationError("Cannot delete this user")

        if target.role == Role.ADMIN:
            # Lock every admin row so two concurrent deletes cannot both pass
            admin_ids = list(
                User.objects.with_role(Role.ADMIN).select_for_update().values_list('id', flat=True)
            )
            if len(admin_ids) <= 1:
                raise ConflictError("Cannot delete the last admin")

        AuditLogWriter.append(
            AuditAction.USER_DELETED,
            actor_id=actor.id,
            target_user_id=target.id,
            metadata=UserDeletedMetadata(email=target.email, name=target.name, role=target.role),
            request=request,
        )
        NotificationService.enqueue(
            template_name='account_deletion',
            recipient=target.email,
            subject='Your Tender Hub account has been deleted',
            context={'name': target.name},
        )

        logger.info(
            "Team member deleted",
            extra={
                'actor_id': str(actor.id),
                'target_user_id': str(target.id),
                'ip_address': get_client_ip(request),
            }
        )
        target.delete()

"""
Invitation service.

Implements:
- InvitationService: create, accept, resend, cancel and expire invitations
"""
import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from django.conf import settings
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import transaction
from django.utils import timezone

from apps.audit.schemas import AuditAction, InvitationMetadata
from apps.audit.services import AuditLogWriter
from apps.core.exceptions import (
    ValidationError, AuthorizationError, NotFoundError, ConflictError, QuotaExceededError,
)
from apps.invitations.models import Invitation
from apps.notifications.services import NotificationService
from apps.rbac.models import User
from apps.rbac.permissions import check_permission
from apps.rbac.roles import Role, UserStatus

logger = logging.getLogger(__name__)


def _metadata(invitation: Invitation) -> InvitationMetadata:
    return InvitationMetadata(
        invitation_id=str(invitation.id),
        email=invitation.email,
        role=invitation.role,
        expires_at=invitation.expires_at.isoformat() if invitation.expires_at else None,
    )


class InvitationService:
    """
    Invitation lifecycle: pending -> accepted | expired | cancelled.
    """

    @classmethod
    def create(cls, inviter: User, email: str, role: str, request=None) -> Invitation:
        """
        Invite someone to join with ``role``.

        Args:
            inviter: Acting user
            email: Address to invite
            role: admin, manager or user
            request: Originating request, for audit context

        Returns:
            The pending Invitation

        Raises:
            AuthorizationError: Inviter may not invite, or not with this role
            ValidationError: Bad email or a role that cannot be invited
            ConflictError: Email belongs to a user or an open invitation
            QuotaExceededError: Inviter's daily quota is used up
        """
        permissions = check_permission(inviter)
        if not permissions.can_invite_users():
            raise AuthorizationError("Role cannot send invitations")

        if role not in Invitation.INVITABLE_ROLES:
            raise ValidationError(
                f"Cannot invite with role: {role}",
                details={'role': [f'Must be one of: {", ".join(Invitation.INVITABLE_ROLES)}.']}
            )

        if not permissions.can_assign_role(role):
            raise AuthorizationError("Role cannot invite with this role")

        email = User.objects.normalize_email(email)
        try:
            validate_email(email)
        except DjangoValidationError:
            raise ValidationError("Invalid email address", details={'email': ['Enter a valid email address.']})

        now = timezone.now()

        with transaction.atomic():
            if User.objects.email_taken(email):
                raise ConflictError(
                    "A user with this email already exists",
                    details={'email': ['A user with this email already exists.']}
                )

            if Invitation.objects.pending().filter(email=email, expires_at__gt=now).exists():
                raise ConflictError(
                    "An invitation for this email is already pending",
                    details={'email': ['An invitation for this email is already pending.']}
                )

            daily_limit = settings.INVITATION_DAILY_LIMITS.get(inviter.role)
            if daily_limit is not None:
                sent_today = Invitation.objects.sent_by_since(inviter, now - timedelta(days=1)).count()
                if sent_today >= daily_limit:
                    raise QuotaExceededError(
                        f"Daily invitation limit of {daily_limit} reached",
                        details={'limit': daily_limit, 'sent': sent_today}
                    )

            invitation = Invitation.objects.create(
                email=email,
                role=role,
                invited_by=inviter,
                expires_at=now + timedelta(days=settings.INVITATION_EXPIRY_DAYS),
            )

            AuditLogWriter.append(
                AuditAction.INVITATION_CREATED,
                actor_id=inviter.id,
                metadata=_metadata(invitation),
                request=request,
            )
            cls._enqueue_email(invitation, inviter)

        logger.info(
            f"Invitation created for role {role}",
            extra={
                'invitation_id': str(invitation.id),
                'inviter_id': str(inviter.id),
            }
        )
        return invitation

    @classmethod
    def accept(cls, token: str, name: str, password: str, request=None) -> Dict[str, Any]:
        """
        Accept an invitation and create the account.

        Args:
            token: Invitation token from the acceptance link
            name: Display name for the new account
            password: Password for the new account
            request: Originating request, for audit context

        Returns:
            Dict with the new user and a session token

        Raises:
            NotFoundError: Unknown token
            ConflictError: Invitation not pending, expired, or the email
                was registered in the meantime
            ValidationError: Blank name or weak password
        """
        from apps.rbac.services import AuthService

        name = (name or '').strip()
        if not name:
            raise ValidationError("Name is required", details={'name': ['This field may not be blank.']})

        expired = False
        with transaction.atomic():
            invitation = Invitation.objects.select_for_update().filter(token=token).first() if token else None
            if invitation is None:
                raise NotFoundError("Invitation not found")

            if invitation.status != Invitation.Status.PENDING:
                raise ConflictError(
                    f"Invitation is {invitation.status}",
                    details={'status': invitation.status}
                )

            if invitation.is_expired:
                cls._mark_expired(invitation, request=request)
                expired = True
            else:
                if User.objects.email_taken(invitation.email):
                    raise ConflictError("An account with this email already exists")

                try:
                    validate_password(password, user=User(email=invitation.email, name=name))
                except DjangoValidationError as e:
                    raise ValidationError("Password is too weak", details={'password': list(e.messages)})

                now = timezone.now()
                user = User.objects.create_user(
                    email=invitation.email,
                    password=password,
                    name=name,
                    role=invitation.role,
                    status=UserStatus.ACTIVE,
                    invited_by=invitation.invited_by,
                    invited_at=invitation.created_at,
                )

                invitation.status = Invitation.Status.ACCEPTED
                invitation.accepted_at = now
                invitation.accepted_user = user
                invitation.save(update_fields=['status', 'accepted_at', 'accepted_user', 'updated_at'])

                AuditLogWriter.append(
                    AuditAction.INVITATION_ACCEPTED,
                    actor_id=user.id,
                    target_user_id=user.id,
                    metadata=_metadata(invitation),
                    request=request,
                )

        if expired:
            raise ConflictError("Invitation has expired", details={'status': Invitation.Status.EXPIRED})

        logger.info(
            "Invitation accepted",
            extra={'invitation_id': str(invitation.id), 'user_id': str(user.id)}
        )
        return {
            'user': user,
            'token': AuthService.generate_token(user),
        }

    @classmethod
    @transaction.atomic
    def resend(cls, invitation_id, actor: User, request=None) -> Invitation:
        """
        Re-send a pending invitation and push its expiry out again.

        Raises:
            NotFoundError: Unknown invitation
            AuthorizationError: Actor is neither the inviter nor admin+
            ConflictError: Invitation is no longer pending
        """
        invitation = cls._get_for_update(invitation_id)
        cls._check_can_manage(invitation, actor)

        if invitation.status != Invitation.Status.PENDING:
            raise ConflictError(f"Invitation is {invitation.status}", details={'status': invitation.status})

        invitation.expires_at = timezone.now() + timedelta(days=settings.INVITATION_EXPIRY_DAYS)
        invitation.save(update_fields=['expires_at', 'updated_at'])

        AuditLogWriter.append(
            AuditAction.INVITATION_RESENT,
            actor_id=actor.id,
            metadata=_metadata(invitation),
            request=request,
        )
        cls._enqueue_email(invitation, invitation.invited_by or actor)
        return invitation

    @classmethod
    @transaction.atomic
    def cancel(cls, invitation_id, actor: User, request=None) -> Invitation:
        """
        Cancel a pending invitation.

        Raises:
            NotFoundError: Unknown invitation
            AuthorizationError: Actor is neither the inviter nor admin+
            ConflictError: Invitation is no longer pending
        """
        invitation = cls._get_for_update(invitation_id)
        cls._check_can_manage(invitation, actor)

        if invitation.status != Invitation.Status.PENDING:
            raise ConflictError(f"Invitation is {invitation.status}", details={'status': invitation.status})

        invitation.status = Invitation.Status.CANCELLED
        invitation.save(update_fields=['status', 'updated_at'])

        AuditLogWriter.append(
            AuditAction.INVITATION_CANCELLED,
            actor_id=actor.id,
            metadata=_metadata(invitation),
            request=request,
        )
        return invitation

    @classmethod
    @transaction.atomic
    def expire_stale(cls) -> int:
        """
        Mark every past-due pending invitation as expired.

        Returns:
            Number of invitations expired
        """
        stale = list(Invitation.objects.stale().select_for_update())
        for invitation in stale:
            cls._mark_expired(invitation)

        if stale:
            logger.info(f"Expired {len(stale)} stale invitations", extra={'count': len(stale)})
        return len(stale)

    @classmethod
    def _mark_expired(cls, invitation: Invitation, request=None):
        invitation.status = Invitation.Status.EXPIRED
        invitation.save(update_fields=['status', 'updated_at'])
        AuditLogWriter.append(
            AuditAction.INVITATION_EXPIRED,
            metadata=_metadata(invitation),
            request=request,
        )

    @classmethod
    def _get_for_update(cls, invitation_id) -> Invitation:
        try:
            return Invitation.objects.select_for_update().get(id=invitation_id)
        except (Invitation.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFoundError("Invitation not found")

    @classmethod
    def _check_can_manage(cls, invitation: Invitation, actor: User):
        permissions = check_permission(actor)
        is_inviter = invitation.invited_by_id is not None and invitation.invited_by_id == actor.id
        if not permissions.can_invite_users() or not (is_inviter or permissions.has_role_or_higher(Role.ADMIN)):
            raise AuthorizationError("Only the inviter or an admin may manage this invitation")

    @classmethod
    def _enqueue_email(cls, invitation: Invitation, inviter: Optional[User]):
        NotificationService.enqueue(
            template_name='invitation',
            recipient=invitation.email,
            subject="You're invited to Tender Hub",
            context={
                'inviter_name': inviter.get_full_name() if inviter else 'Tender Hub',
                'role': invitation.role,
                'accept_url': invitation.accept_url,
                'expires_at': invitation.expires_at.strftime('%d %B %Y'),
            },
        )

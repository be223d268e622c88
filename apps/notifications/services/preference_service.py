"""
Email preference and unsubscribe service.
"""
import logging
from typing import Dict, Optional

from django.db import transaction
from django.utils import timezone

from apps.audit.schemas import (
    AuditAction, EmailPreferencesUpdatedMetadata, EmailUnsubscribedMetadata,
)
from apps.audit.services import AuditLogWriter
from apps.core.exceptions import NotFoundError, ValidationError
from apps.notifications.models import EmailPreference, PREFERENCE_FIELDS

logger = logging.getLogger(__name__)


class EmailPreferenceService:
    """
    Reads and changes which optional emails a user receives.

    Changes are audited: session-based updates with the user as actor,
    token-based unsubscribes with the token's owner as actor.
    """

    @classmethod
    def get(cls, user) -> EmailPreference:
        return EmailPreference.objects.for_user(user)

    @classmethod
    def update(cls, user, changes: Dict[str, bool], request=None) -> EmailPreference:
        """
        Switch preference categories on or off.

        Args:
            user: User whose preferences change
            changes: Category name to enabled flag
            request: Originating request, for audit context

        Raises:
            ValidationError: Empty change-set, unknown category or a
                non-boolean value
        """
        cls._validate_changes(changes)

        with transaction.atomic():
            preference = EmailPreference.objects.select_for_update().get(
                pk=EmailPreference.objects.for_user(user).pk
            )
            previous = preference.as_dict()

            for category, enabled in changes.items():
                setattr(preference, category, enabled)
            if any(changes.values()):
                preference.unsubscribed_at = None
            preference.save()

            if preference.as_dict() != previous:
                AuditLogWriter.append(
                    AuditAction.EMAIL_PREFERENCES_UPDATED,
                    actor_id=user.id,
                    target_user_id=user.id,
                    metadata=EmailPreferencesUpdatedMetadata(
                        previous_values=previous,
                        new_values=preference.as_dict(),
                    ),
                    request=request,
                )

        logger.info(
            "Email preferences updated",
            extra={'user_id': str(user.id), 'categories': sorted(changes)}
        )
        return preference

    @classmethod
    def unsubscribe(
        cls,
        token: str,
        category: Optional[str] = None,
        unsubscribe_all: bool = False,
        reason: Optional[str] = None,
        request=None,
    ) -> EmailPreference:
        """
        Opt out through an emailed link.

        Args:
            token: Unsubscribe token from the link
            category: Single category to switch off
            unsubscribe_all: Switch off every optional category
            reason: Free-text reason, kept on the row
            request: Originating request, for audit context

        Raises:
            NotFoundError: Unknown token
            ValidationError: Neither a known category nor unsubscribe_all
        """
        if unsubscribe_all:
            categories = list(PREFERENCE_FIELDS)
        elif category in PREFERENCE_FIELDS:
            categories = [category]
        else:
            raise ValidationError(
                "Choose an email type or unsubscribe from all",
                details={'type': [f'Must be one of: {", ".join(PREFERENCE_FIELDS)}.']}
            )

        with transaction.atomic():
            preference = EmailPreference.objects.by_token(token)
            if preference is None:
                raise NotFoundError("Unsubscribe link is not valid")

            for name in categories:
                setattr(preference, name, False)
            if unsubscribe_all:
                preference.unsubscribed_at = timezone.now()
            if reason:
                preference.unsubscribe_reason = reason.strip()
            preference.save()

            AuditLogWriter.append(
                AuditAction.EMAIL_UNSUBSCRIBED,
                actor_id=preference.user_id,
                target_user_id=preference.user_id,
                metadata=EmailUnsubscribedMetadata(
                    categories=categories,
                    unsubscribe_all=unsubscribe_all,
                    reason=reason or None,
                ),
                request=request,
            )

        logger.info(
            f"Unsubscribed from {', '.join(categories)}",
            extra={'user_id': str(preference.user_id)}
        )
        return preference

    @staticmethod
    def _validate_changes(changes):
        if not isinstance(changes, dict) or not changes:
            raise ValidationError(
                "No preferences to update",
                details={'preferences': ['Provide at least one preference.']}
            )

        errors = {}
        for category, enabled in changes.items():
            if category not in PREFERENCE_FIELDS:
                errors[category] = ['Unknown email preference.']
            elif not isinstance(enabled, bool):
                errors[category] = ['Must be true or false.']
        if errors:
            raise ValidationError("Invalid email preferences", details=errors)

"""
Publisher bookmark service.
"""
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction

from apps.core.exceptions import NotFoundError
from apps.directory.models import Bookmark, Publisher

logger = logging.getLogger(__name__)


class BookmarkService:
    """Adds and removes publishers on a user's shortlist. Both calls are idempotent."""

    @classmethod
    def add(cls, user, publisher_id):
        """
        Bookmark a publisher.

        Returns:
            Tuple of (Bookmark, created)

        Raises:
            NotFoundError: Unknown publisher
        """
        publisher = cls._get_publisher(publisher_id)

        try:
            with transaction.atomic():
                bookmark, created = Bookmark.objects.get_or_create(user=user, publisher=publisher)
        except IntegrityError:
            # A concurrent request created it first
            bookmark, created = Bookmark.objects.get(user=user, publisher=publisher), False

        if created:
            logger.info(
                f"Publisher bookmarked: {publisher.name}",
                extra={'user_id': str(user.id), 'publisher_id': str(publisher.id)}
            )
        return bookmark, created

    @classmethod
    def remove(cls, user, publisher_id) -> bool:
        """
        Remove a bookmark.

        Returns:
            True if a bookmark was deleted

        Raises:
            NotFoundError: Unknown publisher
        """
        publisher = cls._get_publisher(publisher_id)
        deleted, _ = Bookmark.objects.filter(user=user, publisher=publisher).delete()

        if deleted:
            logger.info(
                f"Publisher bookmark removed: {publisher.name}",
                extra={'user_id': str(user.id), 'publisher_id': str(publisher.id)}
            )
        return bool(deleted)

    @staticmethod
    def _get_publisher(publisher_id) -> Publisher:
        try:
            return Publisher.objects.get(id=publisher_id)
        except (Publisher.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFoundError("Publisher not found")

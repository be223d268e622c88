"""
Tender publisher directory models.
"""
import uuid

from django.conf import settings
from django.db import models

from apps.core.models import BaseModel


class Province(BaseModel):
    """A province whose government bodies publish tenders."""

    name = models.CharField(
        max_length=100,
        unique=True,
        help_text="Province name (e.g., 'Gauteng')"
    )
    code = models.CharField(
        max_length=10,
        unique=True,
        help_text="Short code (e.g., 'GP')"
    )
    description = models.TextField(
        blank=True,
        help_text="Optional notes about the province"
    )

    class Meta:
        db_table = 'provinces'
        ordering = ['name']

    def __str__(self):
        return self.name


class PublisherQuerySet(models.QuerySet):

    def in_province(self, province):
        """Publishers in ``province`` (instance, ID or code)."""
        if isinstance(province, Province):
            return self.filter(province=province)
        try:
            return self.filter(province_id=uuid.UUID(str(province)))
        except ValueError:
            return self.filter(province__code__iexact=province)

    def search(self, term):
        return self.filter(models.Q(name__icontains=term) | models.Q(description__icontains=term))

    def with_bookmark_flag(self, user):
        """Annotate ``is_bookmarked`` for ``user``."""
        if not getattr(user, 'is_authenticated', False):
            return self.annotate(is_bookmarked=models.Value(False, output_field=models.BooleanField()))
        return self.annotate(
            is_bookmarked=models.Exists(
                Bookmark.objects.filter(user=user, publisher=models.OuterRef('pk'))
            )
        )

    def bookmarked_by(self, user):
        return self.filter(bookmarks__user=user)


class Publisher(BaseModel):
    """A government body that publishes tenders."""

    name = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Publisher name (e.g., 'Gauteng Department of Health')"
    )
    website = models.URLField(
        blank=True,
        help_text="Publisher's tender page or homepage"
    )
    province = models.ForeignKey(
        Province,
        on_delete=models.PROTECT,
        related_name='publishers',
        help_text="Province the publisher belongs to"
    )
    description = models.TextField(
        blank=True,
        help_text="Optional notes about the publisher"
    )

    objects = PublisherQuerySet.as_manager()

    class Meta:
        db_table = 'publishers'
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(fields=['province', 'name'], name='unique_publisher_per_province'),
        ]

    def __str__(self):
        return self.name


class Bookmark(BaseModel):
    """A publisher a user keeps on their shortlist."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='bookmarks',
        help_text="User who bookmarked the publisher"
    )
    publisher = models.ForeignKey(
        Publisher,
        on_delete=models.CASCADE,
        related_name='bookmarks',
        help_text="Bookmarked publisher"
    )

    class Meta:
        db_table = 'publisher_bookmarks'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['user', 'publisher'], name='unique_bookmark_per_user'),
        ]

    def __str__(self):
        return f"{self.user_id} -> {self.publisher_id}"

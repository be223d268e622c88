"""
Django admin for the publisher directory.
"""
from django.contrib import admin

from apps.directory.models import Bookmark, Province, Publisher


class PublisherInline(admin.TabularInline):
    model = Publisher
    extra = 0
    fields = ['name', 'website']


@admin.register(Province)
class ProvinceAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'created_at']
    search_fields = ['name', 'code']
    ordering = ['name']
    inlines = [PublisherInline]


@admin.register(Publisher)
class PublisherAdmin(admin.ModelAdmin):
    list_display = ['name', 'province', 'website', 'created_at']
    list_filter = ['province']
    search_fields = ['name', 'description']
    ordering = ['name']


@admin.register(Bookmark)
class BookmarkAdmin(admin.ModelAdmin):
    list_display = ['user', 'publisher', 'created_at']
    search_fields = ['user__email', 'publisher__name']
    raw_id_fields = ['user', 'publisher']
    ordering = ['-created_at']

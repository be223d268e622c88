"""
Serializers for the publisher directory.
"""
from rest_framework import serializers

from apps.directory.models import Province, Publisher


class ProvinceSerializer(serializers.ModelSerializer):
    """Serializer for Province model."""

    publisher_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = Province
        fields = ['id', 'name', 'code', 'description', 'publisher_count', 'created_at', 'updated_at']
        read_only_fields = ['id', 'publisher_count', 'created_at', 'updated_at']

    def validate_code(self, value):
        return value.strip().upper()


class PublisherSerializer(serializers.ModelSerializer):
    """Serializer for Publisher model."""

    province = serializers.PrimaryKeyRelatedField(queryset=Province.objects.all())
    province_name = serializers.CharField(source='province.name', read_only=True)
    is_bookmarked = serializers.BooleanField(read_only=True, default=False)

    class Meta:
        model = Publisher
        fields = [
            'id', 'name', 'website', 'province', 'province_name', 'description',
            'is_bookmarked', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'province_name', 'is_bookmarked', 'created_at', 'updated_at']

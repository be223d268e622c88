"""
Views for the province and publisher directory.
"""
from django.db.models import Count, ProtectedError
from rest_framework import status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import ConflictError
from apps.core.pagination import StandardResultsSetPagination
from apps.core.permissions import HasRole
from apps.directory.models import Province, Publisher
from apps.directory.serializers import ProvinceSerializer, PublisherSerializer
from apps.directory.services import BookmarkService
from apps.rbac.roles import Role

# Any signed-in user may browse; only admins and owners edit the directory.
DIRECTORY_ROLES = {
    'SAFE': Role.USER,
    'POST': Role.ADMIN,
    'PUT': Role.ADMIN,
    'PATCH': Role.ADMIN,
    'DELETE': Role.ADMIN,
}


@extend_schema_view(
    list=extend_schema(tags=['Directory'], summary='List provinces'),
    retrieve=extend_schema(tags=['Directory'], summary='Get province'),
    create=extend_schema(tags=['Directory'], summary='Create province (admin)'),
    update=extend_schema(tags=['Directory'], summary='Replace province (admin)'),
    partial_update=extend_schema(tags=['Directory'], summary='Update province (admin)'),
    destroy=extend_schema(tags=['Directory'], summary='Delete province (admin)'),
)
class ProvinceViewSet(viewsets.ModelViewSet):
    """
    ViewSet for provinces.

    Required role:
    - user: For GET operations
    - admin: For POST, PUT, PATCH, DELETE operations
    """

    permission_classes = [IsAuthenticated, HasRole]
    required_role = DIRECTORY_ROLES
    serializer_class = ProvinceSerializer
    pagination_class = StandardResultsSetPagination

    def get_queryset(self):
        return Province.objects.annotate(publisher_count=Count('publishers')).order_by('name')

    def perform_destroy(self, instance):
        try:
            instance.delete()
        except ProtectedError:
            raise ConflictError("Province still has publishers")


@extend_schema_view(
    list=extend_schema(
        tags=['Directory'],
        summary='List publishers',
        parameters=[
            OpenApiParameter('province', str, description='Province ID or code'),
            OpenApiParameter('search', str, description='Search in name and description'),
            OpenApiParameter('bookmarked', bool, description='Only publishers the caller bookmarked'),
            OpenApiParameter('page', int, description='Page number'),
            OpenApiParameter('page_size', int, description='Number of items per page (max 100)'),
        ],
    ),
    retrieve=extend_schema(tags=['Directory'], summary='Get publisher'),
    create=extend_schema(tags=['Directory'], summary='Create publisher (admin)'),
    update=extend_schema(tags=['Directory'], summary='Replace publisher (admin)'),
    partial_update=extend_schema(tags=['Directory'], summary='Update publisher (admin)'),
    destroy=extend_schema(tags=['Directory'], summary='Delete publisher (admin)'),
)
class PublisherViewSet(viewsets.ModelViewSet):
    """
    ViewSet for tender publishers.

    Required role:
    - user: For GET operations
    - admin: For POST, PUT, PATCH, DELETE operations
    """

    permission_classes = [IsAuthenticated, HasRole]
    required_role = DIRECTORY_ROLES
    serializer_class = PublisherSerializer
    pagination_class = StandardResultsSetPagination

    def get_queryset(self):
        queryset = Publisher.objects.select_related('province').with_bookmark_flag(self.request.user)

        if self.action == 'list':
            if self.request.query_params.get('bookmarked') in ('true', '1'):
                queryset = queryset.bookmarked_by(self.request.user)

            province = self.request.query_params.get('province')
            if province:
                queryset = queryset.in_province(province)

            search = self.request.query_params.get('search')
            if search:
                queryset = queryset.search(search)

        return queryset.order_by('name')


@extend_schema_view(
    put=extend_schema(
        tags=['Directory'],
        summary='Bookmark publisher',
        description='Add the publisher to your bookmarks. Returns 201 when added, 200 if it was already bookmarked.',
        request=None,
        responses={200: PublisherSerializer, 201: PublisherSerializer, 404: OpenApiTypes.OBJECT},
    ),
    delete=extend_schema(
        tags=['Directory'],
        summary='Remove publisher bookmark',
        description='Remove the publisher from your bookmarks. Removing a missing bookmark is not an error.',
        request=None,
        responses={204: None, 404: OpenApiTypes.OBJECT},
    ),
)
class PublisherBookmarkView(APIView):
    """
    PUT/DELETE /v1/publishers/{id}/bookmark

    Required role: user
    """

    permission_classes = [IsAuthenticated, HasRole]
    required_role = Role.USER

    def put(self, request, publisher_id):
        bookmark, created = BookmarkService.add(request.user, publisher_id)
        publisher = (
            Publisher.objects.select_related('province')
            .with_bookmark_flag(request.user)
            .get(id=bookmark.publisher_id)
        )
        return Response(
            PublisherSerializer(publisher).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK
        )

    def delete(self, request, publisher_id):
        BookmarkService.remove(request.user, publisher_id)
        return Response(status=status.HTTP_204_NO_CONTENT)

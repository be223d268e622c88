"""
URL configuration for the publisher directory.
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from apps.directory.views import ProvinceViewSet, PublisherViewSet, PublisherBookmarkView

router = DefaultRouter(trailing_slash=False)
router.register(r'provinces', ProvinceViewSet, basename='province')
router.register(r'publishers', PublisherViewSet, basename='publisher')

urlpatterns = [
    path('publishers/<uuid:publisher_id>/bookmark', PublisherBookmarkView.as_view(), name='publisher-bookmark'),
    path('', include(router.urls)),
]

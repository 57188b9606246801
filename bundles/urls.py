"""Admin API URLs for bundle management."""
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

router = DefaultRouter()
router.register(r'bundles', views.BundleViewSet, basename='bundle')

urlpatterns = [
    path('', include(router.urls)),
]

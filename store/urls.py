from django.contrib import admin
from django.urls import path, include
from rest_framework.authtoken import views as authtoken_views
from django.conf import settings
from django.conf.urls.static import static
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView, SpectacularRedocView
from django.http import JsonResponse


def api_root(request):
    """Root endpoint providing API information."""
    return JsonResponse({
        'name': 'Bundle Engine API',
        'version': '1.0.0',
        'description': 'Product bundling for the storefront: authoring, pricing, availability and analytics',
        'endpoints': {
            'admin': '/admin/',
            'bundles_admin_api': '/api/admin/bundles/',
            'public_api': '/api/v1/public/bundles/',
            'api_schema': '/api/schema/',
        },
        'documentation': {
            'swagger_ui': '/api/schema/swagger-ui/',
            'redoc': '/api/schema/redoc/',
            'openapi_schema': '/api/schema/',
        }
    })


urlpatterns = [
    # 0. Root endpoint
    path('', api_root, name='api-root'),

    # 1. Django Admin Interface
    path('admin/', admin.site.urls),
    path('api/auth/token/login/', authtoken_views.obtain_auth_token, name='api-token-login'),
    path('api/auth/', include('rest_framework.urls')),

    # 2. Bundle management API (staff)
    path('api/admin/', include('bundles.urls')),

    # 3. Public storefront API
    path('api/v1/public/', include('bundles.urls_public')),

    # 4. API Documentation (drf-spectacular generated)
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/schema/swagger-ui/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    path('api/schema/redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),
]

# Serve media files in development (Cloudinary handles in production)
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)

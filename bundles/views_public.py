"""
Public storefront API for bundles. Anonymous access; only available bundles are listed.
"""
import logging

from django.conf import settings
from django.core.cache import cache
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiTypes, OpenApiParameter
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

from catalog.lookup import CatalogProductLookup
from .filters import PublicBundleFilter
from .models import Bundle
from .repository import to_aggregate
from .serializers_public import PublicBundleSerializer, SelectionRequestSerializer, PricedLineSerializer
from .services.analytics_service import BundleAnalyticsService
from .services.availability_service import ensure_available
from .services.cache_service import homepage_cache_key
from .services.pricing_service import compute_price
from .services.selection_service import resolve_selection
from .views import validated

logger = logging.getLogger(__name__)

SORTS = {
    'display_order': ('display_order', 'created_at', 'id'),
    'name': ('name', 'id'),
    'newest': ('-created_at', '-id'),
    'popularity': ('-purchase_count', '-view_count', 'id'),
}

RELATED_LIMIT = 4


class PublicBundlePagination(PageNumberPagination):
    page_size = 12
    page_size_query_param = 'per_page'
    max_page_size = getattr(settings, 'BUNDLE_MAX_PAGE_SIZE', 50)


@extend_schema_view(
    list=extend_schema(
        parameters=[
            OpenApiParameter('search', OpenApiTypes.STR, OpenApiParameter.QUERY),
            OpenApiParameter('type', OpenApiTypes.STR, OpenApiParameter.QUERY, enum=Bundle.BundleType.values),
            OpenApiParameter('sort', OpenApiTypes.STR, OpenApiParameter.QUERY, enum=list(SORTS)),
            OpenApiParameter('page', OpenApiTypes.INT, OpenApiParameter.QUERY),
            OpenApiParameter('per_page', OpenApiTypes.INT, OpenApiParameter.QUERY),
        ]
    ),
)
class PublicBundleViewSet(viewsets.ReadOnlyModelViewSet):
    """Public bundle browsing, price calculation and add-to-cart."""
    serializer_class = PublicBundleSerializer
    permission_classes = [permissions.AllowAny]
    authentication_classes = []
    pagination_class = PublicBundlePagination
    filter_backends = [DjangoFilterBackend]
    filterset_class = PublicBundleFilter
    lookup_field = 'slug'

    def get_queryset(self):
        if self.action in ('calculate', 'add_to_cart'):
            # Scheduled, expired and sold-out bundles must answer with their status, not a 404
            queryset = Bundle.objects.filter(is_active=True)
        else:
            queryset = Bundle.objects.available()
        if self.action == 'list':
            sort = self.request.query_params.get('sort', 'display_order')
            queryset = queryset.order_by(*SORTS.get(sort, SORTS['display_order']))
        return queryset.with_children()

    def retrieve(self, request, *args, **kwargs):
        bundle = self.get_object()
        BundleAnalyticsService.record_view(bundle.id)
        return Response(self.get_serializer(bundle).data)

    @extend_schema(responses=OpenApiTypes.OBJECT)
    @action(detail=False, methods=['get'])
    def homepage(self, request):
        """
        Available homepage bundles grouped by position.
        Only the layout (bundle ids per position) is cached until the next bundle change;
        prices come from the catalog on every request.
        """
        key = homepage_cache_key()
        layout = cache.get(key)
        if layout is None:
            layout = {position: [] for position in Bundle.HomepagePosition.values}
            for bundle_id, position in Bundle.objects.homepage().values_list('id', 'homepage_position'):
                layout[position or Bundle.HomepagePosition.GRID].append(bundle_id)
            cache.set(key, layout, getattr(settings, 'BUNDLE_HOMEPAGE_CACHE_TIMEOUT', 300))

        ids = [bundle_id for bundle_ids in layout.values() for bundle_id in bundle_ids]
        by_id = {bundle.pk: bundle for bundle in Bundle.objects.homepage().with_children().filter(pk__in=ids)}
        data = {}
        for position, bundle_ids in layout.items():
            bundles = [by_id[bundle_id] for bundle_id in bundle_ids if bundle_id in by_id]
            data[position] = self.get_serializer(bundles, many=True).data
        return Response(data)

    def _resolve(self, bundle, request):
        data = validated(SelectionRequestSerializer(data=request.data))
        aggregate = to_aggregate(bundle)
        lookup = CatalogProductLookup()
        resolved = resolve_selection(aggregate, data.get('selections') or [], lookup)
        pricing = compute_price(aggregate, lookup, lines=list(resolved.lines))
        return resolved, pricing

    @extend_schema(request=SelectionRequestSerializer, responses=OpenApiTypes.OBJECT)
    @action(detail=True, methods=['post'])
    def calculate(self, request, slug=None):
        """Price a concrete selection without adding it to the cart."""
        bundle = self.get_object()
        ensure_available(bundle)
        resolved, pricing = self._resolve(bundle, request)
        return Response({
            'bundle_id': bundle.id,
            'pricing': pricing.as_dict(),
            'lines': PricedLineSerializer(resolved.lines, many=True).data,
        })

    @extend_schema(
        request=SelectionRequestSerializer,
        parameters=[OpenApiParameter('Idempotency-Key', OpenApiTypes.STR, OpenApiParameter.HEADER)],
        responses=OpenApiTypes.OBJECT,
    )
    @action(detail=True, methods=['post'], url_path='add-to-cart')
    def add_to_cart(self, request, slug=None):
        """
        Gate on availability, validate the selection and hand priced lines to the cart.
        An Idempotency-Key header keeps retried requests from being counted twice.
        """
        bundle = self.get_object()
        ensure_available(bundle)
        resolved, pricing = self._resolve(bundle, request)
        recorded = BundleAnalyticsService.record_add_to_cart(
            bundle.id, event_key=request.headers.get('Idempotency-Key') or None
        )
        return Response(
            {
                'bundle_id': bundle.id,
                'slug': bundle.slug,
                'name': bundle.name,
                'cart_display': resolved.cart_display,
                'allow_coupon_stacking': bundle.allow_coupon_stacking,
                'lines': PricedLineSerializer(resolved.lines, many=True).data,
                'pricing': pricing.as_dict(),
                'recorded': recorded,
            },
            status=status.HTTP_201_CREATED if recorded else status.HTTP_200_OK,
        )

    @extend_schema(responses=PublicBundleSerializer(many=True))
    @action(detail=True, methods=['get'])
    def related(self, request, slug=None):
        bundle = self.get_object()
        others = (
            Bundle.objects.available()
            .exclude(pk=bundle.pk)
            .order_by(*SORTS['popularity'])
            .with_children()[:RELATED_LIMIT]
        )
        return Response(self.get_serializer(others, many=True).data)

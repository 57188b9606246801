import logging

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiTypes, OpenApiParameter
from rest_framework import filters, status, viewsets
from rest_framework.decorators import action
from rest_framework.pagination import PageNumberPagination
from rest_framework.parsers import MultiPartParser, FormParser, JSONParser
from rest_framework.response import Response
from django.conf import settings

from .exceptions import BundleValidationError, errors_from_serializer
from .filters import BundleFilter
from .models import Bundle
from .permissions import IsBundleManagerOrReadOnly
from .serializers import (
    BundleSerializer,
    BundleWriteSerializer,
    BundleDuplicateSerializer,
    BundleBulkActionSerializer,
    BundleSlotInputSerializer,
    BundleSlotSerializer,
    BundleItemInputSerializer,
    BundleItemSerializer,
    BundleImageUploadSerializer,
    BundleImageSerializer,
    BundlePurchaseSerializer,
)
from .services.analytics_service import BundleAnalyticsService
from .services.availability_service import availability_status
from .services.cache_service import CacheInvalidator
from .services.image_storage import BundleImageStorage
from .services.management_service import BundleManagementService

logger = logging.getLogger(__name__)


def validated(serializer):
    """is_valid() that reports failures as a 422 error list instead of a 400."""
    if not serializer.is_valid():
        errors = errors_from_serializer(serializer.errors)
        if hasattr(serializer, 'structural_errors'):
            errors += serializer.structural_errors(errors)
        raise BundleValidationError(errors)
    return serializer.validated_data


class BundlePagination(PageNumberPagination):
    page_size = 15
    page_size_query_param = 'per_page'
    max_page_size = getattr(settings, 'BUNDLE_MAX_PAGE_SIZE', 50)


@extend_schema_view(
    list=extend_schema(
        parameters=[
            OpenApiParameter('search', OpenApiTypes.STR, OpenApiParameter.QUERY),
            OpenApiParameter('type', OpenApiTypes.STR, OpenApiParameter.QUERY, enum=Bundle.BundleType.values),
            OpenApiParameter('available_only', OpenApiTypes.BOOL, OpenApiParameter.QUERY),
            OpenApiParameter('per_page', OpenApiTypes.INT, OpenApiParameter.QUERY),
        ]
    ),
    create=extend_schema(request=BundleWriteSerializer, responses=BundleSerializer),
    update=extend_schema(request=BundleWriteSerializer, responses=BundleSerializer),
    partial_update=extend_schema(request=BundleWriteSerializer, responses=BundleSerializer),
)
class BundleViewSet(viewsets.ModelViewSet):
    """Bundle management ViewSet (staff read, bundle managers write)."""
    queryset = Bundle.objects.all()
    serializer_class = BundleSerializer
    permission_classes = [IsBundleManagerOrReadOnly]
    pagination_class = BundlePagination
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_class = BundleFilter
    ordering_fields = '__all__'
    ordering = ['-created_at']
    parser_classes = [JSONParser, MultiPartParser, FormParser]

    def get_queryset(self):
        return Bundle.objects.with_children().select_related('created_by')

    def get_serializer_class(self):
        if self.action in ('create', 'update', 'partial_update'):
            return BundleWriteSerializer
        return BundleSerializer

    def get_service(self):
        return BundleManagementService(invalidator=CacheInvalidator(), storage=BundleImageStorage())

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['service'] = self.get_service()
        return context

    def _bundle_response(self, bundle, status_code=status.HTTP_200_OK):
        bundle = Bundle.objects.with_children().select_related('created_by').get(pk=bundle.pk)
        return Response(BundleSerializer(bundle, context=self.get_serializer_context()).data, status=status_code)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        validated(serializer)
        bundle = serializer.save()
        return self._bundle_response(bundle, status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        serializer = self.get_serializer(self.get_object(), data=request.data, partial=partial)
        validated(serializer)
        bundle = serializer.save()
        return self._bundle_response(bundle)

    def destroy(self, request, *args, **kwargs):
        self.get_service().delete(self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(request=BundleDuplicateSerializer, responses=BundleSerializer)
    @action(detail=True, methods=['post'])
    def duplicate(self, request, pk=None):
        """Deep copy of the bundle with fresh slug/SKU and zeroed counters."""
        bundle = self.get_object()
        data = validated(BundleDuplicateSerializer(data=request.data))
        copy = self.get_service().duplicate(bundle, is_active=data.get('is_active'), user=request.user)
        return self._bundle_response(copy, status.HTTP_201_CREATED)

    @extend_schema(request=None, responses=BundleSerializer)
    @action(detail=True, methods=['post'])
    def toggle(self, request, pk=None):
        bundle = self.get_service().toggle(self.get_object())
        return self._bundle_response(bundle)

    @extend_schema(request=BundleBulkActionSerializer, responses=OpenApiTypes.OBJECT)
    @action(detail=False, methods=['post'], url_path='bulk-action')
    def bulk_action(self, request):
        data = validated(BundleBulkActionSerializer(data=request.data))
        affected = self.get_service().bulk_action(data['ids'], data['action'])
        return Response({'action': data['action'], 'affected': affected})

    # -- Slots ---------------------------------------------------------------

    @extend_schema(request=BundleSlotInputSerializer, responses=BundleSlotSerializer)
    @action(detail=True, methods=['post'])
    def slots(self, request, pk=None):
        bundle = self.get_object()
        data = validated(BundleSlotInputSerializer(data=request.data))
        slot = self.get_service().add_slot(bundle, data)
        return Response(BundleSlotSerializer(slot).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=BundleSlotInputSerializer, responses=BundleSlotSerializer)
    @action(detail=True, methods=['patch', 'delete'], url_path=r'slots/(?P<slot_id>[^/.]+)')
    def slot_detail(self, request, pk=None, slot_id=None):
        bundle = self.get_object()
        service = self.get_service()
        if request.method == 'DELETE':
            service.remove_slot(bundle, slot_id)
            return Response(status=status.HTTP_204_NO_CONTENT)
        data = validated(BundleSlotInputSerializer(data=request.data, partial=True))
        slot = service.update_slot(bundle, slot_id, data)
        return Response(BundleSlotSerializer(slot).data)

    # -- Items ---------------------------------------------------------------

    @extend_schema(request=BundleItemInputSerializer, responses=BundleItemSerializer)
    @action(detail=True, methods=['post'])
    def items(self, request, pk=None):
        bundle = self.get_object()
        data = validated(BundleItemInputSerializer(data=request.data))
        item = self.get_service().add_item(bundle, data)
        return Response(BundleItemSerializer(item).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=BundleItemInputSerializer, responses=BundleItemSerializer)
    @action(detail=True, methods=['patch', 'delete'], url_path=r'items/(?P<item_id>[^/.]+)')
    def item_detail(self, request, pk=None, item_id=None):
        bundle = self.get_object()
        service = self.get_service()
        if request.method == 'DELETE':
            service.remove_item(bundle, item_id)
            return Response(status=status.HTTP_204_NO_CONTENT)
        data = validated(BundleItemInputSerializer(data=request.data, partial=True))
        item = service.update_item(bundle, item_id, data)
        return Response(BundleItemSerializer(item).data)

    # -- Images --------------------------------------------------------------

    @extend_schema(request=BundleImageUploadSerializer, responses=BundleImageSerializer(many=True))
    @action(detail=True, methods=['post'], parser_classes=[MultiPartParser, FormParser])
    def images(self, request, pk=None):
        bundle = self.get_object()
        data = validated(BundleImageUploadSerializer(data=request.data))
        images = self.get_service().upload_images(bundle, data['images'], alt_text=data.get('alt_text', ''))
        return Response(BundleImageSerializer(images, many=True).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=None, responses=None)
    @action(detail=True, methods=['delete'], url_path=r'images/(?P<image_id>[^/.]+)')
    def image_detail(self, request, pk=None, image_id=None):
        self.get_service().delete_image(self.get_object(), image_id)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(request=None, responses=BundleImageSerializer)
    @action(detail=True, methods=['post'], url_path=r'images/(?P<image_id>[^/.]+)/primary')
    def image_primary(self, request, pk=None, image_id=None):
        image = self.get_service().set_primary_image(self.get_object(), image_id)
        return Response(BundleImageSerializer(image).data)

    # -- Analytics -----------------------------------------------------------

    @extend_schema(responses=OpenApiTypes.OBJECT)
    @action(detail=True, methods=['get'])
    def analytics(self, request, pk=None):
        """Counters, conversion rates, stock and current pricing for one bundle."""
        bundle = self.get_object()
        serialized = BundleSerializer(bundle, context=self.get_serializer_context()).data
        stats = BundleAnalyticsService.breakdown(bundle)
        return Response({
            'bundle_id': bundle.id,
            'name': bundle.name,
            'availability_status': availability_status(bundle),
            'view_count': stats['view_count'],
            'add_to_cart_count': stats['add_to_cart_count'],
            'purchase_count': stats['purchase_count'],
            'revenue': serialized['revenue'],
            'conversion_rate': str(stats['conversion_rate']),
            'add_to_cart_rate': str(stats['add_to_cart_rate']),
            'stock_limit': bundle.stock_limit,
            'stock_sold': bundle.stock_sold,
            'stock_remaining': bundle.stock_remaining,
            'pricing': serialized['pricing'],
        })

    @extend_schema(request=BundlePurchaseSerializer, responses=OpenApiTypes.OBJECT)
    @action(detail=True, methods=['post'])
    def purchases(self, request, pk=None):
        """Checkout hook: count a completed purchase and consume stock atomically."""
        bundle = self.get_object()
        data = validated(BundlePurchaseSerializer(data=request.data))
        recorded = BundleAnalyticsService.record_purchase(
            bundle.id,
            revenue_delta=data['revenue'],
            units_delta=data['units'],
            event_key=data.get('event_key'),
        )
        bundle.refresh_from_db()
        return Response(
            {
                'recorded': recorded,
                'stock_sold': bundle.stock_sold,
                'stock_remaining': bundle.stock_remaining,
                'purchase_count': bundle.purchase_count,
            },
            status=status.HTTP_201_CREATED if recorded else status.HTTP_200_OK,
        )

from rest_framework import serializers
from django.utils import timezone
import logging

from catalog.lookup import CatalogProductLookup, InMemoryProductLookup
from .models import Bundle, BundleItem, BundleSlot, BundleSlotProduct, BundleImage
from . import repository
from .repository import to_aggregate
from .services.management_service import BundleManagementService
from .services.pricing_service import compute_price, format_money
from .services.validation_service import collect_errors

logger = logging.getLogger(__name__)


class MoneyField(serializers.Field):
    """Read-only Decimal rendered as a string rounded to the currency minor unit."""

    def __init__(self, **kwargs):
        kwargs['read_only'] = True
        super().__init__(**kwargs)

    def to_representation(self, value):
        if value is None:
            return None
        return str(format_money(value))


# -------------------------------------------------------------------------
# READ SERIALIZERS
# -------------------------------------------------------------------------

class _ProductContextMixin:
    """Child rows resolve product names and prices from the `products` map in context."""

    def _info(self, obj):
        return self.context.get('products', {}).get(obj.product_id)

    def get_product_name(self, obj):
        info = self._info(obj)
        return info.name if info else None

    def get_catalog_price(self, obj):
        info = self._info(obj)
        return str(format_money(info.price)) if info else None

    def get_is_stale(self, obj):
        """Product no longer exists in the catalog."""
        return self._info(obj) is None

    def get_is_available(self, obj):
        info = self._info(obj)
        return bool(info and info.is_available)


class BundleItemSerializer(_ProductContextMixin, serializers.ModelSerializer):
    product_name = serializers.SerializerMethodField()
    catalog_price = serializers.SerializerMethodField()
    is_stale = serializers.SerializerMethodField()
    is_available = serializers.SerializerMethodField()

    class Meta:
        model = BundleItem
        fields = (
            'id', 'product_id', 'product_name', 'quantity', 'price_override',
            'catalog_price', 'sort_order', 'is_available', 'is_stale'
        )


class BundleSlotProductSerializer(_ProductContextMixin, serializers.ModelSerializer):
    product_name = serializers.SerializerMethodField()
    catalog_price = serializers.SerializerMethodField()
    is_stale = serializers.SerializerMethodField()
    is_available = serializers.SerializerMethodField()

    class Meta:
        model = BundleSlotProduct
        fields = ('id', 'product_id', 'product_name', 'price_override', 'catalog_price', 'is_available', 'is_stale')


class BundleSlotSerializer(serializers.ModelSerializer):
    products = BundleSlotProductSerializer(many=True, read_only=True)

    class Meta:
        model = BundleSlot
        fields = (
            'id', 'name', 'description', 'slot_order', 'is_required',
            'min_selections', 'max_selections', 'products'
        )


class BundleImageSerializer(serializers.ModelSerializer):
    thumbnail_url = serializers.SerializerMethodField()

    class Meta:
        model = BundleImage
        fields = ('id', 'url', 'thumbnail_url', 'alt_text', 'is_primary', 'sort_order', 'created_at')

    def get_thumbnail_url(self, obj):
        """Return optimized thumbnail URL with Cloudinary transformations"""
        from .cloudinary_utils import get_optimized_image_url
        return get_optimized_image_url(obj.url, width=400, height=400)


class BundleSerializer(serializers.ModelSerializer):
    """
    Full bundle for the admin API: children expanded, live pricing, availability and
    stale-product warnings. Prices are computed per request from the catalog.
    """
    items = serializers.SerializerMethodField()
    slots = serializers.SerializerMethodField()
    images = BundleImageSerializer(many=True, read_only=True)
    primary_image = serializers.SerializerMethodField()
    pricing = serializers.SerializerMethodField()
    availability_status = serializers.SerializerMethodField()
    is_available = serializers.SerializerMethodField()
    stock_remaining = serializers.IntegerField(read_only=True)
    time_remaining = serializers.SerializerMethodField()
    warnings = serializers.SerializerMethodField()
    revenue = MoneyField()
    created_by = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = Bundle
        fields = (
            'id', 'name', 'slug', 'sku', 'sku_auto_generated', 'description', 'short_description',
            'bundle_type', 'discount_type', 'discount_value', 'pricing',
            'badge_label', 'badge_color', 'cta_text', 'show_countdown', 'show_savings',
            'meta_title', 'meta_description',
            'is_active', 'starts_at', 'ends_at', 'stock_limit', 'stock_sold', 'stock_remaining',
            'availability_status', 'is_available', 'time_remaining',
            'cart_display', 'allow_coupon_stacking', 'show_on_homepage', 'homepage_position', 'display_order',
            'items', 'slots', 'images', 'primary_image', 'warnings',
            'view_count', 'add_to_cart_count', 'purchase_count', 'revenue',
            'created_by', 'created_at', 'updated_at',
        )
        read_only_fields = fields

    def _state(self, obj):
        """(products, pricing) for obj, computed once per serializer instance."""
        cache = self.__dict__.setdefault('_bundle_state', {})
        if obj.pk not in cache:
            aggregate = to_aggregate(obj)
            lookup = self.context.get('product_lookup') or CatalogProductLookup()
            products = lookup.get_products(aggregate.product_ids())
            pricing = compute_price(aggregate, InMemoryProductLookup(products.values()))
            cache[obj.pk] = (products, pricing)
        return cache[obj.pk]

    def _child_context(self, obj):
        products, _ = self._state(obj)
        return {**self.context, 'products': products}

    def get_items(self, obj):
        if not obj.is_fixed():
            return []
        return BundleItemSerializer(obj.items.all(), many=True, context=self._child_context(obj)).data

    def get_slots(self, obj):
        if not obj.is_configurable():
            return []
        return BundleSlotSerializer(obj.slots.all(), many=True, context=self._child_context(obj)).data

    def get_primary_image(self, obj):
        images = list(obj.images.all())
        primary = next((img for img in images if img.is_primary), images[0] if images else None)
        return primary.url if primary else None

    def get_pricing(self, obj):
        _, pricing = self._state(obj)
        return pricing.as_dict()

    def _now(self):
        return self.context.get('now') or timezone.now()

    def get_availability_status(self, obj):
        from .services.availability_service import availability_status
        return availability_status(obj, self._now())

    def get_is_available(self, obj):
        from .services.availability_service import is_purchasable
        return is_purchasable(obj, self._now())

    def get_time_remaining(self, obj):
        return obj.time_remaining(self._now())

    def get_warnings(self, obj):
        _, pricing = self._state(obj)
        return list(pricing.warnings)


# -------------------------------------------------------------------------
# WRITE SERIALIZERS
# -------------------------------------------------------------------------

def _parsable_data(fields, raw):
    """The part of `raw` that passes field validation, field by field, nested lists included."""
    data = {}
    if not hasattr(raw, 'get'):
        return data
    for name, field in fields.items():
        if name not in raw:
            continue
        value = raw.get(name)
        if isinstance(field, serializers.ListSerializer):
            if isinstance(value, list):
                data[name] = [_parsable_data(field.child.fields, entry) for entry in value]
            continue
        try:
            data[name] = field.run_validation(value)
        except serializers.ValidationError:
            continue
    return data


class BundleItemInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1, required=False)
    price_override = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True
    )
    sort_order = serializers.IntegerField(required=False)


class BundleSlotProductInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1)
    price_override = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True
    )


class BundleSlotInputSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    description = serializers.CharField(required=False, allow_blank=True)
    slot_order = serializers.IntegerField(required=False)
    is_required = serializers.BooleanField(required=False)
    min_selections = serializers.IntegerField(min_value=0, required=False)
    max_selections = serializers.IntegerField(min_value=0, required=False)
    products = BundleSlotProductInputSerializer(many=True, required=False)


class BundleWriteSerializer(serializers.ModelSerializer):
    """
    Create/update payload with nested children.
    Field-level checks happen here; structural rules (type vs children, slot bounds,
    duplicates, date window) are enforced by the validator when the bundle is saved.
    """
    sku = serializers.CharField(max_length=100, required=False, allow_null=True, allow_blank=True)
    items = BundleItemInputSerializer(many=True, required=False)
    slots = BundleSlotInputSerializer(many=True, required=False)

    class Meta:
        model = Bundle
        fields = (
            'name', 'sku', 'description', 'short_description',
            'bundle_type', 'discount_type', 'discount_value',
            'badge_label', 'badge_color', 'cta_text', 'show_countdown', 'show_savings',
            'meta_title', 'meta_description',
            'is_active', 'starts_at', 'ends_at', 'stock_limit',
            'cart_display', 'allow_coupon_stacking', 'show_on_homepage', 'homepage_position', 'display_order',
            'items', 'slots',
        )

    def _service(self):
        return self.context.get('service') or BundleManagementService()

    def structural_errors(self, reported):
        """
        Validator errors for a payload that already failed field validation, so one
        response lists every problem. Values that did not parse are left out of the
        draft; errors on fields already in `reported` are not repeated.
        """
        data = _parsable_data(self.fields, self.initial_data)
        if 'items' in data:
            data['items'] = [item for item in data['items'] if 'product_id' in item]
        for slot in data.get('slots') or []:
            if 'products' in slot:
                slot['products'] = [p for p in slot['products'] if 'product_id' in p]

        draft = repository.draft_from_payload(data, instance=self.instance)
        reported_fields = {error['field'] for error in reported}
        reported_roots = {field.split('[')[0].split('.')[0] for field in reported_fields}
        errors = []
        for error in collect_errors(draft):
            root = error['field'].split('[')[0].split('.')[0]
            if error['field'] in reported_fields:
                continue
            if error['code'] == 'required' and root in reported_roots:
                continue
            # Child rules depend on a bundle type that did not parse
            if 'bundle_type' in reported_roots and root in ('items', 'slots'):
                continue
            errors.append(error)
        return errors

    def create(self, validated_data):
        request = self.context.get('request')
        user = request.user if request and request.user.is_authenticated else None
        return self._service().create(validated_data, user=user)

    def update(self, instance, validated_data):
        return self._service().update(instance, validated_data)


class BundleDuplicateSerializer(serializers.Serializer):
    is_active = serializers.BooleanField(required=False, allow_null=True, default=None)


class BundleBulkActionSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)
    action = serializers.ChoiceField(choices=BundleManagementService.BULK_ACTIONS)


class BundleImageUploadSerializer(serializers.Serializer):
    images = serializers.ListField(child=serializers.ImageField(), allow_empty=False)
    alt_text = serializers.CharField(max_length=255, required=False, allow_blank=True)


class BundlePurchaseSerializer(serializers.Serializer):
    revenue = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    units = serializers.IntegerField(min_value=1, default=1)
    event_key = serializers.CharField(max_length=255, required=False)

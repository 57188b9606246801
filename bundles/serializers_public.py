from rest_framework import serializers

from .serializers import BundleSerializer, MoneyField


class PublicBundleSerializer(BundleSerializer):
    """Storefront view of a bundle: no analytics, stock counters or authoring metadata."""

    class Meta(BundleSerializer.Meta):
        fields = (
            'id', 'name', 'slug', 'sku', 'description', 'short_description',
            'bundle_type', 'pricing',
            'badge_label', 'badge_color', 'cta_text', 'show_countdown', 'show_savings',
            'meta_title', 'meta_description',
            'starts_at', 'ends_at', 'stock_remaining', 'availability_status', 'is_available', 'time_remaining',
            'cart_display', 'allow_coupon_stacking', 'homepage_position', 'display_order',
            'items', 'slots', 'images', 'primary_image',
        )
        read_only_fields = fields

    def to_representation(self, instance):
        data = super().to_representation(instance)
        if not instance.show_savings:
            data['pricing'].pop('savings_amount', None)
            data['pricing'].pop('savings_percentage', None)
        return data


class SelectionEntrySerializer(serializers.Serializer):
    slot_id = serializers.IntegerField()
    product_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=True)


class SelectionRequestSerializer(serializers.Serializer):
    selections = SelectionEntrySerializer(many=True, required=False)


class PricedLineSerializer(serializers.Serializer):
    slot_id = serializers.IntegerField(allow_null=True)
    product_id = serializers.IntegerField()
    product_name = serializers.CharField(allow_null=True)
    quantity = serializers.IntegerField()
    unit_price = MoneyField()
    line_total = MoneyField()
    price_source = serializers.CharField()

from django.contrib import admin
from django.utils import timezone
from .models import Bundle, BundleItem, BundleSlot, BundleSlotProduct, BundleImage, BundleEvent
from .identifiers import generate_sku, unique_slug
from .services.cache_service import CacheInvalidator

# --- INLINE CLASSES ---

class BundleItemInline(admin.TabularInline):
    """Fixed (product, quantity) lines of a Fixed bundle."""
    model = BundleItem
    extra = 1
    fields = ['product_id', 'quantity', 'price_override', 'sort_order']

class BundleSlotInline(admin.TabularInline):
    """Slots of a Configurable bundle. Slot products are edited on the slot page."""
    model = BundleSlot
    extra = 0
    fields = ['name', 'slot_order', 'is_required', 'min_selections', 'max_selections']
    show_change_link = True

class BundleSlotProductInline(admin.TabularInline):
    model = BundleSlotProduct
    extra = 1

class BundleImageInline(admin.TabularInline):
    model = BundleImage
    extra = 0
    fields = ['url', 'alt_text', 'is_primary', 'sort_order']

# --- BUNDLES ---

@admin.register(Bundle)
class BundleAdmin(admin.ModelAdmin):
    """Admin view for bundles. Edits here skip the structural validator, the REST API does not."""
    list_display = (
        'name', 'sku', 'bundle_type', 'discount_type', 'discount_value',
        'is_active', 'availability', 'stock_sold', 'stock_limit', 'display_order'
    )
    list_filter = ('bundle_type', 'discount_type', 'is_active', 'show_on_homepage', 'homepage_position')
    search_fields = ('name', 'sku', 'slug')
    readonly_fields = (
        'slug', 'sku_auto_generated', 'stock_sold',
        'view_count', 'add_to_cart_count', 'purchase_count', 'revenue',
        'created_by', 'created_at', 'updated_at'
    )

    fieldsets = (
        ('Basic Information', {
            'fields': ('name', 'slug', 'sku', 'sku_auto_generated', 'description', 'short_description', 'bundle_type')
        }),
        ('Pricing', {
            'fields': ('discount_type', 'discount_value', 'allow_coupon_stacking'),
            'description': 'Fixed price: the bundle sells at discount_value. Percentage: discount_value % off the items total.'
        }),
        ('Availability', {
            'fields': ('is_active', 'starts_at', 'ends_at', 'stock_limit', 'stock_sold')
        }),
        ('Display', {
            'fields': (
                'cart_display', 'show_on_homepage', 'homepage_position', 'display_order',
                'badge_label', 'badge_color', 'cta_text', 'show_countdown', 'show_savings'
            )
        }),
        ('SEO', {
            'fields': ('meta_title', 'meta_description'),
            'classes': ('collapse',)
        }),
        ('Analytics', {
            'fields': ('view_count', 'add_to_cart_count', 'purchase_count', 'revenue', 'created_by', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    inlines = [BundleItemInline, BundleSlotInline, BundleImageInline]

    def availability(self, obj):
        return Bundle.AvailabilityStatus(obj.availability_status).label
    availability.short_description = 'Availability'

    def save_model(self, request, obj, form, change):
        if not change and not obj.created_by_id:
            obj.created_by = request.user
        if not obj.slug:
            obj.slug = unique_slug(obj.name, exclude_pk=obj.pk)
        if not obj.sku:
            obj.sku = generate_sku()
            obj.sku_auto_generated = True
        super().save_model(request, obj, form, change)
        CacheInvalidator().invalidate()

    def delete_model(self, request, obj):
        """Soft delete, same as the API."""
        obj.deleted_at = timezone.now()
        obj.save(update_fields=['deleted_at'])
        CacheInvalidator().invalidate()

@admin.register(BundleSlot)
class BundleSlotAdmin(admin.ModelAdmin):
    list_display = ('name', 'bundle', 'slot_order', 'is_required', 'min_selections', 'max_selections')
    search_fields = ('name', 'bundle__name')
    inlines = [BundleSlotProductInline]

@admin.register(BundleEvent)
class BundleEventAdmin(admin.ModelAdmin):
    list_display = ('event_key', 'bundle', 'kind', 'units', 'revenue', 'created_at')
    list_filter = ('kind',)
    search_fields = ('event_key',)
    readonly_fields = ('bundle', 'kind', 'event_key', 'units', 'revenue', 'created_at')

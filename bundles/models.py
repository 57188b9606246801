from django.db import models
from django.db.models import F, Q
from django.core.validators import MinValueValidator
from django.utils.translation import gettext_lazy as _
from django.utils import timezone
from django.conf import settings
from decimal import Decimal


# -------------------------------------------------------------------------
# 1. BUNDLE (aggregate root)
# -------------------------------------------------------------------------

class BundleQuerySet(models.QuerySet):
    def alive(self):
        """The one soft-delete filter every bundle read goes through."""
        return self.filter(deleted_at__isnull=True)

    def available(self, now=None):
        """Queryset form of the availability gate: only bundles whose status is Active."""
        from bundles.services.availability_service import available_filter
        return self.filter(available_filter(now))

    def homepage(self, now=None):
        return self.available(now).filter(show_on_homepage=True).order_by('display_order', 'created_at', 'id')

    def with_children(self):
        return self.prefetch_related('items', 'slots__products', 'images')


class BundleManager(models.Manager.from_queryset(BundleQuerySet)):
    """Default manager: hides soft-deleted bundles."""
    def get_queryset(self):
        return super().get_queryset().alive()


class Bundle(models.Model):
    """A sellable unit composed of several catalog products under one price."""
    class BundleType(models.TextChoices):
        FIXED = 'fixed', _('Fixed')
        CONFIGURABLE = 'configurable', _('Configurable')

    class DiscountType(models.TextChoices):
        FIXED_PRICE = 'fixed_price', _('Fixed Bundle Price')
        PERCENTAGE = 'percentage', _('Percentage Off Items Total')

    class CartDisplay(models.TextChoices):
        SINGLE_ITEM = 'single_item', _('Single Item')
        GROUPED = 'grouped', _('Grouped')
        INDIVIDUAL = 'individual', _('Individual')

    class HomepagePosition(models.TextChoices):
        CAROUSEL = 'carousel', _('Carousel')
        GRID = 'grid', _('Grid')
        BANNER = 'banner', _('Banner')

    class AvailabilityStatus(models.TextChoices):
        DRAFT = 'draft', _('Draft')
        SCHEDULED = 'scheduled', _('Scheduled')
        ACTIVE = 'active', _('Active')
        EXPIRED = 'expired', _('Expired')
        SOLD_OUT = 'sold_out', _('Sold Out')

    # Identity
    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True, blank=True, help_text="Auto-generated from name")
    sku = models.CharField(max_length=100, unique=True, null=True, blank=True)
    sku_auto_generated = models.BooleanField(default=False, help_text="True when the SKU was generated, not entered")
    description = models.TextField(blank=True)
    short_description = models.CharField(max_length=500, blank=True)

    # Classification & pricing
    bundle_type = models.CharField(max_length=20, choices=BundleType.choices, default=BundleType.FIXED)
    discount_type = models.CharField(max_length=20, choices=DiscountType.choices, default=DiscountType.PERCENTAGE)
    discount_value = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Flat bundle price (fixed_price) or percentage off the items total (percentage)"
    )

    # Marketing
    badge_label = models.CharField(max_length=50, blank=True, help_text="e.g. 'Best Value', 'Limited Time'")
    badge_color = models.CharField(max_length=20, default='gold')
    cta_text = models.CharField(max_length=100, default='Add Bundle to Cart')
    show_countdown = models.BooleanField(default=False)
    show_savings = models.BooleanField(default=True)
    meta_title = models.CharField(max_length=255, blank=True)
    meta_description = models.TextField(blank=True)

    # Availability
    is_active = models.BooleanField(default=True)
    starts_at = models.DateTimeField(null=True, blank=True)
    ends_at = models.DateTimeField(null=True, blank=True)
    stock_limit = models.PositiveIntegerField(null=True, blank=True, help_text="Empty = unlimited")
    stock_sold = models.PositiveIntegerField(default=0)

    # Cart & placement
    cart_display = models.CharField(max_length=20, choices=CartDisplay.choices, default=CartDisplay.GROUPED)
    allow_coupon_stacking = models.BooleanField(default=False)
    show_on_homepage = models.BooleanField(default=False)
    homepage_position = models.CharField(max_length=20, choices=HomepagePosition.choices, null=True, blank=True)
    display_order = models.IntegerField(default=0)

    # Analytics
    view_count = models.PositiveIntegerField(default=0)
    add_to_cart_count = models.PositiveIntegerField(default=0)
    purchase_count = models.PositiveIntegerField(default=0)
    revenue = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_bundles'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)

    objects = BundleManager()
    all_objects = models.Manager()

    class Meta:
        ordering = ['display_order', 'created_at', 'id']
        indexes = [
            models.Index(fields=['is_active'], name='bundles_is_active_idx'),
            models.Index(fields=['show_on_homepage', 'homepage_position'], name='bundles_homepage_idx'),
            models.Index(fields=['starts_at', 'ends_at'], name='bundles_window_idx'),
            models.Index(fields=['display_order'], name='bundles_display_order_idx'),
        ]

    def __str__(self):
        return self.name

    def is_fixed(self):
        return self.bundle_type == self.BundleType.FIXED

    def is_configurable(self):
        return self.bundle_type == self.BundleType.CONFIGURABLE

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @property
    def availability_status(self):
        from bundles.services.availability_service import availability_status
        return availability_status(self)

    @property
    def is_available(self):
        return self.availability_status == self.AvailabilityStatus.ACTIVE

    @property
    def stock_remaining(self):
        if self.stock_limit is None:
            return None
        return max(0, self.stock_limit - self.stock_sold)

    def time_remaining(self, now=None):
        """Countdown to ends_at, only when the countdown is switched on and the window is open."""
        if not self.ends_at or not self.show_countdown:
            return None
        now = now or timezone.now()
        if self.ends_at < now:
            return None
        delta = self.ends_at - now
        hours, remainder = divmod(delta.seconds, 3600)
        minutes, seconds = divmod(remainder, 60)
        return {
            'days': delta.days,
            'hours': hours,
            'minutes': minutes,
            'seconds': seconds,
            'total_seconds': int(delta.total_seconds()),
        }


# -------------------------------------------------------------------------
# 2. BUNDLE CHILDREN
# -------------------------------------------------------------------------

class BundleItem(models.Model):
    """A fixed (product, quantity) line of a Fixed bundle. Product is referenced by id only."""
    bundle = models.ForeignKey(Bundle, on_delete=models.CASCADE, related_name='items')
    product_id = models.PositiveBigIntegerField(db_index=True)
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    price_override = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Optional price that supersedes the catalog price inside this bundle"
    )
    sort_order = models.IntegerField(default=0)

    class Meta:
        ordering = ['sort_order', 'id']
        constraints = [
            models.UniqueConstraint(fields=['bundle', 'product_id'], name='unique_bundle_item_product'),
        ]

    def __str__(self):
        return f"Product #{self.product_id} x{self.quantity} in {self.bundle_id}"


class BundleSlot(models.Model):
    """A selection bucket of a Configurable bundle."""
    bundle = models.ForeignKey(Bundle, on_delete=models.CASCADE, related_name='slots')
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    slot_order = models.IntegerField(default=0)
    is_required = models.BooleanField(default=True)
    min_selections = models.PositiveIntegerField(default=1)
    max_selections = models.PositiveIntegerField(default=1)

    class Meta:
        ordering = ['slot_order', 'id']
        constraints = [
            models.CheckConstraint(
                condition=Q(min_selections__lte=F('max_selections')),
                name='bundle_slot_min_lte_max',
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.bundle_id})"


class BundleSlotProduct(models.Model):
    """An eligible product of a slot."""
    slot = models.ForeignKey(BundleSlot, on_delete=models.CASCADE, related_name='products')
    product_id = models.PositiveBigIntegerField(db_index=True)
    price_override = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0.00'))]
    )

    class Meta:
        ordering = ['id']
        constraints = [
            models.UniqueConstraint(fields=['slot', 'product_id'], name='unique_bundle_slot_product'),
        ]

    def __str__(self):
        return f"Product #{self.product_id} in slot {self.slot_id}"


class BundleImage(models.Model):
    """Stores one image URL linked to a Bundle. At most one per bundle is primary."""
    bundle = models.ForeignKey(Bundle, on_delete=models.CASCADE, related_name='images')
    url = models.CharField(max_length=500)
    alt_text = models.CharField(max_length=255, blank=True)
    is_primary = models.BooleanField(default=False)
    sort_order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['sort_order', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['bundle'],
                condition=Q(is_primary=True),
                name='unique_primary_bundle_image',
            ),
        ]

    def __str__(self):
        return f"Image for bundle {self.bundle_id} (ID: {self.id})"


# -------------------------------------------------------------------------
# 3. ANALYTICS EVENTS
# -------------------------------------------------------------------------

class BundleEvent(models.Model):
    """One processed analytics event. event_key makes counter increments idempotent."""
    class Kind(models.TextChoices):
        VIEW = 'view', _('View')
        ADD_TO_CART = 'add_to_cart', _('Add to Cart')
        PURCHASE = 'purchase', _('Purchase')

    bundle = models.ForeignKey(Bundle, on_delete=models.CASCADE, related_name='events')
    kind = models.CharField(max_length=20, choices=Kind.choices)
    event_key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Caller-supplied key preventing double counting on retries"
    )
    units = models.PositiveIntegerField(default=0)
    revenue = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.get_kind_display()} {self.event_key} ({self.bundle_id})"

"""
Plain-data view of a bundle graph.

The ORM keeps bundle_type next to two child tables; here the contents are a tagged
variant instead, so a Fixed bundle simply has no slots to look at and vice versa.
Pricing, availability and selection work on these objects and never touch the database.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from bundles.models import Bundle


@dataclass
class ItemSpec:
    product_id: int
    quantity: int = 1
    price_override: Optional[Decimal] = None
    sort_order: int = 0
    id: Optional[int] = None


@dataclass
class SlotProductSpec:
    product_id: int
    price_override: Optional[Decimal] = None
    id: Optional[int] = None


@dataclass
class SlotSpec:
    name: str
    description: str = ''
    slot_order: int = 0
    is_required: bool = True
    min_selections: int = 1
    max_selections: int = 1
    products: list = field(default_factory=list)
    id: Optional[int] = None

    def product_ids(self):
        return [product.product_id for product in self.products]

    def find_product(self, product_id):
        for product in self.products:
            if product.product_id == product_id:
                return product
        return None


@dataclass
class ImageSpec:
    url: str
    alt_text: str = ''
    is_primary: bool = False
    sort_order: int = 0
    id: Optional[int] = None


@dataclass(frozen=True)
class FixedContents:
    items: tuple = ()

    bundle_type = Bundle.BundleType.FIXED

    def product_ids(self):
        return [item.product_id for item in self.items]


@dataclass(frozen=True)
class ConfigurableContents:
    slots: tuple = ()

    bundle_type = Bundle.BundleType.CONFIGURABLE

    def product_ids(self):
        return [pid for slot in self.slots for pid in slot.product_ids()]

    def slot(self, slot_id):
        for slot in self.slots:
            if slot.id == slot_id:
                return slot
        return None


def make_contents(bundle_type, items=(), slots=()):
    """Build the variant for bundle_type. The other collection is dropped, callers validate first."""
    if bundle_type == Bundle.BundleType.CONFIGURABLE:
        return ConfigurableContents(slots=tuple(slots))
    return FixedContents(items=tuple(items))


@dataclass
class BundleAggregate:
    """A bundle and its children, loaded as one consistent unit."""
    name: str
    contents: object
    discount_type: str = Bundle.DiscountType.PERCENTAGE
    discount_value: Decimal = Decimal('0')
    id: Optional[int] = None
    slug: str = ''
    sku: Optional[str] = None
    is_active: bool = True
    starts_at: object = None
    ends_at: object = None
    stock_limit: Optional[int] = None
    stock_sold: int = 0
    cart_display: str = Bundle.CartDisplay.GROUPED
    allow_coupon_stacking: bool = False
    show_on_homepage: bool = False
    homepage_position: Optional[str] = None
    display_order: int = 0
    images: tuple = ()
    view_count: int = 0
    add_to_cart_count: int = 0
    purchase_count: int = 0
    revenue: Decimal = Decimal('0')

    @property
    def bundle_type(self):
        return self.contents.bundle_type

    def is_fixed(self):
        return isinstance(self.contents, FixedContents)

    def is_configurable(self):
        return isinstance(self.contents, ConfigurableContents)

    @property
    def items(self):
        return self.contents.items if self.is_fixed() else ()

    @property
    def slots(self):
        return self.contents.slots if self.is_configurable() else ()

    def product_ids(self):
        return self.contents.product_ids()


@dataclass
class BundleDraft:
    """
    A bundle exactly as submitted: both child lists may be filled in, whatever the type.
    The structural validator checks a draft; only a valid draft becomes an aggregate.
    """
    bundle_type: str
    discount_type: str
    discount_value: Decimal
    is_active: bool = True
    starts_at: object = None
    ends_at: object = None
    items: list = field(default_factory=list)
    slots: list = field(default_factory=list)
    attributes: dict = field(default_factory=dict)
    replace_items: bool = True
    replace_slots: bool = True

    _OWN_FIELDS = ('contents', 'discount_type', 'discount_value', 'is_active', 'starts_at', 'ends_at')

    def to_aggregate(self):
        scalar = {
            key: value for key, value in self.attributes.items()
            if key in BundleAggregate.__dataclass_fields__ and key not in self._OWN_FIELDS
        }
        scalar.setdefault('name', '')
        return BundleAggregate(
            contents=make_contents(self.bundle_type, self.items, self.slots),
            discount_type=self.discount_type,
            discount_value=self.discount_value,
            is_active=self.is_active,
            starts_at=self.starts_at,
            ends_at=self.ends_at,
            **scalar,
        )

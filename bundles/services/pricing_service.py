"""
Bundle pricing.

Prices are computed on demand from live catalog data, never stored. All arithmetic
is done on Decimal at full precision; rounding to the currency's minor unit only
happens in format_money(), at the serialization boundary.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from django.conf import settings

from bundles.models import Bundle

logger = logging.getLogger(__name__)

ZERO = Decimal('0')
HUNDRED = Decimal('100')

SOURCE_CATALOG = 'catalog'
SOURCE_OVERRIDE = 'override'
SOURCE_MISSING = 'missing'


@dataclass(frozen=True)
class PricedLine:
    product_id: int
    quantity: int
    unit_price: Decimal
    price_source: str = SOURCE_CATALOG
    slot_id: Optional[int] = None
    product_name: Optional[str] = None

    @property
    def line_total(self):
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class PriceBreakdown:
    base_price: Decimal
    final_price: Decimal
    savings_amount: Decimal
    savings_percentage: int
    lines: tuple = ()
    missing_product_ids: tuple = ()
    discount_type: str = Bundle.DiscountType.PERCENTAGE
    discount_value: Decimal = ZERO
    warnings: tuple = field(default=())

    @property
    def is_negative_savings(self):
        """A fixed bundle price above the items total. Reported, never clamped."""
        return self.savings_amount < 0

    def as_dict(self, places=None):
        """JSON-ready form: money as strings rounded to the currency minor unit."""
        return {
            'base_price': str(format_money(self.base_price, places)),
            'final_price': str(format_money(self.final_price, places)),
            'savings_amount': str(format_money(self.savings_amount, places)),
            'savings_percentage': self.savings_percentage,
            'is_negative_savings': self.is_negative_savings,
            'discount_type': self.discount_type,
            'discount_value': str(self.discount_value),
            'missing_product_ids': list(self.missing_product_ids),
        }


def format_money(value, places=None):
    """Round to the currency minor unit (half-up). The only place money is rounded."""
    if places is None:
        places = getattr(settings, 'BUNDLE_CURRENCY_DECIMAL_PLACES', 2)
    exponent = Decimal(1).scaleb(-places)
    return Decimal(value).quantize(exponent, rounding=ROUND_HALF_UP)


def unit_price(price_override, info):
    """(price, source) for one product: the override wins, then the catalog price."""
    if price_override is not None:
        return Decimal(price_override), SOURCE_OVERRIDE
    if info is None:
        return ZERO, SOURCE_MISSING
    return Decimal(info.price), SOURCE_CATALOG


def fixed_lines(bundle, products):
    lines = []
    missing = []
    for item in bundle.items:
        info = products.get(item.product_id)
        if info is None:
            missing.append(item.product_id)
        price, source = unit_price(item.price_override, info)
        lines.append(PricedLine(
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price=price,
            price_source=source,
            product_name=info.name if info else None,
        ))
    return lines, missing


def default_selection_lines(bundle, products):
    """
    Lines used to price a configurable bundle before the customer picks anything:
    one unit of the cheapest eligible product in each required slot. Optional slots
    add nothing. A product is eligible when it still exists in the catalog and is
    available; ties go to the lowest product id.
    """
    lines = []
    missing = []
    for slot in bundle.slots:
        candidates = []
        for slot_product in slot.products:
            info = products.get(slot_product.product_id)
            if info is None:
                missing.append(slot_product.product_id)
                continue
            if not info.is_available:
                continue
            price, source = unit_price(slot_product.price_override, info)
            candidates.append((price, slot_product.product_id, source, info))
        if not slot.is_required:
            continue
        if not candidates:
            logger.warning(
                "Bundle %s: required slot %r has no eligible product to price by default",
                bundle.id, slot.name
            )
            continue
        price, product_id, source, info = min(candidates, key=lambda c: (c[0], c[1]))
        lines.append(PricedLine(
            product_id=product_id,
            quantity=1,
            unit_price=price,
            price_source=source,
            slot_id=slot.id,
            product_name=info.name,
        ))
    return lines, missing


def apply_discount(base_price, discount_type, discount_value):
    discount_value = Decimal(discount_value or 0)
    if discount_type == Bundle.DiscountType.FIXED_PRICE:
        return discount_value
    return base_price * (1 - discount_value / HUNDRED)


def savings_percentage(base_price, savings_amount):
    if base_price <= 0:
        return 0
    ratio = savings_amount / base_price * HUNDRED
    return int(ratio.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def compute_price(bundle, lookup, lines=None):
    """
    Price a bundle aggregate.

    `lines` are the priced lines of a resolved customer selection; without them a
    fixed bundle is priced from its items and a configurable one from the default
    selection. Products missing from the catalog price at zero (or at their
    override) and are reported in missing_product_ids.
    """
    missing = []
    if lines is None:
        products = lookup.get_products(bundle.product_ids())
        if bundle.is_configurable():
            lines, missing = default_selection_lines(bundle, products)
        else:
            lines, missing = fixed_lines(bundle, products)
    else:
        missing = [line.product_id for line in lines if line.price_source == SOURCE_MISSING]

    if missing:
        logger.warning("Bundle %s references products missing from the catalog: %s", bundle.id, missing)

    base_price = sum((line.line_total for line in lines), ZERO)
    final_price = apply_discount(base_price, bundle.discount_type, bundle.discount_value)
    savings_amount = base_price - final_price

    warnings = ()
    if missing:
        warnings = tuple(f"Product {pid} no longer exists in the catalog." for pid in missing)

    return PriceBreakdown(
        base_price=base_price,
        final_price=final_price,
        savings_amount=savings_amount,
        savings_percentage=savings_percentage(base_price, savings_amount),
        lines=tuple(lines),
        missing_product_ids=tuple(missing),
        discount_type=bundle.discount_type,
        discount_value=Decimal(bundle.discount_value or 0),
        warnings=warnings,
    )

"""Builders shared by the bundle tests."""
from decimal import Decimal

from catalog.lookup import InMemoryProductLookup, ProductInfo
from catalog.models import Product
from bundles.domain import (
    BundleAggregate,
    ConfigurableContents,
    FixedContents,
    ItemSpec,
    SlotProductSpec,
    SlotSpec,
)
from bundles.models import Bundle, BundleItem, BundleSlot, BundleSlotProduct


def info(product_id, price, available=True, name=None):
    return ProductInfo(
        id=product_id,
        name=name or f"Product {product_id}",
        price=Decimal(price),
        is_available=available,
    )


def lookup(*infos):
    return InMemoryProductLookup(infos)


def fixed_aggregate(items, discount_type=Bundle.DiscountType.PERCENTAGE, discount_value='0', **kwargs):
    return BundleAggregate(
        id=kwargs.pop('id', 1),
        name=kwargs.pop('name', 'Kitchen Starter Set'),
        contents=FixedContents(items=tuple(items)),
        discount_type=discount_type,
        discount_value=Decimal(discount_value),
        **kwargs
    )


def configurable_aggregate(slots, discount_type=Bundle.DiscountType.PERCENTAGE, discount_value='0', **kwargs):
    return BundleAggregate(
        id=kwargs.pop('id', 2),
        name=kwargs.pop('name', 'Build Your Laundry Room'),
        contents=ConfigurableContents(slots=tuple(slots)),
        discount_type=discount_type,
        discount_value=Decimal(discount_value),
        **kwargs
    )


def item(product_id, quantity=1, price_override=None):
    return ItemSpec(
        product_id=product_id,
        quantity=quantity,
        price_override=Decimal(price_override) if price_override is not None else None,
    )


def slot(slot_id, name, product_ids, is_required=True, min_selections=1, max_selections=1, overrides=None):
    overrides = overrides or {}
    return SlotSpec(
        id=slot_id,
        name=name,
        is_required=is_required,
        min_selections=min_selections,
        max_selections=max_selections,
        products=[
            SlotProductSpec(
                product_id=pid,
                price_override=Decimal(overrides[pid]) if pid in overrides else None,
            )
            for pid in product_ids
        ],
    )


def create_product(name, price, **kwargs):
    return Product.objects.create(name=name, price=Decimal(price), **kwargs)


def create_fixed_bundle(name, products, **kwargs):
    """Bundle with one item per product (quantity 1)."""
    kwargs.setdefault('discount_type', Bundle.DiscountType.PERCENTAGE)
    kwargs.setdefault('discount_value', Decimal('10'))
    bundle = Bundle.objects.create(
        name=name,
        slug=kwargs.pop('slug', None) or name.lower().replace(' ', '-'),
        bundle_type=Bundle.BundleType.FIXED,
        **kwargs
    )
    for index, product in enumerate(products):
        BundleItem.objects.create(bundle=bundle, product_id=product.id, quantity=1, sort_order=index)
    return bundle


def create_configurable_bundle(name, slots, **kwargs):
    """`slots` is a list of (slot name, [products]) pairs; each slot requires exactly one pick."""
    bundle = Bundle.objects.create(
        name=name,
        slug=kwargs.pop('slug', None) or name.lower().replace(' ', '-'),
        bundle_type=Bundle.BundleType.CONFIGURABLE,
        **kwargs
    )
    for index, (slot_name, products) in enumerate(slots):
        bundle_slot = BundleSlot.objects.create(bundle=bundle, name=slot_name, slot_order=index)
        for product in products:
            BundleSlotProduct.objects.create(slot=bundle_slot, product_id=product.id)
    return bundle

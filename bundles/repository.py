"""
Loading and saving whole bundle graphs.

A bundle and its children are always read together (prefetched) and written
together (one transaction), so no reader ever sees half a bundle.
"""
import logging

from django.db import IntegrityError, transaction

from bundles.domain import (
    BundleAggregate,
    BundleDraft,
    ImageSpec,
    ItemSpec,
    SlotProductSpec,
    SlotSpec,
    make_contents,
)
from bundles.exceptions import BundleConflictError, BundleNotFound
from bundles.identifiers import generate_sku, sku_in_use, unique_slug
from bundles.models import Bundle, BundleItem, BundleSlot, BundleSlotProduct
from bundles.services.validation_service import validate_bundle

logger = logging.getLogger(__name__)

HEADER_FIELDS = (
    'name', 'sku', 'description', 'short_description',
    'bundle_type', 'discount_type', 'discount_value',
    'badge_label', 'badge_color', 'cta_text', 'show_countdown', 'show_savings',
    'meta_title', 'meta_description',
    'is_active', 'starts_at', 'ends_at', 'stock_limit',
    'cart_display', 'allow_coupon_stacking', 'show_on_homepage', 'homepage_position', 'display_order',
)

COUNTER_FIELDS = ('stock_sold', 'view_count', 'add_to_cart_count', 'purchase_count', 'revenue')


def live_bundles():
    """All bundles that are not soft-deleted."""
    return Bundle.objects.all()


def get_bundle(bundle_id):
    try:
        return live_bundles().with_children().get(pk=bundle_id)
    except (Bundle.DoesNotExist, ValueError, TypeError):
        raise BundleNotFound()


def load_bundle(bundle_id) -> BundleAggregate:
    return to_aggregate(get_bundle(bundle_id))


def item_spec(item):
    return ItemSpec(
        id=item.id,
        product_id=item.product_id,
        quantity=item.quantity,
        price_override=item.price_override,
        sort_order=item.sort_order,
    )


def slot_spec(slot):
    return SlotSpec(
        id=slot.id,
        name=slot.name,
        description=slot.description,
        slot_order=slot.slot_order,
        is_required=slot.is_required,
        min_selections=slot.min_selections,
        max_selections=slot.max_selections,
        products=[
            SlotProductSpec(id=p.id, product_id=p.product_id, price_override=p.price_override)
            for p in slot.products.all()
        ],
    )


def to_aggregate(bundle) -> BundleAggregate:
    """Convert a loaded Bundle (children prefetched or not) into its domain form."""
    contents = make_contents(
        bundle.bundle_type,
        items=[item_spec(item) for item in bundle.items.all()] if bundle.is_fixed() else (),
        slots=[slot_spec(slot) for slot in bundle.slots.all()] if bundle.is_configurable() else (),
    )
    scalar = {
        field: getattr(bundle, field)
        for field in HEADER_FIELDS + COUNTER_FIELDS
        if field in BundleAggregate.__dataclass_fields__
    }
    return BundleAggregate(
        id=bundle.id,
        slug=bundle.slug,
        contents=contents,
        images=tuple(
            ImageSpec(id=img.id, url=img.url, alt_text=img.alt_text, is_primary=img.is_primary, sort_order=img.sort_order)
            for img in bundle.images.all()
        ),
        **scalar,
    )


def _item_from_payload(data):
    return ItemSpec(
        product_id=data['product_id'],
        quantity=data.get('quantity', 1),
        price_override=data.get('price_override'),
        sort_order=data.get('sort_order', 0),
    )


def slot_from_payload(data, base=None):
    """SlotSpec from submitted data; omitted keys keep the values of `base`."""
    base = base or SlotSpec(name='')
    products = base.products
    if data.get('products') is not None:
        products = [
            SlotProductSpec(product_id=p['product_id'], price_override=p.get('price_override'))
            for p in data['products']
        ]
    return SlotSpec(
        id=base.id,
        name=data.get('name', base.name),
        description=data.get('description', base.description),
        slot_order=data.get('slot_order', base.slot_order),
        is_required=data.get('is_required', base.is_required),
        min_selections=data.get('min_selections', base.min_selections),
        max_selections=data.get('max_selections', base.max_selections),
        products=products,
    )


def draft_from_payload(data, instance=None) -> BundleDraft:
    """
    Merge submitted data over an existing bundle (if any) into a draft.
    Child lists that are not submitted keep the bundle's current children.
    """
    header = {field: getattr(instance, field) for field in HEADER_FIELDS} if instance else {}
    header.update({key: value for key, value in data.items() if key in HEADER_FIELDS})

    items_supplied = data.get('items') is not None
    slots_supplied = data.get('slots') is not None

    if items_supplied:
        items = [_item_from_payload(item) for item in data['items']]
    elif instance is not None:
        items = [item_spec(item) for item in instance.items.all()]
    else:
        items = []

    if slots_supplied:
        slots = [slot_from_payload(slot) for slot in data['slots']]
    elif instance is not None:
        slots = [slot_spec(slot) for slot in instance.slots.all()]
    else:
        slots = []

    return BundleDraft(
        bundle_type=header.get('bundle_type', Bundle.BundleType.FIXED),
        discount_type=header.get('discount_type', Bundle.DiscountType.PERCENTAGE),
        discount_value=header.get('discount_value', 0),
        is_active=header.get('is_active', True),
        starts_at=header.get('starts_at'),
        ends_at=header.get('ends_at'),
        items=items,
        slots=slots,
        attributes=header,
        replace_items=items_supplied or instance is None,
        replace_slots=slots_supplied or instance is None,
    )


def _write_items(bundle, items):
    bundle.items.all().delete()
    BundleItem.objects.bulk_create([
        BundleItem(
            bundle=bundle,
            product_id=item.product_id,
            quantity=item.quantity,
            price_override=item.price_override,
            sort_order=item.sort_order if item.sort_order is not None else index,
        )
        for index, item in enumerate(items)
    ])


def write_slot(bundle, spec, slot=None):
    """Create or update one slot; its product list is replaced, never merged."""
    slot = slot or BundleSlot(bundle=bundle)
    slot.name = spec.name
    slot.description = spec.description
    slot.slot_order = spec.slot_order
    slot.is_required = spec.is_required
    slot.min_selections = spec.min_selections
    slot.max_selections = spec.max_selections
    slot.save()
    slot.products.all().delete()
    BundleSlotProduct.objects.bulk_create([
        BundleSlotProduct(slot=slot, product_id=p.product_id, price_override=p.price_override)
        for p in spec.products
    ])
    return slot


def _write_slots(bundle, slots):
    bundle.slots.all().delete()
    for index, spec in enumerate(slots):
        if spec.slot_order is None:
            spec.slot_order = index
        write_slot(bundle, spec)


def save_bundle(draft, instance=None, user=None) -> Bundle:
    """
    Validate a draft and persist it with its children in one transaction.
    Returns the saved bundle reloaded with children.
    """
    validate_bundle(draft)

    attributes = dict(draft.attributes)
    sku = attributes.pop('sku', None) or None

    with transaction.atomic():
        bundle = instance or Bundle(created_by=user)
        for field in HEADER_FIELDS:
            if field in attributes:
                setattr(bundle, field, attributes[field])
        bundle.bundle_type = draft.bundle_type
        bundle.discount_type = draft.discount_type
        bundle.discount_value = draft.discount_value
        bundle.is_active = draft.is_active
        bundle.starts_at = draft.starts_at
        bundle.ends_at = draft.ends_at

        if not bundle.slug:
            bundle.slug = unique_slug(bundle.name, exclude_pk=bundle.pk)

        if sku and sku != bundle.sku:
            if sku_in_use(sku, exclude_pk=bundle.pk):
                raise BundleConflictError(f"SKU '{sku}' is already used by another bundle.")
            bundle.sku = sku
            bundle.sku_auto_generated = False
        elif not bundle.sku:
            bundle.sku = generate_sku()
            bundle.sku_auto_generated = True

        try:
            bundle.save()
        except IntegrityError as exc:
            logger.warning("Bundle save conflict for slug=%s sku=%s: %s", bundle.slug, bundle.sku, exc)
            raise BundleConflictError("A bundle with this slug or SKU already exists.")

        if draft.replace_items:
            _write_items(bundle, draft.items if bundle.is_fixed() else [])
        if draft.replace_slots:
            _write_slots(bundle, draft.slots if bundle.is_configurable() else [])

        logger.info("Saved bundle %s (%s)", bundle.pk, bundle.slug)
        return live_bundles().with_children().get(pk=bundle.pk)

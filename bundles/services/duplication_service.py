"""Deep copy of a bundle into a new, independent bundle."""
import logging
from decimal import Decimal

from django.db import IntegrityError, transaction

from bundles.exceptions import BundleConflictError
from bundles.identifiers import generate_sku, next_suffixed
from bundles.models import Bundle, BundleImage, BundleItem, BundleSlot, BundleSlotProduct
from bundles.services.cache_service import CacheInvalidator

logger = logging.getLogger(__name__)

COPY_SUFFIX = ' (Copy)'


class BundleDuplicationService:
    @staticmethod
    def _copy_sku(source):
        if not source.sku:
            return None, False
        if source.sku_auto_generated:
            return generate_sku(), True
        return next_suffixed('sku', source.sku, max_length=100), False

    @staticmethod
    def duplicate(source, invalidator=None, name_suffix=COPY_SUFFIX, is_active=None, user=None):
        """
        Copy `source` and all of its items, slots, slot products and images.

        The copy gets a new slug and SKU, zeroed analytics and stock counters, and keeps
        the source's homepage placement. `is_active` is copied as-is unless given.
        Everything happens in one transaction.
        """
        invalidator = invalidator or CacheInvalidator()

        with transaction.atomic():
            sku, sku_auto_generated = BundleDuplicationService._copy_sku(source)
            copy = Bundle.objects.get(pk=source.pk)
            copy.pk = None
            copy.id = None
            copy._state.adding = True
            copy.name = f"{source.name}{name_suffix}"[:255]
            copy.slug = next_suffixed('slug', source.slug, max_length=255)
            copy.sku = sku
            copy.sku_auto_generated = sku_auto_generated
            if is_active is not None:
                copy.is_active = is_active
            copy.stock_sold = 0
            copy.view_count = 0
            copy.add_to_cart_count = 0
            copy.purchase_count = 0
            copy.revenue = Decimal('0.00')
            copy.created_by = user or source.created_by
            try:
                copy.save()
            except IntegrityError as exc:
                logger.warning("Duplicate of bundle %s collided on slug/sku: %s", source.pk, exc)
                raise BundleConflictError("Could not duplicate bundle: slug or SKU already taken.")

            BundleItem.objects.bulk_create([
                BundleItem(
                    bundle=copy,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    price_override=item.price_override,
                    sort_order=item.sort_order,
                )
                for item in source.items.all()
            ])

            for slot in source.slots.all():
                new_slot = BundleSlot.objects.create(
                    bundle=copy,
                    name=slot.name,
                    description=slot.description,
                    slot_order=slot.slot_order,
                    is_required=slot.is_required,
                    min_selections=slot.min_selections,
                    max_selections=slot.max_selections,
                )
                BundleSlotProduct.objects.bulk_create([
                    BundleSlotProduct(slot=new_slot, product_id=p.product_id, price_override=p.price_override)
                    for p in slot.products.all()
                ])

            BundleImage.objects.bulk_create([
                BundleImage(
                    bundle=copy,
                    url=image.url,
                    alt_text=image.alt_text,
                    is_primary=image.is_primary,
                    sort_order=image.sort_order,
                )
                for image in source.images.all()
            ])

            invalidator.invalidate()

        logger.info("Duplicated bundle %s into %s (%s)", source.pk, copy.pk, copy.slug)
        return Bundle.objects.with_children().get(pk=copy.pk)

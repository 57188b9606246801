"""
Admin-side bundle mutations.

Each public method is one transaction followed by one cache invalidation.
The invalidator and image storage are handed in, so callers
decide what gets invalidated and where files go.
"""
import logging

from django.db import IntegrityError, transaction
from django.db.models import Count, Max
from django.utils import timezone

from bundles import repository
from bundles.domain import SlotSpec
from bundles.exceptions import BundleConflictError, BundleNotFound, BundleValidationError
from bundles.models import Bundle, BundleImage, BundleItem, BundleSlot
from bundles.services.cache_service import CacheInvalidator
from bundles.services.duplication_service import BundleDuplicationService
from bundles.services.image_storage import BundleImageStorage
from bundles.services.validation_service import collect_slot_errors

logger = logging.getLogger(__name__)


class BundleManagementService:
    BULK_ACTIONS = ('activate', 'deactivate', 'delete')

    def __init__(self, invalidator=None, storage=None):
        self.invalidator = invalidator or CacheInvalidator()
        self.storage = storage or BundleImageStorage()

    # ------------------------------------------------------------------
    # Bundles
    # ------------------------------------------------------------------

    def create(self, data, user=None):
        draft = repository.draft_from_payload(data)
        bundle = repository.save_bundle(draft, user=user)
        self.invalidator.invalidate()
        logger.info("Bundle %s created by %s", bundle.pk, getattr(user, 'username', None))
        return bundle

    def update(self, bundle, data):
        draft = repository.draft_from_payload(data, instance=bundle)
        bundle = repository.save_bundle(draft, instance=bundle)
        self.invalidator.invalidate()
        return bundle

    def delete(self, bundle):
        """Soft delete. The bundle and its children disappear from every live query."""
        with transaction.atomic():
            Bundle.objects.filter(pk=bundle.pk).update(deleted_at=timezone.now())
            self.invalidator.invalidate()
        logger.info("Bundle %s soft-deleted", bundle.pk)

    @staticmethod
    def _check_activatable(queryset):
        """An active fixed bundle needs at least one item, whichever path switches it on."""
        empty = list(
            queryset.filter(bundle_type=Bundle.BundleType.FIXED, is_active=False)
            .annotate(item_count=Count('items'))
            .filter(item_count=0)
            .values_list('pk', flat=True)
        )
        if empty:
            raise BundleValidationError([
                {
                    'field': 'items', 'code': 'required',
                    'message': f"Bundle {pk} is a fixed bundle without items and cannot be activated.",
                }
                for pk in empty
            ])

    def toggle(self, bundle):
        with transaction.atomic():
            if not bundle.is_active:
                self._check_activatable(Bundle.objects.filter(pk=bundle.pk))
            bundle.is_active = not bundle.is_active
            bundle.save(update_fields=['is_active', 'updated_at'])
            self.invalidator.invalidate()
        return bundle

    def duplicate(self, bundle, is_active=None, user=None):
        return BundleDuplicationService.duplicate(bundle, invalidator=self.invalidator, is_active=is_active, user=user)

    def bulk_action(self, ids, action):
        """Apply activate/deactivate/delete to live bundles among `ids`. Returns the affected count."""
        if action not in self.BULK_ACTIONS:
            raise BundleValidationError([{
                'field': 'action', 'code': 'invalid_choice', 'message': f"Unknown bulk action '{action}'."
            }])
        now = timezone.now()
        with transaction.atomic():
            qs = Bundle.objects.filter(pk__in=ids)
            if action == 'activate':
                self._check_activatable(qs)
                affected = qs.update(is_active=True, updated_at=now)
            elif action == 'deactivate':
                affected = qs.update(is_active=False, updated_at=now)
            else:
                affected = qs.update(deleted_at=now)
            self.invalidator.invalidate()
        logger.info("Bulk %s applied to %s bundle(s)", action, affected)
        return affected

    # ------------------------------------------------------------------
    # Slots
    # ------------------------------------------------------------------

    @staticmethod
    def _slot(bundle, slot_id):
        try:
            return bundle.slots.get(pk=slot_id)
        except (BundleSlot.DoesNotExist, ValueError):
            raise BundleNotFound("Slot not found for this bundle.")

    @staticmethod
    def _check_slot(spec):
        seen = set()
        for product_id in spec.product_ids():
            if product_id in seen:
                raise BundleConflictError(f"Product {product_id} is already in slot '{spec.name}'.")
            seen.add(product_id)
        errors = collect_slot_errors(spec)
        if errors:
            raise BundleValidationError(errors)

    def add_slot(self, bundle, data):
        if not bundle.is_configurable():
            raise BundleValidationError([{
                'field': 'bundle_type', 'code': 'not_configurable', 'message': "Only configurable bundles have slots."
            }])
        spec = repository.slot_from_payload(data, base=SlotSpec(name=''))
        if 'slot_order' not in data:
            spec.slot_order = (bundle.slots.aggregate(m=Max('slot_order'))['m'] or 0) + 1
        self._check_slot(spec)
        with transaction.atomic():
            slot = repository.write_slot(bundle, spec)
            self.invalidator.invalidate()
        return slot

    def update_slot(self, bundle, slot_id, data):
        """Partial update; a submitted product list replaces the old one."""
        slot = self._slot(bundle, slot_id)
        spec = repository.slot_from_payload(data, base=repository.slot_spec(slot))
        self._check_slot(spec)
        with transaction.atomic():
            slot = repository.write_slot(bundle, spec, slot=slot)
            self.invalidator.invalidate()
        return slot

    def remove_slot(self, bundle, slot_id):
        slot = self._slot(bundle, slot_id)
        with transaction.atomic():
            slot.delete()
            self.invalidator.invalidate()

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    @staticmethod
    def _item(bundle, item_id):
        try:
            return bundle.items.get(pk=item_id)
        except (BundleItem.DoesNotExist, ValueError):
            raise BundleNotFound("Item not found for this bundle.")

    def add_item(self, bundle, data):
        if not bundle.is_fixed():
            raise BundleValidationError([{
                'field': 'bundle_type', 'code': 'not_fixed', 'message': "Only fixed bundles have items."
            }])
        product_id = data['product_id']
        with transaction.atomic():
            if bundle.items.filter(product_id=product_id).exists():
                raise BundleConflictError(f"Product {product_id} is already part of this bundle.")
            sort_order = data.get('sort_order')
            if sort_order is None:
                sort_order = (bundle.items.aggregate(m=Max('sort_order'))['m'] or 0) + 1
            try:
                with transaction.atomic():
                    item = BundleItem.objects.create(
                        bundle=bundle,
                        product_id=product_id,
                        quantity=data.get('quantity', 1),
                        price_override=data.get('price_override'),
                        sort_order=sort_order,
                    )
            except IntegrityError as exc:
                # Lost the race against a concurrent insert of the same product
                logger.warning("Item insert conflict for bundle %s product %s: %s", bundle.pk, product_id, exc)
                raise BundleConflictError(f"Product {product_id} is already part of this bundle.")
            self.invalidator.invalidate()
        return item

    def update_item(self, bundle, item_id, data):
        item = self._item(bundle, item_id)
        with transaction.atomic():
            for field in ('quantity', 'price_override', 'sort_order'):
                if field in data:
                    setattr(item, field, data[field])
            item.save()
            self.invalidator.invalidate()
        return item

    def remove_item(self, bundle, item_id):
        item = self._item(bundle, item_id)
        if bundle.is_active and bundle.items.count() <= 1:
            raise BundleValidationError([{
                'field': 'items', 'code': 'required',
                'message': "An active fixed bundle needs at least one item. Deactivate it first."
            }])
        with transaction.atomic():
            item.delete()
            self.invalidator.invalidate()

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    @staticmethod
    def _image(bundle, image_id):
        try:
            return bundle.images.get(pk=image_id)
        except (BundleImage.DoesNotExist, ValueError):
            raise BundleNotFound("Image not found for this bundle.")

    def upload_images(self, bundle, files, alt_text=''):
        """Store each file and attach it. The first image a bundle gets becomes primary."""
        urls = []
        try:
            with transaction.atomic():
                has_primary = bundle.images.filter(is_primary=True).exists()
                next_order = (bundle.images.aggregate(m=Max('sort_order'))['m'] or 0) + 1
                images = []
                for offset, file_obj in enumerate(files):
                    url = self.storage.store(file_obj)
                    urls.append(url)
                    images.append(BundleImage.objects.create(
                        bundle=bundle,
                        url=url,
                        alt_text=alt_text or bundle.name,
                        is_primary=not has_primary and offset == 0,
                        sort_order=next_order + offset,
                    ))
                self.invalidator.invalidate()
        except Exception:
            # Files already stored have no row pointing at them anymore
            for url in urls:
                self.storage.delete(url)
            raise
        return images

    def delete_image(self, bundle, image_id):
        image = self._image(bundle, image_id)
        url = image.url
        with transaction.atomic():
            was_primary = image.is_primary
            image.delete()
            if was_primary:
                successor = bundle.images.order_by('sort_order', 'id').first()
                if successor:
                    successor.is_primary = True
                    successor.save(update_fields=['is_primary'])
            # Duplicated bundles share image files with their source
            if not BundleImage.objects.filter(url=url).exists():
                transaction.on_commit(lambda: self.storage.delete(url))
            self.invalidator.invalidate()

    def set_primary_image(self, bundle, image_id):
        image = self._image(bundle, image_id)
        with transaction.atomic():
            bundle.images.exclude(pk=image.pk).update(is_primary=False)
            image.is_primary = True
            image.save(update_fields=['is_primary'])
            self.invalidator.invalidate()
        return image

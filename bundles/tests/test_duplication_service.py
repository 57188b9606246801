from decimal import Decimal
from unittest.mock import MagicMock

from django.test import TestCase

from bundles.models import Bundle, BundleImage, BundleSlotProduct
from bundles.services.duplication_service import BundleDuplicationService
from bundles.tests.helpers import create_configurable_bundle, create_fixed_bundle, create_product


class BundleDuplicationTests(TestCase):
    def setUp(self):
        self.kettle = create_product('Kettle', '3500')
        self.toaster = create_product('Toaster', '4200')
        self.source = create_fixed_bundle(
            'Breakfast Set',
            [self.kettle, self.toaster],
            sku='BND-AAAA1111',
            sku_auto_generated=True,
            stock_limit=10,
            stock_sold=4,
            view_count=50,
            add_to_cart_count=12,
            purchase_count=4,
            revenue=Decimal('27000.00'),
            show_on_homepage=True,
            homepage_position=Bundle.HomepagePosition.GRID,
        )
        BundleImage.objects.create(bundle=self.source, url='/media/bundles/breakfast.jpg', is_primary=True)
        self.invalidator = MagicMock()

    def duplicate(self, source=None, **kwargs):
        return BundleDuplicationService.duplicate(source or self.source, invalidator=self.invalidator, **kwargs)

    def test_copy_is_independent_with_fresh_identity(self):
        copy = self.duplicate()

        self.assertNotEqual(copy.pk, self.source.pk)
        self.assertEqual(copy.name, 'Breakfast Set (Copy)')
        self.assertEqual(copy.slug, 'breakfast-set-2')
        self.assertNotEqual(copy.sku, self.source.sku)
        self.assertTrue(copy.sku.startswith('BND-'))
        self.assertTrue(copy.sku_auto_generated)
        self.invalidator.invalidate.assert_called_once()

    def test_counters_are_reset_and_placement_kept(self):
        copy = self.duplicate()

        self.assertEqual(
            (copy.stock_sold, copy.view_count, copy.add_to_cart_count, copy.purchase_count, copy.revenue),
            (0, 0, 0, 0, Decimal('0.00')),
        )
        self.assertEqual(copy.stock_limit, 10)
        self.assertTrue(copy.show_on_homepage)
        self.assertEqual(copy.homepage_position, Bundle.HomepagePosition.GRID)

    def test_children_are_copied_and_source_untouched(self):
        copy = self.duplicate()

        self.assertEqual(
            list(copy.items.values_list('product_id', 'quantity')),
            [(self.kettle.id, 1), (self.toaster.id, 1)],
        )
        self.assertEqual(copy.images.get().url, '/media/bundles/breakfast.jpg')
        self.assertTrue(copy.images.get().is_primary)

        self.source.refresh_from_db()
        self.assertEqual(self.source.items.count(), 2)
        self.assertEqual(self.source.purchase_count, 4)
        self.assertEqual(self.source.images.count(), 1)

    def test_manual_sku_gets_suffix(self):
        source = create_fixed_bundle('Tea Set', [self.kettle], sku='TEA-SET')

        copy = self.duplicate(source)

        self.assertEqual(copy.sku, 'TEA-SET-2')
        self.assertFalse(copy.sku_auto_generated)

    def test_is_active_override(self):
        copy = self.duplicate(is_active=False)

        self.assertFalse(copy.is_active)
        self.assertTrue(Bundle.objects.get(pk=self.source.pk).is_active)

    def test_second_copy_gets_next_slug(self):
        self.duplicate()
        second = self.duplicate()

        self.assertEqual(second.slug, 'breakfast-set-3')

    def test_configurable_slots_and_products_are_copied(self):
        washer = create_product('Washer', '30000')
        dryer = create_product('Dryer', '25000')
        source = create_configurable_bundle('Laundry Room', [('Washer', [washer]), ('Dryer', [dryer])])

        copy = self.duplicate(source)

        self.assertEqual(list(copy.slots.values_list('name', flat=True)), ['Washer', 'Dryer'])
        self.assertEqual(
            set(copy.slots.get(name='Dryer').products.values_list('product_id', flat=True)),
            {dryer.id},
        )
        self.assertEqual(BundleSlotProduct.objects.filter(slot__bundle=source).count(), 2)

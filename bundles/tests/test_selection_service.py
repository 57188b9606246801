from decimal import Decimal

from django.test import SimpleTestCase

from bundles.exceptions import SelectionError
from bundles.models import Bundle
from bundles.services.selection_service import normalize_selections, resolve_selection
from bundles.tests.helpers import configurable_aggregate, fixed_aggregate, info, item, lookup, slot


class SelectionResolverTests(SimpleTestCase):
    def setUp(self):
        self.catalog = lookup(
            info(10, '30000', name='Front Loader'),
            info(11, '25000', name='Top Loader'),
            info(12, '20000', available=False),
            info(20, '18000'),
            info(21, '22000'),
            info(30, '1500'),
            info(31, '900'),
        )
        self.bundle = configurable_aggregate(
            [
                slot(1, 'Washer', [10, 11, 12]),
                slot(2, 'Dryer', [20, 21], overrides={21: '19000'}),
                slot(3, 'Accessories', [30, 31], is_required=False, min_selections=0, max_selections=2),
            ],
            cart_display=Bundle.CartDisplay.INDIVIDUAL,
        )

    def resolve(self, selections):
        return resolve_selection(self.bundle, selections, self.catalog)

    def error_codes(self, ctx):
        return sorted(error['code'] for error in ctx.exception.errors)

    def test_valid_selection_produces_priced_lines(self):
        resolved = self.resolve({1: [10], 2: [21], 3: [30, 31]})

        self.assertEqual(resolved.cart_display, Bundle.CartDisplay.INDIVIDUAL)
        self.assertEqual(
            [(line.slot_id, line.product_id, line.unit_price) for line in resolved.lines],
            [(1, 10, Decimal('30000')), (2, 21, Decimal('19000')), (3, 30, Decimal('1500')), (3, 31, Decimal('900'))],
        )
        self.assertEqual(resolved.lines[0].product_name, 'Front Loader')
        self.assertEqual(resolved.base_price, Decimal('51400'))

    def test_optional_slot_may_be_empty(self):
        resolved = self.resolve({1: [11], 2: [20]})
        self.assertEqual(len(resolved.lines), 2)

    def test_required_slot_without_selection_names_the_slot(self):
        with self.assertRaises(SelectionError) as ctx:
            self.resolve({2: [20]})

        errors = ctx.exception.errors
        self.assertEqual(len(errors), 1)
        self.assertEqual(errors[0]['code'], 'too_few')
        self.assertEqual(errors[0]['slot_id'], 1)
        self.assertEqual(errors[0]['slot_name'], 'Washer')
        self.assertIn('Washer', errors[0]['message'])

    def test_too_many_selections(self):
        with self.assertRaises(SelectionError) as ctx:
            self.resolve({1: [10, 11], 2: [20]})
        self.assertEqual(self.error_codes(ctx), ['too_many'])

    def test_product_outside_slot(self):
        with self.assertRaises(SelectionError) as ctx:
            self.resolve({1: [20], 2: [20]})
        self.assertEqual(self.error_codes(ctx), ['product_not_in_slot'])

    def test_repeated_product_in_slot(self):
        with self.assertRaises(SelectionError) as ctx:
            self.resolve({1: [10], 2: [20], 3: [30, 30]})
        self.assertEqual(self.error_codes(ctx), ['duplicate_product'])

    def test_unavailable_product(self):
        with self.assertRaises(SelectionError) as ctx:
            self.resolve({1: [12], 2: [20]})
        self.assertEqual(self.error_codes(ctx), ['product_unavailable'])

    def test_unknown_slot(self):
        with self.assertRaises(SelectionError) as ctx:
            self.resolve({1: [10], 2: [20], 99: [10]})
        self.assertEqual(self.error_codes(ctx), ['unknown_slot'])

    def test_every_violation_is_collected(self):
        with self.assertRaises(SelectionError) as ctx:
            self.resolve({2: [20, 21], 3: [99]})
        self.assertEqual(self.error_codes(ctx), ['product_not_in_slot', 'too_few', 'too_many'])

    def test_list_payload_format(self):
        resolved = self.resolve([
            {'slot_id': 1, 'product_ids': [10]},
            {'slot_id': '2', 'product_id': '20'},
        ])
        self.assertEqual([line.product_id for line in resolved.lines], [10, 20])


class FixedSelectionTests(SimpleTestCase):
    def setUp(self):
        self.catalog = lookup(info(1, '6000'), info(2, '4000'))
        self.bundle = fixed_aggregate([item(1, quantity=2), item(2)])

    def test_fixed_bundle_resolves_to_its_items(self):
        resolved = resolve_selection(self.bundle, None, self.catalog)

        self.assertEqual([(line.product_id, line.quantity) for line in resolved.lines], [(1, 2), (2, 1)])
        self.assertEqual(resolved.base_price, Decimal('16000'))

    def test_fixed_bundle_rejects_selections(self):
        with self.assertRaises(SelectionError) as ctx:
            resolve_selection(self.bundle, {1: [1]}, self.catalog)
        self.assertEqual(ctx.exception.errors[0]['code'], 'not_configurable')

    def test_fixed_bundle_with_out_of_stock_item(self):
        catalog = lookup(info(1, '6000'), info(2, '4000', available=False))
        with self.assertRaises(SelectionError) as ctx:
            resolve_selection(self.bundle, [], catalog)
        self.assertEqual(ctx.exception.errors[0]['product_id'], 2)


class NormalizeSelectionsTests(SimpleTestCase):
    def test_string_keys_become_ints(self):
        self.assertEqual(normalize_selections({'4': ['7', 8]}), {4: [7, 8]})

    def test_empty(self):
        self.assertEqual(normalize_selections(None), {})

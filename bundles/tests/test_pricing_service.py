from decimal import Decimal

from django.test import SimpleTestCase, override_settings

from bundles.models import Bundle
from bundles.services.pricing_service import (
    SOURCE_MISSING,
    SOURCE_OVERRIDE,
    PricedLine,
    compute_price,
    default_selection_lines,
    format_money,
)
from bundles.tests.helpers import configurable_aggregate, fixed_aggregate, info, item, lookup, slot


class FixedBundlePricingTests(SimpleTestCase):
    def setUp(self):
        self.catalog = lookup(info(1, '6000'), info(2, '4000'))

    def test_percentage_discount(self):
        bundle = fixed_aggregate([item(1), item(2)], discount_value='25')

        price = compute_price(bundle, self.catalog)

        self.assertEqual(price.base_price, Decimal('10000'))
        self.assertEqual(price.final_price, Decimal('7500'))
        self.assertEqual(price.savings_amount, Decimal('2500'))
        self.assertEqual(price.savings_percentage, 25)
        self.assertFalse(price.is_negative_savings)

    def test_fixed_price_below_base(self):
        bundle = fixed_aggregate([item(1), item(2)], discount_type=Bundle.DiscountType.FIXED_PRICE, discount_value='8000')

        price = compute_price(bundle, self.catalog)

        self.assertEqual(price.final_price, Decimal('8000'))
        self.assertEqual(price.savings_amount, Decimal('2000'))
        self.assertEqual(price.savings_percentage, 20)

    def test_fixed_price_above_base_is_flagged_not_clamped(self):
        bundle = fixed_aggregate([item(1), item(2)], discount_type=Bundle.DiscountType.FIXED_PRICE, discount_value='12000')

        price = compute_price(bundle, self.catalog)

        self.assertEqual(price.final_price, Decimal('12000'))
        self.assertEqual(price.savings_amount, Decimal('-2000'))
        self.assertTrue(price.is_negative_savings)
        self.assertEqual(price.as_dict()['savings_amount'], '-2000.00')

    def test_quantity_and_override(self):
        bundle = fixed_aggregate([item(1, quantity=2, price_override='5000'), item(2)])

        price = compute_price(bundle, self.catalog)

        self.assertEqual(price.base_price, Decimal('14000'))
        self.assertEqual(price.lines[0].price_source, SOURCE_OVERRIDE)
        self.assertEqual(price.lines[0].line_total, Decimal('10000'))

    def test_missing_product_contributes_zero_and_is_reported(self):
        bundle = fixed_aggregate([item(1), item(99)], discount_value='0')

        with self.assertLogs('bundles.services.pricing_service', level='WARNING'):
            price = compute_price(bundle, self.catalog)

        self.assertEqual(price.base_price, Decimal('6000'))
        self.assertEqual(price.missing_product_ids, (99,))
        self.assertEqual(price.lines[1].price_source, SOURCE_MISSING)
        self.assertEqual(len(price.warnings), 1)

    def test_empty_bundle_has_zero_savings_percentage(self):
        bundle = fixed_aggregate([], discount_type=Bundle.DiscountType.FIXED_PRICE, discount_value='100', is_active=False)

        price = compute_price(bundle, self.catalog)

        self.assertEqual(price.base_price, Decimal('0'))
        self.assertEqual(price.savings_percentage, 0)

    def test_pricing_is_idempotent(self):
        bundle = fixed_aggregate([item(1), item(2, quantity=3)], discount_value='12.5')
        self.assertEqual(compute_price(bundle, self.catalog), compute_price(bundle, self.catalog))

    def test_savings_percentage_rounds_half_up(self):
        # 1 / 8 = 12.5% -> 13
        bundle = fixed_aggregate([item(1)], discount_type=Bundle.DiscountType.FIXED_PRICE, discount_value='5250')
        price = compute_price(bundle, self.catalog)
        self.assertEqual(price.savings_amount, Decimal('750'))
        self.assertEqual(price.savings_percentage, 13)


class ConfigurableBundlePricingTests(SimpleTestCase):
    def setUp(self):
        self.catalog = lookup(
            info(10, '30000'), info(11, '25000'), info(12, '20000', available=False),
            info(20, '18000'), info(21, '22000'),
            info(30, '1500'),
        )
        self.bundle = configurable_aggregate(
            [
                slot(1, 'Washer', [10, 11, 12]),
                slot(2, 'Dryer', [20, 21], overrides={21: '15000'}),
                slot(3, 'Accessories', [30], is_required=False, min_selections=0),
            ],
            discount_value='10',
        )

    def test_default_selection_picks_cheapest_available_per_required_slot(self):
        lines, missing = default_selection_lines(self.bundle, self.catalog.get_products([10, 11, 12, 20, 21, 30]))

        self.assertEqual(missing, [])
        self.assertEqual([(line.slot_id, line.product_id) for line in lines], [(1, 11), (2, 21)])
        self.assertEqual(lines[1].unit_price, Decimal('15000'))

    def test_base_price_uses_default_selection(self):
        price = compute_price(self.bundle, self.catalog)

        self.assertEqual(price.base_price, Decimal('40000'))
        self.assertEqual(price.final_price, Decimal('36000'))

    def test_explicit_selection_lines(self):
        lines = [
            PricedLine(product_id=10, quantity=1, unit_price=Decimal('30000'), slot_id=1),
            PricedLine(product_id=20, quantity=1, unit_price=Decimal('18000'), slot_id=2),
            PricedLine(product_id=30, quantity=1, unit_price=Decimal('1500'), slot_id=3),
        ]

        price = compute_price(self.bundle, self.catalog, lines=lines)

        self.assertEqual(price.base_price, Decimal('49500'))
        self.assertEqual(price.final_price, Decimal('44550'))


class FormatMoneyTests(SimpleTestCase):
    def test_rounds_half_up_to_two_places(self):
        self.assertEqual(format_money(Decimal('10.005')), Decimal('10.01'))
        self.assertEqual(format_money(Decimal('7500')), Decimal('7500.00'))

    @override_settings(BUNDLE_CURRENCY_DECIMAL_PLACES=0)
    def test_currency_without_minor_unit(self):
        self.assertEqual(format_money(Decimal('2499.5')), Decimal('2500'))

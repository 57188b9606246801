"""
Bundle analytics counters.

Counters are only ever changed with F() expressions in a single UPDATE so concurrent
requests never lose increments. An optional event_key makes an increment idempotent:
the first call with a key counts, retries with the same key are no-ops.
"""
import logging
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import F, Q

from bundles.exceptions import BundleNotFound, BundleValidationError, CapacityError
from bundles.models import Bundle, BundleEvent

logger = logging.getLogger(__name__)

RATE_PLACES = Decimal('0.0001')


class BundleAnalyticsService:
    @staticmethod
    def _claim_event(bundle_id, kind, event_key, units=0, revenue=Decimal('0')):
        """Record the event key. False when it was already processed."""
        try:
            with transaction.atomic():
                BundleEvent.objects.create(
                    bundle_id=bundle_id,
                    kind=kind,
                    event_key=event_key,
                    units=units,
                    revenue=revenue,
                )
        except IntegrityError:
            logger.info("Duplicate %s event %s for bundle %s ignored", kind, event_key, bundle_id)
            return False
        return True

    @staticmethod
    def _increment(bundle_id, kind, updates, event_key=None, condition=None, units=0, revenue=Decimal('0')):
        with transaction.atomic():
            if not Bundle.objects.filter(pk=bundle_id).exists():
                raise BundleNotFound()

            if event_key and not BundleAnalyticsService._claim_event(bundle_id, kind, event_key, units, revenue):
                return False

            qs = Bundle.objects.filter(pk=bundle_id)
            if condition is not None:
                qs = qs.filter(condition)
            if qs.update(**updates) == 0:
                # The bundle exists, so the condition rejected the update.
                raise CapacityError()
        return True

    @staticmethod
    def record_view(bundle_id, event_key=None):
        return BundleAnalyticsService._increment(
            bundle_id, BundleEvent.Kind.VIEW, {'view_count': F('view_count') + 1}, event_key=event_key
        )

    @staticmethod
    def record_add_to_cart(bundle_id, event_key=None):
        return BundleAnalyticsService._increment(
            bundle_id, BundleEvent.Kind.ADD_TO_CART, {'add_to_cart_count': F('add_to_cart_count') + 1},
            event_key=event_key
        )

    @staticmethod
    def record_purchase(bundle_id, revenue_delta, units_delta=1, event_key=None):
        """
        Count a purchase and consume stock in one conditional UPDATE:
        stock_sold + units <= stock_limit, or no limit at all.
        Raises CapacityError when the remaining stock cannot cover units_delta.
        """
        revenue_delta = Decimal(str(revenue_delta))
        errors = []
        if units_delta is None or units_delta < 1:
            errors.append({'field': 'units', 'code': 'min_value', 'message': "Units must be at least 1."})
        if revenue_delta < 0:
            errors.append({'field': 'revenue', 'code': 'min_value', 'message': "Revenue cannot be negative."})
        if errors:
            raise BundleValidationError(errors)

        recorded = BundleAnalyticsService._increment(
            bundle_id,
            BundleEvent.Kind.PURCHASE,
            {
                'stock_sold': F('stock_sold') + units_delta,
                'purchase_count': F('purchase_count') + 1,
                'revenue': F('revenue') + revenue_delta,
            },
            event_key=event_key,
            condition=Q(stock_limit__isnull=True) | Q(stock_limit__gte=F('stock_sold') + units_delta),
            units=units_delta,
            revenue=revenue_delta,
        )
        if recorded:
            logger.info("Recorded purchase of %s unit(s) of bundle %s (revenue %s)", units_delta, bundle_id, revenue_delta)
        return recorded

    @staticmethod
    def rate(numerator, denominator):
        if not denominator:
            return Decimal('0')
        return (Decimal(numerator) / Decimal(denominator)).quantize(RATE_PLACES)

    @staticmethod
    def breakdown(bundle):
        """Counters plus derived rates. Rates are ratios (0.25 means 25%)."""
        return {
            'view_count': bundle.view_count,
            'add_to_cart_count': bundle.add_to_cart_count,
            'purchase_count': bundle.purchase_count,
            'revenue': bundle.revenue,
            'conversion_rate': BundleAnalyticsService.rate(bundle.purchase_count, bundle.view_count),
            'add_to_cart_rate': BundleAnalyticsService.rate(bundle.add_to_cart_count, bundle.view_count),
        }

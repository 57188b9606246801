"""Management command to list bundles that reference products missing from the catalog."""
from django.core.management.base import BaseCommand

from catalog.lookup import CatalogProductLookup
from bundles.models import Bundle
from bundles.repository import to_aggregate


class Command(BaseCommand):
    help = 'Report live bundles whose items or slot products point at products that no longer exist'

    def add_arguments(self, parser):
        parser.add_argument(
            '--active-only',
            action='store_true',
            help='Only check bundles that are switched on',
        )

    def handle(self, *args, **options):
        bundles = Bundle.objects.with_children()
        if options['active_only']:
            bundles = bundles.filter(is_active=True)

        lookup = CatalogProductLookup()
        stale_count = 0
        for bundle in bundles:
            product_ids = to_aggregate(bundle).product_ids()
            known = lookup.get_products(product_ids)
            missing = sorted({pid for pid in product_ids if pid not in known})
            if missing:
                stale_count += 1
                self.stdout.write(
                    self.style.WARNING(f'{bundle.slug} (#{bundle.id}): missing products {missing}')
                )

        if stale_count:
            self.stdout.write(self.style.WARNING(f'{stale_count} bundle(s) reference missing products'))
        else:
            self.stdout.write(self.style.SUCCESS('No stale product references found'))

import logging

from django.conf import settings
from django.core.cache import cache
from django.db import transaction

logger = logging.getLogger(__name__)


def homepage_cache_key():
    return getattr(settings, 'BUNDLE_HOMEPAGE_CACHE_KEY', 'homepage_bundles')


class CacheInvalidator:
    """
    Drops cached storefront data after bundle mutations.
    Deletion runs once the surrounding transaction commits; a cache outage is logged
    and never fails the mutation that triggered it.
    """

    def __init__(self, keys=None, backend=None):
        self.keys = list(keys) if keys else [homepage_cache_key()]
        self.backend = backend or cache

    def invalidate(self, key=None):
        keys = [key] if key else list(self.keys)
        transaction.on_commit(lambda: self._delete(keys))

    def _delete(self, keys):
        try:
            self.backend.delete_many(keys)
            logger.debug("Invalidated cache keys %s", keys)
        except Exception as e:
            logger.warning("Cache invalidation failed for %s: %s", keys, e)


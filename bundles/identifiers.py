"""Slug and SKU generation for bundles. Soft-deleted bundles still own their slug and SKU."""
import random
import string

from django.db.models import Q
from django.utils.text import slugify

from bundles.exceptions import BundleConflictError
from bundles.models import Bundle

SKU_PREFIX = 'BND-'
SKU_LENGTH = 8
MAX_ATTEMPTS = 100


def _taken(field, base, exclude_pk=None):
    qs = Bundle.all_objects.filter(Q(**{field: base}) | Q(**{f'{field}__startswith': f'{base}-'}))
    if exclude_pk:
        qs = qs.exclude(pk=exclude_pk)
    return set(qs.values_list(field, flat=True))


def next_suffixed(field, base, exclude_pk=None, max_length=None):
    """
    `base` if it is free, otherwise `base-N` where N starts at the number of existing
    collisions plus one and probes upward.
    """
    taken = _taken(field, base, exclude_pk)
    if base not in taken:
        return base
    collisions = sum(1 for value in taken if value == base or value[len(base) + 1:].isdigit())
    number = collisions + 1
    for _ in range(MAX_ATTEMPTS):
        suffix = f'-{number}'
        candidate = f'{base[:max_length - len(suffix)] if max_length else base}{suffix}'
        if candidate not in taken:
            return candidate
        number += 1
    raise BundleConflictError(f"Could not find a free {field} for '{base}'.")


def unique_slug(name, exclude_pk=None):
    base = slugify(name)[:240] or 'bundle'
    return next_suffixed('slug', base, exclude_pk=exclude_pk, max_length=255)


def generate_sku():
    """Random 'BND-XXXXXXXX' SKU not used by any bundle, deleted ones included."""
    characters = string.ascii_uppercase + string.digits
    for _ in range(MAX_ATTEMPTS):
        sku = SKU_PREFIX + ''.join(random.choices(characters, k=SKU_LENGTH))
        if not Bundle.all_objects.filter(sku=sku).exists():
            return sku
    raise BundleConflictError("Could not generate a unique SKU.")


def sku_in_use(sku, exclude_pk=None):
    qs = Bundle.all_objects.filter(sku=sku)
    if exclude_pk:
        qs = qs.exclude(pk=exclude_pk)
    return qs.exists()

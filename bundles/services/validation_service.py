"""
Structural validation of bundle drafts.

Every rule is checked and every violation reported, so an admin fixing a bundle
sees the whole list in one round trip.
"""
from decimal import Decimal

from bundles.exceptions import BundleValidationError
from bundles.models import Bundle

HUNDRED = Decimal('100')


def _error(field, code, message):
    return {'field': field, 'code': code, 'message': message}


def _duplicates(values):
    seen = set()
    repeated = []
    for index, value in enumerate(values):
        if value in seen:
            repeated.append((index, value))
        seen.add(value)
    return repeated


def collect_slot_errors(slot, prefix='slot'):
    """Rules that apply to a single slot, also used when a slot is edited on its own."""
    errors = []
    if slot.min_selections < 0 or slot.max_selections < 0:
        errors.append(_error(f'{prefix}.min_selections', 'min_value', "Selection bounds cannot be negative."))
    if slot.min_selections > slot.max_selections:
        errors.append(_error(
            f'{prefix}.min_selections', 'invalid_bounds',
            f"Slot '{slot.name}': min_selections ({slot.min_selections}) is greater than "
            f"max_selections ({slot.max_selections})."
        ))
    if slot.products and slot.max_selections > len(slot.products):
        errors.append(_error(
            f'{prefix}.max_selections', 'exceeds_products',
            f"Slot '{slot.name}': max_selections ({slot.max_selections}) exceeds the "
            f"{len(slot.products)} eligible products."
        ))
    if slot.is_required and slot.min_selections < 1:
        errors.append(_error(
            f'{prefix}.min_selections', 'required_min',
            f"Slot '{slot.name}' is required, so min_selections must be at least 1."
        ))
    for index, product_id in _duplicates(slot.product_ids()):
        errors.append(_error(
            f'{prefix}.products[{index}].product_id', 'duplicate_product',
            f"Product {product_id} appears more than once in slot '{slot.name}'."
        ))
    for index, product in enumerate(slot.products):
        if product.price_override is not None and product.price_override < 0:
            errors.append(_error(
                f'{prefix}.products[{index}].price_override', 'min_value',
                "Price override cannot be negative."
            ))
    return errors


def _fixed_errors(draft):
    errors = []
    if draft.slots:
        errors.append(_error('slots', 'not_allowed', "Fixed bundles cannot have slots."))
    if draft.is_active and not draft.items:
        errors.append(_error('items', 'required', "An active fixed bundle needs at least one item."))
    for index, product_id in _duplicates([item.product_id for item in draft.items]):
        errors.append(_error(
            f'items[{index}].product_id', 'duplicate_product',
            f"Product {product_id} is already part of this bundle."
        ))
    for index, item in enumerate(draft.items):
        if item.quantity is None or item.quantity < 1:
            errors.append(_error(f'items[{index}].quantity', 'min_value', "Quantity must be at least 1."))
        if item.price_override is not None and item.price_override < 0:
            errors.append(_error(f'items[{index}].price_override', 'min_value', "Price override cannot be negative."))
    return errors


def _configurable_errors(draft):
    errors = []
    if draft.items:
        errors.append(_error('items', 'not_allowed', "Configurable bundles cannot have fixed items."))
    for index, slot in enumerate(draft.slots):
        errors.extend(collect_slot_errors(slot, prefix=f'slots[{index}]'))
    return errors


def collect_errors(draft):
    """Return the list of violations for a draft; empty means valid."""
    errors = []

    if draft.discount_type not in Bundle.DiscountType.values:
        errors.append(_error('discount_type', 'invalid_choice', f"Unknown discount type '{draft.discount_type}'."))
    if draft.discount_value is None or draft.discount_value < 0:
        errors.append(_error('discount_value', 'min_value', "Discount value cannot be negative."))
    elif draft.discount_type == Bundle.DiscountType.PERCENTAGE and draft.discount_value > HUNDRED:
        errors.append(_error('discount_value', 'max_value', "Percentage discount cannot exceed 100."))

    if draft.starts_at and draft.ends_at and draft.starts_at > draft.ends_at:
        errors.append(_error('ends_at', 'invalid_window', "End date must be on or after the start date."))

    if draft.bundle_type == Bundle.BundleType.FIXED:
        errors.extend(_fixed_errors(draft))
    elif draft.bundle_type == Bundle.BundleType.CONFIGURABLE:
        errors.extend(_configurable_errors(draft))
    else:
        errors.append(_error('bundle_type', 'invalid_choice', f"Unknown bundle type '{draft.bundle_type}'."))

    return errors


def validate_bundle(draft):
    """Raise BundleValidationError with every violation, or return the draft as an aggregate."""
    errors = collect_errors(draft)
    if errors:
        raise BundleValidationError(errors)
    return draft.to_aggregate()

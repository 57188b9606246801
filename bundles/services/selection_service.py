"""Turns a customer's slot selections into priced cart lines."""
import logging
from dataclasses import dataclass
from decimal import Decimal

from bundles.exceptions import SelectionError
from bundles.services.pricing_service import PricedLine, fixed_lines, unit_price

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedSelection:
    bundle_id: int
    cart_display: str
    lines: tuple = ()

    @property
    def base_price(self):
        return sum((line.line_total for line in self.lines), Decimal('0'))


def _as_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return value


def normalize_selections(selections):
    """
    Accepts either {slot_id: [product_id, ...]} or
    [{'slot_id': .., 'product_ids': [..]}] (a single 'product_id' is allowed too).
    Returns {slot_id: [product_id, ...]} with ids as ints where possible, keeping order.
    """
    if not selections:
        return {}
    normalized = {}
    if isinstance(selections, dict):
        pairs = selections.items()
    else:
        pairs = []
        for entry in selections:
            product_ids = entry.get('product_ids')
            if product_ids is None and entry.get('product_id') is not None:
                product_ids = [entry['product_id']]
            pairs.append((entry.get('slot_id'), product_ids or []))
    for slot_id, product_ids in pairs:
        if not isinstance(product_ids, (list, tuple)):
            product_ids = [product_ids]
        normalized.setdefault(_as_int(slot_id), []).extend(_as_int(pid) for pid in product_ids)
    return normalized


def _error(code, message, slot=None, slot_id=None, product_id=None):
    error = {'code': code, 'message': message}
    if slot is not None:
        error['slot_id'] = slot.id
        error['slot_name'] = slot.name
    elif slot_id is not None:
        error['slot_id'] = slot_id
    if product_id is not None:
        error['product_id'] = product_id
    return error


def resolve_selection(bundle, selections, lookup):
    """
    Validate `selections` against a bundle aggregate and price them.

    Fixed bundles take no selections and resolve to their items. For configurable
    bundles every problem is collected before SelectionError is raised, so the
    storefront can highlight all offending slots at once.
    """
    selections = normalize_selections(selections)

    if bundle.is_fixed():
        if any(selections.values()):
            raise SelectionError([_error('not_configurable', "Fixed bundles do not accept selections.")])
        products = lookup.get_products(bundle.product_ids())
        lines, missing = fixed_lines(bundle, products)
        errors = [
            _error('product_unavailable', f"Product {pid} is no longer available.", product_id=pid)
            for pid in missing
        ]
        errors.extend(
            _error('product_unavailable', f"'{products[item.product_id].name}' is out of stock.",
                   product_id=item.product_id)
            for item in bundle.items
            if item.product_id in products and not products[item.product_id].is_available
        )
        if errors:
            raise SelectionError(errors)
        return ResolvedSelection(bundle_id=bundle.id, cart_display=bundle.cart_display, lines=tuple(lines))

    errors = []
    known_slots = {slot.id for slot in bundle.slots}
    for slot_id in selections:
        if slot_id not in known_slots:
            errors.append(_error('unknown_slot', f"Slot {slot_id} does not belong to this bundle.", slot_id=slot_id))

    chosen_ids = [pid for slot_id, pids in selections.items() if slot_id in known_slots for pid in pids]
    products = lookup.get_products(chosen_ids)

    lines = []
    for slot in bundle.slots:
        picked = selections.get(slot.id, [])
        count = len(picked)

        if slot.is_required and count < slot.min_selections:
            errors.append(_error(
                'too_few', f"Please select at least {slot.min_selections} product(s) for '{slot.name}'.", slot=slot
            ))
        elif not slot.is_required and 0 < count < slot.min_selections:
            errors.append(_error(
                'too_few', f"Select at least {slot.min_selections} product(s) for '{slot.name}' or none.", slot=slot
            ))
        if count > slot.max_selections:
            errors.append(_error(
                'too_many', f"You can select at most {slot.max_selections} product(s) for '{slot.name}'.", slot=slot
            ))

        seen = set()
        for product_id in picked:
            if product_id in seen:
                errors.append(_error(
                    'duplicate_product', f"Product {product_id} was selected twice in '{slot.name}'.",
                    slot=slot, product_id=product_id
                ))
                continue
            seen.add(product_id)

            slot_product = slot.find_product(product_id)
            if slot_product is None:
                errors.append(_error(
                    'product_not_in_slot', f"Product {product_id} is not an option for '{slot.name}'.",
                    slot=slot, product_id=product_id
                ))
                continue

            info = products.get(product_id)
            if info is None or not info.is_available:
                errors.append(_error(
                    'product_unavailable', f"Product {product_id} is currently unavailable.",
                    slot=slot, product_id=product_id
                ))
                continue

            price, source = unit_price(slot_product.price_override, info)
            lines.append(PricedLine(
                product_id=product_id,
                quantity=1,
                unit_price=price,
                price_source=source,
                slot_id=slot.id,
                product_name=info.name,
            ))

    if errors:
        logger.info("Rejected selection for bundle %s: %s", bundle.id, [e['code'] for e in errors])
        raise SelectionError(errors)

    return ResolvedSelection(bundle_id=bundle.id, cart_display=bundle.cart_display, lines=tuple(lines))

"""Availability gate: decides whether a bundle can be shown and sold right now."""
from django.db.models import F, Q
from django.utils import timezone

from bundles.exceptions import BundleUnavailableError
from bundles.models import Bundle

Status = Bundle.AvailabilityStatus


def availability_status(bundle, now=None):
    """
    Status of a bundle at `now`. First match wins:
    draft (inactive), scheduled, expired, sold out, then active.
    Works on model instances and on domain aggregates alike.
    """
    now = now or timezone.now()
    if not bundle.is_active:
        return Status.DRAFT
    if bundle.starts_at and now < bundle.starts_at:
        return Status.SCHEDULED
    if bundle.ends_at and now > bundle.ends_at:
        return Status.EXPIRED
    if bundle.stock_limit is not None and bundle.stock_sold >= bundle.stock_limit:
        return Status.SOLD_OUT
    return Status.ACTIVE


def is_purchasable(bundle, now=None):
    return availability_status(bundle, now) == Status.ACTIVE


def available_filter(now=None):
    """The same predicate as availability_status() == active, as a Q for querysets."""
    now = now or timezone.now()
    return (
        Q(is_active=True)
        & (Q(starts_at__isnull=True) | Q(starts_at__lte=now))
        & (Q(ends_at__isnull=True) | Q(ends_at__gte=now))
        & (Q(stock_limit__isnull=True) | Q(stock_sold__lt=F('stock_limit')))
    )


def ensure_available(bundle, now=None):
    status = availability_status(bundle, now)
    if status != Status.ACTIVE:
        raise BundleUnavailableError(
            status,
            detail=f"Bundle '{bundle.name}' is not available ({Status(status).label.lower()}).",
        )
    return status

from rest_framework import permissions
import logging

logger = logging.getLogger(__name__)

BUNDLE_MANAGER_GROUP = 'Bundle Managers'


def is_bundle_manager(user):
    """Superusers, holders of bundles.change_bundle, and members of the Bundle Managers group."""
    if not user or not user.is_authenticated:
        return False
    if user.is_superuser:
        return True
    return user.has_perm('bundles.change_bundle') or user.groups.filter(name=BUNDLE_MANAGER_GROUP).exists()


class IsBundleManagerOrReadOnly(permissions.BasePermission):
    """
    Bundles admin API:
    - Bundle managers / Superuser: full access
    - Other staff: read-only
    - Everyone else: no access
    """
    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        if request.user.is_superuser:
            return True

        if not request.user.is_staff:
            return False

        if request.method in permissions.SAFE_METHODS:
            return True

        allowed = is_bundle_manager(request.user)
        if not allowed:
            logger.info("User %s denied write access to bundles", request.user.username)
        return allowed

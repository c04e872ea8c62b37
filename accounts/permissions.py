"""
DRF permission classes backed by the django-rules permissions declared in
``accounts.rbac``.

Usage:
    class AssetDistributionViewSet(viewsets.ModelViewSet):
        permission_classes = [IsAuthenticated, ActionRulePermission]
        action_permissions = {
            'create': 'inventory.create_distribution',
            'execute': 'inventory.execute_distribution',
        }
"""

import logging

from rest_framework.permissions import BasePermission

logger = logging.getLogger(__name__)


class ActionRulePermission(BasePermission):
    """
    Map the current viewset action to a rules permission name.

    Actions missing from ``view.action_permissions`` fall back to
    ``view.default_permission`` (if any) and are otherwise allowed.
    """

    message = 'You do not have permission to perform this action.'

    def get_required_permission(self, view):
        mapping = getattr(view, 'action_permissions', None) or {}
        action = getattr(view, 'action', None)
        if action in mapping:
            return mapping[action]
        return getattr(view, 'default_permission', None)

    def has_permission(self, request, view):
        perm = self.get_required_permission(view)
        if perm is None:
            return True
        allowed = request.user.has_perm(perm)
        if not allowed:
            logger.info(
                "Permission %s denied for user %s (role=%s)",
                perm,
                getattr(request.user, 'pk', None),
                getattr(request.user, 'role', None),
            )
        return allowed

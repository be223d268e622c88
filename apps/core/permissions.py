"""
DRF permission classes and decorators for role enforcement.

This module provides:
- HasRole: DRF permission class that enforces a minimum role
- @requires_role: Decorator to declare the minimum role on views
"""
import logging
from rest_framework.permissions import BasePermission, SAFE_METHODS

logger = logging.getLogger(__name__)


class HasRole(BasePermission):
    """
    DRF permission class that enforces a minimum role on API endpoints.

    The view declares ``required_role`` either as a role name, applied to
    every method, or as a dict keyed by HTTP method. The special key
    ``'SAFE'`` covers GET, HEAD and OPTIONS.

    Usage in views:
        class TeamListView(APIView):
            permission_classes = [IsAuthenticated, HasRole]
            required_role = 'manager'

        class ProvinceViewSet(ModelViewSet):
            permission_classes = [IsAuthenticated, HasRole]
            required_role = {'SAFE': 'user', 'POST': 'admin', 'PATCH': 'admin', 'DELETE': 'admin'}

    The role ordering comes from the permission evaluator, so a suspended
    or unknown-role user never passes.
    """

    def has_permission(self, request, view):
        from apps.rbac.permissions import check_permission

        required_role = self._required_role(request, view)
        if not required_role:
            return True

        if check_permission(request.user).has_role_or_higher(required_role):
            return True

        from apps.core.logging import SecurityLogger
        SecurityLogger.log_permission_denied(
            user=request.user if request.user.is_authenticated else None,
            required_role=required_role,
            ip_address=request.META.get('REMOTE_ADDR', 'unknown'),
            endpoint=request.path,
        )
        logger.warning(
            f"Permission denied: role {getattr(request.user, 'role', 'anonymous')} below {required_role}",
            extra={
                'required_role': required_role,
                'view': view.__class__.__name__,
                'method': request.method,
                'path': request.path,
            }
        )
        return False

    @staticmethod
    def _required_role(request, view):
        required_role = getattr(view, 'required_role', None)
        if not isinstance(required_role, dict):
            return required_role

        if request.method in required_role:
            return required_role[request.method]
        if request.method in SAFE_METHODS:
            return required_role.get('SAFE')
        return None


def requires_role(role):
    """
    Class decorator declaring the minimum role for every method of a view.

    Usage:
        @requires_role('admin')
        class AuditLogListView(ListAPIView):
            ...

    Adds HasRole to the view's permission classes if it is missing.
    """
    def decorator(view_class):
        view_class.required_role = role
        permission_classes = list(getattr(view_class, 'permission_classes', []))
        if HasRole not in permission_classes:
            permission_classes.append(HasRole)
        view_class.permission_classes = permission_classes
        return view_class

    return decorator

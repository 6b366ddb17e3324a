from rest_framework import permissions


class IsProviderOrReadOnly(permissions.BasePermission):
    """
    Providers (doctors, admins) may change records; parents only read.
    Querysets are still filtered per user in the views.
    """
    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return True
        return bool(request.user and request.user.is_authenticated and request.user.is_provider)


class IsProvider(permissions.BasePermission):
    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.is_provider)


class IsSchedulerAdmin(permissions.BasePermission):
    """Only admins may trigger scheduler jobs by hand."""
    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and (user.is_superuser or user.role == user.ROLE_ADMIN))

"""
Role-based permissions for account, academic and calendar endpoints.

Thesis visibility and transitions are decided in apps.theses; these classes
only gate who may call an endpoint at all.
"""
from rest_framework import permissions

from apps.accounts.identity import identity_from_request
from apps.accounts.models import RoleChoices


class HasRole(permissions.BasePermission):
    """Base class: allow callers whose role is in ``allowed_roles``."""
    allowed_roles = ()

    def has_permission(self, request, view):
        identity = identity_from_request(request)
        if identity is None:
            return False
        return identity.role in self.allowed_roles


class IsAdmin(HasRole):
    """
    Only Admin role users.

    Used for user administration, departments and analytics.
    """
    message = 'Admin access required.'
    allowed_roles = (RoleChoices.ADMIN,)


class CanAuthorThesis(HasRole):
    """Students and faculty create theses."""
    message = 'Only students and faculty can create theses.'
    allowed_roles = (RoleChoices.STUDENT, RoleChoices.FACULTY)


class CanOrganizeEvents(HasRole):
    """Faculty, advisers and admins create calendar events."""
    message = 'Only faculty, advisers and admins can create events.'
    allowed_roles = (RoleChoices.FACULTY, RoleChoices.ADVISER, RoleChoices.ADMIN)


class CourseWritePermission(permissions.BasePermission):
    """
    Courses:
    - Any authenticated user: read
    - Admin, Faculty: create/update/delete
    """
    message = 'Only admins and faculty can manage courses.'

    def has_permission(self, request, view):
        identity = identity_from_request(request)
        if identity is None:
            return False
        if request.method in permissions.SAFE_METHODS:
            return True
        return identity.role in (RoleChoices.ADMIN, RoleChoices.FACULTY)


class DepartmentPermission(permissions.BasePermission):
    """
    Departments:
    - Any authenticated user: read
    - Admin: create/update/delete
    """
    message = 'Admin access required.'

    def has_permission(self, request, view):
        identity = identity_from_request(request)
        if identity is None:
            return False
        if request.method in permissions.SAFE_METHODS:
            return True
        return identity.is_admin


class IsSelfOrAdmin(permissions.BasePermission):
    """Object-level: the user record itself, or any admin."""
    message = 'You can only access your own account.'

    def has_object_permission(self, request, view, obj):
        identity = identity_from_request(request)
        if identity is None:
            return False
        return identity.is_admin or str(obj.pk) == identity.user_id
